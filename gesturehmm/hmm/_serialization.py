import json
import logging
from typing import Optional, Tuple

import numpy as np

from ..util.exceptions import PersistenceFormatError, ConfigurationError
from ._transition_model import Topology

log = logging.getLogger(__name__)


class FieldReader:
    r""" Sequential reader over the fields of a document. Fields must appear in exactly the order in which they are
    read, with the expected names and types.

    Parameters
    ----------
    document : dict
        The document.
    context : str
        Name of the document type, used in error messages.
    """

    def __init__(self, document, context: str):
        self._context = context
        if not isinstance(document, dict):
            self.fail(None, f"expected an object but got {type(document).__name__}")
        self._document = document
        self._keys = list(document.keys())
        self._position = 0

    def fail(self, field: Optional[str], message: str):
        raise PersistenceFormatError(f"{self._context}: {message}", field=field)

    def _next(self, name: str):
        if self._position >= len(self._keys):
            self.fail(name, "missing field")
        key = self._keys[self._position]
        if key != name:
            self.fail(name, f"expected field '{name}' at position {self._position} but found '{key}'")
        self._position += 1
        return self._document[key]

    def read(self, name: str, kind: type):
        r""" Reads the next field and checks its type. Booleans are not accepted as integers, integers are
        accepted as floats.

        Parameters
        ----------
        name : str
            Expected field name.
        kind : type
            Expected type, one of bool, int, float, str, list, dict.

        Returns
        -------
        value
            The field value.
        """
        value = self._next(name)
        if kind is bool:
            valid = isinstance(value, bool)
        elif kind is int:
            valid = isinstance(value, int) and not isinstance(value, bool)
        elif kind is float:
            valid = isinstance(value, (int, float)) and not isinstance(value, bool)
        else:
            valid = isinstance(value, kind)
        if not valid:
            self.fail(name, f"expected {kind.__name__} but got {type(value).__name__}")
        return float(value) if kind is float else value

    def read_array(self, name: str, shape: Tuple[int, ...]) -> np.ndarray:
        r""" Reads the next field as flat list of numbers and reshapes it. """
        value = self._next(name)
        if not isinstance(value, list):
            self.fail(name, f"expected list but got {type(value).__name__}")
        try:
            array = np.asarray(value, dtype=np.float64)
        except (TypeError, ValueError):
            self.fail(name, "expected a list of numbers")
        if array.ndim != 1 or array.size != int(np.prod(shape)):
            self.fail(name, f"expected {int(np.prod(shape))} entries but got {array.size}")
        return array.reshape(shape)

    def finish(self):
        r""" Checks that all fields of the document were consumed. """
        if self._position < len(self._keys):
            self.fail(self._keys[self._position], "unexpected field")


def to_dict(model) -> dict:
    r""" Serializes a hidden Markov model into a JSON-compatible dictionary.

    Parameters
    ----------
    model : HiddenMarkovModel
        The model.

    Returns
    -------
    document : dict
        The document. Arrays are stored as flat lists in row-major order.
    """
    document = {
        'is_hierarchical': model.hierarchical,
        'estimateMeans': model.estimate_means,
        'dimension': model.dimension,
        'dimensionInput': 0 if model.dimension_input is None else model.dimension_input,
        'nbStates': model.n_states,
        'nbMixtureComponents': model.n_components,
        'covarianceOffset': model.covariance_offset,
        'transitionMode': int(model.transition_model.topology),
        'prior': model.prior.tolist(),
        'transition': model.transition.ravel().tolist(),
    }
    if model.hierarchical:
        document['exitProbabilities'] = model.exit_probabilities.tolist()
    document['states'] = [state.to_dict() for state in model.states]
    return document


def from_dict(document: dict, hierarchical: Optional[bool] = None):
    r""" Reconstructs a hidden Markov model from a document created by :func:`to_dict`. The resulting model is
    marked as trained.

    Parameters
    ----------
    document : dict
        The document.
    hierarchical : bool, optional, default=None
        If given, the document's hierarchical flag must match.

    Returns
    -------
    model : HiddenMarkovModel
        The model.

    Raises
    ------
    PersistenceFormatError
        If the document is malformed or its hierarchical flag does not match.
    """
    from ._gaussian_mixture import GaussianMixtureEmission
    from ._hidden_markov_model import HiddenMarkovModel

    reader = FieldReader(document, 'HiddenMarkovModel')
    is_hierarchical = reader.read('is_hierarchical', bool)
    if hierarchical is not None and is_hierarchical != hierarchical:
        reader.fail('is_hierarchical', f"document describes a {'' if is_hierarchical else 'non-'}hierarchical "
                                       f"model but a {'' if hierarchical else 'non-'}hierarchical one was expected")
    estimate_means = reader.read('estimateMeans', bool)
    dimension = reader.read('dimension', int)
    dimension_input = reader.read('dimensionInput', int)
    if dimension_input < 0:
        reader.fail('dimensionInput', "input dimension must not be negative")
    n_states = reader.read('nbStates', int)
    n_components = reader.read('nbMixtureComponents', int)
    covariance_offset = reader.read('covarianceOffset', float)
    transition_mode = reader.read('transitionMode', int)
    if transition_mode not in (Topology.ERGODIC, Topology.LEFT_RIGHT):
        reader.fail('transitionMode', f"unknown transition mode {transition_mode}")
    if n_states < 1:
        reader.fail('nbStates', "number of states must be positive")
    prior = reader.read_array('prior', (n_states,))
    transition = reader.read_array('transition', (n_states, n_states))
    exit_probabilities = reader.read_array('exitProbabilities', (n_states,)) if is_hierarchical else None
    state_documents = reader.read('states', list)
    reader.finish()
    if len(state_documents) != n_states:
        reader.fail('states', f"expected {n_states} states but got {len(state_documents)}")

    try:
        states = [GaussianMixtureEmission.from_dict(d) for d in state_documents]
        model = HiddenMarkovModel(n_states=n_states, n_components=n_components, dimension=dimension,
                                  dimension_input=dimension_input if dimension_input > 0 else None,
                                  transition_mode=str(Topology(transition_mode)),
                                  covariance_offset=covariance_offset, estimate_means=estimate_means,
                                  hierarchical=is_hierarchical, states=states)
    except (ConfigurationError, np.linalg.LinAlgError) as e:
        raise PersistenceFormatError(f"HiddenMarkovModel: inconsistent document, {e}", field='states') from e
    model.transition_model.prior = prior
    model.transition_model.transition = transition
    if is_hierarchical:
        try:
            model.set_exit_probabilities(exit_probabilities)
        except ValueError as e:
            reader.fail('exitProbabilities', str(e))
    model.trained = True
    return model


def save(model, path) -> None:
    r""" Writes a model as JSON document to a file.

    Parameters
    ----------
    model : HiddenMarkovModel
        The model.
    path : str or path-like
        Output file.
    """
    with open(path, 'w') as f:
        json.dump(to_dict(model), f, indent=2)
    log.debug("Saved model with %s states to %s.", model.n_states, path)


def load(path, hierarchical: Optional[bool] = None):
    r""" Reads a model from a JSON file written by :func:`save`, see :func:`from_dict`. """
    with open(path, 'r') as f:
        document = json.load(f)
    return from_dict(document, hierarchical=hierarchical)
