import logging

import numpy as np

from ...util.exceptions import ConfigurationError

log = logging.getLogger(__name__)


def _segment_length(phrase, n_states: int, index=None) -> int:
    step = len(phrase) // n_states
    if step == 0:
        raise ConfigurationError(f"Phrase {'' if index is None else index} has {len(phrase)} frames which is "
                                 f"fewer than the {n_states} states, cannot initialize.")
    return step


def _segment(phrase, state: int, step: int) -> np.ndarray:
    return phrase.data[state * step:(state + 1) * step]


def initialize_means_first_phrase(model, training_set) -> None:
    r""" Initializes the mean of the first mixture component of each state from the first phrase of the training set.
    The phrase is split into `n_states` segments of equal length (trailing frames are dropped) and the mean of
    state :math:`i` is the average of segment :math:`i`.

    Parameters
    ----------
    model : HiddenMarkovModel
        The model, modified in place.
    training_set : TrainingSet
        The training set, must not be empty.

    Raises
    ------
    ConfigurationError
        If the first phrase has fewer frames than the model has states.
    """
    first_index = training_set.indices[0]
    phrase = training_set[first_index]
    step = _segment_length(phrase, model.n_states, first_index)
    for i, state in enumerate(model.states):
        state.means[0] = _segment(phrase, i, step).mean(axis=0)


def initialize_covariances_all_phrases(model, training_set) -> None:
    r""" Initializes the covariance of the first mixture component of each state with the scatter of all phrases'
    segments around the state mean. Every phrase is split into `n_states` segments of equal length, segment
    :math:`i` of each phrase contributes to state :math:`i`.

    Parameters
    ----------
    model : HiddenMarkovModel
        The model, modified in place. The means must be initialized already.
    training_set : TrainingSet
        The training set, must not be empty.
    """
    segments = [[] for _ in range(model.n_states)]
    for index in training_set.indices:
        phrase = training_set[index]
        step = _segment_length(phrase, model.n_states, index)
        for i in range(model.n_states):
            segments[i].append(_segment(phrase, i, step))
    for i, state in enumerate(model.states):
        centered = np.concatenate(segments[i]) - state.means[0]
        state.covariances[0] = centered.T @ centered / centered.shape[0]


def initialize_mixture_components(model, training_set) -> None:
    r""" Initializes mixture components from distinct phrases: component :math:`c` of every state is estimated from
    the segments of phrase :math:`c`. Only the first `min(n_phrases, n_components)` components are initialized,
    the remaining ones keep their defaults.

    Parameters
    ----------
    model : HiddenMarkovModel
        The model, modified in place.
    training_set : TrainingSet
        The training set, must not be empty.
    """
    for c, index in enumerate(training_set.indices[:model.n_components]):
        phrase = training_set[index]
        step = _segment_length(phrase, model.n_states, index)
        for i, state in enumerate(model.states):
            segment = _segment(phrase, i, step)
            state.means[c] = segment.mean(axis=0)
            centered = segment - state.means[c]
            state.covariances[c] = centered.T @ centered / step


def initialize_parameters(model, training_set) -> None:
    r""" Initializes all parameters of a model for training: prior and transitions according to the transition
    mode, emission parameters reset to their defaults and then estimated from equal-length segments of the phrases
    (see :meth:`initialize_means_first_phrase`, :meth:`initialize_covariances_all_phrases` and
    :meth:`initialize_mixture_components`). Finally, the covariance offset is applied.

    Parameters
    ----------
    model : HiddenMarkovModel
        The model, modified in place.
    training_set : TrainingSet
        The training set.
    """
    model.transition_model.initialize()
    for state in model.states:
        state.reset_parameters()
    if training_set.is_empty():
        log.debug("Empty training set, emission parameters stay at their defaults.")
    elif model.n_components > 1:
        initialize_mixture_components(model, training_set)
    else:
        initialize_means_first_phrase(model, training_set)
        initialize_covariances_all_phrases(model, training_set)
    for state in model.states:
        state.apply_covariance_regularization()
    model.trained = False


def estimate_n_states(training_set, factor: int) -> int:
    r""" Estimates a number of states from the length of the first phrase, i.e., one state per `factor` frames.

    Parameters
    ----------
    training_set : TrainingSet
        The training set, must not be empty.
    factor : int
        Number of frames per state.

    Returns
    -------
    n_states : int
        The number of states.

    Examples
    --------
    >>> from gesturehmm.data import TrainingSet
    >>> training_set = TrainingSet.from_sequences([np.zeros((50, 2))])
    >>> estimate_n_states(training_set, factor=5)
    10
    """
    if factor < 1:
        raise ValueError(f"Factor must be positive but was {factor}.")
    if training_set.is_empty():
        raise ValueError("Cannot estimate the number of states from an empty training set.")
    n_states = len(training_set[training_set.indices[0]]) // factor
    if n_states < 1:
        raise ConfigurationError(f"First phrase is too short for a factor of {factor}.")
    return n_states
