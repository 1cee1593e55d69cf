from typing import Optional, List, Union

import numpy as np

from ..base import Model
from ..util.exceptions import ConfigurationError
from ..util.types import ensure_sequences
from ._defaults import DEFAULT_N_STATES, DEFAULT_N_COMPONENTS, DEFAULT_COVARIANCE_OFFSET, \
    DEFAULT_ESTIMATE_MEANS, DEFAULT_TRANSITION_MODE
from ._emission_model import EmissionModel
from ._gaussian_mixture import GaussianMixtureEmission
from ._transition_model import TransitionModel


class HiddenMarkovModel(Model):
    r""" Hidden Markov model with Gaussian mixture emissions. The model consists of a
    :class:`transition model <TransitionModel>` (prior, transition matrix and, if hierarchical, exit probabilities)
    and one :class:`emission model <EmissionModel>` per hidden state.

    The model can be bimodal, in which case each observation consists of an input segment followed by an output
    segment. The output segment can then be estimated from the input by regression at decoding time,
    see :class:`RealtimeDecoder`.

    Parameters
    ----------
    n_states : int, optional, default=10
        Number of hidden states.
    n_components : int, optional, default=1
        Number of Gaussian mixture components per state.
    dimension : int, optional, default=1
        Total dimension of the observations.
    dimension_input : int, optional, default=None
        Width of the input segment. If given, the model is bimodal and `dimension_input` must be smaller than
        `dimension`.
    transition_mode : str, optional, default='left-right'
        Topology of the model, 'ergodic' or 'left-right'.
    covariance_offset : float, optional, default=1e-3
        Regularization offset added to the diagonal of the covariances in each state.
    estimate_means : bool, optional, default=True
        Whether means are re-estimated during training. If False, the initial means are retained.
    hierarchical : bool, optional, default=False
        Whether the model is used as a submodel of a hierarchical scheduler and tracks exit probabilities.
    states : list of EmissionModel, optional, default=None
        Emission models for the states. Default Gaussian mixtures are created if not given.
    likelihoods : ndarray, optional, default=None
        Log-likelihood history of the estimation which produced this model.

    See Also
    --------
    MaximumLikelihoodHMM : Baum-Welch estimation of the parameters.
    RealtimeDecoder : Frame-by-frame decoding.
    """

    def __init__(self, n_states: int = DEFAULT_N_STATES, n_components: int = DEFAULT_N_COMPONENTS,
                 dimension: int = 1, dimension_input: Optional[int] = None,
                 transition_mode: str = DEFAULT_TRANSITION_MODE,
                 covariance_offset: float = DEFAULT_COVARIANCE_OFFSET,
                 estimate_means: bool = DEFAULT_ESTIMATE_MEANS, hierarchical: bool = False,
                 states: Optional[List[EmissionModel]] = None, likelihoods: Optional[np.ndarray] = None):
        super().__init__()
        if n_states < 1:
            raise ConfigurationError("Number of states must be > 0")
        if n_components < 1:
            raise ConfigurationError("The number of Gaussian mixture components must be > 0")
        self._check_dimensions(dimension, dimension_input)
        self._n_states = int(n_states)
        self._n_components = int(n_components)
        self._dimension = int(dimension)
        self._dimension_input = None if dimension_input is None else int(dimension_input)
        self._covariance_offset = float(covariance_offset)
        self._estimate_means = bool(estimate_means)
        self._hierarchical = bool(hierarchical)
        self._transition_model = TransitionModel(self._n_states, transition_mode, self._hierarchical)
        self._likelihoods = likelihoods
        self._trained = False
        if states is None:
            self._allocate_states()
        else:
            if len(states) != self._n_states:
                raise ConfigurationError(f"Got {len(states)} emission models for {self._n_states} states.")
            for state in states:
                if state.dimension != self._dimension or state.dimension_input != self._dimension_input:
                    raise ConfigurationError("Emission model dimensions do not match the model dimensions.")
                if state.n_components != self._n_components:
                    raise ConfigurationError("Emission model component count does not match the model.")
            self._states = list(states)

    def _allocate_states(self):
        self._states = [
            GaussianMixtureEmission(n_components=self._n_components, dimension=self._dimension,
                                    dimension_input=self._dimension_input,
                                    covariance_offset=self._covariance_offset)
            for _ in range(self._n_states)
        ]

    @property
    def n_states(self) -> int:
        r""" Number of hidden states. Changing it reallocates all parameters and resets :attr:`trained`. """
        return self._n_states

    @n_states.setter
    def n_states(self, value: int):
        if value < 1:
            raise ConfigurationError("Number of states must be > 0")
        if value == self._n_states:
            return
        self._n_states = int(value)
        self._transition_model = TransitionModel(self._n_states, self.transition_mode, self._hierarchical)
        self._allocate_states()
        self._trained = False

    @property
    def n_components(self) -> int:
        r""" Number of mixture components per state. Changing it reallocates the emission models and resets
        :attr:`trained`. """
        return self._n_components

    @n_components.setter
    def n_components(self, value: int):
        if value < 1:
            raise ConfigurationError("The number of Gaussian mixture components must be > 0")
        if value == self._n_components:
            return
        self._n_components = int(value)
        self._allocate_states()
        self._trained = False

    @staticmethod
    def _check_dimensions(dimension, dimension_input):
        if dimension < 1:
            raise ConfigurationError("Dimension must be > 0")
        if dimension_input is not None and not 0 < dimension_input < dimension:
            raise ConfigurationError(f"Input dimension ({dimension_input}) must be positive and smaller than the "
                                     f"total dimension ({dimension}).")

    @property
    def dimension(self) -> int:
        r""" Total dimension of the observations. Changing it reallocates the emission models and resets
        :attr:`trained`. """
        return self._dimension

    @dimension.setter
    def dimension(self, value: int):
        self._check_dimensions(value, self._dimension_input)
        if value == self._dimension:
            return
        self._dimension = int(value)
        self._allocate_states()
        self._trained = False

    @property
    def dimension_input(self) -> Optional[int]:
        r""" Width of the input segment, None for a unimodal model. Changing it reallocates the emission models
        and resets :attr:`trained`. """
        return self._dimension_input

    @dimension_input.setter
    def dimension_input(self, value: Optional[int]):
        self._check_dimensions(self._dimension, value)
        if value == self._dimension_input:
            return
        self._dimension_input = None if value is None else int(value)
        self._allocate_states()
        self._trained = False

    @property
    def dimension_output(self) -> int:
        return 0 if self._dimension_input is None else self._dimension - self._dimension_input

    @property
    def bimodal(self) -> bool:
        return self._dimension_input is not None

    @property
    def hierarchical(self) -> bool:
        r""" Whether exit probabilities are tracked. Changing it reallocates the transition model and resets
        :attr:`trained`. """
        return self._hierarchical

    @hierarchical.setter
    def hierarchical(self, value: bool):
        value = bool(value)
        if value == self._hierarchical:
            return
        self._hierarchical = value
        self._transition_model = TransitionModel(self._n_states, self.transition_mode, self._hierarchical)
        self._trained = False

    @property
    def transition_mode(self) -> str:
        r""" Topology of the model, 'ergodic' or 'left-right'. Takes effect on the next training initialization. """
        return self._transition_model.transition_mode

    @transition_mode.setter
    def transition_mode(self, value: str):
        self._transition_model.transition_mode = value

    @property
    def covariance_offset(self) -> float:
        return self._covariance_offset

    @covariance_offset.setter
    def covariance_offset(self, value: float):
        self._covariance_offset = float(value)
        for state in self._states:
            state.covariance_offset = self._covariance_offset

    @property
    def estimate_means(self) -> bool:
        return self._estimate_means

    @estimate_means.setter
    def estimate_means(self, value: bool):
        self._estimate_means = bool(value)

    @property
    def trained(self) -> bool:
        r""" Whether the parameters stem from training or from a loaded model. """
        return self._trained

    @trained.setter
    def trained(self, value: bool):
        self._trained = bool(value)

    @property
    def likelihoods(self) -> Optional[np.ndarray]:
        r""" Log-likelihood of the training data after each Baum-Welch iteration, None if the model was not
        estimated. """
        return self._likelihoods

    @likelihoods.setter
    def likelihoods(self, value: Optional[np.ndarray]):
        self._likelihoods = value

    @property
    def transition_model(self) -> TransitionModel:
        return self._transition_model

    @property
    def states(self) -> List[EmissionModel]:
        r""" The emission models, one per hidden state. """
        return self._states

    @property
    def prior(self) -> np.ndarray:
        return self._transition_model.prior

    @property
    def transition(self) -> np.ndarray:
        return self._transition_model.transition

    @property
    def exit_probabilities(self) -> Optional[np.ndarray]:
        return self._transition_model.exit_probabilities

    def set_exit_probabilities(self, exit_probabilities: Optional[np.ndarray] = None) -> None:
        r""" Sets the exit probabilities, see :meth:`TransitionModel.set_exit_probabilities`. """
        self._transition_model.set_exit_probabilities(exit_probabilities)

    def set_exit_point(self, state: int, probability: float) -> None:
        r""" Sets the exit probability of one state, see :meth:`TransitionModel.set_exit_point`. """
        self._transition_model.set_exit_point(state, probability)

    def add_cyclic_transition(self, probability: float) -> None:
        r""" Adds a wrap-around transition, see :meth:`TransitionModel.add_cyclic_transition`. """
        self._transition_model.add_cyclic_transition(probability)

    def _check_state(self, state: int):
        if not 0 <= state < self._n_states:
            raise IndexError(f"State index {state} out of bounds for {self._n_states} states.")

    def _check_bimodal(self):
        if not self.bimodal:
            raise ConfigurationError("Model is not bimodal. Use the function 'likelihood'.")

    def likelihood(self, observation: np.ndarray, state: int, component: int = -1) -> float:
        r""" Likelihood of a full observation vector in one state.

        Parameters
        ----------
        observation : (dimension,) ndarray
            The observation.
        state : int
            The hidden state.
        component : int, optional, default=-1
            The mixture component, -1 sums over all components.

        Returns
        -------
        likelihood : float
            The likelihood.
        """
        self._check_state(state)
        return self._states[state].likelihood(observation, component)

    def input_likelihood(self, observation_input: np.ndarray, state: int, component: int = -1) -> float:
        self._check_bimodal()
        self._check_state(state)
        return self._states[state].input_likelihood(observation_input, component)

    def joint_likelihood(self, observation_input: np.ndarray, observation_output: np.ndarray, state: int,
                         component: int = -1) -> float:
        self._check_bimodal()
        self._check_state(state)
        return self._states[state].joint_likelihood(observation_input, observation_output, component)

    def compute_observation_likelihood(self, data: Union[np.ndarray, List[np.ndarray]]) -> float:
        r""" Computes the log-likelihood of observed sequences under this model using the scaled forward pass.

        Parameters
        ----------
        data : ndarray or list of ndarray
            One or several sequences of shape (T, d). In bimodal mode, sequences of full width are evaluated with
            the joint likelihood and sequences of input width with the input likelihood.

        Returns
        -------
        log_likelihood : float
            The summed log-likelihood over all sequences.
        """
        from ._forward_backward import ForwardBackwardEngine
        engine = ForwardBackwardEngine(self)
        return sum(engine.forward(seq) for seq in ensure_sequences(data))

    def to_dict(self) -> dict:
        r""" Serializes this model into a JSON-compatible dictionary, see :func:`gesturehmm.hmm.to_dict`. """
        from ._serialization import to_dict
        return to_dict(self)

    @staticmethod
    def from_dict(document: dict, hierarchical: Optional[bool] = None) -> "HiddenMarkovModel":
        r""" Reconstructs a model from a document, see :func:`gesturehmm.hmm.from_dict`. """
        from ._serialization import from_dict
        return from_dict(document, hierarchical=hierarchical)
