import collections
import logging

import numpy as np

from ..util.exceptions import ConfigurationError
from ..util.types import ensure_floating_array
from ._defaults import BACKWARD_SENTINEL

log = logging.getLogger(__name__)

SequenceBuffers = collections.namedtuple('SequenceBuffers', [
    'alpha', 'beta', 'gamma', 'gamma_per_mixture', 'epsilon', 'scale'
])
SequenceBuffers.__doc__ = r""" Per-sequence forward-backward buffers of a sequence with T frames, S states and C
mixture components: `alpha`, `beta` and `gamma` of shape (T, S), `gamma_per_mixture` of shape (T, S, C), `epsilon`
of shape (T-1, S, S) and the scale factors `scale` of shape (T,). """


def allocate_sequence_buffers(length: int, n_states: int, n_components: int) -> SequenceBuffers:
    r""" Allocates zero-initialized buffers for the forward-backward pass over one sequence.

    Parameters
    ----------
    length : int
        Number of frames.
    n_states : int
        Number of hidden states.
    n_components : int
        Number of mixture components per state.

    Returns
    -------
    buffers : SequenceBuffers
        The buffers.
    """
    return SequenceBuffers(
        alpha=np.zeros((length, n_states)),
        beta=np.zeros((length, n_states)),
        gamma=np.zeros((length, n_states)),
        gamma_per_mixture=np.zeros((length, n_states, n_components)),
        epsilon=np.zeros((max(length - 1, 0), n_states, n_states)),
        scale=np.zeros((length,))
    )


def _normalize_forward_variable(alpha: np.ndarray) -> float:
    r""" Normalizes alpha in place and returns the scale factor, i.e., the inverse normalization constant. If the
    normalization constant vanishes, alpha becomes uniform and the scale factor is one. """
    norm_const = alpha.sum()
    if norm_const > 0:
        alpha /= norm_const
        return 1. / norm_const
    log.debug("Observation has zero likelihood in all states, using uniform forward variable.")
    alpha.fill(1. / alpha.shape[0])
    return 1.


def _clamp_backward_variable(beta: np.ndarray) -> None:
    nonfinite = ~np.isfinite(beta)
    if np.any(nonfinite):
        log.debug("Replacing %s non-finite backward variables.", np.count_nonzero(nonfinite))
        beta[nonfinite] = BACKWARD_SENTINEL


class ForwardBackwardEngine:
    r""" Scaled forward-backward recursions for a :class:`HiddenMarkovModel`.

    The engine offers two ways of operation. Frame by frame, :meth:`forward_init` and :meth:`forward_update`
    maintain the current forward variable :attr:`alpha` (and :meth:`backward_init`, :meth:`backward_update` the
    backward variable :attr:`beta`), the previous values are kept in :attr:`previous_alpha` and
    :attr:`previous_beta`. Over a whole sequence, :meth:`forward_backward` fills a set of
    :class:`SequenceBuffers` with forward and backward variables as well as the state and transition
    occupancies required for Baum-Welch re-estimation.

    The forward variables are normalized in each step, the inverse normalization constants are the scale factors
    :math:`c_t` and the log-likelihood of a sequence is :math:`-\sum_t \log c_t`.

    In hierarchical mode, the frame by frame forward pass additionally maintains the partition :attr:`alpha_h` of
    the forward variable into mass which stays within the model, mass which re-entered the model through the
    prior after an exit and mass which exits the model.

    Parameters
    ----------
    model : HiddenMarkovModel
        The model whose parameters are used. The engine holds a reference, parameter changes are picked up.
    """

    def __init__(self, model):
        self._model = model
        self.reset()

    @property
    def model(self):
        return self._model

    def reset(self):
        r""" (Re-)allocates the frame by frame variables for the current state count of the model and marks the
        forward pass as uninitialized. """
        n_states = self._model.n_states
        self.alpha = np.zeros((n_states,))
        self.previous_alpha = np.zeros((n_states,))
        self.beta = np.zeros((n_states,))
        self.previous_beta = np.zeros((n_states,))
        self.alpha_h = np.zeros((3, n_states)) if self._model.hierarchical else None
        self.forward_initialized = False

    def _check_width(self, width):
        model = self._model
        if width == model.dimension:
            return False
        if model.bimodal and width == model.dimension_input:
            return True
        expected = f"{model.dimension}" if not model.bimodal else f"{model.dimension} or {model.dimension_input}"
        raise ConfigurationError(f"Observations have dimension {width} but the model expects {expected}.")

    def component_likelihoods(self, observations: np.ndarray) -> np.ndarray:
        r""" Evaluates the weighted likelihood of every mixture component of every state.

        Parameters
        ----------
        observations : (T, d) ndarray
            Observations. In bimodal mode, observations of input width are evaluated with the input likelihood
            and observations of full width with the joint likelihood.

        Returns
        -------
        likelihoods : (T, n_states, n_components) ndarray
            The component likelihoods.
        """
        observations = np.atleast_2d(observations)
        input_only = self._check_width(observations.shape[1])
        return np.stack([state.component_likelihoods(observations, input_only=input_only)
                         for state in self._model.states], axis=1)

    def observation_likelihoods(self, observation: np.ndarray) -> np.ndarray:
        r""" Likelihood of a single observation in every state, shape (n_states,). """
        observation = ensure_floating_array(observation, ndim=1)
        return self.component_likelihoods(observation[None, :])[0].sum(axis=-1)

    def forward_init(self, observation: np.ndarray) -> float:
        r""" Initializes the forward variable with the first observation of a sequence.

        Parameters
        ----------
        observation : ndarray
            The observation.

        Returns
        -------
        scale : float
            The scale factor, i.e., the inverse of the normalization constant.
        """
        b = self.observation_likelihoods(observation)
        model = self._model
        if self.alpha_h is not None:
            self.alpha_h.fill(0.)
            self.alpha_h[0] = model.prior * b
            scale = self._normalize_hierarchical()
            self._split_exits()
            self.alpha[:] = self.alpha_h.sum(axis=0)
        else:
            self.alpha[:] = model.prior * b
            scale = _normalize_forward_variable(self.alpha)
        self.forward_initialized = True
        return scale

    def forward_update(self, observation: np.ndarray) -> float:
        r""" Propagates the forward variable by one step.

        Parameters
        ----------
        observation : ndarray
            The observation.

        Returns
        -------
        scale : float
            The scale factor, i.e., the inverse of the normalization constant.
        """
        if not self.forward_initialized:
            raise RuntimeError("Forward pass not initialized, call forward_init first.")
        b = self.observation_likelihoods(observation)
        model = self._model
        self.previous_alpha[:] = self.alpha
        if self.alpha_h is not None:
            stay, advance, exit_mass = self.alpha_h
            self.alpha_h[0] = ((stay + advance) @ model.transition) * b
            self.alpha_h[1] = exit_mass.sum() * model.prior * b
            self.alpha_h[2].fill(0.)
            scale = self._normalize_hierarchical()
            self._split_exits()
            self.alpha[:] = self.alpha_h.sum(axis=0)
        else:
            self.alpha[:] = (self.previous_alpha @ model.transition) * b
            scale = _normalize_forward_variable(self.alpha)
        return scale

    def _normalize_hierarchical(self) -> float:
        norm_const = self.alpha_h.sum()
        if norm_const > 0:
            self.alpha_h /= norm_const
            return 1. / norm_const
        log.debug("Observation has zero likelihood in all states, using uniform forward variable.")
        self.alpha_h.fill(0.)
        self.alpha_h[0] = 1. / self._model.n_states
        return 1.

    def _split_exits(self):
        exit_probabilities = self._model.exit_probabilities
        within = self.alpha_h[0] + self.alpha_h[1]
        self.alpha_h[2] = exit_probabilities * within
        self.alpha_h[0] *= 1. - exit_probabilities
        self.alpha_h[1] *= 1. - exit_probabilities

    def backward_init(self, scale: float) -> None:
        r""" Initializes the backward variable at the last frame of a sequence with its scale factor. """
        self.beta.fill(scale)

    def backward_update(self, scale: float, next_observation: np.ndarray) -> None:
        r""" Propagates the backward variable by one step towards the beginning of the sequence.

        Parameters
        ----------
        scale : float
            Scale factor of the current frame.
        next_observation : ndarray
            Observation of the following frame.
        """
        b = self.observation_likelihoods(next_observation)
        self.previous_beta[:] = self.beta
        self.beta[:] = scale * (self._model.transition @ (self.previous_beta * b))
        _clamp_backward_variable(self.beta)

    def _forward_pass(self, likelihoods: np.ndarray, alpha: np.ndarray, scale: np.ndarray) -> None:
        model = self._model
        alpha[0] = model.prior * likelihoods[0]
        scale[0] = _normalize_forward_variable(alpha[0])
        for t in range(1, likelihoods.shape[0]):
            alpha[t] = (alpha[t - 1] @ model.transition) * likelihoods[t]
            scale[t] = _normalize_forward_variable(alpha[t])

    def forward(self, sequence: np.ndarray) -> float:
        r""" Runs the scaled forward pass over a sequence without touching the frame by frame variables.

        Parameters
        ----------
        sequence : (T, d) ndarray
            The observations.

        Returns
        -------
        log_likelihood : float
            Log-likelihood of the sequence.
        """
        likelihoods = self.component_likelihoods(sequence).sum(axis=-1)
        alpha = np.empty_like(likelihoods)
        scale = np.empty((likelihoods.shape[0],))
        self._forward_pass(likelihoods, alpha, scale)
        return -np.log(scale).sum()

    def forward_backward(self, sequence: np.ndarray, buffers: SequenceBuffers) -> float:
        r""" Runs forward and backward passes over a sequence and derives state occupancies (gamma), state and
        component occupancies (gamma per mixture) and transition occupancies (epsilon).

        Parameters
        ----------
        sequence : (T, d) ndarray
            The observations. In bimodal mode these are full observation vectors.
        buffers : SequenceBuffers
            Buffers of matching size, overwritten.

        Returns
        -------
        log_likelihood : float
            Log-likelihood of the sequence.
        """
        transition = self._model.transition
        component_likelihoods = self.component_likelihoods(sequence)
        likelihoods = component_likelihoods.sum(axis=-1)
        alpha, beta, gamma, gamma_per_mixture, epsilon, scale = buffers
        if alpha.shape != likelihoods.shape or gamma_per_mixture.shape != component_likelihoods.shape:
            raise ValueError(f"Buffers of shape {alpha.shape} do not fit sequence likelihoods of shape "
                             f"{component_likelihoods.shape}.")

        self._forward_pass(likelihoods, alpha, scale)

        beta[-1] = scale[-1]
        for t in range(likelihoods.shape[0] - 2, -1, -1):
            beta[t] = scale[t] * (transition @ (beta[t + 1] * likelihoods[t + 1]))
            _clamp_backward_variable(beta[t])

        gamma[:] = alpha * beta / scale[:, None]
        with np.errstate(divide='ignore', invalid='ignore'):
            shares = np.where(likelihoods[..., None] > 0, component_likelihoods / likelihoods[..., None], 0.)
        gamma_per_mixture[:] = gamma[..., None] * shares
        epsilon[:] = alpha[:-1, :, None] * transition[None, :, :] * (beta[1:] * likelihoods[1:])[:, None, :]
        return -np.log(scale).sum()
