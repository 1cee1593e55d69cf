import collections
import logging
from typing import Optional

import numpy as np

from ..util.exceptions import ConfigurationError
from ..util.types import ensure_sequences
from ._defaults import DEFAULT_LIKELIHOOD_WINDOW
from ._forward_backward import ForwardBackwardEngine
from ._hidden_markov_model import HiddenMarkovModel

log = logging.getLogger(__name__)

DecodingResult = collections.namedtuple('DecodingResult', [
    'instant_likelihood', 'log_likelihood', 'progress', 'predicted_output'
])
DecodingResult.__doc__ = r""" Results of the realtime decoder after the most recent frame: the instantaneous
likelihood (inverse scale factor of the forward pass), the log-likelihood averaged over the likelihood window, the
time progression within the model in [0, 1] and, for bimodal models, the predicted output segment (else None). """


class RealtimeDecoder:
    r""" Frame-by-frame decoding with a (trained) :class:`HiddenMarkovModel`.

    Each call to :meth:`update` advances the forward pass by one frame. For bimodal models, only the input segment of
    the observation is used for the forward pass and the output segment is estimated by regression: each state
    regresses the output from the input and the predictions are weighted by the forward variable. If the observation
    has full width, the prediction is written into its output segment in place.

    Parameters
    ----------
    model : HiddenMarkovModel
        The model.
    likelihood_window : int, optional, default=5
        Number of frames over which the log-likelihood is averaged.

    Examples
    --------
    >>> model = HiddenMarkovModel(n_states=3, dimension=1)
    >>> decoder = RealtimeDecoder(model)
    >>> instant_likelihood = decoder.update(np.array([0.]))
    >>> float(decoder.alpha.sum())
    1.0
    """

    def __init__(self, model: HiddenMarkovModel, likelihood_window: int = DEFAULT_LIKELIHOOD_WINDOW):
        self._model = model
        self._engine = ForwardBackwardEngine(model)
        self._likelihood_window = None
        self.likelihood_window = likelihood_window

    @property
    def model(self) -> HiddenMarkovModel:
        return self._model

    @property
    def likelihood_window(self) -> int:
        r""" Number of frames over which the log-likelihood is averaged. Setting it resets the decoder. """
        return self._likelihood_window

    @likelihood_window.setter
    def likelihood_window(self, value: int):
        if value < 1:
            raise ConfigurationError(f"Likelihood window must be positive but was {value}.")
        self._likelihood_window = int(value)
        self.reset()

    @property
    def engine(self) -> ForwardBackwardEngine:
        return self._engine

    @property
    def alpha(self) -> np.ndarray:
        r""" Current forward variable, shape (n_states,). """
        return self._engine.alpha

    @property
    def alpha_h(self) -> Optional[np.ndarray]:
        r""" Current partition of the forward variable into staying, re-entering and exiting mass, shape
        (3, n_states). None unless the model is hierarchical. """
        return self._engine.alpha_h

    @property
    def results(self) -> DecodingResult:
        r""" Results after the most recent frame. """
        predicted_output = None if self._predicted_output is None else self._predicted_output.copy()
        return DecodingResult(instant_likelihood=self._instant_likelihood, log_likelihood=self._log_likelihood,
                              progress=self._progress, predicted_output=predicted_output)

    @property
    def progress(self) -> float:
        return self._progress

    def reset(self) -> None:
        r""" Starts a new stream: the next frame initializes the forward pass with the prior. """
        self._engine.reset()
        self._likelihood_buffer = collections.deque(maxlen=self._likelihood_window)
        self._instant_likelihood = 0.
        self._log_likelihood = 0.
        self._progress = 0.
        self._predicted_output = np.zeros((self._model.dimension_output,)) if self._model.bimodal else None

    def update(self, observation: np.ndarray) -> float:
        r""" Decodes one frame.

        Parameters
        ----------
        observation : ndarray
            The observation. For bimodal models, either the input segment only or a full observation vector whose
            output segment is overwritten with the prediction. A full observation vector must therefore be a
            writeable floating point ndarray.

        Returns
        -------
        instant_likelihood : float
            Instantaneous likelihood of the frame.
        """
        model = self._model
        if self._engine.alpha.shape[0] != model.n_states:
            log.debug("Number of states changed, restarting decoding.")
            self.reset()
        buffer = observation
        observation = np.asarray(observation)
        if observation.ndim != 1:
            raise ValueError(f"Expected a single observation vector but got shape {observation.shape}.")
        if model.bimodal and observation.shape[0] == model.dimension:
            if observation is not buffer or not np.issubdtype(observation.dtype, np.floating) \
                    or not observation.flags.writeable:
                raise ValueError("A full bimodal observation receives the predicted output in place and must be a "
                                 "writeable floating point ndarray.")
        observation_input = observation[:model.dimension_input] if model.bimodal else observation

        if self._engine.forward_initialized:
            scale = self._engine.forward_update(observation_input)
        else:
            self._likelihood_buffer.clear()
            scale = self._engine.forward_init(observation_input)

        if model.bimodal:
            self._predicted_output = self.regress(observation_input)
            if observation.shape[0] == model.dimension:
                observation[model.dimension_input:] = self._predicted_output

        self._instant_likelihood = 1. / scale
        self._likelihood_buffer.append(np.log(self._instant_likelihood))
        self._log_likelihood = float(np.mean(self._likelihood_buffer))
        self._update_progress()
        return self._instant_likelihood

    def regress(self, observation_input: np.ndarray) -> np.ndarray:
        r""" Combines the per-state regressions of the output segment, weighted by the current forward variable. For
        hierarchical models the exiting mass is excluded from the weights.

        Parameters
        ----------
        observation_input : (dimension_input,) ndarray
            Input segment.

        Returns
        -------
        prediction : (dimension_output,) ndarray
            Predicted output segment.
        """
        model = self._model
        if not model.bimodal:
            raise ConfigurationError("Model is not bimodal, regression is not available.")
        if self._engine.alpha_h is not None:
            weights = self._engine.alpha_h[0] + self._engine.alpha_h[1]
        else:
            weights = self._engine.alpha
        prediction = np.zeros((model.dimension_output,))
        for weight, state in zip(weights, model.states):
            prediction += weight * state.regress(observation_input)
        return prediction

    def _update_progress(self):
        n_states = self._model.n_states
        if n_states == 1:
            self._progress = 0.
            return
        weights = self._engine.alpha_h[0] if self._engine.alpha_h is not None else self._engine.alpha
        self._progress = float(weights @ np.arange(n_states)) / (n_states - 1)

    def decode(self, sequence: np.ndarray) -> DecodingResult:
        r""" Resets the decoder and feeds a whole sequence frame by frame.

        Parameters
        ----------
        sequence : (T, d) ndarray
            The observations, see :meth:`update`. The sequence is not modified.

        Returns
        -------
        results : DecodingResult
            Per-frame results stacked along the first axis: instantaneous likelihoods, smoothed log-likelihoods and
            progress of shape (T,), predicted outputs of shape (T, dimension_output) or None.
        """
        sequence = ensure_sequences(sequence)
        if len(sequence) != 1:
            raise ValueError("Expected exactly one sequence.")
        sequence = sequence[0]
        self.reset()
        instant, smoothed, progress, outputs = [], [], [], []
        for observation in sequence:
            instant.append(self.update(observation.copy()))
            smoothed.append(self._log_likelihood)
            progress.append(self._progress)
            if self._predicted_output is not None:
                outputs.append(self._predicted_output.copy())
        return DecodingResult(instant_likelihood=np.array(instant), log_likelihood=np.array(smoothed),
                              progress=np.array(progress), predicted_output=np.array(outputs) if outputs else None)
