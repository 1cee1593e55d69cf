import logging
import warnings
from typing import Optional, List, Union

import numpy as np

from ..base import Estimator
from ..data import TrainingSet
from ..util.callbacks import LikelihoodProgressCallback
from ..util.exceptions import ConfigurationError, NotConvergedWarning
from ._defaults import DEFAULT_EM_MIN_STEPS, DEFAULT_EM_MAX_STEPS, DEFAULT_EM_PERCENT_CHANGE, EM_HARD_MAX_STEPS
from ._forward_backward import ForwardBackwardEngine, allocate_sequence_buffers
from ._hidden_markov_model import HiddenMarkovModel
from ._transition_model import Topology
from .init import initialize_parameters

log = logging.getLogger(__name__)


class StopCriterion:
    r""" Stop criterion of the expectation-maximization loop.

    If `max_steps` is at least `min_steps`, exactly `max_steps` iterations are performed. Otherwise, the loop
    stops as soon as at least `min_steps` iterations were performed and the relative change of the log-likelihood
    in percent falls below `percent_change`. In any case, the loop stops after 1000 iterations.

    Parameters
    ----------
    min_steps : int, optional, default=10
        Minimum number of iterations.
    max_steps : int, optional, default=0
        Maximum number of iterations, only effective if it is at least `min_steps`.
    percent_change : float, optional, default=0.01
        Threshold on the relative log-likelihood change in percent.
    """

    def __init__(self, min_steps: int = DEFAULT_EM_MIN_STEPS, max_steps: int = DEFAULT_EM_MAX_STEPS,
                 percent_change: float = DEFAULT_EM_PERCENT_CHANGE):
        self.min_steps = min_steps
        self.max_steps = max_steps
        self.percent_change = percent_change

    @property
    def min_steps(self) -> int:
        return self._min_steps

    @min_steps.setter
    def min_steps(self, value: int):
        if value < 1:
            raise ConfigurationError(f"Minimum number of steps must be positive but was {value}.")
        self._min_steps = int(value)

    @property
    def max_steps(self) -> int:
        return self._max_steps

    @max_steps.setter
    def max_steps(self, value: int):
        if value < 0:
            raise ConfigurationError(f"Maximum number of steps must be non-negative but was {value}.")
        self._max_steps = int(value)

    @property
    def percent_change(self) -> float:
        return self._percent_change

    @percent_change.setter
    def percent_change(self, value: float):
        if value < 0:
            raise ConfigurationError(f"Percent change must be non-negative but was {value}.")
        self._percent_change = float(value)

    @property
    def fixed_steps(self) -> bool:
        r""" Whether a fixed number of iterations is performed. """
        return self._max_steps >= self._min_steps

    def relative_change(self, log_likelihood: float, previous_log_likelihood: float) -> float:
        r""" Relative change of the log-likelihood in percent. """
        if not np.isfinite(previous_log_likelihood):
            return np.inf
        if previous_log_likelihood == 0:
            return 0. if log_likelihood == 0 else np.inf
        return 100. * abs((log_likelihood - previous_log_likelihood) / previous_log_likelihood)

    def converged(self, step: int, log_likelihood: float, previous_log_likelihood: float) -> bool:
        r""" Evaluates the criterion after an iteration.

        Parameters
        ----------
        step : int
            Number of iterations performed so far.
        log_likelihood : float
            Log-likelihood of the current iteration.
        previous_log_likelihood : float
            Log-likelihood of the previous iteration, -inf before the first iteration.

        Returns
        -------
        stop : bool
            Whether to stop.
        """
        if step >= EM_HARD_MAX_STEPS:
            return True
        if self.fixed_steps:
            return step >= self._max_steps
        return step >= self._min_steps \
            and self.relative_change(log_likelihood, previous_log_likelihood) < self._percent_change


class BaumWelchTrainer:
    r""" Baum-Welch re-estimation of a :class:`HiddenMarkovModel` on a :class:`TrainingSet`.

    One iteration (:meth:`run_iteration`) runs the forward-backward pass over every phrase, accumulates the state
    occupancies and re-estimates mixture coefficients, means (if the model estimates means), covariances, the prior
    (ergodic models only) and the transitions. The model is modified in place.

    Per-phrase buffers are owned by the trainer. They are reallocated whenever the training set changes
    (tracked through its generation counter) or the number of states or mixture components of the model changes.

    Parameters
    ----------
    model : HiddenMarkovModel
        The model to train.
    training_set : TrainingSet
        The training data, read-only for the trainer.
    """

    def __init__(self, model: HiddenMarkovModel, training_set: TrainingSet):
        self._model = model
        self._training_set = training_set
        self._engine = None
        self._buffers = []
        self._signature = None
        self._gamma_sum = np.zeros((model.n_states,))
        self._gamma_sum_per_mixture = np.zeros((model.n_states, model.n_components))
        self._n_iterations = 0

    @property
    def model(self) -> HiddenMarkovModel:
        return self._model

    @property
    def training_set(self) -> TrainingSet:
        return self._training_set

    @property
    def n_iterations(self) -> int:
        r""" Number of iterations since the last :meth:`initialize`. """
        return self._n_iterations

    @property
    def buffers(self):
        r""" The per-phrase :class:`SequenceBuffers` in phrase index order. """
        return self._buffers

    @property
    def gamma_sum(self) -> np.ndarray:
        r""" Accumulated state occupancies of the last iteration, shape (n_states,). """
        return self._gamma_sum

    @property
    def gamma_sum_per_mixture(self) -> np.ndarray:
        r""" Accumulated state and component occupancies of the last iteration, shape (n_states, n_components). """
        return self._gamma_sum_per_mixture

    def _check_training_set(self):
        model, training_set = self._model, self._training_set
        if training_set.is_empty():
            raise ValueError("Training set is empty.")
        if training_set.dimension != model.dimension:
            raise ConfigurationError(f"Training set dimension ({training_set.dimension}) does not match the model "
                                     f"dimension ({model.dimension}).")
        if training_set.dimension_input != model.dimension_input:
            raise ConfigurationError(f"Training set input dimension ({training_set.dimension_input}) does not match "
                                     f"the model input dimension ({model.dimension_input}).")

    def _ensure_buffers(self):
        model, training_set = self._model, self._training_set
        signature = (training_set.generation, training_set.lengths, model.n_states, model.n_components)
        if signature == self._signature:
            return
        log.debug("Allocating training buffers for %s phrases, %s states and %s components.",
                  len(training_set), model.n_states, model.n_components)
        self._buffers = [allocate_sequence_buffers(length, model.n_states, model.n_components)
                         for length in training_set.lengths]
        self._gamma_sum = np.zeros((model.n_states,))
        self._gamma_sum_per_mixture = np.zeros((model.n_states, model.n_components))
        self._engine = ForwardBackwardEngine(model)
        self._signature = signature

    def initialize(self, reset_parameters: bool = True) -> None:
        r""" Prepares training.

        Parameters
        ----------
        reset_parameters : bool, optional, default=True
            Whether the model parameters are initialized from the training data, see
            :meth:`gesturehmm.hmm.init.initialize_parameters`. Otherwise the current parameters are the starting
            point.
        """
        self._check_training_set()
        if reset_parameters:
            initialize_parameters(self._model, self._training_set)
        self._model.trained = False
        self._n_iterations = 0
        self._ensure_buffers()

    def run_iteration(self) -> float:
        r""" Performs one Baum-Welch iteration.

        Returns
        -------
        log_likelihood : float
            Total log-likelihood of the training set under the parameters before this iteration.
        """
        self._check_training_set()
        self._ensure_buffers()
        model = self._model
        phrases = list(self._training_set)

        log_likelihood = 0.
        for phrase, buffers in zip(phrases, self._buffers):
            log_likelihood += self._engine.forward_backward(phrase.data, buffers)

        self._gamma_sum.fill(0.)
        self._gamma_sum_per_mixture.fill(0.)
        for buffers in self._buffers:
            self._gamma_sum += buffers.gamma.sum(axis=0)
            self._gamma_sum_per_mixture += buffers.gamma_per_mixture.sum(axis=0)

        for i, state in enumerate(model.states):
            state.zero_parameters()
            for phrase, buffers in zip(phrases, self._buffers):
                state.accumulate_responsibilities(phrase.data, buffers.gamma_per_mixture[:, i, :])
            state.reestimate_from_responsibilities(estimate_means=model.estimate_means)

        if model.transition_model.topology == Topology.ERGODIC:
            model.transition_model.prior = np.sum([buffers.gamma[0] for buffers in self._buffers], axis=0)

        self._estimate_transitions()
        model.transition_model.normalize()

        self._n_iterations += 1
        log.debug("Baum-Welch iteration %s: log-likelihood %.6e", self._n_iterations, log_likelihood)
        return log_likelihood

    def _estimate_transitions(self):
        transition_model = self._model.transition_model
        counts = np.sum([buffers.epsilon.sum(axis=0) for buffers in self._buffers], axis=0)
        transition = transition_model.transition.copy()
        visited = self._gamma_sum > 0
        transition[visited] = counts[visited] / self._gamma_sum[visited, None]
        # states without outgoing transition mass keep their previous row
        empty = transition.sum(axis=1) == 0
        if np.any(empty):
            log.debug("No transitions observed out of states %s.", np.where(empty)[0])
            transition[empty] = transition_model.transition[empty]
        transition_model.transition = transition

    def finish(self) -> None:
        r""" Finalizes training: normalizes the transition model and marks the model as trained. """
        self._model.transition_model.normalize()
        self._model.trained = True


class MaximumLikelihoodHMM(Estimator):
    r""" Maximum likelihood estimator of a :class:`HiddenMarkovModel` using the Baum-Welch algorithm.

    The configuration (number of states, number of mixture components, dimensions, transition mode, covariance
    offset, whether means are estimated and whether the model is hierarchical) is taken from the initial model.
    The estimation is performed on a copy of it, so that the initial model stays untouched.

    Parameters
    ----------
    initial_model : HiddenMarkovModel
        Initial model. Unless `initialize` is False, its parameters are re-initialized from the training data.
    min_steps : int, optional, default=10
        Minimum number of EM iterations.
    max_steps : int, optional, default=0
        Maximum number of EM iterations. If it is at least `min_steps`, exactly `max_steps` iterations are
        performed and the relative likelihood change is not considered.
    percent_change : float, optional, default=0.01
        EM stops once the relative log-likelihood change in percent falls below this threshold.
    initialize : bool, optional, default=True
        Whether the initial model's parameters are initialized from the training data. Set to False if the initial
        model already is a guess, e.g., from :meth:`gesturehmm.hmm.init.from_data`.

    See Also
    --------
    BaumWelchTrainer, StopCriterion
    """

    def __init__(self, initial_model: HiddenMarkovModel, min_steps: int = DEFAULT_EM_MIN_STEPS,
                 max_steps: int = DEFAULT_EM_MAX_STEPS, percent_change: float = DEFAULT_EM_PERCENT_CHANGE,
                 initialize: bool = True):
        super().__init__()
        self.initial_model = initial_model
        self._stop_criterion = StopCriterion(min_steps, max_steps, percent_change)
        self.initialize = initialize

    def fetch_model(self) -> Optional[HiddenMarkovModel]:
        r""" Yields the estimated model or None if :meth:`fit` was not called yet.

        Returns
        -------
        model : HiddenMarkovModel or None
            The model.
        """
        return self._model

    @property
    def initial_model(self) -> HiddenMarkovModel:
        r""" The initial model. """
        return self._initial_model

    @initial_model.setter
    def initial_model(self, value: HiddenMarkovModel):
        self._initial_model = value

    @property
    def min_steps(self) -> int:
        return self._stop_criterion.min_steps

    @min_steps.setter
    def min_steps(self, value: int):
        self._stop_criterion.min_steps = value

    @property
    def max_steps(self) -> int:
        return self._stop_criterion.max_steps

    @max_steps.setter
    def max_steps(self, value: int):
        self._stop_criterion.max_steps = value

    @property
    def percent_change(self) -> float:
        return self._stop_criterion.percent_change

    @percent_change.setter
    def percent_change(self, value: float):
        self._stop_criterion.percent_change = value

    @property
    def initialize(self) -> bool:
        return self._initialize

    @initialize.setter
    def initialize(self, value: bool):
        self._initialize = bool(value)

    def fit(self, data: Union[TrainingSet, List[np.ndarray], np.ndarray], initial_model=None, progress=None,
            **kwargs):
        r""" Fits a new :class:`HMM <HiddenMarkovModel>` to data.

        Parameters
        ----------
        data : TrainingSet or ndarray or list of ndarray
            Training data. Arrays are interpreted as sequences of shape (T, dimension).
        initial_model : HiddenMarkovModel, optional, default=None
            Override for :attr:`initial_model`.
        progress : ProgressBar, optional, default=None
            Optional progress bar, tested for tqdm.
        **kwargs
            Ignored kwargs for scikit-learn compatibility.

        Returns
        -------
        self : MaximumLikelihoodHMM
            Reference to self.
        """
        if initial_model is None:
            initial_model = self.initial_model
        if initial_model is None or not isinstance(initial_model, HiddenMarkovModel):
            raise ValueError("For estimation, an initial model of type "
                             "`gesturehmm.hmm.HiddenMarkovModel` is required.")
        if not isinstance(data, TrainingSet):
            data = TrainingSet.from_sequences(data, dimension_input=initial_model.dimension_input)

        model = initial_model.copy()
        trainer = BaumWelchTrainer(model, data)
        trainer.initialize(reset_parameters=self.initialize)

        criterion = self._stop_criterion
        likelihoods = []
        previous_log_likelihood = -np.inf
        total = criterion.max_steps if criterion.fixed_steps else None
        with LikelihoodProgressCallback(progress, "Baum-Welch", total=total) as callback:
            while True:
                log_likelihood = trainer.run_iteration()
                likelihoods.append(log_likelihood)
                callback(log_likelihood=log_likelihood)
                if criterion.converged(len(likelihoods), log_likelihood, previous_log_likelihood):
                    break
                previous_log_likelihood = log_likelihood

        if len(likelihoods) >= EM_HARD_MAX_STEPS and not criterion.fixed_steps \
                and criterion.relative_change(likelihoods[-1], previous_log_likelihood) >= criterion.percent_change:
            warnings.warn(f"Baum-Welch did not converge within {EM_HARD_MAX_STEPS} iterations.", NotConvergedWarning)

        trainer.finish()
        model.likelihoods = np.array(likelihoods)
        log.info("Baum-Welch finished after %s iterations with log-likelihood %.6e.",
                 len(likelihoods), likelihoods[-1])
        self._model = model
        return self
