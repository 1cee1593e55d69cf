import enum
import logging
import warnings
from typing import Optional

import numpy as np

from ..base import Model
from ..util.exceptions import ConfigurationError, DegeneratePriorWarning
from ._defaults import DEFAULT_TRANSITION_MODE, DEFAULT_EXIT_PROBABILITY_LAST_STATE

log = logging.getLogger(__name__)


class Topology(enum.IntEnum):
    r""" Topology of the hidden state graph. The integer values are used by the persistence format. """
    ERGODIC = 0
    LEFT_RIGHT = 1

    @staticmethod
    def from_string(value: str) -> "Topology":
        if value == 'ergodic':
            return Topology.ERGODIC
        elif value == 'left-right':
            return Topology.LEFT_RIGHT
        raise ConfigurationError(f"Wrong transition mode '{value}'. Choose 'ergodic' or 'left-right'.")

    def __str__(self):
        return 'ergodic' if self == Topology.ERGODIC else 'left-right'


class TransitionModel(Model):
    r""" Prior distribution and transition matrix over the hidden states, plus exit probabilities if the model is
    used as a submodel of a hierarchical scheduler.

    Parameters
    ----------
    n_states : int
        Number of hidden states.
    transition_mode : str, optional, default='left-right'
        Either 'ergodic' (uniform prior and fully connected uniform transitions) or 'left-right' (all prior mass on
        the first state, transitions only to the same or the next state).
    hierarchical : bool, optional, default=False
        Whether exit probabilities are tracked.

    Examples
    --------
    >>> tm = TransitionModel(3)
    >>> tm.prior
    array([1., 0., 0.])
    >>> tm.transition
    array([[0.5, 0.5, 0. ],
           [0. , 0.5, 0.5],
           [0. , 0. , 1. ]])
    """

    def __init__(self, n_states: int, transition_mode: str = DEFAULT_TRANSITION_MODE, hierarchical: bool = False):
        super().__init__()
        if n_states < 1:
            raise ConfigurationError("Number of states must be > 0")
        self._n_states = int(n_states)
        self._topology = Topology.from_string(transition_mode)
        self._hierarchical = bool(hierarchical)
        self._prior = np.zeros((self._n_states,))
        self._transition = np.zeros((self._n_states, self._n_states))
        self._exit_probabilities = None
        if self._hierarchical:
            self.set_exit_probabilities(None)
        self.initialize()

    @property
    def n_states(self) -> int:
        return self._n_states

    @property
    def hierarchical(self) -> bool:
        return self._hierarchical

    @property
    def topology(self) -> Topology:
        return self._topology

    @property
    def transition_mode(self) -> str:
        r""" The transition mode as string, 'ergodic' or 'left-right'. Setting it does not reset the parameters,
        call :meth:`initialize` for that. """
        return str(self._topology)

    @transition_mode.setter
    def transition_mode(self, value: str):
        self._topology = Topology.from_string(value)

    @property
    def prior(self) -> np.ndarray:
        r""" Initial distribution over hidden states, shape (n_states,). """
        return self._prior

    @prior.setter
    def prior(self, value):
        value = np.asarray(value, dtype=np.float64)
        if value.shape != (self._n_states,):
            raise ValueError(f"Prior must have shape ({self._n_states},) but had {value.shape}.")
        self._prior[:] = value

    @property
    def transition(self) -> np.ndarray:
        r""" Row-stochastic transition matrix, shape (n_states, n_states). """
        return self._transition

    @transition.setter
    def transition(self, value):
        value = np.asarray(value, dtype=np.float64)
        if value.shape != (self._n_states, self._n_states):
            raise ValueError(f"Transition matrix must have shape {(self._n_states, self._n_states)} "
                             f"but had {value.shape}.")
        self._transition[:] = value

    @property
    def exit_probabilities(self) -> Optional[np.ndarray]:
        r""" Probability mass exiting the model from each state. None unless the model is hierarchical. """
        return self._exit_probabilities

    def initialize(self) -> None:
        r""" Resets prior and transitions according to the current topology. """
        if self._topology == Topology.ERGODIC:
            self.set_ergodic()
        else:
            self.set_left_right()

    def set_ergodic(self) -> None:
        self._prior.fill(1. / self._n_states)
        self._transition.fill(1. / self._n_states)

    def set_left_right(self) -> None:
        self._prior.fill(0.)
        self._prior[0] = 1.
        self._transition.fill(0.)
        for i in range(self._n_states - 1):
            self._transition[i, i] = .5
            self._transition[i, i + 1] = .5
        self._transition[-1, -1] = 1.

    def add_cyclic_transition(self, probability: float) -> None:
        r""" Adds a transition from the last state back to the first state, e.g., for looped gestures. The
        self-transition of the last state receives the remaining mass.

        Parameters
        ----------
        probability : float
            Probability of the wrap-around transition, in [0, 1].

        Raises
        ------
        ConfigurationError
            If the model is hierarchical, in which case looping is handled by the parent scheduler.
        """
        if self._hierarchical:
            raise ConfigurationError("Cyclic transitions are not available for hierarchical models.")
        if not 0. <= probability <= 1.:
            raise ValueError(f"Cyclic transition probability must be in [0, 1] but was {probability}.")
        if self._n_states == 1:
            return
        self._transition[-1, 0] = probability
        self._transition[-1, -1] = 1. - probability

    def normalize(self) -> None:
        r""" Normalizes every transition row and the prior to sum to one. Rows which sum to zero are left as they
        are. A prior without mass is replaced by the uniform distribution and a
        :class:`DegeneratePriorWarning <gesturehmm.util.exceptions.DegeneratePriorWarning>` is issued. """
        row_sums = self._transition.sum(axis=1)
        nonzero = row_sums > 0
        if not np.all(nonzero):
            log.debug("Transition rows %s have no mass and are left unnormalized.", np.where(~nonzero)[0])
        self._transition[nonzero] /= row_sums[nonzero, None]
        self.normalize_prior()

    def normalize_prior(self) -> None:
        prior_sum = self._prior.sum()
        if prior_sum > 0:
            self._prior /= prior_sum
        else:
            warnings.warn("Prior distribution has no mass, falling back to uniform prior.", DegeneratePriorWarning)
            self._prior.fill(1. / self._n_states)

    def _check_hierarchical(self):
        if not self._hierarchical:
            raise ConfigurationError("Model is not hierarchical: exit probabilities are not available.")

    def set_exit_probabilities(self, exit_probabilities: Optional[np.ndarray] = None) -> None:
        r""" Sets the exit probabilities of all states.

        Parameters
        ----------
        exit_probabilities : (n_states,) ndarray or None
            The exit probabilities. None resets to the default, where only the last state has exit probability
            0.1.
        """
        self._check_hierarchical()
        if exit_probabilities is None:
            self._exit_probabilities = np.zeros((self._n_states,))
            self._exit_probabilities[-1] = DEFAULT_EXIT_PROBABILITY_LAST_STATE
        else:
            exit_probabilities = np.asarray(exit_probabilities, dtype=np.float64)
            if exit_probabilities.shape != (self._n_states,):
                raise ValueError(f"Exit probabilities must have shape ({self._n_states},) "
                                 f"but had {exit_probabilities.shape}.")
            if not np.all((exit_probabilities >= 0) & (exit_probabilities <= 1)):
                raise ValueError("Exit probabilities must lie in [0, 1].")
            self._exit_probabilities = exit_probabilities.copy()

    def set_exit_point(self, state: int, probability: float) -> None:
        r""" Sets the exit probability of a single state. """
        self._check_hierarchical()
        if not 0 <= state < self._n_states:
            raise IndexError(f"State index {state} out of bounds for {self._n_states} states.")
        if not 0 <= probability <= 1:
            raise ValueError(f"Exit probability must lie in [0, 1] but was {probability}.")
        self._exit_probabilities[state] = probability
