import abc
from typing import Optional

import numpy as np

from ..base import Model


class EmissionModel(Model, metaclass=abc.ABCMeta):
    r""" Emission model superclass. An emission model describes the distribution of observations in one hidden
    state. The hidden Markov model only ever supplies responsibility weights and reads back likelihoods and
    regressions, so any distribution family implementing this interface can be used.

    Parameters
    ----------
    n_components : int
        Number of mixture components. Families without a mixture structure use one component.
    dimension : int
        Total dimension of the observations.
    dimension_input : int, optional, default=None
        Width of the input segment of an observation. If given, the model is bimodal.

    See Also
    --------
    GaussianMixtureEmission
    """

    def __init__(self, n_components: int, dimension: int, dimension_input: Optional[int] = None):
        super().__init__()
        self._n_components = n_components
        self._dimension = dimension
        self._dimension_input = dimension_input

    @property
    def n_components(self) -> int:
        r""" Number of mixture components. """
        return self._n_components

    @property
    def dimension(self) -> int:
        r""" Total dimension of the observations. """
        return self._dimension

    @property
    def dimension_input(self) -> Optional[int]:
        r""" Width of the input segment, None if the model is unimodal. """
        return self._dimension_input

    @property
    def dimension_output(self) -> int:
        r""" Width of the output segment, zero if the model is unimodal. """
        return 0 if self._dimension_input is None else self._dimension - self._dimension_input

    @property
    def bimodal(self) -> bool:
        return self._dimension_input is not None

    @abc.abstractmethod
    def likelihood(self, observation: np.ndarray, component: int = -1) -> float:
        r""" Likelihood of a full observation vector.

        Parameters
        ----------
        observation : (dimension,) ndarray
            The observation.
        component : int, optional, default=-1
            Mixture component; -1 aggregates over all components.

        Returns
        -------
        likelihood : float
            The (weighted) density value.
        """

    @abc.abstractmethod
    def input_likelihood(self, observation_input: np.ndarray, component: int = -1) -> float:
        r""" Likelihood of the input segment of an observation (marginal over the output segment). Only available
        for bimodal models. """

    def joint_likelihood(self, observation_input: np.ndarray, observation_output: np.ndarray,
                         component: int = -1) -> float:
        r""" Likelihood of an observation given as separate input and output segments. Only available for
        bimodal models. """
        return self.likelihood(np.concatenate((observation_input, observation_output)), component)

    @abc.abstractmethod
    def component_likelihoods(self, observations: np.ndarray, input_only: bool = False) -> np.ndarray:
        r""" Vectorized per-component likelihoods.

        Parameters
        ----------
        observations : (T, d) ndarray
            Observations, either full vectors or (if `input_only` is True) input segments.
        input_only : bool, optional, default=False
            Whether only the input segments are given.

        Returns
        -------
        likelihoods : (T, n_components) ndarray
            Weighted likelihood of each observation under each component. Summing over the last axis yields the
            likelihood of the observation.
        """

    @abc.abstractmethod
    def regress(self, observation_input: np.ndarray) -> np.ndarray:
        r""" Estimates the output segment given the input segment of an observation.

        Parameters
        ----------
        observation_input : (dimension_input,) ndarray
            The input segment.

        Returns
        -------
        output : (dimension_output,) ndarray
            The estimated output segment.
        """

    @abc.abstractmethod
    def reset_parameters(self) -> None:
        r""" Resets the parameters to their defaults (before data-driven initialization). """

    @abc.abstractmethod
    def zero_parameters(self) -> None:
        r""" Resets mixture weights and accumulated statistics before re-estimation. """

    @abc.abstractmethod
    def accumulate_responsibilities(self, observations: np.ndarray, responsibilities: np.ndarray) -> None:
        r""" Accumulates weighted observations of one sequence.

        Parameters
        ----------
        observations : (T, dimension) ndarray
            The full observation vectors of a sequence.
        responsibilities : (T, n_components) ndarray
            Posterior weight of each component of this state at each time step.
        """

    @abc.abstractmethod
    def reestimate_from_responsibilities(self, estimate_means: bool = True) -> None:
        r""" Re-estimates the parameters from everything accumulated since the last :meth:`zero_parameters`. """

    @abc.abstractmethod
    def apply_covariance_regularization(self) -> None:
        r""" Adds the regularization offset to the covariances and refreshes derived caches. """

    @abc.abstractmethod
    def to_dict(self) -> dict:
        r""" Serializes the parameters into a JSON-compatible dictionary. """
