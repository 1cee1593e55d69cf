from typing import Optional

import numpy as np
from scipy import linalg

from ._defaults import DEFAULT_COVARIANCE_OFFSET
from ._emission_model import EmissionModel
from ..util.exceptions import ConfigurationError


class GaussianMixtureEmission(EmissionModel):
    r""" Emission model using a mixture of multivariate Gaussians with full covariance matrices.

    In bimodal mode, each observation is split into an input segment :math:`x` and an output segment :math:`y`. The
    input likelihood uses the marginal of each component over the input segment and the regression uses
    Gaussian mixture regression, i.e., each component predicts

    .. math::
        \hat y_c = \mu_c^y + \Sigma_c^{yx} (\Sigma_c^{xx})^{-1} (x - \mu_c^x)

    and the predictions are combined with weights proportional to :math:`w_c \mathcal{N}(x; \mu_c^x, \Sigma_c^{xx})`.

    Parameters
    ----------
    n_components : int, optional, default=1
        Number of Gaussian components.
    dimension : int, optional, default=1
        Total dimension of the observations.
    dimension_input : int, optional, default=None
        Width of the input segment, None for a unimodal model.
    covariance_offset : float, optional, default=1e-3
        Offset added to the diagonal of each covariance matrix after re-estimation.
    mixture_coefficients : (n_components,) ndarray, optional, default=None
        Component weights, defaults to uniform.
    means : (n_components, dimension) ndarray, optional, default=None
        Component means, defaults to zero.
    covariances : (n_components, dimension, dimension) ndarray, optional, default=None
        Component covariance matrices, defaults to identity.

    Examples
    --------
    >>> gmm = GaussianMixtureEmission(n_components=2, dimension=2, dimension_input=1,
    ...                               means=np.array([[0., 0.], [1., 2.]]))
    >>> gmm.regress(np.array([1.])).shape
    (1,)
    """

    def __init__(self, n_components: int = 1, dimension: int = 1, dimension_input: Optional[int] = None,
                 covariance_offset: float = DEFAULT_COVARIANCE_OFFSET,
                 mixture_coefficients: Optional[np.ndarray] = None, means: Optional[np.ndarray] = None,
                 covariances: Optional[np.ndarray] = None):
        if n_components < 1:
            raise ConfigurationError("The number of Gaussian mixture components must be > 0")
        if dimension < 1:
            raise ConfigurationError("Dimension must be > 0")
        if dimension_input is not None and not 0 < dimension_input < dimension:
            raise ConfigurationError(f"Input dimension ({dimension_input}) must be positive and smaller than the "
                                     f"total dimension ({dimension}).")
        super().__init__(n_components=int(n_components), dimension=int(dimension), dimension_input=dimension_input)
        self._covariance_offset = float(covariance_offset)

        if mixture_coefficients is None:
            mixture_coefficients = np.full((n_components,), 1. / n_components)
        if means is None:
            means = np.zeros((n_components, dimension))
        if covariances is None:
            covariances = np.tile(np.eye(dimension), (n_components, 1, 1))
        self._mixture_coefficients = np.array(mixture_coefficients, dtype=np.float64)
        self._means = np.array(means, dtype=np.float64).reshape(n_components, dimension)
        self._covariances = np.array(covariances, dtype=np.float64).reshape(n_components, dimension, dimension)
        if self._mixture_coefficients.shape != (n_components,):
            raise ValueError(f"Mixture coefficients must have shape ({n_components},).")

        self._accumulated_observations = []
        self._accumulated_responsibilities = []
        self.update_inverse_covariances()

    @property
    def covariance_offset(self) -> float:
        r""" Offset added to the diagonal of the covariances after re-estimation. """
        return self._covariance_offset

    @covariance_offset.setter
    def covariance_offset(self, value: float):
        self._covariance_offset = float(value)

    @property
    def mixture_coefficients(self) -> np.ndarray:
        return self._mixture_coefficients

    @property
    def means(self) -> np.ndarray:
        return self._means

    @property
    def covariances(self) -> np.ndarray:
        return self._covariances

    @property
    def inverse_covariances(self) -> np.ndarray:
        r""" Cached inverses of the covariance matrices, refreshed by :meth:`update_inverse_covariances`. """
        return self._inverse_covariances

    def update_inverse_covariances(self) -> None:
        r""" Recomputes inverses and normalization constants of the full covariances and (in bimodal mode) of
        their input blocks.

        Raises
        ------
        numpy.linalg.LinAlgError
            If a covariance matrix is not positive definite.
        """
        self._inverse_covariances, self._normalizers = self._invert(self._covariances)
        if self.bimodal:
            d_in = self.dimension_input
            self._inverse_covariances_input, self._normalizers_input = \
                self._invert(self._covariances[:, :d_in, :d_in])

    @staticmethod
    def _invert(covariances):
        dim = covariances.shape[-1]
        inverses = np.empty_like(covariances)
        normalizers = np.empty(covariances.shape[0])
        for c, cov in enumerate(covariances):
            det = linalg.det(cov)
            if not det > 0:
                raise np.linalg.LinAlgError(f"Covariance matrix of component {c} is not positive definite "
                                            f"(determinant {det}).")
            inverses[c] = linalg.inv(cov)
            normalizers[c] = 1. / np.sqrt((2. * np.pi) ** dim * det)
        return inverses, normalizers

    def _check_component(self, component):
        if not -1 <= component < self.n_components:
            raise IndexError(f"Mixture component {component} out of bounds for {self.n_components} components.")

    def _check_bimodal(self):
        if not self.bimodal:
            raise ConfigurationError("Model is not bimodal. Use the function 'likelihood'.")

    def component_likelihoods(self, observations: np.ndarray, input_only: bool = False) -> np.ndarray:
        observations = np.atleast_2d(observations)
        if input_only:
            self._check_bimodal()
        expected_width = self.dimension_input if input_only else self.dimension
        if observations.shape[1] != expected_width:
            raise ConfigurationError(f"Observations have dimension {observations.shape[1]} but the emission model "
                                     f"expects {expected_width}.")
        if input_only:
            d = self.dimension_input
            means, inverses, normalizers = self._means[:, :d], self._inverse_covariances_input, self._normalizers_input
        else:
            means, inverses, normalizers = self._means, self._inverse_covariances, self._normalizers
        diff = observations[:, None, :] - means[None, :, :]
        mahalanobis = np.einsum('tci,cij,tcj->tc', diff, inverses, diff)
        return self._mixture_coefficients[None, :] * normalizers[None, :] * np.exp(-.5 * mahalanobis)

    def likelihood(self, observation: np.ndarray, component: int = -1) -> float:
        self._check_component(component)
        p = self.component_likelihoods(observation)[0]
        return float(p.sum() if component < 0 else p[component])

    def input_likelihood(self, observation_input: np.ndarray, component: int = -1) -> float:
        self._check_bimodal()
        self._check_component(component)
        p = self.component_likelihoods(observation_input, input_only=True)[0]
        return float(p.sum() if component < 0 else p[component])

    def joint_likelihood(self, observation_input: np.ndarray, observation_output: np.ndarray,
                         component: int = -1) -> float:
        self._check_bimodal()
        return super().joint_likelihood(observation_input, observation_output, component)

    def regress(self, observation_input: np.ndarray) -> np.ndarray:
        self._check_bimodal()
        d = self.dimension_input
        observation_input = np.asarray(observation_input, dtype=np.float64)
        weights = self.component_likelihoods(observation_input, input_only=True)[0]
        weight_sum = weights.sum()
        if weight_sum > 0:
            weights = weights / weight_sum
        else:
            weights = self._mixture_coefficients / self._mixture_coefficients.sum()

        prediction = np.zeros((self.dimension_output,))
        for c in range(self.n_components):
            gain = self._covariances[c, d:, :d] @ self._inverse_covariances_input[c]
            prediction += weights[c] * (self._means[c, d:] + gain @ (observation_input - self._means[c, :d]))
        return prediction

    def reset_parameters(self) -> None:
        self._mixture_coefficients.fill(1. / self.n_components)
        self._means.fill(0.)
        self._covariances[:] = np.eye(self.dimension)[None, ...]
        self._accumulated_observations = []
        self._accumulated_responsibilities = []
        self.update_inverse_covariances()

    def zero_parameters(self) -> None:
        self._mixture_coefficients.fill(0.)
        self._accumulated_observations = []
        self._accumulated_responsibilities = []

    def accumulate_responsibilities(self, observations: np.ndarray, responsibilities: np.ndarray) -> None:
        observations = np.atleast_2d(observations)
        if observations.shape[1] != self.dimension:
            raise ValueError(f"Observations must have {self.dimension} columns but had {observations.shape[1]}.")
        if responsibilities.shape != (observations.shape[0], self.n_components):
            raise ValueError(f"Responsibilities must have shape {(observations.shape[0], self.n_components)}, "
                             f"but had {responsibilities.shape}.")
        self._accumulated_observations.append(observations)
        self._accumulated_responsibilities.append(responsibilities)

    def reestimate_from_responsibilities(self, estimate_means: bool = True) -> None:
        r""" Re-estimates mixture coefficients, (optionally) means and covariances from the accumulated
        responsibilities, then applies the covariance regularization. Components which did not receive any
        responsibility keep their means and covariances. """
        if len(self._accumulated_observations) == 0:
            return
        observations = np.concatenate(self._accumulated_observations)
        responsibilities = np.concatenate(self._accumulated_responsibilities)
        self._accumulated_observations = []
        self._accumulated_responsibilities = []

        component_sums = responsibilities.sum(axis=0)
        self._mixture_coefficients[:] = component_sums
        self.normalize_mixture_coefficients()

        for c in range(self.n_components):
            if component_sums[c] <= 0:
                continue
            if estimate_means:
                self._means[c] = responsibilities[:, c] @ observations / component_sums[c]
            centered = observations - self._means[c]
            self._covariances[c] = (responsibilities[:, c, None] * centered).T @ centered / component_sums[c]
        self.apply_covariance_regularization()

    def normalize_mixture_coefficients(self) -> None:
        total = self._mixture_coefficients.sum()
        if total > 0:
            self._mixture_coefficients /= total
        else:
            self._mixture_coefficients.fill(1. / self.n_components)

    def apply_covariance_regularization(self) -> None:
        self._covariances += self._covariance_offset * np.eye(self.dimension)[None, ...]
        self.update_inverse_covariances()

    def to_dict(self) -> dict:
        return {
            'nbMixtureComponents': self.n_components,
            'covarianceOffset': self.covariance_offset,
            'dimension': self.dimension,
            'dimensionInput': 0 if self.dimension_input is None else self.dimension_input,
            'mixtureCoeffs': self._mixture_coefficients.tolist(),
            'components': [
                {'mean': self._means[c].tolist(), 'covariance': self._covariances[c].ravel().tolist()}
                for c in range(self.n_components)
            ]
        }

    @staticmethod
    def from_dict(document: dict) -> "GaussianMixtureEmission":
        r""" Reconstructs an emission model from a document created by :meth:`to_dict`.

        Raises
        ------
        PersistenceFormatError
            If the document is malformed.
        ConfigurationError
            If the dimensions are inconsistent.
        numpy.linalg.LinAlgError
            If a covariance matrix is not positive definite.
        """
        from ._serialization import FieldReader
        reader = FieldReader(document, 'GaussianMixtureEmission')
        n_components = reader.read('nbMixtureComponents', int)
        covariance_offset = reader.read('covarianceOffset', float)
        dimension = reader.read('dimension', int)
        dimension_input = reader.read('dimensionInput', int)
        if dimension_input < 0:
            reader.fail('dimensionInput', "input dimension must not be negative")
        mixture_coefficients = reader.read_array('mixtureCoeffs', (n_components,))
        components = reader.read('components', list)
        reader.finish()
        if len(components) != n_components:
            reader.fail('components', f"expected {n_components} components but got {len(components)}")
        means, covariances = [], []
        for component in components:
            component_reader = FieldReader(component, 'GaussianMixtureEmission.components')
            means.append(component_reader.read_array('mean', (dimension,)))
            covariances.append(component_reader.read_array('covariance', (dimension * dimension,)))
            component_reader.finish()
        return GaussianMixtureEmission(n_components=n_components, dimension=dimension,
                                       dimension_input=dimension_input if dimension_input > 0 else None,
                                       covariance_offset=covariance_offset,
                                       mixture_coefficients=np.array(mixture_coefficients),
                                       means=np.array(means), covariances=np.array(covariances))
