import numpy as np

from ...util.exceptions import ConfigurationError


def from_data(data, n_states: int, n_components: int = 1, dimension_input=None, transition_mode='left-right',
              covariance_offset: float = 1e-3, hierarchical: bool = False, random_state=None):
    r""" Makes an initial guess :class:`HMM <gesturehmm.hmm.HiddenMarkovModel>` by estimating one Gaussian mixture
    model per state.

    Every sequence is split into `n_states` segments of equal length and the segments with the same index are
    pooled. For each pool, a Gaussian mixture model is estimated using `scikit-learn <https://scikit-learn.org/>`_.
    Prior and transitions are set according to the transition mode.

    Parameters
    ----------
    data : TrainingSet or list of ndarray
        The training data.
    n_states : int
        Number of hidden states.
    n_components : int, optional, default=1
        Number of mixture components per state.
    dimension_input : int, optional, default=None
        Width of the input segment. Ignored if `data` is a training set, which carries its own.
    transition_mode : str, optional, default='left-right'
        Transition mode.
    covariance_offset : float, optional, default=1e-3
        Covariance offset of the model. Also used as covariance regularization of the mixture estimation.
    hierarchical : bool, optional, default=False
        Whether the model is hierarchical.
    random_state : None or int or np.random.RandomState, optional, default=None
        Random state passed to the mixture estimation.

    Returns
    -------
    hmm_init : HiddenMarkovModel
        An initial guess for the HMM. The guess can be refined with
        :class:`MaximumLikelihoodHMM <gesturehmm.hmm.MaximumLikelihoodHMM>` (with `initialize=False`).

    See Also
    --------
    gesturehmm.hmm.init.initialize_parameters : The segment-based default initialization.
    """
    from sklearn.mixture import GaussianMixture
    from gesturehmm.data import TrainingSet
    from gesturehmm.hmm import HiddenMarkovModel, GaussianMixtureEmission

    training_set = data if isinstance(data, TrainingSet) \
        else TrainingSet.from_sequences(data, dimension_input=dimension_input)
    if training_set.is_empty():
        raise ValueError("Cannot make an initial guess from an empty training set.")
    if n_states < 1:
        raise ConfigurationError("Number of states must be > 0")

    pools = [[] for _ in range(n_states)]
    for index in training_set.indices:
        phrase = training_set[index]
        step = len(phrase) // n_states
        if step == 0:
            raise ConfigurationError(f"Phrase {index} has {len(phrase)} frames which is fewer than the "
                                     f"{n_states} states.")
        for i in range(n_states):
            pools[i].append(phrase.data[i * step:(i + 1) * step])

    states = []
    for pool in pools:
        samples = np.concatenate(pool)
        if samples.shape[0] < n_components:
            raise ConfigurationError(f"Need at least {n_components} frames per state segment but got "
                                     f"{samples.shape[0]}.")
        gmm = GaussianMixture(n_components=n_components, covariance_type='full', reg_covar=covariance_offset,
                              random_state=random_state)
        gmm.fit(samples)
        states.append(GaussianMixtureEmission(n_components=n_components, dimension=training_set.dimension,
                                              dimension_input=training_set.dimension_input,
                                              covariance_offset=covariance_offset,
                                              mixture_coefficients=gmm.weights_, means=gmm.means_,
                                              covariances=gmm.covariances_))
    return HiddenMarkovModel(n_states=n_states, n_components=n_components, dimension=training_set.dimension,
                             dimension_input=training_set.dimension_input, transition_mode=transition_mode,
                             covariance_offset=covariance_offset, hierarchical=hierarchical, states=states)
