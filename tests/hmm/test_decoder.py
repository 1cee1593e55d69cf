import numpy as np
import pytest
from numpy.testing import assert_almost_equal, assert_equal, assert_raises, assert_

from gesturehmm.hmm import HiddenMarkovModel, GaussianMixtureEmission, MaximumLikelihoodHMM, RealtimeDecoder
from gesturehmm.util.exceptions import ConfigurationError


def left_right_model(means, hierarchical=False):
    states = [GaussianMixtureEmission(dimension=1, means=[[m]]) for m in means]
    return HiddenMarkovModel(n_states=len(means), dimension=1, hierarchical=hierarchical, states=states)


@pytest.fixture
def bimodal_model(fixed_seed):
    x = np.linspace(0, 1, 50)
    sequences = [np.stack([x, np.sin(2 * x), x ** 2], axis=1) + .01 * np.random.normal(size=(50, 3))
                 for _ in range(2)]
    est = MaximumLikelihoodHMM(HiddenMarkovModel(n_states=2, dimension=3, dimension_input=1), min_steps=3,
                               max_steps=3)
    return est.fit(sequences).fetch_model()


def test_progress_left_right(hierarchical):
    decoder = RealtimeDecoder(left_right_model([0., 5., 10.], hierarchical=hierarchical))
    progress = []
    for x in [0., 0., 5., 5., 10., 10.]:
        decoder.update(np.array([x]))
        progress.append(decoder.progress)
        assert_almost_equal(decoder.alpha.sum(), 1.)
    assert_(np.all(np.diff(progress) >= -1e-12))
    assert_(progress[0] < .1)
    # in hierarchical mode the exiting mass of the last state does not count
    assert_(progress[-1] > (.85 if hierarchical else .95))


def test_hierarchical_state():
    decoder = RealtimeDecoder(left_right_model([0., 5., 10.]))
    assert_(decoder.alpha_h is None)
    decoder = RealtimeDecoder(left_right_model([0., 5., 10.], hierarchical=True))
    decoder.update(np.array([0.]))
    decoder.update(np.array([5.]))
    assert_equal(decoder.alpha_h.shape, (3, 3))
    assert_almost_equal(decoder.alpha, decoder.alpha_h.sum(axis=0))


def test_single_state_progress():
    decoder = RealtimeDecoder(HiddenMarkovModel(n_states=1, dimension=1))
    decoder.update(np.array([.5]))
    assert_equal(decoder.progress, 0.)


def test_likelihoods():
    model = left_right_model([0., 5., 10.])
    decoder = RealtimeDecoder(model, likelihood_window=2)
    observations = [0., .5, 5., 5.]
    instant = []
    for x in observations:
        instant.append(decoder.update(np.array([x])))
        assert_almost_equal(decoder.results.instant_likelihood, instant[-1])
    assert_almost_equal(decoder.results.log_likelihood, np.mean(np.log(instant[-2:])))
    assert_almost_equal(np.sum(np.log(instant)), model.compute_observation_likelihood(np.array(observations)[:, None]))


def test_reset():
    decoder = RealtimeDecoder(left_right_model([0., 5., 10.]))
    for x in [0., 5., 10.]:
        decoder.update(np.array([x]))
    assert_(decoder.progress > .5)
    decoder.reset()
    assert_(not decoder.engine.forward_initialized)
    assert_equal(decoder.results.log_likelihood, 0.)
    decoder.update(np.array([0.]))
    assert_almost_equal(decoder.alpha, [1., 0., 0.])


def test_window_validation():
    decoder = RealtimeDecoder(left_right_model([0., 1.]))
    with assert_raises(ConfigurationError):
        decoder.likelihood_window = 0
    decoder.likelihood_window = 3
    assert_equal(decoder.likelihood_window, 3)


def test_state_count_change():
    model = left_right_model([0., 5., 10.])
    decoder = RealtimeDecoder(model)
    decoder.update(np.array([0.]))
    model.n_states = 4
    decoder.update(np.array([0.]))
    assert_equal(decoder.alpha.shape, (4,))
    assert_almost_equal(decoder.alpha.sum(), 1.)


def test_observation_shape():
    decoder = RealtimeDecoder(left_right_model([0., 1.]))
    with assert_raises(ValueError):
        decoder.update(np.zeros((2, 1)))
    with assert_raises(ConfigurationError):
        decoder.update(np.zeros(2))


def test_regression(bimodal_model):
    decoder = RealtimeDecoder(bimodal_model)
    assert_equal(decoder.results.predicted_output, np.zeros(2))
    outputs = np.array([[np.sin(2 * x), x ** 2] for x in np.linspace(0, 1, 50)])
    lower, upper = outputs.min(axis=0) - .1, outputs.max(axis=0) + .1
    for x in [0., .2, .4, .6]:
        observation_input = np.array([x])
        decoder.update(observation_input)
        prediction = decoder.results.predicted_output
        expected = sum(a * state.regress(observation_input) for a, state in zip(decoder.alpha, bimodal_model.states))
        assert_almost_equal(prediction, expected)
        assert_(np.all(prediction >= lower) and np.all(prediction <= upper))


def test_regression_in_place(bimodal_model):
    decoder = RealtimeDecoder(bimodal_model)
    observation = np.array([.3, 100., 100.])
    decoder.update(observation)
    assert_equal(observation[0], .3)
    assert_almost_equal(observation[1:], decoder.results.predicted_output)

    # the forward pass only sees the input segment
    other = RealtimeDecoder(bimodal_model)
    other.update(np.array([.3]))
    assert_almost_equal(other.alpha, decoder.alpha)


def test_regression_in_place_requires_float_buffer(bimodal_model):
    decoder = RealtimeDecoder(bimodal_model)
    with assert_raises(ValueError):
        decoder.update(np.array([0, 1, 1]))
    with assert_raises(ValueError):
        decoder.update([.3, 0., 0.])
    read_only = np.array([.3, 0., 0.])
    read_only.flags.writeable = False
    with assert_raises(ValueError):
        decoder.update(read_only)
    assert_(not decoder.engine.forward_initialized)


def test_regression_hierarchical(fixed_seed):
    x = np.linspace(0, 1, 50)
    sequences = [np.stack([x, np.sin(2 * x), x ** 2], axis=1) + .01 * np.random.normal(size=(50, 3))
                 for _ in range(2)]
    est = MaximumLikelihoodHMM(HiddenMarkovModel(n_states=2, dimension=3, dimension_input=1, hierarchical=True),
                               min_steps=3, max_steps=3)
    model = est.fit(sequences).fetch_model()
    decoder = RealtimeDecoder(model)
    for x in [0., .3, .6, .9, 1.]:
        observation_input = np.array([x])
        decoder.update(observation_input)
        alpha_h = decoder.alpha_h
        weights = alpha_h[0] + alpha_h[1]
        expected = sum(w * state.regress(observation_input) for w, state in zip(weights, model.states))
        assert_almost_equal(decoder.results.predicted_output, expected)
        # exiting mass does not contribute to the prediction
        assert_almost_equal(weights.sum() + alpha_h[2].sum(), 1.)
    assert_(decoder.alpha_h[2].sum() > 0.)


def test_regression_unimodal():
    decoder = RealtimeDecoder(left_right_model([0., 1.]))
    decoder.update(np.array([0.]))
    assert_(decoder.results.predicted_output is None)
    with assert_raises(ConfigurationError):
        decoder.regress(np.array([0.]))


def test_decode_sequence(bimodal_model):
    sequence = np.stack([np.linspace(0, 1, 20), np.zeros(20), np.zeros(20)], axis=1)
    decoder = RealtimeDecoder(bimodal_model, likelihood_window=3)
    result = decoder.decode(sequence)
    assert_equal(result.instant_likelihood.shape, (20,))
    assert_equal(result.log_likelihood.shape, (20,))
    assert_equal(result.progress.shape, (20,))
    assert_equal(result.predicted_output.shape, (20, 2))
    assert_equal(sequence[:, 1:], 0.)
    assert_almost_equal(result.predicted_output[-1], decoder.results.predicted_output)
    assert_almost_equal(result.log_likelihood[-1], np.mean(np.log(result.instant_likelihood[-3:])))


def test_decode_unimodal():
    decoder = RealtimeDecoder(left_right_model([0., 5., 10.]))
    result = decoder.decode(np.array([[0.], [5.], [10.]]))
    assert_(result.predicted_output is None)
    assert_equal(result.progress.shape, (3,))
