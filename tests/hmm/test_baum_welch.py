import numpy as np
import pytest
from numpy.testing import assert_almost_equal, assert_equal, assert_raises, assert_
from tqdm import tqdm

from gesturehmm.data import TrainingSet
from gesturehmm.hmm import HiddenMarkovModel, MaximumLikelihoodHMM, BaumWelchTrainer, StopCriterion
from gesturehmm.util.exceptions import ConfigurationError


class ProgressMock:
    def __init__(self, total=None, **_):
        self.total = total
        self.n = 0
        self.descriptions = []
        self.closed = False

    def update(self, inc=1):
        self.n += inc

    def close(self):
        self.closed = True

    def set_description(self, value):
        self.descriptions.append(value)


@pytest.fixture
def constant_training_set():
    return TrainingSet.from_sequences([np.zeros((4, 1)), np.full((4, 1), 10.)])


def test_initialize(constant_training_set):
    model = HiddenMarkovModel(n_states=3, dimension=1)
    trainer = BaumWelchTrainer(model, constant_training_set)
    trainer.initialize()
    assert_equal(model.prior, [1., 0., 0.])
    assert_equal(trainer.n_iterations, 0)
    assert_(not model.trained)
    for state in model.states:
        assert_almost_equal(state.means, [[0.]])
        assert_almost_equal(state.covariances, [[[50. + model.covariance_offset]]])


def test_single_iteration(constant_training_set):
    model = HiddenMarkovModel(n_states=3, dimension=1)
    trainer = BaumWelchTrainer(model, constant_training_set)
    trainer.initialize()
    log_likelihood = trainer.run_iteration()
    assert_(np.isfinite(log_likelihood))
    assert_equal(trainer.n_iterations, 1)
    assert_almost_equal(model.transition.sum(axis=1), np.ones(3))
    assert_equal(model.prior, [1., 0., 0.])
    assert_equal(model.transition[np.tril_indices(3, -1)], 0.)
    for state in model.states:
        # identical emissions in all states, hence both phrases are weighted equally
        assert_almost_equal(state.means, [[5.]])
    assert_almost_equal(trainer.gamma_sum.sum(), 8.)
    assert_almost_equal(trainer.gamma_sum_per_mixture[:, 0], trainer.gamma_sum)


def test_likelihood_monotone(segmented_sequences):
    model = HiddenMarkovModel(n_states=3, dimension=1, covariance_offset=1e-8)
    trainer = BaumWelchTrainer(model, TrainingSet.from_sequences(segmented_sequences))
    trainer.initialize()
    likelihoods = [trainer.run_iteration() for _ in range(8)]
    for previous, current in zip(likelihoods[:-1], likelihoods[1:]):
        assert_(current >= previous - 1e-6 * abs(previous))


def test_segments_recovered(segmented_sequences):
    est = MaximumLikelihoodHMM(HiddenMarkovModel(n_states=3, dimension=1), min_steps=5, max_steps=20)
    model = est.fit(segmented_sequences).fetch_model()
    means = np.array([state.means[0, 0] for state in model.states])
    np.testing.assert_allclose(means, [0., 3., 6.], atol=.3)
    assert_equal(len(model.likelihoods), 20)
    assert_(model.trained)


def test_ergodic_prior_estimation(segmented_sequences):
    model = HiddenMarkovModel(n_states=3, dimension=1, transition_mode='ergodic')
    trainer = BaumWelchTrainer(model, TrainingSet.from_sequences(segmented_sequences))
    trainer.initialize()
    assert_almost_equal(model.prior, np.full(3, 1. / 3))
    trainer.run_iteration()
    assert_almost_equal(model.prior, np.mean([buffers.gamma[0] for buffers in trainer.buffers], axis=0))
    assert_almost_equal(model.prior.sum(), 1.)
    # all sequences start in the segment with mean zero
    assert_(model.prior[0] > .9)


def test_fixed_means(segmented_sequences):
    model = HiddenMarkovModel(n_states=3, dimension=1, estimate_means=False)
    trainer = BaumWelchTrainer(model, TrainingSet.from_sequences(segmented_sequences))
    trainer.initialize()
    means = np.array([state.means.copy() for state in model.states])
    trainer.run_iteration()
    assert_equal(np.array([state.means for state in model.states]), means)


def test_buffers_follow_training_set(segmented_sequences):
    training_set = TrainingSet.from_sequences(segmented_sequences[:2])
    model = HiddenMarkovModel(n_states=3, dimension=1)
    trainer = BaumWelchTrainer(model, training_set)
    trainer.initialize()
    buffers = trainer.buffers
    assert_equal(len(buffers), 2)
    trainer.run_iteration()
    assert_(trainer.buffers is buffers)

    training_set.add_phrase(segmented_sequences[2][:45])
    trainer.run_iteration()
    assert_equal(len(trainer.buffers), 3)
    assert_equal(trainer.buffers[2].alpha.shape, (45, 3))

    model.n_states = 4
    trainer.initialize()
    assert_equal(trainer.buffers[0].epsilon.shape, (59, 4, 4))
    assert_equal(trainer.gamma_sum.shape, (4,))


def test_dimension_mismatch(segmented_sequences):
    model = HiddenMarkovModel(n_states=3, dimension=2)
    trainer = BaumWelchTrainer(model, TrainingSet.from_sequences(segmented_sequences))
    with assert_raises(ConfigurationError):
        trainer.initialize()
    bimodal = HiddenMarkovModel(n_states=3, dimension=2, dimension_input=1)
    trainer = BaumWelchTrainer(bimodal, TrainingSet(dimension=2))
    with assert_raises(ValueError):
        trainer.initialize()
    training_set = TrainingSet.from_sequences([np.zeros((10, 2))])
    with assert_raises(ConfigurationError):
        BaumWelchTrainer(bimodal, training_set).initialize()


def test_phrase_too_short():
    model = HiddenMarkovModel(n_states=5, dimension=1)
    trainer = BaumWelchTrainer(model, TrainingSet.from_sequences([np.zeros((3, 1))]))
    with assert_raises(ConfigurationError):
        trainer.initialize()


def test_mixture_training(segmented_sequences):
    est = MaximumLikelihoodHMM(HiddenMarkovModel(n_states=3, n_components=2, dimension=1), min_steps=3,
                               max_steps=3)
    model = est.fit(segmented_sequences).fetch_model()
    for state in model.states:
        assert_almost_equal(state.mixture_coefficients.sum(), 1.)
        assert_(np.all(state.covariances[:, 0, 0] > 0))
    assert_(np.isfinite(model.compute_observation_likelihood(segmented_sequences)))


def test_bimodal_training(fixed_seed):
    x = np.linspace(0, 1, 60)
    sequences = [np.stack([x, 2 * x + .01 * np.random.normal(size=x.shape)], axis=1) for _ in range(3)]
    est = MaximumLikelihoodHMM(HiddenMarkovModel(n_states=4, dimension=2, dimension_input=1,
                                                 covariance_offset=1e-5), min_steps=5)
    model = est.fit(sequences).fetch_model()
    assert_(model.bimodal)
    assert_almost_equal(model.states[1].regress(np.array([.3])), [.6], decimal=1)


def test_estimator_leaves_initial_model_untouched(segmented_sequences):
    initial_model = HiddenMarkovModel(n_states=3, dimension=1)
    est = MaximumLikelihoodHMM(initial_model, min_steps=2, max_steps=2)
    model = est.fit(segmented_sequences).fetch_model()
    assert_(model is not initial_model)
    assert_(not initial_model.trained)
    assert_equal(initial_model.states[1].means, [[0.]])


def test_estimator_without_initialization(segmented_sequences):
    from gesturehmm.hmm.init import from_data
    guess = from_data(segmented_sequences, n_states=3, random_state=17)
    est = MaximumLikelihoodHMM(guess, min_steps=1, max_steps=1, initialize=False)
    model = est.fit(segmented_sequences).fetch_model()
    assert_(model.trained)
    assert_(model.likelihoods[0] == pytest.approx(guess.compute_observation_likelihood(segmented_sequences)))


def test_estimator_requires_model(segmented_sequences):
    with assert_raises(ValueError):
        MaximumLikelihoodHMM(None).fit(segmented_sequences)


def test_estimator_progress(segmented_sequences):
    est = MaximumLikelihoodHMM(HiddenMarkovModel(n_states=3, dimension=1), min_steps=1, max_steps=4)
    bars = []

    def progress(**kw):
        bars.append(ProgressMock(**kw))
        return bars[-1]

    est.fit(segmented_sequences, progress=progress)
    assert_equal(len(bars), 1)
    assert_equal(bars[0].n, 4)
    assert_(bars[0].closed)
    assert_('log-lik' in bars[0].descriptions[-1])


def test_estimator_tqdm(segmented_sequences):
    est = MaximumLikelihoodHMM(HiddenMarkovModel(n_states=3, dimension=1), min_steps=2, max_steps=2)
    est.fit(segmented_sequences, progress=tqdm)
    assert_equal(len(est.fetch_model().likelihoods), 2)


def test_estimator_rejects_unsupported_progress(segmented_sequences):
    est = MaximumLikelihoodHMM(HiddenMarkovModel(n_states=3, dimension=1), min_steps=1, max_steps=1)
    with assert_raises(TypeError):
        est.fit(segmented_sequences, progress=lambda total=None: object())


class TestStopCriterion:

    def test_defaults(self):
        criterion = StopCriterion()
        assert_equal(criterion.min_steps, 10)
        assert_equal(criterion.max_steps, 0)
        assert_equal(criterion.percent_change, .01)
        assert_(not criterion.fixed_steps)

    def test_fixed_steps(self):
        criterion = StopCriterion(min_steps=2, max_steps=5)
        assert_(criterion.fixed_steps)
        assert_(not criterion.converged(4, -10., -10.))
        assert_(criterion.converged(5, -10., -20.))

    def test_relative_change(self):
        criterion = StopCriterion(min_steps=3, percent_change=1.)
        assert_(not criterion.converged(2, -100., -100.))
        assert_(not criterion.converged(3, -100., -110.))
        assert_(criterion.converged(3, -100., -100.5))
        assert_(not criterion.converged(3, -100., -np.inf))
        assert_equal(criterion.relative_change(0., 0.), 0.)
        assert_equal(criterion.relative_change(1., 0.), np.inf)

    def test_hard_cap(self):
        criterion = StopCriterion(min_steps=1, percent_change=0.)
        assert_(not criterion.converged(999, -100., -50.))
        assert_(criterion.converged(1000, -100., -50.))

    @pytest.mark.parametrize('kwargs', [dict(min_steps=0), dict(max_steps=-1), dict(percent_change=-1.)])
    def test_invalid(self, kwargs):
        with assert_raises(ConfigurationError):
            StopCriterion(**kwargs)

    def test_estimator_delegates(self):
        est = MaximumLikelihoodHMM(HiddenMarkovModel(n_states=2), min_steps=3, max_steps=7, percent_change=.5)
        assert_equal(est.get_params()['max_steps'], 7)
        est.min_steps = 4
        assert_equal(est.min_steps, 4)
        with assert_raises(ConfigurationError):
            est.percent_change = -1
