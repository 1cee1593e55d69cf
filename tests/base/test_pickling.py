import pickle
import unittest

import numpy as np
from numpy.testing import assert_no_warnings, assert_equal

from gesturehmm.hmm import HiddenMarkovModel, MaximumLikelihoodHMM


class TestPickling(unittest.TestCase):

    def test_pickle_hmm(self):
        sequences = [np.linspace(0, 1, 30)[:, None], np.linspace(0, 1.1, 33)[:, None]]
        est = MaximumLikelihoodHMM(HiddenMarkovModel(n_states=3), min_steps=2, max_steps=2)
        model = est.fit(sequences).fetch_model()
        model_pickle = pickle.dumps(model)
        assert b"_gesturehmm_version" in model_pickle

        model_restored = assert_no_warnings(pickle.loads, model_pickle)
        assert_equal(model_restored.prior, model.prior)
        assert_equal(model_restored.transition, model.transition)
        assert_equal(model_restored.likelihoods, model.likelihoods)
        for state, state_restored in zip(model.states, model_restored.states):
            assert_equal(state_restored.means, state.means)
            assert_equal(state_restored.covariances, state.covariances)
        assert model_restored.trained

    def test_pickle_estimator(self):
        est = MaximumLikelihoodHMM(HiddenMarkovModel(n_states=2), min_steps=4)
        est_restored = assert_no_warnings(pickle.loads, pickle.dumps(est))
        assert_equal(est_restored.min_steps, 4)
        assert_equal(est_restored.initial_model.n_states, 2)
