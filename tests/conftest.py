# pytest specific configuration file containing eg fixtures.
import os
import random

import numpy as np
import pytest


@pytest.fixture
def fixed_seed():
    random.seed(42)
    np.random.mtrand.seed(42)
    yield
    new_seed = int.from_bytes(os.urandom(16), 'big') % (2 ** 32 - 1)
    random.seed(new_seed)
    np.random.mtrand.seed(new_seed)


def make_segmented_sequences(n_sequences, segment_means, segment_length=20, noise=.5, dimension=1):
    r""" Sequences made of consecutive segments with constant mean plus Gaussian noise. """
    sequences = []
    for _ in range(n_sequences):
        segments = [np.full((segment_length, dimension), mean, dtype=float) for mean in segment_means]
        sequence = np.concatenate(segments)
        sequences.append(sequence + noise * np.random.normal(size=sequence.shape))
    return sequences


@pytest.fixture
def segmented_sequences(fixed_seed):
    return make_segmented_sequences(3, [0., 3., 6.])


@pytest.fixture(params=[False, True], ids=lambda x: f"{'hierarchical' if x else 'flat'}")
def hierarchical(request):
    yield request.param
