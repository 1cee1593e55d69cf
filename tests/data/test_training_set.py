import numpy as np
import pytest
from numpy.testing import assert_equal, assert_raises, assert_

from gesturehmm.data import TrainingSet, Phrase
from gesturehmm.util.exceptions import ConfigurationError


def test_phrase_views():
    data = np.arange(12, dtype=float).reshape(4, 3)
    phrase = Phrase(data, dimension_input=1)
    assert_(phrase.bimodal)
    assert_equal(len(phrase), 4)
    assert_equal(phrase.dimension, 3)
    assert_equal(phrase.inputs, data[:, :1])
    assert_equal(phrase.outputs, data[:, 1:])
    assert_equal(phrase.input_at(2), [6.])
    assert_equal(phrase.output_at(2), [7., 8.])


def test_phrase_unimodal():
    phrase = Phrase(np.arange(5))
    assert_(not phrase.bimodal)
    assert_equal(phrase.data.shape, (5, 1))
    assert_equal(phrase.data.dtype, np.float64)
    assert_(phrase.outputs is None)
    assert_(phrase.output_at(0) is None)
    assert_equal(phrase.inputs, phrase.data)


@pytest.mark.parametrize("dimension_input", [0, 3, 5])
def test_phrase_invalid_input_dimension(dimension_input):
    with assert_raises(ConfigurationError):
        Phrase(np.zeros((5, 3)), dimension_input=dimension_input)


def test_add_remove():
    ts = TrainingSet(dimension=2)
    assert_(ts.is_empty())
    generation = ts.generation
    assert_equal(ts.add_phrase(np.zeros((5, 2))), 0)
    assert_equal(ts.add_phrase(np.ones((7, 2))), 1)
    assert_equal(ts.add_phrase(np.ones((3, 2)), index=10), 10)
    assert_equal(ts.add_phrase(np.ones((4, 2))), 11)
    assert_equal(ts.generation, generation + 4)
    assert_equal(len(ts), 4)
    assert_equal(ts.indices, [0, 1, 10, 11])
    assert_equal(ts.lengths, (5, 7, 3, 4))

    ts.remove_phrase(1)
    assert_equal(ts.indices, [0, 10, 11])
    assert_equal(ts.generation, generation + 5)
    with assert_raises(IndexError):
        ts.remove_phrase(1)
    with assert_raises(IndexError):
        _ = ts[1]

    ts.clear()
    assert_(ts.is_empty())
    assert_equal(ts.generation, generation + 6)


def test_replace_phrase():
    ts = TrainingSet(dimension=1)
    ts.add_phrase(np.zeros(5))
    ts.add_phrase(np.ones(3), index=0)
    assert_equal(len(ts), 1)
    assert_equal(ts[0].data, np.ones((3, 1)))


def test_add_invalid_phrase():
    ts = TrainingSet(dimension=2)
    with assert_raises(ConfigurationError):
        ts.add_phrase(np.zeros((5, 3)))
    with assert_raises(ValueError):
        ts.add_phrase(np.zeros((0, 2)))
    with assert_raises(IndexError):
        ts.add_phrase(np.zeros((5, 2)), index=-1)


def test_iteration_order():
    ts = TrainingSet(dimension=1)
    ts.add_phrase(np.full(3, 2.), index=2)
    ts.add_phrase(np.full(3, 0.), index=0)
    ts.add_phrase(np.full(3, 1.), index=1)
    assert_equal([p.data[0, 0] for p in ts], [0., 1., 2.])


def test_phrase_data_is_copied():
    data = np.zeros((4, 2))
    ts = TrainingSet.from_sequences([data])
    data[0, 0] = 5.
    assert_equal(ts[0].data[0, 0], 0.)


def test_dimension_input_change():
    ts = TrainingSet.from_sequences([np.zeros((4, 3)), np.ones((6, 3))])
    assert_(not ts.bimodal)
    generation = ts.generation
    ts.dimension_input = 2
    assert_(ts.bimodal)
    assert_equal(ts.generation, generation + 1)
    for phrase in ts:
        assert_equal(phrase.dimension_input, 2)
        assert_equal(phrase.outputs.shape[1], 1)
    with assert_raises(ConfigurationError):
        ts.dimension_input = 3


def test_from_sequences():
    ts = TrainingSet.from_sequences([np.zeros(10), np.zeros(12)])
    assert_equal(ts.dimension, 1)
    assert_equal(ts.lengths, (10, 12))
    with assert_raises(ValueError):
        TrainingSet.from_sequences([])


def test_setflags():
    ts = TrainingSet.from_sequences([np.zeros((4, 2))])
    ts.setflags(write=False)
    with assert_raises(ValueError):
        ts[0].data[0, 0] = 1.
    ts.setflags(write=True)
    ts[0].data[0, 0] = 1.
