"""
test_solver.py
~~~~~~~~~~~~~~

Unit tests for update rules and weight addressing.
"""

import math

import numpy as np
import pytest

from deepnet import Config, Mode, Network
from deepnet.training import SGD, Adam, WeightIndex
from deepnet.training.solver import fparam, iparam


@pytest.mark.unit
class TestWeightIndex:

    def test_indices_are_unique_and_dense(self):
        net = Network(Config(inputs=3, layout=[4, 2]))
        index = WeightIndex(net)

        seen = [
            index.index(i, j, k)
            for i, (neurons, synapses) in enumerate(index.shape)
            for j in range(neurons)
            for k in range(synapses)
        ]
        assert seen == list(range(net.num_weights()))
        assert index.size == net.num_weights()

    def test_order_matches_weights(self):
        net = Network(Config(inputs=2, layout=[3, 2]))
        index = WeightIndex(net)
        flat = [w for layer in net.weights() for neuron in layer for w in neuron]
        assert flat[index.index(1, 1, 2)] == net.weights()[1][1][2]

    def test_slices(self):
        net = Network(Config(inputs=2, layout=[3, 2]))
        index = WeightIndex(net)

        assert index.neuron_slice(0, 1) == slice(3, 6)
        assert index.layer_slice(0) == slice(0, 9)
        assert index.layer_slice(1) == slice(9, 17)

    def test_regression_shape(self):
        net = Network(Config(inputs=2, layout=[3, 1], mode=Mode.REGRESSION))
        assert WeightIndex(net).shape == [(3, 3), (1, 3)]


@pytest.mark.unit
class TestSGD:

    def test_plain_step(self):
        sgd = SGD(lr=0.1)
        sgd.init(1)
        assert sgd.update(0.0, 2.0, 1, 0) == pytest.approx(-0.2)

    def test_momentum_accumulates(self):
        sgd = SGD(lr=0.1, momentum=0.9)
        sgd.init(1)
        first = sgd.update(0.0, 1.0, 1, 0)
        second = sgd.update(0.0, 1.0, 1, 0)

        assert first == pytest.approx(-0.1)
        assert second == pytest.approx(0.9 * -0.1 - 0.1)

    def test_nesterov_applies_second_step(self):
        sgd = SGD(lr=0.1, momentum=0.5, nesterov=True)
        sgd.init(1)
        # m = -0.1, then m = 0.5 * -0.1 - 0.1
        assert sgd.update(0.0, 1.0, 1, 0) == pytest.approx(-0.15)

    def test_decay_shrinks_learning_rate(self):
        sgd = SGD(lr=1.0, decay=1.0)
        sgd.init(1)
        assert sgd.update(0.0, 1.0, 3, 0) == pytest.approx(-0.25)

    def test_zero_learning_rate_falls_back(self):
        assert SGD(lr=0.0).lr == 0.01

    def test_slice_update(self):
        sgd = SGD(lr=0.5, momentum=0.5)
        sgd.init(5)
        updates = sgd.update(np.zeros(2), np.array([1.0, -2.0]), 1, slice(1, 3))

        np.testing.assert_allclose(updates, [-0.5, 1.0])
        np.testing.assert_allclose(sgd.moments, [0.0, -0.5, 1.0, 0.0, 0.0])

    def test_returned_delta_is_detached(self):
        sgd = SGD(lr=1.0)
        sgd.init(2)
        updates = sgd.update(np.zeros(2), np.ones(2), 1, slice(0, 2))
        updates[0] = 99.0
        assert sgd.moments[0] == -1.0

    def test_update_before_init(self):
        with pytest.raises(RuntimeError):
            SGD().update(0.0, 1.0, 1, 0)


@pytest.mark.unit
class TestAdam:

    def test_first_step(self):
        adam = Adam(lr=0.1)
        adam.init(1)
        g = 0.5
        m = 0.1 * g
        v = 0.001 * g * g
        lrt = 0.1 * math.sqrt(1 - 0.999) / (1 - 0.9)

        assert adam.update(0.0, g, 1, 0) == pytest.approx(-lrt * m / (math.sqrt(v) + 1e-8))

    def test_first_step_magnitude_is_learning_rate(self):
        adam = Adam(lr=0.01)
        adam.init(3)
        updates = adam.update(np.zeros(3), np.array([0.2, -5.0, 1e3]), 1, slice(0, 3))
        np.testing.assert_allclose(np.abs(updates), 0.01, rtol=1e-4)
        assert updates[0] < 0 < updates[1]

    def test_defaults(self):
        adam = Adam(lr=0, beta=0, beta2=0, epsilon=0)
        assert (adam.lr, adam.beta, adam.beta2, adam.epsilon) == (0.001, 0.9, 0.999, 1e-8)

    def test_update_before_init(self):
        with pytest.raises(RuntimeError):
            Adam().update(0.0, 1.0, 1, 0)


@pytest.mark.unit
def test_params_fallback():
    assert fparam(0.0, 0.3) == 0.3
    assert fparam(0.2, 0.3) == 0.2
    assert iparam(0, 4) == 4
    assert iparam(2, 4) == 2
