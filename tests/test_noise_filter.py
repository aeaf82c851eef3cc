"""
test_noise_filter.py
~~~~~~~~~~~~~~~~~~~~

Tests for the significance/shift search.
"""

import math

import numpy as np
import pytest

from deepnet import ActivationType, Config, Mode, Network
from deepnet.training import Example, filter_noise
from deepnet.training.stats import calculate_loss


@pytest.fixture
def noisy_setup():
    """Response depends on the first feature only; the second is noise."""
    rng = np.random.default_rng(5)
    examples = []
    for _ in range(30):
        signal, noise = rng.normal(), rng.normal() * 5.0
        examples.append(Example([signal, noise], [2.0 * signal]))

    net = Network(Config(
        inputs=2,
        layout=[1],
        activation=ActivationType.LINEAR,
        mode=Mode.REGRESSION,
        bias=False
    ))
    net.apply_weights([[[2.0, 1.0]]])
    return net, examples


@pytest.mark.unit
class TestFilterNoise:

    def test_both_magnitudes_zero_is_a_no_op(self, noisy_setup):
        net, examples = noisy_setup
        loss = filter_noise(net, examples, 0.0, 0.0, rng=np.random.default_rng(1))

        assert loss == pytest.approx(calculate_loss(net, examples))
        np.testing.assert_array_equal(net.significance, np.ones(2))
        np.testing.assert_array_equal(net.shift, np.zeros(2))

    def test_loss_never_increases(self, noisy_setup):
        net, examples = noisy_setup
        rng = np.random.default_rng(2)
        previous = calculate_loss(net, examples)

        for _ in range(40):
            loss = filter_noise(net, examples, 0.3, 0.3, rng=rng)
            assert loss <= previous
            assert loss == pytest.approx(calculate_loss(net, examples))
            previous = loss

    def test_noise_feature_is_scaled_down(self, noisy_setup):
        net, examples = noisy_setup
        rng = np.random.default_rng(3)
        before = calculate_loss(net, examples)

        for _ in range(200):
            filter_noise(net, examples, 0.2, 0.0, rng=rng)

        assert calculate_loss(net, examples) < before
        assert abs(net.significance[1]) < 1.0

    def test_rejected_move_restores_exact_value(self):
        """At a perfect fit any move is rejected and nothing drifts."""
        examples = [Example([1.0, 2.0], [3.0]), Example([-1.0, 0.5], [-0.5])]
        net = Network(Config(
            inputs=2, layout=[1], activation=ActivationType.LINEAR,
            mode=Mode.REGRESSION, bias=False
        ))
        net.apply_weights([[[1.0, 1.0]]])
        rng = np.random.default_rng(4)

        for _ in range(25):
            assert filter_noise(net, examples, 0.5, 0.5, rng=rng) == 0.0

        np.testing.assert_array_equal(net.significance, np.ones(2))
        np.testing.assert_array_equal(net.shift, np.zeros(2))

    def test_only_shift_moves_when_significance_is_zero(self, noisy_setup):
        net, examples = noisy_setup
        rng = np.random.default_rng(6)
        for _ in range(30):
            filter_noise(net, examples, 0.0, 0.5, rng=rng)

        np.testing.assert_array_equal(net.significance, np.ones(2))

    def test_only_significance_moves_when_shift_is_zero(self, noisy_setup):
        net, examples = noisy_setup
        rng = np.random.default_rng(7)
        for _ in range(30):
            filter_noise(net, examples, 0.5, 0.0, rng=rng)

        np.testing.assert_array_equal(net.shift, np.zeros(2))

    def test_empty_validation_set_keeps_inputs(self, noisy_setup):
        net, _ = noisy_setup
        rng = np.random.default_rng(8)

        for _ in range(10):
            assert filter_noise(net, [], 0.5, 0.5, rng=rng) == 0.0

        np.testing.assert_array_equal(net.significance, np.ones(2))
        np.testing.assert_array_equal(net.shift, np.zeros(2))

    def test_nan_loss_reverts_move(self, noisy_setup):
        net, examples = noisy_setup
        net.apply_weights([[[float('nan'), 1.0]]])
        rng = np.random.default_rng(9)

        for _ in range(10):
            assert math.isnan(filter_noise(net, examples, 0.5, 0.5, rng=rng))

        np.testing.assert_array_equal(net.significance, np.ones(2))
        np.testing.assert_array_equal(net.shift, np.zeros(2))
