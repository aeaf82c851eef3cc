"""
test_util.py
~~~~~~~~~~~~

Unit tests for the numeric helpers.
"""

import numpy as np
import pytest

from deepnet import util


@pytest.mark.unit
class TestStatistics:

    def test_mean(self):
        assert util.mean([1, 2, 3, 4]) == pytest.approx(2.5)

    def test_variance_uses_sample_denominator(self):
        assert util.variance([1, 2, 3, 4]) == pytest.approx(5.0 / 3.0)

    def test_variance_of_single_value_is_zero(self):
        assert util.variance([7.0]) == 0.0

    def test_standard_deviation(self):
        assert util.standard_deviation([2, 4, 4, 4, 5, 5, 7, 9]) == pytest.approx(
            np.std([2, 4, 4, 4, 5, 5, 7, 9], ddof=1)
        )

    def test_standardize(self):
        values = [1.0, 2.0, 3.0, 4.0, 5.0]
        result = util.standardize(values)

        assert np.mean(result) == pytest.approx(0.0)
        assert np.std(result, ddof=1) == pytest.approx(1.0)
        # input untouched
        assert values == [1.0, 2.0, 3.0, 4.0, 5.0]

    def test_standardize_constant_input(self):
        assert util.standardize([3.0, 3.0, 3.0]).tolist() == [0.0, 0.0, 0.0]

    def test_normalize(self):
        assert util.normalize([2.0, 4.0, 6.0]).tolist() == pytest.approx([0.0, 0.5, 1.0])

    def test_normalize_constant_input(self):
        assert util.normalize([5.0, 5.0]).tolist() == [0.0, 0.0]


@pytest.mark.unit
class TestVectorHelpers:

    def test_minimum_maximum(self):
        assert util.minimum([3, -1, 2]) == -1.0
        assert util.maximum([3, -1, 2]) == 3.0

    def test_argmax_first_on_ties(self):
        assert util.argmax([0.1, 0.7, 0.7, 0.2]) == 1

    @pytest.mark.parametrize("x, expected", [(-2.5, -1.0), (0.0, 0.0), (3.0, 1.0)])
    def test_sgn(self, x, expected):
        assert util.sgn(x) == expected

    def test_total(self):
        assert util.total([1.5, 2.5, -1.0]) == pytest.approx(3.0)

    def test_dot(self):
        assert util.dot([1, 2, 3], [4, 5, 6]) == pytest.approx(32.0)

    @pytest.mark.parametrize("x, expected", [(0.5, 1.0), (1.49, 1.0), (-0.5, 0.0), (2.5, 3.0)])
    def test_round_half_up(self, x, expected):
        assert util.round_half_up(x) == expected


@pytest.mark.unit
class TestSoftmax:

    def test_sums_to_one(self):
        result = util.softmax([1.0, 2.0, 3.0])
        assert np.sum(result) == pytest.approx(1.0)
        assert list(result) == sorted(result)

    def test_shift_invariant(self):
        a = util.softmax([1.0, 2.0, 3.0])
        b = util.softmax([101.0, 102.0, 103.0])
        np.testing.assert_allclose(a, b)

    def test_large_values_do_not_overflow(self):
        result = util.softmax([1000.0, 1000.0])
        np.testing.assert_allclose(result, [0.5, 0.5])
