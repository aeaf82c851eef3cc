"""
util.py
~~~~~~~

Numeric helpers shared by the network, the losses and the training code.

All functions accept any one-dimensional array-like and return new values;
inputs are never modified in place.
"""

from typing import Sequence, Union

import numpy as np

ArrayLike = Union[Sequence[float], np.ndarray]


def mean(xx: ArrayLike) -> float:
    """Arithmetic mean of xx."""
    return float(np.mean(np.asarray(xx, dtype=float)))


def variance(xx: ArrayLike) -> float:
    """
    Sample variance of xx (n - 1 denominator).

    A single observation has no spread, so its variance is 0.
    """
    values = np.asarray(xx, dtype=float)
    if values.size <= 1:
        return 0.0
    return float(np.var(values, ddof=1))


def standard_deviation(xx: ArrayLike) -> float:
    """Sample standard deviation of xx."""
    return float(np.sqrt(variance(xx)))


def standardize(xx: ArrayLike) -> np.ndarray:
    """
    Z-score xx so that it has mean 0 and standard deviation 1.

    Constant input has a standard deviation of 0; 1 is used instead so the
    result is the mean-subtracted (all zero) vector.
    """
    values = np.asarray(xx, dtype=float)
    s = standard_deviation(values)
    if s == 0:
        s = 1.0
    return (values - mean(values)) / s


def normalize(xx: ArrayLike) -> np.ndarray:
    """
    Min-max scale xx into [0, 1].

    Constant input maps to zeros.
    """
    values = np.asarray(xx, dtype=float)
    lo, hi = minimum(values), maximum(values)
    if hi == lo:
        return np.zeros_like(values)
    return (values - lo) / (hi - lo)


def minimum(xx: ArrayLike) -> float:
    return float(np.min(np.asarray(xx, dtype=float)))


def maximum(xx: ArrayLike) -> float:
    return float(np.max(np.asarray(xx, dtype=float)))


def argmax(xx: ArrayLike) -> int:
    """Index of the largest element (first one on ties)."""
    return int(np.argmax(np.asarray(xx, dtype=float)))


def sgn(x: float) -> float:
    """Signum."""
    if x < 0:
        return -1.0
    if x > 0:
        return 1.0
    return 0.0


def total(xx: ArrayLike) -> float:
    return float(np.sum(np.asarray(xx, dtype=float)))


def softmax(xx: ArrayLike) -> np.ndarray:
    """
    Softmax of xx.

    The maximum is subtracted before exponentiating, which keeps exp() from
    overflowing and makes the result invariant to a constant shift.
    """
    values = np.asarray(xx, dtype=float)
    exps = np.exp(values - np.max(values))
    return exps / np.sum(exps)


def round_half_up(x: float) -> float:
    """Round to the nearest integer, halves going up."""
    return float(np.floor(x + 0.5))


def dot(xx: ArrayLike, yy: ArrayLike) -> float:
    """Dot product of two equally sized vectors."""
    return float(np.dot(np.asarray(xx, dtype=float), np.asarray(yy, dtype=float)))
