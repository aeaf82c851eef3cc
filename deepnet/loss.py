"""
loss.py
~~~~~~~

Loss functions.

``f`` aggregates a loss over a set of predictions and is used for validation
reporting. ``df`` produces the error signal injected into the output layer
during backpropagation. The cross-entropy variants are paired with softmax and
sigmoid outputs, whose derivative cancels algebraically, so their ``df``
ignores the activation derivative it is given.
"""

from enum import IntEnum
from typing import Sequence

import numpy as np

from .activation import Mode

# Keeps log() finite for saturated estimates
_EPSILON = 1e-12


class LossType(IntEnum):
    NONE = 0
    CROSS_ENTROPY = 1
    BINARY_CROSS_ENTROPY = 2
    MEAN_SQUARED = 3


def default_loss(mode: Mode) -> LossType:
    """Return the loss conventionally paired with an inference mode."""
    if mode in (Mode.MULTI_CLASS, Mode.MULTI_LABEL):
        return LossType.CROSS_ENTROPY
    if mode == Mode.BINARY:
        return LossType.BINARY_CROSS_ENTROPY
    return LossType.MEAN_SQUARED


class Loss:
    def f(self, estimates: Sequence[Sequence[float]], ideals: Sequence[Sequence[float]]) -> float:
        """Aggregate loss over a batch; an empty batch has zero loss."""
        raise NotImplementedError

    def df(self, estimate: float, ideal: float, activation: float) -> float:
        raise NotImplementedError


class CrossEntropy(Loss):
    def f(self, estimates, ideals) -> float:
        if len(estimates) == 0:
            return 0.0
        est = np.clip(np.asarray(estimates, dtype=float), _EPSILON, None)
        ideal = np.asarray(ideals, dtype=float)
        return float(-np.sum(ideal * np.log(est)) / len(est))

    def df(self, estimate: float, ideal: float, activation: float) -> float:
        return estimate - ideal


class BinaryCrossEntropy(Loss):
    def f(self, estimates, ideals) -> float:
        if len(estimates) == 0:
            return 0.0
        est = np.clip(np.asarray(estimates, dtype=float), _EPSILON, 1.0 - _EPSILON)
        ideal = np.asarray(ideals, dtype=float)
        ce = ideal * np.log(est) + (1.0 - ideal) * np.log(1.0 - est)
        return float(-np.sum(ce) / len(est))

    def df(self, estimate: float, ideal: float, activation: float) -> float:
        return estimate - ideal


class MeanSquared(Loss):
    def f(self, estimates, ideals) -> float:
        if len(estimates) == 0:
            return 0.0
        est = np.asarray(estimates, dtype=float)
        ideal = np.asarray(ideals, dtype=float)
        return float(np.mean((est - ideal) ** 2))

    def df(self, estimate: float, ideal: float, activation: float) -> float:
        return (estimate - ideal) * activation


def get_loss(loss: LossType) -> Loss:
    """Return the loss implementation for a tag; mean-squared by default."""
    if loss == LossType.CROSS_ENTROPY:
        return CrossEntropy()
    if loss == LossType.BINARY_CROSS_ENTROPY:
        return BinaryCrossEntropy()
    return MeanSquared()
