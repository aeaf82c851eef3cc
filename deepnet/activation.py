"""
activation.py
~~~~~~~~~~~~~

Activation functions and inference modes.

Every activation exposes ``f(x, training)`` and its first derivative
``df(y)``. Where the derivative can be written in terms of the output
``y = f(x)`` it is (sigmoid, tanh, ReLU, ELU, ...). Functions whose derivative
needs the original input remember the last ``(y, x)`` pair seen while
training and clear it when ``df`` is called. An activation object therefore belongs to
exactly one neuron; use :func:`get_activation` to build a fresh one.
"""

import math
from dataclasses import dataclass
from enum import IntEnum
from typing import Callable, Dict, Optional, Tuple


class Mode(IntEnum):
    """Inference mode, which decides the output layer activation."""

    DEFAULT = 0
    # one-hot encoded classification, softmax output layer
    MULTI_CLASS = 1
    # linear output layer
    REGRESSION = 2
    # sigmoid output layer
    BINARY = 3
    # sigmoid output layer
    MULTI_LABEL = 4


class ActivationType(IntEnum):
    """Tag naming a neuron activation function."""

    NONE = 0
    SIGMOID = 1
    TANH = 2
    RELU = 3
    LINEAR = 4
    # identity per neuron; the layer normalizes its values
    SOFTMAX = 5
    ELU = 6
    SWISH = 7
    MISH = 8
    CUSTOM = 9
    DOUBLE_ROOT = 10
    ROOT_X = 11
    MUL_DIV = 12


def output_activation(mode: Mode) -> ActivationType:
    """Return the canonical output layer activation for an inference mode."""
    if mode == Mode.MULTI_CLASS:
        return ActivationType.SOFTMAX
    if mode == Mode.REGRESSION:
        return ActivationType.LINEAR
    if mode in (Mode.BINARY, Mode.MULTI_LABEL):
        return ActivationType.SIGMOID
    return ActivationType.NONE


def logistic(x: float, a: float = 1.0) -> float:
    """Logistic function 1 / (1 + e^(-a*x)) without overflow."""
    z = a * x
    if z >= 0:
        return 1.0 / (1.0 + math.exp(-z))
    e = math.exp(z)
    return e / (1.0 + e)


def softplus(x: float) -> float:
    """ln(1 + e^x) without overflow."""
    return max(x, 0.0) + math.log1p(math.exp(-abs(x)))


@dataclass(frozen=True)
class CustomActivation:
    """
    User supplied activation used by neurons tagged ``ActivationType.CUSTOM``.

    Attributes:
        f: forward function x -> y
        df: derivative, called as df(y, x) with the output and the input
            recorded during the training forward pass
    """

    f: Callable[[float], float]
    df: Callable[[float, float], float]


class Differentiable:
    """An activation function and its first order derivative."""

    def f(self, x: float, training: bool = False) -> float:
        raise NotImplementedError

    def df(self, y: float) -> float:
        raise NotImplementedError


class Linear(Differentiable):
    """Identity."""

    def f(self, x: float, training: bool = False) -> float:
        return x

    def df(self, y: float) -> float:
        return 1.0


class Sigmoid(Differentiable):
    def f(self, x: float, training: bool = False) -> float:
        return logistic(x, 1.0)

    def df(self, y: float) -> float:
        return y * (1.0 - y)


class Tanh(Differentiable):
    def f(self, x: float, training: bool = False) -> float:
        return math.tanh(x)

    def df(self, y: float) -> float:
        return 1.0 - y * y


class ReLU(Differentiable):
    def f(self, x: float, training: bool = False) -> float:
        return max(x, 0.0)

    def df(self, y: float) -> float:
        return 1.0 if y > 0 else 0.0


class ELU(Differentiable):
    """Exponential linear unit with alpha = 1."""

    alpha = 1.0

    def f(self, x: float, training: bool = False) -> float:
        if x > 0:
            return x
        return self.alpha * math.expm1(x)

    def df(self, y: float) -> float:
        if y > 0:
            return 1.0
        # y = alpha * (e^x - 1)  =>  alpha * e^x = y + alpha
        return y + self.alpha


class DoubleRoot(Differentiable):
    """sign(x) * (sqrt(0.25 + |x|) - 0.5)."""

    def f(self, x: float, training: bool = False) -> float:
        if x > 0:
            return math.sqrt(0.25 + x) - 0.5
        if x < 0:
            return 0.5 - math.sqrt(0.25 - x)
        return 0.0

    def df(self, y: float) -> float:
        # sqrt(0.25 + |x|) = |y| + 0.5
        return 1.0 / (1.0 + 2.0 * abs(y))


class RootX(Differentiable):
    """Identity for x >= 0, 0.5 - sqrt(0.25 - x) below."""

    def f(self, x: float, training: bool = False) -> float:
        if x >= 0:
            return x
        return 0.5 - math.sqrt(0.25 - x)

    def df(self, y: float) -> float:
        if y >= 0:
            return 1.0
        return 1.0 / (1.0 - 2.0 * y)


class Memoized(Differentiable):
    """
    Base class for activations whose derivative needs the input.

    Each training-mode forward call overwrites the recorded ``(output, input)``
    pair and ``df`` clears it. A neuron is differentiated right after its own
    forward pass, so one slot is enough. When ``y`` is not the recorded output
    the output itself stands in for the input.
    """

    def __init__(self) -> None:
        self._last: Optional[Tuple[float, float]] = None

    def f(self, x: float, training: bool = False) -> float:
        y = self.forward(x)
        if training:
            self._last = (y, x)
        return y

    def df(self, y: float) -> float:
        x = y
        if self._last is not None and self._last[0] == y:
            x = self._last[1]
        self._last = None
        return self.derivative(y, x)

    def forward(self, x: float) -> float:
        raise NotImplementedError

    def derivative(self, y: float, x: float) -> float:
        raise NotImplementedError


class Swish(Memoized):
    """x * sigmoid(x)."""

    def forward(self, x: float) -> float:
        return x * logistic(x, 1.0)

    def derivative(self, y: float, x: float) -> float:
        sig = logistic(x, 1.0)
        return sig * (1.0 + x * (1.0 - sig))


class Mish(Memoized):
    """x * tanh(softplus(x))."""

    def forward(self, x: float) -> float:
        return x * math.tanh(softplus(x))

    def derivative(self, y: float, x: float) -> float:
        t = math.tanh(softplus(x))
        return t + x * logistic(x, 1.0) * (1.0 - t * t)


class MulDiv(Memoized):
    """Identity for x >= 0, 1 / (x - 1) + 1 below."""

    def forward(self, x: float) -> float:
        if x >= 0:
            return x
        return 1.0 / (x - 1.0) + 1.0

    def derivative(self, y: float, x: float) -> float:
        if x >= 0:
            return 1.0
        return -1.0 / ((x - 1.0) * (x - 1.0))


class Custom(Memoized):
    """Delegates to a :class:`CustomActivation`; identity without one."""

    def __init__(self, custom: Optional[CustomActivation] = None) -> None:
        super().__init__()
        self.custom = custom

    def forward(self, x: float) -> float:
        if self.custom is None:
            return x
        return self.custom.f(x)

    def derivative(self, y: float, x: float) -> float:
        if self.custom is None:
            return 1.0
        return self.custom.df(y, x)


_ACTIVATIONS: Dict[ActivationType, Callable[[], Differentiable]] = {
    ActivationType.SIGMOID: Sigmoid,
    ActivationType.TANH: Tanh,
    ActivationType.RELU: ReLU,
    ActivationType.ELU: ELU,
    ActivationType.SWISH: Swish,
    ActivationType.MISH: Mish,
    ActivationType.LINEAR: Linear,
    ActivationType.SOFTMAX: Linear,
    ActivationType.DOUBLE_ROOT: DoubleRoot,
    ActivationType.ROOT_X: RootX,
    ActivationType.MUL_DIV: MulDiv,
}


def get_activation(
    act: ActivationType,
    custom: Optional[CustomActivation] = None
) -> Differentiable:
    """
    Build a new activation object for the given tag.

    Args:
        act: Activation tag
        custom: Strategy used when ``act`` is ``ActivationType.CUSTOM``

    Returns:
        A fresh Differentiable; unknown tags (and NONE) are linear
    """
    if act == ActivationType.CUSTOM:
        return Custom(custom)
    return _ACTIVATIONS.get(act, Linear)()
