"""
solver.py
~~~~~~~~~

Update rules mapping a gradient to a weight delta.

Solvers keep per-weight state (momentum, moment estimates) addressed by a
flat weight index. :class:`WeightIndex` fixes the mapping from
``(layer, neuron, synapse)`` to that index once per training run so every
update of a weight lands on the same accumulator slot.

``Solver.update`` accepts either a single index with a scalar gradient or a
slice of indices with an array of gradients; the rule is applied
elementwise in both cases.
"""

from typing import List, Optional, Tuple, Union

import numpy as np

Index = Union[int, slice]


class WeightIndex:
    """
    Stable flat addressing of a network's weights.

    Weights are numbered layer by layer, neuron by neuron, synapse by
    synapse, which is also the order of ``Network.weights()``.
    """

    def __init__(self, network):
        self.shape: List[Tuple[int, int]] = network.shape()
        self.offsets: List[int] = []
        offset = 0
        for neurons, synapses in self.shape:
            self.offsets.append(offset)
            offset += neurons * synapses
        self.size = offset

    def index(self, layer: int, neuron: int, synapse: int) -> int:
        return self.offsets[layer] + neuron * self.shape[layer][1] + synapse

    def neuron_slice(self, layer: int, neuron: int) -> slice:
        start = self.index(layer, neuron, 0)
        return slice(start, start + self.shape[layer][1])

    def layer_slice(self, layer: int) -> slice:
        neurons, synapses = self.shape[layer]
        start = self.offsets[layer]
        return slice(start, start + neurons * synapses)


class Solver:
    """Base class for update rules."""

    def init(self, size: int) -> None:
        """Allocate state for ``size`` weights. Must precede any update."""
        raise NotImplementedError

    def update(self, value, gradient, iteration: int, idx: Index):
        """Return the delta to add to the weight(s) at ``idx``."""
        raise NotImplementedError


class SGD(Solver):
    """
    Stochastic gradient descent with momentum, Nesterov look-ahead and
    learning rate decay.
    """

    def __init__(
        self,
        lr: float = 0.01,
        momentum: float = 0.0,
        decay: float = 0.0,
        nesterov: bool = False
    ):
        self.lr = fparam(lr, 0.01)
        self.momentum = momentum
        self.decay = decay
        self.nesterov = nesterov
        self.moments: Optional[np.ndarray] = None

    def init(self, size: int) -> None:
        self.moments = np.zeros(size)

    def update(self, value, gradient, iteration: int, idx: Index):
        if self.moments is None:
            raise RuntimeError("SGD.init must be called before update")
        lr = self.lr / (1 + self.decay * iteration)

        self.moments[idx] = self.momentum * self.moments[idx] - lr * gradient
        if self.nesterov:
            self.moments[idx] = self.momentum * self.moments[idx] - lr * gradient

        return _detach(self.moments[idx])

    def __repr__(self) -> str:
        return (
            f"SGD(lr={self.lr}, momentum={self.momentum}, "
            f"decay={self.decay}, nesterov={self.nesterov})"
        )


class Adam(Solver):
    """Adam with bias-corrected learning rate."""

    def __init__(
        self,
        lr: float = 0.001,
        beta: float = 0.9,
        beta2: float = 0.999,
        epsilon: float = 1e-8
    ):
        self.lr = fparam(lr, 0.001)
        self.beta = fparam(beta, 0.9)
        self.beta2 = fparam(beta2, 0.999)
        self.epsilon = fparam(epsilon, 1e-8)
        self.m: Optional[np.ndarray] = None
        self.v: Optional[np.ndarray] = None

    def init(self, size: int) -> None:
        self.m, self.v = np.zeros(size), np.zeros(size)

    def update(self, value, gradient, iteration: int, idx: Index):
        if self.m is None or self.v is None:
            raise RuntimeError("Adam.init must be called before update")
        t = iteration
        lrt = self.lr * np.sqrt(1.0 - self.beta2 ** t) / (1.0 - self.beta ** t)

        self.m[idx] = self.beta * self.m[idx] + (1.0 - self.beta) * gradient
        self.v[idx] = self.beta2 * self.v[idx] + (1.0 - self.beta2) * np.square(gradient)

        return _detach(-lrt * (self.m[idx] / (np.sqrt(self.v[idx]) + self.epsilon)))

    def __repr__(self) -> str:
        return (
            f"Adam(lr={self.lr}, beta={self.beta}, beta2={self.beta2}, "
            f"epsilon={self.epsilon})"
        )


def _detach(values):
    if isinstance(values, np.ndarray):
        return values.copy()
    return float(values)


def fparam(val: float, fallback: float) -> float:
    """Use ``fallback`` for an unset (zero) hyper-parameter."""
    if val == 0.0:
        return fallback
    return val


def iparam(val: int, fallback: int) -> int:
    if val == 0:
        return fallback
    return val
