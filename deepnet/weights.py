"""
weights.py
~~~~~~~~~~

Weight initializers. An initializer is a zero-argument callable returning one
weight; it is called once per synapse at construction time.
"""

from typing import Callable

import numpy as np

WeightInitializer = Callable[[], float]


def uniform(stddev: float, mean: float) -> float:
    """Sample from U(mean - stddev/2, mean + stddev/2)."""
    return float((np.random.random() - 0.5) * stddev + mean)


def normal(stddev: float, mean: float) -> float:
    """Sample from N(mean, stddev)."""
    return float(np.random.normal() * stddev + mean)


def new_uniform(stddev: float, mean: float) -> WeightInitializer:
    return lambda: uniform(stddev, mean)


def new_normal(stddev: float, mean: float) -> WeightInitializer:
    return lambda: normal(stddev, mean)
