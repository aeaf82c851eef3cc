"""
examples.py
~~~~~~~~~~~

Training examples and helpers to shuffle and split them.
"""

from dataclasses import dataclass
from typing import List, Sequence, Tuple

import numpy as np


@dataclass
class Example:
    """An input feature vector and the response expected for it."""

    input: Sequence[float]
    response: Sequence[float]


class Examples(list):
    """A list of examples."""

    def shuffle(self) -> None:
        """Shuffle in place using numpy's global random state."""
        np.random.shuffle(self)

    def split(self, p: float) -> Tuple['Examples', 'Examples']:
        """Randomly assign each example to the first part with probability p."""
        first, second = Examples(), Examples()
        for example in self:
            if p > np.random.random():
                first.append(example)
            else:
                second.append(example)
        return first, second

    def split_size(self, size: int) -> List['Examples']:
        """Consecutive batches of ``size`` examples; the last may be shorter."""
        if size <= 0:
            raise ValueError(f"batch size must be positive, got {size}")
        return [Examples(self[i:i + size]) for i in range(0, len(self), size)]

    def split_n(self, n: int) -> List['Examples']:
        """Deal the examples round-robin into ``n`` groups."""
        if n <= 0:
            raise ValueError(f"number of groups must be positive, got {n}")
        groups = [Examples() for _ in range(n)]
        for i, example in enumerate(self):
            groups[i % n].append(example)
        return groups
