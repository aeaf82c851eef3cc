"""
noise_filter.py
~~~~~~~~~~~~~~~

Greedy search over the per-input ``significance`` and ``shift`` scalars.

Each call makes one random move on one input feature and keeps it only if
the validation loss goes down. Repeated calls slowly scale down features that
only add noise. The search works directly on the network, so it must not run
while the same network is being trained.
"""

import logging
from typing import Optional, Sequence

import numpy as np

from ..network import Network
from .examples import Example
from .stats import calculate_loss

logger = logging.getLogger(__name__)

_random = np.random.default_rng(0)


def filter_noise(
    network: Network,
    examples: Sequence[Example],
    significance: float,
    shift: float,
    rng: Optional[np.random.Generator] = None
) -> float:
    """
    Try one random perturbation of a significance or shift scalar.

    Args:
        network: Network whose input scalars are tuned in place
        examples: Validation examples the loss is measured on
        significance: Magnitude of significance moves (0 disables them)
        shift: Magnitude of shift moves (0 disables them)
        rng: Random generator, a module level seeded one by default

    Returns:
        The validation loss after the step: the new loss when the move was
        kept, otherwise the loss before the move. A move is kept only when
        the loss strictly drops, so a NaN loss on either side reverts it.
        With both magnitudes zero nothing is tried and the current loss is
        returned.
    """
    rng = rng or _random
    loss = calculate_loss(network, examples)
    if significance == 0.0 and shift == 0.0:
        return loss

    feature = int(rng.integers(network.config.inputs))
    choice = rng.random()
    amount = rng.random() * 2.0 - 1.0

    if significance == 0.0:
        choice = 1.0
    elif shift == 0.0:
        choice = 0.0

    if choice > 0.5:
        vector, step, name = network.shift, shift, 'shift'
    else:
        vector, step, name = network.significance, significance, 'significance'

    previous = vector[feature]
    vector[feature] = previous + step * amount
    updated = calculate_loss(network, examples)

    if not updated < loss:
        vector[feature] = previous
        return loss

    logger.debug(f"Kept {name}[{feature}] = {vector[feature]:.4f}: loss {loss:.6f} -> {updated:.6f}")
    return updated
