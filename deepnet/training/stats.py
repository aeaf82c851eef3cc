"""
stats.py
~~~~~~~~

Validation metrics and progress reporting for the trainers.
"""

import logging
from typing import Any, Callable, Dict, Optional, Sequence

from ..activation import Mode
from ..loss import get_loss
from ..network import Network
from ..util import argmax
from .examples import Example

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[Dict[str, Any]], None]


def calculate_loss(network: Network, examples: Sequence[Example]) -> float:
    """
    Aggregate loss of the network's predictions over ``examples``.

    The loss function is the one configured on the network.
    """
    predictions = [network.predict(e.input) for e in examples]
    responses = [e.response for e in examples]
    return get_loss(network.config.loss).f(predictions, responses)


def accuracy(network: Network, examples: Sequence[Example]) -> float:
    """Fraction of examples whose predicted class matches the response."""
    if not examples:
        return 0.0
    correct = sum(
        1 for e in examples
        if argmax(network.predict(e.input)) == argmax(e.response)
    )
    return correct / len(examples)


class StatsPrinter:
    """
    Reports training progress against a validation set.

    Rows go to the module logger. When a callback is given it also receives
    every row as a dictionary with ``iteration``, ``elapsed``, ``loss`` and,
    for multi-class networks, ``accuracy``.
    """

    def __init__(self, callback: Optional[ProgressCallback] = None):
        self.callback = callback

    def init(self, network: Network) -> None:
        header = f"{'Epochs':>8}  {'Elapsed':>10}  {'Loss (' + network.config.loss.name.lower() + ')':>24}"
        if network.config.mode == Mode.MULTI_CLASS:
            header += f"  {'Accuracy':>8}"
        logger.info(header)

    def print_progress(
        self,
        network: Network,
        validation: Sequence[Example],
        elapsed: float,
        iteration: int
    ) -> None:
        """
        Evaluate and report one progress row.

        Args:
            network: Network being trained
            validation: Held-out examples
            elapsed: Seconds since training started
            iteration: Current iteration (1-based)
        """
        row: Dict[str, Any] = {
            'iteration': iteration,
            'elapsed': elapsed,
            'loss': calculate_loss(network, validation),
        }
        line = f"{iteration:>8}  {elapsed:>9.2f}s  {row['loss']:>24.4f}"
        if network.config.mode == Mode.MULTI_CLASS:
            row['accuracy'] = accuracy(network, validation)
            line += f"  {row['accuracy']:>8.2f}"
        logger.info(line)

        if self.callback is not None:
            self.callback(row)
