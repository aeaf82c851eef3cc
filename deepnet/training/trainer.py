"""
trainer.py
~~~~~~~~~~

Sequential (online) training: one example at a time, weights updated right
after each backward pass.
"""

import logging
import time
from typing import List, Optional, Sequence

import numpy as np

from ..loss import Loss, get_loss
from ..network import Network
from .examples import Example, Examples
from .solver import Solver, WeightIndex
from .stats import StatsPrinter

logger = logging.getLogger(__name__)


def new_deltas(network: Network) -> List[List[float]]:
    """Zeroed per-neuron delta storage shaped like the network."""
    return [[0.0] * len(layer.neurons) for layer in network.layers]


def calculate_deltas(
    network: Network,
    ideal: Sequence[float],
    deltas: List[List[float]],
    loss: Optional[Loss] = None
) -> None:
    """
    Backpropagate the error of the last forward pass into ``deltas``.

    The output layer delta comes from the loss function; hidden deltas are
    ``f'(value_j) * sum_k(weight(j -> k) * delta_k)``. Must follow a
    training-mode forward pass, and is called once per example since
    memoizing activations consume their recorded input.
    """
    if loss is None:
        loss = get_loss(network.config.loss)

    output = deltas[-1]
    for i, neuron in enumerate(network.layers[-1].neurons):
        output[i] = loss.df(neuron.value, ideal[i], neuron.d_activate(neuron.value))

    for i in range(len(network.layers) - 2, -1, -1):
        current, following = deltas[i], deltas[i + 1]
        for j, neuron in enumerate(network.layers[i].neurons):
            total = 0.0
            for k, synapse in enumerate(neuron.outgoing):
                total += synapse.weight * following[k]
            current[j] = neuron.d_activate(neuron.value) * total


def synapse_inputs(neuron) -> np.ndarray:
    """Inputs seen by a neuron's incoming synapses in the last forward pass."""
    return np.fromiter(
        (synapse.input for synapse in neuron.incoming),
        dtype=float,
        count=len(neuron.incoming)
    )


class Trainer:
    """
    Online trainer.

    Args:
        solver: Update rule
        verbosity: Report progress every ``verbosity`` iterations (0 = never)
        printer: Progress reporter, a logging StatsPrinter by default
    """

    def __init__(
        self,
        solver: Solver,
        verbosity: int = 0,
        printer: Optional[StatsPrinter] = None
    ):
        self.solver = solver
        self.verbosity = verbosity
        self.printer = printer or StatsPrinter()
        self._deltas: List[List[float]] = []

    def train(
        self,
        network: Network,
        examples: Sequence[Example],
        validation: Sequence[Example],
        iterations: int
    ) -> None:
        """Train ``network`` in place for ``iterations`` passes over ``examples``."""
        self._deltas = new_deltas(network)
        loss = get_loss(network.config.loss)
        index = WeightIndex(network)

        train = Examples(examples)
        validation = validation or []

        self.printer.init(network)
        self.solver.init(index.size)
        logger.info(
            f"Training {index.size} weights on {len(train)} examples "
            f"for {iterations} iterations with {self.solver!r}"
        )

        start = time.monotonic()
        for it in range(1, iterations + 1):
            train.shuffle()
            for example in train:
                self._learn(network, example, it, index, loss)

            if self.verbosity > 0 and it % self.verbosity == 0 and len(validation) > 0:
                self.printer.print_progress(network, validation, time.monotonic() - start, it)

        logger.info(f"Training finished in {time.monotonic() - start:.2f}s")

    def _learn(
        self,
        network: Network,
        example: Example,
        iteration: int,
        index: WeightIndex,
        loss: Loss
    ) -> None:
        network.forward(example.input, training=True)
        calculate_deltas(network, example.response, self._deltas, loss)
        self._update(network, iteration, index)

    def _update(self, network: Network, iteration: int, index: WeightIndex) -> None:
        for i, layer in enumerate(network.layers):
            layer_deltas = self._deltas[i]
            for j, neuron in enumerate(layer.neurons):
                weights = [synapse.weight for synapse in neuron.incoming]
                gradient = layer_deltas[j] * synapse_inputs(neuron)
                updates = self.solver.update(
                    weights, gradient, iteration, index.neuron_slice(i, j)
                )
                for synapse, update in zip(neuron.incoming, updates.tolist()):
                    synapse.weight += update
