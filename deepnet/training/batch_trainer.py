"""
batch_trainer.py
~~~~~~~~~~~~~~~~

Parallel mini-batch training.

Each worker thread owns a private replica of the network. For every batch
the authoritative weights are copied into all replicas, the batch's examples
are dealt to the workers, and each worker accumulates per-weight gradients in
its own tensor. After the batch has been consumed the worker tensors are
summed into one accumulated tensor and the solver applies a single update per
weight. The next batch is not dispatched before every update of the current
one has been written.

Examples are dealt round-robin (example i of a batch goes to worker
i % parallelism) and worker tensors are summed in worker order, so with a
fixed random seed and worker count repeated runs produce identical weights.
"""

import dataclasses
import logging
import queue
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from typing import List, Optional, Sequence

import numpy as np

from ..loss import Loss, get_loss
from ..network import Network
from .examples import Example, Examples
from .solver import Solver, WeightIndex, iparam
from .stats import StatsPrinter
from .trainer import calculate_deltas, new_deltas, synapse_inputs

logger = logging.getLogger(__name__)


class BatchTrainer:
    """
    Concurrent mini-batch trainer.

    Args:
        solver: Update rule
        verbosity: Report progress every ``verbosity`` iterations (0 = never)
        batch_size: Examples per weight update (0 falls back to 1)
        parallelism: Number of worker threads (0 falls back to 1)
        printer: Progress reporter, a logging StatsPrinter by default
    """

    def __init__(
        self,
        solver: Solver,
        verbosity: int = 0,
        batch_size: int = 1,
        parallelism: int = 1,
        printer: Optional[StatsPrinter] = None
    ):
        self.solver = solver
        self.verbosity = verbosity
        self.batch_size = iparam(batch_size, 1)
        self.parallelism = iparam(parallelism, 1)
        self.printer = printer or StatsPrinter()

        # [worker][layer][neuron]
        self._deltas: List[List[List[float]]] = []
        # [worker][layer] -> (neurons, synapses)
        self._partials: List[List[np.ndarray]] = []
        # [layer] -> (neurons, synapses)
        self._accumulated: List[np.ndarray] = []

    def _init_state(self, network: Network) -> None:
        shape = network.shape()
        self._deltas = [new_deltas(network) for _ in range(self.parallelism)]
        self._partials = [
            [np.zeros(s) for s in shape] for _ in range(self.parallelism)
        ]
        self._accumulated = [np.zeros(s) for s in shape]

    def train(
        self,
        network: Network,
        examples: Sequence[Example],
        validation: Sequence[Example],
        iterations: int
    ) -> None:
        """
        Train ``network`` in place for ``iterations`` passes over ``examples``.

        Raises:
            Exception: The first error raised by a worker (for instance an
                InputDimensionError), after the workers have been stopped
        """
        self._init_state(network)
        index = WeightIndex(network)
        loss = get_loss(network.config.loss)
        layers = range(len(network.layers))

        train = Examples(examples)
        validation = validation or []

        # replica weights are overwritten by every broadcast; build them without
        # drawing from the random state that also drives shuffling
        replica_config = dataclasses.replace(network.config, weight=lambda: 0.0)
        replicas = [Network(replica_config) for _ in range(self.parallelism)]
        errors: List[BaseException] = []
        work = [queue.Queue() for _ in range(self.parallelism)]
        workers = [
            threading.Thread(
                target=self._work,
                args=(wid, replicas[wid], work[wid], loss, errors),
                name=f"batch-worker-{wid}",
                daemon=True
            )
            for wid in range(self.parallelism)
        ]
        self.printer.init(network)
        self.solver.init(index.size)
        logger.info(
            f"Batch training {index.size} weights on {len(train)} examples "
            f"for {iterations} iterations: batch_size={self.batch_size}, "
            f"parallelism={self.parallelism}, solver={self.solver!r}"
        )
        for worker in workers:
            worker.start()

        start = time.monotonic()
        try:
            with ThreadPoolExecutor(
                max_workers=len(layers),
                thread_name_prefix='batch-layer'
            ) as pool:
                for it in range(1, iterations + 1):
                    train.shuffle()
                    for batch in train.split_size(self.batch_size):
                        self._broadcast(network, replicas)

                        for i, example in enumerate(batch):
                            work[i % self.parallelism].put(example)
                        for q in work:
                            q.join()
                        if errors:
                            raise errors[0]

                        list(pool.map(self._reduce, layers))
                        list(pool.map(partial(self._apply, network, index, it), layers))

                    if self.verbosity > 0 and it % self.verbosity == 0 and len(validation) > 0:
                        self.printer.print_progress(
                            network, validation, time.monotonic() - start, it
                        )
        finally:
            for q in work:
                q.put(None)
            for worker in workers:
                worker.join()

        logger.info(f"Batch training finished in {time.monotonic() - start:.2f}s")

    def _broadcast(self, network: Network, replicas: List[Network]) -> None:
        current = network.weights()
        for replica in replicas:
            replica.apply_weights(current)

    def _work(
        self,
        wid: int,
        replica: Network,
        work: queue.Queue,
        loss: Loss,
        errors: List[BaseException]
    ) -> None:
        deltas = self._deltas[wid]
        partials = self._partials[wid]
        while True:
            example = work.get()
            try:
                if example is None:
                    return
                replica.forward(example.input, training=True)
                calculate_deltas(replica, example.response, deltas, loss)
                for i, layer in enumerate(replica.layers):
                    layer_deltas, layer_partials = deltas[i], partials[i]
                    for j, neuron in enumerate(layer.neurons):
                        layer_partials[j] += layer_deltas[j] * synapse_inputs(neuron)
            except Exception as e:
                logger.exception(f"Worker {wid} failed on an example: {e}")
                errors.append(e)
            finally:
                work.task_done()

    def _reduce(self, layer: int) -> None:
        """Sum every worker's gradients for one layer and zero them."""
        accumulated = self._accumulated[layer]
        for partials in self._partials:
            accumulated += partials[layer]
            partials[layer].fill(0.0)

    def _apply(self, network: Network, index: WeightIndex, iteration: int, layer: int) -> None:
        """Apply the solver to one layer; layers own disjoint index ranges."""
        neurons = network.layers[layer].neurons
        accumulated = self._accumulated[layer]
        weights = np.array([[s.weight for s in n.incoming] for n in neurons])

        updates = self.solver.update(
            weights.ravel(), accumulated.ravel(), iteration, index.layer_slice(layer)
        ).reshape(accumulated.shape)

        for neuron, row in zip(neurons, updates.tolist()):
            for synapse, update in zip(neuron.incoming, row):
                synapse.weight += update
        accumulated.fill(0.0)
