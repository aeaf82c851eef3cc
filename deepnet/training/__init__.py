"""
training package
~~~~~~~~~~~~~~~~

Solvers, the sequential and concurrent trainers, progress reporting and the
noise filtering search.
"""

from .batch_trainer import BatchTrainer
from .examples import Example, Examples
from .noise_filter import filter_noise
from .solver import SGD, Adam, Solver, WeightIndex
from .stats import StatsPrinter, accuracy, calculate_loss
from .trainer import Trainer, calculate_deltas

__all__ = [
    'Adam',
    'BatchTrainer',
    'Example',
    'Examples',
    'SGD',
    'Solver',
    'StatsPrinter',
    'Trainer',
    'WeightIndex',
    'accuracy',
    'calculate_deltas',
    'calculate_loss',
    'filter_noise',
]
