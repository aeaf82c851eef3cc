"""
deepnet package
~~~~~~~~~~~~~~~

Feed-forward neural network engine: topology construction, forward
inference, backpropagation with pluggable activations, losses and solvers,
sequential and parallel mini-batch training, model persistence and a REST
service.
"""

from .activation import ActivationType, CustomActivation, Mode
from .loss import LossType
from .network import Config, InputDimensionError, Network
from .weights import new_normal, new_uniform

__version__ = "1.0.0"

__all__ = [
    'ActivationType',
    'Config',
    'CustomActivation',
    'InputDimensionError',
    'LossType',
    'Mode',
    'Network',
    'new_normal',
    'new_uniform',
]
