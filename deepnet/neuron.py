"""
neuron.py
~~~~~~~~~

Neurons and the synapses connecting them.
"""

from typing import List, Optional

from .activation import ActivationType, CustomActivation, get_activation


class Synapse:
    """
    A weighted edge feeding one downstream neuron.

    ``input`` and ``output`` hold the values of the most recent forward pass.
    Bias synapses always receive an input of 1.
    """

    def __init__(self, weight: float, is_bias: bool = False):
        self.weight = weight
        self.input = 0.0
        self.output = 0.0
        self.is_bias = is_bias

    def fire(self, value: float) -> None:
        self.input = value
        self.output = value * self.weight

    def __repr__(self) -> str:
        return f"Synapse(weight={self.weight:.4f}, is_bias={self.is_bias})"


class Neuron:
    """
    A network node.

    Attributes:
        activation_type: Tag shared with the rest of the layer
        activation: Activation state owned by this neuron
        incoming: Synapses feeding this neuron, bias synapse last
        outgoing: Synapses of the next layer fed by this neuron; index k
            belongs to neuron k of that layer
        value: Output of the most recent forward pass
    """

    def __init__(
        self,
        activation_type: ActivationType,
        custom: Optional[CustomActivation] = None
    ):
        self.activation_type = activation_type
        self.activation = get_activation(activation_type, custom)
        self.incoming: List[Synapse] = []
        self.outgoing: List[Synapse] = []
        self.value = 0.0

    def fire(self, training: bool) -> None:
        """Sum the incoming synapses and activate, without propagating."""
        total = 0.0
        for synapse in self.incoming:
            total += synapse.output
        self.value = self.activate(total, training)

    def propagate(self) -> None:
        """Feed the current value into every outgoing synapse."""
        value = self.value
        for synapse in self.outgoing:
            synapse.fire(value)

    def activate(self, x: float, training: bool = False) -> float:
        return self.activation.f(x, training)

    def d_activate(self, y: float) -> float:
        return self.activation.df(y)
