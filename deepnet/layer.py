"""
layer.py
~~~~~~~~

A layer is an ordered group of neurons sharing one activation.
"""

from typing import List, Optional

from .activation import ActivationType, CustomActivation
from .neuron import Neuron, Synapse
from .util import softmax
from .weights import WeightInitializer


class Layer:
    def __init__(
        self,
        width: int,
        activation: ActivationType,
        custom: Optional[CustomActivation] = None
    ):
        self.activation = activation
        self.neurons: List[Neuron] = [
            Neuron(activation, custom) for _ in range(width)
        ]

    def connect(self, next_layer: 'Layer', weight: WeightInitializer) -> None:
        """Fully connect this layer to the next one."""
        for neuron in self.neurons:
            for target in next_layer.neurons:
                synapse = Synapse(weight())
                neuron.outgoing.append(synapse)
                target.incoming.append(synapse)

    def apply_bias(self, weight: WeightInitializer) -> List[Synapse]:
        """Append one trainable bias synapse to every neuron and return them."""
        biases = []
        for neuron in self.neurons:
            synapse = Synapse(weight(), is_bias=True)
            neuron.incoming.append(synapse)
            biases.append(synapse)
        return biases

    def fire(self, training: bool) -> None:
        for neuron in self.neurons:
            neuron.fire(training)

        if self.activation == ActivationType.SOFTMAX:
            normalized = softmax([neuron.value for neuron in self.neurons])
            for neuron, value in zip(self.neurons, normalized):
                neuron.value = float(value)

        for neuron in self.neurons:
            neuron.propagate()

    def values(self) -> List[float]:
        return [neuron.value for neuron in self.neurons]

    def __len__(self) -> int:
        return len(self.neurons)

    def __repr__(self) -> str:
        weights = [[round(s.weight, 4) for s in n.incoming] for n in self.neurons]
        return f"Layer({self.activation.name.lower()}, {weights})"
