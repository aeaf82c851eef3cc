"""
network.py
~~~~~~~~~~

Fully connected feed-forward network.

A network is built from a :class:`Config` and is made of layers of neurons
joined by synapses. Inputs are shifted and scaled per feature
(``(x + shift) * significance``) before entering the first layer; both vectors
start neutral and are only changed by the noise filtering search.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np

from .activation import ActivationType, CustomActivation, Mode, output_activation
from .layer import Layer
from .loss import LossType, default_loss
from .neuron import Synapse
from .weights import WeightInitializer, new_uniform

logger = logging.getLogger(__name__)

Weights = List[List[List[float]]]


class InputDimensionError(ValueError):
    """Raised when a forward pass receives the wrong number of inputs."""


@dataclass(frozen=True)
class Config:
    """
    Network topology, activations and training semantics.

    Attributes:
        inputs: Number of input features
        layout: Width of every layer; ``(5, 3, 3)`` is two hidden layers of
            5 and 3 neurons followed by an output layer of 3
        activation: One activation for every layer, or one per layer. The
            output layer activation is replaced by the mode's canonical one
            unless the mode is ``Mode.DEFAULT``
        mode: Inference mode
        loss: Loss function; derived from ``mode`` when ``LossType.NONE``
        weight: Weight initializer, ``new_uniform(0.5, 0)`` by default
        bias: Whether to add bias synapses
        custom: Strategy used by ``ActivationType.CUSTOM`` neurons
    """

    inputs: int
    layout: Sequence[int]
    activation: Union[ActivationType, Sequence[ActivationType]] = ActivationType.SIGMOID
    mode: Mode = Mode.DEFAULT
    loss: LossType = LossType.NONE
    weight: Optional[WeightInitializer] = field(default=None, compare=False, repr=False)
    bias: bool = True
    custom: Optional[CustomActivation] = field(default=None, compare=False, repr=False)

    def __post_init__(self) -> None:
        if self.inputs <= 0:
            raise ValueError(f"inputs must be positive, got {self.inputs}")
        layout = tuple(int(width) for width in self.layout)
        if not layout:
            raise ValueError("layout must contain at least one layer")
        if any(width <= 0 for width in layout):
            raise ValueError(f"layer widths must be positive, got {list(layout)}")

        mode = Mode(self.mode)
        if isinstance(self.activation, (int, ActivationType)):
            activations = (ActivationType(self.activation),) * len(layout)
        else:
            activations = tuple(ActivationType(a) for a in self.activation)
            if len(activations) == len(layout) - 1 and mode != Mode.DEFAULT:
                activations += (output_activation(mode),)
            if len(activations) != len(layout):
                raise ValueError(
                    f"expected {len(layout)} activations, got {len(activations)}"
                )

        loss = LossType(self.loss)
        if loss == LossType.NONE:
            loss = default_loss(mode)

        # frozen dataclass: normalized values are written through object
        object.__setattr__(self, 'layout', layout)
        object.__setattr__(self, 'activation', activations)
        object.__setattr__(self, 'mode', mode)
        object.__setattr__(self, 'loss', loss)
        if self.weight is None:
            object.__setattr__(self, 'weight', new_uniform(0.5, 0))

    def layer_activation(self, index: int) -> ActivationType:
        """Activation assigned to the layer at ``index``."""
        if index == len(self.layout) - 1 and self.mode != Mode.DEFAULT:
            return output_activation(self.mode)
        return self.activation[index]


class Network:
    """
    A neural network.

    Attributes:
        config: The configuration the network was built from
        layers: Layers in forward order
        biases: Bias synapses per layer (empty list where a layer has none)
        significance: Per-input scale factor
        shift: Per-input offset
    """

    def __init__(self, config: Config):
        self.config = config
        self.layers = _initialize_layers(config)

        self.biases: List[List[Synapse]] = []
        if config.bias:
            for i, layer in enumerate(self.layers):
                if config.mode == Mode.REGRESSION and i == len(self.layers) - 1:
                    self.biases.append([])
                else:
                    self.biases.append(layer.apply_bias(config.weight))

        self.significance = np.ones(config.inputs)
        self.shift = np.zeros(config.inputs)

        logger.debug(
            f"Built network: inputs={config.inputs}, layout={list(config.layout)}, "
            f"weights={self.num_weights()}"
        )

    def forward(self, inputs: Sequence[float], training: bool = False) -> None:
        """
        Compute a forward pass.

        Args:
            inputs: Feature vector of length ``config.inputs``
            training: Lets activations record what their derivative needs

        Raises:
            InputDimensionError: If the input has the wrong length
        """
        if len(inputs) != self.config.inputs:
            raise InputDimensionError(
                f"Invalid input dimension - expected: {self.config.inputs} "
                f"got: {len(inputs)}"
            )

        values = ((np.asarray(inputs, dtype=float) + self.shift) * self.significance).tolist()
        for neuron in self.layers[0].neurons:
            for synapse, x in zip(neuron.incoming, values):
                synapse.fire(x)

        for biases in self.biases:
            for synapse in biases:
                synapse.fire(1.0)

        for layer in self.layers:
            layer.fire(training)

    def predict(self, inputs: Sequence[float]) -> List[float]:
        """Forward ``inputs`` and return the output layer values."""
        self.forward(inputs, training=False)
        return self.layers[-1].values()

    def num_weights(self) -> int:
        return sum(len(n.incoming) for layer in self.layers for n in layer.neurons)

    def shape(self) -> List[Tuple[int, int]]:
        """(neurons, incoming synapses per neuron) for every layer."""
        return [(len(layer.neurons), len(layer.neurons[0].incoming)) for layer in self.layers]

    def weights(self) -> Weights:
        """Copy of all weights indexed as [layer][neuron][synapse]."""
        return [
            [[synapse.weight for synapse in neuron.incoming] for neuron in layer.neurons]
            for layer in self.layers
        ]

    def apply_weights(self, weights: Sequence[Sequence[Sequence[float]]]) -> None:
        """
        Overwrite all weights from a [layer][neuron][synapse] structure.

        Raises:
            ValueError: If the structure does not match the topology
        """
        if len(weights) != len(self.layers):
            raise ValueError(
                f"expected weights for {len(self.layers)} layers, got {len(weights)}"
            )
        for i, (layer, layer_weights) in enumerate(zip(self.layers, weights)):
            if len(layer_weights) != len(layer.neurons):
                raise ValueError(f"layer {i}: expected {len(layer.neurons)} neurons")
            for neuron, neuron_weights in zip(layer.neurons, layer_weights):
                if len(neuron_weights) != len(neuron.incoming):
                    raise ValueError(
                        f"layer {i}: expected {len(neuron.incoming)} synapses per neuron"
                    )
                for synapse, weight in zip(neuron.incoming, neuron_weights):
                    synapse.weight = float(weight)

    def __repr__(self) -> str:
        return '\n'.join(repr(layer) for layer in self.layers)


def _initialize_layers(config: Config) -> List[Layer]:
    layers = [
        Layer(width, config.layer_activation(i), config.custom)
        for i, width in enumerate(config.layout)
    ]

    for current, following in zip(layers, layers[1:]):
        current.connect(following, config.weight)

    for neuron in layers[0].neurons:
        neuron.incoming = [Synapse(config.weight()) for _ in range(config.inputs)]

    return layers
