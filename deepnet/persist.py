"""
persist.py
~~~~~~~~~~

JSON dump and restore of networks.

A dump holds the configuration and the weights. Weight initializers and
custom activation strategies are code, not data, and are not part of the
dump; pass them back in through ``from_dump`` when needed. Significance and
shift vectors are not persisted either.
"""

import json
import logging
from typing import Any, Dict, Optional

from .activation import ActivationType, CustomActivation, Mode
from .loss import LossType
from .network import Config, Network
from .weights import WeightInitializer

logger = logging.getLogger(__name__)


def config_to_dict(config: Config) -> Dict[str, Any]:
    return {
        'inputs': config.inputs,
        'layout': list(config.layout),
        'activation': [a.name.lower() for a in config.activation],
        'mode': config.mode.name.lower(),
        'loss': config.loss.name.lower(),
        'bias': config.bias,
    }


def config_from_dict(
    data: Dict[str, Any],
    weight: Optional[WeightInitializer] = None,
    custom: Optional[CustomActivation] = None
) -> Config:
    """
    Rebuild a Config from its dictionary form.

    Enum fields accept either their lower-case name or their integer value.

    Raises:
        KeyError: If a required field or an enum name is unknown
        ValueError: If the values do not describe a valid network
    """
    activation = data.get('activation', ActivationType.SIGMOID.name.lower())
    if isinstance(activation, (list, tuple)):
        activation = [_enum(ActivationType, a) for a in activation]
    else:
        activation = _enum(ActivationType, activation)

    return Config(
        inputs=int(data['inputs']),
        layout=[int(width) for width in data['layout']],
        activation=activation,
        mode=_enum(Mode, data.get('mode', Mode.DEFAULT)),
        loss=_enum(LossType, data.get('loss', LossType.NONE)),
        weight=weight,
        bias=bool(data.get('bias', True)),
        custom=custom,
    )


def _enum(cls, value):
    if isinstance(value, str):
        return cls[value.upper()]
    return cls(value)


def dump(network: Network) -> Dict[str, Any]:
    """Return a JSON-serializable dump of the network."""
    return {
        'config': config_to_dict(network.config),
        'weights': network.weights(),
    }


def from_dump(
    data: Dict[str, Any],
    weight: Optional[WeightInitializer] = None,
    custom: Optional[CustomActivation] = None
) -> Network:
    """Build a network from a dump and load its weights."""
    network = Network(config_from_dict(data['config'], weight=weight, custom=custom))
    network.apply_weights(data['weights'])
    return network


def marshal(network: Network) -> bytes:
    """Serialize a network to UTF-8 encoded JSON."""
    return json.dumps(dump(network)).encode('utf-8')


def unmarshal(blob: bytes, custom: Optional[CustomActivation] = None) -> Network:
    """
    Restore a network from the output of :func:`marshal`.

    Raises:
        json.JSONDecodeError: If the blob is not valid JSON
        KeyError, ValueError: If the dump is incomplete or inconsistent
    """
    data = json.loads(blob)
    network = from_dump(data, custom=custom)
    logger.debug(f"Unmarshalled network with layout {list(network.config.layout)}")
    return network
