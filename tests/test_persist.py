"""
test_persist.py
~~~~~~~~~~~~~~~

Tests for the JSON dump format.
"""

import json

import pytest

from deepnet import ActivationType, Config, CustomActivation, LossType, Mode, Network
from deepnet.persist import config_from_dict, config_to_dict, dump, from_dump, marshal, unmarshal


@pytest.mark.unit
class TestConfigDict:

    def test_names_are_lower_case(self):
        config = Config(inputs=3, layout=[4, 2], activation=ActivationType.RELU, mode=Mode.MULTI_CLASS)
        data = config_to_dict(config)

        assert data == {
            'inputs': 3,
            'layout': [4, 2],
            'activation': ['relu', 'softmax'],
            'mode': 'multi_class',
            'loss': 'cross_entropy',
            'bias': True,
        }

    def test_round_trip(self):
        config = Config(
            inputs=2,
            layout=[5, 3, 1],
            activation=[ActivationType.TANH, ActivationType.MISH, ActivationType.LINEAR],
            mode=Mode.DEFAULT,
            loss=LossType.MEAN_SQUARED,
            bias=False
        )
        assert config_from_dict(config_to_dict(config)) == config

    def test_accepts_integer_tags(self):
        config = config_from_dict({'inputs': 2, 'layout': [1], 'activation': 1, 'mode': 3})
        assert config.activation == (ActivationType.SIGMOID,)
        assert config.mode == Mode.BINARY
        assert config.loss == LossType.BINARY_CROSS_ENTROPY

    def test_defaults(self):
        config = config_from_dict({'inputs': 2, 'layout': [3, 1]})
        assert config.activation == (ActivationType.SIGMOID, ActivationType.SIGMOID)
        assert config.mode == Mode.DEFAULT
        assert config.bias is True

    def test_unknown_name(self):
        with pytest.raises(KeyError):
            config_from_dict({'inputs': 2, 'layout': [1], 'activation': 'gelu'})

    def test_missing_field(self):
        with pytest.raises(KeyError):
            config_from_dict({'layout': [1]})


@pytest.mark.unit
class TestDump:

    def test_dump_is_json_serializable(self, simple_network):
        data = json.loads(json.dumps(dump(simple_network)))
        assert data['weights'] == simple_network.weights()

    def test_marshal_round_trip(self, simple_network):
        restored = unmarshal(marshal(simple_network))

        assert restored.config == simple_network.config
        assert restored.weights() == simple_network.weights()
        assert restored.predict([0.5, -0.5, 1.0]) == simple_network.predict([0.5, -0.5, 1.0])

    def test_marshal_is_utf8_json(self, simple_network):
        blob = marshal(simple_network)
        assert isinstance(blob, bytes)
        assert set(json.loads(blob.decode('utf-8'))) == {'config', 'weights'}

    def test_regression_network_round_trip(self):
        net = Network(Config(inputs=2, layout=[3, 1], mode=Mode.REGRESSION))
        restored = unmarshal(marshal(net))
        assert restored.shape() == net.shape()
        assert restored.weights() == net.weights()

    def test_custom_strategy_is_passed_back_in(self):
        custom = CustomActivation(f=lambda x: 3.0 * x, df=lambda y, x: 3.0)
        net = Network(Config(inputs=1, layout=[1], activation=ActivationType.CUSTOM, bias=False, custom=custom))
        net.apply_weights([[[1.0]]])

        restored = from_dump(dump(net), custom=custom)
        assert restored.predict([2.0]) == pytest.approx([6.0])

    def test_significance_and_shift_are_not_persisted(self, simple_network):
        simple_network.significance[0] = 0.0
        restored = unmarshal(marshal(simple_network))
        assert restored.significance[0] == 1.0

    def test_inconsistent_weights(self, simple_network):
        data = dump(simple_network)
        data['weights'][0].pop()
        with pytest.raises(ValueError):
            from_dump(data)

    def test_invalid_blob(self):
        with pytest.raises(json.JSONDecodeError):
            unmarshal(b'not json')
