"""
Tests for cachebench.utils module.

Tests cover:
- CBJsonEncoder custom JSON encoding
- flatten_nested_dict
"""

import json

import numpy as np
import pytest

from cachebench.config import Distribution, HarnessConfig, OutcomeCategory
from cachebench.utils import CBJsonEncoder, flatten_nested_dict


class TestCBJsonEncoder:
    """Tests for CBJsonEncoder custom JSON encoder."""

    def test_encodes_basic_types(self):
        """Encoder handles basic types unchanged."""
        data = {'int': 42, 'float': 3.5, 'str': 'x', 'list': [1, 2], 'dict': {'nested': True}}
        assert json.loads(json.dumps(data, cls=CBJsonEncoder)) == data

    def test_encodes_set_sorted(self):
        assert json.dumps({'s': {'json', 'csv'}}, cls=CBJsonEncoder) == '{"s": ["csv", "json"]}'

    def test_encodes_enum_as_value(self):
        data = {'d': Distribution.GAUSSIAN, 'c': OutcomeCategory.GET_HIT}
        assert json.loads(json.dumps(data, cls=CBJsonEncoder)) == {'d': 'gaussian', 'c': 'get_hit'}

    def test_encodes_numpy(self):
        data = {'i': np.int64(3), 'f': np.float64(0.5), 'a': np.arange(3)}
        assert json.loads(json.dumps(data, cls=CBJsonEncoder)) == {'i': 3, 'f': 0.5, 'a': [0, 1, 2]}

    def test_uses_as_dict(self):
        config = HarnessConfig(elements_per_thread=3)
        data = json.loads(json.dumps({'config': config}, cls=CBJsonEncoder))
        assert data['config']['elements_per_thread'] == 3
        assert data['config']['distribution'] == 'gaussian'

    def test_falls_back_to_dict_attribute(self):
        class Plain:
            def __init__(self):
                self.a = 1

        assert json.loads(json.dumps(Plain(), cls=CBJsonEncoder)) == {'a': 1}

    def test_unserializable_raises(self):
        with pytest.raises(TypeError):
            json.dumps(object(), cls=CBJsonEncoder)


class TestFlattenNestedDict:

    def test_flattens(self):
        nested = {'a': 1, 'b': {'c': 2, 'd': {'e': 3}}}
        assert flatten_nested_dict(nested) == {'a': 1, 'b.c': 2, 'b.d.e': 3}

    def test_custom_separator(self):
        assert flatten_nested_dict({'a': {'b': 1}}, separator='_') == {'a_b': 1}

    def test_empty(self):
        assert flatten_nested_dict({}) == {}
