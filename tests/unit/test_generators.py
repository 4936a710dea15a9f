"""
Tests for key and value generators in cachebench.generators module.

Tests cover:
- KeyGenerator identity mapping and domain bounds
- KeySampler draws staying inside [0, N) for any distribution parameters
- Reproducibility of seeded sampling
- ValueGenerator payload size and determinism
"""

import numpy as np
import pytest

from cachebench.config import Distribution, HarnessConfig
from cachebench.errors import ConfigurationError, GeneratorExhaustion
from cachebench.generators import KeyGenerator, KeySampler, ValueGenerator, build_generators


class TestKeyGenerator:

    def test_identity_mapping(self):
        keys = KeyGenerator(10)
        assert [keys.key_at(i) for i in range(10)] == list(range(10))

    def test_deterministic(self):
        keys = KeyGenerator(10)
        assert keys.key_at(7) == keys.key_at(7)

    def test_index_at_domain_size_raises(self):
        with pytest.raises(GeneratorExhaustion) as exc_info:
            KeyGenerator(10).key_at(10)
        assert exc_info.value.index == 10

    def test_negative_index_raises(self):
        with pytest.raises(GeneratorExhaustion):
            KeyGenerator(10).key_at(-1)

    @pytest.mark.parametrize("size", [0, -5, 2.5])
    def test_invalid_domain(self, size):
        with pytest.raises(ConfigurationError):
            KeyGenerator(size)

    def test_len(self):
        assert len(KeyGenerator(42)) == 42


class TestKeySampler:

    @pytest.mark.parametrize("mean,stdev", [
        (50, 10),
        (0, 1000),
        (-500, 5),
        (10_000, 5),
        (50, 0),
    ])
    def test_gaussian_draws_stay_in_domain(self, mean, stdev):
        sampler = KeySampler(100, Distribution.GAUSSIAN, mean=mean, stdev=stdev, seed=1)
        keys = sampler.sample_keys(5000)
        assert keys.min() >= 0
        assert keys.max() <= 99
        assert all(0 <= sampler.sample_key() < 100 for _ in range(200))

    def test_uniform_draws_stay_in_domain(self):
        sampler = KeySampler(10, Distribution.UNIFORM, seed=3)
        keys = sampler.sample_keys(2000)
        assert set(keys.tolist()) <= set(range(10))
        assert len(set(keys.tolist())) == 10

    def test_single_key_domain(self):
        sampler = KeySampler(1, seed=0)
        assert set(sampler.sample_keys(100).tolist()) == {0}

    def test_default_parameters(self):
        sampler = KeySampler(1000)
        assert sampler.mean == 500
        assert sampler.stdev == 100

    def test_clamp(self):
        sampler = KeySampler(10)
        assert sampler.clamp(-3.2) == 0
        assert sampler.clamp(4.9) == 4
        assert sampler.clamp(10.0) == 9
        assert sampler.clamp(1e9) == 9

    def test_draws_concentrate_around_mean(self):
        sampler = KeySampler(1000, mean=500, stdev=10, seed=5)
        keys = sampler.sample_keys(2000)
        assert abs(float(np.mean(keys)) - 500) < 5

    def test_seeded_worker_rngs_are_reproducible(self):
        sampler = KeySampler(1000, seed=11)
        first = sampler.sample_keys(50, sampler.spawn_rng(0)).tolist()
        second = sampler.sample_keys(50, sampler.spawn_rng(0)).tolist()
        assert first == second

    def test_worker_rngs_are_independent(self):
        sampler = KeySampler(1_000_000, seed=11)
        first = sampler.sample_keys(50, sampler.spawn_rng(0)).tolist()
        second = sampler.sample_keys(50, sampler.spawn_rng(1)).tolist()
        assert first != second

    def test_negative_stdev_rejected(self):
        with pytest.raises(ConfigurationError):
            KeySampler(10, stdev=-1)

    def test_sample_keys_dtype(self):
        keys = KeySampler(10, seed=0).sample_keys(5)
        assert keys.dtype == np.int64
        assert len(keys) == 5


class TestValueGenerator:

    def test_payload_size(self):
        values = ValueGenerator(4096, seed=1)
        assert len(values.value_for(0)) == 4096
        assert len(values.value_for(99_999)) == 4096

    def test_deterministic_and_distinct(self):
        values = ValueGenerator(16, seed=1)
        assert values.value_for(5) == values.value_for(5)
        assert values.value_for(5) != values.value_for(6)

    def test_index_prefix(self):
        value = ValueGenerator(16).value_for(5)
        assert int.from_bytes(value[:8], "little") == 5

    def test_small_payloads_are_truncated(self):
        assert ValueGenerator(3).value_for(1) == b"\x01\x00\x00"

    def test_zero_size_payload(self):
        assert ValueGenerator(0).value_for(12) == b""

    def test_negative_size_rejected(self):
        with pytest.raises(ConfigurationError):
            ValueGenerator(-1)

    def test_values_are_bytes(self):
        assert isinstance(ValueGenerator(16).value_for(1), bytes)


def test_build_generators_uses_config():
    config = HarnessConfig(elements_per_thread=10, load_concurrency=2, payload_size_bytes=16,
                           distribution="uniform", seed=9)
    keys, sampler, values = build_generators(config)
    assert keys.domain_size == 20
    assert sampler.domain_size == 20
    assert sampler.distribution == Distribution.UNIFORM
    assert values.payload_size_bytes == 16
