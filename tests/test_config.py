"""Tests for configuration validation and randomization."""

from dataclasses import replace

import pytest

from turmite_discovery.config import (
    DEFAULT_CONFIG,
    ChaosConfig,
    ConfigError,
    DiversifyConfig,
    GenerationConfig,
    PoolConfig,
    SamplerWeights,
    SearchConfig,
    ValidationConfig,
    default_config,
    randomize_config,
    with_overrides,
)
from turmite_discovery.random_source import RandomStream, as_stream, stable_seed


class TestRanges:
    @pytest.mark.parametrize("build", [
        lambda: GenerationConfig(simple_share=1.5),
        lambda: GenerationConfig(simple_share=0.5, pool_share=0.6),
        lambda: GenerationConfig(pool_mutations_by_class=(1, 2, 3)),
        lambda: DiversifyConfig(min_states=9),
        lambda: DiversifyConfig(max_colors=1),
        lambda: PoolConfig(min_colors=1),
        lambda: ValidationConfig(changed_floor=50, changed_cap=10),
        lambda: ValidationConfig(agent_count=0),
        lambda: ValidationConfig(late_ratio=-0.1),
        lambda: SearchConfig(max_attempts=0),
        lambda: SearchConfig(spawn_strategies=()),
        lambda: ChaosConfig(version="2.0"),
    ])
    def test_out_of_range(self, build):
        with pytest.raises(ConfigError):
            build()

    def test_config_error_is_a_value_error(self):
        with pytest.raises(ValueError):
            PoolConfig(target_size=-1)

    def test_defaults(self):
        assert DEFAULT_CONFIG.search.max_attempts == 10
        assert DEFAULT_CONFIG.validation.agent_count == 4
        assert DEFAULT_CONFIG.generation.pool_mutations_by_class == (14, 12, 11, 10)
        assert not DEFAULT_CONFIG.randomized
        assert default_config() is DEFAULT_CONFIG


class TestOverrides:
    def test_returns_new_value(self):
        config = with_overrides(DEFAULT_CONFIG, "search", max_attempts=3)
        assert config.search.max_attempts == 3
        assert DEFAULT_CONFIG.search.max_attempts == 10
        assert config.validation is DEFAULT_CONFIG.validation

    def test_overrides_are_validated(self):
        with pytest.raises(ConfigError):
            with_overrides(DEFAULT_CONFIG, "boost", max_no_turn_ratio=2.0)

    @pytest.mark.parametrize("section", ["nope", "version", "randomized"])
    def test_unknown_section(self, section):
        with pytest.raises(ConfigError):
            with_overrides(DEFAULT_CONFIG, section, value=1)

    def test_sampler_tables_are_read_only(self):
        with pytest.raises(TypeError):
            DEFAULT_CONFIG.sampler.family_multipliers["eca"] = 0.0
        assert "eca" not in DEFAULT_CONFIG.sampler.family_multipliers

    def test_sampler_tables_are_copied(self):
        weights = {1: 0.5, 2: 1.0}
        sampler = SamplerWeights(class_hint_weights=weights)
        weights[1] = 9.0
        assert sampler.class_hint_weights[1] == 0.5
        config = with_overrides(DEFAULT_CONFIG, "sampler", class_hint_weights=weights)
        assert config.sampler.class_hint_weights[1] == 9.0
        assert replace(config.sampler) == config.sampler

    def test_pool_config_is_hashable(self):
        assert hash(PoolConfig()) == hash(PoolConfig())


class TestRandomize:
    def test_new_value_each_time(self):
        config = randomize_config(DEFAULT_CONFIG, RandomStream(1))
        assert config is not DEFAULT_CONFIG
        assert config.randomized
        assert config.validation == DEFAULT_CONFIG.validation
        assert not DEFAULT_CONFIG.randomized

    def test_deterministic(self):
        assert randomize_config(DEFAULT_CONFIG, RandomStream(4)) == randomize_config(DEFAULT_CONFIG, RandomStream(4))

    def test_always_valid(self):
        for seed in range(200):
            config = randomize_config(DEFAULT_CONFIG, RandomStream(seed))
            gen = config.generation
            assert 0.05 <= gen.simple_share <= 0.6
            assert gen.simple_share + gen.pool_share <= 1.0 + 1e-9
            assert config.boost.intensity >= 1


class TestRandomSource:
    def test_stable_seed(self):
        assert stable_seed("pool", 110, "v1") == stable_seed("pool", 110, "v1")
        assert stable_seed("pool", 110, "v1") != stable_seed("pool", 111, "v1")

    def test_stream_is_reproducible(self):
        a, b = RandomStream(42), RandomStream(42)
        assert [a.next() for _ in range(5)] == [b.next() for _ in range(5)]

    def test_randint_range(self):
        rng = RandomStream(0)
        assert {rng.randint(3) for _ in range(200)} == {0, 1, 2}

    def test_any_source_is_adapted(self):
        class Constant:
            def next(self):
                return 0.5

        stream = as_stream(Constant())
        assert stream.randint(10) == 5
        assert stream.choice("abcd") == "c"
        assert not stream.chance(0.5)
