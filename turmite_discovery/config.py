"""Tunable probabilities and thresholds for generation, boosting and validation.

Every section is a frozen dataclass. Ranges are checked on construction, so
an invalid configuration can't exist. Changing anything means building a new
value (`with_overrides`, `randomize_config`); nothing is mutated in place.
"""

from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Tuple

from .random_source import RandomSource, as_stream

CONFIG_VERSION = "1.0"

# Slack for share sums built as x + (1 - x).
_EPS = 1e-9

MAPPING_V1 = "eca8bit_to_turmite_v1"
MAPPING_V2 = "eca8bit_to_turmite_v2"
MAPPING_STREAM = "eca_stream_to_turmite_2s3c_v1"
MAPPING_DERIVED = "derived"

SPAWN_STRATEGIES = (
    "center", "line", "vertical", "cross", "diamond", "ring", "grid3", "diagonal", "corners",
)


class ConfigError(ValueError):
    """A configuration field is outside its documented range."""


def _check(section: str, name: str, value, lo, hi=None):
    if value < lo or (hi is not None and value > hi):
        bound = f"[{lo}, {hi}]" if hi is not None else f">= {lo}"
        raise ConfigError(f"{section}.{name}={value!r} outside {bound}")


def _check_probabilities(section: str, obj, names):
    for name in names:
        _check(section, name, getattr(obj, name), 0.0, 1.0)


@dataclass(frozen=True)
class GenerationConfig:
    """Strategy splits and mutation strengths for candidate generation."""
    simple_share: float = 0.20  # [0,1] fresh generators
    pool_share: float = 0.70  # [0,1] seed pool; remainder goes to presets
    ca_share: float = 0.5  # [0,1] within simple: CA-evolved
    sacred_share: float = 0.3  # [0,1] within simple: symmetric; remainder direct ECA
    ca_mutation_chance: float = 0.05  # [0,1] per-cell random replacement
    sacred_flip_chance: float = 0.05  # [0,1]
    sacred_stay_chance: float = 0.1  # [0,1]
    sacred_skip_chance: float = 0.1  # [0,1]
    sacred_state_options: Tuple[int, ...] = (2, 3, 5, 7)
    sacred_color_options: Tuple[int, ...] = (2, 3, 4)
    pool_mutations_by_class: Tuple[int, int, int, int] = (14, 12, 11, 10)  # class hint 1..4
    preset_mutations: int = 10  # >= 0
    pool_boost_intensity: int = 12  # >= 0
    preset_boost_intensity: int = 10  # >= 0

    def __post_init__(self):
        _check_probabilities("generation", self, (
            "simple_share", "pool_share", "ca_share", "sacred_share", "ca_mutation_chance",
            "sacred_flip_chance", "sacred_stay_chance", "sacred_skip_chance",
        ))
        if self.simple_share + self.pool_share > 1.0 + _EPS:
            raise ConfigError("generation.simple_share + pool_share must not exceed 1")
        if self.ca_share + self.sacred_share > 1.0 + _EPS:
            raise ConfigError("generation.ca_share + sacred_share must not exceed 1")
        if self.sacred_stay_chance + self.sacred_skip_chance > 1.0 + _EPS:
            raise ConfigError("generation.sacred_stay_chance + sacred_skip_chance must not exceed 1")
        if not self.sacred_state_options or min(self.sacred_state_options) < 1:
            raise ConfigError("generation.sacred_state_options needs positive counts")
        if not self.sacred_color_options or min(self.sacred_color_options) < 2:
            raise ConfigError("generation.sacred_color_options needs counts >= 2")
        if len(self.pool_mutations_by_class) != 4 or min(self.pool_mutations_by_class) < 0:
            raise ConfigError("generation.pool_mutations_by_class needs four non-negative counts")
        for name in ("preset_mutations", "pool_boost_intensity", "preset_boost_intensity"):
            _check("generation", name, getattr(self, name), 0)


@dataclass(frozen=True)
class DiversifyConfig:
    """Dimension growth: chances, bounds and pass budgets."""
    max_states: int = 7  # [1, 16]
    max_colors: int = 7  # [2, 16]
    min_states: int = 3  # [1, max_states]
    min_colors: int = 3  # [2, max_colors]
    max_passes: int = 4  # >= 0, ensure_min_dimensions budget for forced runs
    partial_passes: int = 2  # >= 0, budget for optional runs
    add_state_chance: float = 0.45
    add_color_chance: float = 0.55
    promote_new_color_chance: float = 0.35
    forced_promote_chance: float = 0.6
    new_state_turn_chance: float = 0.35
    new_state_self_chance: float = 0.35
    reroute_to_new_state_chance: float = 0.2
    pool_structure_chance: float = 0.8
    pool_structure_chance_high_class: float = 0.7
    pool_forced_structure_chance: float = 0.92
    pool_add_state_chance: float = 0.55
    pool_add_state_chance_high_class: float = 0.45
    pool_add_color_chance: float = 0.9
    pool_add_color_chance_high_class: float = 0.8
    pool_promote_chance: float = 0.55
    second_expand_chance: float = 0.35
    second_expand_add_state_chance: float = 0.35
    second_expand_add_color_chance: float = 0.75
    second_expand_promote_chance: float = 0.35
    pool_ensure_min_chance: float = 0.55
    preset_structure_chance: float = 0.6
    preset_add_state_chance: float = 0.35
    preset_add_color_chance: float = 0.65
    preset_promote_chance: float = 0.4
    preset_ensure_min_chance: float = 0.8

    def __post_init__(self):
        _check("diversify", "max_states", self.max_states, 1, 16)
        _check("diversify", "max_colors", self.max_colors, 2, 16)
        _check("diversify", "min_states", self.min_states, 1, self.max_states)
        _check("diversify", "min_colors", self.min_colors, 2, self.max_colors)
        _check("diversify", "max_passes", self.max_passes, 0)
        _check("diversify", "partial_passes", self.partial_passes, 0)
        _check_probabilities("diversify", self, (
            "add_state_chance", "add_color_chance", "promote_new_color_chance",
            "forced_promote_chance", "new_state_turn_chance", "new_state_self_chance",
            "reroute_to_new_state_chance", "pool_structure_chance",
            "pool_structure_chance_high_class", "pool_forced_structure_chance",
            "pool_add_state_chance", "pool_add_state_chance_high_class", "pool_add_color_chance",
            "pool_add_color_chance_high_class", "pool_promote_chance", "second_expand_chance",
            "second_expand_add_state_chance", "second_expand_add_color_chance",
            "second_expand_promote_chance", "pool_ensure_min_chance", "preset_structure_chance",
            "preset_add_state_chance", "preset_add_color_chance", "preset_promote_chance",
            "preset_ensure_min_chance",
        ))


@dataclass(frozen=True)
class PoolConfig:
    """Seed pool construction. Hashable: it keys the pool cache."""
    name: str = "eca-seed-pool"
    target_size: int = 6144  # >= 0; top-up with derived entries below this (256 rules x 8 transforms x 3 mappings)
    min_states: int = 2  # [1, 8] enhancer floor
    min_colors: int = 2  # [2, 8] enhancer floor
    enhancer_mutations: int = 1  # [0, 32]

    def __post_init__(self):
        _check("pool", "target_size", self.target_size, 0)
        _check("pool", "min_states", self.min_states, 1, 8)
        _check("pool", "min_colors", self.min_colors, 2, 8)
        _check("pool", "enhancer_mutations", self.enhancer_mutations, 0, 32)


def _default_family_multipliers() -> Dict[str, float]:
    return {"traffic": 1.25, "multicolor": 1.15, "derived": 0.5}


def _default_mapping_multipliers() -> Dict[str, float]:
    return {MAPPING_V1: 1.0, MAPPING_V2: 1.1, MAPPING_DERIVED: 0.5}


def _default_class_hint_weights() -> Dict[int, float]:
    return {1: 0.35, 2: 1.0, 3: 1.6, 4: 2.0}


def _default_entry_family_multipliers() -> Dict[str, float]:
    return {"traffic": 1.25, "derived": 0.5}


@dataclass(frozen=True)
class SamplerWeights:
    """Bucket and entry weights for seed pool sampling. Missing keys weigh 1.

    The tables are copied into read-only mappings on construction.
    """
    family_multipliers: Mapping[str, float] = field(default_factory=_default_family_multipliers)
    mapping_multipliers: Mapping[str, float] = field(default_factory=_default_mapping_multipliers)
    class_hint_weights: Mapping[int, float] = field(default_factory=_default_class_hint_weights)
    entry_family_multipliers: Mapping[str, float] = field(default_factory=_default_entry_family_multipliers)

    def __post_init__(self):
        for table_name in ("family_multipliers", "mapping_multipliers",
                           "class_hint_weights", "entry_family_multipliers"):
            table = dict(getattr(self, table_name))
            for key, value in table.items():
                _check("sampler", f"{table_name}[{key}]", value, 0.0)
            object.__setattr__(self, table_name, MappingProxyType(table))


@dataclass(frozen=True)
class BoostConfig:
    """Activity booster repairs."""
    intensity: int = 10  # >= 0 cells nudged per pass
    max_no_turn_ratio: float = 0.55
    min_write_change_ratio: float = 0.22
    max_passes: int = 3  # >= 0
    strong_flow_self_ratio: float = 0.85
    per_state_min_external: int = 1  # >= 0
    strong_per_state_min_external: int = 2  # >= 0
    flow_turn_chance: float = 0.75
    flow_write_chance: float = 0.5
    nudge_write_chance: float = 0.6
    nudge_turn_chance: float = 0.75
    nudge_state_chance: float = 0.4

    def __post_init__(self):
        _check("boost", "intensity", self.intensity, 0)
        _check("boost", "max_passes", self.max_passes, 0)
        _check("boost", "per_state_min_external", self.per_state_min_external, 0)
        _check("boost", "strong_per_state_min_external", self.strong_per_state_min_external, 0)
        _check_probabilities("boost", self, (
            "max_no_turn_ratio", "min_write_change_ratio", "strong_flow_self_ratio",
            "flow_turn_chance", "flow_write_chance", "nudge_write_chance",
            "nudge_turn_chance", "nudge_state_chance",
        ))


@dataclass(frozen=True)
class ValidationConfig:
    """Structural, static and simulated gate thresholds."""
    min_states: int = 1  # >= 1
    min_colors: int = 2  # >= 1
    min_turn_variety: int = 2  # [1, 4]
    min_write_variety: int = 2  # >= 1
    min_write_change_ratio: float = 0.22
    max_no_turn_ratio: float = 0.68
    max_self_next_ratio: float = 0.92
    min_bootstrap_states: int = 2  # capped by the table's state count
    grid_width: int = 240  # >= 8
    grid_height: int = 150  # >= 8
    agent_count: int = 4  # [1, 64]
    warmup_steps: int = 800  # >= 0
    window_steps: int = 2000  # >= 1
    tail_steps: int = 9000  # >= 1
    changed_per_color: int = 10
    changed_floor: int = 12
    changed_cap: int = 300
    painted_per_color: int = 30
    painted_floor: int = 40
    painted_cap: int = 800
    late_floor: int = 10
    late_fraction: float = 0.55  # of the changed minimum
    late_ratio: float = 0.25  # late / first window
    tail_floor: int = 10
    tail_fraction: float = 0.5  # of the changed minimum
    tail_ratio: float = 0.2  # tail / late window
    distinct_colors_cap: int = 4  # >= 1

    def __post_init__(self):
        _check("validation", "min_states", self.min_states, 1)
        _check("validation", "min_colors", self.min_colors, 1)
        _check("validation", "min_turn_variety", self.min_turn_variety, 1, 4)
        _check("validation", "min_write_variety", self.min_write_variety, 1)
        _check("validation", "min_bootstrap_states", self.min_bootstrap_states, 0)
        _check("validation", "grid_width", self.grid_width, 8)
        _check("validation", "grid_height", self.grid_height, 8)
        _check("validation", "agent_count", self.agent_count, 1, 64)
        _check("validation", "warmup_steps", self.warmup_steps, 0)
        _check("validation", "window_steps", self.window_steps, 1)
        _check("validation", "tail_steps", self.tail_steps, 1)
        for name in ("changed_per_color", "changed_floor", "painted_per_color",
                     "painted_floor", "late_floor", "tail_floor"):
            _check("validation", name, getattr(self, name), 0)
        _check("validation", "changed_cap", self.changed_cap, self.changed_floor)
        _check("validation", "painted_cap", self.painted_cap, self.painted_floor)
        _check("validation", "distinct_colors_cap", self.distinct_colors_cap, 1)
        _check_probabilities("validation", self, (
            "min_write_change_ratio", "max_no_turn_ratio", "max_self_next_ratio",
            "late_fraction", "late_ratio", "tail_fraction", "tail_ratio",
        ))


@dataclass(frozen=True)
class SearchConfig:
    max_attempts: int = 10  # [1, 1000]
    spawn_strategies: Tuple[str, ...] = SPAWN_STRATEGIES

    def __post_init__(self):
        _check("search", "max_attempts", self.max_attempts, 1, 1000)
        if not self.spawn_strategies:
            raise ConfigError("search.spawn_strategies must not be empty")


@dataclass(frozen=True)
class ChaosConfig:
    """Complete engine configuration."""
    version: str = CONFIG_VERSION
    generation: GenerationConfig = field(default_factory=GenerationConfig)
    diversify: DiversifyConfig = field(default_factory=DiversifyConfig)
    pool: PoolConfig = field(default_factory=PoolConfig)
    sampler: SamplerWeights = field(default_factory=SamplerWeights)
    boost: BoostConfig = field(default_factory=BoostConfig)
    validation: ValidationConfig = field(default_factory=ValidationConfig)
    search: SearchConfig = field(default_factory=SearchConfig)
    randomized: bool = False

    def __post_init__(self):
        if self.version != CONFIG_VERSION:
            raise ConfigError(f"unsupported config version {self.version!r}")


DEFAULT_CONFIG = ChaosConfig()


def default_config() -> ChaosConfig:
    return DEFAULT_CONFIG


def with_overrides(config: ChaosConfig, section: str, **changes) -> ChaosConfig:
    """Return a copy of config with fields of one section replaced."""
    if not hasattr(config, section) or section in ("version", "randomized"):
        raise ConfigError(f"unknown config section {section!r}")
    new_section = replace(getattr(config, section), **changes)
    return replace(config, **{section: new_section})


def _jitter(rng, value: float, spread: float, lo: float = 0.0, hi: float = 1.0) -> float:
    return min(hi, max(lo, value + (rng.next() * 2 - 1) * spread))


def randomize_config(config: Optional[ChaosConfig] = None, rng: Optional[RandomSource] = None) -> ChaosConfig:
    """Build a perturbed copy of config: generation and structure chances are jittered.

    Validation thresholds are left alone so a randomized config accepts the
    same kind of tables.
    """
    config = config or DEFAULT_CONFIG
    rng = as_stream(rng)
    gen = config.generation
    div = config.diversify

    simple = _jitter(rng, gen.simple_share, 0.15, 0.05, 0.6)
    pool = _jitter(rng, gen.pool_share, 0.2, 0.1, 1.0 - simple)
    ca = _jitter(rng, gen.ca_share, 0.2, 0.0, 0.8)
    sacred = _jitter(rng, gen.sacred_share, 0.2, 0.0, 1.0 - ca)

    generation = replace(
        gen,
        simple_share=simple,
        pool_share=pool,
        ca_share=ca,
        sacred_share=sacred,
        ca_mutation_chance=_jitter(rng, gen.ca_mutation_chance, 0.05),
        sacred_flip_chance=_jitter(rng, gen.sacred_flip_chance, 0.1),
        preset_mutations=max(1, gen.preset_mutations + rng.randint(9) - 4),
        pool_boost_intensity=max(1, gen.pool_boost_intensity + rng.randint(9) - 4),
    )
    diversify = replace(
        div,
        add_state_chance=_jitter(rng, div.add_state_chance, 0.25),
        add_color_chance=_jitter(rng, div.add_color_chance, 0.25),
        promote_new_color_chance=_jitter(rng, div.promote_new_color_chance, 0.2),
        reroute_to_new_state_chance=_jitter(rng, div.reroute_to_new_state_chance, 0.15),
        second_expand_chance=_jitter(rng, div.second_expand_chance, 0.3),
    )
    boost = replace(
        config.boost,
        intensity=max(1, config.boost.intensity + rng.randint(11) - 5),
        nudge_turn_chance=_jitter(rng, config.boost.nudge_turn_chance, 0.2),
    )
    return replace(config, generation=generation, diversify=diversify, boost=boost, randomized=True)
