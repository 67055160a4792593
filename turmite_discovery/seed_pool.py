"""Precomputed pool of seed tables derived from all 256 ECA rules.

Built once per PoolConfig and cached for the life of the process. The build
is fully deterministic: every random draw comes from a stream seeded by a
stable hash of the entry's identity.
"""

import logging
from collections import Counter
from dataclasses import dataclass
from functools import lru_cache
from typing import Dict, List, Optional, Tuple

from .config import MAPPING_DERIVED, PoolConfig
from .eca import (
    MAPPINGS,
    TRANSFORM_COMBINATIONS,
    apply_transforms,
    classify_rule,
    family_for,
    map_bits,
    rule_to_bits,
)
from .random_source import RandomStream, stable_seed
from .structure import enhance_structure
from .tables import RuleTable, Turn

logger = logging.getLogger(__name__)

FLIPPED_TURNS = {
    Turn.LEFT: Turn.RIGHT,
    Turn.RIGHT: Turn.LEFT,
    Turn.U_TURN: Turn.NO_TURN,
    Turn.NO_TURN: Turn.U_TURN,
}

MAPPING_TAGS = {
    "eca8bit_to_turmite_v1": "v1",
    "eca8bit_to_turmite_v2": "v2",
    "eca_stream_to_turmite_2s3c_v1": "3c",
    MAPPING_DERIVED: "derived",
}


@dataclass(frozen=True)
class SeedMeta:
    family: str
    eca_rule: int
    transforms: Tuple[str, ...]
    mapping: str
    class_hint: int

    def to_dict(self) -> Dict:
        return {
            "family": self.family,
            "eca_rule": self.eca_rule,
            "transforms": list(self.transforms),
            "mapping": self.mapping,
            "class_hint": self.class_hint,
        }


@dataclass(frozen=True)
class SeedPoolEntry:
    """One pool seed. Treat `rules` as read-only; operators always copy."""
    id: str
    label: str
    meta: SeedMeta
    rules: RuleTable


def _transform_tag(transforms: Tuple[str, ...]) -> str:
    return "+".join(transforms) if transforms else "id"


def _make_entry(pool_name: str, rule: int, bits, transforms, mapping: str,
                config: PoolConfig) -> SeedPoolEntry:
    tag = _transform_tag(transforms)
    rng = RandomStream(stable_seed(pool_name, rule, mapping, tag))
    raw = map_bits(bits, mapping)
    rules = enhance_structure(raw, rng, config.min_states, config.min_colors, config.enhancer_mutations)
    meta = SeedMeta(
        family=family_for(rule, mapping),
        eca_rule=rule,
        transforms=transforms,
        mapping=mapping,
        class_hint=classify_rule(rule, bits),
    )
    return SeedPoolEntry(
        id=f"eca{rule:03d}:{MAPPING_TAGS.get(mapping, mapping)}:{tag}",
        label=f"ECA {rule} {MAPPING_TAGS.get(mapping, mapping)} ({tag})",
        meta=meta,
        rules=rules,
    )


def _derive_entry(pool_name: str, index: int, source: SeedPoolEntry) -> SeedPoolEntry:
    """Clone a seed and flip the turn of one cell picked by a separately seeded stream."""
    rng = RandomStream(stable_seed(pool_name, "derived", index))
    rules = source.rules.copy()
    s = rng.choice(rules.states)
    c = rng.choice(rules.colors)
    old = rules.get(s, c)
    rules.update(s, c, turn=FLIPPED_TURNS.get(old.turn, Turn.RIGHT))

    meta = SeedMeta(
        family="derived",
        eca_rule=source.meta.eca_rule,
        transforms=source.meta.transforms,
        mapping=MAPPING_DERIVED,
        class_hint=source.meta.class_hint,
    )
    return SeedPoolEntry(
        id=f"derived{index:05d}:{source.id}",
        label=f"{source.label} / flip {s}.{c}",
        meta=meta,
        rules=rules,
    )


def build_base_entries(config: Optional[PoolConfig] = None) -> List[SeedPoolEntry]:
    """Every rule x distinct transformed bit string x mapping, before any top-up."""
    config = config or PoolConfig()
    entries: List[SeedPoolEntry] = []

    for rule in range(256):
        bits = rule_to_bits(rule)
        seen = set()
        for transforms in TRANSFORM_COMBINATIONS:
            transformed = apply_transforms(bits, transforms)
            if transformed in seen:
                continue
            seen.add(transformed)
            for mapping in MAPPINGS:
                entries.append(_make_entry(config.name, rule, transformed, transforms, mapping, config))

    return entries


def build_seed_pool(config: Optional[PoolConfig] = None) -> Tuple[SeedPoolEntry, ...]:
    """Build the full pool, topping up with derived entries to the target size."""
    config = config or PoolConfig()
    entries = build_base_entries(config)
    base_count = len(entries)

    index = 0
    while base_count and len(entries) < config.target_size:
        entries.append(_derive_entry(config.name, index, entries[index % base_count]))
        index += 1

    logger.debug("Built seed pool %r: %d base + %d derived entries", config.name, base_count, index)
    return tuple(entries)


@lru_cache(maxsize=4)
def get_seed_pool(config: PoolConfig = PoolConfig()) -> Tuple[SeedPoolEntry, ...]:
    """Cached pool for a configuration."""
    return build_seed_pool(config)


def pool_summary(entries) -> Dict[str, Dict[str, int]]:
    """Entry counts by family, mapping and class hint."""
    return {
        "family": dict(Counter(e.meta.family for e in entries)),
        "mapping": dict(Counter(e.meta.mapping for e in entries)),
        "class_hint": dict(Counter(e.meta.class_hint for e in entries)),
    }
