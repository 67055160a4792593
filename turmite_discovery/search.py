"""Generate-validate-retry loop producing displayable turmite rule tables."""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from .booster import boost_rule_activity
from .config import DEFAULT_CONFIG, ChaosConfig, randomize_config
from .generators import cellular_automata, mutate, sacred_geometry, wolfram_style
from .presets import PRESETS, Preset, mutation_presets
from .random_source import RandomSource, RandomStream, as_stream
from .sampler import SeedSampler
from .seed_pool import MAPPING_TAGS, SeedMeta, SeedPoolEntry, get_seed_pool
from .simulation import TurmiteSimulation, spawn_geometry
from .structure import diversify_structure, ensure_min_dimensions, random_rules
from .tables import RuleTable
from .validation import ValidationReport, validate_rules

logger = logging.getLogger(__name__)

STRATEGY_SIMPLE = "simple"
STRATEGY_POOL = "pool"
STRATEGY_PRESET = "preset"
STRATEGY_MUTATION = "mutation"

SIMPLE_GENERATORS = ("cellular_automata", "sacred_geometry", "wolfram_style")


@dataclass
class Origin:
    """Where a candidate came from, for caller-side labeling."""
    kind: str  # "generator", "pool", "preset" or "fallback"
    generator: Optional[str] = None
    seed_id: Optional[str] = None
    meta: Optional[SeedMeta] = None
    preset_name: Optional[str] = None

    def label(self) -> Optional[str]:
        if self.kind == "preset":
            return self.preset_name
        if self.kind == "pool" and self.meta is not None:
            parts = [self.meta.family, f"ECA {self.meta.eca_rule}"]
            tag = MAPPING_TAGS.get(self.meta.mapping)
            if tag:
                parts.append(tag)
            return " ".join(parts)
        if self.kind == "pool":
            return self.seed_id
        return self.generator

    def to_dict(self) -> Dict:
        return {
            "kind": self.kind,
            "generator": self.generator,
            "seed_id": self.seed_id,
            "meta": self.meta.to_dict() if self.meta else None,
            "preset_name": self.preset_name,
        }


@dataclass
class Candidate:
    rules: RuleTable
    origin: Origin


@dataclass
class SearchResult:
    """Outcome of the retry loop. `warning` is set when no attempt validated."""
    rules: RuleTable
    origin: Origin
    valid: bool
    attempts: int
    report: ValidationReport
    warning: bool = False
    history: List[Tuple[int, str, str]] = field(default_factory=list)  # (attempt, stage, reason)


class RuleSearch:
    """Picks a generation strategy, refines the candidate, validates, and retries."""

    def __init__(
        self,
        config: Optional[ChaosConfig] = None,
        presets: Optional[Dict[str, Preset]] = None,
        seed: Optional[int] = None,
        rng: Optional[RandomSource] = None,
        simulation_factory: Callable = TurmiteSimulation,
        arrangement: Callable = spawn_geometry,
        pool: Optional[Tuple[SeedPoolEntry, ...]] = None,
    ):
        self.config = config or DEFAULT_CONFIG
        self.rng = as_stream(rng) if rng is not None else RandomStream(seed)
        self.presets = mutation_presets(PRESETS if presets is None else presets)
        self.simulation_factory = simulation_factory
        self.arrangement = arrangement
        self._pool = pool
        self._pool_supplied = pool is not None
        self._sampler: Optional[SeedSampler] = None

    @property
    def pool(self) -> Tuple[SeedPoolEntry, ...]:
        if self._pool is None:
            self._pool = get_seed_pool(self.config.pool)
        return self._pool

    @property
    def sampler(self) -> SeedSampler:
        if self._sampler is None:
            self._sampler = SeedSampler(self.pool, self.config.sampler)
        return self._sampler

    def set_config(self, config: ChaosConfig):
        """Swap the whole configuration; cached sampling tables are rebuilt on next use."""
        if not self._pool_supplied and config.pool != self.config.pool:
            self._pool = None
        self.config = config
        self._sampler = None

    def randomize_config(self) -> ChaosConfig:
        self.set_config(randomize_config(self.config, self.rng))
        return self.config

    # -- generation -------------------------------------------------------

    def _refine(self, table: RuleTable, intensity: int, structure_chance: float,
                ensure_min_chance: float) -> RuleTable:
        rng, div = self.rng, self.config.diversify
        if rng.next() < structure_chance:
            table = diversify_structure(table, rng, div)
        if rng.next() < ensure_min_chance:
            table = ensure_min_dimensions(table, rng, div, max_passes=div.partial_passes)
        return boost_rule_activity(table, rng, self.config.boost, intensity)

    def _simple(self, name: Optional[str] = None) -> Candidate:
        gen = self.config.generation
        if name is None:
            r = self.rng.next()
            if r < gen.ca_share:
                name = "cellular_automata"
            elif r < gen.ca_share + gen.sacred_share:
                name = "sacred_geometry"
            else:
                name = "wolfram_style"

        if name == "cellular_automata":
            table = cellular_automata(self.rng, config=gen)
        elif name == "sacred_geometry":
            table = sacred_geometry(self.rng, config=gen)
        else:
            table = wolfram_style(self.rng)

        div = self.config.diversify
        table = self._refine(table, self.config.boost.intensity,
                             div.pool_structure_chance, div.pool_ensure_min_chance)
        return Candidate(table, Origin("generator", generator=name))

    def _fallback(self) -> Candidate:
        table = boost_rule_activity(wolfram_style(self.rng), self.rng, self.config.boost)
        return Candidate(table, Origin("fallback", generator="wolfram_style"))

    def _from_seed(self, entry: SeedPoolEntry) -> Candidate:
        rng, gen, div = self.rng, self.config.generation, self.config.diversify
        class_hint = entry.meta.class_hint if entry.meta else 2
        mutations = gen.pool_mutations_by_class[min(4, max(1, class_hint)) - 1]

        table = entry.rules
        # Pool seeds are mostly 2x2; those almost always get expanded.
        small = table.num_states <= 2 and table.num_colors <= 2
        if small:
            structure_chance = div.pool_forced_structure_chance
        elif class_hint >= 3:
            structure_chance = div.pool_structure_chance_high_class
        else:
            structure_chance = div.pool_structure_chance

        if rng.next() < structure_chance:
            high = class_hint >= 3
            table = diversify_structure(
                table, rng, div,
                add_state_chance=div.pool_add_state_chance_high_class if high else div.pool_add_state_chance,
                add_color_chance=div.pool_add_color_chance_high_class if high else div.pool_add_color_chance,
                promote_chance=div.pool_promote_chance,
                force_add=small,
            )
            if small and rng.next() < div.second_expand_chance:
                table = diversify_structure(
                    table, rng, div,
                    add_state_chance=div.second_expand_add_state_chance,
                    add_color_chance=div.second_expand_add_color_chance,
                    promote_chance=div.second_expand_promote_chance,
                )

        if small:
            table = ensure_min_dimensions(table, rng, div)
        elif rng.next() < div.pool_ensure_min_chance:
            table = ensure_min_dimensions(table, rng, div, max_passes=div.partial_passes)

        table = mutate(table, rng, mutations)
        table = boost_rule_activity(table, rng, self.config.boost, gen.pool_boost_intensity)
        return Candidate(table, Origin("pool", seed_id=entry.id, meta=entry.meta))

    def _from_pool(self) -> Candidate:
        entry = self.sampler.pick(self.rng)
        if entry is None:
            logger.debug("Seed pool empty, using fallback generator")
            return self._fallback()
        return self._from_seed(entry)

    def _from_preset(self) -> Candidate:
        if not self.presets:
            return self._fallback()
        rng, gen, div = self.rng, self.config.generation, self.config.diversify
        name = rng.choice(sorted(self.presets))
        table = self.presets[name].rules

        if rng.next() < div.preset_structure_chance:
            table = diversify_structure(
                table, rng, div,
                add_state_chance=div.preset_add_state_chance,
                add_color_chance=div.preset_add_color_chance,
                promote_chance=div.preset_promote_chance,
            )
        if rng.next() < div.preset_ensure_min_chance:
            table = ensure_min_dimensions(table, rng, div, max_passes=div.partial_passes)

        table = mutate(table, rng, gen.preset_mutations)
        table = boost_rule_activity(table, rng, self.config.boost, gen.preset_boost_intensity)
        return Candidate(table, Origin("preset", preset_name=name))

    def _mutation(self) -> Candidate:
        """Structural or point mutation of a random preset; a fresh table without presets."""
        rng = self.rng
        if not self.presets:
            table = random_rules(rng)
            origin = Origin("generator", generator="random_rules")
        else:
            name = rng.choice(sorted(self.presets))
            table = random_rules(rng, self.presets[name].rules, allow_structure_change=True)
            origin = Origin("preset", generator="structural_mutation", preset_name=name)
        table = boost_rule_activity(table, rng, self.config.boost)
        return Candidate(table, origin)

    def generate_with_origin(self, strategy: Optional[str] = None,
                             seed_entry: Optional[SeedPoolEntry] = None) -> Candidate:
        """One refined candidate plus where it came from.

        `strategy` forces "simple", "pool", "preset", "mutation" or a simple
        generator name; `seed_entry` forces a specific pool seed. "mutation"
        is never picked at random.
        """
        if seed_entry is not None:
            return self._from_seed(seed_entry)

        if strategy is None:
            gen = self.config.generation
            roll = self.rng.next()
            if roll < gen.simple_share:
                strategy = STRATEGY_SIMPLE
            elif roll < gen.simple_share + gen.pool_share:
                strategy = STRATEGY_POOL
            else:
                strategy = STRATEGY_PRESET

        if strategy == STRATEGY_SIMPLE:
            return self._simple()
        if strategy in SIMPLE_GENERATORS:
            return self._simple(strategy)
        if strategy == STRATEGY_POOL:
            return self._from_pool()
        if strategy == STRATEGY_PRESET:
            return self._from_preset()
        if strategy == STRATEGY_MUTATION:
            return self._mutation()
        raise ValueError(f"Unknown generation strategy {strategy!r}")

    # -- validation -------------------------------------------------------

    def validate(self, table: RuleTable, spawn_strategy: Optional[str] = None) -> ValidationReport:
        spawn_strategy = spawn_strategy or self.rng.choice(self.config.search.spawn_strategies)
        return validate_rules(
            table, self.rng, self.config.validation,
            self.simulation_factory, self.arrangement, spawn_strategy,
        )

    def run(self, max_attempts: Optional[int] = None, strategy: Optional[str] = None,
            seed_entry: Optional[SeedPoolEntry] = None) -> SearchResult:
        """Generate and validate until a candidate passes or attempts run out.

        On exhaustion the last candidate is returned anyway with `warning`
        set, so callers always have something to show.
        """
        max_attempts = max_attempts or self.config.search.max_attempts
        history: List[Tuple[int, str, str]] = []
        candidate = report = None

        for attempt in range(1, max_attempts + 1):
            candidate = self.generate_with_origin(strategy, seed_entry)
            report = self.validate(candidate.rules)
            history.append((attempt, report.stage, report.reason))
            if report.valid:
                logger.info("Valid rules on attempt %d (%s)", attempt, candidate.origin.label())
                return SearchResult(candidate.rules, candidate.origin, True, attempt, report,
                                    history=history)
            logger.debug("Attempt %d failed at %s gate: %s", attempt, report.stage, report.reason)

        logger.warning("No valid rules after %d attempts, using last candidate", max_attempts)
        return SearchResult(candidate.rules, candidate.origin, False, max_attempts, report,
                            warning=True, history=history)


def generate_rules(config: Optional[ChaosConfig] = None, seed: Optional[int] = None,
                   max_attempts: Optional[int] = None, **kwargs) -> SearchResult:
    """Convenience wrapper: one RuleSearch, one run."""
    return RuleSearch(config=config, seed=seed, **kwargs).run(max_attempts)
