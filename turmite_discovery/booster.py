"""Heuristic repairs that push a table toward sustained activity."""

import logging
from typing import Optional

from .config import BoostConfig
from .random_source import RandomSource, as_stream
from .structure import enforce_bootstrap
from .tables import ACTIVE_TURNS, RuleTable, compute_dynamics_stats

logger = logging.getLogger(__name__)


def ensure_state_flow(base: RuleTable, rng: Optional[RandomSource] = None,
                      per_state_min_external: int = 1,
                      turn_chance: float = 0.75, write_chance: float = 0.5) -> RuleTable:
    """Give each state at least `per_state_min_external` transitions to other states.

    A deficient state gets one randomly chosen cell redirected elsewhere,
    optionally with a new active turn and a new write.
    """
    rng = as_stream(rng)
    table = base.copy()
    states, colors = table.states, table.colors
    if len(states) < 2 or not colors:
        return table

    for s in states:
        external = sum(1 for c in colors if table.get(s, c).next_state != s)
        if external >= per_state_min_external:
            continue

        c = rng.choice(colors)
        table.update(s, c, next_state=rng.choice([x for x in states if x != s]))
        if rng.next() < turn_chance:
            table.update(s, c, turn=rng.choice(ACTIVE_TURNS))
        if rng.next() < write_chance and len(colors) > 1:
            table.update(s, c, write=rng.choice([x for x in colors if x != c]))

    return table


def break_absorbing_colors(base: RuleTable, rng: Optional[RandomSource] = None) -> RuleTable:
    """Rewrite one cell per absorbing color so that color can be painted over."""
    rng = as_stream(rng)
    table = base.copy()
    states, colors = table.states, table.colors
    if len(colors) < 2:
        return table

    for c in compute_dynamics_stats(table).absorbing_colors:
        s = rng.choice(states)
        table.update(s, c, write=rng.choice([x for x in colors if x != c]), turn=rng.choice(ACTIVE_TURNS))

    return table


def boost_rule_activity(base: RuleTable, rng: Optional[RandomSource] = None,
                        config: Optional[BoostConfig] = None,
                        intensity: Optional[int] = None) -> RuleTable:
    """Force a minimum of dynamism: state flow, bootstrap, no absorbing colors, enough turns and writes."""
    rng = as_stream(rng)
    config = config or BoostConfig()
    intensity = config.intensity if intensity is None else intensity

    table = base.copy()
    states, colors = table.states, table.colors
    if not states or not colors:
        return table

    table = ensure_state_flow(
        table, rng, config.per_state_min_external, config.flow_turn_chance, config.flow_write_chance
    )
    table = enforce_bootstrap(table, rng)
    table = break_absorbing_colors(table, rng)

    stats = compute_dynamics_stats(table)
    passes = 0
    while passes < config.max_passes and stats.total_rules > 0:
        if stats.no_turn_ratio <= config.max_no_turn_ratio and \
                stats.write_change_ratio >= config.min_write_change_ratio:
            break

        for _ in range(intensity):
            s = rng.choice(states)
            c = rng.choice(colors)
            rule = table.get(s, c)
            if rng.next() < config.nudge_write_chance:
                choices = [x for x in colors if x != c]
                if choices:
                    table.update(s, c, write=rng.choice(choices))
            if rng.next() < config.nudge_turn_chance:
                table.update(s, c, turn=rng.choice(ACTIVE_TURNS))
            if rng.next() < config.nudge_state_chance and len(states) > 1:
                table.update(s, c, next_state=rng.choice([x for x in states if x != rule.next_state]))

        stats = compute_dynamics_stats(table)
        passes += 1

    if stats.total_rules > 0 and stats.self_next_ratio > config.strong_flow_self_ratio:
        logger.debug("Self-loop ratio %.2f still high, applying strong state flow", stats.self_next_ratio)
        table = ensure_state_flow(
            table, rng, config.strong_per_state_min_external,
            config.flow_turn_chance, config.flow_write_chance,
        )

    return table
