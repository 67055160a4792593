"""Gatekeeping for candidate tables: structure, static dynamics, then a simulated run.

The gates run in order and stop at the first failure, so a table that fails
a cheap static check never pays for a simulation. Malformed tables are
reported as failures; nothing here raises for bad input, only for a broken
simulation collaborator.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

import numpy as np
from scipy import ndimage

from .config import ValidationConfig
from .random_source import RandomSource, as_stream
from .simulation import (
    SimulationContractError,
    TurmiteSimulation,
    check_simulation_contract,
    spawn_geometry,
)
from .tables import (
    DynamicsStats,
    RuleTable,
    Turn,
    analyze_rule_set,
    as_rule_table,
    compute_dynamics_stats,
)

logger = logging.getLogger(__name__)

STAGE_STRUCTURAL = "structural"
STAGE_STATIC = "static"
STAGE_SIMULATED = "simulated"
STAGE_ACCEPTED = "accepted"

ALLOWED_TURNS = frozenset(int(t) for t in Turn)


@dataclass(frozen=True)
class SimThresholds:
    """Simulated-gate minimums, scaled by color count."""
    min_changed: int
    min_late_changed: int
    min_tail_changed: int
    min_painted: int
    min_distinct_colors: int
    late_ratio: float
    tail_ratio: float


@dataclass
class SimulationMetrics:
    """Grid activity measured across the validation windows."""
    changed: int = 0
    changed_late: int = 0
    changed_tail: int = 0
    painted: int = 0
    distinct_colors: int = 0
    painted_regions: int = 0
    steps: int = 0

    def to_dict(self) -> Dict:
        return {
            "changed": self.changed,
            "changed_late": self.changed_late,
            "changed_tail": self.changed_tail,
            "painted": self.painted,
            "distinct_colors": self.distinct_colors,
            "painted_regions": self.painted_regions,
            "steps": self.steps,
        }


@dataclass
class GateResult:
    ok: bool
    reason: str = ""
    metrics: Optional[SimulationMetrics] = None
    thresholds: Optional[SimThresholds] = None


@dataclass
class ValidationReport:
    valid: bool
    stage: str
    reason: str = ""
    stats: Optional[DynamicsStats] = None
    metrics: Optional[SimulationMetrics] = None
    thresholds: Optional[SimThresholds] = field(default=None, repr=False)

    def __bool__(self):
        return self.valid


def check_structure(table, config: Optional[ValidationConfig] = None) -> GateResult:
    """Rectangular, closed, varied enough, and large enough. Plain nested mappings are read first."""
    config = config or ValidationConfig()
    table = as_rule_table(table)
    info = analyze_rule_set(table)
    if info is None:
        return GateResult(False, "empty or not a rule table")
    if info.invalid:
        return GateResult(False, "malformed rule entries")

    unknown_turns = info.turn_set - ALLOWED_TURNS
    if unknown_turns:
        return GateResult(False, f"unknown turn values {sorted(unknown_turns)}")

    states = set(info.state_keys)
    colors = set(info.colors)
    for s in info.state_keys:
        row = table.row(s)
        if set(row) != colors:
            return GateResult(False, f"state {s} does not cover every color")
        for c, r in row.items():
            if r.next_state not in states:
                return GateResult(False, f"rule {s}.{c} jumps to unknown state {r.next_state}")
            if r.write not in colors:
                return GateResult(False, f"rule {s}.{c} writes unknown color {r.write}")

    if len(info.turn_set) < config.min_turn_variety:
        return GateResult(False, "insufficient turn variety")
    if len(info.write_set) < config.min_write_variety:
        return GateResult(False, "insufficient write variety")
    if len(states) < config.min_states or len(colors) < config.min_colors:
        return GateResult(False, f"too small ({len(states)} states x {len(colors)} colors)")

    return GateResult(True)


def check_static_dynamics(table: RuleTable, config: Optional[ValidationConfig] = None,
                          stats: Optional[DynamicsStats] = None) -> GateResult:
    """Reject tables that can't start painting, have dead colors, or barely move."""
    config = config or ValidationConfig()
    stats = stats or compute_dynamics_stats(table)
    if stats.total_rules == 0:
        return GateResult(False, "no rules")

    if stats.non_zero_write_from_zero_count == 0:
        return GateResult(False, "no state paints over the background")
    if stats.absorbing_colors:
        return GateResult(False, f"absorbing colors {list(stats.absorbing_colors)}")
    if stats.write_change_ratio < config.min_write_change_ratio:
        return GateResult(False, f"write-change ratio {stats.write_change_ratio:.2f} too low")
    if stats.no_turn_ratio > config.max_no_turn_ratio:
        return GateResult(False, f"no-turn ratio {stats.no_turn_ratio:.2f} too high")
    if stats.self_next_ratio > config.max_self_next_ratio:
        return GateResult(False, f"self-loop ratio {stats.self_next_ratio:.2f} too high")
    if stats.non_zero_write_from_zero_count < min(config.min_bootstrap_states, stats.num_states):
        return GateResult(False, "too few states paint over the background")

    return GateResult(True)


def scaled_thresholds(num_colors: int, config: Optional[ValidationConfig] = None) -> SimThresholds:
    """Activity minimums that grow with the palette, clamped to floors and caps."""
    config = config or ValidationConfig()
    min_changed = max(config.changed_floor, min(config.changed_cap, num_colors * config.changed_per_color))
    return SimThresholds(
        min_changed=min_changed,
        min_late_changed=max(config.late_floor, int(min_changed * config.late_fraction)),
        min_tail_changed=max(config.tail_floor, int(min_changed * config.tail_fraction)),
        min_painted=max(config.painted_floor, min(config.painted_cap, num_colors * config.painted_per_color)),
        min_distinct_colors=min(config.distinct_colors_cap, max(1, (num_colors - 1) // 2)),
        late_ratio=config.late_ratio,
        tail_ratio=config.tail_ratio,
    )


def _grid_snapshot(sim) -> np.ndarray:
    return np.array(sim.grid, copy=True)


def _changed_since(sim, snapshot: np.ndarray) -> int:
    return int(np.count_nonzero(np.asarray(sim.grid) != snapshot))


def _prepare_simulation(table: RuleTable, config: ValidationConfig, simulation_factory):
    if not callable(simulation_factory):
        raise SimulationContractError("simulation factory is not callable")
    sim = simulation_factory(config.grid_width, config.grid_height)
    check_simulation_contract(sim)

    sim.set_rules(table)
    if callable(getattr(sim, "reset", None)):
        sim.reset()
    # Some simulations spawn a default agent on reset.
    if callable(getattr(sim, "clear_agents", None)):
        sim.clear_agents()
    elif isinstance(getattr(sim, "agents", None), list):
        sim.agents.clear()
    if hasattr(sim.grid, "fill"):
        sim.grid.fill(0)
    if hasattr(sim, "step_count"):
        sim.step_count = 0
    return sim


def _finish(sim, metrics: SimulationMetrics) -> SimulationMetrics:
    grid = np.asarray(sim.grid)
    painted = grid != 0
    metrics.painted = int(np.count_nonzero(painted))
    metrics.distinct_colors = int(len(np.unique(grid[painted])))
    _, regions = ndimage.label(painted)
    metrics.painted_regions = int(regions)
    return metrics


def simulate_activity(table: RuleTable, rng: Optional[RandomSource] = None,
                      config: Optional[ValidationConfig] = None,
                      simulation_factory: Callable = TurmiteSimulation,
                      arrangement: Callable = spawn_geometry,
                      strategy: str = "center") -> GateResult:
    """Run the candidate and judge sustained activity across warmup, two windows and a long tail."""
    rng = as_stream(rng)
    config = config or ValidationConfig()
    thresholds = scaled_thresholds(table.num_colors, config)
    sim = _prepare_simulation(table, config, simulation_factory)
    metrics = SimulationMetrics()
    result = GateResult(True, metrics=metrics, thresholds=thresholds)

    for i in range(config.agent_count):
        pos = arrangement(strategy, i, config.agent_count, config.grid_width, config.grid_height)
        sim.add_agent(int(pos["x"]), int(pos["y"]), rng.randint(4))

    sim.update(config.warmup_steps)

    before = _grid_snapshot(sim)
    sim.update(config.window_steps)
    metrics.changed = _changed_since(sim, before)

    before = _grid_snapshot(sim)
    sim.update(config.window_steps)
    metrics.changed_late = _changed_since(sim, before)
    metrics.steps = config.warmup_steps + 2 * config.window_steps
    _finish(sim, metrics)

    if metrics.changed < thresholds.min_changed:
        result.ok, result.reason = False, f"fizzled: {metrics.changed} cells changed"
    elif metrics.changed_late < thresholds.min_late_changed:
        result.ok, result.reason = False, f"froze late: {metrics.changed_late} cells changed"
    elif metrics.changed_late < metrics.changed * thresholds.late_ratio:
        result.ok, result.reason = False, "activity collapsed between windows"
    elif metrics.painted < thresholds.min_painted:
        result.ok, result.reason = False, f"only {metrics.painted} cells painted"
    elif metrics.distinct_colors < thresholds.min_distinct_colors:
        result.ok, result.reason = False, f"only {metrics.distinct_colors} colors on the grid"
    if not result.ok:
        return result

    before = _grid_snapshot(sim)
    sim.update(config.tail_steps)
    metrics.changed_tail = _changed_since(sim, before)
    metrics.steps += config.tail_steps
    _finish(sim, metrics)

    if metrics.changed_tail < thresholds.min_tail_changed:
        result.ok, result.reason = False, f"froze in tail: {metrics.changed_tail} cells changed"
    elif metrics.changed_tail < metrics.changed_late * thresholds.tail_ratio:
        result.ok, result.reason = False, "tail activity collapsed"
    return result


def validate_rules(table, rng: Optional[RandomSource] = None,
                   config: Optional[ValidationConfig] = None,
                   simulation_factory: Callable = TurmiteSimulation,
                   arrangement: Callable = spawn_geometry,
                   strategy: str = "center") -> ValidationReport:
    """Run structural, static-dynamics and simulated gates in order."""
    table = as_rule_table(table)
    config = config or ValidationConfig()

    gate = check_structure(table, config)
    if not gate.ok:
        logger.debug("Rejected at structural gate: %s", gate.reason)
        return ValidationReport(False, STAGE_STRUCTURAL, gate.reason)

    stats = compute_dynamics_stats(table)
    gate = check_static_dynamics(table, config, stats)
    if not gate.ok:
        logger.debug("Rejected at static gate: %s", gate.reason)
        return ValidationReport(False, STAGE_STATIC, gate.reason, stats=stats)

    gate = simulate_activity(table, rng, config, simulation_factory, arrangement, strategy)
    if not gate.ok:
        logger.debug("Rejected at simulated gate: %s", gate.reason)
        return ValidationReport(False, STAGE_SIMULATED, gate.reason, stats=stats,
                                metrics=gate.metrics, thresholds=gate.thresholds)

    return ValidationReport(True, STAGE_ACCEPTED, stats=stats, metrics=gate.metrics,
                            thresholds=gate.thresholds)
