"""Structural operators: grow and shrink tables, enhance seeds, enforce minimum size."""

from typing import Optional

from .config import DiversifyConfig
from .generators import mutate, sacred_geometry, structured_turmite
from .random_source import RandomSource, as_stream
from .tables import ACTIVE_TURNS, ALL_TURNS, Rule, RuleTable, Turn


def add_color(base: RuleTable, rng: Optional[RandomSource] = None,
              promote_chance: float = 0.35) -> RuleTable:
    """Add one color. Every state gets a fresh rule for it; some writes are rerouted to it."""
    rng = as_stream(rng)
    table = base.copy()
    states, colors = table.states, table.colors
    if not states or not colors:
        return table

    new_color = max(colors) + 1
    colors_after = colors + [new_color]

    for s in states:
        table.set(s, new_color, Rule(
            write=rng.choice(colors_after),
            turn=rng.choice(ALL_TURNS),
            next_state=rng.choice(states),
        ))

    for s in states:
        for c in colors:
            if rng.next() < promote_chance:
                table.update(s, c, write=new_color)

    return table


def add_state(base: RuleTable, rng: Optional[RandomSource] = None,
              turn_chance: float = 0.35, self_chance: float = 0.35,
              reroute_chance: float = 0.2) -> RuleTable:
    """Add one state cloned from a template state; at least one transition reaches it."""
    rng = as_stream(rng)
    table = base.copy()
    states, colors = table.states, table.colors
    if not states or not colors:
        return table

    new_state = max(states) + 1
    template = rng.choice(states)

    for c in colors:
        rule = table.get(template, c)
        if rule is None:
            rule = Rule(write=rng.choice(colors), turn=rng.choice(ALL_TURNS), next_state=template)
        turn = rng.choice(ALL_TURNS) if rng.next() < turn_chance else rule.turn
        next_state = new_state if rng.next() < self_chance else rule.next_state
        table.set(new_state, c, Rule(write=rule.write, turn=turn, next_state=next_state))

    reachable = False
    for s in states:
        for c in colors:
            if rng.next() < reroute_chance and not _is_last_way_in(table, s, c):
                table.update(s, c, next_state=new_state)
                reachable = True

    if not reachable:
        spare = [(s, c) for s in states for c in colors if not _is_last_way_in(table, s, c)]
        if spare:
            s, c = rng.choice(spare)
        else:
            s, c = rng.choice(states), rng.choice(colors)
        table.update(s, c, next_state=new_state)

    return table


def _is_last_way_in(table: RuleTable, state: int, color: int) -> bool:
    """True when this cell is the only transition from another state into its target."""
    target = table.get(state, color).next_state
    if target == state:
        return False
    ways_in = sum(1 for s, _, r in table.cells() if r.next_state == target and s != target)
    return ways_in <= 1


def _compact(table: RuleTable) -> RuleTable:
    """Renumber states and colors to 0..n-1, keeping relative order."""
    state_ids = {s: i for i, s in enumerate(table.states)}
    color_ids = {c: i for i, c in enumerate(table.colors)}
    out = RuleTable()
    for s, c, r in table.cells():
        out.set(state_ids[s], color_ids[c], Rule(
            write=color_ids[r.write],
            turn=r.turn,
            next_state=state_ids[r.next_state],
        ))
    return out


def remove_state(base: RuleTable, rng: Optional[RandomSource] = None,
                 state: Optional[int] = None) -> RuleTable:
    """Drop one state, reroute transitions into it, renumber. Single-state tables are returned as is."""
    rng = as_stream(rng)
    table = base.copy()
    states = table.states
    if len(states) < 2:
        return table

    doomed = rng.choice(states) if state is None else state
    remaining = [s for s in states if s != doomed]
    table.delete_state(doomed)
    for s, c, r in list(table.cells()):
        if r.next_state == doomed:
            table.update(s, c, next_state=rng.choice(remaining))

    return _compact(table)


def remove_color(base: RuleTable, rng: Optional[RandomSource] = None,
                 color: Optional[int] = None) -> RuleTable:
    """Drop one color, reroute writes of it, renumber. Two-color tables are returned as is."""
    rng = as_stream(rng)
    table = base.copy()
    colors = table.colors
    if len(colors) < 3:
        return table

    doomed = rng.choice(colors) if color is None else color
    remaining = [c for c in colors if c != doomed]
    table.delete_color(doomed)
    for s, c, r in list(table.cells()):
        if r.write == doomed:
            table.update(s, c, write=rng.choice(remaining))

    return _compact(table)


def guarantee_paint(base: RuleTable, rng: Optional[RandomSource] = None) -> RuleTable:
    """Make sure every state changes the color of at least one cell it reads."""
    rng = as_stream(rng)
    table = base.copy()
    colors = table.colors
    if len(colors) < 2:
        return table

    for s in table.states:
        if any(r.write != c for c, r in table.row(s).items()):
            continue
        c = rng.choice(colors)
        table.update(s, c, write=rng.choice([x for x in colors if x != c]))

    return table


def enforce_bootstrap(base: RuleTable, rng: Optional[RandomSource] = None) -> RuleTable:
    """Every state's color-0 rule writes a non-zero color and turns, so a blank grid starts painting."""
    rng = as_stream(rng)
    table = base.copy()
    non_zero = [c for c in table.colors if c != 0]
    if not non_zero:
        return table

    for s in table.states:
        r0 = table.get(s, 0)
        if r0 is None:
            continue
        write = r0.write if r0.write != 0 else rng.choice(non_zero)
        turn = r0.turn if r0.turn != Turn.NO_TURN else rng.choice(ACTIVE_TURNS)
        table.update(s, 0, write=write, turn=turn)

    return table


def enhance_structure(base: RuleTable, rng: RandomSource, target_states: int = 2,
                      target_colors: int = 2, mutations: int = 1) -> RuleTable:
    """Deterministically enrich a seed table.

    Grows colors, then states, up to the targets; guarantees each state
    paints; applies `mutations` point mutations; enforces the blank-grid
    bootstrap. Every draw comes from `rng`, so the same seed gives the same
    table.
    """
    rng = as_stream(rng)
    table = base.copy()

    while 0 < table.num_colors < target_colors:
        table = add_color(table, rng, promote_chance=0.5)
    while 0 < table.num_states < target_states:
        table = add_state(table, rng)

    table = guarantee_paint(table, rng)
    table = mutate(table, rng, mutations)
    return enforce_bootstrap(table, rng)


def diversify_structure(base: RuleTable, rng: Optional[RandomSource] = None,
                        config: Optional[DiversifyConfig] = None, *,
                        max_states: Optional[int] = None, max_colors: Optional[int] = None,
                        add_state_chance: Optional[float] = None,
                        add_color_chance: Optional[float] = None,
                        promote_chance: Optional[float] = None,
                        force_add: bool = False) -> RuleTable:
    """Maybe add a color and/or a state, each with its own probability, within the maxima."""
    rng = as_stream(rng)
    config = config or DiversifyConfig()
    max_states = config.max_states if max_states is None else max_states
    max_colors = config.max_colors if max_colors is None else max_colors
    add_state_chance = config.add_state_chance if add_state_chance is None else add_state_chance
    add_color_chance = config.add_color_chance if add_color_chance is None else add_color_chance
    promote_chance = config.promote_new_color_chance if promote_chance is None else promote_chance

    table = base.copy()
    if table.num_states == 0 or table.num_colors == 0:
        return table

    # Colors first: they widen the paint space.
    if table.num_colors < max_colors and (force_add or rng.next() < add_color_chance):
        table = add_color(table, rng, promote_chance)

    if table.num_states < max_states and (force_add or rng.next() < add_state_chance):
        table = add_state(
            table, rng,
            turn_chance=config.new_state_turn_chance,
            self_chance=config.new_state_self_chance,
            reroute_chance=config.reroute_to_new_state_chance,
        )

    return table


def ensure_min_dimensions(base: RuleTable, rng: Optional[RandomSource] = None,
                          config: Optional[DiversifyConfig] = None, *,
                          min_states: Optional[int] = None, min_colors: Optional[int] = None,
                          max_passes: Optional[int] = None) -> RuleTable:
    """Force growth until the minimum state/color counts are met or passes run out."""
    rng = as_stream(rng)
    config = config or DiversifyConfig()
    min_states = config.min_states if min_states is None else min_states
    min_colors = config.min_colors if min_colors is None else min_colors
    max_passes = config.max_passes if max_passes is None else max_passes

    table = base.copy()
    for _ in range(max_passes):
        if table.num_states >= min_states and table.num_colors >= min_colors:
            break
        table = diversify_structure(
            table, rng, config,
            add_state_chance=1.0,
            add_color_chance=1.0,
            promote_chance=config.forced_promote_chance,
            force_add=True,
        )
    return table


def structural_mutation(base: RuleTable, rng: Optional[RandomSource] = None,
                        max_mutations: Optional[int] = None) -> RuleTable:
    """One structural edit (10% each: add/remove state, add/remove color), else point mutations.

    Point mutations number 1..max_mutations, or 2..10 by default; a budget of
    exactly one mutation runs in strict mode.
    """
    rng = as_stream(rng)
    roll = rng.next()

    if roll < 0.10:
        return add_state(base, rng, turn_chance=0.5, self_chance=0.0, reroute_chance=0.0)
    if roll < 0.20:
        return add_color(base, rng, promote_chance=0.0)
    if roll < 0.30 and base.num_states > 2:
        return remove_state(base, rng)
    if roll < 0.40 and base.num_colors > 2:
        return remove_color(base, rng)

    return _point_mutations(base, rng, max_mutations)


def _point_mutations(base: RuleTable, rng, max_mutations: Optional[int]) -> RuleTable:
    if max_mutations is not None:
        count = 1 + rng.randint(max_mutations)
    else:
        count = 2 + rng.randint(9)
    return mutate(base, rng, count, strict=max_mutations == 1)


def random_rules(rng: Optional[RandomSource] = None, base: Optional[RuleTable] = None,
                 max_mutations: Optional[int] = None,
                 allow_structure_change: bool = False) -> RuleTable:
    """A variant of `base`, or a fresh table when there is no base.

    Variants get point mutations, or a structural edit as well when
    `allow_structure_change` is set. Fresh tables are sacred geometry 70% of
    the time and structured turmites otherwise. Nothing is boosted or
    validated here.
    """
    rng = as_stream(rng)
    if base is None:
        if rng.next() < 0.7:
            return sacred_geometry(rng)
        return structured_turmite(rng)
    if allow_structure_change:
        return structural_mutation(base, rng, max_mutations)
    return _point_mutations(base, rng, max_mutations)
