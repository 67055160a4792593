"""Fresh rule-table generators and point mutation."""

from typing import Optional

from .config import GenerationConfig, MAPPING_V1
from .eca import eca_to_table
from .random_source import RandomSource, as_stream
from .tables import ALL_TURNS, Rule, RuleTable, Turn


# Turn lookup for the CA combinator, indexed by |turn sum| mod 4.
CA_TURNS = (Turn.NO_TURN, Turn.RIGHT, Turn.U_TURN, Turn.LEFT)

# Left/right heavy turn distribution for structured turmites.
STRUCTURED_TURNS = (Turn.LEFT, Turn.RIGHT) * 4 + (Turn.NO_TURN, Turn.U_TURN)


def weighted_count(rng: Optional[RandomSource] = None, minimum: int = 2) -> int:
    """Dimension size: usually minimum..4, occasionally 5-6."""
    rng = as_stream(rng)
    normal_max = 4
    normal_min = min(minimum, normal_max)
    if rng.next() < 0.85:
        return normal_min + rng.randint(normal_max - normal_min + 1)
    rare_min = max(5, minimum)
    return rare_min + rng.randint(2)


def apply_ca_rule(left: Rule, center: Rule, right: Rule, num_colors: int, num_states: int,
                  rng, mutation_chance: float = 0.05) -> Rule:
    """Derive a rule from three predecessor rules, occasionally replaced at random."""
    if rng.next() < mutation_chance:
        return Rule(
            write=rng.randint(num_colors),
            turn=Turn.RIGHT if rng.next() > 0.5 else Turn.LEFT,
            next_state=rng.randint(num_states),
        )

    turn_sum = abs(int(left.turn) + int(center.turn) + int(right.turn))
    color_sum = left.write + center.write + right.write

    # Majority of the outer neighbors, else step past the center.
    if left.next_state == right.next_state:
        next_state = left.next_state
    else:
        next_state = (center.next_state + 1) % num_states

    return Rule(
        write=(color_sum + 1) % num_colors,
        turn=CA_TURNS[turn_sum % 4],
        next_state=next_state % num_states,
    )


def cellular_automata(rng: Optional[RandomSource] = None, num_states: Optional[int] = None,
                      num_colors: Optional[int] = None,
                      config: Optional[GenerationConfig] = None) -> RuleTable:
    """Evolve each state's row from the previous row like a 1D CA over colors."""
    rng = as_stream(rng)
    config = config or GenerationConfig()
    states = max(2, num_states or weighted_count(rng, 2))
    colors = max(2, num_colors or weighted_count(rng, 2))
    table = RuleTable()

    for c in range(colors):
        table.set(0, c, Rule(
            write=(c + 1) % colors,
            turn=Turn.RIGHT if rng.next() > 0.5 else Turn.LEFT,
            next_state=1 if rng.next() > 0.7 else 0,
        ))

    for s in range(1, states):
        for c in range(colors):
            table.set(s, c, apply_ca_rule(
                table.get(s - 1, (c - 1) % colors),
                table.get(s - 1, c),
                table.get(s - 1, (c + 1) % colors),
                colors, states, rng, config.ca_mutation_chance,
            ))

    return table


def sacred_geometry(rng: Optional[RandomSource] = None, num_states: Optional[int] = None,
                    num_colors: Optional[int] = None,
                    config: Optional[GenerationConfig] = None) -> RuleTable:
    """Symmetric table: cyclic states and colors, checkerboard turns."""
    rng = as_stream(rng)
    config = config or GenerationConfig()
    states = num_states or rng.choice(config.sacred_state_options)
    colors = num_colors or rng.choice(config.sacred_color_options)

    def cell(s, c):
        roll = rng.next()
        if roll < config.sacred_stay_chance:
            next_state = s
        elif roll < config.sacred_stay_chance + config.sacred_skip_chance:
            next_state = (s + 2) % states
        else:
            next_state = (s + 1) % states

        turn = Turn.RIGHT if (s + c) % 2 == 0 else Turn.LEFT
        if rng.next() < config.sacred_flip_chance:
            turn = Turn.LEFT if turn == Turn.RIGHT else Turn.RIGHT

        return Rule(write=(c + 1) % colors, turn=turn, next_state=next_state)

    return RuleTable.build(states, colors, cell)


def wolfram_style(rng: Optional[RandomSource] = None, rule_number: Optional[int] = None) -> RuleTable:
    """Direct ECA mapping of a (random) rule number with scheme v1."""
    rng = as_stream(rng)
    if rule_number is None:
        rule_number = rng.randint(256)
    return eca_to_table(rule_number, (), MAPPING_V1)


def structured_turmite(rng: Optional[RandomSource] = None) -> RuleTable:
    """2-4 states and colors with a cyclic state bias and writes that always change color."""
    rng = as_stream(rng)
    states = 2 + rng.randint(3)
    colors = 2 + rng.randint(3)

    def cell(s, c):
        roll = rng.next()
        if roll < 0.7:
            next_state = (s + 1) % states
        elif roll < 0.9:
            next_state = 0
        else:
            next_state = rng.randint(states)
        offset = 1 + rng.randint(colors - 1)
        return Rule(write=(c + offset) % colors, turn=rng.choice(STRUCTURED_TURNS), next_state=next_state)

    return RuleTable.build(states, colors, cell)


def mutate(base: RuleTable, rng: Optional[RandomSource] = None, mutations: int = 1,
           strict: bool = False) -> RuleTable:
    """Apply single-cell mutations to turn, next state or write.

    Turn and write are redrawn until they differ from the current value.
    Strict mode leaves next states alone so the state graph is preserved.
    """
    rng = as_stream(rng)
    table = base.copy()
    states, colors = table.states, table.colors
    if not states or not colors:
        return table

    for _ in range(mutations):
        s = rng.choice(states)
        c = rng.choice(colors)
        rule = table.get(s, c)
        if rule is None:
            continue

        if strict:
            kind = "turn" if rng.next() < 0.5 else "write"
        else:
            kind = rng.choice(("turn", "state", "write"))

        if kind == "turn":
            choices = [t for t in ALL_TURNS if t != rule.turn]
            table.update(s, c, turn=rng.choice(choices))
        elif kind == "state":
            table.update(s, c, next_state=rng.choice(states))
        else:
            choices = [x for x in colors if x != rule.write]
            if choices:
                table.update(s, c, write=rng.choice(choices))

    return table
