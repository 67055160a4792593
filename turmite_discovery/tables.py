"""Rule tables for turmites: (state, color) -> (write, turn, next state)."""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, Iterator, List, Mapping, Optional, Set, Tuple


class Turn(IntEnum):
    """Relative turn applied after writing. Values take part in CA arithmetic."""
    LEFT = -1
    NO_TURN = 0
    RIGHT = 1
    U_TURN = 2


ALL_TURNS = (Turn.LEFT, Turn.RIGHT, Turn.U_TURN, Turn.NO_TURN)
ACTIVE_TURNS = (Turn.LEFT, Turn.RIGHT, Turn.U_TURN)


def _coerce_int(value):
    try:
        return int(value)
    except (TypeError, ValueError):
        return value


def _coerce_turn(value):
    """Map a raw turn value to Turn, keeping unknown values so validation can reject them."""
    value = _coerce_int(value)
    try:
        return Turn(value)
    except ValueError:
        return value


@dataclass(frozen=True)
class Rule:
    """A single transition: paint `write`, turn, then switch to `next_state`."""
    write: int
    turn: Turn
    next_state: int

    def to_dict(self) -> Dict:
        return {"write": int(self.write), "turn": int(self.turn), "next_state": int(self.next_state)}


def _read_rule(cell):
    """Rule from a raw cell mapping; anything unreadable comes back unchanged."""
    if isinstance(cell, Rule):
        return cell
    if not isinstance(cell, Mapping):
        return cell
    next_state = cell.get("next_state", cell.get("nextState"))
    if "write" not in cell or "turn" not in cell or next_state is None:
        return cell
    return Rule(
        write=_coerce_int(cell["write"]),
        turn=_coerce_turn(cell["turn"]),
        next_state=_coerce_int(next_state),
    )


class RuleTable:
    """Explicit state x color table of rules.

    Construction never validates: a table may be ragged or reference unknown
    states/colors. Use `is_rectangular()` / `is_closed()` or the validator to
    find out.
    """

    def __init__(self, rows: Optional[Mapping[int, Mapping[int, Rule]]] = None):
        self._rows: Dict[int, Dict[int, Rule]] = {}
        # Parts of the source data that could not be read; see from_dict.
        self.malformed: List[str] = []
        for state, row in (rows or {}).items():
            self._rows[state] = dict(row)

    @classmethod
    def from_dict(cls, data) -> "RuleTable":
        """Build from nested dicts like {0: {0: {"write": 1, "turn": 1, "next_state": 0}}}.

        Keys and values may be numeric strings, and "nextState" is accepted for
        "next_state". Bad input never raises: unreadable rows and keys are listed
        in `malformed`, and unreadable cells are kept as raw values, so the
        structural gate rejects the table instead.
        """
        table = cls()
        if not isinstance(data, Mapping):
            table.malformed.append(f"expected a mapping, got {type(data).__name__}")
            return table

        for state, row in data.items():
            state_key = _coerce_int(state)
            if not isinstance(state_key, int):
                table.malformed.append(f"state key {state!r}")
                continue
            if not isinstance(row, Mapping):
                table.malformed.append(f"row {state!r}")
                continue
            table.add_state(state_key)
            for color, cell in row.items():
                color_key = _coerce_int(color)
                if not isinstance(color_key, int):
                    table.malformed.append(f"color key {state!r}.{color!r}")
                    continue
                table._rows[state_key][color_key] = _read_rule(cell)
        return table

    @classmethod
    def build(cls, num_states: int, num_colors: int, factory) -> "RuleTable":
        """Fill a rectangular table by calling factory(state, color) for every cell."""
        table = cls()
        for s in range(num_states):
            for c in range(num_colors):
                table.set(s, c, factory(s, c))
        return table

    def to_dict(self) -> Dict[int, Dict[int, Dict]]:
        return {
            s: {c: rule.to_dict() for c, rule in sorted(row.items())}
            for s, row in sorted(self._rows.items())
        }

    @property
    def states(self) -> List[int]:
        return sorted(self._rows)

    @property
    def colors(self) -> List[int]:
        """Colors of the lowest state's row; the shared color set of a rectangular table."""
        if not self._rows:
            return []
        return sorted(self._rows[min(self._rows)])

    @property
    def num_states(self) -> int:
        return len(self._rows)

    @property
    def num_colors(self) -> int:
        return len(self.colors)

    @property
    def shape(self) -> Tuple[int, int]:
        return self.num_states, self.num_colors

    def row(self, state: int) -> Dict[int, Rule]:
        return self._rows[state]

    def get(self, state: int, color: int) -> Optional[Rule]:
        row = self._rows.get(state)
        if row is None:
            return None
        return row.get(color)

    def set(self, state: int, color: int, rule: Rule):
        self._rows.setdefault(state, {})[color] = rule

    def update(self, state: int, color: int, **changes):
        """Replace fields of one cell's rule."""
        old = self._rows[state][color]
        self._rows[state][color] = Rule(
            write=changes.get("write", old.write),
            turn=Turn(changes.get("turn", old.turn)),
            next_state=changes.get("next_state", old.next_state),
        )

    def delete_state(self, state: int):
        del self._rows[state]

    def delete_color(self, color: int):
        for row in self._rows.values():
            row.pop(color, None)

    def add_state(self, state: int):
        self._rows.setdefault(state, {})

    def cells(self) -> Iterator[Tuple[int, int, Rule]]:
        """Iterate (state, color, rule) in sorted order over every stored cell."""
        for s in sorted(self._rows):
            row = self._rows[s]
            for c in sorted(row):
                yield s, c, row[c]

    def copy(self) -> "RuleTable":
        # Rules are frozen, so copying the row dicts is enough.
        return RuleTable(self._rows)

    def is_rectangular(self) -> bool:
        colors = set(self.colors)
        return bool(colors) and all(set(row) == colors for row in self._rows.values())

    def is_closed(self) -> bool:
        states = set(self._rows)
        colors = set(self.colors)
        return all(r.write in colors and r.next_state in states for _, _, r in self.cells())

    def fingerprint(self) -> str:
        """Canonical text form; equal fingerprints mean byte-identical tables."""
        parts = []
        for s, c, r in self.cells():
            parts.append(f"{s}.{c}:{r.write},{int(r.turn)},{r.next_state}")
        return ";".join(parts)

    def __eq__(self, other):
        if not isinstance(other, RuleTable):
            return False
        return self.fingerprint() == other.fingerprint()

    def __hash__(self):
        return hash(self.fingerprint())

    def __len__(self):
        return sum(len(row) for row in self._rows.values())

    def __repr__(self):
        return f"RuleTable(states={self.num_states}, colors={self.num_colors})"


def as_rule_table(table):
    """Read plain nested mappings into a RuleTable; anything else is returned as is."""
    if isinstance(table, Mapping):
        return RuleTable.from_dict(table)
    return table


def count_states_and_colors(table: RuleTable) -> Tuple[List[int], List[int]]:
    """Return (state keys, color keys) of a table."""
    return table.states, table.colors


@dataclass
class RuleSetAnalysis:
    """Structural summary of a table, tolerant of malformed content."""
    state_keys: List[int]
    colors: List[int]
    max_color: int
    turn_set: Set[int] = field(default_factory=set)
    write_set: Set[int] = field(default_factory=set)
    next_state_set: Set[int] = field(default_factory=set)
    invalid: bool = False


def analyze_rule_set(table) -> Optional[RuleSetAnalysis]:
    """Collect the color union and value sets of a table. Returns None for an empty table."""
    if not isinstance(table, RuleTable) or (table.num_states == 0 and not table.malformed):
        return None

    color_set: Set[int] = set()
    analysis = RuleSetAnalysis(state_keys=table.states, colors=[], max_color=-1,
                               invalid=bool(table.malformed))

    for s in table.states:
        row = table.row(s)
        for c, r in row.items():
            color_set.add(c)
            if not isinstance(r, Rule) or not all(
                isinstance(v, int) for v in (r.write, r.turn, r.next_state)
            ):
                analysis.invalid = True
                continue
            analysis.write_set.add(r.write)
            analysis.turn_set.add(int(r.turn))
            analysis.next_state_set.add(r.next_state)

    analysis.colors = sorted(color_set)
    analysis.max_color = analysis.colors[-1] if analysis.colors else -1
    return analysis


@dataclass(frozen=True)
class DynamicsStats:
    """Read-only counts describing how much a table can move and paint."""
    num_states: int
    num_colors: int
    total_rules: int
    write_change_count: int = 0
    non_no_turn_count: int = 0
    non_zero_write_from_zero_count: int = 0
    self_next_state_count: int = 0
    self_write_count: int = 0
    absorbing_colors: Tuple[int, ...] = ()

    @property
    def write_change_ratio(self) -> float:
        return self.write_change_count / self.total_rules if self.total_rules else 0.0

    @property
    def turn_ratio(self) -> float:
        return self.non_no_turn_count / self.total_rules if self.total_rules else 0.0

    @property
    def no_turn_ratio(self) -> float:
        return 1.0 - self.turn_ratio if self.total_rules else 0.0

    @property
    def self_next_ratio(self) -> float:
        return self.self_next_state_count / self.total_rules if self.total_rules else 0.0


def compute_dynamics_stats(table: RuleTable) -> DynamicsStats:
    """Measure write-change, turn and self-loop ratios plus absorbing colors."""
    states, colors = count_states_and_colors(table)
    if not states or not colors:
        return DynamicsStats(num_states=len(states), num_colors=len(colors), total_rules=0)

    total = write_change = non_no_turn = from_zero = self_next = self_write = 0
    absorbing = {c: True for c in colors}

    for s in states:
        for c in colors:
            r = table.get(s, c)
            if r is None:
                continue
            total += 1
            if r.write != c:
                write_change += 1
                absorbing[c] = False
            else:
                self_write += 1
            if r.turn != Turn.NO_TURN:
                non_no_turn += 1
            if c == 0 and r.write != 0:
                from_zero += 1
            if r.next_state == s:
                self_next += 1

    return DynamicsStats(
        num_states=len(states),
        num_colors=len(colors),
        total_rules=total,
        write_change_count=write_change,
        non_no_turn_count=non_no_turn,
        non_zero_write_from_zero_count=from_zero,
        self_next_state_count=self_next,
        self_write_count=self_write,
        absorbing_colors=tuple(c for c in colors if absorbing[c]),
    )
