"""Well-known turmites, used as recognizable mutation seeds."""

from dataclasses import dataclass
from typing import Dict

from .tables import RuleTable, Turn

L, R, U, N = Turn.LEFT, Turn.RIGHT, Turn.U_TURN, Turn.NO_TURN


@dataclass(frozen=True)
class Preset:
    description: str
    rules: RuleTable


def _table(rows) -> RuleTable:
    """Rows are {state: {color: (write, turn, next_state)}}."""
    return RuleTable.from_dict({
        s: {c: {"write": w, "turn": int(t), "next_state": n} for c, (w, t, n) in row.items()}
        for s, row in rows.items()
    })


LANGTONS_ANT = "Langton's Ant"

PRESETS: Dict[str, Preset] = {
    LANGTONS_ANT: Preset("The classic chaotic agent. 2 colors, RL.", _table({
        0: {0: (1, R, 0), 1: (0, L, 0)},
    })),
    "Highway Builder": Preset("Builds a diagonal highway. RLLR.", _table({
        0: {0: (1, R, 0), 1: (2, L, 0), 2: (3, L, 0), 3: (0, R, 0)},
    })),
    "Chaotic Weaver": Preset("A 2-state, 2-color turmite that weaves complex patterns.", _table({
        0: {0: (1, R, 1), 1: (1, L, 1)},
        1: {0: (1, R, 1), 1: (0, R, 0)},
    })),
    "Spiral Growth": Preset("Slowly growing spiral pattern.", _table({
        0: {0: (1, L, 0), 1: (1, R, 1)},
        1: {0: (0, R, 0), 1: (0, L, 1)},
    })),
    "Textile Weaver": Preset("Symmetrical weaver pattern. 4 states.", _table({
        0: {0: (1, R, 1), 1: (0, L, 1)},
        1: {0: (1, L, 2), 1: (0, R, 2)},
        2: {0: (1, R, 3), 1: (0, L, 3)},
        3: {0: (1, L, 0), 1: (0, R, 0)},
    })),
    "Fibonacci Spiral": Preset("Golden ratio approximations.", _table({
        0: {0: (1, L, 1), 1: (1, L, 1)},
        1: {0: (1, R, 1), 1: (0, R, 0)},
    })),
    "Crystal Castle": Preset("Builds a castle-like structure.", _table({
        0: {0: (1, R, 0), 1: (2, L, 0), 2: (0, U, 0)},
    })),
    "Fractal Snowflake": Preset("Generates a fractal-like snowflake pattern.", _table({
        0: {0: (1, R, 1), 1: (0, L, 1)},
        1: {0: (1, L, 0), 1: (1, R, 0)},
    })),
    "Expanding Square": Preset("A square that keeps expanding.", _table({
        0: {0: (1, L, 0), 1: (1, R, 1)},
        1: {0: (0, R, 0), 1: (0, R, 1)},
    })),
    "Multicolor Weaver": Preset("Cycles through 4 colors to create a vibrant weave.", _table({
        0: {0: (1, R, 0), 1: (2, L, 0), 2: (3, R, 0), 3: (0, L, 0)},
    })),
    "Neon Spinner": Preset("Complex 6-color spinner.", _table({
        0: {0: (1, R, 0), 1: (2, R, 0), 2: (3, L, 0), 3: (4, L, 0), 4: (5, R, 0), 5: (0, L, 0)},
    })),
}


def mutation_presets(presets: Dict[str, Preset] = None) -> Dict[str, Preset]:
    """Presets eligible as mutation seeds; Langton's Ant is left as the recognizable default."""
    presets = PRESETS if presets is None else presets
    return {name: p for name, p in presets.items() if name != LANGTONS_ANT}
