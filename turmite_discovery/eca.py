"""Elementary cellular automaton rules mapped onto small turmite tables.

An ECA rule number 0-255 is read as 8 bits where bit i is the new center
cell for the 3-cell neighborhood with binary value i (left=4, center=2,
right=1). Symmetry transforms act on those bits; mappings turn the bits into
a RuleTable.
"""

from itertools import combinations
from typing import Iterable, Sequence, Tuple

from .config import MAPPING_STREAM, MAPPING_V1, MAPPING_V2
from .tables import Rule, RuleTable, Turn

Bits = Tuple[int, ...]

MIRROR = "mirror"
CONJUGATE = "conjugate"
INVERT = "invert"
TRANSFORM_ORDER = (MIRROR, CONJUGATE, INVERT)

# Every subset of the transforms, in TRANSFORM_ORDER, starting with the identity.
TRANSFORM_COMBINATIONS: Tuple[Tuple[str, ...], ...] = tuple(
    combo for k in range(len(TRANSFORM_ORDER) + 1) for combo in combinations(TRANSFORM_ORDER, k)
)

MAPPINGS = (MAPPING_V1, MAPPING_V2, MAPPING_STREAM)

# Swap left and right neighbor bits of each pattern index.
MIRROR_PERMUTATION = (0, 4, 2, 6, 1, 5, 3, 7)

TURN_CODES = (Turn.LEFT, Turn.RIGHT, Turn.NO_TURN, Turn.U_TURN)

TRAFFIC_RULE = 184
TRAFFIC_RULES = frozenset({184, 226})
CLASS_3_RULES = frozenset({18, 22, 30, 45, 60, 73, 75, 86, 89, 90, 101, 102, 105, 122, 126, 129, 135, 146, 149, 150, 153, 161, 165, 182, 183, 195})
CLASS_4_RULES = frozenset({41, 54, 97, 106, 110, 120, 124, 137, 147, 169, 193, 225})

# Bit patterns (bit 0 first) with short spatial periods.
PERIODIC_PATTERNS = frozenset({
    "01010101", "10101010",
    "00110011", "11001100",
    "01100110", "10011001",
    "00001111", "11110000",
})

STREAM_STATES = 2
STREAM_COLORS = 3


def rule_to_bits(rule: int) -> Bits:
    if not 0 <= rule <= 255:
        raise ValueError(f"ECA rule must be in 0..255, got {rule}")
    return tuple((rule >> i) & 1 for i in range(8))


def bits_to_rule(bits: Sequence[int]) -> int:
    return sum(b << i for i, b in enumerate(bits))


def bits_to_string(bits: Sequence[int]) -> str:
    return "".join(str(b) for b in bits)


def mirror_bits(bits: Sequence[int]) -> Bits:
    """Left-right reflection of the neighborhood."""
    return tuple(bits[MIRROR_PERMUTATION[i]] for i in range(8))


def conjugate_bits(bits: Sequence[int]) -> Bits:
    """Black-white exchange: reverse bit order, then complement."""
    return tuple(1 - b for b in reversed(bits))


def invert_bits(bits: Sequence[int]) -> Bits:
    return tuple(1 - b for b in bits)


_TRANSFORMS = {MIRROR: mirror_bits, CONJUGATE: conjugate_bits, INVERT: invert_bits}


def normalize_transforms(transforms: Iterable[str]) -> Tuple[str, ...]:
    """Deduplicate and sort transform names into application order."""
    names = set(transforms)
    unknown = names - set(TRANSFORM_ORDER)
    if unknown:
        raise ValueError(f"Unknown transforms: {sorted(unknown)}")
    return tuple(t for t in TRANSFORM_ORDER if t in names)


def apply_transforms(bits: Sequence[int], transforms: Iterable[str]) -> Bits:
    """Apply transforms in the fixed order mirror, conjugate, invert."""
    out = tuple(bits)
    for name in normalize_transforms(transforms):
        out = _TRANSFORMS[name](out)
    return out


def cyclic_transitions(bits: Sequence[int]) -> int:
    return sum(1 for i in range(8) if bits[i] != bits[(i + 1) % 8])


def classify_rule(rule: int, bits: Sequence[int]) -> int:
    """Coarse behavior class hint 1-4. A sampling bias label, not a classification."""
    if rule == TRAFFIC_RULE:
        return 2
    ones = sum(bits)
    if ones in (0, 1, 8):
        return 1
    if bits_to_string(bits) in PERIODIC_PATTERNS:
        return 2
    if rule in CLASS_4_RULES:
        return 4
    if rule in CLASS_3_RULES:
        return 3

    transitions = cyclic_transitions(bits)
    if transitions >= 6:
        return 3
    if transitions >= 3:
        return 2
    return 1


def family_for(rule: int, mapping: str) -> str:
    if rule in TRAFFIC_RULES:
        return "traffic"
    if mapping == MAPPING_STREAM:
        return "multicolor"
    return "eca"


def mix(i: int) -> int:
    return ((i * 5) ^ (i >> 1)) & 1


def expand_stream(bits: Sequence[int], length: int) -> Bits:
    """Stretch 8 bits into `length` bits: stream[i] = bit[i % 8] ^ mix(i)."""
    return tuple(bits[i % 8] ^ mix(i) for i in range(length))


def _map_v1(bits: Bits) -> RuleTable:
    # Two bits per cell: write color, then right/left.
    def cell(s, c):
        k = s * 4 + c * 2
        return Rule(
            write=bits[k],
            turn=Turn.RIGHT if bits[k + 1] else Turn.LEFT,
            next_state=(s + 1) % 2,
        )
    return RuleTable.build(2, 2, cell)


def _map_v2(bits: Bits) -> RuleTable:
    def cell(s, c):
        k = (s * 2 + c) * 2
        hi, lo = bits[k], bits[k + 1]
        return Rule(write=lo, turn=TURN_CODES[(hi << 1) | lo], next_state=hi)
    return RuleTable.build(2, 2, cell)


def _map_stream(bits: Bits, num_states: int = STREAM_STATES, num_colors: int = STREAM_COLORS) -> RuleTable:
    stream = expand_stream(bits, num_states * num_colors * 4)

    def cell(s, c):
        k = (s * num_colors + c) * 4
        w0, w1, t0, t1 = stream[k:k + 4]
        return Rule(
            write=((w0 << 1) | w1) % num_colors,
            turn=TURN_CODES[(t0 << 1) | t1],
            next_state=(s + w0) % num_states,
        )
    return RuleTable.build(num_states, num_colors, cell)


def map_bits(bits: Sequence[int], mapping: str = MAPPING_V1) -> RuleTable:
    """Turn 8 ECA bits into a rule table with the given mapping scheme."""
    bits = tuple(bits)
    if len(bits) != 8:
        raise ValueError(f"Expected 8 bits, got {len(bits)}")
    if mapping == MAPPING_V1:
        return _map_v1(bits)
    if mapping == MAPPING_V2:
        return _map_v2(bits)
    if mapping == MAPPING_STREAM:
        return _map_stream(bits)
    raise ValueError(f"Unknown mapping {mapping!r}")


def eca_to_table(rule: int, transforms: Iterable[str] = (), mapping: str = MAPPING_V1) -> RuleTable:
    """Map an ECA rule number, after transforms, to a turmite rule table."""
    return map_bits(apply_transforms(rule_to_bits(rule), transforms), mapping)
