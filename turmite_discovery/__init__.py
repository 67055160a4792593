"""Turmite Discovery - generate turmite rule tables and keep only the lively ones."""

from .config import ChaosConfig, DEFAULT_CONFIG, randomize_config
from .eca import eca_to_table
from .search import RuleSearch, generate_rules
from .seed_pool import get_seed_pool
from .simulation import TurmiteSimulation
from .tables import Rule, RuleTable, Turn
from .validation import validate_rules

__all__ = [
    "ChaosConfig",
    "DEFAULT_CONFIG",
    "randomize_config",
    "eca_to_table",
    "RuleSearch",
    "generate_rules",
    "get_seed_pool",
    "TurmiteSimulation",
    "Rule",
    "RuleTable",
    "Turn",
    "validate_rules",
]
