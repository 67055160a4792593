"""Tests for rule tables and their dynamics statistics."""

import pytest

from turmite_discovery.presets import LANGTONS_ANT, PRESETS
from turmite_discovery.tables import (
    Rule,
    RuleTable,
    Turn,
    analyze_rule_set,
    compute_dynamics_stats,
)


def langton():
    return PRESETS[LANGTONS_ANT].rules


class TestRuleTable:
    def test_from_dict_round_trip(self):
        data = {0: {0: {"write": 1, "turn": 1, "next_state": 0}, 1: {"write": 0, "turn": -1, "next_state": 0}}}
        table = RuleTable.from_dict(data)
        assert table.get(0, 0) == Rule(1, Turn.RIGHT, 0)
        assert table.get(0, 1).turn is Turn.LEFT
        assert table.to_dict() == data

    def test_string_keys_are_accepted(self):
        table = RuleTable.from_dict({"0": {"0": {"write": "1", "turn": "2", "next_state": "0"}}})
        assert table.get(0, 0) == Rule(1, Turn.U_TURN, 0)

    def test_camel_case_next_state(self):
        table = RuleTable.from_dict({0: {0: {"write": 1, "turn": -1, "nextState": 0}}})
        assert table.get(0, 0) == Rule(1, Turn.LEFT, 0)
        assert not table.malformed

    @pytest.mark.parametrize("data", [
        {0: {0: {"write": 1, "turn": 1}}},
        {0: {0: None}},
        {0: {0: {"write": "one", "turn": 1, "next_state": 0}}},
        {0: {0: {"write": 1, "turn": "left", "next_state": 0}}},
        {0: None},
        {"zero": {0: {"write": 1, "turn": 1, "next_state": 0}}},
        {0: {"zero": {"write": 1, "turn": 1, "next_state": 0}}},
        None,
        [1, 2, 3],
    ])
    def test_malformed_data_does_not_raise(self, data):
        table = RuleTable.from_dict(data)
        info = analyze_rule_set(table)
        assert info is not None
        assert info.invalid

    def test_shape_and_len(self):
        table = RuleTable.build(3, 4, lambda s, c: Rule(c, Turn.LEFT, s))
        assert table.shape == (3, 4)
        assert len(table) == 12
        assert table.states == [0, 1, 2]
        assert table.colors == [0, 1, 2, 3]

    def test_copy_is_independent(self):
        table = langton()
        clone = table.copy()
        clone.update(0, 0, turn=Turn.U_TURN)
        assert table.get(0, 0).turn is Turn.RIGHT
        assert clone != table

    def test_equality_and_hash_follow_content(self):
        a = RuleTable.build(2, 2, lambda s, c: Rule((c + 1) % 2, Turn.RIGHT, 1 - s))
        b = RuleTable.build(2, 2, lambda s, c: Rule((c + 1) % 2, Turn.RIGHT, 1 - s))
        assert a == b
        assert hash(a) == hash(b)
        assert a.fingerprint() == b.fingerprint()

    def test_ragged_table_is_not_rectangular(self):
        table = RuleTable.build(2, 2, lambda s, c: Rule(c, Turn.LEFT, s))
        table.delete_state(1)
        table.set(1, 0, Rule(0, Turn.LEFT, 0))
        assert not table.is_rectangular()

    def test_closure(self):
        table = RuleTable.build(2, 2, lambda s, c: Rule(c, Turn.LEFT, s))
        assert table.is_closed()
        table.set(0, 0, Rule(5, Turn.LEFT, 0))
        assert not table.is_closed()
        table.set(0, 0, Rule(0, Turn.LEFT, 9))
        assert not table.is_closed()


class TestAnalyzeRuleSet:
    def test_empty_table(self):
        assert analyze_rule_set(RuleTable()) is None
        assert analyze_rule_set({"not": "a table"}) is None

    def test_collects_value_sets(self):
        info = analyze_rule_set(langton())
        assert info.state_keys == [0]
        assert info.colors == [0, 1]
        assert info.max_color == 1
        assert info.turn_set == {-1, 1}
        assert info.write_set == {0, 1}
        assert not info.invalid

    def test_unknown_turn_is_kept(self):
        table = RuleTable({0: {0: Rule(1, 7, 0), 1: Rule(0, Turn.LEFT, 0)}})
        assert 7 in analyze_rule_set(table).turn_set


class TestDynamicsStats:
    def test_langtons_ant(self):
        stats = compute_dynamics_stats(langton())
        assert stats.total_rules == 2
        assert stats.write_change_ratio == 1.0
        assert stats.no_turn_ratio == 0.0
        assert stats.self_next_ratio == 1.0
        assert stats.non_zero_write_from_zero_count == 1
        assert stats.absorbing_colors == ()

    def test_absorbing_color(self):
        table = RuleTable.build(2, 3, lambda s, c: Rule(1 if c == 1 else (c + 1) % 3, Turn.RIGHT, 1 - s))
        stats = compute_dynamics_stats(table)
        assert stats.absorbing_colors == (1,)
        assert stats.self_next_ratio == 0.0

    def test_empty(self):
        stats = compute_dynamics_stats(RuleTable())
        assert stats.total_rules == 0
        assert stats.write_change_ratio == 0.0
        assert stats.no_turn_ratio == 0.0
