"""Tests for the activity booster."""

from turmite_discovery.booster import boost_rule_activity, break_absorbing_colors, ensure_state_flow
from turmite_discovery.config import BoostConfig
from turmite_discovery.random_source import RandomStream
from turmite_discovery.tables import Rule, RuleTable, Turn, compute_dynamics_stats


def dead_table(states=3, colors=3):
    return RuleTable.build(states, colors, lambda s, c: Rule(c, Turn.NO_TURN, s))


class TestStateFlow:
    def test_every_state_gets_an_exit(self):
        out = ensure_state_flow(dead_table(3, 2), RandomStream(1))
        for s in out.states:
            assert any(r.next_state != s for r in out.row(s).values())

    def test_single_state_untouched(self):
        base = dead_table(1, 2)
        assert ensure_state_flow(base, RandomStream(1)) == base


class TestAbsorbing:
    def test_breaks_absorbing_colors(self):
        base = RuleTable.build(2, 3, lambda s, c: Rule(c, Turn.RIGHT, 1 - s))
        assert compute_dynamics_stats(base).absorbing_colors == (0, 1, 2)
        out = break_absorbing_colors(base, RandomStream(2))
        assert compute_dynamics_stats(out).absorbing_colors == ()


class TestBoost:
    def test_dead_table_is_repaired(self):
        for seed in range(20):
            out = boost_rule_activity(dead_table(), RandomStream(seed))
            assert out.is_rectangular() and out.is_closed()
            stats = compute_dynamics_stats(out)
            assert stats.absorbing_colors == ()
            for s in out.states:
                assert out.get(s, 0).write != 0
                assert out.get(s, 0).turn != Turn.NO_TURN

    def test_deterministic(self):
        assert boost_rule_activity(dead_table(), RandomStream(8)) == boost_rule_activity(dead_table(), RandomStream(8))

    def test_base_is_untouched(self):
        base = dead_table()
        boost_rule_activity(base, RandomStream(0))
        assert base == dead_table()

    def test_nudges_raise_write_change(self):
        config = BoostConfig(max_passes=10, intensity=20)
        out = boost_rule_activity(dead_table(), RandomStream(4), config)
        stats = compute_dynamics_stats(out)
        assert stats.write_change_ratio > 0.0
        assert stats.no_turn_ratio < 1.0

    def test_empty_table(self):
        assert len(boost_rule_activity(RuleTable(), RandomStream(0))) == 0
