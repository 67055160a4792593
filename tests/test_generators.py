"""Tests for fresh generators and point mutation."""

from turmite_discovery.config import GenerationConfig
from turmite_discovery.eca import eca_to_table
from turmite_discovery.generators import (
    apply_ca_rule,
    cellular_automata,
    mutate,
    sacred_geometry,
    structured_turmite,
    weighted_count,
    wolfram_style,
)
from turmite_discovery.random_source import RandomStream
from turmite_discovery.tables import Rule, Turn


class TestGenerators:
    def test_weighted_count_range(self):
        rng = RandomStream(0)
        counts = {weighted_count(rng) for _ in range(500)}
        assert counts <= {2, 3, 4, 5, 6}
        assert {2, 3, 4} <= counts

    def test_ca_rule_combination(self):
        rule = apply_ca_rule(
            Rule(1, Turn.RIGHT, 1), Rule(2, Turn.LEFT, 0), Rule(3, Turn.U_TURN, 1),
            num_colors=4, num_states=3, rng=RandomStream(0), mutation_chance=0.0,
        )
        assert rule == Rule(3, Turn.U_TURN, 1)

    def test_ca_rule_steps_past_center_without_majority(self):
        rule = apply_ca_rule(
            Rule(0, Turn.RIGHT, 0), Rule(0, Turn.RIGHT, 2), Rule(0, Turn.RIGHT, 1),
            num_colors=2, num_states=3, rng=RandomStream(0), mutation_chance=0.0,
        )
        assert rule.next_state == 0
        assert rule.turn is Turn.LEFT

    def test_cellular_automata(self):
        for seed in range(20):
            table = cellular_automata(RandomStream(seed))
            assert table.is_rectangular() and table.is_closed()
            assert table.num_states >= 2 and table.num_colors >= 2
        assert cellular_automata(RandomStream(1), 3, 5).shape == (3, 5)

    def test_sacred_geometry_cycles_colors(self):
        table = sacred_geometry(RandomStream(4), 3, 4)
        assert table.shape == (3, 4)
        for _, c, r in table.cells():
            assert r.write == (c + 1) % 4

    def test_sacred_geometry_checkerboard_without_flips(self):
        config = GenerationConfig(sacred_flip_chance=0.0)
        table = sacred_geometry(RandomStream(4), 2, 2, config)
        for s, c, r in table.cells():
            assert r.turn is (Turn.RIGHT if (s + c) % 2 == 0 else Turn.LEFT)

    def test_wolfram_style(self):
        assert wolfram_style(RandomStream(0), 110) == eca_to_table(110)
        assert wolfram_style(RandomStream(0)).shape == (2, 2)

    def test_structured_turmite_always_repaints(self):
        for seed in range(20):
            table = structured_turmite(RandomStream(seed))
            assert table.is_closed()
            assert all(r.write != c for _, c, r in table.cells())


class TestMutate:
    def test_base_is_untouched(self):
        base = eca_to_table(30)
        before = base.fingerprint()
        mutate(base, RandomStream(1), 10)
        assert base.fingerprint() == before

    def test_single_mutation_changes_one_cell(self):
        base = eca_to_table(30)
        for seed in range(30):
            out = mutate(base, RandomStream(seed), 1)
            changed = [(s, c) for s, c, r in out.cells() if r != base.get(s, c)]
            assert len(changed) <= 1

    def test_turn_and_write_always_change(self):
        base = sacred_geometry(RandomStream(2), 3, 3)
        for seed in range(30):
            out = mutate(base, RandomStream(seed), 1, strict=True)
            changed = [(s, c) for s, c, r in out.cells() if r != base.get(s, c)]
            assert len(changed) == 1

    def test_strict_keeps_state_graph(self):
        base = sacred_geometry(RandomStream(2), 3, 3)
        out = mutate(base, RandomStream(5), 25, strict=True)
        for s, c, r in out.cells():
            assert r.next_state == base.get(s, c).next_state

    def test_deterministic(self):
        base = eca_to_table(90)
        assert mutate(base, RandomStream(9), 6) == mutate(base, RandomStream(9), 6)

    def test_closure(self):
        base = sacred_geometry(RandomStream(2), 4, 3)
        out = mutate(base, RandomStream(3), 50)
        assert out.is_rectangular() and out.is_closed()
