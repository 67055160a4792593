"""Tests for the ECA seed pool."""

import pytest

from turmite_discovery.config import MAPPING_DERIVED, PoolConfig
from turmite_discovery.eca import MAPPINGS
from turmite_discovery.seed_pool import (
    build_base_entries,
    build_seed_pool,
    get_seed_pool,
    pool_summary,
)
from turmite_discovery.tables import Turn


@pytest.fixture(scope="module")
def pool():
    return get_seed_pool(PoolConfig())


@pytest.fixture(scope="module")
def base_entries():
    return build_base_entries(PoolConfig())


class TestBaseEntries:
    def test_every_rule_and_mapping_is_covered(self, base_entries):
        covered = {(e.meta.eca_rule, e.meta.mapping) for e in base_entries}
        assert covered == {(rule, mapping) for rule in range(256) for mapping in MAPPINGS}

    def test_transformed_strings_are_deduplicated(self, base_entries):
        # Rule 0 only has two distinct transformed strings: all zeros and all ones.
        rule_zero = [e for e in base_entries if e.meta.eca_rule == 0 and e.meta.mapping == MAPPINGS[0]]
        assert len(rule_zero) == 2

    def test_ids_are_unique(self, base_entries):
        ids = [e.id for e in base_entries]
        assert len(ids) == len(set(ids))

    def test_tables_are_closed_and_bootstrapped(self, base_entries):
        for entry in base_entries:
            table = entry.rules
            assert table.is_rectangular() and table.is_closed()
            assert table.num_states >= 2 and table.num_colors >= 2
            for s in table.states:
                r0 = table.get(s, 0)
                assert r0.write != 0
                assert r0.turn != Turn.NO_TURN

    def test_class_hints(self, base_entries):
        assert {e.meta.class_hint for e in base_entries} <= {1, 2, 3, 4}


class TestSeedPool:
    def test_build_is_deterministic(self, pool):
        rebuilt = build_seed_pool(PoolConfig())
        assert [e.id for e in rebuilt] == [e.id for e in pool]
        assert [e.rules.fingerprint() for e in rebuilt] == [e.rules.fingerprint() for e in pool]

    def test_cached(self, pool):
        assert get_seed_pool(PoolConfig()) is pool

    def test_default_target_is_reached(self, pool):
        assert len(pool) == PoolConfig().target_size

    def test_derived_top_up(self, base_entries):
        config = PoolConfig(name="derived-check", target_size=len(base_entries) + 5)
        entries = build_seed_pool(config)
        assert len(entries) == config.target_size

        base_count = len(base_entries)
        for index, derived in enumerate(entries[base_count:]):
            source = entries[index]
            assert derived.meta.family == "derived"
            assert derived.meta.mapping == MAPPING_DERIVED
            assert derived.meta.eca_rule == source.meta.eca_rule
            diffs = [
                (s, c) for s, c, r in derived.rules.cells()
                if r != source.rules.get(s, c)
            ]
            assert len(diffs) == 1
            s, c = diffs[0]
            assert derived.rules.get(s, c).write == source.rules.get(s, c).write
            assert derived.rules.get(s, c).next_state == source.rules.get(s, c).next_state

    def test_no_top_up_below_base_size(self):
        entries = build_seed_pool(PoolConfig(name="small", target_size=10))
        assert all(e.meta.family != "derived" for e in entries)

    def test_pool_name_changes_enhancement(self, base_entries):
        other = build_base_entries(PoolConfig(name="another-pool"))
        assert [e.id for e in other] == [e.id for e in base_entries]
        assert any(a.rules != b.rules for a, b in zip(other, base_entries))

    def test_summary(self, pool):
        summary = pool_summary(pool)
        assert sum(summary["family"].values()) == len(pool)
        assert set(summary["mapping"]) == set(MAPPINGS) | {MAPPING_DERIVED}
