"""Tests for weighted seed sampling."""

import math

import pytest

from turmite_discovery.config import MAPPING_DERIVED, MAPPING_V1, MAPPING_V2, SamplerWeights
from turmite_discovery.eca import eca_to_table
from turmite_discovery.random_source import RandomStream
from turmite_discovery.sampler import SeedSampler, bucket_weight
from turmite_discovery.seed_pool import SeedMeta, SeedPoolEntry

TABLE = eca_to_table(110)


def make_entries(family, mapping, count, class_hint=2, prefix=None):
    prefix = prefix or f"{family}-{mapping}"
    return [
        SeedPoolEntry(
            id=f"{prefix}-{i}",
            label=f"{prefix} {i}",
            meta=SeedMeta(family=family, eca_rule=110, transforms=(), mapping=mapping, class_hint=class_hint),
            rules=TABLE,
        )
        for i in range(count)
    ]


@pytest.fixture
def mixed_entries():
    return (
        make_entries("eca", MAPPING_V1, 100)
        + make_entries("traffic", MAPPING_V2, 25)
        + make_entries("derived", MAPPING_DERIVED, 400)
    )


class TestBucketWeights:
    def test_weight_formula(self):
        weights = SamplerWeights()
        assert bucket_weight(("eca", MAPPING_V1), 100, weights) == pytest.approx(10.0)
        assert bucket_weight(("traffic", MAPPING_V2), 25, weights) == pytest.approx(5 * 1.25 * 1.1)
        assert bucket_weight(("derived", MAPPING_DERIVED), 400, weights) == pytest.approx(20 * 0.5 * 0.5)

    def test_relative_weights(self, mixed_entries):
        sampler = SeedSampler(mixed_entries)
        relative = sampler.relative_bucket_weights()
        assert sum(relative.values()) == pytest.approx(1.0)
        total = 10.0 + 6.875 + 5.0
        assert relative[("eca", MAPPING_V1)] == pytest.approx(10.0 / total)
        assert relative[("derived", MAPPING_DERIVED)] == pytest.approx(5.0 / total)

    def test_large_bucket_does_not_dominate_by_count(self, mixed_entries):
        relative = SeedSampler(mixed_entries).relative_bucket_weights()
        assert relative[("derived", MAPPING_DERIVED)] < relative[("eca", MAPPING_V1)]


class TestPick:
    def test_bucket_frequencies_converge(self, mixed_entries):
        sampler = SeedSampler(mixed_entries)
        expected = sampler.relative_bucket_weights()
        rng = RandomStream(7)
        draws = 20000
        counts = {}
        for _ in range(draws):
            entry = sampler.pick(rng)
            key = (entry.meta.family, entry.meta.mapping)
            counts[key] = counts.get(key, 0) + 1

        for key, p in expected.items():
            assert counts.get(key, 0) / draws == pytest.approx(p, abs=0.02)

    def test_class_hint_bias_within_bucket(self):
        entries = make_entries("eca", MAPPING_V1, 1, class_hint=4, prefix="hi") + \
            make_entries("eca", MAPPING_V1, 1, class_hint=1, prefix="lo")
        sampler = SeedSampler(entries)
        rng = RandomStream(3)
        draws = 5000
        high = sum(1 for _ in range(draws) if sampler.pick(rng).meta.class_hint == 4)
        assert high / draws == pytest.approx(2.0 / 2.35, abs=0.03)

    def test_same_seed_same_draws(self, mixed_entries):
        sampler = SeedSampler(mixed_entries)
        first = RandomStream(11)
        second = RandomStream(11)
        assert [sampler.pick(first).id for _ in range(20)] == [sampler.pick(second).id for _ in range(20)]

    def test_empty_pool(self):
        sampler = SeedSampler(())
        assert sampler.pick(RandomStream(1)) is None
        assert sampler.pick_bucket(RandomStream(1)) is None
        assert sampler.relative_bucket_weights() == {}

    def test_zero_weights(self, mixed_entries):
        weights = SamplerWeights(class_hint_weights={1: 0.0, 2: 0.0, 3: 0.0, 4: 0.0})
        sampler = SeedSampler(mixed_entries, weights)
        assert sampler.pick(RandomStream(1)) is None

    def test_invalidate_rebuilds_tables(self, mixed_entries):
        sampler = SeedSampler(mixed_entries)
        assert len(sampler.buckets) == 3
        sampler.entries = tuple(make_entries("eca", MAPPING_V1, 4))
        sampler.invalidate()
        assert len(sampler.buckets) == 1
        assert sampler.buckets[0].weight == pytest.approx(math.sqrt(4))
