"""Two-level weighted sampling over the seed pool.

Entries are grouped into buckets by (family, mapping). A bucket is chosen
with weight sqrt(size) times its family and mapping multipliers, so a large
bucket can't dominate by count alone; an entry is then chosen within the
bucket by its class-hint and family weight.
"""

import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from .config import SamplerWeights
from .random_source import RandomSource, as_stream
from .seed_pool import SeedPoolEntry

BucketKey = Tuple[str, str]


@dataclass
class Bucket:
    key: BucketKey
    indices: List[int]
    cdf: np.ndarray
    total_weight: float
    weight: float


def bucket_key(entry: SeedPoolEntry) -> BucketKey:
    return entry.meta.family or "unknown", entry.meta.mapping or "unknown"


def bucket_weight(key: BucketKey, count: int, weights: SamplerWeights) -> float:
    family, mapping = key
    w = math.sqrt(max(1, count))
    w *= weights.family_multipliers.get(family, 1.0)
    w *= weights.mapping_multipliers.get(mapping, 1.0)
    return w


def entry_weight(entry: SeedPoolEntry, weights: SamplerWeights) -> float:
    w = weights.class_hint_weights.get(entry.meta.class_hint, 1.0)
    w *= weights.entry_family_multipliers.get(entry.meta.family, 1.0)
    return w


def _search(cdf: np.ndarray, value: float) -> int:
    """Index of the first cumulative weight >= value."""
    return min(int(np.searchsorted(cdf, value, side="left")), len(cdf) - 1)


class SeedSampler:
    """Weighted sampler with lazily built, cached cumulative tables.

    The tables depend on the entries and the weights; build a new sampler
    (or call `invalidate`) when either changes.
    """

    def __init__(self, entries: Sequence[SeedPoolEntry], weights: Optional[SamplerWeights] = None):
        self.entries = tuple(entries)
        self.weights = weights or SamplerWeights()
        self._buckets: Optional[List[Bucket]] = None
        self._bucket_cdf: Optional[np.ndarray] = None
        self._flat_cdf: Optional[np.ndarray] = None

    def invalidate(self):
        self._buckets = None
        self._bucket_cdf = None
        self._flat_cdf = None

    def _ensure_buckets(self):
        if self._buckets is not None:
            return

        grouped: Dict[BucketKey, List[int]] = {}
        for i, entry in enumerate(self.entries):
            grouped.setdefault(bucket_key(entry), []).append(i)

        buckets = []
        for key, indices in grouped.items():
            cdf = np.cumsum([entry_weight(self.entries[i], self.weights) for i in indices], dtype=np.float64)
            buckets.append(Bucket(
                key=key,
                indices=indices,
                cdf=cdf,
                total_weight=float(cdf[-1]),
                weight=bucket_weight(key, len(indices), self.weights),
            ))

        # Buckets whose entries all weigh zero can never yield an entry.
        self._buckets = buckets
        self._bucket_cdf = np.cumsum(
            [b.weight if b.total_weight > 0 else 0.0 for b in buckets], dtype=np.float64
        )

    def _ensure_flat(self):
        if self._flat_cdf is None:
            self._flat_cdf = np.cumsum(
                [entry_weight(e, self.weights) for e in self.entries], dtype=np.float64
            )

    @property
    def buckets(self) -> List[Bucket]:
        self._ensure_buckets()
        return self._buckets

    def relative_bucket_weights(self) -> Dict[BucketKey, float]:
        """Probability of each bucket being chosen."""
        buckets = self.buckets
        total = float(self._bucket_cdf[-1]) if len(buckets) else 0.0
        if total <= 0:
            return {}
        return {b.key: (b.weight if b.total_weight > 0 else 0.0) / total for b in buckets}

    def pick_bucket(self, rng: Optional[RandomSource] = None) -> Optional[Bucket]:
        rng = as_stream(rng)
        buckets = self.buckets
        if not buckets:
            return None
        total = float(self._bucket_cdf[-1])
        if total <= 0:
            return None
        return buckets[_search(self._bucket_cdf, rng.next() * total)]

    def pick(self, rng: Optional[RandomSource] = None) -> Optional[SeedPoolEntry]:
        """Draw one entry, or None for an empty (or all-zero-weight) pool."""
        rng = as_stream(rng)
        if not self.entries:
            return None

        bucket = self.pick_bucket(rng)
        if bucket is not None:
            j = _search(bucket.cdf, rng.next() * bucket.total_weight)
            return self.entries[bucket.indices[j]]

        # Degenerate bucket weights: fall back to one flat table over all entries.
        self._ensure_flat()
        total = float(self._flat_cdf[-1])
        if total <= 0:
            return None
        return self.entries[_search(self._flat_cdf, rng.next() * total)]

    def __len__(self):
        return len(self.entries)
