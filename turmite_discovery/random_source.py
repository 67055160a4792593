"""Injectable random streams so seeded and live generation are both reproducible."""

import zlib
from typing import Optional, Protocol, Sequence, TypeVar, Union

import numpy as np

T = TypeVar("T")


class RandomSource(Protocol):
    """Anything with next() -> float in [0, 1)."""

    def next(self) -> float:
        ...


class RandomStream:
    """RandomSource backed by a numpy Generator, with the draw helpers the engine needs."""

    def __init__(self, seed: Union[int, np.random.Generator, None] = None):
        if isinstance(seed, np.random.Generator):
            self.rng = seed
        else:
            self.rng = np.random.default_rng(seed)

    def next(self) -> float:
        return float(self.rng.random())

    def randint(self, n: int) -> int:
        """Uniform integer in [0, n)."""
        return int(self.next() * n)

    def choice(self, seq: Sequence[T]) -> T:
        return seq[self.randint(len(seq))]

    def chance(self, p: float) -> bool:
        return self.next() < p


def as_stream(source: Optional[RandomSource]) -> RandomStream:
    """Wrap any RandomSource so callers can use the helper draws."""
    if isinstance(source, RandomStream):
        return source
    if source is None:
        return RandomStream()
    return _SourceAdapter(source)


class _SourceAdapter(RandomStream):
    def __init__(self, source: RandomSource):
        self.rng = None
        self._source = source

    def next(self) -> float:
        return float(self._source.next())


def stable_seed(*parts) -> int:
    """32-bit seed from a stable hash of 'a|b|c'; identical across processes."""
    key = "|".join(str(p) for p in parts)
    return zlib.crc32(key.encode("utf-8"))
