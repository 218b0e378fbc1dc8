"""
Seeded random number source.

Every stochastic draw in the engine goes through a SeededRandom so that a
single 32-bit seed reproduces the whole world. Independent streams are derived
with fork() / for_day() instead of sharing one counter across call sites:

  generate(seed)          -> SeededRandom(seed)
  step on day t           -> SeededRandom.for_day(seed, t)
"""
import math
from typing import Sequence, TypeVar

import numpy as np

T = TypeVar("T")

_MASK32 = 0xFFFFFFFF


class SeededRandom:
    """Deterministic float stream in [0, 1) backed by numpy's PCG64."""

    def __init__(self, seed):
        if isinstance(seed, np.random.SeedSequence):
            self._seq = seed
        else:
            self._seq = np.random.SeedSequence(int(seed) & _MASK32)
        self._gen = np.random.default_rng(self._seq)

    @classmethod
    def for_day(cls, seed: int, day: int) -> "SeededRandom":
        """Sub-stream for one simulation day; does not depend on earlier days."""
        return cls(np.random.SeedSequence([int(seed) & _MASK32, int(day) % (_MASK32 + 1)]))

    def fork(self, *keys: int) -> "SeededRandom":
        """Independent child stream keyed by ``keys`` (parent stream is not advanced)."""
        entropy = [int(self._seq.entropy) & _MASK32] + [int(k) % (_MASK32 + 1) for k in keys]
        return SeededRandom(np.random.SeedSequence(entropy))

    def random(self) -> float:
        return float(self._gen.random())

    def randn(self) -> float:
        """Standard normal draw via the Box-Muller transform."""
        u = 0.0
        v = 0.0
        while u == 0.0:
            u = self.random()
        while v == 0.0:
            v = self.random()
        return math.sqrt(-2.0 * math.log(u)) * math.cos(2.0 * math.pi * v)

    def pick(self, items: Sequence[T]) -> T:
        return items[int(math.floor(self.random() * len(items)))]

    def below(self, n: int) -> int:
        """Uniform integer in [0, n)."""
        return int(math.floor(self.random() * n))
