"""
seeding.py - reproducible random streams

Every function in the engine that needs randomness takes a SeededRandom
explicitly. There is no module-level generator; two instances built from the
same seed produce the same sequence no matter what else runs in between.

The recurrence is the classic 32-bit LCG used by d3's randomLcg
(a = 0x19660D, c = 0x3C6EF35F, m = 2**32), so streams are cheap to create
and trivially portable.
"""
from __future__ import annotations

import hashlib
import math
from typing import Optional, Sequence, TypeVar

import numpy as np

T = TypeVar("T")

_MUL = 0x19660D
_INC = 0x3C6EF35F
_MASK = 0xFFFFFFFF
_EPS = 1.0 / 0x100000000


def _fold_seed(seed: int) -> int:
    """Reduce an arbitrary (possibly negative or >32-bit) int to 32 bits."""
    s = int(seed)
    salt = 0
    if s < 0:
        s, salt = -s, 0x9E3779B9  # -n and n land on different streams
    out = salt
    while True:
        out ^= s & _MASK
        s >>= 32
        if not s:
            return out


def fresh_seed() -> int:
    """Entropy-backed seed for callers that did not supply one."""
    return int(np.random.SeedSequence().entropy) & 0x7FFFFFFF


def derive_seed(seed: int, label: str) -> int:
    h = hashlib.sha256(f"{int(seed)}:{label}".encode("utf-8")).hexdigest()[:8]
    return int(h, 16)


class SeededRandom:
    """Deterministic float stream in [0, 1)."""

    __slots__ = ("seed", "_state")

    def __init__(self, seed: int = 0) -> None:
        self.seed = int(seed)
        self._state = _fold_seed(self.seed)

    def next(self) -> float:
        self._state = (_MUL * self._state + _INC) & _MASK
        return self._state * _EPS

    __call__ = next

    def next_int(self, lo: int, hi: int) -> int:
        """Integer in [lo, hi], both ends inclusive."""
        lo, hi = int(lo), int(hi)
        if hi < lo:
            lo, hi = hi, lo
        return lo + int(self.next() * (hi - lo + 1))

    def uniform(self, lo: float, hi: float) -> float:
        return lo + (hi - lo) * self.next()

    def chance(self, p: float) -> bool:
        return self.next() < p

    def choice(self, seq: Sequence[T]) -> T:
        if not seq:
            raise IndexError("choice from empty sequence")
        return seq[int(self.next() * len(seq))]

    def gauss(self) -> float:
        """Standard normal sample (Box-Muller); consumes two or more draws."""
        u = 0.0
        while u == 0.0:
            u = self.next()
        v = 0.0
        while v == 0.0:
            v = self.next()
        return math.sqrt(-2.0 * math.log(u)) * math.cos(2.0 * math.pi * v)

    def fork(self, label: str) -> "SeededRandom":
        """Independent named sub-stream; does not advance this stream."""
        return SeededRandom(derive_seed(self.seed, label))

    def spawn_seed(self) -> int:
        """Draw a 31-bit seed from this stream for a child generator."""
        return self.next_int(0, 0x7FFFFFFF)

    def numpy_rng(self) -> np.random.Generator:
        """Vectorised generator seeded from (and advancing) this stream."""
        return np.random.default_rng(self.spawn_seed())

    def __repr__(self) -> str:
        return f"SeededRandom(seed={self.seed})"


def streams(seed: Optional[int]) -> dict[str, SeededRandom]:
    """The fixed set of named streams one composition uses."""
    base = SeededRandom(fresh_seed() if seed is None else seed)
    return {
        "main": SeededRandom(base.seed),
        "position": base.fork("position"),
        "geometry": base.fork("geometry"),
        "layout": base.fork("layout"),
        "noise": base.fork("noise"),
    }
