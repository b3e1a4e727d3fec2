"""Random-number sources consumed by the split/merge moves.

The moves never own a generator: the host sampler injects one, so a run is
reproducible from its seed.
"""

from __future__ import annotations

from typing import Iterable, Optional, Protocol, runtime_checkable

import numpy as np


@runtime_checkable
class RandomSource(Protocol):
    def next_int(self, bound: int) -> int:
        """Uniform integer in ``[0, bound)``."""
        ...

    def next_boolean(self) -> bool:
        ...

    def uniform(self, lo: float, hi: float) -> float:
        ...


class NumpyRandomSource:
    """:class:`RandomSource` backed by a ``np.random.Generator``."""

    def __init__(self, rng: np.random.Generator):
        self.rng = rng

    @classmethod
    def from_seed(cls, seed: Optional[int] = None) -> "NumpyRandomSource":
        return cls(np.random.default_rng(seed))

    def next_int(self, bound: int) -> int:
        if bound <= 0:
            raise ValueError(f"bound must be positive, got {bound}")
        return int(self.rng.integers(0, bound))

    def next_boolean(self) -> bool:
        return bool(self.rng.random() < 0.5)

    def uniform(self, lo: float, hi: float) -> float:
        return float(self.rng.uniform(lo, hi))


class ScriptedRandomSource:
    """Replays fixed traces of draws; used to force a particular proposal.

    ``uniforms`` are returned as given, they are not rescaled to ``[lo, hi)``.
    """

    def __init__(
        self,
        ints: Iterable[int] = (),
        booleans: Iterable[bool] = (),
        uniforms: Iterable[float] = (),
    ):
        self._ints = list(ints)
        self._booleans = list(booleans)
        self._uniforms = list(uniforms)

    def next_int(self, bound: int) -> int:
        if not self._ints:
            raise IndexError("integer trace exhausted")
        v = int(self._ints.pop(0))
        assert 0 <= v < bound, f"scripted int {v} outside [0, {bound})"
        return v

    def next_boolean(self) -> bool:
        if not self._booleans:
            raise IndexError("boolean trace exhausted")
        return bool(self._booleans.pop(0))

    def uniform(self, lo: float, hi: float) -> float:
        if not self._uniforms:
            raise IndexError("uniform trace exhausted")
        v = float(self._uniforms.pop(0))
        assert lo <= v <= hi, f"scripted uniform {v} outside [{lo}, {hi}]"
        return v

    @property
    def exhausted(self) -> bool:
        return not (self._ints or self._booleans or self._uniforms)


__all__ = [name for name in globals() if not name.startswith("_")]
