"""Partition state shared by the split/merge moves, plus move event records."""

from __future__ import annotations

import warnings
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import numpy as np


class ConfigurationError(ValueError):
    """Invalid dimensions or indices detected while setting up a chain."""


@dataclass
class SplitEvent:
    """Record of the last split proposal."""

    group: int
    new_slot: int
    n_stay: int
    n_move: int
    rate: float
    mu: float
    k_before: int
    k_after: int
    log_ratio: float


@dataclass
class MergeEvent:
    """Record of the last merge proposal."""

    kept_slot: int
    freed_slot: int
    size_kept: int
    size_freed: int
    rate: float
    k_before: int
    k_after: int
    log_ratio: float


class GroupedParameterState:
    """Entries pointing through ``grouping`` at a vector of slot values.

    ``grouping[e]`` is the slot of entry ``e``; ``sizes[s]`` counts the entries
    in slot ``s`` and ``values[s]`` is the shared parameter value of that group.
    Values at free slots (``sizes[s] == 0``) are stale.

    Every write goes through :meth:`assign` / :meth:`set_value`, which journal
    the first-seen previous value of whatever they touch. ``checkpoint`` and
    ``commit`` drop the journal, ``restore`` replays it backwards, so all
    three cost O(touched) rather than O(n).
    """

    def __init__(
        self,
        grouping: Sequence[int],
        values: Sequence[float],
        active: Optional[Sequence[bool]] = None,
    ):
        grouping = np.array(grouping, dtype=np.int64, copy=True)
        values = np.array(values, dtype=np.float64, copy=True)
        if grouping.ndim != 1 or grouping.size == 0:
            raise ConfigurationError("grouping must be a non-empty 1D sequence")
        if values.ndim != 1 or values.size == 0:
            raise ConfigurationError("values must be a non-empty 1D sequence")
        k_max = values.size
        if np.any(grouping < 0) or np.any(grouping >= k_max):
            raise ConfigurationError(
                "All entries in grouping must be valid indices of values"
            )

        sizes = np.bincount(grouping, minlength=k_max).astype(np.int64)
        if active is not None:
            active = np.asarray(active, dtype=bool)
            if active.shape != values.shape:
                raise ConfigurationError(
                    "active must correspond to values in dimension"
                )
            if np.any(active != (sizes > 0)):
                raise ConfigurationError(
                    "active must flag exactly the slots referenced by grouping"
                )

        occ_vals = values[sizes > 0]
        if not np.all(np.isfinite(occ_vals)) or np.any(occ_vals <= 0.0):
            warnings.warn(
                "occupied slot holds a non-positive or non-finite value; "
                "the split Jacobian is undefined there",
                RuntimeWarning,
                stacklevel=2,
            )

        self._grouping = grouping
        self._values = values
        self._sizes = sizes
        # journal: index -> value before the first write since the last checkpoint
        self._old_grouping: Dict[int, int] = {}
        self._old_values: Dict[int, float] = {}
        self._old_sizes: Dict[int, int] = {}

    # ---- alternative constructors ----
    @classmethod
    def identity(cls, values: Sequence[float]) -> "GroupedParameterState":
        """Entry ``e`` in its own slot ``e``; one entry per slot."""

        values = np.asarray(values, dtype=np.float64)
        return cls(np.arange(values.size), values)

    @classmethod
    def single_group(
        cls, n: int, k_max: int, value: float
    ) -> "GroupedParameterState":
        """All ``n`` entries share slot 0."""

        values = np.full(k_max, value, dtype=np.float64)
        return cls(np.zeros(n, dtype=np.int64), values)

    # ---- read access ----
    @property
    def n(self) -> int:
        return int(self._grouping.size)

    @property
    def k_max(self) -> int:
        return int(self._values.size)

    @property
    def k(self) -> int:
        return int(np.count_nonzero(self._sizes))

    @property
    def grouping(self) -> np.ndarray:
        view = self._grouping.view()
        view.flags.writeable = False
        return view

    @property
    def values(self) -> np.ndarray:
        view = self._values.view()
        view.flags.writeable = False
        return view

    @property
    def sizes(self) -> np.ndarray:
        view = self._sizes.view()
        view.flags.writeable = False
        return view

    @property
    def active(self) -> np.ndarray:
        """Boolean mask over slots, True where occupied."""

        return self._sizes > 0

    def occupied_slots(self) -> np.ndarray:
        return np.flatnonzero(self._sizes > 0)

    def free_slots(self) -> np.ndarray:
        return np.flatnonzero(self._sizes == 0)

    def splittable_slots(self) -> np.ndarray:
        return np.flatnonzero(self._sizes >= 2)

    def slot_of(self, e: int) -> int:
        return int(self._grouping[e])

    def value_of(self, e: int) -> float:
        return float(self._values[self._grouping[e]])

    def members(self, s: int) -> np.ndarray:
        """Entries of slot ``s`` in ascending order."""

        return np.flatnonzero(self._grouping == s)

    def is_dirty(self, e: int) -> bool:
        """True if entry ``e`` or the value it points at was written since the last checkpoint."""

        return e in self._old_grouping or int(self._grouping[e]) in self._old_values

    def touched_entries(self) -> List[int]:
        return sorted(self._old_grouping)

    def touched_slots(self) -> List[int]:
        return sorted(set(self._old_values) | set(self._old_sizes))

    # ---- mutation ----
    def assign(self, e: int, s: int) -> None:
        """Move entry ``e`` into slot ``s``, keeping ``sizes`` consistent."""

        e = int(e)
        s = int(s)
        old = int(self._grouping[e])
        if old == s:
            return
        self._old_grouping.setdefault(e, old)
        self._old_sizes.setdefault(old, int(self._sizes[old]))
        self._old_sizes.setdefault(s, int(self._sizes[s]))
        self._grouping[e] = s
        self._sizes[old] -= 1
        self._sizes[s] += 1

    def set_value(self, s: int, v: float) -> None:
        s = int(s)
        self._old_values.setdefault(s, float(self._values[s]))
        self._values[s] = v

    # ---- store / restore / accept ----
    def checkpoint(self) -> None:
        """Take the current state as the one :meth:`restore` returns to."""

        self._clear_journal()

    def commit(self) -> None:
        """Accept everything written since the last checkpoint."""

        self._clear_journal()

    def restore(self) -> None:
        """Roll back every write since the last checkpoint."""

        for e, s in self._old_grouping.items():
            self._grouping[e] = s
        for s, size in self._old_sizes.items():
            self._sizes[s] = size
        for s, v in self._old_values.items():
            self._values[s] = v
        self._clear_journal()

    def _clear_journal(self) -> None:
        self._old_grouping.clear()
        self._old_values.clear()
        self._old_sizes.clear()

    # ---- helpers ----
    def copy(self) -> "GroupedParameterState":
        """Independent copy with an empty journal."""

        new = object.__new__(GroupedParameterState)
        new._grouping = self._grouping.copy()
        new._values = self._values.copy()
        new._sizes = self._sizes.copy()
        new._old_grouping = {}
        new._old_values = {}
        new._old_sizes = {}
        return new

    def as_dict(self) -> Dict[str, np.ndarray]:
        return {
            "grouping": self._grouping.copy(),
            "sizes": self._sizes.copy(),
            "values": self._values.copy(),
        }

    def check_invariants(self) -> None:
        sizes = self._sizes
        occupied = sizes > 0
        assert int(sizes[occupied].sum()) == self.n, "sizes do not sum to n"
        assert np.all(occupied[self._grouping]), "entry points at a free slot"
        assert np.all(sizes >= 0), "negative slot size"
        assert np.array_equal(
            sizes, np.bincount(self._grouping, minlength=self.k_max)
        ), "sizes out of sync with grouping"
        assert self.k <= self.k_max, "more groups than slots"

    def __repr__(self) -> str:
        return (
            f"GroupedParameterState(n={self.n}, k={self.k}, k_max={self.k_max}, "
            f"grouping={self._grouping.tolist()}, values={self._values.tolist()})"
        )


__all__ = [name for name in globals() if not name.startswith("_")]
