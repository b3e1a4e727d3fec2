"""Split and merge reversible-jump moves over a :class:`GroupedParameterState`.

Both moves mutate the state in place and return the log of the Hastings ratio
including the Jacobian of the value transform (Green 1995; Pagel & Meade
2006). Likelihood and prior ratios are left to the host sampler, as are
``checkpoint``/``commit``/``restore`` around each proposal.

A split of group ``g`` (``m`` entries, value ``rate``) into ``stay``/``move``
draws ``mu ~ U(-|stay| rate, |move| rate)`` and sets::

    values[g]        = rate + mu / |stay|
    values[new_slot] = rate - mu / |move|

which the merge inverts with the size-weighted mean. Because the merge ratio
is computed as the negated split ratio for the reverse move, the two are
consistent by construction.
"""

from __future__ import annotations

import warnings
from typing import Optional, Tuple

import numpy as np

from .random_source import RandomSource
from .states import GroupedParameterState, MergeEvent, SplitEvent

_LOG_HALF = np.log(0.5)
_LOG2 = np.log(2.0)


def _log_choose2(k: int) -> float:
    # log binom(k, 2) in float64 regardless of the jax precision setting
    return float(np.log(k * (k - 1) / 2.0))


def _log_nontrivial_bipartitions(m: int) -> float:
    # log(2^(m-1) - 1), the number of ways to split m entries into two non-empty
    # groups with one designated entry kept; stable for large m
    return float((m - 1) * _LOG2 + np.log1p(-np.exp2(-(m - 1.0))))


def _usable_rate(rate: float, move: str) -> bool:
    # the value transform and its Jacobian need a positive finite rate
    if np.isfinite(rate) and rate > 0.0:
        return True
    warnings.warn(
        f"{move} skipped: group value {rate} is not positive and finite",
        RuntimeWarning,
        stacklevel=3,
    )
    return False


def _can_split(sizes: np.ndarray) -> bool:
    return bool(np.any(sizes >= 2) and np.any(sizes == 0))


def _can_merge(sizes: np.ndarray) -> bool:
    return int(np.count_nonzero(sizes)) >= 2


def _log_p_split(sizes: np.ndarray) -> float:
    # split is the only option when no merge is possible
    return _LOG_HALF if _can_merge(sizes) else 0.0


def _log_p_merge(sizes: np.ndarray) -> float:
    return _LOG_HALF if _can_split(sizes) else 0.0


def split_log_ratio(
    log_p_split_before: float,
    log_p_merge_after: float,
    n_splittable: int,
    k_before: int,
    m: int,
    rate: float,
) -> float:
    """Log Hastings ratio (with Jacobian) of splitting an ``m``-entry group of value ``rate``.

    ``n_splittable`` and ``k_before`` describe the state before the split.
    """

    return (
        log_p_merge_after
        - log_p_split_before
        + np.log(n_splittable)
        - _log_choose2(k_before + 1)
        + _log_nontrivial_bipartitions(m)
        + np.log(rate * m)
    )


class SplitMove:
    """Split one group of size >= 2 into two, occupying a free slot."""

    kind = "split"

    def __init__(self, *, debug: bool = False):
        self.debug = debug
        self.last_event: Optional[SplitEvent] = None

    def is_feasible(self, state: GroupedParameterState) -> bool:
        return _can_split(state.sizes)

    def propose(self, state: GroupedParameterState, rng: RandomSource) -> float:
        self.last_event = None
        splittable = state.splittable_slots()
        free = state.free_slots()
        n_m = splittable.size
        if n_m == 0 or free.size == 0:
            return -np.inf

        sizes_before = state.sizes.copy()
        k_before = state.k
        g = int(splittable[rng.next_int(n_m)])
        new_slot = int(free[rng.next_int(free.size)])

        rate = float(state.values[g])
        if not _usable_rate(rate, "split"):
            return -np.inf

        members = state.members(g)
        m = members.size
        # members[0] always stays; redraw the coins until at least one entry
        # moves, all before touching the state
        moving = np.zeros(m, dtype=bool)
        while not moving.any():
            for i in range(1, m):
                moving[i] = rng.next_boolean()
        n_move = int(moving.sum())
        n_stay = m - n_move

        mu = rng.uniform(-n_stay * rate, n_move * rate)

        for e in members[moving]:
            state.assign(e, new_slot)
        state.set_value(g, rate + mu / n_stay)
        state.set_value(new_slot, rate - mu / n_move)

        log_ratio = split_log_ratio(
            _log_p_split(sizes_before),
            _log_p_merge(state.sizes),
            n_m,
            k_before,
            m,
            rate,
        )
        assert not np.isnan(log_ratio), f"NaN split ratio (rate={rate}, m={m})"
        if self.debug:
            state.check_invariants()

        self.last_event = SplitEvent(
            group=g,
            new_slot=new_slot,
            n_stay=n_stay,
            n_move=n_move,
            rate=rate,
            mu=float(mu),
            k_before=k_before,
            k_after=state.k,
            log_ratio=float(log_ratio),
        )
        return float(log_ratio)


class MergeMove:
    """Merge two occupied slots into one, freeing the second."""

    kind = "merge"

    def __init__(self, *, debug: bool = False):
        self.debug = debug
        self.last_event: Optional[MergeEvent] = None

    def is_feasible(self, state: GroupedParameterState) -> bool:
        return _can_merge(state.sizes)

    def propose(self, state: GroupedParameterState, rng: RandomSource) -> float:
        self.last_event = None
        occupied = state.occupied_slots()
        k = occupied.size
        if k < 2:
            return -np.inf

        sizes_before = state.sizes.copy()
        # ordered draw of two distinct slots: each unordered pair has 1/binom(k,2)
        i = rng.next_int(k)
        j = rng.next_int(k - 1)
        if j >= i:
            j += 1
        a = int(occupied[i])
        b = int(occupied[j])

        size_a = int(sizes_before[a])
        size_b = int(sizes_before[b])
        m = size_a + size_b
        rate = (state.values[a] * size_a + state.values[b] * size_b) / m
        if not _usable_rate(rate, "merge"):
            return -np.inf

        for e in state.members(b):
            state.assign(e, a)
        state.set_value(a, rate)
        state.set_value(b, rate)

        sizes_after = state.sizes
        # negated ratio of the split that would take the merged state back
        log_ratio = -split_log_ratio(
            _log_p_split(sizes_after),
            _log_p_merge(sizes_before),
            int(np.count_nonzero(sizes_after >= 2)),
            k - 1,
            m,
            rate,
        )
        assert not np.isnan(log_ratio), f"NaN merge ratio (rate={rate}, m={m})"
        if self.debug:
            state.check_invariants()

        self.last_event = MergeEvent(
            kept_slot=a,
            freed_slot=b,
            size_kept=size_a,
            size_freed=size_b,
            rate=float(rate),
            k_before=k,
            k_after=k - 1,
            log_ratio=float(log_ratio),
        )
        return float(log_ratio)


def propose_split_or_merge(
    state: GroupedParameterState,
    rng: RandomSource,
    split: Optional[SplitMove] = None,
    merge: Optional[MergeMove] = None,
) -> Tuple[Optional[str], float]:
    """Pick split or merge with the selection probabilities the ratios assume, and propose it.

    Returns ``(kind, log_ratio)``; ``(None, -inf)`` when neither move applies.
    """

    split = SplitMove() if split is None else split
    merge = MergeMove() if merge is None else merge
    can_split = split.is_feasible(state)
    can_merge = merge.is_feasible(state)
    if not (can_split or can_merge):
        return None, -np.inf
    if can_split and (not can_merge or rng.next_boolean()):
        return split.kind, split.propose(state, rng)
    return merge.kind, merge.propose(state, rng)


__all__ = [name for name in globals() if not name.startswith("_")]
