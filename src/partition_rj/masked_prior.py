"""Prior densities over the active subset of a parameter vector."""

from __future__ import annotations

from typing import Callable, Optional, Protocol, Sequence, runtime_checkable

import numpy as np
import jax
import jax.numpy as jnp

from .states import ConfigurationError, GroupedParameterState


@runtime_checkable
class ParametricDistribution(Protocol):
    def log_density(self, values: np.ndarray) -> float:
        ...


class ElementwisePrior:
    """Independent prior: sum of an elementwise log-pdf, e.g. ``jax.scipy.stats.gamma.logpdf``.

    Extra keyword arguments are passed on to ``logpdf``.
    """

    def __init__(self, logpdf: Callable[..., jnp.ndarray], **params):
        self.logpdf = logpdf
        self.params = params

    def log_density(self, values: np.ndarray) -> float:
        values = np.asarray(values, dtype=np.float64)
        if values.size == 0:
            return 0.0
        return float(jnp.sum(self.logpdf(jnp.asarray(values), **self.params)))


def _validate(values: np.ndarray, active: np.ndarray) -> None:
    if values.ndim != 1 or active.ndim != 1:
        raise ConfigurationError("values and active must be 1D")
    if values.shape != active.shape:
        raise ConfigurationError(
            f"Dimension of active markers ({active.size}) does not correspond "
            f"to dimension of values ({values.size})"
        )


def _validate_bounds(lower: float, upper: float) -> None:
    if np.isnan(lower) or np.isnan(upper) or lower > upper:
        raise ConfigurationError(f"invalid bounds [{lower}, {upper}]")


def masked_log_density(
    values: Sequence[float],
    active: Sequence[bool],
    dist: ParametricDistribution,
    lower: float = -np.inf,
    upper: float = np.inf,
) -> float:
    """``dist.log_density(values[active])``, or ``-inf`` if an active value is non-finite or out of bounds."""

    values = np.asarray(values, dtype=np.float64)
    active = np.asarray(active, dtype=bool)
    _validate(values, active)
    _validate_bounds(lower, upper)

    cut = values[active]
    if not np.all(np.isfinite(cut)) or np.any(cut < lower) or np.any(cut > upper):
        return -np.inf
    return float(dist.log_density(cut))


class MaskedPriorEvaluator:
    """Prior over the active entries of a vector, with hard bounds.

    If ``values``/``active`` are given here they are checked against each other
    once and used whenever :meth:`log_density` is called without arguments.
    The last result is kept and returned again while the inputs, ``dist`` and
    the bounds are all unchanged.
    """

    def __init__(
        self,
        dist: ParametricDistribution,
        lower: float = -np.inf,
        upper: float = np.inf,
        values: Optional[Sequence[float]] = None,
        active: Optional[Sequence[bool]] = None,
    ):
        _validate_bounds(lower, upper)
        if (values is None) != (active is None):
            raise ConfigurationError("values and active must be given together")
        if values is not None:
            _validate(
                np.asarray(values, dtype=np.float64), np.asarray(active, dtype=bool)
            )
        self.dist = dist
        self.lower = lower
        self.upper = upper
        self.values = values
        self.active = active
        self.cache_hits = 0
        self._key = None
        self._log_p = None

    def log_density(
        self,
        values: Optional[Sequence[float]] = None,
        active: Optional[Sequence[bool]] = None,
    ) -> float:
        values = self.values if values is None else values
        active = self.active if active is None else active
        if values is None or active is None:
            raise ConfigurationError("no values/active bound to this evaluator")
        values = np.asarray(values, dtype=np.float64)
        active = np.asarray(active, dtype=bool)
        _validate(values, active)

        key = (id(self.dist), self.lower, self.upper, values.tobytes(), active.tobytes())
        if key == self._key:
            self.cache_hits += 1
            return self._log_p
        log_p = masked_log_density(values, active, self.dist, self.lower, self.upper)
        self._key = key
        self._log_p = log_p
        return log_p

    def log_density_of(self, state: GroupedParameterState) -> float:
        """Prior of the slot values of ``state`` restricted to occupied slots."""

        return self.log_density(state.values, state.active)

    def clear(self) -> None:
        self._key = None
        self._log_p = None


def make_batched_masked_log_prior(
    logpdf_jax: Callable[..., jnp.ndarray],
    lower: float = -np.inf,
    upper: float = np.inf,
    **params,
):
    """Return a JAX-compiled masked iid prior over a batch.

        batched(values: (B,K), active: (B,K) bool) -> (B,)

    Row-wise equal to ``masked_log_density(v, a, ElementwisePrior(logpdf_jax, **params), lower, upper)``.
    """

    _validate_bounds(lower, upper)

    def _single(v, a):
        lp = logpdf_jax(v, **params)
        out_of_bounds = jnp.any(a & (~jnp.isfinite(v) | (v < lower) | (v > upper)))
        total = jnp.sum(jnp.where(a, lp, 0.0))
        return jnp.where(out_of_bounds, -jnp.inf, total)

    f = jax.jit(jax.vmap(_single, in_axes=(0, 0)))

    def batched(values_b: np.ndarray, active_b: np.ndarray) -> np.ndarray:
        values_b = np.asarray(values_b, dtype=np.float64)
        active_b = np.asarray(active_b, dtype=bool)
        if values_b.ndim != 2 or values_b.shape != active_b.shape:
            raise ConfigurationError(
                f"values {values_b.shape} and active {active_b.shape} must be equal (B,K)"
            )
        return np.asarray(f(jnp.asarray(values_b), jnp.asarray(active_b)))

    return batched


__all__ = [name for name in globals() if not name.startswith("_")]
