"""Pytest configuration and shared helpers for partition_rj tests."""

import jax

jax.config.update("jax_enable_x64", True)

import numpy as np

from partition_rj import GroupedParameterState


def random_state(rng: np.random.Generator, splittable: bool = True) -> GroupedParameterState:
    """Random partition; with ``splittable`` it has a group of size >= 2 and a free slot."""

    n = int(rng.integers(3, 9))
    if splittable:
        n_used = n // 2 + 1
        k_max = n + 1
    else:
        n_used = n
        k_max = n + int(rng.integers(0, 3))
    grouping = rng.integers(0, n_used, size=n)
    values = rng.uniform(0.5, 3.0, size=k_max)
    return GroupedParameterState(grouping, values)
