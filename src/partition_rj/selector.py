"""Indirect per-entry values and their tab-separated log columns."""

from __future__ import annotations

from typing import Iterable, Optional, TextIO, Tuple

from .states import ConfigurationError, GroupedParameterState


class IndirectValue:
    """Scalar view ``values[grouping[entry]]`` of one entry.

    Observers (likelihood terms, loggers) use :meth:`has_changed` to skip work
    when neither the entry's slot nor that slot's value moved since they last
    read :attr:`value`.
    """

    def __init__(
        self, state: GroupedParameterState, entry: int, name: Optional[str] = None
    ):
        if not 0 <= entry < state.n:
            raise ConfigurationError(
                f"entry must be a valid index of grouping, got {entry} (n={state.n})"
            )
        self.state = state
        self.entry = int(entry)
        self.name = f"entry{entry}" if name is None else name
        self._seen: Optional[Tuple[int, float]] = None
        self._stored: Optional[Tuple[int, float]] = None

    def _current(self) -> Tuple[int, float]:
        return self.state.slot_of(self.entry), self.state.value_of(self.entry)

    @property
    def value(self) -> float:
        self._seen = self._current()
        return self._seen[1]

    def has_changed(self) -> bool:
        return self._seen != self._current()

    def requires_recalculation(self) -> bool:
        changed = self.has_changed()
        self._seen = self._current()
        return changed

    # host lifecycle around a proposal
    def store(self) -> None:
        self._stored = self._seen

    def restore(self) -> None:
        self._seen = self._stored
        self._stored = None

    def accept(self) -> None:
        self._stored = None

    # loggable
    def log_header(self) -> str:
        return self.name

    def log_value(self) -> str:
        # reading for output does not count as an observation
        return repr(self.state.value_of(self.entry))


def write_log_header(out: TextIO, items: Iterable, sample_label: str = "Sample") -> None:
    out.write("\t".join([sample_label] + [it.log_header() for it in items]) + "\n")


def write_log_row(out: TextIO, sample: int, items: Iterable) -> None:
    out.write("\t".join([str(int(sample))] + [it.log_value() for it in items]) + "\n")


__all__ = [name for name in globals() if not name.startswith("_")]
