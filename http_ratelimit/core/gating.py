"""Gating predicates deciding whether a request is rate limited at all.

Two ordered lists of ``predicate(request) -> bool``:

- exceptions: any match excludes the request from limiting.
- conditions: all must match for the request to be limited.

Empty lists are vacuous, so a gate with no predicates limits everything.
Predicates should only read state; anything they raise propagates to the
caller.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import Any

Predicate = Callable[[Any], Any]


def _as_list(predicates: Predicate | Iterable[Predicate] | None) -> list[Predicate]:
    if predicates is None:
        return []
    if callable(predicates):
        return [predicates]
    return list(predicates)


class Gate:
    """Ordered, append-only exception and condition predicates."""

    def __init__(
        self,
        conditions: Predicate | Iterable[Predicate] | None = None,
        exceptions: Predicate | Iterable[Predicate] | None = None,
    ) -> None:
        self._conditions = _as_list(conditions)
        self._exceptions = _as_list(exceptions)

    @property
    def conditions(self) -> tuple[Predicate, ...]:
        return tuple(self._conditions)

    @property
    def exceptions(self) -> tuple[Predicate, ...]:
        return tuple(self._exceptions)

    def add_condition(self, predicate: Predicate) -> Predicate:
        """Append a condition; returns it so this works as a decorator."""
        self._conditions.append(predicate)
        return predicate

    def add_exception(self, predicate: Predicate) -> Predicate:
        """Append an exception; returns it so this works as a decorator."""
        self._exceptions.append(predicate)
        return predicate

    def applies(self, request: Any) -> bool:
        """Return True when no exception matches and every condition does."""
        if any(exception(request) for exception in self._exceptions):
            return False
        return all(condition(request) for condition in self._conditions)
