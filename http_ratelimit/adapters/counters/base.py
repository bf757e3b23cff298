"""Counter interface.

The limiter depends on this abstraction only. Implementations must be safe
for concurrent callers racing on the first request of a window: the value
returned after N increments of a key is exactly N.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

KEY_NAMESPACE = "rack-ratelimit"


def counter_key(name: str, classification: str, timestamp: int) -> str:
    """Build the store key for one limiter, classification and window.

    The layout is shared by every process pointed at the same store, so it
    must stay stable: ``rack-ratelimit/<name>/<classification>/<timestamp>``.
    """

    return f"{KEY_NAMESPACE}/{name}/{classification}/{int(timestamp)}"


class AbstractCounter(ABC):
    """Interface for per-window request counters."""

    @abstractmethod
    def increment(self, classification: str, timestamp: int) -> int:
        """Increment the counter and return the count after incrementing.

        Args:
            classification: Partition key of the request (IP, API token, ...).
            timestamp: Epoch seconds marking the end of the current window.

        Returns:
            The number of increments recorded for this window so far.
        """
        raise NotImplementedError
