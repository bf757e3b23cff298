"""Fixed window arithmetic.

Windows are identified by their end instant and aligned to multiples of the
period since the epoch (not to calendar boundaries)::

    window_end = period * ceil(now / period)

Every ``now`` in ``(window_end - period, window_end]`` maps to the same
window, so nodes sharing a counter store agree on window boundaries as long
as their clocks agree. Clock skew between nodes is not corrected.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone


def window_end(now: float, period: int) -> int:
    """Return the epoch timestamp marking the end of the window holding ``now``.

    Args:
        now: UNIX time in (fractional) seconds.
        period: Window length in whole seconds.

    Returns:
        Window end as integer epoch seconds, always a multiple of ``period``.
    """

    return period * math.ceil(now / period)


def format_until(timestamp: int) -> str:
    """Render a window end as an ISO-8601 UTC timestamp (``2024-01-01T00:00:10Z``)."""

    return datetime.fromtimestamp(timestamp, timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
