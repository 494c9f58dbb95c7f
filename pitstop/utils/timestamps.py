"""Epoch-millisecond timestamp helpers used by the event stores."""

from datetime import datetime, timezone
from typing import Optional
import time


def now_ms() -> int:
    """Current UTC time as integer epoch milliseconds."""
    return int(time.time() * 1000)


def ms_to_iso(value: Optional[int]) -> Optional[str]:
    """Format epoch milliseconds as an ISO-8601 UTC string, or None if unset.

    A zero value counts as unset, matching how the scoring tools write
    placeholder timestamps.
    """
    if not value:
        return None
    dt = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    return dt.isoformat(timespec='milliseconds').replace('+00:00', 'Z')
