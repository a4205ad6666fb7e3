"""Injectable time source.

Every timestamp written by the store comes from a Clock so tests can control
time deterministically.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

Clock = Callable[[], datetime]


def system_clock() -> datetime:
    """Current UTC time truncated to millisecond precision."""
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=(now.microsecond // 1000) * 1000)


class SteppingClock:
    """Deterministic clock that advances by a fixed step on every call."""

    def __init__(self, start: datetime, step: Optional[timedelta] = None):
        if start.tzinfo is None:
            start = start.replace(tzinfo=timezone.utc)
        self._next = start
        self._step = step if step is not None else timedelta(minutes=1)

    def __call__(self) -> datetime:
        current = self._next
        self._next = current + self._step
        return current


def format_timestamp(dt: datetime) -> str:
    """Format as ISO 8601 UTC with milliseconds and a 'Z' suffix.

    Example: 2025-11-08T15:30:45.123Z
    """
    utc = dt.astimezone(timezone.utc)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"


def format_checkpoint_id(dt: datetime) -> str:
    """Checkpoint id: the ISO timestamp with colons replaced by hyphens.

    Example: 2025-11-08T15-30-45.123Z
    """
    return format_timestamp(dt).replace(":", "-")
