"""Single source of "now" for session, cooldown and token timestamps.

Everything is naive UTC, matching the DateTime columns. Tests freeze or
advance the clock instead of patching datetime.
"""
from datetime import datetime, timedelta, timezone
from calendar import timegm

_frozen_at = None


def now() -> datetime:
    if _frozen_at is not None:
        return _frozen_at
    return datetime.now(timezone.utc).replace(tzinfo=None)


def timestamp() -> int:
    return timegm(now().utctimetuple())


def freeze(at: datetime) -> None:
    global _frozen_at
    _frozen_at = at


def advance(delta: timedelta) -> datetime:
    freeze(now() + delta)
    return _frozen_at


def unfreeze() -> None:
    global _frozen_at
    _frozen_at = None
