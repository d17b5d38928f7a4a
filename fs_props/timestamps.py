import os
from datetime import datetime, timedelta, timezone
from typing import Optional

from .formatting import relative_time
from .models import Timestamp, TimestampSet


def _birthtime_ns(st: os.stat_result) -> int:
    # st_birthtime only exists on macOS/BSD/Windows; elsewhere ctime is the closest we have
    birth = getattr(st, "st_birthtime_ns", None)
    if birth is not None:
        return birth
    birth = getattr(st, "st_birthtime", None)
    if birth is not None:
        return int(birth * 1_000_000_000)
    return st.st_ctime_ns


EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
MIN_INSTANT = datetime.min.replace(tzinfo=timezone.utc)
MAX_INSTANT = datetime.max.replace(tzinfo=timezone.utc)


def _instant(ns: int) -> datetime:
    # timedelta arithmetic avoids the platform range limits of fromtimestamp();
    # 64-bit filesystem times past year 9999 are clamped
    try:
        return EPOCH + timedelta(microseconds=ns // 1000)
    except OverflowError:
        return MAX_INSTANT if ns > 0 else MIN_INSTANT


def _local(instant: datetime) -> str:
    try:
        return instant.astimezone().strftime("%c")
    except (OverflowError, OSError, ValueError):
        # shifting to local time ran off the calendar; show UTC
        return instant.strftime("%c")


def _timestamp(ns: int, now: datetime) -> Timestamp:
    instant = _instant(ns)
    return Timestamp(
        instant=instant,
        ms=ns / 1_000_000,
        local=_local(instant),
        relative=relative_time(instant, now),
    )


def normalize(st: os.stat_result, now: Optional[datetime] = None) -> TimestampSet:
    """
    Builds every timestamp representation from a single stat snapshot.

    Never re-stats: all four instants come from `st`. The relative strings are
    evaluated against `now` (the current time unless given), so two calls on
    the same snapshot may disagree once time has moved on.
    """
    now = now or datetime.now(timezone.utc)
    return TimestampSet(
        created=_timestamp(_birthtime_ns(st), now),
        modified=_timestamp(st.st_mtime_ns, now),
        changed=_timestamp(st.st_ctime_ns, now),
        accessed=_timestamp(st.st_atime_ns, now),
    )
