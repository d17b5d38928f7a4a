"""
Human-readable renderings for byte counts, durations and instants.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional, Sequence, Union

import humanize

from . import config


def convert_bytes(num: int, sizes: Sequence[str] = config.BYTE_UNITS, show_bytes: bool = True) -> str:
    """
    Renders a byte (or bit) count with 1024-based units.

        0        -> "0 bytes"
        512      -> "512 Bytes"
        1536     -> "1.50 KB (1536 bytes)"
    """
    if num == 0:
        return '0 bytes'

    i = 0
    scaled = float(num)
    while scaled >= 1024 and i < len(sizes) - 1:
        scaled /= 1024
        i += 1

    if i == 0:
        return f"{num} {sizes[0]}"
    text = f"{scaled:.2f} {sizes[i]}"
    if show_bytes:
        text += f" ({num} bytes)"
    return text


def convert_bit_rate(bits_per_sec: Optional[int]) -> Optional[str]:
    if not bits_per_sec:
        return None
    return convert_bytes(bits_per_sec, config.BIT_RATE_UNITS, show_bytes=False)


def humanize_duration(duration_ms: Optional[Union[float, str]]) -> Optional[str]:
    """e.g. 65500 -> "1 minute and 5.50 seconds". None passes through."""
    if duration_ms is None:
        return None
    ms = float(duration_ms)
    return humanize.precisedelta(timedelta(milliseconds=ms), minimum_unit="seconds", format="%0.2f")


def relative_time(instant: datetime, now: Optional[datetime] = None) -> str:
    """Renders `instant` relative to `now` (defaults to the current time), e.g. "3 days ago"."""
    now = now or datetime.now(timezone.utc)
    delta = now - instant
    try:
        return humanize.naturaltime(delta)
    except OverflowError:
        # naturaltime rebuilds a date from its own clock, which can run off the calendar
        suffix = "ago" if delta >= timedelta(0) else "from now"
        return f"{humanize.naturaldelta(delta)} {suffix}"
