"""Conversion between operator-entered race times and elapsed milliseconds."""

from __future__ import annotations

import re

_MINUTES_TIME = re.compile(r"^(\d+):(\d{2})\.(\d{1,2})$", re.ASCII)
_SECONDS_TIME = re.compile(r"^(\d+)\.(\d{1,2})$", re.ASCII)

_CANONICAL_ENTRY = re.compile(r"^\d{1,2}:\d{2}\.\d{2}$", re.ASCII)
_LEGACY_ENTRY = re.compile(r"^(\d{1,2}:\d{2}):(\d{2})$", re.ASCII)
_DIGITS_ONLY = re.compile(r"^\d+$", re.ASCII)

NOT_TIMED = "-"


def _centis(fraction: str) -> int:
    # A single digit is tenths: "5" reads as 50 hundredths.
    return int(fraction.ljust(2, "0"))


def parse_time(text: str | None) -> int | None:
    """Return the elapsed milliseconds for ``text`` or ``None`` when it is not a time.

    Accepts ``M:SS.cc`` (any number of minute digits, exactly two second
    digits) and ``S.cc``. A seconds component of 60 or more is rejected.
    """

    if not text:
        return None
    trimmed = text.strip()
    if not trimmed or trimmed == NOT_TIMED:
        return None

    match = _MINUTES_TIME.match(trimmed)
    if match:
        minutes = int(match.group(1))
        seconds = int(match.group(2))
        if seconds >= 60:
            return None
        return minutes * 60_000 + seconds * 1000 + _centis(match.group(3)) * 10

    match = _SECONDS_TIME.match(trimmed)
    if match:
        seconds = int(match.group(1))
        return seconds * 1000 + _centis(match.group(2)) * 10

    return None


def format_time(ms: int) -> str:
    """Render ``ms`` as ``M:SS.cc``, or ``S.cc`` below one minute.

    ``None`` is not a duration; callers print :data:`NOT_TIMED` instead.
    """

    total_seconds = ms // 1000
    minutes = total_seconds // 60
    seconds = total_seconds % 60
    centis = (ms % 1000) // 10
    if minutes > 0:
        return f"{minutes}:{seconds:02d}.{centis:02d}"
    return f"{seconds}.{centis:02d}"


def format_delta(ms: int | None) -> str:
    """Format a gap behind the leader; empty for missing or non-positive gaps."""

    if ms is None or ms <= 0:
        return ""
    return format_time(ms)


def auto_format_time(raw: str | None) -> str | None:
    """Best-effort correction of shorthand time entry.

    ``"22360"`` becomes ``"02:23.60"`` and ``"2:01:20"`` becomes
    ``"2:01.20"``. Anything else is returned trimmed; validation is left to
    :func:`parse_time`. Applying the function to its own output is a no-op.
    """

    if not raw:
        return raw
    trimmed = raw.strip()

    if _CANONICAL_ENTRY.match(trimmed):
        return trimmed

    match = _LEGACY_ENTRY.match(trimmed)
    if match:
        return f"{match.group(1)}.{match.group(2)}"

    if _DIGITS_ONLY.match(trimmed):
        last_six = trimmed.rjust(6, "0")[-6:]
        return f"{last_six[0:2]}:{last_six[2:4]}.{last_six[4:6]}"

    return trimmed


__all__ = [
    "NOT_TIMED",
    "auto_format_time",
    "format_delta",
    "format_time",
    "parse_time",
]
