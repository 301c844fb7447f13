from __future__ import annotations

import re
from typing import Union

UNIT_MS = "ms"
UNIT_SECONDS = "s"

_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")

Number = Union[int, float]


def format_clock_time(value: Number, unit: str = UNIT_MS) -> str:
    if unit == UNIT_MS:
        total_seconds = int(max(0.0, float(value)) // 1000)
    elif unit == UNIT_SECONDS:
        total_seconds = int(max(0.0, float(value)))
    else:
        raise ValueError(f"Unknown time unit: {unit}")
    minutes, seconds = divmod(total_seconds, 60)
    return f"{minutes}:{seconds:02d}"


def format_compact_time(seconds: Number) -> str:
    whole = int(max(0.0, float(seconds)))
    if whole < 60:
        return str(whole)
    minutes, secs = divmod(whole, 60)
    return f"{minutes}:{secs:02d}"


def parse_time_input(text: str) -> int:
    """Parse ``"90"`` or ``"1:30"`` into seconds.

    Unparseable parts count as zero; this never raises.
    """
    value = "" if text is None else str(text)
    if not value.strip():
        return 0
    if ":" in value:
        parts = value.split(":")
        minutes = _leading_int(parts[0])
        seconds = _leading_int(parts[1])
        return minutes * 60 + seconds
    return _leading_int(value)


def seconds_to_ms(seconds: Number) -> int:
    return int(round(float(seconds) * 1000.0))


def ms_to_seconds(value_ms: Number) -> float:
    return float(value_ms) / 1000.0


def _leading_int(text: str) -> int:
    match = _LEADING_INT_RE.match(text or "")
    if match is None:
        return 0
    return int(match.group(1))
