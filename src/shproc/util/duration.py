from __future__ import annotations

import math
import re
from datetime import timedelta

_DURATION_PATTERN = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m)\s*$")
_UNIT_MS = {"ms": 1.0, "s": 1000.0, "m": 60_000.0}

Duration = str | int | float | timedelta


def parse_duration(value: Duration) -> float:
    """Return milliseconds for "500ms", "10s", "2m", a timedelta or a raw number of ms."""
    if isinstance(value, bool):
        raise ValueError(f"invalid duration: {value!r}")
    if isinstance(value, timedelta):
        return value.total_seconds() * 1000.0
    if isinstance(value, (int, float)):
        if not math.isfinite(value) or value < 0:
            raise ValueError(f"invalid duration: {value!r}")
        return float(value)
    if isinstance(value, str):
        match = _DURATION_PATTERN.fullmatch(value)
        if match is not None:
            return float(match.group(1)) * _UNIT_MS[match.group(2)]
    raise ValueError(f"unknown duration: {value!r}")
