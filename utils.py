# utils.py
# Small formatting and unit helpers shared by the client and the command line.

from __future__ import annotations

import math

_UNIT_FACTORS = {
    "hz": 1,
    "khz": 1_000,
    "mhz": 1_000_000,
}


def pretty_duration(seconds: float, style: str = "auto") -> str:
    """Format duration as '1h 02m 05s' / '22m 03s' / '3.40 s' / '850 ms' or 'HH:MM:SS'."""
    if seconds < 0:
        seconds = 0.0

    if style == "clock":
        total = int(round(seconds))
        h = total // 3600
        m = (total % 3600) // 60
        s = total % 60
        return f"{h:02d}:{m:02d}:{s:02d}"

    if seconds < 0.001:
        return "0 ms"
    if seconds < 1.0:
        return f"{seconds * 1000:.0f} ms"
    if seconds < 60.0:
        return f"{seconds:.2f} s"

    total = int(round(seconds))
    h = total // 3600
    m = (total % 3600) // 60
    s = total % 60

    if h > 0:
        return f"{h}h {m}m {s:02d}s"
    return f"{m}m {s:02d}s"


def format_frequency(hz: float) -> str:
    """Dotted MHz.kHz.Hz triplet, e.g. 7123400 -> '7.123.400'."""
    hz = int(round(hz))
    mhz = hz // 1_000_000
    rem = hz % 1_000_000
    khz = rem // 1_000
    h = rem % 1_000
    return f"{mhz}.{khz:03d}.{h:03d}"


def to_hz(value: float | str, unit: str = "mhz") -> int:
    """
    Convert an operator-entered frequency to whole Hz.

    to_hz("7.1234") -> 7123400, to_hz("7123.4", "khz") -> 7123400
    """
    factor = _UNIT_FACTORS.get(str(unit).lower())
    if factor is None:
        raise ValueError(f"Unknown frequency unit '{unit}'. Use one of: {', '.join(_UNIT_FACTORS)}")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"Not a frequency: {value!r}") from None
    if not math.isfinite(number) or number < 0:
        raise ValueError(f"Frequency must be a finite, non-negative number: {value!r}")
    return int(round(number * factor))
