"""Duration string parsing for timeout settings."""

from __future__ import annotations

import math
import re

from eventhook.errors import ConfigError

_UNITS: dict[str, float] = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}

# One "<number><unit>" component, e.g. "1.5h" or "300ms"
_COMPONENT_RE = re.compile(r"(\d+\.?\d*|\.\d+)(ns|us|µs|μs|ms|s|m|h)")


def parse_duration(text: str) -> float:
    """Parse a duration like '30s', '1m30s', '300ms' or '1.5h' into seconds.

    A bare '0' is accepted. Raises ConfigError for anything else that does
    not match the grammar.
    """
    raw = text
    text = text.strip()
    if not text:
        raise ConfigError(f"invalid timeout duration {raw!r}: empty")

    sign = 1.0
    if text[0] in "+-":
        sign = -1.0 if text[0] == "-" else 1.0
        text = text[1:]

    if text == "0":
        return 0.0

    total = 0.0
    pos = 0
    while pos < len(text):
        m = _COMPONENT_RE.match(text, pos)
        if not m:
            if re.match(r"\d|\.", text[pos:]):
                raise ConfigError(f"invalid timeout duration {raw!r}: missing or unknown unit")
            raise ConfigError(f"invalid timeout duration {raw!r}")
        total += float(m.group(1)) * _UNITS[m.group(2)]
        pos = m.end()

    return sign * total


def coerce_duration(value: str | int | float | None) -> float | None:
    """Accept a duration string or a plain number of seconds."""
    if value is None:
        return None
    if isinstance(value, bool):
        raise ConfigError(f"invalid timeout duration {value!r}")
    if isinstance(value, (int, float)):
        try:
            seconds = float(value)
        except OverflowError as e:
            raise ConfigError(f"invalid timeout duration {value!r}: out of range") from e
    elif isinstance(value, str):
        seconds = parse_duration(value)
    else:
        raise ConfigError(f"invalid timeout duration {value!r}")
    if not math.isfinite(seconds):
        raise ConfigError(f"invalid timeout duration {value!r}: must be finite")
    return seconds
