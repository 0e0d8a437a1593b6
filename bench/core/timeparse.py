from __future__ import annotations

import re

from chainload.exceptions import ValidationError

_DURATION_RE = re.compile(r"^(?P<value>\d+(?:\.\d+)?)(?P<unit>ms|s|m|h)?$")

_UNIT_SECONDS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


def parse_duration_to_seconds(raw: str | float | int) -> float:
    """Parse '500ms', '2s', '5m', '1h' (or a bare number of seconds) into seconds."""
    if isinstance(raw, (int, float)):
        if raw < 0:
            raise ValidationError("INVALID_DURATION", "duration must be non-negative", {"provided": raw})
        return float(raw)

    match = _DURATION_RE.match(raw.strip())
    if not match:
        raise ValidationError(
            "INVALID_DURATION",
            "duration must match <number>[unit] where unit is ms|s|m|h",
            {"provided": raw},
        )

    unit = match.group("unit") or "s"
    return float(match.group("value")) * _UNIT_SECONDS[unit]
