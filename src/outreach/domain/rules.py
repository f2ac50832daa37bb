from __future__ import annotations

import math
import re
from collections.abc import Iterable
from datetime import UTC, date, datetime
from typing import Any

LEADING_FLOAT_RE = re.compile(r"^\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


class ValidationError(ValueError):
    pass


def require(value: str | None, field: str) -> None:
    if value is None or str(value).strip() == "":
        raise ValidationError(f"{field} is required.")


def validate_enum(value: str | None, allowed: Iterable[str], field: str) -> None:
    if value is None:
        return
    allowed = list(allowed)
    if value not in allowed:
        raise ValidationError(f"{field} must be one of: {', '.join(sorted(allowed))}")


def has_text(value: Any) -> bool:
    return isinstance(value, str) and value.strip() != ""


def is_yes(value: Any) -> bool:
    return value is True or value == "Yes"


def text_length(value: Any) -> int:
    if isinstance(value, str):
        return len(value)
    return 0


def parse_timestamp(value: Any) -> datetime | None:
    """Best-effort conversion of a backend date value to an aware datetime.

    Accepts ISO 8601 strings (with or without a trailing ``Z``), dates,
    datetimes and epoch milliseconds. Anything else yields ``None``.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, (int, float)):
        if not math.isfinite(value):
            return None
        try:
            return datetime.fromtimestamp(value / 1000, tz=UTC)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        raw = value.strip()
        if not raw:
            return None
        if raw.endswith(("Z", "z")):
            raw = f"{raw[:-1]}+00:00"
        try:
            parsed = datetime.fromisoformat(raw)
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def to_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            return float(value)
        except OverflowError:
            return math.inf if value > 0 else -math.inf
    if isinstance(value, str):
        # Longest numeric prefix, so "37%" reads as 37.
        match = LEADING_FLOAT_RE.match(value)
        if not match:
            return None
        return float(match.group(0))
    return None


def clamp_percentage(value: Any) -> float:
    number = to_number(value)
    if number is None or math.isnan(number) or math.isinf(number) or number < 0:
        return 0
    return max(0, min(100, number))


def rate(part: float, whole: float) -> float:
    if not whole:
        return 0
    return clamp_percentage(part / whole * 100)


def format_percentage(value: Any, digits: int = 1) -> str:
    return f"{clamp_percentage(value):.{digits}f}%"
