"""Timestamp normalization and humidity aggregates.

Readings arrive with timestamps in several shapes: ISO-8601 strings, digit
strings, epoch seconds, epoch milliseconds, or datetime objects. Everything
here resolves them to one canonical epoch-millisecond value plus an ISO
string, or to ``None`` when no instant can be recovered. Nothing raises on
bad input.
"""
import math
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Mapping, NamedTuple, Optional

# values at or above this are epoch milliseconds, below it epoch seconds
MS_THRESHOLD = 10 ** 12

FALLBACK_FIELDS = ("timestamp", "device_ts_ms", "timestamp_iso", "createdAt", "created_at")

_DIGITS = re.compile(r"^\d+$")
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class NormalizedTimestamp(NamedTuple):
    ms: int
    iso: str


class HumidityStats(NamedTuple):
    mean: float
    min: float
    max: float


def classify_timestamp(value: Any) -> Optional[str]:
    """Tell which accepted encoding ``value`` is in, or ``None``."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return "datetime"
    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            return None
        return "epoch_ms" if value >= MS_THRESHOLD else "epoch_s"
    if isinstance(value, str):
        s = value.strip()
        if not s:
            return None
        return "digits" if _DIGITS.match(s) else "iso"
    return None


def _epoch_to_ms(n: float) -> Optional[int]:
    if n >= MS_THRESHOLD:
        return math.floor(n)
    ms = n * 1000
    if isinstance(ms, float) and not math.isfinite(ms):
        return None
    return math.floor(ms)


def _datetime_to_ms(dt: datetime) -> int:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    delta = dt - _EPOCH
    return (delta.days * 86400 + delta.seconds) * 1000 + delta.microseconds // 1000


def _parse_iso(s: str) -> Optional[datetime]:
    if s.endswith(("Z", "z")):
        s = s[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(s)
    except ValueError:
        return None


def timestamp_to_ms(value: Any) -> Optional[int]:
    kind = classify_timestamp(value)
    if kind is None:
        return None
    if kind == "datetime":
        return _datetime_to_ms(value)
    if kind in ("epoch_ms", "epoch_s"):
        return _epoch_to_ms(value)
    s = value.strip()
    if kind == "digits":
        try:
            n = int(s)
        except ValueError:
            # longer than the interpreter allows for int()
            return None
        return _epoch_to_ms(n)
    dt = _parse_iso(s)
    return _datetime_to_ms(dt) if dt is not None else None


def ms_to_datetime(ms: Optional[int]) -> Optional[datetime]:
    if ms is None:
        return None
    try:
        return _EPOCH + timedelta(milliseconds=ms)
    except (OverflowError, OSError, ValueError):
        return None


def ms_to_iso(ms: Optional[int]) -> Optional[str]:
    dt = ms_to_datetime(ms)
    if dt is None:
        return None
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def normalize_timestamp(value: Any) -> Optional[NormalizedTimestamp]:
    ms = timestamp_to_ms(value)
    iso = ms_to_iso(ms)
    if iso is None:
        return None
    return NormalizedTimestamp(ms, iso)


def resolve_timestamp(record: Mapping[str, Any]) -> Optional[NormalizedTimestamp]:
    """First field of ``FALLBACK_FIELDS`` that normalizes wins."""
    for field in FALLBACK_FIELDS:
        result = normalize_timestamp(record.get(field))
        if result is not None:
            return result
    return None


def to_naive_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def humidity_stats(values: Iterable[float]) -> HumidityStats:
    vals = list(values)
    if not vals:
        return HumidityStats(0, 0, 0)
    return HumidityStats(round(sum(vals) / len(vals), 2), min(vals), max(vals))
