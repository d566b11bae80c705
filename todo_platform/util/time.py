from __future__ import annotations

from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(dt: datetime) -> str:
    """UTC ISO-8601 string with Z, second precision (the storage convention)."""
    return dt.astimezone(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def utcnow_iso() -> str:
    """Current UTC time as ISO-8601 string with Z."""
    return to_iso(utcnow())
