from __future__ import annotations

from datetime import datetime, timezone


def ensure_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def epoch_seconds(dt: datetime) -> int:
    return int(ensure_utc(dt).timestamp())


def epoch_millis(dt: datetime) -> int:
    utc = ensure_utc(dt)
    return int(utc.timestamp()) * 1000 + utc.microsecond // 1000
