"""Shared utilities: UTC datetime helpers."""

from app.shared.utils.datetime import (
    ensure_utc,
    from_timestamp_ms_utc,
    parse_timestamp,
    to_epoch_millis,
    utc_now,
)

__all__ = [
    "utc_now",
    "ensure_utc",
    "from_timestamp_ms_utc",
    "parse_timestamp",
    "to_epoch_millis",
]
