"""Tests for the UTC datetime helpers that back write versions."""

from datetime import UTC, datetime, timedelta, timezone

import pytest

from app.shared.utils.datetime import from_timestamp_ms_utc, parse_timestamp, to_epoch_millis


def test_to_epoch_millis_of_aware_and_naive_values() -> None:
    at = datetime(2024, 5, 1, 12, 0, 0, 123_000, tzinfo=UTC)
    assert to_epoch_millis(at) == 1_714_564_800_123
    assert to_epoch_millis(at.replace(tzinfo=None)) == 1_714_564_800_123
    assert to_epoch_millis(at.astimezone(timezone(timedelta(hours=3)))) == 1_714_564_800_123


def test_to_epoch_millis_round_trips_with_from_timestamp() -> None:
    at = datetime(2024, 5, 1, 12, 0, 5, tzinfo=UTC)
    assert from_timestamp_ms_utc(to_epoch_millis(at)) == at


@pytest.mark.parametrize("value", [None, "2024-05-01T12:00:00Z", 1_714_564_800_000])
def test_to_epoch_millis_rejects_non_datetimes(value) -> None:
    with pytest.raises(TypeError, match="expected datetime"):
        to_epoch_millis(value)


def test_parse_timestamp_variants() -> None:
    expected = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)
    assert parse_timestamp("2024-05-01T12:00:00Z") == expected
    assert parse_timestamp(1_714_564_800_000) == expected
    assert parse_timestamp("not a date") is None
    assert parse_timestamp(True) is None
