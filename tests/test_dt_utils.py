"""Tests for dt_utils - timestamp normalization."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta, timezone

import pytest

from pellet_progression.utils.dt_utils import (
    as_utc,
    dt_now_utc,
    dt_parse,
    dt_window_start,
)

REFERENCE = datetime(2026, 1, 18, 12, 30, tzinfo=UTC)


class TestDtParse:
    """Tests for dt_parse input shapes."""

    @pytest.mark.parametrize(
        "value",
        [
            "2026-01-18T12:30:00Z",
            "2026-01-18T12:30:00+00:00",
            "2026-01-18T14:30:00+02:00",
            "2026-01-18T12:30:00",
            1768739400000,
            1768739400,
            1768739400.0,
            REFERENCE,
        ],
    )
    def test_equivalent_inputs(self, value: object) -> None:
        """ISO strings, epoch ms/seconds and datetimes normalize to UTC."""
        assert dt_parse(value) == REFERENCE  # type: ignore[arg-type]

    @pytest.mark.parametrize("value", [None, "", "   ", "yesterday", True, [1, 2]])
    def test_unparseable(self, value: object) -> None:
        """Unreadable values return None instead of raising."""
        assert dt_parse(value) is None  # type: ignore[arg-type]

    def test_result_is_aware(self) -> None:
        """Naive inputs are assumed UTC."""
        parsed = dt_parse("2026-01-18T12:30:00")

        assert parsed is not None
        assert parsed.tzinfo is not None


class TestHelpers:
    """Tests for the small conversion helpers."""

    def test_as_utc_converts_offsets(self) -> None:
        """Aware datetimes are converted, naive ones tagged."""
        plus_two = datetime(2026, 1, 18, 14, 30, tzinfo=timezone(timedelta(hours=2)))

        assert as_utc(plus_two) == REFERENCE
        assert as_utc(datetime(2026, 1, 18, 12, 30)).tzinfo == UTC

    def test_window_start(self) -> None:
        """Trailing window start is N days before now."""
        assert dt_window_start(REFERENCE, 30) == REFERENCE - timedelta(days=30)

    def test_now_is_utc(self) -> None:
        """Current time is timezone-aware UTC."""
        assert dt_now_utc().tzinfo == UTC
