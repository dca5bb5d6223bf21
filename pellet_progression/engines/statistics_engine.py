"""Statistics Engine - Windowed trend aggregation and leaderboards.

This engine centralizes read-only statistics over the pellet event log:
- Trend summaries: recent window vs the window before it, per pellet type
- Top tagging reasons within the recent window
- Pellet leaderboards (per license plate) and experience leaderboards

Design Principles:
    - Stateless: operates on passed data, never touches the repository
    - Deterministic: `now` can be injected, ties keep input order
    - Safe arithmetic: no division by zero, empty input yields None
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime
import hashlib
import string
from typing import TYPE_CHECKING

from .. import const
from ..utils.dt_utils import as_utc, dt_now_utc, dt_parse, dt_window_start
from ..utils.math_utils import calculate_percentage, percent_change
from .gamification_engine import normalize_plate
from .progression_engine import ProgressionEngine

if TYPE_CHECKING:
    from ..type_defs import (
        ExperienceLeaderboardEntry,
        PelletData,
        PelletLeaderboardEntry,
        ReasonCount,
        TrendSummary,
        UserData,
    )

_BASE36_ALPHABET = string.digits + string.ascii_uppercase


def _to_base36(value: int) -> str:
    """Encode a non-negative integer in upper-case base 36."""
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36_ALPHABET[remainder])
    return "".join(reversed(digits))


class StatisticsEngine:
    """Stateless engine for pellet statistics.

    Example:
        summary = StatisticsEngine.summarize(pellets, now=now)
        if summary is None:
            ...  # nothing to show yet
        summary["negative_change"]  # e.g. 150 (percent)
    """

    # ────────────────────────────────────────────────────────────────
    # Trend Summary
    # ────────────────────────────────────────────────────────────────

    @staticmethod
    def summarize(
        pellets: Iterable[PelletData],
        now: datetime | None = None,
        *,
        window_days: int = const.DEFAULT_TREND_WINDOW_DAYS,
        top_reasons_limit: int = const.DEFAULT_TOP_REASONS_LIMIT,
    ) -> TrendSummary | None:
        """Compare the recent window of tagging activity with the one before.

        Windows (with the default 30 days):
            recent:   created_at in [now - 30d, now]
            previous: created_at in [now - 60d, now - 30d)
        Older events, future-dated events and events with unreadable
        timestamps are ignored.

        Change per type: (recent - previous) / previous as a whole percent;
        +100 when previous is 0 and recent is positive; 0 when both are 0.

        Args:
            pellets: Events to summarize (any iterable; consumed once)
            now: Reference time (defaults to current UTC time)
            window_days: Length of each window in days
            top_reasons_limit: Maximum reasons reported

        Returns:
            TrendSummary, or None when `pellets` is empty
        """
        events = list(pellets)
        if not events:
            return None

        now_utc = as_utc(now) if now else dt_now_utc()
        recent_start = dt_window_start(now_utc, window_days)
        previous_start = dt_window_start(now_utc, window_days * 2)

        counts = {
            "recent": {const.PELLET_TYPE_NEGATIVE: 0, const.PELLET_TYPE_POSITIVE: 0},
            "previous": {const.PELLET_TYPE_NEGATIVE: 0, const.PELLET_TYPE_POSITIVE: 0},
        }
        reason_counts: dict[str, int] = {}
        skipped = 0

        for pellet in events:
            created_at = dt_parse(pellet.get(const.DATA_PELLET_CREATED_AT))
            pellet_type = pellet.get(const.DATA_PELLET_TYPE)
            if created_at is None or pellet_type not in const.PELLET_TYPES:
                skipped += 1
                continue

            if recent_start <= created_at <= now_utc:
                counts["recent"][pellet_type] += 1
                reason = pellet.get(const.DATA_PELLET_REASON) or const.TREND_UNKNOWN_REASON
                reason_counts[reason] = reason_counts.get(reason, 0) + 1
            elif previous_start <= created_at < recent_start:
                counts["previous"][pellet_type] += 1

        if skipped:
            const.LOGGER.debug(
                "StatisticsEngine.summarize: skipped %d malformed pellets", skipped
            )

        recent_negative = counts["recent"][const.PELLET_TYPE_NEGATIVE]
        recent_positive = counts["recent"][const.PELLET_TYPE_POSITIVE]
        previous_negative = counts["previous"][const.PELLET_TYPE_NEGATIVE]
        previous_positive = counts["previous"][const.PELLET_TYPE_POSITIVE]
        total_recent = recent_negative + recent_positive

        return {
            "recent_negative": recent_negative,
            "recent_positive": recent_positive,
            "previous_negative": previous_negative,
            "previous_positive": previous_positive,
            "negative_change": percent_change(
                previous_negative, recent_negative, const.TREND_NEW_ACTIVITY_CHANGE_PCT
            ),
            "positive_change": percent_change(
                previous_positive, recent_positive, const.TREND_NEW_ACTIVITY_CHANGE_PCT
            ),
            "total_recent": total_recent,
            "total_previous": previous_negative + previous_positive,
            "negative_percentage": calculate_percentage(recent_negative, total_recent),
            "positive_percentage": calculate_percentage(recent_positive, total_recent),
            "top_reasons": StatisticsEngine.top_reasons(
                reason_counts, top_reasons_limit
            ),
        }

    @staticmethod
    def top_reasons(reason_counts: dict[str, int], limit: int) -> list[ReasonCount]:
        """Return the most frequent reasons, highest count first.

        `reason_counts` must be in first-seen order; sorted() is stable, so
        equal counts keep that order.
        """
        ranked = sorted(reason_counts.items(), key=lambda item: item[1], reverse=True)
        return [{"reason": reason, "count": count} for reason, count in ranked[:limit]]

    # ────────────────────────────────────────────────────────────────
    # Leaderboards
    # ────────────────────────────────────────────────────────────────

    @staticmethod
    def anonymize_license_plate(license_plate: str | None) -> str:
        """Return a stable, non-reversible display id for a plate.

        The id is the first six base-36 digits of the plate's SHA-256 digest,
        so the same plate always maps to the same "Driver #XXXXXX" label.
        An empty plate yields "Unknown".
        """
        plate = normalize_plate(license_plate)
        if not plate:
            return const.TREND_UNKNOWN_REASON
        digest = hashlib.sha256(plate.encode("utf-8")).digest()
        encoded = _to_base36(int.from_bytes(digest[:8], "big"))
        display_id = encoded[: const.ANONYMOUS_DRIVER_ID_LENGTH].rjust(
            const.ANONYMOUS_DRIVER_ID_LENGTH, "0"
        )
        return f"{const.ANONYMOUS_DRIVER_PREFIX}{display_id}"

    @staticmethod
    def pellet_leaderboard(
        pellets: Iterable[PelletData],
        pellet_type: str = const.PELLET_TYPE_ALL,
        sort_order: str = const.SORT_ORDER_DESC,
    ) -> list[PelletLeaderboardEntry]:
        """Count pellets per license plate.

        Args:
            pellets: Events to rank
            pellet_type: "negative", "positive" or "all"
            sort_order: "desc" (most tagged first) or "asc"

        Returns:
            One entry per plate; equal counts keep first-seen order
        """
        plate_counts: dict[str, int] = {}
        for pellet in pellets:
            if (
                pellet_type != const.PELLET_TYPE_ALL
                and pellet.get(const.DATA_PELLET_TYPE) != pellet_type
            ):
                continue
            plate = normalize_plate(pellet.get(const.DATA_PELLET_TARGET_LICENSE_PLATE))
            if plate:
                plate_counts[plate] = plate_counts.get(plate, 0) + 1

        ranked = sorted(
            plate_counts.items(),
            key=lambda item: item[1],
            reverse=sort_order == const.SORT_ORDER_DESC,
        )
        return [
            {
                "license_plate": plate,
                "display_id": StatisticsEngine.anonymize_license_plate(plate),
                "count": count,
            }
            for plate, count in ranked
        ]

    @staticmethod
    def experience_leaderboard(
        users: Sequence[UserData],
        sort_order: str = const.SORT_ORDER_DESC,
    ) -> list[ExperienceLeaderboardEntry]:
        """Rank users by experience.

        Display name falls back to the e-mail local part, then the user id.
        Level is derived from exp, not read from the stored value.
        """
        entries: list[ExperienceLeaderboardEntry] = []
        for user in users:
            exp = int(user.get(const.DATA_USER_EXP) or 0)
            email = user.get(const.DATA_USER_EMAIL) or ""
            name = (
                user.get(const.DATA_USER_NAME)
                or email.split("@")[0]
                or user.get(const.DATA_USER_ID, "")
            )
            entries.append(
                {
                    "id": user.get(const.DATA_USER_ID, ""),
                    "name": name,
                    "exp": exp,
                    "level": ProgressionEngine.level_for_exp(exp),
                }
            )
        entries.sort(
            key=lambda entry: entry["exp"],
            reverse=sort_order == const.SORT_ORDER_DESC,
        )
        return entries
