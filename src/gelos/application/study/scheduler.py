"""
SM-2 derived review scheduler.

This is a pure computation module with no I/O. The current date is always
passed in; date.today() is only consulted when the caller omits it.

Rating scale (4-point UI):
    0 = Forgot, didn't remember at all
    1 = Hard, recalled only after seeing the answer
    2 = Good, correct with some effort
    3 = Easy, perfect recall
"""

import logging
import math
from collections.abc import Mapping
from datetime import date, datetime, timedelta
from typing import Any

from gelos.domain.constants import (
    CORRECT_RATING_THRESHOLD,
    DAYS_PER_MONTH,
    DAYS_PER_WEEK,
    DAYS_PER_YEAR,
    DEFAULT_EASE_FACTOR,
    FIRST_SUCCESS_INTERVAL,
    LAPSE_INTERVAL,
    MAX_RATING,
    MIN_EASE_FACTOR,
    MIN_RATING,
    RATING_COLORS,
    RATING_LABELS,
    RATING_QUALITY,
    SECOND_SUCCESS_INTERVAL,
    UNKNOWN_RATING_COLOR,
    UNKNOWN_RATING_LABEL,
)
from gelos.domain.study.models import CardProgress, ReviewResult

logger = logging.getLogger(__name__)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, ties away from zero for positive values."""
    return math.floor(value + 0.5)


def clamp_rating(rating: int) -> int:
    return max(MIN_RATING, min(MAX_RATING, int(rating)))


def get_initial_progress() -> CardProgress:
    """Seed state for a card that has never been reviewed."""
    return CardProgress(ease_factor=DEFAULT_EASE_FACTOR, interval=0, repetitions=0)


def calculate_next_review(
    progress: CardProgress,
    rating: int,
    today: date | None = None,
) -> ReviewResult:
    """
    Calculate the updated progress and next due date after a review.

    Args:
        progress: Current ease factor, interval and repetitions.
        rating: Learner's rating; clamped into 0-3.
        today: Date of the review. Defaults to date.today().

    Returns:
        ReviewResult with the new progress and a midnight-normalised due date.
    """
    ease_factor = progress.ease_factor
    interval = progress.interval
    repetitions = progress.repetitions

    rating = clamp_rating(rating)
    quality = RATING_QUALITY[rating]

    if rating < CORRECT_RATING_THRESHOLD:
        # Lapse: restart graduation, keep accumulated ease
        repetitions = 0
        interval = LAPSE_INTERVAL
    else:
        repetitions += 1
        if repetitions == 1:
            interval = FIRST_SUCCESS_INTERVAL
        elif repetitions == 2:
            interval = SECOND_SUCCESS_INTERVAL
        else:
            interval = round_half_up(interval * ease_factor)

    # EF' = EF + (0.1 - (5 - q) * (0.08 + (5 - q) * 0.02))
    ease_factor = ease_factor + (0.1 - (5 - quality) * (0.08 + (5 - quality) * 0.02))
    ease_factor = max(MIN_EASE_FACTOR, ease_factor)

    today = today or date.today()
    return ReviewResult(
        ease_factor=ease_factor,
        interval=interval,
        repetitions=repetitions,
        next_review_at=today + timedelta(days=interval),
    )


def coerce_progress(raw: Any) -> CardProgress:
    """
    Turn stored progress into a valid CardProgress.

    Missing or malformed input falls back to the initial progress instead of
    raising. Mappings may use snake_case or camelCase keys.
    """
    if raw is None:
        return get_initial_progress()

    try:
        if isinstance(raw, CardProgress):
            ease_factor, interval, repetitions = raw.ease_factor, raw.interval, raw.repetitions
        elif isinstance(raw, Mapping):
            ease_factor = raw.get("ease_factor", raw.get("easeFactor"))
            interval = raw["interval"]
            repetitions = raw["repetitions"]
        else:
            raise TypeError(f"unsupported progress type {type(raw).__name__}")

        ease_factor = float(ease_factor)
        if isinstance(interval, bool) or isinstance(repetitions, bool):
            raise TypeError("boolean counters")
        if float(interval) != int(interval) or float(repetitions) != int(repetitions):
            raise ValueError("fractional counters")
        interval, repetitions = int(interval), int(repetitions)
    except (KeyError, TypeError, ValueError) as e:
        logger.warning(f"Malformed progress {raw!r}, using initial progress: {e}")
        return get_initial_progress()

    if not math.isfinite(ease_factor) or ease_factor < MIN_EASE_FACTOR:
        logger.warning(f"Ease factor {ease_factor} out of range, using initial progress")
        return get_initial_progress()
    if interval < 0 or repetitions < 0:
        logger.warning(f"Negative counters in {raw!r}, using initial progress")
        return get_initial_progress()

    return CardProgress(ease_factor=ease_factor, interval=interval, repetitions=repetitions)


def to_local_date(value: date | datetime | str) -> date:
    """Calendar date in the local zone of a date, datetime or ISO string."""
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if isinstance(value, datetime):
        # Aware instants count on the local calendar day they fall on
        if value.tzinfo is not None:
            value = value.astimezone()
        return value.date()
    return value


def is_due(next_review_at: date | datetime | str | None, today: date | None = None) -> bool:
    """
    Check whether a card is due for review.

    Never-reviewed cards (no due date) are always due. Dates are compared at
    day granularity, so anything on or before today is due.
    """
    if not next_review_at:
        return True
    today = today or date.today()
    return to_local_date(next_review_at) <= today


def _plural(count: int, unit: str) -> str:
    return f"1 {unit}" if count == 1 else f"{count} {unit}s"


def get_interval_description(interval: int) -> str:
    """Human-readable label for an interval in days."""
    if interval < 1:
        return "New"
    if interval == 1:
        return "Tomorrow"
    if interval < DAYS_PER_WEEK:
        return f"{interval} days"
    if interval < DAYS_PER_MONTH:
        return _plural(round_half_up(interval / DAYS_PER_WEEK), "week")
    if interval < DAYS_PER_YEAR:
        return _plural(round_half_up(interval / DAYS_PER_MONTH), "month")
    return _plural(round_half_up(interval / DAYS_PER_YEAR), "year")


def get_rating_description(rating: int) -> str:
    return RATING_LABELS.get(rating, UNKNOWN_RATING_LABEL)


def get_rating_color(rating: int) -> str:
    return RATING_COLORS.get(rating, UNKNOWN_RATING_COLOR)


def preview_intervals(progress: CardProgress, today: date | None = None) -> dict[int, str]:
    """Interval label each rating would produce, for labelling rating buttons."""
    return {
        rating: get_interval_description(calculate_next_review(progress, rating, today).interval)
        for rating in range(MIN_RATING, MAX_RATING + 1)
    }
