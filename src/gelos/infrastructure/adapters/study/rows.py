"""Conversion between ProgressRecord and the flat row layout used on disk and over HTTP."""

from datetime import date, datetime
from typing import Any

from gelos.application.study.scheduler import coerce_progress
from gelos.domain.study.models import ProgressRecord


def _parse_date(value: Any) -> date | None:
    """Local calendar date of a stored date or timestamp."""
    if value is None or value == "":
        return None
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    return _parse_datetime(value).date()


def _parse_datetime(value: Any) -> datetime | None:
    """Naive datetimes are local time; aware ones are converted to the local zone."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    else:
        parsed = datetime.fromisoformat(str(value))
    if parsed.tzinfo is not None:
        return parsed.astimezone()
    return parsed


def row_to_record(card_id: str, row: dict[str, Any]) -> ProgressRecord:
    """Build a ProgressRecord from a stored row. Malformed progress falls back to defaults."""
    last_rating = row.get("last_rating")
    return ProgressRecord(
        card_id=card_id,
        progress=coerce_progress(row),
        next_review_at=_parse_date(row.get("next_review_at")),
        last_reviewed_at=_parse_datetime(row.get("last_reviewed_at")),
        last_rating=int(last_rating) if last_rating is not None else None,
        total_reviews=int(row.get("total_reviews") or 0),
        correct_count=int(row.get("correct_count") or 0),
        last_review_id=row.get("last_review_id"),
    )


def record_to_row(record: ProgressRecord) -> dict[str, Any]:
    return {
        "ease_factor": record.progress.ease_factor,
        "interval": record.progress.interval,
        "repetitions": record.progress.repetitions,
        "next_review_at": record.next_review_at.isoformat() if record.next_review_at else None,
        "last_reviewed_at": (
            record.last_reviewed_at.isoformat() if record.last_reviewed_at else None
        ),
        "last_rating": record.last_rating,
        "total_reviews": record.total_reviews,
        "correct_count": record.correct_count,
        "last_review_id": record.last_review_id,
    }
