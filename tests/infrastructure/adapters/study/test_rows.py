from datetime import date, datetime

from gelos.application.study.progress import compute_deck_stats
from gelos.infrastructure.adapters.study.rows import record_to_row, row_to_record

TODAY = date(2026, 10, 17)


def test_row_to_record_reads_local_calendar_day(berlin_tz):
    record = row_to_record(
        "c1",
        {
            "ease_factor": 2.5,
            "interval": 1,
            "repetitions": 1,
            "next_review_at": "2026-10-17T22:00:00.000Z",
            "last_reviewed_at": "2026-10-16T23:30:00+00:00",
            "total_reviews": 1,
            "correct_count": 1,
        },
    )

    assert record.next_review_at == date(2026, 10, 18)
    assert record.last_reviewed_at.date() == TODAY

    stats = compute_deck_stats(["c1"], {"c1": record}, TODAY)
    assert stats.due_cards == 0
    assert stats.reviewed_today == 1


def test_naive_values_are_kept_as_local():
    record = row_to_record(
        "c1",
        {
            "ease_factor": 2.5,
            "interval": 6,
            "repetitions": 2,
            "next_review_at": date(2026, 10, 23),
            "last_reviewed_at": "2026-10-17T08:00:00",
        },
    )

    assert record.next_review_at == date(2026, 10, 23)
    assert record.last_reviewed_at == datetime(2026, 10, 17, 8, 0)
    assert record.total_reviews == 0
    assert record_to_row(record)["next_review_at"] == "2026-10-23"
