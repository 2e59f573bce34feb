"""
Progress bookkeeping shared by the persistence adapters.

Applies review outcomes to stored records and derives deck statistics.
This is a pure computation module with no I/O.
"""

from collections.abc import Iterable, Mapping
from datetime import date, datetime

from gelos.domain.constants import CORRECT_RATING_THRESHOLD
from gelos.domain.study.models import DeckStats, ProgressRecord, ReviewResult

from .scheduler import is_due, round_half_up, to_local_date


def apply_review(
    record: ProgressRecord | None,
    card_id: str,
    result: ReviewResult,
    *,
    rating: int,
    review_id: str,
    reviewed_at: datetime,
) -> ProgressRecord:
    """
    Build the stored record after a review.

    Re-applying the review that produced `record` returns it unchanged, so
    retried writes do not double-count.
    """
    if record is not None and record.last_review_id == review_id:
        return record

    correct = 1 if rating >= CORRECT_RATING_THRESHOLD else 0
    total_reviews = record.total_reviews if record else 0
    correct_count = record.correct_count if record else 0

    return ProgressRecord(
        card_id=card_id,
        progress=result.progress,
        next_review_at=result.next_review_at,
        last_reviewed_at=reviewed_at,
        last_rating=rating,
        total_reviews=total_reviews + 1,
        correct_count=correct_count + correct,
        last_review_id=review_id,
    )


def compute_deck_stats(
    card_ids: Iterable[str],
    records: Mapping[str, ProgressRecord],
    today: date,
) -> DeckStats:
    """
    Aggregate counters for a deck.

    A card without a record is both new and due. Accuracy is the percentage
    of all recorded reviews that were rated correct.
    """
    total_cards = 0
    due_cards = 0
    new_cards = 0
    reviewed_today = 0
    total_correct = 0
    total_reviews = 0

    for card_id in card_ids:
        total_cards += 1
        record = records.get(card_id)
        if record is None:
            new_cards += 1
            due_cards += 1
            continue

        if is_due(record.next_review_at, today):
            due_cards += 1
        if record.last_reviewed_at and to_local_date(record.last_reviewed_at) >= today:
            reviewed_today += 1

        total_correct += record.correct_count
        total_reviews += record.total_reviews

    accuracy = round_half_up(total_correct * 100 / total_reviews) if total_reviews else 0

    return DeckStats(
        total_cards=total_cards,
        due_cards=due_cards,
        new_cards=new_cards,
        reviewed_today=reviewed_today,
        accuracy=accuracy,
    )
