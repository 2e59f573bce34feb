"""
In-memory Study Repository.

Implements StudyRepository with plain dicts. Used by tests, the demo
server and as the base of the YAML file store.
"""

import logging
from collections.abc import Callable
from datetime import datetime

from gelos.application.study.progress import apply_review, compute_deck_stats
from gelos.application.study.scheduler import is_due
from gelos.domain.study.errors import RepositoryError
from gelos.domain.study.models import DeckStats, DueCard, ProgressRecord, ReviewResult
from gelos.domain.study.ports import StudyRepository

logger = logging.getLogger(__name__)


class InMemoryStudyRepository(StudyRepository):
    """Holds decks, cards and one learner's progress records in memory."""

    def __init__(self, clock: Callable[[], datetime] | None = None):
        self._clock = clock or datetime.now
        # deck_id -> card_id -> (front, back), insertion ordered
        self._decks: dict[str, dict[str, tuple[str, str]]] = {}
        self._card_deck: dict[str, str] = {}
        self._records: dict[str, ProgressRecord] = {}

    def add_card(self, deck_id: str, card_id: str, front: str = "", back: str = "") -> None:
        """Register a card. Card ids are unique across decks."""
        owner = self._card_deck.get(card_id)
        if owner is not None and owner != deck_id:
            raise RepositoryError(f"Card '{card_id}' already belongs to deck '{owner}'")
        self._decks.setdefault(deck_id, {})[card_id] = (front, back)
        self._card_deck[card_id] = deck_id

    def seed_progress(self, record: ProgressRecord) -> None:
        if record.card_id not in self._card_deck:
            raise RepositoryError(f"Unknown card '{record.card_id}'")
        self._records[record.card_id] = record

    def get_record(self, card_id: str) -> ProgressRecord | None:
        return self._records.get(card_id)

    def card_ids(self, deck_id: str) -> list[str]:
        return list(self._decks.get(deck_id, {}))

    async def fetch_due_cards(self, deck_id: str) -> list[DueCard]:
        today = self._clock().date()
        due: list[DueCard] = []

        for card_id, (front, back) in self._decks.get(deck_id, {}).items():
            record = self._records.get(card_id)
            if record is None or is_due(record.next_review_at, today):
                due.append(
                    DueCard(
                        card_id=card_id,
                        progress=record.progress if record else None,
                        front=front,
                        back=back,
                    )
                )

        return due

    async def fetch_deck_stats(self, deck_id: str) -> DeckStats:
        return compute_deck_stats(self.card_ids(deck_id), self._records, self._clock().date())

    async def persist_review(
        self,
        card_id: str,
        result: ReviewResult,
        *,
        rating: int,
        review_id: str,
        reviewed_at: datetime,
    ) -> None:
        if card_id not in self._card_deck:
            raise RepositoryError(f"Unknown card '{card_id}'")

        self._records[card_id] = apply_review(
            self._records.get(card_id),
            card_id,
            result,
            rating=rating,
            review_id=review_id,
            reviewed_at=reviewed_at,
        )
        logger.debug(f"Stored review {review_id} for card {card_id}")
