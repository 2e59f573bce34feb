"""
Study session controller.

Drives one review session over a deck:

    LOADING --load()--> EMPTY                      (no due cards)
    LOADING --load()--> PRESENTING                 (cards shuffled once)
    PRESENTING --reveal()--> REVEALED
    REVEALED --rate()--> PRESENTING | COMPLETE     (next card / queue exhausted)

Review writes are issued as background tasks so the learner never waits on
the network. Writes for the same card are chained so they land in the order
the ratings were given. A failed write is recorded and reported but never
rewinds the session.
"""

import asyncio
import logging
import random
from collections.abc import Callable
from datetime import datetime

from ulid import ULID

from gelos.domain.constants import CORRECT_RATING_THRESHOLD
from gelos.domain.study.errors import InvalidSessionAction, SessionLoadError
from gelos.domain.study.models import (
    DeckStats,
    DueCard,
    ReviewResult,
    SaveFailure,
    SessionState,
    SessionStats,
    SessionSummary,
)
from gelos.domain.study.ports import StudyRepository

from .scheduler import calculate_next_review, clamp_rating, coerce_progress, preview_intervals

logger = logging.getLogger(__name__)


def generate_review_id() -> str:
    """Generate a unique, time-ordered id for one rating event."""
    return f"rev_{ULID()}"


class StudySession:
    """
    State machine for a single study session.

    Depends on the StudyRepository port only; pass an in-memory repository
    in tests. rate() must be called from within a running event loop since
    it schedules the review write as a task.
    """

    def __init__(
        self,
        repo: StudyRepository,
        deck_id: str,
        *,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] | None = None,
        on_save_error: Callable[[SaveFailure], None] | None = None,
    ):
        """
        Args:
            repo: The repository (port) for due cards, stats and writes.
            deck_id: Deck to study.
            rng: Shuffle source; a fresh Random() if not provided.
            clock: Returns the current local datetime; datetime.now by default.
            on_save_error: Called once for every review write that fails.
        """
        self._repo = repo
        self.deck_id = deck_id
        self._rng = rng or random.Random()
        self._clock = clock or datetime.now
        self._on_save_error = on_save_error

        self.state = SessionState.LOADING
        self.stats = SessionStats()
        self.deck_stats: DeckStats | None = None
        self.save_failures: list[SaveFailure] = []

        self._queue: list[DueCard] = []
        self._index = 0
        self._pending: set[asyncio.Task] = set()
        self._last_write: dict[str, asyncio.Task] = {}
        self._latest_review: dict[str, str] = {}

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def current_card(self) -> DueCard | None:
        if self.state in (SessionState.PRESENTING, SessionState.REVEALED):
            return self._queue[self._index]
        return None

    @property
    def position(self) -> int:
        """1-based position of the current card (total once finished)."""
        return min(self._index + 1, len(self._queue))

    @property
    def total(self) -> int:
        return len(self._queue)

    @property
    def is_finished(self) -> bool:
        return self.state in (SessionState.EMPTY, SessionState.COMPLETE)

    @property
    def pending_writes(self) -> int:
        return len(self._pending)

    def summary(self) -> SessionSummary:
        return SessionSummary(
            deck_id=self.deck_id,
            state=self.state,
            stats=SessionStats(reviewed=self.stats.reviewed, correct=self.stats.correct),
            deck_stats=self.deck_stats,
            save_failures=list(self.save_failures),
        )

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def load(self) -> SessionState:
        """
        Fetch due cards and deck stats, then start the session.

        Raises:
            SessionLoadError: A fetch failed. The session stays in LOADING and
                load() may be called again.
            InvalidSessionAction: The session was already loaded.
        """
        self._require("load", SessionState.LOADING)

        try:
            due_cards, deck_stats = await asyncio.gather(
                self._repo.fetch_due_cards(self.deck_id),
                self._repo.fetch_deck_stats(self.deck_id),
            )
        except Exception as e:
            logger.error(f"Loading deck '{self.deck_id}' failed: {e}")
            raise SessionLoadError(self.deck_id, e) from e

        queue = list(due_cards)
        self._rng.shuffle(queue)

        self._queue = queue
        self._index = 0
        self.deck_stats = deck_stats
        self.state = SessionState.PRESENTING if queue else SessionState.EMPTY

        logger.info(f"Session for deck '{self.deck_id}' loaded with {len(queue)} due cards")
        return self.state

    def reveal(self) -> DueCard:
        """Show the answer face of the current card."""
        self._require("reveal", SessionState.PRESENTING)
        self.state = SessionState.REVEALED
        return self._queue[self._index]

    def preview(self) -> dict[int, str]:
        """Interval label each rating would give the current card."""
        card = self.current_card
        if card is None:
            raise InvalidSessionAction("preview", self.state.value)
        return preview_intervals(coerce_progress(card.progress), self._clock().date())

    def rate(self, rating: int) -> ReviewResult:
        """
        Score the revealed card, queue its write, and advance.

        Returns:
            The scheduling result for the rated card.
        """
        self._require("rate", SessionState.REVEALED)

        card = self._queue[self._index]
        rating = clamp_rating(rating)
        now = self._clock()
        result = calculate_next_review(coerce_progress(card.progress), rating, now.date())

        self._schedule_write(card.card_id, result, rating, generate_review_id(), now)

        self.stats.reviewed += 1
        if rating >= CORRECT_RATING_THRESHOLD:
            self.stats.correct += 1

        self._index += 1
        if self._index >= len(self._queue):
            self.state = SessionState.COMPLETE
            logger.info(
                f"Session for deck '{self.deck_id}' complete: "
                f"{self.stats.correct}/{self.stats.reviewed} correct"
            )
        else:
            self.state = SessionState.PRESENTING

        return result

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def flush(self) -> list[SaveFailure]:
        """Wait for all outstanding writes. Returns the failures so far."""
        while self._pending:
            await asyncio.gather(*list(self._pending))
        return list(self.save_failures)

    async def retry_failed(self) -> list[SaveFailure]:
        """
        Re-issue failed writes with their original review ids.

        A failure superseded by a later rating of the same card is dropped
        rather than retried, so an older result never overwrites a newer one.

        Returns:
            Failures that remain after the retry.
        """
        await self.flush()
        failures, self.save_failures = self.save_failures, []

        for failure in failures:
            if self._latest_review.get(failure.card_id) != failure.review_id:
                logger.info(f"Skipping superseded write {failure.review_id} for {failure.card_id}")
                continue
            self._schedule_write(
                failure.card_id,
                failure.result,
                failure.rating,
                failure.review_id,
                failure.reviewed_at,
            )

        return await self.flush()

    def _schedule_write(
        self,
        card_id: str,
        result: ReviewResult,
        rating: int,
        review_id: str,
        reviewed_at: datetime,
    ) -> None:
        previous = self._last_write.get(card_id)
        task = asyncio.get_running_loop().create_task(
            self._write(previous, card_id, result, rating, review_id, reviewed_at)
        )
        self._latest_review[card_id] = review_id
        self._last_write[card_id] = task
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _write(
        self,
        previous: asyncio.Task | None,
        card_id: str,
        result: ReviewResult,
        rating: int,
        review_id: str,
        reviewed_at: datetime,
    ) -> None:
        if previous is not None and not previous.done():
            await asyncio.wait({previous})

        try:
            await self._repo.persist_review(
                card_id,
                result,
                rating=rating,
                review_id=review_id,
                reviewed_at=reviewed_at,
            )
        except Exception as e:
            failure = SaveFailure(
                card_id=card_id,
                review_id=review_id,
                result=result,
                rating=rating,
                reviewed_at=reviewed_at,
                error=str(e),
            )
            self.save_failures.append(failure)
            logger.warning(f"Failed to save review {review_id} for card {card_id}: {e}")
            if self._on_save_error:
                self._on_save_error(failure)
        finally:
            if self._last_write.get(card_id) is asyncio.current_task():
                del self._last_write[card_id]

    def _require(self, action: str, state: SessionState) -> None:
        if self.state is not state:
            raise InvalidSessionAction(action, self.state.value)
