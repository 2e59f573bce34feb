"""
Domain models for flashcard scheduling and study sessions.

These are pure data structures with no I/O or external dependencies.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum, IntEnum

from gelos.domain.constants import DEFAULT_EASE_FACTOR


class Rating(IntEnum):
    """Learner's self-assessment after seeing the answer."""

    FORGOT = 0
    HARD = 1
    GOOD = 2
    EASY = 3


@dataclass(frozen=True)
class CardProgress:
    """
    Per-(card, learner) scheduling state.

    Attributes:
        ease_factor: Interval growth multiplier, never below 1.3.
        interval: Days until the next review; 0 means never reviewed.
        repetitions: Consecutive successful reviews since the last lapse.
    """

    ease_factor: float = DEFAULT_EASE_FACTOR
    interval: int = 0
    repetitions: int = 0


@dataclass(frozen=True)
class ReviewResult:
    """Output of one scheduling computation."""

    ease_factor: float
    interval: int
    repetitions: int
    next_review_at: date

    @property
    def progress(self) -> CardProgress:
        return CardProgress(
            ease_factor=self.ease_factor,
            interval=self.interval,
            repetitions=self.repetitions,
        )


@dataclass(frozen=True)
class DueCard:
    """A card selected for study, with the learner's stored progress if any."""

    card_id: str
    progress: CardProgress | None = None
    front: str = ""
    back: str = ""


@dataclass(frozen=True)
class ProgressRecord:
    """
    Stored progress row for one card and learner.

    The review counters and last_review_id are bookkeeping on top of the
    scheduling state; last_review_id makes repeated writes of the same
    rating event a no-op.
    """

    card_id: str
    progress: CardProgress
    next_review_at: date | None = None
    last_reviewed_at: datetime | None = None
    last_rating: int | None = None
    total_reviews: int = 0
    correct_count: int = 0
    last_review_id: str | None = None


@dataclass(frozen=True)
class DeckStats:
    """Aggregate counters for one deck and learner."""

    total_cards: int = 0
    due_cards: int = 0
    new_cards: int = 0
    reviewed_today: int = 0
    accuracy: int = 0  # percent


class SessionState(str, Enum):
    LOADING = "loading"
    EMPTY = "empty"
    PRESENTING = "presenting"
    REVEALED = "revealed"
    COMPLETE = "complete"


@dataclass
class SessionStats:
    reviewed: int = 0
    correct: int = 0

    @property
    def accuracy(self) -> int:
        if self.reviewed == 0:
            return 0
        return int(self.correct * 100 / self.reviewed + 0.5)


@dataclass(frozen=True)
class SaveFailure:
    """A review write that did not reach the repository."""

    card_id: str
    review_id: str
    result: ReviewResult
    rating: int
    reviewed_at: datetime
    error: str


@dataclass
class SessionSummary:
    """Final report for a study session."""

    deck_id: str
    state: SessionState
    stats: SessionStats
    deck_stats: DeckStats | None = None
    save_failures: list[SaveFailure] = field(default_factory=list)
