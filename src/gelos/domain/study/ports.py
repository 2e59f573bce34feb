"""
Ports (interfaces) for study persistence.

These define the contract that infrastructure adapters must implement.
Application services depend on these abstractions, not concrete implementations.
"""

from abc import ABC, abstractmethod
from datetime import datetime

from .models import DeckStats, DueCard, ReviewResult


class StudyRepository(ABC):
    """
    Port for loading due cards and saving review outcomes.

    Implementations:
        - InMemoryStudyRepository: Dict-backed, used in tests and demos.
        - YamlStudyRepository: Deck files on disk.
        - PostgrestStudyRepository: Hosted backend via its REST layer.
    """

    @abstractmethod
    async def fetch_due_cards(self, deck_id: str) -> list[DueCard]:
        """
        Fetch cards of a deck that are due today or have never been reviewed.

        Ordering is unspecified; the study session shuffles.

        Raises:
            RepositoryError: The query failed.
        """
        pass

    @abstractmethod
    async def fetch_deck_stats(self, deck_id: str) -> DeckStats:
        """
        Fetch aggregate counters for the deck.

        Raises:
            RepositoryError: The query failed.
        """
        pass

    @abstractmethod
    async def persist_review(
        self,
        card_id: str,
        result: ReviewResult,
        *,
        rating: int,
        review_id: str,
        reviewed_at: datetime,
    ) -> None:
        """
        Store the updated progress for a card.

        Must be idempotent per review_id: writing the same review twice
        leaves the stored record as it was after the first write.

        Raises:
            RepositoryError: The write failed.
        """
        pass
