"""
YAML Study Repository: deck files on local disk.

Each deck lives in `<deck_dir>/<deck_id>.yaml`:

    title: Spanish verbs
    cards:
      - id: hablar
        front: hablar
        back: to speak
    progress:
      hablar:
        ease_factor: 2.6
        interval: 1
        repetitions: 1
        next_review_at: 2026-10-18
        ...

Progress is written back to the file after every review.
"""

import logging
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import Any

import yaml
from yaml import YAMLError

from gelos.domain.study.errors import RepositoryError
from gelos.domain.study.models import DeckStats, DueCard, ReviewResult

from .memory import InMemoryStudyRepository
from .rows import record_to_row, row_to_record

logger = logging.getLogger(__name__)


class YamlStudyRepository(InMemoryStudyRepository):
    """Loads deck files on demand and persists progress back into them."""

    def __init__(self, deck_dir: Path, clock: Callable[[], datetime] | None = None):
        super().__init__(clock=clock)
        self.deck_dir = deck_dir
        self._meta: dict[str, dict[str, Any]] = {}

    def deck_path(self, deck_id: str) -> Path:
        return self.deck_dir / f"{deck_id}.yaml"

    async def fetch_due_cards(self, deck_id: str) -> list[DueCard]:
        self._load_deck(deck_id)
        return await super().fetch_due_cards(deck_id)

    async def fetch_deck_stats(self, deck_id: str) -> DeckStats:
        self._load_deck(deck_id)
        return await super().fetch_deck_stats(deck_id)

    async def persist_review(
        self,
        card_id: str,
        result: ReviewResult,
        *,
        rating: int,
        review_id: str,
        reviewed_at: datetime,
    ) -> None:
        await super().persist_review(
            card_id,
            result,
            rating=rating,
            review_id=review_id,
            reviewed_at=reviewed_at,
        )
        self._save_deck(self._card_deck[card_id])

    def _load_deck(self, deck_id: str) -> None:
        if deck_id in self._meta:
            return

        path = self.deck_path(deck_id)
        if not path.exists():
            raise RepositoryError(f"Deck file not found: {path}")

        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except (OSError, YAMLError) as e:
            raise RepositoryError(f"Could not read deck '{deck_id}': {e}") from e

        if not isinstance(data, dict) or not isinstance(data.get("cards") or [], list):
            raise RepositoryError(f"Deck '{deck_id}' must be a mapping with a 'cards' list")

        cards = data.get("cards") or []
        loaded: list[tuple[str, str, str]] = []
        for index, card in enumerate(cards):
            if not isinstance(card, dict) or "id" not in card:
                logger.warning(f"Skipping card #{index} in {path}: missing id")
                continue
            loaded.append((str(card["id"]), str(card.get("front", "")), str(card.get("back", ""))))

        # Reviews are stored by card id alone, so a shared id would write into the wrong file
        for card_id, _, _ in loaded:
            owner = self._card_deck.get(card_id)
            if owner is not None and owner != deck_id:
                raise RepositoryError(
                    f"Card id '{card_id}' in {path} is already used by deck '{owner}'"
                )

        for card_id, front, back in loaded:
            self.add_card(deck_id, card_id, front=front, back=back)

        progress = data.get("progress") or {}
        if not isinstance(progress, dict):
            raise RepositoryError(f"Deck '{deck_id}' has a malformed 'progress' section")
        for card_id, row in progress.items():
            card_id = str(card_id)
            if card_id not in self._card_deck or not isinstance(row, dict):
                logger.warning(f"Ignoring progress for unknown card '{card_id}' in {path}")
                continue
            try:
                self.seed_progress(row_to_record(card_id, row))
            except (TypeError, ValueError) as e:
                logger.warning(f"Ignoring unreadable progress for '{card_id}': {e}")

        self._meta[deck_id] = {k: v for k, v in data.items() if k != "progress"}
        logger.debug(f"Loaded {len(cards)} cards from {path}")

    def _save_deck(self, deck_id: str) -> None:
        data = dict(self._meta[deck_id])
        data["progress"] = {
            card_id: record_to_row(record)
            for card_id in self.card_ids(deck_id)
            if (record := self.get_record(card_id)) is not None
        }

        path = self.deck_path(deck_id)
        tmp = path.with_suffix(".yaml.tmp")
        try:
            tmp.write_text(
                yaml.safe_dump(data, sort_keys=False, allow_unicode=True),
                encoding="utf-8",
            )
            tmp.replace(path)
        except OSError as e:
            raise RepositoryError(f"Could not write deck '{deck_id}': {e}") from e
