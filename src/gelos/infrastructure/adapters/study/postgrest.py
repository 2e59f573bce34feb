"""
PostgREST Study Repository: hosted backend over its REST layer.

Reads the `flashcards` table and reads/upserts the `flashcard_progress`
table, one progress row per (card_id, user_id).
"""

import logging
from collections.abc import Callable
from datetime import datetime, time
from typing import Any

import httpx

from gelos.application.study.progress import apply_review, compute_deck_stats
from gelos.application.study.scheduler import is_due
from gelos.domain.constants import CARDS_TABLE, PROGRESS_TABLE, REQUEST_TIMEOUT
from gelos.domain.study.errors import RepositoryError
from gelos.domain.study.models import DeckStats, DueCard, ProgressRecord, ReviewResult
from gelos.domain.study.ports import StudyRepository

from .rows import record_to_row, row_to_record


class PostgrestStudyRepository(StudyRepository):
    """Adapter for a PostgREST endpoint (e.g. a hosted Postgres backend's /rest/v1)."""

    def __init__(
        self,
        url: str,
        api_key: str | None,
        learner_id: str,
        client: httpx.AsyncClient | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.logger = logging.getLogger(__name__)
        self.url = url.rstrip("/")
        self.api_key = api_key
        self.learner_id = learner_id
        self._client = client
        self._clock = clock or datetime.now

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["apikey"] = self.api_key
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def _request(
        self,
        method: str,
        table: str,
        params: dict[str, str] | None = None,
        json: Any = None,
        prefer: str | None = None,
    ) -> Any:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=REQUEST_TIMEOUT)

        headers = self._headers()
        if prefer:
            headers["Prefer"] = prefer

        try:
            resp = await self._client.request(
                method,
                f"{self.url}/rest/v1/{table}",
                params=params,
                json=json,
                headers=headers,
            )
            resp.raise_for_status()
        except httpx.HTTPError as e:
            self.logger.error(f"PostgREST {method} {table} failed: {e}")
            raise RepositoryError(f"{method} {table} failed: {e}") from e

        if not resp.content:
            return None
        return resp.json()

    async def _fetch_cards(self, deck_id: str) -> list[dict[str, Any]]:
        rows = await self._request(
            "GET",
            CARDS_TABLE,
            params={
                "select": "id,front_content,back_content",
                "deck_id": f"eq.{deck_id}",
                "order": "sort_order.asc",
            },
        )
        return rows or []

    async def _fetch_records(self, card_ids: list[str]) -> dict[str, ProgressRecord]:
        if not card_ids:
            return {}

        rows = await self._request(
            "GET",
            PROGRESS_TABLE,
            params={
                "select": "*",
                "user_id": f"eq.{self.learner_id}",
                "card_id": f"in.({','.join(card_ids)})",
            },
        )

        records: dict[str, ProgressRecord] = {}
        for row in rows or []:
            card_id = str(row["card_id"])
            try:
                records[card_id] = row_to_record(card_id, row)
            except (TypeError, ValueError) as e:
                self.logger.warning(f"Ignoring unreadable progress row for {card_id}: {e}")
        return records

    async def fetch_due_cards(self, deck_id: str) -> list[DueCard]:
        cards = await self._fetch_cards(deck_id)
        records = await self._fetch_records([str(c["id"]) for c in cards])
        today = self._clock().date()

        due: list[DueCard] = []
        for card in cards:
            card_id = str(card["id"])
            record = records.get(card_id)
            if record is None or is_due(record.next_review_at, today):
                due.append(
                    DueCard(
                        card_id=card_id,
                        progress=record.progress if record else None,
                        front=card.get("front_content") or "",
                        back=card.get("back_content") or "",
                    )
                )
        return due

    async def fetch_deck_stats(self, deck_id: str) -> DeckStats:
        cards = await self._fetch_cards(deck_id)
        card_ids = [str(c["id"]) for c in cards]
        records = await self._fetch_records(card_ids)
        return compute_deck_stats(card_ids, records, self._clock().date())

    async def persist_review(
        self,
        card_id: str,
        result: ReviewResult,
        *,
        rating: int,
        review_id: str,
        reviewed_at: datetime,
    ) -> None:
        existing = (await self._fetch_records([card_id])).get(card_id)

        # flashcard_progress has no review id column; a retried write carries
        # the original review time, so an equal last_reviewed_at means it landed
        if existing and _same_instant(existing.last_reviewed_at, reviewed_at):
            self.logger.debug(f"Review {review_id} already stored for {card_id}")
            return

        record = apply_review(
            existing,
            card_id,
            result,
            rating=rating,
            review_id=review_id,
            reviewed_at=reviewed_at,
        )

        await self._request(
            "POST",
            PROGRESS_TABLE,
            params={"on_conflict": "card_id,user_id"},
            json=_progress_row(record, self.learner_id, reviewed_at),
            prefer="resolution=merge-duplicates,return=minimal",
        )

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


def _same_instant(stored: datetime | None, reviewed_at: datetime) -> bool:
    # Naive values are local time
    return stored is not None and stored.astimezone() == reviewed_at.astimezone()


def _progress_row(
    record: ProgressRecord, learner_id: str, reviewed_at: datetime
) -> dict[str, Any]:
    """
    Row for the flashcard_progress upsert.

    Timestamps are sent with their UTC offset; next_review_at is local
    midnight of the due day so other clients read back the same calendar day.
    """
    row = record_to_row(record)
    del row["last_review_id"]

    if record.next_review_at is not None:
        midnight = datetime.combine(record.next_review_at, time.min)
        row["next_review_at"] = midnight.astimezone().isoformat()
    row["last_reviewed_at"] = reviewed_at.astimezone().isoformat()
    row["card_id"] = record.card_id
    row["user_id"] = learner_id
    row["updated_at"] = reviewed_at.astimezone().isoformat()
    return row
