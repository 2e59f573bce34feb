from datetime import date, datetime

import pytest
import yaml

from gelos.domain.study.errors import RepositoryError
from gelos.domain.study.models import CardProgress, ReviewResult
from gelos.infrastructure.adapters.study.yaml_store import YamlStudyRepository

NOW = datetime(2026, 10, 17, 9, 30)

DECK = """\
title: Spanish verbs
cards:
  - id: hablar
    front: hablar
    back: to speak
  - id: comer
    front: comer
    back: to eat
  - front: missing id
progress:
  comer:
    ease_factor: 2.4
    interval: 6
    repetitions: 2
    next_review_at: 2026-10-20
    last_reviewed_at: 2026-10-14T08:00:00
    last_rating: 3
    total_reviews: 2
    correct_count: 2
"""


@pytest.fixture
def deck_dir(tmp_path):
    (tmp_path / "spanish.yaml").write_text(DECK, encoding="utf-8")
    return tmp_path


@pytest.fixture
def repo(deck_dir):
    return YamlStudyRepository(deck_dir, clock=lambda: NOW)


@pytest.mark.asyncio
async def test_loads_cards_and_progress(repo):
    due = await repo.fetch_due_cards("spanish")

    # comer is scheduled for the 20th
    assert [c.card_id for c in due] == ["hablar"]
    assert repo.get_record("comer").progress == CardProgress(2.4, 6, 2)


@pytest.mark.asyncio
async def test_deck_stats_from_file(repo):
    stats = await repo.fetch_deck_stats("spanish")

    assert stats.total_cards == 2
    assert stats.new_cards == 1
    assert stats.due_cards == 1
    assert stats.reviewed_today == 0
    assert stats.accuracy == 100


@pytest.mark.asyncio
async def test_persist_writes_progress_back(repo, deck_dir):
    await repo.fetch_due_cards("spanish")
    result = ReviewResult(
        ease_factor=2.6, interval=1, repetitions=1, next_review_at=date(2026, 10, 18)
    )

    await repo.persist_review("hablar", result, rating=3, review_id="rev_1", reviewed_at=NOW)

    data = yaml.safe_load((deck_dir / "spanish.yaml").read_text(encoding="utf-8"))
    assert data["title"] == "Spanish verbs"
    assert len(data["cards"]) == 3
    row = data["progress"]["hablar"]
    assert row["interval"] == 1
    assert row["next_review_at"] == "2026-10-18"
    assert row["last_review_id"] == "rev_1"
    assert data["progress"]["comer"]["total_reviews"] == 2

    # A fresh repository sees the saved state
    reloaded = YamlStudyRepository(deck_dir, clock=lambda: NOW)
    assert await reloaded.fetch_due_cards("spanish") == []


@pytest.mark.asyncio
async def test_missing_deck_file(repo):
    with pytest.raises(RepositoryError, match="not found"):
        await repo.fetch_due_cards("french")


@pytest.mark.asyncio
async def test_invalid_yaml(deck_dir):
    (deck_dir / "broken.yaml").write_text("cards: [unclosed", encoding="utf-8")
    repo = YamlStudyRepository(deck_dir)

    with pytest.raises(RepositoryError):
        await repo.fetch_deck_stats("broken")


@pytest.mark.asyncio
async def test_malformed_progress_row_uses_initial(deck_dir):
    (deck_dir / "odd.yaml").write_text(
        "cards:\n  - id: a\n    front: A\n"
        "progress:\n  a:\n    ease_factor: nope\n    interval: 3\n    repetitions: 1\n",
        encoding="utf-8",
    )
    repo = YamlStudyRepository(deck_dir, clock=lambda: NOW)

    due = await repo.fetch_due_cards("odd")

    assert due[0].progress == CardProgress(2.5, 0, 0)


@pytest.mark.asyncio
async def test_card_id_shared_between_decks_is_rejected(tmp_path):
    (tmp_path / "a.yaml").write_text("cards:\n  - id: 1\n    front: uno\n", encoding="utf-8")
    (tmp_path / "b.yaml").write_text("cards:\n  - id: 1\n    front: eins\n", encoding="utf-8")
    repo = YamlStudyRepository(tmp_path, clock=lambda: NOW)
    await repo.fetch_due_cards("a")

    with pytest.raises(RepositoryError, match="already used by deck 'a'"):
        await repo.fetch_due_cards("b")

    # Deck a still owns its card and reviews land in its own file
    result = ReviewResult(
        ease_factor=2.6, interval=1, repetitions=1, next_review_at=date(2026, 10, 18)
    )
    await repo.persist_review("1", result, rating=3, review_id="rev_1", reviewed_at=NOW)

    a = yaml.safe_load((tmp_path / "a.yaml").read_text(encoding="utf-8"))
    b = yaml.safe_load((tmp_path / "b.yaml").read_text(encoding="utf-8"))
    assert list(a["progress"]) == ["1"]
    assert "progress" not in b
    assert repo.card_ids("b") == []
