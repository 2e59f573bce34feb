import logging
import random
import time
from contextlib import asynccontextmanager
from dataclasses import asdict
from datetime import date

from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel, Field
from ulid import ULID

from gelos.application.study.scheduler import (
    calculate_next_review,
    coerce_progress,
    get_interval_description,
)
from gelos.application.study.session import StudySession
from gelos.consts import VERSION
from gelos.domain.study.errors import InvalidSessionAction, RepositoryError, SessionLoadError
from gelos.domain.study.models import SessionState
from gelos.domain.study.ports import StudyRepository

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("gelos.server")

# Active study sessions, keyed by session id. Finished sessions are evicted once
# their writes are saved; abandoned ones stay until DELETE or until the oldest
# is dropped to stay under MAX_ACTIVE_SESSIONS.
MAX_ACTIVE_SESSIONS = 1000
sessions: dict[str, StudySession] = {}
_repository: StudyRepository | None = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info(f"Gelos Server v{VERSION} starting up...")
    yield
    # Shutdown
    logger.info("Gelos Server shutting down...")
    sessions.clear()
    if _repository is not None and hasattr(_repository, "aclose"):
        await _repository.aclose()


app = FastAPI(
    title="Gelos Study Server",
    description="Spaced-repetition scheduling and study sessions for Gelos decks.",
    version=VERSION,
    lifespan=lifespan,
)

start_time = time.time()


def get_repository() -> StudyRepository:
    """Repository built from the resolved config on first use."""
    global _repository
    if _repository is None:
        from gelos.application.config import resolve_config
        from gelos.application.factory import get_study_repository

        _repository = get_study_repository(resolve_config())
    return _repository


def _get_session(session_id: str) -> StudySession:
    session = sessions.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Unknown session '{session_id}'")
    return session


def _evict_if_done(session_id: str, session: StudySession) -> None:
    """Forget a finished session once nothing is left to retry."""
    if session.is_finished and not session.save_failures and not session.pending_writes:
        sessions.pop(session_id, None)
        logger.info(f"Session {session_id} finished and evicted")


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    status: str
    version: str
    uptime_seconds: float


class ScheduleRequest(BaseModel):
    rating: int
    ease_factor: float = 2.5
    interval: int = 0
    repetitions: int = 0
    today: date | None = None


class ScheduleResponse(BaseModel):
    ease_factor: float
    interval: int
    repetitions: int
    next_review_at: date
    label: str


class DeckStatsResponse(BaseModel):
    total_cards: int
    due_cards: int
    new_cards: int
    reviewed_today: int
    accuracy: int


class StartSessionRequest(BaseModel):
    seed: int | None = None


class CardView(BaseModel):
    card_id: str
    front: str
    back: str | None = None  # only once revealed
    preview: dict[int, str] | None = None


class SessionResponse(BaseModel):
    session_id: str
    deck_id: str
    state: str
    position: int
    total: int
    reviewed: int
    correct: int
    card: CardView | None = None
    deck_stats: DeckStatsResponse | None = None
    unsaved_reviews: int = 0


class RatingRequest(BaseModel):
    rating: int = Field(description="0=Forgot, 1=Hard, 2=Good, 3=Easy; clamped into range.")


class RatingResponse(BaseModel):
    interval: int
    label: str
    next_review_at: date
    saved: bool
    save_error: str | None = None
    session: SessionResponse


def _session_response(session_id: str, session: StudySession) -> SessionResponse:
    card_view = None
    card = session.current_card
    if card is not None:
        revealed = session.state is SessionState.REVEALED
        card_view = CardView(
            card_id=card.card_id,
            front=card.front,
            back=card.back if revealed else None,
            preview=session.preview() if revealed else None,
        )

    deck_stats = None
    if session.deck_stats is not None:
        deck_stats = DeckStatsResponse(**asdict(session.deck_stats))

    return SessionResponse(
        session_id=session_id,
        deck_id=session.deck_id,
        state=session.state.value,
        position=session.position,
        total=session.total,
        reviewed=session.stats.reviewed,
        correct=session.stats.correct,
        card=card_view,
        deck_stats=deck_stats,
        unsaved_reviews=len(session.save_failures),
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Simple health check to verify server is reachable.
    """
    return HealthResponse(status="ok", version=VERSION, uptime_seconds=time.time() - start_time)


@app.get("/version")
async def get_version():
    return {"version": VERSION}


@app.post("/schedule", response_model=ScheduleResponse)
async def schedule(req: ScheduleRequest):
    """Pure scheduling computation; nothing is stored."""
    progress = coerce_progress(req.model_dump(include={"ease_factor", "interval", "repetitions"}))
    result = calculate_next_review(progress, req.rating, req.today)
    return ScheduleResponse(
        ease_factor=result.ease_factor,
        interval=result.interval,
        repetitions=result.repetitions,
        next_review_at=result.next_review_at,
        label=get_interval_description(result.interval),
    )


@app.get("/decks/{deck_id}/stats", response_model=DeckStatsResponse)
async def deck_stats(deck_id: str, repo: StudyRepository = Depends(get_repository)):
    try:
        stats = await repo.fetch_deck_stats(deck_id)
    except RepositoryError as e:
        logger.error(f"Stats for deck '{deck_id}' failed: {e}")
        raise HTTPException(status_code=503, detail=str(e)) from e
    return DeckStatsResponse(**asdict(stats))


@app.post("/decks/{deck_id}/sessions", response_model=SessionResponse)
async def start_session(
    deck_id: str,
    req: StartSessionRequest | None = None,
    repo: StudyRepository = Depends(get_repository),
):
    """Load due cards and start a session. An empty deck yields a finished session."""
    seed = req.seed if req else None
    session = StudySession(repo, deck_id, rng=random.Random(seed) if seed is not None else None)
    try:
        await session.load()
    except SessionLoadError as e:
        raise HTTPException(status_code=503, detail=str(e)) from e

    session_id = str(ULID())
    while len(sessions) >= MAX_ACTIVE_SESSIONS:
        oldest = next(iter(sessions))
        logger.warning(f"Dropping abandoned session {oldest}")
        del sessions[oldest]
    sessions[session_id] = session
    _evict_if_done(session_id, session)
    logger.info(f"Started session {session_id} for deck '{deck_id}' ({session.total} cards)")
    return _session_response(session_id, session)


@app.get("/sessions/{session_id}", response_model=SessionResponse)
async def get_session(session_id: str):
    return _session_response(session_id, _get_session(session_id))


@app.post("/sessions/{session_id}/reveal", response_model=SessionResponse)
async def reveal_card(session_id: str):
    session = _get_session(session_id)
    try:
        session.reveal()
    except InvalidSessionAction as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    return _session_response(session_id, session)


@app.post("/sessions/{session_id}/ratings", response_model=RatingResponse)
async def rate_card(session_id: str, req: RatingRequest):
    """
    Rate the revealed card. The write is awaited so the response can report
    whether it was saved; the session advances either way.
    """
    session = _get_session(session_id)
    try:
        card = session.current_card
        result = session.rate(req.rating)
    except InvalidSessionAction as e:
        raise HTTPException(status_code=409, detail=str(e)) from e

    failures = await session.flush()
    failure = next((f for f in reversed(failures) if f.card_id == card.card_id), None)

    response = RatingResponse(
        interval=result.interval,
        label=get_interval_description(result.interval),
        next_review_at=result.next_review_at,
        saved=failure is None,
        save_error=failure.error if failure else None,
        session=_session_response(session_id, session),
    )
    _evict_if_done(session_id, session)
    return response


@app.post("/sessions/{session_id}/retry", response_model=SessionResponse)
async def retry_unsaved(session_id: str):
    """Retry review writes that failed earlier in the session."""
    session = _get_session(session_id)
    remaining = await session.retry_failed()
    if remaining:
        logger.warning(f"{len(remaining)} review(s) still unsaved in session {session_id}")
    response = _session_response(session_id, session)
    _evict_if_done(session_id, session)
    return response


@app.delete("/sessions/{session_id}")
async def end_session(session_id: str):
    """Abandon a session. Writes not yet committed are dropped."""
    session = _get_session(session_id)
    del sessions[session_id]
    return {"ok": True, "reviewed": session.stats.reviewed, "correct": session.stats.correct}
