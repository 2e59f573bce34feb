# Domain Study Package
from .errors import (
    GelosError,
    InvalidSessionAction,
    RepositoryError,
    SessionLoadError,
    StudySessionError,
)
from .models import (
    CardProgress,
    DeckStats,
    DueCard,
    ProgressRecord,
    Rating,
    ReviewResult,
    SaveFailure,
    SessionState,
    SessionStats,
    SessionSummary,
)
from .ports import StudyRepository

__all__ = [
    "CardProgress",
    "DeckStats",
    "DueCard",
    "GelosError",
    "InvalidSessionAction",
    "ProgressRecord",
    "Rating",
    "RepositoryError",
    "ReviewResult",
    "SaveFailure",
    "SessionLoadError",
    "SessionState",
    "SessionStats",
    "SessionSummary",
    "StudyRepository",
    "StudySessionError",
]
