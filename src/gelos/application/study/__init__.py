# Application Study Package
from .progress import apply_review, compute_deck_stats
from .scheduler import (
    calculate_next_review,
    clamp_rating,
    coerce_progress,
    get_initial_progress,
    get_interval_description,
    get_rating_color,
    get_rating_description,
    is_due,
    preview_intervals,
)
from .session import StudySession

__all__ = [
    "StudySession",
    "apply_review",
    "calculate_next_review",
    "clamp_rating",
    "coerce_progress",
    "compute_deck_stats",
    "get_initial_progress",
    "get_interval_description",
    "get_rating_color",
    "get_rating_description",
    "is_due",
    "preview_intervals",
]
