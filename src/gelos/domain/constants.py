"""Centralized constants for the Gelos study core.

All magic numbers and configuration defaults live here so every layer
imports from a single source of truth.
"""

# ---------- SM-2 Scheduling ----------
DEFAULT_EASE_FACTOR = 2.5
MIN_EASE_FACTOR = 1.3
FIRST_SUCCESS_INTERVAL = 1  # days
SECOND_SUCCESS_INTERVAL = 6  # days
LAPSE_INTERVAL = 1  # days

# 4-point UI rating -> classic SM-2 quality levels 0, 2, 3, 5
RATING_QUALITY = (0, 2, 3, 5)
MIN_RATING = 0
MAX_RATING = 3
CORRECT_RATING_THRESHOLD = 2  # ratings >= this count as correct

# ---------- Interval Labels ----------
DAYS_PER_WEEK = 7
DAYS_PER_MONTH = 30
DAYS_PER_YEAR = 365

RATING_LABELS = {0: "Forgot", 1: "Hard", 2: "Good", 3: "Easy"}
RATING_COLORS = {
    0: "bg-red-500 hover:bg-red-600",
    1: "bg-orange-500 hover:bg-orange-600",
    2: "bg-electric-cyan hover:bg-electric-cyan/90",
    3: "bg-cosmic-green hover:bg-cosmic-green/90",
}
UNKNOWN_RATING_LABEL = "Unknown"
UNKNOWN_RATING_COLOR = "bg-gray-500"

# ---------- PostgREST / HTTP ----------
REQUEST_TIMEOUT = 30.0
CARDS_TABLE = "flashcards"
PROGRESS_TABLE = "flashcard_progress"
