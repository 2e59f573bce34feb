"""Exception hierarchy for the study core."""


class GelosError(Exception):
    """Base class for all Gelos errors."""


class RepositoryError(GelosError):
    """A persistence adapter failed to read or write."""


class StudySessionError(GelosError):
    """Base class for study session failures."""


class SessionLoadError(StudySessionError):
    """Due cards or deck stats could not be fetched. The session can retry load()."""

    def __init__(self, deck_id: str, cause: BaseException):
        super().__init__(f"Failed to load deck '{deck_id}': {cause}")
        self.deck_id = deck_id
        self.cause = cause


class InvalidSessionAction(StudySessionError):
    """An action was attempted in a state that does not accept it."""

    def __init__(self, action: str, state: str):
        super().__init__(f"Cannot {action} while session is {state}")
        self.action = action
        self.state = state
