"""Exceptions raised by the scheduling engine."""


class LeitnerError(Exception):
    """Base class for every error the engine raises on purpose."""


class ConfigError(LeitnerError, ValueError):
    pass


class InvalidBoxError(LeitnerError, ValueError):
    def __init__(self, box, max_box: int):
        super().__init__(f"Box must be between 1 and {max_box}, got {box!r}")
        self.box = box
        self.max_box = max_box


class InvalidRatingError(LeitnerError, ValueError):
    def __init__(self, rating):
        super().__init__(f"Unknown rating: {rating!r} (expected again, hard, good or easy)")
        self.rating = rating


class ScopeNotFoundError(LeitnerError, LookupError):
    def __init__(self, scope):
        super().__init__(f"{scope.kind.value.title()} {scope.id} not found")
        self.scope = scope


class SessionNotFoundError(LeitnerError, LookupError):
    def __init__(self, session_id: str):
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


class SessionProtocolError(LeitnerError):
    """The caller's view of a session is stale; it should refresh and retry."""


class CardNotDueForReviewError(SessionProtocolError):
    def __init__(self, card_id: int, session_id: str):
        super().__init__(f"Card {card_id} is not part of session {session_id}")
        self.card_id = card_id
        self.session_id = session_id


class OutOfOrderSubmissionError(SessionProtocolError):
    def __init__(self, card_id: int, expected_card_id: int | None):
        super().__init__(f"Expected a rating for card {expected_card_id}, got card {card_id}")
        self.card_id = card_id
        self.expected_card_id = expected_card_id


class SessionNotActiveError(SessionProtocolError):
    def __init__(self, session_id: str, status):
        super().__init__(f"Session {session_id} is {status.value.lower().replace('_', ' ')}")
        self.session_id = session_id
        self.status = status


class DailyLimitExceededError(LeitnerError):
    def __init__(self, kind: str, limit: int, consumed: int):
        super().__init__(f"Daily {kind} limit reached ({consumed}/{limit})")
        self.kind = kind
        self.limit = limit
        self.consumed = consumed


class NothingToUndoError(LeitnerError):
    def __init__(self, message: str = "Nothing to undo"):
        super().__init__(message)


class UndoWindowExpiredError(NothingToUndoError):
    def __init__(self, window_seconds: int):
        super().__init__(f"The last review is older than {window_seconds} seconds and can no longer be undone")
        self.window_seconds = window_seconds


class CardNotFoundError(LeitnerError, LookupError):
    def __init__(self, card_id: int):
        super().__init__(f"Card {card_id} not found")
        self.card_id = card_id


class FolderTooDeepError(LeitnerError, ValueError):
    def __init__(self, max_depth: int):
        super().__init__(f"Folders cannot be nested more than {max_depth} levels deep")
        self.max_depth = max_depth
