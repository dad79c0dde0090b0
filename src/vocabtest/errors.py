from typing import Optional


class VocabError(Exception):
    """Base for failures surfaced to the HTTP caller as ``{"error": message}``."""

    status_code: int = 400
    default_message: str = "Request failed"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidInput(VocabError):
    status_code = 400
    default_message = "Invalid input"


class Unauthorized(VocabError):
    status_code = 401
    default_message = "Unauthorized"


class NotFound(VocabError):
    status_code = 404
    default_message = "Not found"


class Conflict(VocabError):
    status_code = 409
    default_message = "Already exists"


class InvalidState(VocabError):
    status_code = 409
    default_message = "Operation not allowed in current state"
