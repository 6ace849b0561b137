"""
Error taxonomy shared by the stores, the services and the HTTP layer.

Every failure that reaches a caller is one of these kinds; the HTTP layer
renders ``kind`` and ``message`` into the response envelope.
"""


class ArcadeError(Exception):
    """Base class for all errors surfaced to callers."""

    kind = "INTERNAL"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInputError(ArcadeError):
    """Malformed identity, display name, game type or numeric field."""

    kind = "INVALID_INPUT"
    status_code = 400


class UnauthorizedError(ArcadeError):
    """Missing or wrong write credential."""

    kind = "UNAUTHORIZED"
    status_code = 401


class NotFoundError(ArcadeError):
    """The addressed player or score does not exist."""

    kind = "NOT_FOUND"
    status_code = 404


class ConflictError(ArcadeError):
    """A submission id was reused with a different payload."""

    kind = "CONFLICT"
    status_code = 409


class UnavailableError(ArcadeError):
    """Storage is unreachable or overloaded. Safe to retry with backoff."""

    kind = "UNAVAILABLE"
    status_code = 503
