"""
Domain error taxonomy.

Services and aggregates raise these; ``conduit.main`` maps each one to an
HTTP response in the Conduit ``{"errors": {...}}`` envelope. None of them
are retried automatically.
"""


class ConduitError(Exception):
    """Base class for errors that are surfaced to the caller."""

    status_code: int = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    @property
    def errors(self) -> dict[str, list[str]]:
        return {"body": [self.message]}


class ValidationFailure(ConduitError):
    """One or more required fields were blank or otherwise invalid."""

    status_code = 422

    def __init__(self, errors: dict[str, list[str]]) -> None:
        super().__init__("Validation failed")
        self._errors = errors

    @property
    def errors(self) -> dict[str, list[str]]:
        return self._errors


class NotFound(ConduitError):
    status_code = 404


class Forbidden(ConduitError):
    """The caller is authenticated but does not own the resource."""

    status_code = 403


class Unauthorized(ConduitError):
    """No caller identity where one is required."""

    status_code = 401

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(message)


class Conflict(ConduitError):
    """
    A store uniqueness constraint rejected the write, typically two
    concurrent creations racing for the same slug. Safe to retry.
    """

    status_code = 409
