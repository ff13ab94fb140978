"""Error taxonomy shared by the price and order engines.

Every error carries a stable ``kind`` that clients can switch on and the HTTP
status the routes answer with.
"""

from fastapi import HTTPException


class RecycleHubError(Exception):
    kind = "error"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_detail(self) -> dict[str, str]:
        return {"kind": self.kind, "message": self.message}


class ValidationError(RecycleHubError):
    """Bad input shape or range: non-positive price, unknown category, empty phone."""

    kind = "validation_error"
    status_code = 422


class NotFoundError(RecycleHubError):
    kind = "not_found"
    status_code = 404


class InvalidTransitionError(RecycleHubError):
    """Requested status change is not an edge of the order state machine."""

    kind = "invalid_transition"
    status_code = 409


class AuthorizationError(RecycleHubError):
    kind = "forbidden"
    status_code = 403


class ConflictError(RecycleHubError):
    """A concurrent write changed the row first (lost compare-and-set)."""

    kind = "conflict"
    status_code = 409


class StalePriceError(RecycleHubError):
    """No price row inside the staleness window for a point/category."""

    kind = "no_current_price"
    status_code = 404


def http_error(exc: RecycleHubError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.to_detail())
