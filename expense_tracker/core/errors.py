"""Error taxonomy and FastAPI exception handlers.

Every error body leaving the API has the shape ``{"error": "<message>"}``.
Client errors carry their message verbatim; storage errors are genericized
and only the server log sees the underlying cause.
"""

from fastapi import Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette import status
import logging

logger = logging.getLogger("expense_tracker.errors")


class ExpenseClientError(Exception):
    """A request the client can fix; rendered as 400 with its message."""

    status_code = status.HTTP_400_BAD_REQUEST
    message = "Invalid request"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)

    @property
    def detail(self) -> str:
        return str(self)


class MissingIdempotencyKey(ExpenseClientError):
    message = "Missing Idempotency-Key header"


class InvalidAmount(ExpenseClientError):
    message = "Amount must be a positive number"


class MissingCategory(ExpenseClientError):
    message = "Category is required"


class InvalidDate(ExpenseClientError):
    message = "Valid date is required"


class InvalidDescription(ExpenseClientError):
    message = "Description must be text"


class DescriptionTooLong(ExpenseClientError):
    message = "Description too long (max 500 characters)"


class ConstraintViolation(Exception):
    """A unique constraint fired; another writer got there first."""


class KeyConflict(ConstraintViolation):
    """The idempotency key already maps to an expense."""


class PersistenceFailure(Exception):
    """The store could not complete an operation."""


def client_error_handler(request: Request, exc: ExpenseClientError):  # type: ignore
    logger.info(
        "rejected request",
        extra={"error_type": type(exc).__name__, "reason": exc.detail},
    )
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})


def http_error_handler(request: Request, exc):  # type: ignore
    if exc.status_code == status.HTTP_404_NOT_FOUND and exc.detail == "Not Found":
        message = f"No route for {request.method} {request.url.path}"
    else:
        message = str(exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": message},
        headers=getattr(exc, "headers", None),
    )


def validation_error_handler(request: Request, exc: RequestValidationError):  # type: ignore
    # the body is parsed before the route runs; a missing key still reports first
    from expense_tracker.models.constants import IDEMPOTENCY_KEY_HEADER

    if request.method == "POST" and not request.headers.get(IDEMPOTENCY_KEY_HEADER, "").strip():
        return client_error_handler(request, MissingIdempotencyKey())
    logger.info("malformed request body", extra={"detail": exc.errors()})
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Request body must be a JSON object"},
    )


def server_error_handler(request: Request, exc: Exception):  # type: ignore
    logger.exception("unhandled exception")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "An unexpected error occurred."},
    )
