"""
Error taxonomy for the data-access layer.

Store and identity failures arrive as BackendError / AuthBackendError with
backend codes. They are translated into the classes below exactly once, at the
call site that talks to the backend; nothing deeper in the stack matches on
backend codes.
"""
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from enum import StrEnum

from core.identity import NETWORK_ERROR_CODE, AuthBackendError
from db.document_store import BackendError

logger = logging.getLogger(__name__)


class ErrorKind(StrEnum):
    """Closed set of failure kinds surfaced to callers."""

    UNAUTHENTICATED = "unauthenticated"
    NOT_FOUND = "not-found"
    FORBIDDEN = "forbidden"
    INVALID_DATA = "invalid-data"
    PERMISSION_DENIED = "permission-denied"
    UNAVAILABLE = "unavailable"
    TIMEOUT = "timeout"
    UNKNOWN = "unknown"


class BookTrackerError(Exception):
    """
    Base class for all data-access failures.

    The message is meant to be shown to the user as-is.
    """

    kind: ErrorKind = ErrorKind.UNKNOWN
    default_message = "Something went wrong. Please try again."

    def __init__(self, message: str | None = None, code: str | None = None) -> None:
        self.message = message or self.default_message
        self.code = code  # Original backend code, when translated from one
        super().__init__(self.message)


class UnauthenticatedError(BookTrackerError):
    """Raised when an operation needs a signed-in user and there is none."""

    kind = ErrorKind.UNAUTHENTICATED
    default_message = "You need to sign in first."


class NotFoundError(BookTrackerError):
    """Raised when a referenced record doesn't exist."""

    kind = ErrorKind.NOT_FOUND
    default_message = "The requested item was not found."


class ForbiddenError(BookTrackerError):
    """Raised when a record belongs to a different user."""

    kind = ErrorKind.FORBIDDEN
    default_message = "You don't have permission to access this item."


class InvalidDataError(BookTrackerError):
    """Raised when a change would leave a record inconsistent."""

    kind = ErrorKind.INVALID_DATA
    default_message = "The submitted data is not valid."


class PermissionDeniedError(BookTrackerError):
    """Raised when the backend refuses the call."""

    kind = ErrorKind.PERMISSION_DENIED
    default_message = "You don't have permission for this action."


class UnavailableError(BookTrackerError):
    """Raised when the backend can't be reached."""

    kind = ErrorKind.UNAVAILABLE
    default_message = "Connection error. Check your internet connection."


class OperationTimeoutError(BookTrackerError):
    """Raised when an operation exceeds its deadline."""

    kind = ErrorKind.TIMEOUT
    default_message = "The operation took too long to complete."


class UnknownBackendError(BookTrackerError):
    """Unclassified backend failure; keeps the backend's own message."""

    kind = ErrorKind.UNKNOWN


# Readable messages for identity failures, keyed by auth code
AUTH_ERROR_MESSAGES: dict[str, str] = {
    "auth/email-already-in-use": "An account with this email already exists.",
    "auth/invalid-email": "The email address is not valid.",
    "auth/weak-password": "The password is too weak. It must have at least 6 characters.",
    "auth/user-not-found": "No account exists with this email.",
    "auth/wrong-password": "The password is incorrect.",
    "auth/invalid-credential": "The email or password is incorrect.",
    "auth/user-disabled": "This account has been disabled.",
    "auth/too-many-requests": "Too many failed attempts. Try again later.",
    "auth/operation-not-allowed": "Email and password sign-in is not enabled.",
    "auth/permission-denied": "You don't have permission for this action.",
}


def translate_backend_error(error: BackendError) -> BookTrackerError:
    """Map a document store failure onto the taxonomy."""
    if error.code == "permission-denied":
        return PermissionDeniedError(code=error.code)
    if error.code == "unavailable":
        return UnavailableError(code=error.code)
    if error.code == "not-found":
        return NotFoundError(code=error.code)
    return UnknownBackendError(error.message, code=error.code)


def translate_auth_error(error: AuthBackendError) -> BookTrackerError:
    """
    Map an identity service failure onto the taxonomy.

    Credential and registration rejections become PermissionDeniedError with a
    per-code message; network failures become UnavailableError.
    """
    if error.code == NETWORK_ERROR_CODE:
        return UnavailableError(code=error.code)
    if error.code in AUTH_ERROR_MESSAGES:
        return PermissionDeniedError(AUTH_ERROR_MESSAGES[error.code], code=error.code)
    return UnknownBackendError(error.message, code=error.code)


@contextmanager
def backend_errors(operation: str) -> Iterator[None]:
    """
    Translate backend failures raised inside the block.

    Args:
        operation: Short description used in the log line, e.g. "add_book".
    """
    try:
        yield
    except BackendError as e:
        logger.error("%s_failed code=%s error=%s", operation, e.code, e.message)
        raise translate_backend_error(e) from e
    except AuthBackendError as e:
        logger.warning("%s_failed code=%s error=%s", operation, e.code, e.message)
        raise translate_auth_error(e) from e
