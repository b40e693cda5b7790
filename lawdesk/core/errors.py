"""Error taxonomy and classification for API calls.

Failures are normalised once, where they are first caught, into a small
sum type (network, timeout, HTTP status, unknown). Everything downstream
(retry eligibility, notification copy) reads that normalised form instead
of re-parsing exception messages.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Callable

import httpx

from lawdesk.core.models import Notification

OfflinePredicate = Callable[[], bool]


class ApiErrorKind(str, Enum):
    NETWORK = "network"
    TIMEOUT = "timeout"
    AUTH = "auth"
    VALIDATION = "validation"
    SERVER = "server"
    UNKNOWN = "unknown"


ERROR_TITLES: dict[ApiErrorKind, str] = {
    ApiErrorKind.NETWORK: "Connection Problem",
    ApiErrorKind.TIMEOUT: "Request Timeout",
    ApiErrorKind.AUTH: "Authentication Error",
    ApiErrorKind.VALIDATION: "Validation Error",
    ApiErrorKind.SERVER: "Server Error",
    ApiErrorKind.UNKNOWN: "Error",
}

DEFAULT_MESSAGES: dict[ApiErrorKind, str] = {
    ApiErrorKind.NETWORK: "Network error: Please check your internet connection and try again.",
    ApiErrorKind.TIMEOUT: "Request timed out: The server took too long to respond. Please try again.",
    ApiErrorKind.AUTH: "Authentication error: Please sign in again.",
    ApiErrorKind.VALIDATION: "Validation error: Please check your input and try again.",
    ApiErrorKind.SERVER: "Server error: Something went wrong on our end. We're working on it.",
    ApiErrorKind.UNKNOWN: "An unexpected error occurred. Please try again.",
}


# ---------------------------------------------------------------------------
# Boundary exceptions
# ---------------------------------------------------------------------------

class HttpStatusError(Exception):
    """Non-2xx response. ``from_body`` is set when the server sent a message."""

    def __init__(self, status: int, message: str, from_body: bool = False) -> None:
        super().__init__(message)
        self.status = status
        self.message = message
        self.from_body = from_body


class RequestTimeout(Exception):
    pass


class NetworkUnavailable(Exception):
    pass


class RequestCancelled(Exception):
    """The caller cancelled the operation. Not an error; never classified."""


# ---------------------------------------------------------------------------
# Normalisation
# ---------------------------------------------------------------------------

class FailureKind(str, Enum):
    NETWORK = "network"
    TIMEOUT = "timeout"
    HTTP_STATUS = "http_status"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class Failure:
    kind: FailureKind
    message: str
    status: int | None = None
    cause: BaseException | None = None


def normalize_failure(exc: BaseException) -> Failure:
    message = str(exc) or exc.__class__.__name__
    if isinstance(exc, ApiError):
        return exc.failure
    if isinstance(exc, HttpStatusError):
        return Failure(FailureKind.HTTP_STATUS, exc.message, status=exc.status, cause=exc)
    if isinstance(exc, (RequestTimeout, httpx.TimeoutException, asyncio.TimeoutError)):
        return Failure(FailureKind.TIMEOUT, message, cause=exc)
    if isinstance(exc, (NetworkUnavailable, httpx.TransportError, ConnectionError)):
        return Failure(FailureKind.NETWORK, message, cause=exc)
    return Failure(FailureKind.UNKNOWN, message, cause=exc)


def classify_failure(
    failure: Failure,
    is_likely_offline: OfflinePredicate | None = None,
) -> ApiErrorKind:
    if failure.kind == FailureKind.NETWORK:
        return ApiErrorKind.NETWORK
    if failure.kind == FailureKind.TIMEOUT:
        return ApiErrorKind.TIMEOUT
    if failure.kind == FailureKind.HTTP_STATUS and failure.status is not None:
        if failure.status in (401, 403):
            return ApiErrorKind.AUTH
        if failure.status == 422:
            return ApiErrorKind.VALIDATION
        if failure.status >= 400:
            return ApiErrorKind.SERVER
    if is_likely_offline is not None and is_likely_offline():
        return ApiErrorKind.NETWORK
    return ApiErrorKind.UNKNOWN


def classify(exc: BaseException, is_likely_offline: OfflinePredicate | None = None) -> ApiErrorKind:
    """Map any caught failure to an :class:`ApiErrorKind`. Pure."""
    return classify_failure(normalize_failure(exc), is_likely_offline)


# ---------------------------------------------------------------------------
# ApiError: what callers of the request engine see
# ---------------------------------------------------------------------------

class ApiError(Exception):
    def __init__(
        self,
        kind: ApiErrorKind,
        message: str,
        status: int | None = None,
        cause: BaseException | None = None,
        server_message: bool = False,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.status = status
        self.cause = cause
        self.server_message = server_message

    @classmethod
    def from_exception(
        cls,
        exc: BaseException,
        is_likely_offline: OfflinePredicate | None = None,
    ) -> ApiError:
        if isinstance(exc, ApiError):
            return exc
        failure = normalize_failure(exc)
        return cls(
            kind=classify_failure(failure, is_likely_offline),
            message=failure.message,
            status=failure.status,
            cause=exc,
            server_message=isinstance(exc, HttpStatusError) and exc.from_body,
        )

    @property
    def failure(self) -> Failure:
        if self.status is not None:
            return Failure(FailureKind.HTTP_STATUS, self.message, self.status, self.cause)
        kind = {
            ApiErrorKind.NETWORK: FailureKind.NETWORK,
            ApiErrorKind.TIMEOUT: FailureKind.TIMEOUT,
        }.get(self.kind, FailureKind.UNKNOWN)
        return Failure(kind, self.message, None, self.cause)

    @property
    def retryable(self) -> bool:
        return self.kind in (ApiErrorKind.NETWORK, ApiErrorKind.TIMEOUT)

    @property
    def title(self) -> str:
        return ERROR_TITLES[self.kind]

    @property
    def user_message(self) -> str:
        if self.server_message or self.kind == ApiErrorKind.UNKNOWN:
            return self.message or DEFAULT_MESSAGES[self.kind]
        return DEFAULT_MESSAGES[self.kind]

    def __repr__(self) -> str:
        return f"ApiError(kind={self.kind.value!r}, status={self.status!r}, message={self.message!r})"


def notification_for_error(exc: BaseException, title: str | None = None) -> Notification:
    """Build the user-facing notification for a failed call."""
    api_error = ApiError.from_exception(exc)
    return Notification(
        title=title or api_error.title,
        description=api_error.user_message,
        variant="default" if api_error.retryable else "destructive",
    )
