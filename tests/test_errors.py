"""Tests for error classification and user-facing notification copy."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from lawdesk.core.errors import (
    ApiError,
    ApiErrorKind,
    FailureKind,
    HttpStatusError,
    RequestTimeout,
    classify,
    normalize_failure,
    notification_for_error,
)


class TestClassify:
    @pytest.mark.parametrize(
        "status, kind",
        [
            (401, ApiErrorKind.AUTH),
            (403, ApiErrorKind.AUTH),
            (422, ApiErrorKind.VALIDATION),
            (400, ApiErrorKind.SERVER),
            (404, ApiErrorKind.SERVER),
            (500, ApiErrorKind.SERVER),
            (503, ApiErrorKind.SERVER),
        ],
    )
    def test_http_status(self, status, kind):
        assert classify(HttpStatusError(status, "nope")) == kind

    def test_transport_errors_are_network(self):
        assert classify(httpx.ConnectError("refused")) == ApiErrorKind.NETWORK
        assert classify(ConnectionResetError()) == ApiErrorKind.NETWORK

    def test_timeouts(self):
        assert classify(httpx.ReadTimeout("slow")) == ApiErrorKind.TIMEOUT
        assert classify(RequestTimeout("slow")) == ApiErrorKind.TIMEOUT
        assert classify(asyncio.TimeoutError()) == ApiErrorKind.TIMEOUT

    def test_unknown_without_offline_hint(self):
        assert classify(ValueError("weird")) == ApiErrorKind.UNKNOWN
        assert classify(ValueError("weird"), lambda: False) == ApiErrorKind.UNKNOWN

    def test_unknown_becomes_network_when_likely_offline(self):
        assert classify(ValueError("weird"), lambda: True) == ApiErrorKind.NETWORK

    def test_status_wins_over_offline_hint(self):
        assert classify(HttpStatusError(401, "no"), lambda: True) == ApiErrorKind.AUTH

    def test_normalize_keeps_status(self):
        failure = normalize_failure(HttpStatusError(418, "teapot"))
        assert failure.kind == FailureKind.HTTP_STATUS
        assert failure.status == 418


class TestApiError:
    def test_from_exception_is_idempotent(self):
        err = ApiError(ApiErrorKind.SERVER, "boom", status=500)
        assert ApiError.from_exception(err) is err

    def test_retryable_only_for_network_and_timeout(self):
        assert ApiError(ApiErrorKind.NETWORK, "x").retryable
        assert ApiError(ApiErrorKind.TIMEOUT, "x").retryable
        assert not ApiError(ApiErrorKind.SERVER, "x", status=500).retryable
        assert not ApiError(ApiErrorKind.AUTH, "x", status=401).retryable

    def test_user_message_prefers_server_message(self):
        err = ApiError.from_exception(HttpStatusError(422, "Field 'name' is required", from_body=True))
        assert err.kind == ApiErrorKind.VALIDATION
        assert err.user_message == "Field 'name' is required"

    def test_user_message_falls_back_to_default_copy(self):
        err = ApiError.from_exception(HttpStatusError(500, "HTTP error 500"))
        assert err.user_message.startswith("Server error")
        assert err.title == "Server Error"

    def test_unknown_keeps_raw_message(self):
        err = ApiError.from_exception(RuntimeError("disk on fire"))
        assert err.kind == ApiErrorKind.UNKNOWN
        assert err.user_message == "disk on fire"
        assert err.title == "Error"


class TestNotificationForError:
    def test_network_is_not_destructive(self):
        n = notification_for_error(httpx.ConnectError("refused"))
        assert n.title == "Connection Problem"
        assert n.variant == "default"

    def test_auth_is_destructive(self):
        n = notification_for_error(HttpStatusError(401, "expired"))
        assert n.title == "Authentication Error"
        assert n.variant == "destructive"

    def test_title_override(self):
        n = notification_for_error(HttpStatusError(500, "HTTP error 500"), title="Extract Dates Failed")
        assert n.title == "Extract Dates Failed"
        assert n.description.startswith("Server error")
