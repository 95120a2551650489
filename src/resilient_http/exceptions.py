"""Exception hierarchy for resilient_http.

Every failure a caller can observe derives from :class:`ResilientHTTPError`,
which carries a human-readable message, a short ``kind`` string naming the
error category, and an ``exit_code`` from :mod:`resilient_http.exit_codes`
used by the command line front end.

Subclass hierarchy::

    ResilientHTTPError      (kind "error",            exit 1)
    +-- InvalidUsageError   (kind "invalid_usage",    exit 2)
    +-- ConfigError         (kind "config",           exit 1)
    +-- RequestTimeout      (kind "timeout",          exit 6)
    +-- TransportError      (kind "transport",        exit 6)
    +-- RetryExhausted      (kind "retry_exhausted",  exit 6)
    +-- HttpStatusError     (kind "http_status",      exit 3 / 4 / 5)
    +-- InterceptorError    (kind "interceptor",      exit 10)

Errors are scoped to the single operation that raised them; an
:class:`~resilient_http.client.ApiClient` remains usable afterwards.
"""

from __future__ import annotations

from typing import Any

from resilient_http.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INTERCEPTOR_ERROR,
    EXIT_INVALID_USAGE,
    EXIT_NOT_FOUND,
    EXIT_SERVER_ERROR,
)


class ResilientHTTPError(Exception):
    """Base exception for all resilient_http errors.

    Args:
        message: Human-readable error description.
        exit_code: Optional override for the class-level exit code.
    """

    kind: str = "error"
    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        self.message = message
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(ResilientHTTPError):
    """Raised for invalid arguments such as an empty endpoint."""

    kind = "invalid_usage"
    exit_code = EXIT_INVALID_USAGE


class ConfigError(ResilientHTTPError):
    """Raised for configuration problems (unknown profile, invalid JSON, bad values)."""

    kind = "config"
    exit_code = EXIT_GENERIC_FAILURE


class RequestTimeout(ResilientHTTPError):
    """Raised when a transport call does not complete before its deadline."""

    kind = "timeout"
    exit_code = EXIT_CONNECTION_ERROR


class TransportError(ResilientHTTPError):
    """Raised on network-level failures where no response was obtained.

    Covers DNS resolution errors, refused connections and broken streams.
    """

    kind = "transport"
    exit_code = EXIT_CONNECTION_ERROR


class RetryExhausted(ResilientHTTPError):
    """Raised when every allowed attempt failed with a timeout or transport error.

    Attributes:
        last_error: The failure of the final attempt.
        attempts: Total number of attempts made.
    """

    kind = "retry_exhausted"
    exit_code = EXIT_CONNECTION_ERROR

    def __init__(self, last_error: ResilientHTTPError, attempts: int):
        super().__init__(f"Request failed after {attempts} attempts: {last_error}")
        self.last_error = last_error
        self.attempts = attempts


class HttpStatusError(ResilientHTTPError):
    """Raised when a response was obtained but its status is not 2xx.

    Attributes:
        status: The HTTP status code.
        body: The decoded response body, if any.
    """

    kind = "http_status"

    def __init__(self, status: int, message: str, body: Any = None):
        if status in (401, 403):
            exit_code = EXIT_AUTH_FAILURE
        elif status == 404:
            exit_code = EXIT_NOT_FOUND
        else:
            exit_code = EXIT_SERVER_ERROR
        super().__init__(message, exit_code=exit_code)
        self.status = status
        self.body = body


class InterceptorError(ResilientHTTPError):
    """Raised when a registered interceptor fails during its phase.

    Attributes:
        phase: ``"request"`` or ``"response"``.
        original: The exception raised by the interceptor.
    """

    kind = "interceptor"
    exit_code = EXIT_INTERCEPTOR_ERROR

    def __init__(self, phase: str, original: BaseException):
        super().__init__(f"{phase} interceptor failed: {original}")
        self.phase = phase
        self.original = original
