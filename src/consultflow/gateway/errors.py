"""Typed failures raised by persistence gateways."""

from __future__ import annotations


class GatewayError(Exception):
    """Base class for consultation API failures."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    @property
    def is_transient(self) -> bool:
        return False


class ValidationError(GatewayError):
    """The server rejected the submitted section data (HTTP 400)."""


class AuthExpiredError(GatewayError):
    """The ambient session is no longer valid (HTTP 401)."""


class NotFoundError(GatewayError):
    """The consultation or draft does not exist for this caller (HTTP 404)."""


class TransientNetworkError(GatewayError):
    """Timeouts, transport failures and 5xx responses. Safe to retry."""

    @property
    def is_transient(self) -> bool:
        return True


def error_for_status(status_code: int, message: str) -> GatewayError:
    """Map an HTTP error status to the matching gateway error."""
    if status_code == 400 or status_code == 422:
        return ValidationError(message, status_code)
    if status_code == 401:
        return AuthExpiredError(message, status_code)
    if status_code == 404:
        return NotFoundError(message, status_code)
    if status_code >= 500:
        return TransientNetworkError(message, status_code)
    return GatewayError(message, status_code)
