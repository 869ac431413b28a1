"""Harness exception taxonomy."""

from __future__ import annotations

from typing import Any


class HarnessError(Exception):
    """Base harness exception carrying a message and optional details."""

    message: str = "Harness error"

    def __init__(
        self,
        message: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message or self.message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": type(self).__name__,
            "message": self.message,
            **({"details": self.details} if self.details else {}),
        }


class TransportError(HarnessError):
    """The request never produced a response (connection failure, timeout)."""

    message = "Request to the ticket service failed"


class ProtocolViolation(HarnessError):
    """The service answered, but not in a way the protocol allows."""

    message = "Ticket service violated the protocol"

    def __init__(
        self,
        message: str | None = None,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.status_code = status_code
        super().__init__(message, details)


class BusinessError(HarnessError):
    """Expected rejection by the service (HTTP 400 with a message body)."""

    message = "Request rejected"

    def __str__(self) -> str:
        return f"Error 400: {self.message}"


class CheckFailure(HarnessError):
    """A soft assertion recorded on the test context."""

    message = "Check failed"


class LaunchError(HarnessError):
    """The service subprocess could not be started."""

    message = "Failed to launch the ticket service"
