"""Typed values exchanged with the ticket service."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Callable, Generic, TypeVar, Union
from uuid import UUID

from rocket_tester.core.exceptions import BusinessError, HarnessError

T = TypeVar("T")
R = TypeVar("R")

SERVER_ID_HEADER = "X-Server-Id"
CUSTOMER_ID_HEADER = "X-Customer-Id"

SOLD_OUT = "SOLD OUT"


# =============================================================================
# Reservations
# =============================================================================


@dataclass(frozen=True)
class SoldOut:
    """No ticket left to reserve."""

    def reserved(self) -> int:
        raise HarnessError("Reservation failed when it shall have succeeded.")


@dataclass(frozen=True)
class Reserved:
    """A ticket is now held for the customer."""

    ticket_id: int

    def reserved(self) -> int:
        return self.ticket_id


Reservation = Union[SoldOut, Reserved]


def parse_int(text: str) -> int:
    """Parse a non-negative decimal integer body."""
    value = text.strip()
    if not value.isdigit():
        raise ValueError(f"invalid integer {text!r}")
    return int(value)


def parse_reservation(text: str) -> Reservation:
    """Parse a reserve_ticket body: the sold out marker or a ticket id."""
    value = text.strip()
    if value == SOLD_OUT:
        return SoldOut()
    return Reserved(parse_int(value))


# =============================================================================
# Session state
# =============================================================================


@dataclass(frozen=True)
class Idle:
    """The session holds no reservation."""


@dataclass(frozen=True)
class Holding:
    """The session holds a reserved ticket."""

    ticket_id: int


SessionState = Union[Idle, Holding]


# =============================================================================
# Requests and responses
# =============================================================================


@dataclass(frozen=True)
class RequestOptions:
    """Correlation headers attached to a request."""

    server_id: UUID | None = None
    customer_id: UUID | None = None

    def headers(self) -> dict[str, str]:
        headers = {}
        if self.server_id is not None:
            headers[SERVER_ID_HEADER] = str(self.server_id)
        if self.customer_id is not None:
            headers[CUSTOMER_ID_HEADER] = str(self.customer_id)
        return headers


@dataclass(frozen=True)
class ApiResponse(Generic[T]):
    """
    Outcome of one protocol call.

    Exactly one of ``result`` and ``error`` is meaningful: ``error`` is set
    when the service rejected the request with a business error. The
    correlation ids are reported either way.
    """

    server_id: UUID | None
    customer_id: UUID | None
    result: T | None = None
    error: BusinessError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        """Return the result, raising the business error if there is one."""
        if self.error is not None:
            raise self.error
        return self.result  # type: ignore[return-value]

    def map(self, func: Callable[[T], R]) -> "ApiResponse[R]":
        """Transform a successful result, keeping ids and business errors."""
        if self.error is not None:
            return self  # type: ignore[return-value]
        return replace(self, result=func(self.result))  # type: ignore[arg-type]
