"""Client side of the ticket service protocol."""

from rocket_tester.api.client import ApiClient
from rocket_tester.api.models import (
    ApiResponse,
    Holding,
    Idle,
    Reservation,
    RequestOptions,
    Reserved,
    SessionState,
    SoldOut,
)
from rocket_tester.api.session import UserSession

__all__ = [
    "ApiClient",
    "ApiResponse",
    "Holding",
    "Idle",
    "Reservation",
    "RequestOptions",
    "Reserved",
    "SessionState",
    "SoldOut",
    "UserSession",
]
