"""Simulated customer session with sticky server affinity."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, TypeVar
from uuid import UUID

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

if TYPE_CHECKING:
    from rocket_tester.api.client import ApiClient

T = TypeVar("T")


@dataclass
class UserSession:
    """
    One simulated customer.

    Every request carries the customer id and, once the service has assigned
    one, the server id the session is pinned to. The affinity is refreshed
    from each response before the result is handed back, so the next call
    always routes to the most recently reported server.

    Note: buy_ticket and abort_purchase leave ``state`` untouched; only
    reserve_ticket moves it.
    """

    api: "ApiClient"
    customer_id: UUID
    server_id: UUID | None = None
    state: SessionState = field(default_factory=Idle)

    def request_options(self) -> RequestOptions:
        return RequestOptions(server_id=self.server_id, customer_id=self.customer_id)

    def _process_response(self, response: ApiResponse[T]) -> ApiResponse[T]:
        # A response without the header must not unpin the session
        if response.server_id is not None:
            self.server_id = response.server_id
        return response

    async def available_tickets(self) -> ApiResponse[int]:
        return self._process_response(
            await self.api.available_tickets(self.request_options())
        )

    async def reserve_ticket(self) -> ApiResponse[Reservation]:
        response = self._process_response(
            await self.api.reserve_ticket(self.request_options())
        )
        if isinstance(response.result, SoldOut):
            self.state = Idle()
        elif isinstance(response.result, Reserved):
            self.state = Holding(response.result.ticket_id)
        return response

    async def buy_ticket(self, ticket_id: int) -> ApiResponse[int]:
        return self._process_response(
            await self.api.buy_ticket(self.request_options(), ticket_id)
        )

    async def abort_purchase(self, ticket_id: int) -> ApiResponse[int]:
        return self._process_response(
            await self.api.abort_purchase(self.request_options(), ticket_id)
        )
