"""Pytest configuration and fixtures."""

from __future__ import annotations

import io
from pathlib import Path
from typing import AsyncGenerator
from unittest.mock import AsyncMock, MagicMock
from uuid import UUID, uuid4

import httpx
import pytest
import pytest_asyncio

from rocket_tester.api.client import ApiClient
from rocket_tester.context import TestContext
from rocket_tester.core.logging import RunLog
from rocket_tester.rocket import Rocket

BASE_URL = "http://rocket.test/"


# =============================================================================
# In-memory ticket service
# =============================================================================


class FakeTicketService:
    """
    Minimal stand-in for the ticket service, served through httpx.MockTransport.

    Requests carrying a known X-Server-Id are routed to that server; others
    are assigned one round-robin. Every handled request is kept in
    ``requests`` for inspection.
    """

    def __init__(self, tickets: int = 10, num_servers: int = 1):
        self.pool: list[int] = []
        self.restock(tickets)
        self.reservations: dict[UUID, int] = {}
        self.sold: set[int] = set()
        self.servers: list[UUID] = [uuid4() for _ in range(num_servers)]
        self.requests: list[httpx.Request] = []
        self.send_server_header = True
        self._next_server = 0

    def restock(self, tickets: int) -> None:
        self.pool = list(range(tickets, 0, -1))

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def _route(self, request: httpx.Request) -> UUID:
        requested = request.headers.get("X-Server-Id")
        if requested is not None and UUID(requested) in self.servers:
            return UUID(requested)
        server = self.servers[self._next_server % len(self.servers)]
        self._next_server += 1
        return server

    def _customer(self, request: httpx.Request) -> UUID:
        customer = request.headers.get("X-Customer-Id")
        return UUID(customer) if customer else uuid4()

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        method = request.method
        body = request.content.decode()

        if path == "/api/admin/num_servers":
            if method == "POST":
                if not body.strip().isdigit():
                    return httpx.Response(400, text="No number of servers provided!")
                count = int(body)
                self.servers = self.servers[:count] + [
                    uuid4() for _ in range(count - len(self.servers))
                ]
            return httpx.Response(200, text=str(len(self.servers)))

        if path == "/api/admin/get_servers":
            return httpx.Response(
                200, text="".join(f"{server}\n" for server in self.servers)
            )

        if path.startswith("/api/debug"):
            return httpx.Response(200, text="Happy Debugging!")

        server = self._route(request)
        customer = self._customer(request)
        headers = {"X-Customer-Id": str(customer)}
        if self.send_server_header:
            headers["X-Server-Id"] = str(server)

        if path == "/api/num_available_tickets":
            return httpx.Response(200, text=str(len(self.pool)), headers=headers)

        if path == "/api/reserve_ticket":
            if customer in self.reservations:
                return httpx.Response(
                    400, text="Customer already has a reservation!", headers=headers
                )
            if not self.pool:
                return httpx.Response(200, text="SOLD OUT", headers=headers)
            ticket = self.pool.pop()
            self.reservations[customer] = ticket
            return httpx.Response(200, text=str(ticket), headers=headers)

        if path in ("/api/buy_ticket", "/api/abort_purchase"):
            ticket = int(body) if body.strip().isdigit() else None
            if ticket is None or self.reservations.get(customer) != ticket:
                return httpx.Response(
                    400, text="No reservation for this ticket!", headers=headers
                )
            del self.reservations[customer]
            if path == "/api/buy_ticket":
                self.sold.add(ticket)
            else:
                self.pool.append(ticket)
            return httpx.Response(200, text=str(ticket), headers=headers)

        return httpx.Response(404, text="Not found")


@pytest.fixture
def service() -> FakeTicketService:
    return FakeTicketService()


@pytest_asyncio.fixture
async def api(service: FakeTicketService) -> AsyncGenerator[ApiClient, None]:
    """Api client wired to the in-memory service."""
    async with ApiClient(BASE_URL, timeout=1.0, transport=service.transport()) as client:
        yield client


@pytest.fixture
def log_stream() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def run_log(log_stream: io.StringIO) -> RunLog:
    """Run log mirrored into a buffer instead of stderr."""
    return RunLog(stream=log_stream)


@pytest.fixture
def offline_api() -> ApiClient:
    """Api client for tests that never reach the network."""
    return ApiClient(BASE_URL, transport=httpx.MockTransport(lambda request: httpx.Response(503)))


@pytest.fixture
def ctx(offline_api: ApiClient, run_log: RunLog) -> TestContext:
    return TestContext(jar=Path("/opt/rocket.jar"), api=offline_api, log=run_log)


# =============================================================================
# Process doubles
# =============================================================================


def fake_process(returncode: int | None = None, pid: int = 4242) -> MagicMock:
    """A stand-in for asyncio.subprocess.Process."""
    process = MagicMock()
    process.pid = pid
    process.returncode = returncode
    process.kill = MagicMock()
    process.wait = AsyncMock(return_value=returncode if returncode is not None else -9)
    return process


@pytest.fixture
def fake_rocket() -> Rocket:
    return Rocket(fake_process(), ["java", "-ea", "-jar", "rocket.jar"], kill_timeout=0.5)


@pytest.fixture
def make_process():
    return fake_process
