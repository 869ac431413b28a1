"""
HTTP client for the ticket service API.

Every call performs exactly one request with a short fixed timeout and never
retries. Responses are classified uniformly:

- 200: the body is parsed into the operation's result type
- 400: the body is a business error message, returned inside the response
- anything else: ProtocolViolation

The correlation headers (X-Server-Id, X-Customer-Id) are decoded for every
response, including business errors, so callers never lose routing
information on an expected failure path.

Usage:
    async with ApiClient("http://127.0.0.1:8585/") as api:
        await api.set_num_servers(2)
        session = api.create_session()
        reservation = (await session.reserve_ticket()).unwrap()
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Callable, TypeVar
from uuid import UUID, uuid4

import httpx

from rocket_tester.api.models import (
    CUSTOMER_ID_HEADER,
    SERVER_ID_HEADER,
    ApiResponse,
    Reservation,
    RequestOptions,
    parse_int,
    parse_reservation,
)
from rocket_tester.core.config import settings
from rocket_tester.core.exceptions import (
    BusinessError,
    ProtocolViolation,
    TransportError,
)
from rocket_tester.core.logging import get_logger

if TYPE_CHECKING:
    from rocket_tester.api.session import UserSession

logger = get_logger("api.client")

T = TypeVar("T")

_NO_OPTIONS = RequestOptions()


def _uuid_from_header(headers: httpx.Headers, name: str) -> UUID | None:
    value = headers.get(name)
    if value is None:
        return None
    try:
        return UUID(value.strip())
    except ValueError as exc:
        raise ProtocolViolation(
            f"Header {name} is not a valid UUID: {value!r}",
            details={"header": name, "value": value},
        ) from exc


def _parse_servers(text: str) -> set[UUID]:
    return {UUID(token) for token in text.split()}


class ApiClient:
    """
    Stateless wrapper around the ticket service REST surface.

    The underlying httpx.AsyncClient pools connections; the client itself
    keeps no per-customer state. Use create_session() to simulate a customer.
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._base_url = base_url or settings.base_url
        self._timeout = timeout if timeout is not None else settings.request_timeout
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            transport=transport,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def timeout(self) -> float:
        return self._timeout

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # -------------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------------

    async def _send(
        self,
        method: str,
        path: str,
        options: RequestOptions,
        body: str | None = None,
    ) -> httpx.Response:
        try:
            # Overall deadline; httpx timeouts only bound each phase
            return await asyncio.wait_for(
                self._client.request(
                    method,
                    path,
                    headers=options.headers(),
                    content=body,
                ),
                timeout=self._timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
            raise TransportError(
                f"{method} {path} timed out after {self._timeout}s"
            ) from exc
        except httpx.RequestError as exc:
            raise TransportError(f"{method} {path} failed: {exc}") from exc

    def _process_response(
        self,
        response: httpx.Response,
        parse: Callable[[str], T],
    ) -> ApiResponse[T]:
        server_id = _uuid_from_header(response.headers, SERVER_ID_HEADER)
        customer_id = _uuid_from_header(response.headers, CUSTOMER_ID_HEADER)
        status = response.status_code

        if status == httpx.codes.OK:
            try:
                result = parse(response.text)
            except ValueError as exc:
                raise ProtocolViolation(
                    f"Unable to parse response body {response.text!r}: {exc}",
                    status_code=status,
                ) from exc
            return ApiResponse(server_id, customer_id, result=result)

        if status == httpx.codes.BAD_REQUEST:
            logger.debug(f"Business error on {response.request.url}: {response.text}")
            return ApiResponse(server_id, customer_id, error=BusinessError(response.text))

        raise ProtocolViolation(
            f"Server returned invalid status {status}.",
            status_code=status,
            details={"body": response.text[:300]},
        )

    async def _get(
        self,
        path: str,
        parse: Callable[[str], T],
        options: RequestOptions = _NO_OPTIONS,
    ) -> ApiResponse[T]:
        response = await self._send("GET", path, options)
        return self._process_response(response, parse)

    async def _post(
        self,
        path: str,
        value: object,
        parse: Callable[[str], T],
        options: RequestOptions = _NO_OPTIONS,
    ) -> ApiResponse[T]:
        response = await self._send("POST", path, options, body=str(value))
        return self._process_response(response, parse)

    # -------------------------------------------------------------------------
    # Admin
    # -------------------------------------------------------------------------

    async def get_num_servers(self) -> ApiResponse[int]:
        return await self._get("/api/admin/num_servers", parse_int)

    async def set_num_servers(self, count: int) -> ApiResponse[int]:
        return await self._post("/api/admin/num_servers", count, parse_int)

    async def list_servers(self) -> ApiResponse[set[UUID]]:
        """List the ids of all active servers; any malformed id fails the call."""
        return await self._get("/api/admin/get_servers", _parse_servers)

    async def debug(self, path: str = "") -> ApiResponse[str]:
        """Fetch free-form diagnostics from /api/debug."""
        return await self._get(f"/api/debug{path}", str)

    # -------------------------------------------------------------------------
    # Customer operations
    # -------------------------------------------------------------------------

    async def available_tickets(self, options: RequestOptions) -> ApiResponse[int]:
        return await self._get("/api/num_available_tickets", parse_int, options)

    async def reserve_ticket(self, options: RequestOptions) -> ApiResponse[Reservation]:
        return await self._post("/api/reserve_ticket", "", parse_reservation, options)

    async def buy_ticket(
        self, options: RequestOptions, ticket_id: int
    ) -> ApiResponse[int]:
        return await self._post("/api/buy_ticket", ticket_id, parse_int, options)

    async def abort_purchase(
        self, options: RequestOptions, ticket_id: int
    ) -> ApiResponse[int]:
        return await self._post("/api/abort_purchase", ticket_id, parse_int, options)

    def create_session(self, server_id: UUID | None = None) -> "UserSession":
        """Start a new simulated customer, optionally pinned to a server."""
        from rocket_tester.api.session import UserSession

        return UserSession(api=self, customer_id=uuid4(), server_id=server_id)
