"""Example scenarios for the ticket service."""

from __future__ import annotations

from rocket_tester.api.models import SoldOut
from rocket_tester.context import TestContext


async def test_buy_tickets(ctx: TestContext) -> None:
    """A single customer buys every ticket, then finds the event sold out."""
    tickets = 1_000

    await ctx.launcher().with_tickets(tickets).with_balancer_threads(64).launch()

    (await ctx.api.set_num_servers(1)).unwrap()

    session = ctx.api.create_session()
    sold: set[int] = set()

    for _ in range(tickets):
        reservation = (await session.reserve_ticket()).unwrap()
        if isinstance(reservation, SoldOut):
            raise ctx.fail("Tickets should not be sold out!")

        ticket = reservation.ticket_id
        failure = ctx.check(ticket not in sold, f"Ticket {ticket} was handed out twice!")
        if failure:
            raise failure
        sold.add(ticket)

        failure = ctx.check_eq(
            (await session.buy_ticket(ticket)).unwrap(),
            ticket,
            "Ticket id does not match!",
        )
        if failure:
            raise failure

    reservation = (await session.reserve_ticket()).unwrap()
    ctx.check(
        isinstance(reservation, SoldOut),
        f"Expected the event to be sold out after {tickets} purchases, got {reservation}",
    )


async def test_abort_purchase(ctx: TestContext) -> None:
    """Aborting a purchase puts the ticket back on sale."""
    await ctx.launcher().with_tickets(10).launch()

    (await ctx.api.set_num_servers(1)).unwrap()

    session = ctx.api.create_session()
    before = (await session.available_tickets()).unwrap()

    ticket = (await session.reserve_ticket()).unwrap().reserved()
    ctx.check_eq(
        (await session.abort_purchase(ticket)).unwrap(),
        ticket,
        "Aborted ticket id does not match!",
    )

    ctx.check_eq(
        (await session.available_tickets()).unwrap(),
        before,
        "Aborted ticket was not returned!",
    )


async def test_sticky_session(ctx: TestContext) -> None:
    """A session stays on the server it was first routed to."""
    await ctx.launcher().with_tickets(100).launch()

    (await ctx.api.set_num_servers(2)).unwrap()
    servers = (await ctx.api.list_servers()).unwrap()

    session = ctx.api.create_session()
    (await session.available_tickets()).unwrap()

    pinned = session.server_id
    if pinned is None:
        raise ctx.fail("Service did not assign a server!")
    ctx.check(pinned in servers, f"Server {pinned} is not among the active servers")

    for _ in range(5):
        (await session.available_tickets()).unwrap()
        ctx.check_eq(session.server_id, pinned, "Session moved to another server")


async def test_num_servers(ctx: TestContext) -> None:
    """The number of servers can be changed through the admin API."""
    await ctx.launcher().launch()

    ctx.check_eq(
        (await ctx.api.set_num_servers(3)).unwrap(),
        3,
        "Server count was not echoed!",
    )
    ctx.check_eq(
        (await ctx.api.get_num_servers()).unwrap(),
        3,
        "Server count was not applied!",
    )
