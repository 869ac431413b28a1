"""Authored test scenarios run against the ticket service."""

from rocket_tester.registry import Registry, registry
from rocket_tester.scenarios import example


def all_tests() -> Registry:
    # Add any additional tests here.
    return registry(
        example.test_buy_tickets,
        example.test_abort_purchase,
        example.test_sticky_session,
        example.test_num_servers,
    )
