"""Test case registry mapping names to async test bodies."""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable, Iterator
from dataclasses import dataclass, field
from pathlib import Path

from rocket_tester.api.client import ApiClient
from rocket_tester.context import TestContext
from rocket_tester.core.exceptions import CheckFailure
from rocket_tester.core.logging import RunLog, current_test_case, get_logger


logger = get_logger("registry")

TestBody = Callable[[TestContext], Awaitable[None]]


@dataclass
class TestOutcome:
    """Result of running one test case."""

    __test__ = False

    name: str
    error: BaseException | None = None
    failures: list[str] = field(default_factory=list)
    duration: float = 0.0

    @property
    def passed(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class TestCase:
    """A named async test body."""

    __test__ = False

    name: str
    body: TestBody

    @classmethod
    def from_function(cls, func: TestBody) -> "TestCase":
        """Name a body after its module and function, e.g. ``example.test_buy_tickets``."""
        module = func.__module__.rsplit(".", 1)[-1]
        return cls(name=f"{module}.{func.__name__}", body=func)

    async def run(
        self,
        log: RunLog,
        jar: Path,
        api: ApiClient,
        bonus: bool = False,
    ) -> TestOutcome:
        """
        Run the body in a fresh context and reconcile its result.

        1. The body runs; any exception it raises is its result
        2. Every rocket registered on the context is killed, always
        3. Recorded check failures are logged
        4. Outcome: the body's error, else the first check failure, else success
        """
        ctx = TestContext(jar=jar, api=api, log=log, bonus=bonus)
        token = current_test_case.set(self.name)
        start = time.monotonic()
        error: BaseException | None = None

        try:
            try:
                await self.body(ctx)
            except Exception as exc:
                error = exc
            finally:
                for rocket in ctx.drain_rockets():
                    await rocket.kill()

            failures = ctx.drain_failures()
            for message in failures:
                log.log_str(f"❌ {message}")

            if error is None and failures:
                error = CheckFailure(failures[0])

            return TestOutcome(
                name=self.name,
                error=error,
                failures=failures,
                duration=time.monotonic() - start,
            )
        finally:
            current_test_case.reset(token)


class Registry:
    """Ordered, append-only catalogue of test cases."""

    def __init__(self):
        self._cases: list[TestCase] = []

    def register(self, case: TestCase) -> None:
        """Register a test case; names must be unique."""
        if any(existing.name == case.name for existing in self._cases):
            raise ValueError(f"Test case already registered: {case.name}")
        self._cases.append(case)
        logger.debug(f"Registered test case: {case.name}")

    def get(self, name: str) -> TestCase | None:
        """Get a test case by name."""
        for case in self._cases:
            if case.name == name:
                return case
        return None

    def names(self) -> list[str]:
        """List all test case names in execution order."""
        return [case.name for case in self._cases]

    def __iter__(self) -> Iterator[TestCase]:
        return iter(self._cases)

    def __len__(self) -> int:
        return len(self._cases)


def registry(*bodies: TestBody) -> Registry:
    """
    Build a registry from test bodies, in the given order.

    Usage:
        def all_tests() -> Registry:
            return registry(example.test_buy_tickets, example.test_abort_purchase)
    """
    result = Registry()
    for body in bodies:
        result.register(TestCase.from_function(body))
    return result
