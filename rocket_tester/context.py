"""Per-test-case context: shared handles, soft assertions and owned rockets."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Any

from rocket_tester.api.client import ApiClient
from rocket_tester.core.exceptions import CheckFailure
from rocket_tester.core.logging import RunLog
from rocket_tester.rocket import Launcher, Rocket


class TestContext:
    """
    Everything a test body gets to work with.

    A fresh context is created for every test case. Failed checks are
    recorded here and reported after the body finishes; rockets launched
    through the context are killed when the case ends, however it ends.
    """

    __test__ = False

    def __init__(
        self,
        jar: Path,
        api: ApiClient,
        log: RunLog,
        bonus: bool = False,
    ):
        self.jar = jar
        self.api = api
        self.log = log
        self.bonus = bonus
        self._errors: list[str] = []
        self._errors_lock = threading.Lock()
        self._rockets: list[Rocket] = []
        self._rockets_lock = threading.Lock()

    def launcher(self, **kwargs: Any) -> Launcher:
        return Launcher(self, **kwargs)

    # -------------------------------------------------------------------------
    # Rockets
    # -------------------------------------------------------------------------

    def register_rocket(self, rocket: Rocket) -> None:
        with self._rockets_lock:
            self._rockets.append(rocket)

    def drain_rockets(self) -> list[Rocket]:
        with self._rockets_lock:
            rockets, self._rockets = self._rockets, []
        return rockets

    # -------------------------------------------------------------------------
    # Soft assertions
    # -------------------------------------------------------------------------

    @property
    def failures(self) -> list[str]:
        with self._errors_lock:
            return list(self._errors)

    def drain_failures(self) -> list[str]:
        with self._errors_lock:
            errors, self._errors = self._errors, []
        return errors

    def fail(self, message: str) -> CheckFailure:
        """
        Record a failure and return it as an exception.

        The test keeps running unless the caller raises the result:
            raise ctx.fail("Tickets should not be sold out!")
        """
        with self._errors_lock:
            self._errors.append(message)
        return CheckFailure(f"Error: {message}")

    def check(self, passed: bool, message: str) -> CheckFailure | None:
        if passed:
            return None
        return self.fail(message)

    def check_eq(self, got: Any, expected: Any, message: str) -> CheckFailure | None:
        return self.check(
            got == expected,
            f"Expected {expected!r} but got {got!r}: {message}",
        )
