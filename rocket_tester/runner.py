"""Sequential driver for the registered test cases."""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

from rocket_tester.api.client import ApiClient
from rocket_tester.core.exceptions import CheckFailure, HarnessError
from rocket_tester.core.logging import RunLog, get_logger
from rocket_tester.registry import Registry, TestOutcome


logger = get_logger("runner")


def select(registry: Registry, only: Iterable[str] | None = None) -> Registry:
    """Restrict a registry to the named cases, keeping registry order."""
    if not only:
        return registry
    wanted = set(only)
    unknown = wanted.difference(registry.names())
    if unknown:
        raise ValueError(f"Unknown test case(s): {', '.join(sorted(unknown))}")
    selected = Registry()
    for case in registry:
        if case.name in wanted:
            selected.register(case)
    return selected


async def run_all(
    registry: Registry,
    jar: Path,
    api: ApiClient,
    log: RunLog,
    bonus: bool = False,
) -> list[TestOutcome]:
    """
    Run every test case one after another.

    A failing case never stops the run; each one gets a start notice and a
    pass/fail notice, and failures are followed by the error that caused them
    (with its traceback unless it is a failed check).
    """
    outcomes = []

    for test_case in registry:
        logger.info(f"⏳ Starting test {test_case.name!r}.")
        outcome = await test_case.run(log, jar, api, bonus)

        if outcome.passed:
            logger.info(f"✅ Test {test_case.name!r} passed ({outcome.duration:.2f}s).")
        else:
            error_data = (
                outcome.error.to_dict()
                if isinstance(outcome.error, HarnessError)
                else {"error": type(outcome.error).__name__, "message": str(outcome.error)}
            )
            logger.info(
                f"❌ Test {test_case.name!r} failed ({outcome.duration:.2f}s).",
                extra={"extra_fields": {"test_case": test_case.name, "failure": error_data}},
            )
            if isinstance(outcome.error, CheckFailure):
                log.log_str(f"{type(outcome.error).__name__}: {outcome.error}")
            else:
                log.log_err(outcome.error)

        outcomes.append(outcome)

    return outcomes


def summarize(outcomes: list[TestOutcome]) -> str:
    passed = sum(1 for outcome in outcomes if outcome.passed)
    return f"{passed} passed, {len(outcomes) - passed} failed"
