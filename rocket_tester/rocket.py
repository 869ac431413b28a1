"""
Rocket - one running instance of the ticket service.

A Launcher builds the command line for the jar under test, spawns it and
registers the resulting Rocket on the test context, which guarantees the
process is killed when the test case ends.

Lifecycle:
    Spawned -> (ExitedEarly) -> Killed

Killed is reached exactly once no matter how many holders call kill().
"""

from __future__ import annotations

import asyncio
import atexit
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

from rocket_tester.core.config import settings
from rocket_tester.core.exceptions import LaunchError
from rocket_tester.core.logging import get_logger

if TYPE_CHECKING:
    from rocket_tester.context import TestContext

logger = get_logger("rocket")

# Exit status of the service when started with -bonus but no bonus implementation
NO_BONUS_EXIT_CODE = 42

# Every rocket not yet killed; reaped at interpreter exit as a last resort
_live_rockets: set["Rocket"] = set()


def _kill_remaining() -> None:
    for rocket in list(_live_rockets):
        if rocket.returncode is None:
            try:
                rocket.process.kill()
            except ProcessLookupError:
                pass
    _live_rockets.clear()


atexit.register(_kill_remaining)


class RocketState(Enum):
    """Rocket lifecycle states."""

    SPAWNED = "spawned"
    EXITED_EARLY = "exited_early"
    KILLED = "killed"


class Rocket:
    """Handle to a spawned service process, shared by the context and the test body."""

    def __init__(
        self,
        process: asyncio.subprocess.Process,
        command: list[str],
        kill_timeout: float | None = None,
    ):
        self.process = process
        self.command = command
        self.kill_timeout = kill_timeout if kill_timeout is not None else settings.kill_timeout
        self.state = RocketState.SPAWNED
        self._lock = asyncio.Lock()
        _live_rockets.add(self)

    @classmethod
    async def spawn(cls, command: list[str], kill_timeout: float | None = None) -> "Rocket":
        """Start ``command`` with stdin closed and stdout/stderr inherited."""
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdin=asyncio.subprocess.DEVNULL,
            )
        except OSError as exc:
            raise LaunchError(
                f"Could not start {command[0]!r}: {exc}",
                details={"command": command},
            ) from exc
        logger.debug(f"Spawned pid {process.pid}: {' '.join(command)}")
        return cls(process, command, kill_timeout)

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def returncode(self) -> int | None:
        return self.process.returncode

    @property
    def exited_early(self) -> bool:
        return self.state == RocketState.EXITED_EARLY

    @property
    def killed(self) -> bool:
        return self.state == RocketState.KILLED

    def poll(self) -> int | None:
        """Non-blocking liveness check; marks the rocket if it already exited."""
        returncode = self.process.returncode
        if returncode is not None and self.state == RocketState.SPAWNED:
            self.state = RocketState.EXITED_EARLY
        return returncode

    async def kill(self) -> None:
        """
        Kill the process and wait for it, bounded by ``kill_timeout``.

        Best effort: a timeout is logged as a warning and never raised, and
        killing an already killed rocket does nothing.
        """
        async with self._lock:
            if self.state == RocketState.KILLED:
                return
            self.state = RocketState.KILLED
            _live_rockets.discard(self)

            if self.process.returncode is None:
                try:
                    self.process.kill()
                except ProcessLookupError:
                    pass

            try:
                await asyncio.wait_for(self.process.wait(), timeout=self.kill_timeout)
            except asyncio.TimeoutError:
                logger.warning("Rocket kill timeout has expired.")

    def __repr__(self) -> str:
        return f"Rocket(pid={self.pid}, state={self.state.value})"


class Launcher:
    """
    Builder for a service instance bound to a test context.

    Usage:
        rocket = await ctx.launcher().with_tickets(1000).with_balancer_threads(64).launch()
    """

    def __init__(
        self,
        ctx: "TestContext",
        java: str | None = None,
        grace_period: float | None = None,
    ):
        self._ctx = ctx
        self._grace_period = (
            grace_period if grace_period is not None else settings.startup_grace_period
        )
        self._args: list[str] = [
            java or settings.java_executable,
            "-ea",
            "-jar",
            str(ctx.jar),
        ]
        if ctx.bonus:
            self._args.append("-bonus")

    @property
    def command(self) -> list[str]:
        return list(self._args)

    def with_tickets(self, available: int) -> "Launcher":
        self._args += ["-tickets", str(available)]
        return self

    def with_balancer_threads(self, threads: int) -> "Launcher":
        self._args += ["-balancer-threads", str(threads)]
        return self

    def with_timeout(self, timeout: int) -> "Launcher":
        """Reservation timeout of the service, in seconds."""
        self._args += ["-timeout", str(timeout)]
        return self

    def with_slug(self) -> "Launcher":
        """Run the slow single-server reference implementation instead."""
        self._args.append("-slug")
        return self

    async def launch(self) -> Rocket:
        rocket = await Rocket.spawn(self.command)
        # Registered right away so teardown reaps it even if we are cancelled below
        self._ctx.register_rocket(rocket)

        # Give the system some time to start.
        await asyncio.sleep(self._grace_period)

        returncode = rocket.poll()
        if returncode is not None:
            self._ctx.log.log_str(
                f"Java exited pre-maturely with status code {returncode}."
            )
            if returncode == NO_BONUS_EXIT_CODE:
                self._ctx.log.log_str("The jar does not provide a bonus implementation.")
            logger.warning(f"Rocket {Path(self._args[3]).name} exited with {returncode}")

        return rocket
