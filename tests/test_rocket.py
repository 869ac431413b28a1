"""
Tests for rocket lifecycle: spawning, liveness check and bounded kill.

The real-process tests use the running Python interpreter as the child.
"""

from __future__ import annotations

import asyncio
import logging
import sys
import time
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from rocket_tester.context import TestContext
from rocket_tester.core.exceptions import LaunchError
from rocket_tester.rocket import (
    NO_BONUS_EXIT_CODE,
    Rocket,
    RocketState,
    _kill_remaining,
    _live_rockets,
)

SLEEPER = [sys.executable, "-c", "import time; time.sleep(30)"]
QUICK = [sys.executable, "-c", "pass"]


class TestRocketKill:
    """kill() is bounded, idempotent and never raises."""

    @pytest.mark.asyncio
    @pytest.mark.slow
    async def test_kill_running_process(self):
        rocket = await Rocket.spawn(SLEEPER, kill_timeout=5.0)
        assert rocket.returncode is None
        assert rocket in _live_rockets

        await rocket.kill()

        assert rocket.killed
        assert rocket.returncode is not None
        assert rocket not in _live_rockets

    @pytest.mark.asyncio
    @pytest.mark.slow
    async def test_kill_exited_process_is_quick(self):
        rocket = await Rocket.spawn(QUICK, kill_timeout=1.0)
        await rocket.process.wait()

        start = time.monotonic()
        await rocket.kill()

        assert time.monotonic() - start < 1.0
        assert rocket.killed
        assert rocket.returncode == 0

    @pytest.mark.asyncio
    @pytest.mark.slow
    async def test_concurrent_kills_kill_once(self):
        rocket = await Rocket.spawn(SLEEPER, kill_timeout=5.0)

        with patch.object(rocket.process, "kill", wraps=rocket.process.kill) as kill:
            await asyncio.gather(rocket.kill(), rocket.kill(), rocket.kill())

        assert kill.call_count == 1
        assert rocket.killed

    @pytest.mark.asyncio
    async def test_second_kill_is_noop(self, fake_rocket):
        await fake_rocket.kill()
        await fake_rocket.kill()

        fake_rocket.process.kill.assert_called_once()
        fake_rocket.process.wait.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_kill_skips_signal_for_exited_process(self, make_process):
        rocket = Rocket(make_process(returncode=1), ["java"], kill_timeout=0.5)

        await rocket.kill()

        rocket.process.kill.assert_not_called()
        assert rocket.killed

    @pytest.mark.asyncio
    async def test_kill_tolerates_vanished_process(self, make_process):
        process = make_process()
        process.kill.side_effect = ProcessLookupError()
        rocket = Rocket(process, ["java"], kill_timeout=0.5)

        await rocket.kill()

        assert rocket.killed

    @pytest.mark.asyncio
    async def test_kill_timeout_is_only_a_warning(self, make_process, caplog):
        async def hang():
            await asyncio.Event().wait()

        process = make_process()
        process.wait = hang
        rocket = Rocket(process, ["java"], kill_timeout=0.05)

        with caplog.at_level(logging.WARNING, logger="rocket_tester.rocket"):
            start = time.monotonic()
            await rocket.kill()

        assert time.monotonic() - start < 1.0
        assert rocket.killed
        assert "Rocket kill timeout has expired." in caplog.text


class TestKillRemaining:
    """The interpreter-exit reaper kills whatever is still running."""

    @pytest.fixture
    def live_rockets(self):
        saved = set(_live_rockets)
        _live_rockets.clear()
        yield _live_rockets
        _live_rockets.clear()
        _live_rockets.update(saved)

    def test_kills_running_and_clears(self, live_rockets, make_process):
        running = Rocket(make_process(), ["java"])
        exited = Rocket(make_process(returncode=1), ["java"])

        _kill_remaining()

        running.process.kill.assert_called_once()
        exited.process.kill.assert_not_called()
        assert not live_rockets

    def test_tolerates_vanished_process(self, live_rockets, make_process):
        vanished = make_process()
        vanished.kill.side_effect = ProcessLookupError()
        Rocket(vanished, ["java"])
        running = Rocket(make_process(pid=4343), ["java"])

        _kill_remaining()

        vanished.kill.assert_called_once()
        running.process.kill.assert_called_once()
        assert not live_rockets

    @pytest.mark.asyncio
    async def test_killed_rockets_are_not_reaped_again(self, live_rockets, fake_rocket):
        live_rockets.add(fake_rocket)
        await fake_rocket.kill()

        _kill_remaining()

        fake_rocket.process.kill.assert_called_once()


class TestRocketSpawn:
    """Spawning and the startup liveness check."""

    @pytest.mark.asyncio
    async def test_missing_executable_raises_launch_error(self, tmp_path):
        with pytest.raises(LaunchError) as exc_info:
            await Rocket.spawn([str(tmp_path / "no-such-java"), "-jar", "x.jar"])

        assert exc_info.value.details["command"][0].endswith("no-such-java")

    def test_poll_marks_early_exit(self, make_process):
        rocket = Rocket(make_process(returncode=3), ["java"])

        assert rocket.poll() == 3
        assert rocket.state == RocketState.EXITED_EARLY
        assert rocket.exited_early

    def test_poll_running(self, fake_rocket):
        assert fake_rocket.poll() is None
        assert fake_rocket.state == RocketState.SPAWNED


class TestLauncher:
    """launch() spawns, waits out the grace period and registers the rocket."""

    @pytest.mark.asyncio
    @pytest.mark.slow
    async def test_early_exit_is_logged_not_raised(self, ctx, log_stream):
        # The interpreter rejects "-ea" and exits right away
        launcher = ctx.launcher(java=sys.executable, grace_period=1.0)

        rocket = await launcher.launch()

        assert rocket.exited_early
        assert ctx.drain_rockets() == [rocket]
        assert f"Java exited pre-maturely with status code {rocket.returncode}." in log_stream.getvalue()
        await rocket.kill()

    @pytest.mark.asyncio
    async def test_launch_registers_live_rocket(self, ctx, fake_rocket):
        with patch.object(Rocket, "spawn", new=AsyncMock(return_value=fake_rocket)) as spawn:
            rocket = await ctx.launcher(java="java", grace_period=0).with_tickets(5).launch()

        spawn.assert_awaited_once_with(["java", "-ea", "-jar", "/opt/rocket.jar", "-tickets", "5"])
        assert rocket is fake_rocket
        assert not rocket.exited_early
        assert ctx.drain_rockets() == [fake_rocket]
        assert len(ctx.log) == 0

    @pytest.mark.asyncio
    async def test_missing_bonus_is_reported(self, offline_api, run_log, log_stream, make_process):
        ctx = TestContext(jar=Path("rocket.jar"), api=offline_api, log=run_log, bonus=True)
        rocket = Rocket(make_process(returncode=NO_BONUS_EXIT_CODE), ["java"])

        with patch.object(Rocket, "spawn", new=AsyncMock(return_value=rocket)):
            await ctx.launcher(grace_period=0).launch()

        output = log_stream.getvalue()
        assert "status code 42" in output
        assert "does not provide a bonus implementation" in output
