"""Shared fixtures: supervisors running short-lived Python children."""

import io
import signal
import sys

import pytest

from mcp_adapter.config import LaunchConfig, RunMode
from mcp_adapter.supervisor import Supervisor

SLEEPER = "import time; time.sleep(30)"


@pytest.fixture
def diagnostic():
    return io.StringIO()


@pytest.fixture
async def make_supervisor(diagnostic):
    """Factory for supervisors whose child is ``python -c <script>``.

    Any child still running at teardown is killed and reaped.
    """
    created: list[Supervisor] = []

    def make(
        script: str = SLEEPER,
        *,
        mode: RunMode = RunMode.WEB,
        grace_period: float = 0.05,
    ) -> Supervisor:
        sup = Supervisor(
            LaunchConfig(mode=mode, mcp_version="1.2.3"),
            argv=[sys.executable, "-c", script],
            grace_period=grace_period,
            diagnostic=diagnostic,
        )
        created.append(sup)
        return sup

    yield make

    for sup in created:
        if sup.running:
            await sup.terminate(signal.SIGKILL)
