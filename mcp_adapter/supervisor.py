"""Supervisor: spawns the wrapped MCP server and owns its lifecycle."""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
import time
from collections.abc import Sequence
from typing import IO, TYPE_CHECKING, Any

from .config import LaunchConfig, RunMode
from .models import HealthReport, HealthStatus, ReadinessState

if TYPE_CHECKING:
    import uvicorn

log = logging.getLogger(__name__)

# Time the wrapped server is assumed to need before it can serve requests
GRACE_PERIOD_SECONDS = 1.5

# Per-line limit for redirected child output (asyncio's default is 64 KiB)
STREAM_LIMIT = 1024 * 1024


class SpawnError(RuntimeError):
    """The wrapped subprocess could not be started."""


def _signal_name(sig: int) -> str:
    try:
        return signal.Signals(sig).name
    except ValueError:
        return str(sig)


class Supervisor:
    """Runs exactly one child process and reports on it.

    In stdio mode the child inherits our standard streams.  In web mode its
    stdout/stderr are forwarded line by line to the diagnostic stream and
    ``health()`` / ``status()`` back the HTTP surface.

    The child exiting is always terminal: ``supervise()`` returns its exit
    code and the caller is expected to exit with it.
    """

    def __init__(
        self,
        config: LaunchConfig,
        *,
        argv: Sequence[str] | None = None,
        grace_period: float = GRACE_PERIOD_SECONDS,
        diagnostic: IO[str] | None = None,
    ) -> None:
        self.config = config
        self.readiness = ReadinessState()
        self._argv = list(argv) if argv is not None else config.argv()
        self._grace_period = grace_period
        self._diagnostic = diagnostic
        self._started_monotonic: float | None = None
        self._process: asyncio.subprocess.Process | None = None
        self._reader_tasks: list[asyncio.Task[None]] = []
        self._exit_task: asyncio.Task[int] | None = None
        self._grace_timer: asyncio.TimerHandle | None = None
        self._shutdown = asyncio.Event()
        self._shutdown_signal: int = signal.SIGTERM

    # ------------------------------------------------------------------
    # Child process state
    # ------------------------------------------------------------------

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process else None

    @property
    def running(self) -> bool:
        return self._process is not None and self._process.returncode is None

    @property
    def exit_code(self) -> int | None:
        """Exit code of the child; None while running or if it was killed."""
        if self._process is None or self._process.returncode is None:
            return None
        rc = self._process.returncode
        return rc if rc >= 0 else None

    @property
    def exit_signal(self) -> str | None:
        if self._process is None or self._process.returncode is None:
            return None
        rc = self._process.returncode
        return _signal_name(-rc) if rc < 0 else None

    @property
    def uptime_seconds(self) -> float:
        if self._started_monotonic is None:
            return 0.0
        return round(time.monotonic() - self._started_monotonic, 3)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Spawn the child and arm the grace-period timer."""
        if self._process is not None:
            raise RuntimeError("Supervisor already owns a child process")

        web = self.config.mode is RunMode.WEB
        log.info(
            "Launching MCP server: %s (mode=%s)",
            " ".join(self._argv), self.config.mode.value,
        )

        # Environment is inherited; stdio mode hands over our streams as-is
        try:
            process = await asyncio.create_subprocess_exec(
                *self._argv,
                stdin=asyncio.subprocess.DEVNULL if web else None,
                stdout=asyncio.subprocess.PIPE if web else None,
                stderr=asyncio.subprocess.PIPE if web else None,
                limit=STREAM_LIMIT,
            )
        except OSError as exc:
            raise SpawnError(f"Failed to start {self._argv[0]}: {exc}") from exc

        self._process = process
        self.readiness = ReadinessState()
        self._started_monotonic = time.monotonic()
        log.info("MCP process started (pid=%s)", process.pid)

        if web:
            self._reader_tasks = [
                asyncio.create_task(
                    self._forward_stream(process.stdout, "mcp-out"),  # type: ignore[arg-type]
                    name="mcp-stdout",
                ),
                asyncio.create_task(
                    self._forward_stream(process.stderr, "mcp-err"),  # type: ignore[arg-type]
                    name="mcp-stderr",
                ),
            ]

        loop = asyncio.get_running_loop()
        self._grace_timer = loop.call_later(self._grace_period, self._mark_healthy)
        self._exit_task = asyncio.create_task(self._wait_for_exit(), name="mcp-waiter")

    def health(self) -> HealthReport:
        """Readiness as seen by /health.

        Both signals are read at query time: the timer flag and whether the
        child is still running.
        """
        ok = self.readiness.healthy and self.running
        return HealthReport(
            status=HealthStatus.OK if ok else HealthStatus.STARTING,
            uptime_seconds=self.uptime_seconds,
        )

    def status(self) -> dict[str, Any]:
        return {
            "mode": self.config.mode.value,
            "mcpVersion": self.config.mcp_version,
            "pid": self.pid,
            "exitCode": self.exit_code,
            "exitSignal": self.exit_signal,
            "startedAt": int(self.readiness.started_at * 1000),
        }

    def request_shutdown(self, sig: int = signal.SIGTERM) -> None:
        """Signal-handler entry point; ``supervise()`` runs the sequence.

        In stdio mode SIGINT is left alone: Ctrl-C reaches the whole
        foreground process group, so the child already has it, and its exit
        (and exit code) ends the adapter as usual.
        """
        if sig == signal.SIGINT and self.config.mode is RunMode.STDIO:
            log.debug("SIGINT left to the MCP process (shared process group)")
            return
        if self._shutdown.is_set():
            log.info("%s received while shutting down", _signal_name(sig))
            self._send_signal(sig)
            return
        self._shutdown_signal = sig
        self._shutdown.set()

    async def terminate(self, sig: int = signal.SIGTERM) -> int:
        """Send ``sig`` to the child and wait for it to exit.

        There is no escalation: a child that ignores the signal keeps this
        waiting.
        """
        if self._exit_task is None:
            raise RuntimeError("No child process has been started")
        self._send_signal(sig)
        return await self._exit_task

    async def supervise(self, listener: uvicorn.Server | None = None) -> int:
        """Run until the child exits or shutdown is requested.

        ``listener`` (web mode) is served in this event loop.  Returns the
        exit code for this process.
        """
        if self._exit_task is None:
            raise RuntimeError("start() must be called before supervise()")

        shutdown_wait = asyncio.create_task(self._shutdown.wait(), name="shutdown-wait")
        waiters: set[asyncio.Task[Any]] = {self._exit_task, shutdown_wait}

        serve_task: asyncio.Task[None] | None = None
        if listener is not None:
            serve_task = asyncio.create_task(
                self._serve_listener(listener), name="http-listener",
            )
            waiters.add(serve_task)

        done, _ = await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)

        if self._exit_task in done:
            shutdown_wait.cancel()
            code = self._exit_task.result()
            await self._close_listener(listener, serve_task)
            return code

        if shutdown_wait in done:
            sig = self._shutdown_signal
            log.info("%s received, shutting down", _signal_name(sig))
            self._send_signal(sig)
            await self._close_listener(listener, serve_task)
            await self._exit_task
            return 0

        # The listener returned without being asked to (e.g. bind failure)
        shutdown_wait.cancel()
        if serve_task is None:
            raise RuntimeError("supervise() woke up with nothing finished")
        exc = None if serve_task.cancelled() else serve_task.exception()
        log.error("HTTP listener stopped unexpectedly; terminating MCP process", exc_info=exc)
        await self.terminate(signal.SIGTERM)
        return 1

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _mark_healthy(self) -> None:
        self.readiness.healthy = True
        log.debug("Grace period elapsed after %.1fs", self._grace_period)

    def _send_signal(self, sig: int) -> None:
        process = self._process
        if process is None or process.returncode is not None:
            log.debug("MCP process not running; %s not forwarded", _signal_name(sig))
            return
        try:
            process.send_signal(sig)
        except ProcessLookupError:
            log.debug("MCP process already gone; %s not forwarded", _signal_name(sig))

    async def _forward_stream(self, stream: asyncio.StreamReader, tag: str) -> None:
        """Copy child output line by line to the diagnostic stream."""
        while True:
            try:
                line = await stream.readline()
            except ValueError:
                log.warning("[%s] line longer than %d bytes dropped", tag, STREAM_LIMIT)
                continue
            if not line:
                break
            text = line.decode("utf-8", errors="replace")
            if not text.endswith("\n"):
                text += "\n"
            out = self._diagnostic or sys.stderr
            out.write(f"[{tag}] {text}")
            out.flush()

    async def _wait_for_exit(self) -> int:
        """Wait for the child to exit; report it after its output is drained."""
        if self._process is None:
            raise RuntimeError("No child process has been started")
        await self._process.wait()
        if self._reader_tasks:
            await asyncio.gather(*self._reader_tasks)
        return self._on_child_exit()

    def _on_child_exit(self) -> int:
        if self._grace_timer is not None:
            self._grace_timer.cancel()
        code, sig = self.exit_code, self.exit_signal
        log.info("MCP process exited code=%s signal=%s", code, sig)
        return code if code is not None else 1

    @staticmethod
    async def _serve_listener(listener: uvicorn.Server) -> None:
        # _serve() rather than serve(): serve() installs uvicorn's own signal
        # handlers over ours.  uvicorn calls sys.exit() when startup fails
        # (e.g. the port is taken); keep that inside this task so supervise()
        # can clean up the child.
        try:
            await listener._serve()
        except SystemExit as exc:
            log.error("HTTP listener failed to start (exit status %s)", exc.code)

    @staticmethod
    async def _close_listener(
        listener: uvicorn.Server | None,
        serve_task: asyncio.Task[None] | None,
    ) -> None:
        if listener is None or serve_task is None:
            return
        listener.should_exit = True
        await serve_task
        log.info("HTTP listener closed")
