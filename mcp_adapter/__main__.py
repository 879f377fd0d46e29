"""Run the MCP adapter.

Usage:
    python -m mcp_adapter

RUN_MODE=stdio (the default) hands our stdin/stdout/stderr straight to the
wrapped MCP server.  RUN_MODE=web runs it in the background and serves
/health and /status on PORT for platforms that need a listening port.

The adapter exits with the MCP server's exit code (1 if it was killed by a
signal), with 1 on a configuration or spawn error, and with 0 after a
SIGTERM-initiated shutdown (SIGINT too in web mode; in stdio mode Ctrl-C
is left to the MCP server, which shares our process group).
"""

import asyncio
import logging
import signal
import sys

from mcp_adapter.config import ConfigError, LaunchConfig, RunMode
from mcp_adapter.server import create_app, create_listener
from mcp_adapter.supervisor import SpawnError, Supervisor

log = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [adapter] %(levelname)s %(message)s"


async def _run(config: LaunchConfig) -> int:
    supervisor = Supervisor(config)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, supervisor.request_shutdown, sig)

    await supervisor.start()

    listener = None
    if config.mode is RunMode.WEB:
        log.info("Web mode listening on %s:%d", config.host, config.port)
        listener = create_listener(create_app(supervisor), config)

    return await supervisor.supervise(listener)


def main() -> None:
    # stderr only: in stdio mode stdout belongs to the MCP protocol
    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT, stream=sys.stderr)

    try:
        config = LaunchConfig.from_env()
    except ConfigError as exc:
        log.error("%s", exc)
        sys.exit(1)

    logging.getLogger().setLevel(config.log_level)

    try:
        code = asyncio.run(_run(config))
    except SpawnError as exc:
        log.error("%s", exc)
        sys.exit(1)

    sys.exit(code)


if __name__ == "__main__":
    main()
