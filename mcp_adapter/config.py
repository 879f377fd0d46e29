from __future__ import annotations

import enum
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from dotenv import find_dotenv, load_dotenv

DEFAULT_PORT = 8080
DEFAULT_HOST = "0.0.0.0"
DEFAULT_MCP_PACKAGE = "@shopify/dev-mcp"
DEFAULT_MCP_VERSION = "latest"

LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


class ConfigError(ValueError):
    """Raised when the environment describes an unusable launch."""


class RunMode(str, enum.Enum):
    STDIO = "stdio"  # child inherits our stdin/stdout/stderr
    WEB = "web"      # child output redirected, HTTP health surface served


@dataclass(frozen=True)
class LaunchConfig:
    mode: RunMode = RunMode.STDIO
    port: int = DEFAULT_PORT
    mcp_version: str = DEFAULT_MCP_VERSION
    mcp_package: str = DEFAULT_MCP_PACKAGE
    host: str = DEFAULT_HOST
    log_level: str = "INFO"

    def argv(self) -> list[str]:
        """Command line for the wrapped MCP server.

        npx -y @shopify/dev-mcp@latest
        """
        return ["npx", "-y", f"{self.mcp_package}@{self.mcp_version}"]

    @classmethod
    def from_env(
        cls,
        env_path: str | Path | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> LaunchConfig:
        """Resolve the launch configuration from environment variables.

        A ``.env`` file is loaded first; variables already set in the real
        environment take precedence over it.  Passing ``environ`` skips the
        process environment entirely (used by tests).

        Raises ConfigError for an unknown RUN_MODE, a non-integer PORT or an
        unknown LOG_LEVEL.
        """
        if environ is None:
            load_dotenv(env_path or find_dotenv(usecwd=True))
            environ = os.environ

        raw_mode = environ.get("RUN_MODE") or RunMode.STDIO.value
        try:
            mode = RunMode(raw_mode)
        except ValueError:
            raise ConfigError(f"Unknown RUN_MODE={raw_mode}") from None

        raw_port = environ.get("PORT") or str(DEFAULT_PORT)
        try:
            port = int(raw_port, 10)
        except ValueError:
            raise ConfigError(f"Invalid PORT={raw_port}") from None

        log_level = (environ.get("LOG_LEVEL") or "INFO").upper()
        if log_level not in LOG_LEVELS:
            raise ConfigError(f"Invalid LOG_LEVEL={log_level}")

        return cls(
            mode=mode,
            port=port,
            mcp_version=environ.get("DEV_MCP_VERSION") or DEFAULT_MCP_VERSION,
            mcp_package=environ.get("DEV_MCP_PACKAGE") or DEFAULT_MCP_PACKAGE,
            host=environ.get("HOST") or DEFAULT_HOST,
            log_level=log_level,
        )
