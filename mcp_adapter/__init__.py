"""Process supervisor shim for a stdio MCP server.

Launches the wrapped server either with stdio passed straight through, or
in the background behind a tiny /health + /status HTTP surface:
    python -m mcp_adapter
"""

from mcp_adapter.config import ConfigError, LaunchConfig, RunMode
from mcp_adapter.supervisor import SpawnError, Supervisor

__all__ = ["ConfigError", "LaunchConfig", "RunMode", "SpawnError", "Supervisor"]
