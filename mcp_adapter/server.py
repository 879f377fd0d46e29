"""HTTP health/status surface for web mode.

This does NOT proxy MCP; the wrapped server still speaks stdio.  The
routes only exist for platforms that require a listening port.
"""

from __future__ import annotations

import uvicorn
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from mcp_adapter.config import LaunchConfig
from mcp_adapter.supervisor import Supervisor

# Routing is by path only; HEAD comes with GET
ANY_METHOD = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def create_app(supervisor: Supervisor) -> Starlette:
    """Build the app serving /health and /status for ``supervisor``.

    Both routes answer any method.  Any other path falls through to Starlette's plain ``Not Found`` 404.
    """

    async def health(request: Request) -> JSONResponse:
        report = supervisor.health()
        return JSONResponse(report.to_dict(), status_code=report.http_status)

    async def status(request: Request) -> JSONResponse:
        return JSONResponse(supervisor.status())

    return Starlette(
        routes=[
            Route("/health", health, methods=ANY_METHOD),
            Route("/status", status, methods=ANY_METHOD),
        ],
    )


def create_listener(app: Starlette, config: LaunchConfig) -> uvicorn.Server:
    # log_config=None routes uvicorn's records through our root logger
    uvi_config = uvicorn.Config(
        app,
        host=config.host,
        port=config.port,
        log_level=config.log_level.lower(),
        log_config=None,
        access_log=False,
        lifespan="off",
    )
    return uvicorn.Server(uvi_config)
