"""Tests for the /health and /status HTTP routes."""

import asyncio
import signal

import httpx
import pytest

from mcp_adapter.server import create_app


@pytest.fixture
def client_for():
    def build(supervisor):
        return httpx.AsyncClient(
            transport=httpx.ASGITransport(app=create_app(supervisor)),
            base_url="http://adapter",
        )

    return build


async def test_health_starting_during_grace_period(make_supervisor, client_for):
    sup = make_supervisor(grace_period=30)
    await sup.start()

    async with client_for(sup) as client:
        resp = await client.get("/health")

    assert resp.status_code == 503
    body = resp.json()
    assert body["status"] == "starting"
    assert body["uptimeSeconds"] >= 0


async def test_health_ok_once_ready(make_supervisor, client_for):
    sup = make_supervisor(grace_period=0.05)
    await sup.start()
    await asyncio.sleep(0.3)

    async with client_for(sup) as client:
        resp = await client.get("/health")

    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"
    assert resp.headers["content-type"] == "application/json"


async def test_health_starting_after_child_exit(make_supervisor, client_for):
    sup = make_supervisor(grace_period=0.01)
    await sup.start()
    await asyncio.sleep(0.1)
    await sup.terminate(signal.SIGTERM)

    async with client_for(sup) as client:
        resp = await client.get("/health")

    assert resp.status_code == 503
    assert resp.json()["status"] == "starting"


async def test_status_snapshot(make_supervisor, client_for):
    sup = make_supervisor("import sys; sys.exit(2)")
    await sup.start()

    async with client_for(sup) as client:
        running = (await client.get("/status")).json()
        await sup.supervise()
        exited = await client.get("/status")

    assert running["pid"] == sup.pid
    assert exited.status_code == 200
    assert exited.json() == {
        "mode": "web",
        "mcpVersion": "1.2.3",
        "pid": sup.pid,
        "exitCode": 2,
        "exitSignal": None,
        "startedAt": running["startedAt"],
    }


@pytest.mark.parametrize("path", ["/", "/mcp", "/healthz", "/status/extra"])
async def test_unknown_paths_are_404(make_supervisor, client_for, path):
    sup = make_supervisor()
    await sup.start()

    async with client_for(sup) as client:
        resp = await client.get(path)

    assert resp.status_code == 404
    assert resp.text == "Not Found"


@pytest.mark.parametrize("method", ["POST", "PUT", "DELETE"])
async def test_routes_answer_any_method(make_supervisor, client_for, method):
    sup = make_supervisor(grace_period=30)
    await sup.start()

    async with client_for(sup) as client:
        health = await client.request(method, "/health")
        status = await client.request(method, "/status")

    assert health.status_code == 503
    assert health.json()["status"] == "starting"
    assert status.status_code == 200
    assert status.json()["pid"] == sup.pid
