"""
HTTP surface tests — lifespan wiring, status routes and startup failures.
"""

import asyncio

import pytest
from fastapi.testclient import TestClient

from services.oracle_server import main
from services.oracle_server.blockchain.demo_client import DemoFlightSuretyClient
from services.oracle_server.errors import RemoteUnavailableError, StartupError

from tests.conftest import FakeFlightSurety


@pytest.fixture
def demo_app(monkeypatch):
    monkeypatch.setattr(main, "build_client", lambda cfg: DemoFlightSuretyClient(seed=11))
    monkeypatch.setattr(main.settings, "ORACLE_POLL_INTERVAL_S", 0.01)
    monkeypatch.setattr(main.settings, "DEMO_REQUEST_INTERVAL_S", 0.0)
    with TestClient(main.app) as client:
        yield client


class TestStatusRoutes:

    def test_api_root(self, demo_app):
        r = demo_app.get("/api")
        assert r.status_code == 200
        assert r.json() == {"message": "An API for use with your Dapp!"}

    def test_health_reports_registration(self, demo_app):
        data = demo_app.get("/health").json()
        assert data["status"] == "healthy"
        assert data["demo_mode"] is True
        assert data["oracles_registered"] == main.settings.ORACLE_COUNT
        assert data["registration"]["failed"] == 0

    def test_index_snapshot(self, demo_app):
        snap = demo_app.get("/api/v1/oracles/indexes").json()
        assert snap
        assert all(0 <= int(index) <= 9 for index in snap)
        total = sum(len(addrs) for addrs in snap.values())
        assert total == 3 * main.settings.ORACLE_COUNT

    def test_demo_request_emits_event(self, demo_app):
        r = demo_app.post("/api/v1/oracles/demo-request", json={"flight": "ND1309"})
        assert r.status_code == 200
        body = r.json()
        assert body["flight"] == "ND1309"
        assert 0 <= body["index"] <= 9

    def test_stats_route(self, demo_app):
        stats = demo_app.get("/api/v1/oracles/stats").json()
        assert {"events", "unmatched", "submitted", "rejected", "status_codes"} <= set(stats)


class TestStartupFailures:
    """Fatal startup conditions surface instead of serving with no oracles."""

    def test_unreachable_node(self, monkeypatch):
        class Unreachable(FakeFlightSurety):
            async def connect(self):
                raise RemoteUnavailableError("cannot reach http://localhost:8545")

        monkeypatch.setattr(main, "build_client", lambda cfg: Unreachable())
        with pytest.raises(RemoteUnavailableError):
            with TestClient(main.app):
                pass

    def test_no_oracle_registered(self, monkeypatch):
        remote = FakeFlightSurety()
        remote.fail_register.update(remote.accounts)
        monkeypatch.setattr(main, "build_client", lambda cfg: remote)

        with pytest.raises(StartupError):
            with TestClient(main.app):
                pass
        assert remote.closed


class TestNonDemoMode:

    def test_demo_request_refused(self, monkeypatch):
        monkeypatch.setattr(main, "build_client", lambda cfg: FakeFlightSurety())
        monkeypatch.setattr(main.settings, "ORACLE_POLL_INTERVAL_S", 0.01)
        with TestClient(main.app) as client:
            r = client.post("/api/v1/oracles/demo-request", json={})
        assert r.status_code == 409


class TestDemoRequestLoop:

    @pytest.mark.asyncio
    async def test_failed_request_does_not_stop_loop(self):
        class FlakyDemo(DemoFlightSuretyClient):
            failures = 2

            async def fetch_flight_status(self, *args, **kwargs):
                if self.failures:
                    self.failures -= 1
                    raise RuntimeError("node hiccup")
                return await super().fetch_flight_status(*args, **kwargs)

        demo = FlakyDemo(seed=3)
        task = asyncio.create_task(main._demo_request_loop(demo, 0.01))
        await asyncio.sleep(0.2)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert demo.failures == 0
        head = await demo.get_block_number()
        assert await demo.get_oracle_requests(0, head)
