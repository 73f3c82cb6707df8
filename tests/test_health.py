"""
tests/test_health.py -- Tests for GET /api/health and the session purge task.

app.state.db is a MagicMock in tests, so the database component is driven
by setting ping's return value.
"""

from __future__ import annotations

import asyncio
import logging
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from pymongo.errors import AutoReconnect

import api.main
from api.main import VERSION, _purge_loop


class TestHealth:
    def test_healthy_when_database_answers(self, web_client: TestClient) -> None:
        resp = web_client.get("/api/health")

        assert resp.status_code == 200
        assert resp.json() == {
            "status": "healthy",
            "version": VERSION,
            "components": {"app": "ok", "database": "ok"},
        }

    def test_degraded_when_database_unreachable(self, web_client: TestClient) -> None:
        web_client.app.state.db.ping.return_value = False

        body = web_client.get("/api/health").json()

        assert body["status"] == "degraded"
        assert body["components"]["database"] == "error"

    def test_ping_runs_off_the_event_loop(self, web_client: TestClient) -> None:
        """MongoDatabase.ping() blocks until server selection times out."""
        seen: dict[str, bool] = {}

        def ping() -> bool:
            try:
                asyncio.get_running_loop()
            except RuntimeError:
                seen["on_loop"] = False
            else:
                seen["on_loop"] = True
            return False

        web_client.app.state.db.ping.side_effect = ping

        body = web_client.get("/api/health").json()

        assert body["status"] == "degraded"
        assert seen == {"on_loop": False}

    def test_health_needs_no_session(self, web_client: TestClient) -> None:
        web_client.cookies.clear()
        assert web_client.get("/api/health").status_code == 200


class TestPurgeLoop:
    def test_database_error_does_not_stop_purging(
        self, monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
    ) -> None:
        monkeypatch.setattr(api.main, "_PURGE_INTERVAL_SECONDS", 0)
        calls: list[int] = []

        def delete_expired_sessions() -> int:
            calls.append(1)
            if len(calls) == 1:
                raise AutoReconnect("primary stepped down")
            return 3

        store = SimpleNamespace(delete_expired_sessions=delete_expired_sessions)
        app = SimpleNamespace(state=SimpleNamespace(auth=SimpleNamespace(store=store)))

        async def run() -> None:
            task = asyncio.create_task(_purge_loop(app))
            # A third call means the second one returned and was logged.
            while len(calls) < 3:
                await asyncio.sleep(0.01)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        with caplog.at_level(logging.INFO, logger="betterdemo.api"):
            asyncio.run(asyncio.wait_for(run(), timeout=5))

        assert len(calls) >= 3
        assert "Expired session purge failed" in caplog.text
        assert "Purged 3 expired sessions" in caplog.text
