from __future__ import annotations

import pytest

from litfass.config import AppConfig
from litfass.orchestrator import RUNNING
from litfass.rotation import TopologyWatch
from litfass.scheduling import Scheduler
from litfass.web import create_app

from .fakes import FakeSession, make_display, make_settings


@pytest.fixture
def client(orchestrator, loop_thread):
    orchestrator.loop = loop_thread
    app = create_app(orchestrator)
    app.config["TESTING"] = True
    return app.test_client()


@pytest.fixture
def running(orchestrator):
    """Put the orchestrator into the running state with one fake display."""
    session = FakeSession()
    orchestrator.settings = make_settings()
    orchestrator.displays = [make_display(orchestrator.settings, session)]
    orchestrator.scheduler = Scheduler()
    orchestrator.state = RUNNING
    orchestrator.runs = 1
    return session


def test_health(client):
    resp = client.get("/admin/health")
    assert resp.status_code == 200
    assert resp.get_json() == {"ok": True}


def test_status_when_idle(client):
    resp = client.get("/admin/status")
    assert resp.status_code == 200
    assert resp.get_json() == {"state": "idle", "runs": 0, "displays": []}


def test_status_while_running(client, running):
    resp = client.get("/admin/status")
    assert resp.status_code == 200
    data = resp.get_json()
    assert data["state"] == "running"
    assert data["displays"][0]["on_air"] == "http://launch.local/"
    assert data["displays"][0]["launching"] is True
    assert data["scheduler"] == {"slots": 0, "pending": 0}


def test_restart_and_exit_need_a_running_rotation(client):
    assert client.post("/admin/restart").status_code == 409
    assert client.post("/admin/exit").status_code == 409


def test_restart_sets_the_watch_flag(client, orchestrator, running):
    orchestrator.watch = TopologyWatch(orchestrator.scheduler, lambda: 1, expected_count=1)
    resp = client.post("/admin/restart")
    assert resp.status_code == 202
    assert resp.get_json() == {"ok": True, "restart_requested": True}
    assert orchestrator.watch.restart_requested is True
    assert running.connected


def test_exit_closes_sessions(client, running):
    resp = client.post("/admin/exit")
    assert resp.status_code == 200
    assert resp.get_json() == {"ok": True}
    assert running.close_calls == 1
    assert not running.connected


def test_token_required_when_configured(orchestrator, loop_thread, monkeypatch, tmp_path):
    monkeypatch.setenv("LITFASS_ADMIN_TOKEN", "secret")
    orchestrator.loop = loop_thread
    app = create_app(orchestrator, AppConfig(config_dir=tmp_path))
    client = app.test_client()

    assert client.get("/admin/health").status_code == 200
    assert client.get("/admin/status").status_code == 401
    resp = client.get("/admin/status", headers={"X-Litfass-Token": "secret"})
    assert resp.status_code == 200
