from __future__ import annotations

import asyncio
import logging
from collections import Counter

import pytest

from litfass.errors import (
    AlreadyRunningError,
    ConfigurationError,
    DisplayEnumerationError,
    LitfassError,
    RenderError,
)
from litfass.events import LitfassEvent
from litfass.orchestrator import IDLE, RUNNING

from .fakes import geometries, make_settings

LAUNCHED = LitfassEvent.Type.SESSIONS_LAUNCHED
SHOWN = LitfassEvent.Type.CONTENT_SHOWN


def _disconnect_all(orchestrator):
    for display in orchestrator.displays:
        display.session.disconnect()


def _run(coro):
    return asyncio.run(asyncio.wait_for(coro, timeout=10))


def test_launches_one_session_per_display(orchestrator, launcher, events):
    settings = make_settings(preparePages=1)
    seen = []

    def on_event(event):
        seen.append(event.type)
        if event.type == LAUNCHED:
            assert orchestrator.state == RUNNING
            _disconnect_all(orchestrator)

    events.subscribe(on_event)
    _run(orchestrator.start(settings))

    assert len(launcher.sessions) == 2
    assert [s.options.geometry for s in launcher.sessions] == geometries(2)
    for session in launcher.sessions:
        assert session.navigations()[0] == "http://launch.local/"
        assert len(session.surfaces) == 2
        assert session.surfaces[0].fronted == 1
    assert orchestrator.state == IDLE
    assert orchestrator.runs == 1
    assert seen[-1] == LitfassEvent.Type.STOPPED


def test_ignored_displays_get_no_session(orchestrator, launcher, events):
    settings = make_settings(
        displays=[
            {"pages": ["http://a.local/"], "ignore": True},
            {"pages": ["http://b.local/"]},
        ]
    )
    events.subscribe(lambda event: _disconnect_all(orchestrator) if event.type == LAUNCHED else None)
    _run(orchestrator.start(settings))

    assert len(launcher.sessions) == 1
    assert launcher.sessions[0].options.geometry == geometries(2)[1]


def test_start_while_running_is_rejected(orchestrator, events):
    settings = make_settings()

    async def scenario():
        launched = asyncio.Event()
        events.subscribe(lambda event: launched.set() if event.type == LAUNCHED else None)
        run = asyncio.ensure_future(orchestrator.start(settings))
        await launched.wait()

        with pytest.raises(AlreadyRunningError):
            await orchestrator.start(settings)

        await orchestrator.exit()
        await run
        assert orchestrator.state == IDLE

    _run(scenario())


def test_configuration_errors_leave_nothing_running(orchestrator, launcher):
    with pytest.raises(ConfigurationError):
        _run(orchestrator.start({"displays": []}))
    assert launcher.sessions == []
    assert orchestrator.state == IDLE


def test_launch_failure_closes_started_sessions(orchestrator, launcher):
    launcher.fail_after = 1
    with pytest.raises(RenderError):
        _run(orchestrator.start(make_settings()))
    assert len(launcher.sessions) == 1
    assert launcher.sessions[0].close_calls == 1
    assert orchestrator.state == IDLE


def test_two_displays_rotate_in_lockstep(orchestrator, launcher, events):
    settings = make_settings(preparePages=0)
    shown = Counter()
    captured = {}

    def on_event(event):
        if event.type == LAUNCHED:
            captured["scheduler"] = orchestrator.scheduler
            captured["displays"] = list(orchestrator.displays)
        elif event.type == SHOWN:
            shown[event.display_index] += 1
            if shown[event.display_index] == 3:
                display = next(d for d in orchestrator.displays if d.index == event.display_index)
                display.session.disconnect()

    events.subscribe(on_event)
    _run(orchestrator.start(settings))

    assert shown == {0: 3, 1: 3}
    for display in captured["displays"]:
        assert display.current_page_index == 0
        assert display.closed
    for session in launcher.sessions:
        assert session.navigations() == [
            "http://launch.local/",
            "http://a.local/",
            "http://b.local/",
            "http://c.local/",
        ]
    schedules = captured["scheduler"].schedules
    assert sorted(schedules) == [(5_000, 0)] * 4 + [(10_000, 0)] * 2


def test_display_count_change_restarts(orchestrator, launcher, enumerator, events):
    settings = make_settings(watchDisplays=True)
    seen = []

    def on_event(event):
        seen.append(event.type)
        if event.type != LAUNCHED:
            return
        if orchestrator.runs == 1:
            enumerator.geometries = geometries(1)
        else:
            _disconnect_all(orchestrator)

    events.subscribe(on_event)
    _run(orchestrator.start(settings))

    assert orchestrator.runs == 2
    assert len(launcher.sessions) == 3
    assert all(session.close_calls == 1 for session in launcher.sessions[:2])
    assert seen.count(LitfassEvent.Type.RESTARTING) == 1
    assert seen[-1] == LitfassEvent.Type.STOPPED
    assert orchestrator.state == IDLE


def test_restart_keeps_the_first_start_waiting(orchestrator, launcher, events):
    settings = make_settings()

    def on_event(event):
        if event.type != LAUNCHED:
            return
        if orchestrator.runs == 1:
            asyncio.ensure_future(orchestrator.restart())
        else:
            _disconnect_all(orchestrator)

    events.subscribe(on_event)
    _run(orchestrator.start(settings))

    assert orchestrator.runs == 2
    assert len(launcher.sessions) == 4


def test_closing_a_tab_closes_the_browser(orchestrator, launcher, events):
    settings = make_settings(preparePages=1)

    def on_event(event):
        if event.type != LAUNCHED:
            return
        first, second = orchestrator.displays
        first.session.surfaces[1].close()
        second.session.disconnect()

    events.subscribe(on_event)
    _run(orchestrator.start(settings))

    assert launcher.sessions[0].close_calls == 1
    assert not launcher.sessions[0].connected


def test_restart_before_start_fails(orchestrator):
    with pytest.raises(LitfassError):
        _run(orchestrator.restart())


def test_crashing_rotation_is_contained(orchestrator):
    class Broken:
        display = type("D", (), {"index": 7})()

        async def run(self):
            raise RuntimeError("boom")

    _run(orchestrator._rotate(Broken()))


def test_snapshot_while_running(orchestrator, events):
    settings = make_settings()
    snapshots = []

    async def scenario():
        launched = asyncio.Event()
        events.subscribe(lambda event: launched.set() if event.type == LAUNCHED else None)
        run = asyncio.ensure_future(orchestrator.start(settings))
        await launched.wait()
        snapshots.append(await orchestrator.snapshot())
        await orchestrator.exit()
        await run

    _run(scenario())
    snapshot = snapshots[0]
    assert snapshot["state"] == RUNNING
    assert snapshot["runs"] == 1
    assert [d["index"] for d in snapshot["displays"]] == [0, 1]
    assert snapshot["displays"][0]["geometry"]["width"] == 1920


def test_enumeration_failure_at_startup_launches_nothing(orchestrator, launcher, enumerator):
    enumerator.error = DisplayEnumerationError("no display server")
    with pytest.raises(DisplayEnumerationError):
        _run(orchestrator.start(make_settings()))
    assert launcher.sessions == []
    assert orchestrator.state == IDLE


def test_failed_background_close_is_logged(orchestrator, launcher, events, caplog):
    settings = make_settings(preparePages=1)

    def on_event(event):
        if event.type != LAUNCHED:
            return
        first, second = orchestrator.displays
        first.session.fail_close = True
        first.session.surfaces[1].close()
        second.session.disconnect()

    async def scenario():
        events.subscribe(on_event)
        run = asyncio.ensure_future(orchestrator.start(settings))
        while "Closing display 0 failed" not in caplog.text:
            await asyncio.sleep(0.01)
        assert orchestrator._background == set()
        launcher.sessions[0].disconnect()
        await run

    with caplog.at_level(logging.WARNING, logger="orchestrator"):
        _run(scenario())
    assert "browser refused to quit" in caplog.text
