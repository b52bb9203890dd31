from __future__ import annotations

import asyncio
import threading
from typing import Generator

import pytest

from litfass.events import EventBus
from litfass.orchestrator import Orchestrator

from .fakes import FakeEnumerator, FakeLauncher, InstantScheduler, geometries


@pytest.fixture
def launcher() -> FakeLauncher:
    return FakeLauncher()


@pytest.fixture
def enumerator() -> FakeEnumerator:
    """Two side-by-side full HD displays."""
    return FakeEnumerator(geometries(2))


@pytest.fixture
def events() -> EventBus:
    return EventBus()


@pytest.fixture
def orchestrator(launcher: FakeLauncher, enumerator: FakeEnumerator, events: EventBus) -> Orchestrator:
    return Orchestrator(launcher, enumerator, events=events, scheduler_factory=InstantScheduler)


@pytest.fixture
def loop_thread() -> Generator[asyncio.AbstractEventLoop, None, None]:
    """An event loop running on a background thread, like the one serving the app."""
    loop = asyncio.new_event_loop()
    thread = threading.Thread(target=loop.run_forever, name="TestLoop", daemon=True)
    thread.start()
    yield loop
    loop.call_soon_threadsafe(loop.stop)
    thread.join(timeout=1.0)
    loop.close()
