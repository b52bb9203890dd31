from __future__ import annotations

import asyncio

import pytest

from litfass.errors import SchedulerInterrupt
from litfass.scheduling import Scheduler


def test_slot_key_rounds_up_to_full_second_plus_offset():
    scheduler = Scheduler(clock=lambda: 1000.2)
    assert scheduler.slot_key(1500) == 1002
    assert scheduler.slot_key(1500, -200) == 1001.8
    assert scheduler.slot_key(0, 250) == 1001.25


def test_requests_in_same_second_share_one_timer():
    async def scenario():
        scheduler = Scheduler(clock=lambda: 1000.95)
        ran = []

        async def first_task():
            ran.append("first")

        async def second_task():
            ran.append("second")

        first = scheduler.schedule_in(0, first_task)
        second = scheduler.schedule_in(20, second_task)
        assert first is second
        assert scheduler.slot_count == 1

        await asyncio.sleep(0)
        assert scheduler.pending_count == 1

        await first
        assert ran == ["first", "second"]
        assert scheduler.slot_count == 0
        assert scheduler.pending_count == 0

    asyncio.run(scenario())


def test_different_offsets_use_separate_slots():
    async def scenario():
        scheduler = Scheduler(clock=lambda: 1000.95)
        ran = []

        async def early():
            ran.append("early")

        async def late():
            ran.append("late")

        # 1000.8 already passed, so the shifted slot fires right away
        shifted = scheduler.schedule_in(0, early, offset_ms=-200)
        plain = scheduler.schedule_in(0, late)
        assert shifted is not plain
        assert scheduler.slot_count == 2

        await asyncio.gather(shifted, plain)
        assert ran == ["early", "late"]

    asyncio.run(scenario())


def test_slot_tasks_start_in_the_same_turn():
    async def scenario():
        scheduler = Scheduler(clock=lambda: 1000.99)
        journal = []

        def make_task(name):
            async def task():
                journal.append(f"start {name}")
                await asyncio.sleep(0.01)
                journal.append(f"end {name}")
            return task

        completion = scheduler.schedule_in(0, make_task("a"))
        scheduler.schedule_in(0, make_task("b"))
        await completion
        assert journal[:2] == ["start a", "start b"]

    asyncio.run(scenario())


def test_failing_task_does_not_break_its_slot():
    async def scenario():
        scheduler = Scheduler(clock=lambda: 1000.99)
        ran = []

        async def broken():
            raise RuntimeError("boom")

        async def healthy():
            ran.append("healthy")

        completion = scheduler.schedule_in(0, broken)
        scheduler.schedule_in(0, healthy)
        await completion
        assert ran == ["healthy"]

    asyncio.run(scenario())


def test_close_interrupts_pending_sleeps_and_slots():
    async def scenario():
        scheduler = Scheduler()
        ran = []

        async def task():
            ran.append("task")

        sleeper = scheduler.sleep(10_000)
        slot = scheduler.schedule_in(5_000, task)
        await asyncio.sleep(0)
        assert scheduler.pending_count == 2

        scheduler.close()
        with pytest.raises(SchedulerInterrupt):
            await sleeper
        with pytest.raises(SchedulerInterrupt):
            await slot

        assert ran == []
        assert scheduler.pending_count == 0
        assert scheduler.slot_count == 0

    asyncio.run(scenario())


def test_closed_scheduler_rejects_new_work():
    async def scenario():
        scheduler = Scheduler()
        scheduler.close()

        async def task():
            raise AssertionError("must not run")

        with pytest.raises(SchedulerInterrupt):
            await scheduler.sleep(0)
        with pytest.raises(SchedulerInterrupt):
            await scheduler.schedule_in(0, task)

    asyncio.run(scenario())


def test_sleep_zero_yields_once():
    async def scenario():
        scheduler = Scheduler()
        journal = []

        async def other():
            journal.append("other")

        pending = asyncio.ensure_future(other())
        await scheduler.sleep(0)
        journal.append("woke")
        await pending
        assert journal == ["other", "woke"]
        assert scheduler.pending_count == 0

    asyncio.run(scenario())


def test_cancelled_sleep_drops_its_timer():
    async def scenario():
        scheduler = Scheduler()
        sleeper = scheduler.sleep(10_000)
        assert scheduler.pending_count == 1
        sleeper.cancel()
        await asyncio.sleep(0)
        assert scheduler.pending_count == 0

    asyncio.run(scenario())
