"""
Tests for cancellable timers.
"""

import asyncio

from scheduler import LoopScheduler, ManualScheduler


def test_manual_scheduler_runs_due_actions_in_order():
    scheduler = ManualScheduler()
    fired = []
    scheduler.schedule(300, lambda: fired.append("late"))
    scheduler.schedule(0, lambda: fired.append("now"))
    scheduler.schedule(300, lambda: fired.append("late-2"))

    assert scheduler.advance(0) == 1
    assert fired == ["now"]
    assert scheduler.advance(299) == 0
    assert scheduler.advance(1) == 2
    assert fired == ["now", "late", "late-2"]
    assert scheduler.now_ms == 300


def test_cancel_prevents_action():
    scheduler = ManualScheduler()
    fired = []
    handle = scheduler.schedule(100, lambda: fired.append(1))
    scheduler.cancel(handle)
    assert scheduler.pending_count() == 0
    scheduler.advance(1000)
    assert fired == []
    assert handle.cancelled and not handle.fired


def test_cancel_after_firing_is_noop():
    scheduler = ManualScheduler()
    handle = scheduler.schedule(10, lambda: None)
    scheduler.advance(10)
    scheduler.cancel(handle)
    scheduler.cancel(handle)
    scheduler.cancel(None)
    assert handle.fired and not handle.cancelled


def test_run_pending_drains_queue():
    scheduler = ManualScheduler()
    fired = []
    scheduler.schedule(5000, lambda: fired.append(1))
    # An action may schedule another one
    scheduler.schedule(10, lambda: scheduler.schedule(10, lambda: fired.append(2)))
    assert scheduler.run_pending() == 3
    assert fired == [2, 1]
    assert scheduler.now_ms == 5000


def test_loop_scheduler_cancel_and_fire():
    fired = []

    async def scenario():
        scheduler = LoopScheduler()
        cancelled = scheduler.schedule(10, lambda: fired.append("cancelled"))
        kept = scheduler.schedule(0, lambda: fired.append("kept"))
        scheduler.cancel(cancelled)
        await asyncio.sleep(0.05)
        scheduler.cancel(kept)
        return kept

    kept = asyncio.run(scenario())
    assert fired == ["kept"]
    assert kept.fired and not kept.cancelled
