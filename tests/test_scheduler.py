import pytest

from link_monitor.scheduler import ManualClock, Scheduler


# ========
# FIXTURES
# ========
@pytest.fixture
def clock():
    return ManualClock(start=0)


@pytest.fixture
def scheduler(clock):
    return Scheduler(clock)


# ===========================
# TEST GROUP: Periodic Tasks
# ===========================
def test_periodic_task_runs_on_cadence(scheduler, clock):
    """A 5 s task runs at 5 s and 10 s within a 12 s span"""
    runs = []
    scheduler.every(5, lambda: runs.append(clock.time()), name="tick")

    ran = scheduler.run_for(12)

    assert ran == 2
    assert runs == [5.0, 10.0]
    assert clock.time() == 12.0


def test_initial_delay(scheduler, clock):
    """The first run honors an explicit delay, then the period"""
    runs = []
    scheduler.every(15, lambda: runs.append(clock.time()), delay=5)

    scheduler.run_for(35)

    assert runs == [5.0, 20.0, 35.0]


def test_late_task_rearms_from_now(scheduler, clock):
    """A task whose next slot already passed re-arms from the current time"""
    task = scheduler.every(5, lambda: None)
    clock.advance(12)

    assert scheduler.run_pending() == 1
    assert task.due == 17.0


def test_tasks_run_in_due_order(scheduler):
    """Tasks due at the same instant run in registration order"""
    order = []
    scheduler.call_later(3, lambda: order.append("b"))
    scheduler.call_later(1, lambda: order.append("a"))
    scheduler.call_later(3, lambda: order.append("c"))

    scheduler.run_for(3)

    assert order == ["a", "b", "c"]


# =============================
# TEST GROUP: Lifecycle & Errors
# =============================
def test_one_shot_runs_once(scheduler):
    """call_later() fires exactly once"""
    runs = []
    scheduler.call_later(2, lambda: runs.append(1))

    scheduler.run_for(10)

    assert runs == [1]
    assert scheduler.pending() == []


def test_cancelled_task_never_runs(scheduler):
    """Cancelling removes a task from the schedule"""
    runs = []
    task = scheduler.every(1, lambda: runs.append(1))
    scheduler.run_for(2)
    task.cancel()
    scheduler.run_for(5)

    assert runs == [1, 1]
    assert scheduler.next_due() is None


def test_failing_task_does_not_stop_loop(scheduler, caplog):
    """An exception is logged and later tasks still run"""
    runs = []

    def boom():
        raise RuntimeError("kaboom")

    scheduler.every(1, boom, name="boom")
    scheduler.every(1, lambda: runs.append(1), name="ok")
    scheduler.run_for(3)

    assert runs == [1, 1, 1]
    assert "kaboom" in caplog.text


@pytest.mark.parametrize(
    "period",
    [
        # ❌ Zero period
        0,

        # ❌ Negative period
        -5,
    ],
)

def test_every_rejects_bad_period(scheduler, period):
    """Periodic tasks need a positive period"""
    with pytest.raises(ValueError):
        scheduler.every(period, lambda: None)


def test_manual_clock_never_goes_backwards(clock):
    """ManualClock refuses negative advances"""
    with pytest.raises(ValueError):
        clock.advance(-1)


def test_run_forever_stops(scheduler, clock):
    """run_forever() returns once a task calls stop()"""
    runs = []

    def tick():
        runs.append(clock.time())
        if len(runs) == 3:
            scheduler.stop()

    scheduler.every(1, tick)
    scheduler.run_forever()

    assert runs == [1.0, 2.0, 3.0]
