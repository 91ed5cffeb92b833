import threading

from stacytimelib.timers import Debouncer, Scheduler, Throttle


def test_debouncer_fires_once_with_last_args(timers):
    calls = []
    debounce = Debouncer(0.1, calls.append, timers)

    debounce.trigger(1)
    timers.advance(0.05)
    debounce.trigger(2)
    assert debounce.pending

    timers.advance(0.1)
    assert calls == [2]
    assert not debounce.pending


def test_debouncer_cancel(timers):
    calls = []
    debounce = Debouncer(0.1, calls.append, timers)

    debounce.trigger(1)
    debounce.cancel()
    timers.advance(1.0)

    assert calls == []


def test_throttle_leading_and_trailing(clock, timers):
    calls = []
    throttle = Throttle(0.1, lambda: calls.append(clock.now), timers, clock=clock)

    assert throttle.request()
    assert not throttle.request()
    assert not throttle.request()
    assert len(timers.active()) == 1

    timers.advance(0.25)
    assert calls == [0.0, 0.1]

    assert throttle.request()
    assert calls == [0.0, 0.1, 0.25]


def test_throttle_cancel(clock, timers):
    calls = []
    throttle = Throttle(0.1, lambda: calls.append(1), timers, clock=clock)

    throttle.request()
    throttle.request()
    throttle.cancel()
    timers.advance(1.0)

    assert calls == [1]


def test_scheduler_runs_due_timers_only_on_poll(clock):
    scheduler = Scheduler(clock)
    calls = []
    scheduler(0.2, lambda: calls.append("late"))
    scheduler(0.1, lambda: calls.append("early"))

    clock.now = 0.15
    assert calls == []
    assert scheduler.poll() == 1
    assert calls == ["early"]
    assert scheduler.next_due() == 0.2

    clock.now = 1.0
    scheduler.poll()
    assert calls == ["early", "late"]
    assert scheduler.next_due() is None


def test_scheduler_skips_timers_cancelled_during_poll(clock):
    scheduler = Scheduler(clock)
    calls = []
    second = None

    def first():
        calls.append("first")
        second.cancel()

    scheduler(0.1, first)
    second = scheduler(0.1, lambda: calls.append("second"))
    clock.now = 0.5

    assert scheduler.poll() == 1
    assert calls == ["first"]


def test_scheduler_callbacks_run_on_polling_thread(clock):
    scheduler = Scheduler(clock)
    ran_on = []
    worker = threading.Thread(
        target=lambda: scheduler(0.0, lambda: ran_on.append(threading.current_thread())))
    worker.start()
    worker.join()

    scheduler.poll()
    assert ran_on == [threading.current_thread()]
