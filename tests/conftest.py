import numpy as np
import pytest

from stacytimelib.models import SampleBuffer


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


class FakeTimer:
    def __init__(self, due, callback):
        self.due = due
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self):
        self.cancelled = True


class FakeTimers:
    """Timer factory driven by a FakeClock; timers fire from ``advance()``."""

    def __init__(self, clock):
        self.clock = clock
        self.created = []

    def __call__(self, delay, callback):
        timer = FakeTimer(self.clock.now + delay, callback)
        self.created.append(timer)
        return timer

    def active(self):
        return [t for t in self.created if not t.cancelled and not t.fired]

    def advance(self, seconds):
        end = self.clock.now + seconds
        while True:
            due = [t for t in self.active() if t.due <= end]
            if not due:
                break
            timer = min(due, key=lambda t: t.due)
            self.clock.now = max(self.clock.now, timer.due)
            timer.fired = True
            timer.callback()
        self.clock.now = end


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def timers(clock):
    return FakeTimers(clock)


def make_buffer(samples, samplerate=44100, duration=None):
    return SampleBuffer.from_array(np.asarray(samples, dtype=np.float64),
                                   samplerate, duration)


@pytest.fixture
def sine_buffer():
    sr = 8000
    t = np.arange(sr * 2) / sr
    return make_buffer(0.5 * np.sin(2 * np.pi * 220 * t), sr)
