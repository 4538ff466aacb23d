"""Tests for the spin scheduler and the booster."""

import threading

import pytest

from touchspin import set_scheduler
from touchspin.events import EventBus, SpinEvent
from touchspin.scheduler import SpinScheduler, SpinState, ThreadingTimers, boosted_step
from touchspin.settings import resolve


class TestBoostedStep:
    def test_doubles_every_boostat_ticks(self):
        s = resolve({}, {"step": 2, "boostat": 5})
        assert [boosted_step(s, n) for n in (0, 4, 5, 10, 15)] == [2, 2, 4, 8, 16]

    def test_capped_by_maxboostedstep(self):
        s = resolve({}, {"step": 2, "boostat": 5, "maxboostedstep": 10})
        assert boosted_step(s, 15) == 10

    def test_booster_off(self):
        s = resolve({}, {"step": 2, "boostat": 5, "booster": False})
        assert boosted_step(s, 15) == 2

    def test_never_below_base_step(self):
        s = resolve({}, {"step": 2, "maxboostedstep": 1})
        assert boosted_step(s, 0) == 2
        assert boosted_step(s, 50) == 2


class _Harness:
    """A scheduler with a recording step function and a swappable settings generation."""

    def __init__(self, timers, **options):
        self.settings = resolve({}, options)
        self.bus = EventBus(None)
        self.steps = []
        self.events = []
        for event in SpinEvent:
            self.bus.on(event, lambda r: self.events.append(r.name.value))
        self.on_step = None
        self.sched = SpinScheduler(
            self.bus, self._step, lambda: self.settings, lambda: 1.0, timers=timers
        )

    def _step(self, direction, spincount):
        self.steps.append((direction, spincount))
        if self.on_step is not None:
            self.on_step()


class TestSpinSession:
    def test_start_steps_immediately(self, timers):
        h = _Harness(timers)
        assert h.sched.start("up") is True
        assert h.events == ["startspin", "startupspin"]
        assert h.steps == [("up", 0)]
        assert h.sched.state is SpinState.ARMED
        assert timers.delays == [500]

    def test_first_tick_after_delay_then_interval(self, timers):
        h = _Harness(timers)
        h.sched.start("up")
        timers.advance(499)
        assert len(h.steps) == 1
        timers.advance(1)
        assert h.steps[-1] == ("up", 1)
        assert h.sched.state is SpinState.SPINNING
        timers.advance(250)
        assert h.steps[-2:] == [("up", 2), ("up", 3)]
        assert timers.delays[1:] == [100, 100, 100]

    def test_stop_cancels_pending_tick(self, timers):
        h = _Harness(timers)
        h.sched.start("down")
        timers.advance(600)
        assert h.sched.stop() is True
        assert h.events[-2:] == ["stopdownspin", "stopspin"]
        assert timers.pending == 0
        count = len(h.steps)
        timers.advance(5000)
        assert len(h.steps) == count
        assert h.sched.state is SpinState.IDLE

    def test_tap_steps_once(self, timers):
        h = _Harness(timers)
        h.sched.start("up")
        h.sched.stop()
        timers.advance(1000)
        assert h.steps == [("up", 0)]

    def test_stop_when_idle(self, timers):
        h = _Harness(timers)
        assert h.sched.stop() is False
        assert h.events == []

    def test_same_direction_is_ignored(self, timers):
        h = _Harness(timers)
        h.sched.start("up")
        assert h.sched.start("up") is False
        assert h.events == ["startspin", "startupspin"]
        assert len(h.steps) == 1

    def test_opposite_direction_replaces_session(self, timers):
        h = _Harness(timers)
        h.sched.start("up")
        h.sched.start("down")
        assert h.events == [
            "startspin", "startupspin",
            "stopupspin", "stopspin",
            "startspin", "startdownspin",
        ]
        assert h.sched.direction == "down"
        assert timers.pending == 1

    def test_invalid_direction(self, timers):
        h = _Harness(timers)
        with pytest.raises(ValueError):
            h.sched.start("sideways")

    def test_stop_inside_immediate_step_arms_nothing(self, timers):
        h = _Harness(timers)
        h.on_step = h.sched.stop
        h.sched.start("up")
        assert timers.pending == 0
        assert h.sched.session is None

    def test_stop_from_startspin_handler(self, timers):
        h = _Harness(timers)
        h.bus.on("startspin", lambda r: h.sched.stop())
        assert h.sched.start("up") is False
        assert h.events == ["startspin", "stopupspin", "stopspin"]
        assert h.steps == []
        assert timers.pending == 0

    def test_stop_from_direction_start_handler(self, timers):
        h = _Harness(timers)
        h.bus.on("startdownspin", lambda r: h.sched.stop())
        assert h.sched.start("down") is False
        assert h.events == ["startspin", "startdownspin", "stopdownspin", "stopspin"]
        assert h.steps == []
        assert h.sched.state is SpinState.IDLE

    def test_new_settings_generation_abandons_spin(self, timers):
        h = _Harness(timers)
        h.sched.start("up")
        h.settings = resolve({}, {"step": 5})
        timers.advance(500)
        assert h.steps == [("up", 0)]
        assert h.events[-2:] == ["stopupspin", "stopspin"]

    def test_stale_tick_never_steps(self):
        fired = []

        class LeakyTimers:
            def call_later(self, delay, fn):
                fired.append(fn)

                class _Handle:
                    def cancel(self):
                        pass  # too late: the callback still runs

                return _Handle()

        h = _Harness(LeakyTimers())
        h.sched.start("up")
        h.sched.stop()
        fired[0]()
        assert h.steps == [("up", 0)]


class TestThreadingTimers:
    def test_fires_on_timer_thread(self):
        done = threading.Event()
        ThreadingTimers().call_later(0.01, done.set)
        assert done.wait(2)

    def test_cancel(self):
        ran = []
        handle = ThreadingTimers().call_later(0.2, lambda: ran.append(1))
        handle.cancel()
        threading.Event().wait(0.3)
        assert ran == []

    def test_routes_through_scheduler(self):
        done = threading.Event()
        marshalled = []

        def marshal(fn):
            marshalled.append(fn)
            fn()

        set_scheduler(marshal)
        ThreadingTimers().call_later(0.01, done.set)
        assert done.wait(2)
        assert len(marshalled) == 1
