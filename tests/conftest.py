"""Shared fixtures: a manually driven clock for spin timers, and clean process-wide defaults."""

import pytest

from touchspin import reset_defaults, set_scheduler
from touchspin.events import SpinEvent


class _FakeHandle:
    def __init__(self):
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class FakeTimers:
    """Timers driven by advance(ms). Nothing fires until the test says so."""

    def __init__(self):
        self.now = 0
        self._entries = []  # [due_ms, seq, fn, handle]
        self._seq = 0
        self.delays = []

    def call_later(self, delay, fn):
        handle = _FakeHandle()
        ms = round(delay * 1000)
        self.delays.append(ms)
        self._seq += 1
        self._entries.append([self.now + ms, self._seq, fn, handle])
        return handle

    @property
    def pending(self):
        return sum(1 for e in self._entries if not e[3].cancelled)

    def advance(self, ms):
        target = self.now + ms
        while True:
            due = [e for e in self._entries if not e[3].cancelled and e[0] <= target]
            if not due:
                break
            entry = min(due, key=lambda e: (e[0], e[1]))
            self._entries.remove(entry)
            self.now = entry[0]
            entry[2]()
        self._entries = [e for e in self._entries if not e[3].cancelled]
        self.now = target


class EventLog:
    """Records every event an engine emits as (name, value) pairs."""

    def __init__(self, core):
        self.records = []
        for event in SpinEvent:
            core.on(event, self.records.append)

    @property
    def names(self):
        return [r.name.value for r in self.records]

    @property
    def pairs(self):
        return [(r.name.value, r.value) for r in self.records]

    def of(self, name):
        return [r.value for r in self.records if r.name.value == name]

    def clear(self):
        self.records.clear()


@pytest.fixture
def timers():
    return FakeTimers()


@pytest.fixture(autouse=True)
def _clean_defaults():
    yield
    reset_defaults()
    set_scheduler(None)
