"""Shared fixtures: a controllable clock and a timer group driven by hand"""

import random
from datetime import datetime, timedelta

import pytest

from greenhouse.controllers.irrigation import IrrigationScheduler
from greenhouse.controllers.sensors import (
    SensorSimulator,
    default_humidity_config,
    default_temperature_config,
)
from greenhouse.services.alert_service import AlertManager
from greenhouse.services.environment import EnvironmentClassifier
from greenhouse.storage.local_db import LocalDatabase
from greenhouse.utils.events import (
    EventBus,
    IrrigationConfigChanged,
    WateringCompleted,
    WateringScheduled,
    WateringStarted,
    WateringStopped,
)

# A Wednesday, well away from the default 08:00 start time
START = datetime(2024, 5, 15, 12, 0, 0)


class FakeClock:
    """Callable clock returning a settable `now`"""

    def __init__(self, start: datetime = START):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)

    def set(self, moment: datetime):
        self.now = moment


class ManualHandle:
    def __init__(self, timers, due, callback, interval, name, seq):
        self._timers = timers
        self.due = due
        self.callback = callback
        self.interval = interval
        self.name = name
        self.seq = seq
        self.cancelled = False

    @property
    def active(self) -> bool:
        return not self.cancelled and self in self._timers._handles

    def cancel(self):
        self.cancelled = True
        if self in self._timers._handles:
            self._timers._handles.remove(self)


class ManualTimers:
    """Same surface as TimerGroup; time only moves when advance() is called.

    advance() also moves the FakeClock so timer callbacks see a
    consistent `now`.
    """

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.elapsed = 0.0
        self._handles = []
        self._seq = 0

    def _add(self, delay, callback, interval, name):
        self._seq += 1
        handle = ManualHandle(self, self.elapsed + delay, callback, interval, name, self._seq)
        self._handles.append(handle)
        return handle

    def every(self, interval, callback, name="periodic"):
        return self._add(interval, callback, interval, name)

    def call_later(self, delay, callback, name="one-shot"):
        return self._add(delay, callback, None, name)

    def cancel_all(self):
        for handle in list(self._handles):
            handle.cancel()

    def __len__(self):
        return len(self._handles)

    def named(self, name):
        return [h for h in self._handles if h.name == name]

    def advance(self, seconds: float):
        target = self.elapsed + seconds
        while True:
            due = [h for h in self._handles if h.due <= target + 1e-9]
            if not due:
                break
            handle = min(due, key=lambda h: (h.due, h.seq))
            if handle.due > self.elapsed:
                self.clock.advance(seconds=handle.due - self.elapsed)
                self.elapsed = handle.due
            if handle.interval is None:
                self._handles.remove(handle)
            else:
                handle.due += handle.interval
            handle.callback()
        if target > self.elapsed:
            self.clock.advance(seconds=target - self.elapsed)
            self.elapsed = target


class Recorder:
    """Collects every event published to it"""

    def __init__(self):
        self.events = []

    def __call__(self, event):
        self.events.append(event)

    def of(self, event_type):
        return [e for e in self.events if isinstance(e, event_type)]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def timers(clock):
    return ManualTimers(clock)


@pytest.fixture
def events():
    return EventBus()


@pytest.fixture
def recorder(events):
    rec = Recorder()
    for event_type in (WateringStarted, WateringCompleted, WateringStopped,
                       IrrigationConfigChanged, WateringScheduled):
        events.subscribe(event_type, rec)
    return rec


@pytest.fixture
def temperature():
    return default_temperature_config()


@pytest.fixture
def humidity():
    return default_humidity_config()


@pytest.fixture
def classifier(temperature, humidity):
    return EnvironmentClassifier(temperature, humidity)


@pytest.fixture
def simulator(classifier, clock):
    return SensorSimulator(classifier, clock=clock, rng=random.Random(42))


@pytest.fixture
def scheduler(timers, events, clock):
    return IrrigationScheduler(timers, events, clock=clock)


@pytest.fixture
def alerts(timers, events, temperature, humidity, clock, scheduler):
    return AlertManager(
        timers, events, temperature, humidity,
        clock=clock, automatic_check=scheduler.check_automatic,
    )


@pytest.fixture
def database(tmp_path):
    return LocalDatabase(str(tmp_path / "greenhouse.db"))
