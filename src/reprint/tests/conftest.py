from typing import Callable, List, Optional

import pytest

from reprint.infra.config import ReprintConfig, SimulationConfig


class ManualClock:
    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now


class _Call:
    def __init__(self, due: float, fn: Callable[[], None]) -> None:
        self.due = due
        self.fn = fn
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Delayed calls that only fire when the test advances the clock."""

    def __init__(self, clock: ManualClock) -> None:
        self.clock = clock
        self.calls: List[_Call] = []

    def call_later(self, delay_s: float, fn: Callable[[], None]) -> _Call:
        call = _Call(self.clock.now + delay_s, fn)
        self.calls.append(call)
        return call

    @property
    def pending(self) -> List[_Call]:
        return [c for c in self.calls if not c.cancelled]

    def advance(self, seconds: float) -> None:
        self.clock.now += seconds
        for call in list(self.calls):
            if not call.cancelled and call.due <= self.clock.now:
                call.cancelled = True
                call.fn()


class FixedRandom:
    """Random source stub: uniform() always returns the same step."""

    def __init__(self, step: float = 2.0, choice_seq: Optional[str] = None) -> None:
        self.step = step
        self._choices = iter(choice_seq or "ABC123" * 10)

    def uniform(self, a: float, b: float) -> float:
        return self.step

    def choice(self, seq):
        return next(self._choices)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def scheduler(clock: ManualClock) -> ManualScheduler:
    return ManualScheduler(clock)


@pytest.fixture
def config() -> ReprintConfig:
    return ReprintConfig(simulation=SimulationConfig(autostart=False))
