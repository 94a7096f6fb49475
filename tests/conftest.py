"""Shared fixtures and deterministic fakes for raceway tests."""

from __future__ import annotations

import heapq
import itertools
import logging
from collections import defaultdict
from typing import TYPE_CHECKING, Any

import pytest
import structlog
from raceway import Adapters, Diagnostics, Selector, _logging

if TYPE_CHECKING:
    from collections.abc import Callable, Generator

# Scheduling phases of ManualTimers, in run order for entries due at the same time
IMMEDIATE = 0
AFTER_IO = 1
TIMER = 2


class ManualHandle:
    """Cancellable entry of ManualTimers."""

    def __init__(self) -> None:
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualTimers:
    """Timer service driven by hand: nothing runs until advance() is called."""

    def __init__(self) -> None:
        self.now = 0.0
        self._queue: list[tuple[float, int, int, Callable[[], None], ManualHandle]] = []
        self._seq = itertools.count()

    def _schedule(self, due: float, phase: int, callback: Callable[[], None]) -> ManualHandle:
        handle = ManualHandle()
        heapq.heappush(self._queue, (due, phase, next(self._seq), callback, handle))
        return handle

    def call_later(self, delay: float, callback: Callable[[], None]) -> ManualHandle:
        return self._schedule(self.now + delay, TIMER, callback)

    def call_after_io(self, callback: Callable[[], None]) -> ManualHandle:
        return self._schedule(self.now, AFTER_IO, callback)

    def call_immediate(self, callback: Callable[[], None]) -> ManualHandle:
        return self._schedule(self.now, IMMEDIATE, callback)

    @property
    def pending(self) -> int:
        """Scheduled entries that are neither cancelled nor fired."""
        return sum(1 for *_, handle in self._queue if not handle.cancelled)

    def advance(self, seconds: float = 0.0) -> None:
        """Move the clock forward, running everything that becomes due in order."""
        target = self.now + seconds
        while self._queue and self._queue[0][0] <= target:
            due, _, _, callback, handle = heapq.heappop(self._queue)
            self.now = max(self.now, due)
            if handle.cancelled:
                continue
            handle.fired = True
            callback()
        self.now = target


class EventEmitter:
    """Minimal event source with identity-based unsubscription."""

    def __init__(self) -> None:
        self._listeners: dict[str, list[Callable[..., Any]]] = defaultdict(list)

    def on(self, kind: str, listener: Callable[..., Any]) -> None:
        self._listeners[kind].append(listener)

    def remove_listener(self, kind: str, listener: Callable[..., Any]) -> None:
        listeners = self._listeners[kind]
        for i, registered in enumerate(listeners):
            if registered is listener:
                del listeners[i]
                return

    def emit(self, kind: str, *args: Any) -> None:
        for listener in list(self._listeners[kind]):
            listener(*args)

    def listener_count(self, kind: str) -> int:
        return len(self._listeners[kind])


class Outcome:
    """Records every continuation call made by an operation or selector."""

    def __init__(self) -> None:
        self.successes: list[Any] = []
        self.failures: list[BaseException] = []

    def on_success(self, value: Any) -> None:
        self.successes.append(value)

    def on_failure(self, exc: BaseException) -> None:
        self.failures.append(exc)

    @property
    def calls(self) -> int:
        return len(self.successes) + len(self.failures)

    @property
    def value(self) -> Any:
        assert self.successes, f'no success recorded (failures={self.failures!r})'
        return self.successes[0]

    @property
    def error(self) -> BaseException:
        assert self.failures, f'no failure recorded (successes={self.successes!r})'
        return self.failures[0]


@pytest.fixture
def timers() -> ManualTimers:
    return ManualTimers()


@pytest.fixture
def emitter() -> EventEmitter:
    return EventEmitter()


@pytest.fixture
def outcome() -> Outcome:
    return Outcome()


@pytest.fixture
def adapters(timers: ManualTimers) -> Adapters:
    """Adapters on manual timers with default diagnostics."""
    return Adapters(timers=timers, diagnostics=Diagnostics())


@pytest.fixture
def selector(timers: ManualTimers, outcome: Outcome) -> Selector:
    """A selector wired to the outcome recorder and manual timers."""
    return Selector(outcome.on_success, outcome.on_failure, timers=timers, diagnostics=Diagnostics())


@pytest.fixture(autouse=True)
def reset_runtime() -> Generator[None]:
    """Restore module-level configuration and logging after each test."""
    from raceway import _config, operation

    yield
    _config._config = None
    operation.reset_default_adapters()
    raceway_logger = logging.getLogger(_logging.LOGGER_NAME)
    if _logging._handler is not None:
        raceway_logger.removeHandler(_logging._handler)
        _logging._handler = None
    raceway_logger.setLevel(logging.NOTSET)
    raceway_logger.propagate = True
    structlog.reset_defaults()
