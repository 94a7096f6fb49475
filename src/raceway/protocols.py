"""Collaborator protocols: the contracts the selector needs from the outside.

Ports, event sources, timers and the coroutine engine are external to the
selective-wait core. These protocols pin down the few calls the core makes on
them; any object satisfying them can take part in a race.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Callable

__all__ = [
    'Cancellable',
    'ChannelEnds',
    'CoroutineEngine',
    'EventSource',
    'Port',
    'TimerService',
]


@runtime_checkable
class Cancellable(Protocol):
    """Handle to a pending wait.

    ``cancel()`` must be idempotent and harmless on a wait that has already
    completed.
    """

    @abstractmethod
    def cancel(self) -> Any: ...


@runtime_checkable
class Port(Protocol):
    """A channel endpoint supporting cancellable take and put.

    ``owner`` identifies the selector queueing a wait. A port must not pair a
    take with a put of the same owner.
    """

    @abstractmethod
    def take(self, on_ready: Callable[[Any], None], owner: object = None) -> Cancellable:
        """Queue a receive; ``on_ready(value)`` fires when a value arrives."""
        ...

    @abstractmethod
    def put(self, value: Any, on_ready: Callable[[Any], None], owner: object = None) -> Cancellable:
        """Queue a send; ``on_ready(result)`` fires once ``value`` is accepted."""
        ...


@runtime_checkable
class ChannelEnds(Protocol):
    """A channel exposing separate receive and send endpoints."""

    @property
    @abstractmethod
    def receive_port(self) -> Port: ...

    @property
    @abstractmethod
    def send_port(self) -> Port: ...


@runtime_checkable
class EventSource(Protocol):
    """Something that emits named events to listeners.

    Unsubscription is identity based: the exact listener passed to ``on``
    must be passed to ``remove_listener``.
    """

    @abstractmethod
    def on(self, kind: str, listener: Callable[..., Any]) -> Any: ...

    @abstractmethod
    def remove_listener(self, kind: str, listener: Callable[..., Any]) -> Any: ...


class TimerService(Protocol):
    """Scheduling services used by the timer-based adapters."""

    @abstractmethod
    def call_later(self, delay: float, callback: Callable[[], None]) -> Cancellable:
        """Run ``callback`` after ``delay`` seconds."""
        ...

    @abstractmethod
    def call_after_io(self, callback: Callable[[], None]) -> Cancellable:
        """Run ``callback`` once pending I/O of the current loop pass has been processed."""
        ...

    @abstractmethod
    def call_immediate(self, callback: Callable[[], None]) -> Cancellable:
        """Run ``callback`` at the very next scheduler step."""
        ...


class CoroutineEngine(Protocol):
    """Drives a resumable computation to completion."""

    @abstractmethod
    def run(
        self,
        computation: Any,
        on_success: Callable[[Any], None],
        on_failure: Callable[[BaseException], None],
    ) -> None: ...
