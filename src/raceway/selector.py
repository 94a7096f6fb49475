"""Selector: races registered sources and commits to the first to complete.

A selector is created per started ``select`` operation. Registration methods
chain; once any registered source completes the selector settles:

1. it claims the race (a second completion finds it settled and is dropped);
2. it runs every pending cancel-thunk in registration order, removing queued
   port waits, event listeners, future callbacks and timers;
3. it dispatches the winning payload through the registration's handler
   (see ``raceway.handlers.execute``) into the selector's own continuations.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from raceway._config import Diagnostics, current_diagnostics
from raceway._logging import get_logger
from raceway.engine import AsyncioEngine
from raceway.errors import InvalidSource
from raceway.handlers import as_handler, execute
from raceway.protocols import EventSource
from raceway.sources import PortRegistry, attach_future, resolve_receive_port, resolve_send_port, task_future
from raceway.timers import LoopTimers

if TYPE_CHECKING:
    from collections.abc import Callable

    from raceway.handlers import Handler
    from raceway.protocols import CoroutineEngine, TimerService
    from raceway.types import CancelThunk, FailureCallback, NodeCallback, SuccessCallback

__all__ = ['Selector']

_log = get_logger(__name__)


class Selector:
    """Race coordinator over heterogeneous async sources.

    Every registration method returns the selector, so registrations chain.
    Registering on a settled selector does nothing.

    Args:
        on_success: Continuation settling the enclosing operation with a value.
        on_failure: Continuation settling the enclosing operation with an error.
        timers: Timer service used by ``timeout``.
        engine: Coroutine engine running resumable handlers.
        diagnostics: Diagnostics options.

    Example:
        ```python
        select(lambda s: s
            .take(requests, handle_request)
            .once(shutdown, 'stop', lambda _: 'stopped')
            .timeout(30, lambda: 'idle'))
        ```
    """

    __slots__ = (
        '_cancels',
        '_diagnostics',
        '_engine',
        '_on_failure',
        '_on_success',
        '_ports',
        '_settled',
        '_timers',
        '_winner',
    )

    def __init__(
        self,
        on_success: SuccessCallback,
        on_failure: FailureCallback,
        *,
        timers: TimerService | None = None,
        engine: CoroutineEngine | None = None,
        diagnostics: Diagnostics | None = None,
    ) -> None:
        self._on_success = on_success
        self._on_failure = on_failure
        self._timers: TimerService = timers if timers is not None else LoopTimers()
        self._engine: CoroutineEngine = engine if engine is not None else AsyncioEngine()
        self._diagnostics = diagnostics if diagnostics is not None else current_diagnostics()
        self._settled = False
        self._winner: str | None = None
        self._cancels: list[CancelThunk] = []
        self._ports = PortRegistry()

    def __repr__(self) -> str:
        state = f'settled by {self._winner}' if self._settled else f'{len(self._cancels)} pending'
        return f'<Selector {state}>'

    @property
    def settled(self) -> bool:
        return self._settled

    @property
    def winner(self) -> str | None:
        """Kind of the registration that settled the selector, if any."""
        return self._winner

    @property
    def pending(self) -> int:
        """Number of registrations still holding a cancel-thunk."""
        return len(self._cancels)

    # --- settlement ---

    def _claim(self, kind: str) -> bool:
        """Settle the race in favour of ``kind``; False if it was already settled."""
        if self._settled:
            if self._diagnostics.log_events:
                _log.debug('selector.late_completion', source=kind, winner=self._winner)
            return False
        self._settled = True
        self._winner = kind
        cancelled = self._cleanup()
        if self._diagnostics.log_events:
            _log.debug('selector.settled', winner=kind, cancelled=cancelled)
        return True

    def _cleanup(self) -> int:
        cancels = self._cancels
        for cancel in cancels:
            cancel()
        self._cancels = []
        self._ports.clear()
        return len(cancels)

    def _track(self, cancel: CancelThunk) -> None:
        # a wait that completed synchronously has nothing left to cancel
        if not self._settled:
            self._cancels.append(cancel)

    def _dispatch(self, handler: Handler, args: tuple[Any, ...]) -> None:
        execute(handler, args, self._on_success, self._on_failure, self._engine)

    def abort(self) -> None:
        """Settle without a result, cancelling every pending registration.

        Neither continuation is invoked. Used when setting up the race fails.
        """
        if self._settled:
            return
        self._settled = True
        self._winner = None
        self._cleanup()

    # --- registrations ---

    def take(self, source: Any, handler: Any = None) -> Selector:
        """Race a receive on a port or channel.

        Raises:
            DuplicateRegistrationError: If the receive endpoint is already registered.
            InvalidSourceError: If ``source`` is not a port or channel.
        """
        if self._settled:
            return self
        port = resolve_receive_port(source)
        handler = as_handler(handler)
        self._ports.add(port, 'receive')

        def ready(value: Any) -> None:
            if self._claim('take'):
                self._dispatch(handler, (value,))

        waiter = port.take(ready, owner=self)
        self._track(waiter.cancel)
        return self

    def put(self, source: Any, value: Any, handler: Any = None) -> Selector:
        """Race a send of ``value`` on a port or channel.

        Raises:
            DuplicateRegistrationError: If the send endpoint is already registered.
            InvalidSourceError: If ``source`` is not a port or channel.
        """
        if self._settled:
            return self
        port = resolve_send_port(source)
        handler = as_handler(handler)
        self._ports.add(port, 'send')

        def ready(result: Any) -> None:
            if self._claim('put'):
                self._dispatch(handler, (result,))

        waiter = port.put(value, ready, owner=self)
        self._track(waiter.cancel)
        return self

    def wait(self, future: Any, on_success: Any = None, on_failure: Any = None) -> Selector:
        """Race the settlement of a future or awaitable.

        Without ``on_failure`` a failure settles the selector with that failure.
        When another source wins, a caller-supplied future is only detached
        from; a task the selector scheduled for a bare awaitable is cancelled.
        """
        if self._settled:
            return self
        succeed = as_handler(on_success)
        fail = as_handler(on_failure)

        def resolved(value: Any) -> None:
            if self._claim('wait'):
                self._dispatch(succeed, (value,))

        def rejected(exc: BaseException) -> None:
            if not self._claim('wait'):
                return
            if fail is None:
                self._on_failure(exc)
            else:
                self._dispatch(fail, (exc,))

        self._track(attach_future(future, resolved, rejected))
        return self

    def task(
        self,
        fn: Callable[[SuccessCallback, FailureCallback], Any],
        on_success: Any = None,
        on_failure: Any = None,
    ) -> Selector:
        """Race a raw ``fn(on_success, on_failure)`` task, wrapped as a future.

        ``fn`` is called immediately. An exception it raises fails the race
        like any other failure of the task. Needs a running asyncio loop.
        """
        if self._settled:
            return self
        future = task_future(fn)
        self.wait(future, on_success, on_failure)
        self._track(future.cancel)
        return self

    def thunk(self, fn: Callable[[NodeCallback], Any], handler: Any = None) -> Selector:
        """Race a callback-style task calling ``callback(error, data)``.

        Without a handler the selector fails with ``error`` when it is not
        None and succeeds with ``data`` otherwise. A handler is dispatched
        with ``(error, data)``. The task cannot be cancelled; a callback
        arriving after settlement is dropped.
        """
        if self._settled:
            return self
        handler = as_handler(handler)

        def callback(error: BaseException | None = None, data: Any = None) -> None:
            if not self._claim('thunk'):
                return
            if handler is not None:
                self._dispatch(handler, (error, data))
            elif error is not None:
                self._on_failure(error)
            else:
                self._on_success(data)

        fn(callback)
        return self

    def once(self, source: EventSource, kind: str, handler: Any = None) -> Selector:
        """Race the first ``kind`` event on ``source``.

        The listener is removed on settlement, whichever source wins.
        """
        if self._settled:
            return self
        if not isinstance(source, EventSource):
            raise InvalidSource('EventSource', type(source).__name__).to_exception()
        handler = as_handler(handler)

        def listener(*args: Any) -> None:
            if self._claim('once'):
                self._dispatch(handler, (args[0] if args else None,))

        self._cancels.append(lambda: source.remove_listener(kind, listener))
        source.on(kind, listener)
        return self

    def timeout(self, seconds: float, handler: Any = None) -> Selector:
        """Settle through ``handler()`` if nothing else completes within ``seconds``.

        The handler is called with no argument; without one the selector
        succeeds with None.
        """
        if self._settled:
            return self
        handler = as_handler(handler)

        def expired() -> None:
            if self._claim('timeout'):
                self._dispatch(handler, ())

        timer = self._timers.call_later(seconds, expired)
        if self._diagnostics.cancel_timers:
            self._track(timer.cancel)
        return self
