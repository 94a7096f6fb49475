"""Operation adapters: normalize async sources into ``(on_success, on_failure)``.

Every adapter is a pure factory: calling it builds a fresh operation, and only
starting that operation registers a wait with the underlying source.

The module-level functions are bound to a default ``Adapters`` instance built
from the runtime configuration (see ``raceway.init``). Construct your own
``Adapters`` to inject a different timer service, coroutine engine or
``Diagnostics``.

Example:
    ```python
    from raceway import Channel, perform, select, sleep

    jobs = Channel('jobs')

    async def next_job():
        return await perform(
            select(lambda s: s
                .take(jobs)
                .timeout(1.0, lambda: 'idle'))
        )
    ```
"""

from __future__ import annotations

import asyncio
import traceback
from typing import TYPE_CHECKING, Any

import aiologic
import wrapt

from raceway._config import Diagnostics, current_diagnostics
from raceway._logging import get_logger
from raceway.engine import AsyncioEngine
from raceway.errors import InvalidSource
from raceway.protocols import EventSource
from raceway.sources import attach_future, resolve_receive_port, resolve_send_port
from raceway.timers import LoopTimers

if TYPE_CHECKING:
    from collections.abc import Callable

    from raceway.protocols import CoroutineEngine, TimerService
    from raceway.selector import Selector
    from raceway.types import FailureCallback, NodeCallback, Operation, SuccessCallback

__all__ = [
    'Adapters',
    'TracedOperation',
    'defer',
    'next_tick',
    'once',
    'perform',
    'put',
    'reset_default_adapters',
    'select',
    'sleep',
    'take',
    'task',
    'thunk',
    'to_future',
    'wait',
]

_log = get_logger(__name__)


class TracedOperation(wrapt.ObjectProxy):
    """Operation wrapper carrying the stack it was created from.

    Built by adapters when ``Diagnostics.capture_stacks`` is on. A failure to
    start is logged together with the creation stack before it propagates.
    """

    def __init__(self, wrapped: Operation, name: str, stack: list[str]) -> None:
        super().__init__(wrapped)
        self._self_name = name
        self._self_creation_stack = stack

    @property
    def creation_stack(self) -> str:
        return ''.join(self._self_creation_stack)

    @property
    def adapter(self) -> str:
        return self._self_name

    def __call__(self, on_success: SuccessCallback, on_failure: FailureCallback) -> None:
        try:
            self.__wrapped__(on_success, on_failure)
        except Exception as exc:
            _log.error(
                'operation.start_failed',
                adapter=self._self_name,
                error=repr(exc),
                creation_stack=self.creation_stack,
            )
            raise

    def __repr__(self) -> str:
        return f'TracedOperation({self._self_name})'


class Adapters:
    """Factory of operations sharing one timer service, engine and diagnostics.

    Args:
        timers: Timer service for ``sleep``/``defer``/``next_tick``/``timeout``.
            Defaults to the running asyncio loop.
        engine: Coroutine engine for resumable handlers.
        diagnostics: Diagnostics options. Defaults to the runtime configuration.
    """

    __slots__ = ('diagnostics', 'engine', 'timers')

    def __init__(
        self,
        timers: TimerService | None = None,
        engine: CoroutineEngine | None = None,
        diagnostics: Diagnostics | None = None,
    ) -> None:
        self.timers: TimerService = timers if timers is not None else LoopTimers()
        self.engine: CoroutineEngine = engine if engine is not None else AsyncioEngine()
        self.diagnostics = diagnostics if diagnostics is not None else current_diagnostics()

    def _wrap(self, operation: Operation, name: str) -> Operation:
        if not self.diagnostics.capture_stacks:
            return operation
        # drop the frames of _wrap and the adapter method itself
        stack = traceback.format_stack()[:-2]
        return TracedOperation(operation, name, stack)  # type: ignore[return-value]

    def sleep(self, seconds: float) -> Operation:
        """Succeed with None after ``seconds``."""
        timers = self.timers

        def operation(on_success: SuccessCallback, on_failure: FailureCallback) -> None:
            timers.call_later(seconds, lambda: on_success(None))

        return self._wrap(operation, 'sleep')

    def defer(self) -> Operation:
        """Succeed with None once the current I/O phase has been processed."""
        timers = self.timers

        def operation(on_success: SuccessCallback, on_failure: FailureCallback) -> None:
            timers.call_after_io(lambda: on_success(None))

        return self._wrap(operation, 'defer')

    def next_tick(self) -> Operation:
        """Succeed with None at the next scheduler step."""
        timers = self.timers

        def operation(on_success: SuccessCallback, on_failure: FailureCallback) -> None:
            timers.call_immediate(lambda: on_success(None))

        return self._wrap(operation, 'next_tick')

    def once(self, source: EventSource, kind: str) -> Operation:
        """Succeed with the payload of the first ``kind`` event on ``source``.

        The listener removes itself when it fires. Extra positional event
        arguments beyond the first are dropped.
        """
        if not isinstance(source, EventSource):
            raise InvalidSource('EventSource', type(source).__name__).to_exception()

        def operation(on_success: SuccessCallback, on_failure: FailureCallback) -> None:
            def listener(*args: Any) -> None:
                source.remove_listener(kind, listener)
                on_success(args[0] if args else None)

            source.on(kind, listener)

        return self._wrap(operation, 'once')

    def task(self, fn: Callable[[SuccessCallback, FailureCallback], Any]) -> Operation:
        """Start ``fn(on_success, on_failure)`` directly; ``fn`` must call exactly one."""

        def operation(on_success: SuccessCallback, on_failure: FailureCallback) -> None:
            fn(on_success, on_failure)

        return self._wrap(operation, 'task')

    def thunk(self, fn: Callable[[NodeCallback], Any]) -> Operation:
        """Adapt a callback-style task taking ``callback(error, data)``."""

        def operation(on_success: SuccessCallback, on_failure: FailureCallback) -> None:
            def callback(error: BaseException | None = None, data: Any = None) -> None:
                if error is not None:
                    on_failure(error)
                else:
                    on_success(data)

            fn(callback)

        return self._wrap(operation, 'thunk')

    def wait(self, future: Any) -> Operation:
        """Settle with the eventual outcome of a future or awaitable.

        Coroutines are scheduled as tasks only when the operation starts.
        """

        def operation(on_success: SuccessCallback, on_failure: FailureCallback) -> None:
            attach_future(future, on_success, on_failure)

        return self._wrap(operation, 'wait')

    def take(self, source: Any) -> Operation:
        """Succeed with the next value received from a port or channel."""
        port = resolve_receive_port(source)

        def operation(on_success: SuccessCallback, on_failure: FailureCallback) -> None:
            port.take(on_success)

        return self._wrap(operation, 'take')

    def put(self, source: Any, value: Any) -> Operation:
        """Succeed once ``value`` is accepted by a port or channel."""
        port = resolve_send_port(source)

        def operation(on_success: SuccessCallback, on_failure: FailureCallback) -> None:
            port.put(value, on_success)

        return self._wrap(operation, 'put')

    def select(self, setup: Callable[[Selector], Any]) -> Operation:
        """Race the sources registered by ``setup``; the first to complete wins.

        Starting the operation builds a fresh ``Selector`` and calls
        ``setup(selector)`` synchronously. If ``setup`` raises, registrations
        made so far are cancelled and the exception propagates out of the
        start call instead of reaching ``on_failure``.
        """
        from raceway.selector import Selector

        def operation(on_success: SuccessCallback, on_failure: FailureCallback) -> None:
            selector = Selector(
                on_success,
                on_failure,
                timers=self.timers,
                engine=self.engine,
                diagnostics=self.diagnostics,
            )
            try:
                setup(selector)
            except BaseException as exc:
                selector.abort()
                if self.diagnostics.log_events:
                    _log.warning('selector.setup_failed', error=repr(exc))
                raise

        return self._wrap(operation, 'select')


_default = Adapters()


def reset_default_adapters(diagnostics: Diagnostics | None = None) -> Adapters:
    """Rebuild the adapters behind the module-level functions."""
    global _default  # noqa: PLW0603
    _default = Adapters(diagnostics=diagnostics)
    return _default


def sleep(seconds: float) -> Operation:
    return _default.sleep(seconds)


def defer() -> Operation:
    return _default.defer()


def next_tick() -> Operation:
    return _default.next_tick()


def once(source: EventSource, kind: str) -> Operation:
    return _default.once(source, kind)


def task(fn: Callable[[SuccessCallback, FailureCallback], Any]) -> Operation:
    return _default.task(fn)


def thunk(fn: Callable[[NodeCallback], Any]) -> Operation:
    return _default.thunk(fn)


def wait(future: Any) -> Operation:
    return _default.wait(future)


def take(source: Any) -> Operation:
    return _default.take(source)


def put(source: Any, value: Any) -> Operation:
    return _default.put(source, value)


def select(setup: Callable[[Selector], Any]) -> Operation:
    return _default.select(setup)


# --- Bridging into async code ---


def to_future(operation: Operation) -> asyncio.Future[Any]:
    """Start ``operation`` and return a future settled by it.

    Continuation calls after the first are ignored. An exception raised while
    starting the operation propagates to the caller.
    """
    future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()

    def on_success(value: Any) -> None:
        if not future.done():
            future.set_result(value)

    def on_failure(exc: BaseException) -> None:
        if not future.done():
            future.set_exception(exc)

    operation(on_success, on_failure)
    return future


async def perform(operation: Operation) -> Any:
    """Start ``operation`` and wait for it to settle.

    Returns:
        The success value.

    Raises:
        BaseException: The failure the operation settled with, or whatever
            starting the operation raised.
    """
    done = aiologic.Event()
    outcome: list[tuple[bool, Any]] = []

    def on_success(value: Any) -> None:
        if not outcome:
            outcome.append((True, value))
            done.set()

    def on_failure(exc: BaseException) -> None:
        if not outcome:
            outcome.append((False, exc))
            done.set()

    operation(on_success, on_failure)
    await done

    ok, value = outcome[0]
    if not ok:
        raise value
    return value
