"""Source resolution: the explicit variants a race can be built from.

Channel sources come in two shapes: a raw ``Port``, or a channel exposing
``receive_port``/``send_port`` endpoints. Future sources come in three: an
asyncio future, a ``concurrent.futures.Future``, or any other awaitable.
Anything else is rejected with ``InvalidSourceError`` at the call site.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import inspect
from typing import TYPE_CHECKING, Any

from raceway.errors import CancelledError, DuplicateRegistration, InvalidSource
from raceway.protocols import ChannelEnds, Port

if TYPE_CHECKING:
    from collections.abc import Callable

    from raceway.types import CancelThunk, FailureCallback, SuccessCallback

__all__ = [
    'PortRegistry',
    'as_future',
    'attach_future',
    'resolve_receive_port',
    'resolve_send_port',
    'task_future',
]


def resolve_receive_port(source: Any) -> Port:
    """Return the endpoint a receive on ``source`` must be queued on."""
    if isinstance(source, ChannelEnds):
        return source.receive_port
    if isinstance(source, Port):
        return source
    raise InvalidSource('Port or channel with receive_port', type(source).__name__).to_exception()


def resolve_send_port(source: Any) -> Port:
    """Return the endpoint a send on ``source`` must be queued on."""
    if isinstance(source, ChannelEnds):
        return source.send_port
    if isinstance(source, Port):
        return source
    raise InvalidSource('Port or channel with send_port', type(source).__name__).to_exception()


def as_future(source: Any) -> asyncio.Future[Any]:
    """Convert a future-like source into an asyncio future on the running loop.

    ``concurrent.futures.Future`` results are marshalled back to the loop
    thread, so callbacks attached to the returned future always run there.
    """
    if asyncio.isfuture(source):
        return source
    if isinstance(source, concurrent.futures.Future):
        return asyncio.wrap_future(source)
    if inspect.isawaitable(source):
        return asyncio.ensure_future(source)
    raise InvalidSource('future or awaitable', type(source).__name__).to_exception()


def attach_future(
    source: Any,
    on_success: SuccessCallback,
    on_failure: FailureCallback,
) -> CancelThunk:
    """Attach continuations to the eventual settlement of ``source``.

    A cancelled future fails with ``CancelledError``.

    Returns:
        A thunk detaching the continuations. A caller-supplied future is only
        detached; a task scheduled here for a bare awaitable has no other
        owner, so the thunk cancels it as well.
    """
    owned = not asyncio.isfuture(source) and not isinstance(source, concurrent.futures.Future)
    future = as_future(source)

    def done(fut: asyncio.Future[Any]) -> None:
        if fut.cancelled():
            on_failure(CancelledError('future cancelled'))
            return
        exc = fut.exception()
        if exc is not None:
            on_failure(exc)
        else:
            on_success(fut.result())

    future.add_done_callback(done)

    def detach() -> None:
        future.remove_done_callback(done)
        if owned:
            future.cancel()

    return detach


def task_future(fn: Callable[[SuccessCallback, FailureCallback], Any]) -> asyncio.Future[Any]:
    """Call ``fn(resolve, reject)`` and return a future settled by it.

    Only the first continuation call counts. An exception raised by ``fn``
    fails the future instead of propagating. Must be called with an asyncio
    loop running.
    """
    future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()

    def resolve(value: Any) -> None:
        if not future.done():
            future.set_result(value)

    def reject(exc: BaseException) -> None:
        if not future.done():
            future.set_exception(exc)

    try:
        fn(resolve, reject)
    except Exception as exc:
        reject(exc)
    return future


class PortRegistry:
    """Identity-keyed set of the ports registered on one selector.

    Keys are ``id(port)``; the registry keeps a strong reference to each port
    so an id cannot be recycled while the race is running.
    """

    __slots__ = ('_ports',)

    def __init__(self) -> None:
        self._ports: dict[int, tuple[Port, str]] = {}

    def __contains__(self, port: object) -> bool:
        return id(port) in self._ports

    def __len__(self) -> int:
        return len(self._ports)

    def add(self, port: Port, direction: str) -> None:
        """Record ``port``.

        Raises:
            DuplicateRegistrationError: If ``port`` is already registered.
        """
        key = id(port)
        if key in self._ports:
            raise DuplicateRegistration(repr(port), direction).to_exception()
        self._ports[key] = (port, direction)

    def clear(self) -> None:
        self._ports.clear()
