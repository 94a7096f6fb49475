"""In-memory rendezvous ports and channels.

A minimal reference implementation of the ``Port`` contract: unbuffered, a
``put`` completes only when it meets a ``take`` and vice versa. Completion
callbacks run synchronously inside the call that makes the match. There is
no buffering and no fairness policy beyond FIFO order of waiters.

Waits may carry an ``owner`` (the selector that queued them). Two waits of
the same owner are never paired, so a selector racing a take against a put on
one channel cannot receive its own value.
"""

from __future__ import annotations

import contextlib
from collections import deque
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable

__all__ = ['Channel', 'ChannelEndpoint', 'Port', 'Waiter']


class Waiter:
    """A queued take or put; ``cancel()`` removes it from its port."""

    __slots__ = ('_queue', 'active', 'callback', 'owner', 'value')

    def __init__(
        self,
        queue: deque[Waiter] | None,
        callback: Callable[[Any], None],
        value: Any = None,
        owner: object = None,
    ) -> None:
        self._queue = queue
        self.callback = callback
        self.value = value
        self.owner = owner
        self.active = queue is not None

    def cancel(self) -> None:
        if not self.active:
            return
        self.active = False
        if self._queue is not None:
            with contextlib.suppress(ValueError):
                self._queue.remove(self)
            self._queue = None


def _pop_partner(queue: deque[Waiter], owner: object) -> Waiter | None:
    """Dequeue the oldest waiter that may pair with a wait of ``owner``."""
    for waiter in queue:
        if owner is None or waiter.owner is not owner:
            queue.remove(waiter)
            waiter.active = False
            waiter._queue = None
            return waiter
    return None


class Port:
    """Unbuffered rendezvous endpoint."""

    __slots__ = ('_putters', '_takers', 'name')

    def __init__(self, name: str | None = None) -> None:
        self.name = name
        self._takers: deque[Waiter] = deque()
        self._putters: deque[Waiter] = deque()

    def __repr__(self) -> str:
        return f'Port({self.name!r})' if self.name else f'Port(at 0x{id(self):x})'

    @property
    def pending_takes(self) -> int:
        return len(self._takers)

    @property
    def pending_puts(self) -> int:
        return len(self._putters)

    def take(self, on_ready: Callable[[Any], None], owner: object = None) -> Waiter:
        putter = _pop_partner(self._putters, owner)
        if putter is not None:
            on_ready(putter.value)
            putter.callback(True)
            return Waiter(None, on_ready, owner=owner)
        waiter = Waiter(self._takers, on_ready, owner=owner)
        self._takers.append(waiter)
        return waiter

    def put(self, value: Any, on_ready: Callable[[Any], None], owner: object = None) -> Waiter:
        taker = _pop_partner(self._takers, owner)
        if taker is not None:
            taker.callback(value)
            on_ready(True)
            return Waiter(None, on_ready, value, owner)
        waiter = Waiter(self._putters, on_ready, value, owner)
        self._putters.append(waiter)
        return waiter


class ChannelEndpoint:
    """One side of a ``Channel``; a distinct object sharing the channel's port."""

    __slots__ = ('_port', 'direction')

    def __init__(self, port: Port, direction: str) -> None:
        self._port = port
        self.direction = direction

    def __repr__(self) -> str:
        return f'ChannelEndpoint({self._port!r}, {self.direction!r})'

    def take(self, on_ready: Callable[[Any], None], owner: object = None) -> Waiter:
        return self._port.take(on_ready, owner)

    def put(self, value: Any, on_ready: Callable[[Any], None], owner: object = None) -> Waiter:
        return self._port.put(value, on_ready, owner)


class Channel:
    """Rendezvous channel with separate receive and send endpoints.

    Receiving and sending on the same channel are distinct registrations, so
    one selector may race a ``take`` and a ``put`` on it. Both stay pending
    until another party sends or receives.

    Example:
        ```python
        ch = Channel('jobs')
        await perform(select(lambda s: s.take(ch).timeout(1.0)))
        ```
    """

    __slots__ = ('_receive', '_send', 'port')

    def __init__(self, name: str | None = None) -> None:
        self.port = Port(name)
        self._receive = ChannelEndpoint(self.port, 'receive')
        self._send = ChannelEndpoint(self.port, 'send')

    @property
    def receive_port(self) -> ChannelEndpoint:
        return self._receive

    @property
    def send_port(self) -> ChannelEndpoint:
        return self._send
