"""asyncio-backed timer service.

Maps the three scheduling phases used by the adapters onto an asyncio loop:

- ``call_later``: ``loop.call_later``.
- ``call_immediate``: ``loop.call_soon``, i.e. the next pass of the loop.
- ``call_after_io``: two ``call_soon`` hops, so at least one full I/O poll
  happens between scheduling and the callback.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable

__all__ = ['LoopTimers']


class _AfterIOHandle:
    """Cancels whichever hop of a two-hop schedule is pending."""

    __slots__ = ('_handle',)

    def __init__(self) -> None:
        self._handle: asyncio.Handle | None = None

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()


class LoopTimers:
    """Timer service scheduling on an asyncio event loop.

    Args:
        loop: Loop to schedule on. If None, the running loop at call time is used.
    """

    __slots__ = ('_loop',)

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is not None:
            return self._loop
        return asyncio.get_running_loop()

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return self.loop.call_later(max(0.0, delay), callback)

    def call_immediate(self, callback: Callable[[], None]) -> asyncio.Handle:
        return self.loop.call_soon(callback)

    def call_after_io(self, callback: Callable[[], None]) -> _AfterIOHandle:
        loop = self.loop
        handle = _AfterIOHandle()

        def second_hop() -> None:
            handle._handle = loop.call_soon(callback)

        handle._handle = loop.call_soon(second_hop)
        return handle
