"""Coroutine engine: drives resumable computations to completion.

Two kinds of computation are supported:

- coroutines and other awaitables, scheduled as asyncio tasks;
- plain generators that ``yield`` operations (or futures). Each yielded
  operation is started and the generator is resumed with its success value,
  or has its failure thrown in. The generator's return value is the result.

Generator steps that complete synchronously are run in a loop rather than by
recursion, so long chains of immediately-ready operations do not grow the
stack.
"""

from __future__ import annotations

import inspect
from collections.abc import Callable, Generator
from typing import TYPE_CHECKING, Any, TypeAlias

from raceway.errors import InvalidSource
from raceway.sources import attach_future

if TYPE_CHECKING:
    from raceway.types import FailureCallback, SuccessCallback

__all__ = ['AsyncioEngine']

_Resume: TypeAlias = tuple[Callable[[Any], Any], Any]


class _GeneratorDriver:
    __slots__ = ('_gen', '_on_failure', '_on_success')

    def __init__(
        self,
        gen: Generator[Any, Any, Any],
        on_success: SuccessCallback,
        on_failure: FailureCallback,
    ) -> None:
        self._gen = gen
        self._on_success = on_success
        self._on_failure = on_failure

    def start(self) -> None:
        self._advance(self._gen.send, None)

    def _advance(self, send: Callable[[Any], Any], value: Any) -> None:
        while True:
            try:
                yielded = send(value)
            except StopIteration as stop:
                self._on_success(stop.value)
                return
            except Exception as exc:
                self._on_failure(exc)
                return

            resume = self._start(yielded)
            if resume is None:
                return
            send, value = resume

    def _start(self, yielded: Any) -> _Resume | None:
        """Start one yielded step; return its outcome if it settled synchronously."""
        ready: list[_Resume] = []
        starting = True
        settled = False

        def resume(send: Callable[[Any], Any], value: Any) -> None:
            nonlocal settled
            if settled:
                return
            settled = True
            if starting:
                ready.append((send, value))
            else:
                self._advance(send, value)

        def on_success(value: Any) -> None:
            resume(self._gen.send, value)

        def on_failure(exc: BaseException) -> None:
            resume(self._gen.throw, exc)

        try:
            if callable(yielded):
                yielded(on_success, on_failure)
            else:
                attach_future(yielded, on_success, on_failure)
        except Exception as exc:
            on_failure(exc)
        starting = False

        return ready[0] if ready else None


class AsyncioEngine:
    """Coroutine engine running on the current asyncio loop."""

    __slots__ = ()

    def run(
        self,
        computation: Any,
        on_success: SuccessCallback,
        on_failure: FailureCallback,
    ) -> None:
        if inspect.isgenerator(computation):
            _GeneratorDriver(computation, on_success, on_failure).start()
            return

        if not inspect.isawaitable(computation):
            on_failure(InvalidSource('coroutine or generator', type(computation).__name__).to_exception())
            return

        attach_future(computation, on_success, on_failure)
