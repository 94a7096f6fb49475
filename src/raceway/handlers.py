"""Handler variants and the execution policy for winning results.

A handler attached to a selector registration is one of:

- ``None``: the winning payload itself is the result.
- a plain callable: called synchronously with the payload; its return value
  is the result and an exception it raises is the failure.
- a ``Resumable``: a factory of resumable computations (an ``async def`` or
  a generator function). It is called with the payload and the computation it
  returns is handed to the coroutine engine, whose outcome becomes the result.

The variant is decided once, when the handler is registered (``as_handler``),
not at dispatch time.
"""

from __future__ import annotations

import inspect
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, TypeAlias, TypeVar

import wrapt

from raceway.errors import InvalidSource

if TYPE_CHECKING:
    from raceway.protocols import CoroutineEngine
    from raceway.types import FailureCallback, SuccessCallback

__all__ = ['Handler', 'Resumable', 'as_handler', 'execute', 'resumable']

F = TypeVar('F', bound=Callable[..., Any])


class Resumable(wrapt.ObjectProxy):
    """Marks a callable as a factory of resumable computations.

    The proxy stays callable and keeps the wrapped function's name and
    signature, so a decorated handler can still be called directly.
    """

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        return self.__wrapped__(*args, **kwargs)

    def __repr__(self) -> str:
        return f'Resumable({self.__wrapped__!r})'


Handler: TypeAlias = Callable[..., Any] | Resumable | None


def resumable(func: F) -> F:
    """Tag ``func`` as a resumable-computation factory.

    Needed only for callables that are not recognisable on their own, e.g. a
    plain function that returns a coroutine or a generator.

    Example:
        ```python
        @resumable
        def on_value(value):
            return process(value)  # returns a coroutine
        ```
    """
    return Resumable(func)  # type: ignore[return-value]


def as_handler(handler: Any) -> Handler:
    """Normalize a user handler into one of the explicit variants.

    Raises:
        InvalidSourceError: If ``handler`` is neither None nor callable.
    """
    if handler is None or isinstance(handler, Resumable):
        return handler
    if inspect.iscoroutinefunction(handler) or inspect.isgeneratorfunction(handler):
        return Resumable(handler)
    if callable(handler):
        return handler
    raise InvalidSource('callable handler', type(handler).__name__).to_exception()


def execute(
    handler: Handler,
    args: tuple[Any, ...],
    on_success: SuccessCallback,
    on_failure: FailureCallback,
    engine: CoroutineEngine,
) -> None:
    """Dispatch a winning result through ``handler``.

    Args:
        handler: A normalized handler (see ``as_handler``).
        args: Payload passed to the handler; with no handler the first element
            (or None when empty) is the result.
        on_success: Continuation receiving the final result.
        on_failure: Continuation receiving the final failure.
        engine: Runs computations produced by a ``Resumable`` handler.
    """
    if handler is None:
        on_success(args[0] if args else None)
        return

    try:
        outcome = handler(*args)
    except Exception as exc:
        on_failure(exc)
        return

    if isinstance(handler, Resumable):
        engine.run(outcome, on_success, on_failure)
    else:
        on_success(outcome)
