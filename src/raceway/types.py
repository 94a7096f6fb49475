"""Type aliases for operations and their continuations."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, TypeAlias

__all__ = [
    'CancelThunk',
    'FailureCallback',
    'NodeCallback',
    'Operation',
    'SuccessCallback',
]

SuccessCallback: TypeAlias = Callable[[Any], None]
"""Continuation receiving the success value."""

FailureCallback: TypeAlias = Callable[[BaseException], None]
"""Continuation receiving the failure."""

Operation: TypeAlias = Callable[[SuccessCallback, FailureCallback], None]
"""A startable unit of async work.

Calling it starts the work; exactly one of the two continuations is invoked,
exactly once.
"""

NodeCallback: TypeAlias = Callable[[BaseException | None, Any], None]
"""Callback of a callback-style task: ``(error, data)``."""

CancelThunk: TypeAlias = Callable[[], None]
"""Zero-argument action that undoes one pending registration."""
