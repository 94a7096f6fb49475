"""Error types: dual struct+exception for result-style and raise-based code."""

from __future__ import annotations

import msgspec

__all__ = [
    'Cancelled',
    'CancelledError',
    'DuplicateRegistration',
    'DuplicateRegistrationError',
    'InvalidSource',
    'InvalidSourceError',
]


# --- Registration Errors ---


class DuplicateRegistration(msgspec.Struct, frozen=True, gc=False):
    """Port already registered on a selector - struct variant."""

    port: str
    direction: str

    def to_exception(self) -> DuplicateRegistrationError:
        """Convert to exception for raise-based code."""
        return DuplicateRegistrationError(self.port, self.direction)


class DuplicateRegistrationError(Exception):
    """Port already registered on a selector - exception variant.

    Raised synchronously at the registration call site. Registering the same
    endpoint twice describes a race that can never be consistent, so it is
    never delivered through a failure continuation.
    """

    def __init__(self, port: str, direction: str) -> None:
        self.port = port
        self.direction = direction
        super().__init__(f'Cannot have duplicated port: {port} ({direction})')

    def to_struct(self) -> DuplicateRegistration:
        """Convert to struct for result-style code."""
        return DuplicateRegistration(self.port, self.direction)


class InvalidSource(msgspec.Struct, frozen=True, gc=False):
    """Value matches no supported source variant - struct variant."""

    expected: str
    got: str

    def to_exception(self) -> InvalidSourceError:
        """Convert to exception for raise-based code."""
        return InvalidSourceError(self.expected, self.got)


class InvalidSourceError(TypeError):
    """Value matches no supported source variant - exception variant."""

    def __init__(self, expected: str, got: str) -> None:
        self.expected = expected
        self.got = got
        super().__init__(f'Expected {expected}, got {got}')

    def to_struct(self) -> InvalidSource:
        """Convert to struct for result-style code."""
        return InvalidSource(self.expected, self.got)


# --- Cancellation Errors ---


class Cancelled(msgspec.Struct, frozen=True, gc=False):
    """Awaited work was cancelled - struct variant."""

    reason: str | None = None

    def to_exception(self) -> CancelledError:
        """Convert to exception for raise-based code."""
        return CancelledError(self.reason)


class CancelledError(Exception):
    """Awaited work was cancelled - exception variant.

    Unlike ``asyncio.CancelledError`` this is an ordinary ``Exception``, so it
    travels through failure continuations like any other error.
    """

    def __init__(self, reason: str | None = None) -> None:
        self.reason = reason
        super().__init__(reason or 'Operation cancelled')

    def to_struct(self) -> Cancelled:
        """Convert to struct for result-style code."""
        return Cancelled(self.reason)
