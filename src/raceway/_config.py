"""Runtime configuration: RuntimeConfig, Diagnostics, and initialization."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from raceway._logging import configure_logging

__all__ = [
    'Diagnostics',
    'RuntimeConfig',
    'get_config',
    'init',
]

_TRUTHY = frozenset({'1', 'true', 'yes', 'on'})
_FALSY = frozenset({'', '0', 'false', 'no', 'off'})


@dataclass(frozen=True)
class Diagnostics:
    """Diagnostics options injected into adapters and selectors.

    Attributes:
        capture_stacks: Record the creation stack of every operation built by
            the adapters. Costly; meant for debugging misbehaving races.
        cancel_timers: Cancel the pending timer of a ``timeout`` registration
            when another source wins. When False the timer is left to fire
            and is discarded by the settled check.
        log_events: Emit structlog events for settlements, discarded late
            completions and setup failures.
    """

    capture_stacks: bool = False
    cancel_timers: bool = True
    log_events: bool = False


@dataclass(frozen=True)
class RuntimeConfig:
    """Configuration for raceway.

    Attributes:
        log_level: Logging level (e.g., "DEBUG", "INFO"). None = leave logging alone.
        capture_stacks: See ``Diagnostics.capture_stacks``.
        cancel_timers: See ``Diagnostics.cancel_timers``.
    """

    log_level: str | None = None
    capture_stacks: bool = False
    cancel_timers: bool = True

    @property
    def diagnostics(self) -> Diagnostics:
        return Diagnostics(
            capture_stacks=self.capture_stacks,
            cancel_timers=self.cancel_timers,
            log_events=self.log_level is not None,
        )


# Global configuration (set by init())
_config: RuntimeConfig | None = None


def _detect_capture_stacks() -> bool:
    """Read RACEWAY_CAPTURE_STACKS from the environment."""
    value = os.environ.get('RACEWAY_CAPTURE_STACKS', '').strip().lower()
    if value in _TRUTHY:
        return True
    if value not in _FALSY:
        logging.warning("Unknown RACEWAY_CAPTURE_STACKS value '%s', defaulting to off", value)
    return False


def init(
    log_level: str | None = None,
    capture_stacks: bool | None = None,
    cancel_timers: bool = True,
) -> RuntimeConfig:
    """Initialize raceway with the given configuration.

    Rebuilds the default adapters behind the module-level functions of
    ``raceway.operation`` so they pick up the new diagnostics.

    Args:
        log_level: Logging level ("DEBUG", "INFO", etc.). None = leave logging alone.
        capture_stacks: Record operation creation stacks. Read from
            ``RACEWAY_CAPTURE_STACKS`` if None.
        cancel_timers: Cancel losing timeout timers on settlement.

    Returns:
        The RuntimeConfig that was set.

    Example:
        ```python
        from raceway import init

        init(log_level="DEBUG", capture_stacks=True)
        ```
    """
    global _config  # noqa: PLW0603

    if capture_stacks is None:
        capture_stacks = _detect_capture_stacks()

    _config = RuntimeConfig(
        log_level=log_level,
        capture_stacks=capture_stacks,
        cancel_timers=cancel_timers,
    )

    if log_level is not None:
        configure_logging(log_level)

    from raceway import operation

    operation.reset_default_adapters(_config.diagnostics)

    return _config


def get_config() -> RuntimeConfig:
    """Get the current configuration.

    Raises:
        RuntimeError: If init() has not been called.
    """
    if _config is None:
        msg = 'raceway not initialized. Call raceway.init() first.'
        raise RuntimeError(msg)
    return _config


def current_diagnostics() -> Diagnostics:
    """Diagnostics of the current configuration, or the defaults before init()."""
    if _config is None:
        return Diagnostics(capture_stacks=_detect_capture_stacks())
    return _config.diagnostics
