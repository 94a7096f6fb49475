"""
raceway: callback-style async operations and a selective wait over them.

An operation is a callable ``(on_success, on_failure) -> None`` that starts
some asynchronous work and settles exactly one continuation, once. Adapters
turn timers, one-shot events, futures, channel sends/receives and
callback-style tasks into operations; ``select`` races several of them and
commits to whichever completes first, cancelling the rest.
"""

from raceway._config import Diagnostics, RuntimeConfig, get_config, init
from raceway.engine import AsyncioEngine
from raceway.errors import (
    Cancelled,
    CancelledError,
    DuplicateRegistration,
    DuplicateRegistrationError,
    InvalidSource,
    InvalidSourceError,
)
from raceway.handlers import Resumable, resumable
from raceway.operation import (
    Adapters,
    TracedOperation,
    defer,
    next_tick,
    once,
    perform,
    put,
    select,
    sleep,
    take,
    task,
    thunk,
    to_future,
    wait,
)
from raceway.ports import Channel, Port
from raceway.protocols import Cancellable, ChannelEnds, CoroutineEngine, EventSource, TimerService
from raceway.selector import Selector
from raceway.timers import LoopTimers

__all__ = [
    # Adapters
    'Adapters',
    'AsyncioEngine',
    # Errors - struct variants
    'Cancelled',
    # Protocols
    'Cancellable',
    # Errors - exception variants
    'CancelledError',
    # Ports
    'Channel',
    'ChannelEnds',
    'CoroutineEngine',
    # Config
    'Diagnostics',
    'DuplicateRegistration',
    'DuplicateRegistrationError',
    'EventSource',
    'InvalidSource',
    'InvalidSourceError',
    'LoopTimers',
    'Port',
    # Handlers
    'Resumable',
    'RuntimeConfig',
    # Selector
    'Selector',
    'TimerService',
    'TracedOperation',
    'defer',
    'get_config',
    'init',
    'next_tick',
    'once',
    'perform',
    'put',
    'resumable',
    'select',
    'sleep',
    'take',
    'task',
    'thunk',
    'to_future',
    'wait',
]
