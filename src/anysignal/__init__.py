"""Signals and reactive attributes.

A small observer toolkit: signals dispatch fired arguments to connected
handlers through a pluggable scheduler, restricted signals split observing
from publishing, and attributes wrap a value whose changes are announced
through a signal.

Example:
    signal = Signal[int]()
    signal.connect(lambda value: print(value))
    signal.fire(1)

    counter = mutable(0)
    counter.changed.connect(lambda new, old: print(f"{old} -> {new}"))
    counter.set(5)

    status, fire_status, set_status = immutable("idle")
    set_status("busy")
"""

from __future__ import annotations

from .attributes import ImmutableAttribute, MutableAttribute, identity, immutable, mutable
from .configs import (
    AsyncioSchedulerConfig,
    ImmediateSchedulerConfig,
    SchedulerConfig,
    ThreadSchedulerConfig,
)
from .core import Connection, RestrictedSignal, Signal, SignalField, restricted_signal
from .exceptions import SchedulerError, SignalDisconnectedError, SignalError
from .scheduling import (
    AsyncioScheduler,
    ImmediateScheduler,
    Scheduler,
    ThreadScheduler,
    get_default_scheduler,
    set_default_scheduler,
)

__all__ = [
    "AsyncioScheduler",
    "AsyncioSchedulerConfig",
    "Connection",
    "ImmediateScheduler",
    "ImmediateSchedulerConfig",
    "ImmutableAttribute",
    "MutableAttribute",
    "RestrictedSignal",
    "Scheduler",
    "SchedulerConfig",
    "SchedulerError",
    "Signal",
    "SignalDisconnectedError",
    "SignalError",
    "SignalField",
    "ThreadScheduler",
    "ThreadSchedulerConfig",
    "get_default_scheduler",
    "identity",
    "immutable",
    "mutable",
    "restricted_signal",
    "set_default_scheduler",
]

__version__ = "0.1.0"
