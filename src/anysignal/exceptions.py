"""Exceptions raised by anysignal."""

from __future__ import annotations


class SignalError(Exception):
    """Base class for all signal errors."""


class SignalDisconnectedError(SignalError):
    """A pending wait was abandoned because the signal was torn down."""


class SchedulerError(SignalError):
    """The scheduler cannot accept new handler invocations."""
