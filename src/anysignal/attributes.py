"""Reactive value cells announcing changes through signals.

Usage:
    volume = mutable(5, set_handler=lambda v: max(0, min(v, 10)))
    volume.changed.connect(lambda new, old: print(f"{old} -> {new}"))
    volume.set(12)  # stored as 10

    # owner keeps set/fire, everyone else only observes
    status, fire_status, set_status = immutable("idle")
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from anysignal.core import Signal, restricted_signal
from anysignal.exceptions import SchedulerError


if TYPE_CHECKING:
    from collections.abc import Callable

    from anysignal.core import RestrictedSignal
    from anysignal.scheduling import Scheduler


type Transform[T] = Callable[..., T]


def identity[T](value: T, *extra: Any) -> T:
    """Default get/set transform: return the value unchanged."""
    return value


class MutableAttribute[T]:
    """Value cell anyone holding it may read, write and observe.

    `changed` is a full signal and fires with `(new, previous, *extra)`.
    """

    __slots__ = ("_get_handler", "_set_handler", "_value", "changed")

    def __init__(
        self,
        initial_value: T,
        get_handler: Transform[T] | None = None,
        set_handler: Transform[T] | None = None,
        scheduler: Scheduler | None = None,
    ) -> None:
        self._value = initial_value
        self._get_handler = get_handler or identity
        self._set_handler = set_handler or identity
        self.changed: Signal = Signal(scheduler=scheduler)

    def get(self, *extra: Any) -> T:
        """Return the current value passed through the get transform."""
        return self._get_handler(self._value, *extra)

    def set(self, new_value: T, silent: bool = False, *extra: Any) -> None:
        """Store new_value passed through the set transform.

        Nothing happens when the transformed value equals the current one.

        Args:
            new_value: Value to store
            silent: Store the value without firing `changed`
            extra: Extra arguments for the set transform, also passed on to
                `changed` handlers
        """
        value = self._set_handler(new_value, *extra)
        previous = self._value
        if value is previous or value == previous:
            return
        self._value = value
        if silent:
            return
        try:
            self.changed.fire(value, previous, *extra)
        except SchedulerError:
            self._value = previous
            raise

    @property
    def value(self) -> T:
        return self.get()

    @value.setter
    def value(self, new_value: T) -> None:
        self.set(new_value)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._value!r})"


class ImmutableAttribute[T]:
    """Value cell others may only read and observe.

    Created by `immutable`, which hands the setter and fire function to the
    owner. `changed` fires with `(value, *extra)`.
    """

    __slots__ = ("_changed", "_get_handler", "_value")

    def __init__(
        self,
        initial_value: T,
        changed: RestrictedSignal,
        get_handler: Transform[T] | None = None,
    ) -> None:
        self._value = initial_value
        self._get_handler = get_handler or identity
        self._changed = changed

    @property
    def changed(self) -> RestrictedSignal:
        """Observe-only signal announcing the current value."""
        return self._changed

    def get(self, *extra: Any) -> T:
        """Return the current value passed through the get transform."""
        return self._get_handler(self._value, *extra)

    @property
    def value(self) -> T:
        return self.get()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._value!r})"


def mutable[T](
    initial_value: T,
    get_handler: Transform[T] | None = None,
    set_handler: Transform[T] | None = None,
    scheduler: Scheduler | None = None,
) -> MutableAttribute[T]:
    """Create a mutable attribute.

    Args:
        initial_value: Stored as is, the set transform is not applied
        get_handler: Transform applied on every read
        set_handler: Transform applied to every written value
        scheduler: Scheduler for the `changed` signal
    """
    return MutableAttribute(initial_value, get_handler, set_handler, scheduler)


def immutable[T](
    initial_value: T,
    get_handler: Transform[T] | None = None,
    scheduler: Scheduler | None = None,
) -> tuple[ImmutableAttribute[T], Callable[..., None], Callable[..., None]]:
    """Create an observe-only attribute plus its private fire and set functions.

    `set(new_value, silent=False)` stores the value when it is not the
    current object and fires unless silent. `fire(*extra)` publishes the
    current value, passed through the get transform, followed by extra.

    Returns:
        Tuple of (attribute, fire, set)
    """
    changed, fire_changed = restricted_signal(scheduler=scheduler)
    attribute = ImmutableAttribute(initial_value, changed, get_handler)

    def fire(*extra: Any) -> None:
        fire_changed(attribute.get(*extra), *extra)

    def set_value(new_value: T, silent: bool = False) -> None:
        if new_value is attribute._value:
            return
        previous = attribute._value
        attribute._value = new_value
        if silent:
            return
        try:
            fire()
        except SchedulerError:
            attribute._value = previous
            raise

    return attribute, fire, set_value

