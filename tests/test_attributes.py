"""Tests for mutable and immutable attributes."""

from __future__ import annotations

import asyncio
from unittest.mock import Mock

import pytest

from anysignal import (
    AsyncioScheduler,
    ImmediateScheduler,
    ImmutableAttribute,
    MutableAttribute,
    RestrictedSignal,
    SchedulerError,
    Signal,
    identity,
    immutable,
    mutable,
)


@pytest.fixture
def scheduler():
    """Scheduler running change handlers inline."""
    return ImmediateScheduler()


def test_identity_ignores_extra_arguments():
    """Test the default transform returns its first argument."""
    value = object()
    assert identity(value, 1, 2) is value


def test_mutable_set_then_get(scheduler: ImmediateScheduler):
    """Test a written value is read back unchanged."""
    attribute = mutable(0, scheduler=scheduler)
    attribute.set(5)
    assert attribute.get() == 5
    assert isinstance(attribute, MutableAttribute)


def test_mutable_equal_value_is_ignored(scheduler: ImmediateScheduler):
    """Test writing the current value neither mutates nor notifies."""
    attribute = mutable(0, scheduler=scheduler)
    handler = Mock()
    attribute.changed.connect(handler)

    attribute.set(5)
    attribute.set(5)

    handler.assert_called_once_with(5, 0)


def test_mutable_changed_arguments(scheduler: ImmediateScheduler):
    """Test changed fires with new value, previous value and extras."""
    attribute = mutable("a", scheduler=scheduler)
    handler = Mock()
    attribute.changed.connect(handler)

    attribute.set("b", False, "source", 3)

    handler.assert_called_once_with("b", "a", "source", 3)


def test_mutable_silent_set(scheduler: ImmediateScheduler):
    """Test a silent write stores the value without notifying."""
    attribute = mutable(1, scheduler=scheduler)
    handler = Mock()
    attribute.changed.connect(handler)

    attribute.set(2, silent=True)

    assert attribute.get() == 2
    handler.assert_not_called()


def test_mutable_get_transform_does_not_mutate(scheduler: ImmediateScheduler):
    """Test the get transform applies on read only."""
    attribute = mutable(3, get_handler=lambda value, factor=2: value * factor)

    assert attribute.get() == 6
    assert attribute.get(10) == 30
    assert attribute.get() == 6


def test_mutable_set_transform(scheduler: ImmediateScheduler):
    """Test written values pass through the set transform."""
    attribute = mutable(
        5,
        set_handler=lambda value: max(0, min(value, 10)),
        scheduler=scheduler,
    )
    handler = Mock()
    attribute.changed.connect(handler)

    attribute.set(12)
    attribute.set(42)

    assert attribute.get() == 10
    handler.assert_called_once_with(10, 5)


def test_mutable_set_transform_runs_once_per_write(scheduler: ImmediateScheduler):
    """Test the set transform is evaluated a single time per write."""
    transform = Mock(side_effect=lambda value, *extra: value.upper())
    attribute = mutable("a", set_handler=transform, scheduler=scheduler)

    attribute.set("b", False, "extra")

    transform.assert_called_once_with("b", "extra")
    assert attribute.get() == "B"


def test_mutable_value_property(scheduler: ImmediateScheduler):
    """Test the value property reads and writes through the transforms."""
    attribute = mutable(1, get_handler=lambda value: value + 100, scheduler=scheduler)
    attribute.value = 2
    assert attribute.value == 102


def test_mutable_changed_is_full_signal(scheduler: ImmediateScheduler):
    """Test holders of a mutable attribute may publish on changed."""
    attribute = mutable(0, scheduler=scheduler)
    handler = Mock()
    attribute.changed.connect(handler)

    attribute.changed.fire("anything")

    assert isinstance(attribute.changed, Signal)
    handler.assert_called_once_with("anything")
    assert attribute.get() == 0


async def test_mutable_changed_with_async_dispatch():
    """Test change notifications arrive through the default scheduler."""
    attribute = mutable(0)
    changes: list[tuple[int, int]] = []
    attribute.changed.connect(lambda new, old: changes.append((new, old)))

    attribute.set(5)
    attribute.set(5)
    attribute.set(6)
    for _ in range(3):
        await asyncio.sleep(0)

    assert changes == [(5, 0), (6, 5)]


def test_immutable_set_then_get(scheduler: ImmediateScheduler):
    """Test the owner setter updates the value."""
    attribute, _fire, set_value = immutable(10, scheduler=scheduler)
    set_value(20)
    assert attribute.get() == 20
    assert isinstance(attribute, ImmutableAttribute)


def test_immutable_has_no_external_mutation(scheduler: ImmediateScheduler):
    """Test holders can observe but neither write nor publish."""
    attribute, _fire, _set = immutable(10, scheduler=scheduler)

    assert not hasattr(attribute, "set")
    assert not hasattr(attribute, "fire")
    assert isinstance(attribute.changed, RestrictedSignal)
    assert not hasattr(attribute.changed, "fire")
    with pytest.raises(AttributeError):
        attribute.value = 11  # type: ignore[misc]
    with pytest.raises(AttributeError):
        attribute.set = lambda value: None  # type: ignore[method-assign]


def test_immutable_set_fires_transformed_value(scheduler: ImmediateScheduler):
    """Test set publishes the current value through the get transform."""
    attribute, _fire, set_value = immutable(1, get_handler=lambda value: value * 10, scheduler=scheduler)
    handler = Mock()
    attribute.changed.connect(handler)

    set_value(2)

    handler.assert_called_once_with(20)
    assert attribute.get() == 20


def test_immutable_set_compares_identity(scheduler: ImmediateScheduler):
    """Test only the same object is treated as unchanged."""
    items = [1]
    attribute, _fire, set_value = immutable(items, scheduler=scheduler)
    handler = Mock()
    attribute.changed.connect(handler)

    set_value(items)
    handler.assert_not_called()

    equal_copy = [1]
    set_value(equal_copy)
    handler.assert_called_once_with(equal_copy)
    assert attribute.get() is equal_copy


def test_immutable_silent_set(scheduler: ImmediateScheduler):
    """Test a silent owner write does not notify."""
    attribute, _fire, set_value = immutable("idle", scheduler=scheduler)
    handler = Mock()
    attribute.changed.connect(handler)

    set_value("busy", silent=True)

    assert attribute.get() == "busy"
    handler.assert_not_called()


def test_immutable_fire_rebroadcasts(scheduler: ImmediateScheduler):
    """Test the owner may republish the current state with extras."""
    attribute, fire, _set = immutable("ready", scheduler=scheduler)
    handler = Mock()
    attribute.changed.connect(handler)

    fire()
    fire("reason")

    assert handler.call_args_list[0].args == ("ready",)
    assert handler.call_args_list[1].args == ("ready", "reason")
    assert attribute.get() == "ready"


def test_mutable_positional_silent_flag(scheduler: ImmediateScheduler):
    """Test a positional True after the value marks the write silent."""
    transform = Mock(side_effect=lambda value, *extra: value)
    attribute = mutable(0, set_handler=transform, scheduler=scheduler)
    handler = Mock()
    attribute.changed.connect(handler)

    attribute.set(5, True)

    assert attribute.get() == 5
    transform.assert_called_once_with(5)
    handler.assert_not_called()


def test_mutable_with_default_scheduler_outside_event_loop():
    """Test plain synchronous code can write and get notified."""
    attribute = mutable(0)
    changes: list[tuple[int, int]] = []
    attribute.changed.connect(lambda new, old: changes.append((new, old)))

    attribute.set(5)
    attribute.set(5)

    assert attribute.get() == 5
    assert changes == [(5, 0)]


def test_rejected_notification_keeps_previous_value():
    """Test a write is rolled back when its change can not be scheduled."""
    loop = asyncio.new_event_loop()
    loop.close()
    attribute = mutable(0, scheduler=AsyncioScheduler(loop=loop))
    attribute.changed.connect(Mock())

    with pytest.raises(SchedulerError):
        attribute.set(5)

    assert attribute.get() == 0

    immutable_attribute, _fire, set_value = immutable(1, scheduler=AsyncioScheduler(loop=loop))
    with pytest.raises(SchedulerError):
        set_value(2)
    assert immutable_attribute.get() == 1


def test_immutable_changed_can_not_be_replaced(scheduler: ImmediateScheduler):
    """Test holders can not rebind the change signal."""
    attribute, fire, _set = immutable("a", scheduler=scheduler)
    handler = Mock()
    attribute.changed.connect(handler)

    with pytest.raises(AttributeError):
        attribute.changed = Signal()  # type: ignore[misc]

    fire()
    handler.assert_called_once_with("a")
