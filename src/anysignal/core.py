"""Core signal classes.

Usage:
    class Download:
        progress = SignalField[int]()

    download = Download()
    connection = download.progress.connect(lambda percent: print(percent))
    download.progress.fire(42)
    connection.disconnect()

    # only the owner may publish
    finished, fire_finished = restricted_signal()
"""

from __future__ import annotations

import asyncio
import contextlib
from dataclasses import dataclass
import itertools
import logging
import threading
from typing import TYPE_CHECKING, Any, Unpack
from weakref import WeakKeyDictionary

from anysignal.exceptions import SignalDisconnectedError
from anysignal.scheduling import get_default_scheduler


if TYPE_CHECKING:
    from collections.abc import Callable

    from anysignal.scheduling import Scheduler


logger = logging.getLogger(__name__)

type Handler[*Ts] = Callable[[Unpack[Ts]], Any]


@dataclass(frozen=True, slots=True)
class _Slot:
    handler: Callable[..., Any]
    once: bool


class Connection:
    """Handle for one handler connected to one signal.

    Once disconnected, a connection stays inert. There is no way to reconnect it.
    """

    __slots__ = ("_handler", "_key", "_signal")

    def __init__(self, signal: Signal[Any], key: int, handler: Callable[..., Any]) -> None:
        self._signal = signal
        self._key = key
        self._handler = handler

    @property
    def connected(self) -> bool:
        """Whether the handler still receives fires."""
        return self._signal._has_slot(self._key)

    @property
    def handler(self) -> Callable[..., Any]:
        return self._handler

    def disconnect(self) -> None:
        """Stop delivering fires to the handler. Calling it again does nothing."""
        self._signal._remove_slot(self._key)

    def __enter__(self) -> Connection:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.disconnect()

    def __repr__(self) -> str:
        state = "connected" if self.connected else "disconnected"
        return f"<Connection {self._handler!r} {state}>"


class Signal[*Ts]:
    """Event source dispatching fired arguments to connected handlers.

    Handlers are not called by `fire` itself. Each invocation is handed to the
    scheduler, so `fire` returns as soon as every live handler is scheduled.
    Handlers may be plain callables or coroutine functions.
    """

    __slots__ = ("_keys", "_lock", "_scheduler", "_slots", "_waiters", "name")

    def __init__(self, scheduler: Scheduler | None = None, name: str | None = None) -> None:
        """Create an empty signal.

        Args:
            scheduler: Scheduler running the handlers (if None, use the
                default scheduler at fire time)
            name: Optional name used in reprs and log messages
        """
        self.name = name
        self._scheduler = scheduler
        self._keys = itertools.count()
        self._lock = threading.Lock()
        self._slots: dict[int, _Slot] = {}
        self._waiters: dict[int, asyncio.Future[Any]] = {}

    @property
    def scheduler(self) -> Scheduler:
        if self._scheduler is not None:
            return self._scheduler
        return get_default_scheduler()

    def connect(self, handler: Handler[*Ts]) -> Connection:
        """Connect handler to every future fire."""
        return self._add_slot(handler, once=False)

    def once(self, handler: Handler[*Ts]) -> Connection:
        """Connect handler to the next fire only.

        The connection is dropped when the fire reaches it, before the handler
        is scheduled, so the handler runs at most once.
        """
        return self._add_slot(handler, once=True)

    def fire(self, *args: *Ts) -> None:
        """Schedule every live handler with args.

        Raises:
            SchedulerError: The scheduler rejected the work before any handler
                was scheduled
        """
        scheduler = self.scheduler
        scheduler.prepare()
        with self._lock:
            keys = list(self._slots)
        for key in keys:
            with self._lock:
                # disconnects made by earlier handlers apply to this fire too
                slot = self._slots.get(key)
                if slot is None:
                    continue
                if slot.once:
                    del self._slots[key]
            try:
                scheduler.spawn(slot.handler, *args)
            except Exception:
                if slot.once:
                    with self._lock:
                        self._slots[key] = slot
                raise

    def disconnect_all(self) -> None:
        """Drop every connection.

        Invocations already scheduled still run, including the wake-up of a
        `wait` whose fire came first. Other pending `wait` calls fail with
        `SignalDisconnectedError`.
        """
        with self._lock:
            slots, self._slots = self._slots, {}
            # waiters whose fire already happened keep their pending wake-up
            waiters = [
                future for key, future in self._waiters.items() if key in slots
            ]
            self._waiters = {
                key: future for key, future in self._waiters.items() if key not in slots
            }
        if waiters:
            logger.debug("Waking %d waiter(s) of torn down signal %r", len(waiters), self)
        msg = f"{self!r} was torn down while waiting"
        for future in waiters:
            with contextlib.suppress(RuntimeError):
                future.get_loop().call_soon_threadsafe(
                    _fail_future, future, SignalDisconnectedError(msg)
                )

    async def wait(self) -> tuple[*Ts]:
        """Wait for the next fire and return its arguments.

        There is no timeout. Wrap the call in `asyncio.timeout` to bound it.

        Raises:
            SignalDisconnectedError: `disconnect_all` was called before the next fire
        """
        loop = asyncio.get_running_loop()
        future: asyncio.Future[tuple[*Ts]] = loop.create_future()

        def resume(*args: Any) -> None:
            loop.call_soon_threadsafe(_resolve_future, future, args)

        with self._lock:
            key = next(self._keys)
            self._slots[key] = _Slot(resume, once=True)
            self._waiters[key] = future
        try:
            return await future
        finally:
            with self._lock:
                self._slots.pop(key, None)
                self._waiters.pop(key, None)

    def _add_slot(self, handler: Callable[..., Any], once: bool) -> Connection:
        if not callable(handler):
            msg = f"Signal handler must be callable, got {type(handler).__name__}"
            raise TypeError(msg)
        with self._lock:
            key = next(self._keys)
            self._slots[key] = _Slot(handler, once)
        return Connection(self, key, handler)

    def _remove_slot(self, key: int) -> None:
        with self._lock:
            self._slots.pop(key, None)

    def _has_slot(self, key: int) -> bool:
        return key in self._slots

    def __len__(self) -> int:
        return len(self._slots)

    def __bool__(self) -> bool:
        return True

    def __repr__(self) -> str:
        name = f" {self.name!r}" if self.name else ""
        return f"<Signal{name} connections={len(self)}>"


class RestrictedSignal[*Ts]:
    """Observe-only view of a signal.

    Holders can connect and wait, but there is no `fire`. The publishing
    function is handed out once by `restricted_signal`.
    """

    __slots__ = ("_signal",)

    def __init__(self, signal: Signal[*Ts]) -> None:
        self._signal = signal

    def connect(self, handler: Handler[*Ts]) -> Connection:
        """Connect handler to every future fire."""
        return self._signal.connect(handler)

    def once(self, handler: Handler[*Ts]) -> Connection:
        """Connect handler to the next fire only."""
        return self._signal.once(handler)

    async def wait(self) -> tuple[*Ts]:
        """Wait for the next fire and return its arguments."""
        return await self._signal.wait()

    def disconnect_all(self) -> None:
        """Drop every connection of the underlying signal."""
        self._signal.disconnect_all()

    def __len__(self) -> int:
        return len(self._signal)

    def __bool__(self) -> bool:
        return True

    def __repr__(self) -> str:
        return f"<RestrictedSignal of {self._signal!r}>"


def restricted_signal[*Ts](
    scheduler: Scheduler | None = None,
    name: str | None = None,
) -> tuple[RestrictedSignal[*Ts], Callable[[Unpack[Ts]], None]]:
    """Create a signal split into an observe-only view and its fire function.

    Keep the fire function private and hand out the view.
    """
    signal: Signal[*Ts] = Signal(scheduler=scheduler, name=name)
    return RestrictedSignal(signal), signal.fire


class SignalField[*Ts]:
    """Descriptor: define at class level, get a Signal per instance.

    Example:
        class MyClass:
            changed = SignalField[str]()
    """

    __slots__ = ("_name", "_scheduler", "_signals")

    def __init__(self, scheduler: Scheduler | None = None) -> None:
        self._name: str = ""
        self._scheduler = scheduler
        self._signals: WeakKeyDictionary[object, Signal[*Ts]] = WeakKeyDictionary()

    def __set_name__(self, owner: type, name: str) -> None:
        self._name = name

    def __get__(self, obj: object | None, owner: type | None = None) -> Any:
        if obj is None:
            return self
        if obj not in self._signals:
            name = f"{type(obj).__name__}.{self._name}"
            self._signals[obj] = Signal(scheduler=self._scheduler, name=name)
        return self._signals[obj]


def _resolve_future(future: asyncio.Future[Any], args: tuple[Any, ...]) -> None:
    if not future.done():
        future.set_result(args)


def _fail_future(future: asyncio.Future[Any], exc: BaseException) -> None:
    if not future.done():
        future.set_exception(exc)
