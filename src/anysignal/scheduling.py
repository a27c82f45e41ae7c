"""Schedulers that run signal handlers independently of the firing code.

A signal never calls its handlers directly. Every invocation is handed to a
scheduler, which decides where and when it runs and makes sure a failing
handler can not break the code that fired the signal.
"""

from __future__ import annotations

import abc
import asyncio
import concurrent.futures
import inspect
import logging
from typing import TYPE_CHECKING, Any

from anysignal.exceptions import SchedulerError


if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable


logger = logging.getLogger(__name__)

type ErrorCallback = Callable[[Callable[..., Any], BaseException], None]


class Scheduler(abc.ABC):
    """Base class for handler schedulers.

    Subclasses implement `spawn`. The base class provides the error boundary
    every invocation runs behind.
    """

    def __init__(
        self,
        on_error: ErrorCallback | None = None,
        log_errors: bool = True,
    ) -> None:
        """Create the scheduler.

        Args:
            on_error: Optional callback receiving (handler, exception) for
                every failed invocation
            log_errors: Whether failed invocations get logged
        """
        self.on_error = on_error
        self.log_errors = log_errors

    @abc.abstractmethod
    def spawn(self, handler: Callable[..., Any], *args: Any) -> None:
        """Run handler with args without blocking the caller."""

    def prepare(self) -> None:
        """Raise SchedulerError if spawn can not accept work right now.

        Called by a signal before it touches any connection, so a rejected
        fire leaves the signal unchanged.
        """

    def _run_inline(self, handler: Callable[..., Any], args: tuple[Any, ...]) -> None:
        result = self._call(handler, args)
        if not inspect.isawaitable(result):
            return
        if inspect.iscoroutine(result):
            result.close()
        msg = f"Coroutine handler {handler!r} needs an event loop scheduler"
        self._report(handler, SchedulerError(msg))

    def _call(self, handler: Callable[..., Any], args: tuple[Any, ...]) -> Any:
        try:
            return handler(*args)
        except Exception as e:  # noqa: BLE001
            self._report(handler, e)
            return None

    def _report(self, handler: Callable[..., Any], exc: BaseException) -> None:
        if self.log_errors:
            logger.error("Signal handler %r failed", handler, exc_info=exc)
        if self.on_error is None:
            return
        try:
            self.on_error(handler, exc)
        except Exception:
            logger.exception("Error callback %r failed", self.on_error)


class AsyncioScheduler(Scheduler):
    """Schedule handlers on an asyncio event loop.

    Plain handlers run as loop callbacks, coroutine handlers become tasks.
    Without an explicit loop, the loop running at fire time is used. When no
    loop is running, plain handlers run inline and coroutine handlers are
    reported as failed.
    """

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop | None = None,
        on_error: ErrorCallback | None = None,
        log_errors: bool = True,
    ) -> None:
        super().__init__(on_error=on_error, log_errors=log_errors)
        self._loop = loop
        self._tasks: set[asyncio.Task[Any]] = set()

    def _get_loop(self) -> asyncio.AbstractEventLoop | None:
        if self._loop is not None:
            if self._loop.is_closed():
                msg = "Event loop bound to scheduler is closed"
                raise SchedulerError(msg)
            return self._loop
        try:
            return asyncio.get_running_loop()
        except RuntimeError:
            return None

    def prepare(self) -> None:
        self._get_loop()

    def spawn(self, handler: Callable[..., Any], *args: Any) -> None:
        loop = self._get_loop()
        if loop is None:
            # synchronous caller, nothing to hand the invocation to
            self._run_inline(handler, args)
            return
        loop.call_soon_threadsafe(self._run, loop, handler, args)

    def _run(
        self,
        loop: asyncio.AbstractEventLoop,
        handler: Callable[..., Any],
        args: tuple[Any, ...],
    ) -> None:
        result = self._call(handler, args)
        if not inspect.isawaitable(result):
            return
        task = asyncio.ensure_future(result, loop=loop)
        self._tasks.add(task)
        task.add_done_callback(lambda t: self._on_task_done(handler, t))

    def _on_task_done(self, handler: Callable[..., Any], task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        if (exc := task.exception()) is not None:
            self._report(handler, exc)

    @property
    def pending(self) -> int:
        """Number of coroutine handlers still running."""
        return len(self._tasks)


class ThreadScheduler(Scheduler):
    """Run handlers on a thread pool.

    Coroutine handlers get their own event loop inside the worker thread.
    """

    def __init__(
        self,
        max_workers: int | None = None,
        on_error: ErrorCallback | None = None,
        log_errors: bool = True,
    ) -> None:
        super().__init__(on_error=on_error, log_errors=log_errors)
        self.max_workers = max_workers
        self.executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=self.max_workers, thread_name_prefix="anysignal"
        )
        self._closed = False

    def prepare(self) -> None:
        if self._closed:
            msg = "Thread scheduler has been shut down"
            raise SchedulerError(msg)

    def spawn(self, handler: Callable[..., Any], *args: Any) -> None:
        try:
            self.executor.submit(self._run, handler, args)
        except RuntimeError as e:
            msg = "Thread scheduler has been shut down"
            raise SchedulerError(msg) from e

    def _run(self, handler: Callable[..., Any], args: tuple[Any, ...]) -> None:
        result = self._call(handler, args)
        if not inspect.isawaitable(result):
            return
        try:
            asyncio.run(_await(result))
        except Exception as e:  # noqa: BLE001
            self._report(handler, e)

    def shutdown(self, wait: bool = True) -> None:
        """Shutdown the executor, optionally waiting for running handlers."""
        self._closed = True
        self.executor.shutdown(wait=wait)

    def __enter__(self) -> ThreadScheduler:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.shutdown()


class ImmediateScheduler(Scheduler):
    """Run handlers inline, inside the fire call.

    Useful for synchronous code and tests. Handlers still run behind the
    error boundary, but a slow handler delays the firer.
    """

    def spawn(self, handler: Callable[..., Any], *args: Any) -> None:
        self._run_inline(handler, args)


async def _await(awaitable: Awaitable[Any]) -> Any:
    return await awaitable


_default_scheduler: Scheduler = AsyncioScheduler()


def get_default_scheduler() -> Scheduler:
    """Return the scheduler used by signals created without one."""
    return _default_scheduler


def set_default_scheduler(scheduler: Scheduler) -> Scheduler:
    """Replace the default scheduler and return the previous one."""
    global _default_scheduler
    previous = _default_scheduler
    _default_scheduler = scheduler
    return previous
