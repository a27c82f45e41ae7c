"""Scheduler configuration."""

from __future__ import annotations

from typing import TYPE_CHECKING, Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field


if TYPE_CHECKING:
    from anysignal.scheduling import (
        AsyncioScheduler,
        ImmediateScheduler,
        ThreadScheduler,
    )


class BaseSchedulerConfig(BaseModel):
    """Base scheduler configuration."""

    type: str = Field(init=False)
    """Scheduler type."""

    log_handler_errors: bool = Field(default=True, title="Log Handler Errors")
    """Whether exceptions raised by handlers get logged."""

    model_config = ConfigDict(use_attribute_docstrings=True, extra="forbid")


class AsyncioSchedulerConfig(BaseSchedulerConfig):
    """Asyncio scheduler configuration.

    Handlers run on the event loop active at fire time.
    """

    type: Literal["asyncio"] = Field("asyncio", init=False)

    def get_scheduler(self) -> AsyncioScheduler:
        """Create asyncio scheduler instance."""
        from anysignal.scheduling import AsyncioScheduler

        return AsyncioScheduler(log_errors=self.log_handler_errors)


class ThreadSchedulerConfig(BaseSchedulerConfig):
    """Thread pool scheduler configuration.

    Handlers run on worker threads. Coroutine handlers get a private loop.
    """

    type: Literal["thread"] = Field("thread", init=False)

    max_workers: int | None = Field(
        default=None,
        gt=0,
        title="Max Workers",
        examples=[4, 16],
    )
    """Maximum number of worker threads (if None, use the executor default)."""

    def get_scheduler(self) -> ThreadScheduler:
        """Create thread scheduler instance."""
        from anysignal.scheduling import ThreadScheduler

        return ThreadScheduler(
            max_workers=self.max_workers,
            log_errors=self.log_handler_errors,
        )


class ImmediateSchedulerConfig(BaseSchedulerConfig):
    """Inline scheduler configuration.

    Handlers run synchronously inside the fire call.
    """

    type: Literal["immediate"] = Field("immediate", init=False)

    def get_scheduler(self) -> ImmediateScheduler:
        """Create immediate scheduler instance."""
        from anysignal.scheduling import ImmediateScheduler

        return ImmediateScheduler(log_errors=self.log_handler_errors)


# Discriminated union of all scheduler configs
SchedulerConfig = Annotated[
    AsyncioSchedulerConfig | ThreadSchedulerConfig | ImmediateSchedulerConfig,
    Field(discriminator="type"),
]
