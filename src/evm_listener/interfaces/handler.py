"""Handler protocols - application code invoked for every decoded log."""

from __future__ import annotations

from typing import Awaitable, Protocol

from evm_listener.models.context import HandlerContext
from evm_listener.models.events import DecodedEvent, RawLog


class Handler(Protocol):
    """One link of a handler chain.

    Signals failure by raising; a raised exception stops the chain for
    this log. May be a plain function or a coroutine function.
    """

    def __call__(
        self, ctx: HandlerContext, log: RawLog, event: DecodedEvent | None
    ) -> Awaitable[None] | None:
        ...


class RawLogHandler(Protocol):
    """Sees the unparsed log only."""

    def __call__(self, ctx: HandlerContext, log: RawLog) -> Awaitable[None] | None:
        ...


class EventHandler(Protocol):
    """Sees the decoded event, typically switching on `event.name`."""

    def __call__(
        self, ctx: HandlerContext, log: RawLog, event: DecodedEvent
    ) -> Awaitable[None] | None:
        ...
