"""Handler chain - ordered, fail-fast dispatch of decoded logs."""

from __future__ import annotations

import inspect
from collections.abc import Iterable

from evm_listener.errors import HandlerError
from evm_listener.interfaces.handler import EventHandler, Handler, RawLogHandler
from evm_listener.models.context import HandlerContext
from evm_listener.models.events import DecodedEvent, RawLog


def _handler_name(handler: object) -> str:
    return getattr(handler, "__qualname__", None) or type(handler).__name__


async def _call(handler: Handler, ctx: HandlerContext, raw: RawLog, event: DecodedEvent | None) -> None:
    result = handler(ctx, raw, event)
    if inspect.isawaitable(result):
        await result


class HandlerChain:
    """Invokes handlers in registration order.

    The first handler that raises stops the chain for that log; its error is
    re-raised as HandlerError and later handlers do not run.
    """

    def __init__(self, handlers: Iterable[Handler] = ()) -> None:
        self._handlers: list[Handler] = list(handlers)

    def __len__(self) -> int:
        return len(self._handlers)

    def __iter__(self):
        return iter(self._handlers)

    def append(self, handler: Handler) -> None:
        self._handlers.append(handler)

    async def dispatch(self, ctx: HandlerContext, raw: RawLog, event: DecodedEvent | None) -> None:
        for handler in self._handlers:
            name = _handler_name(handler)
            try:
                await _call(handler, ctx, raw, event)
            except Exception as exc:
                raise HandlerError(
                    f"call event handler error: {name}: {exc}", handler=name, log=raw,
                ) from exc


# ── Capability adapters ────────────────────────────────────


def raw_log_handler(fn: RawLogHandler) -> Handler:
    """Adapt a handler that only needs the unparsed log."""

    async def _handler(ctx: HandlerContext, raw: RawLog, event: DecodedEvent | None) -> None:
        result = fn(ctx, raw)
        if inspect.isawaitable(result):
            await result

    _handler.__qualname__ = _handler_name(fn)
    return _handler


def event_handler(fn: EventHandler) -> Handler:
    """Adapt a handler that works on decoded events; logs with no event are passed over."""

    async def _handler(ctx: HandlerContext, raw: RawLog, event: DecodedEvent | None) -> None:
        if event is None:
            return
        result = fn(ctx, raw, event)
        if inspect.isawaitable(result):
            await result

    _handler.__qualname__ = _handler_name(fn)
    return _handler


def log_event(ctx: HandlerContext, raw: RawLog, event: DecodedEvent | None) -> None:
    """Default handler: log every decoded event."""
    if event is None:
        return
    ctx.logger.info(
        "%s at block %d tx %s: indexed=%s outputs=%s",
        event.name, raw.block_number, raw.transaction_hash,
        list(event.indexed_params), event.outputs,
    )
