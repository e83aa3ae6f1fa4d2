"""Subscription strategy - push-based log stream per contract."""

from __future__ import annotations

import asyncio
import logging

from evm_listener.abi.decoder import decode_log
from evm_listener.errors import DecodeError, HandlerError
from evm_listener.ingestion.contract import Contract
from evm_listener.interfaces.client import ChainClient, LogSubscription
from evm_listener.models.config import DEFAULT_POLL_INTERVAL, ChainConfig, IngestionMode
from evm_listener.models.events import RawLog

log = logging.getLogger(__name__)


class SubscriptionStrategy:
    """Decodes and dispatches each pushed log on its own.

    No batching, no cursor and no replay: a log that fails to decode or
    dispatch is logged and dropped. Stream errors are logged and the stream
    is kept. If the stream closes by itself (or cannot be opened) the
    strategy re-subscribes after `retry_interval` until stopped.
    """

    mode = IngestionMode.SUBSCRIPTION

    def __init__(
        self,
        client: ChainClient,
        contract: Contract,
        chain: ChainConfig | None = None,
        *,
        retry_interval: float = DEFAULT_POLL_INTERVAL,
        logger: logging.Logger | None = None,
    ) -> None:
        self._client = client
        self._contract = contract
        self._chain = chain or ChainConfig()
        self._retry_interval = retry_interval
        self._log = contract.logger(self._chain, logger or log)
        self._ctx = contract.context(self._chain, self._log)
        self.received = 0
        self.dispatched = 0
        self.failed = 0

    @property
    def contract(self) -> Contract:
        return self._contract

    async def handle(self, raw: RawLog) -> bool:
        """Decode and dispatch one log. Returns True if handlers ran to completion."""
        self.received += 1
        try:
            event = decode_log(raw, self._contract.catalog)
            if event is None:
                self._log.debug(
                    "No known event for topic %s at block %d, skipping",
                    raw.topics[0] if raw.topics else "-", raw.block_number,
                )
                return False
            await self._contract.handlers.dispatch(self._ctx, raw, event)
        except (DecodeError, HandlerError) as exc:
            self.failed += 1
            self._log.error(
                "Dropped log of %s at block %d tx %s: %s",
                self._contract.label, raw.block_number, raw.transaction_hash, exc,
            )
            return False
        self.dispatched += 1
        return True

    async def run(self, stop: asyncio.Event) -> None:
        """Keep a subscription open and drain it until `stop` is set."""
        label = self._contract.label
        while not stop.is_set():
            try:
                subscription = await self._client.subscribe_logs(self._contract.address)
            except asyncio.CancelledError:
                self._log.info("Subscription of %s cancelled", label)
                break
            except Exception as exc:
                self._log.error("Subscribe failed for %s: %s", label, exc)
            else:
                self._log.info("Subscribed to logs of %s", label)
                try:
                    await self._consume(subscription, stop)
                except asyncio.CancelledError:
                    self._log.info("Subscription of %s cancelled", label)
                    break
                except Exception as exc:
                    self._log.error("Subscription loop error for %s: %s", label, exc, exc_info=True)
                finally:
                    await subscription.unsubscribe()
                if stop.is_set():
                    break
                self._log.warning(
                    "Subscription of %s closed, re-subscribing in %.1fs", label, self._retry_interval,
                )

            try:
                await asyncio.wait_for(stop.wait(), timeout=self._retry_interval)
            except asyncio.TimeoutError:
                pass
        self._log.info("Unsubscribed from logs of %s", label)

    async def _consume(self, subscription: LogSubscription, stop: asyncio.Event) -> None:
        """Drain one subscription until it closes or `stop` is set."""
        stop_wait = asyncio.ensure_future(stop.wait())
        closed_wait = asyncio.ensure_future(subscription.closed.wait())
        next_log = asyncio.ensure_future(subscription.logs.get())
        next_error = asyncio.ensure_future(subscription.errors.get())
        try:
            while True:
                await asyncio.wait(
                    {stop_wait, closed_wait, next_log, next_error},
                    return_when=asyncio.FIRST_COMPLETED,
                )
                if next_error.done():
                    self._log.error("Subscription error for %s: %s", self._contract.label, next_error.result())
                    next_error = asyncio.ensure_future(subscription.errors.get())
                if next_log.done():
                    await self.handle(next_log.result())
                    next_log = asyncio.ensure_future(subscription.logs.get())
                if stop_wait.done():
                    return
                if closed_wait.done():
                    # deliver what arrived before the transport went away
                    while not subscription.logs.empty():
                        await self.handle(subscription.logs.get_nowait())
                    return
        finally:
            for task in (stop_wait, closed_wait, next_log, next_error):
                task.cancel()
