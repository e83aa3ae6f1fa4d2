"""Polling strategy - cursor-driven eth_getLogs with catch-up.

Each tick walks the state machine

    Idle -> RangeComputed -> Fetched -> {AllDispatched | PartialFailure}

and the cursor only advances after a range went through the handler chain
without a single decode or handler error. A failed range is fetched and
replayed in full on the next tick, so delivery is at-least-once.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

from evm_listener.abi.catalog import EventCatalog
from evm_listener.abi.decoder import decode_log
from evm_listener.errors import DecodeError, HandlerError, TransientFetchError
from evm_listener.ingestion.contract import Contract
from evm_listener.ingestion.handlers import HandlerChain
from evm_listener.interfaces.client import ChainClient
from evm_listener.interfaces.store import CursorStore
from evm_listener.models.config import DEFAULT_POLL_INTERVAL, ChainConfig, IngestionMode
from evm_listener.models.context import HandlerContext
from evm_listener.models.events import RawLog
from evm_listener.models.records import BatchResult, BatchStatus, PollState

log = logging.getLogger(__name__)


async def process_batch(
    logs: Sequence[RawLog],
    catalog: EventCatalog,
    handlers: HandlerChain,
    ctx: HandlerContext,
) -> BatchResult:
    """Decode and dispatch `logs` in order, stopping at the first failure.

    Logs without a known event are skipped and never reach a handler.
    Never raises for decode or handler errors; the outcome is returned.
    """
    dispatched = 0
    skipped = 0
    for raw in logs:
        try:
            event = decode_log(raw, catalog)
            if event is None:
                skipped += 1
                ctx.logger.debug(
                    "No known event for topic %s at block %d, skipping",
                    raw.topics[0] if raw.topics else "-", raw.block_number,
                )
                continue
            await handlers.dispatch(ctx, raw, event)
        except (DecodeError, HandlerError) as exc:
            return BatchResult(
                status=BatchStatus.PARTIAL_FAILURE,
                logs=len(logs),
                dispatched=dispatched,
                skipped=skipped,
                error=exc,
                failed_log=raw,
            )
        dispatched += 1
        ctx.logger.debug("Dispatched %s at block %d", event.name, raw.block_number)

    return BatchResult(
        status=BatchStatus.ALL_DISPATCHED,
        logs=len(logs),
        dispatched=dispatched,
        skipped=skipped,
    )


class PollingStrategy:
    """Polls one contract's logs on a fixed interval.

    The strategy is the cursor's only writer. When a CursorStore is given,
    the cursor resumes from the stored height on start and every advance is
    saved.
    """

    mode = IngestionMode.POLLING

    def __init__(
        self,
        client: ChainClient,
        contract: Contract,
        chain: ChainConfig | None = None,
        *,
        store: CursorStore | None = None,
        interval: float = DEFAULT_POLL_INTERVAL,
        logger: logging.Logger | None = None,
    ) -> None:
        self._client = client
        self._contract = contract
        self._chain = chain or ChainConfig()
        self._store = store
        self._interval = interval
        self._log = contract.logger(self._chain, logger or log)
        self._ctx = contract.context(self._chain, self._log)
        self.last_state = PollState.IDLE
        self.last_result: BatchResult | None = None

    @property
    def contract(self) -> Contract:
        return self._contract

    async def resume(self) -> None:
        """Fast-forward the cursor to the persisted height, if it is ahead."""
        if self._store is None:
            return
        stored = await self._store.load(self._contract.address)
        if stored is not None and self._contract.cursor.restore(stored):
            self._log.info("Restored cursor for %s: block %d", self._contract.label, stored)

    async def tick(self) -> PollState:
        """Run one polling step and return the state it ended in."""
        self.last_state = self._tick_state(await self._tick())
        return self.last_state

    def _tick_state(self, state: PollState) -> PollState:
        if state == PollState.ALL_DISPATCHED and self._contract.cursor.finished:
            return PollState.FINISHED
        return state

    async def _tick(self) -> PollState:
        contract = self._contract
        cursor = contract.cursor
        if cursor.finished:
            return PollState.FINISHED

        try:
            tip = await self._client.current_height()
        except TransientFetchError as exc:
            self._log.warning("Height query failed for %s: %s", contract.label, exc)
            return PollState.IDLE

        block_range = cursor.next_range(tip)
        if block_range is None:
            return PollState.IDLE
        from_height, to_height = block_range
        self.last_state = PollState.RANGE_COMPUTED

        try:
            logs = await self._client.query_logs(contract.address, from_height, to_height)
        except TransientFetchError as exc:
            self._log.warning(
                "Log fetch failed for %s [%d, %d]: %s",
                contract.label, from_height, to_height, exc,
            )
            return PollState.RANGE_COMPUTED
        self.last_state = PollState.FETCHED

        logs = sorted(logs, key=lambda raw: raw.position)
        result = await process_batch(logs, contract.catalog, contract.handlers, self._ctx)
        self.last_result = result
        if not result.ok:
            failed = result.failed_log
            self._log.error(
                "Range [%d, %d] of %s aborted at block %s tx %s: %s",
                from_height, to_height, contract.label,
                failed.block_number if failed else "?",
                failed.transaction_hash if failed else "?",
                result.error,
            )
            return PollState.PARTIAL_FAILURE

        cursor.advance(to_height)
        self._log.info(
            "Processed %s [%d, %d]: %d logs, %d dispatched, %d skipped",
            contract.label, from_height, to_height,
            result.logs, result.dispatched, result.skipped,
        )
        await self._save()
        return PollState.ALL_DISPATCHED

    async def _save(self) -> None:
        if self._store is None:
            return
        height = self._contract.cursor.confirmed_height
        try:
            await self._store.save(self._contract.address, height)
        except Exception as exc:
            self._log.error("Failed to save cursor %d for %s: %s", height, self._contract.label, exc)

    async def run(self, stop: asyncio.Event) -> None:
        """Tick until `stop` is set or the contract's end block is passed."""
        try:
            await self.resume()
        except Exception as exc:
            self._log.error("Could not load stored cursor for %s: %s", self._contract.label, exc)

        self._log.info(
            "Polling %s from block %d every %.1fs",
            self._contract.label, self._contract.cursor.confirmed_height, self._interval,
        )
        while not stop.is_set():
            try:
                if await self.tick() == PollState.FINISHED:
                    self._log.info(
                        "Reached end block %s for %s, polling finished",
                        self._contract.cursor.end_height, self._contract.label,
                    )
                    return
            except asyncio.CancelledError:
                self._log.info("Polling of %s cancelled", self._contract.label)
                break
            except Exception as exc:
                self._log.error("Polling error for %s: %s", self._contract.label, exc, exc_info=True)

            try:
                await asyncio.wait_for(stop.wait(), timeout=self._interval)
            except asyncio.TimeoutError:
                pass
