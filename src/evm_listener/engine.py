"""Ingestion engine - registers contracts and runs one unit per contract."""

from __future__ import annotations

import asyncio
import logging
import signal
from collections.abc import Iterable
from pathlib import Path

from evm_listener.abi.catalog import AbiDocument, EventCatalog, parse_catalog
from evm_listener.config import load_handler
from evm_listener.errors import ChainConnectionError, MissingConfiguration, StorageError
from evm_listener.ingestion.contract import Contract
from evm_listener.ingestion.cursor import Cursor
from evm_listener.ingestion.handlers import HandlerChain, log_event
from evm_listener.ingestion.polling import PollingStrategy
from evm_listener.ingestion.subscription import SubscriptionStrategy
from evm_listener.interfaces.client import ChainClient
from evm_listener.interfaces.handler import Handler
from evm_listener.interfaces.store import CursorStore
from evm_listener.interfaces.strategy import IngestionStrategy
from evm_listener.models.config import (
    DEFAULT_POLL_INTERVAL,
    DEFAULT_STEP,
    ChainConfig,
    IngestionMode,
    ListenerConfig,
)
from evm_listener.rpc.client import EthRpcClient
from evm_listener.storage.memory import InMemoryCursorStore
from evm_listener.storage.sqlite import SQLiteCursorStore

log = logging.getLogger(__name__)


class IngestionEngine:
    """Runs every registered contract as an independent background task.

    Contracts are registered before `start()`. `stop()` signals every unit,
    waits for each to reach its next suspension point and exit, releases
    open subscriptions and closes the cursor store.
    """

    def __init__(
        self,
        client: ChainClient,
        *,
        chain: ChainConfig | None = None,
        store: CursorStore | None = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        logger: logging.Logger | None = None,
    ) -> None:
        self._client = client
        self.chain = chain or ChainConfig()
        self._store = store
        self._poll_interval = poll_interval
        self._log = logger or log
        self._owns_client = False
        self._contracts: dict[str, Contract] = {}
        self._strategies: list[IngestionStrategy] = []
        self._tasks: list[asyncio.Task] = []
        self._stop = asyncio.Event()
        self._started = False
        self._stopped = False

    @classmethod
    async def create(
        cls,
        client: ChainClient | None = None,
        *,
        url: str = "",
        ws_url: str = "",
        chain: ChainConfig | None = None,
        timeout_s: int = 20,
        **kwargs,
    ) -> IngestionEngine:
        """Build an engine from a client, or dial one from an endpoint URL.

        The client is verified with a height query before the engine is
        returned. Raises MissingConfiguration when neither a client nor a
        URL is given, ChainConnectionError when the chain cannot be reached.
        """
        owns_client = client is None
        if client is None:
            url = url or (chain.rpc_url if chain else "")
            ws_url = ws_url or (chain.ws_url if chain else "")
            if not url:
                raise MissingConfiguration("either URL or client must be provided")
            client = EthRpcClient(url, ws_url=ws_url, timeout_s=timeout_s)

        try:
            height = await client.current_height()
        except Exception as exc:
            if owns_client:
                await client.aclose()
            raise ChainConnectionError(f"cannot reach chain: {exc}") from exc

        engine = cls(client, chain=chain, **kwargs)
        engine._owns_client = owns_client
        engine._log.info("Connected to %s (chain id %d) at block %d",
                         engine.chain.name, engine.chain.chain_id, height)
        return engine

    @property
    def client(self) -> ChainClient:
        return self._client

    @property
    def contracts(self) -> list[Contract]:
        return list(self._contracts.values())

    @property
    def strategies(self) -> list[IngestionStrategy]:
        return list(self._strategies)

    @property
    def running(self) -> bool:
        return self._started and not self._stopped

    def contract(self, address: str) -> Contract | None:
        return self._contracts.get(address.lower())

    def register(
        self,
        address: str,
        abi: AbiDocument | EventCatalog,
        *,
        handlers: Iterable[Handler] = (),
        start_height: int = 0,
        step: int = DEFAULT_STEP,
        mode: IngestionMode = IngestionMode.POLLING,
        name: str = "",
        end_height: int | None = None,
    ) -> Contract:
        """Register a contract to ingest.

        Raises InvalidSchema when `abi` cannot be parsed, and
        MissingConfiguration for a subscription contract on an RPC client
        without a WebSocket URL. Registering an address twice keeps the
        first registration.
        """
        if self._started:
            raise RuntimeError("contracts must be registered before start()")

        key = address.lower()
        if existing := self._contracts.get(key):
            self._log.warning("Contract %s already registered, ignoring duplicate", address)
            return existing

        mode = IngestionMode(mode)
        if (
            mode == IngestionMode.SUBSCRIPTION
            and isinstance(self._client, EthRpcClient)
            and not self._client.ws_url
        ):
            raise MissingConfiguration(
                f"contract {name or address}: subscription mode needs a WebSocket URL"
            )

        catalog = abi if isinstance(abi, EventCatalog) else parse_catalog(abi)
        contract = Contract(
            address=address,
            catalog=catalog,
            handlers=HandlerChain(handlers),
            cursor=Cursor(start_height, step, end_height),
            mode=mode,
            name=name,
        )
        self._contracts[key] = contract
        self._log.info(
            "Registered %s (%s, %d events, %d handlers)",
            contract.label, contract.mode.value, len(catalog), len(contract.handlers),
        )
        return contract

    def _strategy_for(self, contract: Contract) -> IngestionStrategy:
        if contract.mode == IngestionMode.SUBSCRIPTION:
            return SubscriptionStrategy(
                self._client, contract, self.chain,
                retry_interval=self._poll_interval, logger=self._log,
            )
        return PollingStrategy(
            self._client, contract, self.chain,
            store=self._store, interval=self._poll_interval, logger=self._log,
        )

    async def start(self) -> None:
        """Launch one task per registered contract. Not idempotent.

        Raises StorageError when the cursor store cannot be opened.
        """
        if self._started:
            raise RuntimeError("engine already started")
        if self._store is not None:
            try:
                await self._store.initialize()
            except Exception as exc:
                raise StorageError(f"cannot open cursor store: {exc}") from exc
        self._started = True

        for contract in self._contracts.values():
            strategy = self._strategy_for(contract)
            self._strategies.append(strategy)
            self._tasks.append(
                asyncio.create_task(strategy.run(self._stop), name=f"ingest:{contract.address}")
            )
        self._log.info("Engine started with %d contracts", len(self._tasks))

    async def wait(self) -> None:
        """Wait until every unit has exited (stopped or finished)."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    async def stop(self) -> None:
        """Signal every unit and wait for all of them. No-op before start()."""
        if not self._started or self._stopped:
            return
        self._stopped = True
        self._log.info("Stop requested")
        self._stop.set()

        results = await asyncio.gather(*self._tasks, return_exceptions=True)
        for task, result in zip(self._tasks, results):
            if isinstance(result, BaseException) and not isinstance(result, asyncio.CancelledError):
                self._log.error("Unit %s exited with error: %s", task.get_name(), result)

        if self._store is not None:
            await self._store.close()
        if self._owns_client:
            await self._client.aclose()
        self._log.info("Engine stopped")


async def run_engine(cfg: ListenerConfig) -> None:
    """Entry point for running the listener from configuration."""
    store: CursorStore = SQLiteCursorStore(cfg.db_path) if cfg.db_path else InMemoryCursorStore()
    engine = await IngestionEngine.create(
        chain=cfg.chain,
        timeout_s=cfg.chain.timeout,
        store=store,
        poll_interval=cfg.poll_interval,
    )

    try:
        for c in cfg.contracts:
            handlers = [load_handler(h) for h in c.handlers] or [log_event]
            engine.register(
                c.address,
                Path(c.abi_path),
                handlers=handlers,
                start_height=c.start_block,
                step=c.step,
                mode=c.mode,
                name=c.name,
                end_height=c.end_block,
            )
        await engine.start()
    except Exception:
        await store.close()
        await engine.client.aclose()
        raise

    stop_requested = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_requested.set)
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            pass

    finished = asyncio.ensure_future(engine.wait())
    interrupted = asyncio.ensure_future(stop_requested.wait())
    try:
        await asyncio.wait({finished, interrupted}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        interrupted.cancel()
        await engine.stop()
        finished.cancel()
