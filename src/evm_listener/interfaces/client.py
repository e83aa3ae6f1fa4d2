"""ChainClient protocol - the remote node the engine reads logs from."""

from __future__ import annotations

import asyncio
from typing import Protocol

from evm_listener.models.events import RawLog


class LogSubscription(Protocol):
    """An open push stream of logs for one contract address.

    Logs and stream errors arrive on separate queues. `closed` is set once
    the underlying transport is gone, whether by `unsubscribe()` or not.
    """

    logs: asyncio.Queue[RawLog]
    errors: asyncio.Queue[Exception]
    closed: asyncio.Event

    async def unsubscribe(self) -> None:
        """Release the stream. Safe to call more than once."""
        ...


class ChainClient(Protocol):
    """Read-only access to an EVM chain. Shared by all ingestion units."""

    async def current_height(self) -> int:
        """Return the current chain tip height.

        Raises TransientFetchError on RPC/network failure.
        """
        ...

    async def query_logs(self, address: str, from_height: int, to_height: int) -> list[RawLog]:
        """Return all logs emitted by `address` in the inclusive range.

        Logs come back in chain-canonical order (block, then log index).
        Raises TransientFetchError on RPC/network failure.
        """
        ...

    async def subscribe_logs(self, address: str) -> LogSubscription:
        """Open a push stream of new logs emitted by `address`."""
        ...

    async def aclose(self) -> None:
        """Release connections held by the client."""
        ...
