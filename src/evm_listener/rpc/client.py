"""JSON-RPC chain client for Ethereum-compatible nodes.

Height and log queries go over HTTP (httpx); log subscriptions open a
WebSocket (see `evm_listener.rpc.subscription`). Every transport failure or
JSON-RPC error object surfaces as TransientFetchError.
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import Mapping
from typing import Any

import httpx
from eth_utils import decode_hex

from evm_listener.errors import MissingConfiguration, TransientFetchError
from evm_listener.models.events import RawLog
from evm_listener.rpc.subscription import WebSocketLogSubscription

log = logging.getLogger(__name__)


def to_hex_block(height: int) -> str:
    """Return a 0x-prefixed hex block number."""
    return hex(height)


def _to_int(value: Any) -> int:
    if isinstance(value, int):
        return value
    return int(value, 16) if value.startswith("0x") else int(value)


def parse_log(entry: Mapping[str, Any]) -> RawLog:
    """Build a RawLog from an RPC log object (eth_getLogs / eth_subscription)."""
    return RawLog(
        address=entry["address"].lower(),
        topics=tuple(t.lower() for t in entry.get("topics") or ()),
        data=decode_hex(entry.get("data") or "0x"),
        block_number=_to_int(entry["blockNumber"]),
        transaction_hash=(entry.get("transactionHash") or "").lower(),
        log_index=_to_int(entry.get("logIndex") or 0),
    )


class EthRpcClient:
    """Async chain client over JSON-RPC.

    Parameters
    ----------
    url : str
        HTTP endpoint for eth_blockNumber / eth_getLogs.
    ws_url : str
        WebSocket endpoint for eth_subscribe; required only for subscriptions.
    timeout_s : int
        Per-operation timeout in seconds (connect/read/write).
    http_client : httpx.AsyncClient, optional
        Pre-built client (tests pass one with a mock transport).
    """

    def __init__(
        self,
        url: str,
        *,
        ws_url: str = "",
        timeout_s: int = 20,
        max_connections: int = 16,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.url = url
        self.ws_url = ws_url
        self._timeout_s = timeout_s
        self._ids = itertools.count(1)
        self.client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(
                connect=timeout_s,
                read=timeout_s,
                write=timeout_s,
                pool=max(30, timeout_s * 3),
            ),
            limits=httpx.Limits(
                max_connections=max_connections,
                max_keepalive_connections=max(1, max_connections // 2),
            ),
        )

    async def _call(self, method: str, params: list[Any]) -> Any:
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        try:
            r = await self.client.post(self.url, json=payload)
            r.raise_for_status()
            data = r.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise TransientFetchError(f"{method} failed: {exc}") from exc

        if not isinstance(data, dict):
            raise TransientFetchError(f"{method}: unexpected response {data!r}")
        if "error" in data:
            err = data["error"]
            msg = f"{err.get('code')} {err.get('message')}" if isinstance(err, dict) else str(err)
            raise TransientFetchError(f"{method}: RPC error: {msg}")
        return data.get("result")

    async def current_height(self) -> int:
        """Return the latest block number."""
        result = await self._call("eth_blockNumber", [])
        try:
            return _to_int(result)
        except (AttributeError, TypeError, ValueError) as exc:
            raise TransientFetchError(f"eth_blockNumber: bad result {result!r}") from exc

    async def query_logs(self, address: str, from_height: int, to_height: int) -> list[RawLog]:
        """Fetch every log of `address` in the inclusive block range."""
        params = [
            {
                "address": address.lower(),
                "fromBlock": to_hex_block(from_height),
                "toBlock": to_hex_block(to_height),
            }
        ]
        result = await self._call("eth_getLogs", params)
        try:
            logs = [parse_log(entry) for entry in result or []]
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise TransientFetchError(f"eth_getLogs: malformed log: {exc}") from exc
        log.debug("eth_getLogs %s [%d, %d]: %d logs", address, from_height, to_height, len(logs))
        return logs

    async def subscribe_logs(self, address: str) -> WebSocketLogSubscription:
        """Open an eth_subscribe("logs") stream for `address`."""
        if not self.ws_url:
            raise MissingConfiguration("a WebSocket URL is required for log subscriptions")
        return await WebSocketLogSubscription.open(
            self.ws_url, address, timeout_s=self._timeout_s, parse=parse_log,
        )

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self.client.aclose()
