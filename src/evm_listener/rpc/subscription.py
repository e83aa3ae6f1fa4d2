"""WebSocket log subscription (eth_subscribe "logs") over aiohttp."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable, Mapping
from typing import Any

import aiohttp

from evm_listener.errors import TransientFetchError
from evm_listener.models.events import RawLog

log = logging.getLogger(__name__)

LogParser = Callable[[Mapping[str, Any]], RawLog]


class WebSocketLogSubscription:
    """One open eth_subscribe stream.

    A reader task forwards every `eth_subscription` notification to `logs`;
    malformed messages and socket errors go to `errors`. `closed` is set
    when the socket is gone, whether through `unsubscribe()` or the remote
    end.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        ws: aiohttp.ClientWebSocketResponse,
        subscription_id: str,
        parse: LogParser,
    ) -> None:
        self.subscription_id = subscription_id
        self.logs: asyncio.Queue[RawLog] = asyncio.Queue()
        self.errors: asyncio.Queue[Exception] = asyncio.Queue()
        self.closed = asyncio.Event()
        self._session = session
        self._ws = ws
        self._parse = parse
        self._released = False
        self._reader = asyncio.create_task(self._read())

    @classmethod
    async def open(
        cls,
        url: str,
        address: str,
        *,
        parse: LogParser,
        timeout_s: int = 20,
    ) -> WebSocketLogSubscription:
        """Connect, send eth_subscribe and wait for the subscription id."""
        session = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=None, sock_connect=timeout_s),
        )
        ws: aiohttp.ClientWebSocketResponse | None = None
        try:
            ws = await session.ws_connect(url, heartbeat=30)
            await ws.send_json({
                "jsonrpc": "2.0",
                "id": 1,
                "method": "eth_subscribe",
                "params": ["logs", {"address": address}],
            })
            reply = await ws.receive_json(timeout=timeout_s)
            if "error" in reply:
                raise TransientFetchError(f"eth_subscribe: RPC error: {reply['error']}")
            subscription_id = reply["result"]
        except TransientFetchError:
            await _close(session, ws)
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError, KeyError, TypeError, ValueError) as exc:
            await _close(session, ws)
            raise TransientFetchError(f"eth_subscribe failed: {exc}") from exc

        log.debug("Subscription %s open for %s", subscription_id, address)
        return cls(session, ws, subscription_id, parse)

    async def _read(self) -> None:
        try:
            async for msg in self._ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    self._on_message(msg.data)
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    self.errors.put_nowait(
                        TransientFetchError(f"websocket error: {self._ws.exception()}")
                    )
        except aiohttp.ClientError as exc:
            self.errors.put_nowait(TransientFetchError(f"websocket read failed: {exc}"))
        finally:
            self.closed.set()

    def _on_message(self, data: str) -> None:
        try:
            message = json.loads(data)
            # replies to our own requests carry an id, not a method
            if message.get("method") != "eth_subscription":
                return
            params = message["params"]
            if params.get("subscription") != self.subscription_id:
                return
            self.logs.put_nowait(self._parse(params["result"]))
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            self.errors.put_nowait(TransientFetchError(f"malformed subscription message: {exc}"))

    async def unsubscribe(self) -> None:
        """Send eth_unsubscribe and close the socket. Safe to call twice."""
        if self._released:
            return
        self._released = True
        try:
            if not self._ws.closed:
                await self._ws.send_json({
                    "jsonrpc": "2.0",
                    "id": 2,
                    "method": "eth_unsubscribe",
                    "params": [self.subscription_id],
                })
        except (aiohttp.ClientError, ConnectionError, RuntimeError) as exc:
            log.debug("eth_unsubscribe for %s not sent: %s", self.subscription_id, exc)
        finally:
            self._reader.cancel()
            await asyncio.gather(self._reader, return_exceptions=True)
            await _close(self._session, self._ws)
            self.closed.set()


async def _close(session: aiohttp.ClientSession, ws: aiohttp.ClientWebSocketResponse | None) -> None:
    if ws is not None and not ws.closed:
        await ws.close()
    await session.close()
