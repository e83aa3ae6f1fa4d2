"""WebSocket eth_subscribe client against a local aiohttp server."""

from __future__ import annotations

import asyncio
import json

import pytest
from aiohttp import web

from evm_listener.errors import TransientFetchError
from evm_listener.rpc.client import EthRpcClient, parse_log
from evm_listener.rpc.subscription import WebSocketLogSubscription

from tests.conftest import wait_until
from tests.factories import CONTRACT, make_rpc_log, make_token_created_log

WS_PORT = 9231
SUBSCRIPTION_ID = "0x9cef478923ff08bf67fde6c64013158d"
CLOSE = object()


class NodeState:
    """What the fake node received, and what it sends after subscribing."""

    def __init__(self) -> None:
        self.received: list[dict] = []
        self.after_subscribe: list = []
        self.reject_subscribe = False


def notification(entry: dict, subscription: str = SUBSCRIPTION_ID) -> dict:
    return {
        "jsonrpc": "2.0",
        "method": "eth_subscription",
        "params": {"subscription": subscription, "result": entry},
    }


@pytest.fixture
async def node():
    """Local WebSocket JSON-RPC node at ws://127.0.0.1:{WS_PORT}/ws."""
    state = NodeState()

    async def handle_ws(request):
        ws = web.WebSocketResponse()
        await ws.prepare(request)
        async for msg in ws:
            message = json.loads(msg.data)
            state.received.append(message)
            if message["method"] != "eth_subscribe":
                continue
            if state.reject_subscribe:
                await ws.send_json({"jsonrpc": "2.0", "id": message["id"],
                                    "error": {"code": -32601, "message": "notifications not supported"}})
                continue
            await ws.send_json({"jsonrpc": "2.0", "id": message["id"], "result": SUBSCRIPTION_ID})
            for item in state.after_subscribe:
                if item is CLOSE:
                    await ws.close()
                elif isinstance(item, str):
                    await ws.send_str(item)
                else:
                    await ws.send_json(item)
        return ws

    app = web.Application()
    app.router.add_get("/ws", handle_ws)

    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "127.0.0.1", WS_PORT)
    await site.start()
    yield f"ws://127.0.0.1:{WS_PORT}/ws", state
    await runner.cleanup()


async def open_subscription(url: str) -> WebSocketLogSubscription:
    return await WebSocketLogSubscription.open(url, CONTRACT, parse=parse_log, timeout_s=5)


async def test_subscribe_sends_logs_filter(node):
    url, state = node
    sub = await open_subscription(url)
    try:
        assert sub.subscription_id == SUBSCRIPTION_ID
        assert state.received[0]["method"] == "eth_subscribe"
        assert state.received[0]["params"] == ["logs", {"address": CONTRACT}]
    finally:
        await sub.unsubscribe()


async def test_notifications_arrive_as_raw_logs(node):
    url, state = node
    raw = make_token_created_log(block_number=900, log_index=2)
    state.after_subscribe = [notification(make_rpc_log(raw))]

    sub = await open_subscription(url)
    try:
        received = await asyncio.wait_for(sub.logs.get(), timeout=2)
    finally:
        await sub.unsubscribe()
    assert received == raw


async def test_foreign_subscription_ids_are_ignored(node):
    url, state = node
    ours = make_token_created_log(block_number=2)
    state.after_subscribe = [
        notification(make_rpc_log(make_token_created_log(block_number=1)), subscription="0xother"),
        notification(make_rpc_log(ours)),
    ]

    sub = await open_subscription(url)
    try:
        assert await asyncio.wait_for(sub.logs.get(), timeout=2) == ours
        assert sub.logs.empty()
    finally:
        await sub.unsubscribe()


async def test_malformed_message_goes_to_error_channel(node):
    url, state = node
    state.after_subscribe = ["{not json", notification({"topics": []})]

    sub = await open_subscription(url)
    try:
        first = await asyncio.wait_for(sub.errors.get(), timeout=2)
        second = await asyncio.wait_for(sub.errors.get(), timeout=2)
    finally:
        await sub.unsubscribe()
    assert isinstance(first, TransientFetchError)
    assert isinstance(second, TransientFetchError)
    assert sub.logs.empty()


async def test_unsubscribe_releases_stream(node):
    url, state = node
    sub = await open_subscription(url)

    await sub.unsubscribe()
    await sub.unsubscribe()

    assert sub.closed.is_set()
    await wait_until(lambda: len(state.received) == 2)
    methods = [m["method"] for m in state.received]
    assert methods == ["eth_subscribe", "eth_unsubscribe"]
    assert state.received[1]["params"] == [SUBSCRIPTION_ID]


async def test_remote_close_sets_closed(node):
    url, state = node
    state.after_subscribe = [CLOSE]

    sub = await open_subscription(url)
    await asyncio.wait_for(sub.closed.wait(), timeout=2)
    await sub.unsubscribe()


async def test_rejected_subscription_raises(node):
    url, state = node
    state.reject_subscribe = True
    with pytest.raises(TransientFetchError, match="notifications not supported"):
        await open_subscription(url)


async def test_unreachable_node_raises():
    with pytest.raises(TransientFetchError):
        await WebSocketLogSubscription.open(
            "ws://127.0.0.1:1/ws", CONTRACT, parse=parse_log, timeout_s=2,
        )


async def test_client_subscribe_logs_uses_ws_url(node):
    url, state = node
    raw = make_token_created_log(block_number=5)
    state.after_subscribe = [notification(make_rpc_log(raw))]
    client = EthRpcClient("http://127.0.0.1:1", ws_url=url)
    try:
        sub = await client.subscribe_logs(CONTRACT)
        try:
            await wait_until(lambda: not sub.logs.empty())
            assert sub.logs.get_nowait() == raw
        finally:
            await sub.unsubscribe()
    finally:
        await client.aclose()
