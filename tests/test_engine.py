"""IngestionEngine construction, registration and lifecycle."""

from __future__ import annotations

import asyncio
import logging

import pytest

from evm_listener.contracts.token_factory import TOKEN_FACTORY_ABI
from evm_listener.engine import IngestionEngine, run_engine
from evm_listener.errors import (
    ChainConnectionError,
    InvalidSchema,
    MissingConfiguration,
    StorageError,
)
from evm_listener.ingestion.polling import PollingStrategy
from evm_listener.ingestion.subscription import SubscriptionStrategy
from evm_listener.models.config import IngestionMode
from evm_listener.rpc.client import EthRpcClient
from evm_listener.storage.sqlite import SQLiteCursorStore

from tests.conftest import make_test_config, wait_until
from tests.factories import CONTRACT, TOKEN, make_fee_updated_log, make_token_created_log
from tests.mocks import RecordingHandler


# ── Construction ──────────────────────────────────────────────────


async def test_create_requires_client_or_url():
    with pytest.raises(MissingConfiguration, match="either URL or client"):
        await IngestionEngine.create()


async def test_create_verifies_client(mock_client):
    mock_client.height_errors = 1
    with pytest.raises(ChainConnectionError):
        await IngestionEngine.create(mock_client)


async def test_create_with_unreachable_url():
    with pytest.raises(ChainConnectionError):
        await IngestionEngine.create(url="http://127.0.0.1:1", timeout_s=2)


async def test_create_with_client(mock_client, chain):
    mock_client.height = 42
    engine = await IngestionEngine.create(mock_client, chain=chain, poll_interval=0.01)
    assert engine.client is mock_client
    assert engine.chain.name == "anvil"
    assert mock_client.height_calls == 1


# ── Registration ──────────────────────────────────────────────────


def test_register_builds_contract(mock_client):
    engine = IngestionEngine(mock_client)
    contract = engine.register(
        CONTRACT, TOKEN_FACTORY_ABI, start_height=10, step=25, name="factory", end_height=99,
    )
    assert contract.name == "factory"
    assert len(contract.catalog) == 6
    assert contract.cursor.confirmed_height == 10
    assert contract.cursor.step == 25
    assert contract.cursor.end_height == 99
    assert engine.contract(CONTRACT.lower()) is contract


def test_register_invalid_abi_raises(mock_client):
    engine = IngestionEngine(mock_client)
    with pytest.raises(InvalidSchema):
        engine.register(CONTRACT, "not an abi")
    assert engine.contracts == []


def test_duplicate_registration_keeps_first(mock_client, caplog):
    engine = IngestionEngine(mock_client)
    first = engine.register(CONTRACT, TOKEN_FACTORY_ABI, name="first")
    with caplog.at_level(logging.WARNING):
        second = engine.register(CONTRACT.lower(), "[]", name="second")
    assert second is first
    assert [c.name for c in engine.contracts] == ["first"]
    assert "already registered" in caplog.text


async def test_register_after_start_is_rejected(mock_client):
    engine = IngestionEngine(mock_client, poll_interval=0.01)
    await engine.start()
    try:
        with pytest.raises(RuntimeError):
            engine.register(TOKEN, TOKEN_FACTORY_ABI)
    finally:
        await engine.stop()


# ── Lifecycle ─────────────────────────────────────────────────────


async def test_start_is_not_idempotent(mock_client):
    engine = IngestionEngine(mock_client, poll_interval=0.01)
    await engine.start()
    try:
        with pytest.raises(RuntimeError):
            await engine.start()
    finally:
        await engine.stop()


async def test_stop_before_start_is_a_no_op(mock_client):
    engine = IngestionEngine(mock_client)
    await engine.stop()
    assert not engine.running
    assert not mock_client.closed


async def test_engine_runs_one_unit_per_contract(mock_client):
    mock_client.height = 30
    mock_client.add_logs(make_token_created_log(block_number=12))
    polled = RecordingHandler()
    pushed = RecordingHandler()

    engine = IngestionEngine(mock_client, poll_interval=0.01)
    engine.register(CONTRACT, TOKEN_FACTORY_ABI, handlers=[polled], name="factory")
    engine.register(
        TOKEN, TOKEN_FACTORY_ABI, handlers=[pushed], mode=IngestionMode.SUBSCRIPTION, name="token",
    )
    await engine.start()
    assert engine.running
    assert {type(s) for s in engine.strategies} == {PollingStrategy, SubscriptionStrategy}

    await wait_until(lambda: polled.blocks == [12])
    await wait_until(lambda: len(mock_client.subscriptions) == 1)
    mock_client.subscriptions[0].push(make_fee_updated_log(block_number=31, address=TOKEN))
    await wait_until(lambda: pushed.blocks == [31])

    await engine.stop()

    assert not engine.running
    assert mock_client.subscriptions[0].unsubscribe_calls == 1
    assert engine.contract(CONTRACT).cursor.confirmed_height == 31


async def test_stop_waits_for_every_unit(mock_client):
    engine = IngestionEngine(mock_client, poll_interval=5)
    engine.register(CONTRACT, TOKEN_FACTORY_ABI)
    engine.register(TOKEN, TOKEN_FACTORY_ABI, mode=IngestionMode.SUBSCRIPTION)
    await engine.start()
    await wait_until(lambda: len(mock_client.subscriptions) == 1)

    await asyncio.wait_for(engine.stop(), timeout=2)

    assert all(task.done() for task in engine._tasks)
    await engine.stop()


async def test_wait_returns_when_all_units_finish(mock_client):
    mock_client.height = 1_000
    engine = IngestionEngine(mock_client, poll_interval=0.01)
    engine.register(CONTRACT, TOKEN_FACTORY_ABI, step=100, end_height=250)
    await engine.start()

    await asyncio.wait_for(engine.wait(), timeout=2)

    assert engine.contract(CONTRACT).cursor.confirmed_height == 251
    await engine.stop()


async def test_cursor_store_survives_restart(mock_client, tmp_path):
    db_path = str(tmp_path / "cursors.db")
    mock_client.height = 120

    engine = IngestionEngine(mock_client, store=SQLiteCursorStore(db_path), poll_interval=0.01)
    engine.register(CONTRACT, TOKEN_FACTORY_ABI, start_height=100)
    await engine.start()
    await wait_until(lambda: engine.contract(CONTRACT).cursor.confirmed_height == 121)
    await engine.stop()

    mock_client.height = 130
    restarted = IngestionEngine(mock_client, store=SQLiteCursorStore(db_path), poll_interval=0.01)
    restarted.register(CONTRACT, TOKEN_FACTORY_ABI, start_height=100)
    await restarted.start()
    await wait_until(lambda: restarted.contract(CONTRACT).cursor.confirmed_height == 131)
    await restarted.stop()

    assert (CONTRACT, 121, 130) in mock_client.query_calls
    assert [c for c in mock_client.query_calls if c[1] == 100] == [(CONTRACT, 100, 120)]


async def test_caller_client_left_open_on_stop(mock_client):
    engine = await IngestionEngine.create(mock_client, poll_interval=0.01)
    await engine.start()
    await engine.stop()
    assert not mock_client.closed


# ── Setup failures ────────────────────────────────────────────────


async def test_subscription_without_ws_url_is_rejected():
    client = EthRpcClient("http://127.0.0.1:8545")
    try:
        engine = IngestionEngine(client)
        with pytest.raises(MissingConfiguration, match="WebSocket URL"):
            engine.register(CONTRACT, TOKEN_FACTORY_ABI, mode=IngestionMode.SUBSCRIPTION, name="factory")
        assert engine.contracts == []

        engine.register(CONTRACT, TOKEN_FACTORY_ABI)
        assert len(engine.contracts) == 1
    finally:
        await client.aclose()


async def test_subscription_with_ws_url_is_accepted():
    client = EthRpcClient("http://127.0.0.1:8545", ws_url="ws://127.0.0.1:8546")
    try:
        engine = IngestionEngine(client)
        contract = engine.register(CONTRACT, TOKEN_FACTORY_ABI, mode=IngestionMode.SUBSCRIPTION)
        assert contract.mode == IngestionMode.SUBSCRIPTION
    finally:
        await client.aclose()


def unwritable_db_path(tmp_path) -> str:
    """A db path whose parent directory is a regular file."""
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("")
    return str(blocker / "cursors.db")


async def test_store_open_failure_raises_storage_error(mock_client, tmp_path):
    engine = IngestionEngine(mock_client, store=SQLiteCursorStore(unwritable_db_path(tmp_path)))
    engine.register(CONTRACT, TOKEN_FACTORY_ABI)

    with pytest.raises(StorageError, match="cursor store"):
        await engine.start()

    assert not engine.running
    assert engine.strategies == []


async def test_run_engine_closes_client_when_start_fails(mock_client, tmp_path, monkeypatch):
    async def create(cls, client=None, *, chain=None, timeout_s=20, **kwargs):
        return cls(mock_client, chain=chain, **kwargs)

    monkeypatch.setattr(IngestionEngine, "create", classmethod(create))
    cfg = make_test_config(db_path=unwritable_db_path(tmp_path))

    with pytest.raises(StorageError):
        await run_engine(cfg)

    assert mock_client.closed
