"""Shared fixtures for evm_listener tests."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable

import pytest

from evm_listener.abi.catalog import EventCatalog, parse_catalog
from evm_listener.contracts.token_factory import TOKEN_FACTORY_ABI
from evm_listener.ingestion.contract import Contract
from evm_listener.ingestion.cursor import Cursor
from evm_listener.ingestion.handlers import HandlerChain
from evm_listener.interfaces.handler import Handler
from evm_listener.models.config import ChainConfig, IngestionMode, ListenerConfig
from evm_listener.storage.memory import InMemoryCursorStore
from evm_listener.storage.sqlite import SQLiteCursorStore

from tests.factories import CONTRACT
from tests.mocks import MockChainClient, RecordingHandler


def make_test_config(**overrides) -> ListenerConfig:
    """Build a ListenerConfig suitable for testing."""
    defaults = dict(
        poll_interval=0.01,
        log_level="debug",
        chain=ChainConfig(chain_id=31337, name="anvil", rpc_url="http://127.0.0.1:8545"),
        db_path="",
    )
    defaults.update(overrides)
    return ListenerConfig(**defaults)


def make_contract(
    catalog: EventCatalog,
    handlers: Iterable[Handler] = (),
    start_height: int = 0,
    step: int = 50,
    end_height: int | None = None,
    mode: IngestionMode = IngestionMode.POLLING,
    name: str = "factory",
    address: str = CONTRACT,
) -> Contract:
    return Contract(
        address=address,
        catalog=catalog,
        handlers=HandlerChain(handlers),
        cursor=Cursor(start_height, step, end_height),
        mode=mode,
        name=name,
    )


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Yield to the loop until `predicate()` holds, failing after `timeout`."""
    async def _poll():
        while not predicate():
            await asyncio.sleep(0.005)

    await asyncio.wait_for(_poll(), timeout=timeout)


@pytest.fixture
def test_config():
    """Default ListenerConfig for tests."""
    return make_test_config()


@pytest.fixture
def chain():
    return ChainConfig(chain_id=31337, name="anvil")


@pytest.fixture
def catalog():
    """Event catalog of the token factory ABI."""
    return parse_catalog(TOKEN_FACTORY_ABI)


@pytest.fixture
def mock_client():
    return MockChainClient(height=0)


@pytest.fixture
def recorder():
    return RecordingHandler()


@pytest.fixture
def memory_store():
    return InMemoryCursorStore()


@pytest.fixture
async def store(tmp_path):
    """Initialized file-backed SQLiteCursorStore."""
    s = SQLiteCursorStore(str(tmp_path / "cursors.db"))
    await s.initialize()
    yield s
    await s.close()
