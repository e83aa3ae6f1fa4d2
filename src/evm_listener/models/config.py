"""Configuration models for the listener."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

DEFAULT_STEP = 100
DEFAULT_POLL_INTERVAL = 3.0


class IngestionMode(str, Enum):
    """How a contract's logs reach its handler chain."""

    POLLING = "polling"  # cursor-driven eth_getLogs with catch-up
    SUBSCRIPTION = "subscription"  # push stream via eth_subscribe


@dataclass
class ChainConfig:
    """The chain being listened to."""

    chain_id: int = 1
    name: str = "ethereum"
    rpc_url: str = ""
    ws_url: str = ""
    timeout: int = 20  # seconds, per HTTP operation


@dataclass
class ContractConfig:
    """One contract to ingest, as declared in the config file."""

    address: str
    abi_path: str
    name: str = ""
    start_block: int = 0
    end_block: int | None = None  # inclusive; None = follow the chain tip
    step: int = DEFAULT_STEP
    mode: IngestionMode = IngestionMode.POLLING
    handlers: list[str] = field(default_factory=list)  # "module:attribute"


@dataclass
class ListenerConfig:
    """Complete listener configuration."""

    # Listener
    poll_interval: float = DEFAULT_POLL_INTERVAL  # seconds between ticks
    log_level: str = "info"

    # Chain
    chain: ChainConfig = field(default_factory=ChainConfig)

    # Storage
    db_path: str = ""  # empty = cursors kept in memory only

    # Contracts
    contracts: list[ContractConfig] = field(default_factory=list)
