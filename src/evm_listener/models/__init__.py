"""Data models for the evm_listener engine."""

from evm_listener.models.config import (
    DEFAULT_POLL_INTERVAL,
    DEFAULT_STEP,
    ChainConfig,
    ContractConfig,
    IngestionMode,
    ListenerConfig,
)
from evm_listener.models.context import HandlerContext
from evm_listener.models.events import DecodedEvent, EventArgument, EventSchema, RawLog
from evm_listener.models.records import BatchResult, BatchStatus, CursorRecord, PollState

__all__ = [
    "DEFAULT_POLL_INTERVAL", "DEFAULT_STEP",
    "ChainConfig", "ContractConfig", "IngestionMode", "ListenerConfig",
    "HandlerContext",
    "DecodedEvent", "EventArgument", "EventSchema", "RawLog",
    "BatchResult", "BatchStatus", "CursorRecord", "PollState",
]
