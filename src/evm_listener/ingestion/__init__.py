"""Ingestion strategies and the pieces they drive.

This package provides:
- `Cursor`: next unconfirmed height and range computation
- `HandlerChain`: ordered, fail-fast handler dispatch
- `PollingStrategy` / `process_batch`: cursor-driven catch-up polling
- `SubscriptionStrategy`: push-based per-log dispatch
"""

from evm_listener.ingestion.contract import Contract
from evm_listener.ingestion.cursor import Cursor
from evm_listener.ingestion.handlers import (
    HandlerChain,
    event_handler,
    log_event,
    raw_log_handler,
)
from evm_listener.ingestion.polling import PollingStrategy, process_batch
from evm_listener.ingestion.subscription import SubscriptionStrategy

__all__ = [
    "Contract",
    "Cursor",
    "HandlerChain",
    "event_handler",
    "log_event",
    "raw_log_handler",
    "PollingStrategy",
    "process_batch",
    "SubscriptionStrategy",
]
