"""Protocol interfaces for all evm_listener components."""

from evm_listener.interfaces.client import ChainClient, LogSubscription
from evm_listener.interfaces.handler import EventHandler, Handler, RawLogHandler
from evm_listener.interfaces.store import CursorStore
from evm_listener.interfaces.strategy import IngestionStrategy

__all__ = [
    "ChainClient", "LogSubscription",
    "Handler", "RawLogHandler", "EventHandler",
    "CursorStore",
    "IngestionStrategy",
]
