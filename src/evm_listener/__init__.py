"""evm_listener - contract event ingestion for EVM chains."""

from evm_listener.abi import EventCatalog, decode_log, parse_catalog, unpack_event
from evm_listener.engine import IngestionEngine, run_engine
from evm_listener.errors import (
    ChainConnectionError,
    DecodeError,
    HandlerError,
    InvalidSchema,
    ListenerError,
    MissingConfiguration,
    StorageError,
    TransientFetchError,
)
from evm_listener.ingestion import HandlerChain, event_handler, log_event, raw_log_handler
from evm_listener.models import (
    ChainConfig,
    DecodedEvent,
    HandlerContext,
    IngestionMode,
    RawLog,
)
from evm_listener.rpc import EthRpcClient

__version__ = "0.3.0"

__all__ = [
    "EventCatalog", "decode_log", "parse_catalog", "unpack_event",
    "IngestionEngine", "run_engine",
    "ChainConnectionError", "DecodeError", "HandlerError", "InvalidSchema",
    "ListenerError", "MissingConfiguration", "StorageError", "TransientFetchError",
    "HandlerChain", "event_handler", "log_event", "raw_log_handler",
    "ChainConfig", "DecodedEvent", "HandlerContext", "IngestionMode", "RawLog",
    "EthRpcClient",
]
