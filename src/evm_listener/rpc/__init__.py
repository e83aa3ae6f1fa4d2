"""JSON-RPC chain client (HTTP queries, WebSocket subscriptions)."""

from evm_listener.rpc.client import EthRpcClient, parse_log, to_hex_block
from evm_listener.rpc.subscription import WebSocketLogSubscription

__all__ = ["EthRpcClient", "WebSocketLogSubscription", "parse_log", "to_hex_block"]
