"""Cursor storage backends."""

from evm_listener.storage.memory import InMemoryCursorStore
from evm_listener.storage.sqlite import SQLiteCursorStore

__all__ = ["InMemoryCursorStore", "SQLiteCursorStore"]
