"""ABI handling: event catalogs and log decoding.

This package provides:
- `parse_catalog` / `EventCatalog`: topic0 → EventSchema, built from an ABI
- `decode_log`: RawLog → DecodedEvent (None for unknown signatures)
- `hash_to_address` / `decode_topic`: typed views of indexed topics
- `unpack_event`: decoded event → typed dataclass record
"""

from evm_listener.abi.catalog import EventCatalog, parse_catalog
from evm_listener.abi.decoder import (
    abi_field,
    can_unpack,
    decode_log,
    decode_topic,
    hash_to_address,
    unpack_event,
)

__all__ = [
    "EventCatalog",
    "parse_catalog",
    "abi_field",
    "can_unpack",
    "decode_log",
    "decode_topic",
    "hash_to_address",
    "unpack_event",
]
