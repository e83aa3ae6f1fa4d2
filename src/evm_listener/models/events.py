"""Event schemas and log records exchanged between ingestion components."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class EventArgument:
    """One argument of an event as declared in the contract ABI."""

    name: str
    abi_type: str  # canonical type, tuples expanded: "(string,uint256)[]"
    indexed: bool = False
    components: tuple[EventArgument, ...] = ()  # tuple members, in order


@dataclass(frozen=True)
class EventSchema:
    """An event definition keyed in a catalog by its signature hash."""

    name: str
    arguments: tuple[EventArgument, ...]
    signature: str  # "Transfer(address,address,uint256)"
    topic0: str  # lowercased 0x-hex keccak256 of `signature`

    @property
    def indexed_arguments(self) -> tuple[EventArgument, ...]:
        return tuple(a for a in self.arguments if a.indexed)

    @property
    def data_arguments(self) -> tuple[EventArgument, ...]:
        return tuple(a for a in self.arguments if not a.indexed)


@dataclass(frozen=True)
class RawLog:
    """A log record as returned by the chain client. Read-only input."""

    address: str
    topics: tuple[str, ...]  # lowercased 0x-hex, 32 bytes each
    data: bytes
    block_number: int
    transaction_hash: str
    log_index: int = 0

    @property
    def position(self) -> tuple[int, int]:
        """Chain-canonical ordering key: (block, index within block)."""
        return (self.block_number, self.log_index)


@dataclass(frozen=True)
class DecodedEvent:
    """A RawLog decoded against the matching EventSchema.

    `indexed_params` are the raw topics[1:] in position order. `outputs`
    holds the non-indexed arguments by name and is None when the log
    carried no data.
    """

    name: str
    indexed_params: tuple[str, ...]
    raw_data: bytes
    outputs: dict[str, Any] | None = None
    schema: EventSchema | None = field(default=None, repr=False, compare=False)
