"""Event catalogs built from contract ABI documents.

An `EventCatalog` maps an event's signature hash (topic0) to its
`EventSchema`. It is built once per contract and never mutated.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Iterator, Mapping
from pathlib import Path
from types import MappingProxyType
from typing import Any, Literal, Union

from eth_utils.abi import event_signature_to_log_topic
from pydantic import BaseModel, ValidationError

from evm_listener.errors import InvalidSchema
from evm_listener.models.events import EventArgument, EventSchema


class AbiInput(BaseModel):
    name: str = ""
    type: str
    indexed: bool = False
    internalType: str | None = None
    components: list[AbiInput] | None = None


AbiInput.model_rebuild()


class AbiEvent(BaseModel):
    anonymous: bool = False
    inputs: list[AbiInput] = []
    name: str
    type: Literal["event"]


AbiDocument = Union[str, bytes, Path, Iterable[Mapping[str, Any]], Mapping[str, Any]]


def canonical_type(abi_input: AbiInput) -> str:
    """Return the canonical ABI type, expanding tuples to "(t1,t2,...)"."""
    if abi_input.type.startswith("tuple"):
        inner = ",".join(canonical_type(c) for c in abi_input.components or [])
        return f"({inner}){abi_input.type[len('tuple'):]}"
    return abi_input.type


def _to_argument(abi_input: AbiInput, position: int) -> EventArgument:
    return EventArgument(
        name=abi_input.name or f"arg{position}",
        abi_type=canonical_type(abi_input),
        indexed=abi_input.indexed,
        components=tuple(
            _to_argument(c, i) for i, c in enumerate(abi_input.components or [])
        ),
    )


def get_event_signature(event: AbiEvent) -> str:
    return f"{event.name}({','.join(canonical_type(i) for i in event.inputs)})"


def get_event_topic0(event: AbiEvent) -> str:
    return "0x" + event_signature_to_log_topic(get_event_signature(event)).hex()


def get_event_schema(event: AbiEvent) -> EventSchema:
    return EventSchema(
        name=event.name,
        arguments=tuple(_to_argument(inp, i) for i, inp in enumerate(event.inputs)),
        signature=get_event_signature(event),
        topic0=get_event_topic0(event),
    )


class EventCatalog(Mapping[str, EventSchema]):
    """Immutable topic0 → EventSchema mapping. Lookups ignore hex case."""

    def __init__(self, schemas: Iterable[EventSchema] = ()) -> None:
        self._by_topic: Mapping[str, EventSchema] = MappingProxyType(
            {s.topic0.lower(): s for s in schemas}
        )

    def __getitem__(self, topic0: str) -> EventSchema:
        return self._by_topic[topic0.lower()]

    def __iter__(self) -> Iterator[str]:
        return iter(self._by_topic)

    def __len__(self) -> int:
        return len(self._by_topic)

    def __repr__(self) -> str:
        return f"EventCatalog({sorted(s.name for s in self._by_topic.values())})"

    def by_name(self, name: str) -> EventSchema | None:
        """First schema with the given event name (overloads share a name)."""
        for schema in self._by_topic.values():
            if schema.name == name:
                return schema
        return None

    @property
    def topic0s(self) -> list[str]:
        return list(self._by_topic)


def _load_document(document: AbiDocument) -> list[Any]:
    if isinstance(document, Path):
        document = document.read_text()
    if isinstance(document, (str, bytes)):
        document = json.loads(document)
    # Compiler artifacts wrap the ABI: {"abi": [...], "bytecode": ...}
    if isinstance(document, Mapping):
        document = document.get("abi")
    if document is None or isinstance(document, (str, bytes)):
        raise InvalidSchema("ABI document must be a JSON array of entries")
    return list(document)


def get_events_from_abi(document: AbiDocument) -> list[AbiEvent]:
    """Validate and return every non-anonymous event entry in an ABI."""
    try:
        entries = _load_document(document)
    except (OSError, ValueError, TypeError) as exc:
        raise InvalidSchema(f"fail to parse contract ABI: {exc}") from exc

    events: list[AbiEvent] = []
    for entry in entries:
        if not isinstance(entry, Mapping):
            raise InvalidSchema(f"ABI entry is not an object: {entry!r}")
        if entry.get("type") != "event":
            continue
        try:
            event = AbiEvent.model_validate(entry)
        except ValidationError as exc:
            raise InvalidSchema(f"invalid event entry {entry.get('name')!r}: {exc}") from exc
        # Anonymous events carry no signature topic to key them by
        if not event.anonymous:
            events.append(event)
    return events


def parse_catalog(document: AbiDocument) -> EventCatalog:
    """Build the event catalog for an ABI document.

    `document` may be JSON text, a path to a JSON file, a parsed list of ABI
    entries, or a compiler artifact with an "abi" key. Raises InvalidSchema
    when the document cannot be parsed.
    """
    return EventCatalog(get_event_schema(e) for e in get_events_from_abi(document))
