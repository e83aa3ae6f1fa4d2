"""Log decoder: RawLog + EventCatalog → DecodedEvent.

Pure functions only. `decode_log` returns None for logs that carry no
known event ("no-event": no topics, or a topic0 missing from the catalog)
and raises DecodeError when a known event fails to decode.
"""

from __future__ import annotations

import dataclasses
import re
from collections.abc import Mapping
from typing import Any, TypeVar

from eth_abi import decode as abi_decode
from eth_utils import to_checksum_address

from evm_listener.errors import DecodeError
from evm_listener.models.events import DecodedEvent, EventArgument, RawLog

R = TypeVar("R")

_STATIC_TYPE = re.compile(r"^(u?int\d*|bytes([1-9]|[12]\d|3[0-2])|bool|address)$")


def _topic_bytes(topic: str | bytes) -> bytes:
    if isinstance(topic, (bytes, bytearray)):
        raw = bytes(topic)
    else:
        h = topic[2:] if topic[:2] in ("0x", "0X") else topic
        raw = bytes.fromhex(h)
    if len(raw) != 32:
        raise ValueError(f"topic must be 32 bytes, got {len(raw)}")
    return raw


def hash_to_address(topic: str | bytes) -> str:
    """Narrow a 32-byte topic to the checksummed address in its low 20 bytes."""
    return to_checksum_address("0x" + _topic_bytes(topic)[12:].hex())


def decode_topic(topic: str | bytes, abi_type: str) -> Any:
    """Decode one indexed argument by its ABI type.

    Dynamic types (string, bytes, arrays, tuples) are stored in topics as
    their keccak hash, so the topic is returned unchanged as hex.
    """
    if abi_type == "address":
        return hash_to_address(topic)
    if _STATIC_TYPE.match(abi_type):
        return abi_decode([abi_type], _topic_bytes(topic))[0]
    return topic if isinstance(topic, str) else "0x" + bytes(topic).hex()


def _shape(value: Any, arg: EventArgument) -> Any:
    """Turn eth_abi tuples into lists (arrays) and dicts (structs)."""
    if arg.abi_type.endswith("]"):
        element = dataclasses.replace(arg, abi_type=arg.abi_type[: arg.abi_type.rindex("[")])
        return [_shape(v, element) for v in value]
    if arg.components:
        return {c.name: _shape(v, c) for c, v in zip(arg.components, value)}
    return value


def decode_log(log: RawLog, catalog: Mapping[str, Any]) -> DecodedEvent | None:
    """Decode a raw log against a contract's event catalog.

    Returns None when the log has no topics or its topic0 is unknown to the
    catalog; callers skip dispatch for such logs.
    """
    # topic[0] is always the signature hash when the log is a known event
    if not log.topics:
        return None
    schema = catalog.get(log.topics[0])
    if schema is None:
        return None

    # topic[1:] are the indexed params, in declaration order
    indexed_params = tuple(log.topics[1:])
    expected = len(schema.indexed_arguments)
    if len(indexed_params) != expected:
        raise DecodeError(
            f"{schema.name}: expected {expected} indexed topics, got {len(indexed_params)}",
            log=log,
        )
    for topic in indexed_params:
        try:
            _topic_bytes(topic)
        except ValueError as exc:
            raise DecodeError(f"{schema.name}: bad indexed topic {topic!r}: {exc}", log=log) from exc

    outputs: dict[str, Any] | None = None
    if log.data:
        data_args = schema.data_arguments
        try:
            values = abi_decode([a.abi_type for a in data_args], log.data)
        except Exception as exc:
            raise DecodeError(f"fail to unpack {schema.name}: {exc}", log=log) from exc
        outputs = {a.name: _shape(v, a) for a, v in zip(data_args, values)}

    return DecodedEvent(
        name=schema.name,
        indexed_params=indexed_params,
        raw_data=log.data,
        outputs=outputs,
        schema=schema,
    )


# ── Typed records ──────────────────────────────────────────


def abi_field(name: str, **kwargs: Any) -> Any:
    """Dataclass field bound to the ABI argument `name`."""
    return dataclasses.field(metadata={"abi": name}, **kwargs)


def can_unpack(event: DecodedEvent, record_type: type) -> bool:
    """True if `record_type` declares itself as the shape of `event`."""
    return (
        dataclasses.is_dataclass(record_type)
        and getattr(record_type, "EVENT_NAME", None) == event.name
        and event.schema is not None
    )


def unpack_event(event: DecodedEvent, record_type: type[R]) -> R:
    """Unpack a decoded event into a typed dataclass record.

    The record declares the event it describes with an ``EVENT_NAME`` class
    attribute; each field takes the ABI argument of the same name unless
    bound to another one with `abi_field`. Indexed arguments are decoded
    from their topics by ABI type. Raises DecodeError on a shape mismatch.
    """
    if not can_unpack(event, record_type):
        raise DecodeError(
            f"{getattr(record_type, '__name__', record_type)} cannot unpack event {event.name}"
        )
    assert event.schema is not None

    values: dict[str, Any] = {}
    for arg, topic in zip(event.schema.indexed_arguments, event.indexed_params):
        try:
            values[arg.name] = decode_topic(topic, arg.abi_type)
        except Exception as exc:
            raise DecodeError(f"{event.name}: bad indexed topic {arg.name}: {exc}") from exc
    values.update(event.outputs or {})

    kwargs: dict[str, Any] = {}
    for f in dataclasses.fields(record_type):  # type: ignore[arg-type]
        if not f.init:
            continue
        key = f.metadata.get("abi", f.name)
        if key in values:
            kwargs[f.name] = values[key]
        elif f.default is dataclasses.MISSING and f.default_factory is dataclasses.MISSING:
            raise DecodeError(f"{event.name}: no value for field {f.name!r}")
    return record_type(**kwargs)
