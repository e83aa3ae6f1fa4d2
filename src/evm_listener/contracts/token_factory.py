"""Typed records for the token factory contract's events.

`handle_token_factory_event` is an event-aware handler: it switches on the
event name, unpacks the decoded event into the matching record and logs
it. Use it directly in a handler chain or in config as
``"evm_listener.contracts.token_factory:handle_token_factory_event"``.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, ClassVar, Union

from evm_listener.abi.decoder import abi_field, unpack_event
from evm_listener.ingestion.handlers import event_handler
from evm_listener.models.context import HandlerContext
from evm_listener.models.events import DecodedEvent, RawLog


def _event(name: str, *inputs: tuple[str, str, bool]) -> dict[str, Any]:
    return {
        "anonymous": False,
        "inputs": [
            {"indexed": indexed, "internalType": abi_type, "name": arg, "type": abi_type}
            for arg, abi_type, indexed in inputs
        ],
        "name": name,
        "type": "event",
    }


_META_COMPONENTS = [
    {"internalType": "string", "name": name, "type": "string"}
    for name in ("description", "logoLink", "twitterLink", "telegramLink", "discordLink", "websiteLink")
]

# Event entries of the factory ABI (errors and functions omitted)
TOKEN_FACTORY_ABI: list[dict[str, Any]] = [
    _event("FeeToUpdated", ("newFeeTo", "address", False)),
    _event("FeeUpdated", ("level", "uint256", False), ("newFee", "uint256", False)),
    _event("LevelsUpdated", ("newLevels", "uint256[]", False)),
    _event(
        "OwnershipTransferred",
        ("previousOwner", "address", True),
        ("newOwner", "address", True),
    ),
    _event(
        "TokenCreated",
        ("owner", "address", True),
        ("token", "address", True),
        ("tokenType", "uint8", False),
        ("tokenVersion", "uint96", False),
        ("level", "uint256", False),
    ),
    {
        "anonymous": False,
        "inputs": [
            {
                "components": _META_COMPONENTS,
                "indexed": False,
                "internalType": "struct TokenMetaData",
                "name": "tokenMetaData",
                "type": "tuple",
            }
        ],
        "name": "TokenMetaDataUpdated",
        "type": "event",
    },
]


@dataclass(frozen=True)
class FeeToUpdated:
    EVENT_NAME: ClassVar[str] = "FeeToUpdated"

    new_fee_to: str = abi_field("newFeeTo")


@dataclass(frozen=True)
class FeeUpdated:
    EVENT_NAME: ClassVar[str] = "FeeUpdated"

    level: int
    new_fee: int = abi_field("newFee")


@dataclass(frozen=True)
class LevelsUpdated:
    EVENT_NAME: ClassVar[str] = "LevelsUpdated"

    new_levels: list[int] = abi_field("newLevels")


@dataclass(frozen=True)
class OwnershipTransferred:
    EVENT_NAME: ClassVar[str] = "OwnershipTransferred"

    previous_owner: str = abi_field("previousOwner")
    new_owner: str = abi_field("newOwner")


@dataclass(frozen=True)
class TokenCreated:
    """A new token was deployed by the factory. `owner`/`token` are indexed."""

    EVENT_NAME: ClassVar[str] = "TokenCreated"

    owner: str
    token: str
    token_type: int = abi_field("tokenType")
    token_version: int = abi_field("tokenVersion")
    level: int = abi_field("level")


@dataclass(frozen=True)
class TokenMetaData:
    description: str = ""
    logo_link: str = ""
    twitter_link: str = ""
    telegram_link: str = ""
    discord_link: str = ""
    website_link: str = ""

    @classmethod
    def from_abi(cls, value: Mapping[str, str]) -> TokenMetaData:
        return cls(
            description=value.get("description", ""),
            logo_link=value.get("logoLink", ""),
            twitter_link=value.get("twitterLink", ""),
            telegram_link=value.get("telegramLink", ""),
            discord_link=value.get("discordLink", ""),
            website_link=value.get("websiteLink", ""),
        )


@dataclass(frozen=True)
class TokenMetaDataUpdated:
    EVENT_NAME: ClassVar[str] = "TokenMetaDataUpdated"

    token_meta_data: TokenMetaData = abi_field("tokenMetaData")

    def __post_init__(self) -> None:
        if isinstance(self.token_meta_data, Mapping):
            object.__setattr__(self, "token_meta_data", TokenMetaData.from_abi(self.token_meta_data))


TokenFactoryRecord = Union[
    FeeToUpdated, FeeUpdated, LevelsUpdated, OwnershipTransferred, TokenCreated, TokenMetaDataUpdated,
]

RECORD_TYPES: dict[str, type] = {
    cls.EVENT_NAME: cls
    for cls in (
        FeeToUpdated, FeeUpdated, LevelsUpdated, OwnershipTransferred, TokenCreated, TokenMetaDataUpdated,
    )
}


def unpack_token_factory_event(event: DecodedEvent) -> TokenFactoryRecord | None:
    """Typed record for a factory event, or None for events without one."""
    record_type = RECORD_TYPES.get(event.name)
    if record_type is None:
        return None
    return unpack_event(event, record_type)


@event_handler
def handle_token_factory_event(ctx: HandlerContext, raw: RawLog, event: DecodedEvent) -> None:
    record = unpack_token_factory_event(event)
    if record is None:
        return
    ctx.logger.info(
        "%s event at block %d: %s", event.name, raw.block_number, record,
    )
