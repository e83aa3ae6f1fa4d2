"""Bindings for known contracts: ABIs and typed event records."""

from evm_listener.contracts.token_factory import (
    TOKEN_FACTORY_ABI,
    FeeToUpdated,
    FeeUpdated,
    LevelsUpdated,
    OwnershipTransferred,
    TokenCreated,
    TokenMetaData,
    TokenMetaDataUpdated,
    handle_token_factory_event,
    unpack_token_factory_event,
)

__all__ = [
    "TOKEN_FACTORY_ABI",
    "FeeToUpdated",
    "FeeUpdated",
    "LevelsUpdated",
    "OwnershipTransferred",
    "TokenCreated",
    "TokenMetaData",
    "TokenMetaDataUpdated",
    "handle_token_factory_event",
    "unpack_token_factory_event",
]
