"""Context passed to every handler invocation."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from evm_listener.models.config import ChainConfig, IngestionMode


@dataclass(frozen=True)
class HandlerContext:
    """Who emitted the log and how it reached the handler."""

    chain: ChainConfig
    address: str
    contract_name: str = ""
    mode: IngestionMode = IngestionMode.POLLING
    logger: logging.Logger | logging.LoggerAdapter = field(
        default_factory=lambda: logging.getLogger("evm_listener.handlers"),
        repr=False,
        compare=False,
    )
