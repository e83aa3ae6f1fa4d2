"""A registered contract - the unit every ingestion strategy drives."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from evm_listener.abi.catalog import EventCatalog
from evm_listener.ingestion.cursor import Cursor
from evm_listener.ingestion.handlers import HandlerChain
from evm_listener.models.config import ChainConfig, IngestionMode
from evm_listener.models.context import HandlerContext


@dataclass
class Contract:
    """Owns its catalog, handler chain and (for polling) its cursor."""

    address: str
    catalog: EventCatalog
    handlers: HandlerChain = field(default_factory=HandlerChain)
    cursor: Cursor = field(default_factory=lambda: Cursor(0, 0))
    mode: IngestionMode = IngestionMode.POLLING
    name: str = ""

    @property
    def label(self) -> str:
        return self.name or self.address

    def logger(self, chain: ChainConfig, base: logging.Logger) -> logging.LoggerAdapter:
        return logging.LoggerAdapter(base, {"contract": self.address, "chain": chain.name})

    def context(self, chain: ChainConfig, logger: logging.Logger | logging.LoggerAdapter) -> HandlerContext:
        return HandlerContext(
            chain=chain,
            address=self.address,
            contract_name=self.name,
            mode=self.mode,
            logger=logger,
        )
