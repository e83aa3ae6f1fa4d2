"""IngestionStrategy protocol - one running unit of work per contract."""

from __future__ import annotations

import asyncio
from typing import Protocol

from evm_listener.models.config import IngestionMode


class IngestionStrategy(Protocol):
    """Feeds one contract's logs through its handler chain until stopped."""

    mode: IngestionMode

    async def run(self, stop: asyncio.Event) -> None:
        """Run until `stop` is set, observing it at the next suspension point."""
        ...
