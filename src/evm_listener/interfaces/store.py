"""CursorStore protocol - persists confirmed heights across restarts."""

from __future__ import annotations

from typing import Protocol


class CursorStore(Protocol):
    """Keeps the next unconfirmed height for every polled contract."""

    async def initialize(self) -> None:
        """Open connections / create tables."""
        ...

    async def close(self) -> None:
        ...

    async def load(self, address: str) -> int | None:
        """Return the stored confirmed height for `address`, if any."""
        ...

    async def save(self, address: str, height: int) -> None:
        ...
