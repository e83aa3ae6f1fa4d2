"""In-memory CursorStore: cursors live as long as the process."""

from __future__ import annotations

from datetime import datetime, timezone

from evm_listener.models.records import CursorRecord


class InMemoryCursorStore:
    def __init__(self) -> None:
        self._cursors: dict[str, CursorRecord] = {}

    async def initialize(self) -> None:
        pass

    async def close(self) -> None:
        pass

    async def load(self, address: str) -> int | None:
        record = self._cursors.get(address.lower())
        return record.confirmed_height if record else None

    async def save(self, address: str, height: int) -> None:
        key = address.lower()
        self._cursors[key] = CursorRecord(
            address=key,
            confirmed_height=height,
            updated_at=datetime.now(timezone.utc).isoformat(),
        )

    async def all_cursors(self) -> list[CursorRecord]:
        return [self._cursors[k] for k in sorted(self._cursors)]
