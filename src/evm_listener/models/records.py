"""Result records produced by the ingestion strategies."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from evm_listener.models.events import RawLog


class BatchStatus(str, Enum):
    """Outcome of processing one fetched block range."""

    ALL_DISPATCHED = "all_dispatched"
    PARTIAL_FAILURE = "partial_failure"


class PollState(str, Enum):
    """Where the last polling tick stopped."""

    IDLE = "idle"  # nothing new, or the range could not be computed
    RANGE_COMPUTED = "range_computed"  # range known, log fetch failed
    FETCHED = "fetched"
    ALL_DISPATCHED = "all_dispatched"
    PARTIAL_FAILURE = "partial_failure"
    FINISHED = "finished"  # cursor passed the contract's end_block


@dataclass
class BatchResult:
    """Result of `process_batch` over one fetched range."""

    status: BatchStatus
    logs: int  # logs in the batch
    dispatched: int  # logs whose event went through the whole handler chain
    skipped: int = 0  # logs with no matching event signature
    error: Exception | None = None
    failed_log: RawLog | None = None

    @property
    def ok(self) -> bool:
        return self.status == BatchStatus.ALL_DISPATCHED


@dataclass
class CursorRecord:
    """A persisted cursor row."""

    address: str
    confirmed_height: int
    updated_at: str = ""
