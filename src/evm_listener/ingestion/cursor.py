"""Per-contract block cursor for the polling strategy."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class Cursor:
    """Next unconfirmed height plus the maximum range width per tick.

    `confirmed_height` only grows, and only after every log in the range
    ending at the new height minus one was decoded and dispatched. The
    polling unit that owns the cursor is its only writer.
    """

    confirmed_height: int
    step: int
    end_height: int | None = None  # inclusive upper bound, None = chain tip

    def __post_init__(self) -> None:
        if self.confirmed_height < 0:
            raise ValueError("confirmed_height must be >= 0")
        if self.step < 0:
            raise ValueError("step must be >= 0")

    @property
    def finished(self) -> bool:
        return self.end_height is not None and self.confirmed_height > self.end_height

    def next_range(self, chain_height: int) -> tuple[int, int] | None:
        """Inclusive [from, to] to fetch next, or None when nothing is new.

        `to` is clamped to the observed chain tip (and to `end_height`).
        """
        to_height = min(self.confirmed_height + self.step, chain_height)
        if self.end_height is not None:
            to_height = min(to_height, self.end_height)
        if self.confirmed_height > to_height:
            return None
        return self.confirmed_height, to_height

    def advance(self, to_height: int) -> int:
        """Mark everything up to `to_height` as processed."""
        new_height = to_height + 1
        if new_height < self.confirmed_height:
            raise ValueError(
                f"cursor cannot move backwards: {self.confirmed_height} -> {new_height}"
            )
        self.confirmed_height = new_height
        return new_height

    def restore(self, height: int) -> bool:
        """Fast-forward to a persisted height. Never moves backwards."""
        if height > self.confirmed_height:
            self.confirmed_height = height
            return True
        return False
