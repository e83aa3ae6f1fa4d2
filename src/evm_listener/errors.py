"""Exception taxonomy for the ingestion engine.

Construction, registration and start-up failures (ChainConnectionError,
InvalidSchema, MissingConfiguration, StorageError) are raised synchronously
to the caller. The remaining errors occur inside background ingestion
units, where they are logged and either retried (TransientFetchError) or
handled per the strategy's rules.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from evm_listener.models.events import RawLog


class ListenerError(Exception):
    """Base class for every error raised by evm_listener."""


class ChainConnectionError(ListenerError):
    """The chain client could not be reached while building the engine."""


class InvalidSchema(ListenerError):
    """An interface (ABI) document could not be parsed into an event catalog."""


class MissingConfiguration(ListenerError):
    """Neither a chain client nor a connection endpoint was supplied."""


class StorageError(ListenerError):
    """The cursor store could not be opened."""


class TransientFetchError(ListenerError):
    """A height query, log query or subscription request failed.

    Recovered locally: the polling unit retries on its next tick.
    """


class DecodeError(ListenerError):
    """A log matched a known signature but its topics or data did not decode."""

    def __init__(self, message: str, log: RawLog | None = None) -> None:
        super().__init__(message)
        self.log = log


class HandlerError(ListenerError):
    """A handler in a chain raised; the remaining handlers were not run."""

    def __init__(self, message: str, handler: str = "", log: RawLog | None = None) -> None:
        super().__init__(message)
        self.handler = handler
        self.log = log
