from abc import ABC, abstractmethod

from pingwatch.contracts.outcome import Outcome


class SinkError(Exception):
    """Base exception for result sink operations."""


class BootstrapError(SinkError):
    """Raised when a sink cannot be connected to or its schema cannot be migrated."""


class InsertError(SinkError):
    """Raised when a single outcome could not be stored."""


class ResultSink(ABC):
    """
    Abstract base class for durable, append-only outcome stores.
    """

    @abstractmethod
    async def connect(self):
        """
        Establish the connection and prepare the storage schema.

        Raises:
            BootstrapError: If the sink is not usable. Callers must treat this as fatal.
        """

    @abstractmethod
    async def record(self, outcome: Outcome):
        """
        Append one outcome.

        Args:
            outcome (Outcome): The outcome to store.

        Raises:
            InsertError: If the outcome could not be stored.
        """

    @abstractmethod
    async def close(self):
        """
        Release any connections held by the sink.
        """
