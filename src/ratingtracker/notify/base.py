"""Abstract base classes for message delivery and recipient lookup."""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional

PREFIX_ERROR = "⚠️ "
PREFIX_BETTER = "🟢 "
PREFIX_WORSE = "🔴 "


class MessageKind(str, Enum):
    STOCK_UPDATE = "stock_update"  # Changes to stocks a user subscribed to
    FETCH_ERROR = "fetch_error"  # Operational failures of fetch jobs


class Notifier(ABC):
    """Interface for delivering a text message to a list of phone numbers."""

    @abstractmethod
    def send(self, message: str, recipients: list[str]) -> None:
        """Deliver a message. Failures are logged, never raised."""
        ...


class RecipientDirectory(ABC):
    """Interface for resolving who receives which kind of message."""

    @abstractmethod
    def read_message_recipients(self, kind: MessageKind, ticker: Optional[str] = None) -> list[str]:
        """Phone numbers of users subscribed to a message kind.

        For stock updates, only users subscribed to the given stock directly
        or through one of their watchlists are returned.
        """
        ...
