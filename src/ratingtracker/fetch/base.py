"""Abstract base classes for provider extractors."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Union

from ratingtracker.models import Stock


@dataclass
class RawSnapshot:
    """A raw provider response kept for inspecting extraction failures."""

    content: str
    content_type: str = "text/html"


@dataclass
class AttributeFailure:
    """An attribute that could not be read from an otherwise usable response."""

    field: str
    reason: str


@dataclass
class ExtractionResult:
    """Values read for one stock.

    Only attributes present in `values` are written. An attribute listed in
    `failures` keeps its stored value.
    """

    values: dict[str, Any] = field(default_factory=dict)
    failures: list[AttributeFailure] = field(default_factory=list)
    snapshots: list[RawSnapshot] = field(default_factory=list)

    @property
    def failed_fields(self) -> list[str]:
        return [f.field for f in self.failures]


class ExtractionError(Exception):
    """Raised when a provider response for a stock cannot be used at all."""

    def __init__(self, message: str, snapshots: list[RawSnapshot] | None = None):
        super().__init__(message)
        self.snapshots = snapshots or []


class UpstreamUnavailableError(Exception):
    """Raised when the shared payload of a bulk provider cannot be fetched."""

    pass


class IndividualExtractor(ABC):
    """Interface for providers answering one request per stock."""

    @abstractmethod
    def fetch_one(self, stock: Stock) -> ExtractionResult:
        """Fetch the provider attributes of a single stock.

        Args:
            stock: The stock, carrying the provider identifier

        Returns:
            ExtractionResult with the values read and the attributes that
            could not be read.

        Raises:
            ExtractionError: If the response could not be fetched or parsed.
        """
        ...


class BulkExtractor(ABC):
    """Interface for providers serving the data of all stocks in one response."""

    @abstractmethod
    def fetch_many(self, stocks: list[Stock]) -> dict[str, Union[ExtractionResult, ExtractionError]]:
        """Fetch the provider attributes of many stocks with one request.

        Args:
            stocks: Stocks carrying the provider identifier

        Returns:
            Dict mapping ticker to its result or extraction error. Stocks
            missing from the payload are omitted.

        Raises:
            UpstreamUnavailableError: If the shared payload could not be fetched.
        """
        ...
