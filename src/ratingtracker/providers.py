"""Data provider registry and extractor factory."""

import importlib
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Mapping

from ratingtracker.models import SEQUENCE_FIELDS, Stock


class DataProvider(str, Enum):
    YAHOO = "yahoo"
    MORNINGSTAR = "morningstar"
    MARKET_SCREENER = "market_screener"
    MSCI = "msci"
    LSEG = "lseg"
    SP = "sp"
    SUSTAINALYTICS = "sustainalytics"


class Cardinality(str, Enum):
    INDIVIDUAL = "individual"  # One round trip per stock
    BULK = "bulk"  # One round trip serves all stocks


@dataclass(frozen=True)
class ProviderDescriptor:
    """Static metadata of a data provider."""

    provider: DataProvider
    display_name: str
    id_field: str
    last_fetch_field: str
    ttl_seconds: int
    fields: tuple[str, ...]
    cardinality: Cardinality = Cardinality.INDIVIDUAL
    default_concurrency: int = 4

    @property
    def owned_fields(self) -> tuple[str, ...]:
        """Metric fields plus the last fetch timestamp."""
        return (*self.fields, self.last_fetch_field)

    @property
    def is_bulk(self) -> bool:
        return self.cardinality is Cardinality.BULK

    def cleared_values(self) -> dict:
        """Values that erase every attribute owned by this provider."""
        return {field: [] if field in SEQUENCE_FIELDS else None for field in self.owned_fields}

    def has_identifier(self, stock: Stock) -> bool:
        """Whether the stock carries a usable identifier for this provider."""
        identifier = getattr(stock, self.id_field)
        if not identifier:
            return False
        # Tickers starting with an underscore denote example stocks
        if self.id_field == "ticker" and identifier.startswith("_"):
            return False
        return True


_HOUR = 60 * 60
_DAY = 24 * _HOUR

PROVIDERS: Mapping[DataProvider, ProviderDescriptor] = MappingProxyType({
    DataProvider.YAHOO: ProviderDescriptor(
        provider=DataProvider.YAHOO,
        display_name="Yahoo Finance",
        id_field="ticker",
        last_fetch_field="yahoo_last_fetch",
        ttl_seconds=12 * _HOUR,
        fields=("currency", "last_close", "low_52w", "high_52w", "prices_1y", "prices_1mo"),
    ),
    DataProvider.MORNINGSTAR: ProviderDescriptor(
        provider=DataProvider.MORNINGSTAR,
        display_name="Morningstar",
        id_field="morningstar_id",
        last_fetch_field="morningstar_last_fetch",
        ttl_seconds=12 * _HOUR,
        fields=(
            "industry",
            "size",
            "style",
            "star_rating",
            "dividend_yield_percent",
            "price_earning_ratio",
            "morningstar_fair_value",
            "market_cap",
            "description",
        ),
    ),
    DataProvider.MARKET_SCREENER: ProviderDescriptor(
        provider=DataProvider.MARKET_SCREENER,
        display_name="MarketScreener",
        id_field="market_screener_id",
        last_fetch_field="market_screener_last_fetch",
        ttl_seconds=12 * _HOUR,
        fields=("analyst_consensus", "analyst_ratings", "analyst_count", "analyst_target_price"),
    ),
    DataProvider.MSCI: ProviderDescriptor(
        provider=DataProvider.MSCI,
        display_name="MSCI",
        id_field="msci_id",
        last_fetch_field="msci_last_fetch",
        ttl_seconds=7 * _DAY,
        fields=("msci_esg_rating", "msci_temperature"),
        # MSCI bans clients that send too many concurrent requests
        default_concurrency=2,
    ),
    DataProvider.LSEG: ProviderDescriptor(
        provider=DataProvider.LSEG,
        display_name="LSEG Data & Analytics",
        id_field="ric",
        last_fetch_field="lseg_last_fetch",
        ttl_seconds=7 * _DAY,
        fields=("lseg_esg_score", "lseg_emissions"),
    ),
    DataProvider.SP: ProviderDescriptor(
        provider=DataProvider.SP,
        display_name="Standard & Poor's",
        id_field="sp_id",
        last_fetch_field="sp_last_fetch",
        ttl_seconds=7 * _DAY,
        fields=("sp_esg_score",),
    ),
    DataProvider.SUSTAINALYTICS: ProviderDescriptor(
        provider=DataProvider.SUSTAINALYTICS,
        display_name="Sustainalytics",
        id_field="sustainalytics_id",
        last_fetch_field="sustainalytics_last_fetch",
        ttl_seconds=7 * _DAY,
        fields=("sustainalytics_esg_risk",),
        cardinality=Cardinality.BULK,
    ),
})

ID_FIELDS: dict[str, DataProvider] = {
    d.id_field: d.provider for d in PROVIDERS.values() if d.id_field != "ticker"
}


def get_descriptor(provider: DataProvider | str) -> ProviderDescriptor:
    """Look up a provider descriptor by enum member or name.

    Raises:
        ValueError: If the provider is unknown
    """
    try:
        return PROVIDERS[DataProvider(provider)]
    except ValueError:
        raise ValueError(
            f"Unknown data provider: '{provider}'. Available: {[p.value for p in DataProvider]}"
        ) from None


def _import_class(path: str):
    """Import a class from a 'module:ClassName' string."""
    module_path, class_name = path.split(":")
    module = importlib.import_module(module_path)
    return getattr(module, class_name)


def create_extractor(provider: DataProvider | str, extractors: Mapping[str, str], **kwargs):
    """Create the extractor configured for a provider.

    Args:
        provider: The data provider
        extractors: Mapping of provider name to 'module:ClassName' import path
        **kwargs: Passed to the extractor constructor

    Raises:
        ValueError: If no extractor is configured for the provider, or the
                    configured class does not match the provider's cardinality
    """
    # Imported here to avoid a cycle: the fetch package imports this module
    from ratingtracker.fetch.base import BulkExtractor, IndividualExtractor

    descriptor = get_descriptor(provider)
    name = descriptor.provider.value
    if name not in extractors:
        raise ValueError(
            f"No extractor configured for provider '{name}'. Configured: {list(extractors.keys())}"
        )
    cls = _import_class(extractors[name])
    expected = BulkExtractor if descriptor.is_bulk else IndividualExtractor
    if not (isinstance(cls, type) and issubclass(cls, expected)):
        raise ValueError(
            f"Extractor '{extractors[name]}' for provider '{name}' must be a {expected.__name__}"
        )
    return cls(**kwargs)
