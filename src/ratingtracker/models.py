"""Domain models for the rating tracker."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class AnalystRating(str, Enum):
    """Analyst consensus scale, ordered from worst to best."""

    SELL = "Sell"
    UNDERPERFORM = "Underperform"
    HOLD = "Hold"
    OUTPERFORM = "Outperform"
    BUY = "Buy"


class MSCIESGRating(str, Enum):
    """MSCI ESG rating scale, ordered from best to worst."""

    AAA = "AAA"
    AA = "AA"
    A = "A"
    BBB = "BBB"
    BB = "BB"
    B = "B"
    CCC = "CCC"


ANALYST_RATINGS: list[AnalystRating] = list(AnalystRating)
MSCI_ESG_RATINGS: list[MSCIESGRating] = list(MSCIESGRating)

# Identity fields never change through a fetch
IDENTITY_FIELDS = ("ticker", "name", "isin", "country")

# Derived attributes, recomputed on every write and never written directly
DYNAMIC_ATTRIBUTES = (
    "financial_score",
    "esg_score",
    "total_score",
    "morningstar_fair_value_percentage_to_last_close",
    "analyst_target_price_percentage_to_last_close",
    "position_in_52w",
)

# Ordered numeric sequences; clearing them stores an empty list
SEQUENCE_FIELDS = ("prices_1y", "prices_1mo")


class Stock(BaseModel):
    """A tracked stock with raw provider attributes and derived scores."""

    # Identity
    ticker: str
    name: str
    isin: str
    country: str

    # Derived attributes
    financial_score: float = 0.0
    esg_score: float = 0.0
    total_score: float = 0.0
    morningstar_fair_value_percentage_to_last_close: Optional[float] = None
    analyst_target_price_percentage_to_last_close: Optional[float] = None
    position_in_52w: Optional[float] = None

    # Yahoo Finance
    yahoo_last_fetch: Optional[datetime] = None
    currency: Optional[str] = None
    last_close: Optional[float] = None
    low_52w: Optional[float] = None
    high_52w: Optional[float] = None
    prices_1y: list[float] = Field(default_factory=list)
    prices_1mo: list[float] = Field(default_factory=list)

    # Morningstar
    morningstar_id: Optional[str] = None
    morningstar_last_fetch: Optional[datetime] = None
    industry: Optional[str] = None
    size: Optional[str] = None
    style: Optional[str] = None
    star_rating: Optional[int] = Field(None, ge=1, le=5)
    dividend_yield_percent: Optional[float] = None
    price_earning_ratio: Optional[float] = None
    morningstar_fair_value: Optional[float] = None
    market_cap: Optional[float] = None
    description: Optional[str] = None

    # MarketScreener
    market_screener_id: Optional[str] = None
    market_screener_last_fetch: Optional[datetime] = None
    analyst_consensus: Optional[AnalystRating] = None
    analyst_ratings: Optional[dict[AnalystRating, int]] = None
    analyst_count: Optional[int] = None
    analyst_target_price: Optional[float] = None

    # MSCI
    msci_id: Optional[str] = None
    msci_last_fetch: Optional[datetime] = None
    msci_esg_rating: Optional[MSCIESGRating] = None
    msci_temperature: Optional[float] = None

    # LSEG
    ric: Optional[str] = None
    lseg_last_fetch: Optional[datetime] = None
    lseg_esg_score: Optional[float] = None
    lseg_emissions: Optional[float] = None

    # Standard & Poor's
    sp_id: Optional[str] = None
    sp_last_fetch: Optional[datetime] = None
    sp_esg_score: Optional[float] = None

    # Sustainalytics
    sustainalytics_id: Optional[str] = None
    sustainalytics_last_fetch: Optional[datetime] = None
    sustainalytics_esg_risk: Optional[float] = None

    @field_validator("prices_1y", "prices_1mo", mode="before")
    @classmethod
    def null_sequence_is_empty(cls, v):
        return [] if v is None else v

    @field_validator(
        "morningstar_id", "market_screener_id", "msci_id", "ric", "sp_id", "sustainalytics_id",
        mode="before",
    )
    @classmethod
    def empty_id_is_null(cls, v):
        return None if v == "" else v


def raw_attributes(stock: Stock) -> dict:
    """Return all attributes of a stock except the derived ones."""
    return stock.model_dump(exclude=set(DYNAMIC_ATTRIBUTES))


@dataclass
class FetchOptions:
    """Per-job configuration of a fetch."""

    ticker: Optional[str] = None  # Restrict the job to a single stock
    no_skip: bool = False  # Ignore the provider TTL
    clear: bool = False  # Wipe provider attributes before fetching
    concurrency: Optional[int] = None  # Worker count, provider default if unset
