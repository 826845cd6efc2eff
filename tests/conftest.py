"""Shared test fixtures."""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from ratingtracker.config import AppConfig
from ratingtracker.models import AnalystRating, MSCIESGRating, Stock
from ratingtracker.stocks import MemoryStockStore, StockScorer, StockUpdater


@pytest.fixture
def test_config() -> AppConfig:
    """Provide a test configuration with safe defaults."""
    return AppConfig(
        fetch={
            "max_concurrency": 4,
            "failure_threshold": 10,
            "forensics_ttl_seconds": 172800,
            "concurrency": {"msci": 2},
        },
        logging={
            "level": "DEBUG",
            "app_log": "/tmp/test_ratingtracker.log",
            "alert_log": "/tmp/test_alerts.log",
        },
        watchlists={"favorites": ["EXMP", "NVDA"]},
        users=[
            {
                "name": "Jane",
                "phone": "+491111111111",
                "subscriptions": ["stock_update", "fetch_error"],
                "watchlists": ["favorites"],
            },
            {
                "name": "John",
                "phone": "+492222222222",
                "subscriptions": ["stock_update"],
                "tickers": ["AAPL"],
            },
        ],
    )


@pytest.fixture
def midpoint_stock() -> Stock:
    """A stock where every rating sits at the middle of its scale."""
    return Stock(
        ticker="EXMP",
        name="Example Inc.",
        isin="US0000000001",
        country="US",
        currency="USD",
        last_close=100.0,
        low_52w=50.0,
        high_52w=150.0,
        morningstar_id="0P000000EX",
        star_rating=3,
        morningstar_fair_value=100.0,
        market_screener_id="EXAMPLE-INC-1",
        analyst_consensus=AnalystRating.HOLD,
        analyst_count=10,
        analyst_target_price=100.0,
        msci_id="example-inc/IID000000001",
        msci_esg_rating=MSCIESGRating.A,
        msci_temperature=2.0,
        ric="EXMP.O",
        lseg_esg_score=50.0,
        lseg_emissions=50.0,
        sp_id="1234",
        sp_esg_score=50.0,
        sustainalytics_id="example-inc/1000000001",
        sustainalytics_esg_risk=20.0,
    )


@pytest.fixture
def poor_stock(midpoint_stock) -> Stock:
    """A stock rated poorly by every provider."""
    return midpoint_stock.model_copy(
        update={
            "star_rating": 1,
            "morningstar_fair_value": 25.0,
            "analyst_consensus": AnalystRating.SELL,
            "analyst_target_price": 20.0,
            "msci_esg_rating": MSCIESGRating.CCC,
            "msci_temperature": 4.0,
            "lseg_esg_score": 0.0,
            "lseg_emissions": 0.0,
            "sp_esg_score": 0.0,
            "sustainalytics_esg_risk": 45.0,
        }
    )


@pytest.fixture
def excellent_stock(midpoint_stock) -> Stock:
    """A stock rated excellently by every provider."""
    return midpoint_stock.model_copy(
        update={
            "star_rating": 5,
            "morningstar_fair_value": 230.0,
            "analyst_consensus": AnalystRating.BUY,
            "analyst_target_price": 215.0,
            "msci_esg_rating": MSCIESGRating.AAA,
            "msci_temperature": 0.5,
            "lseg_esg_score": 100.0,
            "lseg_emissions": 100.0,
            "sp_esg_score": 100.0,
            "sustainalytics_esg_risk": 0.0,
        }
    )


@pytest.fixture
def bare_stock() -> Stock:
    """A freshly created stock with identity only."""
    return Stock(ticker="NEW", name="New Corp", isin="US0000000002", country="US")


@pytest.fixture
def stale_time() -> datetime:
    """A last fetch timestamp older than every provider TTL."""
    return datetime(2020, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def store(midpoint_stock) -> MemoryStockStore:
    scorer = StockScorer()
    return MemoryStockStore([scorer.apply(midpoint_stock)])


@pytest.fixture
def notifier() -> MagicMock:
    return MagicMock()


@pytest.fixture
def recipients() -> MagicMock:
    directory = MagicMock()
    directory.read_message_recipients.return_value = ["+491111111111"]
    return directory


@pytest.fixture
def updater(store, notifier, recipients) -> StockUpdater:
    return StockUpdater(store, StockScorer(), notifier, recipients)
