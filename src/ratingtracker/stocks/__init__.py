"""Stock persistence, scoring and updates."""

from ratingtracker.stocks.scorer import DynamicAttributes, StockScorer, total_score
from ratingtracker.stocks.store import MemoryStockStore, NotFoundError, RedisStockStore, StockStore
from ratingtracker.stocks.updater import InvalidRequestError, StockUpdater

__all__ = [
    "DynamicAttributes",
    "StockScorer",
    "total_score",
    "StockStore",
    "RedisStockStore",
    "MemoryStockStore",
    "NotFoundError",
    "StockUpdater",
    "InvalidRequestError",
]
