"""Stock storage: the repository contract and its Redis and in-memory backends."""

import os
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Callable, Optional

import redis
import structlog

from ratingtracker.models import Stock
from ratingtracker.providers import ProviderDescriptor

logger = structlog.get_logger(__name__)

# Receives the current stock, returns the stock to persist or None to leave it untouched
Mutation = Callable[[Stock], Optional[Stock]]


class NotFoundError(Exception):
    """Raised when a stock does not exist."""


def fetch_order(stock: Stock, descriptor: ProviderDescriptor) -> tuple:
    """Sort key placing never-fetched stocks first, then the oldest fetches."""
    last_fetch = getattr(stock, descriptor.last_fetch_field)
    if last_fetch is None:
        return (0, datetime.min.replace(tzinfo=timezone.utc), stock.ticker)
    if last_fetch.tzinfo is None:
        last_fetch = last_fetch.replace(tzinfo=timezone.utc)
    return (1, last_fetch, stock.ticker)


def select_eligible(stocks: list[Stock], descriptor: ProviderDescriptor) -> list[Stock]:
    """Filter stocks carrying an identifier for the provider.

    Individual providers get the stocks oldest-fetched first so that every
    stock gets its turn; bulk providers keep the given order.
    """
    eligible = [s for s in stocks if descriptor.has_identifier(s)]
    if not descriptor.is_bulk:
        eligible.sort(key=lambda s: fetch_order(s, descriptor))
    return eligible


class StockStore(ABC):
    """Interface for persisting stocks, keyed by ticker."""

    @abstractmethod
    def create(self, stock: Stock) -> bool:
        """Create a stock. Returns False if a stock with the same ticker exists."""
        ...

    @abstractmethod
    def read(self, ticker: str) -> Stock:
        """Read a stock.

        Raises:
            NotFoundError: If the stock does not exist.
        """
        ...

    @abstractmethod
    def read_all(self) -> list[Stock]:
        """Read every stock, ordered by ticker."""
        ...

    @abstractmethod
    def write(self, stock: Stock) -> None:
        """Overwrite an existing stock.

        Raises:
            NotFoundError: If the stock does not exist.
        """
        ...

    @abstractmethod
    def transact(self, ticker: str, mutate: Mutation) -> Optional[Stock]:
        """Read-modify-write a single stock atomically.

        The mutation may be invoked more than once if a concurrent write to
        the same stock interferes, so it must not have side effects beyond
        its return value.

        Returns:
            The persisted stock, or None if the mutation declined to write.

        Raises:
            NotFoundError: If the stock does not exist.
        """
        ...

    @abstractmethod
    def delete(self, ticker: str) -> bool:
        """Delete a stock. Returns True if deleted, False if not found."""
        ...

    def list_eligible(self, descriptor: ProviderDescriptor) -> list[Stock]:
        """Stocks that carry an identifier for the provider, in fetch order."""
        return select_eligible(self.read_all(), descriptor)


class RedisStockStore(StockStore):
    """Redis-backed stock storage.

    Storage structure:
    - Hash per stock: `{prefix}:stock:{ticker}` containing:
        - data: JSON blob of the Stock
        - updated: ISO timestamp
    - Set: `{prefix}:stocks` with all known tickers
    """

    def __init__(self, namespace: str = "ratingtracker"):
        self.KEY_PREFIX = namespace
        self.TICKERS_KEY = f"{namespace}:stocks"

        redis_host = os.getenv("REDIS_HOST", "localhost")
        redis_port = int(os.getenv("REDIS_PORT", "6379"))
        redis_password = os.getenv("REDIS_PASSWORD")

        self._client = redis.Redis(
            host=redis_host,
            port=redis_port,
            password=redis_password,
            decode_responses=True,
            socket_connect_timeout=10,
            socket_timeout=30,
        )

        logger.info(
            "stock_store.initialized",
            host=redis_host,
            port=redis_port,
            namespace=namespace,
        )

    def _key(self, ticker: str) -> str:
        return f"{self.KEY_PREFIX}:stock:{ticker}"

    def _serialize(self, stock: Stock) -> dict:
        return {
            "data": stock.model_dump_json(),
            "updated": datetime.now(timezone.utc).isoformat(),
        }

    def create(self, stock: Stock) -> bool:
        key = self._key(stock.ticker)
        # HSETNX on the data field guards against concurrent creation
        if not self._client.hsetnx(key, "data", stock.model_dump_json()):
            logger.warning("stock_store.exists", ticker=stock.ticker)
            return False

        pipeline = self._client.pipeline()
        pipeline.hset(key, "updated", datetime.now(timezone.utc).isoformat())
        pipeline.sadd(self.TICKERS_KEY, stock.ticker)
        pipeline.execute()

        logger.info("stock_store.created", ticker=stock.ticker, name=stock.name)
        return True

    def read(self, ticker: str) -> Stock:
        data = self._client.hget(self._key(ticker), "data")
        if data is None:
            raise NotFoundError(f"Stock {ticker} not found.")
        return Stock.model_validate_json(data)

    def read_all(self) -> list[Stock]:
        tickers = sorted(self._client.smembers(self.TICKERS_KEY))
        if not tickers:
            return []

        pipeline = self._client.pipeline()
        for ticker in tickers:
            pipeline.hget(self._key(ticker), "data")
        results = pipeline.execute()

        stocks = []
        for ticker, data in zip(tickers, results):
            if data is None:
                # Index entry without a stock hash, e.g. after a manual key deletion
                logger.warning("stock_store.dangling_ticker", ticker=ticker)
                continue
            stocks.append(Stock.model_validate_json(data))
        return stocks

    def write(self, stock: Stock) -> None:
        self.transact(stock.ticker, lambda _: stock)

    def transact(self, ticker: str, mutate: Mutation) -> Optional[Stock]:
        key = self._key(ticker)

        def _apply(pipe: redis.client.Pipeline) -> Optional[Stock]:
            # Immediate mode while the key is watched
            data = pipe.hget(key, "data")
            if data is None:
                raise NotFoundError(f"Stock {ticker} not found.")
            updated = mutate(Stock.model_validate_json(data))
            pipe.multi()
            if updated is not None:
                pipe.hset(key, mapping=self._serialize(updated))
            return updated

        # Retries _apply whenever another client modifies the key before EXEC
        result = self._client.transaction(_apply, key, value_from_callable=True)

        if result is not None:
            logger.debug("stock_store.saved", ticker=ticker)
        return result

    def delete(self, ticker: str) -> bool:
        pipeline = self._client.pipeline()
        pipeline.delete(self._key(ticker))
        pipeline.srem(self.TICKERS_KEY, ticker)
        results = pipeline.execute()
        deleted = results[0] > 0
        if deleted:
            logger.info("stock_store.deleted", ticker=ticker)
        else:
            logger.warning("stock_store.delete_missing", ticker=ticker)
        return deleted

    def close(self) -> None:
        """Close Redis connection."""
        self._client.close()
        logger.debug("stock_store.closed")


class MemoryStockStore(StockStore):
    """In-process stock storage guarded by a single lock.

    Stocks are copied on the way in and out so that callers never share
    mutable state with the store.
    """

    def __init__(self, stocks: Optional[list[Stock]] = None):
        self._stocks: dict[str, Stock] = {}
        self._lock = threading.RLock()
        for stock in stocks or []:
            self.create(stock)

    def create(self, stock: Stock) -> bool:
        with self._lock:
            if stock.ticker in self._stocks:
                logger.warning("stock_store.exists", ticker=stock.ticker)
                return False
            self._stocks[stock.ticker] = stock.model_copy(deep=True)
            return True

    def read(self, ticker: str) -> Stock:
        with self._lock:
            if ticker not in self._stocks:
                raise NotFoundError(f"Stock {ticker} not found.")
            return self._stocks[ticker].model_copy(deep=True)

    def read_all(self) -> list[Stock]:
        with self._lock:
            return [self._stocks[t].model_copy(deep=True) for t in sorted(self._stocks)]

    def write(self, stock: Stock) -> None:
        self.transact(stock.ticker, lambda _: stock)

    def transact(self, ticker: str, mutate: Mutation) -> Optional[Stock]:
        with self._lock:
            updated = mutate(self.read(ticker))
            if updated is None:
                return None
            self._stocks[ticker] = updated.model_copy(deep=True)
            return updated.model_copy(deep=True)

    def delete(self, ticker: str) -> bool:
        with self._lock:
            return self._stocks.pop(ticker, None) is not None
