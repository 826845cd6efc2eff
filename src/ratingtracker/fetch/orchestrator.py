"""Fetch orchestrator: refreshes the attributes of many stocks from one data provider.

A job selects the stocks carrying an identifier for the provider, skips those
fetched within the provider TTL, and hands the rest to a bounded pool of
workers sharing one FetchWorkspace. Results go through the StockUpdater, so
scores are recomputed and subscribers notified on every change.

Failures of single stocks do not stop a job. A failure only alerts when a value
that was known before can no longer be extracted. After too many failures the
circuit breaker skips every stock still queued until the next run.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Mapping, Optional, Union

import structlog

from ratingtracker.config import AppConfig
from ratingtracker.fetch.base import (
    AttributeFailure,
    BulkExtractor,
    ExtractionError,
    ExtractionResult,
    IndividualExtractor,
    RawSnapshot,
    UpstreamUnavailableError,
)
from ratingtracker.fetch.workspace import FetchWorkspace
from ratingtracker.forensics import ForensicsSink, resource_id, resource_links
from ratingtracker.models import FetchOptions, Stock
from ratingtracker.notify.base import PREFIX_ERROR, MessageKind, Notifier, RecipientDirectory
from ratingtracker.providers import DataProvider, ProviderDescriptor, get_descriptor
from ratingtracker.stocks.store import NotFoundError, StockStore
from ratingtracker.stocks.updater import StockUpdater

logger = structlog.get_logger(__name__)

Extractor = Union[IndividualExtractor, BulkExtractor]
Outcome = Union[ExtractionResult, ExtractionError]


def _is_known(value) -> bool:
    """Whether a stored attribute holds a value. Price series are unknown while empty."""
    return value is not None and value != []


class FetchFailedError(Exception):
    """Raised when the single stock of a single-stock job could not be fetched."""

    pass


class FetchAbortedError(Exception):
    """Raised when a job ended with stocks still queued."""

    def __init__(self, message: str, report: "FetchReport"):
        super().__init__(message)
        self.report = report


@dataclass
class FetchReport:
    """Tickers per partition at the end of a job."""

    provider: DataProvider
    successful: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    aborted: bool = False

    @classmethod
    def from_workspace(cls, provider: DataProvider, workspace: FetchWorkspace) -> "FetchReport":
        return cls(
            provider=provider,
            successful=[s.ticker for s in workspace.successful],
            failed=[s.ticker for s in workspace.failed],
            skipped=[s.ticker for s in workspace.skipped],
            aborted=workspace.tripped,
        )


class FetchOrchestrator:
    def __init__(
        self,
        store: StockStore,
        updater: StockUpdater,
        extractors: Mapping[DataProvider, Extractor],
        config: Optional[AppConfig] = None,
        notifier: Optional[Notifier] = None,
        recipients: Optional[RecipientDirectory] = None,
        forensics: Optional[ForensicsSink] = None,
        fqdn: str = "",
    ):
        self._store = store
        self._updater = updater
        self._extractors = dict(extractors)
        self._config = config or AppConfig()
        self._notifier = notifier
        self._recipients = recipients
        self._forensics = forensics
        self._fqdn = fqdn

    def fetch(self, provider: Union[DataProvider, str], options: Optional[FetchOptions] = None) -> FetchReport:
        """Run one fetch job.

        Args:
            provider: The data provider to fetch from
            options: Job options, defaults to all eligible stocks

        Returns:
            FetchReport with the tickers of every partition

        Raises:
            NotFoundError: If the requested stock does not exist or has no
                           identifier for the provider
            FetchFailedError: If the stock of a single-stock job failed
            UpstreamUnavailableError: If the payload of a bulk provider could
                                      not be fetched
            FetchAbortedError: If stocks remained queued after the job
        """
        descriptor = get_descriptor(provider)
        options = options or FetchOptions()
        extractor = self._extractor_for(descriptor)
        log = logger.bind(provider=descriptor.provider.value)

        workspace = self._plan(descriptor, self._select(descriptor, options), options)
        queued = workspace.queued
        log.info(
            "fetch.started",
            queued=len(queued),
            skipped=len(workspace.skipped),
            ticker=options.ticker,
            no_skip=options.no_skip,
            clear=options.clear,
        )

        if queued:
            if descriptor.is_bulk:
                self._run_bulk(descriptor, extractor, workspace, options)
            else:
                self._run_individual(descriptor, extractor, workspace, options)

        report = FetchReport.from_workspace(descriptor.provider, workspace)
        log.info(
            "fetch.completed",
            successful=len(report.successful),
            failed=len(report.failed),
            skipped=len(report.skipped),
            aborted=report.aborted,
        )

        if workspace.queued:
            raise FetchAbortedError(
                f"Fetching from {descriptor.display_name} ended with {len(workspace.queued)} stocks still queued.",
                report,
            )
        return report

    def _extractor_for(self, descriptor: ProviderDescriptor) -> Extractor:
        extractor = self._extractors.get(descriptor.provider)
        if extractor is None:
            raise ValueError(f"No extractor available for {descriptor.display_name}.")
        expected = BulkExtractor if descriptor.is_bulk else IndividualExtractor
        if not isinstance(extractor, expected):
            raise ValueError(f"Extractor for {descriptor.display_name} must be a {expected.__name__}.")
        return extractor

    def _select(self, descriptor: ProviderDescriptor, options: FetchOptions) -> list[Stock]:
        if options.ticker is None:
            return self._store.list_eligible(descriptor)

        stock = self._store.read(options.ticker)
        if not descriptor.has_identifier(stock):
            raise NotFoundError(f"Stock {options.ticker} does not have a {descriptor.display_name} ID.")
        return [stock]

    def _plan(self, descriptor: ProviderDescriptor, stocks: list[Stock], options: FetchOptions) -> FetchWorkspace:
        """Queue the stocks that are due, skip the ones fetched within the TTL."""
        now = datetime.now(timezone.utc)
        due, fresh = [], []
        for stock in stocks:
            last_fetch = getattr(stock, descriptor.last_fetch_field)
            if last_fetch is not None and last_fetch.tzinfo is None:
                last_fetch = last_fetch.replace(tzinfo=timezone.utc)
            if (
                not options.no_skip
                and last_fetch is not None
                and (now - last_fetch).total_seconds() < descriptor.ttl_seconds
            ):
                fresh.append(stock)
            else:
                due.append(stock)

        workspace = FetchWorkspace(due, self._config.fetch.failure_threshold)
        for stock in fresh:
            logger.debug("fetch.stock_skipped", provider=descriptor.provider.value, ticker=stock.ticker)
            workspace.skip(stock)
        return workspace

    def _run_individual(
        self,
        descriptor: ProviderDescriptor,
        extractor: IndividualExtractor,
        workspace: FetchWorkspace,
        options: FetchOptions,
    ) -> None:
        concurrency = options.concurrency or self._config.concurrency_for(
            descriptor.provider, descriptor.default_concurrency
        )

        def _work() -> None:
            while True:
                stock = workspace.pop()
                if stock is None:
                    return
                try:
                    stock = self._prepare(descriptor, stock, options)
                    outcome: Outcome = extractor.fetch_one(stock)
                except ExtractionError as e:
                    outcome = e
                except Exception as e:
                    logger.error(
                        "fetch.unexpected_error",
                        provider=descriptor.provider.value,
                        ticker=stock.ticker,
                        error=str(e),
                        exc_info=True,
                    )
                    outcome = ExtractionError(f"Unexpected error: {e}")
                self._handle(descriptor, stock, outcome, workspace, options)

        with ThreadPoolExecutor(
            max_workers=concurrency, thread_name_prefix=f"fetch-{descriptor.provider.value}"
        ) as pool:
            workers = [pool.submit(_work) for _ in range(concurrency)]
            # Re-raises the first error a worker surfaced, e.g. in a single-stock job
            for worker in workers:
                worker.result()

    def _run_bulk(
        self,
        descriptor: ProviderDescriptor,
        extractor: BulkExtractor,
        workspace: FetchWorkspace,
        options: FetchOptions,
    ) -> None:
        try:
            outcomes = extractor.fetch_many(workspace.queued)
        except UpstreamUnavailableError as e:
            logger.error("fetch.upstream_unavailable", provider=descriptor.provider.value, error=str(e))
            self._alert(f"{PREFIX_ERROR}Unable to fetch {descriptor.display_name} information: {e}")
            raise

        while True:
            stock = workspace.pop()
            if stock is None:
                return
            outcome = outcomes.get(stock.ticker)
            if outcome is None:
                # The payload does not know this identifier
                outcome = ExtractionResult(
                    failures=[AttributeFailure(f, "not found in payload") for f in descriptor.fields]
                )
            try:
                stock = self._prepare(descriptor, stock, options)
            except Exception as e:
                logger.error(
                    "fetch.unexpected_error",
                    provider=descriptor.provider.value,
                    ticker=stock.ticker,
                    error=str(e),
                    exc_info=True,
                )
                outcome = ExtractionError(f"Unexpected error: {e}")
            self._handle(descriptor, stock, outcome, workspace, options)

    def _prepare(self, descriptor: ProviderDescriptor, stock: Stock, options: FetchOptions) -> Stock:
        """Clear the provider attributes of a stock if requested."""
        if not options.clear:
            return stock
        cleared = self._updater.update(stock.ticker, descriptor.cleared_values(), silent=True)
        return cleared if cleared is not None else stock

    def _handle(
        self,
        descriptor: ProviderDescriptor,
        stock: Stock,
        outcome: Outcome,
        workspace: FetchWorkspace,
        options: FetchOptions,
    ) -> None:
        try:
            if isinstance(outcome, ExtractionError):
                self._handle_error(descriptor, stock, outcome, workspace, options)
            else:
                self._handle_result(descriptor, stock, outcome, workspace, options)
        except FetchFailedError:
            raise
        except Exception as e:
            if options.ticker is not None:
                raise FetchFailedError(f"Unable to update stock {stock.ticker}: {e}") from e
            logger.error(
                "fetch.unexpected_error",
                provider=descriptor.provider.value,
                ticker=stock.ticker,
                error=str(e),
                exc_info=True,
            )
            self._fail(descriptor, stock, workspace)

    def _handle_result(
        self,
        descriptor: ProviderDescriptor,
        stock: Stock,
        result: ExtractionResult,
        workspace: FetchWorkspace,
        options: FetchOptions,
    ) -> None:
        log = logger.bind(provider=descriptor.provider.value, ticker=stock.ticker)
        values = dict(result.values)
        # Attributes that were known before and could not be extracted now
        regressed = [f for f in result.failed_fields if _is_known(getattr(stock, f, None))]

        if not regressed:
            if result.failures:
                log.warning("fetch.attributes_unavailable", fields=result.failed_fields)
            values[descriptor.last_fetch_field] = datetime.now(timezone.utc)
            self._updater.update(stock.ticker, values)
            workspace.succeed(stock)
            log.debug("fetch.stock_successful")
            return

        # Keep what could be read, but leave last fetch untouched so the stock is retried next run
        self._updater.update(stock.ticker, values)
        links = self._store_snapshots(descriptor, stock, result.snapshots)
        reasons = "; ".join(f"{f.field}: {f.reason}" for f in result.failures if f.field in regressed)
        message = (
            f"{PREFIX_ERROR}Unable to extract {', '.join(regressed)} for {stock.name} ({stock.ticker}) "
            f"from {descriptor.display_name}: {reasons}"
        ) + "".join(f"\n{link}" for link in links)
        log.error("fetch.attributes_regressed", fields=regressed, resources=links)

        if options.ticker is not None:
            raise FetchFailedError(message)
        self._alert(message)
        self._fail(descriptor, stock, workspace)

    def _handle_error(
        self,
        descriptor: ProviderDescriptor,
        stock: Stock,
        error: ExtractionError,
        workspace: FetchWorkspace,
        options: FetchOptions,
    ) -> None:
        links = self._store_snapshots(descriptor, stock, error.snapshots)
        message = (
            f"{PREFIX_ERROR}Unable to fetch {descriptor.display_name} information for "
            f"{stock.name} ({stock.ticker}): {error}"
        ) + "".join(f"\n{link}" for link in links)

        if options.ticker is not None:
            raise FetchFailedError(message) from error

        regressive = any(_is_known(getattr(stock, f)) for f in descriptor.fields)
        if regressive:
            logger.error(
                "fetch.stock_failed",
                provider=descriptor.provider.value,
                ticker=stock.ticker,
                error=str(error),
                resources=links,
            )
            self._alert(message)
        else:
            # Nothing known about this stock was lost
            logger.warning(
                "fetch.stock_failed",
                provider=descriptor.provider.value,
                ticker=stock.ticker,
                error=str(error),
                resources=links,
            )
        self._fail(descriptor, stock, workspace)

    def _fail(self, descriptor: ProviderDescriptor, stock: Stock, workspace: FetchWorkspace) -> None:
        if not workspace.fail(stock):
            return
        successful, failed = len(workspace.successful), len(workspace.failed)
        logger.error(
            "fetch.aborted",
            provider=descriptor.provider.value,
            successful=successful,
            failed=failed,
            skipped=len(workspace.skipped),
        )
        self._alert(
            f"{PREFIX_ERROR}Aborting fetching information from {descriptor.display_name} after "
            f"{successful} successful fetches and {failed} failures. Will continue next time."
        )

    def _store_snapshots(
        self, descriptor: ProviderDescriptor, stock: Stock, snapshots: list[RawSnapshot]
    ) -> list[str]:
        if self._forensics is None or not snapshots:
            return []

        now = datetime.now(timezone.utc)
        stored = []
        for index, snapshot in enumerate(snapshots):
            name = resource_id(descriptor.provider.value, stock.ticker, snapshot.content_type, now, index)
            try:
                stored.append(
                    self._forensics.store(
                        snapshot.content,
                        snapshot.content_type,
                        self._config.fetch.forensics_ttl_seconds,
                        name,
                    )
                )
            except Exception as e:
                # Snapshots are best effort
                logger.warning("forensics.store_failed", resource=name, error=str(e))
        return resource_links(stored, self._fqdn)

    def _alert(self, message: str) -> None:
        if self._notifier is None or self._recipients is None:
            return
        self._notifier.send(message, self._recipients.read_message_recipients(MessageKind.FETCH_ERROR))
