"""Fetch job entry point.

Runs one fetch job for one data provider, designed to be triggered by a K8s
CronJob per provider:
1. Select the stocks with an identifier for the provider
2. Skip stocks fetched within the provider TTL
3. Fetch, rescore and store the rest, notifying subscribers of changes

Usage:
    PYTHONPATH=src python -m ratingtracker.fetch.job

Environment variables:
    FETCH_PROVIDER: Data provider to fetch from, or "recompute" to rescore
                    every stock without fetching (required)
    FETCH_TICKER: Restrict the job to a single stock (optional)
    FETCH_NO_SKIP: "true" to ignore the provider TTL (default: false)
    FETCH_CLEAR: "true" to erase provider attributes before fetching (default: false)
    FETCH_CONCURRENCY: Number of workers (default: provider specific)
    RATINGTRACKER_CONFIG: Path of the YAML config (default: config/settings.yaml)
    REDIS_HOST: Redis host (default: localhost)
    REDIS_PORT: Redis port (default: 6379)
    REDIS_PASSWORD: Redis password (optional)
    SIGNAL_URL, SIGNAL_SENDER: Signal gateway, messages are not sent if unset
    FQDN: Public host name used in links to stored snapshots (optional)
"""

import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import structlog

from ratingtracker.config import AppConfig, Secrets, load_config
from ratingtracker.fetch.orchestrator import FetchOrchestrator, FetchReport
from ratingtracker.forensics import RedisForensicsSink
from ratingtracker.logging_config import configure_logging
from ratingtracker.models import FetchOptions
from ratingtracker.notify import ConfigRecipientDirectory, SignalNotifier
from ratingtracker.providers import create_extractor, get_descriptor
from ratingtracker.stocks import RedisStockStore, StockScorer, StockUpdater

logger = structlog.get_logger(__name__)

RECOMPUTE = "recompute"


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in ("1", "true", "yes")


def read_options() -> FetchOptions:
    """Build the job options from environment variables."""
    concurrency: Optional[str] = os.getenv("FETCH_CONCURRENCY")
    return FetchOptions(
        ticker=os.getenv("FETCH_TICKER") or None,
        no_skip=_env_flag("FETCH_NO_SKIP"),
        clear=_env_flag("FETCH_CLEAR"),
        concurrency=int(concurrency) if concurrency else None,
    )


def print_report(report: FetchReport) -> None:
    """Print the partitions of a finished job.

    This will be visible in kubectl logs for the cronjob.
    """
    descriptor = get_descriptor(report.provider)
    print("=" * 60)
    print(f"{descriptor.display_name.upper()} FETCH SUMMARY")
    print("=" * 60)
    print(f"  Successful: {len(report.successful)}")
    print(f"  Failed:     {len(report.failed)}")
    print(f"  Skipped:    {len(report.skipped)}")
    if report.failed:
        print(f"  Failed tickers: {', '.join(sorted(report.failed))}")
    if report.aborted:
        print("  Job aborted after too many failures, skipped stocks will be fetched next time.")
    print("=" * 60)


def main() -> int:
    """Run one fetch job.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    start_time = datetime.now(timezone.utc)

    try:
        config = load_config(Path(os.getenv("RATINGTRACKER_CONFIG", "config/settings.yaml")))
    except FileNotFoundError:
        config = AppConfig()
    configure_logging(config.logging)

    provider = os.getenv("FETCH_PROVIDER", "").strip().lower()

    print("=" * 60)
    print("RATING TRACKER FETCH JOB")
    print("=" * 60)
    print(f"Start Time: {start_time.isoformat()}")
    print(f"Provider:   {provider or 'NOT SET'}")
    print()

    if not provider:
        print("ERROR: FETCH_PROVIDER environment variable not set")
        logger.error("fetch_job.missing_provider")
        return 1

    store = None
    try:
        options = read_options()
        secrets = Secrets()

        logger.info(
            "fetch_job.starting",
            provider=provider,
            ticker=options.ticker,
            no_skip=options.no_skip,
            clear=options.clear,
            concurrency=options.concurrency,
            signal_enabled=bool(secrets.signal_url and secrets.signal_sender),
        )

        store = RedisStockStore()
        notifier = SignalNotifier(secrets)
        recipients = ConfigRecipientDirectory(config)
        updater = StockUpdater(store, StockScorer(), notifier, recipients)

        if provider == RECOMPUTE:
            count = updater.recompute_all()
            print(f"Recomputed dynamic attributes of {count} stocks.")
            return 0

        descriptor = get_descriptor(provider)
        extractor = create_extractor(descriptor.provider, config.extractors)
        orchestrator = FetchOrchestrator(
            store,
            updater,
            {descriptor.provider: extractor},
            config=config,
            notifier=notifier,
            recipients=recipients,
            forensics=RedisForensicsSink(),
            fqdn=secrets.fqdn,
        )

        report = orchestrator.fetch(descriptor.provider, options)
        print_report(report)

        duration = (datetime.now(timezone.utc) - start_time).total_seconds()
        print(f"Job completed in {duration:.0f} seconds.")
        logger.info("fetch_job.completed", provider=provider, duration_seconds=duration)

        return 0

    except Exception as e:
        print(f"\nFATAL ERROR: {e}")
        logger.error(
            "fetch_job.fatal_error",
            provider=provider,
            error=str(e),
            exc_info=True,
        )
        return 1

    finally:
        if store is not None:
            store.close()


if __name__ == "__main__":
    sys.exit(main())
