"""Verify connectivity to Redis, the Signal gateway and the configured extractors."""

import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "src"))

import requests

from ratingtracker.config import AppConfig, Secrets, load_config
from ratingtracker.providers import create_extractor, get_descriptor


def check_redis() -> bool:
    """Verify the stock store is reachable."""
    print("Checking Redis...")
    try:
        from ratingtracker.stocks import RedisStockStore

        store = RedisStockStore()
        stocks = store.read_all()
        print(f"  Stocks stored: {len(stocks)}")
        store.close()
        print("  Redis: OK")
        return True
    except Exception as e:
        print(f"  Redis: FAILED - {e}")
        return False


def check_signal(secrets: Secrets) -> bool:
    """Verify the Signal REST gateway answers."""
    print("\nChecking Signal gateway...")
    if not secrets.signal_url:
        print("  SIGNAL_URL not set, messages will not be sent")
        return True
    try:
        response = requests.get(f"{secrets.signal_url.rstrip('/')}/v1/about", timeout=10)
        response.raise_for_status()
        print(f"  Gateway: {response.json()}")
        print("  Signal: OK")
        return True
    except Exception as e:
        print(f"  Signal: FAILED - {e}")
        return False


def check_extractors(config: AppConfig) -> bool:
    """Verify every configured extractor can be instantiated."""
    print("\nChecking extractors...")
    if not config.extractors:
        print("  No extractors configured")
        return True
    ok = True
    for provider in config.extractors:
        name = get_descriptor(provider).display_name
        try:
            extractor = create_extractor(provider, config.extractors)
            print(f"  {name}: OK ({type(extractor).__name__})")
        except Exception as e:
            print(f"  {name}: FAILED - {e}")
            ok = False
    return ok


def main():
    print("=" * 50)
    print("Rating Tracker - Connectivity Check")
    print("=" * 50)

    try:
        config = load_config()
        secrets = Secrets()
    except Exception as e:
        print(f"\nFailed to load configuration: {e}")
        print("Make sure config/settings.yaml exists and .env is readable")
        sys.exit(1)

    results = [
        check_redis(),
        check_signal(secrets),
        check_extractors(config),
    ]

    print("\n" + "=" * 50)
    if all(results):
        print("All checks passed. Ready to fetch.")
    else:
        print("Some checks failed. Fix the issues above.")
        sys.exit(1)


if __name__ == "__main__":
    main()
