"""Update engine: applies proposed attribute changes to a stock and reports them.

Proposals are partial. A field that is absent stays unchanged, a field set to
None is erased. Values equal to the stored ones are dropped before anything is
written, so re-fetching identical data is a no-op.
"""

from typing import Any, Optional

import structlog
from pydantic import ValidationError

from ratingtracker.models import ANALYST_RATINGS, DYNAMIC_ATTRIBUTES, MSCI_ESG_RATINGS, Stock, raw_attributes
from ratingtracker.notify.base import (
    PREFIX_BETTER,
    PREFIX_WORSE,
    MessageKind,
    Notifier,
    RecipientDirectory,
)
from ratingtracker.providers import ID_FIELDS, PROVIDERS
from ratingtracker.stocks.scorer import StockScorer
from ratingtracker.stocks.store import StockStore

logger = structlog.get_logger(__name__)

PRETTY_NAMES = {
    "star_rating": "Star Rating",
    "morningstar_fair_value": "Morningstar Fair Value",
    "analyst_consensus": "Analyst Consensus",
    "analyst_target_price": "Analyst Target Price",
    "msci_esg_rating": "MSCI ESG Rating",
    "msci_temperature": "MSCI Implied Temperature Rise",
    "lseg_esg_score": "LSEG ESG Score",
    "lseg_emissions": "LSEG Emissions Rating",
    "sp_esg_score": "S&P ESG Score",
    "sustainalytics_esg_risk": "Sustainalytics ESG Risk",
}

_SMALLER_IS_BETTER = {"msci_temperature", "sustainalytics_esg_risk"}


class InvalidRequestError(Exception):
    """Raised when a proposed update does not fit the stock schema."""


def _display(value: Any) -> str:
    if value is None:
        return "N/A"
    return str(getattr(value, "value", value))


def _stars(rating: Optional[int]) -> str:
    if rating is None:
        return "N/A"
    return "★" * rating + "☆" * (5 - rating)


def _relative_to_close(value: Optional[float], last_close: Optional[float]) -> float:
    """Reference price relative to the last close, or the raw price if no close is known."""
    if value is None:
        return 0.0
    if not last_close:
        return value
    return value / last_close


def is_improvement(field: str, old: Stock, new: Stock) -> bool:
    """Whether a change of a digest field makes the stock more attractive."""
    before, after = getattr(old, field), getattr(new, field)
    if field in ("morningstar_fair_value", "analyst_target_price"):
        # A higher reference price is only better relative to the price it accompanies
        return _relative_to_close(after, new.last_close) > _relative_to_close(before, old.last_close)
    if field == "analyst_consensus":
        return (
            ANALYST_RATINGS.index(after) if after is not None else -1
        ) > (ANALYST_RATINGS.index(before) if before is not None else -1)
    if field == "msci_esg_rating":
        # Smaller index in [AAA, ..., CCC] is better
        worst = len(MSCI_ESG_RATINGS)
        return (
            MSCI_ESG_RATINGS.index(after) if after is not None else worst
        ) < (MSCI_ESG_RATINGS.index(before) if before is not None else worst)
    if field in _SMALLER_IS_BETTER:
        return (after if after is not None else float("inf")) < (
            before if before is not None else float("inf")
        )
    return (after if after is not None else 0) > (before if before is not None else 0)


def describe_change(field: str, old: Stock, new: Stock) -> str:
    """One digest line for a changed field."""
    prefix = PREFIX_BETTER if is_improvement(field, old, new) else PREFIX_WORSE
    before, after = getattr(old, field), getattr(new, field)
    name = PRETTY_NAMES[field]

    if field == "star_rating":
        return f"{prefix}{name} changed from {_stars(before)} to {_stars(after)}"
    if field in ("morningstar_fair_value", "analyst_target_price"):
        currency = new.currency or ""
        return (
            f"{prefix}{name} changed from {currency} {_display(before)} to {currency} {_display(after)}"
            f" (last close {currency} {_display(new.last_close)})"
        )
    if field == "msci_temperature":
        return f"{prefix}{name} changed from {_display(before)} ℃ to {_display(after)} ℃"
    return f"{prefix}{name} changed from {_display(before)} to {_display(after)}"


class StockUpdater:
    """Computes the effective change of a proposal, rescores and persists the stock.

    Every write goes through a single store transaction, so two providers
    updating disjoint fields of the same stock concurrently do not lose each
    other's writes.
    """

    def __init__(
        self,
        store: StockStore,
        scorer: Optional[StockScorer] = None,
        notifier: Optional[Notifier] = None,
        recipients: Optional[RecipientDirectory] = None,
    ):
        self._store = store
        self._scorer = scorer or StockScorer()
        self._notifier = notifier
        self._recipients = recipients

    def update(
        self,
        ticker: str,
        proposed: dict[str, Any],
        force: bool = False,
        silent: bool = False,
    ) -> Optional[Stock]:
        """Apply a partial update to a stock.

        Args:
            ticker: The stock to update
            proposed: Field name to new value. None erases a field.
            force: Rescore and write even if nothing changed
            silent: Do not notify subscribers about the changes

        Returns:
            The written stock, or None if nothing was written

        Raises:
            NotFoundError: If the stock does not exist
            InvalidRequestError: If a field is unknown, derived, or has an invalid value
        """
        self._check_fields(ticker, proposed)
        proposed = self._with_cascade(proposed)

        digest: list[str] = []
        changed: dict[str, Any] = {}

        def _apply(current: Stock) -> Optional[Stock]:
            # May run again if the stock was modified concurrently
            digest.clear()
            changed.clear()

            merged = self._merge(current, proposed)
            for field in proposed:
                if getattr(merged, field) != getattr(current, field):
                    changed[field] = getattr(merged, field)

            if not changed and not force:
                return None

            for field in PRETTY_NAMES:
                if field in changed:
                    digest.append(describe_change(field, current, merged))
            return self._scorer.apply(merged)

        updated = self._store.transact(ticker, _apply)

        if updated is None:
            logger.info("stock.unchanged", ticker=ticker)
            return None

        logger.info("stock.updated", ticker=ticker, fields=sorted(changed), forced=force and not changed)

        if digest and not silent:
            self._notify(updated, digest)
        return updated

    def recompute_all(self) -> int:
        """Rewrite every stock with freshly computed dynamic attributes.

        Returns:
            Number of stocks written
        """
        count = 0
        for stock in self._store.read_all():
            if self.update(stock.ticker, {}, force=True, silent=True) is not None:
                count += 1
        logger.info("stock.recomputed", count=count)
        return count

    def _check_fields(self, ticker: str, proposed: dict[str, Any]) -> None:
        for field, value in proposed.items():
            if field not in Stock.model_fields:
                raise InvalidRequestError(f"Invalid property {field} for stock {ticker}.")
            if field in DYNAMIC_ATTRIBUTES:
                raise InvalidRequestError(f"Property {field} of stock {ticker} is computed and cannot be written.")
            if field == "ticker" and value != ticker:
                raise InvalidRequestError(f"The ticker of stock {ticker} cannot be changed.")

    def _with_cascade(self, proposed: dict[str, Any]) -> dict[str, Any]:
        """Add the erasure of provider attributes for every provider identifier being removed."""
        expanded = dict(proposed)
        for field, value in proposed.items():
            if field in ID_FIELDS and not value:
                for owned, cleared in PROVIDERS[ID_FIELDS[field]].cleared_values().items():
                    expanded.setdefault(owned, cleared)
        return expanded

    def _merge(self, current: Stock, proposed: dict[str, Any]) -> Stock:
        try:
            return Stock.model_validate({**raw_attributes(current), **proposed})
        except ValidationError as e:
            raise InvalidRequestError(f"Invalid update for stock {current.ticker}: {e}") from e

    def _notify(self, stock: Stock, digest: list[str]) -> None:
        if self._notifier is None or self._recipients is None:
            return
        message = f"Updates for {stock.name} ({stock.ticker}):" + "".join(f"\n\t{line}" for line in digest)
        recipients = self._recipients.read_message_recipients(MessageKind.STOCK_UPDATE, stock.ticker)
        self._notifier.send(message, recipients)
