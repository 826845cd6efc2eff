"""Score calculator deriving comparable scores from raw provider attributes."""

from dataclasses import asdict, dataclass
from typing import Optional

import structlog

from ratingtracker.models import ANALYST_RATINGS, MSCI_ESG_RATINGS, Stock

logger = structlog.get_logger(__name__)

_STAR_RATING_SCORES = {1: -1.0, 2: -0.5, 3: 0.0, 4: 0.5, 5: 1.0}


@dataclass
class DynamicAttributes:
    """Derived attributes of a stock, all recomputed on every write."""

    financial_score: float  # -1 (poor) to 1 (excellent)
    esg_score: float  # -1 (poor) to 1 (excellent)
    total_score: float  # -1 (poor) to 1 (excellent)
    morningstar_fair_value_percentage_to_last_close: Optional[float]
    analyst_target_price_percentage_to_last_close: Optional[float]
    position_in_52w: Optional[float]

    def as_dict(self) -> dict:
        return asdict(self)


def total_score(financial_score: float, esg_score: float) -> float:
    """Combine financial and ESG scores.

    The harmonic mean is used when both are positive, so a stock has to perform
    well in both dimensions to obtain a good total score. Otherwise the smaller
    one wins, so a negative score in either dimension caps the total.
    """
    if financial_score > 0 and esg_score > 0:
        return 2 * financial_score * esg_score / (financial_score + esg_score)
    return min(financial_score, esg_score)


def percentage_to_last_close(last_close: Optional[float], reference: Optional[float]) -> Optional[float]:
    """Premium (positive) or discount (negative) of the last close relative to a reference price."""
    if not reference or last_close is None:
        return None
    return 100 * (last_close / reference - 1)


class StockScorer:
    """Calculates the dynamic attributes of a stock.

    Financial score components (each -1 to 1):
    - Morningstar star rating
    - Morningstar fair value premium/discount
    - Analyst consensus, damped below 10 analysts
    - Analyst target price premium/discount, damped below 10 analysts

    ESG score components (each at most 1):
    - MSCI ESG rating and implied temperature rise
    - LSEG ESG score and emissions rating, S&P ESG score (0-100 scales)
    - Sustainalytics ESG risk (lower is better)

    Missing inputs are excluded from aggregation, never treated as zero. The
    sums are divided by at least 3 (financial) or 4 (ESG) so that a few
    available signals cannot produce an extreme score on their own.
    """

    MIN_FINANCIAL_DIVISOR = 3
    MIN_ESG_DIVISOR = 4
    FULL_CONVICTION_ANALYST_COUNT = 10

    def calculate(self, stock: Stock) -> DynamicAttributes:
        """Calculate all dynamic attributes for a stock."""
        financial = self.financial_score(stock)
        esg = self.esg_score(stock)
        result = DynamicAttributes(
            financial_score=financial,
            esg_score=esg,
            total_score=total_score(financial, esg),
            morningstar_fair_value_percentage_to_last_close=percentage_to_last_close(
                stock.last_close, stock.morningstar_fair_value
            ),
            analyst_target_price_percentage_to_last_close=percentage_to_last_close(
                stock.last_close, stock.analyst_target_price
            ),
            position_in_52w=self._position_in_52w(stock),
        )

        logger.debug(
            "score.calculated",
            ticker=stock.ticker,
            financial=result.financial_score,
            esg=result.esg_score,
            total=result.total_score,
        )

        return result

    def apply(self, stock: Stock) -> Stock:
        """Return a copy of the stock with freshly computed dynamic attributes."""
        return stock.model_copy(update=self.calculate(stock).as_dict())

    def financial_score(self, stock: Stock) -> float:
        components = [
            self._score_star_rating(stock),
            self._cap(self._score_fair_value(stock)),
            self._score_analyst_consensus(stock),
            self._cap(self._score_analyst_target_price(stock)),
        ]
        return self._aggregate(components, self.MIN_FINANCIAL_DIVISOR)

    def esg_score(self, stock: Stock) -> float:
        components = [
            self._score_msci_esg_rating(stock),
            self._score_msci_temperature(stock),
            self._score_percentage_scale(stock.lseg_esg_score),
            self._score_percentage_scale(stock.lseg_emissions),
            self._score_percentage_scale(stock.sp_esg_score),
            self._score_esg_risk(stock.sustainalytics_esg_risk),
        ]
        return self._aggregate([self._cap(c) for c in components], self.MIN_ESG_DIVISOR)

    def _aggregate(self, components: list[Optional[float]], min_divisor: int) -> float:
        available = [c for c in components if c is not None]
        if not available:
            return 0.0
        return max(sum(available) / max(min_divisor, len(available)), -1.0)

    def _cap(self, score: Optional[float]) -> Optional[float]:
        return None if score is None else min(score, 1.0)

    def _score_star_rating(self, stock: Stock) -> Optional[float]:
        """1 star scores -1, 5 stars score 1."""
        return _STAR_RATING_SCORES.get(stock.star_rating)

    def _score_fair_value(self, stock: Stock) -> Optional[float]:
        """A discount of 50 percent or more scores 1, a premium of 50 percent or more scores -1 or less."""
        percentage = percentage_to_last_close(stock.last_close, stock.morningstar_fair_value)
        return None if percentage is None else -percentage / 50

    def _analyst_conviction(self, stock: Stock) -> Optional[float]:
        if not stock.analyst_count:
            return None
        return min(stock.analyst_count / self.FULL_CONVICTION_ANALYST_COUNT, 1.0)

    def _score_analyst_consensus(self, stock: Stock) -> Optional[float]:
        """Sell scores -1, Buy scores 1, damped by the number of analysts."""
        conviction = self._analyst_conviction(stock)
        if conviction is None or stock.analyst_consensus is None:
            return None
        raw = 0.5 * ANALYST_RATINGS.index(stock.analyst_consensus) - 1
        return raw * conviction

    def _score_analyst_target_price(self, stock: Stock) -> Optional[float]:
        conviction = self._analyst_conviction(stock)
        percentage = percentage_to_last_close(stock.last_close, stock.analyst_target_price)
        if conviction is None or percentage is None:
            return None
        return conviction * (-percentage / 50)

    def _score_msci_esg_rating(self, stock: Stock) -> Optional[float]:
        """AAA scores 1, CCC scores -2."""
        if stock.msci_esg_rating is None:
            return None
        return -0.5 * MSCI_ESG_RATINGS.index(stock.msci_esg_rating) + 1

    def _score_msci_temperature(self, stock: Stock) -> Optional[float]:
        """1 degree or less scores 1, 4 degrees score -2."""
        if stock.msci_temperature is None:
            return None
        return min(2 - stock.msci_temperature, 1.0)

    def _score_percentage_scale(self, value: Optional[float]) -> Optional[float]:
        """0 scores -1, 100 scores 1."""
        return None if value is None else (value - 50) / 50

    def _score_esg_risk(self, risk: Optional[float]) -> Optional[float]:
        """A risk of 0 scores 1, a risk of 40 scores -1."""
        return None if risk is None else 1 - risk / 20

    def _position_in_52w(self, stock: Stock) -> Optional[float]:
        if stock.last_close is None or stock.low_52w is None or stock.high_52w is None:
            return None
        if stock.high_52w == stock.low_52w:
            return None
        return (stock.last_close - stock.low_52w) / (stock.high_52w - stock.low_52w)
