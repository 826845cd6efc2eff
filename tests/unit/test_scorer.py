"""Tests for the stock scorer."""

import pytest

from ratingtracker.models import AnalystRating, MSCIESGRating
from ratingtracker.stocks.scorer import StockScorer, percentage_to_last_close, total_score


@pytest.fixture
def scorer():
    return StockScorer()


class TestReferenceStocks:
    def test_midpoint_stock_scores_zero(self, scorer, midpoint_stock):
        result = scorer.calculate(midpoint_stock)
        assert result.financial_score == 0
        assert result.esg_score == 0
        assert result.total_score == 0

    def test_poor_stock_scores_minus_one(self, scorer, poor_stock):
        result = scorer.calculate(poor_stock)
        assert result.financial_score == -1
        assert result.esg_score == -1
        assert result.total_score == -1

    def test_excellent_stock_scores_one(self, scorer, excellent_stock):
        result = scorer.calculate(excellent_stock)
        assert result.financial_score == pytest.approx(1)
        assert result.esg_score == pytest.approx(1)
        assert result.total_score == pytest.approx(1)

    def test_scores_stay_in_range(self, scorer, poor_stock, midpoint_stock, excellent_stock):
        for stock in (poor_stock, midpoint_stock, excellent_stock):
            result = scorer.calculate(stock)
            for score in (result.financial_score, result.esg_score, result.total_score):
                assert -1 <= score <= 1 + 1e-9


class TestFinancialScore:
    @pytest.mark.parametrize(
        "stars,expected",
        [(1, -1 / 3), (2, -1 / 6), (3, 0.0), (4, 1 / 6), (5, 1 / 3)],
    )
    def test_star_rating_alone_is_divided_by_three(self, scorer, bare_stock, stars, expected):
        stock = bare_stock.model_copy(update={"star_rating": stars})
        assert scorer.financial_score(stock) == pytest.approx(expected)

    def test_empty_stock_scores_zero(self, scorer, bare_stock):
        assert scorer.financial_score(bare_stock) == 0
        assert scorer.esg_score(bare_stock) == 0
        assert scorer.calculate(bare_stock).total_score == 0

    def test_consensus_damped_by_analyst_count(self, scorer, bare_stock):
        stock = bare_stock.model_copy(
            update={"analyst_consensus": AnalystRating.BUY, "analyst_count": 5}
        )
        assert scorer.financial_score(stock) == pytest.approx(0.5 / 3)

    def test_consensus_ignored_without_analysts(self, scorer, bare_stock):
        stock = bare_stock.model_copy(
            update={"analyst_consensus": AnalystRating.BUY, "analyst_count": 0}
        )
        assert scorer.financial_score(stock) == 0

    def test_fair_value_discount_capped_at_one(self, scorer, bare_stock):
        stock = bare_stock.model_copy(update={"last_close": 10.0, "morningstar_fair_value": 100.0})
        # 90 percent discount would score 1.8
        assert scorer.financial_score(stock) == pytest.approx(1 / 3)

    def test_fair_value_without_last_close_ignored(self, scorer, bare_stock):
        stock = bare_stock.model_copy(update={"morningstar_fair_value": 100.0})
        assert scorer.financial_score(stock) == 0

    def test_large_premium_clamped_to_minus_one(self, scorer, bare_stock):
        stock = bare_stock.model_copy(
            update={"last_close": 1000.0, "morningstar_fair_value": 10.0, "star_rating": 1}
        )
        assert scorer.financial_score(stock) == -1


class TestESGScore:
    @pytest.mark.parametrize(
        "rating,expected",
        [
            (MSCIESGRating.AAA, 0.25),
            (MSCIESGRating.AA, 0.125),
            (MSCIESGRating.A, 0.0),
            (MSCIESGRating.BBB, -0.125),
            (MSCIESGRating.BB, -0.25),
            (MSCIESGRating.B, -0.375),
            (MSCIESGRating.CCC, -0.5),
        ],
    )
    def test_msci_rating_alone_is_divided_by_four(self, scorer, bare_stock, rating, expected):
        stock = bare_stock.model_copy(update={"msci_esg_rating": rating})
        assert scorer.esg_score(stock) == pytest.approx(expected)

    def test_low_temperature_capped_at_one(self, scorer, bare_stock):
        stock = bare_stock.model_copy(update={"msci_temperature": 0.5})
        assert scorer.esg_score(stock) == pytest.approx(0.25)

    def test_esg_risk_scale(self, scorer, bare_stock):
        stock = bare_stock.model_copy(update={"sustainalytics_esg_risk": 10.0})
        assert scorer.esg_score(stock) == pytest.approx(0.5 / 4)


class TestTotalScore:
    def test_harmonic_mean_of_positive_scores(self):
        assert total_score(0.5, 0.5) == pytest.approx(0.5)
        assert total_score(0.2, 0.8) == pytest.approx(0.32)

    def test_min_if_any_score_not_positive(self):
        assert total_score(0.5, -0.2) == pytest.approx(-0.2)
        assert total_score(0.0, 0.9) == 0.0


class TestDerivedFields:
    def test_percentage_to_last_close(self):
        assert percentage_to_last_close(120.0, 100.0) == pytest.approx(20.0)
        assert percentage_to_last_close(80.0, 100.0) == pytest.approx(-20.0)

    def test_zero_or_missing_reference_yields_none(self):
        assert percentage_to_last_close(100.0, 0.0) is None
        assert percentage_to_last_close(100.0, None) is None
        assert percentage_to_last_close(None, 100.0) is None

    def test_position_in_52w(self, scorer, midpoint_stock):
        assert scorer.calculate(midpoint_stock).position_in_52w == pytest.approx(0.5)

    def test_position_in_52w_requires_range(self, scorer, midpoint_stock, bare_stock):
        flat = midpoint_stock.model_copy(update={"low_52w": 100.0, "high_52w": 100.0})
        assert scorer.calculate(flat).position_in_52w is None
        assert scorer.calculate(bare_stock).position_in_52w is None

    def test_recalculation_is_idempotent(self, scorer, excellent_stock):
        once = scorer.apply(excellent_stock)
        twice = scorer.apply(once)
        assert once == twice
