"""
Unit tests for py_valuation.position_metrics and py_valuation.aggregator.
"""
import pytest
from datetime import date
from decimal import Decimal

from py_valuation.aggregator import aggregate_by_class, aggregate_by_symbol
from py_valuation.position_metrics import calculate_position_metrics
from py_valuation.types import (
    AssetClass, Investment, RateChange, Transaction, TransactionKind, ViewMode, YearFilter
)
from py_tax.types import TaxSettings


def make_investment(inv_id, asset_class=AssetClass.STOCK, qty="10", price="100", current="120",
                    bought=date(2023, 1, 10), ticker=None, name=None, staking=False):
    return Investment(
        id=inv_id,
        name=name or inv_id,
        asset_class=asset_class,
        purchase_quantity=Decimal(qty),
        purchase_price=Decimal(price),
        purchase_date=bought,
        current_price=Decimal(current) if current is not None else None,
        ticker=ticker,
        staking_or_lending=staking
    )


def sell(inv_id, qty, price, on, tx_id="s1"):
    return Transaction(id=tx_id, investment_id=inv_id, kind=TransactionKind.SELL,
                       date=on, quantity=Decimal(qty), price_per_unit=Decimal(price))


def dividend(inv_id, amount, on, tx_id="d1"):
    return Transaction(id=tx_id, investment_id=inv_id, kind=TransactionKind.DIVIDEND,
                       date=on, quantity=Decimal("1"), price_per_unit=Decimal(amount))


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def sold_out():
    """ Fully sold in 2024 with a gain of 500. """
    inv = make_investment("sold", qty="10", price="100", current="150", ticker="SOLD")
    return inv, [sell("sold", "10", "150", date(2024, 5, 2))]


@pytest.fixture
def still_held():
    """ Open position, no sells. Unrealized +200. """
    inv = make_investment("held", qty="10", price="100", current="120", ticker="HELD")
    return inv, []


# =============================================================================
# Position metrics
# =============================================================================

class TestPositionMetrics:

    def test_partial_sell(self):
        # ARRANGE
        inv = make_investment("a", qty="10", price="100", current="120")
        txs = [sell("a", "4", "110", date(2024, 3, 1))]

        # ACT
        m = calculate_position_metrics(inv, txs)

        # ASSERT
        assert m.available_qty == Decimal("6")
        assert m.realized_pl_all == Decimal("40")       # 440 - 4 * 100
        assert m.unrealized_pl == Decimal("120")        # 6 * 120 - 6 * 100
        assert m.total_pl_display == Decimal("160")
        assert m.performance_pct == Decimal("0.16")     # 160 / 1000

    def test_oversold_history_is_clamped(self):
        inv = make_investment("a", qty="5", price="100", current="120")
        txs = [sell("a", "3", "110", date(2024, 3, 1), "s1"), sell("a", "4", "110", date(2024, 4, 1), "s2")]

        m = calculate_position_metrics(inv, txs)

        assert m.available_qty == Decimal("0")
        assert m.sold_qty_all == Decimal("7")
        # proceeds 770, cost only for the 5 bought
        assert m.realized_pl_all == Decimal("270")
        assert m.market_value == Decimal("0")

    def test_zero_quantity_gives_zero_record(self):
        inv = make_investment("z", qty="0")
        m = calculate_position_metrics(inv, [sell("z", "1", "10", date(2024, 1, 1))])

        assert m.purchase_value == Decimal("0")
        assert m.realized_pl_all == Decimal("0")
        assert m.performance_pct == Decimal("0")

    def test_year_scoped_realized(self):
        inv = make_investment("a", qty="10", price="100", current="100")
        txs = [sell("a", "2", "150", date(2023, 6, 1), "s1"), sell("a", "3", "120", date(2024, 6, 1), "s2")]

        m = calculate_position_metrics(inv, txs, YearFilter(year=2024, mode=ViewMode.COMBINED))

        assert m.has_sells_in_year is True
        assert m.realized_pl_year == Decimal("60")
        assert m.realized_pl_all == Decimal("160")
        assert m.realized_pl_display == Decimal("60")
        assert m.capital_gains_year == Decimal("60")

    def test_holdings_mode_hides_realized(self):
        inv = make_investment("a", qty="10", price="100", current="100")
        txs = [sell("a", "3", "120", date(2024, 6, 1))]

        m = calculate_position_metrics(inv, txs, YearFilter(year=2024, mode=ViewMode.HOLDINGS))

        assert m.realized_pl_year == Decimal("60")
        assert m.realized_pl_display == Decimal("0")

    def test_dividends_of_year(self):
        inv = make_investment("a")
        txs = [dividend("a", "12.5", date(2024, 3, 1), "d1"), dividend("a", "7", date(2023, 3, 1), "d2")]

        m = calculate_position_metrics(inv, txs, YearFilter(year=2024))

        assert m.dividends_year == Decimal("12.50")

    def test_current_price_override(self):
        inv = make_investment("a", qty="10", price="100", current="120")
        m = calculate_position_metrics(inv, [], current_price=Decimal("90"))
        assert m.market_value == Decimal("900")
        assert m.unrealized_pl == Decimal("-100")

    def test_crypto_short_term_gain(self):
        inv = make_investment("btc", asset_class=AssetClass.CRYPTO, qty="2", price="20000",
                              current="30000", bought=date(2024, 1, 10))
        txs = [sell("btc", "1", "25000", date(2024, 6, 1))]

        m = calculate_position_metrics(inv, txs, YearFilter(year=2024))

        assert m.short_term_crypto_gain_year == Decimal("5000")
        assert m.capital_gains_year == Decimal("0")

    def test_crypto_long_term_gain_is_tax_free(self):
        inv = make_investment("btc", asset_class=AssetClass.CRYPTO, qty="1", price="20000",
                              current="30000", bought=date(2022, 1, 10))
        txs = [sell("btc", "1", "25000", date(2024, 6, 1))]

        m = calculate_position_metrics(inv, txs, YearFilter(year=2024))

        assert m.short_term_crypto_gain_year == Decimal("0")
        assert m.realized_pl_year == Decimal("5000")

    def test_crypto_staking_keeps_gain_taxable(self):
        inv = make_investment("eth", asset_class=AssetClass.CRYPTO, qty="1", price="1000",
                              current="3000", bought=date(2020, 1, 10), staking=True)
        txs = [sell("eth", "1", "3000", date(2024, 6, 1))]

        m = calculate_position_metrics(inv, txs, YearFilter(year=2024))

        assert m.short_term_crypto_gain_year == Decimal("2000")

    def test_savings_account(self):
        inv = make_investment("tg", asset_class=AssetClass.SAVINGS, qty="0", price="0",
                              current=None, bought=date(2024, 1, 1))
        txs = [Transaction(id="dep", investment_id="tg", kind=TransactionKind.DEPOSIT,
                           date=date(2024, 1, 1), quantity=Decimal("1"), price_per_unit=Decimal("1000"))]

        m = calculate_position_metrics(inv, txs, YearFilter(year=2024),
                                       rates=[RateChange(date(2024, 1, 1), Decimal("3.65"))],
                                       valuation_date=date(2024, 1, 2))

        assert m.purchase_value == Decimal("1000.00")
        assert m.market_value == Decimal("1000.10")
        assert m.interest_year == Decimal("0.10")


class TestAvailableQuantityProperty:

    @pytest.mark.parametrize("bought, sold", [
        ("10", ["3"]),
        ("10", ["10"]),
        ("10", ["6", "6"]),
        ("1", ["100"]),
    ])
    def test_never_negative(self, bought, sold):
        inv = make_investment("p", qty=bought)
        txs = [sell("p", q, "100", date(2024, 1, i + 1), f"s{i}") for i, q in enumerate(sold)]

        m = calculate_position_metrics(inv, txs)

        expected = max(Decimal("0"), Decimal(bought) - sum(Decimal(q) for q in sold))
        assert m.available_qty == expected
        assert m.available_qty >= 0


# =============================================================================
# Aggregation
# =============================================================================

class TestAggregateByClass:

    def test_fully_sold_included_in_realized_and_combined(self, sold_out, still_held):
        # ARRANGE
        investments = [sold_out[0], still_held[0]]
        txs = {"sold": sold_out[1], "held": still_held[1]}

        # ACT
        realized = aggregate_by_class(investments, txs, YearFilter(year=2024, mode=ViewMode.REALIZED))
        combined = aggregate_by_class(investments, txs, YearFilter(year=2024, mode=ViewMode.COMBINED))
        holdings = aggregate_by_class(investments, txs, YearFilter(year=2024, mode=ViewMode.HOLDINGS))

        # ASSERT
        assert realized.rows[0].positions == 1
        assert realized.rows[0].realized_pl == Decimal("500")
        assert combined.rows[0].positions == 2
        assert holdings.rows[0].positions == 1
        assert holdings.rows[0].realized_pl == Decimal("0")

    def test_realized_gain_counts_in_economic_value(self, sold_out, still_held):
        investments = [sold_out[0], still_held[0]]
        txs = {"sold": sold_out[1], "held": still_held[1]}

        summary = aggregate_by_class(investments, txs, YearFilter(year=2024, mode=ViewMode.COMBINED))

        row = summary.rows[0]
        # market value 1200 (held) + realized 500 (sold)
        assert row.economic_value == Decimal("1700")
        assert summary.totals.economic_value == Decimal("1700")
        assert row.percent_portfolio == Decimal("1.0000")

    def test_percent_of_portfolio_uses_economic_value(self, sold_out):
        crypto = make_investment("btc", asset_class=AssetClass.CRYPTO, qty="1", price="100", current="300")
        investments = [sold_out[0], crypto]
        txs = {"sold": sold_out[1]}

        summary = aggregate_by_class(investments, txs, YearFilter(year=2024, mode=ViewMode.COMBINED))

        by_class = {r.asset_class: r for r in summary.rows}
        # stock: 0 market + 500 realized, crypto: 300 market
        assert by_class[AssetClass.STOCK].percent_portfolio == Decimal("0.6250")
        assert by_class[AssetClass.CRYPTO].percent_portfolio == Decimal("0.3750")

    def test_all_time_totals(self, sold_out, still_held):
        investments = [sold_out[0], still_held[0]]
        txs = {"sold": sold_out[1], "held": still_held[1]}

        summary = aggregate_by_class(investments, txs)

        assert summary.totals.cost_basis == Decimal("1000")
        assert summary.totals.total_pl == Decimal("700")
        assert summary.totals.performance_pct == Decimal("0.3500")   # 700 / 2000
        assert summary.tax_summary is None

    def test_bought_after_year_not_in_holdings(self):
        later = make_investment("late", bought=date(2025, 2, 1))
        summary = aggregate_by_class([later], {}, YearFilter(year=2024, mode=ViewMode.HOLDINGS))
        assert summary.rows == []

    def test_tax_summary_for_year(self, sold_out):
        summary = aggregate_by_class(
            [sold_out[0]], {"sold": sold_out[1]},
            YearFilter(year=2024, mode=ViewMode.COMBINED),
            tax_settings=TaxSettings()
        )

        tax = summary.tax_summary
        assert tax is not None
        assert tax.capital.capital_income == Decimal("500")
        assert tax.capital.total == Decimal("0")   # below the 1000 allowance
        assert tax.grand_total == Decimal("0")

    def test_simulation_summary_merges_into_etf_row(self):
        class Lifetime:
            contrib = Decimal("1200")
            market_value = Decimal("1300")
            unrealized_pl = Decimal("100")

        class Summary:
            lifetime = Lifetime()
            by_year = {}

        etf = make_investment("etf", asset_class=AssetClass.ETF, qty="10", price="50", current="60")
        summary = aggregate_by_class([etf], {}, sim_summaries=[Summary()])

        rows = [r for r in summary.rows if r.asset_class == AssetClass.ETF]
        assert len(rows) == 1
        assert rows[0].market_value == Decimal("1900")
        assert rows[0].cost_basis == Decimal("1700")
        assert rows[0].unrealized_pl == Decimal("200")


class TestAggregateBySymbol:

    def test_lots_grouped_and_sorted(self):
        lot1 = make_investment("l1", qty="1", price="100", current="200", ticker="ABC")
        lot2 = make_investment("l2", qty="1", price="150", current="200", ticker="abc")
        other = make_investment("o", qty="1", price="10", current="20", ticker="XYZ")

        rows = aggregate_by_symbol([other, lot1, lot2], {})

        assert [r.key for r in rows] == ["Stock:abc", "Stock:xyz"]
        assert rows[0].positions == 2
        assert rows[0].market_value == Decimal("400")
        assert rows[0].percent_portfolio == Decimal("0.9524")   # 400 / 420
