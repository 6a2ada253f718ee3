import logging
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple

from .money import MONEY, ZERO
from .position_metrics import calculate_position_metrics
from .types import (
    AggregatedSummary, AssetClass, ClassRow, Investment, PositionMetrics,
    RateChange, SummaryTotals, SymbolRow, Transaction, TransactionKind,
    ViewMode, YearFilter
)
from py_tax.engine import compute_year_tax
from py_tax.types import TaxSettings


def _has_sell_in_year(txs: List[Transaction], year: int) -> bool:
    return any(t.kind == TransactionKind.SELL and t.date.year == year for t in txs)


def _is_included(inv: Investment, txs: List[Transaction], metrics: PositionMetrics, year_filter: YearFilter) -> bool:
    """ Inclusion rule of the year filter view modes. """
    if year_filter.is_all:
        return metrics.purchase_value > 0 or inv.asset_class == AssetClass.SAVINGS

    year = year_filter.year
    sold_in_year = _has_sell_in_year(txs, year)
    is_open = metrics.available_qty > 0 or inv.asset_class == AssetClass.SAVINGS
    # positions bought after the filtered year did not exist yet
    held = is_open and inv.purchase_date <= date(year, 12, 31)

    if year_filter.mode == ViewMode.REALIZED:
        return sold_in_year
    if year_filter.mode == ViewMode.HOLDINGS:
        return held
    return sold_in_year or held


def _select_metrics(
    investments: List[Investment],
    transactions_map: Dict[str, List[Transaction]],
    year_filter: YearFilter,
    rate_schedules: Optional[Dict[str, List[RateChange]]],
    valuation_date: Optional[date]
) -> List[Tuple[Investment, PositionMetrics]]:
    rate_schedules = rate_schedules or {}
    selected = []
    for inv in investments:
        txs = transactions_map.get(inv.id, [])
        metrics = calculate_position_metrics(
            inv, txs, year_filter,
            rates=rate_schedules.get(inv.id),
            valuation_date=valuation_date
        )
        if _is_included(inv, txs, metrics, year_filter):
            selected.append((inv, metrics))
    return selected


class _Bucket:
    """ Running decimal sums for one output row. """

    def __init__(self):
        self.positions = 0
        self.buy_qty = ZERO
        self.available_qty = ZERO
        self.cost_basis = ZERO
        self.market_value = ZERO
        self.realized_pl = ZERO
        self.unrealized_pl = ZERO
        self.total_pl = ZERO
        self.purchase_value = ZERO

    def add_metrics(self, m: PositionMetrics):
        self.positions += 1
        self.buy_qty = MONEY.add(self.buy_qty, m.buy_qty)
        self.available_qty = MONEY.add(self.available_qty, m.available_qty)
        if m.asset_class == AssetClass.SAVINGS:
            # interest accounts have no units; the deposited money is the cost
            self.cost_basis = MONEY.add(self.cost_basis, m.purchase_value)
        else:
            self.cost_basis = MONEY.add(self.cost_basis, MONEY.mul(m.available_qty, m.buy_price))
        self.market_value = MONEY.add(self.market_value, m.market_value)
        self.realized_pl = MONEY.add(self.realized_pl, m.realized_pl_display)
        self.unrealized_pl = MONEY.add(self.unrealized_pl, m.unrealized_pl)
        self.total_pl = MONEY.add(self.total_pl, m.total_pl_display)
        self.purchase_value = MONEY.add(self.purchase_value, m.purchase_value)

    def add_simulation(self, cost: Decimal, market_value: Decimal, unrealized_pl: Decimal):
        # simulated plans only buy, so nothing is realized
        self.cost_basis = MONEY.add(self.cost_basis, cost)
        self.market_value = MONEY.add(self.market_value, market_value)
        self.unrealized_pl = MONEY.add(self.unrealized_pl, unrealized_pl)
        self.total_pl = MONEY.add(self.total_pl, unrealized_pl)
        self.purchase_value = MONEY.add(self.purchase_value, cost)

    @property
    def economic_value(self) -> Decimal:
        return MONEY.add(self.market_value, self.realized_pl)

    @property
    def performance(self) -> Decimal:
        return MONEY.div(self.total_pl, self.purchase_value) if self.purchase_value > 0 else ZERO


def _simulation_figures(summaries: Iterable, year_filter: YearFilter) -> Tuple[Decimal, Decimal, Decimal]:
    """
    (cost, market value, unrealized) over all plan summaries.

    All-time uses the lifetime figures. For a year the bucket of that year is
    used, with the contributions made up to its end as cost.
    """
    cost = ZERO
    market_value = ZERO
    unrealized = ZERO
    for summary in summaries:
        if year_filter.is_all:
            cost = MONEY.add(cost, summary.lifetime.contrib)
            market_value = MONEY.add(market_value, summary.lifetime.market_value)
            unrealized = MONEY.add(unrealized, summary.lifetime.unrealized_pl)
            continue
        bucket = summary.by_year.get(year_filter.year)
        if bucket is None:
            continue
        cost = MONEY.add(cost, bucket.cum_contrib_to_date)
        market_value = MONEY.add(market_value, bucket.end_value)
        unrealized = MONEY.add(unrealized, bucket.unrealized_pl)
    return cost, market_value, unrealized


def aggregate_by_class(
    investments: List[Investment],
    transactions_map: Dict[str, List[Transaction]],
    year_filter: YearFilter = YearFilter(),
    sim_summaries: Optional[List] = None,
    tax_settings: Optional[TaxSettings] = None,
    rate_schedules: Optional[Dict[str, List[RateChange]]] = None,
    valuation_date: Optional[date] = None
) -> AggregatedSummary:
    """
    Groups position metrics by asset class.

    Percent of portfolio is measured against economic value (market value +
    realized P&L) so fully sold positions still carry their realized gain.
    A YearTaxSummary is attached when a year is filtered and tax settings are given.
    """
    selected = _select_metrics(investments, transactions_map, year_filter, rate_schedules, valuation_date)
    logging.info(f"Aggregating {len(selected)} of {len(investments)} investments for filter {year_filter}")

    buckets: Dict[AssetClass, _Bucket] = {}
    for _, metrics in selected:
        buckets.setdefault(metrics.asset_class, _Bucket()).add_metrics(metrics)

    if sim_summaries:
        cost, market_value, unrealized = _simulation_figures(sim_summaries, year_filter)
        if cost > 0 or market_value > 0:
            buckets.setdefault(AssetClass.ETF, _Bucket()).add_simulation(cost, market_value, unrealized)

    total_economic = MONEY.total(b.economic_value for b in buckets.values())

    rows = []
    totals = _Bucket()
    for asset_class in AssetClass:
        bucket = buckets.get(asset_class)
        if bucket is None:
            continue
        economic = bucket.economic_value
        rows.append(ClassRow(
            asset_class=asset_class,
            cost_basis=MONEY.to_number(bucket.cost_basis),
            market_value=MONEY.to_number(bucket.market_value),
            realized_pl=MONEY.to_number(bucket.realized_pl),
            unrealized_pl=MONEY.to_number(bucket.unrealized_pl),
            total_pl=MONEY.to_number(bucket.total_pl),
            performance_pct=MONEY.to_number(bucket.performance, 4),
            economic_value=MONEY.to_number(economic),
            percent_portfolio=MONEY.to_number(MONEY.div(economic, total_economic), 4),
            positions=bucket.positions
        ))
        totals.cost_basis = MONEY.add(totals.cost_basis, bucket.cost_basis)
        totals.market_value = MONEY.add(totals.market_value, bucket.market_value)
        totals.realized_pl = MONEY.add(totals.realized_pl, bucket.realized_pl)
        totals.unrealized_pl = MONEY.add(totals.unrealized_pl, bucket.unrealized_pl)
        totals.total_pl = MONEY.add(totals.total_pl, bucket.total_pl)
        totals.purchase_value = MONEY.add(totals.purchase_value, bucket.purchase_value)

    summary_totals = SummaryTotals(
        cost_basis=MONEY.to_number(totals.cost_basis),
        market_value=MONEY.to_number(totals.market_value),
        realized_pl=MONEY.to_number(totals.realized_pl),
        unrealized_pl=MONEY.to_number(totals.unrealized_pl),
        total_pl=MONEY.to_number(totals.total_pl),
        performance_pct=MONEY.to_number(totals.performance, 4),
        economic_value=MONEY.to_number(totals.economic_value)
    )

    tax_summary = None
    if not year_filter.is_all and tax_settings is not None:
        metrics_list = [m for _, m in selected]
        capital_income = MONEY.total(
            MONEY.total([m.capital_gains_year, m.dividends_year, m.interest_year]) for m in metrics_list
        )
        short_term_gains = MONEY.total(m.short_term_crypto_gain_year for m in metrics_list)
        tax_summary = compute_year_tax(year_filter.year, tax_settings, capital_income, short_term_gains)

    return AggregatedSummary(rows=rows, totals=summary_totals, tax_summary=tax_summary)


def _symbol_key(inv: Investment) -> str:
    return f"{inv.asset_class.value}:{(inv.ticker or inv.name).lower()}"


def aggregate_by_symbol(
    investments: List[Investment],
    transactions_map: Dict[str, List[Transaction]],
    year_filter: YearFilter = YearFilter(),
    rate_schedules: Optional[Dict[str, List[RateChange]]] = None,
    valuation_date: Optional[date] = None
) -> List[SymbolRow]:
    """ Groups lots of the same instrument, sorted by economic value descending. """
    selected = _select_metrics(investments, transactions_map, year_filter, rate_schedules, valuation_date)

    buckets: Dict[str, _Bucket] = {}
    first_lot: Dict[str, Investment] = {}
    for inv, metrics in selected:
        key = _symbol_key(inv)
        first_lot.setdefault(key, inv)
        buckets.setdefault(key, _Bucket()).add_metrics(metrics)

    total_economic = MONEY.total(b.economic_value for b in buckets.values())

    rows = []
    for key, bucket in buckets.items():
        inv = first_lot[key]
        economic = bucket.economic_value
        rows.append(SymbolRow(
            key=key,
            name=inv.name,
            ticker=inv.ticker,
            asset_class=inv.asset_class,
            positions=bucket.positions,
            buy_qty=MONEY.to_quantity(bucket.buy_qty),
            available_qty=MONEY.to_quantity(bucket.available_qty),
            cost_basis=MONEY.to_number(bucket.cost_basis),
            market_value=MONEY.to_number(bucket.market_value),
            realized_pl=MONEY.to_number(bucket.realized_pl),
            unrealized_pl=MONEY.to_number(bucket.unrealized_pl),
            total_pl=MONEY.to_number(bucket.total_pl),
            performance_pct=MONEY.to_number(bucket.performance, 4),
            economic_value=MONEY.to_number(economic),
            percent_portfolio=MONEY.to_number(MONEY.div(economic, total_economic), 4)
        ))

    rows.sort(key=lambda r: r.economic_value, reverse=True)
    return rows
