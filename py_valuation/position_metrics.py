import logging
from datetime import date
from decimal import Decimal
from typing import List, Optional

from .money import MONEY, ZERO
from .types import (
    AssetClass, Investment, PositionMetrics, RateChange,
    Transaction, TransactionKind, ViewMode, YearFilter
)
from .crypto_holding import is_crypto_sell_tax_free
from .savings import compute_savings


def _of_kind(txs: List[Transaction], kind: TransactionKind) -> List[Transaction]:
    return [t for t in txs if t.kind == kind]


def _in_year(txs: List[Transaction], year: int) -> List[Transaction]:
    return [t for t in txs if t.date.year == year]


def _realized(sells: List[Transaction], buy_qty: Decimal, buy_price: Decimal) -> Decimal:
    """ proceeds - min(sold, bought) * buy price """
    sold = MONEY.total(t.quantity for t in sells)
    proceeds = MONEY.total(t.total_amount for t in sells)
    cost_qty = min(sold, buy_qty)
    return MONEY.sub(proceeds, MONEY.mul(cost_qty, buy_price))


def _savings_metrics(
    inv: Investment,
    txs: List[Transaction],
    year_filter: YearFilter,
    rates: Optional[List[RateChange]],
    valuation_date: Optional[date]
) -> PositionMetrics:
    flows = []
    for t in txs:
        if t.kind == TransactionKind.DEPOSIT:
            flows.append((t.date, abs(t.total_amount)))
        elif t.kind == TransactionKind.WITHDRAWAL:
            flows.append((t.date, -abs(t.total_amount)))

    schedule = rates if rates else [RateChange(effective_from=inv.purchase_date, annual_rate_pct=ZERO)]
    result = compute_savings(flows, schedule, valuation_date=valuation_date)

    interest_year = ZERO
    if not year_filter.is_all:
        interest_year = result.by_year_interest.get(year_filter.year, ZERO)

    total_pl = result.total_interest
    perf = MONEY.div(total_pl, result.net_deposits) if result.net_deposits > 0 else ZERO

    return PositionMetrics(
        asset_class=inv.asset_class,
        purchase_value=result.net_deposits,
        market_value=result.final_balance,
        unrealized_pl=result.total_interest,
        interest_year=interest_year,
        total_pl_display=MONEY.to_number(total_pl),
        performance_pct=MONEY.to_number(perf, 4)
    )


def calculate_position_metrics(
    inv: Investment,
    txs: List[Transaction],
    year_filter: YearFilter = YearFilter(),
    current_price: Optional[Decimal] = None,
    rates: Optional[List[RateChange]] = None,
    valuation_date: Optional[date] = None
) -> PositionMetrics:
    """
    Computes holdings and P&L for one investment from its trade history.

    Realized P&L always uses the original unit price as cost, capped at the
    bought quantity so corrupted sell data cannot produce negative holdings.
    current_price overrides inv.current_price when given.
    """
    if inv.asset_class == AssetClass.SAVINGS:
        return _savings_metrics(inv, txs, year_filter, rates, valuation_date)

    if not inv.purchase_quantity or inv.purchase_quantity <= 0:
        return PositionMetrics(asset_class=inv.asset_class)

    buy_qty = MONEY.dec(inv.purchase_quantity)
    buy_price = MONEY.dec(inv.purchase_price)
    purchase_value = MONEY.mul(buy_qty, buy_price)

    sells = _of_kind(txs, TransactionKind.SELL)
    sold_qty_all = MONEY.total(t.quantity for t in sells)
    if sold_qty_all > buy_qty:
        logging.warning(f"Investment {inv.id}: sold {sold_qty_all} exceeds bought {buy_qty}. Clamping cost basis.")
    realized_pl_all = _realized(sells, buy_qty, buy_price)

    realized_pl_year = ZERO
    has_sells_in_year = False
    short_term_crypto_gain = ZERO
    capital_gains_year = ZERO
    dividends_year = ZERO
    interest_year = ZERO

    if not year_filter.is_all:
        sells_in_year = _in_year(sells, year_filter.year)
        has_sells_in_year = len(sells_in_year) > 0
        if has_sells_in_year:
            realized_pl_year = _realized(sells_in_year, buy_qty, buy_price)

        if inv.asset_class == AssetClass.CRYPTO:
            for sell in sells_in_year:
                if is_crypto_sell_tax_free(inv.purchase_date, sell.date, inv.staking_or_lending):
                    continue
                gain = MONEY.mul(sell.quantity, MONEY.sub(sell.price_per_unit, buy_price))
                if gain > 0:
                    short_term_crypto_gain = MONEY.add(short_term_crypto_gain, gain)
        else:
            capital_gains_year = realized_pl_year

        dividends_year = MONEY.total(t.total_amount for t in _in_year(_of_kind(txs, TransactionKind.DIVIDEND), year_filter.year))
        interest_year = MONEY.total(t.total_amount for t in _in_year(_of_kind(txs, TransactionKind.INTEREST), year_filter.year))

    available_qty = max(ZERO, MONEY.sub(buy_qty, sold_qty_all))
    remaining_cost = MONEY.mul(available_qty, buy_price)
    price = current_price if current_price is not None else inv.current_price
    market_value = MONEY.mul(available_qty, MONEY.dec(price))
    unrealized_pl = MONEY.sub(market_value, remaining_cost)

    realized_pl_display = realized_pl_all
    if not year_filter.is_all:
        if year_filter.mode == ViewMode.HOLDINGS:
            realized_pl_display = ZERO
        else:
            realized_pl_display = realized_pl_year

    total_pl_display = MONEY.add(realized_pl_display, unrealized_pl)
    performance_pct = MONEY.div(total_pl_display, purchase_value) if purchase_value > 0 else ZERO

    return PositionMetrics(
        asset_class=inv.asset_class,
        buy_qty=MONEY.to_quantity(buy_qty),
        buy_price=MONEY.to_number(buy_price),
        sold_qty_all=MONEY.to_quantity(sold_qty_all),
        available_qty=MONEY.to_quantity(available_qty),
        purchase_value=MONEY.to_number(purchase_value),
        market_value=MONEY.to_number(market_value),
        realized_pl_all=MONEY.to_number(realized_pl_all),
        realized_pl_year=MONEY.to_number(realized_pl_year),
        has_sells_in_year=has_sells_in_year,
        unrealized_pl=MONEY.to_number(unrealized_pl),
        short_term_crypto_gain_year=MONEY.to_number(short_term_crypto_gain),
        capital_gains_year=MONEY.to_number(capital_gains_year),
        dividends_year=MONEY.to_number(dividends_year),
        interest_year=MONEY.to_number(interest_year),
        realized_pl_display=MONEY.to_number(realized_pl_display),
        total_pl_display=MONEY.to_number(total_pl_display),
        performance_pct=MONEY.to_number(performance_pct, 4)
    )
