"""
Month-by-month contribution simulation of an ETF savings plan.

Each month the carried units are valued at that month's price, the
contribution (minus fee) buys new units and the resulting portfolio is
snapshotted with per-component drift. Units are only ever bought, so unit
counts never decrease. A component without a price (or without the FX rate
its currency needs) is left out of that month entirely; its units are kept.
"""
import logging
import re
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional

from py_valuation.fx import FxTable, end_of_month, month_key, next_month_end
from py_valuation.money import DecimalMath, MONEY, ZERO
from .types import EtfComponent, EtfPlan, PositionSnapshot, PriceTable, SimulationRow

ENGINE_SCHEMA_VERSION = 2

_MONTH_RE = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


def get_start_month(plan: EtfPlan) -> str:
    """ Canonical YYYY-MM start: explicit start_month when valid, else derived from start_date. """
    if plan.start_month and _MONTH_RE.match(plan.start_month):
        return plan.start_month
    return month_key(plan.start_date)


def month_ends(start_month: str, as_of: date) -> List[date]:
    """ Month-end dates from start_month through the month of as_of. """
    year, month = start_month.split("-")
    current = end_of_month(date(int(year), int(month), 1))
    last = end_of_month(as_of)
    months = []
    while current <= last:
        months.append(current)
        current = next_month_end(current)
    return months


def _price_month(
    month_end: date,
    components: List[EtfComponent],
    units: Dict[str, Decimal],
    prices: PriceTable,
    fx_table: FxTable,
    math: DecimalMath
) -> Dict[str, PositionSnapshot]:
    """ Snapshots of every component that can be valued this month. """
    key = month_key(month_end)
    priced = {}
    for c in components:
        point = prices.get(c.symbol, key)
        if point is None:
            logging.debug(f"{key}: no price for {c.symbol}, skipping")
            continue
        rate = fx_table.rate(point.currency, month_end)
        if rate is None:
            logging.debug(f"{key}: no {fx_table.base}{point.currency} rate for {c.symbol}, skipping")
            continue
        price_base = math.div(point.close, rate)
        held = units.get(c.symbol, ZERO)
        priced[c.symbol] = PositionSnapshot(
            symbol=c.symbol,
            units=held,
            price_ccy=point.close,
            currency=point.currency,
            fx_rate=rate,
            price_base=price_base,
            value=math.mul(held, price_base),
            target_weight=math.dec(c.target_weight)
        )
    return priced


def _allocate(
    cash: Decimal,
    components: List[EtfComponent],
    priced: Dict[str, PositionSnapshot],
    pre_value: Decimal,
    rebalance: bool,
    math: DecimalMath
) -> Dict[str, Decimal]:
    """ Cash per symbol for this month's purchase. Unpriced components get nothing. """
    if rebalance and pre_value > 0:
        needs = {}
        for symbol, snap in priced.items():
            weight = math.div(snap.value, pre_value)
            needs[symbol] = math.sub(snap.target_weight, weight)
        positive = {s: n for s, n in needs.items() if n > 0}
        total_need = math.total(positive.values())
        if total_need > 0:
            return {s: math.mul(cash, math.div(n, total_need)) for s, n in positive.items()}
        # Nothing underweight: fall back to raw target weights

    return {
        c.symbol: math.mul(cash, math.dec(c.target_weight))
        for c in components if c.symbol in priced
    }


def simulate_plan(
    plan: EtfPlan,
    components: List[EtfComponent],
    prices: PriceTable,
    fx_table: FxTable,
    as_of: Optional[date] = None,
    math: DecimalMath = MONEY
) -> List[SimulationRow]:
    """
    Runs the plan from the end of its start month through the end of the
    month of ``as_of`` (today by default). Identical inputs give identical rows.
    """
    if fx_table.base != plan.base_currency:
        raise ValueError(f"FX table base {fx_table.base} differs from plan currency {plan.base_currency}")

    start_month = get_start_month(plan)
    months = month_ends(start_month, as_of or date.today())
    fee_pct = math.dec(plan.fee_pct)

    # symbol -> units, local to this run
    units: Dict[str, Decimal] = {c.symbol: ZERO for c in components}
    rows: List[SimulationRow] = []

    for month_end in months:
        # 1. value last month's units at this month's prices
        priced = _price_month(month_end, components, units, prices, fx_table, math)
        pre_value = math.total(s.value for s in priced.values())

        # 2. fee and net contribution
        contribution = math.dec(plan.contribution_for(month_key(month_end)))
        fee = math.mul(contribution, fee_pct)
        cash = math.sub(contribution, fee)

        # 3. buy
        allocation = _allocate(cash, components, priced, pre_value, plan.rebalance_on_contribution, math)
        for symbol, amount in allocation.items():
            price_base = priced[symbol].price_base
            if price_base <= 0 or amount <= 0:
                continue
            units[symbol] = math.add(units[symbol], math.div(amount, price_base))

        # 4. revalue after the purchase
        positions = []
        for c in components:
            snap = priced.get(c.symbol)
            if snap is None:
                continue
            held = units[c.symbol]
            positions.append(PositionSnapshot(
                symbol=snap.symbol,
                units=held,
                price_ccy=snap.price_ccy,
                currency=snap.currency,
                fx_rate=snap.fx_rate,
                price_base=snap.price_base,
                value=math.mul(held, snap.price_base),
                target_weight=snap.target_weight
            ))
        portfolio_value = math.total(p.value for p in positions)
        if portfolio_value > 0:
            for p in positions:
                p.drift = math.sub(math.div(p.value, portfolio_value), p.target_weight)

        # 5. emit
        rows.append(SimulationRow(
            date=month_end,
            contribution=contribution,
            fees=fee,
            portfolio_value=portfolio_value,
            positions=positions
        ))

    logging.info(f"Simulated plan {plan.id} over {len(rows)} months ({start_month} to {month_key(months[-1]) if months else start_month})")
    return rows

