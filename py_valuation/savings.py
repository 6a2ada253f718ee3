"""
Interest account valuation.

Daily compounding on an ACT/365 basis with a piecewise constant rate
schedule. Cashflows are applied at the start of their day, interest accrues
up to (excluding) the valuation date and is attributed to the calendar year
in which it accrued.
"""
import logging
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional, Sequence, Tuple

from .money import MONEY, ONE, ZERO
from .types import RateChange, SavingsResult

SavingsFlow = Tuple[date, Decimal]  # +deposit / -withdrawal

DAYS_PER_YEAR = Decimal("365")
HUNDRED = Decimal("100")


def _rate_at(schedule: Sequence[RateChange], d: date) -> Decimal:
    for change in reversed(schedule):
        if change.effective_from <= d:
            return MONEY.div(change.annual_rate_pct, HUNDRED)
    return ZERO


def _accrue(balance: Decimal, start: date, end: date, rate: Decimal, by_year: Dict[int, Decimal]) -> Decimal:
    """ Compounds balance from start to end (exclusive), split at year borders. """
    cursor = start
    while cursor < end:
        year_end = date(cursor.year + 1, 1, 1)
        chunk_end = min(end, year_end)
        days = (chunk_end - cursor).days
        factor = MONEY.context.power(MONEY.add(ONE, MONEY.div(rate, DAYS_PER_YEAR)), days)
        grown = MONEY.mul(balance, factor)
        by_year[cursor.year] = MONEY.add(by_year.get(cursor.year, ZERO), MONEY.sub(grown, balance))
        balance = grown
        cursor = chunk_end
    return balance


def compute_savings(
    flows: List[SavingsFlow],
    rates: List[RateChange],
    valuation_date: Optional[date] = None,
    disallow_negative: bool = True
) -> SavingsResult:
    valuation_date = valuation_date or date.today()

    txs = sorted((f for f in flows if f[0] <= valuation_date), key=lambda f: f[0])
    schedule = sorted(rates, key=lambda r: r.effective_from)
    if not schedule:
        # no rate known -> 0% forever
        schedule = [RateChange(effective_from=txs[0][0] if txs else valuation_date, annual_rate_pct=ZERO)]

    start = min(txs[0][0], schedule[0].effective_from) if txs else schedule[0].effective_from

    points = {start, valuation_date}
    points.update(d for d, _ in txs)
    points.update(r.effective_from for r in schedule)
    breakpoints = sorted(p for p in points if start <= p <= valuation_date)

    balance = ZERO
    net_deposits = ZERO
    by_year: Dict[int, Decimal] = {}
    tx_idx = 0

    for i, day in enumerate(breakpoints):
        while tx_idx < len(txs) and txs[tx_idx][0] == day:
            amount = MONEY.dec(txs[tx_idx][1])
            balance = MONEY.add(balance, amount)
            net_deposits = MONEY.add(net_deposits, amount)
            if disallow_negative and balance < 0:
                logging.warning(f"Savings balance below zero on {day}, clamping to 0")
                # only what was there could be withdrawn
                net_deposits = MONEY.sub(net_deposits, balance)
                balance = ZERO
            tx_idx += 1

        if i + 1 >= len(breakpoints):
            break

        rate = _rate_at(schedule, day)
        if balance > 0 and rate != 0:
            balance = _accrue(balance, day, breakpoints[i + 1], rate, by_year)

    total_interest = MONEY.sub(balance, net_deposits)
    return SavingsResult(
        final_balance=MONEY.to_number(balance),
        net_deposits=MONEY.to_number(net_deposits),
        total_interest=MONEY.to_number(total_interest),
        by_year_interest={y: MONEY.to_number(v) for y, v in by_year.items()}
    )
