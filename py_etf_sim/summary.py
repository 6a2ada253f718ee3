from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from py_valuation.fx import month_key
from py_valuation.money import MONEY, ZERO
from py_valuation.xirr import xirr
from .engine import ENGINE_SCHEMA_VERSION
from .types import EtfPlan, SimulationRow

@dataclass
class YearBucket:
    year: int
    contrib: Decimal = ZERO
    fees: Decimal = ZERO
    end_value: Decimal = ZERO
    end_date: Optional[date] = None
    cum_contrib_to_date: Decimal = ZERO
    unrealized_pl: Decimal = ZERO
    performance: Decimal = ZERO

@dataclass
class LifetimeSummary:
    contrib: Decimal = ZERO
    fees: Decimal = ZERO
    market_value: Decimal = ZERO  # last row
    unrealized_pl: Decimal = ZERO
    performance: Decimal = ZERO

@dataclass
class EtfSimSummary:
    plan_id: str
    title: str
    base_currency: str
    start_month: str
    end_month: str
    last_run_at: str  # ISO timestamp
    engine_version: int = ENGINE_SCHEMA_VERSION
    lifetime: LifetimeSummary = field(default_factory=LifetimeSummary)
    by_year: Dict[int, YearBucket] = field(default_factory=dict)  # ascending by year


def build_sim_summary(rows: List[SimulationRow], start_month: str, plan: EtfPlan,
                      now: Optional[datetime] = None) -> EtfSimSummary:
    """
    Reduces monthly rows to yearly and lifetime figures.

    Rows are ordered by date first, so a year's end value always comes from
    its last month no matter how the rows were passed in.
    P&L is measured against cumulative contributions (fees included in them).
    """
    last_run_at = (now or datetime.now()).isoformat()
    if not rows:
        return EtfSimSummary(
            plan_id=plan.id,
            title=plan.title,
            base_currency=plan.base_currency,
            start_month=start_month,
            end_month=start_month,
            last_run_at=last_run_at
        )

    ordered = sorted(rows, key=lambda r: r.date)

    buckets: Dict[int, YearBucket] = {}
    running = ZERO
    total_fees = ZERO
    for row in ordered:
        running = MONEY.add(running, row.contribution)
        total_fees = MONEY.add(total_fees, row.fees)
        bucket = buckets.setdefault(row.date.year, YearBucket(year=row.date.year))
        bucket.contrib = MONEY.add(bucket.contrib, row.contribution)
        bucket.fees = MONEY.add(bucket.fees, row.fees)
        bucket.end_value = row.portfolio_value
        bucket.end_date = row.date
        bucket.cum_contrib_to_date = running

    by_year = {}
    for year in sorted(buckets):
        b = buckets[year]
        unrealized = MONEY.sub(b.end_value, b.cum_contrib_to_date)
        by_year[year] = YearBucket(
            year=year,
            contrib=MONEY.to_number(b.contrib),
            fees=MONEY.to_number(b.fees),
            end_value=MONEY.to_number(b.end_value),
            end_date=b.end_date,
            cum_contrib_to_date=MONEY.to_number(b.cum_contrib_to_date),
            unrealized_pl=MONEY.to_number(unrealized),
            performance=MONEY.to_number(MONEY.div(unrealized, b.cum_contrib_to_date), 4)
        )

    last = ordered[-1]
    lifetime_unrealized = MONEY.sub(last.portfolio_value, running)
    lifetime = LifetimeSummary(
        contrib=MONEY.to_number(running),
        fees=MONEY.to_number(total_fees),
        market_value=MONEY.to_number(last.portfolio_value),
        unrealized_pl=MONEY.to_number(lifetime_unrealized),
        performance=MONEY.to_number(MONEY.div(lifetime_unrealized, running), 4)
    )

    return EtfSimSummary(
        plan_id=plan.id,
        title=plan.title,
        base_currency=plan.base_currency,
        start_month=start_month,
        end_month=month_key(last.date),
        last_run_at=last_run_at,
        lifetime=lifetime,
        by_year=by_year
    )


def plan_cashflows(rows: List[SimulationRow]) -> List[Tuple[date, float]]:
    """ Each month's contribution paid in, the final portfolio value received. """
    ordered = sorted(rows, key=lambda r: r.date)
    flows = [(r.date, -float(r.contribution)) for r in ordered if r.contribution > 0]
    if ordered:
        flows.append((ordered[-1].date, float(ordered[-1].portfolio_value)))
    return flows


def plan_xirr(rows: List[SimulationRow]) -> Optional[float]:
    return xirr(plan_cashflows(rows))
