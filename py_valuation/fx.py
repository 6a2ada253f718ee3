import calendar
import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from typing import Dict, Iterable, Optional

from .money import MONEY, ONE

DEFAULT_BASE = "EUR"
DAILY_LOOKBACK_DAYS = 10


def month_key(d: date) -> str:
    return d.strftime("%Y-%m")


def end_of_month(d: date) -> date:
    last_day = calendar.monthrange(d.year, d.month)[1]
    return date(d.year, d.month, last_day)


def next_month_end(d: date) -> date:
    return end_of_month(end_of_month(d) + timedelta(days=1))


@dataclass
class FxRatePoint:
    """ One fixing. rates are quote-per-base, e.g. {"USD": 1.08} for EURUSD. """
    date: date
    rates: Dict[str, Decimal]
    base: str = DEFAULT_BASE


@dataclass
class FxTable:
    """
    Rate lookup keyed by month ('YYYY-MM') or by day ('YYYY-MM-DD').
    Within a month the latest fixing of each currency wins. Daily tables fall back to the
    most recent previous fixing, up to DAILY_LOOKBACK_DAYS.
    """
    base: str = DEFAULT_BASE
    monthly: bool = True
    _points: Dict[str, FxRatePoint] = field(default_factory=dict)

    @classmethod
    def from_points(cls, points: Iterable[FxRatePoint], base: str = DEFAULT_BASE, monthly: bool = True) -> "FxTable":
        table = cls(base=base, monthly=monthly)
        for p in sorted(points, key=lambda x: x.date):
            if p.base != base:
                logging.warning(f"Skipping FX point {p.date} with base {p.base} (expected {base})")
                continue
            key = table._key(p.date)
            existing = table._points.get(key)
            if existing is not None:
                # per currency, the later fixing overwrites the earlier one
                p = FxRatePoint(date=p.date, rates={**existing.rates, **p.rates}, base=p.base)
            table._points[key] = p
        return table

    def _key(self, d: date) -> str:
        return month_key(d) if self.monthly else d.isoformat()

    def point_for(self, on: date) -> Optional[FxRatePoint]:
        if self.monthly:
            return self._points.get(month_key(on))

        cursor = on
        for _ in range(DAILY_LOOKBACK_DAYS):
            p = self._points.get(cursor.isoformat())
            if p is not None:
                return p
            cursor -= timedelta(days=1)
        return None

    def rate(self, currency: str, on: date) -> Optional[Decimal]:
        """ Quote-per-base rate, 1 for the base currency, None if unknown. """
        if currency == self.base:
            return ONE
        p = self.point_for(on)
        if p is None:
            return None
        r = p.rates.get(currency)
        if r is None or r <= 0:
            return None
        return MONEY.dec(r)

    def __len__(self) -> int:
        return len(self._points)


def convert_to_base(price: Decimal, currency: str, on: date, table: FxTable) -> Optional[Decimal]:
    """ price_in_quote / rate. None when a required rate is missing. """
    rate = table.rate(currency, on)
    if rate is None:
        return None
    return MONEY.div(price, rate)
