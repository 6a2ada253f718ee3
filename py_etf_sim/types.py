from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional

from py_valuation.fx import DEFAULT_BASE, month_key
from py_valuation.money import MONEY, ZERO

@dataclass(frozen=True)
class ContributionStep:
    month: str  # YYYY-MM, effective from this month (inclusive)
    amount: Decimal

@dataclass
class EtfComponent:
    id: str
    name: str
    ticker: Optional[str]
    target_weight: Decimal  # 0..1
    isin: Optional[str] = None
    currency: Optional[str] = None

    @property
    def symbol(self) -> str:
        return self.ticker or self.isin or self.id

@dataclass
class EtfPlan:
    id: str
    title: str
    month_contribution: Decimal
    start_date: date
    base_currency: str = DEFAULT_BASE
    contribution_steps: List[ContributionStep] = field(default_factory=list)
    fee_pct: Optional[Decimal] = None  # 0.001 = 0.1 % per contribution
    rebalance_on_contribution: bool = False
    start_month: Optional[str] = None  # YYYY-MM, wins over start_date when valid

    def contribution_for(self, month: str) -> Decimal:
        """ Latest step at or before ``month``, else the base amount. """
        amount = self.month_contribution
        for step in sorted(self.contribution_steps, key=lambda s: s.month):
            if step.month <= month:
                amount = step.amount
        return amount

@dataclass(frozen=True)
class PricePoint:
    symbol: str
    date: date
    close: Decimal  # instrument currency
    currency: str

    @property
    def month(self) -> str:
        return month_key(self.date)

@dataclass
class PriceTable:
    """ symbol -> YYYY-MM -> point. Within a month the latest point wins. """
    _points: Dict[str, Dict[str, PricePoint]] = field(default_factory=dict)

    @classmethod
    def from_points(cls, points: List[PricePoint]) -> "PriceTable":
        table = cls()
        for p in sorted(points, key=lambda x: x.date):
            table._points.setdefault(p.symbol, {})[p.month] = p
        return table

    def get(self, symbol: str, month: str) -> Optional[PricePoint]:
        return self._points.get(symbol, {}).get(month)

    def symbols(self) -> List[str]:
        return sorted(self._points.keys())

@dataclass
class PositionSnapshot:
    symbol: str
    units: Decimal
    price_ccy: Decimal
    currency: str
    fx_rate: Decimal  # base -> currency, 1 for the base currency
    price_base: Decimal
    value: Decimal
    target_weight: Decimal
    drift: Decimal = ZERO  # actual weight - target weight

    def to_dict(self) -> Dict[str, Any]:
        return {
            "symbol": self.symbol,
            "units": float(MONEY.to_quantity(self.units)),
            "price_ccy": float(MONEY.to_number(self.price_ccy, 4)),
            "currency": self.currency,
            "fx_rate": float(MONEY.to_number(self.fx_rate, 6)),
            "price_base": float(MONEY.to_number(self.price_base, 4)),
            "value": float(MONEY.to_number(self.value)),
            "target_weight": float(MONEY.to_number(self.target_weight, 4)),
            "drift": float(MONEY.to_number(self.drift, 6)),
        }

@dataclass
class SimulationRow:
    date: date  # month end
    contribution: Decimal
    fees: Decimal
    portfolio_value: Decimal
    positions: List[PositionSnapshot] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "contribution": float(MONEY.to_number(self.contribution)),
            "fees": float(MONEY.to_number(self.fees)),
            "portfolio_value": float(MONEY.to_number(self.portfolio_value)),
            "positions": [p.to_dict() for p in self.positions],
        }

@dataclass
class SimConfig:
    plan_path: str
    market_data_dir: str = "./data/market"
    output_path: Optional[str] = None
    as_of: Optional[date] = None
    csv_separator: str = ";"

class ConfigError(Exception):
    pass
