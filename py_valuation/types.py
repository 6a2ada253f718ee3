from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional
from decimal import Decimal
from datetime import date

from .money import MONEY, ZERO

# --- Enums ---
class AssetClass(Enum):
    STOCK = "Stock"
    BOND = "Bond"
    CRYPTO = "Crypto"
    REAL_ESTATE = "Real Estate"
    ETF = "ETF"
    SAVINGS = "Savings"

class InvestmentStatus(Enum):
    ACTIVE = "Active"
    SOLD = "Sold"

class TransactionKind(Enum):
    BUY = "Buy"
    SELL = "Sell"
    DIVIDEND = "Dividend"
    INTEREST = "Interest"
    # Interest accounts only
    DEPOSIT = "Deposit"
    WITHDRAWAL = "Withdrawal"

class ViewMode(Enum):
    COMBINED = "combined"
    REALIZED = "realized"
    HOLDINGS = "holdings"

# --- Domain Data Classes (Input) ---

@dataclass
class Investment:
    id: str
    name: str
    asset_class: AssetClass
    purchase_quantity: Decimal
    purchase_price: Decimal  # per unit
    purchase_date: date
    current_price: Optional[Decimal] = None
    ticker: Optional[str] = None
    status: InvestmentStatus = InvestmentStatus.ACTIVE
    staking_or_lending: bool = False

@dataclass(frozen=True)
class Transaction:
    id: str
    investment_id: str
    kind: TransactionKind
    date: date
    quantity: Decimal
    price_per_unit: Decimal
    total_amount: Optional[Decimal] = None

    def __post_init__(self):
        if self.total_amount is None:
            object.__setattr__(self, "total_amount", MONEY.mul(self.quantity, self.price_per_unit))

@dataclass(frozen=True)
class YearFilter:
    """ year=None means all-time. mode only matters for a concrete year. """
    year: Optional[int] = None
    mode: ViewMode = ViewMode.COMBINED

    @property
    def is_all(self) -> bool:
        return self.year is None

# --- Domain Data Classes (Output) ---

@dataclass
class PositionMetrics:
    asset_class: AssetClass
    buy_qty: Decimal = ZERO
    buy_price: Decimal = ZERO
    sold_qty_all: Decimal = ZERO
    available_qty: Decimal = ZERO
    purchase_value: Decimal = ZERO  # full original cost, never reduced by sells
    market_value: Decimal = ZERO

    realized_pl_all: Decimal = ZERO
    realized_pl_year: Decimal = ZERO
    has_sells_in_year: bool = False
    unrealized_pl: Decimal = ZERO

    # Tax inputs for the filtered year
    short_term_crypto_gain_year: Decimal = ZERO
    capital_gains_year: Decimal = ZERO
    dividends_year: Decimal = ZERO
    interest_year: Decimal = ZERO

    realized_pl_display: Decimal = ZERO
    total_pl_display: Decimal = ZERO
    performance_pct: Decimal = ZERO

@dataclass
class ClassRow:
    asset_class: AssetClass
    cost_basis: Decimal = ZERO
    market_value: Decimal = ZERO
    realized_pl: Decimal = ZERO
    unrealized_pl: Decimal = ZERO
    total_pl: Decimal = ZERO
    performance_pct: Decimal = ZERO
    economic_value: Decimal = ZERO  # market value + realized
    percent_portfolio: Decimal = ZERO
    positions: int = 0

@dataclass
class SummaryTotals:
    cost_basis: Decimal = ZERO
    market_value: Decimal = ZERO
    realized_pl: Decimal = ZERO
    unrealized_pl: Decimal = ZERO
    total_pl: Decimal = ZERO
    performance_pct: Decimal = ZERO
    economic_value: Decimal = ZERO

@dataclass
class SymbolRow:
    key: str
    name: str
    ticker: Optional[str]
    asset_class: AssetClass
    positions: int = 0
    buy_qty: Decimal = ZERO
    available_qty: Decimal = ZERO
    cost_basis: Decimal = ZERO
    market_value: Decimal = ZERO
    realized_pl: Decimal = ZERO
    unrealized_pl: Decimal = ZERO
    total_pl: Decimal = ZERO
    performance_pct: Decimal = ZERO
    economic_value: Decimal = ZERO
    percent_portfolio: Decimal = ZERO

@dataclass
class AggregatedSummary:
    rows: List[ClassRow]
    totals: SummaryTotals
    tax_summary: Optional["YearTaxSummary"] = None  # py_tax.types.YearTaxSummary

@dataclass
class CryptoTaxInfo:
    tax_free_date: Optional[date]
    is_eligible_now: bool
    days_until_eligible: Optional[int]
    holding_period_years: int

@dataclass(frozen=True)
class RateChange:
    """ Interest account rate, effective from (inclusive). """
    effective_from: date
    annual_rate_pct: Decimal

@dataclass
class SavingsResult:
    final_balance: Decimal
    net_deposits: Decimal
    total_interest: Decimal
    by_year_interest: dict = field(default_factory=dict)  # year -> Decimal
