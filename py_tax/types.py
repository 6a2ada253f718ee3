from dataclasses import dataclass
from enum import Enum
from decimal import Decimal
from typing import Optional

from py_valuation.money import ZERO
from .constants import DEFAULT_CRYPTO_MARGINAL_RATE

class TaxRegime(Enum):
    CAPITAL_INCOME = "capital_income"          # § 20 EStG
    CRYPTO_SHORT_TERM = "crypto_short_term"    # § 23 EStG
    FUTURES_DERIVATIVE = "futures_derivative"  # § 20 Abs. 6 EStG

class FilingStatus(Enum):
    SINGLE = "single"
    MARRIED = "married"

@dataclass(frozen=True)
class TaxSettings:
    filing_status: FilingStatus = FilingStatus.SINGLE
    church_tax_rate: Decimal = ZERO
    crypto_marginal_rate: Decimal = DEFAULT_CRYPTO_MARGINAL_RATE

# --- Inputs ---

@dataclass(frozen=True)
class CapitalTaxInput:
    year: int
    filing: FilingStatus
    capital_income: Decimal  # dividends + interest + realized gains
    church_rate: Decimal = ZERO

@dataclass(frozen=True)
class CryptoTaxInput:
    year: int
    marginal_rate: Decimal
    short_term_gains: Decimal
    church_rate: Decimal = ZERO

@dataclass(frozen=True)
class FuturesTaxInput:
    year: int
    filing: FilingStatus
    total_gains: Decimal
    total_losses: Decimal  # magnitude
    church_rate: Decimal = ZERO
    remaining_allowance: Decimal = ZERO  # leftover Sparer-Pauschbetrag

# --- Results ---

@dataclass
class CapitalTaxResult:
    capital_income: Decimal
    allowance: Decimal
    allowance_used: Decimal
    allowance_left: Decimal
    taxable: Decimal
    base_tax: Decimal
    soli: Decimal
    church: Decimal
    total: Decimal

@dataclass
class CryptoTaxResult:
    short_term_gains: Decimal
    freigrenze: Decimal
    tax_free: bool
    taxable: Decimal
    base_tax: Decimal
    soli: Decimal
    church: Decimal
    total: Decimal

@dataclass
class FuturesTaxResult:
    total_gains: Decimal
    total_losses: Decimal
    loss_cap: Decimal
    profit_after_losses: Decimal
    deductible_losses: Decimal  # loss actually offset this year
    unused_losses: Decimal      # Verlustvortrag, persisted by the caller
    allowance_used: Decimal
    taxable_base: Decimal
    base_tax: Decimal
    soli: Decimal
    church: Decimal
    total: Decimal

@dataclass
class YearTaxSummary:
    year: int
    capital: CapitalTaxResult
    crypto: CryptoTaxResult
    futures: Optional[FuturesTaxResult] = None
    grand_total: Decimal = ZERO
    total_short_term_gains: Decimal = ZERO
