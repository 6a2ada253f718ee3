from decimal import Decimal
from typing import Optional, Tuple

from py_valuation.money import MONEY, ZERO
from .constants import (
    ABGELTUNGSTEUER_RATE, SOLI_RATE,
    SPARER_PAUSCHBETRAG_MARRIED, SPARER_PAUSCHBETRAG_SINGLE
)
from .types import CapitalTaxInput, CapitalTaxResult, FilingStatus


def non_negative(value: Optional[Decimal]) -> Decimal:
    """ Missing or negative amounts count as zero. """
    if value is None:
        return ZERO
    value = MONEY.dec(value)
    return value if value > 0 else ZERO


def sparer_pauschbetrag(filing: FilingStatus) -> Decimal:
    if filing == FilingStatus.MARRIED:
        return SPARER_PAUSCHBETRAG_MARRIED
    return SPARER_PAUSCHBETRAG_SINGLE


def add_soli_and_church(base_tax: Decimal, church_rate: Optional[Decimal]) -> Tuple[Decimal, Decimal, Decimal, Decimal]:
    """
    Returns (base_tax, soli, church, total) rounded to cents.

    Surcharges are computed on the unrounded income tax; the total is the sum
    of the rounded parts.
    """
    soli = MONEY.to_number(MONEY.mul(base_tax, SOLI_RATE))
    church = MONEY.to_number(MONEY.mul(base_tax, non_negative(church_rate)))
    base_tax = MONEY.to_number(base_tax)
    total = MONEY.total([base_tax, soli, church])
    return base_tax, soli, church, total


def calc_capital_tax(tax_input: CapitalTaxInput) -> CapitalTaxResult:
    """
    Abgeltungsteuer on § 20 income.

    The Sparer-Pauschbetrag is consumed first; the remainder is taxed at 25 %
    plus Solidaritätszuschlag and optional church tax on that 25 %.
    """
    income = non_negative(tax_input.capital_income)
    allowance = sparer_pauschbetrag(tax_input.filing)

    allowance_used = min(allowance, income)
    taxable = max(ZERO, MONEY.sub(income, allowance))
    base_tax = MONEY.mul(taxable, ABGELTUNGSTEUER_RATE)
    base_tax, soli, church, total = add_soli_and_church(base_tax, tax_input.church_rate)

    return CapitalTaxResult(
        capital_income=MONEY.to_number(income),
        allowance=allowance,
        allowance_used=MONEY.to_number(allowance_used),
        allowance_left=MONEY.to_number(MONEY.sub(allowance, allowance_used)),
        taxable=MONEY.to_number(taxable),
        base_tax=base_tax,
        soli=soli,
        church=church,
        total=total
    )
