"""
Futures & derivatives (§ 20 Abs. 6 EStG).

Losses from Termingeschäfte may offset gains only up to 20,000 EUR per year
(40,000 EUR for joint filing). The excess is carried forward; this module
only reports the figure, persisting it is up to the caller.
"""
from decimal import Decimal

from py_valuation.money import MONEY, ZERO
from .capital import add_soli_and_church, non_negative
from .constants import ABGELTUNGSTEUER_RATE, FUTURES_LOSS_CAP_MARRIED, FUTURES_LOSS_CAP_SINGLE
from .types import FilingStatus, FuturesTaxInput, FuturesTaxResult


def futures_loss_cap(filing: FilingStatus) -> Decimal:
    if filing == FilingStatus.MARRIED:
        return FUTURES_LOSS_CAP_MARRIED
    return FUTURES_LOSS_CAP_SINGLE


def calc_futures_tax(tax_input: FuturesTaxInput) -> FuturesTaxResult:
    gains = non_negative(tax_input.total_gains)
    losses = abs(MONEY.dec(tax_input.total_losses))
    loss_cap = futures_loss_cap(tax_input.filing)

    # 1. loss offset, capped
    offset = min(losses, loss_cap)
    profit_after_losses = max(ZERO, MONEY.sub(gains, offset))

    # 2. leftover Sparer-Pauschbetrag
    allowance_used = min(non_negative(tax_input.remaining_allowance), profit_after_losses)
    taxable_base = max(ZERO, MONEY.sub(profit_after_losses, allowance_used))

    # Measured before the allowance so allowance usage is never counted as loss
    deductible_losses = MONEY.sub(gains, profit_after_losses)
    unused_losses = max(ZERO, MONEY.sub(losses, deductible_losses))

    # 3. flat rate
    base_tax = MONEY.mul(taxable_base, ABGELTUNGSTEUER_RATE)
    base_tax, soli, church, total = add_soli_and_church(base_tax, tax_input.church_rate)

    return FuturesTaxResult(
        total_gains=MONEY.to_number(gains),
        total_losses=MONEY.to_number(losses),
        loss_cap=loss_cap,
        profit_after_losses=MONEY.to_number(profit_after_losses),
        deductible_losses=MONEY.to_number(deductible_losses),
        unused_losses=MONEY.to_number(unused_losses),
        allowance_used=MONEY.to_number(allowance_used),
        taxable_base=MONEY.to_number(taxable_base),
        base_tax=base_tax,
        soli=soli,
        church=church,
        total=total
    )
