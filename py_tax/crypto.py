from decimal import Decimal

from py_valuation.money import MONEY, ZERO
from .capital import add_soli_and_church, non_negative
from .constants import CRYPTO_FREIGRENZE, CRYPTO_FREIGRENZE_LEGACY, CRYPTO_FREIGRENZE_RAISED_IN
from .types import CryptoTaxInput, CryptoTaxResult


def crypto_freigrenze(year: int) -> Decimal:
    if year >= CRYPTO_FREIGRENZE_RAISED_IN:
        return CRYPTO_FREIGRENZE
    return CRYPTO_FREIGRENZE_LEGACY


def calc_crypto_tax(tax_input: CryptoTaxInput) -> CryptoTaxResult:
    """
    § 23 private sales within the holding period.

    Freigrenze, not an allowance: at or below the threshold nothing is taxed,
    above it the whole gain is taxed at the personal marginal rate.
    Whether a sale counts as short term is decided by the caller.
    """
    gains = non_negative(tax_input.short_term_gains)
    threshold = crypto_freigrenze(tax_input.year)

    if gains <= threshold:
        return CryptoTaxResult(
            short_term_gains=MONEY.to_number(gains),
            freigrenze=threshold,
            tax_free=True,
            taxable=MONEY.to_number(ZERO),
            base_tax=MONEY.to_number(ZERO),
            soli=MONEY.to_number(ZERO),
            church=MONEY.to_number(ZERO),
            total=MONEY.to_number(ZERO)
        )

    # rate used as given, no snapping to the ladder
    base_tax = MONEY.mul(gains, non_negative(tax_input.marginal_rate))
    base_tax, soli, church, total = add_soli_and_church(base_tax, tax_input.church_rate)

    return CryptoTaxResult(
        short_term_gains=MONEY.to_number(gains),
        freigrenze=threshold,
        tax_free=False,
        taxable=MONEY.to_number(gains),
        base_tax=base_tax,
        soli=soli,
        church=church,
        total=total
    )
