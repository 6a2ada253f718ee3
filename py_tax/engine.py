import logging
from decimal import Decimal
from typing import Iterable, Optional, Tuple, Union

from py_valuation.money import MONEY, ZERO
from .capital import calc_capital_tax
from .constants import CHURCH_TAX_RATES, CRYPTO_RATE_LADDER
from .crypto import calc_crypto_tax
from .futures import calc_futures_tax
from .types import (
    CapitalTaxInput, CapitalTaxResult, CryptoTaxInput, CryptoTaxResult,
    FuturesTaxInput, FuturesTaxResult, TaxRegime, TaxSettings, YearTaxSummary
)

TaxInput = Union[CapitalTaxInput, CryptoTaxInput, FuturesTaxInput]
TaxResult = Union[CapitalTaxResult, CryptoTaxResult, FuturesTaxResult]


def compute_tax(regime: TaxRegime, tax_input: TaxInput) -> TaxResult:
    """ Runs the calculator belonging to ``regime``. """
    if regime == TaxRegime.CAPITAL_INCOME:
        return calc_capital_tax(tax_input)
    elif regime == TaxRegime.CRYPTO_SHORT_TERM:
        return calc_crypto_tax(tax_input)
    elif regime == TaxRegime.FUTURES_DERIVATIVE:
        return calc_futures_tax(tax_input)
    raise ValueError(f"Unknown tax regime: {regime}")


def split_futures_pnl(pnls: Iterable[Decimal]) -> Tuple[Decimal, Decimal]:
    """
    Splits closed-trade P&Ls into (gains, losses).
    Losses are returned as a positive magnitude.
    """
    gains = ZERO
    losses = ZERO
    for pnl in pnls:
        value = MONEY.dec(pnl)
        if value > 0:
            gains = MONEY.add(gains, value)
        elif value < 0:
            losses = MONEY.add(losses, abs(value))
    return gains, losses


def check_settings(settings: TaxSettings) -> None:
    """ Off-ladder rates are used as given; only note them. """
    if settings.crypto_marginal_rate not in CRYPTO_RATE_LADDER:
        logging.info(f"Crypto marginal rate {settings.crypto_marginal_rate} is not on the rate ladder, using it as given.")
    if settings.church_tax_rate not in CHURCH_TAX_RATES:
        logging.info(f"Church tax rate {settings.church_tax_rate} is not a standard rate, using it as given.")


def compute_year_tax(year: int,
                     settings: TaxSettings,
                     capital_income: Decimal,
                     short_term_gains: Decimal,
                     futures_pnls: Optional[Iterable[Decimal]] = None) -> YearTaxSummary:
    """
    Tax summary for one calendar year.

    The Sparer-Pauschbetrag left over after capital income is passed on to the
    futures calculator, so it is never consumed twice.
    """
    check_settings(settings)

    capital = compute_tax(TaxRegime.CAPITAL_INCOME, CapitalTaxInput(
        year=year,
        filing=settings.filing_status,
        capital_income=capital_income,
        church_rate=settings.church_tax_rate
    ))
    crypto = compute_tax(TaxRegime.CRYPTO_SHORT_TERM, CryptoTaxInput(
        year=year,
        marginal_rate=settings.crypto_marginal_rate,
        short_term_gains=short_term_gains,
        church_rate=settings.church_tax_rate
    ))

    futures = None
    if futures_pnls is not None:
        gains, losses = split_futures_pnl(futures_pnls)
        futures = compute_tax(TaxRegime.FUTURES_DERIVATIVE, FuturesTaxInput(
            year=year,
            filing=settings.filing_status,
            total_gains=gains,
            total_losses=losses,
            church_rate=settings.church_tax_rate,
            remaining_allowance=capital.allowance_left
        ))

    grand_total = MONEY.add(capital.total, crypto.total)
    if futures is not None:
        grand_total = MONEY.add(grand_total, futures.total)

    logging.info(f"Tax {year}: capital {capital.total}, crypto {crypto.total}, total {grand_total}")

    return YearTaxSummary(
        year=year,
        capital=capital,
        crypto=crypto,
        futures=futures,
        grand_total=MONEY.to_number(grand_total),
        total_short_term_gains=crypto.short_term_gains
    )
