"""
Holding-period rules for private crypto sales (§23 EStG).

A sale is tax free once the coin was held for one year, or ten years if the
coin was used for staking or lending.
"""
import calendar
from datetime import date
from typing import Optional

from .types import AssetClass, CryptoTaxInfo, Investment

HOLDING_YEARS_DEFAULT = 1
HOLDING_YEARS_STAKING = 10


def add_years(d: date, years: int) -> date:
    """ Feb 29 maps to Feb 28 in non-leap target years. """
    year = d.year + years
    day = min(d.day, calendar.monthrange(year, d.month)[1])
    return date(year, d.month, day)


def holding_period_years(staking_or_lending: bool) -> int:
    return HOLDING_YEARS_STAKING if staking_or_lending else HOLDING_YEARS_DEFAULT


def is_crypto_sell_tax_free(purchase_date: date, sell_date: date, staking_or_lending: bool) -> bool:
    cutoff = add_years(purchase_date, holding_period_years(staking_or_lending))
    return sell_date >= cutoff


def get_crypto_tax_info(inv: Investment, today: Optional[date] = None) -> CryptoTaxInfo:
    if inv.asset_class != AssetClass.CRYPTO or inv.purchase_date is None:
        return CryptoTaxInfo(tax_free_date=None, is_eligible_now=False, days_until_eligible=None, holding_period_years=HOLDING_YEARS_DEFAULT)

    today = today or date.today()
    years = holding_period_years(inv.staking_or_lending)
    tax_free_date = add_years(inv.purchase_date, years)
    eligible = today >= tax_free_date
    days_left = 0 if eligible else max(0, (tax_free_date - today).days)

    return CryptoTaxInfo(
        tax_free_date=tax_free_date,
        is_eligible_now=eligible,
        days_until_eligible=days_left,
        holding_period_years=years
    )
