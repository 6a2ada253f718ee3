"""
Unit tests for the German tax calculators (py_tax).
"""
import pytest
from decimal import Decimal

from py_tax.capital import calc_capital_tax
from py_tax.crypto import calc_crypto_tax
from py_tax.engine import compute_tax, compute_year_tax, split_futures_pnl
from py_tax.futures import calc_futures_tax
from py_tax.types import (
    CapitalTaxInput, CryptoTaxInput, FilingStatus, FuturesTaxInput, TaxRegime, TaxSettings
)


class TestCapitalTax:

    def test_income_at_allowance_is_tax_free(self):
        result = calc_capital_tax(CapitalTaxInput(year=2024, filing=FilingStatus.SINGLE, capital_income=Decimal("1000")))
        assert result.total == Decimal("0")
        assert result.allowance_left == Decimal("0")

    def test_income_just_above_allowance(self):
        # ARRANGE
        tax_input = CapitalTaxInput(year=2024, filing=FilingStatus.SINGLE, capital_income=Decimal("1100"))

        # ACT
        result = calc_capital_tax(tax_input)

        # ASSERT
        assert result.taxable == Decimal("100")
        assert result.base_tax == Decimal("25")
        assert result.soli == Decimal("1.38")     # 1.375 half up
        assert result.total == Decimal("26.38")

    def test_married_allowance_and_church(self):
        result = calc_capital_tax(CapitalTaxInput(
            year=2024, filing=FilingStatus.MARRIED,
            capital_income=Decimal("3000"), church_rate=Decimal("0.09")
        ))
        assert result.allowance == Decimal("2000")
        assert result.base_tax == Decimal("250")
        assert result.church == Decimal("22.50")
        assert result.total == Decimal("286.25")

    def test_total_is_sum_of_rounded_parts(self):
        # base 100.8044, soli 5.544242, church 9.072396: exact sum rounds to 115.42
        result = calc_capital_tax(CapitalTaxInput(
            year=2024, filing=FilingStatus.SINGLE,
            capital_income=Decimal("1403.2176"), church_rate=Decimal("0.09")
        ))
        assert (result.base_tax, result.soli, result.church) == (Decimal("100.80"), Decimal("5.54"), Decimal("9.07"))
        assert result.total == Decimal("115.41")
        assert result.total == result.base_tax + result.soli + result.church

    def test_negative_income_is_clamped(self):
        result = calc_capital_tax(CapitalTaxInput(year=2024, filing=FilingStatus.SINGLE, capital_income=Decimal("-500")))
        assert result.capital_income == Decimal("0")
        assert result.allowance_left == Decimal("1000")
        assert result.total == Decimal("0")


class TestCryptoTax:

    def test_exactly_freigrenze_is_tax_free(self):
        result = calc_crypto_tax(CryptoTaxInput(year=2024, marginal_rate=Decimal("0.42"), short_term_gains=Decimal("1000")))
        assert result.tax_free is True
        assert result.total == Decimal("0")

    def test_one_cent_above_taxes_full_amount(self):
        result = calc_crypto_tax(CryptoTaxInput(year=2024, marginal_rate=Decimal("0.42"), short_term_gains=Decimal("1000.01")))
        assert result.tax_free is False
        assert result.taxable == Decimal("1000.01")
        assert result.base_tax == Decimal("420.00")   # 420.0042
        assert result.total == Decimal("443.10")      # 420.0042 * 1.055

    def test_legacy_threshold_before_2024(self):
        result = calc_crypto_tax(CryptoTaxInput(year=2023, marginal_rate=Decimal("0.30"), short_term_gains=Decimal("700")))
        assert result.freigrenze == Decimal("600")
        assert result.base_tax == Decimal("210")

    def test_off_ladder_rate_used_as_given(self):
        result = calc_crypto_tax(CryptoTaxInput(year=2024, marginal_rate=Decimal("0.333"), short_term_gains=Decimal("2000")))
        assert result.base_tax == Decimal("666")


class TestFuturesTax:

    def test_loss_cap_example(self):
        # ARRANGE
        tax_input = FuturesTaxInput(year=2024, filing=FilingStatus.SINGLE,
                                    total_gains=Decimal("50000"), total_losses=Decimal("30000"))

        # ACT
        result = calc_futures_tax(tax_input)

        # ASSERT
        assert result.profit_after_losses == Decimal("30000")
        assert result.deductible_losses == Decimal("20000")
        assert result.unused_losses == Decimal("10000")
        assert result.base_tax == Decimal("7500")

    def test_married_cap(self):
        result = calc_futures_tax(FuturesTaxInput(year=2024, filing=FilingStatus.MARRIED,
                                                  total_gains=Decimal("50000"), total_losses=Decimal("30000")))
        assert result.deductible_losses == Decimal("30000")
        assert result.unused_losses == Decimal("0")

    def test_allowance_does_not_change_deductible_losses(self):
        without = calc_futures_tax(FuturesTaxInput(year=2024, filing=FilingStatus.SINGLE,
                                                   total_gains=Decimal("50000"), total_losses=Decimal("30000")))
        with_allowance = calc_futures_tax(FuturesTaxInput(year=2024, filing=FilingStatus.SINGLE,
                                                          total_gains=Decimal("50000"), total_losses=Decimal("30000"),
                                                          remaining_allowance=Decimal("1000")))

        assert with_allowance.deductible_losses == without.deductible_losses
        assert with_allowance.allowance_used == Decimal("1000")
        assert with_allowance.taxable_base == Decimal("29000")

    def test_losses_exceeding_gains(self):
        result = calc_futures_tax(FuturesTaxInput(year=2024, filing=FilingStatus.SINGLE,
                                                  total_gains=Decimal("5000"), total_losses=Decimal("-8000")))
        assert result.profit_after_losses == Decimal("0")
        assert result.deductible_losses == Decimal("5000")
        assert result.unused_losses == Decimal("3000")
        assert result.total == Decimal("0")


class TestDispatch:

    @pytest.mark.parametrize("regime, tax_input, attr", [
        (TaxRegime.CAPITAL_INCOME,
         CapitalTaxInput(year=2024, filing=FilingStatus.SINGLE, capital_income=Decimal("2000")), "allowance_left"),
        (TaxRegime.CRYPTO_SHORT_TERM,
         CryptoTaxInput(year=2024, marginal_rate=Decimal("0.42"), short_term_gains=Decimal("10")), "freigrenze"),
        (TaxRegime.FUTURES_DERIVATIVE,
         FuturesTaxInput(year=2024, filing=FilingStatus.SINGLE, total_gains=Decimal("1"), total_losses=Decimal("0")), "loss_cap"),
    ])
    def test_regime_selects_calculator(self, regime, tax_input, attr):
        assert hasattr(compute_tax(regime, tax_input), attr)

    def test_split_futures_pnl(self):
        gains, losses = split_futures_pnl([Decimal("100"), Decimal("-40"), Decimal("0"), Decimal("25.5"), Decimal("-10")])
        assert gains == Decimal("125.5")
        assert losses == Decimal("50")

    def test_year_summary_passes_leftover_allowance(self):
        summary = compute_year_tax(
            2024, TaxSettings(), Decimal("400"), Decimal("0"),
            futures_pnls=[Decimal("5000"), Decimal("-1000")]
        )
        assert summary.capital.allowance_left == Decimal("600")
        assert summary.futures.allowance_used == Decimal("600")
        assert summary.futures.taxable_base == Decimal("3400")
        assert summary.grand_total == summary.futures.total
