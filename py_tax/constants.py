"""
Statutory figures for the modeled German rules.

    § 32d EStG      Abgeltungsteuer, flat 25 %
    § 4 SolZG       Solidaritätszuschlag, 5.5 % of the income tax
    § 20 Abs. 9     Sparer-Pauschbetrag, 1,000 / 2,000 EUR
    § 23 Abs. 3     Freigrenze for private sales, 600 EUR (1,000 EUR from 2024)
    § 20 Abs. 6     loss offset cap for Termingeschäfte, 20,000 / 40,000 EUR
"""
from decimal import Decimal

ABGELTUNGSTEUER_RATE = Decimal("0.25")
SOLI_RATE = Decimal("0.055")

SPARER_PAUSCHBETRAG_SINGLE = Decimal("1000")
SPARER_PAUSCHBETRAG_MARRIED = Decimal("2000")

CRYPTO_FREIGRENZE_LEGACY = Decimal("600")
CRYPTO_FREIGRENZE = Decimal("1000")
CRYPTO_FREIGRENZE_RAISED_IN = 2024

FUTURES_LOSS_CAP_SINGLE = Decimal("20000")
FUTURES_LOSS_CAP_MARRIED = Decimal("40000")

CHURCH_TAX_RATES = (Decimal("0"), Decimal("0.08"), Decimal("0.09"))

# Marginal income tax rates offered for §23 gains
CRYPTO_RATE_LADDER = (
    Decimal("0.14"), Decimal("0.20"), Decimal("0.25"), Decimal("0.30"),
    Decimal("0.35"), Decimal("0.40"), Decimal("0.42"), Decimal("0.45"),
)
DEFAULT_CRYPTO_MARGINAL_RATE = Decimal("0.42")
