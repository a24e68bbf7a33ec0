"""Money helpers. Amounts are integer minor units (cents) everywhere."""

from decimal import Decimal

CENT = Decimal("0.01")


def cents_to_decimal(cents: int) -> Decimal:
    return (Decimal(int(cents)) / 100).quantize(CENT)


def format_cents(cents: int, currency: str = "USD") -> str:
    """2500 -> '$25.00' (USD) or '25.00 EUR'."""
    amount = cents_to_decimal(cents)
    if currency == "USD":
        return f"${amount:,.2f}"
    return f"{amount:,.2f} {currency}"
