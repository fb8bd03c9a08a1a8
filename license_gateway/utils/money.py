"""Minor/major currency unit conversion.

Stripe amounts are integers in the currency's smallest unit. Zero-decimal
currencies (JPY, KRW, ...) have no minor unit.
"""

from decimal import Decimal

ZERO_DECIMAL_CURRENCIES = frozenset(
    {
        "bif", "clp", "djf", "gnf", "jpy", "kmf", "krw", "mga",
        "pyg", "rwf", "ugx", "vnd", "vuv", "xaf", "xof", "xpf",
    }
)

CURRENCY_SYMBOLS = {"gbp": "£", "usd": "$", "eur": "€"}


def minor_to_major(amount: int, currency: str) -> Decimal:
    """Convert a Stripe amount to major units.

    Examples:
        >>> minor_to_major(499, "gbp")
        Decimal('4.99')

        >>> minor_to_major(500, "jpy")
        Decimal('500')
    """
    if currency.lower() in ZERO_DECIMAL_CURRENCIES:
        return Decimal(amount)
    return (Decimal(amount) / Decimal(100)).quantize(Decimal("0.01"))


def format_amount(amount: int, currency: str) -> str:
    """Human-readable amount for notification emails ("£4.99", "500 JPY")."""
    value = minor_to_major(amount, currency)
    symbol = CURRENCY_SYMBOLS.get(currency.lower())
    if symbol:
        return f"{symbol}{value}"
    return f"{value} {currency.upper()}"
