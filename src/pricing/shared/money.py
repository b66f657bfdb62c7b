"""Currency codes and decimal rounding helpers for monetary amounts."""

from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal

VALID_CURRENCIES = frozenset(
    {
        "USD",
        "EUR",
        "GBP",
        "JPY",
        "CAD",
        "AUD",
        "CHF",
        "CNY",
        "INR",
        "MXN",
        "BRL",
        "KRW",
        "SGD",
        "HKD",
        "NOK",
        "SEK",
        "DKK",
        "NZD",
        "ZAR",
        "TWD",
    }
)

# Currencies without a minor unit; everything else uses cents.
_ZERO_DECIMAL_CURRENCIES = frozenset({"JPY", "KRW"})

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def minor_unit(currency: str) -> Decimal:
    """Smallest representable amount in the currency (0.01 for USD, 1 for JPY)."""
    if currency in _ZERO_DECIMAL_CURRENCIES:
        return Decimal("1")
    return Decimal("0.01")


def quantize(amount: Decimal, currency: str) -> Decimal:
    """Round half-up to the currency's precision."""
    return amount.quantize(minor_unit(currency), rounding=ROUND_HALF_UP)


def quantize_down(amount: Decimal, currency: str) -> Decimal:
    """Truncate towards zero at the currency's precision."""
    return amount.quantize(minor_unit(currency), rounding=ROUND_DOWN)


def percent_of(amount: Decimal, percentage: Decimal) -> Decimal:
    return amount * percentage / HUNDRED
