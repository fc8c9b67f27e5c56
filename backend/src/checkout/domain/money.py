"""
Money helpers for Colombian peso amounts.

All monetary values are Decimal to avoid floating-point errors.
The gateway works in cents; the catalog works in whole pesos.
"""

from decimal import ROUND_HALF_UP, Decimal

# Tolerance for decimal comparisons (handles rounding in fee calculations)
AMOUNT_TOLERANCE = Decimal("0.01")

CENTS_PER_PESO = 100


def to_decimal(value: Decimal | int | float | str) -> Decimal:
    """Coerce a numeric value to Decimal without float artefacts."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def to_cents(amount: Decimal | int | float | str) -> int:
    """Convert pesos to integer cents, rounding half up."""
    cents = to_decimal(amount) * CENTS_PER_PESO
    return int(cents.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_cents(cents: int) -> Decimal:
    """Convert integer cents back to pesos."""
    return Decimal(cents) / CENTS_PER_PESO


def amounts_match(
    a: Decimal | int | float | str,
    b: Decimal | int | float | str,
    tolerance: Decimal = AMOUNT_TOLERANCE,
) -> bool:
    """True if two amounts differ by no more than the tolerance (inclusive)."""
    return abs(to_decimal(a) - to_decimal(b)) <= tolerance


def format_cop(amount: Decimal | int | float | str) -> str:
    """
    Format an amount the way es-CO locales display pesos.

    Example:
        >>> format_cop(Decimal("4550000"))
        '$ 4.550.000,00'
    """
    value = to_decimal(amount).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    sign = "-" if value < 0 else ""
    grouped = f"{abs(value):,.2f}"
    # Swap separators: 4,550,000.00 -> 4.550.000,00
    localized = grouped.replace(",", "_").replace(".", ",").replace("_", ".")
    return f"{sign}$ {localized}"
