"""Decimal arithmetic utilities for currency amounts.

Every stored amount (pools, stakes, fees, payouts) is a Decimal with
AMOUNT_PLACES decimal places, matching the 6-decimal stablecoin the house
pays out in. Floats only appear inside the pricing formulas.
"""

from decimal import ROUND_CEILING, ROUND_DOWN, ROUND_FLOOR, Decimal

AMOUNT_PLACES = 6
_QUANTUM = Decimal(1).scaleb(-AMOUNT_PLACES)
_BPS_DENOMINATOR = Decimal(10000)

ZERO = Decimal(0)


def to_amount(value: object) -> Decimal:
    """Coerce int/float/str/Decimal to an unrounded Decimal.

    Floats go through str() so 0.1 becomes Decimal("0.1"), not its binary
    expansion. NaN, infinities and booleans are rejected with ValueError.
    """
    if isinstance(value, bool):
        raise ValueError(f"Not an amount: {value!r}")
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (int, str)):
        amount = Decimal(value)
    elif isinstance(value, float):
        amount = Decimal(str(value))
    else:
        raise ValueError(f"Not an amount: {value!r}")
    if not amount.is_finite():
        raise ValueError(f"Amount must be finite, got {value!r}")
    return amount


def round_down(value: Decimal) -> Decimal:
    """Floor to AMOUNT_PLACES (used for anything the house pays out)."""
    return value.quantize(_QUANTUM, rounding=ROUND_FLOOR)


def round_up(value: Decimal) -> Decimal:
    """Ceil to AMOUNT_PLACES (used for anything the house collects)."""
    return value.quantize(_QUANTUM, rounding=ROUND_CEILING)


def calculate_fee(amount: Decimal, rate: Decimal) -> Decimal:
    """Fee with ceiling rounding (platform never under-collects).

    fee = ceil(amount * rate) at AMOUNT_PLACES
    """
    return round_up(amount * rate)


def fee_from_bps(amount: Decimal, fee_bps: int) -> Decimal:
    """calculate_fee with the rate given in basis points (100 bps = 1%)."""
    return calculate_fee(amount, Decimal(fee_bps) / _BPS_DENOMINATOR)


def amount_to_display(amount: Decimal) -> str:
    """Format for messages: Decimal("1234.5") -> '$1,234.50', negatives as '-$12.00'."""
    rounded = amount.quantize(Decimal("0.01"), rounding=ROUND_DOWN)
    if rounded < 0:
        return f"-${-rounded:,.2f}"
    return f"${rounded:,.2f}"
