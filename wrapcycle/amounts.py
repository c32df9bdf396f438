"""Integer amount helpers.

Amounts are plain ints in the smallest unit of the asset (wei for 18-decimal
assets). Fractions of a balance are computed in integer units and truncate.
"""

import random
from decimal import Decimal, InvalidOperation
from typing import Optional, Union

DEFAULT_DECIMALS = 18


def parse_units(value: Union[str, Decimal, int], decimals: int = DEFAULT_DECIMALS) -> int:
    """Convert a decimal string such as "0.015" into integer units.

    Args:
        value: Decimal amount
        decimals: Number of decimals of the asset

    Returns:
        Amount in smallest units

    Raises:
        ValueError: If the value is malformed or has more precision than the asset
    """
    if isinstance(value, float):
        raise TypeError("Floats are not accepted, pass a decimal string")
    try:
        dec = Decimal(value)
    except InvalidOperation as e:
        raise ValueError(f"Invalid amount: {value!r}") from e
    if not dec.is_finite():
        raise ValueError(f"Invalid amount: {value!r}")

    scaled = dec.scaleb(decimals)
    if scaled != scaled.to_integral_value():
        raise ValueError(f"Amount {value} has more than {decimals} decimals")
    return int(scaled)


def format_units(amount: int, decimals: int = DEFAULT_DECIMALS) -> str:
    """Render integer units as a decimal string, e.g. 1500000000000000 -> "0.0015"."""
    sign = "-" if amount < 0 else ""
    whole, frac = divmod(abs(amount), 10**decimals)
    if decimals == 0:
        return f"{sign}{whole}"
    frac_str = str(frac).rjust(decimals, "0").rstrip("0") or "0"
    return f"{sign}{whole}.{frac_str}"


def portion(amount: int, percent: int) -> int:
    """Return ``percent``% of a non-negative ``amount``, truncated toward zero."""
    if amount < 0:
        raise ValueError(f"Amount must be non-negative, got {amount}")
    if not 0 <= percent <= 100:
        raise ValueError(f"Percent must be within [0, 100], got {percent}")
    return amount * percent // 100


def random_amount(
    minimum: str,
    maximum: str,
    precision: int = 5,
    rng: Optional[random.Random] = None,
    decimals: int = DEFAULT_DECIMALS,
) -> int:
    """Pick a random amount in [minimum, maximum] with ``precision`` decimals.

    The pick is made on the integer grid of 10**-precision steps, so the result
    is exact in smallest units.
    """
    rng = rng or random.Random()
    step = 10 ** (decimals - precision)
    low = -(-parse_units(minimum, decimals) // step)  # ceil
    high = parse_units(maximum, decimals) // step
    if low > high:
        raise ValueError(f"Invalid amount range: {minimum} > {maximum}")
    return rng.randint(low, high) * step
