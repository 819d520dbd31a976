"""Integer base-unit arithmetic for trade amounts.

Amounts that reach a transaction payload are always ints. Decimal is used
only to parse user input and to render amounts for display.
"""

from decimal import ROUND_DOWN, Decimal, InvalidOperation
from typing import Union

from swapvault.errors import ValidationError
from swapvault.routing.base import BPS_SCALE

MIN_PERCENTAGE = 1
MAX_PERCENTAGE = 100


def to_base_units(amount: Union[Decimal, str, int], decimals: int) -> int:
    """Convert a human-readable quantity to base units, rounding down.

    Raises:
        ValidationError: Not a number, or not positive after conversion
    """
    if isinstance(amount, float):
        raise ValidationError("Amounts must be given as Decimal or string, not float")
    try:
        value = Decimal(str(amount).strip())
    except InvalidOperation:
        raise ValidationError(f"Invalid amount: {amount!r}")
    if not value.is_finite() or value <= 0:
        raise ValidationError(f"Amount must be positive: {amount!r}")

    base_units = int(value.scaleb(decimals).to_integral_value(rounding=ROUND_DOWN))
    if base_units <= 0:
        raise ValidationError(f"Amount {amount} is below the smallest unit")
    return base_units


def from_base_units(amount: int, decimals: int) -> Decimal:
    """Base units to a Decimal quantity (display only)."""
    return Decimal(amount).scaleb(-decimals)


def validate_percentage(percentage: int) -> int:
    """Check a sell percentage is an integer in [1, 100]."""
    if isinstance(percentage, bool) or not isinstance(percentage, int):
        raise ValidationError(f"Percentage must be an integer, got {percentage!r}")
    if not MIN_PERCENTAGE <= percentage <= MAX_PERCENTAGE:
        raise ValidationError(
            f"Percentage must be between {MIN_PERCENTAGE} and {MAX_PERCENTAGE}, got {percentage}"
        )
    return percentage


def compute_sell_amount(balance: int, percentage: int) -> int:
    """``balance * percentage / 100`` with floor division."""
    validate_percentage(percentage)
    if balance < 0:
        raise ValidationError("Balance cannot be negative")
    return balance * percentage // MAX_PERCENTAGE


def validate_slippage_bps(slippage_bps: int) -> int:
    """Slippage must be in [0, 10000) basis points."""
    if isinstance(slippage_bps, bool) or not isinstance(slippage_bps, int):
        raise ValidationError(f"Slippage must be integer basis points, got {slippage_bps!r}")
    if not 0 <= slippage_bps < BPS_SCALE:
        raise ValidationError(f"Slippage must be in [0, {BPS_SCALE}) bps, got {slippage_bps}")
    return slippage_bps


def min_amount_out(quoted: int, slippage_bps: int) -> int:
    """Lowest acceptable output: ``quoted * (1 - slippage)``, rounded down."""
    validate_slippage_bps(slippage_bps)
    return quoted * (BPS_SCALE - slippage_bps) // BPS_SCALE
