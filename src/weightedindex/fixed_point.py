"""Unsigned fixed-point helpers.

Python integers never overflow, so the 256-bit ceiling of the on-chain
representation is enforced explicitly: any product or sum above
``UINT256_MAX`` raises ``ArithmeticOverflow`` instead of wrapping.
"""

from decimal import ROUND_DOWN, Decimal, InvalidOperation, localcontext

from weightedindex.errors import ArithmeticOverflow

BASIS_POINTS = 10_000
PRICE_DECIMALS = 18
FIXED_POINT_SCALE = 10**PRICE_DECIMALS
UINT256_MAX = 2**256 - 1


def require_unsigned(value: int, name: str) -> int:
    """Reject negative or non-integer amounts."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be an int, got {type(value).__name__}")
    if value < 0:
        raise ValueError(f"{name} must be >= 0, got {value}")
    if value > UINT256_MAX:
        raise ArithmeticOverflow(f"{name} exceeds the uint256 range")
    return value


def checked_mul(*factors: int) -> int:
    """Multiply left to right, checking every partial product."""
    result = 1
    for factor in factors:
        result *= factor
        if result > UINT256_MAX:
            raise ArithmeticOverflow(
                f"Product of {len(factors)} factors exceeds the uint256 range"
            )
    return result


def checked_add(a: int, b: int) -> int:
    result = a + b
    if result > UINT256_MAX:
        raise ArithmeticOverflow("Sum exceeds the uint256 range")
    return result


def to_fixed(amount: Decimal | str | int | float, decimals: int = PRICE_DECIMALS) -> int:
    """Convert a human-readable amount to a fixed-point integer, truncating extra digits.

    Args:
        amount: Decimal amount, e.g. ``"2.5"`` for 2.5 units
        decimals: Number of fixed-point decimal places (default 18)

    Returns:
        Integer scaled by ``10**decimals``

    Raises:
        ValueError: If the amount is negative or not a number
        ArithmeticOverflow: If the scaled amount leaves the uint256 range
    """
    try:
        value = Decimal(str(amount))
    except InvalidOperation as e:
        raise ValueError(f"Not a decimal amount: {amount!r}") from e

    if not value.is_finite():
        raise ValueError(f"Not a finite amount: {amount!r}")
    if value < 0:
        raise ValueError(f"Amount must be >= 0, got {amount!r}")

    with localcontext() as ctx:
        ctx.prec = 100
        try:
            scaled = value.scaleb(decimals).quantize(Decimal(1), rounding=ROUND_DOWN)
        except InvalidOperation as e:
            raise ArithmeticOverflow(f"Amount too large: {amount!r}") from e
    return require_unsigned(int(scaled), "amount")


def from_fixed(value: int, decimals: int = PRICE_DECIMALS) -> Decimal:
    """Convert a fixed-point integer back to a Decimal for display."""
    return Decimal(f"{value}e-{decimals}")
