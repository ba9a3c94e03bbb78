"""Exact integer helpers shared by the swap and liquidity engines.

Python integers are unbounded, so products of two reserves never overflow. Every
division here truncates toward zero (floor for the non-negative values used by the
engine), which matches the on-chain validator and always favours the pool.
"""

BPS_DENOMINATOR = 10000
PRICE_PRECISION = 1_000_000


def apply_fee_bps(amount: int, fee_bps: int) -> int:
    """Return the part of `amount` that remains after a basis point fee.

    Args:
        amount: A non-negative quantity.
        fee_bps: Fee in basis points, 0 to 10000.

    Returns:
        floor(amount * (10000 - fee_bps) / 10000)
    """
    if amount < 0:
        msg = f"amount must be non-negative: {amount}"
        raise ValueError(msg)
    if not 0 <= fee_bps <= BPS_DENOMINATOR:
        msg = f"fee_bps must be in [0, {BPS_DENOMINATOR}]: {fee_bps}"
        raise ValueError(msg)
    return amount * (BPS_DENOMINATOR - fee_bps) // BPS_DENOMINATOR


def bps_of(amount: int, bps: int) -> int:
    """floor(amount * bps / 10000)."""
    return amount * bps // BPS_DENOMINATOR


def ratio_div(numerator: int, multiplier: int, denominator: int) -> int:
    """floor(numerator * multiplier / denominator) without intermediate rounding."""
    if denominator == 0:
        msg = "denominator must be non-zero"
        raise ZeroDivisionError(msg)
    return numerator * multiplier // denominator


def ceil_div(numerator: int, denominator: int) -> int:
    """Ceiling division for non-negative integers."""
    if denominator <= 0:
        msg = f"denominator must be positive: {denominator}"
        raise ZeroDivisionError(msg)
    return -(-numerator // denominator)


def isqrt(value: int) -> int:
    """Floor integer square root computed with Newton's method.

    Args:
        value: A non-negative integer.

    Returns:
        The largest integer `r` such that `r * r <= value`.
    """
    if value < 0:
        msg = f"Cannot take the square root of a negative number: {value}"
        raise ValueError(msg)
    if value < 2:
        return value

    x = value
    y = (x + 1) // 2
    while y < x:
        x = y
        y = (x + value // x) // 2
    return x


def scaled_price(ada_reserve: int, token_reserve: int) -> int:
    """ADA per token scaled by 1e6, or 0 for an empty token reserve."""
    if token_reserve <= 0:
        return 0
    return ada_reserve * PRICE_PRECISION // token_reserve
