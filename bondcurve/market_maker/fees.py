"""
Fee arithmetic.

Fees are expressed in parts-per-quintillion (``PCT_BASE = 10**18``) and
truncated toward zero, so the protocol keeps any remainder on both the buy
and the sell leg. All helpers enforce unsigned 256-bit bounds.
"""

from ..constants import PCT_BASE, UINT256_MAX
from ..exceptions import MathOverflow


def require_uint256(value: int, label: str = "value") -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"{label} must be an int, got {type(value).__name__}")
    if value < 0 or value > UINT256_MAX:
        raise MathOverflow(f"{label} does not fit in uint256: {value}")
    return value


def checked_add(a: int, b: int) -> int:
    return require_uint256(require_uint256(a) + require_uint256(b), "sum")


def checked_sub(a: int, b: int) -> int:
    result = require_uint256(a) - require_uint256(b)
    if result < 0:
        raise MathOverflow(f"subtraction underflow: {a} - {b}")
    return result


def checked_mul(a: int, b: int) -> int:
    return require_uint256(require_uint256(a) * require_uint256(b), "product")


def compute_fee(amount: int, pct: int) -> int:
    """``floor(amount * pct / PCT_BASE)``; raises ``MathOverflow`` if the product leaves uint256."""
    return checked_mul(amount, pct) // PCT_BASE
