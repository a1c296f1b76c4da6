"""
Bancor bonding-curve formula.

Pure integer in, integer out. For a reserve ratio ``r`` (in ppm):

    purchase:  supply * ((1 + amount / balance) ** (r / RATIO_BASE) - 1)
    sale:      balance * (1 - (1 - amount / supply) ** (RATIO_BASE / r))

Both are evaluated with 78 significant digits and floored, so the result
never exceeds the exact curve value.
"""

from decimal import ROUND_FLOOR, Decimal, localcontext
from typing import Protocol

from .chain import Contract
from .constants import FORMULA_DECIMAL_PRECISION, RATIO_BASE, UINT256_MAX
from .exceptions import BondCurveException


class FormulaError(BondCurveException):
    """Raised when formula inputs are out of range."""


class Formula(Protocol):
    """The pricing interface the market maker relies on."""

    def calculate_purchase_return(self, supply: int, balance: int, ratio: int, amount: int) -> int: ...
    def calculate_sale_return(self, supply: int, balance: int, ratio: int, amount: int) -> int: ...


def _floor(value: Decimal) -> int:
    result = int(value.to_integral_value(rounding=ROUND_FLOOR))
    return max(result, 0)


def _validate(supply: int, balance: int, ratio: int, amount: int) -> None:
    for label, value in (("supply", supply), ("balance", balance), ("ratio", ratio), ("amount", amount)):
        if not isinstance(value, int) or value < 0 or value > UINT256_MAX:
            raise FormulaError(f"{label} out of range: {value!r}")
    if supply == 0:
        raise FormulaError("supply must be positive")
    if balance == 0:
        raise FormulaError("balance must be positive")
    if ratio == 0 or ratio > RATIO_BASE:
        raise FormulaError(f"ratio must be in (0, {RATIO_BASE}]: {ratio}")


class BancorFormula(Contract):
    """Stateless pricing contract."""

    def calculate_purchase_return(self, supply: int, balance: int, ratio: int, amount: int) -> int:
        """Bonded tokens issued for depositing ``amount`` of collateral."""
        _validate(supply, balance, ratio, amount)
        if amount == 0:
            return 0
        if ratio == RATIO_BASE:
            return supply * amount // balance

        with localcontext() as ctx:
            ctx.prec = FORMULA_DECIMAL_PRECISION
            base = Decimal(balance + amount) / Decimal(balance)
            exponent = Decimal(ratio) / Decimal(RATIO_BASE)
            return _floor(Decimal(supply) * (base ** exponent - 1))

    def calculate_sale_return(self, supply: int, balance: int, ratio: int, amount: int) -> int:
        """Collateral paid out for selling ``amount`` bonded tokens."""
        _validate(supply, balance, ratio, amount)
        if amount > supply:
            raise FormulaError(f"amount {amount} exceeds supply {supply}")
        if amount == 0:
            return 0
        if amount == supply:
            return balance
        if ratio == RATIO_BASE:
            return balance * amount // supply

        with localcontext() as ctx:
            ctx.prec = FORMULA_DECIMAL_PRECISION
            base = Decimal(supply - amount) / Decimal(supply)
            exponent = Decimal(RATIO_BASE) / Decimal(ratio)
            return min(_floor(Decimal(balance) * (1 - base ** exponent)), balance)
