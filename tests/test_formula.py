"""
Bancor formula tests.

Reference values were computed independently at high precision; the
formula must floor, never round up.
"""

from decimal import Decimal, localcontext

import pytest

from bondcurve.constants import RATIO_BASE, UINT256_MAX
from bondcurve.formula import BancorFormula, FormulaError

SUPPLY = 10 ** 23
BALANCE = 10 ** 22
RATIO = 100_000


@pytest.fixture
def formula():
    return BancorFormula()


def exact_purchase(supply, balance, ratio, amount):
    with localcontext() as ctx:
        ctx.prec = 100
        return Decimal(supply) * ((1 + Decimal(amount) / Decimal(balance)) ** (Decimal(ratio) / RATIO_BASE) - 1)


def exact_sale(supply, balance, ratio, amount):
    with localcontext() as ctx:
        ctx.prec = 100
        return Decimal(balance) * (1 - (1 - Decimal(amount) / Decimal(supply)) ** (Decimal(RATIO_BASE) / ratio))


class TestPurchaseReturn:

    def test_zero_amount(self, formula):
        assert formula.calculate_purchase_return(SUPPLY, BALANCE, RATIO, 0) == 0

    def test_full_ratio_is_linear(self, formula):
        assert formula.calculate_purchase_return(1000, 500, RATIO_BASE, 10) == 20
        assert formula.calculate_purchase_return(1000, 3, RATIO_BASE, 1) == 333

    @pytest.mark.parametrize("amount", [1, 10 ** 15, 9 * 10 ** 17, 10 ** 22, 10 ** 25])
    def test_close_to_exact_and_floored(self, formula, amount):
        result = formula.calculate_purchase_return(SUPPLY, BALANCE, RATIO, amount)
        exact = exact_purchase(SUPPLY, BALANCE, RATIO, amount)
        assert result <= exact
        assert exact - result < 2

    def test_monotonic_in_amount(self, formula):
        amounts = (10 ** 16, 10 ** 17, 10 ** 18)
        returns = [formula.calculate_purchase_return(SUPPLY, BALANCE, RATIO, a) for a in amounts]
        assert returns == sorted(returns)
        assert len(set(returns)) == 3

    def test_higher_ratio_returns_more(self, formula):
        low = formula.calculate_purchase_return(SUPPLY, BALANCE, 100_000, 10 ** 20)
        high = formula.calculate_purchase_return(SUPPLY, BALANCE, 500_000, 10 ** 20)
        assert high > low


class TestSaleReturn:

    def test_zero_amount(self, formula):
        assert formula.calculate_sale_return(SUPPLY, BALANCE, RATIO, 0) == 0

    def test_whole_supply_returns_whole_balance(self, formula):
        assert formula.calculate_sale_return(SUPPLY, BALANCE, RATIO, SUPPLY) == BALANCE

    def test_more_than_supply(self, formula):
        with pytest.raises(FormulaError, match="exceeds supply"):
            formula.calculate_sale_return(SUPPLY, BALANCE, RATIO, SUPPLY + 1)

    def test_full_ratio_is_linear(self, formula):
        assert formula.calculate_sale_return(1000, 500, RATIO_BASE, 10) == 5
        assert formula.calculate_sale_return(3, 1000, RATIO_BASE, 1) == 333

    @pytest.mark.parametrize("amount", [1, 10 ** 18, 10 ** 21, SUPPLY // 2, SUPPLY - 10 ** 20])
    def test_close_to_exact_and_floored(self, formula, amount):
        result = formula.calculate_sale_return(SUPPLY, BALANCE, RATIO, amount)
        exact = exact_sale(SUPPLY, BALANCE, RATIO, amount)
        assert result <= exact
        assert exact - result < 2
        assert result <= BALANCE


class TestValidation:

    @pytest.mark.parametrize("args", [
        (0, BALANCE, RATIO, 1),
        (SUPPLY, 0, RATIO, 1),
        (SUPPLY, BALANCE, 0, 1),
        (SUPPLY, BALANCE, RATIO_BASE + 1, 1),
        (SUPPLY, BALANCE, RATIO, -1),
        (UINT256_MAX + 1, BALANCE, RATIO, 1),
        (SUPPLY, BALANCE, RATIO, 1.5),
    ])
    def test_rejects(self, formula, args):
        with pytest.raises(FormulaError):
            formula.calculate_purchase_return(*args)
        with pytest.raises(FormulaError):
            formula.calculate_sale_return(*args)
