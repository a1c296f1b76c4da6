"""Boundary between the order engine and the pricing formula."""

from ..formula import Formula
from .fees import checked_add
from .registry import CollateralToken


class PricingAdapter:
    """
    Adds a collateral's virtual offsets to the live supply and reserve
    balance and forwards to the formula. Formula errors propagate as is.
    """

    def __init__(self, formula: Formula) -> None:
        self.formula = formula

    def purchase_return(
        self,
        collateral_token: CollateralToken,
        current_supply: int,
        current_balance: int,
        deposit_amount: int,
    ) -> int:
        return self.formula.calculate_purchase_return(
            checked_add(collateral_token.virtual_supply, current_supply),
            checked_add(collateral_token.virtual_balance, current_balance),
            collateral_token.reserve_ratio,
            deposit_amount,
        )

    def sale_return(
        self,
        collateral_token: CollateralToken,
        current_supply: int,
        current_balance: int,
        sell_amount: int,
    ) -> int:
        return self.formula.calculate_sale_return(
            checked_add(collateral_token.virtual_supply, current_supply),
            checked_add(collateral_token.virtual_balance, current_balance),
            collateral_token.reserve_ratio,
            sell_amount,
        )
