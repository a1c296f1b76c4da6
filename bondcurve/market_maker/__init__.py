"""
bondcurve Market Maker

Bonding-curve order execution against whitelisted collaterals.

Components:
  - Collateral Registry (whitelist and per-collateral curve parameters)
  - Fee Calculator (parts-per-quintillion, truncating)
  - Pricing Adapter (virtual offsets in front of the formula)
  - Order Engine (buy, sell, approve-and-call entry)
  - Lifecycle Gate (GatedMarketMaker.open)
  - Admin Surface (collaterals, beneficiary, formula, fees)
"""

from .calldata import (
    BUY_ORDER_SELECTOR,
    BuyOrderCall,
    decode_buy_order_call,
    encode_buy_order_call,
    encode_function_call,
)
from .engine import (
    GatedMarketMaker,
    MarketMaker,
    MarketMakerConfig,
    OrderReceipt,
)
from .events import (
    AddCollateralToken,
    MakeBuyOrder,
    MakeSellOrder,
    Open,
    RemoveCollateralToken,
    UpdateBeneficiary,
    UpdateCollateralToken,
    UpdateFees,
    UpdateFormula,
)
from .fees import (
    checked_add,
    checked_mul,
    checked_sub,
    compute_fee,
    require_uint256,
)
from .pricing import PricingAdapter
from .registry import CollateralRegistry, CollateralToken

__all__ = [
    # Calldata
    "BUY_ORDER_SELECTOR",
    "BuyOrderCall",
    "decode_buy_order_call",
    "encode_buy_order_call",
    "encode_function_call",
    # Engine
    "GatedMarketMaker",
    "MarketMaker",
    "MarketMakerConfig",
    "OrderReceipt",
    # Events
    "AddCollateralToken",
    "MakeBuyOrder",
    "MakeSellOrder",
    "Open",
    "RemoveCollateralToken",
    "UpdateBeneficiary",
    "UpdateCollateralToken",
    "UpdateFees",
    "UpdateFormula",
    # Fees
    "checked_add",
    "checked_mul",
    "checked_sub",
    "compute_fee",
    "require_uint256",
    # Pricing / registry
    "PricingAdapter",
    "CollateralRegistry",
    "CollateralToken",
]
