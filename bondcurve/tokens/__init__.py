"""
bondcurve token ledgers

  - ERC20Token: fungible token used for the bonded token and token collaterals
  - TokenManager: mint/burn gate in front of the bonded token
"""

from .erc20 import (
    Approval,
    ERC20Token,
    InsufficientAllowanceError,
    InsufficientBalanceError,
    NotControllerError,
    TokenError,
    Transfer,
)
from .token_manager import (
    TokenLedger,
    TokenManager,
    TokenManagerError,
)

__all__ = [
    "Approval",
    "ERC20Token",
    "InsufficientAllowanceError",
    "InsufficientBalanceError",
    "NotControllerError",
    "TokenError",
    "Transfer",
    "TokenLedger",
    "TokenManager",
    "TokenManagerError",
]
