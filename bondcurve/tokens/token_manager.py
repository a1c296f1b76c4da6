"""
Token manager: the mint/burn ledger in front of the bonded token.

Controls an ``ERC20Token`` and exposes mint and burn to accounts holding
``MINT_ROLE`` / ``BURN_ROLE`` on the ACL. An optional per-account cap limits
how many tokens any single holder may own.
"""

from typing import Protocol

from ..acl import App, Authorizer
from ..chain import normalize_address, transactional
from ..constants import BURN_ROLE, MINT_ROLE, UINT256_MAX
from ..logger import get_logger
from .erc20 import ERC20Token, TokenError

logger = get_logger(__name__)


class TokenLedger(Protocol):
    """The supply-changing interface the market maker relies on."""

    max_account_tokens: int

    def mint(self, receiver: str, amount: int, *, sender: str) -> None: ...
    def burn(self, holder: str, amount: int, *, sender: str) -> None: ...
    def total_supply(self) -> int: ...
    def balance_of(self, account: str) -> int: ...


class TokenManagerError(TokenError):
    """Raised when the token manager refuses a mint or burn."""


class TokenManager(App):
    """Mints and burns the bonded token on behalf of permitted apps."""

    _storage_fields = ("max_account_tokens",)

    def __init__(self, acl: Authorizer, token: ERC20Token, max_account_tokens: int = UINT256_MAX) -> None:
        super().__init__(acl)
        self.token = token
        self.max_account_tokens = max_account_tokens

    def total_supply(self) -> int:
        return self.token.total_supply()

    def balance_of(self, account) -> int:
        return self.token.balance_of(account)

    @transactional
    def mint(self, receiver, amount: int, *, sender) -> None:
        if not self.can_perform(sender, MINT_ROLE):
            raise TokenManagerError(f"APP_AUTH_FAILED: {sender} may not mint")
        receiver = normalize_address(receiver)
        if self.token.balance_of(receiver) + amount > self.max_account_tokens:
            raise TokenManagerError(
                f"TM_MINT_RECEIVER_IS_TM_OR_OVER_CAP: {receiver} would exceed {self.max_account_tokens}"
            )
        self.token.generate_tokens(receiver, amount, sender=self.address)
        logger.debug("Minted %s %s to %s", amount, self.token.symbol, receiver)

    @transactional
    def burn(self, holder, amount: int, *, sender) -> None:
        if not self.can_perform(sender, BURN_ROLE):
            raise TokenManagerError(f"APP_AUTH_FAILED: {sender} may not burn")
        holder = normalize_address(holder)
        self.token.destroy_tokens(holder, amount, sender=self.address)
        logger.debug("Burned %s %s from %s", amount, self.token.symbol, holder)
