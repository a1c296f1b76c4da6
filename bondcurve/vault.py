"""
Reserve custodian.

Holds the native asset and any number of fungible tokens. Deposits are
implicit: anything sent to the vault's address is part of the reserve.
Payouts require ``TRANSFER_ROLE``.
"""

from dataclasses import dataclass
from typing import ClassVar, Protocol

from .acl import App
from .chain import Event, InsufficientFundsError, normalize_address, transactional
from .constants import NATIVE_ASSET, TRANSFER_ROLE
from .exceptions import BondCurveException
from .logger import get_logger
from .tokens.erc20 import TokenError

logger = get_logger(__name__)


class VaultError(BondCurveException):
    """Base exception for vault operations."""

    reason = "VAULT_ERROR"

    def __init__(self, reason: str, message: str = "") -> None:
        super().__init__(f"{reason}: {message}" if message else reason)
        self.reason = reason


class VaultTransferError(VaultError):
    """A payout could not be delivered."""


class Reserve(Protocol):
    """The custody interface the market maker relies on."""

    address: str

    def balance(self, collateral: str) -> int: ...
    def transfer(self, collateral: str, to: str, amount: int, *, sender: str) -> None: ...


@dataclass(frozen=True)
class VaultTransfer(Event):
    name: ClassVar[str] = "VaultTransfer"
    token: str
    to: str
    amount: int


class Vault(App):
    """Custodian of the market maker's reserve."""

    def balance(self, collateral) -> int:
        collateral = normalize_address(collateral)
        chain = self._require_chain()
        if collateral == NATIVE_ASSET:
            return chain.balance_of(self.address)
        return chain.get_contract(collateral).balance_of(self.address)

    @transactional
    def transfer(self, collateral, to, amount: int, *, sender) -> None:
        if not self.can_perform(sender, TRANSFER_ROLE):
            raise VaultError("APP_AUTH_FAILED", f"{sender} may not move reserve funds")
        if amount <= 0:
            raise VaultError("VAULT_TRANSFER_VALUE_ZERO")

        collateral = normalize_address(collateral)
        to = normalize_address(to)
        chain = self._require_chain()

        if collateral == NATIVE_ASSET:
            try:
                chain.transfer_native(self.address, to, amount)
            except InsufficientFundsError as e:
                raise VaultTransferError("VAULT_SEND_REVERTED", str(e)) from e
        else:
            try:
                chain.get_contract(collateral).transfer(to, amount, sender=self.address)
            except TokenError as e:
                raise VaultTransferError("VAULT_TOKEN_TRANSFER_REVERTED", str(e)) from e

        self.emit(VaultTransfer(token=collateral, to=to, amount=amount))
        logger.debug("Vault paid %s of %s to %s", amount, collateral, to)
