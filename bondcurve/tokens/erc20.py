"""
Fungible token.

An ERC-20 style ledger (transfer, approve, transferFrom, balanceOf) with a
controller that may generate and destroy tokens, and ``approve_and_call``
which approves a spender and invokes its ``receive_approval`` hook in one
step.
"""

from dataclasses import dataclass
from typing import ClassVar, Dict

from ..chain import Contract, Event, normalize_address, transactional
from ..constants import UINT256_MAX, ZERO_ADDRESS
from ..exceptions import BondCurveException
from ..logger import get_logger

logger = get_logger(__name__)

DEFAULT_DECIMALS = 18


# ══════════════════════════════════════════════════════════════════════
#  EXCEPTIONS
# ══════════════════════════════════════════════════════════════════════

class TokenError(BondCurveException):
    """Base exception for token operations."""


class InsufficientBalanceError(TokenError):
    """Raised when the holder's balance is too low."""


class InsufficientAllowanceError(TokenError):
    """Raised when the spender's allowance is too low."""


class NotControllerError(TokenError):
    """Raised when a controller-only method is called by someone else."""


# ══════════════════════════════════════════════════════════════════════
#  EVENTS
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Transfer(Event):
    name: ClassVar[str] = "Transfer"
    sender: str
    recipient: str
    amount: int


@dataclass(frozen=True)
class Approval(Event):
    name: ClassVar[str] = "Approval"
    owner: str
    spender: str
    amount: int


# ══════════════════════════════════════════════════════════════════════
#  TOKEN
# ══════════════════════════════════════════════════════════════════════

class ERC20Token(Contract):
    """
    Fungible token ledger.

    ``controller`` is the only account allowed to change the supply; for
    the bonded token that is the token manager.
    """

    _storage_fields = ("_balances", "_allowances", "_total_supply", "controller")

    def __init__(self, name: str, symbol: str, controller, decimals: int = DEFAULT_DECIMALS) -> None:
        super().__init__()
        self.name = name
        self.symbol = symbol
        self.decimals = decimals
        self.controller = normalize_address(controller)
        self._balances: Dict[str, int] = {}
        self._allowances: Dict[str, Dict[str, int]] = {}
        self._total_supply = 0

    # -- Views --------------------------------------------------------------

    def total_supply(self) -> int:
        return self._total_supply

    def balance_of(self, account) -> int:
        return self._balances.get(normalize_address(account), 0)

    def allowance(self, owner, spender) -> int:
        return self._allowances.get(normalize_address(owner), {}).get(normalize_address(spender), 0)

    # -- Transfers ----------------------------------------------------------

    @transactional
    def transfer(self, recipient, amount: int, *, sender) -> bool:
        self._transfer(normalize_address(sender), normalize_address(recipient), amount)
        return True

    @transactional
    def approve(self, spender, amount: int, *, sender) -> bool:
        self._approve(normalize_address(sender), normalize_address(spender), amount)
        return True

    @transactional
    def transfer_from(self, owner, recipient, amount: int, *, sender) -> bool:
        owner = normalize_address(owner)
        spender = normalize_address(sender)
        allowed = self.allowance(owner, spender)
        if allowed < amount:
            raise InsufficientAllowanceError(
                f"{spender} may spend {allowed} of {owner}'s {self.symbol}, needs {amount}"
            )
        self._transfer(owner, normalize_address(recipient), amount)
        if allowed != UINT256_MAX:
            self._allowances[owner][spender] = allowed - amount
        return True

    @transactional
    def approve_and_call(self, spender, amount: int, data: bytes, *, sender) -> bool:
        """
        Approve ``spender`` for ``amount`` and notify it through
        ``receive_approval(from_, amount, token, data, sender=token)``.
        """
        owner = normalize_address(sender)
        target = self._require_chain().get_contract(spender)
        self._approve(owner, target.address, amount)
        target.receive_approval(owner, amount, self.address, data, sender=self.address)
        return True

    # -- Controller ---------------------------------------------------------

    @transactional
    def generate_tokens(self, owner, amount: int, *, sender) -> bool:
        self._only_controller(sender)
        owner = normalize_address(owner)
        self._check_amount(amount)
        if self._total_supply + amount > UINT256_MAX:
            raise TokenError("Total supply overflow")
        self._total_supply += amount
        self._balances[owner] = self._balances.get(owner, 0) + amount
        self.emit(Transfer(sender=ZERO_ADDRESS, recipient=owner, amount=amount))
        return True

    @transactional
    def destroy_tokens(self, owner, amount: int, *, sender) -> bool:
        self._only_controller(sender)
        owner = normalize_address(owner)
        self._check_amount(amount)
        balance = self._balances.get(owner, 0)
        if balance < amount:
            raise InsufficientBalanceError(f"{owner} holds {balance} {self.symbol}, needs {amount}")
        self._total_supply -= amount
        self._balances[owner] = balance - amount
        self.emit(Transfer(sender=owner, recipient=ZERO_ADDRESS, amount=amount))
        return True

    @transactional
    def change_controller(self, new_controller, *, sender) -> None:
        self._only_controller(sender)
        self.controller = normalize_address(new_controller)

    # -- Internals ----------------------------------------------------------

    def _transfer(self, sender: str, recipient: str, amount: int) -> None:
        self._check_amount(amount)
        if recipient == ZERO_ADDRESS:
            raise TokenError("Cannot transfer to the zero address")
        balance = self._balances.get(sender, 0)
        if balance < amount:
            raise InsufficientBalanceError(f"{sender} holds {balance} {self.symbol}, needs {amount}")
        self._balances[sender] = balance - amount
        self._balances[recipient] = self._balances.get(recipient, 0) + amount
        self.emit(Transfer(sender=sender, recipient=recipient, amount=amount))

    def _approve(self, owner: str, spender: str, amount: int) -> None:
        self._check_amount(amount)
        self._allowances.setdefault(owner, {})[spender] = amount
        self.emit(Approval(owner=owner, spender=spender, amount=amount))

    def _only_controller(self, sender) -> None:
        if normalize_address(sender) != self.controller:
            raise NotControllerError(f"{sender} is not the controller of {self.symbol}")

    @staticmethod
    def _check_amount(amount: int) -> None:
        if not isinstance(amount, int) or amount < 0 or amount > UINT256_MAX:
            raise TokenError(f"Invalid amount: {amount!r}")
