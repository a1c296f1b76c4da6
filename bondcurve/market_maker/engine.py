"""
Bonding-curve market maker.

Issues the bonded token against whitelisted collaterals and redeems it:

  - make_buy_order: collateral in, fee to the beneficiary, bonded tokens minted
  - make_sell_order: bonded tokens burned, collateral out of the reserve
  - receive_approval: buy order carried by a collateral token's approve_and_call
  - admin surface for collaterals, beneficiary, formula and fees

``MarketMaker`` is active as soon as it is initialized. ``GatedMarketMaker``
starts closed and only accepts orders after ``open()``.

Every public mutating method runs inside ``chain.atomic()``: a failure at any
step, including after the sell-side burn, leaves no trace. Orders also hold a
reentrancy lock for their whole duration.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..acl import App, Authorizer
from ..chain import normalize_address, transactional
from ..constants import (
    MAKE_BUY_ORDER_ROLE,
    MAKE_SELL_ORDER_ROLE,
    MANAGE_COLLATERAL_TOKEN_ROLE,
    NATIVE_ASSET,
    OPEN_ROLE,
    PCT_BASE,
    PPM,
    UINT256_MAX,
    UPDATE_BENEFICIARY_ROLE,
    UPDATE_FEES_ROLE,
    UPDATE_FORMULA_ROLE,
    ZERO_ADDRESS,
)
from ..exceptions import (
    AlreadyInitialized,
    AlreadyOpen,
    AuthFailed,
    BuyerNotFrom,
    CollateralNotSender,
    CollateralNotWhitelisted,
    ContractIsEOA,
    DepositNotAmount,
    InvalidBeneficiary,
    InvalidBondAmount,
    InvalidCollateralValue,
    InvalidPercentage,
    InvalidTokenManagerSetting,
    NoPermission,
    NotAContract,
    NotInitialized,
    NotOpen,
    Reentrancy,
    ReserveTransferFailed,
    SlippageExceedsLimit,
    TokenLedgerFailed,
)
from ..logger import get_logger
from ..tokens.erc20 import TokenError
from ..vault import VaultError
from .calldata import decode_buy_order_call
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
from .fees import checked_mul, checked_sub, compute_fee
from .pricing import PricingAdapter
from .registry import CollateralRegistry, CollateralToken

logger = get_logger(__name__)


@dataclass
class MarketMakerConfig:
    """Deployment parameters fixed by ``initialize``. Collaborators are stored by address."""
    token_manager: str
    formula: str
    reserve: str
    beneficiary: str
    buy_fee_pct: int
    sell_fee_pct: int
    is_open: bool


@dataclass(frozen=True)
class OrderReceipt:
    """
    Outcome of one order (or quote). Never stored.

    ``amount`` is the collateral deposited (buy) or the bonded tokens sold
    (sell). ``net_amount`` is the reserve-side amount: the deposit less the
    fee on a buy, the gross sale return on a sell. ``return_amount`` is what
    the trader receives.
    """
    trader: str
    collateral: str
    amount: int
    min_return_amount: int
    fee: int
    net_amount: int
    return_amount: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "trader": self.trader,
            "collateral": self.collateral,
            "amount": self.amount,
            "minReturnAmount": self.min_return_amount,
            "fee": self.fee,
            "netAmount": self.net_amount,
            "returnAmount": self.return_amount,
        }


def _validate_fees(buy_fee_pct: int, sell_fee_pct: int) -> None:
    for label, pct in (("buy", buy_fee_pct), ("sell", sell_fee_pct)):
        if not isinstance(pct, int) or pct < 0 or pct >= PCT_BASE:
            raise InvalidPercentage(f"{label} fee must be in [0, {PCT_BASE}): {pct!r}")


class MarketMaker(App):
    """Always-active bonding-curve market maker."""

    GATED = False

    _storage_fields = ("_config",)

    def __init__(self, acl: Authorizer) -> None:
        super().__init__(acl)
        self._config: Optional[MarketMakerConfig] = None
        self.registry = CollateralRegistry(self._is_contract)
        self._locked = False

    # -- Storage ------------------------------------------------------------

    def snapshot_storage(self) -> Dict[str, Any]:
        data = super().snapshot_storage()
        data["_collaterals"] = self.registry.dump()
        return data

    def restore_storage(self, data: Dict[str, Any]) -> None:
        data = dict(data)
        self.registry.load(data.pop("_collaterals"))
        super().restore_storage(data)

    # -- Initialization -----------------------------------------------------

    @transactional
    def initialize(
        self,
        token_manager,
        formula,
        reserve,
        beneficiary,
        buy_fee_pct: int,
        sell_fee_pct: int,
        *,
        sender,
    ) -> None:
        """
        Wire the collaborators and set the fee schedule. Callable once.

        Args:
            token_manager: mint/burn ledger of the bonded token (contract or address)
            formula: pricing formula (contract or address)
            reserve: custodian receiving deposits and paying redemptions
            beneficiary: account receiving buy and sell fees
            buy_fee_pct, sell_fee_pct: fee rates in parts per 10**18
        """
        normalize_address(sender)
        if self._config is not None:
            raise AlreadyInitialized("market maker is already initialized")

        chain = self._require_chain()
        token_manager = self._require_collaborator(token_manager, "token manager")
        cap = getattr(chain.get_contract(token_manager), "max_account_tokens", None)
        if cap != UINT256_MAX:
            raise InvalidTokenManagerSetting(f"token manager must not cap account balances (cap: {cap})")
        reserve = self._require_collaborator(reserve, "reserve")
        formula = self._require_collaborator(formula, "formula")

        beneficiary = normalize_address(beneficiary)
        if beneficiary == ZERO_ADDRESS:
            raise InvalidBeneficiary("beneficiary cannot be the zero address")
        _validate_fees(buy_fee_pct, sell_fee_pct)

        self._config = MarketMakerConfig(
            token_manager=token_manager,
            formula=formula,
            reserve=reserve,
            beneficiary=beneficiary,
            buy_fee_pct=buy_fee_pct,
            sell_fee_pct=sell_fee_pct,
            is_open=not self.GATED,
        )
        logger.info(
            "Market maker %s initialized: reserve=%s beneficiary=%s buy_fee=%s sell_fee=%s",
            self.address, reserve, beneficiary, buy_fee_pct, sell_fee_pct,
        )

    # -- Read surface -------------------------------------------------------

    @property
    def is_initialized(self) -> bool:
        return self._config is not None

    @property
    def is_open(self) -> bool:
        return self._config is not None and self._config.is_open

    @property
    def token_manager(self):
        return self._require_chain().get_contract(self._cfg().token_manager)

    @property
    def token(self):
        return self.token_manager.token

    @property
    def formula(self):
        return self._require_chain().get_contract(self._cfg().formula)

    @property
    def reserve(self):
        return self._require_chain().get_contract(self._cfg().reserve)

    @property
    def beneficiary(self) -> str:
        return self._cfg().beneficiary

    @property
    def buy_fee_pct(self) -> int:
        return self._cfg().buy_fee_pct

    @property
    def sell_fee_pct(self) -> int:
        return self._cfg().sell_fee_pct

    def get_collateral_token(self, collateral) -> CollateralToken:
        return self.registry.get(collateral)

    def collateral_tokens(self) -> Dict[str, CollateralToken]:
        return {addr: self.registry.get(addr) for addr in self.registry.whitelisted()}

    @staticmethod
    def get_static_price_ppm(supply: int, balance: int, reserve_ratio: int) -> int:
        """Spot price in ppm of collateral per bonded token."""
        return checked_mul(checked_mul(PPM, PPM), balance) // checked_mul(supply, reserve_ratio)

    def quote_buy(self, collateral, deposit_amount: int) -> OrderReceipt:
        """What ``make_buy_order`` would return right now, without placing it."""
        self._require_initialized()
        collateral = normalize_address(collateral)
        collateral_token = self._whitelisted(collateral)
        if deposit_amount == 0:
            raise InvalidCollateralValue("deposit amount must be positive")
        return self._price_buy(ZERO_ADDRESS, collateral, collateral_token, deposit_amount, 0)

    def quote_sell(self, collateral, sell_amount: int) -> OrderReceipt:
        """What ``make_sell_order`` would pay right now, without placing it."""
        self._require_initialized()
        collateral = normalize_address(collateral)
        collateral_token = self._whitelisted(collateral)
        supply = self.token_manager.total_supply()
        if sell_amount == 0 or sell_amount > supply:
            raise InvalidBondAmount(f"cannot sell {sell_amount} of a supply of {supply}")
        return self._price_sell(
            ZERO_ADDRESS, collateral, collateral_token, sell_amount, 0, supply
        )

    # -- Orders -------------------------------------------------------------

    @transactional
    def make_buy_order(
        self,
        buyer,
        collateral,
        deposit_amount: int,
        min_return_amount: int,
        *,
        sender,
        value: int = 0,
    ) -> OrderReceipt:
        """
        Deposit ``deposit_amount`` of ``collateral`` and mint bonded tokens to ``buyer``.

        Native collateral must be attached as ``value``. Token collateral is
        pulled from ``buyer``, who must have approved the market maker.
        """
        sender = normalize_address(sender)
        self.receive_value(sender, value)
        return self._make_buy_order(
            buyer, collateral, deposit_amount, min_return_amount, sender=sender, value=value, check_role=True
        )

    @transactional
    def make_sell_order(
        self,
        seller,
        collateral,
        sell_amount: int,
        min_return_amount: int,
        *,
        sender,
    ) -> OrderReceipt:
        """Burn ``sell_amount`` bonded tokens of ``seller`` and pay out ``collateral``."""
        sender = normalize_address(sender)
        self._acquire_lock()
        try:
            self._require_initialized()
            self._require_open()
            self._auth(MAKE_SELL_ORDER_ROLE, sender)

            seller = normalize_address(seller)
            collateral = normalize_address(collateral)
            collateral_token = self._whitelisted(collateral)
            token_manager = self.token_manager
            if sell_amount == 0 or token_manager.balance_of(seller) < sell_amount:
                raise InvalidBondAmount(f"{seller} cannot sell {sell_amount} bonded tokens")

            # Priced on the supply the sold tokens were part of
            supply = token_manager.total_supply()
            self._burn(seller, sell_amount)
            receipt = self._price_sell(
                seller, collateral, collateral_token, sell_amount, min_return_amount, supply
            )
            if receipt.return_amount < min_return_amount:
                raise SlippageExceedsLimit(
                    f"sale returns {receipt.return_amount}, minimum is {min_return_amount}"
                )

            self._pay_out(collateral, seller, receipt.return_amount)
            self._pay_out(collateral, self._cfg().beneficiary, receipt.fee)

            self.emit(MakeSellOrder(
                seller=seller,
                collateral=collateral,
                sell_amount=sell_amount,
                fee=receipt.fee,
                return_amount=receipt.return_amount,
                fee_pct=self._cfg().sell_fee_pct,
            ))
            logger.info(
                "Sell order: %s sold %s for %s of %s (fee %s)",
                seller, sell_amount, receipt.return_amount, collateral, receipt.fee,
            )
            return receipt
        finally:
            self._release_lock()

    @transactional
    def receive_approval(self, from_, amount: int, token, data: bytes, *, sender) -> OrderReceipt:
        """
        Approval callback of a collateral token's ``approve_and_call``.

        ``data`` must encode ``makeBuyOrder(from_, sender, amount, min_return)``;
        the buy is then placed on behalf of ``from_`` using the allowance
        just granted.
        """
        sender = normalize_address(sender)
        from_ = normalize_address(from_)
        normalize_address(token)

        call = decode_buy_order_call(data)
        if call.buyer != from_:
            raise BuyerNotFrom(f"encoded buyer {call.buyer} is not the approver {from_}")
        if call.collateral != sender:
            raise CollateralNotSender(f"encoded collateral {call.collateral} did not send the approval")
        if call.deposit_amount != amount:
            raise DepositNotAmount(f"encoded deposit {call.deposit_amount} differs from approval {amount}")
        if not self.can_perform(from_, MAKE_BUY_ORDER_ROLE):
            raise NoPermission(f"{from_} may not place buy orders")

        return self._make_buy_order(
            call.buyer, call.collateral, call.deposit_amount, call.min_return_amount,
            sender=from_, value=0, check_role=False,
        )

    # -- Admin surface ------------------------------------------------------

    @transactional
    def add_collateral_token(
        self, collateral, virtual_supply: int, virtual_balance: int, reserve_ratio: int, *, sender
    ) -> None:
        self._admin(MANAGE_COLLATERAL_TOKEN_ROLE, sender)
        collateral = normalize_address(collateral)
        self.registry.add(collateral, virtual_supply, virtual_balance, reserve_ratio)
        self.emit(AddCollateralToken(
            collateral=collateral,
            virtual_supply=virtual_supply,
            virtual_balance=virtual_balance,
            reserve_ratio=reserve_ratio,
        ))
        logger.info(
            "Collateral %s added: virtual_supply=%s virtual_balance=%s ratio=%s",
            collateral, virtual_supply, virtual_balance, reserve_ratio,
        )

    @transactional
    def update_collateral_token(
        self, collateral, virtual_supply: int, virtual_balance: int, reserve_ratio: int, *, sender
    ) -> None:
        self._admin(MANAGE_COLLATERAL_TOKEN_ROLE, sender)
        collateral = normalize_address(collateral)
        self.registry.update(collateral, virtual_supply, virtual_balance, reserve_ratio)
        self.emit(UpdateCollateralToken(
            collateral=collateral,
            virtual_supply=virtual_supply,
            virtual_balance=virtual_balance,
            reserve_ratio=reserve_ratio,
        ))
        logger.info(
            "Collateral %s updated: virtual_supply=%s virtual_balance=%s ratio=%s",
            collateral, virtual_supply, virtual_balance, reserve_ratio,
        )

    @transactional
    def remove_collateral_token(self, collateral, *, sender) -> None:
        self._admin(MANAGE_COLLATERAL_TOKEN_ROLE, sender)
        collateral = normalize_address(collateral)
        self.registry.remove(collateral)
        self.emit(RemoveCollateralToken(collateral=collateral))
        logger.info("Collateral %s removed", collateral)

    @transactional
    def update_beneficiary(self, beneficiary, *, sender) -> None:
        self._admin(UPDATE_BENEFICIARY_ROLE, sender)
        beneficiary = normalize_address(beneficiary)
        if beneficiary == ZERO_ADDRESS:
            raise InvalidBeneficiary("beneficiary cannot be the zero address")
        self._config.beneficiary = beneficiary
        self.emit(UpdateBeneficiary(beneficiary=beneficiary))
        logger.info("Beneficiary updated to %s", beneficiary)

    @transactional
    def update_formula(self, formula, *, sender) -> None:
        self._admin(UPDATE_FORMULA_ROLE, sender)
        formula = normalize_address(formula)
        if not self._is_contract(formula):
            raise NotAContract(f"formula {formula} is not a contract")
        self._config.formula = formula
        self.emit(UpdateFormula(formula=formula))
        logger.info("Formula updated to %s", formula)

    @transactional
    def update_fees(self, buy_fee_pct: int, sell_fee_pct: int, *, sender) -> None:
        self._admin(UPDATE_FEES_ROLE, sender)
        _validate_fees(buy_fee_pct, sell_fee_pct)
        self._config.buy_fee_pct = buy_fee_pct
        self._config.sell_fee_pct = sell_fee_pct
        self.emit(UpdateFees(buy_fee_pct=buy_fee_pct, sell_fee_pct=sell_fee_pct))
        logger.info("Fees updated: buy=%s sell=%s", buy_fee_pct, sell_fee_pct)

    # -- Buy internals ------------------------------------------------------

    def _make_buy_order(
        self,
        buyer,
        collateral,
        deposit_amount: int,
        min_return_amount: int,
        *,
        sender: str,
        value: int,
        check_role: bool,
    ) -> OrderReceipt:
        self._acquire_lock()
        try:
            self._require_initialized()
            self._require_open()
            if check_role:
                self._auth(MAKE_BUY_ORDER_ROLE, sender)

            buyer = normalize_address(buyer)
            collateral = normalize_address(collateral)
            collateral_token = self._whitelisted(collateral)
            self._require_collateral_value(buyer, collateral, deposit_amount, value)

            receipt = self._price_buy(buyer, collateral, collateral_token, deposit_amount, min_return_amount)
            if receipt.return_amount < min_return_amount:
                raise SlippageExceedsLimit(
                    f"purchase returns {receipt.return_amount}, minimum is {min_return_amount}"
                )

            config = self._cfg()
            if receipt.fee > 0:
                self._pay_in(collateral, buyer, config.beneficiary, receipt.fee)
            self._pay_in(collateral, buyer, config.reserve, receipt.net_amount)
            self._mint(buyer, receipt.return_amount)

            self.emit(MakeBuyOrder(
                buyer=buyer,
                collateral=collateral,
                deposit_amount=deposit_amount,
                fee=receipt.fee,
                return_amount=receipt.return_amount,
                fee_pct=config.buy_fee_pct,
            ))
            logger.info(
                "Buy order: %s deposited %s of %s for %s bonded tokens (fee %s)",
                buyer, deposit_amount, collateral, receipt.return_amount, receipt.fee,
            )
            return receipt
        finally:
            self._release_lock()

    def _require_collateral_value(self, buyer: str, collateral: str, deposit_amount: int, value: int) -> None:
        if deposit_amount == 0:
            raise InvalidCollateralValue("deposit amount must be positive")
        if collateral == NATIVE_ASSET:
            if value != deposit_amount:
                raise InvalidCollateralValue(f"attached value {value} differs from deposit {deposit_amount}")
            return
        if value != 0:
            raise InvalidCollateralValue("native value attached to a token deposit")
        token = self._require_chain().get_contract(collateral)
        if token.balance_of(buyer) < deposit_amount:
            raise InvalidCollateralValue(f"{buyer} holds less than {deposit_amount}")
        if token.allowance(buyer, self.address) < deposit_amount:
            raise InvalidCollateralValue(f"{buyer} approved less than {deposit_amount}")

    def _price_buy(
        self, buyer: str, collateral: str, collateral_token: CollateralToken,
        deposit_amount: int, min_return_amount: int,
    ) -> OrderReceipt:
        fee = compute_fee(deposit_amount, self._cfg().buy_fee_pct)
        net_amount = checked_sub(deposit_amount, fee)
        # Priced against the reserve balance before this deposit lands
        return_amount = self._pricing().purchase_return(
            collateral_token,
            self.token_manager.total_supply(),
            self.reserve.balance(collateral),
            net_amount,
        )
        return OrderReceipt(
            trader=buyer,
            collateral=collateral,
            amount=deposit_amount,
            min_return_amount=min_return_amount,
            fee=fee,
            net_amount=net_amount,
            return_amount=return_amount,
        )

    def _pay_in(self, collateral: str, buyer: str, recipient: str, amount: int) -> None:
        if collateral == NATIVE_ASSET:
            self._require_chain().transfer_native(self.address, recipient, amount)
        else:
            self._require_chain().get_contract(collateral).transfer_from(
                buyer, recipient, amount, sender=self.address
            )

    def _mint(self, receiver: str, amount: int) -> None:
        try:
            self.token_manager.mint(receiver, amount, sender=self.address)
        except TokenError as e:
            raise TokenLedgerFailed(f"mint of {amount} to {receiver} failed: {e}") from e

    # -- Sell internals -----------------------------------------------------

    def _price_sell(
        self, seller: str, collateral: str, collateral_token: CollateralToken,
        sell_amount: int, min_return_amount: int, supply: int,
    ) -> OrderReceipt:
        gross = self._pricing().sale_return(
            collateral_token,
            supply,
            self.reserve.balance(collateral),
            sell_amount,
        )
        fee = compute_fee(gross, self._cfg().sell_fee_pct)
        return OrderReceipt(
            trader=seller,
            collateral=collateral,
            amount=sell_amount,
            min_return_amount=min_return_amount,
            fee=fee,
            net_amount=gross,
            return_amount=checked_sub(gross, fee),
        )

    def _burn(self, holder: str, amount: int) -> None:
        try:
            self.token_manager.burn(holder, amount, sender=self.address)
        except TokenError as e:
            raise TokenLedgerFailed(f"burn of {amount} from {holder} failed: {e}") from e

    def _pay_out(self, collateral: str, recipient: str, amount: int) -> None:
        if amount == 0:
            return
        try:
            self.reserve.transfer(collateral, recipient, amount, sender=self.address)
        except VaultError as e:
            raise ReserveTransferFailed(f"reserve could not pay {amount} to {recipient}: {e}") from e

    # -- Guards -------------------------------------------------------------

    def _acquire_lock(self) -> None:
        if self._locked:
            raise Reentrancy("Reentrancy detected: market maker is locked")
        self._locked = True

    def _release_lock(self) -> None:
        self._locked = False

    def _cfg(self) -> MarketMakerConfig:
        if self._config is None:
            raise NotInitialized("market maker is not initialized")
        return self._config

    def _require_initialized(self) -> None:
        self._cfg()

    def _require_open(self) -> None:
        if not self._cfg().is_open:
            raise NotOpen("market maker is not open")

    def _auth(self, role: str, sender) -> None:
        if not self.can_perform(sender, role):
            raise AuthFailed(f"{sender} lacks role {role}")

    def _admin(self, role: str, sender) -> None:
        self._require_initialized()
        self._auth(role, sender)

    def _whitelisted(self, collateral: str) -> CollateralToken:
        collateral_token = self.registry.get(collateral)
        if not collateral_token.whitelisted:
            raise CollateralNotWhitelisted(f"{collateral} is not whitelisted")
        return collateral_token

    def _pricing(self) -> PricingAdapter:
        return PricingAdapter(self.formula)

    def _is_contract(self, address) -> bool:
        return self._require_chain().is_contract(address)

    def _require_collaborator(self, ref, label: str) -> str:
        address = normalize_address(ref)
        if not self._is_contract(address):
            raise ContractIsEOA(f"{label} {address} is not a contract")
        return address


class GatedMarketMaker(MarketMaker):
    """Market maker that starts closed and opens exactly once."""

    GATED = True

    @transactional
    def open(self, *, sender) -> None:
        self._admin(OPEN_ROLE, sender)
        if self._cfg().is_open:
            raise AlreadyOpen("market maker is already open")
        self._config.is_open = True
        self.emit(Open())
        logger.info("Market maker %s opened", self.address)
