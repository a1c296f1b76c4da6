"""
Shared fixtures: a fully wired market on a fresh in-memory chain.

The market maker is initialized with zero fees and whitelists two
collaterals: the native asset and a fungible token (DAI), both with
ratio 10%, virtual supply 1e23 and virtual balance 1e22. ALICE and BOB may
trade; EVE holds no role at all.
"""

import os
import sys
from dataclasses import dataclass
from typing import Optional

import pytest

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from bondcurve.acl import ACL
from bondcurve.chain import ChainState, Contract, derive_address
from bondcurve.constants import (
    BURN_ROLE,
    MAKE_BUY_ORDER_ROLE,
    MAKE_SELL_ORDER_ROLE,
    MANAGE_COLLATERAL_TOKEN_ROLE,
    MINT_ROLE,
    NATIVE_ASSET,
    OPEN_ROLE,
    TRANSFER_ROLE,
    UPDATE_BENEFICIARY_ROLE,
    UPDATE_FEES_ROLE,
    UPDATE_FORMULA_ROLE,
)
from bondcurve.formula import BancorFormula
from bondcurve.market_maker import GatedMarketMaker, MarketMaker
from bondcurve.tokens import ERC20Token, TokenManager
from bondcurve.vault import Vault


# ── Accounts ──────────────────────────────────────────────────────────
ROOT_ACCOUNT = derive_address("root")
BENEFICIARY = derive_address("beneficiary")
ALICE = derive_address("alice")
BOB = derive_address("bob")
EVE = derive_address("eve")

# ── Curve parameters ──────────────────────────────────────────────────
VIRTUAL_SUPPLY = 10 ** 23
VIRTUAL_BALANCE = 10 ** 22
RESERVE_RATIO = 100_000
ONE = 10 ** 18


class FixedPriceFormula(Contract):
    """Formula double: ``rate`` bonded tokens per unit of collateral, both ways."""

    def __init__(self, rate: int = 2) -> None:
        super().__init__()
        self.rate = rate

    def calculate_purchase_return(self, supply, balance, ratio, amount):
        return amount * self.rate

    def calculate_sale_return(self, supply, balance, ratio, amount):
        return amount // self.rate


@dataclass
class Market:
    chain: ChainState
    acl: ACL
    token: ERC20Token
    token_manager: TokenManager
    vault: Vault
    formula: BancorFormula
    mm: MarketMaker
    dai: ERC20Token

    def fund_native(self, account: str, amount: int) -> None:
        self.chain.mint_native(account, amount)

    def fund_dai(self, account: str, amount: int, approve: bool = True) -> None:
        self.dai.generate_tokens(account, amount, sender=ROOT_ACCOUNT)
        if approve:
            self.dai.approve(self.mm, self.dai.balance_of(account), sender=account)

    def buy_native(self, buyer: str, amount: int, min_return: int = 0):
        return self.mm.make_buy_order(buyer, NATIVE_ASSET, amount, min_return, sender=buyer, value=amount)

    def buy_dai(self, buyer: str, amount: int, min_return: int = 0):
        return self.mm.make_buy_order(buyer, self.dai, amount, min_return, sender=buyer)

    def grant(self, entity: str, role: str, app=None) -> None:
        self.acl.grant_permission(entity, app or self.mm, role, sender=ROOT_ACCOUNT)

    def revoke(self, entity: str, role: str, app=None) -> None:
        self.acl.revoke_permission(entity, app or self.mm, role, sender=ROOT_ACCOUNT)


def build_market(
    gated: bool = False,
    buy_fee_pct: int = 0,
    sell_fee_pct: int = 0,
    initialize: bool = True,
    whitelist: bool = True,
    formula: Optional[Contract] = None,
) -> Market:
    """Deploy and wire every contract. Admin roles go to ROOT_ACCOUNT."""
    chain = ChainState()
    acl = ACL(root=ROOT_ACCOUNT)
    chain.deploy(acl)

    token = ERC20Token("Bonded", "BOND", controller=ROOT_ACCOUNT)
    chain.deploy(token)
    token_manager = TokenManager(acl, token)
    chain.deploy(token_manager)
    token.change_controller(token_manager, sender=ROOT_ACCOUNT)

    vault = Vault(acl)
    chain.deploy(vault)
    formula = formula or BancorFormula()
    chain.deploy(formula)

    dai = ERC20Token("Dai Stablecoin", "DAI", controller=ROOT_ACCOUNT)
    chain.deploy(dai)

    mm = GatedMarketMaker(acl) if gated else MarketMaker(acl)
    chain.deploy(mm)

    acl.create_permission(mm, token_manager, MINT_ROLE, ROOT_ACCOUNT, sender=ROOT_ACCOUNT)
    acl.create_permission(mm, token_manager, BURN_ROLE, ROOT_ACCOUNT, sender=ROOT_ACCOUNT)
    acl.create_permission(mm, vault, TRANSFER_ROLE, ROOT_ACCOUNT, sender=ROOT_ACCOUNT)
    for role in (
        OPEN_ROLE,
        UPDATE_FORMULA_ROLE,
        UPDATE_BENEFICIARY_ROLE,
        UPDATE_FEES_ROLE,
        MANAGE_COLLATERAL_TOKEN_ROLE,
    ):
        acl.create_permission(ROOT_ACCOUNT, mm, role, ROOT_ACCOUNT, sender=ROOT_ACCOUNT)
    for role in (MAKE_BUY_ORDER_ROLE, MAKE_SELL_ORDER_ROLE):
        acl.create_permission(ALICE, mm, role, ROOT_ACCOUNT, sender=ROOT_ACCOUNT)
        acl.grant_permission(BOB, mm, role, sender=ROOT_ACCOUNT)

    market = Market(chain, acl, token, token_manager, vault, formula, mm, dai)

    if initialize:
        mm.initialize(token_manager, formula, vault, BENEFICIARY, buy_fee_pct, sell_fee_pct, sender=ROOT_ACCOUNT)
        if whitelist:
            for collateral in (NATIVE_ASSET, dai):
                mm.add_collateral_token(
                    collateral, VIRTUAL_SUPPLY, VIRTUAL_BALANCE, RESERVE_RATIO, sender=ROOT_ACCOUNT
                )
    return market


@pytest.fixture
def market() -> Market:
    return build_market()


@pytest.fixture
def fee_market() -> Market:
    """10% buy fee, 1% sell fee."""
    return build_market(buy_fee_pct=10 ** 17, sell_fee_pct=10 ** 16)


@pytest.fixture
def gated_market() -> Market:
    return build_market(gated=True)
