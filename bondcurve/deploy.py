"""
Deployment wiring.

Builds a complete in-memory market: ACL, bonded token and its token manager,
reserve vault, Bancor formula and the market maker, then whitelists the
configured collaterals and sets up permissions.

    >>> deployment = deploy_market_maker(load_config())
    >>> deployment.market_maker.quote_buy(deployment.collateral("ETH"), 10 ** 18)
"""

from dataclasses import dataclass, field
from typing import Dict, Optional

from .acl import ACL
from .chain import ChainState
from .config import BondCurveConfig, CollateralConfig, resolve_account
from .constants import (
    ANY_ENTITY,
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
from .exceptions import ConfigurationError
from .formula import BancorFormula
from .logger import get_logger, set_log_level
from .market_maker import GatedMarketMaker, MarketMaker
from .tokens import ERC20Token, TokenManager
from .vault import Vault

logger = get_logger(__name__)

ADMIN_ROLES = (
    UPDATE_FORMULA_ROLE,
    UPDATE_BENEFICIARY_ROLE,
    UPDATE_FEES_ROLE,
    MANAGE_COLLATERAL_TOKEN_ROLE,
)


@dataclass
class Deployment:
    """Handles to every contract of one deployed market."""
    chain: ChainState
    admin: str
    acl: ACL
    token: ERC20Token
    token_manager: TokenManager
    vault: Vault
    formula: BancorFormula
    market_maker: MarketMaker
    collaterals: Dict[str, str] = field(default_factory=dict)

    def collateral(self, symbol: str) -> str:
        """Collateral identifier for a configured symbol (case-insensitive)."""
        for name, address in self.collaterals.items():
            if name.upper() == symbol.upper():
                return address
        raise ConfigurationError(f"Unknown collateral: {symbol}")


def deploy_market_maker(config: BondCurveConfig, chain: Optional[ChainState] = None) -> Deployment:
    """Deploy and wire a market maker as described by ``config``."""
    config.validate()
    set_log_level(config.logging.level)
    chain = chain or ChainState()
    mm_config = config.market_maker
    admin = mm_config.admin_address

    acl = ACL(root=admin)
    chain.deploy(acl)

    # Bonded token: seed initial holders, then hand control to the token manager
    token = ERC20Token(config.token.name, config.token.symbol, controller=admin, decimals=config.token.decimals)
    chain.deploy(token)
    for holder, amount in config.token.balances.items():
        token.generate_tokens(resolve_account(holder), amount, sender=admin)
    token_manager = TokenManager(acl, token)
    chain.deploy(token_manager)
    token.change_controller(token_manager, sender=admin)

    vault = Vault(acl)
    chain.deploy(vault)
    formula = BancorFormula()
    chain.deploy(formula)

    market_maker = GatedMarketMaker(acl) if mm_config.gated else MarketMaker(acl)
    chain.deploy(market_maker)

    acl.create_permission(market_maker, token_manager, MINT_ROLE, admin, sender=admin)
    acl.create_permission(market_maker, token_manager, BURN_ROLE, admin, sender=admin)
    acl.create_permission(market_maker, vault, TRANSFER_ROLE, admin, sender=admin)
    for role in ADMIN_ROLES:
        acl.create_permission(admin, market_maker, role, admin, sender=admin)
    if mm_config.gated:
        acl.create_permission(admin, market_maker, OPEN_ROLE, admin, sender=admin)
    _grant_traders(acl, market_maker, admin, mm_config.operators)

    market_maker.initialize(
        token_manager,
        formula,
        vault,
        mm_config.beneficiary_address,
        mm_config.buy_fee_pct,
        mm_config.sell_fee_pct,
        sender=admin,
    )

    deployment = Deployment(
        chain=chain,
        admin=admin,
        acl=acl,
        token=token,
        token_manager=token_manager,
        vault=vault,
        formula=formula,
        market_maker=market_maker,
    )
    for collateral_config in config.collaterals:
        deployment.collaterals[collateral_config.symbol] = _deploy_collateral(deployment, collateral_config)

    if mm_config.gated and mm_config.open:
        market_maker.open(sender=admin)

    logger.info(
        "Deployed %s market maker %s with %d collateral(s)",
        "gated" if mm_config.gated else "always-open",
        market_maker.address,
        len(deployment.collaterals),
    )
    return deployment


def _grant_traders(acl: ACL, market_maker: MarketMaker, admin: str, operators) -> None:
    """Buy and sell roles go to the listed operators, or to everyone when none are listed."""
    traders = [resolve_account(o) for o in operators] or [ANY_ENTITY]
    for role in (MAKE_BUY_ORDER_ROLE, MAKE_SELL_ORDER_ROLE):
        acl.create_permission(traders[0], market_maker, role, admin, sender=admin)
        for trader in traders[1:]:
            acl.grant_permission(trader, market_maker, role, sender=admin)


def _deploy_collateral(deployment: Deployment, collateral_config: CollateralConfig) -> str:
    chain = deployment.chain
    admin = deployment.admin

    if collateral_config.native:
        address = NATIVE_ASSET
        for holder, amount in collateral_config.balances.items():
            chain.mint_native(resolve_account(holder), amount)
        if collateral_config.reserve_balance:
            chain.mint_native(deployment.vault.address, collateral_config.reserve_balance)
    else:
        token = ERC20Token(
            collateral_config.name or collateral_config.symbol,
            collateral_config.symbol,
            controller=admin,
            decimals=collateral_config.decimals,
        )
        address = chain.deploy(token)
        for holder, amount in collateral_config.balances.items():
            token.generate_tokens(resolve_account(holder), amount, sender=admin)
        if collateral_config.reserve_balance:
            token.generate_tokens(deployment.vault, collateral_config.reserve_balance, sender=admin)

    deployment.market_maker.add_collateral_token(
        address,
        collateral_config.virtual_supply,
        collateral_config.virtual_balance,
        collateral_config.reserve_ratio,
        sender=admin,
    )
    return address
