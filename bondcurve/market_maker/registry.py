"""
Collateral registry.

Maps a collateral identifier to its curve parameters. Entries are never
physically deleted: ``remove`` zeroes the slot and clears the whitelist
flag, and a later ``add`` reuses it.
"""

from dataclasses import dataclass
from typing import Callable, Dict, List

from ..chain import normalize_address
from ..constants import NATIVE_ASSET, RATIO_BASE
from ..exceptions import (
    AlreadyWhitelisted,
    InvalidCollateral,
    InvalidReserveRatio,
    NotWhitelisted,
)
from .fees import require_uint256


@dataclass(frozen=True)
class CollateralToken:
    """Curve parameters of one collateral."""
    whitelisted: bool = False
    virtual_supply: int = 0
    virtual_balance: int = 0
    reserve_ratio: int = 0

    def to_dict(self) -> Dict[str, object]:
        return {
            "whitelisted": self.whitelisted,
            "virtualSupply": self.virtual_supply,
            "virtualBalance": self.virtual_balance,
            "reserveRatio": self.reserve_ratio,
        }


EMPTY_COLLATERAL = CollateralToken()


class CollateralRegistry:
    """
    Whitelist of collaterals and their curve parameters.

    Args:
        is_contract: predicate telling whether an address holds code. A
            collateral must be the native asset sentinel or a contract.
    """

    def __init__(self, is_contract: Callable[[str], bool]) -> None:
        self._is_contract = is_contract
        self._entries: Dict[str, CollateralToken] = {}

    def add(self, collateral, virtual_supply: int, virtual_balance: int, reserve_ratio: int) -> CollateralToken:
        collateral = normalize_address(collateral)
        if self.get(collateral).whitelisted:
            raise AlreadyWhitelisted(f"{collateral} is already whitelisted")
        entry = self._build(virtual_supply, virtual_balance, reserve_ratio)
        if collateral != NATIVE_ASSET and not self._is_contract(collateral):
            raise InvalidCollateral(f"{collateral} is neither the native asset nor a contract")
        self._entries[collateral] = entry
        return entry

    def update(self, collateral, virtual_supply: int, virtual_balance: int, reserve_ratio: int) -> CollateralToken:
        collateral = normalize_address(collateral)
        if not self.get(collateral).whitelisted:
            raise NotWhitelisted(f"{collateral} is not whitelisted")
        entry = self._build(virtual_supply, virtual_balance, reserve_ratio)
        self._entries[collateral] = entry
        return entry

    def remove(self, collateral) -> None:
        collateral = normalize_address(collateral)
        if not self.get(collateral).whitelisted:
            raise NotWhitelisted(f"{collateral} is not whitelisted")
        self._entries[collateral] = EMPTY_COLLATERAL

    def get(self, collateral) -> CollateralToken:
        return self._entries.get(normalize_address(collateral), EMPTY_COLLATERAL)

    def whitelisted(self) -> List[str]:
        return [addr for addr, entry in self._entries.items() if entry.whitelisted]

    # -- Snapshot support ---------------------------------------------------

    def dump(self) -> Dict[str, CollateralToken]:
        return dict(self._entries)

    def load(self, entries: Dict[str, CollateralToken]) -> None:
        self._entries = dict(entries)

    @staticmethod
    def _build(virtual_supply: int, virtual_balance: int, reserve_ratio: int) -> CollateralToken:
        require_uint256(virtual_supply, "virtual_supply")
        require_uint256(virtual_balance, "virtual_balance")
        require_uint256(reserve_ratio, "reserve_ratio")
        if reserve_ratio == 0 or reserve_ratio > RATIO_BASE:
            raise InvalidReserveRatio(f"reserve ratio must be in (0, {RATIO_BASE}]: {reserve_ratio}")
        return CollateralToken(
            whitelisted=True,
            virtual_supply=virtual_supply,
            virtual_balance=virtual_balance,
            reserve_ratio=reserve_ratio,
        )
