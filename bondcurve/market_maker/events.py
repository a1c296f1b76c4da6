"""Events emitted by the market maker."""

from dataclasses import dataclass
from typing import ClassVar

from ..chain import Event


@dataclass(frozen=True)
class AddCollateralToken(Event):
    name: ClassVar[str] = "AddCollateralToken"
    collateral: str
    virtual_supply: int
    virtual_balance: int
    reserve_ratio: int


@dataclass(frozen=True)
class UpdateCollateralToken(Event):
    name: ClassVar[str] = "UpdateCollateralToken"
    collateral: str
    virtual_supply: int
    virtual_balance: int
    reserve_ratio: int


@dataclass(frozen=True)
class RemoveCollateralToken(Event):
    name: ClassVar[str] = "RemoveCollateralToken"
    collateral: str


@dataclass(frozen=True)
class UpdateBeneficiary(Event):
    name: ClassVar[str] = "UpdateBeneficiary"
    beneficiary: str


@dataclass(frozen=True)
class UpdateFormula(Event):
    name: ClassVar[str] = "UpdateFormula"
    formula: str


@dataclass(frozen=True)
class UpdateFees(Event):
    name: ClassVar[str] = "UpdateFees"
    buy_fee_pct: int
    sell_fee_pct: int


@dataclass(frozen=True)
class Open(Event):
    name: ClassVar[str] = "Open"


@dataclass(frozen=True)
class MakeBuyOrder(Event):
    name: ClassVar[str] = "MakeBuyOrder"
    buyer: str
    collateral: str
    deposit_amount: int
    fee: int
    return_amount: int
    fee_pct: int


@dataclass(frozen=True)
class MakeSellOrder(Event):
    name: ClassVar[str] = "MakeSellOrder"
    seller: str
    collateral: str
    sell_amount: int
    fee: int
    return_amount: int
    fee_pct: int
