"""
bondcurve TOML Configuration Loader

Describes one market maker deployment: the bonded token, the fee schedule,
who may trade, and the collaterals with their curve parameters.

Environment variable mapping:
    [market_maker] gated        → BONDCURVE_GATED
    [market_maker] beneficiary  → BONDCURVE_BENEFICIARY
    [market_maker] buy_fee_pct  → BONDCURVE_BUY_FEE_PCT
    [market_maker] sell_fee_pct → BONDCURVE_SELL_FEE_PCT
    [logging] level             → BONDCURVE_LOG_LEVEL

Amounts may be written as TOML integers or, when they exceed 64 bits, as
strings ("100000000000000000000000" or "1e23"). Accounts may be written as
addresses or as labels, which are turned into deterministic addresses.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Dict, List, Optional

try:
    import tomllib as tomli  # Python 3.11+
except ImportError:
    import tomli  # type: ignore[no-redef]

from eth_utils import is_address, to_checksum_address

from ..chain import derive_address
from ..constants import PCT_BASE, RATIO_BASE, UINT256_MAX, ZERO_ADDRESS
from ..exceptions import ConfigurationError
from ..logger import get_logger

logger = get_logger(__name__)

DEFAULT_CONFIG_FILE = "bondcurve.toml"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def parse_amount(value: Any, label: str = "amount") -> int:
    """Integer amount from a TOML int or a decimal / exponent string."""
    if isinstance(value, bool):
        raise ConfigurationError(f"{label} must be an integer, got {value!r}")
    if isinstance(value, int):
        result = value
    elif isinstance(value, str):
        try:
            number = Decimal(value.replace("_", "").strip())
        except InvalidOperation:
            raise ConfigurationError(f"{label} is not a number: {value!r}") from None
        if not number.is_finite() or number != number.to_integral_value():
            raise ConfigurationError(f"{label} must be a whole number: {value!r}")
        result = int(number)
    else:
        raise ConfigurationError(f"{label} must be an integer, got {type(value).__name__}")
    if result < 0 or result > UINT256_MAX:
        raise ConfigurationError(f"{label} out of uint256 range: {value!r}")
    return result


def resolve_account(value: str) -> str:
    """Checksummed address, or the derived address of a label."""
    if is_address(value):
        return to_checksum_address(value)
    return derive_address(value)


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------

@dataclass
class MarketMakerSectionConfig:
    """[market_maker] section."""
    gated: bool = False
    open: bool = False
    admin: str = "admin"
    beneficiary: str = "beneficiary"
    buy_fee_pct: int = 0
    sell_fee_pct: int = 0
    operators: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MarketMakerSectionConfig":
        return cls(
            gated=data.get("gated", False),
            open=data.get("open", False),
            admin=data.get("admin", "admin"),
            beneficiary=data.get("beneficiary", "beneficiary"),
            buy_fee_pct=parse_amount(data.get("buy_fee_pct", 0), "buy_fee_pct"),
            sell_fee_pct=parse_amount(data.get("sell_fee_pct", 0), "sell_fee_pct"),
            operators=list(data.get("operators", [])),
        )

    def apply_env(self) -> None:
        """Override from environment variables."""
        if v := os.environ.get("BONDCURVE_GATED"):
            self.gated = _parse_bool(v)
        if v := os.environ.get("BONDCURVE_BENEFICIARY"):
            self.beneficiary = v
        if v := os.environ.get("BONDCURVE_BUY_FEE_PCT"):
            self.buy_fee_pct = parse_amount(v, "BONDCURVE_BUY_FEE_PCT")
        if v := os.environ.get("BONDCURVE_SELL_FEE_PCT"):
            self.sell_fee_pct = parse_amount(v, "BONDCURVE_SELL_FEE_PCT")

    @property
    def admin_address(self) -> str:
        return resolve_account(self.admin)

    @property
    def beneficiary_address(self) -> str:
        return resolve_account(self.beneficiary)

    def validate(self) -> None:
        for label, pct in (("buy_fee_pct", self.buy_fee_pct), ("sell_fee_pct", self.sell_fee_pct)):
            if pct >= PCT_BASE:
                raise ConfigurationError(f"{label} must be below {PCT_BASE}: {pct}")
        if self.beneficiary_address == ZERO_ADDRESS:
            raise ConfigurationError("beneficiary cannot be the zero address")
        if self.open and not self.gated:
            raise ConfigurationError("'open' only applies to a gated market maker")


@dataclass
class TokenSectionConfig:
    """[token] section: the bonded token."""
    name: str = "Bonded Token"
    symbol: str = "BOND"
    decimals: int = 18
    balances: Dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TokenSectionConfig":
        return cls(
            name=data.get("name", "Bonded Token"),
            symbol=data.get("symbol", "BOND"),
            decimals=data.get("decimals", 18),
            balances={
                holder: parse_amount(amount, f"token.balances.{holder}")
                for holder, amount in data.get("balances", {}).items()
            },
        )

    def validate(self) -> None:
        if not self.symbol:
            raise ConfigurationError("token symbol cannot be empty")
        if not 0 <= self.decimals <= 77:
            raise ConfigurationError(f"Invalid token decimals: {self.decimals}")


@dataclass
class CollateralConfig:
    """One [[collaterals]] entry."""
    symbol: str
    native: bool = False
    name: str = ""
    decimals: int = 18
    virtual_supply: int = 0
    virtual_balance: int = 0
    reserve_ratio: int = RATIO_BASE
    reserve_balance: int = 0
    balances: Dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CollateralConfig":
        symbol = data.get("symbol")
        if not symbol:
            raise ConfigurationError("every [[collaterals]] entry needs a symbol")
        return cls(
            symbol=symbol,
            native=data.get("native", False),
            name=data.get("name", symbol),
            decimals=data.get("decimals", 18),
            virtual_supply=parse_amount(data.get("virtual_supply", 0), f"{symbol}.virtual_supply"),
            virtual_balance=parse_amount(data.get("virtual_balance", 0), f"{symbol}.virtual_balance"),
            reserve_ratio=parse_amount(data.get("reserve_ratio", RATIO_BASE), f"{symbol}.reserve_ratio"),
            reserve_balance=parse_amount(data.get("reserve_balance", 0), f"{symbol}.reserve_balance"),
            balances={
                holder: parse_amount(amount, f"{symbol}.balances.{holder}")
                for holder, amount in data.get("balances", {}).items()
            },
        )

    def validate(self) -> None:
        if self.reserve_ratio == 0 or self.reserve_ratio > RATIO_BASE:
            raise ConfigurationError(
                f"{self.symbol}: reserve_ratio must be in (0, {RATIO_BASE}]: {self.reserve_ratio}"
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "symbol": self.symbol,
            "native": self.native,
            "virtual_supply": str(self.virtual_supply),
            "virtual_balance": str(self.virtual_balance),
            "reserve_ratio": self.reserve_ratio,
            "reserve_balance": str(self.reserve_balance),
        }


@dataclass
class LoggingSectionConfig:
    """[logging] section."""
    level: str = "INFO"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LoggingSectionConfig":
        return cls(level=str(data.get("level", "INFO")).upper())

    def apply_env(self) -> None:
        if v := os.environ.get("BONDCURVE_LOG_LEVEL"):
            self.level = v.upper()


# -----------------------------------------------------------------------
# Top-level config
# -----------------------------------------------------------------------

@dataclass
class BondCurveConfig:
    """
    Deployment configuration.

    Loads every section of bondcurve.toml and applies environment variable
    overrides.
    """
    market_maker: MarketMakerSectionConfig = field(default_factory=MarketMakerSectionConfig)
    token: TokenSectionConfig = field(default_factory=TokenSectionConfig)
    collaterals: List[CollateralConfig] = field(default_factory=list)
    logging: LoggingSectionConfig = field(default_factory=LoggingSectionConfig)

    # --- factories --------------------------------------------------------

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BondCurveConfig":
        """Create a config from a parsed TOML dict."""
        return cls(
            market_maker=MarketMakerSectionConfig.from_dict(data.get("market_maker", {})),
            token=TokenSectionConfig.from_dict(data.get("token", {})),
            collaterals=[CollateralConfig.from_dict(c) for c in data.get("collaterals", [])],
            logging=LoggingSectionConfig.from_dict(data.get("logging", {})),
        )

    @classmethod
    def from_file(cls, config_path: str) -> "BondCurveConfig":
        """
        Load configuration from a TOML file.

        A missing file yields the defaults (with environment overrides).
        """
        path = Path(config_path)
        if not path.exists():
            logger.warning("Config file not found: %s, using defaults", config_path)
            cfg = cls()
            cfg.apply_env()
            return cfg

        try:
            with open(path, "rb") as f:
                raw = tomli.load(f)
        except tomli.TOMLDecodeError as e:
            raise ConfigurationError(f"Invalid TOML in {config_path}: {e}") from e

        cfg = cls.from_dict(raw)
        cfg.apply_env()
        logger.debug("Loaded config from %s", path)
        return cfg

    # --- env overrides ----------------------------------------------------

    def apply_env(self) -> None:
        """Apply environment variable overrides to all sections."""
        self.market_maker.apply_env()
        self.logging.apply_env()

    # --- validation -------------------------------------------------------

    def validate(self) -> bool:
        """
        Validate all configuration sections.

        Raises:
            ConfigurationError: on invalid config
        """
        self.market_maker.validate()
        self.token.validate()
        seen = set()
        for collateral in self.collaterals:
            collateral.validate()
            if collateral.symbol in seen:
                raise ConfigurationError(f"Duplicate collateral symbol: {collateral.symbol}")
            seen.add(collateral.symbol)
        if sum(1 for c in self.collaterals if c.native) > 1:
            raise ConfigurationError("At most one collateral can be the native asset")
        if self.logging.level not in LOG_LEVELS:
            raise ConfigurationError(f"Invalid log level: {self.logging.level}")
        return True

    def get_collateral(self, symbol: str) -> Optional[CollateralConfig]:
        for collateral in self.collaterals:
            if collateral.symbol.upper() == symbol.upper():
                return collateral
        return None

    # --- serialisation ----------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict (for diagnostics, NOT for re-creating TOML)."""
        return {
            "market_maker": {
                "gated": self.market_maker.gated,
                "open": self.market_maker.open,
                "admin": self.market_maker.admin_address,
                "beneficiary": self.market_maker.beneficiary_address,
                "buy_fee_pct": str(self.market_maker.buy_fee_pct),
                "sell_fee_pct": str(self.market_maker.sell_fee_pct),
                "operators": [resolve_account(o) for o in self.market_maker.operators],
            },
            "token": {
                "name": self.token.name,
                "symbol": self.token.symbol,
                "decimals": self.token.decimals,
            },
            "collaterals": [c.to_dict() for c in self.collaterals],
            "logging": {
                "level": self.logging.level,
            },
        }


# -----------------------------------------------------------------------
# Convenience function
# -----------------------------------------------------------------------

def load_config(path: Optional[str] = None) -> BondCurveConfig:
    """
    Load deployment configuration.

    Resolution order:
        1. Explicit *path* argument
        2. BONDCURVE_CONFIG env var
        3. ./bondcurve.toml in current directory
        4. Defaults (with env overrides)
    """
    if path is None:
        path = os.environ.get("BONDCURVE_CONFIG", DEFAULT_CONFIG_FILE)

    return BondCurveConfig.from_file(path)
