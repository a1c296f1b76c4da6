"""
bondcurve Deployment Configuration

Loads bondcurve.toml. Environment variables override TOML values.
"""

from .loader import (
    BondCurveConfig,
    CollateralConfig,
    LoggingSectionConfig,
    MarketMakerSectionConfig,
    TokenSectionConfig,
    load_config,
    parse_amount,
    resolve_account,
)

__all__ = [
    "BondCurveConfig",
    "CollateralConfig",
    "LoggingSectionConfig",
    "MarketMakerSectionConfig",
    "TokenSectionConfig",
    "load_config",
    "parse_amount",
    "resolve_account",
]
