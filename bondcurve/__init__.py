"""
bondcurve Package

A bonding-curve market maker issuing a token against whitelisted collaterals.

Core imports are lazily loaded so that importing a submodule does not pull
in the whole package. For direct module access, import from submodules:

    from bondcurve.market_maker import MarketMaker, GatedMarketMaker
    from bondcurve.deploy import deploy_market_maker
    from bondcurve.exceptions import SlippageExceedsLimit
"""

__version__ = "1.0.0"


# Lazy imports to avoid loading everything at package import
def __getattr__(name):
    """Lazy module loading."""
    if name in ('MarketMaker', 'GatedMarketMaker'):
        from . import market_maker
        return getattr(market_maker, name)
    elif name == 'ChainState':
        from .chain import ChainState
        return ChainState
    elif name == 'deploy_market_maker':
        from .deploy import deploy_market_maker
        return deploy_market_maker
    elif name == 'load_config':
        from .config import load_config
        return load_config
    raise AttributeError(f"module 'bondcurve' has no attribute {name!r}")

__all__ = ['MarketMaker', 'GatedMarketMaker', 'ChainState', 'deploy_market_maker', 'load_config']
