"""
bondcurve in-memory chain

Accounts, contract code, native balances, the event log and
snapshot-based atomic execution for the market maker and its collaborators.
"""

from .state import (
    ChainState,
    Contract,
    Event,
    LogEntry,
    InsufficientFundsError,
    derive_address,
    normalize_address,
    transactional,
)

__all__ = [
    "ChainState",
    "Contract",
    "Event",
    "LogEntry",
    "InsufficientFundsError",
    "derive_address",
    "normalize_address",
    "transactional",
]
