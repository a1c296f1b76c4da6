"""
bondcurve Constants

This module consolidates all global constants and environment configuration
used throughout the codebase. Constants are organized by category for easy
reference and maintenance.
"""
import ast

from dotenv import dotenv_values
from eth_utils import keccak, to_checksum_address

# =============================================================================
# ENVIRONMENT CONFIGURATION
# =============================================================================
# Load environment variables once at module import
_config = dotenv_values(".env")

LOGGER_DEFAULTS = {
    'LOG_LEVEL':                       'INFO',
    'LOG_FORMAT':                      '%(asctime)s - %(levelname)s - %(name)s - %(message)s',
    'LOG_DATE_FORMAT':                 '%Y-%m-%dT%H:%M:%S',
    'LOG_CONSOLE_HIGHLIGHTING':        'True',
    'LOG_FILE_OUTPUT':                 'False',
}

LOG_MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB
LOG_BACKUP_COUNT = 5


# WARNING: THE PROTOCOL VALUES BELOW FIX THE FIXED-POINT BASES USED BY EVERY
# FEE AND PRICE COMPUTATION. CHANGING THEM BREAKS BIT-FOR-BIT COMPATIBILITY
# WITH EXISTING DEPLOYMENTS.

# ==================================================================================
# FIXED-POINT BASES
# ==================================================================================
PPM = 1_000_000                 # parts-per-million
RATIO_BASE = PPM                # reserve ratio base
PCT_BASE = 10 ** 18             # fee percentage base (parts-per-quintillion)
UINT256_MAX = 2 ** 256 - 1


# ==================================================================================
# ADDRESSES
# ==================================================================================
ZERO_ADDRESS = '0x0000000000000000000000000000000000000000'
NATIVE_ASSET = ZERO_ADDRESS     # sentinel collateral id for the chain's native asset
ANY_ENTITY = to_checksum_address('0x' + 'ff' * 20)


# ==================================================================================
# ROLES
# ==================================================================================
def role_id(name: str) -> str:
    """Permission id of a role: keccak256 of its name, hex encoded."""
    return '0x' + keccak(text=name).hex()


# Market maker
OPEN_ROLE = role_id('OPEN_ROLE')
UPDATE_FORMULA_ROLE = role_id('UPDATE_FORMULA_ROLE')
UPDATE_BENEFICIARY_ROLE = role_id('UPDATE_BENEFICIARY_ROLE')
UPDATE_FEES_ROLE = role_id('UPDATE_FEES_ROLE')
MANAGE_COLLATERAL_TOKEN_ROLE = role_id('MANAGE_COLLATERAL_TOKEN_ROLE')
MAKE_BUY_ORDER_ROLE = role_id('MAKE_BUY_ORDER_ROLE')
MAKE_SELL_ORDER_ROLE = role_id('MAKE_SELL_ORDER_ROLE')

MARKET_MAKER_ROLES = (
    OPEN_ROLE,
    UPDATE_FORMULA_ROLE,
    UPDATE_BENEFICIARY_ROLE,
    UPDATE_FEES_ROLE,
    MANAGE_COLLATERAL_TOKEN_ROLE,
    MAKE_BUY_ORDER_ROLE,
    MAKE_SELL_ORDER_ROLE,
)

# Token manager
MINT_ROLE = role_id('MINT_ROLE')
BURN_ROLE = role_id('BURN_ROLE')

# Vault
TRANSFER_ROLE = role_id('TRANSFER_ROLE')


# ==================================================================================
# ORDER ENTRY
# ==================================================================================
BUY_ORDER_SIGNATURE = 'makeBuyOrder(address,address,uint256,uint256)'


# ==================================================================================
# FORMULA
# ==================================================================================
FORMULA_DECIMAL_PRECISION = 78  # enough digits for 256-bit operands


# ==================================================================================
# CONFIGURATION WRAPPERS
# ==================================================================================
class ConfigString(str):
    """
    String subclass that stores a default value.
    """
    def __new__(cls, value, default):
        obj = str.__new__(cls, value)
        obj._default = default
        return obj

    def default(self):
        return self._default

class ConfigBool(int):
    """
    Int subclass acting as a boolean that stores a default value.
    """
    def __new__(cls, value, default):
        obj = int.__new__(cls, bool(value))
        obj._default = default
        return obj

    def default(self):
        return self._default

    def __repr__(self):
        return str(bool(self))

    def __str__(self):
        return str(bool(self))

    def __eq__(self, other):
        return bool(self) == other

    __hash__ = int.__hash__


# ==================================================================================
# DYNAMIC CONFIGURATION LOADING
# ==================================================================================
DEFAULTS = LOGGER_DEFAULTS
namespace = globals()

def parse_bool(v):
    """
    Convert "True"/"False" (any casing, with surrounding whitespace) into bool.
    Avoids exceptions by only calling ast.literal_eval for known literals.
    """
    if not isinstance(v, str):
        return v
    s = v.strip()
    if not s:
        return v
    if s.casefold() in {"true", "false"}:
        return ast.literal_eval(s.title())
    return v

for key, default_raw in DEFAULTS.items():
    # dotenv_values returns strings or None. None is treated as missing.
    raw = _config.get(key)
    value_raw = default_raw if raw is None else raw

    value = parse_bool(value_raw)
    default_val = parse_bool(default_raw)

    if isinstance(value, bool):
        namespace[key] = ConfigBool(value, default_val)
    else:
        namespace[key] = ConfigString(value_raw, default_val)
