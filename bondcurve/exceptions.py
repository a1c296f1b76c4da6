"""
bondcurve Exceptions

Custom exception classes for the bonding-curve market maker.

Every market maker failure carries a machine-readable ``reason`` (the revert
string an on-chain deployment would report) so that tooling can branch on it
without parsing messages.
"""


class BondCurveException(Exception):
    """Base exception for bondcurve."""
    pass


class InvalidAddressError(BondCurveException):
    """Invalid address format."""
    pass


class ConfigurationError(BondCurveException):
    """Configuration error."""
    pass


# ══════════════════════════════════════════════════════════════════════
#  MARKET MAKER
# ══════════════════════════════════════════════════════════════════════

class MarketMakerError(BondCurveException):
    """Base exception for market maker operations."""

    reason = "MM_ERROR"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.reason)
        self.message = message or self.reason


class MathOverflow(MarketMakerError):
    """An operand or intermediate result does not fit in 256 bits."""
    reason = "MATH_OVERFLOW"


class Reentrancy(MarketMakerError):
    """An order was entered while another order on the same market maker was running."""
    reason = "REENTRANCY_REENTRANT_CALL"


class NotInitialized(MarketMakerError):
    reason = "INIT_NOT_INITIALIZED"


class AlreadyInitialized(MarketMakerError):
    reason = "INIT_ALREADY_INITIALIZED"


# -- (a) configuration / parameter errors -----------------------------------

class ParameterError(MarketMakerError):
    """Malformed initialization or admin parameter."""


class InvalidReserveRatio(ParameterError):
    reason = "MM_INVALID_RESERVE_RATIO"


class InvalidPercentage(ParameterError):
    reason = "MM_INVALID_PERCENTAGE"


class InvalidBeneficiary(ParameterError):
    reason = "MM_INVALID_BENEFICIARY"


class InvalidTokenManagerSetting(ParameterError):
    """The token manager caps per-account balances."""
    reason = "MM_INVALID_TM_SETTING"


class NotAContract(ParameterError):
    """The referenced account holds no code."""
    reason = "MM_ADDRESS_NOT_CONTRACT"


class InvalidCollateral(NotAContract):
    """Collateral is neither the native asset nor a token contract."""
    reason = "MM_INVALID_COLLATERAL"


class ContractIsEOA(NotAContract):
    """A collaborator passed to initialize is an externally owned account."""
    reason = "MM_CONTRACT_IS_EOA"


# -- (b) authorization ------------------------------------------------------

class AuthorizationError(MarketMakerError):
    """Caller lacks the permission required by the operation."""


class AuthFailed(AuthorizationError):
    reason = "APP_AUTH_FAILED"


class NoPermission(AuthorizationError):
    """Approving account of a delegated buy lacks the buy permission."""
    reason = "MM_NO_PERMISSION"


# -- (c) market state -------------------------------------------------------

class MarketStateError(MarketMakerError):
    """The market is not in a state that accepts the operation."""


class NotOpen(MarketStateError):
    reason = "MM_NOT_OPEN"


class AlreadyOpen(MarketStateError):
    reason = "MM_ALREADY_OPEN"


class CollateralNotWhitelisted(MarketStateError):
    reason = "MM_COLLATERAL_NOT_WHITELISTED"


class AlreadyWhitelisted(MarketStateError):
    reason = "MM_COLLATERAL_ALREADY_WHITELISTED"


class NotWhitelisted(MarketStateError):
    reason = "MM_COLLATERAL_NOT_WHITELISTED"


# -- (d) economic guards ----------------------------------------------------

class EconomicGuardError(MarketMakerError):
    """Order rejected by an amount or price guard."""


class SlippageExceedsLimit(EconomicGuardError):
    reason = "MM_SLIPPAGE_EXCEEDS_LIMIT"


class InvalidCollateralValue(EconomicGuardError):
    reason = "MM_INVALID_COLLATERAL_VALUE"


class InvalidBondAmount(EconomicGuardError):
    reason = "MM_INVALID_BOND_AMOUNT"


# -- (e) collaborator failures ----------------------------------------------

class CollaboratorError(MarketMakerError):
    """A collaborator call failed; the whole operation is rolled back."""


class ReserveTransferFailed(CollaboratorError):
    reason = "MM_RESERVE_TRANSFER_FAILED"


class TokenLedgerFailed(CollaboratorError):
    reason = "MM_TOKEN_LEDGER_FAILED"


# -- delegated order entry --------------------------------------------------

class CallDataError(MarketMakerError):
    """Embedded buy-order payload does not match the approval it rides on."""


class NotBuyFunction(CallDataError):
    reason = "MM_NOT_BUY_FUNCTION"


class BuyerNotFrom(CallDataError):
    reason = "MM_BUYER_NOT_FROM"


class CollateralNotSender(CallDataError):
    reason = "MM_COLLATERAL_NOT_SENDER"


class DepositNotAmount(CallDataError):
    reason = "MM_DEPOSIT_NOT_AMOUNT"
