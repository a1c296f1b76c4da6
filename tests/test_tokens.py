"""
Token ledger tests: ERC20Token and TokenManager.
"""

import pytest

from bondcurve.acl import ACL
from bondcurve.chain import ChainState, Contract, derive_address
from bondcurve.constants import BURN_ROLE, MINT_ROLE, UINT256_MAX, ZERO_ADDRESS
from bondcurve.exceptions import BondCurveException
from bondcurve.tokens import (
    ERC20Token,
    InsufficientAllowanceError,
    InsufficientBalanceError,
    NotControllerError,
    TokenError,
    TokenManager,
    TokenManagerError,
)

ROOT = derive_address("root")
ALICE = derive_address("alice")
BOB = derive_address("bob")
MINTER = derive_address("minter")


class Recorder(Contract):
    """Approval target that records what it was told."""

    def __init__(self, fail=False):
        super().__init__()
        self.calls = []
        self.fail = fail

    def receive_approval(self, from_, amount, token, data, *, sender):
        self.calls.append((from_, amount, token, data, sender))
        if self.fail:
            raise TokenError("rejected")


@pytest.fixture
def chain():
    return ChainState()


@pytest.fixture
def token(chain):
    token = ERC20Token("Test", "TST", controller=ROOT)
    chain.deploy(token)
    token.generate_tokens(ALICE, 100, sender=ROOT)
    return token


class TestERC20:

    def test_metadata(self, token):
        assert (token.name, token.symbol, token.decimals) == ("Test", "TST", 18)
        assert token.total_supply() == 100
        assert token.balance_of(ALICE) == 100

    def test_transfer(self, token, chain):
        token.transfer(BOB, 30, sender=ALICE)
        assert token.balance_of(ALICE) == 70
        assert token.balance_of(BOB) == 30
        transfer = chain.events_named("Transfer")[-1]
        assert (transfer.sender, transfer.recipient, transfer.amount) == (ALICE, BOB, 30)

    def test_transfer_too_much(self, token):
        with pytest.raises(InsufficientBalanceError):
            token.transfer(BOB, 101, sender=ALICE)

    def test_transfer_to_zero(self, token):
        with pytest.raises(TokenError, match="zero address"):
            token.transfer(ZERO_ADDRESS, 1, sender=ALICE)

    @pytest.mark.parametrize("amount", [-1, UINT256_MAX + 1, "10"])
    def test_invalid_amount(self, token, amount):
        with pytest.raises(TokenError, match="Invalid amount"):
            token.transfer(BOB, amount, sender=ALICE)

    def test_transfer_from(self, token):
        token.approve(BOB, 50, sender=ALICE)
        token.transfer_from(ALICE, BOB, 20, sender=BOB)
        assert token.balance_of(BOB) == 20
        assert token.allowance(ALICE, BOB) == 30

    def test_transfer_from_over_allowance(self, token):
        token.approve(BOB, 10, sender=ALICE)
        with pytest.raises(InsufficientAllowanceError):
            token.transfer_from(ALICE, BOB, 11, sender=BOB)

    def test_infinite_allowance_not_decremented(self, token):
        token.approve(BOB, UINT256_MAX, sender=ALICE)
        token.transfer_from(ALICE, BOB, 40, sender=BOB)
        assert token.allowance(ALICE, BOB) == UINT256_MAX

    def test_failed_transfer_from_keeps_allowance(self, token):
        token.approve(BOB, 500, sender=ALICE)
        with pytest.raises(InsufficientBalanceError):
            token.transfer_from(ALICE, BOB, 200, sender=BOB)
        assert token.allowance(ALICE, BOB) == 500

    def test_controller_only(self, token):
        with pytest.raises(NotControllerError):
            token.generate_tokens(BOB, 1, sender=ALICE)
        with pytest.raises(NotControllerError):
            token.destroy_tokens(ALICE, 1, sender=ALICE)
        with pytest.raises(NotControllerError):
            token.change_controller(ALICE, sender=ALICE)

    def test_destroy(self, token):
        token.destroy_tokens(ALICE, 40, sender=ROOT)
        assert token.total_supply() == 60
        with pytest.raises(InsufficientBalanceError):
            token.destroy_tokens(ALICE, 61, sender=ROOT)

    def test_supply_overflow(self, token):
        with pytest.raises(TokenError, match="overflow"):
            token.generate_tokens(BOB, UINT256_MAX, sender=ROOT)

    def test_approve_and_call(self, token, chain):
        target = Recorder()
        chain.deploy(target)
        token.approve_and_call(target, 25, b"\x01\x02", sender=ALICE)
        assert token.allowance(ALICE, target) == 25
        assert target.calls == [(ALICE, 25, token.address, b"\x01\x02", token.address)]

    def test_approve_and_call_rolls_back(self, token, chain):
        target = Recorder(fail=True)
        chain.deploy(target)
        with pytest.raises(TokenError, match="rejected"):
            token.approve_and_call(target, 25, b"", sender=ALICE)
        assert token.allowance(ALICE, target) == 0

    def test_approve_and_call_needs_contract(self, token):
        with pytest.raises(BondCurveException, match="No contract"):
            token.approve_and_call(BOB, 1, b"", sender=ALICE)


@pytest.fixture
def managed(chain):
    acl = ACL(root=ROOT)
    chain.deploy(acl)
    token = ERC20Token("Bonded", "BOND", controller=ROOT)
    chain.deploy(token)
    manager = TokenManager(acl, token, max_account_tokens=1000)
    chain.deploy(manager)
    token.change_controller(manager, sender=ROOT)
    acl.create_permission(MINTER, manager, MINT_ROLE, ROOT, sender=ROOT)
    acl.create_permission(MINTER, manager, BURN_ROLE, ROOT, sender=ROOT)
    return acl, token, manager


class TestTokenManager:

    def test_mint_and_burn(self, managed):
        _, token, manager = managed
        manager.mint(ALICE, 300, sender=MINTER)
        assert manager.balance_of(ALICE) == token.balance_of(ALICE) == 300
        manager.burn(ALICE, 100, sender=MINTER)
        assert manager.total_supply() == 200

    def test_mint_requires_role(self, managed):
        _, _, manager = managed
        with pytest.raises(TokenManagerError, match="APP_AUTH_FAILED"):
            manager.mint(ALICE, 1, sender=ALICE)

    def test_burn_requires_role(self, managed):
        _, _, manager = managed
        manager.mint(ALICE, 1, sender=MINTER)
        with pytest.raises(TokenManagerError, match="APP_AUTH_FAILED"):
            manager.burn(ALICE, 1, sender=ALICE)

    def test_account_cap(self, managed):
        _, _, manager = managed
        manager.mint(ALICE, 1000, sender=MINTER)
        with pytest.raises(TokenManagerError):
            manager.mint(ALICE, 1, sender=MINTER)
        assert manager.balance_of(ALICE) == 1000

    def test_burn_more_than_balance(self, managed):
        _, _, manager = managed
        manager.mint(ALICE, 5, sender=MINTER)
        with pytest.raises(InsufficientBalanceError):
            manager.burn(ALICE, 6, sender=MINTER)

    def test_token_only_obeys_manager(self, managed):
        _, token, _ = managed
        with pytest.raises(NotControllerError):
            token.generate_tokens(ALICE, 1, sender=ROOT)

    def test_default_cap_is_unbounded(self, chain):
        acl = ACL(root=ROOT)
        chain.deploy(acl)
        token = ERC20Token("Bonded", "BOND", controller=ROOT)
        assert TokenManager(acl, token).max_account_tokens == UINT256_MAX
