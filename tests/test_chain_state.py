"""
In-memory chain: deployment, native balances, event log and snapshots.
"""

from dataclasses import dataclass
from typing import ClassVar

import pytest

from bondcurve.chain import (
    ChainState,
    Contract,
    Event,
    InsufficientFundsError,
    derive_address,
    normalize_address,
    transactional,
)
from bondcurve.exceptions import BondCurveException, InvalidAddressError

ALICE = derive_address("alice")
BOB = derive_address("bob")


@dataclass(frozen=True)
class Ping(Event):
    name: ClassVar[str] = "Ping"
    value: int


class Counter(Contract):
    _storage_fields = ("count", "history")

    def __init__(self):
        super().__init__()
        self.count = 0
        self.history = []

    @transactional
    def bump(self, fail=False):
        self.count += 1
        self.history.append(self.count)
        self.emit(Ping(value=self.count))
        if fail:
            raise RuntimeError("boom")


@pytest.fixture
def chain():
    return ChainState()


class TestAddresses:

    def test_normalize_checksums(self):
        assert normalize_address(ALICE.lower()) == ALICE

    @pytest.mark.parametrize("value", ["0x1234", "not an address", None, 42, b"\x00" * 20])
    def test_normalize_rejects(self, value):
        with pytest.raises(InvalidAddressError):
            normalize_address(value)

    def test_normalize_contract(self, chain):
        counter = Counter()
        address = chain.deploy(counter)
        assert normalize_address(counter) == address

    def test_undeployed_contract_has_no_address(self):
        with pytest.raises(InvalidAddressError):
            normalize_address(Counter())

    def test_derive_address_is_deterministic(self):
        assert derive_address("alice") == ALICE
        assert derive_address("alice") != derive_address("Alice")


class TestDeploy:

    def test_addresses_are_deterministic(self):
        first = [ChainState().deploy(Counter()) for _ in range(2)]
        assert first[0] == first[1]

        chain = ChainState()
        a, b = chain.deploy(Counter()), chain.deploy(Counter())
        assert a != b

    def test_is_contract(self, chain):
        address = chain.deploy(Counter())
        assert chain.is_contract(address)
        assert chain.is_contract(address.lower())
        assert not chain.is_contract(ALICE)
        assert not chain.is_contract("garbage")

    def test_get_contract(self, chain):
        counter = Counter()
        chain.deploy(counter)
        assert chain.get_contract(counter.address) is counter
        with pytest.raises(BondCurveException, match="No contract"):
            chain.get_contract(ALICE)

    def test_deploy_twice(self, chain):
        counter = Counter()
        chain.deploy(counter)
        with pytest.raises(BondCurveException, match="already deployed"):
            chain.deploy(counter)

    def test_undeployed_contract_cannot_emit(self):
        with pytest.raises(BondCurveException, match="not deployed"):
            Counter().emit(Ping(value=1))


class TestNativeBalances:

    def test_mint_and_transfer(self, chain):
        chain.mint_native(ALICE, 100)
        chain.transfer_native(ALICE, BOB, 40)
        assert chain.balance_of(ALICE) == 60
        assert chain.balance_of(BOB) == 40

    def test_insufficient_funds(self, chain):
        chain.mint_native(ALICE, 10)
        with pytest.raises(InsufficientFundsError):
            chain.transfer_native(ALICE, BOB, 11)
        assert chain.balance_of(ALICE) == 10

    def test_negative_amounts(self, chain):
        with pytest.raises(ValueError):
            chain.mint_native(ALICE, -1)
        with pytest.raises(ValueError):
            chain.transfer_native(ALICE, BOB, -1)

    def test_receive_value(self, chain):
        counter = Counter()
        chain.deploy(counter)
        chain.mint_native(ALICE, 5)
        counter.receive_value(ALICE, 5)
        assert chain.balance_of(counter.address) == 5


class TestEventLog:

    def test_emit_records_emitter(self, chain):
        counter = Counter()
        chain.deploy(counter)
        counter.bump()
        [entry] = chain.logs
        assert entry.index == 0
        assert entry.emitter == counter.address
        assert entry.event == Ping(value=1)
        assert entry.event.to_dict() == {"event": "Ping", "value": 1}

    def test_events_named(self, chain):
        chain.emit(Ping(value=1))
        chain.emit(Event())
        assert chain.events_named("Ping") == [Ping(value=1)]
        assert len(chain.events) == 2


class TestSnapshots:

    def test_revert_restores_everything(self, chain):
        counter = Counter()
        chain.deploy(counter)
        chain.mint_native(ALICE, 10)

        snap = chain.snapshot()
        counter.bump()
        chain.transfer_native(ALICE, BOB, 3)
        late = Counter()
        chain.deploy(late)
        chain.revert(snap)

        assert counter.count == 0
        assert counter.history == []
        assert chain.balance_of(ALICE) == 10
        assert chain.balance_of(BOB) == 0
        assert chain.events == []
        assert late.address is None
        assert late.chain is None

    def test_commit_keeps_changes(self, chain):
        counter = Counter()
        chain.deploy(counter)
        snap = chain.snapshot()
        counter.bump()
        chain.commit(snap)
        assert counter.count == 1
        with pytest.raises(BondCurveException, match="Unknown snapshot"):
            chain.revert(snap)

    def test_unknown_snapshot(self, chain):
        with pytest.raises(BondCurveException, match="Unknown snapshot"):
            chain.revert(0)
        with pytest.raises(BondCurveException, match="Unknown snapshot"):
            chain.commit(3)

    def test_failing_transaction_leaves_no_trace(self, chain):
        counter = Counter()
        chain.deploy(counter)
        counter.bump()

        with pytest.raises(RuntimeError, match="boom"):
            counter.bump(fail=True)

        assert counter.count == 1
        assert counter.history == [1]
        assert len(chain.events) == 1

    def test_nested_atomic_rolls_back_inner_only(self, chain):
        counter = Counter()
        chain.deploy(counter)

        with chain.atomic():
            counter.bump()
            with pytest.raises(RuntimeError):
                with chain.atomic():
                    counter.bump()
                    raise RuntimeError("inner")
            counter.bump()

        assert counter.history == [1, 2]
        assert [e.value for e in chain.events] == [1, 2]

    def test_outer_failure_undoes_committed_inner(self, chain):
        counter = Counter()
        chain.deploy(counter)

        with pytest.raises(RuntimeError):
            with chain.atomic():
                counter.bump()
                raise RuntimeError("outer")

        assert counter.count == 0
        assert chain.events == []
