"""
In-memory host for bondcurve contracts.

Provides what the market maker expects from its ledger: accounts that may
hold code, native balances, an append-only event log and all-or-nothing
execution. State changes are grouped with snapshots, mirroring the
snapshot/revert journal of an EVM state manager:

    >>> chain = ChainState()
    >>> with chain.atomic():
    ...     chain.transfer_native(alice, bob, 10)

If the block raises, every contract's storage, every native balance and the
event log are restored to what they were when the block was entered.
"""

import copy
import functools
from contextlib import contextmanager
from dataclasses import dataclass, fields
from typing import Any, ClassVar, Dict, Iterator, List, Optional, Tuple

from eth_utils import is_address, keccak, to_checksum_address

from ..exceptions import BondCurveException, InvalidAddressError
from ..logger import get_logger

logger = get_logger(__name__)


class InsufficientFundsError(BondCurveException):
    """Raised when an account's native balance is too low."""


def normalize_address(value: Any) -> str:
    """
    Return the checksummed form of an address or of a deployed contract.

    Raises:
        InvalidAddressError: if ``value`` is not a 20-byte hex address.
    """
    if isinstance(value, Contract):
        if value.address is None:
            raise InvalidAddressError(f"{type(value).__name__} is not deployed")
        return value.address
    if not isinstance(value, str) or not is_address(value):
        raise InvalidAddressError(f"Invalid address: {value!r}")
    return to_checksum_address(value)


def derive_address(label: str) -> str:
    """Deterministic account address for a human-readable label (keccak of the label)."""
    return to_checksum_address(keccak(text=label)[-20:])


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Event:
    """Base class for log events. Subclasses set ``name`` and declare fields."""

    name: ClassVar[str] = "Event"

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"event": self.name}
        for f in fields(self):
            data[f.name] = getattr(self, f.name)
        return data


@dataclass(frozen=True)
class LogEntry:
    index: int
    emitter: Optional[str]
    event: Event


# ---------------------------------------------------------------------------
# Contracts
# ---------------------------------------------------------------------------

class Contract:
    """
    Base class for everything deployed on a ``ChainState``.

    Subclasses list the attributes that make up their storage in
    ``_storage_fields``; those and only those are captured by snapshots.
    Storage must hold plain data (ints, strings, dicts, frozen dataclasses),
    never references to other contracts.
    """

    _storage_fields: ClassVar[Tuple[str, ...]] = ()

    def __init__(self) -> None:
        self.chain: Optional["ChainState"] = None
        self.address: Optional[str] = None

    def snapshot_storage(self) -> Dict[str, Any]:
        return {name: copy.deepcopy(getattr(self, name)) for name in self._storage_fields}

    def restore_storage(self, data: Dict[str, Any]) -> None:
        for name, value in data.items():
            setattr(self, name, value)

    def emit(self, event: Event) -> None:
        self._require_chain().emit(event, emitter=self.address)

    def receive_value(self, sender: str, value: int) -> None:
        """Move native value attached to a payable call from ``sender`` to this contract."""
        if value:
            self._require_chain().transfer_native(sender, self.address, value)

    def _require_chain(self) -> "ChainState":
        if self.chain is None:
            raise BondCurveException(f"{type(self).__name__} is not deployed")
        return self.chain

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.address}>"


def transactional(method):
    """Run a contract method inside ``chain.atomic()``."""

    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        with self._require_chain().atomic():
            return method(self, *args, **kwargs)

    return wrapper


# ---------------------------------------------------------------------------
# Chain state
# ---------------------------------------------------------------------------

class ChainState:
    """Accounts, code, native balances and the event log of one in-memory chain."""

    def __init__(self) -> None:
        self._contracts: Dict[str, Contract] = {}
        self._balances: Dict[str, int] = {}
        self._log: List[LogEntry] = []
        self._snapshots: List[Dict[str, Any]] = []
        self._deploy_nonce = 0

    # -- Accounts -----------------------------------------------------------

    def deploy(self, contract: Contract) -> str:
        """Attach ``contract`` to this chain at a fresh deterministic address."""
        if contract.address is not None:
            raise BondCurveException(f"{contract!r} is already deployed")
        self._deploy_nonce += 1
        digest = keccak(b"bondcurve:deploy:" + self._deploy_nonce.to_bytes(32, "big"))
        address = to_checksum_address(digest[-20:])
        contract.chain = self
        contract.address = address
        self._contracts[address] = contract
        logger.debug("Deployed %s at %s", type(contract).__name__, address)
        return address

    def is_contract(self, address: Any) -> bool:
        try:
            return normalize_address(address) in self._contracts
        except InvalidAddressError:
            return False

    def get_contract(self, address: Any) -> Contract:
        addr = normalize_address(address)
        try:
            return self._contracts[addr]
        except KeyError:
            raise BondCurveException(f"No contract at {addr}") from None

    # -- Native balances ----------------------------------------------------

    def balance_of(self, account: Any) -> int:
        return self._balances.get(normalize_address(account), 0)

    def mint_native(self, account: Any, amount: int) -> None:
        """Credit native funds out of thin air (genesis allocations, test funding)."""
        if amount < 0:
            raise ValueError("Mint amount must be non-negative")
        addr = normalize_address(account)
        self._balances[addr] = self._balances.get(addr, 0) + amount

    def transfer_native(self, sender: Any, recipient: Any, amount: int) -> None:
        if amount < 0:
            raise ValueError("Transfer amount must be non-negative")
        src = normalize_address(sender)
        dst = normalize_address(recipient)
        balance = self._balances.get(src, 0)
        if balance < amount:
            raise InsufficientFundsError(
                f"{src} holds {balance}, needs {amount}"
            )
        self._balances[src] = balance - amount
        self._balances[dst] = self._balances.get(dst, 0) + amount

    # -- Event log ----------------------------------------------------------

    def emit(self, event: Event, emitter: Optional[str] = None) -> None:
        entry = LogEntry(index=len(self._log), emitter=emitter, event=event)
        self._log.append(entry)
        logger.debug("[%s] %s", event.name, event.to_dict())

    @property
    def logs(self) -> List[LogEntry]:
        return list(self._log)

    @property
    def events(self) -> List[Event]:
        return [entry.event for entry in self._log]

    def events_named(self, name: str) -> List[Event]:
        return [entry.event for entry in self._log if entry.event.name == name]

    # -- Snapshots ----------------------------------------------------------

    def snapshot(self) -> int:
        """Capture the full state and return the snapshot id."""
        snapshot = {
            "contracts": dict(self._contracts),
            "storage": {addr: c.snapshot_storage() for addr, c in self._contracts.items()},
            "balances": dict(self._balances),
            "log_length": len(self._log),
        }
        self._snapshots.append(snapshot)
        return len(self._snapshots) - 1

    def revert(self, snapshot_id: int) -> None:
        """Restore the state captured by ``snapshot_id`` and drop it and every later snapshot."""
        if snapshot_id < 0 or snapshot_id >= len(self._snapshots):
            raise BondCurveException(f"Unknown snapshot {snapshot_id}")

        snapshot = self._snapshots[snapshot_id]
        for addr in list(self._contracts):
            if addr not in snapshot["contracts"]:
                contract = self._contracts.pop(addr)
                contract.chain = None
                contract.address = None
        self._contracts = snapshot["contracts"]
        for addr, data in snapshot["storage"].items():
            self._contracts[addr].restore_storage(data)
        self._balances = snapshot["balances"]
        del self._log[snapshot["log_length"]:]

        self._snapshots = self._snapshots[:snapshot_id]

    def commit(self, snapshot_id: int) -> None:
        """Keep the current state and discard ``snapshot_id`` and every later snapshot."""
        if snapshot_id < 0 or snapshot_id >= len(self._snapshots):
            raise BondCurveException(f"Unknown snapshot {snapshot_id}")
        self._snapshots = self._snapshots[:snapshot_id]

    @contextmanager
    def atomic(self) -> Iterator["ChainState"]:
        """All-or-nothing block. Nested blocks roll back only their own changes."""
        snapshot_id = self.snapshot()
        try:
            yield self
        except BaseException as e:
            self.revert(snapshot_id)
            if snapshot_id == 0:
                logger.warning("Transaction rolled back: %s: %s", type(e).__name__, e)
            else:
                logger.debug("Rolled back to snapshot %d: %s", snapshot_id, type(e).__name__)
            raise
        else:
            self.commit(snapshot_id)
