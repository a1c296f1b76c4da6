"""
Permission layer.

A role-based access control list keyed by ``(entity, app, role)``. Each
``(app, role)`` pair has a manager who alone may grant and revoke it once it
has been created. ``ANY_ENTITY`` as the entity opens a role to everyone.

``App`` is the base class for contracts that gate their methods on the ACL.
"""

from dataclasses import dataclass
from typing import ClassVar, Dict, Optional, Protocol, Tuple

from .chain import Contract, Event, normalize_address, transactional
from .constants import ANY_ENTITY, ZERO_ADDRESS
from .exceptions import BondCurveException
from .logger import get_logger

logger = get_logger(__name__)


class ACLError(BondCurveException):
    """Base exception for permission management."""


class Authorizer(Protocol):
    """What an app needs from its permission layer."""

    def has_permission(self, entity: str, app: str, role: str) -> bool: ...


@dataclass(frozen=True)
class SetPermission(Event):
    name: ClassVar[str] = "SetPermission"
    entity: str
    app: str
    role: str
    allowed: bool


@dataclass(frozen=True)
class ChangePermissionManager(Event):
    name: ClassVar[str] = "ChangePermissionManager"
    app: str
    role: str
    manager: str


class ACL(Contract):
    """Access control list. ``root`` may create new permissions."""

    _storage_fields = ("_permissions", "_managers")

    def __init__(self, root: str) -> None:
        super().__init__()
        self.root = normalize_address(root)
        self._permissions: Dict[Tuple[str, str, str], bool] = {}
        self._managers: Dict[Tuple[str, str], str] = {}

    @transactional
    def create_permission(self, entity, app, role: str, manager, *, sender) -> None:
        """Grant ``role`` on ``app`` to ``entity`` and make ``manager`` its manager."""
        sender = normalize_address(sender)
        app = normalize_address(app)
        if sender != self.root:
            raise ACLError(f"ACL_AUTH_NO_MANAGER: {sender} cannot create permissions")
        if (app, role) in self._managers:
            raise ACLError(f"ACL_EXISTENT_MANAGER: {role} on {app} already exists")
        manager = normalize_address(manager)
        if manager == ZERO_ADDRESS:
            raise ACLError("ACL_INVALID_MANAGER")

        self._set_permission(normalize_address(entity), app, role, True)
        self._managers[(app, role)] = manager
        self.emit(ChangePermissionManager(app=app, role=role, manager=manager))

    @transactional
    def grant_permission(self, entity, app, role: str, *, sender) -> None:
        entity = normalize_address(entity)
        app = normalize_address(app)
        self._require_manager(app, role, sender)
        if self._permissions.get((entity, app, role)):
            raise ACLError(f"ACL_EXISTENT_PERMISSION: {entity} already holds {role}")
        self._set_permission(entity, app, role, True)

    @transactional
    def revoke_permission(self, entity, app, role: str, *, sender) -> None:
        entity = normalize_address(entity)
        app = normalize_address(app)
        self._require_manager(app, role, sender)
        if not self._permissions.get((entity, app, role)):
            raise ACLError(f"ACL_NONEXISTENT_PERMISSION: {entity} does not hold {role}")
        self._set_permission(entity, app, role, False)

    @transactional
    def set_permission_manager(self, new_manager, app, role: str, *, sender) -> None:
        app = normalize_address(app)
        self._require_manager(app, role, sender)
        new_manager = normalize_address(new_manager)
        if new_manager == ZERO_ADDRESS:
            raise ACLError("ACL_INVALID_MANAGER")
        self._managers[(app, role)] = new_manager
        self.emit(ChangePermissionManager(app=app, role=role, manager=new_manager))

    def has_permission(self, entity, app, role: str) -> bool:
        app = normalize_address(app)
        if self._permissions.get((ANY_ENTITY, app, role)):
            return True
        return bool(self._permissions.get((normalize_address(entity), app, role)))

    def get_permission_manager(self, app, role: str) -> Optional[str]:
        return self._managers.get((normalize_address(app), role))

    def _require_manager(self, app: str, role: str, sender) -> None:
        sender = normalize_address(sender)
        if self._managers.get((app, role)) != sender:
            raise ACLError(f"ACL_AUTH_NO_MANAGER: {sender} does not manage {role} on {app}")

    def _set_permission(self, entity: str, app: str, role: str, allowed: bool) -> None:
        if allowed:
            self._permissions[(entity, app, role)] = True
        else:
            self._permissions.pop((entity, app, role), None)
        self.emit(SetPermission(entity=entity, app=app, role=role, allowed=allowed))
        logger.debug("Permission %s %s on %s for %s", "set" if allowed else "revoked", role, app, entity)


class App(Contract):
    """A contract whose privileged methods are gated by an ``Authorizer``."""

    def __init__(self, acl: Authorizer) -> None:
        super().__init__()
        self.acl = acl

    def can_perform(self, who, role: str) -> bool:
        return self.acl.has_permission(normalize_address(who), self.address, role)
