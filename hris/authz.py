"""Row-level authorization.

Every (collection, operation) pair owns a list of named policies. An
operation is permitted when at least one of its policies evaluates true for
the requester and the target row; policies are OR-composed, never AND-ed.
Collections or operations without policies are denied.

Rows may be ORM instances or plain mappings (for proposed inserts and
updates that do not exist yet).
"""

from __future__ import annotations

import enum
import uuid
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from hris.errors import AuthorizationDenied
from hris.models import AppRole, LeaveStatus


class Operation(str, enum.Enum):
    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class Collection(str, enum.Enum):
    PROFILES = "profiles"
    USER_ROLES = "user_roles"
    LEAVES = "leaves"
    ATTENDANCE = "attendance"
    ACTIVITY_LOGS = "activity_logs"


@dataclass(frozen=True, slots=True)
class Requester:
    identity_id: uuid.UUID | None
    role: AppRole | None = None
    is_system: bool = False

    @property
    def is_authenticated(self) -> bool:
        return self.is_system or self.identity_id is not None

    @property
    def is_admin(self) -> bool:
        return self.role is AppRole.ADMIN

    @classmethod
    def anonymous(cls) -> Requester:
        return cls(identity_id=None)

    @classmethod
    def system(cls) -> Requester:
        """Definer context for server-side procedures; bypasses every policy."""
        return cls(identity_id=None, is_system=True)


Predicate = Callable[[Requester, Any], bool]


@dataclass(frozen=True, slots=True)
class Policy:
    name: str
    collection: Collection
    operations: frozenset[Operation]
    predicate: Predicate


def row_value(row: Any, field: str) -> Any:
    if isinstance(row, Mapping):
        return row.get(field)
    return getattr(row, field, None)


def proposed_row(row: Any, fields: tuple[str, ...], changes: Mapping[str, Any]) -> dict[str, Any]:
    snapshot = {field: row_value(row, field) for field in fields}
    snapshot.update(changes)
    return snapshot


def _same_id(left: Any, right: Any) -> bool:
    if left is None or right is None:
        return False
    return str(left) == str(right)


def _authenticated(requester: Requester, _row: Any) -> bool:
    return requester.identity_id is not None


def _admin(requester: Requester, _row: Any) -> bool:
    return requester.is_admin


def _owner(field: str) -> Predicate:
    def _check(requester: Requester, row: Any) -> bool:
        return _same_id(requester.identity_id, row_value(row, field))

    return _check


def _owner_of_pending_leave(requester: Requester, row: Any) -> bool:
    status = row_value(row, "status")
    return _same_id(requester.identity_id, row_value(row, "employee_id")) and (
        status == LeaveStatus.PENDING or status == LeaveStatus.PENDING.value
    )


def _policy(name: str, collection: Collection, operations: set[Operation], predicate: Predicate) -> Policy:
    return Policy(name=name, collection=collection, operations=frozenset(operations), predicate=predicate)


ALL_OPERATIONS = {Operation.READ, Operation.CREATE, Operation.UPDATE, Operation.DELETE}

POLICIES: tuple[Policy, ...] = (
    # profiles
    _policy("Users can view all profiles", Collection.PROFILES, {Operation.READ}, _authenticated),
    _policy("Users can update their own profile", Collection.PROFILES, {Operation.UPDATE}, _owner("id")),
    _policy("Admins can insert profiles", Collection.PROFILES, {Operation.CREATE}, _admin),
    _policy("Admins can update all profiles", Collection.PROFILES, {Operation.UPDATE}, _admin),
    _policy("Admins can delete profiles", Collection.PROFILES, {Operation.DELETE}, _admin),
    # user_roles
    _policy("Users can view their own roles", Collection.USER_ROLES, {Operation.READ}, _owner("user_id")),
    _policy("Admins can view all roles", Collection.USER_ROLES, {Operation.READ}, _admin),
    _policy("Admins can manage roles", Collection.USER_ROLES, ALL_OPERATIONS, _admin),
    # leaves
    _policy("Employees can view their own leaves", Collection.LEAVES, {Operation.READ}, _owner("employee_id")),
    _policy("Admins can view all leaves", Collection.LEAVES, {Operation.READ}, _admin),
    _policy("Employees can create their own leaves", Collection.LEAVES, {Operation.CREATE}, _owner("employee_id")),
    _policy(
        "Employees can update their own pending leaves",
        Collection.LEAVES,
        {Operation.UPDATE},
        _owner_of_pending_leave,
    ),
    _policy("Admins can update all leaves", Collection.LEAVES, {Operation.UPDATE}, _admin),
    _policy("Admins can delete leaves", Collection.LEAVES, {Operation.DELETE}, _admin),
    # attendance
    _policy(
        "Employees can view their own attendance",
        Collection.ATTENDANCE,
        {Operation.READ},
        _owner("employee_id"),
    ),
    _policy("Admins can view all attendance", Collection.ATTENDANCE, {Operation.READ}, _admin),
    _policy(
        "Employees can create their own attendance",
        Collection.ATTENDANCE,
        {Operation.CREATE},
        _owner("employee_id"),
    ),
    _policy(
        "Employees can update their own attendance",
        Collection.ATTENDANCE,
        {Operation.UPDATE},
        _owner("employee_id"),
    ),
    _policy("Admins can manage all attendance", Collection.ATTENDANCE, ALL_OPERATIONS, _admin),
    # activity_logs
    _policy("Users can view all activity logs", Collection.ACTIVITY_LOGS, {Operation.READ}, _authenticated),
    _policy("Users can create activity logs", Collection.ACTIVITY_LOGS, {Operation.CREATE}, _authenticated),
)


def policies_for(collection: Collection, operation: Operation) -> list[Policy]:
    return [
        policy
        for policy in POLICIES
        if policy.collection is collection and operation in policy.operations
    ]


def allowed(operation: Operation, collection: Collection, requester: Requester, row: Any) -> bool:
    if requester.is_system:
        return True
    if not requester.is_authenticated:
        return False
    return any(policy.predicate(requester, row) for policy in policies_for(collection, operation))


def allowed_update(
    collection: Collection,
    requester: Requester,
    current_row: Any,
    proposed_row: Any,
) -> bool:
    """Stored row must pass the update policies, and so must the row as it would be written."""
    return allowed(Operation.UPDATE, collection, requester, current_row) and allowed(
        Operation.UPDATE,
        collection,
        requester,
        proposed_row,
    )


def ensure_allowed(operation: Operation, collection: Collection, requester: Requester, row: Any) -> None:
    if not allowed(operation, collection, requester, row):
        raise AuthorizationDenied(f"Not allowed to {operation.value} {collection.value}.")


def ensure_update_allowed(
    collection: Collection,
    requester: Requester,
    current_row: Any,
    proposed_row: Any,
) -> None:
    if not allowed_update(collection, requester, current_row, proposed_row):
        raise AuthorizationDenied(f"Not allowed to update {collection.value}.")


def visible(collection: Collection, requester: Requester, rows: list[Any]) -> list[Any]:
    return [row for row in rows if allowed(Operation.READ, collection, requester, row)]
