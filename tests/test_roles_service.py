from __future__ import annotations

import unittest
import uuid

from hris.authz import Requester
from hris.errors import AuthorizationDenied, NotFound, UniquenessConflict
from hris.models import AppRole, UserRole
from hris.services.roles import (
    assign_role,
    has_role,
    list_role_assignments,
    resolve_requester,
    revoke_role,
    role_of,
    roles_of,
    set_role,
)
from tests.support import add_member, make_session


class RoleRegistryTests(unittest.TestCase):
    def setUp(self) -> None:
        self.db = make_session()
        self.admin = add_member(self.db, email="admin@example.com", full_name="Admin User", role=AppRole.ADMIN)
        self.alice = add_member(self.db, email="alice@example.com", full_name="Alice Johnson")

    def tearDown(self) -> None:
        self.db.close()

    def test_role_of_reports_held_role(self) -> None:
        self.assertIs(role_of(self.db, self.admin.identity_id), AppRole.ADMIN)
        self.assertIs(role_of(self.db, self.alice.identity_id), AppRole.EMPLOYEE)
        self.assertTrue(has_role(self.db, self.alice.identity_id, AppRole.EMPLOYEE))
        self.assertFalse(has_role(self.db, self.alice.identity_id, AppRole.ADMIN))

    def test_role_of_unknown_identity_is_none(self) -> None:
        self.assertIsNone(role_of(self.db, uuid.uuid4()))
        requester = resolve_requester(self.db, uuid.uuid4())
        self.assertIsNone(requester.role)
        self.assertFalse(requester.is_admin)

    def test_admin_wins_when_identity_holds_both_roles(self) -> None:
        self.db.add(UserRole(user_id=self.alice.identity_id, role=AppRole.ADMIN))
        self.db.commit()
        self.assertEqual(roles_of(self.db, self.alice.identity_id), {AppRole.ADMIN, AppRole.EMPLOYEE})
        self.assertIs(role_of(self.db, self.alice.identity_id), AppRole.ADMIN)

    def test_employee_cannot_assign_roles(self) -> None:
        with self.assertRaises(AuthorizationDenied):
            assign_role(self.db, self.alice, self.alice.identity_id, AppRole.ADMIN)
        self.assertIs(role_of(self.db, self.alice.identity_id), AppRole.EMPLOYEE)

    def test_duplicate_assignment_conflicts(self) -> None:
        with self.assertRaises(UniquenessConflict) as ctx:
            assign_role(self.db, self.admin, self.alice.identity_id, AppRole.EMPLOYEE)
        self.assertEqual(ctx.exception.code, "ROLE_ALREADY_ASSIGNED")
        self.assertEqual(len(roles_of(self.db, self.alice.identity_id)), 1)

    def test_assign_to_unknown_identity_is_not_found(self) -> None:
        with self.assertRaises(NotFound):
            assign_role(self.db, self.admin, uuid.uuid4(), AppRole.EMPLOYEE)

    def test_set_role_replaces_existing_roles(self) -> None:
        assignment = set_role(self.db, self.admin, self.alice.identity_id, AppRole.ADMIN)
        self.assertIs(assignment.role, AppRole.ADMIN)
        self.assertEqual(roles_of(self.db, self.alice.identity_id), {AppRole.ADMIN})

    def test_set_role_denied_leaves_roles_untouched(self) -> None:
        with self.assertRaises(AuthorizationDenied):
            set_role(self.db, self.alice, self.alice.identity_id, AppRole.ADMIN)
        self.assertEqual(roles_of(self.db, self.alice.identity_id), {AppRole.EMPLOYEE})

    def test_revoke_role(self) -> None:
        [assignment] = list_role_assignments(self.db, self.admin, user_id=self.alice.identity_id)
        revoke_role(self.db, self.admin, assignment.id)
        self.assertIsNone(role_of(self.db, self.alice.identity_id))

    def test_employee_lists_only_own_assignments(self) -> None:
        rows = list_role_assignments(self.db, self.alice)
        self.assertEqual([row.user_id for row in rows], [self.alice.identity_id])
        self.assertEqual(len(list_role_assignments(self.db, self.admin)), 2)

    def test_anonymous_lists_nothing(self) -> None:
        self.assertEqual(list_role_assignments(self.db, Requester.anonymous()), [])


if __name__ == "__main__":
    unittest.main()
