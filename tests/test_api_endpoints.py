from __future__ import annotations

import os
import unittest
import uuid
from unittest.mock import patch

from fastapi.testclient import TestClient

from hris.authz import Requester
from hris.db import get_db
from hris.main import app
from hris.models import AppRole
from hris.security import reset_login_attempts
from hris.services.roles import set_role
from hris.settings import get_settings
from tests.support import make_session, override_get_db


class ApiTestCase(unittest.TestCase):
    def setUp(self) -> None:
        get_settings.cache_clear()
        reset_login_attempts()
        self.db = make_session()
        app.dependency_overrides[get_db] = override_get_db(self.db)
        self.client = TestClient(app)

    def tearDown(self) -> None:
        app.dependency_overrides.clear()
        self.db.close()
        reset_login_attempts()
        get_settings.cache_clear()

    def _sign_up(self, email: str, full_name: str, password: str = "secret1") -> dict:
        response = self.client.post(
            "/api/auth/sign-up",
            json={"email": email, "password": password, "full_name": full_name},
        )
        self.assertEqual(response.status_code, 201, response.text)
        return response.json()

    def _headers(self, session: dict) -> dict[str, str]:
        return {"Authorization": f"Bearer {session['access_token']}"}

    def _promote(self, session: dict) -> None:
        set_role(self.db, Requester.system(), uuid.UUID(session["identity_id"]), AppRole.ADMIN)


class AuthEndpointTests(ApiTestCase):
    def test_sign_up_then_me(self) -> None:
        session = self._sign_up("alice@example.com", "Alice Johnson")

        response = self.client.get("/api/auth/me", headers=self._headers(session))

        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["email"], "alice@example.com")
        self.assertEqual(payload["role"], "employee")
        self.assertEqual(payload["profile"]["full_name"], "Alice Johnson")
        self.assertIn("X-Request-Id", response.headers)

    def test_duplicate_sign_up_conflicts(self) -> None:
        self._sign_up("alice@example.com", "Alice Johnson")
        response = self.client.post(
            "/api/auth/sign-up",
            json={"email": "alice@example.com", "password": "secret1", "full_name": "Alice"},
        )
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["error"]["code"], "EMAIL_ALREADY_REGISTERED")

    def test_short_password_is_validation_error(self) -> None:
        response = self.client.post(
            "/api/auth/sign-up",
            json={"email": "bob@example.com", "password": "123", "full_name": "Bob Smith"},
        )
        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.json()["error"]["message"], "Password must be at least 6 characters")

    def test_sign_in_and_sign_out(self) -> None:
        self._sign_up("alice@example.com", "Alice Johnson")
        response = self.client.post(
            "/api/auth/sign-in",
            json={"email": "alice@example.com", "password": "secret1"},
        )
        self.assertEqual(response.status_code, 200)
        session = response.json()
        self.assertEqual(session["token_type"], "bearer")

        response = self.client.post("/api/auth/sign-out", headers=self._headers(session))
        self.assertEqual(response.status_code, 200)

        response = self.client.get("/api/auth/me", headers=self._headers(session))
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["error"]["code"], "INVALID_TOKEN")

    def test_wrong_password_is_rejected_and_throttled(self) -> None:
        self._sign_up("alice@example.com", "Alice Johnson")
        with patch.dict(os.environ, {"LOGIN_MAX_ATTEMPTS": "2"}, clear=False):
            get_settings.cache_clear()
            for _ in range(2):
                response = self.client.post(
                    "/api/auth/sign-in",
                    json={"email": "alice@example.com", "password": "wrong-one"},
                )
                self.assertEqual(response.status_code, 401)
                self.assertEqual(response.json()["error"]["message"], "Invalid login credentials")

            response = self.client.post(
                "/api/auth/sign-in",
                json={"email": "alice@example.com", "password": "secret1"},
            )
        self.assertEqual(response.status_code, 429)
        self.assertEqual(response.json()["error"]["code"], "TOO_MANY_ATTEMPTS")

    def test_missing_token_is_rejected(self) -> None:
        response = self.client.get("/api/profiles")
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["error"]["code"], "INVALID_TOKEN")

    def test_garbage_token_is_rejected(self) -> None:
        response = self.client.get("/api/profiles", headers={"Authorization": "Bearer not-a-jwt"})
        self.assertEqual(response.status_code, 401)


class ProfileAndRoleEndpointTests(ApiTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.admin = self._sign_up("admin@example.com", "Admin User")
        self._promote(self.admin)
        self.alice = self._sign_up("alice@example.com", "Alice Johnson")
        self.bob = self._sign_up("bob@example.com", "Bob Smith")

    def test_directory_is_readable_and_searchable(self) -> None:
        response = self.client.get("/api/profiles", headers=self._headers(self.alice))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.json()), 3)

        response = self.client.get("/api/profiles", params={"search": "bob"}, headers=self._headers(self.alice))
        self.assertEqual([row["email"] for row in response.json()], ["bob@example.com"])

    def test_employee_edits_own_profile_only(self) -> None:
        own = self.client.patch(
            f"/api/profiles/{self.alice['identity_id']}",
            json={"department": "Engineering"},
            headers=self._headers(self.alice),
        )
        self.assertEqual(own.status_code, 200)
        self.assertEqual(own.json()["department"], "Engineering")

        other = self.client.patch(
            f"/api/profiles/{self.bob['identity_id']}",
            json={"department": "Hacked"},
            headers=self._headers(self.alice),
        )
        self.assertEqual(other.status_code, 403)
        self.assertEqual(other.json()["error"]["code"], "FORBIDDEN")

    def test_admin_edits_any_profile(self) -> None:
        response = self.client.patch(
            f"/api/profiles/{self.bob['identity_id']}",
            json={"position": "Sales Manager"},
            headers=self._headers(self.admin),
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["position"], "Sales Manager")

    def test_employee_cannot_promote_self(self) -> None:
        response = self.client.post(
            "/api/user-roles",
            json={"user_id": self.alice["identity_id"], "role": "admin"},
            headers=self._headers(self.alice),
        )
        self.assertEqual(response.status_code, 403)

        me = self.client.get("/api/auth/me", headers=self._headers(self.alice)).json()
        self.assertEqual(me["role"], "employee")

    def test_admin_sets_role(self) -> None:
        response = self.client.put(
            f"/api/user-roles/{self.bob['identity_id']}",
            json={"role": "admin"},
            headers=self._headers(self.admin),
        )
        self.assertEqual(response.status_code, 200)
        me = self.client.get("/api/auth/me", headers=self._headers(self.bob)).json()
        self.assertEqual(me["role"], "admin")

    def test_employee_sees_only_own_role_rows(self) -> None:
        response = self.client.get("/api/user-roles", headers=self._headers(self.alice))
        self.assertEqual(response.status_code, 200)
        self.assertEqual({row["user_id"] for row in response.json()}, {self.alice["identity_id"]})

    def test_admin_deletes_identity(self) -> None:
        response = self.client.delete(f"/api/profiles/{self.bob['identity_id']}", headers=self._headers(self.admin))
        self.assertEqual(response.status_code, 204)

        response = self.client.get(f"/api/profiles/{self.bob['identity_id']}", headers=self._headers(self.admin))
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["error"]["code"], "NOT_FOUND")

        response = self.client.get("/api/auth/me", headers=self._headers(self.bob))
        self.assertEqual(response.status_code, 401)


class LeaveAndAttendanceEndpointTests(ApiTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.admin = self._sign_up("admin@example.com", "Admin User")
        self._promote(self.admin)
        self.alice = self._sign_up("alice@example.com", "Alice Johnson")
        self.bob = self._sign_up("bob@example.com", "Bob Smith")

    def _apply(self, session: dict) -> dict:
        response = self.client.post(
            "/api/leaves",
            json={
                "leave_type": "vacation",
                "start_date": "2025-01-10",
                "end_date": "2025-01-14",
                "reason": "Trip",
            },
            headers=self._headers(session),
        )
        self.assertEqual(response.status_code, 201, response.text)
        return response.json()

    def test_leave_lifecycle(self) -> None:
        leave = self._apply(self.alice)
        self.assertEqual(leave["status"], "pending")
        self.assertEqual(leave["days_count"], 5)
        self.assertEqual(leave["employee"]["full_name"], "Alice Johnson")

        self_review = self.client.post(
            f"/api/leaves/{leave['id']}/review",
            json={"status": "approved"},
            headers=self._headers(self.alice),
        )
        self.assertEqual(self_review.status_code, 403)

        approved = self.client.post(
            f"/api/leaves/{leave['id']}/review",
            json={"status": "approved"},
            headers=self._headers(self.admin),
        )
        self.assertEqual(approved.status_code, 200)
        self.assertEqual(approved.json()["status"], "approved")
        self.assertEqual(approved.json()["reviewed_by"], self.admin["identity_id"])

        edit = self.client.patch(
            f"/api/leaves/{leave['id']}",
            json={"reason": "Longer trip"},
            headers=self._headers(self.alice),
        )
        self.assertEqual(edit.status_code, 403)

        again = self.client.post(
            f"/api/leaves/{leave['id']}/review",
            json={"status": "rejected"},
            headers=self._headers(self.admin),
        )
        self.assertEqual(again.status_code, 409)
        self.assertEqual(again.json()["error"]["code"], "INVALID_TRANSITION")

    def test_review_rejects_pending_as_decision(self) -> None:
        leave = self._apply(self.alice)
        response = self.client.post(
            f"/api/leaves/{leave['id']}/review",
            json={"status": "pending"},
            headers=self._headers(self.admin),
        )
        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.json()["error"]["code"], "VALIDATION_ERROR")

    def test_foreign_leave_is_hidden(self) -> None:
        leave = self._apply(self.alice)
        response = self.client.get(f"/api/leaves/{leave['id']}", headers=self._headers(self.bob))
        self.assertEqual(response.status_code, 404)

        listing = self.client.get("/api/leaves", headers=self._headers(self.bob))
        self.assertEqual(listing.json(), [])

        admin_listing = self.client.get("/api/leaves", params={"status": "pending"}, headers=self._headers(self.admin))
        self.assertEqual([row["id"] for row in admin_listing.json()], [leave["id"]])

    def test_end_before_start_is_rejected(self) -> None:
        response = self.client.post(
            "/api/leaves",
            json={"start_date": "2025-01-14", "end_date": "2025-01-10", "reason": "Trip"},
            headers=self._headers(self.alice),
        )
        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.json()["error"]["message"], "End date must be after start date")

    def test_attendance_check_in_twice_conflicts(self) -> None:
        first = self.client.post("/api/attendance/check-in", json={}, headers=self._headers(self.alice))
        self.assertEqual(first.status_code, 201)

        second = self.client.post("/api/attendance/check-in", json={}, headers=self._headers(self.alice))
        self.assertEqual(second.status_code, 409)
        self.assertEqual(second.json()["error"]["code"], "ATTENDANCE_ALREADY_MARKED")

        today = self.client.get("/api/attendance/today", headers=self._headers(self.alice)).json()
        self.assertTrue(today["marked"])

        checked_out = self.client.post(
            f"/api/attendance/{first.json()['id']}/check-out",
            headers=self._headers(self.alice),
        )
        self.assertEqual(checked_out.status_code, 200)
        self.assertIsNotNone(checked_out.json()["check_out"])

    def test_employee_cannot_check_in_for_someone_else(self) -> None:
        response = self.client.post(
            "/api/attendance/check-in",
            json={"employee_id": self.bob["identity_id"]},
            headers=self._headers(self.alice),
        )
        self.assertEqual(response.status_code, 403)

    def test_dashboard_and_activity_feed(self) -> None:
        self._apply(self.alice)

        dashboard = self.client.get("/api/dashboard", headers=self._headers(self.admin))
        self.assertEqual(dashboard.status_code, 200)
        payload = dashboard.json()
        self.assertEqual(payload["stats"]["total_employees"], 3)
        self.assertEqual(payload["stats"]["pending_leaves"], 1)
        self.assertEqual(payload["recent_activity"][0]["author"]["full_name"], "Alice Johnson")

        feed = self.client.get("/api/activity-logs", params={"limit": 5}, headers=self._headers(self.bob))
        self.assertEqual(feed.status_code, 200)
        self.assertEqual(feed.json()[0]["action"], "applied")


class SystemEndpointTests(ApiTestCase):
    def test_seed_endpoint_is_hidden_by_default(self) -> None:
        response = self.client.post("/api/system/seed-demo")
        self.assertEqual(response.status_code, 404)

    def test_seed_endpoint_when_enabled(self) -> None:
        with patch.dict(os.environ, {"SEED_ENDPOINT_ENABLED": "true"}, clear=False):
            get_settings.cache_clear()
            first = self.client.post("/api/system/seed-demo")
            second = self.client.post("/api/system/seed-demo")

        self.assertEqual(first.status_code, 200)
        self.assertEqual(len(first.json()["users"]), 3)
        self.assertEqual(second.json()["message"], "Demo users already exist. Seed has already been run.")

    def test_health_reports_schema_guard_not_run(self) -> None:
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "ok")
        self.assertIn("schema_guard", response.json())


if __name__ == "__main__":
    unittest.main()
