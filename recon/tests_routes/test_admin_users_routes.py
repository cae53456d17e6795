# tests/test_admin_users_routes.py
import unittest
import uuid
from datetime import datetime
from unittest.mock import patch

from recon.routes.admin_users import admin_users_bp
from recon.tests_routes.support import RouteTestCase, auth_header

UID = str(uuid.UUID(int=5))


class TestAdminUsersRoutes(RouteTestCase):
    blueprint = admin_users_bp

    def _returned_user(self, **over):
        row = {"id": uuid.UUID(UID), "name": "Maria S.", "roles": ["Detail"], "active": True,
               "created_at": datetime(2025, 1, 1, 9, 0)}
        row.update(over)
        return row

    @patch("recon.routes.admin_users.get_conn")
    def test_create_user_success(self, mock_get_conn):
        self.wire(mock_get_conn)
        self.mock_result.mappings.return_value.all.return_value = []
        self.mock_result.mappings.return_value.one.return_value = self._returned_user()

        with patch("recon.routes.admin_users.pwd_ctx.hash", return_value="$2b$12$hashed") as mock_hash:
            response = self.client.post(
                "/api/admin/users",
                json={"name": " Maria S. ", "pin": "2468", "roles": ["detail"]},
                headers=auth_header(["Manager"]),
            )

        self.assertEqual(response.status_code, 201)
        user = response.get_json()["user"]
        self.assertEqual(user["id"], UID)
        self.assertNotIn("pin_hash", user)
        mock_hash.assert_called_once_with("2468")

        params = self.mock_conn.execute.call_args[0][1]
        self.assertEqual(params["name"], "Maria S.")
        self.assertEqual(params["roles"], ["Detail"])
        self.assertEqual(params["hash"], "$2b$12$hashed")
        self.mock_tx.commit.assert_called_once()

    @patch("recon.routes.admin_users.get_conn")
    def test_create_user_duplicate_pin(self, mock_get_conn):
        self.wire(mock_get_conn)
        self.mock_result.mappings.return_value.all.return_value = [{"id": uuid.UUID(int=1), "pin_hash": "$2b$12$x"}]

        with patch("recon.routes.admin_users._verify_pin", return_value=True):
            response = self.client.post(
                "/api/admin/users",
                json={"name": "Maria", "pin": "0000", "roles": ["Detail"]},
                headers=auth_header(["Manager"]),
            )

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.get_json()["error"], "pin_exists")
        self.mock_tx.rollback.assert_called_once()

    @patch("recon.routes.admin_users.get_conn")
    def test_create_user_unauthorized(self, mock_get_conn):
        response = self.client.post("/api/admin/users", json={"name": "x", "pin": "1", "roles": ["Sales"]})
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.get_json()["error"], "unauthorized")

    @patch("recon.routes.admin_users.get_conn")
    def test_create_user_forbidden(self, mock_get_conn):
        response = self.client.post(
            "/api/admin/users",
            json={"name": "x", "pin": "1", "roles": ["Sales"]},
            headers=auth_header(["Sales", "Service"]),
        )
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.get_json()["error"], "insufficient_role")
        mock_get_conn.assert_not_called()

    @patch("recon.routes.admin_users.get_conn")
    def test_create_user_unknown_role(self, mock_get_conn):
        response = self.client.post(
            "/api/admin/users",
            json={"name": "x", "pin": "1", "roles": ["Porter"]},
            headers=auth_header(["Manager"]),
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn("Manager", response.get_json()["hint"]["roles_allowed"])

    @patch("recon.routes.admin_users.get_conn")
    def test_create_user_missing_required_fields(self, mock_get_conn):
        response = self.client.post("/api/admin/users", json={"name": "x"}, headers=auth_header(["Manager"]))
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()["error"], "bad_request")

    @patch("recon.routes.admin_users.get_conn")
    def test_list_users(self, mock_get_conn):
        self.wire(mock_get_conn)
        self.mock_result.mappings.return_value.all.return_value = [self._returned_user()]

        response = self.client.get("/api/admin/users", headers=auth_header(["Manager"]))

        users = response.get_json()["users"]
        self.assertEqual(users[0]["created_at"], "2025-01-01T09:00:00")

    @patch("recon.routes.admin_users.get_conn")
    def test_deactivate_user(self, mock_get_conn):
        self.wire(mock_get_conn)
        self.mock_result.mappings.return_value.one_or_none.return_value = self._returned_user(active=False)

        response = self.client.patch(f"/api/admin/users/{UID}", json={"active": False}, headers=auth_header(["Manager"]))

        self.assertEqual(response.status_code, 200)
        self.assertFalse(response.get_json()["user"]["active"])
        sql, params = self.mock_conn.execute.call_args[0]
        self.assertIn("active = :active", str(sql))
        self.assertIs(params["active"], False)

    @patch("recon.routes.admin_users.get_conn")
    def test_update_user_not_found(self, mock_get_conn):
        self.wire(mock_get_conn)
        self.mock_result.mappings.return_value.one_or_none.return_value = None

        response = self.client.patch(f"/api/admin/users/{UID}", json={"name": "New"}, headers=auth_header(["Manager"]))
        self.assertEqual(response.status_code, 404)

    @patch("recon.routes.admin_users.get_conn")
    def test_update_user_rejects_non_boolean_active(self, mock_get_conn):
        response = self.client.patch(f"/api/admin/users/{UID}", json={"active": "no"}, headers=auth_header(["Manager"]))
        self.assertEqual(response.status_code, 400)
        mock_get_conn.assert_not_called()


if __name__ == "__main__":
    unittest.main()
