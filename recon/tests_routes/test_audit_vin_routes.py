# tests/test_audit_vin_routes.py
import unittest
import uuid
from unittest.mock import MagicMock, patch

from recon.routes.audit import audit_bp
from recon.routes.vin import vin_bp
from recon.tests_routes.support import DEALERSHIP, RouteTestCase, auth_header


class TestAuditLogRoutes(RouteTestCase):
    blueprint = audit_bp

    @patch("recon.routes.audit.fetch_audit_log")
    @patch("recon.routes.audit.get_conn")
    def test_limit_is_clamped(self, mock_get_conn, mock_fetch):
        self.wire(mock_get_conn)
        mock_fetch.return_value = []

        self.client.get("/api/audit-log?limit=5000", headers=auth_header(["Manager"]))
        self.assertEqual(mock_fetch.call_args[1]["limit"], 500)

        self.client.get("/api/audit-log?limit=0", headers=auth_header(["Manager"]))
        self.assertEqual(mock_fetch.call_args[1]["limit"], 1)

        self.client.get("/api/audit-log", headers=auth_header(["Manager"]))
        self.assertEqual(mock_fetch.call_args[1]["limit"], 100)

    @patch("recon.routes.audit.fetch_audit_log")
    @patch("recon.routes.audit.get_conn")
    def test_filter_by_vehicle(self, mock_get_conn, mock_fetch):
        self.wire(mock_get_conn)
        vid = str(uuid.UUID(int=4))
        mock_fetch.return_value = [{"id": "a1", "action": "complete", "vehicle_id": vid}]

        response = self.client.get(f"/api/audit-log?vehicle_id={vid}", headers=auth_header(["Manager"]))

        self.assertEqual(response.get_json()["count"], 1)
        args, kwargs = mock_fetch.call_args
        self.assertEqual(args[1], DEALERSHIP)
        self.assertEqual(kwargs["vehicle_id"], vid)

    @patch("recon.routes.audit.get_conn")
    def test_bad_vehicle_id(self, mock_get_conn):
        response = self.client.get("/api/audit-log?vehicle_id=nope", headers=auth_header(["Manager"]))
        self.assertEqual(response.status_code, 400)

    @patch("recon.routes.audit.get_conn")
    def test_manager_only(self, mock_get_conn):
        response = self.client.get("/api/audit-log", headers=auth_header(["Detail"]))
        self.assertEqual(response.status_code, 403)


class TestVinRoutes(RouteTestCase):
    blueprint = vin_bp

    def setUp(self):
        super().setUp()
        self.decoder = MagicMock()
        self.app.extensions["vin_decoder"] = self.decoder

    def test_decode(self):
        self.decoder.decode.return_value = {
            "vin": "1GNSKJKC4LR123456", "year": "2020", "make": "Chevrolet", "model": "Tahoe",
            "decoded_offline": False,
        }
        response = self.client.get("/api/vin/1GNSKJKC4LR123456", headers=auth_header(["Sales"]))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()["model"], "Tahoe")

    def test_decode_invalid_vin(self):
        response = self.client.get("/api/vin/ABC", headers=auth_header(["Sales"]))
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()["error"], "invalid_vin")
        self.decoder.decode.assert_not_called()

    def test_models(self):
        self.decoder.models_for.return_value = ["Enclave", "Encore"]
        response = self.client.get("/api/vin-models?make=Buick&year=2023", headers=auth_header(["Sales"]))

        self.assertEqual(response.get_json()["models"], ["Enclave", "Encore"])
        self.decoder.models_for.assert_called_once_with("Buick", 2023)

    def test_models_bad_year(self):
        response = self.client.get("/api/vin-models?make=Buick&year=soon", headers=auth_header(["Sales"]))
        self.assertEqual(response.status_code, 400)

    def test_requires_token(self):
        response = self.client.get("/api/vin/1GNSKJKC4LR123456")
        self.assertEqual(response.status_code, 401)


if __name__ == "__main__":
    unittest.main()
