# tests/test_dashboard_routes.py
import unittest
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

from recon.routes.dashboard import dashboard_bp
from recon.routes.stages import stages_bp
from recon.services.types import Completion, Stage, Vehicle
from recon.tests_routes.support import RouteTestCase, auth_header

INTAKE = Stage(id="s1", order=1, name="Pending Approval", required_role="Manager", target_hours=24)
DETAIL = Stage(id="s2", order=2, name="Awaiting Detail", required_role="Detail", target_hours=96)
READY = Stage(id="s3", order=3, name="Ready for Sale", required_role="Sales", is_terminal=True)


def _vehicle(vid, days_old):
    return Vehicle(id=vid, intake_timestamp=datetime.now(timezone.utc) - timedelta(days=days_old, hours=1))


class TestDashboardRoutes(RouteTestCase):
    blueprint = dashboard_bp

    @patch("recon.routes.dashboard.catalog.fetch_completions")
    @patch("recon.routes.dashboard.catalog.fetch_vehicles")
    @patch("recon.routes.dashboard.catalog.fetch_stages")
    @patch("recon.routes.dashboard.get_conn")
    def test_dashboard_summary(self, mock_get_conn, mock_stages, mock_vehicles, mock_comps):
        self.wire(mock_get_conn)
        mock_stages.return_value = [INTAKE, DETAIL, READY]
        mock_vehicles.return_value = [_vehicle("a", 0), _vehicle("b", 2), _vehicle("c", 9), _vehicle("d", 20)]
        mock_comps.return_value = [
            Completion(vehicle_id="c", stage_id="s1", value="yes"),
            Completion(vehicle_id="d", stage_id="s1", value="yes"),
            Completion(vehicle_id="d", stage_id="s2", value="Dana"),
        ]

        response = self.client.get("/api/dashboard", headers=auth_header(["Sales"]))

        self.assertEqual(response.status_code, 200)
        data = response.get_json()
        self.assertEqual(data["total_vehicles"], 4)
        # b (intake, 2 days) and c (detail, 9 days) are overdue
        self.assertEqual(data["sla_compliance"], 50)

        counts = [(m["stage"]["stage_name"], m["count"], m["overdue_count"]) for m in data["stage_metrics"]]
        self.assertEqual(counts, [("Pending Approval", 2, 1), ("Awaiting Detail", 1, 1), ("Ready for Sale", 1, 0)])
        self.assertEqual(data["stage_metrics"][0]["avg_age_days"], 1.0)

        roles = {r["role"]: r["count"] for r in data["role_metrics"]}
        self.assertEqual(roles, {"Manager": 2, "Service": 2, "Detail": 3, "Sales": 3})
        self.assertEqual(data["aging"], {"0-3": 2, "4-7": 0, "8-14": 1, "15+": 1})

    @patch("recon.routes.dashboard.catalog.fetch_stages")
    @patch("recon.routes.dashboard.get_conn")
    def test_dashboard_empty_fleet(self, mock_get_conn, mock_stages):
        self.wire(mock_get_conn)
        mock_stages.return_value = []
        with patch("recon.routes.dashboard.catalog.fetch_vehicles", return_value=[]), \
             patch("recon.routes.dashboard.catalog.fetch_completions", return_value=[]):
            response = self.client.get("/api/dashboard", headers=auth_header(["Detail"]))

        data = response.get_json()
        self.assertEqual(data["sla_compliance"], 100)
        self.assertEqual(data["stage_metrics"], [])

    @patch("recon.routes.dashboard.catalog.fetch_stages")
    @patch("recon.routes.dashboard.get_conn")
    def test_dashboard_db_error(self, mock_get_conn, mock_stages):
        self.wire(mock_get_conn)
        mock_stages.side_effect = RuntimeError("connection reset")
        response = self.client.get("/api/dashboard", headers=auth_header(["Manager"]))
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.get_json()["error"], "server_error")


class TestStagesRoutes(RouteTestCase):
    blueprint = stages_bp

    @patch("recon.routes.stages.catalog.fetch_stages")
    @patch("recon.routes.stages.get_conn")
    def test_list_stages_marks_access(self, mock_get_conn, mock_stages):
        self.wire(mock_get_conn)
        mock_stages.return_value = [INTAKE, DETAIL, READY]

        response = self.client.get("/api/stages", headers=auth_header(["Detail"]))

        stages = response.get_json()["stages"]
        self.assertEqual([s["stage_name"] for s in stages], ["Pending Approval", "Awaiting Detail", "Ready for Sale"])
        self.assertEqual([s["can_access"] for s in stages], [False, True, False])

    @patch("recon.routes.stages.catalog.fetch_dropdown_lists")
    @patch("recon.routes.stages.get_conn")
    def test_dropdown_lists(self, mock_get_conn, mock_lists):
        self.wire(mock_get_conn)
        mock_lists.return_value = [{"id": "l1", "list_name": "Detailers", "values": ["John D.", "Maria S."]}]

        response = self.client.get("/api/dropdown-lists", headers=auth_header(["Detail"]))

        self.assertEqual(response.get_json()["dropdown_lists"][0]["values"], ["John D.", "Maria S."])


if __name__ == "__main__":
    unittest.main()
