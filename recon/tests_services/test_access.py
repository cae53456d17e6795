# tests/test_access.py
import unittest
from datetime import datetime, timedelta, timezone

from recon.services.access import accessible_stages, apply_completion, can_access_stage
from recon.services.types import Completion, Stage, Vehicle

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


class TestCanAccessStage(unittest.TestCase):

    def setUp(self):
        self.service = Stage(id="svc", order=2, name="Awaiting Service", required_role="Service")
        self.detail = Stage(id="det", order=1, name="Awaiting Detail", required_role="Detail")

    def test_role_without_ownership_is_denied(self):
        self.assertFalse(can_access_stage({"Sales"}, self.service))

    def test_owning_role_is_allowed(self):
        self.assertTrue(can_access_stage({"Sales", "Service"}, self.service))

    def test_manager_sees_every_stage(self):
        self.assertTrue(can_access_stage({"Manager"}, self.service))
        self.assertTrue(can_access_stage(["Manager"], self.detail))

    def test_no_roles(self):
        self.assertFalse(can_access_stage(set(), self.service))
        self.assertFalse(can_access_stage(None, self.service))

    def test_accessible_stages_are_ordered(self):
        stages = [self.service, self.detail]
        self.assertEqual(accessible_stages({"Manager"}, stages), [self.detail, self.service])
        self.assertEqual(accessible_stages({"Detail"}, stages), [self.detail])


class TestApplyCompletion(unittest.TestCase):

    def setUp(self):
        self.vehicle = Vehicle(id="v1", intake_timestamp=NOW - timedelta(days=1))
        self.stage = Stage(id="s1", order=1, name="Awaiting Detail", required_role="Detail")

    def test_value_creates_completed_record(self):
        rec = apply_completion(self.vehicle, self.stage, "Maria", "John D.", NOW)
        self.assertEqual(rec, Completion(
            vehicle_id="v1", stage_id="s1", value="John D.",
            completed_by="Maria", completed_at=NOW, cleared_at=None,
        ))
        self.assertTrue(rec.satisfied)

    def test_value_overwrites_cleared_record(self):
        cleared = Completion(vehicle_id="v1", stage_id="s1", value=None, cleared_at=NOW)
        later = NOW + timedelta(hours=2)
        rec = apply_completion(self.vehicle, self.stage, "Maria", "done", later, existing=cleared)
        self.assertEqual(rec.value, "done")
        self.assertEqual(rec.completed_at, later)
        self.assertIsNone(rec.cleared_at)

    def test_empty_value_clears_but_keeps_row(self):
        existing = apply_completion(self.vehicle, self.stage, "Maria", "done", NOW)
        later = NOW + timedelta(hours=1)
        rec = apply_completion(self.vehicle, self.stage, "Maria", "", later, existing=existing)

        self.assertIsNotNone(rec)
        self.assertEqual((rec.vehicle_id, rec.stage_id), ("v1", "s1"))
        self.assertIsNone(rec.value)
        self.assertIsNone(rec.completed_by)
        self.assertIsNone(rec.completed_at)
        self.assertEqual(rec.cleared_at, later)
        self.assertFalse(rec.satisfied)

    def test_whitespace_counts_as_empty(self):
        existing = apply_completion(self.vehicle, self.stage, "Maria", "done", NOW)
        rec = apply_completion(self.vehicle, self.stage, "Maria", "   ", NOW, existing=existing)
        self.assertIsNone(rec.value)

    def test_empty_value_without_row_is_a_no_op(self):
        self.assertIsNone(apply_completion(self.vehicle, self.stage, "Maria", None, NOW))
        self.assertIsNone(apply_completion(self.vehicle, self.stage, "Maria", "", NOW))

    def test_clearing_an_already_cleared_record_is_a_no_op(self):
        existing = apply_completion(self.vehicle, self.stage, "Maria", "done", NOW)
        cleared = apply_completion(self.vehicle, self.stage, "Maria", "", NOW, existing=existing)
        later = NOW + timedelta(hours=1)
        self.assertIsNone(apply_completion(self.vehicle, self.stage, "Maria", "", later, existing=cleared))
        self.assertIsNone(apply_completion(self.vehicle, self.stage, "Maria", None, later, existing=cleared))

    def test_inputs_are_not_mutated(self):
        existing = apply_completion(self.vehicle, self.stage, "Maria", "done", NOW)
        apply_completion(self.vehicle, self.stage, "Maria", "", NOW, existing=existing)
        self.assertEqual(existing.value, "done")


if __name__ == "__main__":
    unittest.main()
