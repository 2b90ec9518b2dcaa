import os
import sys
import unittest
from urllib.parse import quote

from fastapi.testclient import TestClient
import yaml

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from db import MemorySnapshotStore
from rest_api import StrengthNoteAPI


ROWS = [
    {"weight": "100", "reps": "5", "rpe": "8"},
    {"weight": "0", "reps": "5", "rpe": ""},
]


class APITestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.db_path = "test_strengthnote.db"
        self.yaml_path = "test_settings.yaml"
        for path in (self.db_path, self.yaml_path):
            if os.path.exists(path):
                os.remove(path)
        self.api = StrengthNoteAPI(db_path=self.db_path, yaml_path=self.yaml_path)
        self.client = TestClient(self.api.app)

    def tearDown(self) -> None:
        for path in (self.db_path, self.yaml_path):
            if os.path.exists(path):
                os.remove(path)

    def save(self, date: str, name: str, rows=ROWS, unit: str = "kg") -> dict:
        resp = self.client.post(
            "/records",
            json={"dateStr": date, "exerciseName": name, "unit": unit, "rows": rows},
        )
        self.assertEqual(resp.status_code, 200)
        return resp.json()

    def test_health(self) -> None:
        resp = self.client.get("/health")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {"status": "ok"})

    def test_record_workflow(self) -> None:
        first = self.save("2024-01-01", "Bench Press")
        self.assertEqual(first["totals"], {"loadKg": 500.0, "reps": 5, "sets": 1})
        self.assertEqual(first["rows"], ROWS)

        second = self.save("2024-01-01", "Bench Press", rows=[{"weight": "80", "reps": "3", "rpe": ""}])
        resp = self.client.get("/records/exercise", params={"name": "Bench Press", "unit": "kg"})
        data = resp.json()
        self.assertEqual(len(data), 1)
        self.assertEqual(data[0]["id"], second["id"])
        self.assertEqual(data[0]["totals"]["loadKg"], 240.0)

        resp = self.client.get("/records/date/2024-01-01")
        self.assertEqual([r["exerciseName"] for r in resp.json()], ["Bench Press"])

        resp = self.client.get("/records/latest", params={"name": "Bench Press"})
        self.assertEqual(resp.json()["id"], second["id"])

        resp = self.client.delete(f"/records/{quote(second['id'], safe='')}")
        self.assertEqual(resp.json(), {"status": "deleted"})
        resp = self.client.delete(f"/records/{quote(second['id'], safe='')}")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(self.client.get("/records").json(), [])
        resp = self.client.get("/records/latest", params={"name": "Bench Press"})
        self.assertEqual(resp.status_code, 404)

    def test_invalid_input_rejected(self) -> None:
        resp = self.client.post(
            "/records",
            json={"dateStr": "2024/01/01", "exerciseName": "Squat", "unit": "kg", "rows": []},
        )
        self.assertEqual(resp.status_code, 400)
        resp = self.client.post(
            "/records",
            json={"dateStr": "2024-01-01", "exerciseName": "Squat", "unit": "stone", "rows": []},
        )
        self.assertEqual(resp.status_code, 422)
        resp = self.client.get("/records/exercise", params={"name": "Squat", "unit": "oz"})
        self.assertEqual(resp.status_code, 400)
        resp = self.client.get("/history", params={"name": "Squat", "days": 14})
        self.assertEqual(resp.status_code, 400)

    def test_bulk_add_resets_totals(self) -> None:
        self.save("2024-01-02", "Squat")
        resp = self.client.post(
            "/records/bulk", params={"date": "2024-01-02"}, json=["Squat", " Squat ", "Lunge", ""]
        )
        self.assertEqual(resp.status_code, 200)
        self.assertEqual([r["exerciseName"] for r in resp.json()], ["Squat", "Lunge"])
        records = self.client.get("/records/date/2024-01-02").json()
        self.assertEqual(len(records), 2)
        for record in records:
            self.assertEqual(record["totals"], {"loadKg": 0.0, "reps": 0, "sets": 0})

    def test_plans(self) -> None:
        plan = self.client.post(
            "/plans", params={"date": "2024-01-03", "name": "Row", "part": "back"}
        ).json()
        self.client.post("/plans", params={"date": "2024-01-03", "name": "Row", "part": "back"})
        self.client.post("/plans", params={"date": "2024-01-04", "name": "Squat", "part": "legs"})
        self.assertEqual(len(self.client.get("/plans", params={"date": "2024-01-03"}).json()), 2)

        self.client.post(f"/plans/{quote(plan['id'], safe='')}/toggle")
        plans = {p["id"]: p for p in self.client.get("/plans").json()}
        self.assertTrue(plans[plan["id"]]["done"])

        self.client.delete(f"/plans/{quote(plan['id'], safe='')}")
        self.assertEqual(len(self.client.get("/plans").json()), 2)
        self.client.delete("/plans/date/2024-01-03")
        remaining = self.client.get("/plans").json()
        self.assertEqual([p["dateStr"] for p in remaining], ["2024-01-04"])

    def test_history_with_live_point(self) -> None:
        self.save("2024-01-01", "Bench Press")
        self.save("2024-01-10", "Bench Press")
        self.save("2024-02-01", "Bench Press")
        resp = self.client.get("/history", params={"name": "Bench Press", "days": 7})
        self.assertEqual([r["dateStr"] for r in resp.json()["records"]], ["2024-02-01"])

        resp = self.client.get(
            "/history",
            params={
                "name": "Bench Press",
                "days": 30,
                "live_date": "2024-02-03",
                "live_load_kg": 650,
                "live_reps": 10,
                "live_sets": 2,
            },
        )
        data = resp.json()
        self.assertEqual(
            [r["dateStr"] for r in data["records"]],
            ["2024-01-10", "2024-02-01", "2024-02-03"],
        )
        self.assertEqual(data["records"][-1]["id"], "live-2024-02-03")
        self.assertTrue(data["summary"]["trending_up"])
        self.assertEqual(data["summary"]["latest_load_kg"], 650.0)

    def test_history_summaries(self) -> None:
        self.save("2024-01-01", "Bench Press")
        self.save("2024-01-01", "Squat", rows=[{"weight": "100", "reps": "10", "rpe": ""}])
        resp = self.client.get(
            "/history/previous",
            params={"date": "2024-01-01", "name": "Bench Press", "unit": "kg"},
        )
        self.assertEqual(resp.json(), {"loadKg": 500.0, "reps": 5, "sets": 1})
        resp = self.client.get(
            "/history/previous",
            params={"date": "2024-01-02", "name": "Bench Press", "unit": "kg"},
        )
        self.assertEqual(resp.json(), {"loadKg": 0.0, "reps": 0, "sets": 0})
        daily = self.client.get("/history/daily/2024-01-01").json()
        self.assertEqual(daily["exercises"], 2)
        self.assertEqual(daily["load_kg"], 1500.0)
        self.assertEqual(self.client.get("/history/dates").json(), ["2024-01-01"])

    def test_entry_draft_and_recent(self) -> None:
        entry = {
            "unit": "kg",
            "rows": [{"weight": "60", "reps": "10", "rpe": ""}, {"weight": "", "reps": "", "rpe": ""}],
            "exerciseName": "Press",
            "dateStr": "2024-01-05",
        }
        self.assertEqual(self.client.put("/draft", json=entry).json(), {"status": "saved"})
        self.assertEqual(self.client.get("/draft").json(), entry)

        record = self.client.post("/entries/save", json=entry).json()
        self.assertEqual(record["totals"], {"loadKg": 600.0, "reps": 10, "sets": 1})
        recent = self.client.get("/recent", params={"name": "Press"}).json()
        self.assertEqual(recent, [{"weight": "60", "reps": "10", "rpe": ""}])
        self.assertEqual(self.client.get("/recent", params={"name": "Press", "unit": "lb"}).status_code, 404)

        fresh = self.client.delete("/draft", params={"date": "2024-01-06", "name": "Press"}).json()
        self.assertEqual(fresh["dateStr"], "2024-01-06")
        self.assertEqual(len(fresh["rows"]), 3)
        self.assertIsNone(self.client.get("/draft").json())

    def test_empty_entry_saves_nothing(self) -> None:
        entry = {"unit": "kg", "rows": [], "exerciseName": "Press", "dateStr": "2024-01-05"}
        resp = self.client.post("/entries/save", json=entry)
        self.assertEqual(resp.status_code, 200)
        self.assertIsNone(resp.json())
        self.assertEqual(self.client.get("/records").json(), [])

    def test_ids_with_slashes(self) -> None:
        record = self.save("2024-01-01", "Incline/Flat Press")
        resp = self.client.delete(f"/records/{quote(record['id'], safe='')}")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(self.client.get("/records").json(), [])

        plan = self.client.post(
            "/plans", params={"date": "2024-01-01", "name": "Incline/Flat Press", "part": "chest"}
        ).json()
        resp = self.client.post(f"/plans/{quote(plan['id'], safe='')}/toggle")
        self.assertEqual(resp.status_code, 200)
        self.assertTrue(self.client.get("/plans").json()[0]["done"])
        resp = self.client.delete(f"/plans/{quote(plan['id'], safe='')}")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(self.client.get("/plans").json(), [])

    def test_zero_days_rejected(self) -> None:
        resp = self.client.get("/history", params={"name": "Squat", "days": 0})
        self.assertEqual(resp.status_code, 400)

    def test_huge_weight_saved(self) -> None:
        record = self.save("2024-01-01", "Squat", rows=[{"weight": "1e308", "reps": "10", "rpe": ""}])
        self.assertEqual(record["totals"]["sets"], 1)

    def test_convert(self) -> None:
        resp = self.client.get("/convert", params={"weight": 100, "unit": "lb"})
        self.assertEqual(resp.json(), {"weight": 45.36, "unit": "kg"})
        resp = self.client.get("/convert", params={"weight": 100, "unit": "kg"})
        self.assertEqual(resp.json(), {"weight": 220.46, "unit": "lb"})


class APISettingsTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.yaml_path = "test_api_settings.yaml"
        with open(self.yaml_path, "w", encoding="utf-8") as f:
            yaml.safe_dump({"history_range_days": 7, "max_rows": 4}, f)

    def tearDown(self) -> None:
        if os.path.exists(self.yaml_path):
            os.remove(self.yaml_path)

    def test_settings_drive_defaults(self) -> None:
        api = StrengthNoteAPI(yaml_path=self.yaml_path, store=MemorySnapshotStore())
        self.assertEqual(api.history.default_days, 7)
        self.assertEqual(api.log.max_rows, 4)
        client = TestClient(api.app)
        for date in ("2024-01-01", "2024-01-20"):
            client.post(
                "/records",
                json={"dateStr": date, "exerciseName": "Squat", "unit": "kg", "rows": ROWS},
            )
        resp = client.get("/history", params={"name": "Squat"})
        self.assertEqual([r["dateStr"] for r in resp.json()["records"]], ["2024-01-20"])


if __name__ == "__main__":
    unittest.main()
