import os
import sys
import unittest
from unittest import mock

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from client import StrengthNoteClient


class ClientTest(unittest.TestCase):
    def setUp(self) -> None:
        self.client = StrengthNoteClient(base_url="http://testserver/")

    @mock.patch("client.requests.post")
    def test_save_record(self, post) -> None:
        post.return_value.json.return_value = {"id": "x"}
        rows = [{"weight": "100", "reps": "5", "rpe": ""}]
        result = self.client.save_record("2024-01-01", "Squat", "kg", rows)
        self.assertEqual(result, {"id": "x"})
        args, kwargs = post.call_args
        self.assertEqual(args[0], "http://testserver/records")
        self.assertEqual(kwargs["json"]["exerciseName"], "Squat")
        self.assertEqual(kwargs["json"]["rows"], rows)
        post.return_value.raise_for_status.assert_called_once()

    @mock.patch("client.requests.delete")
    def test_delete_record_quotes_id(self, delete) -> None:
        self.client.delete_record("2024-01-01:Bench Press:abc")
        url = delete.call_args[0][0]
        self.assertEqual(url, "http://testserver/records/2024-01-01%3ABench%20Press%3Aabc")

    @mock.patch("client.requests.get")
    def test_history_params(self, get) -> None:
        get.return_value.json.return_value = {"records": [], "summary": None}
        self.client.history("Squat", days=7)
        self.assertEqual(get.call_args[1]["params"], {"name": "Squat", "unit": "kg", "days": 7})
        self.client.records_by_date("2024-01-01")
        self.assertEqual(get.call_args[0][0], "http://testserver/records/date/2024-01-01")

    @mock.patch("client.requests.post")
    def test_add_plan(self, post) -> None:
        self.client.add_plan("2024-01-01", "Row", "back")
        self.assertEqual(
            post.call_args[1]["params"], {"date": "2024-01-01", "name": "Row", "part": "back"}
        )


if __name__ == "__main__":
    unittest.main()
