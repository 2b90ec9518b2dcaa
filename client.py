import requests
from typing import Iterable, Optional
from urllib.parse import quote


class StrengthNoteClient:
    """Simple REST client for the strength note API."""

    def __init__(self, base_url: str = "http://localhost:8000", timeout: float = 5.0) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def save_record(self, date: str, exercise_name: str, unit: str, rows: Iterable[dict]) -> dict:
        resp = requests.post(
            f"{self.base_url}/records",
            json={
                "dateStr": date,
                "exerciseName": exercise_name,
                "unit": unit,
                "rows": list(rows),
            },
            timeout=self.timeout,
        )
        resp.raise_for_status()
        return resp.json()

    def records_by_date(self, date: str) -> list:
        resp = requests.get(f"{self.base_url}/records/date/{date}", timeout=self.timeout)
        resp.raise_for_status()
        return resp.json()

    def delete_record(self, record_id: str) -> None:
        url = f"{self.base_url}/records/{quote(record_id, safe='')}"
        resp = requests.delete(url, timeout=self.timeout)
        resp.raise_for_status()

    def add_plan(self, date: str, exercise_name: str, part: str = "") -> dict:
        resp = requests.post(
            f"{self.base_url}/plans",
            params={"date": date, "name": exercise_name, "part": part},
            timeout=self.timeout,
        )
        resp.raise_for_status()
        return resp.json()

    def history(self, exercise_name: str, unit: str = "kg", days: Optional[int] = None) -> dict:
        params = {"name": exercise_name, "unit": unit}
        if days is not None:
            params["days"] = days
        resp = requests.get(f"{self.base_url}/history", params=params, timeout=self.timeout)
        resp.raise_for_status()
        return resp.json()
