from typing import List, Optional

from fastapi import APIRouter, Body, FastAPI, HTTPException

from algorithms import WeightConverter
from config import YamlConfig
from db import (
    DraftRepository,
    PlanRepository,
    RecentEntryRepository,
    RecordRepository,
    SnapshotStore,
    SqliteSnapshotStore,
)
from history_service import HistoryService
from log_service import LogService
from models import UNITS, EntrySnapshot, LiveTotals, RecordInput, is_valid_date_str
from settings_schema import HISTORY_RANGES, load_settings


def _check_date(date: str) -> None:
    if not is_valid_date_str(date):
        raise HTTPException(status_code=400, detail=f"invalid date: {date}")


def _check_unit(unit: Optional[str]) -> None:
    if unit is not None and unit not in UNITS:
        raise HTTPException(status_code=400, detail=f"invalid unit: {unit}")


def _check_days(days: int) -> None:
    if days not in HISTORY_RANGES:
        raise HTTPException(
            status_code=400, detail=f"days must be one of {list(HISTORY_RANGES)}"
        )


class StrengthNoteAPI:
    """Local REST endpoints over the record store and history."""

    def __init__(
        self,
        db_path: str | None = None,
        yaml_path: str = "settings.yaml",
        *,
        store: SnapshotStore | None = None,
    ) -> None:
        self.settings = load_settings(YamlConfig(yaml_path).load())
        self.store = store if store is not None else SqliteSnapshotStore(db_path)
        self.records = RecordRepository(self.store)
        self.plans = PlanRepository(self.store)
        self.recent = RecentEntryRepository(self.store)
        self.drafts = DraftRepository(self.store)
        self.history = HistoryService(
            self.records, default_days=self.settings.history_range_days
        )
        self.log = LogService(
            self.records, self.recent, self.drafts, max_rows=self.settings.max_rows
        )
        self.app = FastAPI(
            title="Strength Note API",
            description="REST API for exercise records and trend history",
        )
        self._setup_routes()

    def _setup_routes(self) -> None:
        records_router = APIRouter(prefix="/records", tags=["Records"])
        plans_router = APIRouter(prefix="/plans", tags=["Plans"])
        history_router = APIRouter(prefix="/history", tags=["History"])

        @self.app.get(
            "/health",
            summary="Health check",
            description="Verify API and storage connectivity.",
        )
        def health():
            self.records.get_records()
            return {"status": "ok"}

        @records_router.get("")
        def list_records():
            return [r.model_dump(by_alias=True) for r in self.records.get_records()]

        @records_router.post("")
        def upsert_record(record: RecordInput):
            _check_date(record.date_str)
            saved = self.records.upsert_record(
                record.date_str, record.exercise_name, record.unit, record.rows
            )
            return saved.model_dump(by_alias=True)

        @records_router.post("/bulk")
        def add_exercises(date: str, names: List[str] = Body(...), unit: str = "kg"):
            _check_date(date)
            _check_unit(unit)
            created = self.records.add_exercises_for_date(date, names, unit)
            return [r.model_dump(by_alias=True) for r in created]

        @records_router.get("/date/{date}")
        def records_by_date(date: str):
            _check_date(date)
            return [
                r.model_dump(by_alias=True)
                for r in self.records.get_records_by_date(date)
            ]

        @records_router.get("/exercise")
        def records_by_exercise(name: str, unit: Optional[str] = None):
            _check_unit(unit)
            return [
                r.model_dump(by_alias=True)
                for r in self.records.get_records_by_exercise(name, unit)
            ]

        @records_router.get("/latest")
        def latest_record(name: str, unit: str = "kg"):
            _check_unit(unit)
            record = self.records.get_latest_by_exercise(name, unit)
            if record is None:
                raise HTTPException(status_code=404, detail="no record")
            return record.model_dump(by_alias=True)

        @records_router.delete("/{record_id:path}")
        def delete_record(record_id: str):
            self.records.delete_record_by_id(record_id)
            return {"status": "deleted"}

        @plans_router.get("")
        def list_plans(date: Optional[str] = None):
            if date is None:
                plans = self.plans.get_all_plans()
            else:
                _check_date(date)
                plans = self.plans.get_plans_by_date(date)
            return [p.model_dump(by_alias=True) for p in plans]

        @plans_router.post("")
        def add_plan(date: str, name: str, part: str = ""):
            _check_date(date)
            return self.plans.add_plan(date, name, part).model_dump(by_alias=True)

        @plans_router.post("/{plan_id:path}/toggle")
        def toggle_plan(plan_id: str):
            self.plans.toggle_done(plan_id)
            return {"status": "toggled"}

        @plans_router.delete("/date/{date}")
        def clear_plans(date: str):
            _check_date(date)
            self.plans.clear_plans_by_date(date)
            return {"status": "cleared"}

        @plans_router.delete("/{plan_id:path}")
        def remove_plan(plan_id: str):
            self.plans.remove_plan(plan_id)
            return {"status": "deleted"}

        @history_router.get("")
        def exercise_history(
            name: str,
            unit: str = "kg",
            days: Optional[int] = None,
            live_date: Optional[str] = None,
            live_load_kg: float = 0.0,
            live_reps: int = 0,
            live_sets: int = 0,
        ):
            _check_unit(unit)
            if days is None:
                days = self.settings.history_range_days
            _check_days(days)
            live = None
            if live_date:
                live = LiveTotals(
                    date_str=live_date,
                    load_kg=live_load_kg,
                    reps=live_reps,
                    sets=live_sets,
                    exercise_name=name,
                    unit=unit,
                )
            series = self.history.exercise_history(name, unit, live, days)
            return {
                "records": [r.model_dump(by_alias=True) for r in series],
                "summary": self.history.trend_summary(series),
            }

        @history_router.get("/previous")
        def previous_totals(date: str, name: str, unit: str = "kg"):
            _check_date(date)
            _check_unit(unit)
            return self.history.previous_totals(date, name, unit).model_dump(
                by_alias=True
            )

        @history_router.get("/daily/{date}")
        def daily_summary(date: str):
            _check_date(date)
            return self.history.daily_summary(date)

        @history_router.get("/dates")
        def trained_dates():
            return self.history.trained_dates()

        @self.app.get("/draft")
        def get_draft():
            draft = self.log.restore_draft()
            return draft.model_dump(by_alias=True) if draft else None

        @self.app.put("/draft")
        def put_draft(entry: EntrySnapshot):
            if not self.drafts.save(entry):
                raise HTTPException(status_code=503, detail="draft not saved")
            return {"status": "saved"}

        @self.app.delete("/draft")
        def fresh_draft(
            date: Optional[str] = None,
            name: Optional[str] = None,
            unit: str = "kg",
        ):
            _check_unit(unit)
            return self.log.fresh_entry(date, name, unit).model_dump(by_alias=True)

        @self.app.get("/recent")
        def recent_rows(name: str, unit: str = "kg"):
            _check_unit(unit)
            rows = self.log.copy_last(name, unit)
            if rows is None:
                raise HTTPException(status_code=404, detail="no recent entry")
            return [r.model_dump() for r in rows]

        @self.app.post("/entries/save")
        def save_entry(entry: EntrySnapshot):
            _check_date(entry.date_str)
            record = self.log.save_entry(entry)
            return record.model_dump(by_alias=True) if record else None

        @self.app.get("/convert")
        def convert(weight: float, unit: str):
            _check_unit(unit)
            if unit == "kg":
                return {"weight": WeightConverter.kg_to_lb(weight), "unit": "lb"}
            return {"weight": WeightConverter.lb_to_kg(weight), "unit": "kg"}

        self.app.include_router(records_router)
        self.app.include_router(plans_router)
        self.app.include_router(history_router)


def create_app(db_path: str | None = None, yaml_path: str = "settings.yaml") -> FastAPI:
    return StrengthNoteAPI(db_path=db_path, yaml_path=yaml_path).app


if __name__ == "__main__":
    import uvicorn

    from logger import setup_logger

    api = StrengthNoteAPI()
    setup_logger(api.settings.log_level, api.settings.log_file)
    uvicorn.run(api.app)
