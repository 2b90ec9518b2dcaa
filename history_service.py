from __future__ import annotations

import datetime
from typing import Dict, List, Optional, Sequence

from algorithms import SetMath
from db import RecordRepository
from models import LiveTotals, RecordItem, Totals
from settings_schema import HISTORY_RANGES


def _parse_date(value: str) -> Optional[datetime.date]:
    try:
        return datetime.datetime.strptime(value, "%Y-%m-%d").date()
    except (TypeError, ValueError):
        return None


def merge_live(
    records: Sequence[RecordItem], live: Optional[LiveTotals] = None
) -> Sequence[RecordItem]:
    """Overlay unsaved totals onto ``records``.

    A live point without a date or with any non-positive total leaves
    ``records`` untouched. Otherwise the record sharing its date gets the
    live totals, or a synthetic ``live-<date>`` record is appended.
    """
    if (
        live is None
        or not live.date_str
        or live.sets <= 0
        or live.reps <= 0
        or live.load_kg <= 0
    ):
        return records

    merged: List[RecordItem] = []
    replaced = False
    for record in records:
        if record.date_str == live.date_str:
            merged.append(record.model_copy(update={"totals": live.totals()}))
            replaced = True
        else:
            merged.append(record)
    if not replaced:
        merged.append(
            RecordItem(
                id=f"live-{live.date_str}",
                date_str=live.date_str,
                exercise_name=live.exercise_name,
                unit=live.unit,
                rows=[],
                totals=live.totals(),
                created_at="",
            )
        )
    return merged


def window_by_range(records: Sequence[RecordItem], days: int) -> List[RecordItem]:
    """Return records ascending by date within ``days`` of the latest one.

    The window ends at the latest record's date, not today. If that date
    cannot be parsed the whole sorted list is returned.
    """
    ordered = sorted(records, key=lambda r: r.date_str)
    if not ordered:
        return []
    last_date = _parse_date(ordered[-1].date_str)
    if last_date is None:
        return ordered
    try:
        start = last_date - datetime.timedelta(days=days - 1)
    except OverflowError:
        start = datetime.date.min

    window = []
    for record in ordered:
        day = _parse_date(record.date_str)
        if day is not None and start <= day <= last_date:
            window.append(record)
    return window


class HistoryService:
    """Trend history and summaries computed from stored records."""

    def __init__(self, records: RecordRepository, default_days: int = 30) -> None:
        self.records = records
        self.default_days = default_days if default_days in HISTORY_RANGES else 30

    def exercise_history(
        self,
        exercise_name: str,
        unit: str,
        live: Optional[LiveTotals] = None,
        days: Optional[int] = None,
    ) -> List[RecordItem]:
        if not exercise_name:
            return []
        stored = self.records.get_records_by_exercise(exercise_name, unit)
        return window_by_range(merge_live(stored, live), days or self.default_days)

    def previous_totals(self, date_str: str, exercise_name: str, unit: str) -> Totals:
        """Totals of the record a save for this key would overwrite."""
        existing = self.records.get_record(date_str, exercise_name, unit)
        if existing is None:
            return Totals()
        return existing.totals

    @staticmethod
    def trend_summary(series: Sequence[RecordItem]) -> Optional[Dict[str, object]]:
        """Describe a windowed series: its span, last two loads and extremes."""
        if not series:
            return None
        loads = [r.totals.load_kg for r in series]
        latest = loads[-1]
        previous = loads[-2] if len(loads) >= 2 else latest
        return {
            "start": series[0].date_str,
            "end": series[-1].date_str,
            "latest_load_kg": latest,
            "previous_load_kg": previous,
            "trending_up": latest >= previous,
            "min_load_kg": min(loads),
            "max_load_kg": max(loads),
            "points": [
                {"date": r.date_str, "load_kg": r.totals.load_kg} for r in series
            ],
        }

    def daily_summary(self, date_str: str) -> Dict[str, object]:
        day = self.records.get_records_by_date(date_str)
        load = 0.0
        reps = 0
        sets = 0
        for record in day:
            load += record.totals.load_kg
            reps += record.totals.reps
            sets += record.totals.sets
        return {
            "date": date_str,
            "exercises": len(day),
            "load_kg": SetMath.round_load(load),
            "reps": reps,
            "sets": sets,
        }

    def trained_dates(self) -> List[str]:
        return sorted({r.date_str for r in self.records.get_records()})
