from __future__ import annotations

import datetime
import time
from typing import Callable, List, Optional

from loguru import logger

from algorithms import SetMath, compute_totals
from db import DraftRepository, RecentEntryRepository, RecordRepository
from models import EntrySnapshot, LiveTotals, RecordItem, SetRow, is_valid_date_str

MAX_ROWS = 10
FRESH_ROW_COUNT = 3


class DraftAutosaver:
    """Debounced writer for the in-progress entry.

    Every ``touch`` replaces the pending entry and pushes the deadline back,
    so only the state after the last edit is written.
    """

    def __init__(
        self,
        drafts: DraftRepository,
        delay_ms: int = 300,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.drafts = drafts
        self.delay = delay_ms / 1000.0
        self.clock = clock
        self._pending: Optional[EntrySnapshot] = None
        self._deadline = 0.0

    @property
    def pending(self) -> Optional[EntrySnapshot]:
        return self._pending

    def touch(self, entry: EntrySnapshot) -> None:
        self._pending = entry
        self._deadline = self.clock() + self.delay

    def flush_due(self) -> bool:
        """Write the pending entry if the delay has passed since the last edit."""
        if self._pending is None or self.clock() < self._deadline:
            return False
        return self.flush()

    def flush(self) -> bool:
        if self._pending is None:
            return False
        entry, self._pending = self._pending, None
        return self.drafts.save(entry)

    def cancel(self) -> None:
        self._pending = None


class LogService:
    """Entry workflow for one exercise: edit rows, preview, save."""

    def __init__(
        self,
        records: RecordRepository,
        recent: RecentEntryRepository,
        drafts: DraftRepository,
        max_rows: int = MAX_ROWS,
    ) -> None:
        self.records = records
        self.recent = recent
        self.drafts = drafts
        self.max_rows = max_rows

    @staticmethod
    def live_totals(entry: EntrySnapshot) -> Optional[LiveTotals]:
        """Totals of an unsaved entry, or ``None`` if it has nothing to show."""
        if not entry.exercise_name or not entry.date_str:
            return None
        totals = compute_totals(entry.rows, entry.unit)
        if totals.sets == 0 or totals.reps == 0 or totals.load_kg <= 0:
            return None
        return LiveTotals(
            date_str=entry.date_str,
            load_kg=totals.load_kg,
            reps=totals.reps,
            sets=totals.sets,
            exercise_name=entry.exercise_name,
            unit=entry.unit,
        )

    def save_entry(self, entry: EntrySnapshot) -> Optional[RecordItem]:
        """Persist the valid rows of ``entry``.

        Returns ``None`` without writing anything when no row is valid.
        """
        clean_rows = SetMath.valid_rows(entry.rows)
        if not clean_rows:
            return None
        if not is_valid_date_str(entry.date_str):
            logger.warning(f"Refusing to save entry with date {entry.date_str!r}")
            return None
        clean = entry.model_copy(update={"rows": clean_rows})
        self.drafts.save(clean)
        if not clean.exercise_name:
            return None
        self.recent.save(clean)
        return self.records.upsert_record(
            clean.date_str, clean.exercise_name, clean.unit, clean.rows
        )

    def copy_last(self, exercise_name: str, unit: str) -> Optional[List[SetRow]]:
        """Rows of the last saved session for this exercise and unit."""
        recent = self.recent.load(exercise_name, unit)
        if recent is None:
            return None
        return list(recent.rows)

    def has_recent(self, exercise_name: str, unit: str) -> bool:
        return self.recent.load(exercise_name, unit) is not None

    def restore_draft(self) -> Optional[EntrySnapshot]:
        return self.drafts.load()

    def fresh_entry(
        self,
        date_str: Optional[str] = None,
        exercise_name: Optional[str] = None,
        unit: str = "kg",
    ) -> EntrySnapshot:
        """Discard the stored draft and start from zeroed rows."""
        self.drafts.clear()
        if not date_str or not is_valid_date_str(date_str):
            date_str = datetime.date.today().isoformat()
        return EntrySnapshot(
            unit=unit,
            rows=[SetRow(weight="0", reps="0") for _ in range(FRESH_ROW_COUNT)],
            exercise_name=exercise_name or "",
            date_str=date_str,
        )

    def add_row(self, entry: EntrySnapshot) -> EntrySnapshot:
        if len(entry.rows) >= self.max_rows:
            return entry
        return entry.model_copy(update={"rows": list(entry.rows) + [SetRow()]})

    def remove_row(self, entry: EntrySnapshot, index: int) -> EntrySnapshot:
        if len(entry.rows) <= 1 or not 0 <= index < len(entry.rows):
            return entry
        rows = list(entry.rows)
        del rows[index]
        return entry.model_copy(update={"rows": rows})

    @staticmethod
    def update_row(entry: EntrySnapshot, index: int, **patch: str) -> EntrySnapshot:
        if not 0 <= index < len(entry.rows):
            return entry
        fields = {k: str(v) for k, v in patch.items() if k in ("weight", "reps", "rpe")}
        rows = list(entry.rows)
        rows[index] = rows[index].model_copy(update=fields)
        return entry.model_copy(update={"rows": rows})
