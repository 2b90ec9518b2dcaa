from __future__ import annotations

import datetime
import re
from typing import List, Literal

from pydantic import BaseModel, ConfigDict, Field

Unit = Literal["kg", "lb"]
UNITS = ("kg", "lb")

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def is_valid_date_str(value: str) -> bool:
    """Return ``True`` if ``value`` is a real calendar date in ``YYYY-MM-DD`` form."""
    if not isinstance(value, str) or not _DATE_RE.match(value):
        return False
    try:
        datetime.date.fromisoformat(value)
    except ValueError:
        return False
    return True


class _Snapshot(BaseModel):
    """Base for models persisted with camelCase keys."""

    model_config = ConfigDict(populate_by_name=True)


class SetRow(_Snapshot):
    weight: str = ""
    reps: str = ""
    rpe: str = ""


class Totals(_Snapshot):
    load_kg: float = Field(0.0, alias="loadKg")
    reps: int = 0
    sets: int = 0


class RecordInput(_Snapshot):
    """Fields supplied by the caller when writing a record."""

    date_str: str = Field(alias="dateStr")
    exercise_name: str = Field(alias="exerciseName")
    unit: Unit = "kg"
    rows: List[SetRow] = Field(default_factory=list)


class RecordItem(RecordInput):
    id: str
    totals: Totals = Field(default_factory=Totals)
    created_at: str = Field("", alias="createdAt")

    @property
    def natural_key(self) -> tuple[str, str, str]:
        return (self.date_str, self.exercise_name, self.unit)


class PlanItem(_Snapshot):
    id: str
    date_str: str = Field(alias="dateStr")
    exercise_name: str = Field(alias="exerciseName")
    part: str = ""
    done: bool = False


class EntrySnapshot(_Snapshot):
    """In-progress or recently saved entry used by drafts and recent copies."""

    unit: Unit = "kg"
    rows: List[SetRow] = Field(default_factory=list)
    exercise_name: str = Field("", alias="exerciseName")
    date_str: str = Field("", alias="dateStr")


class LiveTotals(_Snapshot):
    """Totals of an entry that has not been saved yet."""

    date_str: str = Field("", alias="dateStr")
    load_kg: float = Field(0.0, alias="loadKg")
    reps: int = 0
    sets: int = 0
    exercise_name: str = Field("", alias="exerciseName")
    unit: Unit = "kg"

    def totals(self) -> Totals:
        return Totals(load_kg=self.load_kg, reps=self.reps, sets=self.sets)
