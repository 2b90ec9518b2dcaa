import datetime
import json
import sqlite3
import uuid
from contextlib import contextmanager
from typing import Callable, Iterable, List, Optional, Tuple, Type, TypeVar

from loguru import logger
from pydantic import BaseModel, ValidationError

from algorithms import compute_totals
from config import default_db_path
from models import (
    UNITS,
    EntrySnapshot,
    PlanItem,
    RecordItem,
    SetRow,
    Totals,
)

RECORDS_KEY = "strength-note:records:v1"
PLANS_KEY = "strength-note:plans:v1"
DRAFT_KEY = "strength-note:log-draft:v1"
RECENT_PREFIX = "strength-note:recent:v1"

ModelT = TypeVar("ModelT", bound=BaseModel)


def utc_timestamp() -> str:
    """Return the current UTC time as ``YYYY-MM-DDTHH:MM:SS.mmmZ``."""
    now = datetime.datetime.now(datetime.timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class SnapshotStore:
    """Read/write contract for serialized snapshots keyed by name.

    ``write`` and ``remove`` report success as a boolean instead of raising.
    """

    def read(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def write(self, key: str, payload: str) -> bool:
        raise NotImplementedError

    def remove(self, key: str) -> bool:
        raise NotImplementedError

    def keys(self, prefix: str = "") -> List[str]:
        raise NotImplementedError


class MemorySnapshotStore(SnapshotStore):
    """Dictionary-backed store for tests and throwaway sessions."""

    def __init__(self, data: Optional[dict] = None) -> None:
        self.data: dict[str, str] = dict(data or {})

    def read(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def write(self, key: str, payload: str) -> bool:
        self.data[key] = payload
        return True

    def remove(self, key: str) -> bool:
        self.data.pop(key, None)
        return True

    def keys(self, prefix: str = "") -> List[str]:
        return sorted(k for k in self.data if k.startswith(prefix))


class Database:
    """Provides SQLite connection management and schema initialization."""

    _TABLE_DEFINITIONS = {
        "snapshots": (
            """CREATE TABLE snapshots (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );""",
            ["key", "value", "updated_at"],
        ),
    }

    def __init__(self, db_path: str | None = None) -> None:
        self._db_path = db_path or default_db_path()
        self._ensure_schema()

    @property
    def db_path(self) -> str:
        return self._db_path

    @contextmanager
    def _connection(self):
        connection = sqlite3.connect(self._db_path)
        try:
            yield connection
            connection.commit()
        finally:
            connection.close()

    def _ensure_schema(self) -> None:
        with self._connection() as conn:
            for table, (sql, columns) in self._TABLE_DEFINITIONS.items():
                self._ensure_table(conn, table, sql, columns)

    def _ensure_table(
        self, conn: sqlite3.Connection, table: str, sql: str, columns: List[str]
    ) -> None:
        cur = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?;", (table,)
        )
        if cur.fetchone() is None:
            conn.execute(sql)
            return

        cur = conn.execute(f"PRAGMA table_info({table});")
        existing_cols = [row[1] for row in cur.fetchall()]
        if existing_cols == columns:
            return

        conn.execute(f"DROP TABLE IF EXISTS {table}_old;")
        conn.execute(f"ALTER TABLE {table} RENAME TO {table}_old;")
        conn.execute(sql)
        common = [c for c in existing_cols if c in columns]
        if "key" in common and "value" in common:
            cols = ", ".join(common)
            if "updated_at" in common:
                conn.execute(
                    f"INSERT INTO {table} ({cols}) SELECT {cols} FROM {table}_old;"
                )
            else:
                conn.execute(
                    f"INSERT INTO {table} ({cols}, updated_at) SELECT {cols}, '' FROM {table}_old;"
                )
        conn.execute(f"DROP TABLE {table}_old;")

    def vacuum(self) -> None:
        """Run SQLite VACUUM to reduce database size."""
        with self._connection() as conn:
            conn.execute("VACUUM;")


class SqliteSnapshotStore(Database, SnapshotStore):
    """Persist each snapshot as one row of the ``snapshots`` table."""

    def read(self, key: str) -> Optional[str]:
        try:
            with self._connection() as conn:
                row = conn.execute(
                    "SELECT value FROM snapshots WHERE key = ?;", (key,)
                ).fetchone()
        except sqlite3.Error as e:
            logger.warning(f"Failed to read snapshot {key}: {e}")
            return None
        return row[0] if row else None

    def write(self, key: str, payload: str) -> bool:
        try:
            with self._connection() as conn:
                conn.execute(
                    "INSERT INTO snapshots (key, value, updated_at) VALUES (?, ?, ?) "
                    "ON CONFLICT(key) DO UPDATE SET value=excluded.value, "
                    "updated_at=excluded.updated_at;",
                    (key, payload, utc_timestamp()),
                )
        except (sqlite3.Error, OSError) as e:
            logger.warning(f"Failed to write snapshot {key}: {e}")
            return False
        return True

    def remove(self, key: str) -> bool:
        try:
            with self._connection() as conn:
                conn.execute("DELETE FROM snapshots WHERE key = ?;", (key,))
        except (sqlite3.Error, OSError) as e:
            logger.warning(f"Failed to remove snapshot {key}: {e}")
            return False
        return True

    def keys(self, prefix: str = "") -> List[str]:
        try:
            with self._connection() as conn:
                rows = conn.execute(
                    "SELECT key FROM snapshots WHERE substr(key, 1, ?) = ? ORDER BY key;",
                    (len(prefix), prefix),
                ).fetchall()
        except sqlite3.Error as e:
            logger.warning(f"Failed to list snapshots: {e}")
            return []
        return [r[0] for r in rows]


def coerce_row(row: object) -> SetRow:
    """Return ``row`` as a :class:`SetRow`, stringifying loose input."""
    if isinstance(row, SetRow):
        return row
    if not isinstance(row, dict):
        return SetRow()

    def text(value: object) -> str:
        if isinstance(value, str):
            return value
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return ""

    return SetRow(
        weight=text(row.get("weight")),
        reps=text(row.get("reps")),
        rpe=text(row.get("rpe")),
    )


def coerce_row_strict(row: object) -> SetRow:
    """Keep only string fields of a stored row, blanking anything else."""
    if not isinstance(row, dict):
        return SetRow()
    return SetRow(
        **{
            field: row[field] if isinstance(row.get(field), str) else ""
            for field in ("weight", "reps", "rpe")
        }
    )


def _stored_record(entry: object) -> object:
    """Blank non-string fields in the rows of a stored record."""
    if isinstance(entry, dict) and isinstance(entry.get("rows"), list):
        rows = [coerce_row_strict(r).model_dump() for r in entry["rows"]]
        return {**entry, "rows": rows}
    return entry


class BaseRepository:
    """Base repository providing snapshot load/save helpers."""

    def __init__(self, store: SnapshotStore) -> None:
        self.store = store

    def _load_raw(self, key: str) -> object:
        raw = self.store.read(key)
        if not raw:
            return None
        try:
            return json.loads(raw)
        except (TypeError, ValueError) as e:
            logger.warning(f"Discarding corrupt snapshot {key}: {e}")
            return None

    def _load_list(
        self,
        key: str,
        model: Type[ModelT],
        prepare: Optional[Callable[[object], object]] = None,
    ) -> List[ModelT]:
        data = self._load_raw(key)
        if not isinstance(data, list):
            return []
        items: List[ModelT] = []
        for entry in data:
            if prepare is not None:
                entry = prepare(entry)
            try:
                items.append(model.model_validate(entry))
            except ValidationError as e:
                logger.warning(f"Skipping malformed entry in {key}: {e.error_count()} errors")
        return items

    def _save(self, key: str, data: object) -> bool:
        payload = json.dumps(data, ensure_ascii=False)
        return self.store.write(key, payload)

    def _save_list(self, key: str, items: Iterable[BaseModel]) -> bool:
        return self._save(key, [i.model_dump(by_alias=True) for i in items])


class RecordRepository(BaseRepository):
    """Authoritative exercise records, one per (date, exercise, unit)."""

    def __init__(
        self,
        store: SnapshotStore,
        clock: Callable[[], str] = utc_timestamp,
    ) -> None:
        super().__init__(store)
        self._clock = clock

    @staticmethod
    def compute_totals(rows: Iterable[SetRow], unit: str) -> Totals:
        return compute_totals(rows, unit)

    def create_record(
        self,
        date_str: str,
        exercise_name: str,
        unit: str = "kg",
        rows: Iterable[object] = (),
    ) -> RecordItem:
        """Build a record with fresh id, timestamp and totals without saving it."""
        if unit not in UNITS:
            unit = "kg"
        set_rows = [coerce_row(r) for r in rows]
        return RecordItem(
            id=f"{date_str}:{exercise_name}:{uuid.uuid4().hex}",
            date_str=date_str,
            exercise_name=exercise_name,
            unit=unit,
            rows=set_rows,
            totals=compute_totals(set_rows, unit),
            created_at=self._clock(),
        )

    def get_records(self) -> List[RecordItem]:
        return self._load_list(RECORDS_KEY, RecordItem, prepare=_stored_record)

    def set_records(self, records: Iterable[RecordItem]) -> bool:
        return self._save_list(RECORDS_KEY, records)

    def upsert_record(
        self,
        date_str: str,
        exercise_name: str,
        unit: str = "kg",
        rows: Iterable[object] = (),
    ) -> RecordItem:
        """Replace whatever record shares the natural key and put the new one first."""
        record = self.create_record(date_str, exercise_name, unit, rows)
        remaining = [
            r for r in self.get_records() if r.natural_key != record.natural_key
        ]
        self.set_records([record] + remaining)
        logger.debug(
            f"Upserted {record.exercise_name} ({record.unit}) on {record.date_str}"
        )
        return record

    def get_records_by_date(self, date_str: str) -> List[RecordItem]:
        return [r for r in self.get_records() if r.date_str == date_str]

    def get_records_by_exercise(
        self, exercise_name: str, unit: Optional[str] = None
    ) -> List[RecordItem]:
        """Records for ``exercise_name`` (trimmed), newest ``created_at`` first."""
        name = (exercise_name or "").strip()
        matches = [
            r
            for r in self.get_records()
            if r.exercise_name.strip() == name and (unit is None or r.unit == unit)
        ]
        matches.sort(key=lambda r: r.created_at, reverse=True)
        return matches

    def get_latest_by_exercise(
        self, exercise_name: str, unit: str
    ) -> Optional[RecordItem]:
        matches = self.get_records_by_exercise(exercise_name, unit)
        return matches[0] if matches else None

    def get_record(
        self, date_str: str, exercise_name: str, unit: str
    ) -> Optional[RecordItem]:
        """Exact natural-key lookup."""
        key = (date_str, exercise_name, unit)
        for record in self.get_records():
            if record.natural_key == key:
                return record
        return None

    def delete_record_by_id(self, record_id: str) -> None:
        records = self.get_records()
        remaining = [r for r in records if r.id != record_id]
        if len(remaining) == len(records):
            return
        self.set_records(remaining)
        logger.debug(f"Deleted record {record_id}")

    def add_exercises_for_date(
        self, date_str: str, exercise_names: Iterable[str], unit: str = "kg"
    ) -> List[RecordItem]:
        """Upsert an empty record for each distinct name.

        An existing record for the same key is reset to zero totals.
        """
        unique: List[str] = []
        for name in exercise_names:
            name = (name or "").strip()
            if name and name not in unique:
                unique.append(name)
        return [self.upsert_record(date_str, name, unit, []) for name in unique]


class PlanRepository(BaseRepository):
    """Planned exercises per day; duplicates are allowed."""

    def get_all_plans(self) -> List[PlanItem]:
        return self._load_list(PLANS_KEY, PlanItem)

    def set_plans(self, plans: Iterable[PlanItem]) -> bool:
        return self._save_list(PLANS_KEY, plans)

    def get_plans_by_date(self, date_str: str) -> List[PlanItem]:
        return [p for p in self.get_all_plans() if p.date_str == date_str]

    def add_plan(self, date_str: str, exercise_name: str, part: str) -> PlanItem:
        plan = PlanItem(
            id=f"{date_str}-{exercise_name}-{uuid.uuid4().hex}",
            date_str=date_str,
            exercise_name=exercise_name,
            part=part,
            done=False,
        )
        self.set_plans([plan] + self.get_all_plans())
        return plan

    def toggle_done(self, plan_id: str) -> None:
        plans = [
            p.model_copy(update={"done": not p.done}) if p.id == plan_id else p
            for p in self.get_all_plans()
        ]
        self.set_plans(plans)

    def remove_plan(self, plan_id: str) -> None:
        self.set_plans([p for p in self.get_all_plans() if p.id != plan_id])

    def clear_plans_by_date(self, date_str: str) -> None:
        self.set_plans([p for p in self.get_all_plans() if p.date_str != date_str])


def _sanitize_entry(data: object) -> Optional[EntrySnapshot]:
    if not isinstance(data, dict):
        return None
    unit = data.get("unit")
    rows = data.get("rows")
    if unit not in UNITS or not isinstance(rows, list):
        return None
    safe_rows = [coerce_row_strict(r) for r in rows] or [SetRow()]
    name = data.get("exerciseName")
    date_str = data.get("dateStr")
    return EntrySnapshot(
        unit=unit,
        rows=safe_rows,
        exercise_name=name if isinstance(name, str) else "",
        date_str=date_str if isinstance(date_str, str) else "",
    )


class RecentEntryRepository(BaseRepository):
    """Last saved rows per (exercise, unit), used to repeat a session."""

    @staticmethod
    def key(exercise_name: str, unit: str) -> str:
        if not exercise_name:
            return ""
        return f"{RECENT_PREFIX}:{exercise_name}:{unit}"

    def load(self, exercise_name: str, unit: str) -> Optional[EntrySnapshot]:
        key = self.key(exercise_name, unit)
        if not key:
            return None
        return _sanitize_entry(self._load_raw(key))

    def save(self, entry: EntrySnapshot) -> bool:
        key = self.key(entry.exercise_name, entry.unit)
        if not key:
            return False
        return self._save(key, entry.model_dump(by_alias=True))

    def exercises(self) -> List[Tuple[str, str]]:
        """Return ``(exercise_name, unit)`` pairs that have a recent copy."""
        pairs = []
        for key in self.store.keys(RECENT_PREFIX + ":"):
            name, _, unit = key[len(RECENT_PREFIX) + 1 :].rpartition(":")
            if name and unit in UNITS:
                pairs.append((name, unit))
        return pairs


class DraftRepository(BaseRepository):
    """The single in-progress entry."""

    def load(self) -> Optional[EntrySnapshot]:
        draft = _sanitize_entry(self._load_raw(DRAFT_KEY))
        if draft is None and self.store.read(DRAFT_KEY):
            logger.warning("Ignoring unreadable draft")
        return draft

    def save(self, entry: EntrySnapshot) -> bool:
        return self._save(DRAFT_KEY, entry.model_dump(by_alias=True))

    def clear(self) -> bool:
        return self.store.remove(DRAFT_KEY)
