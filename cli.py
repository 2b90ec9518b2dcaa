import argparse
import datetime
import json
import shutil

from algorithms import WeightConverter
from config import default_db_path
from db import PlanRepository, RecentEntryRepository, RecordRepository, SqliteSnapshotStore
from history_service import HistoryService
from logger import setup_logger
from models import is_valid_date_str


def export_snapshots(db_path: str, out_path: str) -> None:
    """Write records, plans and recent copies to one JSON file."""
    store = SqliteSnapshotStore(db_path)
    records = RecordRepository(store)
    plans = PlanRepository(store)
    recent = RecentEntryRepository(store)
    data = {
        "records": [r.model_dump(by_alias=True) for r in records.get_records()],
        "plans": [p.model_dump(by_alias=True) for p in plans.get_all_plans()],
        "recent": [
            entry.model_dump(by_alias=True)
            for entry in (recent.load(name, unit) for name, unit in recent.exercises())
            if entry is not None
        ],
    }
    with open(out_path, "w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2)


def backup_db(db_path: str, backup_path: str) -> None:
    shutil.copy(db_path, backup_path)


def restore_db(backup_path: str, db_path: str) -> None:
    shutil.copy(backup_path, db_path)


def demo_data(db_path: str) -> None:
    """Populate the database with a short bench press history if empty."""
    records = RecordRepository(SqliteSnapshotStore(db_path))
    if records.get_records():
        print("Database already contains records")
        return
    today = datetime.date.today()
    for offset, weight in ((14, "90"), (7, "95"), (0, "100")):
        day = (today - datetime.timedelta(days=offset)).isoformat()
        records.upsert_record(
            day,
            "Bench Press",
            "kg",
            [{"weight": weight, "reps": "5", "rpe": "8"} for _ in range(3)],
        )
    print("Demo data inserted")


def daily_summary(db_path: str, date: str) -> dict:
    history = HistoryService(RecordRepository(SqliteSnapshotStore(db_path)))
    return history.daily_summary(date)


def main() -> None:
    parser = argparse.ArgumentParser(description="Utility commands")
    parser.add_argument("--log-level", default="WARNING")
    sub = parser.add_subparsers(dest="cmd", required=True)

    exp = sub.add_parser("export")
    exp.add_argument("--db", default=default_db_path())
    exp.add_argument("--out", default="strengthnote.json")

    bkp = sub.add_parser("backup")
    bkp.add_argument("--db", default=default_db_path())
    bkp.add_argument("--out", default="backup.db")

    rst = sub.add_parser("restore")
    rst.add_argument("--in", dest="src", default="backup.db")
    rst.add_argument("--db", default=default_db_path())

    demo = sub.add_parser("demo")
    demo.add_argument("--db", default=default_db_path())

    summ = sub.add_parser("summary")
    summ.add_argument("--db", default=default_db_path())
    summ.add_argument("--date", default=datetime.date.today().isoformat())

    conv = sub.add_parser("convert")
    conv.add_argument("--weight", type=float, required=True)
    conv.add_argument("--unit", choices=["kg", "lb"], required=True)

    args = parser.parse_args()
    setup_logger(args.log_level)

    if args.cmd == "export":
        export_snapshots(args.db, args.out)
    elif args.cmd == "backup":
        backup_db(args.db, args.out)
    elif args.cmd == "restore":
        restore_db(args.src, args.db)
    elif args.cmd == "demo":
        demo_data(args.db)
    elif args.cmd == "summary":
        if not is_valid_date_str(args.date):
            parser.error(f"invalid date: {args.date}")
        summary = daily_summary(args.db, args.date)
        print(
            f"{summary['date']}: {summary['exercises']} exercises, "
            f"{summary['load_kg']:.1f} kg, {summary['reps']} reps, {summary['sets']} sets"
        )
    elif args.cmd == "convert":
        if args.unit == "kg":
            print(f"{args.weight} kg = {WeightConverter.kg_to_lb(args.weight)} lb")
        else:
            print(f"{args.weight} lb = {WeightConverter.lb_to_kg(args.weight)} kg")


if __name__ == "__main__":
    main()
