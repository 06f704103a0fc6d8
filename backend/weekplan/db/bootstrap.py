from __future__ import annotations

import logging

from sqlalchemy import Connection, inspect, text

from weekplan.db.base import Base
from weekplan.db.session import engine
import weekplan.models  # noqa: F401

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS: dict[str, set[str]] = {
    "classes": {"id", "school_id", "grade", "section"},
    "teachers": {"id", "school_id", "subjects", "availability", "max_load", "max_daily_periods", "status"},
    "timetable_entries": {"id", "class_id", "day", "period", "teacher_id", "is_active"},
    "weekly_timetables": {"id", "school_id", "class_id", "week_start", "week_end"},
    "weekly_timetable_entries": {
        "id",
        "weekly_timetable_id",
        "class_id",
        "week_start",
        "global_entry_id",
        "modification",
        "modification_reason",
    },
    "substitutions": {"id", "timetable_entry_id", "status", "week_start"},
    "teacher_replacements": {"id", "original_teacher_id", "replacement_teacher_id", "status"},
    "activity_logs": {"id", "actor_id", "action"},
}


def _ensure_teacher_daily_limit_column() -> None:
    with engine.begin() as connection:
        inspector = inspect(connection)
        if "teachers" not in set(inspector.get_table_names()):
            return
        column_names = {item["name"] for item in inspector.get_columns("teachers")}
        if "max_daily_periods" in column_names:
            return
        connection.execute(text("ALTER TABLE teachers ADD COLUMN max_daily_periods INTEGER"))


def schema_gaps(connection: Connection) -> tuple[list[str], dict[str, list[str]]]:
    """Required tables that are absent, and required columns absent from present tables."""
    inspector = inspect(connection)
    table_names = set(inspector.get_table_names())
    missing_tables = sorted(name for name in REQUIRED_COLUMNS if name not in table_names)
    missing_columns: dict[str, list[str]] = {}
    for table_name, required in REQUIRED_COLUMNS.items():
        if table_name not in table_names:
            continue
        existing = {item["name"] for item in inspector.get_columns(table_name)}
        missing = sorted(required - existing)
        if missing:
            missing_columns[table_name] = missing
    return missing_tables, missing_columns


def _assert_required_columns() -> None:
    with engine.begin() as connection:
        missing_tables, missing_columns = schema_gaps(connection)
    if missing_tables:
        raise RuntimeError(f"Missing required tables: {', '.join(missing_tables)}")
    if missing_columns:
        flat = [f"{table}.{column}" for table, columns in missing_columns.items() for column in columns]
        raise RuntimeError(f"Missing required columns: {', '.join(flat)}")


def ensure_runtime_schema_compatibility() -> None:
    try:
        # Ensure missing tables are present before additive compatibility patches.
        Base.metadata.create_all(bind=engine)
        _ensure_teacher_daily_limit_column()
        _assert_required_columns()
    except Exception as exc:  # pragma: no cover - runtime environment dependent
        logger.exception("Runtime schema compatibility bootstrap failed")
        raise RuntimeError("Runtime schema compatibility bootstrap failed") from exc
