import pytest
from sqlalchemy import create_engine, text

from weekplan.db import bootstrap


def _raise_error(message: str):
    raise RuntimeError(message)


def test_runtime_schema_bootstrap_raises_on_validation_failure(monkeypatch):
    monkeypatch.setattr(bootstrap.Base.metadata, "create_all", lambda bind: None)
    monkeypatch.setattr(bootstrap, "_ensure_teacher_daily_limit_column", lambda: None)
    monkeypatch.setattr(
        bootstrap,
        "_assert_required_columns",
        lambda: _raise_error("missing required schema"),
    )

    with pytest.raises(RuntimeError, match="Runtime schema compatibility bootstrap failed"):
        bootstrap.ensure_runtime_schema_compatibility()


def test_required_columns_cover_the_layer_tables():
    assert "global_entry_id" in bootstrap.REQUIRED_COLUMNS["weekly_timetable_entries"]
    assert "week_start" in bootstrap.REQUIRED_COLUMNS["weekly_timetables"]


def test_schema_gaps_reports_missing_tables_and_columns():
    engine = create_engine("sqlite://")
    bootstrap.Base.metadata.create_all(bind=engine)
    with engine.begin() as connection:
        assert bootstrap.schema_gaps(connection) == ([], {})

        connection.execute(text("DROP TABLE weekly_timetable_entries"))
        connection.execute(text("ALTER TABLE weekly_timetables DROP COLUMN week_end"))
        missing_tables, missing_columns = bootstrap.schema_gaps(connection)

    assert missing_tables == ["weekly_timetable_entries"]
    assert missing_columns == {"weekly_timetables": ["week_end"]}
