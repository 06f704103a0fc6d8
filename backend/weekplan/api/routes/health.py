from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

from weekplan.core.config import get_settings
from weekplan.db.bootstrap import schema_gaps
from weekplan.db.session import engine

router = APIRouter()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/health")
def health() -> dict:
    return {"status": "ok"}


@router.get("/health/live")
def health_live() -> dict:
    return {"status": "ok", "timestamp": _now()}


@router.get("/health/ready")
def health_ready(request: Request) -> JSONResponse:
    """Ready once the database answers and carries both timetable layers."""
    settings = get_settings()
    db_ok = True
    db_error: str | None = None
    missing_tables: list[str] = []
    missing_columns: dict[str, list[str]] = {}

    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
            missing_tables, missing_columns = schema_gaps(connection)
    except Exception as exc:  # pragma: no cover - environment dependent
        db_ok = False
        db_error = str(exc)

    schema_ok = db_ok and not missing_tables and not missing_columns
    coordinator = getattr(request.app.state, "coordinator", None)
    ready = schema_ok and coordinator is not None
    payload = {
        "status": "ok" if ready else "degraded",
        "timestamp": _now(),
        "database": {
            "ok": db_ok,
            "schema_ok": schema_ok,
            "missing_tables": missing_tables,
            "missing_columns": missing_columns,
            "error": db_error,
        },
        "scheduling": {
            "coordinator": coordinator is not None,
            "lock_timeout_seconds": coordinator.timeout_seconds if coordinator is not None else None,
            "generation_strict": settings.generation_strict,
            "school_timezone": settings.school_timezone,
        },
    }
    return JSONResponse(status_code=200 if ready else 503, content=payload)
