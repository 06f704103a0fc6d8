import os
import tempfile
import uuid
from datetime import date
from pathlib import Path

# The app-level engine (health checks, startup bootstrap) must never touch a real database.
_TEST_DB_DIR = Path(tempfile.mkdtemp(prefix="weekplan-tests-"))
os.environ.setdefault("DATABASE_URL", f"sqlite+pysqlite:///{_TEST_DB_DIR / 'app.db'}")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, select
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from weekplan.api.deps import get_clock, get_db
from weekplan.db.base import Base
from weekplan.db.store import SqlTimetableStore
from weekplan.main import app
from weekplan.models import (
    ClassSubjectAssignment,
    School,
    SchoolClass,
    Subject,
    Teacher,
    TimetableEntry,
    TimetableStructure,
)
from weekplan.services.coordinator import SchedulingCoordinator
from weekplan.services.scheduling import SchedulingContext

# Monday; every test runs as if the school's local date were this day.
TODAY = date(2025, 9, 8)
NEXT_WEEK = date(2025, 9, 15)


class SchoolBuilder:
    """Inserts reference rows directly, the way external record management would."""

    def __init__(self, db):
        self.db = db

    def _add(self, row):
        row.id = row.id or str(uuid.uuid4())
        self.db.add(row)
        self.db.commit()
        return row.id

    def school(self, name="Springfield High"):
        return self._add(School(name=name))

    def structure(self, school_id, time_slots, working_days=None):
        return self._add(
            TimetableStructure(
                school_id=school_id,
                periods_per_day=len(time_slots),
                working_days=working_days or [],
                time_slots=time_slots,
            )
        )

    def klass(self, school_id, grade="10", section="A"):
        return self._add(SchoolClass(school_id=school_id, grade=grade, section=section))

    def subject(self, school_id, code, periods_per_week, name=None):
        return self._add(Subject(school_id=school_id, code=code, name=name or code.title(), periods_per_week=periods_per_week))

    def teacher(self, school_id, name, subjects=(), availability=None, max_load=None, max_daily_periods=None):
        return self._add(
            Teacher(
                school_id=school_id,
                name=name,
                email=f"{name.lower().replace(' ', '.')}@school.example",
                subjects=list(subjects),
                availability=availability or {},
                max_load=max_load,
                max_daily_periods=max_daily_periods,
            )
        )

    def requirement(self, class_id, subject_id, teacher_id=None, weekly_frequency=None):
        return self._add(
            ClassSubjectAssignment(
                class_id=class_id,
                subject_id=subject_id,
                assigned_teacher_id=teacher_id,
                weekly_frequency=weekly_frequency,
            )
        )

    def global_entry(self, class_id, day, period, subject_id, teacher_id, start_time="08:00", end_time="08:45"):
        return self._add(
            TimetableEntry(
                class_id=class_id,
                day=day,
                period=period,
                subject_id=subject_id,
                teacher_id=teacher_id,
                start_time=start_time,
                end_time=end_time,
            )
        )

    def global_rows(self, class_id):
        return self.db.execute(
            select(TimetableEntry).where(TimetableEntry.class_id == class_id).order_by(TimetableEntry.day)
        ).scalars().all()


@pytest.fixture()
def session_factory():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture()
def db_session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def builder(db_session):
    return SchoolBuilder(db_session)


@pytest.fixture()
def coordinator():
    return SchedulingCoordinator(timeout_seconds=0.5)


@pytest.fixture()
def ctx(db_session, coordinator):
    return SchedulingContext(store=SqlTimetableStore(db_session), coordinator=coordinator, clock=lambda: TODAY)


@pytest.fixture()
def scenario(builder):
    """One school, classes C1 and C2, Math (5/week) for C1 taught by T1; T2 also teaches Math."""
    school_id = builder.school()
    c1 = builder.klass(school_id, "10", "A")
    c2 = builder.klass(school_id, "10", "B")
    math = builder.subject(school_id, "MATH", 5)
    t1 = builder.teacher(school_id, "Alice Turing", subjects=[math])
    t2 = builder.teacher(school_id, "Bob Hopper", subjects=[math])
    builder.requirement(c1, math, teacher_id=t1)
    return {"school": school_id, "c1": c1, "c2": c2, "math": math, "t1": t1, "t2": t2}


@pytest.fixture()
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: (lambda: TODAY)

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
