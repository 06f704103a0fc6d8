import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, DateTime, Enum as SAEnum, Integer, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from weekplan.db.base import Base


class TeacherStatus(str, Enum):
    active = "active"
    inactive = "inactive"
    left_school = "left_school"


class ReplacementStatus(str, Enum):
    completed = "completed"
    failed = "failed"


class Teacher(Base):
    __tablename__ = "teachers"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    school_id: Mapped[str] = mapped_column(String(36), index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    subjects: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    # {"monday": [1, 2, 3], ...}; an empty mapping means available every period.
    availability: Mapped[dict[str, list[int]]] = mapped_column(JSON, nullable=False, default=dict)
    max_load: Mapped[int | None] = mapped_column(Integer, nullable=True)
    max_daily_periods: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    status: Mapped[TeacherStatus] = mapped_column(
        SAEnum(TeacherStatus, name="teacher_status"),
        nullable=False,
        default=TeacherStatus.active,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now())


class TeacherReplacement(Base):
    __tablename__ = "teacher_replacements"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    school_id: Mapped[str] = mapped_column(String(36), index=True, nullable=False)
    original_teacher_id: Mapped[str] = mapped_column(String(36), index=True, nullable=False)
    replacement_teacher_id: Mapped[str] = mapped_column(String(36), nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    affected_timetable_entries: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    conflict_details: Mapped[list[dict]] = mapped_column(JSON, nullable=False, default=list)
    status: Mapped[ReplacementStatus] = mapped_column(
        SAEnum(ReplacementStatus, name="teacher_replacement_status"),
        nullable=False,
    )
    replaced_by: Mapped[str | None] = mapped_column(String(36), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
