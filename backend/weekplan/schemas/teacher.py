import datetime

from pydantic import BaseModel, Field, field_validator

from weekplan.schemas.timetable import ConflictOut, TimetableEntryOut
from weekplan.services.records import ReplacementRecord, TeacherProfile


class TeacherOut(BaseModel):
    id: str
    schoolId: str
    name: str
    email: str | None = None
    subjects: list[str] = Field(default_factory=list)
    isActive: bool
    status: str
    maxLoad: int
    maxDailyPeriods: int
    teachingThisClass: bool | None = None

    @classmethod
    def from_profile(cls, teacher: TeacherProfile, *, teaching_this_class: bool | None = None) -> "TeacherOut":
        return cls(
            id=teacher.id,
            schoolId=teacher.school_id,
            name=teacher.name,
            email=teacher.email,
            subjects=list(teacher.subjects),
            isActive=teacher.is_active,
            status=teacher.status,
            maxLoad=teacher.max_load,
            maxDailyPeriods=teacher.max_daily_periods,
            teachingThisClass=teaching_this_class,
        )


class ReplaceTeacherRequest(BaseModel):
    replacementTeacherId: str = Field(min_length=1, max_length=36)
    reason: str = Field(min_length=3, max_length=1000)

    @field_validator("reason")
    @classmethod
    def strip_reason(cls, value: str) -> str:
        cleaned = value.strip()
        if len(cleaned) < 3:
            raise ValueError("reason must contain at least 3 characters")
        return cleaned


class ReplacementResult(BaseModel):
    success: bool
    conflicts: list[ConflictOut] = Field(default_factory=list)
    entriesTransferred: int
    replacementId: str | None = None


class ReplacementPreview(BaseModel):
    hasConflicts: bool
    conflictCount: int
    totalEntries: int
    conflicts: list[ConflictOut] = Field(default_factory=list)


class TeacherReplacementOut(BaseModel):
    id: str
    schoolId: str
    originalTeacherId: str
    replacementTeacherId: str
    reason: str
    affectedTimetableEntries: int
    status: str
    conflictDetails: list[dict] = Field(default_factory=list)
    replacedBy: str | None = None
    createdAt: datetime.datetime | None = None
    completedAt: datetime.datetime | None = None

    @classmethod
    def from_record(cls, record: ReplacementRecord) -> "TeacherReplacementOut":
        return cls(
            id=record.id,
            schoolId=record.school_id,
            originalTeacherId=record.original_teacher_id,
            replacementTeacherId=record.replacement_teacher_id,
            reason=record.reason,
            affectedTimetableEntries=record.affected_entries,
            status=record.status,
            conflictDetails=record.conflicts,
            replacedBy=record.replaced_by,
            createdAt=record.created_at,
            completedAt=record.completed_at,
        )


class TeacherScheduleOut(BaseModel):
    teacherId: str
    weekStart: datetime.date
    totalPeriods: int
    entries: list[TimetableEntryOut]
