from __future__ import annotations

import datetime
from typing import Literal

from pydantic import BaseModel, Field

from weekplan.services.records import EntryRecord, Modification


class TimetableEntryOut(BaseModel):
    id: str | None = None
    classId: str
    day: str
    period: int
    subjectId: str | None = None
    teacherId: str | None = None
    room: str | None = None
    startTime: str
    endTime: str
    isActive: bool = True
    layer: Literal["global", "weekly"] = "global"
    weekStart: datetime.date | None = None
    globalEntryId: str | None = None
    modification: Modification | None = None
    modificationReason: str | None = None
    isModified: bool = False
    isWeeklyOverride: bool = False

    @classmethod
    def from_record(cls, entry: EntryRecord, *, live_global_ids: set[str] | None = None) -> "TimetableEntryOut":
        global_entry_id = entry.global_entry_id
        # A weekly entry pointing at a global entry that a later refresh removed
        # has no override relationship any more.
        if global_entry_id is not None and live_global_ids is not None and global_entry_id not in live_global_ids:
            global_entry_id = None
        return cls(
            id=entry.id,
            classId=entry.class_id,
            day=entry.day,
            period=entry.period,
            subjectId=entry.subject_id,
            teacherId=entry.teacher_id,
            room=entry.room,
            startTime=entry.start_time,
            endTime=entry.end_time,
            isActive=entry.is_active,
            layer=entry.layer,
            weekStart=entry.week_start,
            globalEntryId=global_entry_id,
            modification=entry.modification,
            modificationReason=entry.modification_reason,
            isModified=entry.is_modified,
            isWeeklyOverride=entry.layer == "weekly",
        )


class ConflictOut(BaseModel):
    day: str
    period: int
    weekStart: datetime.date | None = None
    teacherId: str
    classId: str
    conflictingClassId: str | None = None
    conflictingEntryId: str | None = None
    kind: Literal["double_booked", "unavailable"] = "double_booked"


class UnsatisfiedRequirementOut(BaseModel):
    subjectId: str
    required: int
    scheduled: int
    reason: Literal["no_qualified_teacher", "no_available_slot"]


class RefreshResult(BaseModel):
    success: bool = True
    entriesCreated: int
    globalDeleted: int
    weeklyDeleted: int
    weekStart: datetime.date
    unsatisfiedRequirements: list[UnsatisfiedRequirementOut] = Field(default_factory=list)


class WeeklyTimetableOut(BaseModel):
    type: Literal["weekly", "global"]
    classId: str
    weekStart: datetime.date
    hasWeeklyOverrides: bool
    entries: list[TimetableEntryOut]


class EnhancedTimetableOut(BaseModel):
    source: Literal["weekly", "global"]
    weekStart: datetime.date
    entries: list[TimetableEntryOut]
    modificationCount: int


class ManualAssignRequest(BaseModel):
    timetableEntryId: str | None = Field(default=None, max_length=36)
    newTeacherId: str = Field(min_length=1, max_length=36)
    classId: str = Field(min_length=1, max_length=36)
    day: str = Field(min_length=2, max_length=20)
    period: int = Field(ge=1, le=20)
    reason: str | None = Field(default=None, max_length=1000)
    subjectId: str | None = Field(default=None, max_length=36)
    room: str | None = Field(default=None, max_length=100)
    week_date: datetime.date | None = Field(default=None, alias="date")

    model_config = {"populate_by_name": True}


class AssignmentResult(BaseModel):
    success: bool
    conflicts: list[ConflictOut] = Field(default_factory=list)
    entry: TimetableEntryOut | None = None


class CancelResult(BaseModel):
    success: bool


class PromoteRequest(BaseModel):
    week_date: datetime.date | None = Field(default=None, alias="date")

    model_config = {"populate_by_name": True}


class PromotionResult(BaseModel):
    success: bool
    entriesPromoted: int
    weekStart: datetime.date
    conflicts: list[ConflictOut] = Field(default_factory=list)
