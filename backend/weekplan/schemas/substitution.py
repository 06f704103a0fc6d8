import datetime

from pydantic import BaseModel, Field

from weekplan.schemas.timetable import ConflictOut
from weekplan.services.records import SubstitutionRecord, SubstitutionStatus


class SubstitutionCreate(BaseModel):
    timetableEntryId: str = Field(min_length=1, max_length=36)
    substitution_date: datetime.date = Field(alias="date")
    reason: str | None = Field(default=None, max_length=1000)

    model_config = {"populate_by_name": True}


class SubstitutionConfirm(BaseModel):
    substituteTeacherId: str = Field(min_length=1, max_length=36)


class SubstitutionOut(BaseModel):
    id: str
    timetableEntryId: str
    classId: str
    day: str
    period: int
    subjectId: str | None = None
    originalTeacherId: str
    substituteTeacherId: str | None = None
    substitution_date: datetime.date = Field(alias="date")
    weekStart: datetime.date
    reason: str | None = None
    status: SubstitutionStatus

    model_config = {"populate_by_name": True}

    @classmethod
    def from_record(cls, record: SubstitutionRecord) -> "SubstitutionOut":
        return cls(
            id=record.id,
            timetableEntryId=record.timetable_entry_id,
            classId=record.class_id,
            day=record.day,
            period=record.period,
            subjectId=record.subject_id,
            originalTeacherId=record.original_teacher_id,
            substituteTeacherId=record.substitute_teacher_id,
            substitution_date=record.substitution_date,
            weekStart=record.week_start,
            reason=record.reason,
            status=record.status,
        )


class SubstitutionDecision(BaseModel):
    success: bool
    substitution: SubstitutionOut
    conflicts: list[ConflictOut] = Field(default_factory=list)
