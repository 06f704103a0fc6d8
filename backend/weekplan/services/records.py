"""Storage-agnostic records shared by the scheduling components.

Timetable entries are a tagged union over one key space: a ``global`` entry is
the recurring baseline for its class, a ``weekly`` entry belongs to one
(class, week) override layer and may point at the global entry it overrides
through ``global_entry_id``. Nothing subclasses anything; callers branch on
``layer`` and resolve through :func:`weekplan.services.overrides.resolve_effective`.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from enum import Enum
from typing import Literal

from weekplan.core.calendar import DAYS

Layer = Literal["global", "weekly"]


class Modification(str, Enum):
    reassigned = "reassigned"
    cancelled = "cancelled"
    inserted = "inserted"


class SubstitutionStatus(str, Enum):
    pending = "pending"
    confirmed = "confirmed"
    rejected = "rejected"


@dataclass(frozen=True, order=True)
class Slot:
    day_index: int
    period: int

    @classmethod
    def of(cls, day: str, period: int) -> "Slot":
        return cls(DAYS.index(day), period)

    @property
    def day(self) -> str:
        return DAYS[self.day_index]


@dataclass
class EntryRecord:
    class_id: str
    day: str
    period: int
    subject_id: str | None
    teacher_id: str | None
    start_time: str
    end_time: str
    room: str | None = None
    is_active: bool = True
    id: str | None = None
    layer: Layer = "global"
    week_start: date | None = None
    global_entry_id: str | None = None
    modification: Modification | None = None
    modification_reason: str | None = None

    @property
    def slot(self) -> Slot:
        return Slot.of(self.day, self.period)

    @property
    def is_modified(self) -> bool:
        return self.modification is not None

    def as_weekly(self, week_start: date) -> "EntryRecord":
        """Unmarked weekly copy of a global entry."""
        return replace(
            self,
            id=None,
            layer="weekly",
            week_start=week_start,
            global_entry_id=self.id,
            modification=None,
            modification_reason=None,
        )

    def as_global(self) -> "EntryRecord":
        return replace(
            self,
            id=None,
            layer="global",
            week_start=None,
            global_entry_id=None,
            modification=None,
            modification_reason=None,
            is_active=True,
        )

    def assignment_key(self) -> tuple:
        return (self.slot, self.subject_id, self.teacher_id, self.room)


@dataclass(frozen=True)
class ClassInfo:
    id: str
    school_id: str
    name: str


@dataclass(frozen=True)
class TeacherProfile:
    id: str
    school_id: str
    name: str
    email: str | None = None
    subjects: tuple[str, ...] = ()
    is_active: bool = True
    status: str = "active"
    max_load: int = 30
    max_daily_periods: int = 6

    def can_teach(self, subject_id: str | None) -> bool:
        return subject_id is None or subject_id in self.subjects


@dataclass(frozen=True)
class SubjectRequirement:
    subject_id: str
    subject_code: str
    periods_per_week: int
    assigned_teacher_id: str | None = None


@dataclass(frozen=True)
class PeriodSlot:
    period: int
    start_time: str
    end_time: str
    is_break: bool = False


@dataclass(frozen=True)
class PeriodStructure:
    periods: tuple[PeriodSlot, ...]
    days: tuple[str, ...] = DAYS

    @property
    def teaching_periods(self) -> list[PeriodSlot]:
        return [item for item in self.periods if not item.is_break]

    def lookup(self, period: int) -> PeriodSlot | None:
        for item in self.periods:
            if item.period == period:
                return item
        return None

    def is_teaching_period(self, period: int) -> bool:
        found = self.lookup(period)
        return found is not None and not found.is_break


@dataclass
class SubstitutionRecord:
    timetable_entry_id: str
    class_id: str
    day: str
    period: int
    original_teacher_id: str
    substitution_date: date
    week_start: date
    subject_id: str | None = None
    reason: str | None = None
    substitute_teacher_id: str | None = None
    status: SubstitutionStatus = SubstitutionStatus.pending
    id: str | None = None


@dataclass
class ReplacementRecord:
    id: str
    school_id: str
    original_teacher_id: str
    replacement_teacher_id: str
    reason: str
    affected_entries: int
    status: str
    conflicts: list[dict] = field(default_factory=list)
    replaced_by: str | None = None
    created_at: datetime | None = None
    completed_at: datetime | None = None
