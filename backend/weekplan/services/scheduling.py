from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date

from weekplan.core.calendar import normalize_day, parse_date, school_today, week_start_for
from weekplan.core.config import Settings, get_settings
from weekplan.core.exceptions import NotFoundError, ValidationError
from weekplan.schemas.timetable import ConflictOut
from weekplan.services.availability import AvailabilityGrid
from weekplan.services.coordinator import SchedulingCoordinator
from weekplan.services.records import ClassInfo, EntryRecord, PeriodStructure, Slot, TeacherProfile
from weekplan.services.store import TimetableStore


@dataclass
class SchedulingContext:
    """Everything a scheduling component needs: storage, the lock table, config and a clock."""

    store: TimetableStore
    coordinator: SchedulingCoordinator
    settings: Settings = field(default_factory=get_settings)
    clock: Callable[[], date] | None = None

    def today(self) -> date:
        if self.clock is not None:
            return self.clock()
        return school_today(self.settings.school_timezone)

    def current_week(self) -> date:
        return week_start_for(self.today())

    def week_of(self, value: str | date | None) -> date:
        return week_start_for(parse_date(value, default=self.today()))

    def require_class(self, class_id: str) -> ClassInfo:
        class_info = self.store.get_class(class_id)
        if class_info is None:
            raise NotFoundError("Class", class_id)
        return class_info

    def require_teacher(self, teacher_id: str) -> TeacherProfile:
        teacher = self.store.get_teacher(teacher_id)
        if teacher is None:
            raise NotFoundError("Teacher", teacher_id)
        return teacher

    def require_slot(self, structure: PeriodStructure, day: str, period: int) -> Slot:
        normalized = normalize_day(day)
        if not structure.is_teaching_period(period):
            raise ValidationError(f"Period {period} is not a teaching period for this school")
        return Slot.of(normalized, period)

    def ensure_editable_week(self, week_start: date) -> None:
        if week_start < self.current_week():
            raise ValidationError(
                "Cannot edit past weeks. Manual edits are only allowed for current and future weeks.",
                details={"weekStart": week_start.isoformat()},
            )

    def school_effective_entries(
        self,
        school_id: str,
        week_start: date,
        *,
        global_entries: list[EntryRecord] | None = None,
    ) -> list[EntryRecord]:
        """Effective entries of every class in the school for one week."""
        if global_entries is None:
            global_entries = self.store.load_school_global_entries(school_id)
        weekly_layers = self.store.load_school_weekly_layers(school_id, week_start)
        by_class: dict[str, list[EntryRecord]] = defaultdict(list)
        for entry in global_entries:
            by_class[entry.class_id].append(entry)
        by_class.update(weekly_layers)
        return [entry for entries in by_class.values() for entry in entries]

    def weeks_on_baseline(self, school_id: str, class_id: str) -> list[date]:
        """Live weeks holding some other class's layer where ``class_id`` still resolves to its global entries."""
        return [
            week
            for week in self.store.list_layer_weeks(school_id, since=self.current_week())
            if self.store.load_weekly_entries(class_id, week) is None
        ]

    def other_class_commitments(
        self,
        school_id: str,
        class_id: str,
        weeks: Iterable[date],
        *,
        global_entries: list[EntryRecord] | None = None,
    ) -> dict[date, list[EntryRecord]]:
        """Effective entries of every other class, per week."""
        if global_entries is None:
            global_entries = self.store.load_school_global_entries(school_id)
        return {
            week: [
                entry
                for entry in self.school_effective_entries(school_id, week, global_entries=global_entries)
                if entry.class_id != class_id
            ]
            for week in weeks
        }


@contextmanager
def unit_of_work(store: TimetableStore) -> Iterator[None]:
    try:
        yield
        store.commit()
    except BaseException:
        store.rollback()
        raise


def double_booking_conflicts(
    entries: Iterable[EntryRecord],
    *,
    teacher_id: str,
    slot: Slot,
    class_id: str,
    week_start: date | None,
) -> list[ConflictOut]:
    conflicts: list[ConflictOut] = []
    for entry in entries:
        if not entry.is_active or entry.teacher_id != teacher_id:
            continue
        if entry.class_id == class_id or entry.slot != slot:
            continue
        conflicts.append(
            ConflictOut(
                day=slot.day,
                period=slot.period,
                weekStart=week_start,
                teacherId=teacher_id,
                classId=class_id,
                conflictingClassId=entry.class_id,
                conflictingEntryId=entry.id,
                kind="double_booked",
            )
        )
    return conflicts


def unavailable_conflict(
    grid: AvailabilityGrid,
    *,
    slot: Slot,
    class_id: str,
    week_start: date | None,
) -> ConflictOut | None:
    if grid.allows(slot.day, slot.period):
        return None
    return ConflictOut(
        day=slot.day,
        period=slot.period,
        weekStart=week_start,
        teacherId=grid.teacher_id,
        classId=class_id,
        kind="unavailable",
    )
