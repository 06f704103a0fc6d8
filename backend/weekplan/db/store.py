"""SQLAlchemy implementation of :class:`weekplan.services.store.TimetableStore`.

The session runs with ``autoflush=False``, so every write method flushes before
returning. Replacements delete with a bulk statement first and insert after,
which keeps the per-slot unique constraints satisfied inside one transaction.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from datetime import date, datetime, timezone

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from weekplan.core.calendar import DAY_SHORT_MAP, DAYS, minutes_to_hhmm, parse_time_to_minutes, week_end_for
from weekplan.core.config import Settings, get_settings
from weekplan.models import (
    ClassSubjectAssignment,
    ReplacementStatus,
    SchoolClass,
    Subject,
    Substitution,
    Teacher,
    TeacherReplacement,
    TeacherStatus,
    TimetableEntry,
    TimetableStructure,
    WeeklyTimetable,
    WeeklyTimetableEntry,
)
from weekplan.services.audit import log_activity
from weekplan.services.availability import AvailabilityGrid
from weekplan.services.records import (
    ClassInfo,
    EntryRecord,
    PeriodSlot,
    PeriodStructure,
    ReplacementRecord,
    SubjectRequirement,
    SubstitutionRecord,
    SubstitutionStatus,
    TeacherProfile,
)


def _day_key(value: str) -> str | None:
    cleaned = (value or "").strip().lower()
    cleaned = DAY_SHORT_MAP.get(cleaned, cleaned)
    return cleaned if cleaned in DAYS else None


def _global_record(row: TimetableEntry) -> EntryRecord:
    return EntryRecord(
        id=row.id,
        class_id=row.class_id,
        day=row.day,
        period=row.period,
        subject_id=row.subject_id,
        teacher_id=row.teacher_id,
        room=row.room,
        start_time=row.start_time,
        end_time=row.end_time,
        is_active=row.is_active,
    )


def _weekly_record(row: WeeklyTimetableEntry) -> EntryRecord:
    return EntryRecord(
        id=row.id,
        class_id=row.class_id,
        day=row.day,
        period=row.period,
        subject_id=row.subject_id,
        teacher_id=row.teacher_id,
        room=row.room,
        start_time=row.start_time,
        end_time=row.end_time,
        is_active=row.is_active,
        layer="weekly",
        week_start=row.week_start,
        global_entry_id=row.global_entry_id,
        modification=row.modification,
        modification_reason=row.modification_reason,
    )


def _substitution_record(row: Substitution) -> SubstitutionRecord:
    return SubstitutionRecord(
        id=row.id,
        timetable_entry_id=row.timetable_entry_id,
        class_id=row.class_id,
        day=row.day,
        period=row.period,
        subject_id=row.subject_id,
        original_teacher_id=row.original_teacher_id,
        substitute_teacher_id=row.substitute_teacher_id,
        substitution_date=row.substitution_date,
        week_start=row.week_start,
        reason=row.reason,
        status=row.status,
    )


def _replacement_record(row: TeacherReplacement) -> ReplacementRecord:
    return ReplacementRecord(
        id=row.id,
        school_id=row.school_id,
        original_teacher_id=row.original_teacher_id,
        replacement_teacher_id=row.replacement_teacher_id,
        reason=row.reason,
        affected_entries=row.affected_timetable_entries,
        status=row.status.value,
        conflicts=list(row.conflict_details or []),
        replaced_by=row.replaced_by,
        created_at=row.created_at,
        completed_at=row.completed_at,
    )


class SqlTimetableStore:
    def __init__(self, db: Session, settings: Settings | None = None) -> None:
        self.db = db
        self.settings = settings or get_settings()

    # Reference data ------------------------------------------------------

    def get_class(self, class_id: str) -> ClassInfo | None:
        row = self.db.get(SchoolClass, class_id)
        if row is None:
            return None
        return ClassInfo(id=row.id, school_id=row.school_id, name=row.name)

    def get_teacher(self, teacher_id: str) -> TeacherProfile | None:
        row = self.db.get(Teacher, teacher_id)
        return self._teacher_profile(row) if row is not None else None

    def list_school_teachers(self, school_id: str, *, active_only: bool = True) -> list[TeacherProfile]:
        query = select(Teacher).where(Teacher.school_id == school_id)
        if active_only:
            query = query.where(Teacher.is_active.is_(True))
        rows = self.db.execute(query.order_by(Teacher.name, Teacher.id)).scalars().all()
        return [self._teacher_profile(row) for row in rows]

    def load_period_structure(self, school_id: str) -> PeriodStructure:
        row = self.db.execute(
            select(TimetableStructure).where(TimetableStructure.school_id == school_id)
        ).scalar_one_or_none()
        if row is None:
            return self._default_structure(self.settings.default_periods_per_day)

        days = tuple(day for day in DAYS if day in {_day_key(item) for item in row.working_days or []}) or DAYS
        if not row.time_slots:
            return self._default_structure(row.periods_per_day, days)
        periods = tuple(
            sorted(
                (
                    PeriodSlot(
                        period=int(item["period"]),
                        start_time=str(item["startTime"]),
                        end_time=str(item["endTime"]),
                        is_break=bool(item.get("isBreak", False)),
                    )
                    for item in row.time_slots
                ),
                key=lambda item: item.period,
            )
        )
        return PeriodStructure(periods=periods, days=days)

    def _default_structure(self, periods_per_day: int, days: tuple[str, ...] = DAYS) -> PeriodStructure:
        start = parse_time_to_minutes(self.settings.default_day_start)
        length = self.settings.default_period_minutes
        periods = tuple(
            PeriodSlot(
                period=index + 1,
                start_time=minutes_to_hhmm(start + index * length),
                end_time=minutes_to_hhmm(start + (index + 1) * length),
            )
            for index in range(periods_per_day)
        )
        return PeriodStructure(periods=periods, days=days)

    def load_class_subject_requirements(self, class_id: str) -> list[SubjectRequirement]:
        rows = self.db.execute(
            select(ClassSubjectAssignment, Subject)
            .join(Subject, Subject.id == ClassSubjectAssignment.subject_id)
            .where(ClassSubjectAssignment.class_id == class_id)
        ).all()
        return [
            SubjectRequirement(
                subject_id=subject.id,
                subject_code=subject.code,
                periods_per_week=(
                    assignment.weekly_frequency
                    if assignment.weekly_frequency is not None
                    else subject.periods_per_week
                ),
                assigned_teacher_id=assignment.assigned_teacher_id,
            )
            for assignment, subject in rows
        ]

    def load_teacher_availability(self, teacher_id: str) -> AvailabilityGrid:
        row = self.db.get(Teacher, teacher_id)
        if row is None:
            return AvailabilityGrid(
                teacher_id=teacher_id,
                max_daily_periods=self.settings.default_max_daily_periods,
                max_load=self.settings.default_max_load,
            )
        periods_by_day: dict[str, frozenset[int]] = {}
        for day, periods in (row.availability or {}).items():
            key = _day_key(day)
            if key is not None:
                periods_by_day[key] = frozenset(int(period) for period in periods)
        profile = self._teacher_profile(row)
        return AvailabilityGrid(
            teacher_id=row.id,
            periods_by_day=periods_by_day,
            max_daily_periods=profile.max_daily_periods,
            max_load=profile.max_load,
        )

    def _teacher_profile(self, row: Teacher) -> TeacherProfile:
        return TeacherProfile(
            id=row.id,
            school_id=row.school_id,
            name=row.name,
            email=row.email,
            subjects=tuple(row.subjects or ()),
            is_active=row.is_active,
            status=row.status.value if isinstance(row.status, TeacherStatus) else str(row.status),
            max_load=row.max_load or self.settings.default_max_load,
            max_daily_periods=row.max_daily_periods or self.settings.default_max_daily_periods,
        )

    # Global layer --------------------------------------------------------

    def load_global_entries(self, class_id: str) -> list[EntryRecord]:
        rows = self.db.execute(select(TimetableEntry).where(TimetableEntry.class_id == class_id)).scalars().all()
        return [_global_record(row) for row in rows]

    def load_school_global_entries(self, school_id: str) -> list[EntryRecord]:
        rows = self.db.execute(
            select(TimetableEntry)
            .join(SchoolClass, SchoolClass.id == TimetableEntry.class_id)
            .where(SchoolClass.school_id == school_id)
        ).scalars().all()
        return [_global_record(row) for row in rows]

    def replace_global_entries(self, class_id: str, entries: Sequence[EntryRecord]) -> tuple[int, list[EntryRecord]]:
        deleted = self.db.execute(delete(TimetableEntry).where(TimetableEntry.class_id == class_id)).rowcount
        rows = [
            TimetableEntry(
                id=str(uuid.uuid4()),
                class_id=class_id,
                day=entry.day,
                period=entry.period,
                subject_id=entry.subject_id,
                teacher_id=entry.teacher_id,
                room=entry.room,
                start_time=entry.start_time,
                end_time=entry.end_time,
                is_active=True,
            )
            for entry in entries
        ]
        self.db.add_all(rows)
        self.db.flush()
        return deleted or 0, [_global_record(row) for row in rows]

    # Weekly layers -------------------------------------------------------

    def _layer(self, class_id: str, week_start: date) -> WeeklyTimetable | None:
        return self.db.execute(
            select(WeeklyTimetable).where(
                WeeklyTimetable.class_id == class_id,
                WeeklyTimetable.week_start == week_start,
            )
        ).scalar_one_or_none()

    def load_weekly_entries(self, class_id: str, week_start: date) -> list[EntryRecord] | None:
        layer = self._layer(class_id, week_start)
        if layer is None:
            return None
        rows = self.db.execute(
            select(WeeklyTimetableEntry).where(WeeklyTimetableEntry.weekly_timetable_id == layer.id)
        ).scalars().all()
        return [_weekly_record(row) for row in rows]

    def load_school_weekly_layers(self, school_id: str, week_start: date) -> dict[str, list[EntryRecord]]:
        layers = self.db.execute(
            select(WeeklyTimetable).where(
                WeeklyTimetable.school_id == school_id,
                WeeklyTimetable.week_start == week_start,
            )
        ).scalars().all()
        if not layers:
            return {}
        result: dict[str, list[EntryRecord]] = {layer.class_id: [] for layer in layers}
        rows = self.db.execute(
            select(WeeklyTimetableEntry).where(
                WeeklyTimetableEntry.weekly_timetable_id.in_([layer.id for layer in layers])
            )
        ).scalars().all()
        for row in rows:
            result[row.class_id].append(_weekly_record(row))
        return result

    def list_layer_weeks(self, school_id: str, *, since: date) -> list[date]:
        weeks = self.db.execute(
            select(WeeklyTimetable.week_start)
            .where(WeeklyTimetable.school_id == school_id, WeeklyTimetable.week_start >= since)
            .distinct()
            .order_by(WeeklyTimetable.week_start)
        ).scalars().all()
        return list(weeks)

    def write_weekly_entries(
        self,
        class_id: str,
        week_start: date,
        entries: Sequence[EntryRecord],
        *,
        modified_by: str | None = None,
        based_on: str | None = None,
    ) -> list[EntryRecord]:
        layer = self._layer(class_id, week_start)
        if layer is None:
            school_class = self.db.get(SchoolClass, class_id)
            layer = WeeklyTimetable(
                id=str(uuid.uuid4()),
                school_id=school_class.school_id,
                class_id=class_id,
                week_start=week_start,
                week_end=week_end_for(week_start),
                modified_by=modified_by,
                based_on_global_version=based_on,
            )
            self.db.add(layer)
            existing: dict[str, WeeklyTimetableEntry] = {}
        else:
            if modified_by is not None:
                layer.modified_by = modified_by
            if based_on is not None:
                layer.based_on_global_version = based_on
            rows = self.db.execute(
                select(WeeklyTimetableEntry).where(WeeklyTimetableEntry.weekly_timetable_id == layer.id)
            ).scalars().all()
            existing = {row.id: row for row in rows}

        kept = {entry.id for entry in entries if entry.id in existing}
        stale = [row_id for row_id in existing if row_id not in kept]
        if stale:
            self.db.execute(delete(WeeklyTimetableEntry).where(WeeklyTimetableEntry.id.in_(stale)))

        written: list[WeeklyTimetableEntry] = []
        for entry in entries:
            row = existing.get(entry.id) if entry.id else None
            if row is None:
                row = WeeklyTimetableEntry(id=str(uuid.uuid4()), weekly_timetable_id=layer.id)
                self.db.add(row)
            row.class_id = class_id
            row.week_start = week_start
            row.day = entry.day
            row.period = entry.period
            row.subject_id = entry.subject_id
            row.teacher_id = entry.teacher_id
            row.room = entry.room
            row.start_time = entry.start_time
            row.end_time = entry.end_time
            row.is_active = entry.is_active
            row.global_entry_id = entry.global_entry_id
            row.modification = entry.modification
            row.modification_reason = entry.modification_reason
            written.append(row)
        self.db.flush()
        return [_weekly_record(row) for row in written]

    def delete_weekly_entries(self, class_id: str, week_start: date) -> int:
        layer = self._layer(class_id, week_start)
        if layer is None:
            return 0
        deleted = self.db.execute(
            delete(WeeklyTimetableEntry).where(WeeklyTimetableEntry.weekly_timetable_id == layer.id)
        ).rowcount
        self.db.execute(delete(WeeklyTimetable).where(WeeklyTimetable.id == layer.id))
        return deleted or 0

    # Entry-level access --------------------------------------------------

    def get_entry(self, entry_id: str) -> EntryRecord | None:
        row = self.db.get(TimetableEntry, entry_id)
        if row is not None:
            return _global_record(row)
        weekly = self.db.get(WeeklyTimetableEntry, entry_id)
        return _weekly_record(weekly) if weekly is not None else None

    def set_entry_teacher(self, entry: EntryRecord, teacher_id: str) -> None:
        model = TimetableEntry if entry.layer == "global" else WeeklyTimetableEntry
        row = self.db.get(model, entry.id)
        row.teacher_id = teacher_id
        self.db.flush()

    def mark_teacher_left(self, teacher_id: str) -> None:
        row = self.db.get(Teacher, teacher_id)
        row.status = TeacherStatus.left_school
        row.is_active = False
        self.db.flush()

    # History -------------------------------------------------------------

    def save_substitution(self, record: SubstitutionRecord) -> SubstitutionRecord:
        row = self.db.get(Substitution, record.id) if record.id else None
        if row is None:
            school_class = self.db.get(SchoolClass, record.class_id)
            row = Substitution(
                id=record.id or str(uuid.uuid4()),
                school_id=school_class.school_id,
                timetable_entry_id=record.timetable_entry_id,
                class_id=record.class_id,
                day=record.day,
                period=record.period,
                subject_id=record.subject_id,
                original_teacher_id=record.original_teacher_id,
                substitution_date=record.substitution_date,
                week_start=record.week_start,
            )
            self.db.add(row)
        row.substitute_teacher_id = record.substitute_teacher_id
        row.reason = record.reason
        row.status = record.status
        self.db.flush()
        return _substitution_record(row)

    def get_substitution(self, substitution_id: str) -> SubstitutionRecord | None:
        # Status can change under another session while a caller waits for a lock.
        row = self.db.get(Substitution, substitution_id, populate_existing=True)
        return _substitution_record(row) if row is not None else None

    def list_substitutions(
        self, *, school_id: str | None = None, status: SubstitutionStatus | None = None
    ) -> list[SubstitutionRecord]:
        query = select(Substitution)
        if school_id is not None:
            query = query.where(Substitution.school_id == school_id)
        if status is not None:
            query = query.where(Substitution.status == status)
        rows = self.db.execute(
            query.order_by(Substitution.substitution_date, Substitution.period, Substitution.id)
        ).scalars().all()
        return [_substitution_record(row) for row in rows]

    def record_teacher_replacement(
        self,
        *,
        school_id: str,
        original_teacher_id: str,
        replacement_teacher_id: str,
        reason: str,
        affected_entries: int,
        conflicts: list[dict],
        status: str,
        replaced_by: str | None,
    ) -> str:
        outcome = ReplacementStatus(status)
        row = TeacherReplacement(
            id=str(uuid.uuid4()),
            school_id=school_id,
            original_teacher_id=original_teacher_id,
            replacement_teacher_id=replacement_teacher_id,
            reason=reason,
            affected_timetable_entries=affected_entries,
            conflict_details=conflicts,
            status=outcome,
            replaced_by=replaced_by,
            completed_at=datetime.now(timezone.utc) if outcome == ReplacementStatus.completed else None,
        )
        self.db.add(row)
        self.db.flush()
        return row.id

    def list_teacher_replacements(
        self, *, school_id: str | None = None, teacher_id: str | None = None
    ) -> list[ReplacementRecord]:
        query = select(TeacherReplacement)
        if school_id is not None:
            query = query.where(TeacherReplacement.school_id == school_id)
        if teacher_id is not None:
            query = query.where(
                (TeacherReplacement.original_teacher_id == teacher_id)
                | (TeacherReplacement.replacement_teacher_id == teacher_id)
            )
        rows = self.db.execute(
            query.order_by(TeacherReplacement.created_at.desc(), TeacherReplacement.id)
        ).scalars().all()
        return [_replacement_record(row) for row in rows]

    def log_activity(
        self,
        *,
        actor_id: str | None,
        action: str,
        entity_type: str | None = None,
        entity_id: str | None = None,
        details: dict | None = None,
    ) -> None:
        log_activity(
            self.db,
            actor_id=actor_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            details=details,
        )

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()
