"""Per-week override layers on top of the global baseline.

A week without its own layer resolves to the global entries verbatim. The first
write to a week copies the global entries into a weekly layer and edits the
copy, so the baseline is never touched from here. ``refresh`` is the one
operation that writes both layers, and it does so in a single transaction.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date

from weekplan.core.exceptions import ConflictError, InfeasibleGenerationError, NotFoundError, ValidationError
from weekplan.schemas.teacher import TeacherOut, TeacherScheduleOut
from weekplan.schemas.timetable import (
    AssignmentResult,
    CancelResult,
    EnhancedTimetableOut,
    RefreshResult,
    TimetableEntryOut,
    WeeklyTimetableOut,
)
from weekplan.services.availability import AvailabilityModel
from weekplan.services.coordinator import class_key, teacher_key
from weekplan.services.generator import TimetableGenerator
from weekplan.services.records import EntryRecord, Modification, Slot
from weekplan.services.scheduling import (
    SchedulingContext,
    double_booking_conflicts,
    unavailable_conflict,
    unit_of_work,
)

logger = logging.getLogger(__name__)


@dataclass
class ResolvedTimetable:
    source: str
    week_start: date
    entries: list[EntryRecord]
    global_ids: set[str]

    @property
    def modification_count(self) -> int:
        return sum(1 for entry in self.entries if entry.is_modified)


def resolve_effective(
    global_entries: list[EntryRecord],
    weekly_entries: list[EntryRecord] | None,
    week_start: date,
) -> ResolvedTimetable:
    global_ids = {entry.id for entry in global_entries if entry.id}
    if weekly_entries is not None:
        entries = sorted(weekly_entries, key=lambda entry: entry.slot)
        return ResolvedTimetable("weekly", week_start, entries, global_ids)
    entries = sorted(global_entries, key=lambda entry: entry.slot)
    return ResolvedTimetable("global", week_start, entries, global_ids)


class OverrideLayer:
    def __init__(self, ctx: SchedulingContext) -> None:
        self.ctx = ctx
        self.store = ctx.store

    # Reads ---------------------------------------------------------------

    def resolve(self, class_id: str, week_start: date) -> ResolvedTimetable:
        return resolve_effective(
            self.store.load_global_entries(class_id),
            self.store.load_weekly_entries(class_id, week_start),
            week_start,
        )

    def get_global_timetable(self, class_id: str) -> list[TimetableEntryOut]:
        self.ctx.require_class(class_id)
        entries = sorted(self.store.load_global_entries(class_id), key=lambda entry: entry.slot)
        return [TimetableEntryOut.from_record(entry) for entry in entries]

    def get_effective_timetable(self, class_id: str, week_date: str | date | None = None) -> EnhancedTimetableOut:
        self.ctx.require_class(class_id)
        resolved = self.resolve(class_id, self.ctx.week_of(week_date))
        return EnhancedTimetableOut(
            source=resolved.source,
            weekStart=resolved.week_start,
            entries=[
                TimetableEntryOut.from_record(entry, live_global_ids=resolved.global_ids)
                for entry in resolved.entries
            ],
            modificationCount=resolved.modification_count,
        )

    def get_weekly_timetable(self, class_id: str, week_date: str | date | None = None) -> WeeklyTimetableOut:
        self.ctx.require_class(class_id)
        resolved = self.resolve(class_id, self.ctx.week_of(week_date))
        has_layer = resolved.source == "weekly"
        return WeeklyTimetableOut(
            type="weekly" if has_layer else "global",
            classId=class_id,
            weekStart=resolved.week_start,
            hasWeeklyOverrides=has_layer,
            entries=[
                TimetableEntryOut.from_record(entry, live_global_ids=resolved.global_ids)
                for entry in resolved.entries
            ],
        )

    def teacher_schedule(self, teacher_id: str, week_date: str | date | None = None) -> TeacherScheduleOut:
        """Everything one teacher actually teaches in a week, across all classes of the school."""
        teacher = self.ctx.require_teacher(teacher_id)
        week_start = self.ctx.week_of(week_date)
        school_globals = self.store.load_school_global_entries(teacher.school_id)
        live_ids = {entry.id for entry in school_globals if entry.id}
        effective = self.ctx.school_effective_entries(teacher.school_id, week_start, global_entries=school_globals)
        entries = sorted(
            (entry for entry in effective if entry.is_active and entry.teacher_id == teacher_id),
            key=lambda entry: (entry.slot, entry.class_id),
        )
        return TeacherScheduleOut(
            teacherId=teacher_id,
            weekStart=week_start,
            totalPeriods=len(entries),
            entries=[TimetableEntryOut.from_record(entry, live_global_ids=live_ids) for entry in entries],
        )

    def available_teachers_for_slot(
        self,
        class_id: str,
        day: str,
        period: int,
        week_date: str | date | None = None,
        *,
        subject_id: str | None = None,
        exclude_teacher_ids: set[str] | None = None,
    ) -> list[TeacherOut]:
        class_info = self.ctx.require_class(class_id)
        structure = self.store.load_period_structure(class_info.school_id)
        slot = self.ctx.require_slot(structure, day, period)
        week_start = self.ctx.week_of(week_date)

        effective = self.ctx.school_effective_entries(class_info.school_id, week_start)
        busy = {
            entry.teacher_id
            for entry in effective
            if entry.is_active and entry.teacher_id and entry.slot == slot and entry.class_id != class_id
        }
        class_teachers = {
            entry.teacher_id for entry in effective if entry.class_id == class_id and entry.teacher_id
        }
        teachers = self.store.list_school_teachers(class_info.school_id)
        availability = AvailabilityModel(
            {teacher.id: self.store.load_teacher_availability(teacher.id) for teacher in teachers},
            effective,
        )
        excluded = exclude_teacher_ids or set()

        available = [
            teacher
            for teacher in teachers
            if teacher.id not in excluded
            and teacher.id not in busy
            and teacher.can_teach(subject_id)
            and availability.is_available(teacher.id, slot.day, slot.period)
            and availability.remaining_load(teacher.id, slot.day) > 0
        ]
        available.sort(key=lambda teacher: (teacher.id not in class_teachers, teacher.name.lower(), teacher.id))
        return [
            TeacherOut.from_profile(teacher, teaching_this_class=teacher.id in class_teachers)
            for teacher in available
        ]

    # Writes --------------------------------------------------------------

    def manual_assign(
        self,
        *,
        class_id: str,
        day: str,
        period: int,
        new_teacher_id: str,
        timetable_entry_id: str | None = None,
        subject_id: str | None = None,
        room: str | None = None,
        reason: str | None = None,
        week_date: str | date | None = None,
        actor_id: str | None = None,
    ) -> AssignmentResult:
        class_info = self.ctx.require_class(class_id)
        structure = self.store.load_period_structure(class_info.school_id)
        slot = self.ctx.require_slot(structure, day, period)
        teacher = self.ctx.require_teacher(new_teacher_id)
        if teacher.school_id != class_info.school_id:
            raise ValidationError("Teacher does not belong to the same school as the class")
        if not teacher.is_active:
            raise ValidationError(f"Teacher {teacher.name} is not active")
        week_start = self.ctx.week_of(week_date)
        self.ctx.ensure_editable_week(week_start)

        try:
            with self.ctx.coordinator.hold(class_key(class_id), teacher_key(new_teacher_id)):
                with unit_of_work(self.store):
                    entry = self.stage_assignment(
                        class_id=class_id,
                        school_id=class_info.school_id,
                        slot=slot,
                        new_teacher_id=new_teacher_id,
                        week_start=week_start,
                        timetable_entry_id=timetable_entry_id,
                        subject_id=subject_id,
                        room=room,
                        reason=reason or "Manual assignment by admin",
                        actor_id=actor_id,
                    )
        except ConflictError as exc:
            logger.info(
                "Manual assignment of %s to class %s %s/%d rejected with %d conflict(s)",
                new_teacher_id,
                class_id,
                slot.day,
                slot.period,
                len(exc.conflicts),
            )
            return AssignmentResult(success=False, conflicts=exc.conflicts)

        logger.info(
            "Assigned teacher %s to class %s %s/%d for week %s",
            new_teacher_id,
            class_id,
            slot.day,
            slot.period,
            week_start.isoformat(),
        )
        return AssignmentResult(success=True, entry=TimetableEntryOut.from_record(entry))

    def stage_assignment(
        self,
        *,
        class_id: str,
        school_id: str,
        slot: Slot,
        new_teacher_id: str,
        week_start: date,
        timetable_entry_id: str | None = None,
        subject_id: str | None = None,
        room: str | None = None,
        reason: str,
        actor_id: str | None = None,
    ) -> EntryRecord:
        """Check-then-write for one weekly slot. Caller holds the locks and the transaction."""
        layer, target = self._materialize(class_id, week_start, slot)
        if timetable_entry_id is not None:
            if target is None:
                raise NotFoundError("Timetable entry", timetable_entry_id)
            if timetable_entry_id not in {target.id, target.global_entry_id}:
                raise ValidationError(
                    f"Timetable entry {timetable_entry_id} is not the entry at {slot.day} period {slot.period}"
                )

        conflicts = double_booking_conflicts(
            self.ctx.school_effective_entries(school_id, week_start),
            teacher_id=new_teacher_id,
            slot=slot,
            class_id=class_id,
            week_start=week_start,
        )
        unavailable = unavailable_conflict(
            self.store.load_teacher_availability(new_teacher_id),
            slot=slot,
            class_id=class_id,
            week_start=week_start,
        )
        if unavailable is not None:
            conflicts.append(unavailable)
        if conflicts:
            raise ConflictError(conflicts)

        if target is None:
            if not subject_id:
                raise ValidationError("subjectId is required to insert a period into an empty slot")
            period_slot = self.store.load_period_structure(school_id).lookup(slot.period)
            updated = EntryRecord(
                class_id=class_id,
                day=slot.day,
                period=slot.period,
                subject_id=subject_id,
                teacher_id=new_teacher_id,
                start_time=period_slot.start_time,
                end_time=period_slot.end_time,
                room=room,
                layer="weekly",
                week_start=week_start,
                modification=Modification.inserted,
                modification_reason=reason,
            )
            layer.append(updated)
        else:
            marker = Modification.inserted if target.modification == Modification.inserted else Modification.reassigned
            updated = replace(
                target,
                teacher_id=new_teacher_id,
                subject_id=subject_id or target.subject_id,
                room=room or target.room,
                is_active=True,
                modification=marker,
                modification_reason=reason,
            )
            layer[layer.index(target)] = updated

        written = self.store.write_weekly_entries(class_id, week_start, layer, modified_by=actor_id)
        self.store.log_activity(
            actor_id=actor_id,
            action="timetable.manual_assign",
            entity_type="weekly_timetable",
            entity_id=class_id,
            details={
                "weekStart": week_start.isoformat(),
                "day": slot.day,
                "period": slot.period,
                "oldTeacherId": target.teacher_id if target is not None else None,
                "newTeacherId": new_teacher_id,
                "reason": reason,
            },
        )
        return next(entry for entry in written if entry.slot == slot)

    def cancel_entry(
        self,
        entry_id: str,
        week_date: str | date | None = None,
        *,
        actor_id: str | None = None,
    ) -> CancelResult:
        entry = self.store.get_entry(entry_id)
        if entry is None:
            raise NotFoundError("Timetable entry", entry_id)
        if entry.layer == "weekly":
            week_start = entry.week_start if week_date is None else self.ctx.week_of(week_date)
            if week_start != entry.week_start:
                raise ValidationError("Weekly entry does not belong to the requested week")
        else:
            week_start = self.ctx.week_of(week_date)
        self.ctx.ensure_editable_week(week_start)

        with self.ctx.coordinator.hold(class_key(entry.class_id)):
            with unit_of_work(self.store):
                layer, target = self._materialize(entry.class_id, week_start, entry.slot)
                if target is None:
                    raise NotFoundError("Timetable entry", entry_id)
                layer[layer.index(target)] = replace(
                    target,
                    is_active=False,
                    modification=Modification.cancelled,
                    modification_reason="Period cancelled by admin",
                )
                self.store.write_weekly_entries(entry.class_id, week_start, layer, modified_by=actor_id)
                self.store.log_activity(
                    actor_id=actor_id,
                    action="timetable.cancel_entry",
                    entity_type="weekly_timetable",
                    entity_id=entry.class_id,
                    details={
                        "weekStart": week_start.isoformat(),
                        "day": entry.day,
                        "period": entry.period,
                        "teacherId": target.teacher_id,
                    },
                )

        logger.info(
            "Cancelled class %s %s/%d for week %s", entry.class_id, entry.day, entry.period, week_start.isoformat()
        )
        return CancelResult(success=True)

    def refresh(self, class_id: str, *, actor_id: str | None = None) -> RefreshResult:
        class_info = self.ctx.require_class(class_id)
        structure = self.store.load_period_structure(class_info.school_id)
        requirements = self.store.load_class_subject_requirements(class_id)
        teachers = self.store.list_school_teachers(class_info.school_id)
        week_start = self.ctx.current_week()

        with self.ctx.coordinator.hold(class_key(class_id)):
            with unit_of_work(self.store):
                school_globals = self.store.load_school_global_entries(class_info.school_id)
                others = [entry for entry in school_globals if entry.class_id != class_id]
                # The new baseline shows up in the current week and in every live week
                # without a layer of its own, next to other classes' overrides there.
                weeks = {week_start, *self.ctx.weeks_on_baseline(class_info.school_id, class_id)}
                commitments = self.ctx.other_class_commitments(
                    class_info.school_id, class_id, sorted(weeks), global_entries=school_globals
                )
                busy = others + [entry for entries in commitments.values() for entry in entries]
                availability = AvailabilityModel(
                    {teacher.id: self.store.load_teacher_availability(teacher.id) for teacher in teachers},
                    others,
                )
                generated = TimetableGenerator(
                    structure=structure,
                    teachers=teachers,
                    availability=availability,
                    busy=busy,
                ).generate(class_id, requirements)
                if generated.unsatisfied and self.ctx.settings.generation_strict:
                    raise InfeasibleGenerationError(generated.unsatisfied)

                global_deleted, written = self.store.replace_global_entries(class_id, generated.entries)
                weekly_deleted = self.store.delete_weekly_entries(class_id, week_start)
                self.store.write_weekly_entries(
                    class_id,
                    week_start,
                    [entry.as_weekly(week_start) for entry in written],
                    modified_by=actor_id,
                    based_on="latest-refresh",
                )
                self.store.log_activity(
                    actor_id=actor_id,
                    action="timetable.refresh_global",
                    entity_type="class",
                    entity_id=class_id,
                    details={
                        "entriesCreated": len(written),
                        "globalDeleted": global_deleted,
                        "weeklyDeleted": weekly_deleted,
                        "weekStart": week_start.isoformat(),
                        "unsatisfied": len(generated.unsatisfied),
                    },
                )

        logger.info(
            "Refreshed class %s: %d created, %d global and %d weekly entries deleted",
            class_id,
            len(written),
            global_deleted,
            weekly_deleted,
        )
        return RefreshResult(
            success=True,
            entriesCreated=len(written),
            globalDeleted=global_deleted,
            weeklyDeleted=weekly_deleted,
            weekStart=week_start,
            unsatisfiedRequirements=generated.unsatisfied,
        )

    def _materialize(self, class_id: str, week_start: date, slot: Slot) -> tuple[list[EntryRecord], EntryRecord | None]:
        """Weekly layer for the week (copied from global on first write) and its entry at ``slot``."""
        layer = self.store.load_weekly_entries(class_id, week_start)
        if layer is None:
            layer = [entry.as_weekly(week_start) for entry in self.store.load_global_entries(class_id)]
        target = next((entry for entry in layer if entry.slot == slot), None)
        return layer, target
