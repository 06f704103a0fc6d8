"""Bulk teacher replacement across the global baseline and every live week.

A replacement is simulated per scope before anything is written: the global
scope holds the baseline, and each live week with its own layer is a scope of
its own holding that week's effective timetable for the whole school. Entries
inherited from the baseline are only checked against weekly-layer entries in a
week scope, because the global scope already checks them against each other.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field

from weekplan.core.exceptions import ConcurrencyTimeoutError, ValidationError
from weekplan.schemas.teacher import ReplacementPreview, ReplacementResult, TeacherOut, TeacherReplacementOut
from weekplan.schemas.timetable import ConflictOut
from weekplan.services.availability import AvailabilityGrid
from weekplan.services.coordinator import class_key, teacher_key
from weekplan.services.records import EntryRecord, TeacherProfile
from weekplan.services.scheduling import (
    SchedulingContext,
    double_booking_conflicts,
    unavailable_conflict,
    unit_of_work,
)

logger = logging.getLogger(__name__)

MAX_LOCK_ATTEMPTS = 3


@dataclass
class ReplacementPlan:
    affected: list[EntryRecord] = field(default_factory=list)
    conflicts: list[ConflictOut] = field(default_factory=list)

    @property
    def class_ids(self) -> set[str]:
        return {entry.class_id for entry in self.affected}


class ReassignmentEngine:
    def __init__(self, ctx: SchedulingContext) -> None:
        self.ctx = ctx
        self.store = ctx.store

    def find_replacement_candidates(self, teacher_id: str) -> list[TeacherOut]:
        original = self.ctx.require_teacher(teacher_id)
        global_entries = self.store.load_school_global_entries(original.school_id)
        owned = [entry for entry in global_entries if entry.is_active and entry.teacher_id == original.id]
        slots = {entry.slot for entry in owned}
        transferred_per_day = Counter(entry.day for entry in owned)

        candidates: list[TeacherProfile] = []
        for teacher in self.store.list_school_teachers(original.school_id):
            if teacher.id == original.id:
                continue
            grid = self.store.load_teacher_availability(teacher.id)
            if not all(grid.allows(slot.day, slot.period) for slot in slots):
                continue
            own = [entry for entry in global_entries if entry.is_active and entry.teacher_id == teacher.id]
            if any(entry.slot in slots for entry in own):
                continue
            if len(own) + len(owned) > grid.max_load:
                continue
            own_per_day = Counter(entry.day for entry in own)
            if any(own_per_day[day] + count > grid.max_daily_periods for day, count in transferred_per_day.items()):
                continue
            candidates.append(teacher)

        candidates.sort(key=lambda teacher: (teacher.name.lower(), teacher.id))
        return [TeacherOut.from_profile(teacher) for teacher in candidates]

    def check_replacement_conflicts(self, teacher_id: str, replacement_teacher_id: str) -> ReplacementPreview:
        original, replacement = self._require_pair(teacher_id, replacement_teacher_id)
        plan = self._simulate(original, replacement)
        return ReplacementPreview(
            hasConflicts=bool(plan.conflicts),
            conflictCount=len(plan.conflicts),
            totalEntries=len(plan.affected),
            conflicts=plan.conflicts,
        )

    def replacement_history(
        self, *, school_id: str | None = None, teacher_id: str | None = None
    ) -> list[TeacherReplacementOut]:
        records = self.store.list_teacher_replacements(school_id=school_id, teacher_id=teacher_id)
        return [TeacherReplacementOut.from_record(record) for record in records]

    def replace_teacher(
        self,
        teacher_id: str,
        replacement_teacher_id: str,
        reason: str,
        *,
        actor_id: str | None = None,
    ) -> ReplacementResult:
        original, replacement = self._require_pair(teacher_id, replacement_teacher_id)
        if original.status == "left_school":
            raise ValidationError(f"Teacher {original.name} has already been replaced")

        class_ids = self._simulate(original, replacement).class_ids
        for _ in range(MAX_LOCK_ATTEMPTS):
            keys = [teacher_key(original.id), teacher_key(replacement.id)]
            keys.extend(class_key(class_id) for class_id in class_ids)
            with self.ctx.coordinator.hold(*keys):
                with unit_of_work(self.store):
                    plan = self._simulate(original, replacement)
                    if not plan.class_ids <= class_ids:
                        # Entries moved into unlocked classes since the first pass.
                        class_ids |= plan.class_ids
                        continue
                    return self._apply(original, replacement, reason, plan, actor_id)
        raise ConcurrencyTimeoutError(
            teacher_key(original.id),
            self.ctx.coordinator.timeout_seconds,
            message="Teacher entries kept changing during replacement; retry the request",
        )

    def _apply(
        self,
        original: TeacherProfile,
        replacement: TeacherProfile,
        reason: str,
        plan: ReplacementPlan,
        actor_id: str | None,
    ) -> ReplacementResult:
        if plan.conflicts:
            replacement_id = self.store.record_teacher_replacement(
                school_id=original.school_id,
                original_teacher_id=original.id,
                replacement_teacher_id=replacement.id,
                reason=reason,
                affected_entries=0,
                conflicts=[conflict.model_dump(mode="json") for conflict in plan.conflicts],
                status="failed",
                replaced_by=actor_id,
            )
            logger.info(
                "Replacement of %s by %s rejected with %d conflict(s)",
                original.id,
                replacement.id,
                len(plan.conflicts),
            )
            return ReplacementResult(
                success=False,
                conflicts=plan.conflicts,
                entriesTransferred=0,
                replacementId=replacement_id,
            )

        for entry in plan.affected:
            self.store.set_entry_teacher(entry, replacement.id)
        self.store.mark_teacher_left(original.id)
        replacement_id = self.store.record_teacher_replacement(
            school_id=original.school_id,
            original_teacher_id=original.id,
            replacement_teacher_id=replacement.id,
            reason=reason,
            affected_entries=len(plan.affected),
            conflicts=[],
            status="completed",
            replaced_by=actor_id,
        )
        self.store.log_activity(
            actor_id=actor_id,
            action="teacher.replace",
            entity_type="teacher",
            entity_id=original.id,
            details={
                "replacementTeacherId": replacement.id,
                "entriesTransferred": len(plan.affected),
                "reason": reason,
            },
        )
        logger.info("Replaced teacher %s by %s (%d entries)", original.id, replacement.id, len(plan.affected))
        return ReplacementResult(
            success=True,
            entriesTransferred=len(plan.affected),
            replacementId=replacement_id,
        )

    def _require_pair(self, teacher_id: str, replacement_teacher_id: str) -> tuple[TeacherProfile, TeacherProfile]:
        if teacher_id == replacement_teacher_id:
            raise ValidationError("A teacher cannot replace themselves")
        original = self.ctx.require_teacher(teacher_id)
        replacement = self.ctx.require_teacher(replacement_teacher_id)
        if original.school_id != replacement.school_id:
            raise ValidationError("Replacement teacher must belong to the same school")
        if not replacement.is_active:
            raise ValidationError(f"Replacement teacher {replacement.name} is not active")
        return original, replacement

    def _simulate(self, original: TeacherProfile, replacement: TeacherProfile) -> ReplacementPlan:
        plan = ReplacementPlan()
        seen: set[str] = set()
        grid = self.store.load_teacher_availability(replacement.id)
        global_entries = self.store.load_school_global_entries(original.school_id)

        moved = [entry for entry in global_entries if entry.is_active and entry.teacher_id == original.id]
        for entry in moved:
            plan.conflicts.extend(
                double_booking_conflicts(
                    global_entries, teacher_id=replacement.id, slot=entry.slot, class_id=entry.class_id, week_start=None
                )
            )
            self._check_grid(plan, grid, entry)
            self._add_affected(plan, seen, entry)

        for week_start in self.store.list_layer_weeks(original.school_id, since=self.ctx.current_week()):
            effective = self.ctx.school_effective_entries(
                original.school_id, week_start, global_entries=global_entries
            )
            layered = [entry for entry in effective if entry.layer == "weekly"]
            for entry in effective:
                if not entry.is_active or entry.teacher_id != original.id:
                    continue
                against = effective if entry.layer == "weekly" else layered
                plan.conflicts.extend(
                    double_booking_conflicts(
                        against,
                        teacher_id=replacement.id,
                        slot=entry.slot,
                        class_id=entry.class_id,
                        week_start=week_start,
                    )
                )
                if entry.layer == "weekly":
                    self._check_grid(plan, grid, entry)
                    self._add_affected(plan, seen, entry)
        return plan

    @staticmethod
    def _check_grid(plan: ReplacementPlan, grid: AvailabilityGrid, entry: EntryRecord) -> None:
        conflict = unavailable_conflict(grid, slot=entry.slot, class_id=entry.class_id, week_start=entry.week_start)
        if conflict is not None:
            plan.conflicts.append(conflict)

    @staticmethod
    def _add_affected(plan: ReplacementPlan, seen: set[str], entry: EntryRecord) -> None:
        if entry.id is None or entry.id in seen:
            return
        seen.add(entry.id)
        plan.affected.append(entry)
