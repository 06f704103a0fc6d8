from __future__ import annotations

import logging
from datetime import date

from weekplan.core.exceptions import ConflictError, NotFoundError, ValidationError
from weekplan.schemas.timetable import ConflictOut, PromotionResult
from weekplan.services.coordinator import class_key
from weekplan.services.records import EntryRecord
from weekplan.services.scheduling import SchedulingContext, double_booking_conflicts, unit_of_work

logger = logging.getLogger(__name__)


class PromotionEngine:
    """Makes one week's override layer the new recurring baseline of its class."""

    def __init__(self, ctx: SchedulingContext) -> None:
        self.ctx = ctx
        self.store = ctx.store

    def set_weekly_as_global(
        self,
        class_id: str,
        week_date: str | date | None = None,
        *,
        actor_id: str | None = None,
    ) -> PromotionResult:
        class_info = self.ctx.require_class(class_id)
        week_start = self.ctx.week_of(week_date)

        try:
            with self.ctx.coordinator.hold(class_key(class_id)):
                with unit_of_work(self.store):
                    promoted = self._promote(class_id, class_info.school_id, week_start, actor_id)
        except ConflictError as exc:
            logger.info(
                "Promotion of class %s week %s rejected with %d conflict(s)",
                class_id,
                week_start.isoformat(),
                len(exc.conflicts),
            )
            return PromotionResult(
                success=False, entriesPromoted=0, weekStart=week_start, conflicts=exc.conflicts
            )

        return PromotionResult(success=True, entriesPromoted=promoted, weekStart=week_start)

    def _promote(self, class_id: str, school_id: str, week_start: date, actor_id: str | None) -> int:
        weekly = self.store.load_weekly_entries(class_id, week_start)
        if weekly is None:
            raise NotFoundError("Weekly timetable", f"{class_id}@{week_start.isoformat()}")
        active = sorted((entry for entry in weekly if entry.is_active), key=lambda entry: entry.slot)
        if not active:
            raise ValidationError(
                "Weekly timetable has no active entries to promote",
                details={"classId": class_id, "weekStart": week_start.isoformat()},
            )

        baseline = [entry.as_global() for entry in active]
        current = self.store.load_global_entries(class_id)
        if _same_content(baseline, current):
            logger.info("Week %s of class %s already matches the global timetable", week_start.isoformat(), class_id)
            return len(current)

        school_globals = self.store.load_school_global_entries(school_id)
        scopes: dict[date | None, list[EntryRecord]] = {
            None: [entry for entry in school_globals if entry.class_id != class_id]
        }
        # Weeks without a layer of this class resolve to the promoted entries too.
        scopes.update(
            self.ctx.other_class_commitments(
                school_id,
                class_id,
                self.ctx.weeks_on_baseline(school_id, class_id),
                global_entries=school_globals,
            )
        )
        conflicts: list[ConflictOut] = []
        for scope_week, others in scopes.items():
            for entry in baseline:
                if entry.teacher_id is None:
                    continue
                conflicts.extend(
                    double_booking_conflicts(
                        others,
                        teacher_id=entry.teacher_id,
                        slot=entry.slot,
                        class_id=class_id,
                        week_start=scope_week,
                    )
                )
        if conflicts:
            raise ConflictError(conflicts)

        _, written = self.store.replace_global_entries(class_id, baseline)
        self.store.log_activity(
            actor_id=actor_id,
            action="timetable.set_weekly_as_global",
            entity_type="class",
            entity_id=class_id,
            details={"weekStart": week_start.isoformat(), "entriesPromoted": len(written)},
        )
        logger.info(
            "Promoted week %s of class %s to global (%d entries)", week_start.isoformat(), class_id, len(written)
        )
        return len(written)


def _same_content(baseline: list[EntryRecord], current: list[EntryRecord]) -> bool:
    if len(baseline) != len(current):
        return False
    return {entry.slot: entry.assignment_key() for entry in baseline} == {
        entry.slot: entry.assignment_key() for entry in current if entry.is_active
    }
