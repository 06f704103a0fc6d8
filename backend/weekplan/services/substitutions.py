from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date

from weekplan.core.calendar import parse_date, weekday_name, week_start_for
from weekplan.core.exceptions import ConflictError, NotFoundError, ValidationError
from weekplan.schemas.substitution import SubstitutionDecision, SubstitutionOut
from weekplan.schemas.teacher import TeacherOut
from weekplan.services.coordinator import class_key, teacher_key
from weekplan.services.overrides import OverrideLayer
from weekplan.services.records import SubstitutionRecord, SubstitutionStatus
from weekplan.services.scheduling import SchedulingContext, unit_of_work

logger = logging.getLogger(__name__)


class SubstitutionService:
    """Single-slot, single-date teacher swaps with a pending -> confirmed/rejected lifecycle.

    Confirmation writes through the override layer of the substitution's week, so a
    confirmed substitution is exactly a scoped manual assignment.
    """

    def __init__(self, ctx: SchedulingContext) -> None:
        self.ctx = ctx
        self.store = ctx.store
        self.overrides = OverrideLayer(ctx)

    def request(
        self,
        timetable_entry_id: str,
        substitution_date: str | date,
        reason: str | None = None,
        *,
        actor_id: str | None = None,
    ) -> SubstitutionOut:
        entry = self.store.get_entry(timetable_entry_id)
        if entry is None:
            raise NotFoundError("Timetable entry", timetable_entry_id)
        on_date = parse_date(substitution_date)
        if weekday_name(on_date) != entry.day:
            raise ValidationError(
                f"{on_date.isoformat()} is not a {entry.day}",
                details={"date": on_date.isoformat(), "day": entry.day},
            )
        week_start = week_start_for(on_date)
        self.ctx.ensure_editable_week(week_start)

        # The teacher actually in charge that week may differ from the baseline.
        layer = self.store.load_weekly_entries(entry.class_id, week_start)
        effective = entry
        if layer is not None:
            effective = next((item for item in layer if item.slot == entry.slot), None)
        if effective is None or not effective.is_active:
            raise ValidationError("The period is cancelled for that week")
        if effective.teacher_id is None:
            raise ValidationError("The period has no teacher to substitute")

        with unit_of_work(self.store):
            saved = self.store.save_substitution(
                SubstitutionRecord(
                    timetable_entry_id=timetable_entry_id,
                    class_id=entry.class_id,
                    day=entry.day,
                    period=entry.period,
                    subject_id=effective.subject_id,
                    original_teacher_id=effective.teacher_id,
                    substitution_date=on_date,
                    week_start=week_start,
                    reason=reason,
                )
            )
            self.store.log_activity(
                actor_id=actor_id,
                action="substitution.request",
                entity_type="substitution",
                entity_id=saved.id,
                details={"date": on_date.isoformat(), "originalTeacherId": effective.teacher_id},
            )
        logger.info("Substitution %s requested for class %s on %s", saved.id, entry.class_id, on_date.isoformat())
        return SubstitutionOut.from_record(saved)

    def confirm(
        self,
        substitution_id: str,
        substitute_teacher_id: str,
        *,
        actor_id: str | None = None,
    ) -> SubstitutionDecision:
        record = self._require_pending(substitution_id)
        if substitute_teacher_id == record.original_teacher_id:
            raise ValidationError("Substitute must differ from the original teacher")
        class_info = self.ctx.require_class(record.class_id)
        substitute = self.ctx.require_teacher(substitute_teacher_id)
        if substitute.school_id != class_info.school_id:
            raise ValidationError("Substitute teacher does not belong to the same school as the class")
        if not substitute.is_active:
            raise ValidationError(f"Teacher {substitute.name} is not active")
        structure = self.store.load_period_structure(class_info.school_id)
        slot = self.ctx.require_slot(structure, record.day, record.period)
        self.ctx.ensure_editable_week(record.week_start)

        try:
            with self.ctx.coordinator.hold(class_key(record.class_id), teacher_key(substitute_teacher_id)):
                with unit_of_work(self.store):
                    # A reject may have committed while this call waited for the lock.
                    record = self._require_pending(substitution_id)
                    self.overrides.stage_assignment(
                        class_id=record.class_id,
                        school_id=class_info.school_id,
                        slot=slot,
                        new_teacher_id=substitute_teacher_id,
                        week_start=record.week_start,
                        subject_id=record.subject_id,
                        reason=f"Substitution: {record.reason or 'no reason given'}",
                        actor_id=actor_id,
                    )
                    confirmed = self.store.save_substitution(
                        replace(
                            record,
                            substitute_teacher_id=substitute_teacher_id,
                            status=SubstitutionStatus.confirmed,
                        )
                    )
        except ConflictError as exc:
            logger.info("Substitution %s stays pending: %d conflict(s)", substitution_id, len(exc.conflicts))
            return SubstitutionDecision(
                success=False,
                substitution=SubstitutionOut.from_record(record),
                conflicts=exc.conflicts,
            )

        logger.info("Substitution %s confirmed with teacher %s", substitution_id, substitute_teacher_id)
        return SubstitutionDecision(success=True, substitution=SubstitutionOut.from_record(confirmed))

    def reject(self, substitution_id: str, *, actor_id: str | None = None) -> SubstitutionDecision:
        record = self._require_pending(substitution_id)
        with self.ctx.coordinator.hold(class_key(record.class_id)):
            with unit_of_work(self.store):
                record = self._require_pending(substitution_id)
                rejected = self.store.save_substitution(replace(record, status=SubstitutionStatus.rejected))
                self.store.log_activity(
                    actor_id=actor_id,
                    action="substitution.reject",
                    entity_type="substitution",
                    entity_id=substitution_id,
                )
        logger.info("Substitution %s rejected", substitution_id)
        return SubstitutionDecision(success=True, substitution=SubstitutionOut.from_record(rejected))

    def auto_assign(
        self,
        timetable_entry_id: str,
        substitution_date: str | date,
        reason: str | None = None,
        *,
        actor_id: str | None = None,
    ) -> SubstitutionDecision:
        """Requests a substitution and confirms the first suggested teacher the slot accepts.

        With no acceptable teacher the request stays pending for a manual decision.
        """
        created = self.request(timetable_entry_id, substitution_date, reason, actor_id=actor_id)
        decision = SubstitutionDecision(success=False, substitution=created)
        for candidate in self.suggest(created.id):
            decision = self.confirm(created.id, candidate.id, actor_id=actor_id)
            if decision.success:
                return decision
        logger.info("No substitute could be assigned automatically for %s", created.id)
        return decision

    def suggest(self, substitution_id: str) -> list[TeacherOut]:
        record = self._require(substitution_id)
        return self.overrides.available_teachers_for_slot(
            record.class_id,
            record.day,
            record.period,
            record.substitution_date,
            exclude_teacher_ids={record.original_teacher_id},
        )

    def list_substitutions(
        self, *, status: SubstitutionStatus | None = None, school_id: str | None = None
    ) -> list[SubstitutionOut]:
        records = self.store.list_substitutions(school_id=school_id, status=status)
        return [SubstitutionOut.from_record(record) for record in records]

    def _require(self, substitution_id: str) -> SubstitutionRecord:
        record = self.store.get_substitution(substitution_id)
        if record is None:
            raise NotFoundError("Substitution", substitution_id)
        return record

    def _require_pending(self, substitution_id: str) -> SubstitutionRecord:
        record = self._require(substitution_id)
        if record.status != SubstitutionStatus.pending:
            raise ValidationError(
                f"Substitution is already {record.status.value}",
                details={"status": record.status.value},
            )
        return record
