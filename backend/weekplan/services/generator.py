"""Deterministic baseline generation for one class.

Subjects are placed one at a time. Each subject is spread in rounds: round ``k``
lets a day hold at most ``k`` periods of the subject, so every day gets one
period before any day gets a second. Within a round days run Monday to Friday
and periods run 1 to N, which keeps the output identical for identical inputs.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from weekplan.schemas.timetable import UnsatisfiedRequirementOut
from weekplan.services.availability import AvailabilityModel
from weekplan.services.records import EntryRecord, PeriodStructure, Slot, SubjectRequirement, TeacherProfile

logger = logging.getLogger(__name__)


@dataclass
class GenerationResult:
    entries: list[EntryRecord] = field(default_factory=list)
    unsatisfied: list[UnsatisfiedRequirementOut] = field(default_factory=list)


class TimetableGenerator:
    def __init__(
        self,
        *,
        structure: PeriodStructure,
        teachers: Sequence[TeacherProfile],
        availability: AvailabilityModel,
        busy: Iterable[EntryRecord] = (),
    ) -> None:
        self.structure = structure
        self.teachers = {teacher.id: teacher for teacher in teachers if teacher.is_active}
        self.availability = availability
        # (teacher, slot) pairs already taught in other classes, in any week the result will show in.
        self._busy: set[tuple[str, Slot]] = {
            (entry.teacher_id, entry.slot)
            for entry in busy
            if entry.is_active and entry.teacher_id
        }

    def generate(self, class_id: str, requirements: Sequence[SubjectRequirement]) -> GenerationResult:
        result = GenerationResult()
        taken: set[Slot] = set()
        for requirement in sorted(requirements, key=lambda item: (item.subject_code, item.subject_id)):
            if requirement.periods_per_week <= 0:
                continue
            candidates = self._candidate_teachers(requirement)
            if not candidates:
                logger.warning(
                    "No qualified teacher for subject %s in class %s", requirement.subject_id, class_id
                )
                result.unsatisfied.append(
                    UnsatisfiedRequirementOut(
                        subjectId=requirement.subject_id,
                        required=requirement.periods_per_week,
                        scheduled=0,
                        reason="no_qualified_teacher",
                    )
                )
                continue

            placed = self._place_subject(class_id, requirement, candidates, taken, result.entries)
            if placed < requirement.periods_per_week:
                logger.warning(
                    "Could only schedule %d/%d periods for subject %s in class %s",
                    placed,
                    requirement.periods_per_week,
                    requirement.subject_id,
                    class_id,
                )
                result.unsatisfied.append(
                    UnsatisfiedRequirementOut(
                        subjectId=requirement.subject_id,
                        required=requirement.periods_per_week,
                        scheduled=placed,
                        reason="no_available_slot",
                    )
                )

        result.entries.sort(key=lambda entry: entry.slot)
        return result

    def _candidate_teachers(self, requirement: SubjectRequirement) -> list[TeacherProfile]:
        ordered: list[TeacherProfile] = []
        assigned = self.teachers.get(requirement.assigned_teacher_id or "")
        if assigned is not None:
            ordered.append(assigned)
        qualified = sorted(
            (
                teacher
                for teacher in self.teachers.values()
                if teacher.id != requirement.assigned_teacher_id and requirement.subject_id in teacher.subjects
            ),
            key=lambda teacher: (teacher.name.lower(), teacher.id),
        )
        ordered.extend(qualified)
        return ordered

    def _place_subject(
        self,
        class_id: str,
        requirement: SubjectRequirement,
        candidates: list[TeacherProfile],
        taken: set[Slot],
        entries: list[EntryRecord],
    ) -> int:
        needed = requirement.periods_per_week
        periods = self.structure.teaching_periods
        per_day: Counter[str] = Counter()
        placed = 0

        for round_limit in range(1, len(periods) + 1):
            for day in self.structure.days:
                if placed >= needed:
                    return placed
                if per_day[day] >= round_limit:
                    continue
                for period_slot in periods:
                    slot = Slot.of(day, period_slot.period)
                    if slot in taken:
                        continue
                    teacher = self._pick_teacher(candidates, slot)
                    if teacher is None:
                        continue
                    entries.append(
                        EntryRecord(
                            class_id=class_id,
                            day=day,
                            period=period_slot.period,
                            subject_id=requirement.subject_id,
                            teacher_id=teacher.id,
                            start_time=period_slot.start_time,
                            end_time=period_slot.end_time,
                        )
                    )
                    taken.add(slot)
                    self._busy.add((teacher.id, slot))
                    self.availability.reserve(teacher.id, day)
                    per_day[day] += 1
                    placed += 1
                    break
        return placed

    def _pick_teacher(self, candidates: list[TeacherProfile], slot: Slot) -> TeacherProfile | None:
        for teacher in candidates:
            if (teacher.id, slot) in self._busy:
                continue
            if not self.availability.is_available(teacher.id, slot.day, slot.period):
                continue
            if self.availability.remaining_load(teacher.id, slot.day) <= 0:
                continue
            return teacher
        return None
