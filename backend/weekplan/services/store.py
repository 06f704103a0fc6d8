"""Data-access contract the scheduling core runs against.

The core never talks to a database directly. Writes are staged until
``commit``; ``rollback`` discards everything staged since the last commit, which
is what makes every mutating operation all-or-nothing.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from typing import Protocol

from weekplan.services.availability import AvailabilityGrid
from weekplan.services.records import (
    ClassInfo,
    EntryRecord,
    PeriodStructure,
    ReplacementRecord,
    SubjectRequirement,
    SubstitutionRecord,
    SubstitutionStatus,
    TeacherProfile,
)


class TimetableStore(Protocol):
    # Reference data (owned by external record management).
    def get_class(self, class_id: str) -> ClassInfo | None: ...

    def get_teacher(self, teacher_id: str) -> TeacherProfile | None: ...

    def list_school_teachers(self, school_id: str, *, active_only: bool = True) -> list[TeacherProfile]: ...

    def load_period_structure(self, school_id: str) -> PeriodStructure: ...

    def load_class_subject_requirements(self, class_id: str) -> list[SubjectRequirement]: ...

    def load_teacher_availability(self, teacher_id: str) -> AvailabilityGrid: ...

    # Global layer.
    def load_global_entries(self, class_id: str) -> list[EntryRecord]: ...

    def load_school_global_entries(self, school_id: str) -> list[EntryRecord]: ...

    def replace_global_entries(
        self, class_id: str, entries: Sequence[EntryRecord]
    ) -> tuple[int, list[EntryRecord]]: ...

    # Weekly layers.
    def load_weekly_entries(self, class_id: str, week_start: date) -> list[EntryRecord] | None: ...

    def load_school_weekly_layers(self, school_id: str, week_start: date) -> dict[str, list[EntryRecord]]: ...

    def list_layer_weeks(self, school_id: str, *, since: date) -> list[date]: ...

    def write_weekly_entries(
        self,
        class_id: str,
        week_start: date,
        entries: Sequence[EntryRecord],
        *,
        modified_by: str | None = None,
        based_on: str | None = None,
    ) -> list[EntryRecord]: ...

    def delete_weekly_entries(self, class_id: str, week_start: date) -> int: ...

    # Entry-level access.
    def get_entry(self, entry_id: str) -> EntryRecord | None: ...

    def set_entry_teacher(self, entry: EntryRecord, teacher_id: str) -> None: ...

    def mark_teacher_left(self, teacher_id: str) -> None: ...

    # History.
    def save_substitution(self, record: SubstitutionRecord) -> SubstitutionRecord: ...

    def get_substitution(self, substitution_id: str) -> SubstitutionRecord | None: ...

    def list_substitutions(
        self, *, school_id: str | None = None, status: SubstitutionStatus | None = None
    ) -> list[SubstitutionRecord]: ...

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
    ) -> str: ...

    def list_teacher_replacements(
        self, *, school_id: str | None = None, teacher_id: str | None = None
    ) -> list[ReplacementRecord]: ...

    def log_activity(
        self,
        *,
        actor_id: str | None,
        action: str,
        entity_type: str | None = None,
        entity_id: str | None = None,
        details: dict | None = None,
    ) -> None: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...
