from datetime import date

import pytest

from conftest import NEXT_WEEK, TODAY
from weekplan.core.config import Settings
from weekplan.core.exceptions import InfeasibleGenerationError, NotFoundError, ValidationError
from weekplan.db.store import SqlTimetableStore
from weekplan.services.overrides import OverrideLayer
from weekplan.services.records import Modification
from weekplan.services.scheduling import SchedulingContext


def _assignments(entries):
    return sorted((entry.day, entry.period, entry.subjectId, entry.teacherId) for entry in entries)


def _slot(entries, day, period):
    return next(entry for entry in entries if entry.day == day and entry.period == period)


def test_refresh_builds_global_and_current_week_copy(ctx, scenario):
    layer = OverrideLayer(ctx)
    result = layer.refresh(scenario["c1"])

    assert result.success
    assert result.entriesCreated == 5
    assert result.globalDeleted == 0
    assert result.weeklyDeleted == 0
    assert result.weekStart == TODAY
    assert result.unsatisfiedRequirements == []

    global_entries = layer.get_global_timetable(scenario["c1"])
    assert len({(entry.day, entry.period) for entry in global_entries}) == 5
    assert {entry.teacherId for entry in global_entries} == {scenario["t1"]}

    current = layer.get_effective_timetable(scenario["c1"], TODAY)
    assert current.source == "weekly"
    assert current.modificationCount == 0
    assert _assignments(current.entries) == _assignments(global_entries)
    assert {entry.globalEntryId for entry in current.entries} == {entry.id for entry in global_entries}


def test_refresh_is_idempotent(ctx, scenario):
    layer = OverrideLayer(ctx)
    layer.refresh(scenario["c1"])
    first = _assignments(layer.get_global_timetable(scenario["c1"]))

    again = layer.refresh(scenario["c1"])
    assert again.globalDeleted == 5
    assert again.weeklyDeleted == 5
    assert _assignments(layer.get_global_timetable(scenario["c1"])) == first


def test_refresh_reports_unsatisfied_requirements(ctx, builder, scenario):
    art = builder.subject(scenario["school"], "ART", 2)
    builder.requirement(scenario["c1"], art)

    result = OverrideLayer(ctx).refresh(scenario["c1"])
    assert result.entriesCreated == 5
    assert [(item.subjectId, item.reason) for item in result.unsatisfiedRequirements] == [
        (art, "no_qualified_teacher")
    ]


def test_strict_generation_commits_nothing(db_session, coordinator, builder, scenario):
    art = builder.subject(scenario["school"], "ART", 2)
    builder.requirement(scenario["c1"], art)
    strict = SchedulingContext(
        store=SqlTimetableStore(db_session),
        coordinator=coordinator,
        settings=Settings(generation_strict=True),
        clock=lambda: TODAY,
    )

    with pytest.raises(InfeasibleGenerationError):
        OverrideLayer(strict).refresh(scenario["c1"])
    assert OverrideLayer(strict).get_global_timetable(scenario["c1"]) == []


def test_week_without_layer_resolves_to_global(ctx, scenario):
    layer = OverrideLayer(ctx)
    layer.refresh(scenario["c1"])

    weekly = layer.get_weekly_timetable(scenario["c1"], NEXT_WEEK)
    assert weekly.type == "global"
    assert weekly.hasWeeklyOverrides is False
    assert weekly.weekStart == NEXT_WEEK

    enhanced = layer.get_effective_timetable(scenario["c1"], "2025-09-17")
    assert enhanced.source == "global"
    assert enhanced.weekStart == NEXT_WEEK
    assert enhanced.modificationCount == 0


def test_manual_assign_only_touches_its_week(ctx, scenario):
    layer = OverrideLayer(ctx)
    layer.refresh(scenario["c1"])
    global_before = _assignments(layer.get_global_timetable(scenario["c1"]))
    future_before = _assignments(layer.get_effective_timetable(scenario["c1"], NEXT_WEEK).entries)

    result = layer.manual_assign(
        class_id=scenario["c1"],
        day="Mon",
        period=1,
        new_teacher_id=scenario["t2"],
        reason="Workshop",
        week_date=TODAY,
    )

    assert result.success
    assert result.conflicts == []
    assert result.entry.teacherId == scenario["t2"]
    assert result.entry.modification == Modification.reassigned

    enhanced = layer.get_effective_timetable(scenario["c1"], TODAY)
    assert enhanced.source == "weekly"
    assert enhanced.modificationCount == 1
    monday = _slot(enhanced.entries, "monday", 1)
    assert monday.teacherId == scenario["t2"]
    assert monday.modificationReason == "Workshop"

    assert _assignments(layer.get_global_timetable(scenario["c1"])) == global_before
    assert _assignments(layer.get_effective_timetable(scenario["c1"], NEXT_WEEK).entries) == future_before


def test_manual_assign_copies_global_on_first_write(ctx, scenario):
    layer = OverrideLayer(ctx)
    layer.refresh(scenario["c1"])
    global_ids = {entry.id for entry in layer.get_global_timetable(scenario["c1"])}

    result = layer.manual_assign(
        class_id=scenario["c1"], day="tuesday", period=1, new_teacher_id=scenario["t2"], week_date=NEXT_WEEK
    )
    assert result.success

    weekly = layer.get_weekly_timetable(scenario["c1"], NEXT_WEEK)
    assert weekly.type == "weekly"
    assert len(weekly.entries) == 5
    assert {entry.globalEntryId for entry in weekly.entries} == global_ids
    assert sum(1 for entry in weekly.entries if entry.isModified) == 1


def test_manual_assign_double_booking_writes_nothing(ctx, builder, scenario):
    layer = OverrideLayer(ctx)
    layer.refresh(scenario["c1"])
    other_entry = builder.global_entry(scenario["c2"], "monday", 1, scenario["math"], scenario["t2"])

    result = layer.manual_assign(
        class_id=scenario["c1"], day="monday", period=1, new_teacher_id=scenario["t2"], week_date=NEXT_WEEK
    )

    assert result.success is False
    assert len(result.conflicts) == 1
    conflict = result.conflicts[0]
    assert conflict.kind == "double_booked"
    assert conflict.conflictingClassId == scenario["c2"]
    assert conflict.conflictingEntryId == other_entry
    assert conflict.weekStart == NEXT_WEEK
    assert ctx.store.load_weekly_entries(scenario["c1"], NEXT_WEEK) is None


def test_manual_assign_outside_availability_is_a_conflict(ctx, builder, scenario):
    layer = OverrideLayer(ctx)
    layer.refresh(scenario["c1"])
    tuesday_only = builder.teacher(scenario["school"], "Carol Lovelace", availability={"tue": [1]})

    result = layer.manual_assign(
        class_id=scenario["c1"], day="monday", period=1, new_teacher_id=tuesday_only, week_date=TODAY
    )
    assert result.success is False
    assert [conflict.kind for conflict in result.conflicts] == ["unavailable"]
    assert layer.get_effective_timetable(scenario["c1"], TODAY).modificationCount == 0


def test_manual_assign_rejects_past_weeks_and_bad_slots(ctx, scenario):
    layer = OverrideLayer(ctx)
    layer.refresh(scenario["c1"])

    with pytest.raises(ValidationError):
        layer.manual_assign(
            class_id=scenario["c1"], day="monday", period=1, new_teacher_id=scenario["t2"], week_date="2025-09-01"
        )
    with pytest.raises(ValidationError):
        layer.manual_assign(
            class_id=scenario["c1"], day="sunday", period=1, new_teacher_id=scenario["t2"], week_date=TODAY
        )
    with pytest.raises(ValidationError):
        layer.manual_assign(
            class_id=scenario["c1"], day="monday", period=9, new_teacher_id=scenario["t2"], week_date=TODAY
        )
    with pytest.raises(NotFoundError):
        layer.manual_assign(class_id="missing", day="monday", period=1, new_teacher_id=scenario["t2"])


def test_manual_assign_checks_the_named_entry(ctx, scenario):
    layer = OverrideLayer(ctx)
    layer.refresh(scenario["c1"])
    tuesday = _slot(layer.get_global_timetable(scenario["c1"]), "tuesday", 1)

    with pytest.raises(ValidationError):
        layer.manual_assign(
            class_id=scenario["c1"],
            day="monday",
            period=1,
            new_teacher_id=scenario["t2"],
            timetable_entry_id=tuesday.id,
            week_date=NEXT_WEEK,
        )

    result = layer.manual_assign(
        class_id=scenario["c1"],
        day="tuesday",
        period=1,
        new_teacher_id=scenario["t2"],
        timetable_entry_id=tuesday.id,
        week_date=NEXT_WEEK,
    )
    assert result.success


def test_manual_assign_inserts_into_empty_slot(ctx, scenario):
    layer = OverrideLayer(ctx)
    layer.refresh(scenario["c1"])

    with pytest.raises(ValidationError):
        layer.manual_assign(
            class_id=scenario["c1"], day="monday", period=3, new_teacher_id=scenario["t2"], week_date=NEXT_WEEK
        )

    result = layer.manual_assign(
        class_id=scenario["c1"],
        day="monday",
        period=3,
        new_teacher_id=scenario["t2"],
        subject_id=scenario["math"],
        week_date=NEXT_WEEK,
    )
    assert result.success
    assert result.entry.modification == Modification.inserted
    assert result.entry.globalEntryId is None
    assert result.entry.startTime == "09:30"

    enhanced = layer.get_effective_timetable(scenario["c1"], NEXT_WEEK)
    assert len(enhanced.entries) == 6
    assert len(layer.get_global_timetable(scenario["c1"])) == 5


def test_cancel_entry_marks_only_that_week(ctx, scenario):
    layer = OverrideLayer(ctx)
    layer.refresh(scenario["c1"])
    wednesday = _slot(layer.get_global_timetable(scenario["c1"]), "wednesday", 1)

    assert layer.cancel_entry(wednesday.id, NEXT_WEEK).success

    enhanced = layer.get_effective_timetable(scenario["c1"], NEXT_WEEK)
    cancelled = _slot(enhanced.entries, "wednesday", 1)
    assert cancelled.isActive is False
    assert cancelled.modification == Modification.cancelled
    assert enhanced.modificationCount == 1
    assert _slot(layer.get_global_timetable(scenario["c1"]), "wednesday", 1).isActive is True


def test_cancel_weekly_entry_defaults_to_its_week(ctx, scenario):
    layer = OverrideLayer(ctx)
    layer.refresh(scenario["c1"])
    weekly_entry = _slot(layer.get_weekly_timetable(scenario["c1"], TODAY).entries, "friday", 1)

    with pytest.raises(ValidationError):
        layer.cancel_entry(weekly_entry.id, NEXT_WEEK)

    assert layer.cancel_entry(weekly_entry.id).success
    assert _slot(layer.get_weekly_timetable(scenario["c1"], TODAY).entries, "friday", 1).isActive is False


def test_cancel_unknown_entry(ctx, scenario):
    with pytest.raises(NotFoundError):
        OverrideLayer(ctx).cancel_entry("does-not-exist", NEXT_WEEK)


def test_refresh_leaves_future_layers_resolvable(ctx, scenario):
    layer = OverrideLayer(ctx)
    layer.refresh(scenario["c1"])
    layer.manual_assign(
        class_id=scenario["c1"], day="monday", period=1, new_teacher_id=scenario["t2"], week_date=NEXT_WEEK
    )

    result = layer.refresh(scenario["c1"])
    assert result.weeklyDeleted == 5

    future = layer.get_effective_timetable(scenario["c1"], NEXT_WEEK)
    assert future.source == "weekly"
    assert _slot(future.entries, "monday", 1).teacherId == scenario["t2"]
    # The global ids those entries pointed at were replaced by the refresh.
    assert {entry.globalEntryId for entry in future.entries} == {None}


def test_available_teachers_for_slot(ctx, builder, scenario):
    layer = OverrideLayer(ctx)
    layer.refresh(scenario["c1"])
    busy_elsewhere = builder.teacher(scenario["school"], "Aaron Busy", subjects=[scenario["math"]])
    builder.global_entry(scenario["c2"], "tuesday", 2, scenario["math"], busy_elsewhere)
    builder.teacher(scenario["school"], "Dana Art", subjects=[])

    monday = layer.available_teachers_for_slot(scenario["c1"], "monday", 2, TODAY)
    names = [teacher.name for teacher in monday]
    # Alice already teaches C1 this week, so she is listed first.
    assert names == ["Alice Turing", "Aaron Busy", "Bob Hopper", "Dana Art"]
    assert monday[0].teachingThisClass is True

    tuesday = layer.available_teachers_for_slot(
        scenario["c1"], "tue", 2, TODAY, subject_id=scenario["math"]
    )
    assert [teacher.name for teacher in tuesday] == ["Alice Turing", "Bob Hopper"]

    taken = layer.available_teachers_for_slot(scenario["c2"], "monday", 1, TODAY)
    assert scenario["t1"] not in {teacher.id for teacher in taken}


def test_weekly_date_lookup_uses_monday_of_any_day(ctx, scenario):
    layer = OverrideLayer(ctx)
    layer.refresh(scenario["c1"])
    assert layer.get_weekly_timetable(scenario["c1"], date(2025, 9, 12)).type == "weekly"
    assert layer.get_weekly_timetable(scenario["c1"]).weekStart == TODAY


def test_teacher_schedule_spans_classes_and_layers(ctx, builder, scenario):
    layer = OverrideLayer(ctx)
    layer.refresh(scenario["c1"])
    builder.global_entry(scenario["c2"], "wednesday", 3, scenario["math"], scenario["t2"])
    layer.manual_assign(
        class_id=scenario["c1"],
        day="monday",
        period=1,
        new_teacher_id=scenario["t2"],
        week_date=NEXT_WEEK,
    )

    alice = layer.teacher_schedule(scenario["t1"], NEXT_WEEK)
    assert alice.weekStart == NEXT_WEEK
    assert alice.totalPeriods == 4
    assert ("monday", 1) not in {(entry.day, entry.period) for entry in alice.entries}

    bob = layer.teacher_schedule(scenario["t2"], "2025-09-17")
    assert [(entry.classId, entry.day, entry.period, entry.layer) for entry in bob.entries] == [
        (scenario["c1"], "monday", 1, "weekly"),
        (scenario["c2"], "wednesday", 3, "global"),
    ]
    assert layer.teacher_schedule(scenario["t2"], TODAY).totalPeriods == 1
    assert layer.teacher_schedule(scenario["t1"], TODAY).totalPeriods == 5

    with pytest.raises(NotFoundError):
        layer.teacher_schedule("nobody")
