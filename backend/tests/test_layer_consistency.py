from datetime import date

from conftest import NEXT_WEEK, TODAY
from weekplan.services.overrides import OverrideLayer
from weekplan.services.promotion import PromotionEngine

WEEK_AFTER_NEXT = date(2025, 9, 22)


def _double_booked(ctx, school_id, week_start):
    """(teacher, day, period, first class, second class) for every clash in one week's effective timetable."""
    seen = {}
    clashes = []
    entries = sorted(
        ctx.school_effective_entries(school_id, week_start),
        key=lambda entry: (entry.slot, entry.class_id),
    )
    for entry in entries:
        if not entry.is_active or entry.teacher_id is None:
            continue
        key = (entry.teacher_id, entry.slot)
        if key in seen:
            clashes.append((entry.teacher_id, entry.day, entry.period, seen[key], entry.class_id))
        else:
            seen[key] = entry.class_id
    return clashes


def _teacher_at(entries, day, period):
    return next(entry.teacherId for entry in entries if entry.day == day and entry.period == period)


def test_refresh_avoids_teachers_busy_in_another_class_this_week(ctx, scenario):
    layer = OverrideLayer(ctx)
    layer.manual_assign(
        class_id=scenario["c2"],
        day="monday",
        period=1,
        new_teacher_id=scenario["t1"],
        subject_id=scenario["math"],
        week_date=TODAY,
    )

    result = layer.refresh(scenario["c1"])

    assert result.entriesCreated == 5
    assert _double_booked(ctx, scenario["school"], TODAY) == []
    current = layer.get_effective_timetable(scenario["c1"], TODAY).entries
    assert _teacher_at(current, "monday", 1) == scenario["t2"]


def test_refresh_avoids_teachers_busy_in_a_future_override(ctx, scenario):
    layer = OverrideLayer(ctx)
    layer.manual_assign(
        class_id=scenario["c2"],
        day="tuesday",
        period=1,
        new_teacher_id=scenario["t1"],
        subject_id=scenario["math"],
        week_date=NEXT_WEEK,
    )

    layer.refresh(scenario["c1"])

    assert _double_booked(ctx, scenario["school"], NEXT_WEEK) == []
    next_week = layer.get_effective_timetable(scenario["c1"], NEXT_WEEK)
    assert next_week.source == "global"
    assert _teacher_at(next_week.entries, "tuesday", 1) == scenario["t2"]


def test_promotion_checks_weeks_that_follow_the_baseline(ctx, scenario):
    layer = OverrideLayer(ctx)
    layer.manual_assign(
        class_id=scenario["c1"],
        day="tuesday",
        period=1,
        new_teacher_id=scenario["t2"],
        subject_id=scenario["math"],
        week_date=NEXT_WEEK,
    )
    layer.manual_assign(
        class_id=scenario["c2"],
        day="tuesday",
        period=1,
        new_teacher_id=scenario["t2"],
        subject_id=scenario["math"],
        week_date=WEEK_AFTER_NEXT,
    )

    result = PromotionEngine(ctx).set_weekly_as_global(scenario["c1"], NEXT_WEEK)

    assert result.success is False
    assert result.entriesPromoted == 0
    assert [(item.weekStart, item.conflictingClassId, item.day, item.period) for item in result.conflicts] == [
        (WEEK_AFTER_NEXT, scenario["c2"], "tuesday", 1)
    ]
    assert ctx.store.load_global_entries(scenario["c1"]) == []
    assert _double_booked(ctx, scenario["school"], WEEK_AFTER_NEXT) == []


def test_promotion_ignores_weeks_where_the_class_keeps_its_own_layer(ctx, scenario):
    layer = OverrideLayer(ctx)
    for week, teacher in ((NEXT_WEEK, scenario["t2"]), (WEEK_AFTER_NEXT, scenario["t1"])):
        layer.manual_assign(
            class_id=scenario["c1"],
            day="tuesday",
            period=1,
            new_teacher_id=teacher,
            subject_id=scenario["math"],
            week_date=week,
        )
    layer.manual_assign(
        class_id=scenario["c2"],
        day="tuesday",
        period=1,
        new_teacher_id=scenario["t2"],
        subject_id=scenario["math"],
        week_date=WEEK_AFTER_NEXT,
    )

    result = PromotionEngine(ctx).set_weekly_as_global(scenario["c1"], NEXT_WEEK)

    assert result.success is True
    assert result.entriesPromoted == 1
    assert _double_booked(ctx, scenario["school"], WEEK_AFTER_NEXT) == []
