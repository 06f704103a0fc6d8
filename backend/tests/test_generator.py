from weekplan.services.availability import AvailabilityGrid, AvailabilityModel
from weekplan.services.generator import TimetableGenerator
from weekplan.services.records import (
    EntryRecord,
    PeriodSlot,
    PeriodStructure,
    SubjectRequirement,
    TeacherProfile,
)


def build_structure(periods=8, breaks=()):
    slots = []
    for index in range(periods):
        start = 8 * 60 + index * 45
        slots.append(
            PeriodSlot(
                period=index + 1,
                start_time=f"{start // 60:02d}:{start % 60:02d}",
                end_time=f"{(start + 45) // 60:02d}:{(start + 45) % 60:02d}",
                is_break=index + 1 in breaks,
            )
        )
    return PeriodStructure(periods=tuple(slots))


def build_generator(teachers, grids=None, busy=(), structure=None):
    grids = grids or {}
    model = AvailabilityModel(
        {teacher.id: grids.get(teacher.id, AvailabilityGrid(teacher_id=teacher.id)) for teacher in teachers},
        busy,
    )
    return TimetableGenerator(
        structure=structure or build_structure(),
        teachers=teachers,
        availability=model,
        busy=busy,
    )


def slots_of(entries):
    return [(entry.day, entry.period) for entry in entries]


def test_subject_is_spread_one_period_per_day_first():
    t1 = TeacherProfile(id="t1", school_id="s", name="Alice", subjects=("math",))
    result = build_generator([t1]).generate("c1", [SubjectRequirement("math", "MATH", 5, "t1")])

    assert result.unsatisfied == []
    assert slots_of(result.entries) == [
        ("monday", 1),
        ("tuesday", 1),
        ("wednesday", 1),
        ("thursday", 1),
        ("friday", 1),
    ]
    assert {entry.teacher_id for entry in result.entries} == {"t1"}
    assert result.entries[0].start_time == "08:00"
    assert result.entries[0].end_time == "08:45"


def test_subjects_are_placed_in_code_order_without_sharing_slots():
    math_teacher = TeacherProfile(id="t1", school_id="s", name="Alice", subjects=("math",))
    english_teacher = TeacherProfile(id="t2", school_id="s", name="Bob", subjects=("eng",))
    requirements = [SubjectRequirement("math", "MATH", 5, "t1"), SubjectRequirement("eng", "ENG", 3, "t2")]

    first = build_generator([math_teacher, english_teacher]).generate("c1", requirements)
    second = build_generator([math_teacher, english_teacher]).generate("c1", list(reversed(requirements)))

    english = [(entry.day, entry.period) for entry in first.entries if entry.subject_id == "eng"]
    assert english == [("monday", 1), ("tuesday", 1), ("wednesday", 1)]
    assert len(set(slots_of(first.entries))) == 8
    assert [entry.assignment_key() for entry in first.entries] == [
        entry.assignment_key() for entry in second.entries
    ]


def test_six_periods_give_one_day_a_second_period():
    t1 = TeacherProfile(id="t1", school_id="s", name="Alice", subjects=("math",))
    result = build_generator([t1]).generate("c1", [SubjectRequirement("math", "MATH", 6, "t1")])
    assert slots_of(result.entries)[:2] == [("monday", 1), ("monday", 2)]
    assert len(result.entries) == 6


def test_assigned_teacher_preferred_then_qualified_by_name():
    zed = TeacherProfile(id="t-zed", school_id="s", name="Zed", subjects=("math",))
    amy = TeacherProfile(id="t-amy", school_id="s", name="Amy", subjects=("math",))
    assigned = build_generator([amy, zed]).generate("c1", [SubjectRequirement("math", "MATH", 2, "t-zed")])
    assert {entry.teacher_id for entry in assigned.entries} == {"t-zed"}

    unassigned = build_generator([zed, amy]).generate("c1", [SubjectRequirement("math", "MATH", 2)])
    assert {entry.teacher_id for entry in unassigned.entries} == {"t-amy"}


def test_missing_teacher_is_reported():
    t1 = TeacherProfile(id="t1", school_id="s", name="Alice", subjects=("math",))
    result = build_generator([t1]).generate("c1", [SubjectRequirement("art", "ART", 2)])
    assert result.entries == []
    assert len(result.unsatisfied) == 1
    item = result.unsatisfied[0]
    assert (item.subjectId, item.required, item.scheduled, item.reason) == ("art", 2, 0, "no_qualified_teacher")


def test_inactive_teachers_are_never_used():
    t1 = TeacherProfile(id="t1", school_id="s", name="Alice", subjects=("math",), is_active=False)
    result = build_generator([t1]).generate("c1", [SubjectRequirement("math", "MATH", 1, "t1")])
    assert result.unsatisfied[0].reason == "no_qualified_teacher"


def test_availability_shortfall_is_reported():
    t1 = TeacherProfile(id="t1", school_id="s", name="Alice", subjects=("math",))
    grid = AvailabilityGrid(teacher_id="t1", periods_by_day={"monday": frozenset({1, 2})})
    result = build_generator([t1], grids={"t1": grid}).generate("c1", [SubjectRequirement("math", "MATH", 4, "t1")])

    assert slots_of(result.entries) == [("monday", 1), ("monday", 2)]
    item = result.unsatisfied[0]
    assert (item.required, item.scheduled, item.reason) == (4, 2, "no_available_slot")


def test_daily_limit_caps_each_day():
    t1 = TeacherProfile(id="t1", school_id="s", name="Alice", subjects=("math",))
    grid = AvailabilityGrid(teacher_id="t1", max_daily_periods=1)
    result = build_generator([t1], grids={"t1": grid}).generate("c1", [SubjectRequirement("math", "MATH", 6, "t1")])
    assert len(result.entries) == 5
    assert result.unsatisfied[0].scheduled == 5


def test_teacher_busy_in_another_class_is_skipped():
    t1 = TeacherProfile(id="t1", school_id="s", name="Alice", subjects=("math",))
    busy = [
        EntryRecord(
            id="g-other",
            class_id="c2",
            day="monday",
            period=1,
            subject_id="math",
            teacher_id="t1",
            start_time="08:00",
            end_time="08:45",
        )
    ]
    result = build_generator([t1], busy=busy).generate("c1", [SubjectRequirement("math", "MATH", 1, "t1")])
    assert slots_of(result.entries) == [("monday", 2)]


def test_break_periods_are_never_used():
    t1 = TeacherProfile(id="t1", school_id="s", name="Alice", subjects=("math",))
    grid = AvailabilityGrid(teacher_id="t1", periods_by_day={"monday": frozenset({3, 4})})
    result = build_generator([t1], grids={"t1": grid}, structure=build_structure(breaks=(3,))).generate(
        "c1", [SubjectRequirement("math", "MATH", 2, "t1")]
    )
    assert slots_of(result.entries) == [("monday", 4)]
