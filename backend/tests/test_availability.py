from weekplan.services.availability import AvailabilityGrid, AvailabilityModel
from weekplan.services.records import EntryRecord, Slot


def _entry(teacher_id, day, period, class_id="c-other", is_active=True):
    return EntryRecord(
        class_id=class_id,
        day=day,
        period=period,
        subject_id="s-math",
        teacher_id=teacher_id,
        start_time="08:00",
        end_time="08:45",
        is_active=is_active,
    )


def test_empty_grid_places_no_restriction():
    grid = AvailabilityGrid(teacher_id="t1")
    assert grid.unrestricted
    assert grid.allows("monday", 1)
    assert grid.allows("friday", 8)


def test_listed_days_restrict_every_other_slot():
    grid = AvailabilityGrid(teacher_id="t1", periods_by_day={"monday": frozenset({1, 2})})
    assert not grid.unrestricted
    assert grid.allows("monday", 2)
    assert not grid.allows("monday", 3)
    assert not grid.allows("tuesday", 1)


def test_unknown_teacher_is_never_available():
    model = AvailabilityModel({})
    assert not model.is_available("ghost", "monday", 1)
    assert model.remaining_load("ghost", "monday") == 0


def test_remaining_load_is_min_of_daily_and_weekly_headroom():
    grid = AvailabilityGrid(teacher_id="t1", max_daily_periods=3, max_load=4)
    occupancy = [
        _entry("t1", "monday", 1),
        _entry("t1", "monday", 2),
        _entry("t1", "tuesday", 1),
        _entry("t1", "wednesday", 5, is_active=False),
    ]
    model = AvailabilityModel({"t1": grid}, occupancy)

    assert model.remaining_weekly_load("t1") == 1
    assert model.remaining_load("t1", "monday") == 1
    assert model.remaining_load("t1", "thursday") == 1

    model.reserve("t1", "thursday")
    assert model.remaining_load("t1", "friday") == 0


def test_covers_requires_every_slot():
    grid = AvailabilityGrid(teacher_id="t1", periods_by_day={"monday": frozenset({1}), "tuesday": frozenset({1})})
    model = AvailabilityModel({"t1": grid})
    assert model.covers("t1", [Slot.of("monday", 1), Slot.of("tuesday", 1)])
    assert not model.covers("t1", [Slot.of("monday", 1), Slot.of("wednesday", 1)])
