from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from weekplan.services.records import EntryRecord, Slot


@dataclass(frozen=True)
class AvailabilityGrid:
    """Weekly availability of one teacher.

    An empty grid places no restriction. Once any day is listed, only the
    listed (day, period) pairs are available.
    """

    teacher_id: str
    periods_by_day: Mapping[str, frozenset[int]] = field(default_factory=dict)
    max_daily_periods: int = 6
    max_load: int = 30

    @property
    def unrestricted(self) -> bool:
        return not self.periods_by_day

    def allows(self, day: str, period: int) -> bool:
        if self.unrestricted:
            return True
        return period in self.periods_by_day.get(day, frozenset())


class AvailabilityModel:
    """Constraint oracle over availability grids and current teaching load.

    The grids are read-only. ``reserve`` only tracks load handed out while a
    caller (the generator) is building a schedule on top of ``occupancy``.
    """

    def __init__(self, grids: Mapping[str, AvailabilityGrid], occupancy: Iterable[EntryRecord] = ()):
        self._grids = dict(grids)
        self._daily: Counter[tuple[str, str]] = Counter()
        self._weekly: Counter[str] = Counter()
        for entry in occupancy:
            if entry.is_active and entry.teacher_id:
                self.reserve(entry.teacher_id, entry.day)

    def grid(self, teacher_id: str) -> AvailabilityGrid | None:
        return self._grids.get(teacher_id)

    def is_available(self, teacher_id: str, day: str, period: int) -> bool:
        grid = self._grids.get(teacher_id)
        return grid is not None and grid.allows(day, period)

    def remaining_load(self, teacher_id: str, day: str) -> int:
        grid = self._grids.get(teacher_id)
        if grid is None:
            return 0
        daily_left = grid.max_daily_periods - self._daily[(teacher_id, day)]
        return max(0, min(daily_left, self.remaining_weekly_load(teacher_id)))

    def remaining_weekly_load(self, teacher_id: str) -> int:
        grid = self._grids.get(teacher_id)
        if grid is None:
            return 0
        return max(0, grid.max_load - self._weekly[teacher_id])

    def covers(self, teacher_id: str, slots: Iterable[Slot]) -> bool:
        return all(self.is_available(teacher_id, slot.day, slot.period) for slot in slots)

    def reserve(self, teacher_id: str, day: str) -> None:
        self._daily[(teacher_id, day)] += 1
        self._weekly[teacher_id] += 1
