from weekplan.models.activity_log import ActivityLog  # noqa: F401
from weekplan.models.school import (  # noqa: F401
    ClassSubjectAssignment,
    School,
    SchoolClass,
    Subject,
    TimetableStructure,
)
from weekplan.models.teacher import (  # noqa: F401
    ReplacementStatus,
    Teacher,
    TeacherReplacement,
    TeacherStatus,
)
from weekplan.models.timetable import (  # noqa: F401
    Substitution,
    TimetableEntry,
    WeeklyTimetable,
    WeeklyTimetableEntry,
)
