from academic_scheduler.models.assignment import Assignment, AssignmentStatus, GenerationRun  # noqa: F401
from academic_scheduler.models.course import CourseSection, Subject  # noqa: F401
from academic_scheduler.models.period import AcademicPeriod  # noqa: F401
from academic_scheduler.models.restriction import RestrictionRule, RestrictionScope  # noqa: F401
from academic_scheduler.models.room import Room  # noqa: F401
from academic_scheduler.models.teacher import (  # noqa: F401
    Specialty,
    Teacher,
    TeacherAvailability,
    TeacherStatus,
)
from academic_scheduler.models.time_block import Shift, TimeBlock  # noqa: F401
