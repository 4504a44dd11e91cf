"""
Enumerations and constants for the CoursePulse platform.
"""

from enum import Enum


class EntityType(Enum):
    """Collections held by the entity store."""
    COURSE = "courses"
    STUDENT = "students"
    ENROLLMENT = "enrollments"
    LECTURE = "lectures"
    FEEDBACK = "feedback"
    ASSESSMENT = "assessments"
    GRADE = "grades"


class CourseStatus(Enum):
    """Lifecycle status of a course."""
    ACTIVE = "active"
    ARCHIVED = "archived"


class LectureStatus(Enum):
    """Delivery status of a lecture."""
    SCHEDULED = "scheduled"
    LIVE = "live"
    COMPLETED = "completed"


class UnderstandingLevel(Enum):
    """Fixed vocabulary for a student's self-reported understanding."""
    FULLY = "fully"
    PARTIAL = "partial"
    CONFUSED = "confused"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            normalized = value.strip().lower().replace("_", "-")
            if normalized in ("need-clarity", "needs-clarity"):
                return cls.CONFUSED
            for member in cls:
                if member.value == normalized:
                    return member
        return None


class AssessmentType(Enum):
    """Kinds of graded work."""
    QUIZ = "quiz"
    ASSIGNMENT = "assignment"
    MIDTERM = "midterm"
    FINAL = "final"
    LAB = "lab"
    PROJECT = "project"


class PublicationStatus(Enum):
    """Whether an assessment's grades are visible to students."""
    DRAFT = "draft"
    PUBLISHED = "published"


class StudentStatus(Enum):
    """Derived engagement classification of a student."""
    ACTIVE = "active"
    SILENT = "silent"
    AT_RISK = "at-risk"
    INACTIVE = "inactive"


class FeedbackCategory(Enum):
    """Theme detected in a feedback reason."""
    PACE = "pace"
    EXAMPLES = "examples"
    CLARITY = "clarity"
    GENERAL = "general"


class ChangeKind(Enum):
    """Kinds of store mutations published to subscribers."""
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    LOAD = "load"
    RESET = "reset"


class StudentFilter(Enum):
    ALL = "all"
    ACTIVE = "active"
    SILENT = "silent"
    AT_RISK = "at-risk"
    INACTIVE = "inactive"
    LOW_HEALTH = "low-health"
    HIGH_PERFORMERS = "high-performers"


class StudentSort(Enum):
    NAME_ASC = "name-asc"
    NAME_DESC = "name-desc"
    HEALTH_DESC = "health-desc"
    HEALTH_ASC = "health-asc"
    SILENT_DESC = "silent-desc"
    ACTIVITY_DESC = "activity-desc"
    COURSE = "course"
    ROLL_NUMBER = "rollno"


class CourseFilter(Enum):
    ALL = "all"
    ACTIVE = "active"
    SILENT = "silent"
    LOW_HEALTH = "low-health"
    ARCHIVED = "archived"


class CourseSort(Enum):
    HEALTH_DESC = "health-desc"
    HEALTH_ASC = "health-asc"
    STUDENTS_DESC = "students-desc"
    STUDENTS_ASC = "students-asc"
    NAME_ASC = "name-asc"
    NAME_DESC = "name-desc"
    RECENT = "recent"
    COURSE_CODE = "course-code"


class FeedbackFilter(Enum):
    ALL = "all"
    UNRESOLVED = "unresolved"
    LOW_RATING = "low-rating"
    HIGH_RATING = "high-rating"
    TODAY = "today"
    PACE = "pace"
    EXAMPLES = "examples"
    CLARITY = "clarity"


class FeedbackSort(Enum):
    NEWEST = "newest"
    OLDEST = "oldest"
    RATING_HIGH = "rating-high"
    RATING_LOW = "rating-low"
    COURSE = "course"


class LectureFilter(Enum):
    ALL = "all"
    TODAY = "today"
    THIS_WEEK = "this-week"
    LIVE = "live"
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    LOW_UNDERSTANDING = "low-understanding"


class LectureSort(Enum):
    DATE_DESC = "date-desc"
    DATE_ASC = "date-asc"
    UNDERSTANDING_DESC = "understanding-desc"
    UNDERSTANDING_ASC = "understanding-asc"
    FEEDBACK_DESC = "feedback-desc"
    COURSE = "course"
    TITLE = "title"
