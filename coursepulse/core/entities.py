"""
Core entities for the CoursePulse platform.

Entities are plain mutable objects, but the entity store never mutates a record
that has already been handed out: every change is applied to a copy which then
replaces the stored record.
"""

import copy
import re
import uuid
from abc import ABC
from datetime import date, datetime, time, timezone
from typing import Any, Dict, FrozenSet, List, Optional, Union

from .enums import (
    AssessmentType, CourseStatus, LectureStatus, PublicationStatus, UnderstandingLevel
)
from .exceptions import ValidationError


EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

Timestamp = Union[str, datetime, date, None]


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def parse_timestamp(value: Timestamp) -> Optional[datetime]:
    """Coerce ISO strings, dates and naive datetimes into aware UTC datetimes."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min)
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            raise ValidationError(f"Invalid timestamp: {value!r}")
    else:
        raise ValidationError(f"Invalid timestamp: {value!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _format_timestamp(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _coerce_enum(enum_cls, value: Any, field_name: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(f"Invalid {field_name} {value!r}; expected one of: {allowed}")


def _require_text(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field_name} is required", details={"field": field_name})
    return value.strip()


class AbstractEntity(ABC):
    """Base abstract entity with universal ID, timestamps, and versioning."""

    # Fields a partial update may touch; subclasses override.
    UPDATABLE_FIELDS: FrozenSet[str] = frozenset()

    def __init__(self, entity_id: Optional[str] = None, created_at: Timestamp = None):
        self._id = entity_id or str(uuid.uuid4())
        self._created_at = parse_timestamp(created_at) or utc_now()
        self._updated_at = self._created_at
        self._version = 1

    @property
    def id(self) -> str:
        """Get the entity ID."""
        return self._id

    @property
    def created_at(self) -> datetime:
        """Get creation timestamp."""
        return self._created_at

    @property
    def updated_at(self) -> datetime:
        """Get last update timestamp."""
        return self._updated_at

    @property
    def version(self) -> int:
        """Get current version."""
        return self._version

    def update(self, **kwargs) -> None:
        """Apply a partial update, then re-validate the whole record."""
        for key in kwargs:
            if key not in self.UPDATABLE_FIELDS:
                raise ValidationError(
                    f"{self.__class__.__name__} has no updatable field '{key}'",
                    details={"field": key},
                )
        for key, value in kwargs.items():
            setattr(self, f"_{key}", self._coerce_field(key, value))
        self.validate()
        self.touch()

    def touch(self) -> None:
        """Bump the version and update timestamp."""
        self._updated_at = utc_now()
        self._version += 1

    def _coerce_field(self, key: str, value: Any) -> Any:
        return value

    def validate(self) -> None:
        """Raise ValidationError when the record is malformed."""

    def copy(self) -> "AbstractEntity":
        """Detached copy used for copy-on-write updates."""
        return copy.deepcopy(self)

    def to_dict(self) -> Dict[str, Any]:
        """Convert entity to a flat record."""
        return {
            'id': self._id,
            'created_at': _format_timestamp(self._created_at),
            'updated_at': _format_timestamp(self._updated_at),
            'version': self._version,
        }

    def _restore_base(self, record: Dict[str, Any]) -> None:
        updated_at = parse_timestamp(record.get("updated_at"))
        if updated_at is not None:
            self._updated_at = updated_at
        if record.get("version"):
            self._version = int(record["version"])

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AbstractEntity):
            return NotImplemented
        return type(self) is type(other) and self.to_dict() == other.to_dict()

    def __hash__(self) -> int:
        return hash((type(self).__name__, self._id))

    def __str__(self) -> str:
        return f"{self.__class__.__name__}(id={self._id})"

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(id={self._id}, version={self._version})"


class Course(AbstractEntity):
    """Course owned by a professor."""

    UPDATABLE_FIELDS = frozenset({
        "code", "name", "department", "semester", "professor_id",
        "credits", "description", "status",
    })

    def __init__(self, code: str, name: str, department: str, semester: str,
                 professor_id: str, credits: int = 3, description: str = "",
                 enrollment_code: Optional[str] = None,
                 status: Union[CourseStatus, str] = CourseStatus.ACTIVE, **kwargs):
        super().__init__(**kwargs)
        self._code = code
        self._name = name
        self._department = department
        self._semester = semester
        self._professor_id = professor_id
        self._credits = credits
        self._description = description
        self._enrollment_code = enrollment_code or ""
        self._status = _coerce_enum(CourseStatus, status, "course status")
        self.validate()

    @property
    def code(self) -> str:
        return self._code

    @property
    def name(self) -> str:
        return self._name

    @property
    def department(self) -> str:
        return self._department

    @property
    def semester(self) -> str:
        return self._semester

    @property
    def professor_id(self) -> str:
        return self._professor_id

    @property
    def credits(self) -> int:
        return self._credits

    @property
    def description(self) -> str:
        return self._description

    @property
    def enrollment_code(self) -> str:
        return self._enrollment_code

    @property
    def status(self) -> CourseStatus:
        return self._status

    @property
    def is_archived(self) -> bool:
        return self._status is CourseStatus.ARCHIVED

    def archive(self) -> None:
        """Mark the course archived."""
        self._status = CourseStatus.ARCHIVED
        self.touch()

    def restore(self) -> None:
        """Return an archived course to active."""
        self._status = CourseStatus.ACTIVE
        self.touch()

    def _coerce_field(self, key: str, value: Any) -> Any:
        if key == "status":
            return _coerce_enum(CourseStatus, value, "course status")
        return value

    def validate(self) -> None:
        self._code = _require_text(self._code, "code")
        self._name = _require_text(self._name, "name")
        if not isinstance(self._credits, int) or self._credits < 0:
            raise ValidationError("credits must be a non-negative integer")

    def to_dict(self) -> Dict[str, Any]:
        """Convert course to dictionary."""
        base_dict = super().to_dict()
        base_dict.update({
            'code': self._code,
            'name': self._name,
            'department': self._department,
            'semester': self._semester,
            'professor_id': self._professor_id,
            'credits': self._credits,
            'description': self._description,
            'enrollment_code': self._enrollment_code,
            'status': self._status.value,
        })
        return base_dict

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Course":
        course = cls(
            code=record.get("code", ""),
            name=record.get("name") or record.get("title", ""),
            department=record.get("department", ""),
            semester=record.get("semester", ""),
            professor_id=record.get("professor_id", ""),
            credits=int(record.get("credits", 3) or 0),
            description=record.get("description", "") or "",
            enrollment_code=record.get("enrollment_code"),
            status=record.get("status") or CourseStatus.ACTIVE,
            entity_id=record.get("id"),
            created_at=record.get("created_at"),
        )
        course._restore_base(record)
        return course


class Student(AbstractEntity):
    """Student known to the dashboard, independent of any course."""

    UPDATABLE_FIELDS = frozenset({"name", "email", "roll_number", "department", "last_active_at"})

    def __init__(self, name: str, email: str, roll_number: str = "",
                 department: str = "General", last_active_at: Timestamp = None, **kwargs):
        super().__init__(**kwargs)
        self._name = name
        self._email = email
        self._roll_number = roll_number or ""
        self._department = department or "General"
        self._last_active_at = parse_timestamp(last_active_at) or self._created_at
        self.validate()

    @property
    def name(self) -> str:
        return self._name

    @property
    def email(self) -> str:
        return self._email

    @property
    def roll_number(self) -> str:
        return self._roll_number

    @property
    def department(self) -> str:
        return self._department

    @property
    def last_active_at(self) -> datetime:
        return self._last_active_at

    def mark_active(self, at: Optional[datetime] = None) -> None:
        """Record student activity."""
        self._last_active_at = at or utc_now()
        self.touch()

    def _coerce_field(self, key: str, value: Any) -> Any:
        if key == "last_active_at":
            return parse_timestamp(value)
        return value

    def validate(self) -> None:
        self._name = _require_text(self._name, "name")
        self._email = _require_text(self._email, "email").lower()
        if not EMAIL_PATTERN.match(self._email):
            raise ValidationError(f"Invalid email: {self._email}", details={"field": "email"})

    def to_dict(self) -> Dict[str, Any]:
        """Convert student to dictionary."""
        base_dict = super().to_dict()
        base_dict.update({
            'name': self._name,
            'email': self._email,
            'roll_number': self._roll_number,
            'department': self._department,
            'last_active_at': _format_timestamp(self._last_active_at),
        })
        return base_dict

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Student":
        student = cls(
            name=record.get("name", ""),
            email=record.get("email", ""),
            roll_number=record.get("roll_number") or record.get("roll_no", ""),
            department=record.get("department", "General"),
            last_active_at=record.get("last_active_at"),
            entity_id=record.get("id"),
            created_at=record.get("created_at"),
        )
        student._restore_base(record)
        return student


class Enrollment(AbstractEntity):
    """Link between one student and one course."""

    def __init__(self, student_id: str, course_id: str, **kwargs):
        super().__init__(**kwargs)
        self._student_id = student_id
        self._course_id = course_id

    @property
    def student_id(self) -> str:
        return self._student_id

    @property
    def course_id(self) -> str:
        return self._course_id

    @property
    def key(self):
        return (self._student_id, self._course_id)

    def to_dict(self) -> Dict[str, Any]:
        base_dict = super().to_dict()
        base_dict.update({
            'student_id': self._student_id,
            'course_id': self._course_id,
        })
        return base_dict

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Enrollment":
        enrollment = cls(
            student_id=record.get("student_id", ""),
            course_id=record.get("course_id", ""),
            entity_id=record.get("id"),
            created_at=record.get("created_at"),
        )
        enrollment._restore_base(record)
        return enrollment


class Lecture(AbstractEntity):
    """Single class session of a course."""

    UPDATABLE_FIELDS = frozenset({"title", "date", "status", "topics", "duration_minutes"})

    def __init__(self, course_id: str, title: str, date: Timestamp,
                 status: Union[LectureStatus, str] = LectureStatus.SCHEDULED,
                 topics: Optional[List[str]] = None,
                 attendee_ids: Optional[List[str]] = None,
                 duration_minutes: int = 60, **kwargs):
        super().__init__(**kwargs)
        self._course_id = course_id
        self._title = title
        self._date = parse_timestamp(date)
        self._status = _coerce_enum(LectureStatus, status, "lecture status")
        self._topics = list(topics or [])
        self._attendee_ids: List[str] = []
        for student_id in attendee_ids or []:
            if student_id not in self._attendee_ids:
                self._attendee_ids.append(student_id)
        self._duration_minutes = duration_minutes
        self.validate()

    @property
    def course_id(self) -> str:
        return self._course_id

    @property
    def title(self) -> str:
        return self._title

    @property
    def date(self) -> datetime:
        return self._date

    @property
    def status(self) -> LectureStatus:
        return self._status

    @property
    def topics(self) -> List[str]:
        return self._topics.copy()

    @property
    def attendee_ids(self) -> List[str]:
        return self._attendee_ids.copy()

    @property
    def duration_minutes(self) -> int:
        return self._duration_minutes

    def add_attendee(self, student_id: str) -> bool:
        """Record attendance. Returns False if already present."""
        if student_id in self._attendee_ids:
            return False
        self._attendee_ids.append(student_id)
        self.touch()
        return True

    def remove_attendee(self, student_id: str) -> bool:
        if student_id not in self._attendee_ids:
            return False
        self._attendee_ids.remove(student_id)
        self.touch()
        return True

    def _coerce_field(self, key: str, value: Any) -> Any:
        if key == "status":
            return _coerce_enum(LectureStatus, value, "lecture status")
        if key == "date":
            return parse_timestamp(value)
        if key == "topics":
            return [topic.strip() for topic in value or [] if topic and topic.strip()]
        return value

    def validate(self) -> None:
        self._title = _require_text(self._title, "title")
        if self._date is None:
            raise ValidationError("date is required", details={"field": "date"})
        if not isinstance(self._duration_minutes, int) or self._duration_minutes <= 0:
            raise ValidationError("duration_minutes must be a positive integer")

    def to_dict(self) -> Dict[str, Any]:
        base_dict = super().to_dict()
        base_dict.update({
            'course_id': self._course_id,
            'title': self._title,
            'date': _format_timestamp(self._date),
            'status': self._status.value,
            'topics': list(self._topics),
            'attendee_ids': list(self._attendee_ids),
            'duration_minutes': self._duration_minutes,
        })
        return base_dict

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Lecture":
        lecture = cls(
            course_id=record.get("course_id", ""),
            title=record.get("title", ""),
            date=record.get("date"),
            status=record.get("status") or LectureStatus.SCHEDULED,
            topics=record.get("topics"),
            attendee_ids=record.get("attendee_ids") or record.get("attendees"),
            duration_minutes=int(record.get("duration_minutes") or 60),
            entity_id=record.get("id"),
            created_at=record.get("created_at"),
        )
        lecture._restore_base(record)
        return lecture


class FeedbackEntry(AbstractEntity):
    """Immutable feedback submitted by a student after a lecture."""

    def __init__(self, lecture_id: str, student_id: str, course_id: str,
                 understanding_level: Union[UnderstandingLevel, str],
                 difficult_topics: Optional[List[str]] = None,
                 reason: str = "", **kwargs):
        super().__init__(**kwargs)
        self._lecture_id = lecture_id
        self._student_id = student_id
        self._course_id = course_id
        if isinstance(understanding_level, UnderstandingLevel):
            understanding_level = understanding_level.value
        self._understanding_level = str(understanding_level or "").strip().lower()
        self._difficult_topics = list(difficult_topics or [])
        self._reason = reason or ""

    @property
    def lecture_id(self) -> str:
        return self._lecture_id

    @property
    def student_id(self) -> str:
        return self._student_id

    @property
    def course_id(self) -> str:
        return self._course_id

    @property
    def understanding_level(self) -> str:
        """Raw understanding value as stored; may be outside the vocabulary for remote records."""
        return self._understanding_level

    @property
    def understanding(self) -> Optional[UnderstandingLevel]:
        try:
            return UnderstandingLevel(self._understanding_level)
        except ValueError:
            return None

    @property
    def difficult_topics(self) -> List[str]:
        return self._difficult_topics.copy()

    @property
    def reason(self) -> str:
        return self._reason

    @property
    def timestamp(self) -> datetime:
        return self._created_at

    def update(self, **kwargs) -> None:
        raise ValidationError("Feedback entries are immutable once created")

    def validate(self) -> None:
        if self.understanding is None:
            raise ValidationError(
                f"Invalid understanding level: {self._understanding_level!r}",
                details={"field": "understanding_level"},
            )

    def to_dict(self) -> Dict[str, Any]:
        base_dict = super().to_dict()
        base_dict.update({
            'lecture_id': self._lecture_id,
            'student_id': self._student_id,
            'course_id': self._course_id,
            'understanding_level': self._understanding_level,
            'difficult_topics': list(self._difficult_topics),
            'reason': self._reason,
        })
        return base_dict

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "FeedbackEntry":
        entry = cls(
            lecture_id=record.get("lecture_id", ""),
            student_id=record.get("student_id", ""),
            course_id=record.get("course_id", ""),
            understanding_level=record.get("understanding_level", ""),
            difficult_topics=record.get("difficult_topics"),
            reason=record.get("reason") or record.get("comments", "") or "",
            entity_id=record.get("id"),
            created_at=record.get("created_at") or record.get("timestamp"),
        )
        entry._restore_base(record)
        return entry


class Assessment(AbstractEntity):
    """Graded piece of work in a course."""

    UPDATABLE_FIELDS = frozenset({"name", "assessment_type", "max_marks", "weight_pct", "due_date", "status"})

    def __init__(self, course_id: str, name: str,
                 assessment_type: Union[AssessmentType, str], max_marks: float,
                 weight_pct: float = 0.0, due_date: Timestamp = None,
                 status: Union[PublicationStatus, str] = PublicationStatus.DRAFT, **kwargs):
        super().__init__(**kwargs)
        self._course_id = course_id
        self._name = name
        self._assessment_type = _coerce_enum(AssessmentType, assessment_type, "assessment type")
        self._max_marks = max_marks
        self._weight_pct = weight_pct
        self._due_date = parse_timestamp(due_date)
        self._status = _coerce_enum(PublicationStatus, status, "publication status")
        self.validate()

    @property
    def course_id(self) -> str:
        return self._course_id

    @property
    def name(self) -> str:
        return self._name

    @property
    def assessment_type(self) -> AssessmentType:
        return self._assessment_type

    @property
    def max_marks(self) -> float:
        return self._max_marks

    @property
    def weight_pct(self) -> float:
        return self._weight_pct

    @property
    def due_date(self) -> Optional[datetime]:
        return self._due_date

    @property
    def status(self) -> PublicationStatus:
        return self._status

    @property
    def is_published(self) -> bool:
        return self._status is PublicationStatus.PUBLISHED

    def _coerce_field(self, key: str, value: Any) -> Any:
        if key == "assessment_type":
            return _coerce_enum(AssessmentType, value, "assessment type")
        if key == "status":
            return _coerce_enum(PublicationStatus, value, "publication status")
        if key == "due_date":
            return parse_timestamp(value)
        return value

    def validate(self) -> None:
        self._name = _require_text(self._name, "name")
        if not isinstance(self._max_marks, (int, float)) or self._max_marks <= 0:
            raise ValidationError("max_marks must be greater than zero")
        if not isinstance(self._weight_pct, (int, float)) or not 0 <= self._weight_pct <= 100:
            raise ValidationError("weight_pct must be between 0 and 100")

    def to_dict(self) -> Dict[str, Any]:
        base_dict = super().to_dict()
        base_dict.update({
            'course_id': self._course_id,
            'name': self._name,
            'assessment_type': self._assessment_type.value,
            'max_marks': self._max_marks,
            'weight_pct': self._weight_pct,
            'due_date': _format_timestamp(self._due_date),
            'status': self._status.value,
        })
        return base_dict

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Assessment":
        assessment = cls(
            course_id=record.get("course_id", ""),
            name=record.get("name", ""),
            assessment_type=record.get("assessment_type") or record.get("type", ""),
            max_marks=record.get("max_marks", 0),
            weight_pct=record.get("weight_pct", 0) or 0,
            due_date=record.get("due_date"),
            status=record.get("status") or PublicationStatus.DRAFT,
            entity_id=record.get("id"),
            created_at=record.get("created_at"),
        )
        assessment._restore_base(record)
        return assessment


class Grade(AbstractEntity):
    """Marks of one student on one assessment."""

    def __init__(self, assessment_id: str, student_id: str, course_id: str,
                 marks_obtained: Optional[float] = None, comments: str = "",
                 graded_at: Timestamp = None, **kwargs):
        super().__init__(**kwargs)
        self._assessment_id = assessment_id
        self._student_id = student_id
        self._course_id = course_id
        self._marks_obtained = marks_obtained
        self._comments = comments or ""
        self._graded_at = parse_timestamp(graded_at)

    @property
    def assessment_id(self) -> str:
        return self._assessment_id

    @property
    def student_id(self) -> str:
        return self._student_id

    @property
    def course_id(self) -> str:
        return self._course_id

    @property
    def marks_obtained(self) -> Optional[float]:
        return self._marks_obtained

    @property
    def comments(self) -> str:
        return self._comments

    @property
    def graded_at(self) -> Optional[datetime]:
        return self._graded_at

    @property
    def key(self):
        return (self._assessment_id, self._student_id)

    def set_marks(self, marks: Optional[float], comments: Optional[str] = None,
                  at: Optional[datetime] = None) -> None:
        """Enter or overwrite marks."""
        self._marks_obtained = marks
        if comments is not None:
            self._comments = comments
        self._graded_at = (at or utc_now()) if marks is not None else None
        self.touch()

    def to_dict(self) -> Dict[str, Any]:
        base_dict = super().to_dict()
        base_dict.update({
            'assessment_id': self._assessment_id,
            'student_id': self._student_id,
            'course_id': self._course_id,
            'marks_obtained': self._marks_obtained,
            'comments': self._comments,
            'graded_at': _format_timestamp(self._graded_at),
        })
        return base_dict

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Grade":
        grade = cls(
            assessment_id=record.get("assessment_id", ""),
            student_id=record.get("student_id", ""),
            course_id=record.get("course_id", ""),
            marks_obtained=record.get("marks_obtained"),
            comments=record.get("comments", "") or "",
            graded_at=record.get("graded_at"),
            entity_id=record.get("id"),
            created_at=record.get("created_at"),
        )
        grade._restore_base(record)
        return grade
