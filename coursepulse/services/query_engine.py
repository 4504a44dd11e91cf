"""
Query engine turning store snapshots into displayable list pages.

Every query runs the same fixed pipeline: search, then filter, then a stable
sort, then a cumulative page window holding the first ``page * page_size``
rows. Filter and sort names belong to closed, per-collection vocabularies and
unknown names raise ``ValueError`` immediately.
"""

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Dict, Generic, List, Optional, Sequence, Tuple, TypeVar

from ..core.entities import utc_now
from ..core.enums import (
    CourseFilter, CourseSort, CourseStatus, EntityType, FeedbackCategory, FeedbackFilter,
    FeedbackSort, LectureFilter, LectureSort, LectureStatus, StudentFilter, StudentSort,
    StudentStatus,
)
from ..persistence.entity_store import EntityStore, StoreSnapshot
from . import metrics_engine as metrics

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20

# The silent filter is a looser net than the silent status badge.
SILENT_FILTER_DAYS = 5
AT_RISK_FILTER_HEALTH = 70
LOW_HEALTH_STUDENT = 60
HIGH_PERFORMER_HEALTH = 90
LOW_HEALTH_COURSE = 80
LOW_UNDERSTANDING_LECTURE = 60
LOW_RATING_MAX = 2
HIGH_RATING_MIN = 4
WEEK_WINDOW_DAYS = 7


@dataclass(frozen=True)
class QueryRequest:
    """Request descriptor for one list view."""
    search: str = ""
    filter: Any = "all"
    sort: Any = None
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE
    professor_id: Optional[str] = None
    course_id: Optional[str] = None

    def __post_init__(self):
        if self.page < 1:
            raise ValueError(f"page must be >= 1, got {self.page}")
        if self.page_size < 1:
            raise ValueError(f"page_size must be >= 1, got {self.page_size}")


class Row:
    """Flat, display-ready projection of one list item."""

    id: str

    def to_dict(self) -> Dict[str, Any]:
        return {key: _plain(value) for key, value in asdict(self).items()}


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return [_plain(item) for item in value]
    return value


@dataclass(frozen=True)
class StudentRow(Row):
    id: str
    name: str
    email: str
    roll_number: str
    course_id: str
    course_code: str
    course_name: str
    health: int
    silent_days: int
    status: StudentStatus
    feedback_count: int
    lectures_attended: int
    lectures_total: int
    last_active: str
    joined_at: datetime


@dataclass(frozen=True)
class CourseRow(Row):
    id: str
    code: str
    name: str
    department: str
    semester: str
    status: CourseStatus
    enrollment_code: str
    student_count: int
    health: int
    active_today: int
    silent_count: int
    lecture_count: int
    engagement_rate: int
    last_activity_at: datetime


@dataclass(frozen=True)
class FeedbackRow(Row):
    id: str
    lecture_id: str
    lecture_title: str
    course_id: str
    course_code: str
    student_id: str
    student_name: str
    understanding_level: str
    rating: int
    category: FeedbackCategory
    unresolved: bool
    difficult_topics: Tuple[str, ...]
    reason: str
    timestamp: datetime


@dataclass(frozen=True)
class LectureRow(Row):
    id: str
    course_id: str
    course_code: str
    title: str
    date: datetime
    status: LectureStatus
    topics: Tuple[str, ...]
    attendee_count: int
    feedback_count: int
    understanding: int
    duration_minutes: int


RowT = TypeVar("RowT", bound=Row)


@dataclass(frozen=True)
class QueryResult(Generic[RowT]):
    items: Tuple[RowT, ...]
    has_more: bool
    total_filtered_count: int
    page: int = 1

    @property
    def ids(self) -> List[str]:
        return [item.id for item in self.items]


# ----------------------------------------------------------------------
# Row builders
# ----------------------------------------------------------------------

def scope_courses(snapshot: StoreSnapshot, professor_id: Optional[str] = None,
                  course_id: Optional[str] = None) -> list:
    """Courses a request is scoped to, in collection order."""
    courses = list(snapshot.courses)
    if professor_id is not None:
        courses = [course for course in courses if course.professor_id == professor_id]
    if course_id is not None:
        courses = [course for course in courses if course.id == course_id]
    return courses


def build_student_rows(snapshot: StoreSnapshot, now: datetime,
                       professor_id: Optional[str] = None,
                       course_id: Optional[str] = None) -> List[StudentRow]:
    """One row per enrolled student, attributed to their first course in scope."""
    rows: Dict[str, StudentRow] = {}
    for course in scope_courses(snapshot, professor_id, course_id):
        lectures_total = len(snapshot.course_lectures(course.id))
        for student in snapshot.course_students(course.id):
            if student.id in rows:
                continue
            m = metrics.compute_student_metrics(snapshot, student.id, [course.id], now)
            rows[student.id] = StudentRow(
                id=student.id,
                name=student.name,
                email=student.email,
                roll_number=student.roll_number or student.id,
                course_id=course.id,
                course_code=course.code,
                course_name=course.name,
                health=m.health,
                silent_days=m.silent_days,
                status=m.status,
                feedback_count=m.feedback_count,
                lectures_attended=m.lectures_attended,
                lectures_total=lectures_total,
                last_active=metrics.last_active_label(m.silent_days),
                joined_at=student.created_at,
            )
    return list(rows.values())


def build_course_rows(snapshot: StoreSnapshot, now: datetime,
                      professor_id: Optional[str] = None,
                      course_id: Optional[str] = None) -> List[CourseRow]:
    rows = []
    for course in scope_courses(snapshot, professor_id, course_id):
        m = metrics.compute_course_metrics(snapshot, course.id, now)
        rows.append(CourseRow(
            id=course.id,
            code=course.code,
            name=course.name,
            department=course.department,
            semester=course.semester,
            status=course.status,
            enrollment_code=course.enrollment_code,
            student_count=m.student_count,
            health=m.health,
            active_today=m.active_today,
            silent_count=m.silent_count,
            lecture_count=m.lecture_count,
            engagement_rate=m.engagement_rate,
            last_activity_at=m.last_feedback_at or course.created_at,
        ))
    return rows


def build_feedback_rows(snapshot: StoreSnapshot, now: datetime,
                        professor_id: Optional[str] = None,
                        course_id: Optional[str] = None) -> List[FeedbackRow]:
    courses = {course.id: course for course in scope_courses(snapshot, professor_id, course_id)}
    rows = []
    for entry in snapshot.feedback:
        course = courses.get(entry.course_id)
        if course is None:
            continue
        lecture = snapshot.lecture_index.get(entry.lecture_id)
        student = snapshot.student_index.get(entry.student_id)
        rows.append(FeedbackRow(
            id=entry.id,
            lecture_id=entry.lecture_id,
            lecture_title=lecture.title if lecture else "",
            course_id=course.id,
            course_code=course.code,
            student_id=entry.student_id,
            student_name=student.name if student else entry.student_id,
            understanding_level=entry.understanding_level,
            rating=metrics.feedback_rating(entry),
            category=metrics.feedback_category(entry.reason),
            unresolved=metrics.is_unresolved(entry),
            difficult_topics=tuple(entry.difficult_topics),
            reason=entry.reason,
            timestamp=entry.timestamp,
        ))
    return rows


def build_lecture_rows(snapshot: StoreSnapshot, now: datetime,
                       professor_id: Optional[str] = None,
                       course_id: Optional[str] = None) -> List[LectureRow]:
    courses = {course.id: course for course in scope_courses(snapshot, professor_id, course_id)}
    rows = []
    for lecture in snapshot.lectures:
        course = courses.get(lecture.course_id)
        if course is None:
            continue
        feedback = snapshot.lecture_feedback(lecture.id)
        rows.append(LectureRow(
            id=lecture.id,
            course_id=course.id,
            course_code=course.code,
            title=lecture.title,
            date=lecture.date,
            status=lecture.status,
            topics=tuple(lecture.topics),
            attendee_count=len(lecture.attendee_ids),
            feedback_count=len(feedback),
            understanding=metrics.lecture_understanding(feedback),
            duration_minutes=lecture.duration_minutes,
        ))
    return rows


# ----------------------------------------------------------------------
# Per-collection vocabularies
# ----------------------------------------------------------------------

Predicate = Callable[[Any], bool]


@dataclass(frozen=True)
class CollectionQuery:
    """Search fields, filters and sorts for one collection."""
    builder: Callable[..., List[Row]]
    search_fields: Callable[[Any], Sequence[str]]
    filter_enum: type
    sort_enum: type
    default_sort: Enum
    filters: Callable[[datetime], Dict[Enum, Predicate]]
    sorts: Dict[Enum, Tuple[Callable[[Any], Any], bool]] = field(default_factory=dict)


def _student_filters(now: datetime) -> Dict[Enum, Predicate]:
    return {
        StudentFilter.ALL: lambda row: True,
        StudentFilter.ACTIVE: lambda row: row.status is StudentStatus.ACTIVE,
        StudentFilter.SILENT: lambda row: row.status is StudentStatus.SILENT or row.silent_days >= SILENT_FILTER_DAYS,
        StudentFilter.AT_RISK: lambda row: row.status is StudentStatus.AT_RISK or row.health < AT_RISK_FILTER_HEALTH,
        StudentFilter.INACTIVE: lambda row: row.status is StudentStatus.INACTIVE,
        StudentFilter.LOW_HEALTH: lambda row: row.health < LOW_HEALTH_STUDENT,
        StudentFilter.HIGH_PERFORMERS: lambda row: row.health >= HIGH_PERFORMER_HEALTH,
    }


def _course_filters(now: datetime) -> Dict[Enum, Predicate]:
    return {
        CourseFilter.ALL: lambda row: True,
        CourseFilter.ACTIVE: lambda row: row.active_today > 0,
        CourseFilter.SILENT: lambda row: row.silent_count > 0,
        CourseFilter.LOW_HEALTH: lambda row: row.health < LOW_HEALTH_COURSE,
        CourseFilter.ARCHIVED: lambda row: row.status is CourseStatus.ARCHIVED,
    }


def _feedback_filters(now: datetime) -> Dict[Enum, Predicate]:
    today = now.date()
    return {
        FeedbackFilter.ALL: lambda row: True,
        FeedbackFilter.UNRESOLVED: lambda row: row.unresolved,
        FeedbackFilter.LOW_RATING: lambda row: row.rating <= LOW_RATING_MAX,
        FeedbackFilter.HIGH_RATING: lambda row: row.rating >= HIGH_RATING_MIN,
        FeedbackFilter.TODAY: lambda row: row.timestamp.date() == today,
        FeedbackFilter.PACE: lambda row: row.category is FeedbackCategory.PACE,
        FeedbackFilter.EXAMPLES: lambda row: row.category is FeedbackCategory.EXAMPLES,
        FeedbackFilter.CLARITY: lambda row: row.category is FeedbackCategory.CLARITY,
    }


def _lecture_filters(now: datetime) -> Dict[Enum, Predicate]:
    today = now.date()
    week_start = today - timedelta(days=WEEK_WINDOW_DAYS)
    return {
        LectureFilter.ALL: lambda row: True,
        LectureFilter.TODAY: lambda row: row.date.date() == today,
        LectureFilter.THIS_WEEK: lambda row: row.date.date() >= week_start,
        LectureFilter.LIVE: lambda row: row.status is LectureStatus.LIVE,
        LectureFilter.SCHEDULED: lambda row: row.status is LectureStatus.SCHEDULED,
        LectureFilter.COMPLETED: lambda row: row.status is LectureStatus.COMPLETED,
        LectureFilter.LOW_UNDERSTANDING: lambda row: (
            row.feedback_count > 0 and row.understanding < LOW_UNDERSTANDING_LECTURE),
    }


def _text(value: str) -> str:
    return (value or "").casefold()


COLLECTIONS: Dict[EntityType, CollectionQuery] = {
    EntityType.STUDENT: CollectionQuery(
        builder=build_student_rows,
        search_fields=lambda row: (row.name, row.email, row.roll_number, row.course_code),
        filter_enum=StudentFilter,
        sort_enum=StudentSort,
        default_sort=StudentSort.NAME_ASC,
        filters=_student_filters,
        sorts={
            StudentSort.NAME_ASC: (lambda row: _text(row.name), False),
            StudentSort.NAME_DESC: (lambda row: _text(row.name), True),
            StudentSort.HEALTH_DESC: (lambda row: row.health, True),
            StudentSort.HEALTH_ASC: (lambda row: row.health, False),
            StudentSort.SILENT_DESC: (lambda row: row.silent_days, True),
            StudentSort.ACTIVITY_DESC: (lambda row: row.silent_days, False),
            StudentSort.COURSE: (lambda row: _text(row.course_code), False),
            StudentSort.ROLL_NUMBER: (lambda row: _text(row.roll_number), False),
        },
    ),
    EntityType.COURSE: CollectionQuery(
        builder=build_course_rows,
        search_fields=lambda row: (row.code, row.name),
        filter_enum=CourseFilter,
        sort_enum=CourseSort,
        default_sort=CourseSort.HEALTH_DESC,
        filters=_course_filters,
        sorts={
            CourseSort.HEALTH_DESC: (lambda row: row.health, True),
            CourseSort.HEALTH_ASC: (lambda row: row.health, False),
            CourseSort.STUDENTS_DESC: (lambda row: row.student_count, True),
            CourseSort.STUDENTS_ASC: (lambda row: row.student_count, False),
            CourseSort.NAME_ASC: (lambda row: _text(row.name), False),
            CourseSort.NAME_DESC: (lambda row: _text(row.name), True),
            CourseSort.RECENT: (lambda row: row.last_activity_at, True),
            CourseSort.COURSE_CODE: (lambda row: _text(row.code), False),
        },
    ),
    EntityType.FEEDBACK: CollectionQuery(
        builder=build_feedback_rows,
        search_fields=lambda row: (row.lecture_title, row.course_code, row.student_name, row.reason),
        filter_enum=FeedbackFilter,
        sort_enum=FeedbackSort,
        default_sort=FeedbackSort.NEWEST,
        filters=_feedback_filters,
        sorts={
            FeedbackSort.NEWEST: (lambda row: row.timestamp, True),
            FeedbackSort.OLDEST: (lambda row: row.timestamp, False),
            FeedbackSort.RATING_HIGH: (lambda row: row.rating, True),
            FeedbackSort.RATING_LOW: (lambda row: row.rating, False),
            FeedbackSort.COURSE: (lambda row: _text(row.course_code), False),
        },
    ),
    EntityType.LECTURE: CollectionQuery(
        builder=build_lecture_rows,
        search_fields=lambda row: (row.title, row.course_code) + row.topics,
        filter_enum=LectureFilter,
        sort_enum=LectureSort,
        default_sort=LectureSort.DATE_DESC,
        filters=_lecture_filters,
        sorts={
            LectureSort.DATE_DESC: (lambda row: row.date, True),
            LectureSort.DATE_ASC: (lambda row: row.date, False),
            LectureSort.UNDERSTANDING_DESC: (lambda row: row.understanding, True),
            LectureSort.UNDERSTANDING_ASC: (lambda row: row.understanding, False),
            LectureSort.FEEDBACK_DESC: (lambda row: row.feedback_count, True),
            LectureSort.COURSE: (lambda row: _text(row.course_code), False),
            LectureSort.TITLE: (lambda row: _text(row.title), False),
        },
    ),
}


def collection_query(entity_type: EntityType) -> CollectionQuery:
    try:
        return COLLECTIONS[entity_type]
    except KeyError:
        raise ValueError(f"{entity_type} is not a queryable collection")


# ----------------------------------------------------------------------
# Pipeline
# ----------------------------------------------------------------------

def search_rows(rows: Sequence[Row], text: str, fields: Callable[[Any], Sequence[str]]) -> List[Row]:
    """Case-insensitive substring match on any of the row's search fields."""
    needle = (text or "").strip().casefold()
    if not needle:
        return list(rows)
    return [row for row in rows if any(needle in _text(value) for value in fields(row))]


def apply_query(rows: Sequence[Row], request: QueryRequest, vocab: CollectionQuery,
                now: datetime) -> QueryResult:
    """Run search, filter, stable sort and cumulative paging in that order."""
    filter_key = vocab.filter_enum(request.filter)
    sort_key = vocab.sort_enum(request.sort) if request.sort is not None else vocab.default_sort

    matched = search_rows(rows, request.search, vocab.search_fields)
    predicate = vocab.filters(now)[filter_key]
    filtered = [row for row in matched if predicate(row)]

    key, descending = vocab.sorts[sort_key]
    ordered = sorted(filtered, key=key, reverse=descending)

    window = request.page * request.page_size
    items = tuple(ordered[:window])
    return QueryResult(
        items=items,
        has_more=len(ordered) > len(items),
        total_filtered_count=len(ordered),
        page=request.page,
    )


def filter_counts(rows: Sequence[Row], request: QueryRequest, vocab: CollectionQuery,
                  now: datetime) -> Dict[str, int]:
    """Badge counts for every filter over the searched rows."""
    matched = search_rows(rows, request.search, vocab.search_fields)
    return {
        member.value: sum(1 for row in matched if predicate(row))
        for member, predicate in vocab.filters(now).items()
    }


def _average(values: Sequence[int]) -> int:
    return metrics.round_half_up(sum(values) / len(values)) if values else 0


def collection_stats(entity_type: EntityType, rows: Sequence[Row]) -> Dict[str, Any]:
    """Header statistics for a list view."""
    if entity_type is EntityType.STUDENT:
        return {
            "total": len(rows),
            "active": sum(1 for r in rows if r.status is StudentStatus.ACTIVE),
            "silent": sum(1 for r in rows if r.status is StudentStatus.SILENT),
            "at_risk": sum(1 for r in rows if r.status is StudentStatus.AT_RISK),
            "inactive": sum(1 for r in rows if r.status is StudentStatus.INACTIVE),
            "avg_health": _average([r.health for r in rows]),
            "avg_feedback": _average([r.feedback_count for r in rows]),
        }
    if entity_type is EntityType.COURSE:
        live = [r for r in rows if r.status is not CourseStatus.ARCHIVED]
        return {
            "total": len(rows),
            "archived": len(rows) - len(live),
            "total_students": sum(r.student_count for r in live),
            "avg_health": _average([r.health for r in live]),
            "active_today": sum(r.active_today for r in live),
            "silent_students": sum(r.silent_count for r in live),
        }
    if entity_type is EntityType.FEEDBACK:
        return {
            "total": len(rows),
            "unresolved": sum(1 for r in rows if r.unresolved),
            "low_rating": sum(1 for r in rows if r.rating <= LOW_RATING_MAX),
            "avg_rating": round(sum(r.rating for r in rows) / len(rows), 1) if rows else 0.0,
            "categories": {
                category.value: sum(1 for r in rows if r.category is category)
                for category in FeedbackCategory
            },
        }
    if entity_type is EntityType.LECTURE:
        rated = [r.understanding for r in rows if r.feedback_count > 0]
        return {
            "total": len(rows),
            "live": sum(1 for r in rows if r.status is LectureStatus.LIVE),
            "scheduled": sum(1 for r in rows if r.status is LectureStatus.SCHEDULED),
            "completed": sum(1 for r in rows if r.status is LectureStatus.COMPLETED),
            "avg_understanding": _average(rated),
        }
    raise ValueError(f"{entity_type} is not a queryable collection")


class QueryEngine:
    """Stateless facade running queries against the current store snapshot."""

    def __init__(self, store: EntityStore, clock: Callable[[], datetime] = utc_now):
        self.store = store
        self.clock = clock

    def rows(self, entity_type: EntityType, request: QueryRequest,
             snapshot: Optional[StoreSnapshot] = None, now: Optional[datetime] = None) -> List[Row]:
        vocab = collection_query(entity_type)
        snapshot = snapshot or self.store.snapshot()
        return vocab.builder(snapshot, now or self.clock(), request.professor_id, request.course_id)

    def query(self, entity_type: EntityType, request: QueryRequest) -> QueryResult:
        vocab = collection_query(entity_type)
        now = self.clock()
        rows = self.rows(entity_type, request, now=now)
        result = apply_query(rows, request, vocab, now)
        logger.debug("Query %s %s -> %d/%d rows", entity_type.value, request,
                     len(result.items), result.total_filtered_count)
        return result

    def query_students(self, request: QueryRequest) -> QueryResult:
        return self.query(EntityType.STUDENT, request)

    def query_courses(self, request: QueryRequest) -> QueryResult:
        return self.query(EntityType.COURSE, request)

    def query_feedback(self, request: QueryRequest) -> QueryResult:
        return self.query(EntityType.FEEDBACK, request)

    def query_lectures(self, request: QueryRequest) -> QueryResult:
        return self.query(EntityType.LECTURE, request)

    def stats(self, entity_type: EntityType, request: Optional[QueryRequest] = None) -> Dict[str, Any]:
        request = request or QueryRequest()
        return collection_stats(entity_type, self.rows(entity_type, request))

    def filter_counts(self, entity_type: EntityType, request: Optional[QueryRequest] = None) -> Dict[str, int]:
        request = request or QueryRequest()
        now = self.clock()
        rows = self.rows(entity_type, request, now=now)
        return filter_counts(rows, request, collection_query(entity_type), now)
