"""
In-memory normalized entity store.

The store is the single owner of every record. It is constructed once per
session and passed to the engines and services that need it. Mutations are
validated against the current state before anything is written, so a failing
call leaves the store untouched. Records are replaced copy-on-write, which keeps
every snapshot handed out earlier stable.
"""

import logging
import random
import string
import threading
import uuid
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from functools import cached_property
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Optional, Tuple, Type

from ..core.entities import (
    AbstractEntity, Assessment, Course, Enrollment, FeedbackEntry, Grade, Lecture, Student,
    utc_now,
)
from ..core.enums import (
    ChangeKind, CourseStatus, EntityType, LectureStatus, PublicationStatus
)
from ..core.exceptions import (
    DuplicateEntityError, InvalidReferenceError, ResourceNotFoundError, ValidationError
)

logger = logging.getLogger(__name__)


ENTITY_CLASSES: Dict[EntityType, Type[AbstractEntity]] = {
    EntityType.COURSE: Course,
    EntityType.STUDENT: Student,
    EntityType.ENROLLMENT: Enrollment,
    EntityType.LECTURE: Lecture,
    EntityType.FEEDBACK: FeedbackEntry,
    EntityType.ASSESSMENT: Assessment,
    EntityType.GRADE: Grade,
}

ENTITY_TYPES: Dict[Type[AbstractEntity], EntityType] = {cls: et for et, cls in ENTITY_CLASSES.items()}

ENTITY_LABELS: Dict[EntityType, str] = {
    EntityType.COURSE: "Course",
    EntityType.STUDENT: "Student",
    EntityType.ENROLLMENT: "Enrollment",
    EntityType.LECTURE: "Lecture",
    EntityType.FEEDBACK: "FeedbackEntry",
    EntityType.ASSESSMENT: "Assessment",
    EntityType.GRADE: "Grade",
}

ENROLLMENT_CODE_LENGTH = 6


@dataclass(frozen=True)
class StoreChange:
    """Notification published after every successful mutation."""
    entity_type: EntityType
    kind: ChangeKind
    ids: Tuple[str, ...]
    revision: int
    affected: FrozenSet[EntityType] = frozenset()


@dataclass(frozen=True)
class StoreSnapshot:
    """Immutable view of the store at one revision, in insertion order."""
    revision: int
    courses: Tuple[Course, ...] = ()
    students: Tuple[Student, ...] = ()
    enrollments: Tuple[Enrollment, ...] = ()
    lectures: Tuple[Lecture, ...] = ()
    feedback: Tuple[FeedbackEntry, ...] = ()
    assessments: Tuple[Assessment, ...] = ()
    grades: Tuple[Grade, ...] = ()

    def records(self, entity_type: EntityType) -> Tuple[AbstractEntity, ...]:
        return getattr(self, entity_type.value)

    @cached_property
    def course_index(self) -> Dict[str, Course]:
        return {course.id: course for course in self.courses}

    @cached_property
    def student_index(self) -> Dict[str, Student]:
        return {student.id: student for student in self.students}

    @cached_property
    def lecture_index(self) -> Dict[str, Lecture]:
        return {lecture.id: lecture for lecture in self.lectures}

    @cached_property
    def assessment_index(self) -> Dict[str, Assessment]:
        return {assessment.id: assessment for assessment in self.assessments}

    @cached_property
    def enrolled_student_ids(self) -> Dict[str, FrozenSet[str]]:
        by_course: Dict[str, set] = defaultdict(set)
        for enrollment in self.enrollments:
            by_course[enrollment.course_id].add(enrollment.student_id)
        return {course_id: frozenset(ids) for course_id, ids in by_course.items()}

    @cached_property
    def feedback_by_course(self) -> Dict[str, Tuple[FeedbackEntry, ...]]:
        grouped: Dict[str, List[FeedbackEntry]] = defaultdict(list)
        for entry in self.feedback:
            grouped[entry.course_id].append(entry)
        return {course_id: tuple(entries) for course_id, entries in grouped.items()}

    def course_students(self, course_id: str) -> List[Student]:
        """Students linked to a course through an enrollment, in student order."""
        enrolled = self.enrolled_student_ids.get(course_id, frozenset())
        return [student for student in self.students if student.id in enrolled]

    def course_lectures(self, course_id: str) -> List[Lecture]:
        return [lecture for lecture in self.lectures if lecture.course_id == course_id]

    def course_feedback(self, course_id: str) -> List[FeedbackEntry]:
        return list(self.feedback_by_course.get(course_id, ()))

    def course_assessments(self, course_id: str) -> List[Assessment]:
        return [assessment for assessment in self.assessments if assessment.course_id == course_id]

    def course_grades(self, course_id: str) -> List[Grade]:
        return [grade for grade in self.grades if grade.course_id == course_id]

    def assessment_grades(self, assessment_id: str) -> List[Grade]:
        return [grade for grade in self.grades if grade.assessment_id == assessment_id]

    def lecture_feedback(self, lecture_id: str) -> List[FeedbackEntry]:
        return [entry for entry in self.feedback if entry.lecture_id == lecture_id]

    def professor_courses(self, professor_id: str) -> List[Course]:
        return [course for course in self.courses if course.professor_id == professor_id]

    def student_courses(self, student_id: str) -> List[Course]:
        course_ids = {e.course_id for e in self.enrollments if e.student_id == student_id}
        return [course for course in self.courses if course.id in course_ids]

    def student_feedback(self, student_id: str, course_ids: Optional[Iterable[str]] = None) -> List[FeedbackEntry]:
        scope = set(course_ids) if course_ids is not None else None
        return [
            entry for entry in self.feedback
            if entry.student_id == student_id and (scope is None or entry.course_id in scope)
        ]


class _Changeset:
    """Pending writes staged against the committed collections."""

    def __init__(self, collections: Dict[EntityType, Dict[str, AbstractEntity]]):
        self._collections = collections
        self.writes: Dict[EntityType, Dict[str, Optional[AbstractEntity]]] = defaultdict(dict)

    def current(self, entity_type: EntityType, entity_id: str) -> Optional[AbstractEntity]:
        pending = self.writes[entity_type]
        if entity_id in pending:
            return pending[entity_id]
        return self._collections[entity_type].get(entity_id)

    def live(self, entity_type: EntityType) -> Iterable[AbstractEntity]:
        pending = self.writes[entity_type]
        for entity_id, record in self._collections[entity_type].items():
            record = pending.get(entity_id, record)
            if record is not None:
                yield record
        for entity_id, record in pending.items():
            if entity_id not in self._collections[entity_type] and record is not None:
                yield record

    def put(self, record: AbstractEntity) -> None:
        self.writes[ENTITY_TYPES[type(record)]][record.id] = record

    def remove(self, entity_type: EntityType, entity_id: str) -> None:
        self.writes[entity_type][entity_id] = None

    def editable(self, entity_type: EntityType, entity_id: str) -> AbstractEntity:
        pending = self.writes[entity_type]
        if entity_id in pending and pending[entity_id] is not None:
            return pending[entity_id]
        record = self._collections[entity_type][entity_id].copy()
        pending[entity_id] = record
        return record

    @property
    def affected(self) -> FrozenSet[EntityType]:
        return frozenset(et for et, writes in self.writes.items() if writes)


class EntityStore:
    """Normalized in-memory store for courses, students and their relations."""

    def __init__(self):
        self._collections: Dict[EntityType, Dict[str, AbstractEntity]] = {et: {} for et in EntityType}
        self._loaded: set = set()
        self._subscribers: Dict[str, Callable[[StoreChange], None]] = {}
        self._revision = 0
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Subscriptions and snapshots
    # ------------------------------------------------------------------

    @property
    def revision(self) -> int:
        return self._revision

    def subscribe(self, callback: Callable[[StoreChange], None],
                  subscriber_id: Optional[str] = None) -> str:
        """Register a callback invoked after every mutation; returns the subscriber id."""
        with self._lock:
            subscriber_id = subscriber_id or str(uuid.uuid4())
            self._subscribers[subscriber_id] = callback
            return subscriber_id

    def unsubscribe(self, subscriber_id: str) -> None:
        with self._lock:
            self._subscribers.pop(subscriber_id, None)

    def snapshot(self) -> StoreSnapshot:
        """Freeze the current contents for pure computations."""
        with self._lock:
            c = self._collections
            return StoreSnapshot(
                revision=self._revision,
                courses=tuple(c[EntityType.COURSE].values()),
                students=tuple(c[EntityType.STUDENT].values()),
                enrollments=tuple(c[EntityType.ENROLLMENT].values()),
                lectures=tuple(c[EntityType.LECTURE].values()),
                feedback=tuple(c[EntityType.FEEDBACK].values()),
                assessments=tuple(c[EntityType.ASSESSMENT].values()),
                grades=tuple(c[EntityType.GRADE].values()),
            )

    def _commit(self, changeset: _Changeset, entity_type: EntityType, kind: ChangeKind,
                ids: Iterable[str]) -> StoreChange:
        for et, writes in changeset.writes.items():
            collection = self._collections[et]
            for entity_id, record in writes.items():
                if record is None:
                    collection.pop(entity_id, None)
                else:
                    collection[entity_id] = record
        self._revision += 1
        change = StoreChange(
            entity_type=entity_type,
            kind=kind,
            ids=tuple(ids),
            revision=self._revision,
            affected=changeset.affected | {entity_type},
        )
        self._notify(change)
        return change

    def _notify(self, change: StoreChange) -> None:
        for subscriber_id, callback in list(self._subscribers.items()):
            try:
                callback(change)
            except Exception:
                logger.exception("Error notifying store subscriber %s", subscriber_id)

    # ------------------------------------------------------------------
    # Generic reads
    # ------------------------------------------------------------------

    def find(self, entity_type: EntityType, entity_id: str) -> Optional[AbstractEntity]:
        with self._lock:
            return self._collections[entity_type].get(entity_id)

    def get(self, entity_type: EntityType, entity_id: str) -> AbstractEntity:
        record = self.find(entity_type, entity_id)
        if record is None:
            raise ResourceNotFoundError(ENTITY_LABELS[entity_type], entity_id)
        return record

    def list(self, entity_type: EntityType) -> List[AbstractEntity]:
        with self._lock:
            return list(self._collections[entity_type].values())

    def count(self, entity_type: EntityType) -> int:
        with self._lock:
            return len(self._collections[entity_type])

    def is_loaded(self, entity_type: EntityType) -> bool:
        with self._lock:
            return entity_type in self._loaded

    def get_course(self, course_id: str) -> Course:
        return self.get(EntityType.COURSE, course_id)

    def get_student(self, student_id: str) -> Student:
        return self.get(EntityType.STUDENT, student_id)

    def get_lecture(self, lecture_id: str) -> Lecture:
        return self.get(EntityType.LECTURE, lecture_id)

    def get_assessment(self, assessment_id: str) -> Assessment:
        return self.get(EntityType.ASSESSMENT, assessment_id)

    # Foreign-key projections

    def get_course_students(self, course_id: str) -> List[Student]:
        return self.snapshot().course_students(course_id)

    def get_course_lectures(self, course_id: str) -> List[Lecture]:
        return self.snapshot().course_lectures(course_id)

    def get_course_feedback(self, course_id: str) -> List[FeedbackEntry]:
        return self.snapshot().course_feedback(course_id)

    def get_course_assessments(self, course_id: str) -> List[Assessment]:
        return self.snapshot().course_assessments(course_id)

    def get_course_grades(self, course_id: str) -> List[Grade]:
        return self.snapshot().course_grades(course_id)

    def get_assessment_grades(self, assessment_id: str) -> List[Grade]:
        return self.snapshot().assessment_grades(assessment_id)

    def get_lecture_feedback(self, lecture_id: str) -> List[FeedbackEntry]:
        return self.snapshot().lecture_feedback(lecture_id)

    def get_professor_courses(self, professor_id: str) -> List[Course]:
        return self.snapshot().professor_courses(professor_id)

    def get_student_courses(self, student_id: str) -> List[Course]:
        return self.snapshot().student_courses(student_id)

    def find_student_by_email(self, email: str) -> Optional[Student]:
        wanted = (email or "").strip().lower()
        with self._lock:
            for student in self._collections[EntityType.STUDENT].values():
                if student.email == wanted:
                    return student
        return None

    def find_course_by_enrollment_code(self, enrollment_code: str) -> Optional[Course]:
        wanted = (enrollment_code or "").strip().upper()
        with self._lock:
            for course in self._collections[EntityType.COURSE].values():
                if course.enrollment_code == wanted:
                    return course
        return None

    def find_enrollment(self, student_id: str, course_id: str) -> Optional[Enrollment]:
        with self._lock:
            for enrollment in self._collections[EntityType.ENROLLMENT].values():
                if enrollment.key == (student_id, course_id):
                    return enrollment
        return None

    def find_grade(self, assessment_id: str, student_id: str) -> Optional[Grade]:
        with self._lock:
            for grade in self._collections[EntityType.GRADE].values():
                if grade.key == (assessment_id, student_id):
                    return grade
        return None

    # ------------------------------------------------------------------
    # Validation helpers
    # ------------------------------------------------------------------

    def _require(self, changeset: _Changeset, entity_type: EntityType, entity_id: str) -> AbstractEntity:
        record = changeset.current(entity_type, entity_id)
        if record is None:
            raise ResourceNotFoundError(ENTITY_LABELS[entity_type], entity_id)
        return record

    def _require_reference(self, changeset: _Changeset, owner: EntityType, field_name: str,
                           entity_type: EntityType, entity_id: str) -> AbstractEntity:
        record = changeset.current(entity_type, entity_id) if entity_id else None
        if record is None:
            raise InvalidReferenceError(ENTITY_LABELS[owner], field_name, entity_id)
        return record

    def _check_new_id(self, entity_type: EntityType, entity_id: Optional[str]) -> None:
        if entity_id and entity_id in self._collections[entity_type]:
            raise DuplicateEntityError(ENTITY_LABELS[entity_type], {"id": entity_id})

    def _check_unique_email(self, changeset: _Changeset, email: str, exclude_id: Optional[str] = None) -> None:
        for student in changeset.live(EntityType.STUDENT):
            if student.email == email and student.id != exclude_id:
                raise DuplicateEntityError("Student", {"email": email})

    def _generate_enrollment_code(self) -> str:
        taken = {course.enrollment_code for course in self._collections[EntityType.COURSE].values()}
        alphabet = string.ascii_uppercase + string.digits
        while True:
            code = "".join(random.choices(alphabet, k=ENROLLMENT_CODE_LENGTH))
            if code not in taken:
                return code

    # ------------------------------------------------------------------
    # Courses
    # ------------------------------------------------------------------

    def create_course(self, code: str, name: str, department: str, semester: str,
                      professor_id: str, credits: int = 3, description: str = "",
                      enrollment_code: Optional[str] = None, entity_id: Optional[str] = None,
                      created_at: Optional[datetime] = None) -> Course:
        """Create a course owned by a professor."""
        with self._lock:
            self._check_new_id(EntityType.COURSE, entity_id)
            if enrollment_code:
                enrollment_code = enrollment_code.strip().upper()
                if self.find_course_by_enrollment_code(enrollment_code):
                    raise DuplicateEntityError("Course", {"enrollment_code": enrollment_code})
            else:
                enrollment_code = self._generate_enrollment_code()
            course = Course(
                code=code, name=name, department=department, semester=semester,
                professor_id=professor_id, credits=credits, description=description,
                enrollment_code=enrollment_code, entity_id=entity_id, created_at=created_at,
            )
            changeset = _Changeset(self._collections)
            changeset.put(course)
            self._commit(changeset, EntityType.COURSE, ChangeKind.CREATE, [course.id])
            return course

    def update_course(self, course_id: str, **changes: Any) -> Course:
        """Apply a partial update to a course."""
        with self._lock:
            changeset = _Changeset(self._collections)
            self._require(changeset, EntityType.COURSE, course_id)
            course = changeset.editable(EntityType.COURSE, course_id)
            course.update(**changes)
            self._commit(changeset, EntityType.COURSE, ChangeKind.UPDATE, [course_id])
            return course

    def set_course_status(self, course_ids: Iterable[str], status: CourseStatus) -> List[Course]:
        """Move several courses to a status in one all-or-nothing mutation."""
        with self._lock:
            course_ids = list(dict.fromkeys(course_ids))
            changeset = _Changeset(self._collections)
            for course_id in course_ids:
                self._require(changeset, EntityType.COURSE, course_id)
            updated = []
            for course_id in course_ids:
                course = changeset.editable(EntityType.COURSE, course_id)
                if status is CourseStatus.ARCHIVED:
                    course.archive()
                else:
                    course.restore()
                updated.append(course)
            self._commit(changeset, EntityType.COURSE, ChangeKind.UPDATE, course_ids)
            return updated

    def archive_courses(self, course_ids: Iterable[str]) -> List[Course]:
        return self.set_course_status(course_ids, CourseStatus.ARCHIVED)

    def restore_courses(self, course_ids: Iterable[str]) -> List[Course]:
        return self.set_course_status(course_ids, CourseStatus.ACTIVE)

    def delete_course(self, course_id: str) -> None:
        self.delete_many(EntityType.COURSE, [course_id])

    # ------------------------------------------------------------------
    # Students and enrollments
    # ------------------------------------------------------------------

    def create_student(self, name: str, email: str, roll_number: str = "",
                       department: str = "General", entity_id: Optional[str] = None,
                       created_at: Optional[datetime] = None) -> Student:
        """Register a student; email addresses are unique."""
        with self._lock:
            self._check_new_id(EntityType.STUDENT, entity_id)
            student = Student(
                name=name, email=email, roll_number=roll_number, department=department,
                entity_id=entity_id, created_at=created_at,
            )
            changeset = _Changeset(self._collections)
            self._check_unique_email(changeset, student.email)
            changeset.put(student)
            self._commit(changeset, EntityType.STUDENT, ChangeKind.CREATE, [student.id])
            return student

    def update_student(self, student_id: str, **changes: Any) -> Student:
        with self._lock:
            changeset = _Changeset(self._collections)
            self._require(changeset, EntityType.STUDENT, student_id)
            student = changeset.editable(EntityType.STUDENT, student_id)
            student.update(**changes)
            self._check_unique_email(changeset, student.email, exclude_id=student_id)
            self._commit(changeset, EntityType.STUDENT, ChangeKind.UPDATE, [student_id])
            return student

    def delete_student(self, student_id: str) -> None:
        self.delete_many(EntityType.STUDENT, [student_id])

    def create_enrollment(self, student_id: str, course_id: str,
                          entity_id: Optional[str] = None) -> Enrollment:
        """Link a student to a course; a pair may only be linked once."""
        with self._lock:
            self._check_new_id(EntityType.ENROLLMENT, entity_id)
            changeset = _Changeset(self._collections)
            self._require_reference(changeset, EntityType.ENROLLMENT, "student_id", EntityType.STUDENT, student_id)
            self._require_reference(changeset, EntityType.ENROLLMENT, "course_id", EntityType.COURSE, course_id)
            if self.find_enrollment(student_id, course_id):
                raise DuplicateEntityError("Enrollment", {"student_id": student_id, "course_id": course_id})
            enrollment = Enrollment(student_id=student_id, course_id=course_id, entity_id=entity_id)
            changeset.put(enrollment)
            self._commit(changeset, EntityType.ENROLLMENT, ChangeKind.CREATE, [enrollment.id])
            return enrollment

    def remove_enrollment(self, student_id: str, course_id: str) -> None:
        """Unlink a student from a course; the student record stays."""
        with self._lock:
            enrollment = self.find_enrollment(student_id, course_id)
            if enrollment is None:
                raise ResourceNotFoundError("Enrollment", f"{student_id}/{course_id}")
            self.delete_many(EntityType.ENROLLMENT, [enrollment.id])

    def enroll_by_code(self, student_id: str, enrollment_code: str) -> Enrollment:
        """Self-enrollment of an existing student using a course join code."""
        with self._lock:
            course = self.find_course_by_enrollment_code(enrollment_code)
            if course is None:
                raise ResourceNotFoundError("Course", enrollment_code)
            return self.create_enrollment(student_id, course.id)

    # ------------------------------------------------------------------
    # Lectures
    # ------------------------------------------------------------------

    def create_lecture(self, course_id: str, title: str, date: Any,
                       topics: Optional[List[str]] = None,
                       status: LectureStatus = LectureStatus.SCHEDULED,
                       duration_minutes: int = 60, entity_id: Optional[str] = None) -> Lecture:
        with self._lock:
            self._check_new_id(EntityType.LECTURE, entity_id)
            changeset = _Changeset(self._collections)
            self._require_reference(changeset, EntityType.LECTURE, "course_id", EntityType.COURSE, course_id)
            lecture = Lecture(
                course_id=course_id, title=title, date=date, status=status,
                topics=[topic.strip() for topic in topics or [] if topic and topic.strip()],
                duration_minutes=duration_minutes, entity_id=entity_id,
            )
            changeset.put(lecture)
            self._commit(changeset, EntityType.LECTURE, ChangeKind.CREATE, [lecture.id])
            return lecture

    def update_lecture(self, lecture_id: str, **changes: Any) -> Lecture:
        with self._lock:
            changeset = _Changeset(self._collections)
            self._require(changeset, EntityType.LECTURE, lecture_id)
            lecture = changeset.editable(EntityType.LECTURE, lecture_id)
            lecture.update(**changes)
            self._commit(changeset, EntityType.LECTURE, ChangeKind.UPDATE, [lecture_id])
            return lecture

    def start_lecture(self, lecture_id: str) -> Lecture:
        return self.update_lecture(lecture_id, status=LectureStatus.LIVE)

    def end_lecture(self, lecture_id: str) -> Lecture:
        return self.update_lecture(lecture_id, status=LectureStatus.COMPLETED)

    def mark_attendance(self, lecture_id: str, student_id: str,
                        at: Optional[datetime] = None) -> Lecture:
        """Add a student to a lecture's attendees (idempotent) and record activity."""
        with self._lock:
            changeset = _Changeset(self._collections)
            self._require(changeset, EntityType.LECTURE, lecture_id)
            self._require_reference(changeset, EntityType.LECTURE, "attendee_ids", EntityType.STUDENT, student_id)
            lecture = changeset.editable(EntityType.LECTURE, lecture_id)
            lecture.add_attendee(student_id)
            changeset.editable(EntityType.STUDENT, student_id).mark_active(at)
            self._commit(changeset, EntityType.LECTURE, ChangeKind.UPDATE, [lecture_id])
            return lecture

    def delete_lecture(self, lecture_id: str) -> None:
        self.delete_many(EntityType.LECTURE, [lecture_id])

    # ------------------------------------------------------------------
    # Feedback
    # ------------------------------------------------------------------

    def create_feedback(self, lecture_id: str, student_id: str, understanding_level: Any,
                        difficult_topics: Optional[List[str]] = None, reason: str = "",
                        course_id: Optional[str] = None, entity_id: Optional[str] = None,
                        created_at: Optional[datetime] = None) -> FeedbackEntry:
        """Record a student's feedback on a lecture.

        The course reference is denormalized from the lecture. When a course id
        is supplied it has to match the lecture's course.
        """
        with self._lock:
            self._check_new_id(EntityType.FEEDBACK, entity_id)
            changeset = _Changeset(self._collections)
            lecture = self._require_reference(
                changeset, EntityType.FEEDBACK, "lecture_id", EntityType.LECTURE, lecture_id)
            self._require_reference(changeset, EntityType.FEEDBACK, "student_id", EntityType.STUDENT, student_id)
            if course_id is not None and course_id != lecture.course_id:
                raise InvalidReferenceError("FeedbackEntry", "course_id", course_id)
            self._require_reference(
                changeset, EntityType.FEEDBACK, "course_id", EntityType.COURSE, lecture.course_id)
            entry = FeedbackEntry(
                lecture_id=lecture_id, student_id=student_id, course_id=lecture.course_id,
                understanding_level=understanding_level, difficult_topics=difficult_topics,
                reason=reason, entity_id=entity_id, created_at=created_at,
            )
            entry.validate()
            changeset.put(entry)
            changeset.editable(EntityType.STUDENT, student_id).mark_active(entry.created_at)
            self._commit(changeset, EntityType.FEEDBACK, ChangeKind.CREATE, [entry.id])
            return entry

    def delete_feedback(self, feedback_id: str) -> None:
        self.delete_many(EntityType.FEEDBACK, [feedback_id])

    # ------------------------------------------------------------------
    # Assessments and grades
    # ------------------------------------------------------------------

    def create_assessment(self, course_id: str, name: str, assessment_type: Any,
                          max_marks: float, weight_pct: float = 0.0, due_date: Any = None,
                          status: PublicationStatus = PublicationStatus.DRAFT,
                          entity_id: Optional[str] = None) -> Assessment:
        with self._lock:
            self._check_new_id(EntityType.ASSESSMENT, entity_id)
            changeset = _Changeset(self._collections)
            self._require_reference(changeset, EntityType.ASSESSMENT, "course_id", EntityType.COURSE, course_id)
            assessment = Assessment(
                course_id=course_id, name=name, assessment_type=assessment_type,
                max_marks=max_marks, weight_pct=weight_pct, due_date=due_date,
                status=status, entity_id=entity_id,
            )
            changeset.put(assessment)
            self._commit(changeset, EntityType.ASSESSMENT, ChangeKind.CREATE, [assessment.id])
            return assessment

    def update_assessment(self, assessment_id: str, **changes: Any) -> Assessment:
        with self._lock:
            changeset = _Changeset(self._collections)
            self._require(changeset, EntityType.ASSESSMENT, assessment_id)
            assessment = changeset.editable(EntityType.ASSESSMENT, assessment_id)
            assessment.update(**changes)
            for grade in changeset.live(EntityType.GRADE):
                if grade.assessment_id == assessment_id and grade.marks_obtained is not None \
                        and grade.marks_obtained > assessment.max_marks:
                    raise ValidationError(
                        f"max_marks {assessment.max_marks} is below existing marks {grade.marks_obtained}")
            self._commit(changeset, EntityType.ASSESSMENT, ChangeKind.UPDATE, [assessment_id])
            return assessment

    def delete_assessment(self, assessment_id: str) -> None:
        self.delete_many(EntityType.ASSESSMENT, [assessment_id])

    def set_grades(self, assessment_id: str,
                   entries: Iterable[Tuple[str, Optional[float], Optional[str]]],
                   at: Optional[datetime] = None) -> List[Grade]:
        """Upsert grades for one assessment in a single all-or-nothing mutation.

        Each entry is ``(student_id, marks, comments)``. Re-entering marks for a
        student overwrites the existing grade; a later entry for the same student
        in the same batch wins.
        """
        with self._lock:
            changeset = _Changeset(self._collections)
            assessment = self._require(changeset, EntityType.ASSESSMENT, assessment_id)
            existing = {
                grade.student_id: grade.id
                for grade in changeset.live(EntityType.GRADE)
                if grade.assessment_id == assessment_id
            }
            touched: Dict[str, Grade] = {}
            for student_id, marks, comments in entries:
                self._require_reference(changeset, EntityType.GRADE, "student_id", EntityType.STUDENT, student_id)
                _validate_marks(marks, assessment.max_marks)
                if student_id in existing:
                    grade = changeset.editable(EntityType.GRADE, existing[student_id])
                else:
                    grade = Grade(assessment_id=assessment_id, student_id=student_id,
                                  course_id=assessment.course_id)
                    changeset.put(grade)
                    existing[student_id] = grade.id
                grade.set_marks(marks, comments, at=at)
                touched[grade.id] = grade
            self._commit(changeset, EntityType.GRADE, ChangeKind.UPDATE, list(touched))
            return list(touched.values())

    def set_grade(self, assessment_id: str, student_id: str, marks: Optional[float],
                  comments: Optional[str] = None) -> Grade:
        return self.set_grades(assessment_id, [(student_id, marks, comments)])[0]

    def delete_grade(self, grade_id: str) -> None:
        self.delete_many(EntityType.GRADE, [grade_id])

    # ------------------------------------------------------------------
    # Deletion with cascades
    # ------------------------------------------------------------------

    def delete(self, entity_type: EntityType, entity_id: str) -> None:
        self.delete_many(entity_type, [entity_id])

    def delete_many(self, entity_type: EntityType, entity_ids: Iterable[str]) -> List[str]:
        """Delete records and everything that depends on them, all or nothing."""
        with self._lock:
            entity_ids = list(dict.fromkeys(entity_ids))
            changeset = _Changeset(self._collections)
            for entity_id in entity_ids:
                self._require(changeset, entity_type, entity_id)
            for entity_id in entity_ids:
                self._stage_delete(changeset, entity_type, entity_id)
            self._commit(changeset, entity_type, ChangeKind.DELETE, entity_ids)
            return entity_ids

    def _stage_delete(self, changeset: _Changeset, entity_type: EntityType, entity_id: str) -> None:
        if changeset.current(entity_type, entity_id) is None:
            return
        changeset.remove(entity_type, entity_id)

        if entity_type is EntityType.COURSE:
            for lecture in list(changeset.live(EntityType.LECTURE)):
                if lecture.course_id == entity_id:
                    self._stage_delete(changeset, EntityType.LECTURE, lecture.id)
            for assessment in list(changeset.live(EntityType.ASSESSMENT)):
                if assessment.course_id == entity_id:
                    self._stage_delete(changeset, EntityType.ASSESSMENT, assessment.id)
            self._stage_dependents(changeset, EntityType.ENROLLMENT, "course_id", entity_id)
            self._stage_dependents(changeset, EntityType.FEEDBACK, "course_id", entity_id)
            self._stage_dependents(changeset, EntityType.GRADE, "course_id", entity_id)
        elif entity_type is EntityType.STUDENT:
            self._stage_dependents(changeset, EntityType.ENROLLMENT, "student_id", entity_id)
            self._stage_dependents(changeset, EntityType.FEEDBACK, "student_id", entity_id)
            self._stage_dependents(changeset, EntityType.GRADE, "student_id", entity_id)
            for lecture in list(changeset.live(EntityType.LECTURE)):
                if entity_id in lecture.attendee_ids:
                    changeset.editable(EntityType.LECTURE, lecture.id).remove_attendee(entity_id)
        elif entity_type is EntityType.LECTURE:
            self._stage_dependents(changeset, EntityType.FEEDBACK, "lecture_id", entity_id)
        elif entity_type is EntityType.ASSESSMENT:
            self._stage_dependents(changeset, EntityType.GRADE, "assessment_id", entity_id)

    def _stage_dependents(self, changeset: _Changeset, entity_type: EntityType,
                          field_name: str, entity_id: str) -> None:
        for record in list(changeset.live(entity_type)):
            if getattr(record, field_name) == entity_id:
                changeset.remove(entity_type, record.id)

    # ------------------------------------------------------------------
    # Seeding
    # ------------------------------------------------------------------

    def load_records(self, entity_type: EntityType, records: Iterable[Dict[str, Any]]) -> bool:
        """Seed an empty, never-loaded collection from flat records.

        Returns False without touching anything when the collection already
        holds data or was loaded before. Malformed, duplicate or dangling
        records are skipped individually.
        """
        with self._lock:
            if entity_type in self._loaded or self._collections[entity_type]:
                logger.info("Ignoring %s load: collection already populated", entity_type.value)
                return False
            changeset = _Changeset(self._collections)
            entity_cls = ENTITY_CLASSES[entity_type]
            loaded_ids = []
            seen_keys = set()
            for record in records:
                if entity_type is EntityType.GRADE:
                    record = self._with_assessment_course(changeset, record)
                try:
                    entity = entity_cls.from_record(record)
                except (ValidationError, KeyError, TypeError, ValueError) as exc:
                    logger.warning("Skipping malformed %s record %r: %s", entity_type.value, record.get("id"), exc)
                    continue
                problem = self._load_problem(changeset, entity_type, entity, seen_keys)
                if problem:
                    logger.warning("Skipping %s record %s: %s", entity_type.value, entity.id, problem)
                    continue
                changeset.put(entity)
                loaded_ids.append(entity.id)
            self._loaded.add(entity_type)
            self._commit(changeset, entity_type, ChangeKind.LOAD, loaded_ids)
            return True

    @staticmethod
    def _with_assessment_course(changeset: _Changeset, record: Dict[str, Any]) -> Dict[str, Any]:
        """Fill a grade record's missing course id from its assessment."""
        if not isinstance(record, dict) or record.get("course_id"):
            return record
        assessment = changeset.current(EntityType.ASSESSMENT, record.get("assessment_id"))
        if assessment is None:
            return record
        return dict(record, course_id=assessment.course_id)

    def _load_problem(self, changeset: _Changeset, entity_type: EntityType,
                      entity: AbstractEntity, seen_keys: set) -> Optional[str]:
        if changeset.current(entity_type, entity.id) is not None:
            return "duplicate id"
        references = {
            EntityType.ENROLLMENT: (("student_id", EntityType.STUDENT), ("course_id", EntityType.COURSE)),
            EntityType.LECTURE: (("course_id", EntityType.COURSE),),
            EntityType.FEEDBACK: (("lecture_id", EntityType.LECTURE), ("student_id", EntityType.STUDENT),
                                  ("course_id", EntityType.COURSE)),
            EntityType.ASSESSMENT: (("course_id", EntityType.COURSE),),
            EntityType.GRADE: (("assessment_id", EntityType.ASSESSMENT), ("student_id", EntityType.STUDENT)),
        }.get(entity_type, ())
        for field_name, target in references:
            if changeset.current(target, getattr(entity, field_name)) is None:
                return f"dangling {field_name}"
        if entity_type is EntityType.GRADE:
            assessment = changeset.current(EntityType.ASSESSMENT, entity.assessment_id)
            if entity.course_id != assessment.course_id:
                return "course_id does not match its assessment"
        key = None
        if entity_type is EntityType.STUDENT:
            key = entity.email
        elif entity_type in (EntityType.ENROLLMENT, EntityType.GRADE):
            key = entity.key
        if key is not None:
            if key in seen_keys:
                return "duplicate key"
            seen_keys.add(key)
        return None

    def reset(self) -> None:
        """Drop every record and forget which collections were loaded."""
        with self._lock:
            changeset = _Changeset(self._collections)
            for entity_type, collection in self._collections.items():
                for entity_id in collection:
                    changeset.remove(entity_type, entity_id)
            self._loaded.clear()
            self._commit(changeset, EntityType.COURSE, ChangeKind.RESET, [])


def _validate_marks(marks: Optional[float], max_marks: float) -> None:
    if marks is None:
        return
    if isinstance(marks, bool) or not isinstance(marks, (int, float)):
        raise ValidationError(f"marks must be numeric, got {marks!r}")
    if not 0 <= marks <= max_marks:
        raise ValidationError(f"marks {marks} outside 0..{max_marks}")
