"""
Enrollment service: single and bulk enrollment of students into courses.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from ..core.entities import EMAIL_PATTERN, Enrollment, Student
from ..core.enums import EntityType
from ..core.exceptions import CoursePulseException
from ..persistence.entity_store import EntityStore
from .sync_service import SyncService

logger = logging.getLogger(__name__)


@dataclass
class EnrollmentResult:
    """Outcome of enrolling one student."""
    student: Student
    enrollment: Optional[Enrollment]
    student_created: bool
    already_enrolled: bool


@dataclass
class EnrollmentReport:
    """Outcome of a bulk enrollment from text."""
    enrolled: int = 0
    already_enrolled: int = 0
    students_created: int = 0
    skipped: int = 0
    student_ids: List[str] = field(default_factory=list)
    errors: List[Tuple[int, str]] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return self.enrolled + self.already_enrolled


class EnrollmentService:
    """Enrolls students, creating them on first sight by email."""

    def __init__(self, store: EntityStore, sync: Optional[SyncService] = None):
        self.store = store
        self.sync = sync
        self._lock = threading.RLock()

    def enroll_student(self, course_id: str, name: str, email: str,
                       roll_number: str = "", department: Optional[str] = None) -> EnrollmentResult:
        """Enroll a student by email, registering them if unknown.

        Enrolling an already enrolled student is a no-op.
        """
        with self._lock:
            course = self.store.get_course(course_id)
            student = self.store.find_student_by_email(email)
            created = student is None
            if created:
                student = self.store.create_student(
                    name=name,
                    email=email,
                    roll_number=roll_number,
                    department=department or course.department or "General",
                )
            enrollment = self.store.find_enrollment(student.id, course_id)
            already = enrollment is not None
            if not already:
                enrollment = self.store.create_enrollment(student.id, course_id)

        if self.sync is not None:
            if created:
                self.sync.mirror_upsert(EntityType.STUDENT, [student])
            if not already:
                self.sync.mirror_upsert(EntityType.ENROLLMENT, [enrollment])
        return EnrollmentResult(
            student=student,
            enrollment=enrollment,
            student_created=created,
            already_enrolled=already,
        )

    def bulk_enroll_from_text(self, course_id: str, text: str) -> EnrollmentReport:
        """Enroll one student per line of ``name, email[, roll number]``.

        Blank lines are ignored. Lines with fewer than two fields or an invalid
        email are skipped and counted; they never abort the import.
        """
        self.store.get_course(course_id)
        report = EnrollmentReport()
        for line_number, line in enumerate((text or "").strip().splitlines(), start=1):
            if not line.strip():
                continue
            parts = [part.strip() for part in line.split(",")]
            if len(parts) < 2 or not parts[0]:
                report.skipped += 1
                report.errors.append((line_number, "expected: name, email, roll number"))
                continue
            name, email = parts[0], parts[1]
            roll_number = parts[2] if len(parts) > 2 else ""
            if not EMAIL_PATTERN.match(email):
                report.skipped += 1
                report.errors.append((line_number, f"invalid email {email!r}"))
                continue
            try:
                result = self.enroll_student(course_id, name, email, roll_number)
            except CoursePulseException as e:
                report.skipped += 1
                report.errors.append((line_number, e.message))
                continue
            if result.already_enrolled:
                report.already_enrolled += 1
            else:
                report.enrolled += 1
            if result.student_created:
                report.students_created += 1
            report.student_ids.append(result.student.id)

        logger.info("Bulk enrollment into %s: %d enrolled, %d already enrolled, %d skipped",
                    course_id, report.enrolled, report.already_enrolled, report.skipped)
        return report

    def enroll_by_code(self, student_id: str, enrollment_code: str) -> Enrollment:
        """Self-enrollment with a course join code."""
        enrollment = self.store.enroll_by_code(student_id, enrollment_code)
        if self.sync is not None:
            self.sync.mirror_upsert(EntityType.ENROLLMENT, [enrollment])
        return enrollment

    def remove_student(self, course_id: str, student_id: str) -> None:
        """Unenroll a student; the student record and history are kept."""
        enrollment = self.store.find_enrollment(student_id, course_id)
        self.store.remove_enrollment(student_id, course_id)
        if self.sync is not None and enrollment is not None:
            self.sync.mirror_delete(EntityType.ENROLLMENT, [enrollment.id])
