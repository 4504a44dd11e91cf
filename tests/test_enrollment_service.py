"""
Enrollment service tests: single enrollment, bulk text import and join codes.
"""

import pytest

from coursepulse.core.enums import EntityType
from coursepulse.core.exceptions import ResourceNotFoundError
from coursepulse.services import EnrollmentService


@pytest.fixture
def service(store, sync):
    return EnrollmentService(store, sync)


@pytest.fixture
def course(course_factory):
    return course_factory(department="Mathematics")


class TestEnrollStudent:

    def test_creates_student_on_first_sight(self, service, store, course):
        result = service.enroll_student(course.id, "Ana Lopez", "Ana@Example.edu", "R1")
        assert result.student_created
        assert not result.already_enrolled
        assert result.student.email == "ana@example.edu"
        assert result.student.department == "Mathematics"
        assert store.get_course_students(course.id)[0].id == result.student.id

    def test_enrolling_twice_is_a_no_op(self, service, store, course):
        service.enroll_student(course.id, "Ana", "ana@example.edu")
        again = service.enroll_student(course.id, "Ana L.", "ana@example.edu")
        assert again.already_enrolled
        assert not again.student_created
        assert store.count(EntityType.STUDENT) == 1
        assert store.count(EntityType.ENROLLMENT) == 1

    def test_unknown_course(self, service):
        with pytest.raises(ResourceNotFoundError):
            service.enroll_student("missing", "Ana", "ana@example.edu")

    def test_mirrors_new_records(self, service, course, sync, remote):
        service.enroll_student(course.id, "Ana", "ana@example.edu")
        assert sync.wait_for_pending(timeout=5)
        upserted = {call[1] for call in remote.calls_of("upsert")}
        assert upserted == {EntityType.STUDENT, EntityType.ENROLLMENT}


class TestBulkEnroll:

    def test_duplicate_lines_yield_one_student_and_one_enrollment(self, service, store, course):
        text = "Ana Lopez, ana@example.edu, R1\nAna Lopez, ana@example.edu, R1\n"
        report = service.bulk_enroll_from_text(course.id, text)
        assert report.enrolled == 1
        assert report.already_enrolled == 1
        assert report.students_created == 1
        assert store.count(EntityType.STUDENT) == 1
        assert store.count(EntityType.ENROLLMENT) == 1

    def test_bad_lines_are_skipped_not_fatal(self, service, store, course):
        text = "\n".join([
            "Ana Lopez, ana@example.edu, R1",
            "just-a-name",
            ", nobody@example.edu",
            "Ben, not-an-email",
            "",
            "Cat Diaz, cat@example.edu",
        ])
        report = service.bulk_enroll_from_text(course.id, text)
        assert report.enrolled == 2
        assert report.skipped == 3
        assert [line for line, _ in report.errors] == [2, 3, 4]
        assert report.processed == 2
        assert {s.email for s in store.get_course_students(course.id)} == {
            "ana@example.edu", "cat@example.edu"}

    def test_existing_student_is_reused(self, service, store, course, student_factory):
        existing = student_factory(name="Ana", email="ana@example.edu")
        report = service.bulk_enroll_from_text(course.id, "Someone Else, ANA@example.edu")
        assert report.students_created == 0
        assert report.student_ids == [existing.id]

    def test_empty_text(self, service, course):
        report = service.bulk_enroll_from_text(course.id, "   ")
        assert report.processed == 0
        assert report.skipped == 0


class TestJoinCodesAndRemoval:

    def test_enroll_by_code(self, service, store, course, student_factory):
        student = student_factory()
        enrollment = service.enroll_by_code(student.id, course.enrollment_code.lower())
        assert enrollment.course_id == course.id

    def test_remove_student(self, service, store, course, sync, remote):
        result = service.enroll_student(course.id, "Ana", "ana@example.edu")
        service.remove_student(course.id, result.student.id)
        assert store.get_course_students(course.id) == []
        assert store.get_student(result.student.id)
        assert sync.wait_for_pending(timeout=5)
        assert remote.calls_of("delete") == [("delete", EntityType.ENROLLMENT, [result.enrollment.id])]
