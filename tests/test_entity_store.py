"""
Entity store tests: mutations, invariants, cascades, snapshots and seeding.
"""

import string
from datetime import timedelta

import pytest

from coursepulse.core.enums import ChangeKind, CourseStatus, EntityType, LectureStatus
from coursepulse.core.exceptions import (
    DuplicateEntityError, InvalidReferenceError, ResourceNotFoundError, ValidationError,
)
from coursepulse.persistence import build_default_records


# ============================================================================
# Courses and students
# ============================================================================

class TestCourses:
    """Course creation and updates."""

    def test_generates_unique_six_character_join_codes(self, course_factory):
        codes = {course_factory(code=f"CS{n}").enrollment_code for n in range(20)}
        assert len(codes) == 20
        assert all(len(code) == 6 and set(code) <= set(string.ascii_uppercase + string.digits) for code in codes)

    def test_explicit_join_code_is_normalized_and_unique(self, course_factory):
        course = course_factory(enrollment_code=" dsa201 ")
        assert course.enrollment_code == "DSA201"
        with pytest.raises(DuplicateEntityError):
            course_factory(code="CS202", enrollment_code="DSA201")

    def test_update_course_is_copy_on_write(self, store, course_factory):
        course = course_factory(name="Old Name")
        before = store.snapshot()
        updated = store.update_course(course.id, name="New Name", credits=4)

        assert updated.name == "New Name"
        assert updated.credits == 4
        assert course.name == "Old Name"
        assert before.course_index[course.id].name == "Old Name"
        assert store.get_course(course.id).name == "New Name"

    def test_update_rejects_unknown_field(self, store, course_factory):
        course = course_factory()
        revision = store.revision
        with pytest.raises(ValidationError):
            store.update_course(course.id, enrollment_code="XXXXXX")
        assert store.revision == revision

    def test_archive_and_restore(self, store, course_factory):
        first, second = course_factory(code="A1"), course_factory(code="A2")
        store.archive_courses([first.id, second.id])
        assert all(store.get_course(c.id).status is CourseStatus.ARCHIVED for c in (first, second))

        store.restore_courses([first.id])
        assert store.get_course(first.id).status is CourseStatus.ACTIVE
        assert store.get_course(second.id).status is CourseStatus.ARCHIVED

    def test_archive_is_all_or_nothing(self, store, course_factory):
        course = course_factory()
        with pytest.raises(ResourceNotFoundError):
            store.archive_courses([course.id, "missing"])
        assert store.get_course(course.id).status is CourseStatus.ACTIVE

    def test_get_missing_course(self, store):
        with pytest.raises(ResourceNotFoundError) as exc:
            store.get_course("nope")
        assert exc.value.error_code == "NotFound"


class TestStudents:
    """Student registration and enrollment."""

    def test_email_is_unique_ignoring_case(self, student_factory):
        student_factory(name="Ana", email="ana@example.edu")
        with pytest.raises(DuplicateEntityError):
            student_factory(name="Ana Again", email="ANA@Example.edu")

    def test_invalid_email_rejected(self, store):
        with pytest.raises(ValidationError):
            store.create_student(name="Bad", email="not-an-email")
        assert store.count(EntityType.STUDENT) == 0

    def test_enrollment_requires_existing_records(self, store, course_factory, student_factory):
        course = course_factory()
        student = student_factory()
        with pytest.raises(InvalidReferenceError):
            store.create_enrollment("ghost", course.id)
        with pytest.raises(InvalidReferenceError):
            store.create_enrollment(student.id, "ghost")

    def test_enrollment_pair_is_unique(self, store, course_factory, student_factory):
        course = course_factory()
        student = student_factory()
        store.create_enrollment(student.id, course.id)
        with pytest.raises(DuplicateEntityError):
            store.create_enrollment(student.id, course.id)
        assert store.count(EntityType.ENROLLMENT) == 1

    def test_enroll_by_code_is_case_insensitive(self, store, course_factory, student_factory):
        course = course_factory(enrollment_code="ALG202")
        student = student_factory()
        enrollment = store.enroll_by_code(student.id, "alg202")
        assert enrollment.course_id == course.id
        assert store.get_course_students(course.id) == [store.get_student(student.id)]

    def test_enroll_by_unknown_code(self, store, student_factory):
        student = student_factory()
        with pytest.raises(ResourceNotFoundError):
            store.enroll_by_code(student.id, "ZZZZZZ")

    def test_remove_enrollment_keeps_student(self, store, course_factory, student_factory):
        course = course_factory()
        student = student_factory()
        store.create_enrollment(student.id, course.id)
        store.remove_enrollment(student.id, course.id)
        assert store.find_enrollment(student.id, course.id) is None
        assert store.get_student(student.id) is not None
        with pytest.raises(ResourceNotFoundError):
            store.remove_enrollment(student.id, course.id)


# ============================================================================
# Lectures and feedback
# ============================================================================

class TestLecturesAndFeedback:

    def test_lecture_status_transitions(self, store, course_factory, now):
        course = course_factory()
        lecture = store.create_lecture(course.id, "Intro", now, topics=[" Trees ", ""])
        assert lecture.status is LectureStatus.SCHEDULED
        assert lecture.topics == ["Trees"]
        assert store.start_lecture(lecture.id).status is LectureStatus.LIVE
        assert store.end_lecture(lecture.id).status is LectureStatus.COMPLETED

    def test_mark_attendance_is_idempotent_and_marks_activity(self, store, course_factory,
                                                              student_factory, now):
        course = course_factory()
        student = student_factory()
        lecture = store.create_lecture(course.id, "Intro", now)
        store.mark_attendance(lecture.id, student.id, at=now)
        store.mark_attendance(lecture.id, student.id, at=now)
        assert store.get_lecture(lecture.id).attendee_ids == [student.id]
        assert store.get_student(student.id).last_active_at == now

    def test_feedback_takes_course_from_lecture(self, store, course_factory, student_factory,
                                                completed_lecture, feedback_at, now):
        course = course_factory()
        student = student_factory()
        lecture = completed_lecture(course.id)
        entry = feedback_at(lecture, student, "partial", days_ago=2)
        assert entry.course_id == course.id
        assert entry.timestamp == now - timedelta(days=2)
        assert store.get_student(student.id).last_active_at == entry.timestamp

    def test_feedback_course_mismatch_rejected(self, store, course_factory, student_factory,
                                               completed_lecture):
        course = course_factory(code="A1")
        other = course_factory(code="A2")
        student = student_factory()
        lecture = completed_lecture(course.id)
        with pytest.raises(InvalidReferenceError):
            store.create_feedback(lecture.id, student.id, "fully", course_id=other.id)

    def test_invalid_understanding_level_leaves_store_untouched(self, store, course_factory,
                                                                student_factory, completed_lecture):
        course = course_factory()
        student = student_factory()
        lecture = completed_lecture(course.id)
        revision = store.revision
        with pytest.raises(ValidationError):
            store.create_feedback(lecture.id, student.id, "meh")
        assert store.revision == revision
        assert store.count(EntityType.FEEDBACK) == 0

    def test_feedback_is_immutable(self, store, course_factory, student_factory,
                                   completed_lecture, feedback_at):
        course = course_factory()
        lecture = completed_lecture(course.id)
        entry = feedback_at(lecture, student_factory(), "fully")
        with pytest.raises(ValidationError):
            entry.update(reason="changed")


# ============================================================================
# Grades
# ============================================================================

class TestGrades:

    @pytest.fixture
    def assessment(self, store, course_factory):
        course = course_factory()
        return store.create_assessment(course.id, "Quiz 1", "quiz", max_marks=20)

    def test_set_grades_upserts(self, store, assessment, student_factory, now):
        ana = student_factory(name="Ana")
        ben = student_factory(name="Ben")
        store.set_grades(assessment.id, [(ana.id, 15, "good"), (ben.id, 9, None)], at=now)
        store.set_grades(assessment.id, [(ana.id, 18, None)], at=now)

        grades = {g.student_id: g for g in store.get_assessment_grades(assessment.id)}
        assert len(grades) == 2
        assert grades[ana.id].marks_obtained == 18
        assert grades[ana.id].comments == "good"
        assert grades[ana.id].graded_at == now

    def test_set_grades_is_atomic(self, store, assessment, student_factory):
        ana = student_factory(name="Ana")
        ben = student_factory(name="Ben")
        with pytest.raises(ValidationError):
            store.set_grades(assessment.id, [(ana.id, 15, None), (ben.id, 25, None)])
        assert store.get_assessment_grades(assessment.id) == []

    def test_max_marks_cannot_drop_below_existing_marks(self, store, assessment, student_factory):
        student = student_factory()
        store.set_grade(assessment.id, student.id, 18)
        with pytest.raises(ValidationError):
            store.update_assessment(assessment.id, max_marks=10)
        assert store.get_assessment(assessment.id).max_marks == 20


# ============================================================================
# Deletion
# ============================================================================

class TestCascadingDeletes:

    @pytest.fixture
    def populated(self, store, course_factory, student_factory, completed_lecture, feedback_at):
        course = course_factory()
        student = student_factory()
        store.create_enrollment(student.id, course.id)
        lecture = completed_lecture(course.id)
        store.mark_attendance(lecture.id, student.id)
        feedback_at(lecture, student, "fully")
        assessment = store.create_assessment(course.id, "Quiz", "quiz", max_marks=10)
        store.set_grade(assessment.id, student.id, 7)
        return course, student, lecture

    def test_delete_course_removes_everything_attached(self, store, populated):
        course, student, _ = populated
        store.delete_course(course.id)
        for entity_type in (EntityType.COURSE, EntityType.ENROLLMENT, EntityType.LECTURE,
                            EntityType.FEEDBACK, EntityType.ASSESSMENT, EntityType.GRADE):
            assert store.count(entity_type) == 0, entity_type
        assert store.get_student(student.id)

    def test_delete_student_scrubs_attendance(self, store, populated):
        course, student, lecture = populated
        store.delete_student(student.id)
        assert store.get_lecture(lecture.id).attendee_ids == []
        assert store.count(EntityType.FEEDBACK) == 0
        assert store.count(EntityType.GRADE) == 0
        assert store.get_course_students(course.id) == []

    def test_delete_many_is_all_or_nothing(self, store, populated):
        course, _, _ = populated
        with pytest.raises(ResourceNotFoundError):
            store.delete_many(EntityType.COURSE, [course.id, "missing"])
        assert store.get_course(course.id)
        assert store.count(EntityType.FEEDBACK) == 1


# ============================================================================
# Subscriptions and snapshots
# ============================================================================

class TestSubscriptions:

    def test_subscribers_see_every_commit(self, store, course_factory):
        changes = []
        subscriber_id = store.subscribe(changes.append)
        course = course_factory()
        store.delete_course(course.id)
        store.unsubscribe(subscriber_id)
        course_factory(code="CS999")

        assert [c.kind for c in changes] == [ChangeKind.CREATE, ChangeKind.DELETE]
        assert changes[0].ids == (course.id,)
        assert changes[1].revision == changes[0].revision + 1

    def test_failing_subscriber_does_not_break_mutation(self, store, course_factory):
        def broken(change):
            raise RuntimeError("boom")

        store.subscribe(broken)
        course = course_factory()
        assert store.get_course(course.id)

    def test_snapshot_projections(self, seeded_store):
        snapshot = seeded_store.snapshot()
        assert len(snapshot.course_students("course-1")) == 10
        assert [c.id for c in snapshot.professor_courses("prof-1")] == ["course-1", "course-3"]
        assert {c.id for c in snapshot.student_courses("stu-1")} == {"course-1", "course-3"}
        assert all(f.course_id == "course-1" for f in snapshot.course_feedback("course-1"))


# ============================================================================
# Seeding
# ============================================================================

class TestLoadRecords:

    def test_default_dataset_loads_cleanly(self, seeded_store, now):
        records = build_default_records(now)
        for entity_type, rows in records.items():
            assert seeded_store.count(entity_type) == len(rows), entity_type
            assert seeded_store.is_loaded(entity_type)

    def test_load_only_seeds_empty_collections(self, store, course_factory):
        course_factory()
        loaded = store.load_records(EntityType.COURSE, [
            {"id": "remote-1", "code": "X1", "name": "Remote", "professor_id": "p"},
        ])
        assert loaded is False
        assert store.find(EntityType.COURSE, "remote-1") is None

    def test_second_load_is_ignored(self, store):
        assert store.load_records(EntityType.COURSE, []) is True
        assert store.load_records(EntityType.COURSE, [
            {"id": "late", "code": "X1", "name": "Late", "professor_id": "p"},
        ]) is False
        assert store.count(EntityType.COURSE) == 0

    def test_bad_records_are_skipped(self, store):
        store.load_records(EntityType.COURSE, [
            {"id": "c1", "code": "CS1", "name": "One", "professor_id": "p"},
            {"id": "c1", "code": "CS1", "name": "Duplicate", "professor_id": "p"},
            {"id": "c2", "code": "", "name": "No code", "professor_id": "p"},
        ])
        store.load_records(EntityType.STUDENT, [
            {"id": "s1", "name": "Ana", "email": "ana@example.edu"},
            {"id": "s2", "name": "Ana Twin", "email": "ana@example.edu"},
        ])
        store.load_records(EntityType.ENROLLMENT, [
            {"id": "e1", "student_id": "s1", "course_id": "c1"},
            {"id": "e2", "student_id": "s1", "course_id": "gone"},
        ])
        assert [c.name for c in store.list(EntityType.COURSE)] == ["One"]
        assert [s.id for s in store.list(EntityType.STUDENT)] == ["s1"]
        assert [e.id for e in store.list(EntityType.ENROLLMENT)] == ["e1"]

    def test_grade_course_comes_from_its_assessment(self, store):
        store.load_records(EntityType.COURSE, [
            {"id": "c1", "code": "CS1", "name": "One", "professor_id": "p"},
            {"id": "c2", "code": "CS2", "name": "Two", "professor_id": "p"},
        ])
        store.load_records(EntityType.STUDENT, [
            {"id": "s1", "name": "Ana", "email": "ana@example.edu"},
            {"id": "s2", "name": "Ben", "email": "ben@example.edu"},
        ])
        store.load_records(EntityType.ASSESSMENT, [
            {"id": "a1", "course_id": "c1", "name": "Quiz", "assessment_type": "quiz", "max_marks": 20},
        ])
        store.load_records(EntityType.GRADE, [
            {"id": "g1", "assessment_id": "a1", "student_id": "s1", "marks_obtained": 15},
            {"id": "g2", "assessment_id": "a1", "student_id": "s2", "course_id": "c2", "marks_obtained": 9},
        ])
        assert store.find(EntityType.GRADE, "g1").course_id == "c1"
        assert [g.id for g in store.get_course_grades("c1")] == ["g1"]
        assert store.find(EntityType.GRADE, "g2") is None

    def test_reset_allows_reload(self, seeded_store):
        seeded_store.reset()
        assert seeded_store.count(EntityType.COURSE) == 0
        assert not seeded_store.is_loaded(EntityType.COURSE)
        assert seeded_store.load_records(EntityType.COURSE, []) is True
