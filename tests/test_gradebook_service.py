"""
Gradebook service tests: grade entry, publishing and transcripts.
"""

import pytest

from coursepulse.core.enums import EntityType, PublicationStatus
from coursepulse.core.exceptions import ValidationError
from coursepulse.services import GradebookService


@pytest.fixture
def gradebook(store, sync, clock):
    return GradebookService(store, sync, clock=clock)


@pytest.fixture
def setup(store, course_factory, student_factory, gradebook):
    course = course_factory(credits=4)
    ana = student_factory(name="Ana")
    ben = student_factory(name="Ben")
    for student in (ana, ben):
        store.create_enrollment(student.id, course.id)
    assessment = gradebook.create_assessment(course.id, "Quiz 1", "quiz", max_marks=20, weight_pct=10)
    return course, ana, ben, assessment


class TestGradeEntry:

    def test_bulk_set_accepts_mappings_and_tuples(self, gradebook, setup, now):
        course, ana, ben, assessment = setup
        grades = gradebook.bulk_set_grades(assessment.id, [
            {"student_id": ana.id, "marks": 18, "comments": "Great"},
            (ben.id, 11),
        ])
        assert {g.student_id: g.marks_obtained for g in grades} == {ana.id: 18, ben.id: 11}
        assert all(g.graded_at == now for g in grades)
        assert all(g.course_id == course.id for g in grades)

    def test_overwrite_and_clear(self, gradebook, setup, store):
        _, ana, _, assessment = setup
        gradebook.set_grade(assessment.id, ana.id, 12)
        grade = gradebook.set_grade(assessment.id, ana.id, None)
        assert grade.marks_obtained is None
        assert grade.graded_at is None
        assert len(store.get_assessment_grades(assessment.id)) == 1

    def test_invalid_batch_changes_nothing(self, gradebook, setup, store):
        _, ana, ben, assessment = setup
        with pytest.raises(ValidationError):
            gradebook.bulk_set_grades(assessment.id, [(ana.id, 10), (ben.id, -1)])
        assert store.get_assessment_grades(assessment.id) == []

    def test_unrecognized_entry(self, gradebook, setup):
        with pytest.raises(ValidationError):
            gradebook.bulk_set_grades(setup[3].id, ["ana"])
        with pytest.raises(ValidationError):
            gradebook.bulk_set_grades(setup[3].id, [{"marks": 3}])

    def test_grades_are_mirrored(self, gradebook, setup, sync, remote):
        _, ana, _, assessment = setup
        gradebook.set_grade(assessment.id, ana.id, 15)
        assert sync.wait_for_pending(timeout=5)
        kinds = [(call[0], call[1]) for call in remote.calls]
        assert ("upsert", EntityType.ASSESSMENT) in kinds
        assert ("upsert", EntityType.GRADE) in kinds


class TestPublishing:

    def test_students_see_published_grades_only(self, gradebook, setup):
        _, ana, _, assessment = setup
        gradebook.set_grade(assessment.id, ana.id, 18)
        assert gradebook.student_published_grades(ana.id) == []

        published = gradebook.publish_grades(assessment.id)
        assert published.status is PublicationStatus.PUBLISHED
        lines = gradebook.student_published_grades(ana.id)
        assert len(lines) == 1
        assert lines[0].percentage == 90.0
        assert lines[0].letter == "A+"

        gradebook.unpublish_grades(assessment.id)
        assert gradebook.student_published_grades(ana.id) == []

    def test_publish_mirrors_status(self, gradebook, setup, sync, remote):
        assessment = setup[3]
        gradebook.publish_grades(assessment.id)
        assert sync.wait_for_pending(timeout=5)
        assert ("update", EntityType.ASSESSMENT, [assessment.id], {"status": "published"}) \
            in remote.calls_of("update")

    def test_gpa(self, gradebook, setup):
        _, ana, ben, assessment = setup
        gradebook.bulk_set_grades(assessment.id, [(ana.id, 18), (ben.id, 13)])
        gradebook.publish_grades(assessment.id)
        assert gradebook.student_gpa(ana.id) == 4.0
        assert gradebook.student_gpa(ben.id) == 2.7


class TestStatistics:

    def test_course_gradebook(self, gradebook, setup):
        course, ana, ben, assessment = setup
        gradebook.bulk_set_grades(assessment.id, [(ana.id, 18), (ben.id, 12)])
        summary = gradebook.course_gradebook(course.id)
        stats = summary[assessment.id]
        assert stats.average == 15.0
        assert stats.average_pct == 75.0
        assert gradebook.assessment_stats(assessment.id) == stats
