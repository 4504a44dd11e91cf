"""
Gradebook service: assessments, grade entry and publishing.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

from ..core.entities import Assessment, Grade, utc_now
from ..core.enums import EntityType, PublicationStatus
from ..core.exceptions import ValidationError
from ..persistence.entity_store import EntityStore
from . import metrics_engine as metrics
from .sync_service import SyncService

logger = logging.getLogger(__name__)

GradeEntry = Union[Mapping[str, Any], tuple]


@dataclass(frozen=True)
class StudentGradeLine:
    """One row of a student's transcript."""
    course_id: str
    course_code: str
    assessment_id: str
    assessment_name: str
    marks_obtained: Optional[float]
    max_marks: float
    percentage: Optional[float]
    letter: Optional[str]


class GradebookService:
    """Grade entry and publication on top of the entity store."""

    def __init__(self, store: EntityStore, sync: Optional[SyncService] = None,
                 clock: Callable[[], datetime] = utc_now):
        self.store = store
        self.sync = sync
        self.clock = clock

    def create_assessment(self, course_id: str, name: str, assessment_type: Any,
                          max_marks: float, weight_pct: float = 0.0,
                          due_date: Any = None) -> Assessment:
        assessment = self.store.create_assessment(
            course_id=course_id, name=name, assessment_type=assessment_type,
            max_marks=max_marks, weight_pct=weight_pct, due_date=due_date,
        )
        self._mirror(EntityType.ASSESSMENT, [assessment])
        return assessment

    def bulk_set_grades(self, assessment_id: str, entries: Iterable[GradeEntry]) -> List[Grade]:
        """Enter marks for many students at once.

        Entries are mappings with ``student_id``, ``marks`` and optional
        ``comments``, or ``(student_id, marks)`` tuples. Existing grades are
        overwritten. Any invalid entry rejects the whole batch.
        """
        normalized = [_normalize_entry(entry) for entry in entries]
        grades = self.store.set_grades(assessment_id, normalized, at=self.clock())
        logger.info("Recorded %d grades for assessment %s", len(grades), assessment_id)
        self._mirror(EntityType.GRADE, grades)
        return grades

    def set_grade(self, assessment_id: str, student_id: str, marks: Optional[float],
                  comments: Optional[str] = None) -> Grade:
        return self.bulk_set_grades(
            assessment_id, [{"student_id": student_id, "marks": marks, "comments": comments}])[0]

    def publish_grades(self, assessment_id: str) -> Assessment:
        return self._set_status(assessment_id, PublicationStatus.PUBLISHED)

    def unpublish_grades(self, assessment_id: str) -> Assessment:
        return self._set_status(assessment_id, PublicationStatus.DRAFT)

    def _set_status(self, assessment_id: str, status: PublicationStatus) -> Assessment:
        assessment = self.store.update_assessment(assessment_id, status=status)
        logger.info("Assessment %s is now %s", assessment_id, status.value)
        if self.sync is not None:
            self.sync.mirror_update(EntityType.ASSESSMENT, [assessment_id], {"status": status.value})
        return assessment

    def assessment_stats(self, assessment_id: str) -> metrics.AssessmentStats:
        assessment = self.store.get_assessment(assessment_id)
        return metrics.compute_assessment_stats(assessment, self.store.get_assessment_grades(assessment_id))

    def course_gradebook(self, course_id: str) -> Dict[str, metrics.AssessmentStats]:
        """Stats for every assessment of a course, keyed by assessment id."""
        self.store.get_course(course_id)
        snapshot = self.store.snapshot()
        return {
            assessment.id: metrics.compute_assessment_stats(assessment, snapshot.assessment_grades(assessment.id))
            for assessment in snapshot.course_assessments(course_id)
        }

    def student_gpa(self, student_id: str) -> float:
        self.store.get_student(student_id)
        return metrics.compute_student_gpa(self.store.snapshot(), student_id)

    def student_published_grades(self, student_id: str) -> List[StudentGradeLine]:
        """Grades a student can see: those of published assessments only."""
        snapshot = self.store.snapshot()
        lines = []
        for grade in snapshot.grades:
            if grade.student_id != student_id:
                continue
            assessment = snapshot.assessment_index.get(grade.assessment_id)
            if assessment is None or not assessment.is_published:
                continue
            course = snapshot.course_index.get(assessment.course_id)
            percentage = None
            if grade.marks_obtained is not None:
                percentage = round(grade.marks_obtained / assessment.max_marks * 100, 2)
            lines.append(StudentGradeLine(
                course_id=assessment.course_id,
                course_code=course.code if course else "",
                assessment_id=assessment.id,
                assessment_name=assessment.name,
                marks_obtained=grade.marks_obtained,
                max_marks=assessment.max_marks,
                percentage=percentage,
                letter=metrics.letter_grade(percentage) if percentage is not None else None,
            ))
        return lines

    def _mirror(self, entity_type: EntityType, records: list) -> None:
        if self.sync is not None and records:
            self.sync.mirror_upsert(entity_type, records)


def _normalize_entry(entry: GradeEntry):
    if isinstance(entry, Mapping):
        if "student_id" not in entry:
            raise ValidationError("grade entry is missing student_id")
        marks = entry.get("marks", entry.get("marks_obtained"))
        return entry["student_id"], marks, entry.get("comments")
    if isinstance(entry, tuple) and len(entry) in (2, 3):
        student_id, marks = entry[0], entry[1]
        comments = entry[2] if len(entry) == 3 else None
        return student_id, marks, comments
    raise ValidationError(f"Unrecognized grade entry: {entry!r}")
