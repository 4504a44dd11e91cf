"""
Metrics engine computing derived, never-stored values.

Every function here is pure: it takes a store snapshot (or plain records) and an
explicit ``now`` and returns fresh values. Nothing is cached between calls.
"""

import math
import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Iterable, Optional, Sequence, Tuple, Union

from ..core.entities import Assessment, FeedbackEntry, Grade
from ..core.enums import FeedbackCategory, LectureStatus, StudentStatus, UnderstandingLevel
from ..persistence.entity_store import StoreSnapshot

UNDERSTANDING_SCORES = {
    UnderstandingLevel.FULLY: 100,
    UnderstandingLevel.PARTIAL: 60,
    UnderstandingLevel.CONFUSED: 20,
}
UNKNOWN_UNDERSTANDING_SCORE = 50

DEFAULT_HEALTH = 75
DEFAULT_SILENT_DAYS = 7

INACTIVE_AFTER_DAYS = 10
SILENT_AFTER_DAYS = 7
AT_RISK_BELOW_HEALTH = 70

FEEDBACK_RATINGS = {
    UnderstandingLevel.FULLY: 5,
    UnderstandingLevel.PARTIAL: 3,
}
DEFAULT_FEEDBACK_RATING = 1

CATEGORY_PATTERNS = (
    (FeedbackCategory.PACE, re.compile(r"pace|fast|slow")),
    (FeedbackCategory.EXAMPLES, re.compile(r"example|practice")),
    (FeedbackCategory.CLARITY, re.compile(r"clear|confus|understand")),
)

LETTER_GRADES = (
    (90, "A+"), (85, "A"), (80, "A-"),
    (75, "B+"), (70, "B"), (65, "B-"),
    (60, "C+"), (55, "C"), (50, "C-"),
    (45, "D"),
)

GPA_POINTS = {
    "A+": 4.0, "A": 4.0, "A-": 3.7,
    "B+": 3.3, "B": 3.0, "B-": 2.7,
    "C+": 2.3, "C": 2.0, "C-": 1.7,
    "D": 1.0, "F": 0.0,
}


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up (2.5 -> 3)."""
    return int(math.floor(value + 0.5))


# ----------------------------------------------------------------------
# Feedback-level metrics
# ----------------------------------------------------------------------

def understanding_score(level: Union[UnderstandingLevel, str, None]) -> int:
    if not isinstance(level, UnderstandingLevel):
        try:
            level = UnderstandingLevel(level)
        except ValueError:
            return UNKNOWN_UNDERSTANDING_SCORE
    return UNDERSTANDING_SCORES[level]


def feedback_rating(entry: FeedbackEntry) -> int:
    """Five-point rating shown on feedback cards."""
    return FEEDBACK_RATINGS.get(entry.understanding, DEFAULT_FEEDBACK_RATING)


def feedback_category(reason: str) -> FeedbackCategory:
    """Detect the theme of a feedback reason; first matching theme wins."""
    text = (reason or "").lower()
    for category, pattern in CATEGORY_PATTERNS:
        if pattern.search(text):
            return category
    return FeedbackCategory.GENERAL


def is_unresolved(entry: FeedbackEntry) -> bool:
    return entry.understanding is UnderstandingLevel.CONFUSED


# ----------------------------------------------------------------------
# Student metrics
# ----------------------------------------------------------------------

def student_health(feedback: Sequence[FeedbackEntry]) -> int:
    """Mean understanding score in 0..100, or the no-signal default."""
    if not feedback:
        return DEFAULT_HEALTH
    total = sum(understanding_score(entry.understanding_level) for entry in feedback)
    return round_half_up(total / len(feedback))


def silent_days(feedback: Sequence[FeedbackEntry], now: datetime) -> int:
    """Whole days since the most recent feedback, or the neutral default."""
    if not feedback:
        return DEFAULT_SILENT_DAYS
    latest = max(entry.timestamp for entry in feedback)
    return max(0, (now - latest) // timedelta(days=1))


def classify_status(health: int, days_silent: int) -> StudentStatus:
    """Status by fixed precedence; the first matching rule wins."""
    if days_silent >= INACTIVE_AFTER_DAYS:
        return StudentStatus.INACTIVE
    if days_silent >= SILENT_AFTER_DAYS:
        return StudentStatus.SILENT
    if health < AT_RISK_BELOW_HEALTH:
        return StudentStatus.AT_RISK
    return StudentStatus.ACTIVE


@dataclass(frozen=True)
class StudentMetrics:
    student_id: str
    health: int
    silent_days: int
    status: StudentStatus
    feedback_count: int
    lectures_attended: int
    last_feedback_at: Optional[datetime]


def compute_student_metrics(snapshot: StoreSnapshot, student_id: str,
                            course_ids: Optional[Iterable[str]], now: datetime) -> StudentMetrics:
    """Metrics for one student over the feedback in the given course scope.

    ``course_ids=None`` means every course.
    """
    feedback = snapshot.student_feedback(student_id, course_ids)
    health = student_health(feedback)
    days = silent_days(feedback, now)
    return StudentMetrics(
        student_id=student_id,
        health=health,
        silent_days=days,
        status=classify_status(health, days),
        feedback_count=len(feedback),
        lectures_attended=len({entry.lecture_id for entry in feedback}),
        last_feedback_at=max((entry.timestamp for entry in feedback), default=None),
    )


def last_active_label(days_silent: int) -> str:
    if days_silent == 0:
        return "Today"
    if days_silent == 1:
        return "Yesterday"
    return f"{days_silent} days ago"


# ----------------------------------------------------------------------
# Course metrics
# ----------------------------------------------------------------------

def engagement_rate(feedback_count: int, completed_lectures: int, student_count: int) -> int:
    """Feedback received as a percentage of feedback possible."""
    possible = completed_lectures * student_count
    if possible <= 0:
        return 0
    return round_half_up(feedback_count / possible * 100)


@dataclass(frozen=True)
class CourseMetrics:
    course_id: str
    student_count: int
    health: int
    active_today: int
    silent_count: int
    lecture_count: int
    completed_lectures: int
    feedback_count: int
    engagement_rate: int
    last_feedback_at: Optional[datetime]


def compute_course_metrics(snapshot: StoreSnapshot, course_id: str, now: datetime) -> CourseMetrics:
    """Aggregate health and activity counts for one course."""
    students = snapshot.course_students(course_id)
    lectures = snapshot.course_lectures(course_id)
    feedback = snapshot.course_feedback(course_id)

    by_student: Dict[str, list] = {student.id: [] for student in students}
    for entry in feedback:
        if entry.student_id in by_student:
            by_student[entry.student_id].append(entry)

    today = now.date()
    healths = []
    active_today = 0
    silent_count = 0
    for entries in by_student.values():
        health = student_health(entries)
        healths.append(health)
        if any(entry.timestamp.date() == today for entry in entries):
            active_today += 1
        if classify_status(health, silent_days(entries, now)) is StudentStatus.SILENT:
            silent_count += 1

    completed = sum(1 for lecture in lectures if lecture.status is LectureStatus.COMPLETED)
    return CourseMetrics(
        course_id=course_id,
        student_count=len(students),
        health=round_half_up(sum(healths) / len(healths)) if healths else 0,
        active_today=active_today,
        silent_count=silent_count,
        lecture_count=len(lectures),
        completed_lectures=completed,
        feedback_count=len(feedback),
        engagement_rate=engagement_rate(len(feedback), completed, len(students)),
        last_feedback_at=max((entry.timestamp for entry in feedback), default=None),
    )


# ----------------------------------------------------------------------
# Lecture metrics
# ----------------------------------------------------------------------

def lecture_understanding(feedback: Sequence[FeedbackEntry]) -> int:
    """Mean understanding score of a lecture's feedback; 0 when there is none."""
    if not feedback:
        return 0
    return round_half_up(sum(understanding_score(e.understanding_level) for e in feedback) / len(feedback))


def understanding_breakdown(feedback: Sequence[FeedbackEntry]) -> Dict[str, int]:
    counts = {level.value: 0 for level in UnderstandingLevel}
    for entry in feedback:
        if entry.understanding is not None:
            counts[entry.understanding.value] += 1
    return counts


def top_difficult_topics(feedback: Sequence[FeedbackEntry], limit: int = 3) -> Tuple[Tuple[str, int], ...]:
    """Most frequently flagged topics, ties in first-seen order."""
    counts: Dict[str, int] = {}
    for entry in feedback:
        for topic in entry.difficult_topics:
            counts[topic] = counts.get(topic, 0) + 1
    ranked = sorted(counts.items(), key=lambda item: -item[1])
    return tuple(ranked[:limit])


# ----------------------------------------------------------------------
# Gradebook metrics
# ----------------------------------------------------------------------

def letter_grade(percentage: float) -> str:
    for threshold, letter in LETTER_GRADES:
        if percentage >= threshold:
            return letter
    return "F"


def gpa_points(letter: str) -> float:
    return GPA_POINTS.get(letter, 0.0)


@dataclass(frozen=True)
class AssessmentStats:
    assessment_id: str
    total: int
    graded: int
    average: float
    highest: Optional[float]
    lowest: Optional[float]
    average_pct: float


def compute_assessment_stats(assessment: Assessment, grades: Sequence[Grade]) -> AssessmentStats:
    """Summary of the marks entered for one assessment."""
    marks = [grade.marks_obtained for grade in grades if grade.marks_obtained is not None]
    average = round(sum(marks) / len(marks), 2) if marks else 0.0
    return AssessmentStats(
        assessment_id=assessment.id,
        total=len(grades),
        graded=len(marks),
        average=average,
        highest=max(marks) if marks else None,
        lowest=min(marks) if marks else None,
        average_pct=round(average / assessment.max_marks * 100, 2) if marks else 0.0,
    )


def compute_student_gpa(snapshot: StoreSnapshot, student_id: str) -> float:
    """Credit-weighted GPA over published assessments.

    Percentages are averaged per course, converted to a letter grade and then
    to grade points. Courses without marks do not count.
    """
    per_course: Dict[str, list] = {}
    for grade in snapshot.grades:
        if grade.student_id != student_id or grade.marks_obtained is None:
            continue
        assessment = snapshot.assessment_index.get(grade.assessment_id)
        if assessment is None or not assessment.is_published:
            continue
        per_course.setdefault(assessment.course_id, []).append(
            grade.marks_obtained / assessment.max_marks * 100)

    total_points = 0.0
    total_credits = 0
    for course_id, percentages in per_course.items():
        course = snapshot.course_index.get(course_id)
        if course is None:
            continue
        letter = letter_grade(sum(percentages) / len(percentages))
        total_points += gpa_points(letter) * course.credits
        total_credits += course.credits
    if total_credits == 0:
        return 0.0
    return round(total_points / total_credits, 2)
