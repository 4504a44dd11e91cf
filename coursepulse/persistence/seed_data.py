"""
Deterministic default dataset.

Used when the remote source is unavailable so the dashboard is never empty on
first paint. Every timestamp is relative to ``now`` and every id is fixed, so
the same ``now`` always yields the same records.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from ..core.entities import utc_now
from ..core.enums import EntityType

DEFAULT_PROFESSOR_ID = "prof-1"

# Load order respects foreign keys.
LOAD_ORDER = (
    EntityType.COURSE,
    EntityType.STUDENT,
    EntityType.ENROLLMENT,
    EntityType.LECTURE,
    EntityType.FEEDBACK,
    EntityType.ASSESSMENT,
    EntityType.GRADE,
)

_COURSES = [
    ("course-1", "CS201", "Advanced Data Structures", "Computer Science", "prof-1", 4, "DSA201"),
    ("course-2", "CS202", "Algorithms & Complexity", "Computer Science", "prof-2", 4, "ALG202"),
    ("course-3", "CS301", "Machine Learning", "Computer Science", "prof-1", 3, "MLR301"),
    ("course-4", "MA201", "Linear Algebra", "Mathematics", "prof-3", 3, "LIN201"),
]

_STUDENTS = [
    ("stu-1", "Rahul Sharma", "rahul.s@iitgn.ac.in", "21CS10045"),
    ("stu-2", "Ananya Gupta", "ananya.g@iitgn.ac.in", "21CS10012"),
    ("stu-3", "Vikram Singh", "vikram.s@iitgn.ac.in", "21CS10078"),
    ("stu-4", "Priyanka Reddy", "priyanka.r@iitgn.ac.in", "21CS10052"),
    ("stu-5", "Arjun Nair", "arjun.n@iitgn.ac.in", "21CS10008"),
    ("stu-6", "Sneha Iyer", "sneha.i@iitgn.ac.in", "21CS10065"),
    ("stu-7", "Karan Mehta", "karan.m@iitgn.ac.in", "21CS10034"),
    ("stu-8", "Divya Joshi", "divya.j@iitgn.ac.in", "21CS10021"),
    ("stu-9", "Rohan Verma", "rohan.v@iitgn.ac.in", "21CS10058"),
    ("stu-10", "Meera Krishnan", "meera.k@iitgn.ac.in", "21CS10041"),
    ("stu-11", "Aditya Saxena", "aditya.s@iitgn.ac.in", "21CS10003"),
    ("stu-12", "Pooja Desai", "pooja.d@iitgn.ac.in", "21CS10049"),
    ("stu-13", "Nikhil Rao", "nikhil.r@iitgn.ac.in", "21CS10044"),
    ("stu-14", "Sanya Kapoor", "sanya.k@iitgn.ac.in", "21CS10061"),
    ("stu-15", "Harsh Agarwal", "harsh.a@iitgn.ac.in", "21CS10028"),
]

# (course id, student ids)
_ROSTERS = [
    ("course-1", ["stu-%d" % n for n in range(1, 11)]),
    ("course-2", ["stu-%d" % n for n in range(4, 14)]),
    ("course-3", ["stu-%d" % n for n in (1, 2, 3, 11, 12, 14, 15)]),
    ("course-4", ["stu-%d" % n for n in (5, 6, 7, 8, 13)]),
]

# (course id, title, topics, day offset from now)
_LECTURES = [
    ("course-1", "Binary Search Trees", ["BST Basics", "Insertion", "Deletion", "Search Operations"], -16),
    ("course-1", "AVL Trees", ["Balance Factor", "Rotations", "LL Rotation", "RR Rotation"], -9),
    ("course-1", "Red-Black Trees", ["RB Properties", "Insertion Cases", "Recoloring"], -2),
    ("course-1", "Graph Representations", ["Adjacency Matrix", "Adjacency List", "Weighted Graphs"], 0),
    ("course-2", "Graph Traversals", ["BFS", "DFS", "Applications", "Time Complexity"], -12),
    ("course-2", "Shortest Paths", ["Dijkstra", "Bellman-Ford", "Negative Cycles"], -4),
    ("course-2", "Dynamic Programming", ["Memoization", "Tabulation", "Knapsack"], 3),
    ("course-3", "Neural Networks Basics", ["Perceptron", "Activation Functions", "Forward Propagation"], -11),
    ("course-3", "Backpropagation", ["Chain Rule", "Gradient Computation", "Vanishing Gradients"], -8),
    ("course-3", "Regularization", ["Dropout", "Weight Decay", "Early Stopping"], 4),
    ("course-4", "Vector Spaces", ["Span", "Basis", "Dimension"], -6),
    ("course-4", "Eigenvalues", ["Characteristic Polynomial", "Diagonalization"], 0),
]

_LEVELS = ["fully", "fully", "partial", "confused", "partial", "fully"]

_REASONS = {
    "fully": "",
    "partial": "Need more examples to practice",
    "confused": "Pace was too fast to follow",
}

# (course id, name, type, max marks, weight, published)
_ASSESSMENTS = [
    ("course-1", "Quiz 1: Trees", "quiz", 20, 10, True),
    ("course-1", "Midterm", "midterm", 100, 30, False),
    ("course-2", "Assignment 1: Graphs", "assignment", 50, 15, True),
    ("course-3", "Lab 1: Perceptron", "lab", 25, 10, True),
    ("course-4", "Quiz 1: Vectors", "quiz", 10, 5, False),
]


def _iso(value: datetime) -> str:
    return value.isoformat()


def build_default_records(now: Optional[datetime] = None) -> Dict[EntityType, List[Dict[str, Any]]]:
    """Build flat records for every collection, keyed by entity type."""
    now = now or utc_now()
    start = now.replace(hour=9, minute=0, second=0, microsecond=0)
    created = _iso(start - timedelta(days=30))

    records: Dict[EntityType, List[Dict[str, Any]]] = {entity_type: [] for entity_type in LOAD_ORDER}

    for course_id, code, name, department, professor_id, credits, join_code in _COURSES:
        records[EntityType.COURSE].append({
            "id": course_id, "code": code, "name": name, "department": department,
            "semester": "Spring 2026", "professor_id": professor_id, "credits": credits,
            "enrollment_code": join_code, "status": "active", "created_at": created,
        })

    for student_id, name, email, roll_number in _STUDENTS:
        records[EntityType.STUDENT].append({
            "id": student_id, "name": name, "email": email, "roll_number": roll_number,
            "department": "Computer Science", "created_at": created,
        })

    rosters = dict(_ROSTERS)
    for course_id, student_ids in _ROSTERS:
        for student_id in student_ids:
            records[EntityType.ENROLLMENT].append({
                "id": "enr-%s-%s" % (course_id, student_id),
                "student_id": student_id, "course_id": course_id, "created_at": created,
            })

    for index, (course_id, title, topics, offset) in enumerate(_LECTURES, start=1):
        lecture_id = "lec-%d" % index
        lecture_start = start + timedelta(days=offset)
        if offset < 0:
            status = "completed"
        elif offset == 0:
            status = "live"
        else:
            status = "scheduled"
        roster = rosters[course_id]
        attendees = [sid for position, sid in enumerate(roster) if status == "completed" and (position + index) % 4 != 0]
        records[EntityType.LECTURE].append({
            "id": lecture_id, "course_id": course_id, "title": title, "date": _iso(lecture_start),
            "status": status, "topics": topics, "attendee_ids": attendees,
            "duration_minutes": 60, "created_at": created,
        })
        if status != "completed":
            continue
        for position, student_id in enumerate(attendees):
            # The last two students of each roster never respond.
            if roster.index(student_id) >= len(roster) - 2:
                continue
            level = _LEVELS[(position * 7 + index) % len(_LEVELS)]
            records[EntityType.FEEDBACK].append({
                "id": "fb-%d-%s" % (index, student_id),
                "lecture_id": lecture_id, "student_id": student_id, "course_id": course_id,
                "understanding_level": level,
                "difficult_topics": [topics[position % len(topics)]] if level != "fully" else [],
                "reason": _REASONS[level],
                "created_at": _iso(lecture_start + timedelta(hours=2, minutes=position)),
            })

    for index, (course_id, name, kind, max_marks, weight, published) in enumerate(_ASSESSMENTS, start=1):
        assessment_id = "asm-%d" % index
        records[EntityType.ASSESSMENT].append({
            "id": assessment_id, "course_id": course_id, "name": name, "assessment_type": kind,
            "max_marks": max_marks, "weight_pct": weight,
            "due_date": _iso(start - timedelta(days=10 - index)),
            "status": "published" if published else "draft", "created_at": created,
        })
        for position, student_id in enumerate(rosters[course_id]):
            marks = round(max_marks * (0.45 + ((position * 13 + index * 5) % 55) / 100.0), 1)
            records[EntityType.GRADE].append({
                "id": "grd-%d-%s" % (index, student_id),
                "assessment_id": assessment_id, "student_id": student_id, "course_id": course_id,
                "marks_obtained": marks, "comments": "",
                "graded_at": _iso(start - timedelta(days=5)),
            })

    return records


def seed_store(store, now: Optional[datetime] = None) -> Dict[EntityType, bool]:
    """Load the default dataset into every collection that is still empty."""
    records = build_default_records(now)
    return {entity_type: store.load_records(entity_type, records[entity_type]) for entity_type in LOAD_ORDER}
