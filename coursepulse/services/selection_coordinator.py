"""
Selection and bulk-mutation coordinator for one list session.

Bulk mutations are optimistic and local-first: the store is changed
synchronously, the selection is cleared, and only then is a remote mirror task
submitted. Remote failures never undo the local change.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..core.entities import Course, utc_now
from ..core.enums import EntityType, StudentStatus
from ..core.interfaces import Notifier
from ..persistence.entity_store import EntityStore
from . import metrics_engine as metrics
from .list_session import ListSession
from .sync_service import SyncService

logger = logging.getLogger(__name__)


EXPORT_COLUMNS: Dict[EntityType, Tuple[Tuple[str, str], ...]] = {
    EntityType.STUDENT: (
        ("Name", "name"), ("Email", "email"), ("Roll Number", "roll_number"),
        ("Course", "course_code"), ("Health", "health"), ("Silent Days", "silent_days"),
        ("Status", "status"), ("Feedback Count", "feedback_count"),
    ),
    EntityType.COURSE: (
        ("Code", "code"), ("Name", "name"), ("Semester", "semester"), ("Status", "status"),
        ("Students", "student_count"), ("Health", "health"), ("Active Today", "active_today"),
        ("Silent Students", "silent_count"), ("Lectures", "lecture_count"),
    ),
    EntityType.FEEDBACK: (
        ("Date", "timestamp"), ("Course", "course_code"), ("Lecture", "lecture_title"),
        ("Student", "student_name"), ("Understanding", "understanding_level"),
        ("Rating", "rating"), ("Category", "category"), ("Reason", "reason"),
    ),
    EntityType.LECTURE: (
        ("Date", "date"), ("Course", "course_code"), ("Title", "title"), ("Status", "status"),
        ("Feedback", "feedback_count"), ("Understanding", "understanding"),
        ("Attendees", "attendee_count"),
    ),
}


@dataclass(frozen=True)
class NudgeNotice:
    """Completion signal handed to the notifier after a bulk nudge."""
    student_ids: Tuple[str, ...]
    course_ids: Tuple[str, ...]
    created_at: datetime
    message: str = ""

    @property
    def count(self) -> int:
        return len(self.student_ids)


@dataclass(frozen=True)
class ExportTable:
    """Flat tabular projection of list rows."""
    headers: Tuple[str, ...]
    rows: Tuple[Tuple[Any, ...], ...] = field(default_factory=tuple)

    def to_records(self) -> List[Dict[str, Any]]:
        return [dict(zip(self.headers, row)) for row in self.rows]


class SelectionCoordinator:
    """Tracks selected ids of the displayed page and applies grouped mutations."""

    def __init__(self, session: ListSession, store: EntityStore,
                 sync: Optional[SyncService] = None, notifier: Optional[Notifier] = None,
                 clock: Callable[[], datetime] = utc_now):
        self.session = session
        self.store = store
        self.sync = sync
        self.notifier = notifier
        self.clock = clock
        self._selected: Dict[str, None] = {}
        self._lock = threading.RLock()
        session.add_reset_listener(self.clear)

    @property
    def entity_type(self) -> EntityType:
        return self.session.entity_type

    @property
    def selected_ids(self) -> List[str]:
        with self._lock:
            return list(self._selected)

    def is_selected(self, entity_id: str) -> bool:
        with self._lock:
            return entity_id in self._selected

    def toggle(self, entity_id: str) -> bool:
        """Add the id if absent, remove it if present. Returns the new state."""
        with self._lock:
            if entity_id in self._selected:
                del self._selected[entity_id]
                return False
            self._selected[entity_id] = None
            return True

    def select_all(self) -> List[str]:
        """Select every id on the displayed page.

        Rows matching the filter but not yet loaded are not selected.
        """
        with self._lock:
            self._selected = dict.fromkeys(self.session.displayed_ids())
            return list(self._selected)

    def clear(self) -> None:
        with self._lock:
            self._selected = {}

    # ------------------------------------------------------------------
    # Bulk mutations
    # ------------------------------------------------------------------

    def bulk_archive(self) -> List[Course]:
        """Archive the selected courses."""
        if self.entity_type is not EntityType.COURSE:
            raise ValueError(f"bulk archive applies to courses, not {self.entity_type.value}")
        with self._lock:
            ids = list(self._selected)
            if not ids:
                return []
            archived = self.store.archive_courses(ids)
            self.clear()
        logger.info("Archived %d courses", len(archived))
        if self.sync is not None:
            self.sync.mirror_update(EntityType.COURSE, ids, {"status": "archived"})
        return archived

    def bulk_delete(self) -> List[str]:
        """Delete the selected records together with their dependents."""
        with self._lock:
            ids = list(self._selected)
            if not ids:
                return []
            deleted = self.store.delete_many(self.entity_type, ids)
            self.clear()
        logger.info("Deleted %d %s", len(deleted), self.entity_type.value)
        if self.sync is not None:
            self.sync.mirror_delete(self.entity_type, deleted)
        return deleted

    def bulk_nudge(self, message: str = "") -> Optional[NudgeNotice]:
        """Hand a nudge for the selected students to the notifier.

        With courses selected, the targets are their silent students. The
        store is not changed.
        """
        with self._lock:
            ids = list(self._selected)
            if not ids:
                return None
            if self.entity_type is EntityType.STUDENT:
                student_ids, course_ids = tuple(ids), ()
            elif self.entity_type is EntityType.COURSE:
                student_ids, course_ids = self._silent_students(ids), tuple(ids)
            else:
                raise ValueError(f"bulk nudge applies to students or courses, not {self.entity_type.value}")
            notice = NudgeNotice(
                student_ids=student_ids,
                course_ids=course_ids,
                created_at=self.clock(),
                message=message,
            )
            self.clear()
        if self.notifier is not None:
            self.notifier.notify(notice)
        logger.info("Nudged %d students", notice.count)
        return notice

    def _silent_students(self, course_ids: List[str]) -> Tuple[str, ...]:
        snapshot = self.store.snapshot()
        now = self.clock()
        targets: Dict[str, None] = {}
        for course_id in course_ids:
            for student in snapshot.course_students(course_id):
                m = metrics.compute_student_metrics(snapshot, student.id, [course_id], now)
                if m.status is StudentStatus.SILENT:
                    targets[student.id] = None
        return tuple(targets)

    def bulk_export(self) -> ExportTable:
        """Project the selected displayed rows, or the whole page, into a table."""
        columns = EXPORT_COLUMNS[self.entity_type]
        rows = self.session.result().items
        with self._lock:
            if self._selected:
                rows = [row for row in rows if row.id in self._selected]
        return ExportTable(
            headers=tuple(header for header, _ in columns),
            rows=tuple(
                tuple(row.to_dict()[attribute] for _, attribute in columns)
                for row in rows
            ),
        )
