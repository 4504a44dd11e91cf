"""
Shared fixtures for the CoursePulse test suite.
"""

import threading
from datetime import datetime, timedelta, timezone

import pytest

from coursepulse.core.enums import LectureStatus
from coursepulse.core.exceptions import RemoteSyncError
from coursepulse.core.interfaces import RemoteService
from coursepulse.persistence import EntityStore, seed_store
from coursepulse.services import QueryEngine, SyncService

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


class FakeRemote(RemoteService):
    """In-memory remote; can be told to fail or stall."""

    def __init__(self, records=None, fail=False, fail_fetch_for=(), block=None):
        self.records = {entity_type: list(rows) for entity_type, rows in (records or {}).items()}
        self.fail = fail
        self.fail_fetch_for = set(fail_fetch_for)
        self.block = block
        self.calls = []
        self._lock = threading.Lock()

    def _record(self, *call):
        with self._lock:
            self.calls.append(call)

    def fetch(self, entity_type):
        self._record("fetch", entity_type)
        if self.block is not None:
            self.block.wait()
        if self.fail or entity_type in self.fail_fetch_for:
            raise RemoteSyncError(f"fetch {entity_type.value} failed", error_code="RemoteUnavailable")
        return list(self.records.get(entity_type, []))

    def upsert(self, entity_type, records):
        self._record("upsert", entity_type, [record["id"] for record in records])
        if self.fail:
            raise RemoteSyncError("upsert failed", error_code="RemoteUnavailable")

    def update(self, entity_type, ids, changes):
        self._record("update", entity_type, list(ids), dict(changes))
        if self.fail:
            raise RemoteSyncError("update failed", error_code="RemoteUnavailable")

    def delete(self, entity_type, ids):
        self._record("delete", entity_type, list(ids))
        if self.fail:
            raise RemoteSyncError("delete failed", error_code="RemoteUnavailable")

    def calls_of(self, kind):
        with self._lock:
            return [call for call in self.calls if call[0] == kind]


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def store():
    return EntityStore()


@pytest.fixture
def seeded_store():
    store = EntityStore()
    seed_store(store, NOW)
    return store


@pytest.fixture
def engine(store, clock):
    return QueryEngine(store, clock=clock)


@pytest.fixture
def remote_factory():
    return FakeRemote


@pytest.fixture
def remote():
    return FakeRemote()


@pytest.fixture
def failing_remote():
    return FakeRemote(fail=True)


@pytest.fixture
def sync(store, remote, clock):
    service = SyncService(store, remote=remote, timeout=1.0, clock=clock)
    yield service
    service.shutdown(wait_for_tasks=True)


@pytest.fixture
def failing_sync(store, failing_remote, clock):
    service = SyncService(store, remote=failing_remote, timeout=1.0, clock=clock)
    yield service
    service.shutdown(wait_for_tasks=True)


@pytest.fixture
def course_factory(store):
    """Create a course with sensible defaults."""
    def make(code="CS101", name=None, professor_id="prof-1", **kwargs):
        return store.create_course(
            code=code,
            name=name or f"Course {code}",
            department=kwargs.pop("department", "Computer Science"),
            semester=kwargs.pop("semester", "Spring 2026"),
            professor_id=professor_id,
            **kwargs,
        )
    return make


@pytest.fixture
def student_factory(store):
    def make(name="Student", email=None, **kwargs):
        email = email or f"{name.lower().replace(' ', '.')}@example.edu"
        return store.create_student(name=name, email=email, **kwargs)
    return make


@pytest.fixture
def completed_lecture(store):
    """Create a completed lecture for a course, held ``days_ago`` days before NOW."""
    def make(course_id, title="Lecture", days_ago=1, topics=("Trees",)):
        return store.create_lecture(
            course_id=course_id,
            title=title,
            date=NOW - timedelta(days=days_ago),
            topics=list(topics),
            status=LectureStatus.COMPLETED,
        )
    return make


@pytest.fixture
def feedback_at(store):
    """Record feedback created ``days_ago`` days before NOW."""
    def make(lecture, student, level, days_ago=0, reason="", topics=None):
        return store.create_feedback(
            lecture_id=lecture.id,
            student_id=student.id,
            understanding_level=level,
            difficult_topics=topics or [],
            reason=reason,
            created_at=NOW - timedelta(days=days_ago),
        )
    return make
