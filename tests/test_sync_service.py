"""
Sync service tests: initial load with fallback and fire-and-forget mirroring.
"""

import threading
import time

import pytest

from coursepulse.core.enums import CourseStatus, EntityType
from coursepulse.persistence import build_default_records
from coursepulse.services import SyncService


class TestInitialLoad:

    def test_no_remote_seeds_default_dataset(self, store, clock):
        service = SyncService(store, remote=None, clock=clock)
        try:
            assert service.initial_load() == "seed"
        finally:
            service.shutdown()
        assert store.count(EntityType.COURSE) == 4
        assert service.statistics.fallbacks == 1

    def test_remote_data_is_used_when_every_fetch_succeeds(self, store, clock, remote_factory, now):
        records = build_default_records(now)
        records[EntityType.COURSE] = records[EntityType.COURSE][:1]
        remote = remote_factory(records=records)
        service = SyncService(store, remote=remote, clock=clock)
        try:
            assert service.initial_load() == "remote"
        finally:
            service.shutdown()
        assert [c.id for c in store.list(EntityType.COURSE)] == ["course-1"]
        # Dependents of the missing courses are skipped as dangling.
        assert {e.course_id for e in store.list(EntityType.ENROLLMENT)} == {"course-1"}
        assert service.statistics.collections_loaded == 7

    def test_empty_remote_loads_empty(self, store, clock, remote_factory):
        service = SyncService(store, remote=remote_factory(), clock=clock)
        try:
            assert service.initial_load() == "remote"
        finally:
            service.shutdown()
        assert store.count(EntityType.COURSE) == 0
        assert store.is_loaded(EntityType.COURSE)

    def test_any_failed_fetch_falls_back_to_seed(self, store, clock, remote_factory, now):
        remote = remote_factory(records=build_default_records(now), fail_fetch_for={EntityType.GRADE})
        service = SyncService(store, remote=remote, clock=clock)
        try:
            assert service.initial_load() == "seed"
        finally:
            service.shutdown()
        assert store.count(EntityType.GRADE) > 0
        stats = service.statistics
        assert stats.fallbacks == 1
        assert "grades" in stats.last_error

    def test_failure_without_seeding_starts_empty(self, store, clock, failing_remote):
        service = SyncService(store, remote=failing_remote, seed_on_failure=False, clock=clock)
        try:
            assert service.initial_load() == "none"
        finally:
            service.shutdown()
        assert store.count(EntityType.COURSE) == 0

    def test_late_results_are_dropped(self, store, clock, remote_factory, now):
        gate = threading.Event()
        remote = remote_factory(records=build_default_records(now), block=gate)
        service = SyncService(store, remote=remote, timeout=0.05, clock=clock)
        try:
            assert service.initial_load() == "seed"
            store.update_course("course-1", name="Edited locally")
            gate.set()
        finally:
            service.shutdown()
        assert store.get_course("course-1").name == "Edited locally"
        assert service.statistics.late_results_dropped == 7


class TestMirroring:

    def test_no_remote_means_no_task(self, store, clock):
        service = SyncService(store, remote=None, clock=clock)
        try:
            assert service.mirror_delete(EntityType.COURSE, ["x"]) is None
        finally:
            service.shutdown()

    def test_upsert_sends_flat_records(self, store, sync, remote, course_factory):
        course = course_factory()
        future = sync.mirror_upsert(EntityType.COURSE, [course])
        assert future.result(timeout=5) is True
        assert remote.calls_of("upsert") == [("upsert", EntityType.COURSE, [course.id])]
        assert sync.statistics.mirrors_succeeded == 1

    def test_failure_is_recorded_and_local_state_kept(self, store, failing_sync, course_factory):
        course = course_factory()
        store.archive_courses([course.id])
        future = failing_sync.mirror_update(EntityType.COURSE, [course.id], {"status": "archived"})
        assert future.result(timeout=5) is False
        stats = failing_sync.statistics
        assert (stats.mirrors_submitted, stats.mirrors_failed) == (1, 1)
        assert stats.last_error == "update failed"
        assert store.get_course(course.id).status is CourseStatus.ARCHIVED

    def test_statistics_are_a_copy(self, sync):
        stats = sync.statistics
        stats.mirrors_failed = 99
        assert sync.statistics.mirrors_failed == 0

    @pytest.mark.parametrize("collection", [EntityType.STUDENT, EntityType.LECTURE])
    def test_delete_passes_ids(self, sync, remote, collection):
        sync.mirror_delete(collection, ["a", "b"]).result(timeout=5)
        assert remote.calls_of("delete") == [("delete", collection, ["a", "b"])]


class TestStalledRemote:

    def test_load_waits_once_for_all_collections(self, store, clock, remote_factory, now):
        gate = threading.Event()
        remote = remote_factory(records=build_default_records(now), block=gate)
        service = SyncService(store, remote=remote, timeout=0.2, clock=clock)
        try:
            started = time.monotonic()
            assert service.initial_load() == "seed"
            assert time.monotonic() - started < 1.0

            mirror = service.mirror_update(EntityType.COURSE, ["course-1"], {"status": "archived"})
            assert mirror.result(timeout=2) is True
        finally:
            gate.set()
            service.shutdown()
        assert service.statistics.late_results_dropped == 7

    def test_mirror_after_shutdown_is_counted_not_raised(self, store, clock, remote, course_factory):
        service = SyncService(store, remote=remote, clock=clock)
        service.shutdown()
        course = course_factory()
        assert service.mirror_upsert(EntityType.COURSE, [course]) is None
        stats = service.statistics
        assert stats.mirrors_failed == 1
        assert "shutdown" in stats.last_error
        assert remote.calls == []
