"""
Remote synchronization: initial load and fire-and-forget mirroring.

The local store is authoritative for the running session. Remote work runs on a
thread pool; the mutation path submits mirror tasks and never waits on them.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional

from ..core.entities import AbstractEntity, utc_now
from ..core.enums import EntityType
from ..core.interfaces import RemoteService
from ..persistence.entity_store import EntityStore
from ..persistence.seed_data import LOAD_ORDER, seed_store

logger = logging.getLogger(__name__)


@dataclass
class SyncStatistics:
    """Counters describing remote activity."""
    mirrors_submitted: int = 0
    mirrors_succeeded: int = 0
    mirrors_failed: int = 0
    collections_loaded: int = 0
    late_results_dropped: int = 0
    fallbacks: int = 0
    last_error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class SyncService:
    """Coordinates the store with an optional remote backend."""

    def __init__(self, store: EntityStore, remote: Optional[RemoteService] = None,
                 timeout: float = 5.0, max_workers: int = 4, seed_on_failure: bool = True,
                 clock: Callable[[], datetime] = utc_now):
        self.store = store
        self.remote = remote
        self.timeout = timeout
        self.seed_on_failure = seed_on_failure
        self.clock = clock
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="coursepulse-sync")
        self._loaders: List[ThreadPoolExecutor] = []
        self._pending: set = set()
        self._stats = SyncStatistics()
        self._lock = threading.RLock()

    @property
    def statistics(self) -> SyncStatistics:
        with self._lock:
            return SyncStatistics(**asdict(self._stats))

    # ------------------------------------------------------------------
    # Initial load
    # ------------------------------------------------------------------

    def initial_load(self) -> str:
        """Seed the store from the remote, or from the default dataset.

        Every collection is fetched concurrently and waited on for at most
        ``timeout`` seconds. Remote data is used only when every fetch
        succeeds; otherwise the default dataset is seeded. Returns the source
        used: ``"remote"``, ``"seed"`` or ``"none"``.
        """
        records = self._fetch_all() if self.remote is not None else None
        if records is not None:
            for entity_type in LOAD_ORDER:
                if self.store.load_records(entity_type, records[entity_type]):
                    with self._lock:
                        self._stats.collections_loaded += 1
            logger.info("Initial load from remote complete")
            return "remote"
        if not self.seed_on_failure:
            logger.warning("Remote unavailable and seeding disabled; starting empty")
            return "none"
        with self._lock:
            self._stats.fallbacks += 1
        loaded = seed_store(self.store, self.clock())
        logger.info("Seeded default dataset into %d collections", sum(loaded.values()))
        return "seed"

    def _fetch_all(self) -> Optional[Dict[EntityType, List[Dict[str, Any]]]]:
        loader = ThreadPoolExecutor(max_workers=len(LOAD_ORDER), thread_name_prefix="coursepulse-load")
        with self._lock:
            self._loaders.append(loader)
        futures = {
            entity_type: loader.submit(self.remote.fetch, entity_type)
            for entity_type in LOAD_ORDER
        }
        done, not_done = wait(futures.values(), timeout=self.timeout)
        loader.shutdown(wait=False)

        results: Dict[EntityType, List[Dict[str, Any]]] = {}
        failed = False
        for entity_type, future in futures.items():
            if future in not_done:
                failed = True
                logger.warning("Timed out fetching %s after %.1fs", entity_type.value, self.timeout)
                future.add_done_callback(self._drop_late_result(entity_type))
                continue
            try:
                results[entity_type] = list(future.result() or [])
            except Exception as e:
                failed = True
                self._record_error(e)
                logger.warning("Failed to fetch %s: %s", entity_type.value, e)
        return None if failed else results

    def _drop_late_result(self, entity_type: EntityType) -> Callable[[Future], None]:
        def callback(future: Future) -> None:
            with self._lock:
                self._stats.late_results_dropped += 1
            logger.info("Dropped late %s result from remote", entity_type.value)
        return callback

    # ------------------------------------------------------------------
    # Mirroring
    # ------------------------------------------------------------------

    def mirror_upsert(self, entity_type: EntityType, records: Iterable[AbstractEntity]) -> Optional[Future]:
        payload = [record.to_dict() for record in records]
        return self._submit("upsert", entity_type, lambda: self.remote.upsert(entity_type, payload))

    def mirror_update(self, entity_type: EntityType, ids: Iterable[str],
                      changes: Dict[str, Any]) -> Optional[Future]:
        ids = list(ids)
        return self._submit("update", entity_type, lambda: self.remote.update(entity_type, ids, dict(changes)))

    def mirror_delete(self, entity_type: EntityType, ids: Iterable[str]) -> Optional[Future]:
        ids = list(ids)
        return self._submit("delete", entity_type, lambda: self.remote.delete(entity_type, ids))

    def _submit(self, operation: str, entity_type: EntityType, call: Callable[[], Any]) -> Optional[Future]:
        if self.remote is None:
            return None
        with self._lock:
            self._stats.mirrors_submitted += 1
            try:
                future = self._executor.submit(self._run_mirror, operation, entity_type, call)
            except RuntimeError as e:
                self._stats.mirrors_failed += 1
                self._stats.last_error = str(e)
                logger.warning("Remote %s of %s not scheduled; keeping local state: %s",
                               operation, entity_type.value, e)
                return None
            self._pending.add(future)
        future.add_done_callback(self._discard)
        return future

    def _run_mirror(self, operation: str, entity_type: EntityType, call: Callable[[], Any]) -> bool:
        try:
            call()
        except Exception as e:
            self._record_error(e)
            with self._lock:
                self._stats.mirrors_failed += 1
            logger.warning("Remote %s of %s failed; keeping local state: %s", operation, entity_type.value, e)
            return False
        with self._lock:
            self._stats.mirrors_succeeded += 1
        logger.debug("Remote %s of %s succeeded", operation, entity_type.value)
        return True

    def _discard(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)

    def _record_error(self, error: Exception) -> None:
        with self._lock:
            self._stats.last_error = str(error)

    def wait_for_pending(self, timeout: Optional[float] = None) -> bool:
        """Block until in-flight mirror tasks finish. Returns True if none remain."""
        with self._lock:
            pending = list(self._pending)
        done, not_done = wait(pending, timeout=timeout)
        return not not_done

    def shutdown(self, wait_for_tasks: bool = True) -> None:
        self._executor.shutdown(wait=wait_for_tasks)
        with self._lock:
            loaders, self._loaders = self._loaders, []
        for loader in loaders:
            loader.shutdown(wait=wait_for_tasks)
