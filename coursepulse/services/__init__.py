"""
Services module: metrics, list queries, selection, enrollment, grading and sync.
"""

from .enrollment_service import EnrollmentService, EnrollmentReport, EnrollmentResult
from .gradebook_service import GradebookService
from .list_session import ListSession
from .notifier import RecordingNotifier
from .query_engine import QueryEngine, QueryRequest, QueryResult
from .selection_coordinator import ExportTable, NudgeNotice, SelectionCoordinator
from .sync_service import SyncService, SyncStatistics

__all__ = [
    "EnrollmentService",
    "EnrollmentReport",
    "EnrollmentResult",
    "GradebookService",
    "ListSession",
    "RecordingNotifier",
    "QueryEngine",
    "QueryRequest",
    "QueryResult",
    "ExportTable",
    "NudgeNotice",
    "SelectionCoordinator",
    "SyncService",
    "SyncStatistics",
]
