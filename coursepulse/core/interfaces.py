"""
Core interfaces for collaborators of the CoursePulse platform.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List

from .enums import EntityType


class RemoteSource(ABC):
    """Remote capability returning flat records per collection."""

    @abstractmethod
    def fetch(self, entity_type: EntityType) -> List[Dict[str, Any]]:
        """Fetch every record of a collection."""
        pass


class RemoteMirror(ABC):
    """Remote capability receiving best-effort copies of local mutations."""

    @abstractmethod
    def upsert(self, entity_type: EntityType, records: List[Dict[str, Any]]) -> None:
        """Insert or replace records."""
        pass

    @abstractmethod
    def update(self, entity_type: EntityType, ids: Iterable[str], changes: Dict[str, Any]) -> None:
        """Apply the same field changes to several records."""
        pass

    @abstractmethod
    def delete(self, entity_type: EntityType, ids: Iterable[str]) -> None:
        """Delete records by id."""
        pass


class RemoteService(RemoteSource, RemoteMirror):
    """A remote backend that can both seed and mirror the store."""
    pass


class Notifier(ABC):
    """Receives completion signals such as nudges; delivery is not our concern."""

    @abstractmethod
    def notify(self, notice: Any) -> None:
        """Deliver a notice."""
        pass
