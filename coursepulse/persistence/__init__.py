"""
Persistence module holding the in-memory entity store and its default dataset.
"""

from .entity_store import EntityStore, StoreChange, StoreSnapshot
from .seed_data import build_default_records, seed_store

__all__ = [
    "EntityStore",
    "StoreChange",
    "StoreSnapshot",
    "build_default_records",
    "seed_store",
]
