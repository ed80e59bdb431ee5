from .base import PersistenceError, RecordStore, create_store

__all__ = ["PersistenceError", "RecordStore", "create_store"]
