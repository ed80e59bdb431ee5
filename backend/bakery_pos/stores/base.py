# Overview: Record store contract shared by the memory, flat-file and SQL backends.

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Callable, Iterator, TypeVar

from ..models import ENTITY_KINDS, model_for

T = TypeVar("T")


class PersistenceError(Exception):
    """Raised when the underlying storage cannot be read or written."""


class RecordStore(ABC):
    """
    Key-value-like persistence for the seven entity kinds.

    Records are plain dicts keyed by model column names and holding Python
    values (Decimal, datetime, int, str, bool, None). Every method returns
    copies; mutating a returned dict never changes stored state.

    Ids are positive, assigned on insert, strictly increasing per kind and
    never reused, even after the newest record is deleted.
    """

    backend_name = "abstract"
    kinds = ENTITY_KINDS

    def init_schema(self) -> None:
        """Create whatever backing structures the backend needs."""

    # -- CRUD ---------------------------------------------------------------

    @abstractmethod
    def insert(self, kind: str, values: dict) -> dict:
        ...

    @abstractmethod
    def get(self, kind: str, record_id: int, *, for_update: bool = False) -> dict | None:
        """
        Fetch one record. for_update asks the backend to hold a write lock on
        the row until the surrounding transaction ends.
        """

    @abstractmethod
    def list(self, kind: str, **equals: Any) -> list[dict]:
        """All records of a kind whose fields equal the given values, in id order."""

    @abstractmethod
    def list_range(self, kind: str, field: str, start: datetime, end: datetime) -> list[dict]:
        """Records with start <= record[field] < end, in id order."""

    @abstractmethod
    def update(self, kind: str, record_id: int, changes: dict) -> dict | None:
        ...

    @abstractmethod
    def delete(self, kind: str, record_id: int) -> bool:
        ...

    def find_one(self, kind: str, **equals: Any) -> dict | None:
        rows = self.list(kind, **equals)
        return rows[0] if rows else None

    def count(self, kind: str, **equals: Any) -> int:
        return len(self.list(kind, **equals))

    # -- transactions -------------------------------------------------------

    @abstractmethod
    @contextmanager
    def transaction(self) -> Iterator[None]:
        """
        All writes inside the block become visible together or not at all.
        Transactions nest; only the outermost one commits.
        """
        yield

    def run_atomic(self, func: Callable[[], T]) -> T:
        with self.transaction():
            return func()

    # -- helpers ------------------------------------------------------------

    def _check_kind(self, kind: str) -> None:
        model_for(kind)

    def _check_fields(self, kind: str, values: dict) -> None:
        names = set(model_for(kind).field_names())
        unknown = [k for k in values if k not in names]
        if unknown:
            raise KeyError(f"Unknown field(s) for {kind}: {', '.join(sorted(unknown))}")


def create_store(config) -> RecordStore:
    """
    Build the backend named by config["STORE_BACKEND"].

    `config` is any mapping (a Flask config works).
    """
    backend = (config.get("STORE_BACKEND") or "memory").lower()

    if backend == "memory":
        from .memory import MemoryStore
        return MemoryStore()
    if backend == "csv":
        from .csv_store import CsvStore
        return CsvStore(config.get("CSV_DATA_DIR") or "data")
    if backend == "sql":
        from .sql import SqlStore
        return SqlStore()
    raise ValueError(f"Unknown store backend: {backend}")
