# Overview: In-process record store; also the table engine underneath the flat-file backend.

from __future__ import annotations

import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Iterator

from ..models import model_for
from .base import RecordStore


class MemoryStore(RecordStore):
    """
    Dict-backed store.

    A single re-entrant lock serialises writers: a transaction holds it from
    start to commit, so two checkouts can never interleave their
    read-then-write of the same product's stock.

    Rollback restores a per-table snapshot taken the first time a
    transaction touches that table.
    """

    backend_name = "memory"

    def __init__(self):
        self._lock = threading.RLock()
        self._tables: dict[str, dict[int, dict]] = {kind: {} for kind in self.kinds}
        self._next_ids: dict[str, int] = {kind: 1 for kind in self.kinds}
        self._depth = 0
        self._snapshots: dict[str, dict[int, dict]] = {}
        self._appended: dict[str, list[int]] = {}
        self._rewrites: set[str] = set()

    # -- CRUD ---------------------------------------------------------------

    def insert(self, kind: str, values: dict) -> dict:
        self._check_kind(kind)
        values = {k: v for k, v in values.items() if k != "id"}
        self._check_fields(kind, values)
        with self.transaction():
            self._touch(kind)
            record_id = self._next_ids[kind]
            self._next_ids[kind] = record_id + 1
            record = model_for(kind).blank_record(values)
            record["id"] = record_id
            self._tables[kind][record_id] = record
            self._appended.setdefault(kind, []).append(record_id)
            return dict(record)

    def get(self, kind: str, record_id: int, *, for_update: bool = False) -> dict | None:
        self._check_kind(kind)
        with self._lock:
            record = self._tables[kind].get(record_id)
            return dict(record) if record is not None else None

    def list(self, kind: str, **equals: Any) -> list[dict]:
        self._check_kind(kind)
        with self._lock:
            return [
                dict(r) for r in self._tables[kind].values()
                if all(r.get(k) == v for k, v in equals.items())
            ]

    def list_range(self, kind: str, field: str, start: datetime, end: datetime) -> list[dict]:
        self._check_kind(kind)
        with self._lock:
            return [
                dict(r) for r in self._tables[kind].values()
                if r.get(field) is not None and start <= r[field] < end
            ]

    def update(self, kind: str, record_id: int, changes: dict) -> dict | None:
        self._check_kind(kind)
        changes = {k: v for k, v in changes.items() if k != "id"}
        self._check_fields(kind, changes)
        with self.transaction():
            if record_id not in self._tables[kind]:
                return None
            self._touch(kind, rewrite=True)
            record = self._tables[kind][record_id]
            record.update(changes)
            return dict(record)

    def delete(self, kind: str, record_id: int) -> bool:
        self._check_kind(kind)
        with self.transaction():
            if record_id not in self._tables[kind]:
                return False
            self._touch(kind, rewrite=True)
            del self._tables[kind][record_id]
            return True

    # -- transactions -------------------------------------------------------

    @contextmanager
    def transaction(self) -> Iterator[None]:
        with self._lock:
            outermost = self._depth == 0
            self._depth += 1
            try:
                yield
                if outermost:
                    self._commit(self._changed_tables())
            except BaseException:
                if outermost:
                    self._rollback()
                raise
            finally:
                self._depth -= 1
                if outermost:
                    self._snapshots = {}
                    self._appended = {}
                    self._rewrites = set()

    def _touch(self, kind: str, rewrite: bool = False) -> None:
        if kind not in self._snapshots:
            self._snapshots[kind] = {rid: dict(r) for rid, r in self._tables[kind].items()}
        if rewrite:
            self._rewrites.add(kind)

    def _changed_tables(self) -> dict[str, list[dict] | None]:
        """
        kind -> rows appended by this transaction, or None when the table was
        updated/deleted from and must be written out whole.
        """
        changed: dict[str, list[dict] | None] = {}
        for kind in self._snapshots:
            if kind in self._rewrites:
                changed[kind] = None
            else:
                changed[kind] = [self._tables[kind][rid] for rid in self._appended.get(kind, [])]
        return changed

    def _rollback(self) -> None:
        for kind, snapshot in self._snapshots.items():
            self._tables[kind] = snapshot

    def _commit(self, changed: dict[str, list[dict] | None]) -> None:
        """Persist hook, called once per outermost transaction."""
