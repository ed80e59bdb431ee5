# Overview: Relational record store on Flask-SQLAlchemy; requires an application context.

from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Callable, Iterator, TypeVar

from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..models import model_for
from .base import PersistenceError, RecordStore

T = TypeVar("T")

RETRYABLE_ERRORS = (OperationalError, StaleDataError)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


class SqlStore(RecordStore):
    """
    Store backed by the Flask-SQLAlchemy session.

    A transaction is a database transaction: writes are flushed as they
    happen and committed (or rolled back) by the outermost block.
    """

    backend_name = "sql"

    def __init__(self, *, attempts: int = 3, backoff_base: float = 0.1):
        self.attempts = attempts
        self.backoff_base = backoff_base
        self._local = threading.local()

    def init_schema(self) -> None:
        db.create_all()

    @staticmethod
    def _to_record(row) -> dict:
        return {key: getattr(row, key) for key in row.field_names()}

    # -- CRUD ---------------------------------------------------------------

    def insert(self, kind: str, values: dict) -> dict:
        model = model_for(kind)
        values = {k: v for k, v in values.items() if k != "id"}
        self._check_fields(kind, values)
        with self.transaction():
            record = model.blank_record(values)
            record.pop("id", None)
            row = model(**record)
            db.session.add(row)
            db.session.flush()
            return self._to_record(row)

    def get(self, kind: str, record_id: int, *, for_update: bool = False) -> dict | None:
        model = model_for(kind)
        query = db.session.query(model).filter_by(id=record_id)
        if for_update:
            query = lock_for_update(query)
        row = query.first()
        return self._to_record(row) if row is not None else None

    def list(self, kind: str, **equals: Any) -> list[dict]:
        model = model_for(kind)
        rows = db.session.query(model).filter_by(**equals).order_by(model.id.asc()).all()
        return [self._to_record(r) for r in rows]

    def list_range(self, kind: str, field: str, start: datetime, end: datetime) -> list[dict]:
        model = model_for(kind)
        col = getattr(model, field)
        rows = (
            db.session.query(model)
            .filter(col >= start, col < end)
            .order_by(model.id.asc())
            .all()
        )
        return [self._to_record(r) for r in rows]

    def count(self, kind: str, **equals: Any) -> int:
        return db.session.query(model_for(kind)).filter_by(**equals).count()

    def update(self, kind: str, record_id: int, changes: dict) -> dict | None:
        model = model_for(kind)
        changes = {k: v for k, v in changes.items() if k != "id"}
        self._check_fields(kind, changes)
        with self.transaction():
            row = db.session.get(model, record_id)
            if row is None:
                return None
            for key, value in changes.items():
                setattr(row, key, value)
            db.session.flush()
            return self._to_record(row)

    def delete(self, kind: str, record_id: int) -> bool:
        model = model_for(kind)
        with self.transaction():
            row = db.session.get(model, record_id)
            if row is None:
                return False
            db.session.delete(row)
            db.session.flush()
            return True

    # -- transactions -------------------------------------------------------

    @contextmanager
    def transaction(self) -> Iterator[None]:
        depth = getattr(self._local, "depth", 0)
        self._local.depth = depth + 1
        try:
            yield
            if depth == 0:
                db.session.commit()
        except SQLAlchemyError as exc:
            if depth == 0:
                db.session.rollback()
                raise PersistenceError(f"Database error: {exc}") from exc
            raise
        except BaseException:
            if depth == 0:
                db.session.rollback()
            raise
        finally:
            self._local.depth = depth

    def run_atomic(self, func: Callable[[], T]) -> T:
        """
        Run func in one transaction, retrying on lock/serialisation failures
        (OperationalError, StaleDataError) with exponential backoff.
        """
        for attempt in range(self.attempts):
            try:
                with self.transaction():
                    return func()
            except PersistenceError as exc:
                if not isinstance(exc.__cause__, RETRYABLE_ERRORS) or attempt >= self.attempts - 1:
                    raise
                time.sleep(self.backoff_base * (2 ** attempt))
        raise PersistenceError("transaction retries exhausted")
