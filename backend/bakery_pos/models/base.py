from __future__ import annotations

from typing import Any

from ..extensions import db
from ..money import format_amount
from ..time_utils import to_utc_z, utcnow


class RecordMixin:
    """
    Shared schema helpers for every entity kind.

    The SQLAlchemy column metadata is the single schema description used by
    all record-store backends: field names, types and scalar defaults are
    read from it whether or not rows ever reach a database.
    """

    # Fields never sent over the API
    __serialize_exclude__: tuple[str, ...] = ()

    @classmethod
    def columns(cls) -> dict[str, Any]:
        return {c.key: c for c in cls.__table__.columns}

    @classmethod
    def field_names(cls) -> list[str]:
        return [c.key for c in cls.__table__.columns]

    @classmethod
    def blank_record(cls, values: dict) -> dict:
        """Full record dict: given values, else scalar column defaults, else None."""
        record: dict = {}
        for key, col in cls.columns().items():
            if key in values:
                record[key] = values[key]
            elif key == "created_at":
                record[key] = utcnow()
            elif col.default is not None and col.default.is_scalar:
                record[key] = col.default.arg
            else:
                record[key] = None
        return record

    @classmethod
    def serialize(cls, record: dict | None) -> dict | None:
        if record is None:
            return None
        out = {}
        for key, col in cls.columns().items():
            if key in cls.__serialize_exclude__:
                continue
            value = record.get(key)
            if isinstance(col.type, db.Numeric):
                value = format_amount(value)
            elif isinstance(col.type, db.DateTime):
                value = to_utc_z(value)
            out[key] = value
        return out
