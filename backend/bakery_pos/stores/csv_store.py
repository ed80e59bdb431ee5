# Overview: Flat-file record store: one delimited text file per entity kind.

from __future__ import annotations

import csv
import json
import os
import tempfile
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Any

from ..extensions import db
from ..models import model_for
from .base import PersistenceError
from .memory import MemoryStore

SEQUENCES_FILE = "_sequences.csv"


def encode_cell(value: Any) -> str:
    """
    JSON-encode one field.

    null and "" stay distinguishable on disk (`null` vs `""`), and a string
    that happens to look numeric is never read back as a number.
    """
    if isinstance(value, Decimal):
        value = str(value)
    elif isinstance(value, datetime):
        value = value.isoformat()
    return json.dumps(value, ensure_ascii=False)


def decode_cell(col, cell: str) -> Any:
    if cell == "":
        return None
    raw = json.loads(cell)
    if raw is None:
        return None

    coltype = col.type
    if isinstance(coltype, db.Numeric):
        return Decimal(str(raw))
    if isinstance(coltype, db.DateTime):
        return datetime.fromisoformat(raw)
    if isinstance(coltype, db.Boolean):
        return bool(raw)
    if isinstance(coltype, db.Integer):
        return int(raw)
    if isinstance(coltype, (db.String, db.Text)):
        return str(raw)
    return raw


class CsvStore(MemoryStore):
    """
    Flat-file backend.

    Tables are held in memory and written through on commit. A commit that
    only inserts into one table appends rows to its file. Any other commit
    stages a temp copy of every touched table before the first os.replace,
    so a write error leaves the files of the previous commit in place.
    Writers are serialised by the inherited lock, so the rewrite-whole-file
    strategy is safe within one process.
    """

    backend_name = "csv"

    def __init__(self, data_dir: str | os.PathLike):
        super().__init__()
        self.data_dir = Path(data_dir)
        self.init_schema()

    def init_schema(self) -> None:
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            for kind in self.kinds:
                path = self._path(kind)
                if not path.exists():
                    self._write_table(kind, [])
                self._tables[kind] = self._read_table(kind)
            self._load_sequences()
        except (OSError, ValueError, csv.Error) as exc:
            raise PersistenceError(f"Cannot load flat-file store at {self.data_dir}: {exc}") from exc

    def _path(self, kind: str) -> Path:
        return self.data_dir / f"{kind}.csv"

    # -- reading ------------------------------------------------------------

    def _read_table(self, kind: str) -> dict[int, dict]:
        model = model_for(kind)
        cols = model.columns()
        rows: dict[int, dict] = {}

        with self._path(kind).open("r", newline="", encoding="utf-8") as fh:
            reader = csv.reader(fh)
            header = next(reader, None)
            if not header:
                return rows
            for line in reader:
                if not line:
                    continue
                raw = dict(zip(header, line))
                record = {
                    key: decode_cell(col, raw[key]) if key in raw else None
                    for key, col in cols.items()
                }
                rows[record["id"]] = record

        return dict(sorted(rows.items()))

    def _load_sequences(self) -> None:
        stored: dict[str, int] = {}
        path = self.data_dir / SEQUENCES_FILE
        if path.exists():
            with path.open("r", newline="", encoding="utf-8") as fh:
                for row in csv.DictReader(fh):
                    stored[row["kind"]] = int(row["next_id"])

        for kind in self.kinds:
            highest = max(self._tables[kind], default=0)
            self._next_ids[kind] = max(stored.get(kind, 1), highest + 1)

    # -- writing ------------------------------------------------------------

    def _row(self, kind: str, record: dict) -> list[str]:
        return [encode_cell(record.get(name)) for name in model_for(kind).field_names()]

    def _stage(self, name: str, header: list[str], rows) -> str:
        """Write a complete file next to its target; returns the temp path."""
        fd, tmp = tempfile.mkstemp(dir=self.data_dir, prefix=f".{name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", newline="", encoding="utf-8") as fh:
                writer = csv.writer(fh)
                writer.writerow(header)
                writer.writerows(rows)
        except BaseException:
            os.unlink(tmp)
            raise
        return tmp

    def _stage_table(self, kind: str, records) -> str:
        rows = [self._row(kind, record) for record in records]
        return self._stage(kind, model_for(kind).field_names(), rows)

    def _stage_sequences(self) -> str:
        rows = [[kind, self._next_ids[kind]] for kind in self.kinds]
        return self._stage("sequences", ["kind", "next_id"], rows)

    def _write_table(self, kind: str, records) -> None:
        os.replace(self._stage_table(kind, records), self._path(kind))

    def _append_rows(self, kind: str, records: list[dict]) -> None:
        with self._path(kind).open("a", newline="", encoding="utf-8") as fh:
            writer = csv.writer(fh)
            for record in records:
                writer.writerow(self._row(kind, record))

    def _commit(self, changed: dict[str, list[dict] | None]) -> None:
        changed = {kind: appended for kind, appended in changed.items() if appended != []}
        if not changed:
            return
        try:
            if len(changed) == 1:
                (kind, appended), = changed.items()
                if appended is not None:
                    self._append_rows(kind, appended)
                    os.replace(self._stage_sequences(), self.data_dir / SEQUENCES_FILE)
                    return
            self._swap_in(changed)
        except OSError as exc:
            raise PersistenceError(f"Cannot write flat-file store at {self.data_dir}: {exc}") from exc

    def _swap_in(self, changed: dict[str, list[dict] | None]) -> None:
        """
        Stage every touched table (and the sequences) before replacing any
        file, so a failed write leaves the previous commit intact on disk.
        """
        staged: list[tuple[str, Path]] = []
        try:
            for kind in changed:
                staged.append((self._stage_table(kind, self._tables[kind].values()), self._path(kind)))
            staged.append((self._stage_sequences(), self.data_dir / SEQUENCES_FILE))
        except BaseException:
            for tmp, _ in staged:
                os.unlink(tmp)
            raise
        for tmp, target in staged:
            os.replace(tmp, target)
