"""Generic row store used by the workers as both job queue and system of record.

Filters are plain dicts mapping a column name to a value. A ``None`` value
matches ``IS NULL``. A column may carry an operator suffix::

    {"status": "processing", "claimed_at__lt": cutoff}

Supported suffixes: ``__lt``, ``__lte``, ``__gt``, ``__gte``, ``__ne``, ``__in``.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import Table, delete, func, insert, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from ..errors import DatastoreError
from .. import models  # noqa: F401  registers every table on Base.metadata
from .database import Base

logger = logging.getLogger(__name__)

Row = Dict[str, Any]
Filters = Dict[str, Any]

_OPERATORS = {
    "lt": lambda col, value: col < value,
    "lte": lambda col, value: col <= value,
    "gt": lambda col, value: col > value,
    "gte": lambda col, value: col >= value,
    "ne": lambda col, value: col.is_not(None) if value is None else col != value,
    "in": lambda col, value: col.in_(list(value)),
}


class Datastore:
    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    # ---------- helpers ----------

    def _table(self, name: str) -> Table:
        try:
            return Base.metadata.tables[name]
        except KeyError:
            raise DatastoreError(f"unknown table {name!r}") from None

    def _clauses(self, table: Table, filters: Optional[Filters]) -> list:
        clauses = []
        for key, value in (filters or {}).items():
            name, _, op = key.partition("__")
            if name not in table.c:
                raise DatastoreError(f"unknown column {table.name}.{name}")
            col = table.c[name]
            if not op:
                clauses.append(col.is_(None) if value is None else col == value)
            elif op in _OPERATORS:
                clauses.append(_OPERATORS[op](col, value))
            else:
                raise DatastoreError(f"unsupported filter operator {op!r}")
        return clauses

    def _execute(self, statement, extract):
        try:
            with self.engine.begin() as conn:
                return extract(conn.execute(statement))
        except SQLAlchemyError as exc:
            logger.error("datastore query failed: %s", exc)
            raise DatastoreError(str(exc)) from exc

    # ---------- operations ----------

    def select(
        self,
        table: str,
        filters: Optional[Filters] = None,
        *,
        columns: Optional[Iterable[str]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Row]:
        t = self._table(table)
        cols = [t.c[c] for c in columns] if columns else [t]
        stmt = select(*cols).where(*self._clauses(t, filters))
        if order_by:
            stmt = stmt.order_by(t.c[order_by].desc() if descending else t.c[order_by].asc())
        if limit is not None:
            stmt = stmt.limit(limit)
        try:
            with self.engine.connect() as conn:
                return [dict(r._mapping) for r in conn.execute(stmt)]
        except SQLAlchemyError as exc:
            logger.error("datastore select on %s failed: %s", table, exc)
            raise DatastoreError(str(exc)) from exc

    def get(self, table: str, row_id: Any) -> Optional[Row]:
        rows = self.select(table, {"id": row_id}, limit=1)
        return rows[0] if rows else None

    def count(self, table: str, filters: Optional[Filters] = None) -> int:
        t = self._table(table)
        stmt = select(func.count()).select_from(t).where(*self._clauses(t, filters))
        try:
            with self.engine.connect() as conn:
                return int(conn.execute(stmt).scalar_one())
        except SQLAlchemyError as exc:
            raise DatastoreError(str(exc)) from exc

    def insert(self, table: str, row: Row) -> Row:
        t = self._table(table)
        pk = self._execute(insert(t).values(**row), lambda r: r.inserted_primary_key[0])
        return self.get(table, pk) or dict(row, id=pk)

    def update(self, table: str, filters: Filters, patch: Row) -> int:
        """Apply ``patch`` to every matching row; returns the number of rows changed."""
        t = self._table(table)
        if not filters:
            raise DatastoreError("refusing to update without a filter")
        stmt = update(t).where(*self._clauses(t, filters)).values(**patch)
        return self._execute(stmt, lambda r: r.rowcount)

    def delete(self, table: str, filters: Filters) -> int:
        t = self._table(table)
        if not filters:
            raise DatastoreError("refusing to delete without a filter")
        stmt = delete(t).where(*self._clauses(t, filters))
        return self._execute(stmt, lambda r: r.rowcount)
