"""Generic row-storage client over the parade database.

Every side effect of the board engine goes through the five calls below. Rows
travel as plain dicts keyed by column name so the engine never touches ORM
objects, and every driver failure surfaces as :class:`StorageError`.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from sqlalchemy import Table, delete, insert, select, update
from sqlalchemy.exc import SQLAlchemyError

import database


class StorageError(RuntimeError):
    """Raised when a row-storage operation fails."""

    def __init__(self, operation: str, table: str, message: str) -> None:
        super().__init__(f"{operation} on {table} failed: {message}")
        self.operation = operation
        self.table = table
        self.message = message


class RowStore:
    def __init__(self, session_factory: Optional[Callable] = None) -> None:
        self._session_factory = session_factory

    @property
    def session_factory(self) -> Callable:
        # Resolved lazily so a patched database.SessionLocal is honoured.
        return self._session_factory or database.SessionLocal

    def query(self, table: str, filters: Optional[Mapping[str, Any]] = None) -> List[Dict[str, Any]]:
        target = self._table("query", table)
        stmt = select(target)
        for column, value in (filters or {}).items():
            stmt = stmt.where(self._condition("query", target, column, value))
        if "id" in target.c:
            stmt = stmt.order_by(target.c.id)
        try:
            with self.session_factory() as session:
                return [dict(row._mapping) for row in session.execute(stmt)]
        except SQLAlchemyError as exc:
            raise StorageError("query", table, str(exc)) from exc

    def insert(self, table: str, rows: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
        target = self._table("insert", table)
        payload = [dict(row) for row in rows]
        if not payload:
            return []
        for row in payload:
            self._check_columns("insert", target, row)
        try:
            with self.session_factory() as session:
                ids = []
                for row in payload:
                    result = session.execute(insert(target).values(**row))
                    ids.append(result.inserted_primary_key[0])
                session.commit()
                stmt = select(target).where(target.c.id.in_(ids)).order_by(target.c.id)
                return [dict(row._mapping) for row in session.execute(stmt)]
        except SQLAlchemyError as exc:
            raise StorageError("insert", table, str(exc)) from exc

    def update(self, table: str, row_id: Any, patch: Mapping[str, Any]) -> None:
        target = self._table("update", table)
        values = dict(patch)
        self._check_columns("update", target, values)
        if not values:
            return
        try:
            with self.session_factory() as session:
                session.execute(update(target).where(target.c.id == row_id).values(**values))
                session.commit()
        except SQLAlchemyError as exc:
            raise StorageError("update", table, str(exc)) from exc

    def delete_by_ids(self, table: str, ids: Iterable[Any]) -> None:
        target = self._table("delete", table)
        id_list = list(ids)
        if not id_list:
            return
        try:
            with self.session_factory() as session:
                session.execute(delete(target).where(target.c.id.in_(id_list)))
                session.commit()
        except SQLAlchemyError as exc:
            raise StorageError("delete", table, str(exc)) from exc

    def delete_where(self, table: str, filters: Mapping[str, Any]) -> None:
        target = self._table("delete", table)
        if not filters:
            raise StorageError("delete", table, "refusing to delete without filters")
        stmt = delete(target)
        for column, value in filters.items():
            stmt = stmt.where(self._condition("delete", target, column, value))
        try:
            with self.session_factory() as session:
                session.execute(stmt)
                session.commit()
        except SQLAlchemyError as exc:
            raise StorageError("delete", table, str(exc)) from exc

    @staticmethod
    def _table(operation: str, name: str) -> Table:
        target = database.Base.metadata.tables.get(name)
        if target is None:
            raise StorageError(operation, name, "unknown table")
        return target

    @staticmethod
    def _check_columns(operation: str, target: Table, row: Mapping[str, Any]) -> None:
        unknown = sorted(set(row) - set(target.c.keys()))
        if unknown:
            raise StorageError(operation, target.name, f"unknown columns {', '.join(unknown)}")

    @staticmethod
    def _condition(operation: str, target: Table, column: str, value: Any):
        if column not in target.c:
            raise StorageError(operation, target.name, f"unknown column {column}")
        col = target.c[column]
        if isinstance(value, (list, tuple, set, frozenset)):
            return col.in_(list(value))
        if value is None:
            return col.is_(None)
        return col == value
