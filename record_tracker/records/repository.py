"""SQLite backend for the record store.

This module provides async SQLite storage (aiosqlite) for job applications
and tickets behind the ``RecordStore`` contract. Identities come from
``AUTOINCREMENT`` columns, so the engine itself is the allocator and ids are
never reused, even after a bulk replace.
"""

import asyncio
import sqlite3
from collections.abc import AsyncGenerator, Iterable, Mapping
from contextlib import asynccontextmanager
from dataclasses import replace
from enum import Enum
from pathlib import Path
from typing import Any

import aiosqlite

from record_tracker.records.errors import StorageError
from record_tracker.records.models import DEFAULT_SORT, SearchFilter, SortSpec
from record_tracker.records.store import R, RecordInput, RecordStore
from record_tracker.records.workflow import WorkflowEngine
from record_tracker.utils.logging import get_logger

logger = get_logger(__name__)

# SQL schema per table
CREATE_TABLE_SQL = {
    "applications": """
CREATE TABLE IF NOT EXISTS applications (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    company TEXT NOT NULL,
    position TEXT NOT NULL,
    location TEXT NOT NULL,
    status TEXT NOT NULL,
    date_applied TEXT
)
""",
    "tickets": """
CREATE TABLE IF NOT EXISTS tickets (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    title TEXT NOT NULL,
    description TEXT NOT NULL,
    priority TEXT NOT NULL,
    status TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
)
""",
}

CREATE_INDEX_SQL = {
    "applications": """
CREATE INDEX IF NOT EXISTS idx_applications_status ON applications(status);
""",
    "tickets": """
CREATE INDEX IF NOT EXISTS idx_tickets_status ON tickets(status);
CREATE INDEX IF NOT EXISTS idx_tickets_created ON tickets(created_at);
""",
}


def _casefold(value: Any) -> Any:
    return value.casefold() if isinstance(value, str) else value


def _like_pattern(text: str) -> str:
    escaped = text.casefold().replace("\\", "\\\\")
    escaped = escaped.replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class SqliteRecordStore(RecordStore[R]):
    """Async SQLite store for one record kind.

    Table and column names are taken from the record kind's metadata only;
    every value travels as a statement parameter. ``sqlite3`` errors are
    wrapped in ``StorageError``.
    """

    def __init__(
        self,
        record_type: type[R],
        db_path: Path | str,
        workflow: WorkflowEngine | None = None,
    ):
        """Initialize the store.

        Args:
            record_type: Record kind held by the store.
            db_path: Path to the SQLite database file.
            workflow: Status workflow; defaults to the kind's stock workflow.
        """
        super().__init__(record_type, workflow)
        self.db_path = Path(db_path)
        self.table = record_type.TABLE_NAME
        self.columns = record_type.db_columns()
        self._select = f"SELECT id, {', '.join(self.columns)} FROM {self.table}"
        self._connection: aiosqlite.Connection | None = None
        self._lock = asyncio.Lock()

    @asynccontextmanager
    async def _get_connection(self) -> AsyncGenerator[aiosqlite.Connection, None]:
        """Get the database connection, opening it on first use."""
        if self._connection is None:
            self._connection = await aiosqlite.connect(self.db_path)
            self._connection.row_factory = aiosqlite.Row
            # SQLite's lower() only folds ASCII.
            await self._connection.create_function(
                "casefold", 1, _casefold, deterministic=True
            )
        yield self._connection

    @asynccontextmanager
    async def _session(
        self, action: str
    ) -> AsyncGenerator[aiosqlite.Connection, None]:
        """Serialize access and translate engine errors.

        Args:
            action: What the caller is doing, for the error message.
        """
        async with self._lock:
            try:
                async with self._get_connection() as conn:
                    yield conn
            except sqlite3.Error as e:
                logger.error("SQLite error while trying to %s: %s", action, e)
                raise StorageError(f"Failed to {action}.", e) from e

    async def initialize(self) -> None:
        """Initialize the database, creating tables if needed."""
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(
                f"Failed to create database directory: {self.db_path}", e
            ) from e

        async with self._session("initialize database") as conn:
            await conn.execute(CREATE_TABLE_SQL[self.table])
            await conn.executescript(CREATE_INDEX_SQL[self.table])
            await conn.commit()
        logger.debug("Initialized %s table at %s", self.table, self.db_path)

    async def close(self) -> None:
        """Close the database connection."""
        if self._connection is not None:
            await self._connection.close()
            self._connection = None

    def _values(self, record: R) -> tuple:
        data = record.to_dict()
        return tuple(data[column] for column in self.columns)

    def _row_to_record(self, row: aiosqlite.Row) -> R:
        try:
            return self.record_type.from_dict(dict(row))
        except (KeyError, ValueError) as e:
            raise StorageError(
                f"Corrupt {self.table} row id={row['id']}: {e}", e
            ) from e

    def _order_by(self, sort: SortSpec) -> str:
        column = self.record_type.sort_column(sort.field)
        direction = "ASC" if sort.ascending else "DESC"
        return f" ORDER BY {column} {direction}, id {direction}"

    async def _query(self, where: str, params: list[Any], sort: SortSpec) -> list[R]:
        sql = self._select + where + self._order_by(sort)
        async with self._session(f"query {self.table}") as conn:
            cursor = await conn.execute(sql, params)
            rows = await cursor.fetchall()
        return [self._row_to_record(row) for row in rows]

    async def _fetch(self, conn: aiosqlite.Connection, record_id: int) -> R | None:
        cursor = await conn.execute(f"{self._select} WHERE id = ?", (record_id,))
        row = await cursor.fetchone()
        return self._row_to_record(row) if row is not None else None

    async def _write(self, conn: aiosqlite.Connection, record: R) -> None:
        assignments = ", ".join(f"{column} = ?" for column in self.columns)
        await conn.execute(
            f"UPDATE {self.table} SET {assignments} WHERE id = ?",
            (*self._values(record), record.id),
        )

    async def _insert(self, conn: aiosqlite.Connection, record: R) -> R:
        placeholders = ", ".join("?" for _ in self.columns)
        cursor = await conn.execute(
            f"INSERT INTO {self.table} ({', '.join(self.columns)}) "
            f"VALUES ({placeholders})",
            self._values(record),
        )
        return replace(record, id=cursor.lastrowid)

    async def create(self, record: RecordInput) -> R:
        prepared = self.prepare_new(record)
        async with self._session(f"insert into {self.table}") as conn:
            try:
                stored = await self._insert(conn, prepared)
                await conn.commit()
            except BaseException:
                await conn.rollback()
                raise
        logger.debug("Created %s id=%d", self.record_type.__name__, stored.id)
        return stored

    async def find_all(self, sort: SortSpec = DEFAULT_SORT) -> list[R]:
        return await self._query("", [], sort)

    async def find_by_id(self, record_id: int) -> R | None:
        async with self._session(f"read {self.table}") as conn:
            return await self._fetch(conn, record_id)

    async def find_by_status(
        self, status: Enum | str, sort: SortSpec = DEFAULT_SORT
    ) -> list[R]:
        wanted = self.resolve_status(status)
        return await self._query(" WHERE status = ?", [wanted.value], sort)

    async def search(
        self,
        text: str | None,
        status: Enum | str | None = None,
        sort: SortSpec = DEFAULT_SORT,
    ) -> list[R]:
        clauses: list[str] = []
        params: list[Any] = []

        needle = (text or "").strip()
        if needle:
            matches = [
                f"casefold({name}) LIKE ? ESCAPE '\\'"
                for name in self.record_type.SEARCH_FIELDS
            ]
            clauses.append(f"({' OR '.join(matches)})")
            params.extend(_like_pattern(needle) for _ in matches)

        if status is not None:
            clauses.append("status = ?")
            params.append(self.resolve_status(status).value)

        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        return await self._query(where, params, sort)

    async def find_matching(
        self, criteria: SearchFilter, sort: SortSpec = DEFAULT_SORT
    ) -> list[R]:
        wanted = self.resolve_filter(criteria)
        clauses: list[str] = []
        params: list[Any] = []

        # Field names were checked against FILTER_FIELDS.
        for name, needle in (wanted.contains or {}).items():
            clauses.append(f"casefold({name}) LIKE ? ESCAPE '\\'")
            params.append(_like_pattern(needle))

        if wanted.status is not None:
            clauses.append("status = ?")
            params.append(wanted.status.value)

        # date() reduces timestamps to their UTC day; NULL never matches.
        day = f"date({self.record_type.DATE_RANGE_FIELD})"
        if wanted.date_from is not None:
            clauses.append(f"{day} >= ?")
            params.append(wanted.date_from.isoformat())
        if wanted.date_to is not None:
            clauses.append(f"{day} <= ?")
            params.append(wanted.date_to.isoformat())

        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        return await self._query(where, params, sort)

    async def update_status(self, record_id: int, new_status: Enum | str) -> bool:
        target = self.resolve_status(new_status)
        async with self._session(f"update {self.table} status") as conn:
            existing = await self._fetch(conn, record_id)
            if existing is None:
                return False
            updated = self.with_status(existing, target)
            try:
                await self._write(conn, updated)
                await conn.commit()
            except BaseException:
                await conn.rollback()
                raise
        return True

    async def update(self, record_id: int, changes: Mapping[str, Any]) -> R | None:
        async with self._session(f"update {self.table}") as conn:
            existing = await self._fetch(conn, record_id)
            if existing is None:
                return None
            edited = self.with_changes(existing, changes)
            try:
                await self._write(conn, edited)
                await conn.commit()
            except BaseException:
                await conn.rollback()
                raise
        return edited

    async def delete_by_id(self, record_id: int) -> bool:
        async with self._session(f"delete from {self.table}") as conn:
            cursor = await conn.execute(
                f"DELETE FROM {self.table} WHERE id = ?", (record_id,)
            )
            await conn.commit()
            return cursor.rowcount > 0

    async def replace_all(self, records: Iterable[RecordInput]) -> list[R]:
        prepared = [self.prepare_new(r, require_status=True) for r in records]
        async with self._session(f"replace {self.table}") as conn:
            # Delete and inserts share one transaction.
            try:
                await conn.execute(f"DELETE FROM {self.table}")
                stored = [await self._insert(conn, record) for record in prepared]
                await conn.commit()
            except BaseException:
                await conn.rollback()
                raise
        logger.debug("Replaced %s with %d rows", self.table, len(stored))
        return stored

    async def count_by_status(self) -> dict[Enum, int]:
        async with self._session(f"count {self.table}") as conn:
            cursor = await conn.execute(
                f"SELECT status, COUNT(*) AS count FROM {self.table} GROUP BY status"
            )
            rows = await cursor.fetchall()

        status_type = self.record_type.STATUS_TYPE
        counts: dict[Enum, int] = {}
        for row in rows:
            try:
                status = status_type(row["status"])
            except ValueError as e:
                raise StorageError(
                    f"Unknown status in {self.table}: {row['status']}", e
                ) from e
            counts[status] = int(row["count"])
        return counts
