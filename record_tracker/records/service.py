"""Business logic service for the record tracker.

This module provides the RecordService class which is the boundary used by
presentation layers (the CLI here). It handles:
- Record creation with service-level defaults
- Listing, status filtering, search and field filters with whitelisted sorting
- Workflow-checked status updates, field edits and deletion
- CSV export/import through ImportExportService
"""

from dataclasses import fields
from datetime import date
from enum import Enum
from pathlib import Path
from typing import Any

from record_tracker.records.csv_codec import CsvCodec
from record_tracker.records.errors import NotFoundError
from record_tracker.records.models import (
    DEFAULT_SORT,
    JobApplication,
    Record,
    SearchFilter,
    SortSpec,
    Ticket,
)
from record_tracker.records.repository import SqliteRecordStore
from record_tracker.records.store import InMemoryRecordStore, RecordStore
from record_tracker.records.transfer import ImportExportService
from record_tracker.utils.logging import get_logger

logger = get_logger(__name__)

RECORD_KINDS: dict[str, type[Record]] = {
    "job": JobApplication,
    "ticket": Ticket,
}


async def open_store(
    kind: str,
    backend: str = "memory",
    db_path: Path | str | None = None,
) -> RecordStore:
    """Create and initialize a store.

    Args:
        kind: Record kind name (``job`` or ``ticket``).
        backend: ``memory`` or ``sqlite``.
        db_path: Database file, required for the SQLite backend.

    Returns:
        An initialized RecordStore.
    """
    try:
        record_type = RECORD_KINDS[kind]
    except KeyError:
        raise ValueError(f"Unknown record kind: {kind}") from None

    if backend == "memory":
        store: RecordStore = InMemoryRecordStore(record_type)
    elif backend == "sqlite":
        if db_path is None:
            raise ValueError("db_path is required for the sqlite backend")
        store = SqliteRecordStore(record_type, db_path)
    else:
        raise ValueError(f"Unknown store backend: {backend}")

    await store.initialize()
    return store


class RecordService:
    """Service-level operations over one record store.

    Lookups of missing records raise NotFoundError here, while updates and
    deletes report a missing record by returning False.
    """

    def __init__(self, store: RecordStore, csv_strict: bool = True):
        """Initialize the service.

        Args:
            store: The store to operate on.
            csv_strict: Decode policy for CSV imports.
        """
        self.store = store
        self.transfer = ImportExportService(
            store, CsvCodec(store.record_type, strict=csv_strict)
        )

    @property
    def kind(self) -> str:
        return self.store.record_type.__name__

    async def add(self, **values: Any) -> Record:
        """Create a record.

        Job applications without a date are dated today.

        Raises:
            ValidationError: If a required field is blank.
        """
        names = {f.name for f in fields(self.store.record_type)}
        if "date_applied" in names and values.get("date_applied") is None:
            values["date_applied"] = date.today()

        created = await self.store.create(values)
        logger.info("Added %s id=%d", self.kind, created.id)
        return created

    async def list_all(self, sort: SortSpec = DEFAULT_SORT) -> list[Record]:
        return await self.store.find_all(sort)

    async def list_by_status(
        self, status: Enum | str, sort: SortSpec = DEFAULT_SORT
    ) -> list[Record]:
        return await self.store.find_by_status(status, sort)

    async def search(
        self,
        text: str | None,
        status: Enum | str | None = None,
        sort: SortSpec = DEFAULT_SORT,
    ) -> list[Record]:
        return await self.store.search(text, status, sort)

    async def list_matching(
        self, criteria: SearchFilter, sort: SortSpec = DEFAULT_SORT
    ) -> list[Record]:
        """List records meeting every criterion of a ``SearchFilter``."""
        return await self.store.find_matching(criteria, sort)

    async def get(self, record_id: int) -> Record:
        """Get a record by id.

        Raises:
            NotFoundError: If no record has this id.
        """
        record = await self.store.find_by_id(record_id)
        if record is None:
            raise NotFoundError(record_id)
        return record

    async def update_status(self, record_id: int, status: Enum | str) -> bool:
        """Move a record to a new status.

        Returns:
            False if the record does not exist.

        Raises:
            InvalidTransitionError: If the workflow forbids the change.
        """
        updated = await self.store.update_status(record_id, status)
        if updated:
            name = getattr(status, "value", status)
            logger.info("Updated %s id=%d status -> %s", self.kind, record_id, name)
        return updated

    async def edit(self, record_id: int, **changes: Any) -> Record:
        """Edit fields of a record.

        Raises:
            NotFoundError: If no record has this id.
            ValidationError: If the edit leaves a required field blank.
            InvalidTransitionError: If a status change is forbidden.
        """
        edited = await self.store.update(record_id, changes)
        if edited is None:
            raise NotFoundError(record_id)
        logger.info("Edited %s id=%d fields=%s", self.kind, record_id, sorted(changes))
        return edited

    async def delete(self, record_id: int) -> bool:
        deleted = await self.store.delete_by_id(record_id)
        if deleted:
            logger.info("Deleted %s id=%d", self.kind, record_id)
        return deleted

    async def status_counts(self) -> dict[Enum, int]:
        """Return a count for every status, including unused ones."""
        counts = await self.store.count_by_status()
        statuses = self.store.record_type.STATUS_TYPE
        return {status: counts.get(status, 0) for status in statuses}

    async def export_to_path(
        self, path: Path | str, sort: SortSpec = DEFAULT_SORT
    ) -> int:
        return await self.transfer.export_to(Path(path), sort)

    async def import_from_path(self, path: Path | str) -> int:
        return await self.transfer.import_from(Path(path))
