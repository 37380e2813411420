"""Record store contract and the in-memory backend.

``RecordStore`` is the capability interface every backend implements. It is
generic over the record kind and owns validation, default status and
workflow checks, so the in-memory and SQLite backends behave identically.
"""

import asyncio
from abc import ABC, abstractmethod
from collections import Counter
from collections.abc import Iterable, Mapping
from dataclasses import fields, replace
from enum import Enum
from typing import Any, Generic, TypeVar

from record_tracker.records.errors import ValidationError
from record_tracker.records.identity import IdentityAllocator
from record_tracker.records.models import (
    DEFAULT_SORT,
    Record,
    SearchFilter,
    SortSpec,
    coerce_date,
    utc_now,
)
from record_tracker.records.workflow import WorkflowEngine, default_workflow
from record_tracker.utils.logging import get_logger

logger = get_logger(__name__)

R = TypeVar("R", bound=Record)

RecordInput = Record | Mapping[str, Any]


class RecordStore(ABC, Generic[R]):
    """Storage for one record kind.

    Every failing operation leaves the stored records unchanged.
    """

    def __init__(self, record_type: type[R], workflow: WorkflowEngine | None = None):
        self.record_type = record_type
        self.workflow = workflow or default_workflow(record_type)
        if self.workflow.status_type is not record_type.STATUS_TYPE:
            raise ValueError(
                f"Workflow for {self.workflow.status_type.__name__} cannot drive "
                f"{record_type.__name__} records"
            )

    @abstractmethod
    async def create(self, record: RecordInput) -> R:
        """Validate and store a new record, assigning it a fresh id.

        Raises:
            ValidationError: If a required field is blank or an enum is invalid.
        """

    @abstractmethod
    async def find_all(self, sort: SortSpec = DEFAULT_SORT) -> list[R]:
        """Return every record in the requested order."""

    @abstractmethod
    async def find_by_id(self, record_id: int) -> R | None:
        """Return the record with ``record_id``, or None."""

    @abstractmethod
    async def find_by_status(
        self, status: Enum | str, sort: SortSpec = DEFAULT_SORT
    ) -> list[R]:
        """Return the records currently in ``status``."""

    @abstractmethod
    async def search(
        self,
        text: str | None,
        status: Enum | str | None = None,
        sort: SortSpec = DEFAULT_SORT,
    ) -> list[R]:
        """Case-insensitive substring search over the kind's search fields.

        Blank ``text`` applies no text filter. A status, when given, must
        also match.
        """

    @abstractmethod
    async def find_matching(
        self, criteria: SearchFilter, sort: SortSpec = DEFAULT_SORT
    ) -> list[R]:
        """Return the records meeting every criterion of ``criteria``.

        Substring criteria are case-insensitive. The date range is inclusive
        and excludes records whose date-range field is unset.

        Raises:
            ValidationError: If a criterion names a field that cannot be
                filtered on, or holds an invalid status or date.
        """

    @abstractmethod
    async def update_status(self, record_id: int, new_status: Enum | str) -> bool:
        """Move a record to ``new_status``.

        Returns:
            False if the record does not exist, True otherwise.

        Raises:
            InvalidTransitionError: If the workflow forbids the transition.
        """

    @abstractmethod
    async def update(self, record_id: int, changes: Mapping[str, Any]) -> R | None:
        """Apply field edits to a record; None if it does not exist.

        Raises:
            ValidationError: If the edited record would be invalid.
            InvalidTransitionError: If ``changes`` holds a forbidden status.
        """

    @abstractmethod
    async def delete_by_id(self, record_id: int) -> bool:
        """Delete a record; False if it did not exist."""

    @abstractmethod
    async def replace_all(self, records: Iterable[RecordInput]) -> list[R]:
        """Discard every record and store ``records`` with fresh ids.

        All inputs are validated before anything is discarded.

        Raises:
            ValidationError: If any input record is invalid.
        """

    @abstractmethod
    async def count_by_status(self) -> dict[Enum, int]:
        """Return record counts for the statuses currently in use."""

    async def count(self) -> int:
        """Return the number of stored records."""
        return sum((await self.count_by_status()).values())

    async def initialize(self) -> None:
        """Prepare backend resources before first use."""

    async def close(self) -> None:
        """Release backend resources."""

    def build(self, record: RecordInput) -> R:
        """Turn a record or a field mapping into an (unvalidated) record."""
        if isinstance(record, self.record_type):
            return record
        if isinstance(record, Record):
            raise ValidationError(
                "record",
                f"Expected {self.record_type.__name__}, got {type(record).__name__}.",
            )
        known = {f.name for f in fields(self.record_type)}
        for name in record:
            if name not in known:
                raise ValidationError(name, f"Unknown field: {name}")
        required = self.record_type.REQUIRED_FIELDS
        values: dict[str, Any] = {name: None for name in required}
        values.update(record)
        values.pop("id", None)
        return self.record_type(**values)

    def prepare_new(self, record: RecordInput, require_status: bool = False) -> R:
        """Validate a record about to be stored and fill its defaults."""
        prepared = self.build(record).normalized(require_status=require_status)
        if prepared.status is None:
            prepared = replace(prepared, status=self.workflow.initial)
        return prepared.stamped(utc_now())

    def resolve_status(self, status: Enum | str) -> Enum:
        """Resolve a status argument against the workflow's enum."""
        if status is None:
            raise ValidationError("status", "Status is required.")
        try:
            return self.workflow.parse_status(status)
        except ValueError as e:
            raise ValidationError("status", str(e)) from None

    def resolve_filter(self, criteria: SearchFilter) -> SearchFilter:
        """Validate ``criteria`` and normalize it for matching.

        Blank substrings are dropped and the status and date bounds are
        parsed.
        """
        contains: dict[str, str] = {}
        for name, text in (criteria.contains or {}).items():
            if name not in self.record_type.FILTER_FIELDS:
                raise ValidationError(name, f"Cannot filter on field: {name}")
            needle = (text or "").strip()
            if needle:
                contains[name] = needle

        bounds: dict[str, Any] = {}
        for name in ("date_from", "date_to"):
            value = getattr(criteria, name)
            try:
                bounds[name] = coerce_date(value)
            except ValueError:
                raise ValidationError(name, f"Invalid date: {value}") from None

        status = criteria.status
        return SearchFilter(
            contains=contains,
            status=self.resolve_status(status) if status is not None else None,
            **bounds,
        )

    def with_status(self, existing: R, new_status: Enum) -> R:
        """Return ``existing`` moved to ``new_status`` after a workflow check."""
        self.workflow.check(existing.status, new_status, existing.id)
        return replace(existing, status=new_status).touched(utc_now())

    def with_changes(self, existing: R, changes: Mapping[str, Any]) -> R:
        """Return ``existing`` with field edits applied and re-validated."""
        editable = {f.name for f in fields(self.record_type)} - {"id"}
        for name in changes:
            if name not in editable:
                raise ValidationError(name, f"Field cannot be edited: {name}")

        values = dict(changes)
        new_status = values.pop("status", None)
        edited = replace(existing, **values).normalized(require_status=True)
        if new_status is not None:
            target = self.resolve_status(new_status)
            self.workflow.check(existing.status, target, existing.id)
            edited = replace(edited, status=target)
        return edited.touched(utc_now())

    def order(self, records: Iterable[R], sort: SortSpec) -> list[R]:
        """Order records like the SQL backend: nulls lowest, ties by id."""
        column = self.record_type.sort_column(sort.field)

        def key(record: R) -> tuple:
            value = getattr(record, column)
            if isinstance(value, Enum):
                value = value.value
            if value is None:
                return (False, 0, record.id)
            return (True, value, record.id)

        return sorted(records, key=key, reverse=not sort.ascending)


class InMemoryRecordStore(RecordStore[R]):
    """Dictionary-backed store guarded by a single lock.

    Records handed out are copies, so callers cannot change stored state
    without going through the store.
    """

    def __init__(
        self,
        record_type: type[R],
        workflow: WorkflowEngine | None = None,
        records: Iterable[R] | None = None,
    ):
        """Initialize the store.

        Args:
            record_type: Record kind held by the store.
            workflow: Status workflow; defaults to the kind's stock workflow.
            records: Previously persisted records to restore. Their ids are
                kept and observed by the allocator.
        """
        super().__init__(record_type, workflow)
        self._records: dict[int, R] = {}
        self._ids = IdentityAllocator()
        self._lock = asyncio.Lock()

        for record in records or ():
            restored = self.build(record).normalized(require_status=True)
            if restored.id <= 0:
                raise ValidationError("id", "Restored records must carry an id.")
            if restored.id in self._records:
                raise ValidationError("id", f"Duplicate id: {restored.id}")
            self._records[restored.id] = restored.stamped(utc_now())
            self._ids.observe(restored.id)

    async def create(self, record: RecordInput) -> R:
        prepared = self.prepare_new(record)
        async with self._lock:
            stored = replace(prepared, id=self._ids.next())
            self._records[stored.id] = stored
        logger.debug("Created %s id=%d", self.record_type.__name__, stored.id)
        return replace(stored)

    async def find_all(self, sort: SortSpec = DEFAULT_SORT) -> list[R]:
        async with self._lock:
            snapshot = list(self._records.values())
        return [replace(r) for r in self.order(snapshot, sort)]

    async def find_by_id(self, record_id: int) -> R | None:
        async with self._lock:
            record = self._records.get(record_id)
        return replace(record) if record is not None else None

    async def find_by_status(
        self, status: Enum | str, sort: SortSpec = DEFAULT_SORT
    ) -> list[R]:
        return await self.search(None, status, sort)

    async def search(
        self,
        text: str | None,
        status: Enum | str | None = None,
        sort: SortSpec = DEFAULT_SORT,
    ) -> list[R]:
        wanted = self.resolve_status(status) if status is not None else None
        needle = (text or "").strip()
        async with self._lock:
            snapshot = list(self._records.values())
        matches = [
            r
            for r in snapshot
            if (wanted is None or r.status == wanted)
            and (not needle or r.matches(needle))
        ]
        return [replace(r) for r in self.order(matches, sort)]

    async def find_matching(
        self, criteria: SearchFilter, sort: SortSpec = DEFAULT_SORT
    ) -> list[R]:
        wanted = self.resolve_filter(criteria)
        async with self._lock:
            snapshot = list(self._records.values())
        matches = [r for r in snapshot if r.satisfies(wanted)]
        return [replace(r) for r in self.order(matches, sort)]

    async def update_status(self, record_id: int, new_status: Enum | str) -> bool:
        target = self.resolve_status(new_status)
        async with self._lock:
            existing = self._records.get(record_id)
            if existing is None:
                return False
            self._records[record_id] = self.with_status(existing, target)
        return True

    async def update(self, record_id: int, changes: Mapping[str, Any]) -> R | None:
        async with self._lock:
            existing = self._records.get(record_id)
            if existing is None:
                return None
            edited = self.with_changes(existing, changes)
            self._records[record_id] = edited
        return replace(edited)

    async def delete_by_id(self, record_id: int) -> bool:
        async with self._lock:
            return self._records.pop(record_id, None) is not None

    async def replace_all(self, records: Iterable[RecordInput]) -> list[R]:
        prepared = [self.prepare_new(r, require_status=True) for r in records]
        async with self._lock:
            stored = [replace(r, id=self._ids.next()) for r in prepared]
            self._records = {r.id: r for r in stored}
        logger.debug(
            "Replaced all %s records with %d new ones",
            self.record_type.__name__,
            len(stored),
        )
        return [replace(r) for r in stored]

    async def count_by_status(self) -> dict[Enum, int]:
        async with self._lock:
            return dict(Counter(r.status for r in self._records.values()))
