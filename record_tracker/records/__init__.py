"""Record storage, workflow and CSV transfer.

Public API:
- RecordService: Service-level operations used by presentation layers
- RecordStore: Storage contract, with InMemoryRecordStore and SqliteRecordStore
- WorkflowEngine: Status transition rules
- CsvCodec / ImportExportService: CSV text boundary
- JobApplication, Ticket: Record kinds
"""

from record_tracker.records.csv_codec import CsvCodec, CsvRow
from record_tracker.records.errors import (
    InvalidTransitionError,
    NotFoundError,
    ParseError,
    RecordIOError,
    RecordStoreError,
    StorageError,
    ValidationError,
)
from record_tracker.records.identity import IdentityAllocator
from record_tracker.records.models import (
    DEFAULT_SORT,
    ApplicationSortField,
    ApplicationStatus,
    JobApplication,
    Priority,
    Record,
    SortSpec,
    Ticket,
    TicketSortField,
    TicketStatus,
)
from record_tracker.records.repository import SqliteRecordStore
from record_tracker.records.service import RecordService, open_store
from record_tracker.records.store import InMemoryRecordStore, RecordStore
from record_tracker.records.transfer import (
    BufferTarget,
    FileTarget,
    ImportExportService,
)
from record_tracker.records.workflow import (
    JOB_WORKFLOW,
    TICKET_WORKFLOW,
    WorkflowEngine,
    all_of,
    permissive,
    requires_prior,
)

__all__ = [
    "RecordService",
    "open_store",
    "RecordStore",
    "InMemoryRecordStore",
    "SqliteRecordStore",
    "IdentityAllocator",
    "WorkflowEngine",
    "JOB_WORKFLOW",
    "TICKET_WORKFLOW",
    "all_of",
    "permissive",
    "requires_prior",
    "CsvCodec",
    "CsvRow",
    "ImportExportService",
    "FileTarget",
    "BufferTarget",
    "Record",
    "JobApplication",
    "Ticket",
    "ApplicationStatus",
    "TicketStatus",
    "Priority",
    "ApplicationSortField",
    "TicketSortField",
    "SortSpec",
    "DEFAULT_SORT",
    "RecordStoreError",
    "ValidationError",
    "NotFoundError",
    "InvalidTransitionError",
    "ParseError",
    "RecordIOError",
    "StorageError",
]
