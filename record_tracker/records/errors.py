"""Error types raised by the record store and its collaborators.

Callers only ever see these types; backend faults (sqlite3, OSError) are
wrapped before they cross the store or transfer boundary.
"""


class RecordStoreError(Exception):
    """Base exception for record store failures."""

    def __init__(self, message: str, original_error: Exception | None = None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error


class ValidationError(RecordStoreError):
    """A required field is blank or an enum-typed field is missing/invalid."""

    def __init__(self, field: str, message: str | None = None):
        super().__init__(message or f"{field} is required.")
        self.field = field


class NotFoundError(RecordStoreError):
    """An operation referenced an id absent from the store."""

    def __init__(self, record_id: int):
        super().__init__(f"Record not found: {record_id}")
        self.record_id = record_id


class InvalidTransitionError(RecordStoreError):
    """A status change is forbidden by the workflow policy."""

    def __init__(self, record_id: int | None, current: object, target: object):
        current_name = getattr(current, "value", current)
        target_name = getattr(target, "value", target)
        subject = f"Record {record_id}" if record_id is not None else "Record"
        super().__init__(
            f"{subject} cannot move from {current_name} to {target_name}."
        )
        self.record_id = record_id
        self.current = current
        self.target = target


class ParseError(RecordStoreError):
    """CSV content could not be decoded into records."""

    def __init__(
        self,
        line_number: int,
        content: str,
        reason: str,
        original_error: Exception | None = None,
    ):
        super().__init__(
            f"Invalid CSV at line {line_number} ({reason}): {content}",
            original_error,
        )
        self.line_number = line_number
        self.content = content
        self.reason = reason


class RecordIOError(RecordStoreError):
    """A sink, source or storage resource was unavailable."""


class StorageError(RecordIOError):
    """The persistent storage engine reported a fault."""
