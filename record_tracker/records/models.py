"""Data models for the record store.

Two record kinds share one shape: an integer identity, a fixed set of
required text fields, a status drawn from a closed enum and a timestamp.
Each kind carries the metadata the store, the SQLite backend and the CSV
codec need (columns, search fields, sort whitelist) as class attributes.
"""

from collections.abc import Mapping
from dataclasses import dataclass, replace
from datetime import UTC, date, datetime
from enum import Enum
from typing import Any, ClassVar

from record_tracker.records.errors import ValidationError


class ApplicationStatus(str, Enum):
    """Status of a job application."""

    APPLIED = "APPLIED"
    INTERVIEW = "INTERVIEW"
    OFFER = "OFFER"
    REJECTED = "REJECTED"


class TicketStatus(str, Enum):
    """Status of a helpdesk ticket."""

    NEW = "NEW"
    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    RESOLVED = "RESOLVED"
    CLOSED = "CLOSED"


class Priority(str, Enum):
    """Priority of a helpdesk ticket."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class ApplicationSortField(str, Enum):
    """Fields a job application listing may be sorted by."""

    ID = "id"
    COMPANY = "company"
    POSITION = "position"
    LOCATION = "location"
    STATUS = "status"
    DATE_APPLIED = "date_applied"


class TicketSortField(str, Enum):
    """Fields a ticket listing may be sorted by."""

    ID = "id"
    TITLE = "title"
    DESCRIPTION = "description"
    PRIORITY = "priority"
    STATUS = "status"
    CREATED_AT = "created_at"
    UPDATED_AT = "updated_at"


@dataclass(frozen=True)
class SortSpec:
    """Requested ordering for a listing.

    Attributes:
        field: A member (or value) of the record kind's sort-field enum.
        ascending: Sort direction; listings default to newest first.
    """

    field: str = "id"
    ascending: bool = False


DEFAULT_SORT = SortSpec()


def field_label(name: str) -> str:
    """Human-readable label for a field name (``date_applied`` -> ``Date applied``)."""
    return name.replace("_", " ").capitalize()


def parse_enum(enum_type: type[Enum], value: Any, name: str) -> Enum:
    """Resolve ``value`` to a member of ``enum_type`` by canonical name.

    Raises:
        ValueError: If the value names no member.
    """
    if isinstance(value, enum_type):
        return value
    text = str(value).strip().upper()
    try:
        return enum_type[text]
    except KeyError:
        raise ValueError(f"Invalid {name.replace('_', ' ')}: {value}") from None


def _parse_date(value: str | date | None) -> date | None:
    if value is None or isinstance(value, date):
        return value
    text = value.strip()
    if not text:
        return None
    return date.fromisoformat(text)


def _parse_datetime(value: str | datetime | None) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


def coerce_date(value: Any) -> date | None:
    """Turn a date, a datetime or an ISO ``YYYY-MM-DD`` string into a date.

    Blank strings become None.

    Raises:
        ValueError: If the value is not a date or an ISO date string.
    """
    if isinstance(value, datetime):
        return value.date()
    if value is None or isinstance(value, date | str):
        return _parse_date(value)
    raise ValueError(f"not a date: {value!r}")


def coerce_datetime(value: Any) -> datetime | None:
    """Turn a datetime or an ISO string into a timezone-aware datetime.

    Naive values are taken to be UTC. Blank strings become None.

    Raises:
        ValueError: If the value is not a datetime or an ISO string.
    """
    if isinstance(value, str):
        value = value.strip() or None
    if value is None:
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if not isinstance(value, datetime):
        raise ValueError(f"not a datetime: {value!r}")
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value


@dataclass(frozen=True)
class SearchFilter:
    """Field-level criteria for a listing. Every criterion is optional.

    Attributes:
        contains: Field name to a case-insensitive substring that the field
            must contain. Only the kind's ``FILTER_FIELDS`` are accepted;
            blank substrings are ignored.
        status: Only records currently in this status.
        date_from: First day (inclusive) of the kind's date-range field.
        date_to: Last day (inclusive) of the kind's date-range field.
    """

    contains: Mapping[str, str] | None = None
    status: Enum | str | None = None
    date_from: date | None = None
    date_to: date | None = None

    @property
    def has_date_range(self) -> bool:
        return self.date_from is not None or self.date_to is not None


class Record:
    """Behaviour shared by every record kind.

    Subclasses are dataclasses that declare their own fields plus the
    class-level metadata below. Table and column names are only ever taken
    from this metadata, never from caller input.
    """

    TABLE_NAME: ClassVar[str]
    CSV_COLUMNS: ClassVar[tuple[str, ...]]
    REQUIRED_FIELDS: ClassVar[tuple[str, ...]]
    ENUM_FIELDS: ClassVar[dict[str, type[Enum]]]
    SEARCH_FIELDS: ClassVar[tuple[str, ...]]
    SORT_FIELDS: ClassVar[type[Enum]]
    SORT_COLUMNS: ClassVar[dict[Enum, str]]
    STATUS_TYPE: ClassVar[type[Enum]]
    FILTER_FIELDS: ClassVar[tuple[str, ...]]
    DATE_RANGE_FIELD: ClassVar[str]
    DATE_FIELDS: ClassVar[tuple[str, ...]] = ()
    DATETIME_FIELDS: ClassVar[tuple[str, ...]] = ()

    id: int
    status: Enum | None

    def normalized(self, require_status: bool = False) -> "Record":
        """Return a copy with trimmed text, resolved enums and parsed dates.

        A missing status is allowed unless ``require_status`` is set; the
        store fills it from the workflow on create. Date fields accept ISO
        strings.

        Raises:
            ValidationError: Naming the first offending field.
        """
        changes: dict[str, Any] = {}
        for name in self.REQUIRED_FIELDS:
            value = getattr(self, name)
            if value is None or not str(value).strip():
                raise ValidationError(name, f"{field_label(name)} is required.")
            changes[name] = str(value).strip()

        for name, enum_type in self.ENUM_FIELDS.items():
            value = getattr(self, name)
            if value is None:
                if name == "status" and not require_status:
                    continue
                raise ValidationError(name, f"{field_label(name)} is required.")
            try:
                changes[name] = parse_enum(enum_type, value, name)
            except ValueError as e:
                raise ValidationError(name, str(e)) from None

        coercers = {name: coerce_date for name in self.DATE_FIELDS}
        coercers.update({name: coerce_datetime for name in self.DATETIME_FIELDS})
        for name, coerce in coercers.items():
            value = getattr(self, name)
            try:
                changes[name] = coerce(value)
            except ValueError:
                raise ValidationError(
                    name, f"Invalid {field_label(name).lower()}: {value}"
                ) from None

        return replace(self, **changes)

    def stamped(self, now: datetime) -> "Record":
        """Return a copy with creation-time defaults filled in."""
        return self

    def touched(self, now: datetime) -> "Record":
        """Return a copy reflecting an edit made at ``now``."""
        return self

    def matches(self, needle: str) -> bool:
        """Case-insensitive substring match over the search fields."""
        needle = needle.casefold()
        return any(
            needle in str(getattr(self, name) or "").casefold()
            for name in self.SEARCH_FIELDS
        )

    def range_day(self) -> date | None:
        """The UTC day of the kind's date-range field, if set."""
        value = getattr(self, self.DATE_RANGE_FIELD)
        if isinstance(value, datetime):
            return value.astimezone(UTC).date()
        return value

    def satisfies(self, criteria: SearchFilter) -> bool:
        """Whether the record meets every criterion of a resolved filter."""
        if criteria.status is not None and self.status != criteria.status:
            return False
        for name, needle in (criteria.contains or {}).items():
            if needle.casefold() not in str(getattr(self, name) or "").casefold():
                return False
        if not criteria.has_date_range:
            return True

        day = self.range_day()
        if day is None:
            return False
        if criteria.date_from is not None and day < criteria.date_from:
            return False
        return criteria.date_to is None or day <= criteria.date_to

    @classmethod
    def sort_column(cls, field: Any) -> str:
        """Map a sort field to its column through the whitelist.

        Raises:
            ValidationError: If the field is not sortable for this kind.
        """
        try:
            key = cls.SORT_FIELDS(field)
        except ValueError:
            raise ValidationError("sort", f"Unsupported sort field: {field}") from None
        return cls.SORT_COLUMNS[key]

    @classmethod
    def db_columns(cls) -> tuple[str, ...]:
        """Columns stored by the SQLite backend, excluding the identity."""
        raise NotImplementedError

    def to_row(self) -> dict[str, str]:
        """Serialize the record to a CSV row keyed by header column."""
        raise NotImplementedError

    @classmethod
    def from_row(cls, row: dict[str, str]) -> "Record":
        """Deserialize a CSV row; raises ValueError on bad enum or date values."""
        raise NotImplementedError

    def to_dict(self) -> dict:
        """Serialize the record to a dictionary of storable values."""
        raise NotImplementedError

    @classmethod
    def from_dict(cls, data: dict) -> "Record":
        """Deserialize a record from a dictionary produced by ``to_dict``."""
        raise NotImplementedError


@dataclass
class JobApplication(Record):
    """A job application.

    Attributes:
        company: Name of the company.
        position: Title of the position applied for.
        location: Where the job is based.
        status: Current status; the workflow's initial state when omitted.
        date_applied: Day the application was sent (optional).
        id: Identity assigned by the store; 0 until persisted.
    """

    TABLE_NAME: ClassVar[str] = "applications"
    CSV_COLUMNS: ClassVar[tuple[str, ...]] = (
        "id",
        "company",
        "position",
        "location",
        "status",
        "appliedDate",
    )
    REQUIRED_FIELDS: ClassVar[tuple[str, ...]] = ("company", "position", "location")
    ENUM_FIELDS: ClassVar[dict[str, type[Enum]]] = {"status": ApplicationStatus}
    SEARCH_FIELDS: ClassVar[tuple[str, ...]] = ("company", "position")
    SORT_FIELDS: ClassVar[type[Enum]] = ApplicationSortField
    SORT_COLUMNS: ClassVar[dict[Enum, str]] = {
        ApplicationSortField.ID: "id",
        ApplicationSortField.COMPANY: "company",
        ApplicationSortField.POSITION: "position",
        ApplicationSortField.LOCATION: "location",
        ApplicationSortField.STATUS: "status",
        ApplicationSortField.DATE_APPLIED: "date_applied",
    }
    STATUS_TYPE: ClassVar[type[Enum]] = ApplicationStatus
    FILTER_FIELDS: ClassVar[tuple[str, ...]] = ("company", "position", "location")
    DATE_RANGE_FIELD: ClassVar[str] = "date_applied"
    DATE_FIELDS: ClassVar[tuple[str, ...]] = ("date_applied",)

    company: str
    position: str
    location: str
    status: ApplicationStatus | None = None
    date_applied: date | None = None
    id: int = 0

    @classmethod
    def db_columns(cls) -> tuple[str, ...]:
        return ("company", "position", "location", "status", "date_applied")

    def to_row(self) -> dict[str, str]:
        return {
            "id": str(self.id),
            "company": self.company,
            "position": self.position,
            "location": self.location,
            "status": self.status.value if self.status else "",
            "appliedDate": self.date_applied.isoformat() if self.date_applied else "",
        }

    @classmethod
    def from_row(cls, row: dict[str, str]) -> "JobApplication":
        try:
            applied = _parse_date(row["appliedDate"])
        except ValueError:
            raise ValueError(f"Invalid date: {row['appliedDate']}") from None
        return cls(
            company=row["company"],
            position=row["position"],
            location=row["location"],
            status=parse_enum(ApplicationStatus, row["status"], "status"),
            date_applied=applied,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company": self.company,
            "position": self.position,
            "location": self.location,
            "status": self.status.value if self.status else None,
            "date_applied": self.date_applied.isoformat()
            if self.date_applied
            else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "JobApplication":
        return cls(
            id=int(data["id"]),
            company=data["company"],
            position=data["position"],
            location=data["location"],
            status=ApplicationStatus(data["status"]),
            date_applied=_parse_date(data.get("date_applied")),
        )


@dataclass
class Ticket(Record):
    """A helpdesk ticket.

    Attributes:
        title: Short summary of the issue.
        description: Full description of the issue.
        priority: Triage priority.
        status: Current status; the workflow's initial state when omitted.
        created_at: When the ticket was created.
        updated_at: When the ticket was last edited (advisory).
        id: Identity assigned by the store; 0 until persisted.
    """

    TABLE_NAME: ClassVar[str] = "tickets"
    CSV_COLUMNS: ClassVar[tuple[str, ...]] = (
        "id",
        "title",
        "description",
        "priority",
        "status",
    )
    REQUIRED_FIELDS: ClassVar[tuple[str, ...]] = ("title", "description")
    ENUM_FIELDS: ClassVar[dict[str, type[Enum]]] = {
        "priority": Priority,
        "status": TicketStatus,
    }
    SEARCH_FIELDS: ClassVar[tuple[str, ...]] = ("title", "description")
    SORT_FIELDS: ClassVar[type[Enum]] = TicketSortField
    SORT_COLUMNS: ClassVar[dict[Enum, str]] = {
        TicketSortField.ID: "id",
        TicketSortField.TITLE: "title",
        TicketSortField.DESCRIPTION: "description",
        TicketSortField.PRIORITY: "priority",
        TicketSortField.STATUS: "status",
        TicketSortField.CREATED_AT: "created_at",
        TicketSortField.UPDATED_AT: "updated_at",
    }
    STATUS_TYPE: ClassVar[type[Enum]] = TicketStatus
    FILTER_FIELDS: ClassVar[tuple[str, ...]] = ("title", "description")
    DATE_RANGE_FIELD: ClassVar[str] = "created_at"
    DATETIME_FIELDS: ClassVar[tuple[str, ...]] = ("created_at", "updated_at")

    title: str
    description: str
    priority: Priority | None = None
    status: TicketStatus | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    id: int = 0

    def stamped(self, now: datetime) -> "Ticket":
        created = self.created_at or now
        return replace(self, created_at=created, updated_at=self.updated_at or created)

    def touched(self, now: datetime) -> "Ticket":
        return replace(self, updated_at=now)

    @classmethod
    def db_columns(cls) -> tuple[str, ...]:
        return (
            "title",
            "description",
            "priority",
            "status",
            "created_at",
            "updated_at",
        )

    def to_row(self) -> dict[str, str]:
        return {
            "id": str(self.id),
            "title": self.title,
            "description": self.description,
            "priority": self.priority.value if self.priority else "",
            "status": self.status.value if self.status else "",
        }

    @classmethod
    def from_row(cls, row: dict[str, str]) -> "Ticket":
        return cls(
            title=row["title"],
            description=row["description"],
            priority=parse_enum(Priority, row["priority"], "priority"),
            status=parse_enum(TicketStatus, row["status"], "status"),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "priority": self.priority.value if self.priority else None,
            "status": self.status.value if self.status else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Ticket":
        return cls(
            id=int(data["id"]),
            title=data["title"],
            description=data["description"],
            priority=Priority(data["priority"]),
            status=TicketStatus(data["status"]),
            created_at=_parse_datetime(data.get("created_at")),
            updated_at=_parse_datetime(data.get("updated_at")),
        )


def utc_now() -> datetime:
    return datetime.now(UTC)
