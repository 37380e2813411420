"""Bulk CSV export and import for a record store.

Import is all-or-nothing: the whole text is read, decoded and validated
before the store is touched, and then replaced in a single call.
"""

from collections.abc import Sequence
from pathlib import Path
from typing import Protocol

from record_tracker.records.csv_codec import CsvCodec
from record_tracker.records.errors import ParseError, RecordIOError, ValidationError
from record_tracker.records.models import DEFAULT_SORT, Record, SortSpec
from record_tracker.records.store import RecordStore
from record_tracker.utils.logging import get_logger

logger = get_logger(__name__)


class TextSink(Protocol):
    def write_text(self, text: str) -> None: ...


class TextSource(Protocol):
    def read_text(self) -> str: ...


class FileTarget:
    """A CSV file on disk, usable as both sink and source."""

    def __init__(self, path: Path | str, encoding: str = "utf-8"):
        self.path = Path(path)
        self.encoding = encoding

    def write_text(self, text: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("w", encoding=self.encoding, newline="") as handle:
            handle.write(text)

    def read_text(self) -> str:
        # newline="" keeps line breaks inside quoted values intact.
        with self.path.open("r", encoding=self.encoding, newline="") as handle:
            return handle.read()

    def __str__(self) -> str:
        return str(self.path)


class BufferTarget:
    """An in-memory text buffer, usable as both sink and source."""

    def __init__(self, text: str = ""):
        self.text = text

    def write_text(self, text: str) -> None:
        self.text = text

    def read_text(self) -> str:
        return self.text

    def __str__(self) -> str:
        return "<buffer>"


def _as_target(target: TextSink | TextSource | Path | str):
    if isinstance(target, (str, Path)):
        return FileTarget(target)
    return target


class ImportExportService:
    """Move the full record set of a store to and from CSV text."""

    def __init__(self, store: RecordStore, codec: CsvCodec | None = None):
        """Initialize the service.

        Args:
            store: The store to export from and import into.
            codec: CSV codec; defaults to a strict codec for the store's kind.
        """
        self.store = store
        self.codec = codec or CsvCodec(store.record_type)
        if self.codec.record_type is not store.record_type:
            raise ValueError("Codec and store must handle the same record kind")

    async def export_to(
        self, sink: TextSink | Path | str, sort: SortSpec = DEFAULT_SORT
    ) -> int:
        """Write every record to ``sink`` as CSV.

        Returns:
            The number of records written.

        Raises:
            RecordIOError: If the sink cannot be written.
        """
        target = _as_target(sink)
        records = await self.store.find_all(sort)
        text = self.codec.encode(records)
        try:
            target.write_text(text)
        except OSError as e:
            raise RecordIOError(f"Failed to write CSV to {target}: {e}", e) from e

        logger.info("Exported %d records to %s", len(records), target)
        return len(records)

    async def import_from(self, source: TextSource | Path | str) -> int:
        """Replace every record in the store with the CSV content of ``source``.

        Identities in the CSV are ignored; the store allocates fresh ones.

        Returns:
            The number of records imported.

        Raises:
            RecordIOError: If the source cannot be read.
            ParseError: If any row is malformed; nothing is imported.
        """
        target = _as_target(source)
        try:
            text = target.read_text()
        except FileNotFoundError as e:
            raise RecordIOError(f"CSV file not found: {target}", e) from e
        except OSError as e:
            raise RecordIOError(f"Failed to read CSV from {target}: {e}", e) from e
        except UnicodeDecodeError as e:
            raise RecordIOError(f"CSV file is not valid text: {target}", e) from e

        records = self.parse(text)
        await self.store.replace_all(records)

        logger.info("Imported %d records from %s", len(records), target)
        return len(records)

    def parse(self, text: str) -> Sequence[Record]:
        """Decode and validate CSV text without touching the store.

        Raises:
            ParseError: Identifying the first offending line.
        """
        record_type = self.store.record_type
        records: list[Record] = []
        for row in self.codec.decode(text):
            try:
                record = record_type.from_row(row.values).normalized(
                    require_status=True
                )
            except ValidationError as e:
                raise ParseError(row.line_number, row.content, e.message, e) from e
            except (KeyError, ValueError) as e:
                raise ParseError(row.line_number, row.content, str(e), e) from e
            records.append(record)
        return records
