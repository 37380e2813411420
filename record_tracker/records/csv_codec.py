"""CSV encoding and decoding of record sets.

Format:
- A fixed header line naming the record kind's columns.
- One line per record, comma separated.
- A value is quoted iff it contains a comma, a double quote or a line
  break; embedded double quotes are doubled. Quoted values may therefore
  span several physical lines.

Each codec applies one decode policy for its whole lifetime:
- strict: empty input, an unexpected header or a short row raise ParseError.
- lenient: an unexpected header yields no rows; short rows are skipped and
  logged.
"""

import csv
import io
from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from record_tracker.records.errors import ParseError
from record_tracker.records.models import Record
from record_tracker.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class CsvRow:
    """A decoded data row.

    Attributes:
        line_number: 1-based line on which the row starts.
        content: Raw source text of the row (without the final line break).
        values: Column name to decoded value.
    """

    line_number: int
    content: str
    values: dict[str, str]


def _encode_line(values: Iterable[str]) -> str:
    buffer = io.StringIO()
    # QUOTE_MINIMAL quotes characters of the terminator, so "\r\n" makes
    # values holding a bare carriage return quoted on every Python version.
    writer = csv.writer(buffer, lineterminator="\r\n", quoting=csv.QUOTE_MINIMAL)
    writer.writerow(values)
    return buffer.getvalue()[:-2] + "\n"


def _is_blank(fields: list[str]) -> bool:
    return not fields or (len(fields) == 1 and not fields[0].strip())


class CsvCodec:
    """Encode records to CSV text and decode CSV text to rows."""

    def __init__(self, record_type: type[Record], strict: bool = True):
        """Initialize the codec.

        Args:
            record_type: Record kind whose ``CSV_COLUMNS`` define the header.
            strict: Decode policy (see module docstring).
        """
        self.record_type = record_type
        self.columns = record_type.CSV_COLUMNS
        self.strict = strict

    def encode(self, records: Iterable[Record]) -> str:
        """Encode records as CSV text, header first."""
        lines = [_encode_line(self.columns)]
        for record in records:
            row = record.to_row()
            values = [row.get(column, "") for column in self.columns]
            lines.append(_encode_line(values))
        return "".join(lines)

    def decode(self, text: str) -> list[CsvRow]:
        """Decode CSV text into rows, skipping the header and blank lines.

        Raises:
            ParseError: Under the strict policy, for empty input, an
                unexpected header or a short row; under both policies for
                unreadable quoting.
        """
        consumed: list[str] = []

        def tracked_lines() -> Iterator[str]:
            for line in io.StringIO(text, newline=""):
                consumed.append(line)
                yield line

        def take_content() -> str:
            content = "".join(consumed).rstrip("\r\n")
            consumed.clear()
            return content

        reader = csv.reader(tracked_lines(), strict=True)
        rows: list[CsvRow] = []
        lines_read = 0
        header_seen = False

        try:
            for fields in reader:
                start = lines_read + 1
                lines_read = reader.line_num
                content = take_content()

                if not header_seen:
                    header_seen = True
                    if not self._header_matches(fields):
                        if self.strict:
                            raise ParseError(start, content, "unexpected header")
                        logger.warning(
                            "Ignoring CSV input with unexpected header: %s", content
                        )
                        return []
                    continue

                if _is_blank(fields):
                    continue

                if len(fields) < len(self.columns):
                    reason = (
                        f"expected {len(self.columns)} columns, found {len(fields)}"
                    )
                    if self.strict:
                        raise ParseError(start, content, reason)
                    logger.warning(
                        "Skipping CSV line %d (%s): %s", start, reason, content
                    )
                    continue

                rows.append(
                    CsvRow(
                        line_number=start,
                        content=content,
                        values=dict(zip(self.columns, fields)),
                    )
                )
        except csv.Error as e:
            raise ParseError(lines_read + 1, take_content(), str(e), e) from e

        if not header_seen and self.strict:
            raise ParseError(1, "", "CSV is empty")

        return rows

    def _header_matches(self, fields: list[str]) -> bool:
        names = [name.strip().lower() for name in fields]
        expected = [name.lower() for name in self.columns]
        return names[: len(expected)] == expected
