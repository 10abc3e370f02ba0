"""Record source: reads transaction rows from comma-delimited text.

The first non-blank row is a header naming the ``type``, ``client``, ``tx``
and ``amount`` columns in any order. Whitespace around headers and values is
ignored, and rows may leave off trailing fields, in which case the missing
``amount`` is ``None``. Anything that cannot be read into a ``TransactionRow``
raises ``RecordParseError``.
"""
import csv
from typing import Dict, Iterator, List, TextIO

from pydantic import ValidationError

from errors import RecordParseError, UnknownTransactionType
from models import TransactionRecord, TransactionRow, TransactionType

REQUIRED_COLUMNS = ("type", "client", "tx")
OPTIONAL_COLUMNS = ("amount",)


def _format_validation_error(e: ValidationError) -> str:
    parts = []
    for error in e.errors():
        location = ".".join(str(part) for part in error["loc"])
        parts.append(f"{location}: {error['msg']}")
    return "; ".join(parts)


def _read_header(fields: List[str], line: int) -> List[str]:
    header = [field.strip().lower() for field in fields]
    missing = [column for column in REQUIRED_COLUMNS if column not in header]
    if missing:
        raise RecordParseError(line, f"header is missing column(s): {', '.join(missing)}")
    return header


def _to_row(header: List[str], fields: List[str], line: int) -> TransactionRow:
    if len(fields) > len(header) and any(field.strip() for field in fields[len(header):]):
        raise RecordParseError(line, f"expected at most {len(header)} fields, got {len(fields)}")

    values: Dict[str, str] = {}
    for name, value in zip(header, fields):
        if name in REQUIRED_COLUMNS or name in OPTIONAL_COLUMNS:
            values[name] = value.strip()

    missing = [column for column in REQUIRED_COLUMNS if column not in values]
    if missing:
        raise RecordParseError(line, f"missing field(s): {', '.join(missing)}")

    try:
        return TransactionRow(**values)
    except ValidationError as e:
        raise RecordParseError(line, _format_validation_error(e)) from e


def read_rows(stream: TextIO) -> Iterator[TransactionRow]:
    """Lazily yield one ``TransactionRow`` per data row of ``stream``."""
    reader = csv.reader(stream)
    header = None
    try:
        for fields in reader:
            if not any(field.strip() for field in fields):
                continue
            if header is None:
                header = _read_header(fields, reader.line_num)
                continue
            yield _to_row(header, fields, reader.line_num)
    except (csv.Error, UnicodeDecodeError) as e:
        raise RecordParseError(reader.line_num, str(e)) from e


def decode_record(row: TransactionRow) -> TransactionRecord:
    """Map the row's type string onto the closed set of transaction types."""
    try:
        transaction_type = TransactionType(row.type)
    except ValueError:
        raise UnknownTransactionType(row.type) from None

    return TransactionRecord(
        type=transaction_type,
        client=row.client,
        tx=row.tx,
        amount=row.amount,
    )
