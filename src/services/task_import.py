"""
Contact list import.

Turns an uploaded CSV, XLSX or XLS file into TaskRecords:

1. The validated upload is staged under the configured upload directory as
   ``<epoch-ms>-<safe filename>`` and removed again when the import finishes,
   whether it succeeded or not.
2. The staged file is parsed into header-keyed rows. CSV uses the first line
   as header and skips blank lines; XLSX and XLS read the first worksheet
   with the first row as header.
3. Rows are filtered: only rows with non-empty ``FirstName``, ``Phone`` and
   ``Notes`` (case-sensitive headers) become TaskRecords. Other rows are
   dropped silently.
"""

import csv
import logging
import time
import zipfile
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence

import xlrd
from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException
from xlrd.compdoc import CompDocError

from security.api_errors import UnexpectedError, ValidationError
from security.file_upload_security import SecureUpload

logger = logging.getLogger(__name__)

FIRST_NAME_COLUMN = "FirstName"
PHONE_COLUMN = "Phone"
NOTES_COLUMN = "Notes"
REQUIRED_COLUMNS = (FIRST_NAME_COLUMN, PHONE_COLUMN, NOTES_COLUMN)

ALLOWED_EXTENSIONS = {"csv", "xlsx", "xls"}
UNSUPPORTED_TYPE_MESSAGE = "Only CSV, XLSX, and XLS files are allowed"
UPLOAD_FAILED_MESSAGE = "Server error during file upload"

Row = Dict[str, Any]


@dataclass(frozen=True)
class TaskRecord:
    """One valid contact row."""
    first_name: str
    phone: str
    notes: str

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> Optional["TaskRecord"]:
        """Build a record, or None if any required field is missing or blank."""
        first_name = normalize_cell(row.get(FIRST_NAME_COLUMN))
        phone = normalize_cell(row.get(PHONE_COLUMN))
        notes = normalize_cell(row.get(NOTES_COLUMN))
        if not (first_name and phone and notes):
            return None
        return cls(first_name=first_name, phone=phone, notes=notes)


def normalize_cell(value: Any) -> str:
    """
    Render a parsed cell as trimmed text.

    Spreadsheet phones often arrive as numbers; integral floats lose their
    trailing ``.0``.
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return str(value)
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value).strip()


def filter_valid_records(rows: Iterable[Mapping[str, Any]]) -> List[TaskRecord]:
    """Keep rows that carry all required fields, in their original order."""
    records = []
    dropped = 0
    for row in rows:
        record = TaskRecord.from_row(row)
        if record is None:
            dropped += 1
            continue
        records.append(record)

    if dropped:
        logger.info(f"Dropped {dropped} row(s) missing {', '.join(REQUIRED_COLUMNS)}")
    return records


# =============================================================================
# PARSERS
# =============================================================================

def read_csv_rows(path: Path) -> List[Row]:
    """Parse a CSV file with a header row."""
    # utf-8-sig strips the BOM spreadsheet exports like to prepend
    with open(path, newline="", encoding="utf-8-sig") as fh:
        reader = csv.DictReader(fh)
        return [dict(row) for row in reader]


def _keyed_rows(value_rows: Iterable[Sequence[Any]]) -> List[Row]:
    """Key spreadsheet rows by the first row's headers, skipping blank rows."""
    value_rows = iter(value_rows)
    header = next(value_rows, None)
    if header is None:
        return []

    columns = [normalize_cell(cell) for cell in header]
    parsed = []
    for values in value_rows:
        if values is None or all(v is None or v == "" for v in values):
            continue
        parsed.append({
            column: value
            for column, value in zip(columns, values)
            if column
        })
    return parsed


def read_xlsx_rows(path: Path) -> List[Row]:
    """Parse the first worksheet of an XLSX workbook with a header row."""
    workbook = load_workbook(path, read_only=True, data_only=True)
    try:
        sheet = workbook.worksheets[0]
        return _keyed_rows(sheet.iter_rows(values_only=True))
    finally:
        workbook.close()


def read_xls_rows(path: Path) -> List[Row]:
    """Parse the first sheet of a legacy XLS workbook with a header row."""
    workbook = xlrd.open_workbook(str(path), on_demand=True)
    try:
        sheet = workbook.sheet_by_index(0)
        return _keyed_rows(sheet.row_values(i) for i in range(sheet.nrows))
    finally:
        workbook.release_resources()


_PARSERS = {
    "csv": read_csv_rows,
    "xlsx": read_xlsx_rows,
    "xls": read_xls_rows,
}

_PARSE_ERRORS = (
    csv.Error,
    UnicodeDecodeError,
    zipfile.BadZipFile,
    InvalidFileException,
    xlrd.XLRDError,
    CompDocError,
    KeyError,
    IndexError,
)


def parse_task_file(path: Path, extension: str) -> List[Row]:
    """
    Parse a staged upload into header-keyed rows.

    Raises:
        ValidationError: unsupported extension
        UnexpectedError: the content could not be read
    """
    parser = _PARSERS.get(extension.lower())
    if parser is None:
        raise ValidationError(UNSUPPORTED_TYPE_MESSAGE)

    try:
        return parser(path)
    except _PARSE_ERRORS as e:
        logger.error(f"Failed to parse {path.name}: {type(e).__name__}: {e}", exc_info=True)
        raise UnexpectedError(UPLOAD_FAILED_MESSAGE)


def load_task_records(path: Path, extension: str) -> List[TaskRecord]:
    """Parse a staged upload and apply the validity filter."""
    return filter_valid_records(parse_task_file(path, extension))


# =============================================================================
# STAGING
# =============================================================================

def staged_path(upload_dir: Path, safe_filename: str) -> Path:
    """Staging location for an upload: <epoch-ms>-<safe filename>."""
    return Path(upload_dir) / f"{int(time.time() * 1000)}-{safe_filename}"


@contextmanager
def stage_upload(upload_dir: Path, upload: SecureUpload) -> Iterator[Path]:
    """
    Write an upload to the staging area for the duration of the block.

    The staged file is removed on exit, including when the block raises.
    """
    upload_dir = Path(upload_dir)
    upload_dir.mkdir(parents=True, exist_ok=True)
    path = staged_path(upload_dir, upload.safe_filename)

    try:
        path.write_bytes(upload.content)
        logger.debug(f"Staged upload at {path} (sha256 {upload.file_hash[:12]})")
        yield path
    finally:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.error(f"Failed to remove staged upload {path}: {e}")
