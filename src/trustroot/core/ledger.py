"""Audit ledger: CSV record of an audit that can be replayed into a reconcile.

The ledger is both an output (one row per certificate/store pairing
considered by an audit) and an input (the same file, reloaded as an
action map). Columns are described by an immutable LedgerSchema which is
passed to both directions so the format stays symmetric.
"""

import csv
import logging
import threading
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

from trustroot.core.models import Action, ActionMap, AuditRow, normalize_thumbprint
from trustroot.errors import FormatError, LedgerIOError

logger = logging.getLogger(__name__)

DATE_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

TRUE_VALUES = frozenset({"true", "t", "1"})
FALSE_VALUES = frozenset({"false", "f", "0"})


@dataclass(frozen=True)
class LedgerColumn:
    """A ledger column and the AuditRow attribute it renders."""

    name: str
    attribute: str
    kind: str = "str"  # str, int, bool or date


@dataclass(frozen=True)
class LedgerSchema:
    """Ordered, immutable ledger column list."""

    columns: tuple[LedgerColumn, ...]

    @property
    def header(self) -> list[str]:
        return [column.name for column in self.columns]


AUDIT_SCHEMA = LedgerSchema(
    columns=(
        LedgerColumn("Thumbprint", "thumbprint"),
        LedgerColumn("CertID", "cert_id", "int"),
        LedgerColumn("SubjectName", "subject_name"),
        LedgerColumn("Issuer", "issuer"),
        LedgerColumn("StoreID", "store_id"),
        LedgerColumn("StoreType", "store_type"),
        LedgerColumn("Machine", "machine"),
        LedgerColumn("Path", "path"),
        LedgerColumn("AddCert", "add_cert", "bool"),
        LedgerColumn("RemoveCert", "remove_cert", "bool"),
        LedgerColumn("Deployed", "deployed", "bool"),
        LedgerColumn("AuditDate", "audit_date", "date"),
    )
)

# Attributes an Action cannot be rebuilt without
_ACTION_ATTRIBUTES = ("thumbprint", "cert_id", "store_id", "store_type", "path", "add_cert", "remove_cert")


def format_date(value: datetime) -> str:
    """Render a timestamp as ISO-8601 UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).strftime(DATE_FORMAT)


def parse_bool(value: str) -> bool:
    """Parse a ledger boolean, raising ValueError for anything else."""
    lowered = value.strip().lower()
    if lowered in TRUE_VALUES:
        return True
    if lowered in FALSE_VALUES:
        return False
    raise ValueError(f"invalid boolean {value!r}")


def _render(column: LedgerColumn, value) -> str:
    if column.kind == "bool":
        return "true" if value else "false"
    if column.kind == "date":
        return format_date(value)
    return str(value)


class AuditLedger:
    """Append-only CSV writer for audit rows.

    Example:
        with AuditLedger("rot_audit.csv") as ledger:
            ledger.write_row(row)
    """

    def __init__(
        self,
        path: str | Path,
        schema: LedgerSchema = AUDIT_SCHEMA,
        flush_each_row: bool = True,
    ):
        self.path = Path(path)
        self.schema = schema
        self.flush_each_row = flush_each_row
        self.rows_written = 0
        self.write_failures = 0
        self._file = None
        self._writer = None
        self._lock = threading.Lock()

    def __enter__(self) -> "AuditLedger":
        self.open()
        self.write_header()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    @property
    def is_open(self) -> bool:
        return self._file is not None

    def open(self) -> "AuditLedger":
        """Create (or truncate) the ledger file."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._file = open(self.path, "w", newline="", encoding="utf-8")
        except OSError as error:
            raise LedgerIOError(f"Cannot create audit ledger {self.path}: {error}") from error

        self._writer = csv.writer(self._file, lineterminator="\n")
        logger.debug("Opened audit ledger %s", self.path)
        return self

    def write_header(self):
        """Write the column header. Failure here is fatal."""
        self._require_open()
        with self._lock:
            try:
                self._writer.writerow(self.schema.header)
                self._file.flush()
            except OSError as error:
                raise LedgerIOError(f"Cannot write header to {self.path}: {error}") from error

    def write_row(self, row: AuditRow) -> bool:
        """Append one row. Returns False (and logs) if the write failed."""
        self._require_open()
        values = [_render(column, getattr(row, column.attribute)) for column in self.schema.columns]

        with self._lock:
            try:
                self._writer.writerow(values)
                if self.flush_each_row:
                    self._file.flush()
            except OSError as error:
                self.write_failures += 1
                logger.error(
                    "Failed to write audit row for %s on store %s: %s",
                    row.thumbprint,
                    row.store_id,
                    error,
                )
                return False
            self.rows_written += 1
        return True

    def flush(self):
        self._require_open()
        with self._lock:
            self._file.flush()

    def close(self):
        """Close the ledger file. Safe to call more than once."""
        with self._lock:
            if self._file is None:
                return
            try:
                self._file.close()
            finally:
                self._file = None
                self._writer = None
        logger.info("Wrote %d audit rows to %s", self.rows_written, self.path)

    def _require_open(self):
        if self._file is None:
            raise LedgerIOError(f"Audit ledger {self.path} is not open")


def _read_header(row: list[str], schema: LedgerSchema, line: int) -> dict[str, int]:
    """Validate a header row and map row attributes to column indexes."""
    found = [cell.strip().lower() for cell in row]
    expected = [name.lower() for name in schema.header]

    if found != expected:
        raise FormatError(
            f"Line {line}: expected header {','.join(schema.header)}, got {','.join(row)}"
        )

    columns = {column.attribute: position for position, column in enumerate(schema.columns)}
    missing = [attribute for attribute in _ACTION_ATTRIBUTES if attribute not in columns]
    if missing:
        raise FormatError(f"Ledger schema is missing columns for: {', '.join(missing)}")
    return columns


def _parse_row(row: list[str], columns: dict[str, int], width: int, line: int) -> Action | None:
    """Build an Action from a data row, or None for a compliant row."""
    if len(row) != width:
        raise FormatError(f"Line {line}: expected {width} columns, got {len(row)}")

    def cell(attribute: str) -> str:
        return row[columns[attribute]].strip()

    try:
        cert_id = int(cell("cert_id"))
        add_cert = parse_bool(cell("add_cert"))
        remove_cert = parse_bool(cell("remove_cert"))
    except ValueError as error:
        raise FormatError(f"Line {line}: {error}") from error

    if add_cert and remove_cert:
        raise FormatError(f"Line {line}: AddCert and RemoveCert are both true")

    if not (add_cert or remove_cert):
        return None

    thumbprint = normalize_thumbprint(cell("thumbprint"))
    if not thumbprint:
        raise FormatError(f"Line {line}: empty thumbprint")

    return Action(
        thumbprint=thumbprint,
        cert_id=cert_id,
        store_id=cell("store_id"),
        store_type=cell("store_type"),
        store_path=cell("path"),
        add_cert=add_cert,
        remove_cert=remove_cert,
    )


def load_actions(path: str | Path, schema: LedgerSchema = AUDIT_SCHEMA) -> ActionMap:
    """Load an audit ledger back into an action map.

    The first non-blank line must be the schema header (case-insensitive).
    Any malformed row fails the whole load with FormatError.
    """
    path = Path(path)
    try:
        handle = open(path, newline="", encoding="utf-8-sig")
    except OSError as error:
        raise LedgerIOError(f"Cannot read audit ledger {path}: {error}") from error

    actions: ActionMap = {}
    columns: dict[str, int] | None = None
    width = len(schema.columns)

    with handle:
        reader = csv.reader(handle)
        try:
            for row in reader:
                if not any(cell.strip() for cell in row):
                    continue

                if columns is None:
                    columns = _read_header(row, schema, reader.line_num)
                    continue

                action = _parse_row(row, columns, width, reader.line_num)
                if action is not None:
                    actions.setdefault(action.thumbprint, []).append(action)
        except UnicodeDecodeError as error:
            raise FormatError(f"Line {reader.line_num + 1}: not valid UTF-8 ({error.reason})") from error
        except csv.Error as error:
            raise FormatError(f"Line {reader.line_num}: {error}") from error

    if columns is None:
        raise FormatError(f"Audit ledger {path} has no header")

    logger.info(
        "Loaded %d actions for %d certificates from %s",
        sum(len(items) for items in actions.values()),
        len(actions),
        path,
    )
    return actions
