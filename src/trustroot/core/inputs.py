"""Readers for the stores and certificates input CSV files."""

import csv
import logging
from pathlib import Path

from trustroot.core.models import StoreDescriptor, normalize_thumbprint
from trustroot.errors import FormatError, InputFileError

logger = logging.getLogger(__name__)

STORES_HEADER = ("StoreId", "StoreType", "StoreMachine", "StorePath")
CERTS_HEADER = ("Thumbprint",)

# First-column values that mark a header row in a certs file
CERT_HEADER_MARKERS = frozenset({"thumbprint", "certid"})


def _read_rows(path: str | Path) -> list[list[str]]:
    path = Path(path)
    try:
        with open(path, newline="", encoding="utf-8-sig") as handle:
            return [row for row in csv.reader(handle) if any(cell.strip() for cell in row)]
    except OSError as error:
        raise InputFileError(f"Cannot read {path}: {error}") from error
    except (UnicodeDecodeError, csv.Error) as error:
        raise FormatError(f"{path}: not a readable CSV file ({error})") from error


def read_stores(path: str | Path) -> list[StoreDescriptor]:
    """Read a stores CSV (StoreId, StoreType, StoreMachine, StorePath)."""
    stores = []
    for number, row in enumerate(_read_rows(path), start=1):
        if row[0].strip().lower() == STORES_HEADER[0].lower():
            continue
        if len(row) < len(STORES_HEADER):
            raise FormatError(f"{path}: row {number} needs {len(STORES_HEADER)} columns, got {len(row)}")
        store_id, store_type, machine, store_path = (cell.strip() for cell in row[:4])
        stores.append(StoreDescriptor(store_id, store_type, machine, store_path))

    logger.debug("Read %d stores from %s", len(stores), path)
    return stores


def read_thumbprints(path: str | Path) -> list[str]:
    """Read a certs CSV and return its thumbprints in file order."""
    thumbprints = []
    for row in _read_rows(path):
        first = row[0].strip()
        if first.lower() in CERT_HEADER_MARKERS:
            continue
        thumbprint = normalize_thumbprint(first)
        if thumbprint:
            thumbprints.append(thumbprint)

    logger.debug("Read %d thumbprints from %s", len(thumbprints), path)
    return thumbprints
