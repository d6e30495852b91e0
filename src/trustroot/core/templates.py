"""Blank input templates for stores and certificate lists."""

import csv
import json
import logging
from pathlib import Path

from trustroot.core.inputs import CERTS_HEADER, STORES_HEADER

logger = logging.getLogger(__name__)

TEMPLATE_HEADERS = {
    "stores": STORES_HEADER,
    "certs": CERTS_HEADER,
}
TEMPLATE_FORMATS = ("csv", "json")


def write_template(kind: str, path: str | Path | None = None, fmt: str = "csv") -> Path:
    """Write an empty template file and return its path."""
    if kind not in TEMPLATE_HEADERS:
        raise ValueError(f"Unknown template type {kind!r}, expected one of {sorted(TEMPLATE_HEADERS)}")
    if fmt not in TEMPLATE_FORMATS:
        raise ValueError(f"Unknown template format {fmt!r}, expected one of {list(TEMPLATE_FORMATS)}")

    header = TEMPLATE_HEADERS[kind]
    target = Path(path) if path else Path(f"{kind}_template.{fmt}")

    with open(target, "w", newline="", encoding="utf-8") as handle:
        if fmt == "csv":
            csv.writer(handle, lineterminator="\n").writerow(header)
        else:
            json.dump([dict.fromkeys(header, "")], handle, indent=2)
            handle.write("\n")

    logger.info("Wrote %s template to %s", kind, target)
    return target
