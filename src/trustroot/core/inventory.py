"""Inventory index used for membership tests during diffing."""

from collections.abc import Iterable

from trustroot.core.classifier import classify_with
from trustroot.core.models import (
    ClassifiedStore,
    InventoryIndex,
    InventoryItem,
    StoreDescriptor,
    Thresholds,
    normalize_thumbprint,
)


def build_index(inventory: Iterable[InventoryItem]) -> InventoryIndex:
    """Flatten an inventory into thumbprint, serial and ID sets."""
    thumbprints: set[str] = set()
    serials: set[str] = set()
    ids: set[int] = set()

    for item in inventory:
        for cert in item.certificates:
            if cert.thumbprint:
                thumbprints.add(normalize_thumbprint(cert.thumbprint))
            if cert.serial_number:
                serials.add(cert.serial_number.upper())
            ids.add(cert.cert_id)

    return InventoryIndex(
        thumbprints=frozenset(thumbprints),
        serials=frozenset(serials),
        ids=frozenset(ids),
    )


def classify_store(
    descriptor: StoreDescriptor,
    inventory: list[InventoryItem],
    thresholds: Thresholds,
) -> ClassifiedStore:
    """Classify and index one store from a single inventory snapshot."""
    return ClassifiedStore(
        descriptor=descriptor,
        is_root=classify_with(inventory, thresholds),
        index=build_index(inventory),
    )
