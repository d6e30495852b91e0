"""Root store classification."""

from collections.abc import Iterable

from trustroot.core.models import InventoryItem, Thresholds


def classify(
    inventory: Iterable[InventoryItem],
    min_certs: int = -1,
    max_keys: int = -1,
    max_leaf_certs: int = -1,
) -> bool:
    """Decide whether a store inventory qualifies as a root store.

    A store is rejected when it holds fewer than ``min_certs`` certificates,
    more than ``max_leaf_certs`` certificates that are not self-signed, or
    more than ``max_keys`` entries with a private key. Negative thresholds
    are unbounded.
    """
    total_certs = 0
    leaf_count = 0
    key_count = 0

    for item in inventory:
        total_certs += len(item.certificates)
        leaf_count += sum(1 for cert in item.certificates if not cert.is_self_signed)
        if item.has_private_key:
            key_count += 1

    if min_certs >= 0 and total_certs < min_certs:
        return False
    if max_leaf_certs >= 0 and leaf_count > max_leaf_certs:
        return False
    if max_keys >= 0 and key_count > max_keys:
        return False
    return True


def classify_with(inventory: Iterable[InventoryItem], thresholds: Thresholds) -> bool:
    """Classify using a Thresholds bundle."""
    return classify(
        inventory,
        min_certs=thresholds.min_certs,
        max_keys=thresholds.max_keys,
        max_leaf_certs=thresholds.max_leaf_certs,
    )
