"""Tests for inventory indexing and store classification."""

from trustroot.core.inventory import build_index, classify_store
from trustroot.core.models import Thresholds

from .conftest import make_cert, make_item, make_store


def test_build_index_flattens_all_items():
    inventory = [
        make_item(make_cert("aa:bb:cc", cert_id=1, serial="0a"), name="one"),
        make_item(make_cert("DDEEFF", cert_id=2, serial="0B"), make_cert("112233", cert_id=3), name="two"),
    ]
    index = build_index(inventory)

    assert index.thumbprints == frozenset({"AABBCC", "DDEEFF", "112233"})
    assert index.serials == frozenset({"0A", "0B", "01"})
    assert index.ids == frozenset({1, 2, 3})


def test_build_index_keeps_presence_only():
    inventory = [make_item(make_cert("AABBCC", cert_id=7), name=f"copy{i}") for i in range(3)]
    index = build_index(inventory)
    assert index.thumbprints == frozenset({"AABBCC"})
    assert index.ids == frozenset({7})


def test_empty_inventory_gives_empty_index():
    index = build_index([])
    assert not index.thumbprints
    assert not index.serials
    assert not index.ids


def test_has_thumbprint_normalizes_lookup():
    index = build_index([make_item(make_cert("AABBCC"))])
    assert index.has_thumbprint("aa:bb:cc")
    assert not index.has_thumbprint("000000")


def test_classify_store_combines_descriptor_and_index():
    descriptor = make_store("s1")
    store = classify_store(descriptor, [make_item(make_cert("AABBCC"))], Thresholds(min_certs=2))

    assert store.descriptor == descriptor
    assert store.store_id == "s1"
    assert store.is_root is False
    assert store.index.has_thumbprint("AABBCC")
