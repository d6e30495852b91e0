"""Tests for applying action maps to the fleet."""

import pytest

from trustroot.core.models import Action, ActionState
from trustroot.core.reconciler import apply_actions
from trustroot.errors import ApplyError


def _add(thumbprint: str, store_id: str, cert_id: int = 1) -> Action:
    return Action(thumbprint, cert_id, store_id, "PEM", f"/stores/{store_id}", add_cert=True)


def _remove(thumbprint: str, store_id: str, cert_id: int = 2) -> Action:
    return Action(thumbprint, cert_id, store_id, "PEM", f"/stores/{store_id}", remove_cert=True)


def test_action_cannot_add_and_remove():
    with pytest.raises(ValueError):
        Action("AAA111", 1, "s1", "PEM", "/a", add_cert=True, remove_cert=True)


def test_empty_map_is_up_to_date(fake_client, caplog):
    caplog.set_level("INFO")
    report = apply_actions({}, fake_client)

    assert report.up_to_date
    assert report.summary() == {"total": 0, "applied": 0, "skipped": 0, "failed": 0}
    assert fake_client.calls == []
    assert "up to date" in caplog.text


def test_map_with_only_empty_lists_is_up_to_date(fake_client):
    assert apply_actions({"AAA111": []}, fake_client).up_to_date


def test_add_and_remove_calls(fake_client):
    actions = {"AAA111": [_add("AAA111", "s1", 11)], "BBB222": [_remove("BBB222", "s2", 22)]}
    report = apply_actions(actions, fake_client)

    assert fake_client.mutating_calls == [
        ("add", 11, "s1", True, True),
        ("remove", 22, "s2", "BBB222", True),
    ]
    assert [o.state for o in report.outcomes] == [ActionState.APPLIED, ActionState.APPLIED]
    assert not report.up_to_date


def test_dry_run_makes_no_mutating_calls(fake_client):
    actions = {
        f"T{i:03d}": [_add(f"T{i:03d}", f"s{j}") for j in range(5)] + [_remove(f"T{i:03d}", "s9")]
        for i in range(20)
    }
    report = apply_actions(actions, fake_client, dry_run=True)

    assert fake_client.mutating_calls == []
    assert len(report.skipped) == 120
    assert report.dry_run is True


def test_failure_is_isolated(fake_client):
    fake_client.failing_stores.add("bad")
    actions = {
        "AAA111": [_add("AAA111", "s1"), _add("AAA111", "bad"), _add("AAA111", "s2")],
        "BBB222": [_remove("BBB222", "bad"), _remove("BBB222", "s3")],
    }
    report = apply_actions(actions, fake_client)

    assert len(fake_client.mutating_calls) == 5
    assert report.summary() == {"total": 5, "applied": 3, "skipped": 0, "failed": 2}

    failed = report.failed[0]
    assert isinstance(failed.error, ApplyError)
    assert failed.error.thumbprint == "AAA111"
    assert failed.error.store_id == "bad"
    assert failed.error.store_path == "/stores/bad"
    assert "offline" in str(failed.error)


def test_noop_actions_are_ignored(fake_client):
    noop = Action("AAA111", 1, "s1", "PEM", "/a")
    report = apply_actions({"AAA111": [noop, _add("AAA111", "s2")]}, fake_client)

    assert len(report.outcomes) == 1
    assert fake_client.mutating_calls == [("add", 1, "s2", True, True)]


def test_per_thumbprint_order_is_preserved(fake_client):
    actions = {"AAA111": [_add("AAA111", "s3"), _remove("AAA111", "s1"), _add("AAA111", "s2")]}
    apply_actions(actions, fake_client)
    assert [call[2] for call in fake_client.mutating_calls] == ["s3", "s1", "s2"]


def test_outcome_operation_names(fake_client):
    report = apply_actions({"A": [_add("A", "s1")], "B": [_remove("B", "s1")]}, fake_client, dry_run=True)
    assert [o.operation for o in report.outcomes] == ["add", "remove"]
