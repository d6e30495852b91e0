"""Tests for the trustroot command line."""

import csv
import json

import pytest

from trustroot import cli
from trustroot.core import ledger as ledger_module
from trustroot.core.ledger import load_actions

from .conftest import make_cert, make_item, make_store


@pytest.fixture
def fleet(fake_client, monkeypatch, tmp_path):
    fake_client.add_certificate("AAA111", 11)
    fake_client.add_certificate("BBB222", 22)
    fake_client.add_store(make_store("s1"))
    fake_client.add_store(make_store("s2"), [make_item(make_cert("BBB222", 22), name="b")])

    monkeypatch.setattr(cli, "build_client", lambda config: fake_client)
    monkeypatch.setattr(cli, "setup_logging", lambda level: None)
    monkeypatch.setenv("ROT_AUDIT_DIR", str(tmp_path / "audits"))
    monkeypatch.delenv("ROT_DRY_RUN", raising=False)
    return fake_client


@pytest.fixture
def inputs(tmp_path):
    stores = tmp_path / "stores.csv"
    stores.write_text("StoreId,StoreType,StoreMachine,StorePath\ns1,PEM,host1,/a\ns2,PEM,host2,/b\n")
    add = tmp_path / "add.csv"
    add.write_text("Thumbprint\nAAA111\n")
    remove = tmp_path / "remove.csv"
    remove.write_text("Thumbprint\nBBB222\n")
    return {"stores": str(stores), "add": str(add), "remove": str(remove)}


def test_no_command_prints_help(capsys):
    assert cli.main([]) == cli.EXIT_OK
    assert "generate-template" in capsys.readouterr().out


def test_generate_template(tmp_path, capsys, monkeypatch):
    monkeypatch.setattr(cli, "setup_logging", lambda level: None)
    out = tmp_path / "certs.json"
    assert cli.main(["generate-template", "--type", "certs", "--format", "json", "--outpath", str(out)]) == 0
    assert json.loads(out.read_text()) == [{"Thumbprint": ""}]
    assert str(out) in capsys.readouterr().out


def test_audit_writes_ledger(fleet, inputs, tmp_path, capsys):
    ledger = tmp_path / "audit.csv"
    code = cli.main(
        ["audit", "-s", inputs["stores"], "-a", inputs["add"], "-r", inputs["remove"], "-o", str(ledger)]
    )

    assert code == cli.EXIT_OK
    summary = json.loads(capsys.readouterr().out)
    assert summary["actions"] == 3
    assert summary["root_stores"] == ["s1", "s2"]
    assert set(load_actions(ledger)) == {"AAA111", "BBB222"}
    assert fleet.mutating_calls == []


def test_audit_uses_configured_ledger_path(fleet, inputs, tmp_path):
    assert cli.main(["audit", "-s", inputs["stores"], "-a", inputs["add"]]) == cli.EXIT_OK
    assert (tmp_path / "audits" / "rot_audit.csv").is_file()


def test_audit_threshold_flags(fleet, inputs, tmp_path, capsys):
    fleet.add_store(
        make_store("s3"),
        [make_item(make_cert("CCC333", 33, issued_dn="CN=leaf"), private_key=True, name="leaf")],
    )
    stores = tmp_path / "stores3.csv"
    stores.write_text("s1,PEM,host1,/a\ns3,PEM,host3,/c\n")

    cli.main(["audit", "-s", str(stores), "-a", inputs["add"], "--max-keys", "0", "-o", str(tmp_path / "a.csv")])
    assert json.loads(capsys.readouterr().out)["root_stores"] == ["s1"]


def test_audit_lookup_failure_exit_code(fleet, inputs, tmp_path):
    add = tmp_path / "unknown.csv"
    add.write_text("FFF999\n")
    code = cli.main(["audit", "-s", inputs["stores"], "-a", str(add), "-o", str(tmp_path / "a.csv")])
    assert code == cli.EXIT_FAILURES


def test_audit_requires_a_list(fleet, inputs, capsys):
    assert cli.main(["audit", "-s", inputs["stores"]]) == cli.EXIT_FATAL
    assert "--add-certs" in capsys.readouterr().err


def test_missing_input_file_is_fatal(fleet, tmp_path, inputs):
    code = cli.main(["audit", "-s", str(tmp_path / "missing.csv"), "-a", inputs["add"]])
    assert code == cli.EXIT_FATAL
    assert fleet.calls == []


def test_reconcile_audits_and_applies(fleet, inputs, tmp_path, capsys):
    code = cli.main(
        ["reconcile", "-s", inputs["stores"], "-a", inputs["add"], "-r", inputs["remove"],
         "-o", str(tmp_path / "a.csv")]
    )

    assert code == cli.EXIT_OK
    assert sorted(fleet.mutating_calls) == [
        ("add", 11, "s1", True, True),
        ("add", 11, "s2", True, True),
        ("remove", 22, "s2", "BBB222", True),
    ]
    assert "up_to_date" in capsys.readouterr().out


def test_reconcile_import_csv_dry_run(fleet, inputs, tmp_path, capsys):
    ledger = tmp_path / "a.csv"
    cli.main(["audit", "-s", inputs["stores"], "-a", inputs["add"], "-o", str(ledger)])
    capsys.readouterr()

    assert cli.main(["reconcile", "-i", str(ledger), "--dry-run"]) == cli.EXIT_OK
    summary = json.loads(capsys.readouterr().out)
    assert summary["dry_run"] is True
    assert summary["skipped"] == 2
    assert fleet.mutating_calls == []


def test_reconcile_dry_run_from_environment(fleet, inputs, tmp_path, monkeypatch):
    monkeypatch.setenv("ROT_DRY_RUN", "true")
    cli.main(["reconcile", "-s", inputs["stores"], "-a", inputs["add"], "-o", str(tmp_path / "a.csv")])
    assert fleet.mutating_calls == []


def test_reconcile_apply_failure_exit_code(fleet, inputs, tmp_path):
    fleet.failing_stores.add("s2")
    code = cli.main(["reconcile", "-s", inputs["stores"], "-a", inputs["add"], "-o", str(tmp_path / "a.csv")])
    assert code == cli.EXIT_FAILURES
    assert len(fleet.mutating_calls) == 2


def test_reconcile_requires_stores_or_ledger(fleet, inputs):
    assert cli.main(["reconcile", "-a", inputs["add"]]) == cli.EXIT_FATAL


def test_reconcile_bad_ledger_is_fatal(fleet, tmp_path):
    ledger = tmp_path / "bad.csv"
    ledger.write_text("nonsense\n")
    assert cli.main(["reconcile", "-i", str(ledger)]) == cli.EXIT_FATAL
    assert fleet.mutating_calls == []


# ── Ledger write failures ──

@pytest.fixture
def full_disk(monkeypatch):
    """Ledger files accept the header, then every data row fails."""
    real_writer = csv.writer

    class HeaderOnlyWriter:
        def __init__(self, handle, **kwargs):
            self.writer = real_writer(handle, **kwargs)
            self.rows = 0

        def writerow(self, values):
            self.rows += 1
            if self.rows > 1:
                raise OSError("disk full")
            return self.writer.writerow(values)

    monkeypatch.setattr(ledger_module.csv, "writer", HeaderOnlyWriter)


def test_reconcile_refuses_unaudited_actions(fleet, inputs, tmp_path, full_disk, capsys):
    path = tmp_path / "a.csv"
    code = cli.main(["reconcile", "-s", inputs["stores"], "-a", inputs["add"], "-o", str(path)])

    assert code == cli.EXIT_FATAL
    assert fleet.mutating_calls == []
    assert len(path.read_text().splitlines()) == 1
    assert "refusing to apply" in capsys.readouterr().err


def test_audit_reports_ledger_write_failures(fleet, inputs, tmp_path, full_disk, capsys):
    code = cli.main(["audit", "-s", inputs["stores"], "-a", inputs["add"], "-o", str(tmp_path / "a.csv")])

    assert code == cli.EXIT_FAILURES
    assert json.loads(capsys.readouterr().out)["ledger_write_failures"] == 2
