"""trustroot CLI entry point.

Usage: trustroot [audit | reconcile | generate-template] ...

Exit codes:
  0 = completed
  1 = completed with lookup or apply failures
  2 = fatal error (bad input file, ledger not writable)
"""
import argparse
import json
import logging
import sys

from trustroot.config import RotConfig
from trustroot.core import engine
from trustroot.core.inputs import read_stores, read_thumbprints
from trustroot.core.models import Thresholds
from trustroot.core.templates import TEMPLATE_FORMATS, TEMPLATE_HEADERS, write_template
from trustroot.errors import LedgerIOError, TrustRootError
from trustroot.service import build_client, setup_logging

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURES = 1
EXIT_FATAL = 2


def _add_selection_arguments(p: argparse.ArgumentParser, stores_required: bool) -> None:
    p.add_argument(
        "--stores", "-s", required=stores_required,
        help="CSV file of certificate stores (StoreId,StoreType,StoreMachine,StorePath).",
    )
    p.add_argument(
        "--add-certs", "-a",
        help="CSV file of thumbprints that must be present in every root store.",
    )
    p.add_argument(
        "--remove-certs", "-r",
        help="CSV file of thumbprints that must be absent from every root store.",
    )
    p.add_argument(
        "--min-certs", type=int, default=None,
        help="Minimum certificates for a store to count as a root store (-1 = no limit).",
    )
    p.add_argument(
        "--max-keys", type=int, default=None,
        help="Maximum private keys a root store may hold (-1 = no limit).",
    )
    p.add_argument(
        "--max-leaf-certs", type=int, default=None,
        help="Maximum non-self-signed certificates a root store may hold (-1 = no limit).",
    )
    p.add_argument(
        "--outpath", "-o",
        help="Audit ledger file to write (default: from configuration).",
    )


def _add_audit_parser(subparsers: argparse._SubParsersAction) -> None:
    p = subparsers.add_parser(
        "audit",
        help="Audit root stores against the add/remove lists and write a ledger.",
    )
    _add_selection_arguments(p, stores_required=True)


def _add_reconcile_parser(subparsers: argparse._SubParsersAction) -> None:
    p = subparsers.add_parser(
        "reconcile",
        help="Audit and apply, or apply a previously written ledger.",
    )
    _add_selection_arguments(p, stores_required=False)
    p.add_argument(
        "--import-csv", "-i",
        help="Apply the actions from an existing audit ledger instead of auditing.",
    )
    p.add_argument(
        "--dry-run", action="store_true",
        help="Report what would change without scheduling any job.",
    )


def _add_template_parser(subparsers: argparse._SubParsersAction) -> None:
    p = subparsers.add_parser(
        "generate-template",
        help="Write a blank stores or certs input template.",
    )
    p.add_argument("--type", dest="kind", choices=sorted(TEMPLATE_HEADERS), default="stores")
    p.add_argument("--format", dest="fmt", choices=TEMPLATE_FORMATS, default="csv")
    p.add_argument("--outpath", help="Output file (default: <type>_template.<format>).")


def _thresholds(args: argparse.Namespace, config: RotConfig) -> Thresholds:
    defaults = config.thresholds()
    return Thresholds(
        min_certs=defaults.min_certs if args.min_certs is None else args.min_certs,
        max_keys=defaults.max_keys if args.max_keys is None else args.max_keys,
        max_leaf_certs=defaults.max_leaf_certs if args.max_leaf_certs is None else args.max_leaf_certs,
    )


def _run_audit(args: argparse.Namespace, config: RotConfig, client) -> engine.AuditReport:
    if not args.add_certs and not args.remove_certs:
        raise TrustRootError("At least one of --add-certs or --remove-certs is required")

    stores = read_stores(args.stores)
    add_list = read_thumbprints(args.add_certs) if args.add_certs else []
    remove_list = read_thumbprints(args.remove_certs) if args.remove_certs else []

    report = engine.audit(
        client,
        add_list,
        remove_list,
        stores,
        ledger_path=args.outpath or config.default_audit_path(),
        thresholds=_thresholds(args, config),
    )
    print(
        json.dumps(
            {
                "ledger": str(report.ledger_path),
                "root_stores": [store.store_id for store in report.root_stores],
                "rows": len(report.rows),
                "actions": report.action_count,
                "lookup_failures": report.lookup_failures,
                "ledger_write_failures": report.ledger_write_failures,
            },
            indent=2,
        )
    )
    return report


def _run_reconcile(args: argparse.Namespace, config: RotConfig, client) -> int:
    dry_run = args.dry_run or config.dry_run

    if args.import_csv:
        report = engine.reconcile_from_ledger(client, args.import_csv, dry_run=dry_run)
        lookup_failures = []
    else:
        if not args.stores:
            raise TrustRootError("--stores is required unless --import-csv is given")
        audit_report = _run_audit(args, config, client)
        if audit_report.ledger_write_failures:
            raise LedgerIOError(
                f"{audit_report.ledger_write_failures} audit rows were not written to "
                f"{audit_report.ledger_path}, refusing to apply"
            )
        report = engine.reconcile(client, audit_report.actions, dry_run=dry_run)
        lookup_failures = audit_report.lookup_failures

    print(json.dumps({"dry_run": report.dry_run, "up_to_date": report.up_to_date, **report.summary()}, indent=2))
    return EXIT_FAILURES if report.failed or lookup_failures else EXIT_OK


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="trustroot",
        description="Audit and reconcile trusted root certificates across certificate stores.",
    )
    subparsers = parser.add_subparsers(dest="command")

    _add_audit_parser(subparsers)
    _add_reconcile_parser(subparsers)
    _add_template_parser(subparsers)

    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return EXIT_OK

    config = RotConfig()
    setup_logging(config.log_level)

    if args.command == "generate-template":
        path = write_template(args.kind, args.outpath, args.fmt)
        print(path)
        return EXIT_OK

    try:
        client = build_client(config)
        if args.command == "audit":
            report = _run_audit(args, config, client)
            return EXIT_FAILURES if report.lookup_failures or report.ledger_write_failures else EXIT_OK
        return _run_reconcile(args, config, client)
    except (TrustRootError, ValueError) as error:
        logger.error("%s", error)
        print(f"Error: {error}", file=sys.stderr)
        return EXIT_FATAL


if __name__ == "__main__":
    sys.exit(main())
