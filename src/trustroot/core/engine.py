"""Entry points for root-of-trust audits and reconciliation.

Each operation is a plain function taking structured parameters, so the
CLI, the HTTP API and tests all drive the same code path.
"""

import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from trustroot.core.collaborators import StoreManagementClient
from trustroot.core.diff import generate_actions
from trustroot.core.inventory import classify_store
from trustroot.core.ledger import AUDIT_SCHEMA, AuditLedger, LedgerSchema, load_actions
from trustroot.core.models import ActionMap, AuditRow, ClassifiedStore, StoreDescriptor, Thresholds
from trustroot.core.reconciler import ReconcileReport, apply_actions
from trustroot.errors import TrustRootError

logger = logging.getLogger(__name__)


@dataclass
class AuditReport:
    """Result of an audit run."""

    ledger_path: Path
    rows: list[AuditRow] = field(default_factory=list)
    actions: ActionMap = field(default_factory=dict)
    root_stores: list[ClassifiedStore] = field(default_factory=list)
    store_failures: list[str] = field(default_factory=list)
    certificate_failures: list[str] = field(default_factory=list)
    ledger_write_failures: int = 0

    @property
    def lookup_failures(self) -> list[str]:
        return self.store_failures + self.certificate_failures

    @property
    def action_count(self) -> int:
        return sum(len(items) for items in self.actions.values())


def prepare_stores(
    client: StoreManagementClient,
    descriptors: Iterable[StoreDescriptor],
    thresholds: Thresholds,
) -> tuple[list[ClassifiedStore], list[str]]:
    """Look up, inventory and classify each candidate store.

    Returns the root stores and the IDs of stores that could not be
    looked up or inventoried.
    """
    root_stores = []
    failures = []

    for descriptor in descriptors:
        try:
            client.fetch_store(descriptor.store_id)
            inventory = client.fetch_inventory(descriptor.store_id)
        except TrustRootError as error:
            logger.error("Skipping store %s: %s", descriptor.store_id, error)
            failures.append(descriptor.store_id)
            continue

        store = classify_store(descriptor, inventory, thresholds)
        if not store.is_root:
            logger.info("Store %s (%s) is not a root store, skipping", descriptor.store_id, descriptor.path)
            continue

        logger.debug("Store %s (%s) is a root store", descriptor.store_id, descriptor.path)
        root_stores.append(store)

    return root_stores, failures


def audit(
    client: StoreManagementClient,
    add_list: Iterable[str],
    remove_list: Iterable[str],
    descriptors: Sequence[StoreDescriptor],
    ledger_path: str | Path,
    thresholds: Thresholds | None = None,
    schema: LedgerSchema = AUDIT_SCHEMA,
    clock: Callable[[], datetime] | None = None,
) -> AuditReport:
    """Audit the given stores and write the ledger.

    Raises LedgerIOError if the ledger cannot be created; an audit without
    a record is never performed.
    """
    thresholds = thresholds or Thresholds()
    ledger = AuditLedger(ledger_path, schema=schema)

    with ledger:
        root_stores, store_failures = prepare_stores(client, descriptors, thresholds)
        diff = generate_actions(add_list, remove_list, root_stores, client, ledger=ledger, clock=clock)

    report = AuditReport(
        ledger_path=ledger.path,
        rows=diff.rows,
        actions=diff.actions,
        root_stores=root_stores,
        store_failures=store_failures,
        certificate_failures=diff.lookup_failures,
        ledger_write_failures=ledger.write_failures,
    )

    if report.lookup_failures:
        logger.warning(
            "Audit finished with %d lookup failures: %s",
            len(report.lookup_failures),
            ", ".join(report.lookup_failures),
        )
    if report.ledger_write_failures:
        logger.warning("%d audit rows could not be written to %s", report.ledger_write_failures, ledger.path)
    return report


def reconcile(
    client: StoreManagementClient,
    actions: ActionMap,
    dry_run: bool = False,
) -> ReconcileReport:
    """Apply an action map to the fleet."""
    return apply_actions(actions, client, dry_run=dry_run)


def reconcile_from_ledger(
    client: StoreManagementClient,
    ledger_path: str | Path,
    dry_run: bool = False,
    schema: LedgerSchema = AUDIT_SCHEMA,
) -> ReconcileReport:
    """Replay a previously written audit ledger into the reconciler."""
    actions = load_actions(ledger_path, schema=schema)
    return reconcile(client, actions, dry_run=dry_run)
