"""Diff desired root certificates against classified store inventories."""

import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime

from trustroot.core.collaborators import StoreManagementClient
from trustroot.core.ledger import AuditLedger
from trustroot.core.models import (
    Action,
    ActionMap,
    AuditRow,
    CertificateRecord,
    ClassifiedStore,
    normalize_thumbprint,
)
from trustroot.errors import TrustRootError

logger = logging.getLogger(__name__)


@dataclass
class DiffResult:
    """Audit rows and actions produced by one diff pass."""

    rows: list[AuditRow] = field(default_factory=list)
    actions: ActionMap = field(default_factory=dict)
    lookup_failures: list[str] = field(default_factory=list)

    @property
    def action_count(self) -> int:
        return sum(len(items) for items in self.actions.values())


def _unique(thumbprints: Iterable[str]) -> list[str]:
    """Normalize and de-duplicate, keeping first-seen order."""
    normalized = (normalize_thumbprint(t) for t in thumbprints)
    return list(dict.fromkeys(t for t in normalized if t))


class _Resolver:
    """Resolves each thumbprint at most once per diff."""

    def __init__(self, client: StoreManagementClient, result: DiffResult):
        self.client = client
        self.result = result
        self._cache: dict[str, CertificateRecord | None] = {}

    def __call__(self, thumbprint: str) -> CertificateRecord | None:
        if thumbprint not in self._cache:
            try:
                self._cache[thumbprint] = self.client.resolve_certificate(thumbprint)
            except TrustRootError as error:
                logger.error("Unable to resolve certificate %s: %s", thumbprint, error)
                self.result.lookup_failures.append(thumbprint)
                self._cache[thumbprint] = None
        return self._cache[thumbprint]


def generate_actions(
    add_list: Iterable[str],
    remove_list: Iterable[str],
    stores: Sequence[ClassifiedStore],
    client: StoreManagementClient,
    ledger: AuditLedger | None = None,
    clock: Callable[[], datetime] | None = None,
) -> DiffResult:
    """Build audit rows and the per-thumbprint action map.

    Rows are streamed into ``ledger`` as they are produced, so a failure
    partway through still leaves a valid partial ledger on disk.
    """
    clock = clock or (lambda: datetime.now(UTC))
    audit_date = clock()
    result = DiffResult()
    resolve = _Resolver(client, result)
    root_stores = [store for store in stores if store.is_root]

    adds = _unique(add_list)
    removes = _unique(remove_list)

    for thumbprint in sorted(set(adds) & set(removes)):
        logger.warning("Certificate %s is in both the add and remove lists", thumbprint)

    def emit(
        thumbprint: str,
        record: CertificateRecord,
        store: ClassifiedStore,
        add: bool,
        remove: bool,
        deployed: bool,
    ):
        descriptor = store.descriptor
        row = AuditRow(
            thumbprint=thumbprint,
            cert_id=record.cert_id,
            subject_name=record.subject_dn,
            issuer=record.issuer_dn,
            store_id=descriptor.store_id,
            store_type=descriptor.store_type,
            machine=descriptor.machine,
            path=descriptor.path,
            add_cert=add,
            remove_cert=remove,
            deployed=deployed,
            audit_date=audit_date,
        )
        result.rows.append(row)
        if ledger is not None:
            ledger.write_row(row)

        if add or remove:
            result.actions.setdefault(thumbprint, []).append(
                Action(
                    thumbprint=thumbprint,
                    cert_id=record.cert_id,
                    store_id=descriptor.store_id,
                    store_type=descriptor.store_type,
                    store_path=descriptor.path,
                    add_cert=add,
                    remove_cert=remove,
                )
            )

    for thumbprint in adds:
        record = resolve(thumbprint)
        if record is None:
            continue
        for store in root_stores:
            if store.index.has_thumbprint(thumbprint):
                logger.debug("%s already deployed to %s", thumbprint, store.store_id)
                emit(thumbprint, record, store, add=False, remove=False, deployed=True)
            else:
                logger.debug("%s missing from %s, will add", thumbprint, store.store_id)
                emit(thumbprint, record, store, add=True, remove=False, deployed=False)

    for thumbprint in removes:
        record = resolve(thumbprint)
        if record is None:
            continue
        for store in root_stores:
            if store.index.has_thumbprint(thumbprint):
                logger.debug("%s deployed to %s, will remove", thumbprint, store.store_id)
                emit(thumbprint, record, store, add=False, remove=True, deployed=True)
            else:
                emit(thumbprint, record, store, add=False, remove=False, deployed=False)

    logger.info(
        "Audited %d certificates against %d root stores: %d rows, %d actions",
        len(adds) + len(removes),
        len(root_stores),
        len(result.rows),
        result.action_count,
    )
    return result
