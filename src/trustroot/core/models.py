"""Core data model for root-of-trust audits.

Every value here is built once per run from collaborator responses and
never mutated afterwards, so most dataclasses are frozen.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

# Parameter flag an inventory item carries when it holds a private key
PRIVATE_KEY_PARAMETER = "PrivateKeyEntry"


def normalize_thumbprint(thumbprint: str) -> str:
    """Upper-case a thumbprint and strip common separators."""
    return thumbprint.strip().replace(":", "").replace(" ", "").upper()


@dataclass(frozen=True)
class CertificateRecord:
    """A certificate resolved from its thumbprint.

    Attributes:
        cert_id: Numeric certificate ID in the certificate inventory
        thumbprint: Normalized hex fingerprint
        issuer_dn: Issuer distinguished name
        subject_dn: Subject distinguished name
        serial_number: Hex serial number
        locations: Store IDs the certificate is known to be deployed to
    """

    cert_id: int
    thumbprint: str
    issuer_dn: str
    subject_dn: str
    serial_number: str = ""
    locations: tuple[str, ...] = ()


@dataclass(frozen=True)
class InventoryCertificate:
    """One certificate entry inside a store inventory item."""

    cert_id: int
    thumbprint: str
    serial_number: str
    issued_dn: str
    issuer_dn: str

    @property
    def is_self_signed(self) -> bool:
        return self.issued_dn == self.issuer_dn


@dataclass(frozen=True)
class InventoryItem:
    """An inventory slot (alias) with its certificates and parameters."""

    name: str
    certificates: tuple[InventoryCertificate, ...] = ()
    parameters: dict[str, str] = field(default_factory=dict, hash=False)

    @property
    def has_private_key(self) -> bool:
        value = self.parameters.get(PRIVATE_KEY_PARAMETER, "")
        return str(value).lower() == "yes"


@dataclass(frozen=True)
class StoreDescriptor:
    """A candidate certificate store as supplied by the caller."""

    store_id: str
    store_type: str
    machine: str
    path: str


@dataclass(frozen=True)
class InventoryIndex:
    """Presence sets built from a store inventory."""

    thumbprints: frozenset[str] = frozenset()
    serials: frozenset[str] = frozenset()
    ids: frozenset[int] = frozenset()

    def has_thumbprint(self, thumbprint: str) -> bool:
        return normalize_thumbprint(thumbprint) in self.thumbprints


@dataclass(frozen=True)
class ClassifiedStore:
    """A store descriptor combined with its classification and inventory index."""

    descriptor: StoreDescriptor
    is_root: bool
    index: InventoryIndex

    @property
    def store_id(self) -> str:
        return self.descriptor.store_id


@dataclass(frozen=True)
class Thresholds:
    """Root store thresholds. Negative values mean no limit."""

    min_certs: int = -1
    max_keys: int = -1
    max_leaf_certs: int = -1


@dataclass(frozen=True)
class Action:
    """A single add or remove intent for one certificate on one store."""

    thumbprint: str
    cert_id: int
    store_id: str
    store_type: str
    store_path: str
    add_cert: bool = False
    remove_cert: bool = False

    def __post_init__(self):
        if self.add_cert and self.remove_cert:
            raise ValueError(
                f"Action for {self.thumbprint} on store {self.store_id} cannot both add and remove"
            )

    @property
    def is_noop(self) -> bool:
        return not (self.add_cert or self.remove_cert)


# Thumbprint -> actions in store iteration order
ActionMap = dict[str, list[Action]]


@dataclass(frozen=True)
class AuditRow:
    """One line of the audit ledger."""

    thumbprint: str
    cert_id: int
    subject_name: str
    issuer: str
    store_id: str
    store_type: str
    machine: str
    path: str
    add_cert: bool
    remove_cert: bool
    deployed: bool
    audit_date: datetime

    def __post_init__(self):
        if self.add_cert and self.remove_cert:
            raise ValueError(f"Audit row for {self.thumbprint} cannot both add and remove")

    def to_action(self) -> Action | None:
        """Return the action this row implies, or None for a compliant row."""
        if not (self.add_cert or self.remove_cert):
            return None
        return Action(
            thumbprint=self.thumbprint,
            cert_id=self.cert_id,
            store_id=self.store_id,
            store_type=self.store_type,
            store_path=self.path,
            add_cert=self.add_cert,
            remove_cert=self.remove_cert,
        )


class ActionState(Enum):
    """Lifecycle of an action during reconciliation."""

    PENDING = "pending"
    APPLIED = "applied"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class ActionOutcome:
    """The terminal state reached by one action."""

    action: Action
    state: ActionState = ActionState.PENDING
    error: Exception | None = None

    @property
    def operation(self) -> str:
        return "add" if self.action.add_cert else "remove"
