"""Shared fixtures for trustroot tests."""

from datetime import UTC, datetime, timedelta

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from trustroot.core.models import (
    PRIVATE_KEY_PARAMETER,
    CertificateRecord,
    InventoryCertificate,
    InventoryItem,
    StoreDescriptor,
    normalize_thumbprint,
)
from trustroot.db.models import Base
from trustroot.db.repository import FleetRepository
from trustroot.errors import CertificateNotFoundError, CollaboratorError, StoreNotFoundError

ROOT_DN = "CN=Example Root CA,O=Example"
AUDIT_TIME = datetime(2024, 5, 1, 12, 0, 0, tzinfo=UTC)


def fixed_clock() -> datetime:
    return AUDIT_TIME


def make_cert(
    thumbprint: str,
    cert_id: int = 1,
    issued_dn: str = ROOT_DN,
    issuer_dn: str = ROOT_DN,
    serial: str = "01",
) -> InventoryCertificate:
    return InventoryCertificate(
        cert_id=cert_id,
        thumbprint=thumbprint,
        serial_number=serial,
        issued_dn=issued_dn,
        issuer_dn=issuer_dn,
    )


def make_item(*certs: InventoryCertificate, private_key: bool = False, name: str = "entry") -> InventoryItem:
    return InventoryItem(
        name=name,
        certificates=tuple(certs),
        parameters={PRIVATE_KEY_PARAMETER: "Yes" if private_key else "No"},
    )


def make_store(store_id: str = "store-1", path: str = "/etc/ssl/certs") -> StoreDescriptor:
    return StoreDescriptor(store_id=store_id, store_type="PEM", machine=f"{store_id}.example.com", path=path)


class FakeStoreClient:
    """In-memory store-management backend that records every call."""

    def __init__(self):
        self.certificates: dict[str, CertificateRecord] = {}
        self.stores: dict[str, StoreDescriptor] = {}
        self.inventories: dict[str, list[InventoryItem]] = {}
        self.calls: list[tuple] = []
        self.failing_stores: set[str] = set()
        self.failing_inventories: set[str] = set()

    def add_certificate(self, thumbprint: str, cert_id: int, subject: str = ROOT_DN, issuer: str = ROOT_DN):
        thumbprint = normalize_thumbprint(thumbprint)
        self.certificates[thumbprint] = CertificateRecord(
            cert_id=cert_id,
            thumbprint=thumbprint,
            issuer_dn=issuer,
            subject_dn=subject,
        )

    def add_store(self, descriptor: StoreDescriptor, inventory: list[InventoryItem] | None = None):
        self.stores[descriptor.store_id] = descriptor
        self.inventories[descriptor.store_id] = list(inventory or [])

    @property
    def mutating_calls(self) -> list[tuple]:
        return [call for call in self.calls if call[0] in ("add", "remove")]

    def resolve_certificate(self, thumbprint: str) -> CertificateRecord:
        self.calls.append(("resolve", thumbprint))
        try:
            return self.certificates[normalize_thumbprint(thumbprint)]
        except KeyError:
            raise CertificateNotFoundError(thumbprint) from None

    def fetch_store(self, store_id: str) -> StoreDescriptor:
        self.calls.append(("store", store_id))
        if store_id not in self.stores:
            raise StoreNotFoundError(store_id)
        return self.stores[store_id]

    def fetch_inventory(self, store_id: str) -> list[InventoryItem]:
        self.calls.append(("inventory", store_id))
        if store_id in self.failing_inventories:
            raise CollaboratorError(f"inventory unavailable for {store_id}")
        return self.inventories[store_id]

    def add_certificate_to_store(self, cert_id, store_id, overwrite=True, immediate=True):
        self.calls.append(("add", cert_id, store_id, overwrite, immediate))
        if store_id in self.failing_stores:
            raise CollaboratorError(f"store {store_id} is offline")

    def remove_certificate_from_store(self, cert_id, store_id, alias, immediate=True):
        self.calls.append(("remove", cert_id, store_id, alias, immediate))
        if store_id in self.failing_stores:
            raise CollaboratorError(f"store {store_id} is offline")


@pytest.fixture
def fake_client() -> FakeStoreClient:
    return FakeStoreClient()


@pytest.fixture
def session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    session = sessionmaker(bind=engine)()
    yield session
    session.close()
    engine.dispose()


@pytest.fixture
def repository(session) -> FleetRepository:
    return FleetRepository(session)


def generate_pem(common_name: str, issuer_name: str | None = None) -> bytes:
    """Generate a throwaway self-signed (or differently named) certificate."""
    key = ec.generate_private_key(ec.SECP256R1())
    subject = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    issuer = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, issuer_name or common_name)])
    now = datetime.now(UTC)
    cert = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=365))
        .sign(key, hashes.SHA256())
    )
    return cert.public_bytes(serialization.Encoding.PEM)
