"""Repository for the local certificate store fleet.

Implements the StoreManagementClient interface directly on top of the
database, so audits and reconciles can run without a remote Command
instance. Add and remove requests are applied to the inventory as soon as
they are made.
"""

import binascii
import logging
from collections.abc import Sequence
from contextlib import contextmanager

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, scoped_session

from trustroot.core.models import (
    PRIVATE_KEY_PARAMETER,
    CertificateRecord,
    InventoryCertificate,
    InventoryItem,
    StoreDescriptor,
    normalize_thumbprint,
)
from trustroot.db.models import Certificate, CertificateStore, StoreEntry
from trustroot.errors import CertificateNotFoundError, CollaboratorError, StoreNotFoundError

logger = logging.getLogger(__name__)


def _name(name: x509.Name) -> str:
    return ",".join([attr.rfc4514_string() for attr in name])


def _serial_hex(serial_number: int) -> str:
    serial_number_bytes = serial_number.to_bytes((serial_number.bit_length() + 7) // 8, byteorder="big")
    return binascii.hexlify(serial_number_bytes).decode("utf-8").upper()


class FleetRepository:
    """Repository for certificate, store and inventory operations."""

    def __init__(self, session: scoped_session[Session] | Session):
        self.session = session

    # Certificates

    def get_certificate(self, cert_id: int) -> Certificate | None:
        return self.session.get(Certificate, cert_id)

    def get_by_thumbprint(self, thumbprint: str) -> Certificate | None:
        """Get a certificate by its thumbprint."""
        return (
            self.session.query(Certificate)
            .filter_by(thumbprint=normalize_thumbprint(thumbprint))
            .first()
        )

    def list_certificates(self, limit: int = 100, offset: int = 0) -> Sequence[Certificate]:
        return (
            self.session.query(Certificate)
            .order_by(Certificate.subject_name)
            .limit(limit)
            .offset(offset)
            .all()
        )

    def count_certificates(self) -> int:
        return self.session.query(Certificate).count()

    def import_pem(self, pem_data: bytes) -> Certificate:
        """Add a certificate from PEM data, returning the existing row if known."""
        try:
            cert = x509.load_pem_x509_certificate(pem_data)
        except ValueError as e:
            raise ValueError(f"Invalid PEM certificate: {e}") from e

        thumbprint = binascii.hexlify(cert.fingerprint(hashes.SHA1())).decode("utf-8").upper()

        existing = self.get_by_thumbprint(thumbprint)
        if existing:
            return existing

        certificate = Certificate(
            thumbprint=thumbprint,
            serial_number=_serial_hex(cert.serial_number),
            subject_name=_name(cert.subject),
            issuer_name=_name(cert.issuer),
            certificate=cert.public_bytes(serialization.Encoding.PEM).decode("utf-8"),
        )
        self.session.add(certificate)
        self.session.commit()

        logger.info("Imported %s <%s>", thumbprint, certificate.subject_name)
        return certificate

    # Stores

    def get_store(self, store_id: str) -> CertificateStore | None:
        return self.session.get(CertificateStore, store_id)

    def list_stores(self, limit: int = 100, offset: int = 0) -> Sequence[CertificateStore]:
        return (
            self.session.query(CertificateStore)
            .order_by(CertificateStore.client_machine, CertificateStore.store_path)
            .limit(limit)
            .offset(offset)
            .all()
        )

    def count_stores(self) -> int:
        return self.session.query(CertificateStore).count()

    def add_store(self, store_id: str, store_type: str, client_machine: str, store_path: str) -> CertificateStore:
        """Add or update a certificate store."""
        store = self.get_store(store_id)
        if store:
            store.store_type = store_type
            store.client_machine = client_machine
            store.store_path = store_path
        else:
            store = CertificateStore(
                id=store_id,
                store_type=store_type,
                client_machine=client_machine,
                store_path=store_path,
            )
            self.session.add(store)

        self.session.commit()
        logger.info("Registered store %s %s:%s", store_id, client_machine, store_path)
        return store

    def add_entry(
        self,
        store_id: str,
        cert_id: int,
        alias: str | None = None,
        private_key: bool = False,
    ) -> StoreEntry:
        """Record a certificate as present in a store's inventory."""
        store = self._require_store(store_id)
        certificate = self._require_certificate(cert_id)
        alias = alias or certificate.thumbprint

        entry = self._entry_by_alias(store.id, alias)
        if entry:
            entry.certificate_id = certificate.id
            entry.private_key = private_key
        else:
            entry = StoreEntry(
                store_id=store.id,
                certificate_id=certificate.id,
                alias=alias,
                private_key=private_key,
            )
            self.session.add(entry)

        self.session.commit()
        return entry

    # StoreManagementClient

    @contextmanager
    def _database_errors(self, operation: str):
        """Roll back and raise CollaboratorError for any database failure."""
        try:
            yield
        except SQLAlchemyError as error:
            self.session.rollback()
            raise CollaboratorError(f"{operation} failed: {error}") from error

    def resolve_certificate(self, thumbprint: str) -> CertificateRecord:
        with self._database_errors(f"Resolving {thumbprint}"):
            certificate = self.get_by_thumbprint(thumbprint)
            if certificate is None:
                raise CertificateNotFoundError(thumbprint)

            return CertificateRecord(
                cert_id=certificate.id,
                thumbprint=certificate.thumbprint,
                issuer_dn=certificate.issuer_name,
                subject_dn=certificate.subject_name,
                serial_number=certificate.serial_number,
                locations=tuple(sorted({entry.store_id for entry in certificate.entries})),
            )

    def fetch_store(self, store_id: str) -> StoreDescriptor:
        with self._database_errors(f"Fetching store {store_id}"):
            store = self._require_store(store_id)
            return StoreDescriptor(
                store_id=store.id,
                store_type=store.store_type,
                machine=store.client_machine,
                path=store.store_path,
            )

    def fetch_inventory(self, store_id: str) -> list[InventoryItem]:
        items = []
        with self._database_errors(f"Fetching inventory of {store_id}"):
            store = self._require_store(store_id)
            for entry in sorted(store.entries, key=lambda e: e.alias):
                cert = entry.certificate
                items.append(
                    InventoryItem(
                        name=entry.alias,
                        certificates=(
                            InventoryCertificate(
                                cert_id=cert.id,
                                thumbprint=cert.thumbprint,
                                serial_number=cert.serial_number,
                                issued_dn=cert.subject_name,
                                issuer_dn=cert.issuer_name,
                            ),
                        ),
                        parameters={PRIVATE_KEY_PARAMETER: "Yes" if entry.private_key else "No"},
                    )
                )
        return items

    def add_certificate_to_store(
        self,
        cert_id: int,
        store_id: str,
        overwrite: bool = True,
        immediate: bool = True,
    ) -> None:
        """Deploy a certificate to a store under its thumbprint alias."""
        with self._database_errors(f"Adding certificate {cert_id} to {store_id}"):
            store = self._require_store(store_id)
            certificate = self._require_certificate(cert_id)

            entry = self._entry_by_alias(store.id, certificate.thumbprint)
            if entry and not overwrite:
                raise CollaboratorError(f"{certificate.thumbprint} already exists in store {store_id}")

            if entry:
                entry.certificate_id = certificate.id
            else:
                self.session.add(
                    StoreEntry(store_id=store.id, certificate_id=certificate.id, alias=certificate.thumbprint)
                )
            self.session.commit()

            logger.info("Added %s to %s:%s", certificate.thumbprint, store.client_machine, store.store_path)

    def remove_certificate_from_store(
        self,
        cert_id: int,
        store_id: str,
        alias: str,
        immediate: bool = True,
    ) -> None:
        """Remove entries matching the alias or certificate ID from a store."""
        alias = normalize_thumbprint(alias)

        with self._database_errors(f"Removing {alias} from {store_id}"):
            store = self._require_store(store_id)
            removed = 0
            for entry in list(store.entries):
                if entry.certificate_id == cert_id or normalize_thumbprint(entry.alias) == alias:
                    self.session.delete(entry)
                    removed += 1
            self.session.commit()

            if removed:
                logger.info("Removed %s from %s:%s", alias, store.client_machine, store.store_path)
            else:
                logger.info("%s not present in %s:%s", alias, store.client_machine, store.store_path)

    # Helpers

    def _entry_by_alias(self, store_id: str, alias: str) -> StoreEntry | None:
        return self.session.query(StoreEntry).filter_by(store_id=store_id, alias=alias).first()

    def _require_store(self, store_id: str) -> CertificateStore:
        store = self.get_store(store_id)
        if store is None:
            raise StoreNotFoundError(store_id)
        return store

    def _require_certificate(self, cert_id: int) -> Certificate:
        certificate = self.get_certificate(cert_id)
        if certificate is None:
            raise CertificateNotFoundError(str(cert_id))
        return certificate
