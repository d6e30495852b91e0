"""Interface the engine expects from a store-management backend."""

from typing import Protocol

from trustroot.core.models import CertificateRecord, InventoryItem, StoreDescriptor


class StoreManagementClient(Protocol):
    """Backend that can resolve certificates and stores and schedule store jobs.

    Implemented by ``trustroot.db.FleetRepository`` (local database) and
    ``trustroot.client.CommandClient`` (Keyfactor Command REST API).
    """

    def resolve_certificate(self, thumbprint: str) -> CertificateRecord:
        """Raise CertificateNotFoundError when the thumbprint is unknown."""
        ...

    def fetch_store(self, store_id: str) -> StoreDescriptor:
        """Raise StoreNotFoundError when the store ID is unknown."""
        ...

    def fetch_inventory(self, store_id: str) -> list[InventoryItem]: ...

    def add_certificate_to_store(
        self,
        cert_id: int,
        store_id: str,
        overwrite: bool = True,
        immediate: bool = True,
    ) -> None: ...

    def remove_certificate_from_store(
        self,
        cert_id: int,
        store_id: str,
        alias: str,
        immediate: bool = True,
    ) -> None: ...
