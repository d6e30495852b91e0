"""Keyfactor Command REST API backend.

Maps the StoreManagementClient interface onto the Command certificate and
certificate store endpoints. Add and remove requests schedule orchestrator
jobs on the Command side and return as soon as the job is accepted.
"""

import logging
from typing import Any

import httpx

from trustroot.config import RotConfig
from trustroot.core.models import (
    CertificateRecord,
    InventoryCertificate,
    InventoryItem,
    StoreDescriptor,
    normalize_thumbprint,
)
from trustroot.errors import CertificateNotFoundError, CollaboratorError, StoreNotFoundError

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    "x-keyfactor-requested-with": "APIClient",
    "x-keyfactor-api-version": "1",
    "Accept": "application/json",
}


def _inventory_certificate(data: dict[str, Any]) -> InventoryCertificate:
    return InventoryCertificate(
        cert_id=int(data.get("Id") or 0),
        thumbprint=normalize_thumbprint(data.get("Thumbprint") or ""),
        serial_number=(data.get("SerialNumber") or "").upper(),
        issued_dn=data.get("IssuedDN") or "",
        issuer_dn=data.get("IssuerDN") or "",
    )


class CommandClient:
    """Synchronous client for the Keyfactor Command REST API.

    Args:
        hostname: Command server hostname (with optional scheme)
        username: API user name
        password: API user password
        domain: Optional Active Directory domain prefixed to the user name
        api_path: Path segment of the REST API
        timeout: Request timeout in seconds
        transport: Optional httpx transport, used by tests
    """

    def __init__(
        self,
        hostname: str,
        username: str = "",
        password: str = "",
        domain: str = "",
        api_path: str = "KeyfactorAPI",
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ):
        if not hostname:
            raise ValueError("A Command hostname is required")

        base = hostname if hostname.startswith(("http://", "https://")) else f"https://{hostname}"
        user = f"{domain}\\{username}" if domain and username else username

        self.base_url = f"{base.rstrip('/')}/{api_path.strip('/')}"
        self._client = httpx.Client(
            base_url=self.base_url,
            auth=httpx.BasicAuth(user, password) if user else None,
            headers=DEFAULT_HEADERS,
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_config(cls, config: RotConfig, transport: httpx.BaseTransport | None = None) -> "CommandClient":
        return cls(
            hostname=config.command_hostname,
            username=config.command_username,
            password=config.command_password,
            domain=config.command_domain,
            api_path=config.command_api_path,
            timeout=config.http_timeout,
            transport=transport,
        )

    def __enter__(self) -> "CommandClient":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def close(self):
        self._client.close()

    def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            response = self._client.request(method, url, **kwargs)
        except httpx.HTTPError as error:
            raise CollaboratorError(f"{method} {url} failed: {error}") from error

        if response.status_code == 404:
            return response
        if response.is_error:
            raise CollaboratorError(f"{method} {url} returned {response.status_code}: {response.text[:200]}")
        return response

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as error:
            raise CollaboratorError(f"Invalid JSON from {response.request.url}: {error}") from error

    def resolve_certificate(self, thumbprint: str) -> CertificateRecord:
        thumbprint = normalize_thumbprint(thumbprint)
        response = self._request(
            "GET",
            "/Certificates",
            params={
                "pq.queryString": f'Thumbprint -eq "{thumbprint}"',
                "includeLocations": "true",
                "includeMetadata": "true",
            },
        )
        results = self._json(response) if response.status_code != 404 else []
        if not results:
            raise CertificateNotFoundError(thumbprint)

        data = results[0]
        locations = tuple(
            str(location["CertStoreId"]) for location in data.get("Locations") or [] if location.get("CertStoreId")
        )
        return CertificateRecord(
            cert_id=int(data["Id"]),
            thumbprint=normalize_thumbprint(data.get("Thumbprint") or thumbprint),
            issuer_dn=data.get("IssuerDN") or "",
            subject_dn=data.get("IssuedDN") or "",
            serial_number=(data.get("SerialNumber") or "").upper(),
            locations=locations,
        )

    def fetch_store(self, store_id: str) -> StoreDescriptor:
        response = self._request("GET", f"/CertificateStores/{store_id}")
        if response.status_code == 404:
            raise StoreNotFoundError(store_id)

        data = self._json(response)
        return StoreDescriptor(
            store_id=str(data.get("Id") or store_id),
            store_type=str(data.get("CertStoreType", "")),
            machine=data.get("ClientMachine") or "",
            path=data.get("StorePath") or "",
        )

    def fetch_inventory(self, store_id: str) -> list[InventoryItem]:
        response = self._request("GET", f"/CertificateStores/{store_id}/Inventory")
        if response.status_code == 404:
            raise StoreNotFoundError(store_id)

        items = []
        for item in self._json(response) or []:
            parameters = {key: str(value) for key, value in (item.get("Parameters") or {}).items()}
            items.append(
                InventoryItem(
                    name=item.get("Name") or "",
                    certificates=tuple(_inventory_certificate(cert) for cert in item.get("Certificates") or []),
                    parameters=parameters,
                )
            )
        logger.debug("Store %s inventory has %d items", store_id, len(items))
        return items

    def add_certificate_to_store(
        self,
        cert_id: int,
        store_id: str,
        overwrite: bool = True,
        immediate: bool = True,
    ) -> None:
        body = {
            "CertificateId": cert_id,
            "CertificateStores": [{"CertificateStoreId": store_id, "Overwrite": overwrite}],
            "Schedule": {"Immediate": immediate},
            "CollectionId": 0,
        }
        response = self._request("POST", "/CertificateStores/Certificates/Add", json=body)
        if response.status_code == 404:
            raise StoreNotFoundError(store_id)
        logger.debug("Add job for certificate %d on store %s accepted", cert_id, store_id)

    def remove_certificate_from_store(
        self,
        cert_id: int,
        store_id: str,
        alias: str,
        immediate: bool = True,
    ) -> None:
        body = {
            "CertificateStores": [{"CertificateStoreId": store_id, "Alias": alias}],
            "Schedule": {"Immediate": immediate},
            "CollectionId": 0,
        }
        response = self._request("POST", "/CertificateStores/Certificates/Remove", json=body)
        if response.status_code == 404:
            raise StoreNotFoundError(store_id)
        logger.debug("Remove job for %s (certificate %d) on store %s accepted", alias, cert_id, store_id)
