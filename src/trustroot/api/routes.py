"""Root-of-trust API routes."""

from datetime import UTC, datetime
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException

from trustroot.api.schemas import (
    AuditRequest,
    AuditResponse,
    AuditRowResponse,
    CertificateListResponse,
    CertificateResponse,
    HealthResponse,
    OutcomeResponse,
    ReconcileRequest,
    ReconcileResponse,
    StoreListResponse,
    StoreResponse,
)
from trustroot.config import RotConfig
from trustroot.core import engine
from trustroot.core.collaborators import StoreManagementClient
from trustroot.db.repository import FleetRepository
from trustroot.errors import FormatError, LedgerIOError

router = APIRouter()


def get_client() -> StoreManagementClient:
    """Dependency to get the backend client - will be overridden at app creation."""
    raise NotImplementedError("Client not configured")


def get_config() -> RotConfig:
    """Dependency to get configuration - will be overridden at app creation."""
    raise NotImplementedError("Config not configured")


@router.get("/health", response_model=HealthResponse)
async def health_check(config: Annotated[RotConfig, Depends(get_config)]):
    """Health check endpoint."""
    return HealthResponse(
        status="healthy",
        service="trustroot",
        backend=config.backend,
        api_port=config.api_port,
    )


@router.get("/stores", response_model=StoreListResponse)
async def list_stores(
    client: Annotated[StoreManagementClient, Depends(get_client)],
    limit: int = 100,
    offset: int = 0,
):
    """List stores registered in the local fleet."""
    if not isinstance(client, FleetRepository):
        raise HTTPException(status_code=501, detail="Store listing requires the local backend")

    stores = client.list_stores(limit=limit, offset=offset)
    return StoreListResponse(
        items=[StoreResponse.from_orm_with_entries(s) for s in stores],
        total=client.count_stores(),
        limit=limit,
        offset=offset,
    )


@router.get("/certificates", response_model=CertificateListResponse)
async def list_certificates(
    client: Annotated[StoreManagementClient, Depends(get_client)],
    limit: int = 100,
    offset: int = 0,
):
    """List certificates registered in the local fleet."""
    if not isinstance(client, FleetRepository):
        raise HTTPException(status_code=501, detail="Certificate listing requires the local backend")

    certificates = client.list_certificates(limit=limit, offset=offset)
    return CertificateListResponse(
        items=[CertificateResponse.from_orm_with_entries(c) for c in certificates],
        total=client.count_certificates(),
        limit=limit,
        offset=offset,
    )


@router.post("/audit", response_model=AuditResponse)
async def run_audit(
    data: AuditRequest,
    client: Annotated[StoreManagementClient, Depends(get_client)],
    config: Annotated[RotConfig, Depends(get_config)],
):
    """Audit stores against the add/remove lists and write a ledger."""
    if not data.add_thumbprints and not data.remove_thumbprints:
        raise HTTPException(status_code=400, detail="At least one thumbprint to add or remove is required")

    ledger_name = data.ledger_name or f"rot_audit_{datetime.now(UTC):%Y%m%dT%H%M%SZ}.csv"

    try:
        report = engine.audit(
            client,
            data.add_thumbprints,
            data.remove_thumbprints,
            [store.to_descriptor() for store in data.stores],
            ledger_path=config.audit_dir / ledger_name,
            thresholds=data.thresholds(config.thresholds()),
        )
    except LedgerIOError as e:
        raise HTTPException(status_code=500, detail=str(e)) from e

    return AuditResponse(
        ledger_name=ledger_name,
        rows=[AuditRowResponse.from_row(row) for row in report.rows],
        action_count=report.action_count,
        root_stores=[store.store_id for store in report.root_stores],
        lookup_failures=report.lookup_failures,
        ledger_write_failures=report.ledger_write_failures,
    )


@router.post("/reconcile", response_model=ReconcileResponse)
async def run_reconcile(
    data: ReconcileRequest,
    client: Annotated[StoreManagementClient, Depends(get_client)],
    config: Annotated[RotConfig, Depends(get_config)],
):
    """Apply the actions recorded in an audit ledger."""
    ledger_path = config.audit_dir / data.ledger_name
    if not ledger_path.is_file():
        raise HTTPException(status_code=404, detail="Audit ledger not found")

    dry_run = config.dry_run if data.dry_run is None else data.dry_run

    try:
        report = engine.reconcile_from_ledger(client, ledger_path, dry_run=dry_run)
    except FormatError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except LedgerIOError as e:
        raise HTTPException(status_code=500, detail=str(e)) from e

    return ReconcileResponse(
        dry_run=report.dry_run,
        up_to_date=report.up_to_date,
        summary=report.summary(),
        outcomes=[OutcomeResponse.from_outcome(o) for o in report.outcomes],
    )
