"""Pydantic schemas for the root-of-trust API."""

from datetime import datetime
from typing import Annotated

from pydantic import BaseModel, Field, field_validator

from trustroot.core.models import ActionOutcome, AuditRow, StoreDescriptor, Thresholds, normalize_thumbprint

ThresholdValue = Annotated[int, Field(ge=-1)]


class StoreIn(BaseModel):
    """A candidate store in an audit request."""

    id: Annotated[str, Field(min_length=1)]
    type: str = ""
    machine: str = ""
    path: str = ""

    model_config = {"str_strip_whitespace": True}

    def to_descriptor(self) -> StoreDescriptor:
        return StoreDescriptor(store_id=self.id, store_type=self.type, machine=self.machine, path=self.path)


class AuditRequest(BaseModel):
    """Request body for running an audit."""

    add_thumbprints: list[str] = []
    remove_thumbprints: list[str] = []
    stores: Annotated[list[StoreIn], Field(min_length=1)]
    min_certs: ThresholdValue | None = None
    max_keys: ThresholdValue | None = None
    max_leaf_certs: ThresholdValue | None = None
    ledger_name: Annotated[str, Field(pattern=r"^[\w.-]+\.csv$")] | None = None

    @field_validator("add_thumbprints", "remove_thumbprints")
    @classmethod
    def normalize(cls, v):
        return [normalize_thumbprint(t) for t in v if normalize_thumbprint(t)]

    def thresholds(self, defaults: Thresholds) -> Thresholds:
        """Overlay request thresholds on configured defaults."""
        return Thresholds(
            min_certs=defaults.min_certs if self.min_certs is None else self.min_certs,
            max_keys=defaults.max_keys if self.max_keys is None else self.max_keys,
            max_leaf_certs=defaults.max_leaf_certs if self.max_leaf_certs is None else self.max_leaf_certs,
        )


class AuditRowResponse(BaseModel):
    """One audit ledger row."""

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

    model_config = {"from_attributes": True}

    @classmethod
    def from_row(cls, row: AuditRow):
        return cls.model_validate(row)


class AuditResponse(BaseModel):
    """Response for an audit run."""

    ledger_name: str
    rows: list[AuditRowResponse]
    action_count: int
    root_stores: list[str]
    lookup_failures: list[str]
    ledger_write_failures: int = 0


class ReconcileRequest(BaseModel):
    """Request body for applying a previously written ledger."""

    ledger_name: Annotated[str, Field(pattern=r"^[\w.-]+\.csv$")]
    dry_run: bool | None = None


class OutcomeResponse(BaseModel):
    """Outcome of a single action."""

    thumbprint: str
    store_id: str
    store_path: str
    operation: str
    state: str
    error: str | None = None

    @classmethod
    def from_outcome(cls, outcome: ActionOutcome):
        return cls(
            thumbprint=outcome.action.thumbprint,
            store_id=outcome.action.store_id,
            store_path=outcome.action.store_path,
            operation=outcome.operation,
            state=outcome.state.value,
            error=str(outcome.error) if outcome.error else None,
        )


class ReconcileResponse(BaseModel):
    """Response for a reconcile run."""

    dry_run: bool
    up_to_date: bool
    summary: dict[str, int]
    outcomes: list[OutcomeResponse]


class CertificateResponse(BaseModel):
    """A certificate known to the local fleet."""

    id: int
    thumbprint: str
    serial_number: str
    subject_name: str
    issuer_name: str
    self_signed: bool
    store_ids: list[str]

    @classmethod
    def from_orm_with_entries(cls, obj):
        return cls(
            id=obj.id,
            thumbprint=obj.thumbprint,
            serial_number=obj.serial_number,
            subject_name=obj.subject_name,
            issuer_name=obj.issuer_name,
            self_signed=obj.is_self_signed,
            store_ids=sorted({entry.store_id for entry in obj.entries}),
        )


class CertificateListResponse(BaseModel):
    """Response for listing certificates."""

    items: list[CertificateResponse]
    total: int
    limit: int
    offset: int


class StoreResponse(BaseModel):
    """A store registered in the local fleet."""

    id: str
    store_type: str
    client_machine: str
    store_path: str
    certificate_count: int

    @classmethod
    def from_orm_with_entries(cls, obj):
        return cls(
            id=obj.id,
            store_type=obj.store_type,
            client_machine=obj.client_machine,
            store_path=obj.store_path,
            certificate_count=len(obj.entries),
        )


class StoreListResponse(BaseModel):
    """Response for listing stores."""

    items: list[StoreResponse]
    total: int
    limit: int
    offset: int


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    service: str
    backend: str
    api_port: int
