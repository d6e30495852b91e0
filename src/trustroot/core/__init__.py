"""Audit and reconcile engine for root-of-trust certificates."""

from trustroot.core.classifier import classify
from trustroot.core.diff import DiffResult, generate_actions
from trustroot.core.engine import AuditReport, audit, prepare_stores, reconcile, reconcile_from_ledger
from trustroot.core.inventory import build_index
from trustroot.core.ledger import AUDIT_SCHEMA, AuditLedger, LedgerSchema, load_actions
from trustroot.core.reconciler import ReconcileReport, apply_actions

__all__ = [
    "AUDIT_SCHEMA",
    "AuditLedger",
    "AuditReport",
    "DiffResult",
    "LedgerSchema",
    "ReconcileReport",
    "apply_actions",
    "audit",
    "build_index",
    "classify",
    "generate_actions",
    "load_actions",
    "prepare_stores",
    "reconcile",
    "reconcile_from_ledger",
]
