"""Root-of-trust certificate audit and reconciliation."""

from trustroot.core.engine import audit, reconcile, reconcile_from_ledger

__all__ = ["audit", "reconcile", "reconcile_from_ledger"]
