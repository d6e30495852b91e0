"""Local certificate store fleet database layer."""

from trustroot.db.database import dispose, get_engine, get_session, init_db
from trustroot.db.models import Base, Certificate, CertificateStore, StoreEntry
from trustroot.db.repository import FleetRepository

__all__ = [
    "Base",
    "Certificate",
    "CertificateStore",
    "FleetRepository",
    "StoreEntry",
    "dispose",
    "get_engine",
    "get_session",
    "init_db",
]
