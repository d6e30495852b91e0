"""Database engine and session management for the local fleet."""

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, scoped_session, sessionmaker
from sqlalchemy.pool import StaticPool

from trustroot.db.models import Base

_engine = None
_session_factory = None


def get_engine(database_url: str):
    """Get or create the fleet database engine."""
    global _engine
    if _engine is None:
        kwargs = {}
        if database_url.startswith("sqlite://"):
            kwargs["connect_args"] = {"check_same_thread": False}
            # In-memory databases must share one connection
            if database_url in ("sqlite://", "sqlite:///:memory:"):
                kwargs["poolclass"] = StaticPool

        _engine = create_engine(database_url, pool_pre_ping=True, **kwargs)
    return _engine


def get_session(database_url: str) -> scoped_session[Session]:
    """Get the scoped session factory shared by the repository and API."""
    global _session_factory
    if _session_factory is None:
        _session_factory = scoped_session(sessionmaker(bind=get_engine(database_url)))
    return _session_factory


def init_db(database_url: str):
    """Create the certificate, store and entry tables if missing."""
    engine = get_engine(database_url)
    Base.metadata.create_all(engine)


def dispose():
    """Drop the cached engine and session factory."""
    global _engine, _session_factory
    if _session_factory is not None:
        _session_factory.remove()
        _session_factory = None
    if _engine is not None:
        _engine.dispose()
        _engine = None
