"""SQLAlchemy models for the local certificate store fleet."""

from sqlalchemy import Boolean, Column, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


class Certificate(Base):
    """A certificate known to the fleet inventory."""

    __tablename__ = "certificates"

    id = Column(Integer, primary_key=True, autoincrement=True)
    thumbprint = Column(String(64), unique=True, nullable=False)  # SHA-1, upper-case hex
    serial_number = Column(String(64), nullable=False)
    subject_name = Column(Text, nullable=False)
    issuer_name = Column(Text, nullable=False)
    certificate = Column(Text, nullable=True)  # PEM format

    entries = relationship("StoreEntry", back_populates="certificate", cascade="all, delete-orphan")

    @property
    def is_self_signed(self) -> bool:
        return self.subject_name == self.issuer_name

    def __repr__(self) -> str:
        return f"<Certificate id={self.id} thumbprint={self.thumbprint}>"


class CertificateStore(Base):
    """A certificate store on a client machine."""

    __tablename__ = "certificate_stores"

    id = Column(String(36), primary_key=True)
    store_type = Column(String(50), nullable=False)
    client_machine = Column(String(255), nullable=False)
    store_path = Column(Text, nullable=False)

    entries = relationship("StoreEntry", back_populates="store", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<CertificateStore id={self.id} path={self.store_path}>"


class StoreEntry(Base):
    """A certificate deployed to a store under an alias."""

    __tablename__ = "store_entries"
    __table_args__ = (UniqueConstraint("store_id", "alias"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    store_id = Column(String(36), ForeignKey("certificate_stores.id"), nullable=False)
    certificate_id = Column(Integer, ForeignKey("certificates.id"), nullable=False)
    alias = Column(String(255), nullable=False)
    private_key = Column(Boolean, nullable=False, default=False)

    store = relationship("CertificateStore", back_populates="entries")
    certificate = relationship("Certificate", back_populates="entries")

    def __repr__(self) -> str:
        return f"<StoreEntry store={self.store_id} alias={self.alias}>"
