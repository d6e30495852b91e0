"""Exception hierarchy for root-of-trust audits and reconciliation."""


class TrustRootError(Exception):
    """Base class for all trustroot errors."""


class CertificateNotFoundError(TrustRootError, LookupError):
    """A thumbprint could not be resolved to a certificate."""

    def __init__(self, thumbprint: str):
        super().__init__(f"Certificate not found: {thumbprint}")
        self.thumbprint = thumbprint


class StoreNotFoundError(TrustRootError, LookupError):
    """A certificate store ID could not be resolved."""

    def __init__(self, store_id: str):
        super().__init__(f"Certificate store not found: {store_id}")
        self.store_id = store_id


class CollaboratorError(TrustRootError):
    """A store-management backend call failed."""


class FormatError(TrustRootError, ValueError):
    """Malformed or missing header in an input or ledger file."""


class InputFileError(TrustRootError, OSError):
    """An input file could not be read."""


class LedgerIOError(TrustRootError, OSError):
    """The audit ledger could not be created, written or read."""


class ApplyError(TrustRootError):
    """An add or remove request against a store failed."""

    def __init__(self, thumbprint: str, store_id: str, store_path: str, cause: Exception):
        super().__init__(
            f"Failed to apply {thumbprint} to store {store_id} ({store_path}): {cause}"
        )
        self.thumbprint = thumbprint
        self.store_id = store_id
        self.store_path = store_path
        self.cause = cause
