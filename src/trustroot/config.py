"""Configuration for root-of-trust audits and the reconcile service."""

from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings

from trustroot.core.models import Thresholds


class RotConfig(BaseSettings):
    """Root-of-trust configuration via environment variables."""

    # Root store thresholds (-1 means no limit)
    min_certs: int = -1
    max_keys: int = -1
    max_leaf_certs: int = -1

    # Reconcile
    dry_run: bool = False

    # Audit ledger
    audit_dir: Path = Path("/var/lib/trustroot/audits")
    audit_file_name: str = "rot_audit.csv"

    # Store-management backend
    backend: Literal["local", "command"] = "local"
    database_url: str = "sqlite:////var/lib/trustroot/fleet.sqlite3"

    # Keyfactor Command REST API
    command_hostname: str = ""
    command_username: str = ""
    command_password: str = ""
    command_domain: str = ""
    command_api_path: str = "KeyfactorAPI"
    http_timeout: float = 30.0

    # API settings
    api_port: int = 8090
    api_host: str = "0.0.0.0"

    # Logging
    log_level: str = "INFO"

    model_config = {"env_prefix": "ROT_", "env_file": ".env", "extra": "ignore"}

    def thresholds(self) -> Thresholds:
        """Get the configured root store thresholds."""
        return Thresholds(
            min_certs=self.min_certs,
            max_keys=self.max_keys,
            max_leaf_certs=self.max_leaf_certs,
        )

    def default_audit_path(self) -> Path:
        return self.audit_dir / self.audit_file_name
