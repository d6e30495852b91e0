"""Root-of-trust service runner - serves the audit/reconcile API."""

import asyncio
import logging
import sys

import uvicorn

from trustroot.api.app import create_app
from trustroot.client.command import CommandClient
from trustroot.config import RotConfig
from trustroot.core.collaborators import StoreManagementClient
from trustroot.db.database import dispose, get_session, init_db
from trustroot.db.repository import FleetRepository

logger = logging.getLogger(__name__)


def setup_logging(level: str):
    """Configure logging."""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(name)s %(message)s",
        stream=sys.stdout,
        force=True,
    )


def build_client(config: RotConfig) -> StoreManagementClient:
    """Create the store-management backend selected by configuration."""
    if config.backend == "command":
        logger.info("Using Keyfactor Command at %s", config.command_hostname)
        return CommandClient.from_config(config)

    logger.info("Using local fleet database: %s", config.database_url)
    init_db(config.database_url)
    return FleetRepository(get_session(config.database_url))


class RotService:
    """Main service that runs the API server."""

    def __init__(self, config: RotConfig):
        self.config = config
        self.client: StoreManagementClient | None = None

    async def start(self):
        """Start the API server."""
        setup_logging(self.config.log_level)

        logger.info("Starting root-of-trust service...")
        logger.info("API port: %d", self.config.api_port)
        logger.info("Audit directory: %s", self.config.audit_dir)

        self.config.audit_dir.mkdir(parents=True, exist_ok=True)
        self.client = build_client(self.config)
        app = create_app(self.client, self.config)

        api_config = uvicorn.Config(
            app,
            host=self.config.api_host,
            port=self.config.api_port,
            log_level=self.config.log_level.lower(),
        )
        api_server = uvicorn.Server(api_config)

        try:
            await api_server.serve()
        except KeyboardInterrupt:
            logger.info("Shutting down...")
        finally:
            if isinstance(self.client, CommandClient):
                self.client.close()
            else:
                dispose()


def main():
    """Entry point."""
    try:
        from importlib.metadata import version

        package_version = version("trustroot-reconciler")
    except Exception:
        package_version = "1.0.0"

    print(f"Root of Trust reconciler v{package_version}")

    config = RotConfig()
    service = RotService(config)
    asyncio.run(service.start())


if __name__ == "__main__":
    main()
