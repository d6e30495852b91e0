"""FastAPI application factory for the root-of-trust service."""

from fastapi import FastAPI

from trustroot.api import routes
from trustroot.config import RotConfig
from trustroot.core.collaborators import StoreManagementClient


def create_app(client: StoreManagementClient, config: RotConfig) -> FastAPI:
    """Create the FastAPI application."""
    app = FastAPI(
        title="Root of Trust API",
        description="Audit and reconcile trusted root certificates across certificate stores",
        version="1.0.0",
    )

    # Override the dependencies
    def get_client():
        return client

    def get_config():
        return config

    app.dependency_overrides[routes.get_client] = get_client
    app.dependency_overrides[routes.get_config] = get_config

    # Include routes
    app.include_router(routes.router, prefix="/api/v1", tags=["root-of-trust"])

    return app
