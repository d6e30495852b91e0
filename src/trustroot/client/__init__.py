"""Remote store-management backends."""

from trustroot.client.command import CommandClient

__all__ = ["CommandClient"]
