"""HTTP API."""

from cronkeeper.api.app import create_app

__all__ = ["create_app"]
