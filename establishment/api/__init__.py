"""HTTP API package."""
from establishment.api.main import create_app

__all__ = ["create_app"]
