"""API endpoints for the cluster integration service."""

from . import health, kubernetes, terminal

__all__ = ["health", "kubernetes", "terminal"]
