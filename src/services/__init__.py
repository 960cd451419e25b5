"""Services module for the cluster integration."""

from .interfaces import ResourceManagerInterface

__all__ = ["ResourceManagerInterface"]
