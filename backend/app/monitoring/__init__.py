"""Monitoring helpers and the shared metric registry."""

from . import metrics, registry

__all__ = ["metrics", "registry"]
