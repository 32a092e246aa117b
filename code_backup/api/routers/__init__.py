"""API routers."""

from . import backups, health, operations, tools

__all__ = ["backups", "health", "operations", "tools"]
