"""Persistence of reconciliation records."""

from dockyard.state.store import StateStore

__all__ = ["StateStore"]
