"""Persistence adapters."""

from museick.infrastructure.persistence.selection_repository import BackendSelectionRepository

__all__ = ["BackendSelectionRepository"]
