"""Persistence backends."""

from finmoe.storage.memory import InMemoryStorage, Storage

__all__ = ["InMemoryStorage", "Storage"]
