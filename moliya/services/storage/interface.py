"""
Abstract Storage Interface

DESIGN DECISION: The ledger persists through a tiny key-value interface,
the same shape as browser local storage: a fixed key maps to one
serialized collection, and every write replaces the whole value.
This allows us to:
1. Keep the JSON file backend for normal use
2. Use in-memory storage for testing
3. Keep the Ledger Store decoupled from where the bytes live

The interface is intentionally simple - no queries, no partial updates.
"""

from abc import ABC, abstractmethod
from typing import Optional


class KeyValueStorageInterface(ABC):
    """
    Abstract interface for whole-value storage.

    Values are opaque strings (the Ledger Store writes JSON arrays).
    """

    @abstractmethod
    def get_item(self, key: str) -> Optional[str]:
        """
        Read the value stored under a key.

        Args:
            key: Storage key

        Returns:
            The stored string, or None if the key was never written

        Raises:
            StorageError: If the backend cannot be read
        """
        pass

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        """
        Replace the value stored under a key.

        The write is all-or-nothing: readers see either the old value
        or the new one, never a partial write.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    def remove_item(self, key: str) -> bool:
        """
        Delete a key.

        Returns:
            True if the key existed
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class DuplicatePersonError(DuplicateError):
    """A person with the same name (case-insensitive) already exists."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Person already exists: {name}")
