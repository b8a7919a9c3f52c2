"""
Storage Services Package

Provides the abstract key-value interface and its implementations.
The JSON file backend is the default; the in-memory one backs the tests.
"""

from moliya.services.storage.interface import (
    DuplicateError,
    DuplicatePersonError,
    KeyValueStorageInterface,
    NotFoundError,
    StorageError,
)
from moliya.services.storage.local_file import JsonFileStorage
from moliya.services.storage.memory import InMemoryStorage

__all__ = [
    # Interfaces
    "KeyValueStorageInterface",
    # Exceptions
    "DuplicateError",
    "DuplicatePersonError",
    "NotFoundError",
    "StorageError",
    # Implementations
    "InMemoryStorage",
    "JsonFileStorage",
]
