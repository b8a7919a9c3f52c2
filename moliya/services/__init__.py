"""Services package."""

from moliya.services.storage import (
    DuplicateError,
    DuplicatePersonError,
    InMemoryStorage,
    JsonFileStorage,
    KeyValueStorageInterface,
    NotFoundError,
    StorageError,
)

__all__ = [
    # Storage services
    "DuplicateError",
    "DuplicatePersonError",
    "InMemoryStorage",
    "JsonFileStorage",
    "KeyValueStorageInterface",
    "NotFoundError",
    "StorageError",
]
