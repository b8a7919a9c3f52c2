"""
Local JSON File Storage

Each storage key is kept in its own file, `<data_dir>/<key>.json`.

Writes go to a temporary file in the same directory which then replaces
the target with os.replace, so a crash mid-write leaves the previous
value intact. There is no incremental update: every set_item rewrites
the whole collection.
"""

import contextlib
import os
import tempfile
from pathlib import Path
from typing import Optional

import structlog

from moliya.services.storage.interface import KeyValueStorageInterface, StorageError


logger = structlog.get_logger(__name__)


class JsonFileStorage(KeyValueStorageInterface):
    """Key-value storage backed by one file per key."""

    def __init__(self, data_dir: Path):
        self._data_dir = Path(data_dir)

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    def _path_for(self, key: str) -> Path:
        return self._data_dir / f"{key}.json"

    def get_item(self, key: str) -> Optional[str]:
        path = self._path_for(key)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except OSError as e:
            raise StorageError(f"Failed to read {path}: {e}")

    def set_item(self, key: str, value: str) -> None:
        path = self._path_for(key)
        tmp_name = None
        try:
            self._data_dir.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w", delete=False, dir=self._data_dir, encoding="utf-8", suffix=".tmp"
            ) as tmp:
                tmp_name = tmp.name
                tmp.write(value)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(tmp_name, path)
        except OSError as e:
            if tmp_name is not None:
                with contextlib.suppress(OSError):
                    os.unlink(tmp_name)
            raise StorageError(f"Failed to write {path}: {e}")

        logger.debug("storage_written", key=key, bytes=len(value))

    def remove_item(self, key: str) -> bool:
        path = self._path_for(key)
        try:
            path.unlink()
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageError(f"Failed to remove {path}: {e}")
