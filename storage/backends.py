"""Key-value storage backends for the hackathon registry."""
import logging
import os
import re
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional

logger = logging.getLogger(__name__)

KEY_PATTERN = re.compile(r'^[A-Za-z0-9_-][A-Za-z0-9_.-]*$')


class StoragePort(ABC):
    """String-keyed blob storage."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the stored value, or None if the key is absent."""

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store a value, replacing any previous one."""

    @abstractmethod
    def remove(self, key: str) -> None:
        """Delete a key. Removing an absent key is not an error."""


class InMemoryStorage(StoragePort):
    """Process-local storage, mainly for tests and dry runs."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStorage(StoragePort):
    """Stores each key as a file inside a directory."""

    def __init__(self, directory: str):
        """
        Initialize file storage.

        Args:
            directory: Directory holding one file per key (created if missing)
        """
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        logger.info(f"Initialized JsonFileStorage in: {self.directory}")

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding='utf-8')

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        # Write to a temp file first so readers never see a partial blob
        fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=f".{key}.")
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as handle:
                handle.write(value)
            os.replace(tmp_name, path)
        except OSError:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def remove(self, key: str) -> None:
        path = self._path(key)
        if path.exists():
            path.unlink()

    def _path(self, key: str) -> Path:
        if not KEY_PATTERN.match(key):
            raise ValueError(f"Invalid storage key: {key!r}")
        return self.directory / key
