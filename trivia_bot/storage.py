"""
Persistent key-value storage for settings and high scores.

Values are opaque JSON blobs. A missing key or a blob that fails to parse is
treated as "no data" by the stores built on top of this module.
"""
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional, Union


class StorageCorruptionError(Exception):
    """Raised when a stored value exists but cannot be decoded."""
    pass


class KeyValueStorage:
    """Minimal string key-value interface shared by all storage backends."""

    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError

    def read_json(self, key: str) -> Optional[Any]:
        """
        Read and decode a JSON value.

        Returns:
            Decoded value, or None if the key is absent

        Raises:
            StorageCorruptionError: If the stored value is not valid JSON
        """
        raw = self.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (json.JSONDecodeError, TypeError) as e:
            raise StorageCorruptionError(f"Stored value for '{key}' is not valid JSON: {e}") from e

    def write_json(self, key: str, value: Any) -> None:
        self.set(key, json.dumps(value, indent=2, ensure_ascii=False))


class MemoryStorage(KeyValueStorage):
    """In-process storage, used for tests and throwaway runs."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._values: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value

    def delete(self, key: str) -> None:
        self._values.pop(key, None)


class JsonFileStorage(KeyValueStorage):
    """Stores each key as ``<directory>/<key>.json``."""

    def __init__(self, directory: Union[str, Path] = "./data/"):
        """
        Initialize storage rooted at a data directory.

        Args:
            directory: Directory holding one JSON file per key
        """
        self.directory = Path(directory)
        self.logger = logging.getLogger(__name__)

    def _path_for(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def get(self, key: str) -> Optional[str]:
        path = self._path_for(key)
        try:
            with open(path, 'r', encoding='utf-8') as f:
                return f.read()
        except FileNotFoundError:
            return None
        except UnicodeDecodeError as e:
            raise StorageCorruptionError(f"Stored file {path} is not valid UTF-8: {e}") from e
        except OSError as e:
            self.logger.error(f"Failed to read {path}: {e}")
            return None

    def set(self, key: str, value: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self._path_for(key)

        # Temp file + rename: the stored blob is always complete
        fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                f.write(value)
            os.replace(tmp_name, path)
        except OSError:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
        self.logger.debug(f"Saved storage key '{key}' to {path}")

    def delete(self, key: str) -> None:
        try:
            self._path_for(key).unlink()
        except FileNotFoundError:
            pass
