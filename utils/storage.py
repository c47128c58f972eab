"""Persisted key-value store for cache snapshots (one JSON file per key)."""

import os
import re
from contextlib import suppress
from pathlib import Path

from utils.logger import logger


_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


class JsonFileStore:
    """
    String key-value store backed by files in a directory.

    Every I/O failure (missing directory, permissions, full disk) is logged
    and treated as an absent value: ``get`` returns None and ``set``/``remove``
    do nothing. Callers never see storage exceptions.
    """

    def __init__(self, directory: str | Path):
        """
        Initialize store.

        Args:
            directory: Directory holding the value files (created on first write)
        """
        self._directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self._directory / f"{_UNSAFE_KEY_CHARS.sub('_', key)}.json"

    def get(self, key: str) -> str | None:
        """
        Read value by key.

        Args:
            key: Storage key

        Returns:
            Stored string or None if missing/unreadable
        """
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Storage read failed for {key}: {e}")
            return None

    def set(self, key: str, value: str) -> None:
        """
        Write value atomically (temp file + rename).

        Args:
            key: Storage key
            value: Serialized value
        """
        path = self._path(key)
        tmp_path = path.with_suffix(".tmp")
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(value, encoding="utf-8")
            os.replace(tmp_path, path)
        except OSError as e:
            logger.warning(f"Storage write failed for {key}: {e}")
            with suppress(OSError):
                tmp_path.unlink(missing_ok=True)

    def remove(self, key: str) -> None:
        """
        Delete value by key (missing keys are ignored).

        Args:
            key: Storage key
        """
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Storage remove failed for {key}: {e}")
