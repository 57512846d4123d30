"""Versioned Storage: rotating state snapshots with atomic writes.

Keeps the N most recent snapshots of one logical name:
    <file>        newest
    <file>.1      previous
    ...
    <file>.{N-1}  oldest

store(): write <file>.tmp + fsync → shift older versions → atomic replace.
load():  newest snapshot that decodes. Missing or corrupt files are skipped,
so an interrupted store() never hides the previous valid snapshot.
"""

from __future__ import annotations

import json
import logging
import os
import pickle
from pathlib import Path
from typing import Any

from pivot_matrix.core.errors import ConfigError, StorageError
from pivot_matrix.core.types import StorageFormat

logger = logging.getLogger(__name__)

_PICKLE_HEADER = b"\x80"

# A damaged pickle stream can fail in any of these, not only UnpicklingError
_DECODE_ERRORS = (
    OSError,
    ValueError,
    EOFError,
    pickle.UnpicklingError,
    ArithmeticError,
    MemoryError,
    TypeError,
    AttributeError,
    ImportError,
    IndexError,
    KeyError,
)


class Storage:
    """N-version rotating snapshot file for one logical name."""

    def __init__(
        self,
        file: str | Path,
        versions: int = 5,
        fmt: StorageFormat = StorageFormat.JSON,
    ) -> None:
        if versions < 1:
            raise ConfigError(f"Storage needs at least one version, got {versions}")
        self._file = Path(file)
        self._versions = versions
        self._format = fmt

    @property
    def file(self) -> Path:
        return self._file

    @property
    def versions(self) -> int:
        return self._versions

    @property
    def format(self) -> StorageFormat:
        return self._format

    def version_path(self, index: int) -> Path:
        """Path of the index-th newest snapshot (0 = newest)."""
        if index == 0:
            return self._file
        return self._file.with_name(f"{self._file.name}.{index}")

    def store(self, data: Any) -> None:
        payload = self._encode(data)
        tmp_path = self._file.with_name(f"{self._file.name}.tmp")
        try:
            self._file.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "wb") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            self._rotate()
            os.replace(tmp_path, self._file)
        except OSError as exc:
            logger.error("Failed to store snapshot %s: %s", self._file, exc)
            raise StorageError(f"Unable to store snapshot {self._file}") from exc
        logger.debug("Snapshot stored to %s (%d bytes)", self._file, len(payload))

    def load(self) -> Any | None:
        """Newest decodable snapshot, or None if there is none."""
        for index in range(self._versions):
            path = self.version_path(index)
            if not path.exists():
                continue
            try:
                return self._decode(path.read_bytes())
            except _DECODE_ERRORS as exc:
                logger.warning("Skipping unreadable snapshot %s: %s", path, exc)
        return None

    def _rotate(self) -> None:
        """Shift <file> → <file>.1 → ... and drop the oldest version."""
        if self._versions == 1:
            return
        oldest = self.version_path(self._versions - 1)
        if oldest.exists():
            oldest.unlink()
        for index in range(self._versions - 2, -1, -1):
            src = self.version_path(index)
            if src.exists():
                os.replace(src, self.version_path(index + 1))

    def _encode(self, data: Any) -> bytes:
        if self._format == StorageFormat.BINARY:
            return pickle.dumps(data, protocol=pickle.HIGHEST_PROTOCOL)
        if self._format == StorageFormat.JSON_PRETTY:
            return json.dumps(data, indent=2, sort_keys=True).encode("utf-8")
        return json.dumps(data, separators=(",", ":")).encode("utf-8")

    @staticmethod
    def _decode(raw: bytes) -> Any:
        # Format is sniffed per file so a format change keeps old versions readable
        if raw.startswith(_PICKLE_HEADER):
            return pickle.loads(raw)
        return json.loads(raw.decode("utf-8"))


class StorageFactory:
    """Creates Storage instances sharing one directory, version count and format."""

    def __init__(
        self,
        path: str | Path,
        versions: int = 5,
        fmt: StorageFormat = StorageFormat.JSON,
    ) -> None:
        self._path = Path(path)
        self._versions = versions
        self._format = fmt

    @property
    def path(self) -> Path:
        return self._path

    def create(self, name: str) -> Storage:
        return Storage(self._path / name, self._versions, self._format)
