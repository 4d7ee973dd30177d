"""
Checksum-indexed storage for voting artifacts.

Each artifact folder holds gzip-compressed JSON files plus a checksum table
(``checksums.sha384``) with one ``<sha384-hex>  <filename>`` line per file,
sorted by the handler's key (block number, then node index). Loading walks
the table from the newest entry backwards, verifies the checksum of the
first matching file and hands it to the handler for validation.

Writes go through a temp file and ``os.replace`` so concurrent builders of
the same artifact never leave a half-written file behind.
"""

import gzip
import hashlib
import json
import os
import tempfile
import threading
import zlib
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Generic, List, Optional, Tuple, TypeVar

from votetree_toolkit.shared.exceptions import ArtifactCacheException
from votetree_toolkit.shared.logging import get_logger

ContextT = TypeVar("ContextT")
DataT = TypeVar("DataT")

_logger = get_logger(__name__)

_CHECKSUM_SEPARATOR = "  "


class ArtifactHandler(ABC, Generic[ContextT, DataT]):
    """Artifact-specific hooks used by the ChecksumManager."""

    @abstractmethod
    def sort_key(self, filename: str) -> Tuple[int, ...]:
        """Ordering key of a file in the checksum table."""

    @abstractmethod
    def should_load_entry(self, filename: str, context: ContextT) -> bool:
        """True if the file is the artifact requested by the context."""

    @abstractmethod
    def is_data_valid(self, data: DataT, filename: str, context: ContextT) -> bool:
        """True if a decoded artifact can be used by this configuration."""

    @abstractmethod
    def decode(self, payload: Dict[str, Any]) -> DataT:
        """Turn the decoded JSON document back into an artifact."""


def _atomic_write(path: Path, content: bytes) -> None:
    fd, tmp_path = tempfile.mkstemp(
        dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp"
    )
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(content)
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise


def _split_checksum_line(line: str) -> Tuple[str, str]:
    checksum, sep, filename = line.partition(_CHECKSUM_SEPARATOR)
    if not sep or not checksum or not filename:
        raise ArtifactCacheException(
            f"error parsing checksum line ({line}): invalid format"
        )
    return checksum.strip(), filename.strip()


def serialize_artifact(data: Any) -> bytes:
    """Deterministic compressed encoding of an artifact."""
    payload = json.dumps(
        data.to_dict(), sort_keys=True, separators=(",", ":")
    ).encode("utf-8")
    # Fixed mtime keeps the gzip header, and so the checksum, reproducible
    return gzip.compress(payload, compresslevel=9, mtime=0)


class ChecksumManager(Generic[ContextT, DataT]):
    """Save and load one kind of artifact in one folder."""

    def __init__(self, checksum_filename: Path, handler: ArtifactHandler):
        self.checksum_filename = Path(checksum_filename)
        self.data_folder = self.checksum_filename.parent
        self.handler = handler
        self._lock = threading.Lock()
        self.data_folder.mkdir(parents=True, exist_ok=True)

    def save(self, data: DataT) -> Path:
        """Write an artifact and record its checksum; returns its path."""
        compressed = serialize_artifact(data)
        filename = data.get_filename()
        full_path = self.data_folder / filename
        _atomic_write(full_path, compressed)

        checksum = hashlib.sha384(compressed).hexdigest()
        new_line = f"{checksum}{_CHECKSUM_SEPARATOR}{filename}"

        with self._lock:
            entries: List[Tuple[str, str]] = []
            for line in self._read_checksum_lines() or []:
                try:
                    entry = _split_checksum_line(line)
                except ArtifactCacheException as e:
                    _logger.warning(f"Dropping checksum table entry: {e}")
                    continue
                if entry[1] != filename:
                    entries.append(entry)
            entries.append((checksum, filename))
            entries.sort(key=lambda entry: self.handler.sort_key(entry[1]))

            table = "\n".join(
                f"{c}{_CHECKSUM_SEPARATOR}{f}" for c, f in entries
            )
            _atomic_write(self.checksum_filename, table.encode("utf-8"))

        _logger.debug(f"Saved {new_line}")
        return full_path

    def load(self, context: ContextT) -> Optional[Tuple[DataT, str]]:
        """
        Load the newest valid artifact matching the context.

        Returns None when there is no table or no matching valid entry.

        Raises:
            ArtifactCacheException: a matching file is unreadable, fails its
                checksum or cannot be decoded
        """
        lines = self._read_checksum_lines()
        if lines is None:
            return None

        for line in reversed(lines):
            saved_checksum, filename = _split_checksum_line(line)
            if not self.handler.should_load_entry(filename, context):
                continue

            full_path = self.data_folder / filename
            try:
                compressed = full_path.read_bytes()
            except OSError as e:
                raise ArtifactCacheException(
                    f"error reading file {full_path}: {e}"
                ) from e

            calculated_checksum = hashlib.sha384(compressed).hexdigest()
            if calculated_checksum != saved_checksum.lower():
                raise ArtifactCacheException(
                    f"checksum mismatch for {filename} (expected "
                    f"{saved_checksum}, but it was {calculated_checksum})"
                )

            try:
                payload = json.loads(gzip.decompress(compressed))
                data = self.handler.decode(payload)
            except (OSError, EOFError, zlib.error, ValueError, KeyError, TypeError) as e:
                raise ArtifactCacheException(
                    f"error decoding {filename}: {e}"
                ) from e

            if self.handler.is_data_valid(data, filename, context):
                return data, filename

        return None

    def _read_checksum_lines(self) -> Optional[List[str]]:
        if not self.checksum_filename.exists():
            return None
        try:
            content = self.checksum_filename.read_text(encoding="utf-8")
        except OSError as e:
            raise ArtifactCacheException(
                f"error loading checksum table ({self.checksum_filename}): {e}"
            ) from e
        return [line for line in content.splitlines() if line.strip()]
