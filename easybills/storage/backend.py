"""Object storage for claim receipts.

Defines the ``StorageBackend`` protocol and a local filesystem
implementation that serves files under a public base URL. Uploads are
validated (type, size, emptiness) before anything is written.
"""

from __future__ import annotations

import asyncio
import logging
import re
import secrets
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path, PurePosixPath
from typing import Protocol, runtime_checkable

from easybills.core.config import Settings
from easybills.core.errors import DependencyError, ValidationError

logger = logging.getLogger(__name__)

ALLOWED_MIME_TYPES: frozenset[str] = frozenset(
    {
        "application/pdf",
        "image/jpeg",
        "image/png",
        "image/gif",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "application/vnd.ms-excel",
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    }
)
DEFAULT_MAX_UPLOAD_BYTES = 10 * 1024 * 1024

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9]")


@dataclass
class StoredObject:
    """Result of a storage write.

    Attributes:
        path: Key of the object inside the bucket/root.
        url: Publicly reachable URL for the object.
        size: Stored size in bytes.
        stored_at: Timestamp of the write.
    """

    path: str
    url: str
    size: int
    stored_at: datetime = field(default_factory=lambda: datetime.now(UTC))


@runtime_checkable
class StorageBackend(Protocol):
    """Abstract object store for receipt files."""

    async def write(self, path: str, content: bytes, mime_type: str) -> StoredObject:
        """Store ``content`` under ``path`` and return its public location.

        Raises:
            DependencyError: If the store cannot be written.
        """
        ...

    async def delete(self, path: str) -> bool:
        """Delete an object. Returns False if it did not exist."""
        ...


# ---------------------------------------------------------------------------
# Shared utilities
# ---------------------------------------------------------------------------


def sanitize_filename(file_name: str) -> str:
    """Strip directories and replace unsafe characters in the base name."""
    name = PurePosixPath(file_name.replace("\\", "/")).name
    path = PurePosixPath(name)
    stem = _UNSAFE_CHARS.sub("_", path.stem) or "document"
    suffix = path.suffix.lower() if re.fullmatch(r"\.[a-zA-Z0-9]{1,8}", path.suffix) else ""
    return f"{stem}{suffix}"


def build_document_path(claim_id: object, file_name: str) -> str:
    """``claims/<claim_id>/<epoch-ms>-<random>-<sanitized name>``."""
    timestamp = int(time.time() * 1000)
    return f"claims/{claim_id}/{timestamp}-{secrets.token_hex(4)}-{sanitize_filename(file_name)}"


def validate_upload(
    file_name: str | None,
    content: bytes,
    mime_type: str | None,
    max_bytes: int = DEFAULT_MAX_UPLOAD_BYTES,
) -> None:
    """Reject uploads that are empty, too large, or of a disallowed type.

    Raises:
        ValidationError: Describing the first violated rule.
    """
    if not file_name:
        raise ValidationError("Uploaded file has no name")
    if not content:
        raise ValidationError("Uploaded file is empty")
    if mime_type not in ALLOWED_MIME_TYPES:
        raise ValidationError("Invalid file type. Allowed: PDF, images, Word, Excel")
    check_upload_size(len(content), max_bytes)


def check_upload_size(size: int, max_bytes: int = DEFAULT_MAX_UPLOAD_BYTES) -> None:
    if size > max_bytes:
        raise ValidationError(f"File size exceeds {max_bytes // (1024 * 1024)}MB limit")


# ---------------------------------------------------------------------------
# Local filesystem backend
# ---------------------------------------------------------------------------


class LocalFilesystemBackend:
    """Store receipts on local disk under ``root``.

    Files are laid out by their storage path and exposed at
    ``<public_base_url>/<path>``.
    """

    def __init__(self, root: str | Path, public_base_url: str) -> None:
        self._root = Path(root).resolve()
        self._public_base_url = public_base_url.rstrip("/")

    @classmethod
    def from_settings(cls, settings: Settings) -> LocalFilesystemBackend:
        return cls(settings.storage_root, settings.storage_public_base_url)

    def _resolve(self, path: str) -> Path:
        target = (self._root / path).resolve()
        if not target.is_relative_to(self._root):
            raise ValidationError(f"Storage path escapes the store root: {path}")
        return target

    async def write(self, path: str, content: bytes, mime_type: str) -> StoredObject:
        target = self._resolve(path)
        try:
            await asyncio.to_thread(self._write_file, target, content)
        except OSError as exc:
            raise DependencyError(f"Failed to store document at {path}: {exc}") from exc

        logger.info("Stored %s (%d bytes, %s)", path, len(content), mime_type)
        return StoredObject(path=path, url=f"{self._public_base_url}/{path}", size=len(content))

    async def delete(self, path: str) -> bool:
        target = self._resolve(path)
        if not target.exists():
            return False
        try:
            await asyncio.to_thread(target.unlink)
        except OSError as exc:
            raise DependencyError(f"Failed to delete document at {path}: {exc}") from exc
        return True

    @staticmethod
    def _write_file(target: Path, content: bytes) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(content)
