"""
Blob storage for uploaded founder images: local directory and in-memory testing.
"""

from __future__ import annotations

import os
import re
import time
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Protocol

from backend.errors import NotFoundError, StorageError, ValidationError

ALLOWED_CONTENT_TYPES = frozenset(
    {"image/jpeg", "image/jpg", "image/png", "image/gif"}
)

DEFAULT_URL_PREFIX = "/uploads"

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


class BlobStore(Protocol):
    """Defines the operations the lifecycle service needs from image storage."""

    def save(
        self, data: bytes, original_filename: str, content_type: Optional[str]
    ) -> str:
        ...

    def delete(self, reference: str) -> None:
        ...

    def exists(self, reference: str) -> bool:
        ...

    def read(self, reference: str) -> bytes:
        ...

    def list_references(self) -> list[str]:
        ...

    def saved_at(self, reference: str) -> Optional[float]:
        ...


def validate_content_type(content_type: Optional[str]) -> None:
    """Raise ``ValidationError`` unless ``content_type`` is an allowed image type."""
    normalized = (content_type or "").split(";")[0].strip().lower()
    if normalized not in ALLOWED_CONTENT_TYPES:
        raise ValidationError("Invalid file type", field="image")


def sanitize_filename(original_filename: str) -> str:
    # Browsers on Windows may send full paths.
    base = re.split(r"[\\/]", original_filename or "")[-1]
    cleaned = _UNSAFE_CHARS.sub("_", base).strip("._")
    return cleaned or "upload"


def unique_filename(original_filename: str) -> str:
    """Collision-resistant name: millisecond timestamp, random tag, original name."""
    millis = int(time.time() * 1000)
    return f"{millis}-{uuid.uuid4().hex[:8]}-{sanitize_filename(original_filename)}"


def filename_from_reference(reference: str, url_prefix: str = DEFAULT_URL_PREFIX) -> Optional[str]:
    """
    Return the bare filename for ``reference`` or ``None`` if it does not
    point inside the store.
    """
    prefix = url_prefix.rstrip("/") + "/"
    if not reference or not reference.startswith(prefix):
        return None
    name = reference[len(prefix):]
    if not name or "/" in name or "\\" in name or name in (".", ".."):
        return None
    return name


def saved_at_from_reference(
    reference: str, url_prefix: str = DEFAULT_URL_PREFIX
) -> Optional[float]:
    """
    Epoch seconds encoded in the name by ``unique_filename``, or ``None`` for
    names that do not carry the millisecond prefix.
    """
    name = filename_from_reference(reference, url_prefix)
    if name is None:
        return None
    millis, sep, _ = name.partition("-")
    if not sep or not millis.isdigit():
        return None
    return int(millis) / 1000.0


@dataclass
class InMemoryBlobStore:
    """Test double for blob interactions."""

    url_prefix: str = DEFAULT_URL_PREFIX
    stored_objects: dict = field(default_factory=dict)

    def save(
        self, data: bytes, original_filename: str, content_type: Optional[str]
    ) -> str:
        validate_content_type(content_type)
        name = unique_filename(original_filename)
        self.stored_objects[name] = bytes(data)
        return f"{self.url_prefix}/{name}"

    def delete(self, reference: str) -> None:
        name = filename_from_reference(reference, self.url_prefix)
        if name is not None:
            self.stored_objects.pop(name, None)

    def exists(self, reference: str) -> bool:
        name = filename_from_reference(reference, self.url_prefix)
        return name is not None and name in self.stored_objects

    def read(self, reference: str) -> bytes:
        name = filename_from_reference(reference, self.url_prefix)
        if name is None or name not in self.stored_objects:
            raise NotFoundError("Image not found")
        return self.stored_objects[name]

    def list_references(self) -> list[str]:
        return sorted(f"{self.url_prefix}/{name}" for name in list(self.stored_objects))

    def saved_at(self, reference: str) -> Optional[float]:
        return saved_at_from_reference(reference, self.url_prefix)

    def reset(self) -> None:
        """Clear all stored blobs (useful in tests)."""
        self.stored_objects.clear()


@dataclass
class LocalBlobStore:
    """
    Stores blobs as files in ``directory``; references are ``<url_prefix>/<filename>``
    so the same directory can be served statically.
    """

    directory: str
    url_prefix: str = DEFAULT_URL_PREFIX

    def __post_init__(self):
        self.root = Path(self.directory).resolve()

    def ensure_directory(self) -> None:
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(operation="mkdir") from exc

    def _path_for(self, reference: str) -> Optional[Path]:
        name = filename_from_reference(reference, self.url_prefix)
        if name is None:
            return None
        path = (self.root / name).resolve()
        if path.parent != self.root:
            return None
        return path

    def save(
        self, data: bytes, original_filename: str, content_type: Optional[str]
    ) -> str:
        validate_content_type(content_type)
        self.ensure_directory()
        name = unique_filename(original_filename)
        path = self.root / name
        try:
            # "xb" refuses to clobber an existing file.
            with open(path, "xb") as f:
                f.write(data)
        except OSError as exc:
            raise StorageError(operation="save") from exc
        return f"{self.url_prefix}/{name}"

    def delete(self, reference: str) -> None:
        path = self._path_for(reference)
        if path is None:
            return
        try:
            os.remove(path)
        except FileNotFoundError:
            return
        except OSError as exc:
            raise StorageError(operation="delete") from exc

    def exists(self, reference: str) -> bool:
        path = self._path_for(reference)
        return path is not None and path.is_file()

    def read(self, reference: str) -> bytes:
        path = self._path_for(reference)
        if path is None or not path.is_file():
            raise NotFoundError("Image not found")
        try:
            return path.read_bytes()
        except OSError as exc:
            raise StorageError(operation="read") from exc

    def list_references(self) -> list[str]:
        if not self.root.is_dir():
            return []
        try:
            names = sorted(p.name for p in self.root.iterdir() if p.is_file())
        except OSError as exc:
            raise StorageError(operation="list") from exc
        return [f"{self.url_prefix}/{name}" for name in names]

    def saved_at(self, reference: str) -> Optional[float]:
        stamp = saved_at_from_reference(reference, self.url_prefix)
        if stamp is not None:
            return stamp
        path = self._path_for(reference)
        if path is None:
            return None
        try:
            return path.stat().st_mtime
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise StorageError(operation="stat") from exc
