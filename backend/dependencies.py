"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

from fastapi import Depends

from backend.config import get_settings
from backend.db import InMemoryRecordStore, RecordStore, SqlRecordStore
from backend.lifecycle import FounderLifecycleService
from backend.storage import BlobStore, InMemoryBlobStore, LocalBlobStore

_record_store: RecordStore | None = None
_blob_store: BlobStore | None = None


def get_record_store() -> RecordStore:
    """
    Return a singleton record store so the engine and its pool are shared
    across requests.
    """
    global _record_store
    if _record_store:
        return _record_store

    settings = get_settings()
    if settings.use_in_memory_backends:
        _record_store = InMemoryRecordStore()
    else:
        _record_store = SqlRecordStore(
            settings.database_url, timeout_seconds=settings.db_timeout_seconds
        )
    return _record_store


def get_blob_store() -> BlobStore:
    global _blob_store
    if _blob_store:
        return _blob_store

    settings = get_settings()
    if settings.use_in_memory_backends:
        _blob_store = InMemoryBlobStore(url_prefix=settings.uploads_url_prefix)
    else:
        _blob_store = LocalBlobStore(
            directory=settings.upload_dir, url_prefix=settings.uploads_url_prefix
        )
    return _blob_store


def get_lifecycle_service(
    records: RecordStore = Depends(get_record_store),
    blobs: BlobStore = Depends(get_blob_store),
) -> FounderLifecycleService:
    return FounderLifecycleService(records, blobs)


def reset_clients() -> None:
    """Release the record store's connections and drop cached clients."""
    global _record_store, _blob_store
    if _record_store is not None:
        _record_store.close()
    _record_store = None
    _blob_store = None
