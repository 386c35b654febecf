"""
Founder record lifecycle: keeps founder rows and their image blobs consistent.

The record store and the blob store are not transactionally linked, so each
mutating operation is a fixed sequence of steps with a compensating action
where one exists:

* create: save blob, insert row (on insert failure the new blob is removed).
* update: save new blob, update row (on failure the new blob is removed),
  then remove the previous blob once the row points at the replacement.
* delete: remove blob, then remove row. A crash in between leaves a row with
  a dangling image reference, which ``reconcile`` reports.

``reconcile`` is the repair pass for whatever a crash between steps leaves
behind: it finds stored blobs no row references and rows whose blob is gone.
Blobs younger than ``RECONCILE_GRACE_SECONDS`` (judged by the millisecond
prefix of their name, or the file mtime) are never treated as orphans: a
create or update may have saved the blob without having written its row yet.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Optional

from backend.db import FounderFields, FounderRecord, RecordStore
from backend.errors import NotFoundError, StorageError, ValidationError
from backend.storage import BlobStore, validate_content_type

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("name", "about", "description")

RECONCILE_GRACE_SECONDS = 15 * 60


@dataclass
class ImageUpload:
    data: bytes
    filename: str
    content_type: Optional[str]


@dataclass
class ReconcileReport:
    orphaned_blobs: list[str] = field(default_factory=list)
    dangling_references: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    skipped_recent: list[str] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "orphaned_blobs": list(self.orphaned_blobs),
            "dangling_references": list(self.dangling_references),
            "removed": list(self.removed),
            "skipped_recent": list(self.skipped_recent),
        }


def validate_fields(
    name: Optional[str], about: Optional[str], description: Optional[str]
) -> FounderFields:
    """Strip and check the required text fields; raise ``ValidationError`` if any is blank."""
    values = {
        "name": (name or "").strip(),
        "about": (about or "").strip(),
        "description": (description or "").strip(),
    }
    missing = [key for key in REQUIRED_FIELDS if not values[key]]
    if missing:
        raise ValidationError("Missing required fields", field=",".join(missing))
    return FounderFields(**values)


class FounderLifecycleService:
    def __init__(self, records: RecordStore, blobs: BlobStore):
        self.records = records
        self.blobs = blobs

    def list_founders(self) -> list[FounderRecord]:
        return self.records.list_all()

    def get_founder(self, founder_id: int) -> FounderRecord:
        record = self.records.get_by_id(founder_id)
        if record is None:
            raise NotFoundError(founder_id=founder_id)
        return record

    def create_founder(
        self, fields: FounderFields, image: Optional[ImageUpload] = None
    ) -> FounderRecord:
        fields = validate_fields(fields.name, fields.about, fields.description)
        if image is not None:
            validate_content_type(image.content_type)

        image_url = None
        if image is not None:
            image_url = self.blobs.save(image.data, image.filename, image.content_type)

        try:
            founder_id = self.records.insert(fields, image_url)
        except StorageError:
            if image_url:
                self._discard_blob(image_url, reason="insert failed")
            raise

        logger.info("Created founder %s (image=%s)", founder_id, image_url)
        return FounderRecord(
            id=founder_id,
            name=fields.name,
            about=fields.about,
            description=fields.description,
            image_url=image_url,
        )

    def update_founder(
        self,
        founder_id: int,
        fields: FounderFields,
        image: Optional[ImageUpload] = None,
    ) -> FounderRecord:
        fields = validate_fields(fields.name, fields.about, fields.description)
        if image is not None:
            validate_content_type(image.content_type)

        current = self.get_founder(founder_id)

        new_url = None
        if image is not None:
            new_url = self.blobs.save(image.data, image.filename, image.content_type)

        try:
            matched = self.records.update(founder_id, fields, new_url)
        except StorageError:
            if new_url:
                self._discard_blob(new_url, reason="update failed")
            raise

        if not matched:
            # Deleted between the fetch and the write.
            if new_url:
                self._discard_blob(new_url, reason="founder vanished")
            raise NotFoundError(founder_id=founder_id)

        if new_url and current.image_url and current.image_url != new_url:
            self._discard_blob(current.image_url, reason="replaced", routine=True)

        logger.info("Updated founder %s (new image=%s)", founder_id, new_url)
        return FounderRecord(
            id=founder_id,
            name=fields.name,
            about=fields.about,
            description=fields.description,
            image_url=new_url or current.image_url,
        )

    def delete_founder(self, founder_id: int) -> None:
        record = self.get_founder(founder_id)

        # Blob first: a failure before the row delete leaves a dangling
        # reference rather than unreclaimed bytes.
        if record.image_url and self.blobs.exists(record.image_url):
            self.blobs.delete(record.image_url)

        if not self.records.delete_by_id(founder_id):
            raise NotFoundError(founder_id=founder_id)
        logger.info("Deleted founder %s", founder_id)

    def reconcile(
        self,
        *,
        dry_run: bool = True,
        min_age_seconds: float = RECONCILE_GRACE_SECONDS,
        now: Optional[float] = None,
    ) -> ReconcileReport:
        # Blobs before rows: a create that commits between the two reads
        # then shows up as referenced instead of orphaned.
        stored = set(self.blobs.list_references())
        referenced = self.records.list_image_references()

        now = time.time() if now is None else now
        orphaned: list[str] = []
        recent: list[str] = []
        for ref in sorted(stored - referenced):
            saved_at = self.blobs.saved_at(ref)
            # A blob saved moments ago may belong to a create whose row
            # is not inserted yet.
            if saved_at is not None and now - saved_at < min_age_seconds:
                recent.append(ref)
            else:
                orphaned.append(ref)

        report = ReconcileReport(
            orphaned_blobs=orphaned,
            dangling_references=sorted(
                ref for ref in referenced if not self.blobs.exists(ref)
            ),
            skipped_recent=recent,
        )
        for ref in report.dangling_references:
            logger.warning("Founder image missing from storage: %s", ref)

        if not dry_run:
            for ref in report.orphaned_blobs:
                self.blobs.delete(ref)
                report.removed.append(ref)

        logger.info(
            "Reconcile: %d orphaned, %d too recent, %d dangling, %d removed",
            len(report.orphaned_blobs),
            len(report.skipped_recent),
            len(report.dangling_references),
            len(report.removed),
        )
        return report

    def _discard_blob(self, reference: str, *, reason: str, routine: bool = False) -> None:
        """Best-effort removal; a failure here leaves an orphan for ``reconcile``."""
        try:
            self.blobs.delete(reference)
        except StorageError:
            logger.exception("Could not remove blob %s (%s)", reference, reason)
            return
        if routine:
            logger.info("Removed blob %s (%s)", reference, reason)
        else:
            logger.warning("Removed blob %s (%s)", reference, reason)
