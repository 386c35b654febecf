"""
Reconcile founder rows against the upload directory.

Reports image files no founder references (orphans, left behind when a
process dies between saving an upload and writing its row) and founders whose
image file is missing. With --apply, orphaned files are deleted; missing
images are only reported.

Files saved less than --min-age seconds ago (default 15 minutes) are skipped,
since a request may have stored the upload without having written its row
yet. Lower it only when the API is not serving writes.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from backend.dependencies import get_blob_store, get_record_store, reset_clients
from backend.errors import StorageError
from backend.lifecycle import RECONCILE_GRACE_SECONDS, FounderLifecycleService


logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Reconcile founder images")
    parser.add_argument(
        "--apply",
        action="store_true",
        help="Delete orphaned image files instead of only reporting them",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the report as JSON",
    )
    parser.add_argument(
        "--min-age",
        type=float,
        default=RECONCILE_GRACE_SECONDS,
        help="Ignore unreferenced files younger than this many seconds",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(message)s")
    service = FounderLifecycleService(get_record_store(), get_blob_store())
    try:
        report = service.reconcile(
            dry_run=not args.apply, min_age_seconds=args.min_age
        )
    except StorageError as exc:
        logger.error("Reconcile failed: %s (%s)", exc.message, exc.__cause__)
        return 1
    finally:
        reset_clients()

    if args.json:
        print(json.dumps(report.as_dict(), indent=2))
    else:
        for ref in report.orphaned_blobs:
            print(f"orphaned: {ref}")
        for ref in report.dangling_references:
            print(f"missing:  {ref}")
        for ref in report.skipped_recent:
            print(f"recent:   {ref}")
    if report.dangling_references:
        return 2
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
