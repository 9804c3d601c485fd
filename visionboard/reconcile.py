"""
Sweep stored board images that no image-slot row references.

A save that fails halfway can leave uploaded objects behind (see
`PartialFailure.orphaned_paths`). This lists storage under a prefix, diffs it
against every referenced path in the database and deletes the rest.

A save uploads each object before inserting its row, so objects younger than
`--min-age-seconds` (judged by the upload time in their path) are left alone.

    python -m visionboard.reconcile --dry-run
"""

from __future__ import annotations

import argparse
import logging
import re
import time
from dataclasses import dataclass, field
from typing import Optional, Sequence

from visionboard.db import DbClient
from visionboard.dependencies import get_db_client, get_storage_client
from visionboard.errors import VisionBoardError
from visionboard.storage import StorageClient

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = "boards/"
DEFAULT_MIN_AGE_SECONDS = 3600

_UPLOAD_MS = re.compile(r"_(\d+)\.png$")


@dataclass
class ReconcileReport:
    scanned: int = 0
    orphaned: list[str] = field(default_factory=list)
    recent: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


def uploaded_at(path: str) -> Optional[float]:
    """Upload time (epoch seconds) encoded in a board image path, if any."""
    match = _UPLOAD_MS.search(path)
    return int(match.group(1)) / 1000 if match else None


def find_orphans(
    db: DbClient,
    storage: StorageClient,
    prefix: str = DEFAULT_PREFIX,
    *,
    min_age_seconds: float = DEFAULT_MIN_AGE_SECONDS,
    now: Optional[float] = None,
) -> ReconcileReport:
    # List storage before reading rows: a row committed in between then
    # still counts as a reference.
    stored = storage.list_paths(prefix)
    referenced = db.list_image_paths()
    cutoff = (time.time() if now is None else now) - min_age_seconds

    report = ReconcileReport(scanned=len(stored))
    for path in sorted(p for p in stored if p not in referenced):
        stamp = uploaded_at(path)
        if stamp is not None and stamp > cutoff:
            report.recent.append(path)
        else:
            report.orphaned.append(path)
    return report


def reconcile(
    db: DbClient,
    storage: StorageClient,
    *,
    prefix: str = DEFAULT_PREFIX,
    dry_run: bool = False,
    min_age_seconds: float = DEFAULT_MIN_AGE_SECONDS,
    now: Optional[float] = None,
) -> ReconcileReport:
    report = find_orphans(
        db, storage, prefix, min_age_seconds=min_age_seconds, now=now
    )
    for path in report.recent:
        logger.info("Skipping %s, uploaded too recently", path)
    if dry_run:
        for path in report.orphaned:
            logger.info("Would delete %s", path)
        return report

    for path in report.orphaned:
        try:
            storage.delete(path)
        except VisionBoardError as exc:
            logger.warning("Failed to delete %s: %s", path, exc.message)
            report.failed.append(path)
            continue
        report.deleted.append(path)
    return report


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Delete unreferenced board images")
    parser.add_argument(
        "--prefix",
        default=DEFAULT_PREFIX,
        help="Storage prefix to scan",
    )
    parser.add_argument(
        "--min-age-seconds",
        type=float,
        default=DEFAULT_MIN_AGE_SECONDS,
        help="Leave objects uploaded more recently than this alone",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report orphaned objects without deleting them",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(message)s")
    try:
        report = reconcile(
            get_db_client(),
            get_storage_client(),
            prefix=args.prefix,
            dry_run=args.dry_run,
            min_age_seconds=args.min_age_seconds,
        )
    except VisionBoardError as exc:
        logger.error("Reconciliation aborted: %s", exc.message)
        return 1

    logger.info(
        "Scanned %d objects, %d orphaned, %d too recent, %d deleted, %d failed",
        report.scanned,
        len(report.orphaned),
        len(report.recent),
        len(report.deleted),
        len(report.failed),
    )
    return 1 if report.failed else 0


if __name__ == "__main__":
    raise SystemExit(main())
