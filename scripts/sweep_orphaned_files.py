"""Delete stored files that are no longer referenced by any task."""

from __future__ import annotations

import argparse
from datetime import timedelta

from taskboard.application.use_cases.task_files import sweep_orphaned_files
from taskboard.config import get_settings
from taskboard.infrastructure.chunk_store import ChunkStore, ChunkStoreError
from taskboard.infrastructure.database import SessionLocal, initialize_database
from taskboard.logging_config import setup_logging


def parse_args() -> argparse.Namespace:
    settings = get_settings()
    parser = argparse.ArgumentParser(
        description="Remove stored files whose task no longer lists them.",
    )
    parser.add_argument(
        "--grace-seconds",
        type=int,
        default=settings.orphan_grace_period_seconds,
        help=(
            "Only files older than this many seconds are considered "
            f"(default: {settings.orphan_grace_period_seconds})"
        ),
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report orphaned files without deleting them.",
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    if args.grace_seconds < 0:
        raise SystemExit("--grace-seconds cannot be negative.")

    settings = get_settings()
    setup_logging(settings.log_level)
    initialize_database()

    session = SessionLocal()
    try:
        with ChunkStore(SessionLocal, chunk_size=settings.upload_chunk_size_bytes) as store:
            report = sweep_orphaned_files(
                session,
                store,
                grace_period=timedelta(seconds=args.grace_seconds),
                dry_run=args.dry_run,
            )
    except ChunkStoreError as exc:
        raise SystemExit(f"The sweep could not read the file store: {exc}") from exc
    finally:
        session.close()

    print(
        f"Scanned {report.scanned} file(s); {len(report.orphaned)} orphaned, "
        f"{len(report.deleted)} deleted, {len(report.failed)} failed."
    )
    if args.dry_run:
        for file_id in report.orphaned:
            print(f"  {file_id} would be deleted")


if __name__ == "__main__":
    main()
