"""Command line entry: python -m phonedex {ingest,init-db}"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from .config import settings

logger = logging.getLogger("phonedex")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="phonedex",
        description="Ingest normalized phone/tablet listings into the catalog database.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    ingest = sub.add_parser("ingest", help="Ingest normalized data files")
    ingest.add_argument(
        "files",
        nargs="*",
        help="Normalized JSON files (default: <data_dir>/<source>_normalized_data.json for each source)",
    )
    ingest.add_argument(
        "--source",
        default=None,
        help="Source name for all files (default: file name prefix, e.g. 'flipkart')",
    )

    sub.add_parser("init-db", help="Apply migrations and seed default categories")
    return parser.parse_args(argv)


def _init_db() -> None:
    from .database import SessionLocal, run_migrations
    from .store.sql import seed_default_categories

    logger.info("Running database migrations...")
    run_migrations()
    db = SessionLocal()
    try:
        seed_default_categories(db)
    finally:
        db.close()


async def _ingest(files: list[str], source: str | None) -> int:
    from .database import SessionLocal
    from .ingest.pipeline import Ingestor
    from .store.sql import SqlCatalogStore

    db = SessionLocal()
    try:
        ingestor = Ingestor(SqlCatalogStore(db))
        summaries = await ingestor.ingest_all(files or None, source)
    finally:
        db.close()
    return 0 if summaries else 1


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    if args.command == "init-db":
        _init_db()
        return 0
    return asyncio.run(_ingest(args.files, args.source))


if __name__ == "__main__":
    sys.exit(main())
