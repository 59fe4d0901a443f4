"""
Run one feed import from the CLI and print the result as JSON.

    python -m scripts.run_import GEIPAN --locator ./export_cas_pub.csv
"""

from __future__ import annotations

import argparse
import json
import os
import sys

from app.domain.errors import ImportRunError, UnknownSourceError
from app.ingestion.profiles import DEFAULT_REGISTRY, get_profile
from app.logging_utils import configure_logging
from app.repositories.import_log_repository import ImportLogRepository
from app.repositories.report_repository import ReportRepository
from app.services.import_session import get_import_session_runner
from db.session import SessionLocal


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Import one UFO sighting feed into the reports table.")
    parser.add_argument(
        "source",
        help=f"Source profile name ({', '.join(DEFAULT_REGISTRY.names())}).",
    )
    parser.add_argument(
        "--locator",
        dest="locator",
        default=None,
        help="URL or local path; defaults to the configured feed URL.",
    )
    parser.add_argument(
        "--chunk-size",
        dest="chunk_size",
        type=int,
        default=None,
        help="Rows per upsert statement (default IMPORT_CHUNK_SIZE).",
    )
    parser.add_argument(
        "--no-run-log",
        dest="run_log",
        action="store_false",
        help="Do not write an imports_log row.",
    )
    args = parser.parse_args(argv)

    configure_logging(os.getenv("LOG_LEVEL", "INFO"))

    try:
        profile = get_profile(args.source)
    except UnknownSourceError as exc:
        print(str(exc), file=sys.stderr)
        return 2

    with SessionLocal() as db:
        try:
            result = get_import_session_runner().run_import(
                profile=profile,
                store=ReportRepository(db),
                locator=args.locator,
                chunk_size=args.chunk_size,
                run_log=ImportLogRepository(db) if args.run_log else None,
            )
        except ImportRunError as exc:
            print(json.dumps({"error": exc.to_dict()}, indent=2))
            return 1

    print(json.dumps(result.to_dict(), indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
