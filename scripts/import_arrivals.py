# WORKFLOW: Command-line entry point for the arrivals reimport.
# Used by: Operators running a full clear-and-reimport, or a dry-run audit
# Functions:
# 1. build_parser() - --dry-run, --backup, --file, --docs, --documents-path
# 2. main() - Run the pipeline, print the preview or statistics, return the exit code
#
# CLI flow: Parse args -> configure logging -> connection check (live) -> run_import() -> print report -> exit code
# No flags runs the live import, which DELETES all transactional data first.

"""
Arrivals export reimport script.

Usage:
    # Dry run - preview what will be created
    python scripts/import_arrivals.py --dry-run

    # Live import (will DELETE all existing data first!)
    python scripts/import_arrivals.py
"""

import sys
import logging
import argparse
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from core.config import settings  # noqa: E402
from core.exceptions import SourceFileNotFound, TransactionRolledBack  # noqa: E402
from db.session import check_db_connection  # noqa: E402
from core.logging_setup import configure_logging  # noqa: E402
from etl.import_pipeline import run_import  # noqa: E402
from services.reporting import render_preview, render_stats  # noqa: E402

logger = logging.getLogger(__name__)

BANNER = """╔════════════════════════════════════════════════════════════════════╗
║           ARRIVALS EXPORT REIMPORT                                 ║
║  Fresh Start with Section-Based Destinations                       ║
╚════════════════════════════════════════════════════════════════════╝"""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Reimport contracts and shipments from the arrivals export',
        epilog='Without --dry-run the import DELETES all existing contracts, shipments and documents first.'
    )
    parser.add_argument('--dry-run', action='store_true', help='Preview changes without modifying the database')
    parser.add_argument('--backup', action='store_true', help='Back up existing data to JSON before clearing')
    parser.add_argument('--file', default=settings.source_csv_path, help='Path to the semicolon-separated export')
    parser.add_argument('--docs', default=settings.docs_folder, help='Folder holding one scanned folder per contract')
    parser.add_argument('--documents-path', default=settings.documents_path,
                        help='Canonical document storage root')
    return parser


def main(argv=None) -> int:
    """
    Main import function.
    """
    args = build_parser().parse_args(argv)
    configure_logging(settings.log_level, settings.log_file or None)

    print(BANNER)
    print(f"\nExport file: {args.file}")
    print(f"Docs folder: {args.docs}")
    print(f"Mode: {'DRY RUN (no changes)' if args.dry_run else 'LIVE IMPORT (will delete existing data!)'}")

    if not args.dry_run and not check_db_connection():
        print("\nDatabase connection failed; nothing was changed.")
        return 1

    try:
        result = run_import(
            source_path=args.file,
            docs_folder=args.docs,
            documents_path=args.documents_path,
            dry_run=args.dry_run,
            backup=args.backup,
        )
    except SourceFileNotFound as e:
        logger.error(str(e))
        print(f"\nImport failed: {e}")
        return 1
    except TransactionRolledBack as e:
        logger.error(f"Import rolled back: {e}")
        print("\nTransaction rolled back due to error:")
        print(f"   {e}")
        return 1
    except Exception as e:
        logger.error(f"Import failed: {e}")
        print("\nImport failed before any database changes:")
        print(f"   {type(e).__name__}: {e}")
        return 1

    if result.dry_run:
        print(render_preview(result.preview, settings.preview_sample_limit))
    else:
        print(render_stats(result.stats))
    return 0


if __name__ == "__main__":
    sys.exit(main())
