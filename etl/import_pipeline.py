# WORKFLOW: End-to-end arrivals reimport pipeline.
# Used by: CLI (scripts/import_arrivals.py), integration tests
# Functions:
# 1. prepare() - Parse the export and aggregate contracts (no side effects)
# 2. preview_import() - Dry-run: build the preview and count linkable documents
# 3. persist_contracts() - Live writes for all contracts inside one unit of work
# 4. run_import() - Parse -> aggregate -> preview or clear + reimport, commit once
#
# Pipeline flow: Export -> RowParser -> Aggregator -> [dry-run: Reporter] | [live: UnitOfWork{clear -> lookups -> writer -> linker} -> commit]
# Any failure in the live path rolls back every insert of the run and propagates as TransactionRolledBack.

"""
End-to-end arrivals reimport pipeline.
"""

import logging
from pathlib import Path
from typing import Callable, List, Optional

import structlog
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from core.config import settings
from core.exceptions import SourceFileNotFound, TransactionRolledBack
from db.session import UnitOfWork
from etl.aggregator import aggregate_contracts
from etl.records import AggregatedContract, ContractStatus, ImportStats, ParsedRecord
from etl.row_parser import parse_file
from etl.validators import validate_record
from services.document_linker import link_document_folder
from services.master_data import Lookups, check_section_branches, load_lookups
from services.persistence import backup_existing_data, clear_transactional_data, insert_contract, insert_shipment
from services.reporting import DryRunPreview, build_preview

logger = logging.getLogger(__name__)
events = structlog.get_logger(__name__)


class ImportResult(BaseModel):
    records: List[ParsedRecord] = Field(default_factory=list)
    contracts: List[AggregatedContract] = Field(default_factory=list)
    stats: ImportStats = Field(default_factory=ImportStats)
    preview: Optional[DryRunPreview] = None
    dry_run: bool = False
    committed: bool = False


def prepare(source_path: str, docs_folder: Optional[str] = None,
            placeholder_year: Optional[int] = None) -> ImportResult:
    """
    Parse and aggregate the export without touching storage.

    Args:
        source_path: Path to the export
        docs_folder: Optional root of scanned document folders
        placeholder_year: Year for month-only dates (defaults to settings)

    Returns:
        ImportResult holding records and contracts
    """
    if not Path(source_path).is_file():
        raise SourceFileNotFound(source_path)

    records = parse_file(
        source_path,
        docs_folder,
        placeholder_year=placeholder_year or settings.month_placeholder_year,
        min_columns=settings.min_columns,
    )

    for record in records:
        is_valid, errors, warnings = validate_record(record)
        if not is_valid:
            logger.warning(f"Record {record.sn}: {'; '.join(errors)}")
        elif warnings:
            logger.debug(f"Record {record.sn}: {'; '.join(warnings)}")

    contracts = aggregate_contracts(records)
    logger.info(
        f"Unique contracts: {len(contracts)}, "
        f"total shipments: {sum(1 for r in records if r.is_shipment)}"
    )
    return ImportResult(records=records, contracts=contracts)


def preview_import(result: ImportResult, documents_path: str) -> ImportResult:
    """Fill the dry-run preview and count the documents a live run would link."""
    for record in result.records:
        link_document_folder(None, record, None, None, result.stats, documents_path, dry_run=True)
    result.preview = build_preview(result.records, result.contracts)
    result.dry_run = True
    return result


def persist_contracts(uow: UnitOfWork, contracts: List[AggregatedContract], lookups: Lookups,
                      stats: ImportStats, documents_path: str, year: Optional[int] = None) -> None:
    """
    Write every contract, its shipments and linked documents.

    Args:
        uow: Active unit of work
        contracts: Aggregated contracts
        lookups: Run lookups
        stats: Run statistics
        documents_path: Canonical document storage root
        year: Year component of document paths
    """
    total = len(contracts)
    progress_every = max(settings.progress_every, 1)

    for processed, contract in enumerate(contracts, start=1):
        try:
            contract_id = insert_contract(uow, contract, lookups, stats, created_by=settings.import_user)

            for record in contract.records:
                shipment_id = None
                if record.is_shipment:
                    shipment_id = insert_shipment(uow, record, contract_id, lookups, stats,
                                                  created_by=settings.import_user)
                link_document_folder(uow, record, contract_id, shipment_id, stats, documents_path,
                                     year=year, uploaded_by=settings.import_user)
        except Exception as e:
            logger.error(f"Error processing contract {contract.contract_no}: {e}")
            raise

        if processed % progress_every == 0 or processed == total:
            logger.info(f"[{processed}/{total}] {processed / total * 100:.1f}%")


def run_import(source_path: Optional[str] = None, docs_folder: Optional[str] = None,
               documents_path: Optional[str] = None, dry_run: bool = False, backup: bool = False,
               session_factory: Optional[Callable[[], Session]] = None,
               year: Optional[int] = None) -> ImportResult:
    """
    Run the reimport.

    Args:
        source_path: Export file (defaults to settings.source_csv_path)
        docs_folder: Scanned document root (defaults to settings.docs_folder)
        documents_path: Canonical storage root (defaults to settings.documents_path)
        dry_run: Preview only, no mutation
        backup: Dump transactional tables to JSON before clearing
        session_factory: Session factory (defaults to the configured database)
        year: Year component of document paths (defaults to the current year)

    Returns:
        ImportResult with records, contracts, stats and (dry-run) preview

    Raises:
        SourceFileNotFound: The export does not exist
        TransactionRolledBack: The live run failed and was rolled back
    """
    source_path = source_path or settings.source_csv_path
    docs_folder = docs_folder if docs_folder is not None else settings.docs_folder
    documents_path = documents_path or settings.documents_path

    events.info("import_started", source=source_path, mode="dry_run" if dry_run else "live")
    result = prepare(source_path, docs_folder)

    if dry_run:
        return preview_import(result, documents_path)

    stats = result.stats
    try:
        with UnitOfWork(session_factory) as uow:
            if backup:
                backup_existing_data(uow, settings.backup_dir)

            clear_transactional_data(uow)
            lookups = load_lookups(uow)
            check_section_branches(lookups)

            persist_contracts(uow, result.contracts, lookups, stats, documents_path, year=year)

            uow.commit()
            result.committed = True
    except Exception as e:
        events.error("import_rolled_back", error=str(e), error_type=type(e).__name__)
        raise TransactionRolledBack(e) from e

    active = sum(1 for c in result.contracts if c.status == ContractStatus.ACTIVE)
    events.info(
        "import_committed",
        contracts=len(result.contracts),
        active_contracts=active,
        shipments=stats.shipments_created,
        documents_linked=stats.documents_linked,
    )
    return result
