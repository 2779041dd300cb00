# WORKFLOW: Document linker for scanned contract folders.
# Used by: Import pipeline
# Functions:
# 1. detect_doc_type() - Classify a file by keywords in its name
# 2. canonical_docs_dir() - contracts/<year>/<contract_no>/docs under the storage root
# 3. list_pdf_files() - Eligible files of a matched folder
# 4. copy_document() - Scoped, non-overwriting copy via a .part file
# 5. link_document_folder() - Copy a record's PDFs and register document rows
#
# Linking flow: Matched folder -> PDFs -> classify -> copy (skip if present) -> documents row
# Copy failures are logged and skipped per file; they never abort the import.

import logging
import os
import re
import shutil
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from db.models import Document
from db.session import UnitOfWork
from etl.records import ImportStats, ParsedRecord

logger = logging.getLogger(__name__)

PDF_MIME_TYPE = "application/pdf"
PARTIAL_SUFFIX = ".part"

# First match wins, so more specific keywords come first
DOC_TYPE_KEYWORDS = [
    ('proforma_invoice', ['CONTRACT', 'PI', 'PROFORMA']),
    ('bill_of_lading', ['BL', 'PRESTATMENT', 'LADING']),
    ('phytosanitary_certificate', ['PHYTO']),
    ('commercial_invoice', ['INVOICE', 'CI']),
    ('packing_list', ['PACKING', 'PL']),
    ('certificate_of_origin', ['COO', 'ORIGIN']),
    ('certificate_of_analysis', ['COA', 'ANALYSIS']),
    ('fumigation_certificate', ['FUMIG']),
    ('health_certificate', ['HEALTH']),
    ('halal_certificate', ['HALAL']),
    ('shipping_instructions', ['BOOKING', 'EBKG']),
]


def detect_doc_type(filename: str) -> str:
    upper = filename.upper()
    for doc_type, keywords in DOC_TYPE_KEYWORDS:
        if any(keyword in upper for keyword in keywords):
            return doc_type
    return 'other'


def canonical_docs_dir(documents_path: str, contract_no: str, year: Optional[int] = None) -> Path:
    safe_contract_no = re.sub(r'[^\w\-]', '_', contract_no)
    return Path(documents_path) / 'contracts' / str(year or datetime.now().year) / safe_contract_no / 'docs'


def list_pdf_files(folder: str) -> List[Path]:
    return sorted(p for p in Path(folder).iterdir() if p.is_file() and p.suffix.lower() == '.pdf')


def copy_document(source: Path, target: Path) -> bool:
    """
    Copy ``source`` to ``target`` unless the target already exists.

    The bytes go to a ``.part`` sibling first and are moved onto ``target``
    only once complete, so a failed copy never leaves a truncated target.

    Returns:
        True if a copy was made
    """
    if target.exists():
        return False
    target.parent.mkdir(parents=True, exist_ok=True)
    partial = target.with_name(target.name + PARTIAL_SUFFIX)
    try:
        with open(source, 'rb') as src, open(partial, 'wb') as dst:
            shutil.copyfileobj(src, dst)
        os.replace(partial, target)
    except OSError:
        partial.unlink(missing_ok=True)
        raise
    return True


def link_document_folder(uow: Optional[UnitOfWork], record: ParsedRecord, contract_id: Optional[str],
                         shipment_id: Optional[str], stats: ImportStats, documents_path: str,
                         dry_run: bool = False, year: Optional[int] = None,
                         uploaded_by: str = "csv_import") -> int:
    """
    Link the PDFs of a record's matched folder to its contract (and shipment).

    Args:
        uow: Active unit of work (unused in dry-run)
        record: Parsed row with an optional matched document folder
        contract_id: Owning contract id
        shipment_id: Shipment id when the row was imported as a shipment
        stats: Run statistics
        documents_path: Canonical storage root
        dry_run: Count files without copying or registering them
        year: Year component of the canonical path (defaults to the current year)
        uploaded_by: Audit user recorded on the document rows

    Returns:
        Number of documents linked for this record
    """
    if not record.document_folder or not Path(record.document_folder).is_dir():
        return 0

    try:
        pdf_files = list_pdf_files(record.document_folder)
    except OSError as e:
        logger.error(f"Failed to list documents in {record.document_folder}: {e}")
        stats.document_errors += 1
        return 0

    target_folder = canonical_docs_dir(documents_path, record.base_contract_no, year)
    linked = 0

    for source in pdf_files:
        doc_type = detect_doc_type(source.name)

        if dry_run:
            logger.info(f"Would link: {source.name} ({doc_type})")
            stats.documents_linked += 1
            linked += 1
            continue

        target = target_folder / source.name
        try:
            if copy_document(source, target):
                stats.documents_copied += 1
            file_size = source.stat().st_size
        except OSError as e:
            logger.error(f"Failed to copy document {source} for {record.sn}: {e}")
            stats.document_errors += 1
            continue

        uow.add(Document(
            contract_id=contract_id,
            shipment_id=shipment_id,
            doc_type=doc_type,
            filename=source.name,
            file_path=str(target),
            file_size=file_size,
            mime_type=PDF_MIME_TYPE,
            uploaded_by=uploaded_by,
        ))
        stats.documents_linked += 1
        linked += 1

    return linked
