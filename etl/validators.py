# WORKFLOW: Data validation for parsed export records.
# Used by: Import pipeline, dry-run preview
# Functions:
# 1. validate_iso_date() - Check an ISO date string
# 2. validate_record() - Errors and warnings for one ParsedRecord
# 3. generate_validation_report() - Summary across all records
#
# Validation flow: ParsedRecord -> Field checks -> Business checks -> Report
# Findings are reported only; the export is irregular by nature and records are never rejected here.

"""
Data validation for parsed export records.
"""

import logging
import re
from typing import Any, Dict, List, Tuple

from etl.records import ParsedRecord

logger = logging.getLogger(__name__)

ISSUE_SAMPLE_LIMIT = 10


def validate_iso_date(value: str) -> bool:
    """
    Validate ISO date format.

    Args:
        value: Date string to validate

    Returns:
        True if valid, False otherwise
    """
    return bool(value) and bool(re.match(r'^\d{4}-\d{2}-\d{2}$', value))


def validate_record(record: ParsedRecord) -> Tuple[bool, List[str], List[str]]:
    """
    Validate one parsed record.

    Args:
        record: Parsed row

    Returns:
        Tuple of (is_valid, errors, warnings)
    """
    errors = []
    warnings = []

    if not record.sn:
        errors.append("Missing shipment number (sn)")

    if record.eta is not None and not validate_iso_date(record.eta):
        errors.append(f"Invalid ETA date format: {record.eta}")

    if not record.product_lines:
        warnings.append("No product lines found")

    if record.balance_usd is not None and record.balance_usd < 0:
        warnings.append(f"Negative balance: {record.balance_usd}")

    if not record.pol:
        warnings.append("Missing Port of Loading (POL)")
    if not record.pod:
        warnings.append("Missing Port of Discharge (POD)")

    return len(errors) == 0, errors, warnings


def generate_validation_report(records: List[ParsedRecord]) -> Dict[str, Any]:
    """
    Create validation summary.

    Args:
        records: Parsed rows

    Returns:
        Dictionary with counts and a sample of issues per record
    """
    report = {
        "total_records": len(records),
        "invalid_records": 0,
        "records_with_warnings": 0,
        "issues": [],
    }

    for record in records:
        is_valid, errors, warnings = validate_record(record)
        if not is_valid:
            report["invalid_records"] += 1
        if warnings:
            report["records_with_warnings"] += 1
        if (errors or warnings) and len(report["issues"]) < ISSUE_SAMPLE_LIMIT:
            report["issues"].append({"sn": record.sn, "errors": errors, "warnings": warnings})

    logger.info(
        f"Validation: {report['invalid_records']} invalid, "
        f"{report['records_with_warnings']} with warnings out of {len(records)} records"
    )
    return report
