# WORKFLOW: Dry-run preview and statistics reporting.
# Used by: Import pipeline, CLI
# Functions:
# 1. build_preview() - Group parsed/aggregated data exactly as a live run would persist it
# 2. render_preview() - Text preview with truncated samples
# 3. render_stats() - Final statistics summary of a live run
#
# Reporting flow: ParsedRecord + AggregatedContract -> DataFrame grouping -> DryRunPreview -> text
# Reads in-memory structures only; never touches the database or the document store.

from typing import Any, Dict, List

import pandas as pd
from pydantic import BaseModel, Field

from etl.records import AggregatedContract, ContractStatus, ImportStats, ParsedRecord
from etl.validators import generate_validation_report

RULE = '═' * 70
SUBRULE = '─' * 50
PAPER_STATUS_LIMIT = 10


class DryRunPreview(BaseModel):
    sections: Dict[str, int] = Field(default_factory=dict)
    pending_contracts: List[AggregatedContract] = Field(default_factory=list)
    active_contracts: List[AggregatedContract] = Field(default_factory=list)
    shipments: List[ParsedRecord] = Field(default_factory=list)
    records_with_documents: int = 0
    total_records: int = 0
    unique_contracts: int = 0
    unique_ports: int = 0
    unique_shipping_companies: int = 0
    paperwork_statuses: Dict[str, int] = Field(default_factory=dict)
    validation: Dict[str, Any] = Field(default_factory=dict)


def _records_frame(records: List[ParsedRecord]) -> pd.DataFrame:
    columns = ['sn', 'section', 'is_shipment', 'pol', 'pod', 'shipping_company',
               'paperwork_status', 'has_documents']
    rows = [
        {
            'sn': r.sn,
            'section': f"{r.beneficiary} → {r.destination}",
            'is_shipment': r.is_shipment,
            'pol': r.pol,
            'pod': r.pod,
            'shipping_company': r.shipping_company,
            'paperwork_status': r.paperwork_status,
            'has_documents': bool(r.document_folder),
        }
        for r in records
    ]
    return pd.DataFrame(rows, columns=columns)


def build_preview(records: List[ParsedRecord], contracts: List[AggregatedContract]) -> DryRunPreview:
    """
    Summarize what a live run would create.

    Args:
        records: Parsed rows
        contracts: Aggregated contracts built from the same rows

    Returns:
        DryRunPreview
    """
    df = _records_frame(records)

    sections = df.groupby('section', sort=False).size()
    ports = pd.concat([df['pol'], df['pod']])
    paper = df.loc[df['paperwork_status'] != '', 'paperwork_status'].value_counts()

    return DryRunPreview(
        sections={k: int(v) for k, v in sections.items()},
        pending_contracts=[c for c in contracts if c.status == ContractStatus.PENDING],
        active_contracts=[c for c in contracts if c.status == ContractStatus.ACTIVE],
        shipments=[r for r in records if r.is_shipment],
        records_with_documents=int(df['has_documents'].sum()),
        total_records=len(records),
        unique_contracts=len(contracts),
        unique_ports=int(ports[ports != ''].nunique()),
        unique_shipping_companies=int(df.loc[df['shipping_company'] != '', 'shipping_company'].nunique()),
        paperwork_statuses={k: int(v) for k, v in paper.head(PAPER_STATUS_LIMIT).items()},
        validation=generate_validation_report(records),
    )


def _more(lines: List[str], total: int, limit: int) -> None:
    if total > limit:
        lines.append(f"  ... and {total - limit} more")


def render_preview(preview: DryRunPreview, sample_limit: int = 8) -> str:
    """Render the dry-run preview as text."""
    lines = ['', RULE, 'DRY RUN PREVIEW - No changes will be made', RULE]

    lines += ['', 'SECTIONS (Final Destination & Beneficiary):', SUBRULE]
    for section, count in preview.sections.items():
        lines.append(f"  {section}: {count} records")

    lines += ['', f"PENDING CONTRACTS (no shipments yet): {len(preview.pending_contracts)}", SUBRULE]
    for c in preview.pending_contracts[:sample_limit]:
        product = c.product_lines[0].product_text if c.product_lines else 'N/A'
        lines.append(f"  Contract {c.contract_no} | {product}")
        lines.append(f"    {c.pol or '?'} → {c.pod or '?'} | {c.beneficiary}")
    _more(lines, len(preview.pending_contracts), sample_limit)

    lines += ['', f"ACTIVE CONTRACTS (with shipments): {len(preview.active_contracts)}", SUBRULE]
    for c in preview.active_contracts[:sample_limit]:
        product = c.product_lines[0].product_text if c.product_lines else 'N/A'
        lines.append(f"  Contract {c.contract_no} → {len(c.shipment_records)} shipment(s)")
        lines.append(f"    {product} | {c.beneficiary}")
    _more(lines, len(preview.active_contracts), sample_limit)

    lines += ['', f"SHIPMENTS TOTAL: {len(preview.shipments)}", SUBRULE]
    for r in preview.shipments[:sample_limit]:
        lines.append(f"  {r.sn} | {r.primary_product or 'N/A'}")
        lines.append(f"    ETA: {r.eta or 'N/A'} | Status: {r.status} | Papers: {r.paperwork_status or 'N/A'}")
    _more(lines, len(preview.shipments), sample_limit)

    lines += ['', f"RECORDS WITH DOCUMENT FOLDERS: {preview.records_with_documents}"]

    lines += [
        '', 'SUMMARY:',
        f"  Total Records: {preview.total_records}",
        f"  Unique Contracts: {preview.unique_contracts}",
        f"  PENDING Contracts: {len(preview.pending_contracts)}",
        f"  ACTIVE Contracts: {len(preview.active_contracts)}",
        f"  Total Shipments: {len(preview.shipments)}",
        f"  With Document Folders: {preview.records_with_documents}",
        f"  Unique Ports: {preview.unique_ports}",
        f"  Unique Shipping Companies: {preview.unique_shipping_companies}",
    ]

    lines += ['', 'PAPER STATUS DISTRIBUTION:']
    for status, count in preview.paperwork_statuses.items():
        lines.append(f"  {count:>5} : {status}")

    if preview.validation:
        lines += [
            '', 'VALIDATION:',
            f"  Invalid records: {preview.validation.get('invalid_records', 0)}",
            f"  Records with warnings: {preview.validation.get('records_with_warnings', 0)}",
        ]
        for issue in preview.validation.get('issues', []):
            lines.append(f"  {issue['sn']}: {'; '.join(issue['errors'] + issue['warnings'])}")

    lines += ['', RULE, 'DRY RUN COMPLETE - Run without --dry-run to import', RULE]
    return '\n'.join(lines)


def render_stats(stats: ImportStats) -> str:
    """Render the statistics summary of a committed live run."""
    return '\n'.join([
        '', RULE, 'IMPORT COMPLETE', RULE,
        '', 'STATISTICS:',
        '  Master Data:',
        f"    Ports created: {stats.ports_created}",
        f"    Shipping companies created: {stats.shipping_companies_created}",
        '  Contracts:',
        f"    PENDING contracts: {stats.pending_contracts_created}",
        f"    ACTIVE contracts: {stats.active_contracts_created}",
        f"    Contract lines: {stats.contract_lines_created}",
        '  Shipments:',
        f"    Shipments created: {stats.shipments_created}",
        f"    Shipment lines: {stats.shipment_lines_created}",
        '  Documents:',
        f"    Documents linked: {stats.documents_linked}",
        f"    Documents copied: {stats.documents_copied}",
        f"    Document errors: {stats.document_errors}",
    ])
