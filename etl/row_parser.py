# WORKFLOW: Row parser turning export lines into ParsedRecord objects.
# Used by: Import pipeline, dry-run preview
# Functions:
# 1. scan_document_folders() - Map numeric folder prefixes to document folders (once per run)
# 2. classify_carrier_columns() - Tell the shipping-company cell from the tracking cell
# 3. is_shipment() - Shipment vs pending classification rule
# 4. build_product_lines() - One ProductLine per part of a compound quantity cell
# 5. RowParser.parse_line() - One line -> ParsedRecord (or None if skipped)
# 6. parse_file() - Whole export -> list of ParsedRecord
#
# Parsing flow: Line -> Section tracker -> Column split -> Skip rules -> Value parsers -> ParsedRecord
# Rows are stamped with the section active when they are read; later headers never change earlier rows.

"""
Row parser for the semicolon-separated arrivals export.
"""

import logging
import re
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from etl.records import ContractStatus, ParsedRecord, ProductLine
from etl.sections import SectionTracker
from etl.value_parsers import (
    ComplexValue, PriceValue, map_status, normalize_text, parse_complex_value, parse_date,
    parse_free_time, parse_price, round_count
)

logger = logging.getLogger(__name__)

MIN_COLUMNS = 7
HEADER_MARKERS = {'SN', 'تس', 'رقم'}
PRODUCT_HEADER = 'نوع البضاعة'
PLACEHOLDER_PREFIX = 'Column'

_LEADING_DIGITS = re.compile(r'^(\d+)')
_LONG_CODE = re.compile(r'^[A-Z0-9]{10,}$')
_SHORT_CODE = re.compile(r'^[A-Z0-9]{8,}$')


def leading_number(text: str) -> Optional[str]:
    match = _LEADING_DIGITS.match(text)
    return match.group(1) if match else None


def scan_document_folders(docs_folder: Optional[str]) -> Dict[str, str]:
    """
    List the document root once and key its subdirectories by leading digits.

    Args:
        docs_folder: Root holding one folder per contract (e.g. "255 Sugar")

    Returns:
        Mapping of numeric prefix -> folder path
    """
    folder_map: Dict[str, str] = {}
    if not docs_folder:
        return folder_map

    root = Path(docs_folder)
    if not root.is_dir():
        logger.warning(f"Document folder not found: {docs_folder}")
        return folder_map

    for entry in sorted(root.iterdir()):
        if not entry.is_dir():
            continue
        prefix = leading_number(entry.name)
        if prefix:
            folder_map[prefix] = str(entry)

    logger.info(f"Document folders found: {len(folder_map)}")
    return folder_map


def _looks_like_tracking(value: str, code_pattern) -> bool:
    return 'http' in value or 'MEDU' in value or bool(code_pattern.match(value))


def classify_carrier_columns(col13: str, col14: str, col15: str) -> Tuple[str, str]:
    """
    Decide which of the trailing cells is the shipping company and which the tracking.

    Historical exports put these in different columns. A cell looks like
    tracking when it is a URL, an MSC container prefix, or a long
    uppercase alphanumeric code.

    Args:
        col13, col14, col15: Raw cells 13-15 ("" when missing). Branches are
            chosen on the raw text, so a whitespace-only cell still counts as
            present; the chosen values are normalized.

    Returns:
        Tuple of (shipping_company, tracking)
    """
    shipping_company = ''
    tracking = ''

    if col14:
        value = normalize_text(col14)
        if _looks_like_tracking(value, _LONG_CODE):
            tracking = value
            shipping_company = normalize_text(col13 or col15)
        else:
            shipping_company = value
            tracking = normalize_text(col15)

    if not tracking and col15:
        value = normalize_text(col15)
        if _looks_like_tracking(value, _SHORT_CODE):
            tracking = value

    return shipping_company, tracking


def is_shipment(eta: Optional[str], tracking: str) -> bool:
    """A row is a shipment if it has an arrival date OR a real tracking reference."""
    has_eta = eta is not None
    has_tracking = bool(tracking) and not tracking.startswith(PLACEHOLDER_PREFIX)
    return has_eta or has_tracking


def build_product_lines(product_type: str, containers: ComplexValue,
                        weight: ComplexValue, price: PriceValue) -> List[ProductLine]:
    """
    Build one ProductLine per part of the compound container/weight cells.

    All parts share the row's product label; with more than one part the
    text gets a " (Part N)" suffix.
    """
    max_parts = max(len(weight.parts), len(containers.parts), 1)
    lines = []

    for p in range(max_parts):
        weight_part = weight.parts[p] if p < len(weight.parts) else None
        container_part = containers.parts[p] if p < len(containers.parts) else None
        lines.append(ProductLine(
            product_text=product_type + (f" (Part {p + 1})" if max_parts > 1 else ""),
            product_type=product_type,
            weight_ton=weight_part or None,
            price_per_ton=price.price,
            container_count=round_count(container_part),
            currency=price.currency,
        ))

    return lines


def _cell(cols: Sequence[str], index: int) -> str:
    return cols[index] if index < len(cols) else ''


class RowParser:
    """
    Stateful parser for one import run.

    Holds the section tracker, the SNs already emitted in this run and the
    document folder listing.
    """

    def __init__(self, folder_map: Optional[Dict[str, str]] = None,
                 tracker: Optional[SectionTracker] = None,
                 placeholder_year: Optional[int] = None,
                 min_columns: int = MIN_COLUMNS):
        self.folder_map = folder_map or {}
        self.tracker = tracker or SectionTracker()
        self.placeholder_year = placeholder_year
        self.min_columns = min_columns
        self.used_sns = set()

    def unique_sn(self, sn_raw: str) -> str:
        sn = sn_raw
        counter = 1
        while sn in self.used_sns:
            sn = f"{sn_raw}-dup{counter}"
            counter += 1
        self.used_sns.add(sn)
        return sn

    def parse_line(self, raw_line: str) -> Optional[ParsedRecord]:
        """
        Parse one line of the export.

        Args:
            raw_line: Line as read from the file

        Returns:
            ParsedRecord, or None when the line is skipped
        """
        line = raw_line.strip()
        if not line:
            return None

        self.tracker.observe(line)

        cols = line.split(';')
        if len(cols) < self.min_columns:
            return None

        sn_raw = cols[0].strip()
        if not sn_raw or sn_raw in HEADER_MARKERS:
            return None
        if PRODUCT_HEADER in _cell(cols, 1):
            return None
        if sn_raw.startswith(PLACEHOLDER_PREFIX) or sn_raw.startswith('#'):
            return None

        product_type = normalize_text(_cell(cols, 1))
        if not product_type:
            logger.debug(f"Skipping row {sn_raw}: no product type")
            return None

        sn = self.unique_sn(sn_raw)
        if sn != sn_raw:
            logger.warning(f"Duplicate SN {sn_raw} renamed to {sn}")

        containers = parse_complex_value(_cell(cols, 2))
        weight = parse_complex_value(_cell(cols, 3))
        price = parse_price(_cell(cols, 4))
        eta = parse_date(_cell(cols, 7), self.placeholder_year)
        balance = parse_price(_cell(cols, 11))

        shipping_company, tracking = classify_carrier_columns(
            _cell(cols, 13),
            _cell(cols, 14),
            _cell(cols, 15),
        )
        shipment = is_shipment(eta, tracking)

        base_contract_no = leading_number(sn_raw) or sn_raw
        section = self.tracker.current

        return ParsedRecord(
            sn=sn,
            base_contract_no=base_contract_no,
            is_shipment=shipment,
            contract_status=ContractStatus.ACTIVE if shipment else ContractStatus.PENDING,
            status=map_status(_cell(cols, 10)),
            paperwork_status=normalize_text(_cell(cols, 12)),
            product_lines=build_product_lines(product_type, containers, weight, price),
            total_containers=containers.total,
            total_weight=weight.total,
            pol=normalize_text(_cell(cols, 5)),
            pod=normalize_text(_cell(cols, 6)),
            eta=eta,
            balance_usd=balance.price,
            tracking=tracking,
            shipping_company=shipping_company,
            free_time_days=parse_free_time(_cell(cols, 8), _cell(cols, 9)),
            document_folder=self.folder_map.get(base_contract_no),
            section_name=section.name,
            beneficiary=section.beneficiary,
            destination=section.destination,
            branch_id=section.branch_id,
            warehouse_id=section.warehouse_id,
        )

    def parse_lines(self, lines) -> List[ParsedRecord]:
        records = []
        for line in lines:
            record = self.parse_line(line)
            if record is not None:
                records.append(record)
        return records


def parse_file(csv_path: str, docs_folder: Optional[str] = None,
               placeholder_year: Optional[int] = None,
               min_columns: int = MIN_COLUMNS) -> List[ParsedRecord]:
    """
    Parse the whole export.

    Args:
        csv_path: Path to the semicolon-separated export
        docs_folder: Optional root of scanned document folders
        placeholder_year: Year for month-only dates
        min_columns: Minimum column count of a data row

    Returns:
        List of ParsedRecord in file order
    """
    try:
        content = Path(csv_path).read_text(encoding='utf-8-sig')
    except Exception as e:
        logger.error(f"Failed to read export {csv_path}: {e}")
        raise

    lines = content.split('\n')
    logger.info(f"Reading export: {csv_path} ({len(lines)} lines)")

    parser = RowParser(
        folder_map=scan_document_folders(docs_folder),
        placeholder_year=placeholder_year,
        min_columns=min_columns,
    )
    records = parser.parse_lines(lines)

    logger.info(f"Parsed {len(records)} valid records")
    return records
