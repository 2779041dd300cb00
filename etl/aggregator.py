# WORKFLOW: Aggregation of parsed rows into one contract per base contract number.
# Used by: Import pipeline, dry-run preview
# Functions:
# 1. base_contract_number() - Numeric prefix of an SN ("390" from "390-A")
# 2. merge_product_lines() - Merge lines by exact product text, summing quantities
# 3. aggregate_contracts() - Group records and derive contract status
#
# Aggregation flow: ParsedRecord list -> group by base number -> merge lines -> AggregatedContract list
# A contract is ACTIVE iff at least one of its rows is a shipment; promotion never reverts.

import logging
import re
from typing import Dict, List

from etl.records import AggregatedContract, ContractStatus, ParsedRecord, ProductLine

logger = logging.getLogger(__name__)


def base_contract_number(sn: str) -> str:
    match = re.match(r'^(\d+)', sn)
    return match.group(1) if match else sn


def merge_product_lines(existing: List[ProductLine], incoming: List[ProductLine]) -> None:
    """
    Merge ``incoming`` into ``existing`` in place.

    A line whose text is not yet present is appended as a copy; otherwise its
    weight and container count are added to the existing line.
    """
    for line in incoming:
        match = next((c for c in existing if c.product_text == line.product_text), None)
        if match is None:
            existing.append(line.model_copy())
            continue
        match.weight_ton = (match.weight_ton or 0) + (line.weight_ton or 0)
        match.container_count = (match.container_count or 0) + (line.container_count or 0)


def aggregate_contracts(records: List[ParsedRecord]) -> List[AggregatedContract]:
    """
    Group records by base contract number.

    Args:
        records: Parsed rows in file order

    Returns:
        One AggregatedContract per base number, in order of first appearance
    """
    contracts: Dict[str, AggregatedContract] = {}

    for record in records:
        key = record.base_contract_no or base_contract_number(record.sn)
        contract = contracts.get(key)

        if contract is None:
            contract = AggregatedContract(
                contract_no=key,
                status=ContractStatus.PENDING,
                beneficiary=record.beneficiary,
                destination=record.destination,
                branch_id=record.branch_id,
                warehouse_id=record.warehouse_id,
            )
            contracts[key] = contract

        merge_product_lines(contract.product_lines, record.product_lines)
        contract.total_containers += record.total_containers
        contract.total_weight += record.total_weight
        contract.records.append(record)

        if record.is_shipment:
            contract.status = ContractStatus.ACTIVE

        # First non-empty port wins
        if not contract.pol and record.pol:
            contract.pol = record.pol
        if not contract.pod and record.pod:
            contract.pod = record.pod

    aggregated = list(contracts.values())
    active = sum(1 for c in aggregated if c.status == ContractStatus.ACTIVE)
    logger.info(
        f"Aggregated {len(records)} records into {len(aggregated)} contracts "
        f"({active} active, {len(aggregated) - active} pending)"
    )
    return aggregated
