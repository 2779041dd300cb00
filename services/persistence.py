# WORKFLOW: Persistence writer for aggregated contracts and their shipments.
# Used by: Import pipeline (live mode only)
# Functions:
# 1. clear_transactional_data() - Delete every transactional table in dependency order
# 2. backup_existing_data() - Dump transactional tables to JSON before the clear
# 3. insert_contract() - Contract header + parties/shipping/terms/products + lines
# 4. insert_shipment() - Shipment header + parties/cargo/logistics/financials/documents + lines
#
# Write flow: UnitOfWork -> clear -> (per contract) insert_contract -> insert_shipment per shipment row
# Every function takes the unit of work explicitly; one failure rolls back the whole run.

import logging
from datetime import date, datetime
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd
from sqlalchemy import delete

from db.models import (
    TRANSACTIONAL_TABLES, Contract, ContractLine, ContractParties, ContractProducts,
    ContractShipping, ContractTerms, Shipment, ShipmentCargo, ShipmentDocuments,
    ShipmentFinancials, ShipmentLine, ShipmentLogistics, ShipmentParties
)
from db.session import UnitOfWork
from etl.records import AggregatedContract, ContractStatus, FinalDestination, ImportStats, ParsedRecord
from etl.value_parsers import round_count
from services.master_data import Lookups, find_or_create_port, find_or_create_shipping_company

logger = logging.getLogger(__name__)

DIRECTION = "incoming"
CARGO_TYPE = "containers"
INCOTERMS = "FOB"
PAYMENT_METHOD = "swift"
CREATED_BY = "csv_import"


def _to_date(value: Optional[str]) -> Optional[date]:
    return date.fromisoformat(value) if value else None


def clear_transactional_data(uow: UnitOfWork) -> Dict[str, int]:
    """
    Delete all rows from every transactional table, children first.

    Args:
        uow: Active unit of work

    Returns:
        Mapping of table name -> deleted row count
    """
    logger.info("Clearing all existing transactional data")
    deleted = {}

    for model in TRANSACTIONAL_TABLES:
        result = uow.execute(delete(model))
        deleted[model.__tablename__] = result.rowcount or 0
        if result.rowcount:
            logger.info(f"Cleared {model.__tablename__} ({result.rowcount} rows)")

    return deleted


def backup_existing_data(uow: UnitOfWork, backup_dir: str) -> List[str]:
    """
    Back up every transactional table to a timestamped JSON file.

    Args:
        uow: Active unit of work
        backup_dir: Directory for the backup files

    Returns:
        List of written file paths
    """
    target = Path(backup_dir)
    target.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y-%m-%dT%H-%M-%S")
    written = []

    try:
        connection = uow.session.connection()
        for model in reversed(TRANSACTIONAL_TABLES):
            df = pd.read_sql_table(model.__tablename__, connection)
            path = target / f"{model.__tablename__}_{timestamp}.json"
            df.to_json(path, orient="records", date_format="iso", force_ascii=False, indent=2)
            written.append(str(path))
            logger.info(f"Backed up {len(df)} rows from {model.__tablename__}")
    except Exception as e:
        logger.error(f"Failed to back up existing data: {e}")
        raise

    logger.info(f"Backups saved to: {target}")
    return written


def insert_contract(uow: UnitOfWork, contract: AggregatedContract, lookups: Lookups,
                    stats: ImportStats, created_by: str = CREATED_BY) -> str:
    """
    Insert a contract header, its sub-rows and one line per merged product line.

    Args:
        uow: Active unit of work
        contract: Aggregated contract
        lookups: Run lookups
        stats: Run statistics
        created_by: Audit user recorded on the header

    Returns:
        New contract id
    """
    header = uow.add(Contract(
        contract_no=contract.contract_no,
        status=contract.status.value,
        direction=DIRECTION,
        created_by=created_by,
    ))

    uow.add(ContractParties(contract_id=header.id))

    pol_id = find_or_create_port(uow, contract.pol, lookups, stats)
    pod_id = find_or_create_port(uow, contract.pod, lookups, stats)
    uow.add(ContractShipping(
        contract_id=header.id,
        port_of_loading_id=pol_id,
        port_of_discharge_id=pod_id,
        country_of_final_destination=contract.destination,
    ))

    uow.add(ContractTerms(
        contract_id=header.id,
        cargo_type=CARGO_TYPE,
        container_count=round_count(contract.total_containers),
        weight_ton=contract.total_weight or None,
        currency_code=contract.primary_currency,
    ))

    uow.add(ContractProducts(
        contract_id=header.id,
        beneficiary_name=contract.beneficiary,
        has_final_destination=True,
        final_destination_company_id=contract.warehouse_id,
        final_destination_name=contract.destination,
    ))

    for line in contract.product_lines:
        uow.add(ContractLine(
            contract_id=header.id,
            product_name=line.product_text,
            type_of_goods=line.product_type,
            quantity_mt=line.weight_ton,
            container_count=line.container_count,
            rate_usd_per_mt=line.price_per_ton,
            unit_price=line.price_per_ton,
            currency_code=line.currency,
        ))
        stats.contract_lines_created += 1

    lookups.existing_contracts[contract.contract_no.lower()] = header.id

    if contract.status == ContractStatus.PENDING:
        stats.pending_contracts_created += 1
    else:
        stats.active_contracts_created += 1

    return header.id


def build_final_destination(record: ParsedRecord) -> Optional[FinalDestination]:
    if not (record.branch_id and record.warehouse_id):
        return None
    return FinalDestination(
        branch_id=record.branch_id,
        warehouse_id=record.warehouse_id,
        name=record.beneficiary,
        delivery_place=record.destination,
    )


def insert_shipment(uow: UnitOfWork, record: ParsedRecord, contract_id: str, lookups: Lookups,
                    stats: ImportStats, created_by: str = CREATED_BY) -> str:
    """
    Insert a shipment header, its sub-rows and one line per product line.

    Args:
        uow: Active unit of work
        record: Parsed row classified as a shipment
        contract_id: Id of the owning contract
        lookups: Run lookups
        stats: Run statistics
        created_by: Audit user recorded on the header

    Returns:
        New shipment id
    """
    header = uow.add(Shipment(
        sn=record.sn,
        transaction_type=DIRECTION,
        status=record.status,
        paperwork_status=record.paperwork_status or None,
        contract_id=contract_id,
        created_by=created_by,
    ))

    shipping_line_id = find_or_create_shipping_company(uow, record.shipping_company, lookups, stats)
    uow.add(ShipmentParties(shipment_id=header.id, shipping_line_id=shipping_line_id))

    uow.add(ShipmentCargo(
        shipment_id=header.id,
        product_text=record.primary_product,
        cargo_type=CARGO_TYPE,
        container_count=round_count(record.total_containers),
        weight_ton=record.total_weight or None,
        weight_unit="tons",
    ))

    pol_id = find_or_create_port(uow, record.pol, lookups, stats)
    pod_id = find_or_create_port(uow, record.pod, lookups, stats)
    final_destination = build_final_destination(record)
    uow.add(ShipmentLogistics(
        shipment_id=header.id,
        pol_id=pol_id,
        pod_id=pod_id,
        eta=_to_date(record.eta),
        free_time_days=record.free_time_days,
        booking_no=record.tracking or None,
        incoterms=INCOTERMS,
        has_final_destination=final_destination is not None,
        final_destination=final_destination.model_dump() if final_destination else {},
    ))

    price_per_ton = record.product_lines[0].price_per_ton if record.product_lines else None
    uow.add(ShipmentFinancials(
        shipment_id=header.id,
        fixed_price_usd_per_ton=price_per_ton,
        balance_value_usd=record.balance_usd,
        payment_method=PAYMENT_METHOD,
    ))

    uow.add(ShipmentDocuments(shipment_id=header.id))

    for line in record.product_lines:
        uow.add(ShipmentLine(
            shipment_id=header.id,
            product_name=line.product_text,
            type_of_goods=line.product_type,
            quantity_mt=line.weight_ton,
            container_count=line.container_count,
            rate_usd_per_mt=line.price_per_ton,
            unit_price=line.price_per_ton,
            uom="MT",
        ))
        stats.shipment_lines_created += 1

    stats.shipments_created += 1
    return header.id
