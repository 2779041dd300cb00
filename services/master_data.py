# WORKFLOW: Master-data resolution for ports, shipping companies and branches.
# Used by: Persistence writer, import pipeline
# Functions:
# 1. load_lookups() - Preload name -> id maps once per run (after the destructive clear)
# 2. match_lookup() - Exact normalized match, then bidirectional substring containment
# 3. find_or_create_port() - Resolve a port name, creating the port on a miss
# 4. find_or_create_shipping_company() - Resolve a carrier name, creating it on a miss
# 5. find_branch() - Static alias table for destination branches (never creates)
# 6. check_section_branches() - Warn when a configured section warehouse is missing
#
# Resolution flow: Raw name -> normalize -> exact -> containment -> create + register in Lookups
# Lookups is one explicit context value; creating an entity extends it so later rows reuse the id.

import logging
from typing import Dict, List, Optional

from pydantic import BaseModel, Field
from sqlalchemy import select

from db.models import Branch, Company, Contract, Port
from db.session import UnitOfWork
from etl.records import ImportStats
from etl.sections import SECTION_MARKERS

logger = logging.getLogger(__name__)

# Section destination label -> branch names it is known under
BRANCH_ALIASES = {
    'sarmada 1': ['sarmada warehouse 1', 'sarmada'],
    'sarmada': ['sarmada warehouse 1'],
    'internal/domestic warehouse': ['turkey internal warehouse', 'antrepo'],
    'lattakia warehouse': ['lattakia warehouse', 'lattakia'],
}


class Lookups(BaseModel):
    ports: Dict[str, str] = Field(default_factory=dict)
    shipping_companies: Dict[str, str] = Field(default_factory=dict)
    branches: Dict[str, str] = Field(default_factory=dict)
    existing_contracts: Dict[str, str] = Field(default_factory=dict)


def normalize_name(name: Optional[str]) -> str:
    return (name or '').lower().strip()


def load_lookups(uow: UnitOfWork) -> Lookups:
    """
    Load master-data lookups.

    Args:
        uow: Active unit of work

    Returns:
        Lookups keyed by normalized name
    """
    lookups = Lookups()

    for port_id, name, country in uow.execute(select(Port.id, Port.name, Port.country)):
        if name:
            lookups.ports[normalize_name(name)] = port_id
        if country:
            lookups.ports[normalize_name(country)] = port_id

    companies = select(Company.id, Company.name).where(
        Company.is_shipping_line.is_(True), Company.is_deleted.is_(False)
    )
    for company_id, name in uow.execute(companies):
        if name:
            lookups.shipping_companies[normalize_name(name)] = company_id

    for branch_id, name in uow.execute(select(Branch.id, Branch.name).where(Branch.is_active.is_(True))):
        if name:
            lookups.branches[normalize_name(name)] = branch_id

    contracts = select(Contract.id, Contract.contract_no).where(Contract.is_deleted.is_(False))
    for contract_id, contract_no in uow.execute(contracts):
        if contract_no:
            lookups.existing_contracts[normalize_name(contract_no)] = contract_id

    logger.info(
        f"Loaded lookups: {len(lookups.ports)} ports, "
        f"{len(lookups.shipping_companies)} shipping companies, {len(lookups.branches)} branches"
    )
    return lookups


def match_lookup(name: str, mapping: Dict[str, str]) -> Optional[str]:
    """
    Find ``name`` in ``mapping``: exact key first, then either side containing the other.

    Args:
        name: Raw or normalized name
        mapping: Normalized name -> id

    Returns:
        Matching id, or None
    """
    normalized = normalize_name(name)
    if not normalized:
        return None

    if normalized in mapping:
        return mapping[normalized]

    for key, entity_id in mapping.items():
        if key in normalized or normalized in key:
            return entity_id

    return None


def find_or_create_port(uow: UnitOfWork, port_name: str, lookups: Lookups,
                        stats: ImportStats) -> Optional[str]:
    """
    Resolve a port by name, creating it if no existing port matches.

    Args:
        uow: Active unit of work
        port_name: Port name as it appears in the export
        lookups: Run lookups, extended in place on creation
        stats: Run statistics

    Returns:
        Port id, or None for an empty name
    """
    if not port_name:
        return None

    port_id = match_lookup(port_name, lookups.ports)
    if port_id:
        return port_id

    port = uow.add(Port(name=port_name, country=port_name))
    lookups.ports[normalize_name(port_name)] = port.id
    stats.ports_created += 1
    logger.info(f"Created port: {port_name}")

    return port.id


def find_or_create_shipping_company(uow: UnitOfWork, company_name: str, lookups: Lookups,
                                    stats: ImportStats) -> Optional[str]:
    """
    Resolve a shipping line by name, creating it if no existing company matches.

    Args:
        uow: Active unit of work
        company_name: Carrier name as it appears in the export
        lookups: Run lookups, extended in place on creation
        stats: Run statistics

    Returns:
        Company id, or None for an empty name
    """
    if not company_name:
        return None

    company_id = match_lookup(company_name, lookups.shipping_companies)
    if company_id:
        return company_id

    company = uow.add(Company(name=company_name, is_shipping_line=True))
    lookups.shipping_companies[normalize_name(company_name)] = company.id
    stats.shipping_companies_created += 1
    logger.info(f"Created shipping company: {company_name}")

    return company.id


def find_branch(branch_name: str, lookups: Lookups) -> Optional[str]:
    """
    Find a destination branch by section label. Branches are never created.

    Args:
        branch_name: Destination label from a section header (e.g. "Sarmada 1")
        lookups: Run lookups

    Returns:
        Branch id, or None
    """
    normalized = normalize_name(branch_name)
    if not normalized:
        return None

    if normalized in lookups.branches:
        return lookups.branches[normalized]

    for candidate in BRANCH_ALIASES.get(normalized, []):
        if candidate in lookups.branches:
            return lookups.branches[candidate]

    return match_lookup(normalized, lookups.branches)


def check_section_branches(lookups: Lookups) -> List[str]:
    """
    Check that every configured section warehouse exists in the branches table.

    Returns:
        Names of sections whose fixed warehouse id is unknown
    """
    known_ids = set(lookups.branches.values())
    missing = []

    for marker, section in SECTION_MARKERS.items():
        if section.warehouse_id in known_ids:
            continue
        by_name = find_branch(section.destination, lookups)
        if by_name and by_name != section.warehouse_id:
            logger.warning(
                f"Section '{marker}' warehouse {section.warehouse_id} not found; "
                f"branch '{section.destination}' exists as {by_name}"
            )
        else:
            logger.warning(f"Section '{marker}' warehouse {section.warehouse_id} not found in branches")
        missing.append(marker)

    return missing
