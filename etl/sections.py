# WORKFLOW: Section tracking for the multi-section arrivals export.
# Used by: Row parser, master-data branch checks
# Components:
# 1. SECTION_MARKERS - Marker phrase -> beneficiary/destination and fixed branch/warehouse ids
# 2. SectionContext - The section stamped onto every parsed row
# 3. SectionTracker - Remembers the active section while lines are scanned in order
#
# Tracking flow: Line -> contains marker? -> switch active section -> stamp following rows
# Destination warehouses are a small curated set; they are mapped here, never created.

import logging

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class SectionContext(BaseModel):
    name: str
    beneficiary: str
    destination: str
    branch_id: str      # parent region
    warehouse_id: str   # child warehouse


SECTION_MARKERS = {
    'Loyal North Mahmut, Sarmada 1': SectionContext(
        name='Loyal North Mahmut, Sarmada 1',
        beneficiary='Loyal North Mahmut',
        destination='Sarmada 1',
        branch_id='5c111ac7-32d9-4177-bb34-d02a24f5aac2',
        warehouse_id='e765b024-86f8-4863-bc5a-cf0af0c30ae9',
    ),
    'Loyal Turkey, Internal/Domestic Warehouse': SectionContext(
        name='Loyal Turkey, Internal/Domestic Warehouse',
        beneficiary='Loyal Turkey',
        destination='Internal/Domestic Warehouse',
        branch_id='5392e93b-3ff8-4ad4-b513-ce5a2e1bf5a5',
        warehouse_id='9bdc3dde-14eb-4664-b3d7-8341d0e9ab0c',
    ),
    'Loyal Coast, Lattakia Warehouse': SectionContext(
        name='Loyal Coast, Lattakia Warehouse',
        beneficiary='Loyal Coast',
        destination='Lattakia Warehouse',
        branch_id='3be9877e-0815-45e3-bca9-c10e8249173f',
        warehouse_id='56a4db61-2561-44c7-9129-34aad6c90155',
    ),
}

DEFAULT_SECTION = 'Loyal North Mahmut, Sarmada 1'


class SectionTracker:
    """Holds the section active at the current line of the export."""

    def __init__(self, default: str = DEFAULT_SECTION):
        self.current = SECTION_MARKERS[default]

    def observe(self, line: str) -> bool:
        """
        Switch the active section if ``line`` carries a marker phrase.

        Returns:
            True if the line was a section header
        """
        for marker, context in SECTION_MARKERS.items():
            if marker in line:
                self.current = context
                logger.info(
                    f"Section: {marker} -> {context.beneficiary} / {context.destination} "
                    f"(branch: {context.branch_id}, warehouse: {context.warehouse_id})"
                )
                return True
        return False
