# WORKFLOW: In-memory record types passed between pipeline stages.
# Used by: Row parser, aggregator, persistence writer, document linker, reporter
# Models include:
# 1. ProductLine - One product (or one part of a compound cell) on a row
# 2. ParsedRecord - One data row of the export with its section context
# 3. AggregatedContract - All rows sharing a base contract number
# 4. FinalDestination - Branch/warehouse payload stored on shipment logistics
# 5. ImportStats - Counters for the final report
#
# Record flow: Row parser -> ParsedRecord -> Aggregator -> AggregatedContract -> Writer
# None of these are persisted directly; they live for one import run.

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class ContractStatus(str, Enum):
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"


class ProductLine(BaseModel):
    product_text: str
    product_type: str
    weight_ton: Optional[float] = None
    price_per_ton: Optional[float] = None
    container_count: Optional[int] = None
    currency: str = "USD"


class ParsedRecord(BaseModel):
    sn: str
    base_contract_no: str
    is_shipment: bool
    contract_status: ContractStatus
    status: str = "planning"
    paperwork_status: str = ""
    product_lines: List[ProductLine] = Field(default_factory=list)
    total_containers: float = 0
    total_weight: float = 0
    pol: str = ""
    pod: str = ""
    eta: Optional[str] = None
    balance_usd: Optional[float] = None
    tracking: str = ""
    shipping_company: str = ""
    free_time_days: Optional[int] = None
    document_folder: Optional[str] = None

    # Section context active when the row was read
    section_name: str = ""
    beneficiary: str = ""
    destination: str = ""
    branch_id: str = ""
    warehouse_id: str = ""

    @property
    def primary_product(self) -> str:
        return self.product_lines[0].product_text if self.product_lines else ""


class AggregatedContract(BaseModel):
    contract_no: str
    status: ContractStatus
    product_lines: List[ProductLine] = Field(default_factory=list)
    total_containers: float = 0
    total_weight: float = 0
    pol: str = ""
    pod: str = ""
    records: List[ParsedRecord] = Field(default_factory=list)
    beneficiary: str = ""
    destination: str = ""
    branch_id: str = ""
    warehouse_id: str = ""

    @property
    def shipment_records(self) -> List[ParsedRecord]:
        return [r for r in self.records if r.is_shipment]

    @property
    def primary_currency(self) -> str:
        return self.product_lines[0].currency if self.product_lines else "USD"


class FinalDestination(BaseModel):
    type: str = "branch"
    branch_id: str
    warehouse_id: str
    name: str = ""
    delivery_place: str = ""


class ImportStats(BaseModel):
    ports_created: int = 0
    shipping_companies_created: int = 0
    pending_contracts_created: int = 0
    active_contracts_created: int = 0
    shipments_created: int = 0
    contract_lines_created: int = 0
    shipment_lines_created: int = 0
    documents_linked: int = 0
    documents_copied: int = 0
    document_errors: int = 0
