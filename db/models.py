# WORKFLOW: Database models for the normalized contract/shipment schema.
# Used by: Persistence writer, master-data resolver, document linker, tests
# Models represent:
# 1. ports / companies / branches - Master data referenced by foreign keys
# 2. contracts + contract_parties/shipping/terms/products/lines - Contract header and sub-tables
# 3. shipments + shipment_parties/cargo/lines/logistics/financials/documents - Shipment header and sub-tables
# 4. documents - Archive of linked scanned document metadata
#
# Data flow: Export file -> Parse -> Aggregate -> Persistence writer -> These tables

import uuid
from datetime import datetime

from sqlalchemy import Column, Integer, String, Float, Boolean, Date, DateTime, Text, JSON, ForeignKey, Index
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def new_id() -> str:
    return str(uuid.uuid4())


# Master data

class Port(Base):
    __tablename__ = "ports"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(200), nullable=False)
    country = Column(String(200), nullable=True)

    __table_args__ = (
        Index('idx_ports_name', 'name'),
    )


class Company(Base):
    __tablename__ = "companies"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(300), nullable=False)
    is_shipping_line = Column(Boolean, default=False, nullable=False)
    is_deleted = Column(Boolean, default=False, nullable=False)

    __table_args__ = (
        Index('idx_companies_name', 'name'),
    )


class Branch(Base):
    __tablename__ = "branches"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(200), nullable=False)
    parent_id = Column(String(36), ForeignKey("branches.id"), nullable=True)
    branch_type = Column(String(30), nullable=True)  # region, warehouse
    is_active = Column(Boolean, default=True, nullable=False)


# Contracts

class Contract(Base):
    __tablename__ = "contracts"

    id = Column(String(36), primary_key=True, default=new_id)
    contract_no = Column(String(100), nullable=False)
    status = Column(String(20), nullable=False)  # PENDING, ACTIVE
    direction = Column(String(20), nullable=False, default="incoming")
    created_by = Column(String(100), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    is_deleted = Column(Boolean, default=False, nullable=False)

    # Relationships
    lines = relationship("ContractLine", back_populates="contract")
    shipments = relationship("Shipment", back_populates="contract")

    __table_args__ = (
        Index('idx_contracts_contract_no', 'contract_no'),
        Index('idx_contracts_status', 'status'),
    )


class ContractParties(Base):
    __tablename__ = "contract_parties"

    id = Column(Integer, primary_key=True, autoincrement=True)
    contract_id = Column(String(36), ForeignKey("contracts.id"), nullable=False)
    seller_company_id = Column(String(36), ForeignKey("companies.id"), nullable=True)
    buyer_company_id = Column(String(36), ForeignKey("companies.id"), nullable=True)


class ContractShipping(Base):
    __tablename__ = "contract_shipping"

    id = Column(Integer, primary_key=True, autoincrement=True)
    contract_id = Column(String(36), ForeignKey("contracts.id"), nullable=False)
    port_of_loading_id = Column(String(36), ForeignKey("ports.id"), nullable=True)
    port_of_discharge_id = Column(String(36), ForeignKey("ports.id"), nullable=True)
    country_of_final_destination = Column(String(200), nullable=True)


class ContractTerms(Base):
    __tablename__ = "contract_terms"

    id = Column(Integer, primary_key=True, autoincrement=True)
    contract_id = Column(String(36), ForeignKey("contracts.id"), nullable=False)
    cargo_type = Column(String(30), nullable=True)
    container_count = Column(Integer, nullable=True)
    weight_ton = Column(Float, nullable=True)
    currency_code = Column(String(3), nullable=True)


class ContractProducts(Base):
    __tablename__ = "contract_products"

    id = Column(Integer, primary_key=True, autoincrement=True)
    contract_id = Column(String(36), ForeignKey("contracts.id"), nullable=False)
    beneficiary_name = Column(String(300), nullable=True)
    has_final_destination = Column(Boolean, default=False, nullable=False)
    final_destination_company_id = Column(String(36), nullable=True)  # warehouse id from section table
    final_destination_name = Column(String(300), nullable=True)


class ContractLine(Base):
    __tablename__ = "contract_lines"

    id = Column(Integer, primary_key=True, autoincrement=True)
    contract_id = Column(String(36), ForeignKey("contracts.id"), nullable=False)
    product_name = Column(Text, nullable=False)
    type_of_goods = Column(Text, nullable=True)
    quantity_mt = Column(Float, nullable=True)
    container_count = Column(Integer, nullable=True)
    rate_usd_per_mt = Column(Float, nullable=True)
    unit_price = Column(Float, nullable=True)
    currency_code = Column(String(3), nullable=True)

    # Relationships
    contract = relationship("Contract", back_populates="lines")


# Shipments

class Shipment(Base):
    __tablename__ = "shipments"

    id = Column(String(36), primary_key=True, default=new_id)
    sn = Column(String(100), nullable=False)
    transaction_type = Column(String(20), nullable=False, default="incoming")
    status = Column(String(30), nullable=False)
    paperwork_status = Column(Text, nullable=True)
    contract_id = Column(String(36), ForeignKey("contracts.id"), nullable=False)
    created_by = Column(String(100), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    contract = relationship("Contract", back_populates="shipments")
    lines = relationship("ShipmentLine", back_populates="shipment")

    __table_args__ = (
        Index('idx_shipments_sn', 'sn'),
        Index('idx_shipments_contract', 'contract_id'),
    )


class ShipmentParties(Base):
    __tablename__ = "shipment_parties"

    id = Column(Integer, primary_key=True, autoincrement=True)
    shipment_id = Column(String(36), ForeignKey("shipments.id"), nullable=False)
    shipping_line_id = Column(String(36), ForeignKey("companies.id"), nullable=True)


class ShipmentCargo(Base):
    __tablename__ = "shipment_cargo"

    id = Column(Integer, primary_key=True, autoincrement=True)
    shipment_id = Column(String(36), ForeignKey("shipments.id"), nullable=False)
    product_text = Column(Text, nullable=True)
    cargo_type = Column(String(30), nullable=True)
    container_count = Column(Integer, nullable=True)
    weight_ton = Column(Float, nullable=True)
    weight_unit = Column(String(10), nullable=True)


class ShipmentLine(Base):
    __tablename__ = "shipment_lines"

    id = Column(Integer, primary_key=True, autoincrement=True)
    shipment_id = Column(String(36), ForeignKey("shipments.id"), nullable=False)
    product_name = Column(Text, nullable=False)
    type_of_goods = Column(Text, nullable=True)
    quantity_mt = Column(Float, nullable=True)
    container_count = Column(Integer, nullable=True)
    rate_usd_per_mt = Column(Float, nullable=True)
    unit_price = Column(Float, nullable=True)
    uom = Column(String(10), nullable=True)

    # Relationships
    shipment = relationship("Shipment", back_populates="lines")


class ShipmentLogistics(Base):
    __tablename__ = "shipment_logistics"

    id = Column(Integer, primary_key=True, autoincrement=True)
    shipment_id = Column(String(36), ForeignKey("shipments.id"), nullable=False)
    pol_id = Column(String(36), ForeignKey("ports.id"), nullable=True)
    pod_id = Column(String(36), ForeignKey("ports.id"), nullable=True)
    eta = Column(Date, nullable=True)
    free_time_days = Column(Integer, nullable=True)
    booking_no = Column(String(300), nullable=True)
    incoterms = Column(String(10), nullable=True)
    has_final_destination = Column(Boolean, default=False, nullable=False)
    final_destination = Column(JSON, nullable=True)  # {type, branch_id, warehouse_id, name, delivery_place}


class ShipmentFinancials(Base):
    __tablename__ = "shipment_financials"

    id = Column(Integer, primary_key=True, autoincrement=True)
    shipment_id = Column(String(36), ForeignKey("shipments.id"), nullable=False)
    fixed_price_usd_per_ton = Column(Float, nullable=True)
    balance_value_usd = Column(Float, nullable=True)
    payment_method = Column(String(30), nullable=True)


class ShipmentDocuments(Base):
    __tablename__ = "shipment_documents"

    id = Column(Integer, primary_key=True, autoincrement=True)
    shipment_id = Column(String(36), ForeignKey("shipments.id"), nullable=False)


# Archive

class Document(Base):
    __tablename__ = "documents"

    id = Column(Integer, primary_key=True, autoincrement=True)
    contract_id = Column(String(36), ForeignKey("contracts.id"), nullable=True)
    shipment_id = Column(String(36), ForeignKey("shipments.id"), nullable=True)
    doc_type = Column(String(50), nullable=False)
    filename = Column(String(500), nullable=False)
    file_path = Column(Text, nullable=False)
    file_size = Column(Integer, nullable=True)
    mime_type = Column(String(100), nullable=True)
    uploaded_by = Column(String(100), nullable=True)

    __table_args__ = (
        Index('idx_documents_contract', 'contract_id'),
        Index('idx_documents_shipment', 'shipment_id'),
    )


# Deletion order for the destructive clear: children before parents.
TRANSACTIONAL_TABLES = [
    Document,
    ShipmentDocuments,
    ShipmentFinancials,
    ShipmentLogistics,
    ShipmentLine,
    ShipmentCargo,
    ShipmentParties,
    Shipment,
    ContractLine,
    ContractProducts,
    ContractTerms,
    ContractShipping,
    ContractParties,
    Contract,
]
