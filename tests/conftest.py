# WORKFLOW: Shared fixtures for the reimport test suite.
# Used by: All test modules
# Fixtures:
# 1. engine / session_factory - Fresh SQLite database per test with the full schema
# 2. seed_master_data - Known port, shipping line and the configured section warehouses
# 3. export_file / docs_folder - Small multi-section export and scanned document folders
#
# Every test gets its own database file and directories under tmp_path.

from datetime import datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from db.models import Base, Branch, Company, Contract, Port
from db.session import init_db
from etl.sections import SECTION_MARKERS

EXPORT_LINES = [
    "Loyal North Mahmut, Sarmada 1;;;;;;;;;;;;;;;",
    "SN;نوع البضاعة;عدد الحاويات;الوزن;السعر;POL;POD;ETA;FREE TIME;;الحالة;الرصيد;الأوراق;;شركة الشحن;التعقب",
    "255-1;سكر;6+4;150+100;$1,050.00;Santos;Mersin;2025-12-23;14 يوم;;transit;$12,500.00;مع البنك;;MSC;MEDU1234567",
    "255-2;سكر;2;50;$1,050.00;Santos;Mersin;;;;;;;;;",
    "390;رز;5;125;€ 453,00;Mumbai;Lattakia;;;;INV;;;;;",
    "",
    "Loyal Coast, Lattakia Warehouse;;;;;;;;;;;;;;;",
    "412-A;زيت;3;75;1105 $ فوب;Odessa;Lattakia;2025/9/29;21;;تم الوصول;;وصلت الأوراق;;Maersk;",
    "412-B;زيت;1;25;1105 $ فوب;Odessa;Lattakia;;;;;;;;;",
]


def make_engine(db_path):
    engine = create_engine(f"sqlite:///{db_path}", connect_args={"check_same_thread": False})
    init_db(engine)
    return engine


def seed(session_factory):
    db = session_factory()
    db.add(Port(name="Mersin", country="Turkey"))
    db.add(Company(name="MSC", is_shipping_line=True))
    for section in SECTION_MARKERS.values():
        db.add(Branch(id=section.branch_id, name=section.beneficiary, branch_type="region"))
        db.add(Branch(id=section.warehouse_id, name=section.destination, parent_id=section.branch_id,
                      branch_type="warehouse"))
    db.add(Contract(contract_no="OLD-1", status="ACTIVE", direction="incoming",
                    created_by="manual", created_at=datetime(2024, 1, 1)))
    db.commit()
    db.close()


@pytest.fixture()
def engine(tmp_path):
    engine = make_engine(tmp_path / "test.db")
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture()
def seed_master_data(session_factory):
    seed(session_factory)
    return session_factory


@pytest.fixture()
def export_file(tmp_path):
    path = tmp_path / "export.csv"
    path.write_text("\n".join(EXPORT_LINES), encoding="utf-8")
    return str(path)


@pytest.fixture()
def docs_folder(tmp_path):
    root = tmp_path / "scans"
    sugar = root / "255 سكر"
    sugar.mkdir(parents=True)
    (sugar / "BL_255.pdf").write_bytes(b"%PDF-1.4 bl")
    (sugar / "invoice.pdf").write_bytes(b"%PDF-1.4 invoice")
    (sugar / "notes.txt").write_text("not a pdf")
    oil = root / "412 oil"
    oil.mkdir()
    (oil / "COO.PDF").write_bytes(b"%PDF-1.4 coo")
    (root / "misc").mkdir()
    return str(root)
