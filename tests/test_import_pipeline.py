# WORKFLOW: End-to-end tests for the arrivals reimport.
# Used by: CI, development testing
# Test scenarios:
# 1. Live import of the sample export (counts, sections, documents)
# 2. Dry-run leaves database and document store untouched
# 3. Dry-run followed by live gives the same statistics as live alone
# 4. A failure on the very last line insert rolls back the whole run, clear included
# 5. CLI exit codes and output
#
# Testing flow: Seed SQLite -> run_import()/main() -> Assert rows, files and statistics

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import sessionmaker

from core.exceptions import SourceFileNotFound, TransactionRolledBack
from db.models import (
    Company, Contract, ContractLine, Document, Port, Shipment, ShipmentLine, ShipmentLogistics
)
from db.session import UnitOfWork
from etl.import_pipeline import prepare, run_import
from scripts import import_arrivals

from conftest import make_engine, seed


def count(session_factory, model):
    db = session_factory()
    try:
        return db.execute(select(func.count()).select_from(model)).scalar()
    finally:
        db.close()


def live_run(session_factory, export_file, docs_folder, storage):
    return run_import(source_path=export_file, docs_folder=docs_folder, documents_path=str(storage),
                      session_factory=session_factory, year=2025)


class TestLiveImport:
    """Clear-and-reimport against a seeded database."""

    def test_counts(self, seed_master_data, export_file, docs_folder, tmp_path):
        result = live_run(seed_master_data, export_file, docs_folder, tmp_path / "storage")
        stats = result.stats

        assert result.committed
        assert stats.pending_contracts_created == 1
        assert stats.active_contracts_created == 2
        assert stats.shipments_created == 2
        assert stats.contract_lines_created == 5
        assert stats.shipment_lines_created == 3
        assert stats.ports_created == 4
        assert stats.shipping_companies_created == 1
        assert stats.documents_linked == 6
        assert stats.documents_copied == 3
        assert stats.document_errors == 0

    def test_database_state(self, seed_master_data, export_file, docs_folder, tmp_path):
        live_run(seed_master_data, export_file, docs_folder, tmp_path / "storage")

        assert count(seed_master_data, Contract) == 3
        assert count(seed_master_data, Shipment) == 2
        assert count(seed_master_data, ContractLine) == 5
        assert count(seed_master_data, ShipmentLine) == 3
        assert count(seed_master_data, Document) == 6
        assert count(seed_master_data, Port) == 5
        assert count(seed_master_data, Company) == 2

        db = seed_master_data()
        try:
            contract_nos = db.execute(select(Contract.contract_no)).scalars().all()
            assert sorted(contract_nos) == ["255", "390", "412"]

            shipment = db.execute(select(Shipment).where(Shipment.sn == "412-A")).scalar_one()
            logistics = db.execute(
                select(ShipmentLogistics).where(ShipmentLogistics.shipment_id == shipment.id)
            ).scalar_one()
            assert logistics.final_destination["delivery_place"] == "Lattakia Warehouse"
            assert shipment.status == "arrived"
        finally:
            db.close()

    def test_reimport_replaces_previous_run(self, seed_master_data, export_file, docs_folder, tmp_path):
        live_run(seed_master_data, export_file, docs_folder, tmp_path / "storage")
        second = live_run(seed_master_data, export_file, docs_folder, tmp_path / "storage")

        assert count(seed_master_data, Contract) == 3
        assert second.stats.ports_created == 0
        assert second.stats.documents_copied == 0
        assert second.stats.documents_linked == 6

    def test_backup_before_clear(self, seed_master_data, export_file, tmp_path, monkeypatch):
        from core.config import settings

        monkeypatch.setattr(settings, "backup_dir", str(tmp_path / "backups"))
        run_import(source_path=export_file, docs_folder="", documents_path=str(tmp_path / "storage"),
                   backup=True, session_factory=seed_master_data)

        backups = list((tmp_path / "backups").glob("contracts_*.json"))
        assert len(backups) == 1
        assert "OLD-1" in backups[0].read_text(encoding="utf-8")


def test_missing_source_file(tmp_path):
    with pytest.raises(SourceFileNotFound):
        prepare(str(tmp_path / "missing.csv"))


def test_dry_run_does_not_mutate(seed_master_data, export_file, docs_folder, tmp_path):
    storage = tmp_path / "storage"
    result = run_import(source_path=export_file, docs_folder=docs_folder, documents_path=str(storage),
                        dry_run=True, session_factory=seed_master_data)

    assert result.dry_run
    assert not result.committed
    assert count(seed_master_data, Contract) == 1
    assert count(seed_master_data, Port) == 1
    assert not storage.exists()

    preview = result.preview
    assert preview.unique_contracts == 3
    assert len(preview.active_contracts) == 2
    assert len(preview.pending_contracts) == 1
    assert len(preview.shipments) == 2
    assert result.stats.documents_linked == 6


def test_dry_run_then_live_matches_live_alone(tmp_path, export_file, docs_folder):
    engine_a = make_engine(tmp_path / "a.db")
    engine_b = make_engine(tmp_path / "b.db")
    factory_a = sessionmaker(bind=engine_a, autoflush=False)
    factory_b = sessionmaker(bind=engine_b, autoflush=False)
    seed(factory_a)
    seed(factory_b)

    try:
        run_import(source_path=export_file, docs_folder=docs_folder, documents_path=str(tmp_path / "sa"),
                   dry_run=True, session_factory=factory_a)
        after_dry_run = live_run(factory_a, export_file, docs_folder, tmp_path / "sa")
        alone = live_run(factory_b, export_file, docs_folder, tmp_path / "sb")
    finally:
        engine_a.dispose()
        engine_b.dispose()

    assert after_dry_run.stats == alone.stats


def test_failure_on_last_line_rolls_back_everything(seed_master_data, export_file, docs_folder,
                                                    tmp_path, monkeypatch):
    original_add = UnitOfWork.add
    line_inserts = []

    def failing_add(self, obj):
        if isinstance(obj, (ContractLine, ShipmentLine)):
            line_inserts.append(obj)
            # 5 contract lines + 3 shipment lines; the 8th is the last write of the run
            if len(line_inserts) == 8:
                raise RuntimeError("insert failed")
        return original_add(self, obj)

    monkeypatch.setattr(UnitOfWork, "add", failing_add)

    with pytest.raises(TransactionRolledBack) as excinfo:
        live_run(seed_master_data, export_file, docs_folder, tmp_path / "storage")

    assert isinstance(excinfo.value.__cause__, RuntimeError)

    assert isinstance(line_inserts[-1], ShipmentLine)
    assert count(seed_master_data, Contract) == 1
    assert count(seed_master_data, Shipment) == 0
    assert count(seed_master_data, ContractLine) == 0
    assert count(seed_master_data, Document) == 0
    assert count(seed_master_data, Port) == 1
    assert count(seed_master_data, Company) == 1

    db = seed_master_data()
    try:
        assert db.execute(select(Contract.contract_no)).scalar_one() == "OLD-1"
    finally:
        db.close()


class TestCli:
    """Exit codes and printed reports of scripts/import_arrivals.py."""

    @pytest.fixture(autouse=True)
    def quiet_logging(self, monkeypatch):
        monkeypatch.setattr(import_arrivals, "configure_logging", lambda *args, **kwargs: None)

    def test_dry_run(self, export_file, docs_folder, tmp_path, capsys):
        code = import_arrivals.main(["--dry-run", "--file", export_file, "--docs", docs_folder,
                                     "--documents-path", str(tmp_path / "storage")])
        out = capsys.readouterr().out

        assert code == 0
        assert "DRY RUN PREVIEW" in out
        assert "Unique Contracts: 3" in out

    def test_missing_file(self, tmp_path, capsys):
        code = import_arrivals.main(["--dry-run", "--file", str(tmp_path / "missing.csv")])
        assert code == 1
        assert "Source file not found" in capsys.readouterr().out

    def test_live_import(self, seed_master_data, export_file, docs_folder, tmp_path, monkeypatch, capsys):
        monkeypatch.setattr("db.session._SessionLocal", seed_master_data)
        code = import_arrivals.main(["--file", export_file, "--docs", docs_folder,
                                     "--documents-path", str(tmp_path / "storage")])
        out = capsys.readouterr().out

        assert code == 0
        assert "IMPORT COMPLETE" in out
        assert "Shipments created: 2" in out
        assert count(seed_master_data, Contract) == 3

    def test_rolled_back_exit_code(self, export_file, monkeypatch, capsys):
        def broken_import(**kwargs):
            raise TransactionRolledBack(RuntimeError("insert failed"))

        monkeypatch.setattr(import_arrivals, "check_db_connection", lambda: True)
        monkeypatch.setattr(import_arrivals, "run_import", broken_import)
        code = import_arrivals.main(["--file", export_file])
        out = capsys.readouterr().out

        assert code == 1
        assert "Transaction rolled back" in out
        assert "RuntimeError: insert failed" in out

    def test_unreadable_export_fails_before_transaction(self, tmp_path, monkeypatch, capsys):
        path = tmp_path / "latin1.csv"
        path.write_bytes(b"255;\xff\xfe;;;;;;;;;;;;;")
        monkeypatch.setattr(import_arrivals, "check_db_connection", lambda: True)

        code = import_arrivals.main(["--file", str(path), "--docs", ""])
        out = capsys.readouterr().out

        assert code == 1
        assert "UnicodeDecodeError" in out
        assert "Transaction rolled back" not in out

    def test_unreachable_database(self, export_file, monkeypatch, capsys):
        called = []
        monkeypatch.setattr(import_arrivals, "check_db_connection", lambda: False)
        monkeypatch.setattr(import_arrivals, "run_import", lambda **kwargs: called.append(kwargs))

        code = import_arrivals.main(["--file", export_file])

        assert code == 1
        assert called == []
        assert "Database connection failed" in capsys.readouterr().out
