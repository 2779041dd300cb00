"""Tests for document classification, copying and linking."""

from pathlib import Path

import pytest
from sqlalchemy import select

from db.models import Document
from db.session import UnitOfWork
from etl.records import ContractStatus, ImportStats, ParsedRecord
from services import document_linker
from services.document_linker import (
    canonical_docs_dir, copy_document, detect_doc_type, link_document_folder
)


@pytest.mark.parametrize("filename,expected", [
    ("BL_255.pdf", "bill_of_lading"),
    ("invoice.pdf", "commercial_invoice"),
    ("COO.PDF", "certificate_of_origin"),
    ("Proforma 255.pdf", "proforma_invoice"),
    ("phyto cert.pdf", "phytosanitary_certificate"),
    ("packing_list.pdf", "packing_list"),
    ("fumigation.pdf", "fumigation_certificate"),
    ("halal.pdf", "halal_certificate"),
    ("EBKG123.pdf", "shipping_instructions"),
    ("random.pdf", "other"),
])
def test_detect_doc_type(filename, expected):
    assert detect_doc_type(filename) == expected


def test_canonical_docs_dir_sanitizes_contract_no(tmp_path):
    target = canonical_docs_dir(str(tmp_path), "255/A B", 2025)
    assert target == tmp_path / "contracts" / "2025" / "255_A_B" / "docs"


def test_copy_document_never_overwrites(tmp_path):
    source = tmp_path / "a.pdf"
    source.write_bytes(b"new")
    target = tmp_path / "out" / "a.pdf"

    assert copy_document(source, target)
    target.write_bytes(b"kept")
    assert not copy_document(source, target)
    assert target.read_bytes() == b"kept"


def make_record(folder, sn="255-1"):
    return ParsedRecord(sn=sn, base_contract_no="255", is_shipment=True,
                        contract_status=ContractStatus.ACTIVE, document_folder=folder)


def test_record_without_folder_links_nothing(tmp_path):
    stats = ImportStats()
    assert link_document_folder(None, make_record(None), None, None, stats, str(tmp_path)) == 0
    assert link_document_folder(None, make_record(str(tmp_path / "gone")), None, None, stats,
                                str(tmp_path)) == 0
    assert stats.documents_linked == 0


def test_dry_run_counts_without_copying(docs_folder, tmp_path):
    stats = ImportStats()
    storage = tmp_path / "storage"
    linked = link_document_folder(None, make_record(str(Path(docs_folder) / "255 سكر")), None, None,
                                  stats, str(storage), dry_run=True)
    assert linked == 2
    assert stats.documents_linked == 2
    assert stats.documents_copied == 0
    assert not storage.exists()


def test_live_link_copies_and_registers(seed_master_data, docs_folder, tmp_path):
    storage = tmp_path / "storage"
    folder = str(Path(docs_folder) / "255 سكر")
    stats = ImportStats()

    with UnitOfWork(seed_master_data) as uow:
        link_document_folder(uow, make_record(folder), None, None, stats, str(storage), year=2025)
        link_document_folder(uow, make_record(folder, sn="255-2"), None, None, stats, str(storage), year=2025)
        uow.commit()

    target = storage / "contracts" / "2025" / "255" / "docs"
    assert sorted(p.name for p in target.iterdir()) == ["BL_255.pdf", "invoice.pdf"]
    assert stats.documents_copied == 2
    assert stats.documents_linked == 4

    db = seed_master_data()
    try:
        docs = db.execute(select(Document)).scalars().all()
        assert len(docs) == 4
        assert {d.doc_type for d in docs} == {"bill_of_lading", "commercial_invoice"}
        assert all(d.mime_type == "application/pdf" for d in docs)
        assert all(d.file_path.startswith(str(target)) for d in docs)
    finally:
        db.close()


def test_copy_failure_is_not_fatal(seed_master_data, docs_folder, tmp_path, monkeypatch):
    real_copy = document_linker.copy_document

    def flaky_copy(source, target):
        if source.name == "BL_255.pdf":
            raise OSError("disk full")
        return real_copy(source, target)

    monkeypatch.setattr(document_linker, "copy_document", flaky_copy)
    stats = ImportStats()

    with UnitOfWork(seed_master_data) as uow:
        linked = link_document_folder(uow, make_record(str(Path(docs_folder) / "255 سكر")), None, None,
                                      stats, str(tmp_path / "storage"))
        uow.commit()

    assert linked == 1
    assert stats.document_errors == 1
    assert stats.documents_copied == 1


def test_half_written_copy_is_retried(seed_master_data, docs_folder, tmp_path, monkeypatch):
    storage = tmp_path / "storage"
    folder = str(Path(docs_folder) / "255 سكر")
    target = storage / "contracts" / "2025" / "255" / "docs"
    stats = ImportStats()

    def half_copy(src, dst):
        dst.write(src.read(3))
        raise OSError("connection reset")

    with UnitOfWork(seed_master_data) as uow:
        with monkeypatch.context() as patch:
            patch.setattr(document_linker.shutil, "copyfileobj", half_copy)
            failed = link_document_folder(uow, make_record(folder), None, None, stats, str(storage), year=2025)

        assert failed == 0
        assert stats.document_errors == 2
        assert list(target.iterdir()) == []

        linked = link_document_folder(uow, make_record(folder, sn="255-2"), None, None, stats,
                                      str(storage), year=2025)
        uow.commit()

    assert linked == 2
    assert stats.documents_copied == 2
    source = Path(folder) / "BL_255.pdf"
    assert (target / "BL_255.pdf").read_bytes() == source.read_bytes()
    assert sorted(p.name for p in target.iterdir()) == ["BL_255.pdf", "invoice.pdf"]
