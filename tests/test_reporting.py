"""Tests for the dry-run preview and statistics rendering."""

from etl.aggregator import aggregate_contracts
from etl.records import ImportStats
from etl.row_parser import parse_file
from services.reporting import build_preview, render_preview, render_stats


def preview_for(export_file, docs_folder=None):
    records = parse_file(export_file, docs_folder)
    return build_preview(records, aggregate_contracts(records))


def test_sections_grouped_in_file_order(export_file):
    preview = preview_for(export_file)
    assert preview.sections == {
        "Loyal North Mahmut → Sarmada 1": 3,
        "Loyal Coast → Lattakia Warehouse": 2,
    }


def test_summary_counts(export_file, docs_folder):
    preview = preview_for(export_file, docs_folder)
    assert preview.total_records == 5
    assert preview.unique_contracts == 3
    assert preview.unique_ports == 5
    assert preview.unique_shipping_companies == 2
    assert preview.records_with_documents == 4
    assert preview.paperwork_statuses == {"مع البنك": 1, "وصلت الأوراق": 1}
    assert preview.validation["total_records"] == 5


def test_render_preview_truncates_samples(export_file):
    text = render_preview(preview_for(export_file), sample_limit=1)
    assert "ACTIVE CONTRACTS (with shipments): 2" in text
    assert "Contract 255 → 2 shipment(s)" not in text
    assert "Contract 255 → 1 shipment(s)" in text
    assert "... and 1 more" in text
    assert "DRY RUN COMPLETE" in text


def test_render_stats():
    text = render_stats(ImportStats(shipments_created=7, document_errors=2))
    assert "Shipments created: 7" in text
    assert "Document errors: 2" in text
