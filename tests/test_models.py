from __future__ import annotations

import pytest

from firm_enrich.models import (
    Criteria,
    EnrichmentSummary,
    FirmRecord,
    LoadReport,
    RowOutcome,
    RunManifest,
)


def test_firm_record_needs_enrichment_only_without_aum() -> None:
    assert FirmRecord(rank=1, name="KKR").needs_enrichment
    assert not FirmRecord(rank=1, name="KKR", aum=0.5).needs_enrichment
    assert not FirmRecord(rank=1, name="  ").needs_enrichment


def test_load_report_to_dict_returns_list_copies() -> None:
    report = LoadReport(
        rows_in=10,
        rows_out=8,
        skipped_rows=2,
        missing_columns=["AUM (USD B)"],
        warnings=["bad row"],
    )

    payload = report.to_dict()
    payload["missing_columns"].append("Region")
    payload["warnings"].append("another")

    assert report.missing_columns == ["AUM (USD B)"]
    assert report.warnings == ["bad row"]


def test_load_report_rejects_negative_counts() -> None:
    with pytest.raises(ValueError, match="rows_in"):
        LoadReport(rows_in=-1)

    with pytest.raises(ValueError, match="rows_out"):
        LoadReport(rows_out=-1)

    with pytest.raises(ValueError, match="skipped_rows"):
        LoadReport(skipped_rows=-1)


def test_load_report_rejects_inconsistent_row_relationships() -> None:
    with pytest.raises(ValueError, match="rows_out"):
        LoadReport(rows_in=2, rows_out=3)

    with pytest.raises(ValueError, match="skipped_rows"):
        LoadReport(rows_in=5, rows_out=4, skipped_rows=2)


def test_load_report_rejects_non_string_lists() -> None:
    with pytest.raises(TypeError, match="warnings"):
        LoadReport(warnings=["warn", object()])  # type: ignore[list-item]

    with pytest.raises(TypeError, match="missing_columns"):
        LoadReport(missing_columns="Region")  # type: ignore[arg-type]


def test_criteria_normalizes_text_and_validates_minimums() -> None:
    criteria = Criteria(region_equals="  Europe ", focus_contains=" buyout", priority=None)  # type: ignore[arg-type]

    assert criteria.region_equals == "Europe"
    assert criteria.focus_contains == "buyout"
    assert criteria.priority == []

    with pytest.raises(ValueError, match="min_aum"):
        Criteria(min_aum=-1)


def test_criteria_to_rows_labels() -> None:
    rows = dict(Criteria(min_aum=50, min_capital_raised=1500.5, priority=["AUM", "PEI_RANK"]).to_rows())

    assert rows["Region equals"] == ""
    assert rows["Min AUM (USD B)"] == "50"
    assert rows["Min Capital Raised (USD M)"] == "1500.5"
    assert rows["Priority"] == "AUM, PEI_RANK"


def test_enrichment_summary_counts_by_status() -> None:
    summary = EnrichmentSummary(
        candidates=80,
        cap=50,
        outcomes=[
            RowOutcome(1, "A", "filled", fields=("AUM (USD B)",)),
            RowOutcome(2, "B", "attempted"),
            RowOutcome(3, "C", "not_found"),
            RowOutcome(4, "D", "failed", reason="timeout"),
            RowOutcome(5, "E", "filled"),
        ],
    )

    assert summary.attempted == 5
    assert summary.filled == 2
    assert summary.not_found == 1
    assert summary.failed == 1
    assert summary.cap_reached

    payload = summary.to_dict()
    assert payload["cap_reached"] is True
    assert payload["outcomes"][0] == {
        "rank": 1,
        "firm_name": "A",
        "status": "filled",
        "fields": ["AUM (USD B)"],
        "reason": "",
    }


def test_enrichment_summary_cap_not_reached_when_all_fit() -> None:
    assert not EnrichmentSummary(candidates=3, cap=50).cap_reached


def test_run_manifest_rejects_non_integer_and_negative_counts() -> None:
    with pytest.raises(TypeError, match="rows_in"):
        RunManifest(rows_in=True)  # type: ignore[arg-type]

    with pytest.raises(ValueError, match="enriched_rows"):
        RunManifest(enriched_rows=-2)


def test_run_manifest_rejects_unknown_status() -> None:
    with pytest.raises(ValueError, match="status"):
        RunManifest(status="partial")


def test_run_manifest_to_dict_round_trips_fields() -> None:
    manifest = RunManifest(command="run", matches=3, status="failed", error_code=2)

    payload = manifest.to_dict()

    assert payload["tool"] == "firm-enrich"
    assert payload["matches"] == 3
    assert payload["error_code"] == 2
    assert payload["status"] == "failed"
