"""Run report persistence."""

from __future__ import annotations

from pathlib import Path

from firm_enrich.io import write_json
from firm_enrich.models import EnrichmentSummary, LoadReport

REPORT_NAME = "enrichment_report.json"


def write_run_report(
    out_dir: Path, load: LoadReport, summary: EnrichmentSummary | None = None
) -> Path:
    """Write ``enrichment_report.json`` into *out_dir* and return the path."""
    return write_json(
        out_dir / REPORT_NAME,
        {
            "load": load.to_dict(),
            "enrichment": summary.to_dict() if summary is not None else None,
        },
    )
