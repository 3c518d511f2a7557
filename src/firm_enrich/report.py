"""Excel results writer — produces the filtered/ranked workbook."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.table import Table, TableStyleInfo
from openpyxl.worksheet.worksheet import Worksheet

from firm_enrich.models import Criteria, EnrichmentSummary
from firm_enrich.workbook import normalize_header

# ── Style constants ──────────────────────────────────────────────

HEADER_FONT = Font(name="Calibri", bold=True, size=11, color="FFFFFF")
HEADER_FILL = PatternFill(start_color="2F5496", end_color="2F5496", fill_type="solid")
HEADER_ALIGN = Alignment(horizontal="center", vertical="center", wrap_text=True)

TITLE_FONT = Font(name="Calibri", bold=True, size=14, color="2F5496")
SUBTITLE_FONT = Font(name="Calibri", bold=False, size=10, color="808080")
LABEL_FONT = Font(name="Calibri", bold=True, size=11)
NOTE_FILL = PatternFill(start_color="FFF2CC", end_color="FFF2CC", fill_type="solid")

BILLIONS_FMT = "#,##0.00"
MILLIONS_FMT = "#,##0"
INT_FMT = "0"

RESULTS_SHEET = "Results"
CRITERIA_SHEET = "Criteria"

_EXCEL_FORMULA_PREFIXES = ("=", "+", "-", "@")


# ── Helpers ──────────────────────────────────────────────────────


def _column_format(header: str) -> str | None:
    key = normalize_header(header)
    if key in {"rank", "pei rank", "founded"}:
        return INT_FMT
    if key.startswith("capital raised"):
        return MILLIONS_FMT
    if key.startswith("aum") or key.startswith("latest fund size"):
        return BILLIONS_FMT
    return None


def _style_header(ws: Worksheet, ncols: int) -> None:
    for c in range(1, ncols + 1):
        cell = ws.cell(row=1, column=c)
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        cell.alignment = HEADER_ALIGN


def _excel_value(val: Any) -> Any:
    try:
        if pd.isna(val):
            return None
    except (TypeError, ValueError):
        return val

    if isinstance(val, pd.Timestamp):
        dt = val.to_pydatetime()
        return dt.replace(tzinfo=None) if dt.tzinfo else dt

    if isinstance(val, datetime) and val.tzinfo:
        return val.replace(tzinfo=None)

    if isinstance(val, str):
        if val.startswith("'"):
            return val
        stripped = val.lstrip()
        if stripped and stripped[0] in _EXCEL_FORMULA_PREFIXES:
            return f"'{val}"

    item = getattr(val, "item", None)
    if callable(item):
        return item()
    return val


def _write_results(wb: Workbook, df: pd.DataFrame) -> None:
    ws = wb.create_sheet(title=RESULTS_SHEET)
    col_names = [str(c) for c in df.columns]

    for c_idx, col_name in enumerate(col_names, 1):
        ws.cell(row=1, column=c_idx, value=col_name)
    for r_idx, row_vals in enumerate(df.itertuples(index=False, name=None), 2):
        for c_idx, val in enumerate(row_vals, 1):
            ws.cell(row=r_idx, column=c_idx, value=_excel_value(val))
    _style_header(ws, len(col_names))

    for c_idx, name in enumerate(col_names, 1):
        fmt = _column_format(name)
        if fmt and len(df):
            for row in ws.iter_rows(min_row=2, max_row=len(df) + 1, min_col=c_idx, max_col=c_idx):
                row[0].number_format = fmt
    ws.freeze_panes = "A2"

    if len(df) and col_names:
        ref = f"A1:{get_column_letter(len(col_names))}{len(df) + 1}"
        table = Table(displayName="Results", ref=ref)
        table.tableStyleInfo = TableStyleInfo(
            name="TableStyleMedium9", showFirstColumn=False,
            showLastColumn=False, showRowStripes=True, showColumnStripes=False,
        )
        ws.add_table(table)


def _write_criteria(
    wb: Workbook, criteria: Criteria, matches: int, summary: EnrichmentSummary | None
) -> None:
    ws = wb.create_sheet(title=CRITERIA_SHEET)
    ws.cell(row=1, column=1, value="firm-enrich — Criteria").font = TITLE_FONT
    generated = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")
    ws.cell(row=2, column=1, value=f"Generated {generated}").font = SUBTITLE_FONT

    row = 4
    for label, value in [*criteria.to_rows(), ("Matches", str(matches))]:
        ws.cell(row=row, column=1, value=label).font = LABEL_FONT
        ws.cell(row=row, column=2, value=_excel_value(value))
        row += 1

    if summary is not None:
        row += 1
        ws.cell(row=row, column=1, value="Enrichment").font = LABEL_FONT
        row += 1
        notes = [
            ("Rows missing AUM", summary.candidates),
            ("Looked up", summary.attempted),
            ("Filled", summary.filled),
            ("Not found", summary.not_found),
            ("Failed", summary.failed),
        ]
        for label, value in notes:
            ws.cell(row=row, column=1, value=label).fill = NOTE_FILL
            ws.cell(row=row, column=2, value=value).fill = NOTE_FILL
            row += 1


# ── Public API ───────────────────────────────────────────────────


def results_filename(name: str) -> str:
    """Make *name* safe to use as a workbook file name."""
    cleaned = re.sub(r"[^\w.\- ]", "_", name).strip() or "Results"
    return cleaned if cleaned.lower().endswith(".xlsx") else f"{cleaned}.xlsx"


def write_results(
    path: Path,
    criteria: Criteria,
    df: pd.DataFrame,
    summary: EnrichmentSummary | None = None,
) -> Path:
    """Write the results workbook to *path* and return it."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    wb = Workbook()
    active_sheet = wb.active
    if active_sheet is not None:
        wb.remove(active_sheet)  # remove default sheet

    _write_results(wb, df)
    _write_criteria(wb, criteria, len(df), summary)

    tmp_path = path.with_name(f"{path.stem}.tmp{path.suffix}")
    wb.save(tmp_path)
    tmp_path.replace(path)
    return path
