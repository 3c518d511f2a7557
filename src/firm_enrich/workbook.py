"""Workbook access — header mapping, row reads, idempotent column/field writes.

The workbook is opened twice: once with formulas intact (this is the copy
that gets written and saved) and once with ``data_only=True`` so computed
cells can be read through their cached values.
"""

from __future__ import annotations

import logging
import re
import zipfile
from pathlib import Path
from typing import Any

import pandas as pd
from openpyxl import Workbook, load_workbook
from openpyxl.utils.exceptions import InvalidFileException
from openpyxl.worksheet.worksheet import Worksheet

from firm_enrich import REQUIRED_COLUMNS
from firm_enrich.config import DEFAULT_SHEET_NAME
from firm_enrich.models import FirmRecord, LoadReport

logger = logging.getLogger(__name__)

SUPPORTED_SUFFIXES = (".xlsx", ".xlsm", ".xltx", ".xltm")
NUMERIC_KEYS = ("capital_raised", "latest_fund_size", "aum")


class DatasetError(ValueError):
    """Fatal problem with the input workbook (sheet, columns, ranks)."""


# ── Normalisation ───────────────────────────────────────────────


def normalize_header(name: object) -> str:
    """Fold a header for matching: lower-case, no punctuation but hyphens."""
    if name is None:
        return ""
    text = str(name).replace("–", "-").replace("—", "-").lower()
    text = re.sub(r"[^a-z0-9\s-]+", "", text)
    return re.sub(r"\s+", " ", text).strip()


def parse_number(value: Any) -> float:
    """Return *value* as a non-negative float; anything unparseable is 0.0."""
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = re.sub(r"[,\s]", "", str(value))
        if not text:
            return 0.0
        try:
            number = float(text)
        except ValueError:
            return 0.0
    if number != number or number < 0:  # NaN or negative
        return 0.0
    return number


def _is_formula(value: Any) -> bool:
    return isinstance(value, str) and value.startswith("=")


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


# ── Dataset ─────────────────────────────────────────────────────


class FirmDataset:
    """A firm sheet with a header map keyed by normalised header text."""

    def __init__(
        self,
        path: Path,
        workbook: Workbook,
        sheet: Worksheet,
        values: Worksheet | None = None,
    ) -> None:
        self.path = Path(path)
        self.workbook = workbook
        self.sheet = sheet
        self._values = values
        self.header_row = 1
        self._columns: dict[str, int] = {}
        self.headers: list[str] = []
        for cell in sheet[self.header_row]:
            text = _as_text(cell.value)
            self.headers.append(text)
            key = normalize_header(text)
            if key and key not in self._columns:
                self._columns[key] = cell.column
        self.field_columns = self._resolve_required()
        self.field_headers = {
            key: self.headers[col - 1] for key, col in self.field_columns.items()
        }
        self.report = LoadReport()
        self._rank_rows: dict[int, int] = {}
        self._records = self._read_records()

    # ── Columns ─────────────────────────────────────────────────

    def _resolve_required(self) -> dict[str, int]:
        resolved: dict[str, int] = {}
        missing: list[str] = []
        for key, synonyms in REQUIRED_COLUMNS.items():
            for synonym in synonyms:
                col = self._columns.get(normalize_header(synonym))
                if col is not None:
                    resolved[key] = col
                    break
            else:
                missing.append(synonyms[0])
        if missing:
            raise DatasetError(
                f"Missing required columns: {', '.join(missing)}",
            )
        return resolved

    def find_column(self, name: str) -> int | None:
        return self._columns.get(normalize_header(name))

    def column_for(self, key: str) -> int:
        """Return the column index for a canonical key such as ``"aum"``."""
        return self.field_columns[key]

    def ensure_column(self, name: str) -> int:
        """Return the column for *name*, appending a header cell if absent."""
        existing = self.find_column(name)
        if existing is not None:
            return existing
        col = max(len(self.headers), self.sheet.max_column) + 1
        self.sheet.cell(row=self.header_row, column=col, value=name)
        self.headers.extend([""] * (col - 1 - len(self.headers)))
        self.headers.append(name)
        self._columns[normalize_header(name)] = col
        logger.debug("Added column %r at position %d", name, col)
        return col

    # ── Cells ───────────────────────────────────────────────────

    def read_value(self, row: int, col: int) -> Any:
        """Return the cell value, resolving formulas through cached values."""
        raw = self.sheet.cell(row=row, column=col).value
        if _is_formula(raw):
            if self._values is None:
                return None
            return self._values.cell(row=row, column=col).value
        return raw

    def is_blank(self, row: int, col: int, *, numeric: bool = False) -> bool:
        """True if the cell may be written without clobbering anything.

        Formula cells are never blank. For numeric columns a zero or an
        unparseable value counts as blank.
        """
        raw = self.sheet.cell(row=row, column=col).value
        if _is_formula(raw):
            return False
        if numeric:
            return parse_number(raw) <= 0
        return _as_text(raw) == ""

    def write_field(self, row: int, col: int, value: Any) -> None:
        self.sheet.cell(row=row, column=col, value=value)

    # ── Rows ────────────────────────────────────────────────────

    def _read_records(self) -> list[FirmRecord]:
        records: list[FirmRecord] = []
        rows_in = 0
        warnings: list[str] = []
        unparseable = {key: 0 for key in NUMERIC_KEYS}

        for row in range(self.header_row + 1, self.sheet.max_row + 1):
            values = {
                key: self.read_value(row, col) for key, col in self.field_columns.items()
            }
            if all(_as_text(v) == "" for v in values.values()):
                continue
            rows_in += 1
            name = _as_text(values["name"])
            if not name:
                continue

            for key in NUMERIC_KEYS:
                raw = values[key]
                if _as_text(raw) and parse_number(raw) == 0 and not _is_zero(raw):
                    unparseable[key] += 1

            rank = int(parse_number(values["rank"]))
            if rank in self._rank_rows:
                raise DatasetError(
                    f"Duplicate rank {rank} on rows {self._rank_rows[rank]} and {row}"
                )
            self._rank_rows[rank] = row
            records.append(
                FirmRecord(
                    rank=rank,
                    name=name,
                    region=_as_text(values["region"]),
                    focus=_as_text(values["focus"]),
                    capital_raised=parse_number(values["capital_raised"]),
                    latest_fund_size=parse_number(values["latest_fund_size"]),
                    aum=parse_number(values["aum"]),
                    row=row,
                )
            )

        skipped = rows_in - len(records)
        if skipped:
            warnings.append(f"Skipped {skipped} rows without a firm name")
        for key, count in unparseable.items():
            if count:
                header = self.field_headers[key]
                warnings.append(f"Found {count} unparseable values in {header!r}; treated as 0")
        self.report = LoadReport(
            rows_in=rows_in,
            rows_out=len(records),
            skipped_rows=skipped,
            warnings=warnings,
        )
        return records

    def records(self) -> list[FirmRecord]:
        return list(self._records)

    def refresh(self) -> list[FirmRecord]:
        """Re-read rows after writes and return the fresh records."""
        self._rank_rows = {}
        self._records = self._read_records()
        return self.records()

    def row_for_rank(self, rank: int) -> int:
        try:
            return self._rank_rows[rank]
        except KeyError:
            raise KeyError(f"No row with rank {rank}") from None

    def to_frame(self) -> pd.DataFrame:
        """Return every named row with all columns, required metrics parsed."""
        data: list[dict[str, Any]] = []
        rank_header = self.field_headers["rank"]
        for record in self._records:
            item: dict[str, Any] = {}
            for col, header in enumerate(self.headers, 1):
                if header and header not in item:
                    item[header] = self.read_value(record.row, col)
            item[rank_header] = record.rank
            item[self.field_headers["name"]] = record.name
            item[self.field_headers["region"]] = record.region
            item[self.field_headers["focus"]] = record.focus
            for key in NUMERIC_KEYS:
                item[self.field_headers[key]] = getattr(record, key)
            data.append(item)
        columns = list(dict.fromkeys(h for h in self.headers if h))
        return pd.DataFrame(data, columns=columns)

    # ── Persistence ─────────────────────────────────────────────

    def save(self, path: Path | None = None) -> Path:
        """Write the formula-preserving workbook to *path* (atomic)."""
        target = Path(path) if path is not None else self.path
        target.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = target.with_name(f"{target.stem}.tmp{target.suffix}")
        self.workbook.save(tmp_path)
        tmp_path.replace(target)
        return target


def _is_zero(value: Any) -> bool:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value == 0
    return re.sub(r"[,\s]", "", str(value)) in {"0", "0.0", "0.00"}


# ── Loading ─────────────────────────────────────────────────────


def open_dataset(path: Path, sheet_name: str = DEFAULT_SHEET_NAME) -> FirmDataset:
    """Open *sheet_name* of the workbook at *path*.

    Raises
    ------
    FileNotFoundError
        If *path* does not exist.
    DatasetError
        If the file is not a readable workbook, the sheet is missing, a
        required column is missing, or two rows share a rank.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Input file not found: {path}")
    if path.is_dir():
        raise DatasetError(f"Input path is a directory, not a file: {path}")

    suffix = path.suffix.lower()
    if suffix not in SUPPORTED_SUFFIXES:
        raise DatasetError(f"Unsupported file type: {suffix!r}. Use .xlsx or .xlsm")

    keep_vba = suffix == ".xlsm"
    try:
        workbook = load_workbook(path, keep_vba=keep_vba)
        cached = load_workbook(path, data_only=True, read_only=False)
    except (InvalidFileException, zipfile.BadZipFile, OSError, KeyError, ValueError) as exc:
        raise DatasetError(f"Could not read workbook {path}: {exc}") from exc

    if sheet_name not in workbook.sheetnames:
        raise DatasetError(
            f"Sheet not found: {sheet_name!r} (available: {', '.join(workbook.sheetnames)})"
        )
    return FirmDataset(path, workbook, workbook[sheet_name], cached[sheet_name])
