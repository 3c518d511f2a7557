"""Data models used across the package."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from numbers import Integral
from typing import Any, Literal


def _to_non_negative_int(value: Any, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, Integral):
        raise TypeError(f"{field_name} must be an integer")
    result = int(value)
    if result < 0:
        raise ValueError(f"{field_name} must be >= 0")
    return result


def _to_string_list(values: Sequence[Any] | None, field_name: str) -> list[str]:
    if values is None:
        return []
    if isinstance(values, str):
        raise TypeError(f"{field_name} must be a sequence of strings")
    normalized: list[str] = []
    for item in values:
        if not isinstance(item, str):
            raise TypeError(f"{field_name} items must be strings")
        normalized.append(item)
    return normalized


# ── Dataset rows ────────────────────────────────────────────────


@dataclass
class FirmRecord:
    """One dataset row, values already resolved and parsed.

    ``row`` is the 1-based worksheet row the record was read from.
    """

    rank: int
    name: str
    region: str = ""
    focus: str = ""
    capital_raised: float = 0.0
    latest_fund_size: float = 0.0
    aum: float = 0.0
    row: int = 0

    @property
    def needs_enrichment(self) -> bool:
        return bool(self.name.strip()) and self.aum <= 0


# ── Lookup / extraction ─────────────────────────────────────────


@dataclass(frozen=True)
class LookupResult:
    """Raw snippets scraped from one firm page.

    All-empty fields mean the page was found but carried no info panel; a
    failed fetch is represented by ``None`` instead of a result.
    """

    reference_url: str = ""
    website: str = ""
    headquarters: str = ""
    founded: str = ""
    aum: str = ""
    page_text: str = ""


@dataclass(frozen=True)
class ExtractedFields:
    """Typed fields derived from a :class:`LookupResult`."""

    aum: float = 0.0
    region: str = ""
    focus: str = ""
    founded_year: int | None = None
    reference_url: str = ""
    website: str = ""


# ── Filter / rank ───────────────────────────────────────────────


@dataclass
class Criteria:
    """Operator filter + ranking input. Blank text and zero minimums match all."""

    region_equals: str = ""
    min_aum: float = 0.0
    min_latest_fund_size: float = 0.0
    min_capital_raised: float = 0.0
    focus_contains: str = ""
    priority: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.region_equals = (self.region_equals or "").strip()
        self.focus_contains = (self.focus_contains or "").strip()
        self.priority = _to_string_list(self.priority, "priority")
        for name in ("min_aum", "min_latest_fund_size", "min_capital_raised"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be >= 0")

    def to_rows(self) -> list[tuple[str, str]]:
        return [
            ("Region equals", self.region_equals),
            ("Min AUM (USD B)", f"{self.min_aum:g}"),
            ("Min Latest Fund Size (USD B)", f"{self.min_latest_fund_size:g}"),
            ("Min Capital Raised (USD M)", f"{self.min_capital_raised:g}"),
            ("Primary Focus contains", self.focus_contains),
            ("Priority", ", ".join(self.priority)),
        ]


# ── Enrichment outcomes ─────────────────────────────────────────


RowStatus = Literal["filled", "attempted", "not_found", "failed"]


@dataclass(frozen=True)
class RowOutcome:
    """Result of enriching a single candidate row.

    ``filled``: at least one of AUM, Region or Primary Focus was written.
    ``attempted``: the lookup answered but only metadata (or nothing) was new.
    ``not_found``: the lookup returned no page. ``failed``: an error was caught.
    """

    rank: int
    firm_name: str
    status: RowStatus
    fields: tuple[str, ...] = ()
    reason: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "rank": self.rank,
            "firm_name": self.firm_name,
            "status": self.status,
            "fields": list(self.fields),
            "reason": self.reason,
        }


@dataclass
class EnrichmentSummary:
    """Run-level tally of enrichment outcomes.

    Counts are derived from ``outcomes``: ``attempted`` is every candidate a
    lookup was tried for, ``filled`` only those that received a primary field.
    """

    candidates: int = 0
    cap: int = 0
    outcomes: list[RowOutcome] = field(default_factory=list)
    started_at_utc: str = ""
    finished_at_utc: str = ""

    def __post_init__(self) -> None:
        self.candidates = _to_non_negative_int(self.candidates, "candidates")
        self.cap = _to_non_negative_int(self.cap, "cap")

    def _count(self, status: RowStatus) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status == status)

    @property
    def attempted(self) -> int:
        return len(self.outcomes)

    @property
    def filled(self) -> int:
        return self._count("filled")

    @property
    def not_found(self) -> int:
        return self._count("not_found")

    @property
    def failed(self) -> int:
        return self._count("failed")

    @property
    def cap_reached(self) -> bool:
        return self.candidates > self.cap

    def to_dict(self) -> dict[str, Any]:
        return {
            "candidates": self.candidates,
            "cap": self.cap,
            "cap_reached": self.cap_reached,
            "attempted": self.attempted,
            "filled": self.filled,
            "not_found": self.not_found,
            "failed": self.failed,
            "started_at_utc": self.started_at_utc,
            "finished_at_utc": self.finished_at_utc,
            "outcomes": [outcome.to_dict() for outcome in self.outcomes],
        }


# ── Run artifacts ───────────────────────────────────────────────


@dataclass
class LoadReport:
    """What happened while reading the source sheet.

    Contract invariant: ``skipped_rows == rows_in - rows_out``.
    """

    rows_in: int = 0
    rows_out: int = 0
    skipped_rows: int = 0
    missing_columns: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.rows_in = _to_non_negative_int(self.rows_in, "rows_in")
        self.rows_out = _to_non_negative_int(self.rows_out, "rows_out")
        self.skipped_rows = _to_non_negative_int(self.skipped_rows, "skipped_rows")
        self.missing_columns = _to_string_list(self.missing_columns, "missing_columns")
        self.warnings = _to_string_list(self.warnings, "warnings")
        if self.rows_out > self.rows_in:
            raise ValueError("rows_out must be <= rows_in")
        if self.skipped_rows != self.rows_in - self.rows_out:
            raise ValueError("skipped_rows must equal rows_in - rows_out")

    def to_dict(self) -> dict[str, Any]:
        return {
            "rows_in": self.rows_in,
            "rows_out": self.rows_out,
            "skipped_rows": self.skipped_rows,
            "missing_columns": list(self.missing_columns),
            "warnings": list(self.warnings),
        }


@dataclass
class RunManifest:
    """Audit-trail manifest for a single CLI run."""

    tool: str = "firm-enrich"
    version: str = ""
    command: str = ""
    input_path: str = ""
    output_dir: str = ""
    created_at_utc: str = ""
    rows_in: int = 0
    rows_out: int = 0
    enriched_rows: int = 0
    matches: int = 0
    sha256: str = ""
    status: str = "success"
    error_code: int | None = None
    error_message: str = ""

    def __post_init__(self) -> None:
        self.rows_in = _to_non_negative_int(self.rows_in, "rows_in")
        self.rows_out = _to_non_negative_int(self.rows_out, "rows_out")
        self.enriched_rows = _to_non_negative_int(self.enriched_rows, "enriched_rows")
        self.matches = _to_non_negative_int(self.matches, "matches")
        if self.status not in {"success", "failed"}:
            raise ValueError("status must be 'success' or 'failed'")

    def to_dict(self) -> dict[str, Any]:
        return {
            "tool": self.tool,
            "version": self.version,
            "command": self.command,
            "input_path": self.input_path,
            "output_dir": self.output_dir,
            "created_at_utc": self.created_at_utc,
            "rows_in": self.rows_in,
            "rows_out": self.rows_out,
            "enriched_rows": self.enriched_rows,
            "matches": self.matches,
            "sha256": self.sha256,
            "status": self.status,
            "error_code": self.error_code,
            "error_message": self.error_message,
        }
