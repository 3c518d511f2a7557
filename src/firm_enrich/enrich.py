"""Enrichment orchestrator — fill missing AUM/region/focus from lookups.

One pass over the dataset, strictly sequential:

    IDLE -> SCANNING -> (THROTTLING -> FETCHING -> EXTRACTING -> MERGING)* -> DONE

Per row, every write is planned before any cell is touched, so a failure
leaves that row exactly as it was.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Protocol

from firm_enrich import (
    FOUNDED_COLUMN,
    LAST_ENRICHED_COLUMN,
    SOURCE_URL_COLUMN,
    WEBSITE_COLUMN,
)
from firm_enrich.config import EnrichmentSettings
from firm_enrich.extract import extract_fields
from firm_enrich.models import (
    EnrichmentSummary,
    ExtractedFields,
    FirmRecord,
    LookupResult,
    RowOutcome,
)
from firm_enrich.workbook import FirmDataset

logger = logging.getLogger(__name__)

# Primary fields: canonical key -> attribute on ExtractedFields.
PRIMARY_FIELDS: tuple[tuple[str, str], ...] = (
    ("aum", "aum"),
    ("region", "region"),
    ("focus", "focus"),
)


def utcnow_iso() -> str:
    """``Last Enriched`` stamp: current UTC time, whole seconds."""
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


class Lookup(Protocol):
    def fetch(self, firm_name: str) -> LookupResult | None: ...


class EnrichmentState(str, Enum):
    IDLE = "idle"
    SCANNING = "scanning"
    THROTTLING = "throttling"
    FETCHING = "fetching"
    EXTRACTING = "extracting"
    MERGING = "merging"
    DONE = "done"


@dataclass(frozen=True)
class _Write:
    column: str
    value: Any
    primary: bool


def select_candidates(records: list[FirmRecord], cap: int) -> tuple[list[FirmRecord], int]:
    """Return ``(first cap eligible records, total eligible)`` in source order."""
    eligible = [record for record in records if record.needs_enrichment]
    return eligible[:cap], len(eligible)


class Enricher:
    """Run one enrichment pass over *dataset* using *lookup*.

    ``sleep`` and ``clock`` are injectable so tests can run without real
    delays or wall-clock timestamps.
    """

    def __init__(
        self,
        dataset: FirmDataset,
        lookup: Lookup,
        settings: EnrichmentSettings | None = None,
        *,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], str] = utcnow_iso,
        on_row: Callable[[RowOutcome], None] | None = None,
    ) -> None:
        self.dataset = dataset
        self.lookup = lookup
        self.settings = settings or EnrichmentSettings()
        self._sleep = sleep
        self._clock = clock
        self._on_row = on_row
        self.state = EnrichmentState.IDLE

    # ── Planning ────────────────────────────────────────────────

    def _plan(self, record: FirmRecord, fields: ExtractedFields, stamp: str) -> list[_Write]:
        ds = self.dataset
        writes: list[_Write] = []
        for key, attr in PRIMARY_FIELDS:
            value = getattr(fields, attr)
            if not value:
                continue
            header = ds.field_headers[key]
            if ds.is_blank(record.row, ds.column_for(key), numeric=key == "aum"):
                writes.append(_Write(header, round(value, 4) if key == "aum" else value, True))

        if fields.reference_url:
            writes.append(_Write(SOURCE_URL_COLUMN, fields.reference_url, False))
        if fields.website:
            writes.append(_Write(WEBSITE_COLUMN, fields.website, False))
        if fields.founded_year is not None:
            writes.append(_Write(FOUNDED_COLUMN, fields.founded_year, False))
        writes.append(_Write(LAST_ENRICHED_COLUMN, stamp, False))
        return writes

    def _apply(self, record: FirmRecord, writes: list[_Write]) -> None:
        """Write every planned value, or none of them."""
        sheet = self.dataset.sheet
        columns = [self.dataset.ensure_column(write.column) for write in writes]
        previous = [sheet.cell(row=record.row, column=col).value for col in columns]
        try:
            for col, write in zip(columns, writes):
                self.dataset.write_field(record.row, col, write.value)
        except Exception:
            for col, value in zip(columns, previous):
                sheet.cell(row=record.row, column=col).value = value
            raise

    # ── Per row ─────────────────────────────────────────────────

    def enrich_row(self, record: FirmRecord) -> RowOutcome:
        """Look up and merge one candidate row. Never raises."""
        try:
            self.state = EnrichmentState.THROTTLING
            if self.settings.delay_seconds:
                self._sleep(self.settings.delay_seconds)

            self.state = EnrichmentState.FETCHING
            result = self.lookup.fetch(record.name)
            if result is None:
                logger.info("No page found for %r", record.name)
                return RowOutcome(record.rank, record.name, "not_found")

            self.state = EnrichmentState.EXTRACTING
            fields = extract_fields(result)

            self.state = EnrichmentState.MERGING
            writes = self._plan(record, fields, self._clock())
            self._apply(record, writes)
        except Exception as exc:
            logger.warning("Enrichment failed for %r: %s", record.name, exc)
            return RowOutcome(record.rank, record.name, "failed", reason=str(exc))

        primary = tuple(w.column for w in writes if w.primary)
        status = "filled" if primary else "attempted"
        logger.debug("Row %d (%s): %s %s", record.rank, record.name, status, primary)
        return RowOutcome(
            record.rank,
            record.name,
            status,
            fields=tuple(w.column for w in writes),
        )

    # ── Run ─────────────────────────────────────────────────────

    def run(self) -> EnrichmentSummary:
        """Enrich up to ``settings.max_rows`` candidates and return a summary."""
        self.state = EnrichmentState.SCANNING
        cap = self.settings.max_rows
        candidates, eligible = select_candidates(self.dataset.records(), cap)
        summary = EnrichmentSummary(candidates=eligible, cap=cap, started_at_utc=self._clock())
        logger.info(
            "Enriching %d of %d rows missing AUM (cap %d)", len(candidates), eligible, cap
        )

        for record in candidates:
            outcome = self.enrich_row(record)
            summary.outcomes.append(outcome)
            if self._on_row is not None:
                self._on_row(outcome)

        if summary.attempted:
            self.dataset.refresh()
        summary.finished_at_utc = self._clock()
        self.state = EnrichmentState.DONE
        return summary


def enrich_dataset(
    dataset: FirmDataset,
    lookup: Lookup,
    settings: EnrichmentSettings | None = None,
    **kwargs: Any,
) -> EnrichmentSummary:
    """Convenience wrapper: ``Enricher(dataset, lookup, settings).run()``."""
    return Enricher(dataset, lookup, settings, **kwargs).run()
