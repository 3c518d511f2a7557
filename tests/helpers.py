"""Shared builders for the test-suite."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import Any

from openpyxl import Workbook

from firm_enrich.models import LookupResult

HEADERS = [
    "Rank",
    "Firm Name",
    "Region",
    "Primary Focus",
    "Capital Raised (USD M, 2020–24)",
    "Latest Fund Size (USD B)",
    "AUM (USD B)",
]

def write_workbook(
    path: Path,
    rows: Sequence[Sequence[Any]],
    *,
    headers: Sequence[str] = HEADERS,
    sheet: str = "PEI 300",
) -> Path:
    wb = Workbook()
    ws = wb.active
    assert ws is not None
    ws.title = sheet
    ws.append(list(headers))
    for row in rows:
        ws.append(list(row))
    wb.save(path)
    return path

class FakeLookup:
    """Scripted lookup: name -> LookupResult, None (not found) or an exception."""

    def __init__(self, responses: dict[str, Any] | None = None, default: Any = None) -> None:
        self.responses = responses or {}
        self.default = default
        self.calls: list[str] = []

    def fetch(self, firm_name: str) -> LookupResult | None:
        self.calls.append(firm_name)
        response = self.responses.get(firm_name, self.default)
        if isinstance(response, BaseException):
            raise response
        return response


def no_sleep(_seconds: float) -> None:
    return None


def fixed_clock() -> str:
    return "2026-01-02T03:04:05+00:00"
