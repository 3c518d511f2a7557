from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest
from helpers import write_workbook

from firm_enrich.models import LookupResult


@pytest.fixture
def sample_rows() -> list[list[Any]]:
    return [
        [1, "Blackstone", "North America", "Buyout", 100000, 24.6, 1040],
        [2, "KKR", "North America", "Buyout", 80000, 19.0, None],
        [3, "EQT", "", "", 60000, 22.0, ""],
        [4, "CVC Capital Partners", "Europe", "Buyout", 55000, 26.0, "N/A"],
    ]


@pytest.fixture
def sample_workbook(tmp_path: Path, sample_rows: list[list[Any]]) -> Path:
    return write_workbook(tmp_path / "firms.xlsx", sample_rows)


@pytest.fixture
def eqt_result() -> LookupResult:
    return LookupResult(
        reference_url="https://en.wikipedia.org/wiki/EQT_AB",
        website="https://eqtgroup.com",
        headquarters="Stockholm, Sweden",
        founded="1994; 32 years ago",
        aum="€242 billion (2023)",
        page_text="EQT is a global investment organization with infrastructure and buyout funds.",
    )
