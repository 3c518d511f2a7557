"""Tests for the text heuristics that turn scraped snippets into fields."""

from __future__ import annotations

import pytest

from firm_enrich.extract import (
    extract_fields,
    first_year,
    guess_focus,
    infer_region,
    normalize_country,
    parse_aum,
)
from firm_enrich.models import LookupResult


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("$12.4 billion", 12.4),
        ("450 million", 0.45),
        ("", 0.0),
        ("N/A", 0.0),
        ("US$ 1,234.5 billion", 1234.5),
        ("US$12,400 million (2022)", 12.4),
        ("€242 bn", 242.0),
        ("$73.2bn", 73.2),
        ("US$1.1 trillion (2024)[1]", 1100.0),
    ],
)
def test_parse_aum_scales_to_billions(text: str, expected: float) -> None:
    assert parse_aum(text) == pytest.approx(expected)


def test_parse_aum_ignores_numbers_inside_parentheses() -> None:
    assert parse_aum("(as of 2023) US$ 88 billion") == pytest.approx(88.0)


def test_parse_aum_prefers_billion_when_both_units_present() -> None:
    assert parse_aum("$500 million fund, $3 billion total") == pytest.approx(500.0)


def test_parse_aum_without_unit_word_is_taken_as_billions() -> None:
    """Known limitation: a bare figure is never rescaled, even if it was millions."""
    assert parse_aum("US$ 450") == pytest.approx(450.0)


def test_parse_aum_none_is_zero() -> None:
    assert parse_aum(None) == 0.0


@pytest.mark.parametrize(
    ("hq", "country"),
    [
        ("250 Park Avenue, New York, U.S.", "United States"),
        ("New York City, US", "United States"),
        ("Washington, D.C., USA", "United States"),
        ("1 King William Street, London, UK", "United Kingdom"),
        ("London, U.K.", "United Kingdom"),
        ("Stockholm, Sweden", "Sweden"),
        ("Singapore", "Singapore"),
        ("", ""),
        ("   ", ""),
    ],
)
def test_normalize_country_uses_trailing_segment(hq: str, country: str) -> None:
    assert normalize_country(hq) == country


@pytest.mark.parametrize(
    ("hq", "region"),
    [
        ("250 Park Avenue, New York, U.S.", "North America"),
        ("Toronto, Ontario, Canada", "North America"),
        ("1 King William Street, London, UK", "Europe"),
        ("Stockholm, Sweden", "Europe"),
        ("Hong Kong, China", "Asia-Pacific"),
        ("Sydney, New South Wales, Australia", "Asia-Pacific"),
        ("Abu Dhabi, United Arab Emirates", "Other"),
        ("São Paulo, Brazil", "Other"),
        ("Indianapolis, Indiana", "North America"),
        ("Newark, New Jersey", "North America"),
        ("Toronto, Ontario", "North America"),
        ("Sydney, New South Wales", "Asia-Pacific"),
        ("Melbourne, Victoria", "Asia-Pacific"),
        ("Cardiff, Wales", "Europe"),
        ("Mumbai, India", "Asia-Pacific"),
        ("", ""),
        (None, ""),
    ],
)
def test_infer_region(hq: str | None, region: str) -> None:
    assert infer_region(hq) == region


def test_guess_focus_first_match_wins() -> None:
    text = "The firm is known for leveraged BUYOUT deals and its Infrastructure arm."
    assert guess_focus(text) == "Infrastructure"


@pytest.mark.parametrize(
    ("text", "label"),
    [
        ("Invests in commercial real estate and buyouts", "Real Estate"),
        ("A venture capital firm", "Venture"),
        ("Leading provider of direct lending", "Credit"),
        ("Its credit fund closed in 2020", "Credit"),
        ("growth capital for technology companies", "Growth"),
        ("mid-market buyout specialist", "Buyout"),
        ("A diversified asset manager", ""),
        ("", ""),
    ],
)
def test_guess_focus_labels(text: str, label: str) -> None:
    assert guess_focus(text) == label


@pytest.mark.parametrize(
    ("text", "year"),
    [
        ("1985; 41 years ago", 1985),
        ("Founded in March 2004 by ...", 2004),
        ("1976 (as Kohlberg Kravis Roberts & Co.) 2010 IPO", 1976),
        ("12019 units", None),
        ("unknown", None),
        ("", None),
        (None, None),
    ],
)
def test_first_year(text: str | None, year: int | None) -> None:
    assert first_year(text) == year


def test_extract_fields_combines_every_heuristic(eqt_result: LookupResult) -> None:
    fields = extract_fields(eqt_result)

    assert fields.aum == pytest.approx(242.0)
    assert fields.region == "Europe"
    assert fields.focus == "Infrastructure"
    assert fields.founded_year == 1994
    assert fields.reference_url == "https://en.wikipedia.org/wiki/EQT_AB"
    assert fields.website == "https://eqtgroup.com"


def test_extract_fields_on_empty_result_is_all_empty() -> None:
    fields = extract_fields(LookupResult())

    assert fields.aum == 0.0
    assert fields.region == ""
    assert fields.focus == ""
    assert fields.founded_year is None


def test_extract_fields_drops_worksheet_control_characters() -> None:
    result = LookupResult(
        reference_url="https://en.wikipedia.org/wiki/Acme\x0b",
        website="https://acme\x01cap.com",
        headquarters="Boston,\x02 Massachusetts",
    )

    fields = extract_fields(result)

    assert fields.reference_url == "https://en.wikipedia.org/wiki/Acme"
    assert fields.website == "https://acmecap.com"
    assert fields.region == "North America"
