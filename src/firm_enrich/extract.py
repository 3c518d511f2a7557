"""Field extraction — turn scraped snippets into typed fields. Pure functions."""

from __future__ import annotations

import re

from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE

from firm_enrich.models import ExtractedFields, LookupResult

# ── AUM ──────────────────────────────────────────────────────────

_PAREN_RE = re.compile(r"\([^)]*\)|\[[^\]]*\]")
_NUMBER_RE = re.compile(r"\d+(?:\.\d+)?")
_THOUSANDS_RE = re.compile(r"(?<=\d),(?=\d{3}\b)")
_TRILLION_RE = re.compile(r"trillion|(?<![a-z])tn\b")
_BILLION_RE = re.compile(r"billion|(?<![a-z])bn\b")
_MILLION_RE = re.compile(r"million|(?<![a-z])mn\b")


def parse_aum(text: str | None) -> float:
    """Return the AUM in *text* expressed in billions.

    ``"$12.4 billion"`` -> 12.4, ``"450 million"`` -> 0.45. Text without a
    unit word is assumed to already be in billions, so ``"450"`` -> 450.0.
    No number at all yields 0.0.
    """
    if not text:
        return 0.0
    cleaned = _PAREN_RE.sub(" ", text.lower())
    cleaned = _THOUSANDS_RE.sub("", cleaned)

    match = _NUMBER_RE.search(cleaned)
    if match is None:
        return 0.0
    value = float(match.group())

    if _TRILLION_RE.search(cleaned):
        return value * 1000
    if _BILLION_RE.search(cleaned):
        return value
    if _MILLION_RE.search(cleaned):
        return value * 0.001
    return value


# ── Region ───────────────────────────────────────────────────────

_COUNTRY_ALIASES: dict[str, str] = {
    "us": "United States",
    "u.s.": "United States",
    "u.s": "United States",
    "usa": "United States",
    "u.s.a": "United States",
    "u.s.a.": "United States",
    "united states of america": "United States",
    "uk": "United Kingdom",
    "u.k.": "United Kingdom",
    "u.k": "United Kingdom",
}

# Trailing segments that name a state or province rather than a country.
_SUBDIVISION_REGIONS: dict[str, str] = {
    **dict.fromkeys(
        (
            "alabama", "alaska", "arizona", "arkansas", "california", "colorado",
            "connecticut", "delaware", "district of columbia", "d.c.", "florida",
            "georgia", "hawaii", "idaho", "illinois", "indiana", "iowa", "kansas",
            "kentucky", "louisiana", "maine", "maryland", "massachusetts",
            "michigan", "minnesota", "mississippi", "missouri", "montana",
            "nebraska", "nevada", "new hampshire", "new jersey", "new mexico",
            "new york", "north carolina", "north dakota", "ohio", "oklahoma",
            "oregon", "pennsylvania", "rhode island", "south carolina",
            "south dakota", "tennessee", "texas", "utah", "vermont", "virginia",
            "washington", "west virginia", "wisconsin", "wyoming",
            "ontario", "quebec", "british columbia", "alberta", "manitoba",
            "nova scotia", "new brunswick", "saskatchewan",
        ),
        "North America",
    ),
    **dict.fromkeys(
        (
            "new south wales", "victoria", "queensland", "western australia",
            "south australia", "tasmania", "australian capital territory",
            "northern territory",
        ),
        "Asia-Pacific",
    ),
}

# Checked in order; the first region with a whole-word keyword match wins.
_REGION_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("North America", ("united states", "canada", "mexico", "bermuda")),
    (
        "Europe",
        (
            "united kingdom", "england", "scotland", "wales", "ireland",
            "france", "germany", "netherlands", "belgium", "luxembourg",
            "switzerland", "austria", "italy", "spain", "portugal",
            "sweden", "norway", "denmark", "finland", "iceland",
            "poland", "czech republic", "czechia", "greece", "guernsey", "europe",
        ),
    ),
    (
        "Asia-Pacific",
        (
            "china", "hong kong", "japan", "korea", "taiwan", "singapore",
            "india", "indonesia", "malaysia", "thailand", "vietnam",
            "philippines", "australia", "new zealand",
        ),
    ),
)

_REGION_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = tuple(
    (region, re.compile(r"\b(?:" + "|".join(map(re.escape, keywords)) + r")\b"))
    for region, keywords in _REGION_KEYWORDS
)


def normalize_country(headquarters: str | None) -> str:
    """Return the trailing comma-separated segment of *headquarters*, expanded."""
    if not headquarters or not headquarters.strip():
        return ""
    last = headquarters.split(",")[-1].strip()
    return _COUNTRY_ALIASES.get(last.lower(), last)


def infer_region(headquarters: str | None) -> str:
    """Map a headquarters string to North America, Europe, Asia-Pacific or Other.

    A trailing US state, Canadian province or Australian state resolves
    directly; otherwise the country is matched against whole-word keywords.
    """
    country = normalize_country(headquarters).lower()
    if not country:
        return ""
    if country in _SUBDIVISION_REGIONS:
        return _SUBDIVISION_REGIONS[country]
    for region, pattern in _REGION_PATTERNS:
        if pattern.search(country):
            return region
    return "Other"


# ── Focus ────────────────────────────────────────────────────────

# Order matters: a page mentioning both infrastructure and buyouts is
# labelled Infrastructure.
FOCUS_RULES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("Infrastructure", ("infrastructure",)),
    ("Real Estate", ("real estate",)),
    ("Venture", ("venture capital",)),
    ("Credit", ("private credit", "direct lending", "credit fund")),
    ("Growth", ("growth equity", "growth capital", "growth investments")),
    ("Buyout", ("buyout",)),
)


def guess_focus(page_text: str | None) -> str:
    """Return the first focus label whose keyword appears in *page_text*."""
    if not page_text:
        return ""
    body = page_text.lower()
    for label, keywords in FOCUS_RULES:
        if any(keyword in body for keyword in keywords):
            return label
    return ""


# ── Founded ──────────────────────────────────────────────────────

_YEAR_RE = re.compile(r"(?<!\d)(?:19|20)\d{2}(?!\d)")


def first_year(text: str | None) -> int | None:
    """Return the first 19xx/20xx year in *text*, or ``None``."""
    if not text:
        return None
    match = _YEAR_RE.search(text)
    return int(match.group()) if match else None


# ── Public API ───────────────────────────────────────────────────


def _cell_safe(text: str) -> str:
    """Drop control characters that worksheets cannot store."""
    return ILLEGAL_CHARACTERS_RE.sub("", text).strip()


def extract_fields(result: LookupResult) -> ExtractedFields:
    """Derive every typed field from one lookup result.

    Text fields come back stripped of characters openpyxl refuses to write.
    """
    return ExtractedFields(
        aum=parse_aum(result.aum),
        region=infer_region(_cell_safe(result.headquarters)),
        focus=guess_focus(result.page_text),
        founded_year=first_year(result.founded),
        reference_url=_cell_safe(result.reference_url),
        website=_cell_safe(result.website),
    )
