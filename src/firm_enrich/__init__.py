"""firm-enrich — Enrich, filter and rank private-equity firm workbooks."""

__version__ = "0.2.0"

# canonical key -> accepted header spellings, matched after normalize_header()
REQUIRED_COLUMNS: dict[str, tuple[str, ...]] = {
    "rank": ("Rank", "PEI Rank"),
    "name": ("Firm Name", "Firm"),
    "region": ("Region",),
    "focus": ("Primary Focus",),
    "capital_raised": ("Capital Raised (USD M, 2020–24)", "Capital Raised"),
    "latest_fund_size": ("Latest Fund Size (USD B)", "Latest Fund Size"),
    "aum": ("AUM (USD B)", "AUM"),
}

# Metadata columns appended by enrichment when absent.
SOURCE_URL_COLUMN = "Source URL"
WEBSITE_COLUMN = "Website (wiki)"
FOUNDED_COLUMN = "Founded"
LAST_ENRICHED_COLUMN = "Last Enriched"
