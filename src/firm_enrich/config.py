"""Runtime settings for the enrichment pass."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any

DEFAULT_MAX_ROWS = 50
DEFAULT_DELAY_SECONDS = 0.35
DEFAULT_TIMEOUT_SECONDS = 12.0
DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; firm-enrich/0.2)"
DEFAULT_BASE_URL = "https://en.wikipedia.org"
DEFAULT_QUERY_SUFFIX = "private equity"
DEFAULT_SHEET_NAME = "PEI 300"


@dataclass(frozen=True)
class EnrichmentSettings:
    """Knobs for the lookup client and the enrichment orchestrator.

    ``max_rows`` caps how many candidate rows one run looks up; ``0`` turns
    enrichment off. ``delay_seconds`` is slept before every lookup.
    """

    max_rows: int = DEFAULT_MAX_ROWS
    delay_seconds: float = DEFAULT_DELAY_SECONDS
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    user_agent: str = DEFAULT_USER_AGENT
    base_url: str = DEFAULT_BASE_URL
    query_suffix: str = DEFAULT_QUERY_SUFFIX

    def __post_init__(self) -> None:
        if isinstance(self.max_rows, bool) or not isinstance(self.max_rows, int):
            raise TypeError("max_rows must be an integer")
        if self.max_rows < 0:
            raise ValueError("max_rows must be >= 0")
        if self.delay_seconds < 0:
            raise ValueError("delay_seconds must be >= 0")
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")
        object.__setattr__(self, "base_url", self.base_url.rstrip("/"))

    def with_overrides(self, **overrides: Any) -> EnrichmentSettings:
        """Return a copy with every non-``None`` override applied."""
        changes = {key: value for key, value in overrides.items() if value is not None}
        return replace(self, **changes) if changes else self
