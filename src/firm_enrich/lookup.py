"""Wikipedia lookup client — search for a firm, scrape its infobox.

Flow per firm:

1. GET ``/w/index.php?search=<name> private equity``.
2. Follow the first search hit. If the search redirected straight to an
   article, use that article. With no hit, guess ``/wiki/<Firm_Name>``.
3. Read Website / Headquarters / Founded / AUM out of ``table.infobox``
   and keep the whole page text for focus guessing.

Any failure (HTTP status, network, timeout, malformed link) returns ``None``.
There are no retries.
"""

from __future__ import annotations

import logging
from types import TracebackType
from urllib.parse import quote, urljoin

import httpx
from bs4 import BeautifulSoup, Tag

from firm_enrich.config import EnrichmentSettings
from firm_enrich.models import LookupResult

logger = logging.getLogger(__name__)

SEARCH_PATH = "/w/index.php"
ARTICLE_PREFIX = "/wiki/"
SEARCH_HIT_SELECTOR = "div.mw-search-result-heading > a"
INFOBOX_SELECTOR = "table.infobox"

# Malformed hrefs surface as ValueError from urllib or httpx.InvalidURL.
FETCH_ERRORS: tuple[type[Exception], ...] = (
    httpx.HTTPError,
    httpx.InvalidURL,
    httpx.StreamError,
    ValueError,
)

# Tried in order; the first label with a non-empty cell wins.
AUM_LABELS: tuple[str, ...] = (
    "AUM",
    "Assets under management",
    "Assets under management (AUM)",
    "Total assets",
)


def _infobox_row(infobox: Tag, label: str) -> Tag | None:
    needle = label.lower()
    for row in infobox.find_all("tr"):
        header = row.find("th")
        if header is not None and needle in header.get_text(" ", strip=True).lower():
            return row
    return None


def _cell_text(infobox: Tag, label: str) -> str:
    row = _infobox_row(infobox, label)
    if row is None:
        return ""
    cell = row.find("td")
    return cell.get_text(" ", strip=True) if cell is not None else ""


def _website(infobox: Tag, page_url: str) -> str:
    row = _infobox_row(infobox, "Website")
    if row is None:
        return ""
    cell = row.find("td")
    if cell is None:
        return ""
    anchor = cell.find("a", href=True)
    if anchor is not None:
        return urljoin(page_url, str(anchor["href"]))
    return cell.get_text(" ", strip=True)


def parse_firm_page(html: str, page_url: str) -> LookupResult:
    """Scrape one article into a :class:`LookupResult`.

    A page without an infobox still yields a result, with only
    ``reference_url`` and ``page_text`` set.
    """
    soup = BeautifulSoup(html, "html.parser")
    page_text = soup.get_text(" ", strip=True)

    infobox = soup.select_one(INFOBOX_SELECTOR)
    if infobox is None:
        logger.debug("No infobox on %s", page_url)
        return LookupResult(reference_url=page_url, page_text=page_text)

    aum_text = ""
    for label in AUM_LABELS:
        aum_text = _cell_text(infobox, label)
        if aum_text:
            break

    return LookupResult(
        reference_url=page_url,
        website=_website(infobox, page_url),
        headquarters=_cell_text(infobox, "Headquarters"),
        founded=_cell_text(infobox, "Founded"),
        aum=aum_text,
        page_text=page_text,
    )


def guess_article_path(firm_name: str) -> str:
    """Return the canonical ``/wiki/`` path Wikipedia would use for *firm_name*."""
    title = "_".join(firm_name.split())
    return ARTICLE_PREFIX + quote(title, safe="_()'.,-&")


class LookupClient:
    """Synchronous firm lookup against a MediaWiki site.

    Pass ``client`` to reuse (or mock) an ``httpx.Client``; otherwise one is
    created from *settings* and closed by :meth:`close`.
    """

    def __init__(
        self,
        settings: EnrichmentSettings | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        self.settings = settings or EnrichmentSettings()
        self._owns_client = client is None
        self._client = client or httpx.Client(
            timeout=httpx.Timeout(self.settings.timeout_seconds),
            headers={
                "User-Agent": self.settings.user_agent,
                "Accept": "text/html,application/xhtml+xml;q=0.9,*/*;q=0.8",
            },
            follow_redirects=True,
        )

    def __enter__(self) -> LookupClient:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def _get(self, url: str, params: dict[str, str] | None = None) -> httpx.Response:
        response = self._client.get(
            url,
            params=params,
            headers={"User-Agent": self.settings.user_agent},
            timeout=self.settings.timeout_seconds,
            follow_redirects=True,
        )
        response.raise_for_status()
        return response

    def _resolve_page_url(self, firm_name: str) -> tuple[str, httpx.Response | None]:
        base = self.settings.base_url
        query = f"{firm_name} {self.settings.query_suffix}".strip()
        search = self._get(base + SEARCH_PATH, params={"search": query})

        # MediaWiki jumps straight to an article on an exact title match.
        if search.url.path.startswith(ARTICLE_PREFIX):
            return str(search.url), search

        soup = BeautifulSoup(search.text, "html.parser")
        hit = soup.select_one(SEARCH_HIT_SELECTOR)
        if hit is not None and hit.get("href"):
            return urljoin(base + "/", str(hit["href"])), None

        logger.debug("No search hit for %r; guessing article path", firm_name)
        return base + guess_article_path(firm_name), None

    def fetch(self, firm_name: str) -> LookupResult | None:
        """Look *firm_name* up; ``None`` means nothing could be fetched."""
        name = firm_name.strip()
        if not name:
            return None
        try:
            page_url, page = self._resolve_page_url(name)
            if page is None:
                page = self._get(page_url)
            return parse_firm_page(page.text, str(page.url))
        except FETCH_ERRORS as exc:
            logger.info("Lookup failed for %r: %s", name, exc)
            return None
