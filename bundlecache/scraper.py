"""
Steam store scraper for bundle pages.

The page is fetched through a PageFetcher so the parsing rules can be exercised
without network access. A page that redirected away from its own bundle URL
means the bundle was removed from the store; a page without the header element
is reachable but unparseable and yields an incomplete record.
"""
import re
import time
from dataclasses import dataclass, field
from typing import List, Optional
from urllib.parse import urlencode, urlparse

import requests
import structlog
from bs4 import BeautifulSoup

from bundlecache.constants import APP_ID_ATTRIBUTE, PAGE_HEADER_SELECTOR, STORE_COOKIES
from bundlecache.exceptions import UpstreamUnavailableException
from bundlecache.metrics import scrape_duration_seconds
from bundlecache.settings import default_settings
from bundlecache.utils import now_utc, to_epoch

logger = structlog.get_logger("scraper")


@dataclass
class ParsedPage:
    """Result of fetching one page: the final URL after redirects and the parsed markup"""

    url: str
    document: Optional[BeautifulSoup] = None

    @property
    def has_content(self) -> bool:
        return self.document is not None

    def select_one(self, selector):
        if self.document is None:
            return None
        return self.document.select_one(selector)


class PageFetcher:
    """Capability to fetch and parse a page"""

    def fetch_page(self, url: str) -> ParsedPage:
        raise NotImplementedError


class RequestsPageFetcher(PageFetcher):
    """Fetches pages with requests and parses them with BeautifulSoup"""

    def __init__(self, timeout: float = 15, user_agent: str = "bundlecache/1.0", session: requests.Session = None):
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": user_agent})
        self.session.cookies.update(STORE_COOKIES)

    @classmethod
    def from_settings(cls, settings: dict) -> "RequestsPageFetcher":
        store = settings["store"]
        return cls(timeout=store.get("timeout", 15), user_agent=store.get("user_agent", "bundlecache/1.0"))

    def fetch_page(self, url: str) -> ParsedPage:
        try:
            response = self.session.get(url, timeout=self.timeout, allow_redirects=True)
        except requests.RequestException as e:
            logger.warning(f"Request to {url} failed: {e}")
            return ParsedPage(url=url)

        if response.status_code >= 500 or not response.text.strip():
            logger.warning(f"No usable content from {url} (HTTP {response.status_code})")
            return ParsedPage(url=response.url or url)

        return ParsedPage(url=response.url or url, document=BeautifulSoup(response.text, "html.parser"))


@dataclass
class ScrapedBundle:
    """Candidate record produced by one scrape"""

    bundle_id: int
    removed: bool
    last_update: int
    queued_for_update: bool = False
    name: Optional[str] = None
    apps: List[int] = field(default_factory=list)
    # True when the page was parseable or the bundle is gone, i.e. the app list is the real one
    authoritative: bool = False

    def primary_row(self) -> dict:
        return {
            "bundle_id": self.bundle_id,
            "removed": self.removed,
            "last_update": self.last_update,
            "queued_for_update": self.queued_for_update,
        }


def bundle_url(bundle_id: int, settings: dict) -> str:
    store = settings["store"]
    query = urlencode({"cc": store.get("country", "us"), "l": store.get("language", "en")})
    return f"{store['base_url'].rstrip('/')}/bundle/{bundle_id}?{query}"


def bundle_url_pattern(bundle_id: int, settings: dict) -> re.Pattern:
    """Matches store URLs that still point at this bundle's own page"""
    host = urlparse(settings["store"]["base_url"]).netloc
    return re.compile(rf"{re.escape(host)}.*?/bundle/{bundle_id}(?!\d)")


def parse_app_ids(page: ParsedPage) -> List[int]:
    """Collect app ids from every element carrying the app id data attribute, first seen order"""
    apps = []
    for element in page.document.select(f"[{APP_ID_ATTRIBUTE}]"):
        for token in element.get(APP_ID_ATTRIBUTE, "").split(","):
            token = token.strip()
            if not (token.isascii() and token.isdigit()):
                continue
            app_id = int(token)
            if app_id not in apps:
                apps.append(app_id)
    return apps


class BundleScraper:
    def __init__(self, fetcher: PageFetcher = None, settings: dict = None, clock=now_utc):
        self.settings = settings or default_settings()
        self.fetcher = fetcher or RequestsPageFetcher.from_settings(self.settings)
        self.clock = clock

    def scrape(self, bundle_id: int) -> ScrapedBundle:
        url = bundle_url(bundle_id, self.settings)

        start_time = time.time()
        try:
            page = self.fetcher.fetch_page(url)
        finally:
            scrape_duration_seconds.observe(time.time() - start_time)

        if not page.has_content:
            raise UpstreamUnavailableException(url=url)

        removed = not bundle_url_pattern(bundle_id, self.settings).search(page.url)
        header = page.select_one(PAGE_HEADER_SELECTOR)
        is_page_ok = header is not None

        bundle = ScrapedBundle(
            bundle_id=bundle_id,
            removed=removed,
            last_update=to_epoch(self.clock()),
            authoritative=is_page_ok or removed,
        )
        if is_page_ok and not removed:
            bundle.name = header.get_text().strip() or None
            bundle.apps = parse_app_ids(page)

        if removed:
            logger.info(f"Bundle {bundle_id} redirected to {page.url}, marking as removed")
        elif not is_page_ok:
            logger.warning(f"Bundle {bundle_id} page has no header, storing it without name or apps")
        else:
            logger.debug(f"Scraped bundle {bundle_id}: {bundle.name!r} with {len(bundle.apps)} apps")
        return bundle
