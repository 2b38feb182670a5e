"""
helpmate/services/scraper_service.py

Purpose: Knowledge base page fetching

- Fetches tenant knowledge URLs over HTTP
- Extracts readable body text (scripts, styles and chrome removed)
- Caches extracted text for a configurable time
- Failures are logged and reported as missing content
"""

import asyncio
from dataclasses import dataclass
from typing import Dict, List, Optional

import httpx
from bs4 import BeautifulSoup

from helpmate.core.config import settings
from helpmate.core.logging import get_logger
from helpmate.services.session_store import ExpiringStore, scrape_cache
from utils.text_utils import clean_whitespace

logger = get_logger(__name__)

USER_AGENT = "HelpMateAI-KnowledgeBot/1.0"

# Elements that never carry answerable content
STRIP_TAGS = ["script", "style", "noscript", "template", "svg", "iframe", "nav", "footer"]


class ScraperError(Exception):
    """Raised when a page cannot be fetched or parsed."""
    pass


@dataclass
class ScrapedPage:
    url: str
    title: str
    text: str


def extract_text(html: str) -> ScrapedPage:
    """
    Extracts the title and readable body text of an HTML document.
    Whitespace is collapsed to single spaces.
    """
    soup = BeautifulSoup(html or "", "html.parser")

    title_tag = soup.find("title")
    title = clean_whitespace(title_tag.get_text()) if title_tag else ""

    for tag in soup(STRIP_TAGS):
        tag.decompose()

    body = soup.find("body") or soup
    text = clean_whitespace(body.get_text(separator=" "))
    return ScrapedPage(url="", title=title, text=text)


class ScraperService:
    """
    Fetches and caches knowledge base pages.
    """

    def __init__(
        self,
        cache: Optional[ExpiringStore] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._cache = cache if cache is not None else scrape_cache
        self._timeout = timeout or settings.SCRAPE_TIMEOUT_SECONDS
        self._transport = transport

    async def fetch_page(self, url: str, client: Optional[httpx.AsyncClient] = None) -> ScrapedPage:
        """
        Fetches one page.

        Raises:
            ScraperError: On network errors, non-2xx responses or non-HTML content
        """
        cached = await self._cache.get(url)
        if cached is not None:
            logger.debug(f"Scrape cache hit for {url}")
            return cached

        try:
            if client is None:
                async with self._client() as own_client:
                    response = await own_client.get(url)
            else:
                response = await client.get(url)
        except httpx.TimeoutException:
            raise ScraperError(f"Timed out fetching {url}")
        except httpx.HTTPError as e:
            raise ScraperError(f"Could not fetch {url}: {e}")

        if response.status_code >= 400:
            raise ScraperError(f"{url} returned HTTP {response.status_code}")

        content_type = response.headers.get("content-type", "")
        if content_type and "html" not in content_type and "text" not in content_type:
            raise ScraperError(f"{url} is not a text page ({content_type})")

        page = extract_text(response.text)
        page.url = url
        await self._cache.set(url, page)
        return page

    async def fetch_pages(self, urls: List[str]) -> Dict[str, ScrapedPage]:
        """
        Fetches several pages concurrently.

        Returns:
            Mapping url -> page for the pages that succeeded, in input order
        """
        if not urls:
            return {}

        async with self._client() as client:
            results = await asyncio.gather(
                *(self.fetch_page(url, client) for url in urls),
                return_exceptions=True,
            )

        pages: Dict[str, ScrapedPage] = {}
        for url, result in zip(urls, results):
            if isinstance(result, ScraperError):
                logger.warning(f"Skipping knowledge URL: {result}")
                continue
            if isinstance(result, BaseException):
                logger.error(f"Unexpected error scraping {url}: {result}", exc_info=result)
                continue
            if result.text:
                pages[url] = result
        return pages

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self._timeout,
            follow_redirects=True,
            headers={"User-Agent": USER_AGENT},
            transport=self._transport,
        )


# Global service instance
_scraper_service: Optional[ScraperService] = None


def get_scraper_service() -> ScraperService:
    global _scraper_service
    if _scraper_service is None:
        _scraper_service = ScraperService()
    return _scraper_service


def set_scraper_service(service: Optional[ScraperService]):
    global _scraper_service
    _scraper_service = service
