"""Wikipedia content fetcher using the MediaWiki action API and REST API.

Requests run in worker threads so the event loop keeps animating while
pages load. Results are cached in memory for the lifetime of the client.
"""

import asyncio
import logging
import random
import re
from typing import Any

import requests
from bs4 import BeautifulSoup, Comment, NavigableString, Tag
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from wikiweb.config import settings
from wikiweb.fetch.base import FetchError, LinkInfo, Summary

logger = logging.getLogger(__name__)

# Titles containing any of these are references or meta pages, not topics
BLACKLIST = (
    "ISSN", "ISBN", "PMID", "Doi", "S2CID", "JSTOR", "OCLC", "LCCN",
    "Wayback Machine", "Help:", "Category:", "Portal:", "Talk:", "Special:",
    "Wikipedia:", "Template:", "File:", "Main Page", "Identifier", "Bibcode",
    "ArXiv", "ASIN",
)

# Years (1990), decades (1990s) and month-led dates
DATE_REGEX = re.compile(
    r"^(\d{4}(s)?|January|February|March|April|May|June|July|August|September|"
    r"October|November|December)\b",
    re.IGNORECASE,
)

_SENTENCE_RE = re.compile(r"[^.!?]+(?:[.!?]+|$)")
_CITATION_RE = re.compile(r"\[\d+\]")


def is_topic_title(title: str) -> bool:
    """Filter out references, meta pages, dates and junk."""
    if any(term in title for term in BLACKLIST):
        return False
    if DATE_REGEX.match(title):
        return False
    return len(title) >= 2


def _paragraph_anchors(paragraph: Tag) -> tuple[str, list[tuple[int, str]]]:
    """Visible text of a paragraph and the text offset where each titled link starts."""
    parts: list[str] = []
    anchors: list[tuple[int, str]] = []
    offset = 0
    for element in paragraph.descendants:
        if isinstance(element, Tag):
            if element.name == "a" and element.get("title"):
                anchors.append((offset, element["title"]))
        elif isinstance(element, NavigableString) and not isinstance(element, Comment):
            parts.append(str(element))
            offset += len(element)
    return "".join(parts), anchors


def extract_contexts(section_html: str) -> dict[str, str]:
    """Map link title -> first sentence of the intro that links to it."""
    soup = BeautifulSoup(section_html, "html.parser")
    contexts: dict[str, str] = {}
    for paragraph in soup.find_all("p"):
        text, anchors = _paragraph_anchors(paragraph)
        if not anchors:
            continue
        for match in _SENTENCE_RE.finditer(text):
            titles = [title for offset, title in anchors if match.start() <= offset < match.end()]
            if not titles:
                continue
            sentence = _CITATION_RE.sub("", match.group())
            sentence = re.sub(r"\s+", " ", sentence).strip()
            for title in titles:
                contexts.setdefault(title, sentence)
    return contexts


def extract_bold_links(section_html: str) -> list[str]:
    """Titles of links that appear inside bold text."""
    soup = BeautifulSoup(section_html, "html.parser")
    return [
        link["title"]
        for bold in soup.find_all("b")
        for link in bold.find_all("a", title=True)
    ]


class WikipediaClient:
    """Async-wrapped Wikipedia client using requests."""

    def __init__(
        self,
        api_url: str | None = None,
        rest_url: str | None = None,
        timeout: float | None = None,
        max_links: int | None = None,
        max_concurrent: int | None = None,
        user_agent: str | None = None,
    ) -> None:
        self.api_url = api_url or settings.wiki_api_url
        self.rest_url = (rest_url or settings.wiki_rest_url).rstrip("/")
        self.timeout = timeout or settings.wiki_timeout
        self.max_links = max_links or settings.wiki_max_links
        self.max_concurrent = max_concurrent or settings.wiki_max_concurrent
        self.user_agent = user_agent or settings.wiki_user_agent

        self._semaphore = asyncio.Semaphore(self.max_concurrent)
        self._session: requests.Session | None = None

        self._links: dict[str, list[LinkInfo]] = {}
        self._bold: dict[str, list[str]] = {}
        self._summaries: dict[str, Summary] = {}
        self._categories: dict[str, list[str]] = {}
        self._resolved: dict[str, str] = {}

    def _get_session(self) -> requests.Session:
        """Get or create requests session with connection pooling."""
        if self._session is None:
            self._session = requests.Session()
            self._session.headers.update({
                "User-Agent": self.user_agent,
                "Accept": "application/json",
            })
            adapter = HTTPAdapter(
                pool_connections=self.max_concurrent,
                pool_maxsize=self.max_concurrent * 2,
                max_retries=Retry(total=2, backoff_factor=0.5, status_forcelist=(429, 502, 503)),
            )
            self._session.mount("http://", adapter)
            self._session.mount("https://", adapter)
        return self._session

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session is not None:
            self._session.close()
            self._session = None

    def clear_cache(self) -> None:
        self._links.clear()
        self._bold.clear()
        self._summaries.clear()
        self._categories.clear()
        self._resolved.clear()

    def _sync_get(self, url: str, params: dict[str, Any] | None = None) -> dict:
        """Synchronous GET returning JSON (runs in thread)."""
        response = self._get_session().get(url, params=params, timeout=self.timeout)
        response.raise_for_status()
        return response.json()

    async def _get(self, url: str, params: dict[str, Any] | None = None) -> dict:
        async with self._semaphore:
            try:
                return await asyncio.to_thread(self._sync_get, url, params)
            except requests.HTTPError as e:
                logger.error(f"Wikipedia API error: {e.response.status_code} for {url}")
                raise FetchError(f"HTTP error: {e.response.status_code}") from e
            except requests.RequestException as e:
                logger.error(f"Wikipedia request failed: {e}")
                raise FetchError(str(e)) from e

    async def _api(self, **params: Any) -> dict:
        return await self._get(self.api_url, {"format": "json", "formatversion": 2, **params})

    # ------------------------------------------------------------------
    # ContentFetcher

    async def resolve_title(self, query: str) -> str:
        """Canonical title for a query, following redirects, else best search hit."""
        query = query.strip()
        if query in self._resolved:
            return self._resolved[query]

        data = await self._api(action="query", titles=query, redirects=1)
        pages = data.get("query", {}).get("pages", [])
        title = None
        if pages and not pages[0].get("missing") and not pages[0].get("invalid"):
            title = pages[0]["title"]
        if title is None:
            data = await self._api(action="query", list="search", srsearch=query, srlimit=1)
            hits = data.get("query", {}).get("search", [])
            if not hits:
                raise FetchError(f'No article found for "{query}"')
            title = hits[0]["title"]

        self._resolved[query] = title
        return title

    async def fetch_links(self, title: str) -> list[LinkInfo]:
        """Links from the intro section, filtered, shuffled and capped."""
        if title in self._links:
            return self._links[title]

        try:
            data = await self._api(
                action="parse", page=title, prop="links|text", section=0, redirects=1
            )
        except FetchError as e:
            raise FetchError(f"Failed to fetch links: {e}") from e

        parse = data.get("parse")
        if not parse or not parse.get("links"):
            logger.warning(f'Page "{title}" has no parseable content')
            self._links[title] = []
            return []

        section_html = parse.get("text", "")
        contexts = extract_contexts(section_html)
        titles = [
            link["title"]
            for link in parse["links"]
            if link.get("ns") == 0 and is_topic_title(link["title"])
        ]
        # Avoid alphabetical bias before capping
        random.shuffle(titles)
        unique = list(dict.fromkeys(titles))[: self.max_links]

        links = [LinkInfo(title=t, context=contexts.get(t)) for t in unique]
        self._links[title] = links
        self._bold[title] = extract_bold_links(section_html)
        logger.debug(f'Fetched {len(links)} links for "{title}"')
        return links

    def get_links_from_cache(self, title: str) -> list[LinkInfo] | None:
        return self._links.get(title)

    def get_cached_titles(self) -> list[str]:
        return list(self._links)

    def get_bold_link_titles_from_cache(self, title: str) -> list[str] | None:
        return self._bold.get(title)

    async def fetch_summary(self, title: str) -> Summary:
        """Summary, thumbnail and short description; never raises."""
        if title in self._summaries:
            return self._summaries[title]
        try:
            data = await self._get(f"{self.rest_url}/page/summary/{requests.utils.quote(title, safe='')}")
        except FetchError:
            return Summary(summary="Summary not available")

        summary = Summary(
            summary=data.get("extract") or "No summary available",
            thumbnail=(data.get("thumbnail") or {}).get("source"),
            description=data.get("description"),
        )
        self._summaries[title] = summary
        return summary

    async def fetch_categories(self, title: str) -> list[str]:
        if title in self._categories:
            return self._categories[title]
        data = await self._api(
            action="query", prop="categories", titles=title, clshow="!hidden", cllimit=50
        )
        pages = data.get("query", {}).get("pages", [])
        categories = [
            c["title"].removeprefix("Category:")
            for page in pages
            for c in page.get("categories", [])
        ]
        self._categories[title] = categories
        return categories

    async def fetch_backlinks(self, title: str, limit: int = 25) -> list[str]:
        """Articles linking to ``title`` (main namespace only)."""
        data = await self._api(
            action="query", list="backlinks", bltitle=title, blnamespace=0,
            bllimit=limit, blfilterredir="nonredirects",
        )
        return [
            b["title"]
            for b in data.get("query", {}).get("backlinks", [])
            if is_topic_title(b["title"])
        ]
