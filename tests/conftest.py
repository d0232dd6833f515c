"""Pytest configuration and fixtures."""

import asyncio

import pytest

from wikiweb.config import Settings, get_test_settings
from wikiweb.fetch.base import FetchError, LinkInfo, Summary
from wikiweb.graph.model import GraphCallbacks, GraphModel
from wikiweb.render.surface import MemorySurface


class FakeFetcher:
    """In-memory ContentFetcher over an adjacency dict of topic titles."""

    def __init__(
        self,
        links: dict[str, list[str]],
        delay: float = 0.0,
        contexts: dict[tuple[str, str], str] | None = None,
        backlinks: dict[str, list[str]] | None = None,
        categories: dict[str, list[str]] | None = None,
        bold: dict[str, list[str]] | None = None,
        summaries: dict[str, Summary] | None = None,
        aliases: dict[str, str] | None = None,
        failing: set[str] | None = None,
    ) -> None:
        self.links = links
        self.delay = delay
        self.contexts = contexts or {}
        self.backlinks = backlinks or {}
        self.categories = categories or {}
        self.bold = bold or {}
        self.summaries = summaries or {}
        self.aliases = aliases or {}
        self.failing = failing or set()
        self.fetched: list[str] = []
        self._cache: dict[str, list[LinkInfo]] = {}

    async def resolve_title(self, query: str) -> str:
        return self.aliases.get(query.strip(), query.strip())

    async def fetch_links(self, title: str) -> list[LinkInfo]:
        self.fetched.append(title)
        if self.delay:
            await asyncio.sleep(self.delay)
        if title in self.failing:
            raise FetchError(f"Failed to fetch links: {title}")
        result = [
            LinkInfo(title=t, context=self.contexts.get((title, t)))
            for t in self.links.get(title, [])
        ]
        self._cache[title] = result
        return result

    def get_links_from_cache(self, title: str) -> list[LinkInfo] | None:
        return self._cache.get(title)

    def get_cached_titles(self) -> list[str]:
        return list(self._cache)

    async def fetch_summary(self, title: str) -> Summary:
        return self.summaries.get(title, Summary(summary=f"About {title}"))

    async def fetch_categories(self, title: str) -> list[str]:
        return self.categories.get(title, [])

    async def fetch_backlinks(self, title: str, limit: int = 25) -> list[str]:
        return self.backlinks.get(title, [])[:limit]

    def get_bold_link_titles_from_cache(self, title: str) -> list[str] | None:
        return self.bold.get(title)


@pytest.fixture
def test_settings() -> Settings:
    """Test settings with short intervals."""
    return get_test_settings()


@pytest.fixture
def callbacks() -> GraphCallbacks:
    return GraphCallbacks()


@pytest.fixture
def model(callbacks: GraphCallbacks) -> GraphModel:
    """Empty graph model with a fixed 1200x800 viewport."""
    return GraphModel(callbacks=callbacks, width=1200, height=800)


@pytest.fixture
def surface() -> MemorySurface:
    return MemorySurface(width=1200, height=800)


@pytest.fixture
def chain_links() -> dict[str, list[str]]:
    """A -> B -> C -> D -> E, plus a shortcut A -> X -> E."""
    return {
        "A": ["B", "X"],
        "B": ["C"],
        "C": ["D"],
        "D": ["E"],
        "X": ["E"],
    }


@pytest.fixture
def fake_fetcher(chain_links: dict[str, list[str]]) -> FakeFetcher:
    return FakeFetcher(chain_links)


@pytest.fixture
def make_fetcher():
    """Factory for FakeFetcher instances with custom link graphs."""
    return FakeFetcher
