"""Content-fetch collaborator interface."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


class FetchError(RuntimeError):
    """A topic could not be fetched or resolved."""


@dataclass(frozen=True)
class LinkInfo:
    """An outgoing link of a topic, with the sentence it appears in."""

    title: str
    context: str | None = None


@dataclass(frozen=True)
class Summary:
    summary: str
    thumbnail: str | None = None
    description: str | None = None


class ContentFetcher(Protocol):
    """Source of graph edges. Implementations own their cache lifecycle."""

    async def resolve_title(self, query: str) -> str: ...

    async def fetch_links(self, title: str) -> list[LinkInfo]: ...

    def get_links_from_cache(self, title: str) -> list[LinkInfo] | None: ...

    def get_cached_titles(self) -> list[str]: ...

    async def fetch_summary(self, title: str) -> Summary: ...

    async def fetch_categories(self, title: str) -> list[str]: ...

    async def fetch_backlinks(self, title: str, limit: int = 25) -> list[str]: ...

    def get_bold_link_titles_from_cache(self, title: str) -> list[str] | None: ...


def context_for(fetcher: ContentFetcher, source: str, target: str) -> str | None:
    """Cached context of the ``source -> target`` link, if known."""
    for link in fetcher.get_links_from_cache(source) or []:
        if link.title == target:
            return link.context
    return None
