"""Content fetching: collaborator protocol and the Wikipedia client."""

from wikiweb.fetch.base import ContentFetcher, FetchError, LinkInfo, Summary, context_for
from wikiweb.fetch.wikipedia import WikipediaClient, is_topic_title

__all__ = [
    "ContentFetcher",
    "FetchError",
    "LinkInfo",
    "Summary",
    "context_for",
    "WikipediaClient",
    "is_topic_title",
]
