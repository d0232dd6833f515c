"""Tests for the Wikipedia client and its HTML helpers."""

from unittest.mock import MagicMock, patch

import pytest
import requests

from wikiweb.fetch.base import FetchError, LinkInfo
from wikiweb.fetch.wikipedia import (
    WikipediaClient,
    extract_bold_links,
    extract_contexts,
    is_topic_title,
)

INTRO_HTML = (
    '<div><p><b><a href="/wiki/Physics" title="Physics">Physics</a></b> is the '
    '<a href="/wiki/Natural_science" title="Natural science">natural science</a> of '
    '<a href="/wiki/Matter" title="Matter">matter</a>.[1] It studies '
    '<a href="/wiki/Energy" title="Energy">energy</a> and '
    '<a href="/wiki/Force" title="Force">force</a>.</p></div>'
)


def json_response(payload: dict, status: int = 200) -> MagicMock:
    response = MagicMock()
    response.status_code = status
    response.json.return_value = payload
    if status >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(response=response)
    return response


@pytest.fixture
def http():
    """Patch requests.Session; yields the mock session instance."""
    with patch("wikiweb.fetch.wikipedia.requests.Session") as session_cls:
        yield session_cls.return_value


@pytest.fixture
def client(http) -> WikipediaClient:
    return WikipediaClient(max_links=3, max_concurrent=2)


class TestHelpers:
    def test_is_topic_title(self) -> None:
        assert is_topic_title("Physics")
        assert not is_topic_title("ISBN (identifier)")
        assert not is_topic_title("Category:Physics")
        assert not is_topic_title("1990s")
        assert not is_topic_title("March 2004")
        assert not is_topic_title("X")

    def test_extract_contexts(self) -> None:
        """Test each link maps to the sentence containing it, markup stripped."""
        contexts = extract_contexts(INTRO_HTML)
        assert contexts["Matter"] == "Physics is the natural science of matter."
        assert contexts["Natural science"] == contexts["Matter"]
        assert contexts["Energy"] == "It studies energy and force."

    def test_extract_contexts_dotted_title(self) -> None:
        """Test periods inside link attributes do not split the sentence."""
        contexts = extract_contexts(
            '<p>Ohio is a <a href="/wiki/U.S._state" title="U.S. state">state</a> in the Midwest.</p>'
        )
        assert contexts == {"U.S. state": "Ohio is a state in the Midwest."}

    def test_extract_contexts_entities_and_trailing_text(self) -> None:
        contexts = extract_contexts(
            '<p>See <a title="Fish &amp; chips">fish</a> and <i><a title="Cod">cod</a></i></p>'
        )
        assert contexts["Fish & chips"] == "See fish and cod"
        assert contexts["Cod"] == contexts["Fish & chips"]

    def test_extract_bold_links(self) -> None:
        assert extract_bold_links(INTRO_HTML) == ["Physics"]
        assert extract_bold_links("<p>plain</p>") == []
        assert extract_bold_links('<p><b class="lead"><a title="U.S. state">state</a></b></p>') == ["U.S. state"]


class TestFetchLinks:
    """Tests for intro link fetching."""

    @pytest.mark.asyncio
    async def test_filters_and_caps(self, http, client: WikipediaClient) -> None:
        http.get.return_value = json_response({
            "parse": {
                "title": "Physics",
                "text": INTRO_HTML,
                "links": [
                    {"ns": 0, "title": "Matter"},
                    {"ns": 0, "title": "Energy"},
                    {"ns": 0, "title": "Energy"},
                    {"ns": 14, "title": "Category:Physics"},
                    {"ns": 0, "title": "ISBN (identifier)"},
                    {"ns": 0, "title": "1905"},
                    {"ns": 0, "title": "Force"},
                    {"ns": 0, "title": "Natural science"},
                ],
            }
        })

        links = await client.fetch_links("Physics")

        assert len(links) == 3
        assert len({link.title for link in links}) == 3
        assert {link.title for link in links} <= {"Matter", "Energy", "Force", "Natural science"}
        assert all(link.context for link in links)
        assert client.get_links_from_cache("Physics") == links
        assert client.get_cached_titles() == ["Physics"]
        assert client.get_bold_link_titles_from_cache("Physics") == ["Physics"]

        params = http.get.call_args.kwargs["params"]
        assert params["action"] == "parse"
        assert params["section"] == 0

    @pytest.mark.asyncio
    async def test_cached(self, http, client: WikipediaClient) -> None:
        http.get.return_value = json_response({"parse": {"text": "", "links": [{"ns": 0, "title": "Atom"}]}})
        first = await client.fetch_links("Matter")
        second = await client.fetch_links("Matter")
        assert first == second == [LinkInfo(title="Atom")]
        assert http.get.call_count == 1

        client.clear_cache()
        assert client.get_links_from_cache("Matter") is None

    @pytest.mark.asyncio
    async def test_no_parseable_content(self, http, client: WikipediaClient) -> None:
        http.get.return_value = json_response({"error": {"code": "missingtitle"}})
        assert await client.fetch_links("Nothing") == []
        assert client.get_links_from_cache("Nothing") == []

    @pytest.mark.asyncio
    async def test_http_error(self, http, client: WikipediaClient) -> None:
        http.get.return_value = json_response({}, status=500)
        with pytest.raises(FetchError, match="Failed to fetch links"):
            await client.fetch_links("Physics")
        assert client.get_links_from_cache("Physics") is None

    @pytest.mark.asyncio
    async def test_connection_error(self, http, client: WikipediaClient) -> None:
        http.get.side_effect = requests.ConnectionError("offline")
        with pytest.raises(FetchError):
            await client.fetch_links("Physics")


class TestResolveTitle:
    @pytest.mark.asyncio
    async def test_follows_redirect(self, http, client: WikipediaClient) -> None:
        http.get.return_value = json_response({"query": {"pages": [{"title": "United States"}]}})
        assert await client.resolve_title(" USA ") == "United States"
        assert http.get.call_args.kwargs["params"]["titles"] == "USA"

    @pytest.mark.asyncio
    async def test_falls_back_to_search(self, http, client: WikipediaClient) -> None:
        """Test a missing page resolves to the top search hit."""
        http.get.side_effect = [
            json_response({"query": {"pages": [{"title": "Quantum mechanic", "missing": True}]}}),
            json_response({"query": {"search": [{"title": "Quantum mechanics"}]}}),
        ]
        assert await client.resolve_title("Quantum mechanic") == "Quantum mechanics"
        assert http.get.call_args.kwargs["params"]["list"] == "search"

    @pytest.mark.asyncio
    async def test_nothing_found(self, http, client: WikipediaClient) -> None:
        http.get.side_effect = [
            json_response({"query": {"pages": [{"title": "Zzxq", "missing": True}]}}),
            json_response({"query": {"search": []}}),
        ]
        with pytest.raises(FetchError, match="No article found"):
            await client.resolve_title("Zzxq")


class TestSummaryAndCategories:
    @pytest.mark.asyncio
    async def test_summary(self, http, client: WikipediaClient) -> None:
        http.get.return_value = json_response({
            "extract": "Physics is a science.",
            "description": "natural science",
            "thumbnail": {"source": "https://upload/physics.png"},
        })
        summary = await client.fetch_summary("Physics")
        assert summary.summary == "Physics is a science."
        assert summary.thumbnail == "https://upload/physics.png"
        assert summary.description == "natural science"
        assert http.get.call_args.args[0].endswith("/page/summary/Physics")

    @pytest.mark.asyncio
    async def test_summary_never_raises(self, http, client: WikipediaClient) -> None:
        http.get.return_value = json_response({}, status=404)
        summary = await client.fetch_summary("Missing")
        assert summary.summary == "Summary not available"
        assert summary.thumbnail is None

    @pytest.mark.asyncio
    async def test_categories(self, http, client: WikipediaClient) -> None:
        http.get.return_value = json_response({
            "query": {"pages": [{"title": "Heat", "categories": [
                {"title": "Category:Thermodynamics"},
                {"title": "Category:Physical quantities"},
            ]}]}
        })
        assert await client.fetch_categories("Heat") == ["Thermodynamics", "Physical quantities"]

    @pytest.mark.asyncio
    async def test_backlinks(self, http, client: WikipediaClient) -> None:
        http.get.return_value = json_response({
            "query": {"backlinks": [{"title": "Astronomy"}, {"title": "Template:Physics"}]}
        })
        assert await client.fetch_backlinks("Physics", limit=10) == ["Astronomy"]
        params = http.get.call_args.kwargs["params"]
        assert params["bllimit"] == 10
        assert params["blnamespace"] == 0

    @pytest.mark.asyncio
    async def test_close(self, http, client: WikipediaClient) -> None:
        http.get.return_value = json_response({"query": {"backlinks": []}})
        await client.fetch_backlinks("Physics")
        await client.close()
        http.close.assert_called_once()
