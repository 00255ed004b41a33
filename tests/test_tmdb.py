"""Unit tests for the metadata relay client."""

import unittest.mock

import httpx
import pytest

from wherewatch_mcp.config import settings
from wherewatch_mcp.errors import UpstreamUnavailable
from wherewatch_mcp.models import MediaKind, Offer, Title
from wherewatch_mcp.sources.tmdb import (
    call_relay,
    parse_title,
    search,
    suggest,
    watch_providers,
)


@pytest.fixture
def mock_httpx_client():
    """Fixture to mock httpx.AsyncClient."""
    with unittest.mock.patch(
        "wherewatch_mcp.sources.tmdb.httpx.AsyncClient"
    ) as mock_client:
        mock_context = unittest.mock.AsyncMock()
        mock_context.__aenter__.return_value = mock_context
        mock_client.return_value = mock_context
        yield mock_context


def _json_response(data):
    response = unittest.mock.Mock()
    response.status_code = 200
    response.json.return_value = data
    response.raise_for_status = unittest.mock.Mock()
    return response


SEARCH_RESULTS = {
    "page": 1,
    "results": [
        {
            "id": 603,
            "media_type": "movie",
            "title": "The Matrix",
            "release_date": "1999-03-30",
            "poster_path": "/m.jpg",
        },
        {"id": 6384, "media_type": "person", "name": "Keanu Reeves"},
        {
            "id": 1399,
            "media_type": "tv",
            "name": "Game of Thrones",
            "first_air_date": "2011-04-17",
        },
        {"id": 99, "media_type": "movie", "title": "Undated", "release_date": ""},
    ],
}


# -----------------------------------------------------------------------
# parse_title
# -----------------------------------------------------------------------


class TestParseTitle:
    def test_movie(self):
        title = parse_title(SEARCH_RESULTS["results"][0])
        assert title == Title(603, MediaKind.MOVIE, "The Matrix", 1999, "/m.jpg")

    def test_tv_uses_name_and_first_air_date(self):
        title = parse_title(SEARCH_RESULTS["results"][2])
        assert title.kind is MediaKind.SERIES
        assert title.name == "Game of Thrones"
        assert title.year == 2011

    def test_person_skipped(self):
        assert parse_title(SEARCH_RESULTS["results"][1]) is None

    def test_missing_date(self):
        assert parse_title(SEARCH_RESULTS["results"][3]).year is None

    def test_missing_id(self):
        assert parse_title({"media_type": "movie", "title": "x"}) is None


# -----------------------------------------------------------------------
# Relay calls
# -----------------------------------------------------------------------


@pytest.mark.asyncio
async def test_search_filters_and_keeps_order(mock_httpx_client):
    mock_httpx_client.get.return_value = _json_response(SEARCH_RESULTS)

    titles = await search("matrix")

    assert [t.id for t in titles] == [603, 1399, 99]
    call = mock_httpx_client.get.call_args
    assert call.args[0] == settings.relay_url
    params = call.kwargs["params"]
    assert params["endpoint"] == "search/multi"
    assert params["query"] == "matrix"
    assert params["include_adult"] == "false"
    assert params["page"] == 1


@pytest.mark.asyncio
async def test_search_never_sends_credentials(mock_httpx_client):
    mock_httpx_client.get.return_value = _json_response({"results": []})

    await search("matrix")

    call = mock_httpx_client.get.call_args
    assert "api_key" not in call.kwargs["params"]
    assert "headers" not in call.kwargs


@pytest.mark.asyncio
async def test_search_no_results(mock_httpx_client):
    mock_httpx_client.get.return_value = _json_response({"results": []})
    assert await search("zzzz") == []


@pytest.mark.asyncio
async def test_suggest_short_query_skips_network(mock_httpx_client):
    assert await suggest("m") == []
    assert await suggest("  ") == []
    mock_httpx_client.get.assert_not_called()


@pytest.mark.asyncio
async def test_suggest_truncates(mock_httpx_client, monkeypatch):
    monkeypatch.setattr(settings, "autocomplete_limit", 2)
    mock_httpx_client.get.return_value = _json_response(SEARCH_RESULTS)

    titles = await suggest("matrix")

    assert [t.id for t in titles] == [603, 1399]


@pytest.mark.asyncio
async def test_watch_providers(mock_httpx_client, providers_payload):
    mock_httpx_client.get.return_value = _json_response(providers_payload)
    title = Title(id=42, kind=MediaKind.SERIES, name="Foo")

    raw = await watch_providers(title)

    params = mock_httpx_client.get.call_args.kwargs["params"]
    assert params == {"endpoint": "tv/42/watch/providers"}
    assert raw["GB"] == [Offer(8, "Netflix", "/nf.jpg")]
    assert "KE" not in raw


@pytest.mark.asyncio
async def test_watch_providers_missing_results(mock_httpx_client, title):
    mock_httpx_client.get.return_value = _json_response({"id": 42})
    assert await watch_providers(title) == {}


@pytest.mark.asyncio
async def test_http_error_raises_upstream_unavailable(mock_httpx_client):
    response = unittest.mock.Mock()
    response.status_code = 502
    response.raise_for_status.side_effect = httpx.HTTPStatusError(
        "Bad Gateway", request=unittest.mock.Mock(), response=response
    )
    mock_httpx_client.get.return_value = response

    with pytest.raises(UpstreamUnavailable, match="HTTP 502"):
        await call_relay("search/multi", {"query": "x"})

    mock_httpx_client.get.assert_called_once()


@pytest.mark.asyncio
async def test_request_error_raises_upstream_unavailable(mock_httpx_client):
    mock_httpx_client.get.side_effect = httpx.ConnectError("refused")

    with pytest.raises(UpstreamUnavailable, match="unreachable"):
        await search("matrix")


@pytest.mark.asyncio
async def test_invalid_json_raises_upstream_unavailable(mock_httpx_client):
    response = _json_response(None)
    response.json.side_effect = ValueError("not json")
    mock_httpx_client.get.return_value = response

    with pytest.raises(UpstreamUnavailable, match="Invalid"):
        await search("matrix")


@pytest.mark.asyncio
async def test_non_object_json_raises_upstream_unavailable(mock_httpx_client):
    mock_httpx_client.get.return_value = _json_response(["a", "b"])

    with pytest.raises(UpstreamUnavailable):
        await search("matrix")
