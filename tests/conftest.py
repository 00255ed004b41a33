"""Pytest configuration and fixtures."""

from unittest.mock import AsyncMock

import pytest

from wherewatch_mcp.models import MediaKind, Offer, Title

WATCH_PAGE = """
<html>
<head><title>Foo - Where to Watch</title></head>
<body>
  <div class="ott_title">
    <h2>Watch Foo</h2>
  </div>
  <p>
    Streaming data provided by
    <a href="https://www.justwatch.com/us/movie/foo" rel="noopener">JustWatch</a>
  </p>
  <div class="ott_provider">
    <h3> Stream </h3>
    <ul class="providers">
      <li class="ott_filter_best_price ott_filter_hd ott_filter_4k">
        <a href="/click/1" title="Watch Foo on Hulu"><img src="/hulu.png"></a>
      </li>
      <li class="ott_filter_sd">
        <a href="/click/2" title="Watch Foo on Netflix"><img src="/nf.png"></a>
      </li>
      <li class="ott_filter_hd ott_filter_sd">
        <a href="/click/3" title="Watch Foo on Netflix"><img src="/nf.png"></a>
      </li>
      <li class="ott_filter_hd">
        <a href="/click/4">untitled offer</a>
      </li>
      <li class="ott_filter_hd">
        <a href="/click/5" title="Trailer">trailer</a>
      </li>
    </ul>
  </div>
  <div class="ott_provider">
    <h3>Rent</h3>
    <ul class="providers">
      <li class="ott_filter_4k">
        <a href="/click/6" title="Rent Foo on Apple TV"></a>
      </li>
    </ul>
  </div>
  <div class="ott_provider">
    <h3>Buy</h3>
    <ul class="providers">
      <li class="ott_filter_sd">
        <a href="/click/7" title="Buy Foo on Google Play Movies"></a>
      </li>
    </ul>
  </div>
</body>
</html>
"""


@pytest.fixture
def watch_page():
    """A watch-info page with Stream, Rent and Buy sections."""
    return WATCH_PAGE


@pytest.fixture
def providers_payload():
    """Relay ``watch/providers`` response body."""
    return {
        "id": 42,
        "results": {
            "US": {
                "link": "https://www.themoviedb.org/movie/42/watch?locale=US",
                "flatrate": [
                    {"provider_id": 8, "provider_name": "Netflix", "logo_path": "/nf.jpg"}
                ],
                "rent": [
                    {"provider_id": 2, "provider_name": "Apple TV", "logo_path": "/a.jpg"}
                ],
            },
            "GB": {
                "flatrate": [
                    {"provider_id": 8, "provider_name": "Netflix", "logo_path": "/nf.jpg"}
                ]
            },
            "FR": {
                "flatrate": [
                    {"provider_id": 9, "provider_name": "Disney+", "logo_path": "/d.jpg"}
                ]
            },
            "KE": {
                "buy": [
                    {"provider_id": 3, "provider_name": "Google Play", "logo_path": "/g.jpg"}
                ]
            },
        },
    }


@pytest.fixture
def title():
    return Title(id=42, kind=MediaKind.MOVIE, name="Foo", year=2020)


@pytest.fixture
def raw_availability():
    """RawAvailability with a non-enrichable country (KE)."""
    netflix = Offer(provider_id=8, provider_name="Netflix", logo_ref="/nf.jpg")
    disney = Offer(provider_id=9, provider_name="Disney+", logo_ref="/d.jpg")
    return {
        "US": [netflix],
        "GB": [netflix],
        "FR": [disney],
        "KE": [netflix],
    }


@pytest.fixture
def session_factory(title, raw_availability, watch_page):
    """Build a LookupSession wired to in-memory fakes.

    Returns the session plus the mocks so tests can inspect calls.
    """
    from wherewatch_mcp.orchestrator import LookupSession

    def _make(**overrides):
        fakes = {
            "search": AsyncMock(return_value=[title]),
            "watch_providers": AsyncMock(return_value=raw_availability),
            "fetch_html": AsyncMock(return_value=watch_page),
        }
        fakes.update(overrides)
        return LookupSession(**fakes), fakes

    return _make
