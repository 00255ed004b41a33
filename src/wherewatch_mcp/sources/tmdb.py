"""Metadata queries through the credential-holding TMDB relay.

The relay forwards ``GET {relay_url}?endpoint=<path>&<params>`` to the TMDB
API and injects the API credential itself; this client never sees or sends
it. Failures are not retried here: they surface as UpstreamUnavailable and
the caller decides what to do.
"""

from collections.abc import Mapping

import httpx
from loguru import logger

from wherewatch_mcp.aggregator import parse_raw_availability
from wherewatch_mcp.config import settings
from wherewatch_mcp.errors import UpstreamUnavailable
from wherewatch_mcp.models import MediaKind, RawAvailability, Title

# Autocomplete kicks in from this many characters
MIN_SUGGEST_LENGTH = 2

_SEARCH_ENDPOINT = "search/multi"


def _parse_year(date: str | None) -> int | None:
    if not date or len(date) < 4 or not date[:4].isdigit():
        return None
    return int(date[:4])


def parse_title(item: Mapping) -> Title | None:
    """Build a Title from a search result, or None for people/collections."""
    try:
        kind = MediaKind.parse(str(item.get("media_type", "")))
    except ValueError:
        return None

    title_id = item.get("id")
    if not isinstance(title_id, int):
        return None

    name = item.get("title") or item.get("name") or ""
    date = item.get("release_date") or item.get("first_air_date")
    return Title(
        id=title_id,
        kind=kind,
        name=str(name),
        year=_parse_year(date),
        poster_path=item.get("poster_path"),
    )


async def call_relay(endpoint: str, params: dict | None = None) -> dict:
    """Issue one relay request and return its decoded JSON object."""
    query = {"endpoint": endpoint, **(params or {})}
    try:
        async with httpx.AsyncClient(timeout=settings.relay_timeout) as client:
            response = await client.get(settings.relay_url, params=query)
            response.raise_for_status()
            data = response.json()
    except httpx.HTTPStatusError as e:
        logger.error(f"Relay HTTP {e.response.status_code} for {endpoint}")
        raise UpstreamUnavailable(
            f"Metadata request failed for {endpoint} (HTTP {e.response.status_code})"
        ) from e
    except httpx.RequestError as e:
        logger.error(f"Relay request error for {endpoint}: {e}")
        raise UpstreamUnavailable(f"Metadata relay unreachable: {e}") from e
    except ValueError as e:
        logger.error(f"Relay returned invalid JSON for {endpoint}")
        raise UpstreamUnavailable(f"Invalid metadata response for {endpoint}") from e

    if not isinstance(data, dict):
        raise UpstreamUnavailable(f"Unexpected metadata response for {endpoint}")
    return data


async def search(query: str) -> list[Title]:
    """Search movies and series; results keep the relay's ranking."""
    logger.info(f"Searching titles: {query}")
    data = await call_relay(
        _SEARCH_ENDPOINT,
        {
            "query": query,
            "include_adult": str(settings.include_adult).lower(),
            "language": settings.search_language,
            "page": 1,
        },
    )

    titles = []
    for item in data.get("results") or []:
        if not isinstance(item, Mapping):
            continue
        title = parse_title(item)
        if title is not None:
            titles.append(title)

    logger.info(f"Found {len(titles)} titles for: {query}")
    return titles


async def suggest(query: str) -> list[Title]:
    """Autocomplete candidates for a partially typed query."""
    query = (query or "").strip()
    if len(query) < MIN_SUGGEST_LENGTH:
        return []
    titles = await search(query)
    return titles[: settings.autocomplete_limit]


async def watch_providers(title: Title) -> RawAvailability:
    """Subscription availability for *title*, keyed by country code."""
    data = await call_relay(f"{title.kind.value}/{title.id}/watch/providers")
    return parse_raw_availability(data.get("results") or {})
