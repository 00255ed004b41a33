"""Fetch watch-page HTML with a direct request and a proxied fallback.

The origin sometimes rejects non-browser clients. Each configured strategy
(``direct``, ``proxy``) is tried once, in FETCH_ORDER; the first one that
returns a usable page wins. There is no retry or backoff beyond that single
fallback: enrichment is best-effort.
"""

from urllib.parse import quote

import httpx
from loguru import logger

from wherewatch_mcp.config import settings
from wherewatch_mcp.errors import FetchFailure
from wherewatch_mcp.security import is_watch_page_url

# Statuses the origin uses to turn scrapers away
_BLOCKED_STATUSES = frozenset({401, 403, 429, 503})

# Body fragments of bot-challenge interstitials
_CHALLENGE_MARKERS: tuple[str, ...] = (
    "cf-browser-verification",
    "challenge-platform",
    "<title>just a moment...</title>",
    "attention required! | cloudflare",
)


def proxied_url(url: str) -> str:
    """Build the indirect retrieval URL for *url*."""
    return settings.proxy_url.replace("{url}", quote(url, safe=""))


def looks_blocked(text: str) -> bool:
    """True if the body is empty or an anti-scraping interstitial."""
    if not text or not text.strip():
        return True
    head = text[:4096].lower()
    return any(marker in head for marker in _CHALLENGE_MARKERS)


async def _get(client: httpx.AsyncClient, url: str, headers: dict) -> httpx.Response:
    """GET *url*, raising FetchFailure if the response is unusable."""
    try:
        response = await client.get(url, headers=headers)
    except httpx.RequestError as e:
        raise FetchFailure(f"request error: {e}") from e

    if response.status_code in _BLOCKED_STATUSES:
        raise FetchFailure(f"blocked (HTTP {response.status_code})")
    if not 200 <= response.status_code < 300:
        raise FetchFailure(f"HTTP {response.status_code}")

    if looks_blocked(response.text):
        raise FetchFailure("blocked (challenge page)")
    return response


async def _fetch_direct(client: httpx.AsyncClient, url: str) -> str:
    headers = {
        "User-Agent": settings.fetch_user_agent,
        "Accept": "text/html,application/xhtml+xml",
        "Accept-Language": "en-US,en;q=0.8",
    }
    response = await _get(client, url, headers)
    if not is_watch_page_url(str(response.url)):
        raise FetchFailure(f"redirected off-site to {response.url.host}")
    return response.text


async def _fetch_proxy(client: httpx.AsyncClient, url: str) -> str:
    response = await _get(client, proxied_url(url), {"Accept": "text/html"})
    return response.text


_STRATEGIES = {
    "direct": _fetch_direct,
    "proxy": _fetch_proxy,
}


async def fetch_html(url: str) -> str:
    """Return the HTML of *url*, trying each configured strategy once.

    Raises:
        FetchFailure: every strategy failed, or *url* is not on the watch host.
    """
    if not is_watch_page_url(url):
        raise FetchFailure("not a watch page url")

    order = settings.get_fetch_order()
    reasons: list[str] = []

    async with httpx.AsyncClient(
        timeout=settings.fetch_timeout, follow_redirects=True
    ) as client:
        for name in order:
            try:
                html = await _STRATEGIES[name](client, url)
            except FetchFailure as e:
                logger.warning(f"Fetch via {name} failed for {url}: {e.reason}")
                reasons.append(f"{name}: {e.reason}")
                continue
            logger.debug(f"Fetched {url} via {name} ({len(html)} chars)")
            return html

    raise FetchFailure("; ".join(reasons) or "no fetch strategy configured")
