"""Extract the JustWatch deep link and stream quality tiers from a watch page.

The TMDB watch page has no API. It exposes, for one country:

- a summary block (``.ott_title``) whose following paragraph links to the
  title's JustWatch page;
- ``.ott_provider`` sections headed "Stream", "Rent" or "Buy", each with a
  ``ul.providers`` list of offers. An offer's anchor has a title such as
  "Watch Foo on Netflix" and the ``li`` carries ``ott_filter_*`` classes for
  the available qualities.

Only the "Stream" section is read. Parsing is total: anything unexpected
yields an empty result instead of an exception.
"""

import re

from bs4 import BeautifulSoup
from loguru import logger

from wherewatch_mcp.models import ExtractionResult, sort_tiers

_DEEP_LINK_SELECTOR = '.ott_title + p a[href*="justwatch.com"]'
_SECTION_SELECTOR = ".ott_provider"
_OFFER_SELECTOR = "ul.providers > li"
_STREAM_HEADING = "stream"

# class token -> quality tier
QUALITY_MARKERS: dict[str, str] = {
    "ott_filter_4k": "4K",
    "ott_filter_hd": "HD",
    "ott_filter_sd": "SD",
}

# Greedy prefix so the capture starts after the last standalone "on ".
_PROVIDER_IN_TITLE = re.compile(r".*\bon\s+(.+)$", re.DOTALL)


def provider_from_title(title: str) -> str | None:
    """Return the provider named in an offer title ("Watch X on <Provider>")."""
    match = _PROVIDER_IN_TITLE.match(title or "")
    if not match:
        return None
    name = match.group(1).strip()
    return name or None


def _class_tokens(node) -> set[str]:
    classes = node.get("class") or []
    if isinstance(classes, str):
        classes = classes.split()
    return {c.lower() for c in classes}


def _find_deep_link(soup: BeautifulSoup) -> str | None:
    link = soup.select_one(_DEEP_LINK_SELECTOR)
    if link is None:
        return None
    href = (link.get("href") or "").strip()
    return href or None


def _collect_qualities(soup: BeautifulSoup) -> dict[str, set[str]]:
    qualities: dict[str, set[str]] = {}

    for section in soup.select(_SECTION_SELECTOR):
        heading = section.find("h3")
        if heading is None:
            continue
        if heading.get_text().strip().lower() != _STREAM_HEADING:
            continue

        for li in section.select(_OFFER_SELECTOR):
            anchor = li.find("a")
            if anchor is None:
                continue
            provider = provider_from_title(anchor.get("title") or "")
            if provider is None:
                continue

            tiers = qualities.setdefault(provider, set())
            tokens = _class_tokens(li)
            for marker, tier in QUALITY_MARKERS.items():
                if marker in tokens:
                    tiers.add(tier)

    return qualities


def extract(html) -> ExtractionResult:
    """Parse a watch page into an ExtractionResult.

    Quality lists come back in SD, HD, 4K order and providers are sorted by
    name, so equal pages always give equal results. A provider listed in
    several offers gets the union of their tiers.
    """
    if not html:
        return ExtractionResult()
    if isinstance(html, bytes):
        html = html.decode("utf-8", errors="replace")
    if not isinstance(html, str):
        return ExtractionResult()

    try:
        soup = BeautifulSoup(html, "lxml")
        deep_link = _find_deep_link(soup)
        qualities = _collect_qualities(soup)
    except Exception as e:
        logger.warning(f"Watch page parse failed: {e}")
        return ExtractionResult()

    quality_by_provider = {
        name: sort_tiers(qualities[name])
        for name in sorted(qualities, key=lambda n: (n.casefold(), n))
    }
    return ExtractionResult(
        deep_link_url=deep_link, quality_by_provider=quality_by_provider
    )
