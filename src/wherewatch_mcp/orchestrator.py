"""Lookup orchestration: one title's availability and lazy per-country enrichment.

A LookupSession owns the full result of the current title: raw availability,
the aggregated provider list and the per-country enrichment cache. Resolving
another title replaces all of it.

State machine::

    IDLE -> SEARCHING -> RESOLVED <-> ENRICHING -> ... -> IDLE/SEARCHING

Enrichment runs on first expansion of a country. Concurrent expansions of the
same country share one task, and the finished CountryDetail (possibly empty)
is cached so the page is never fetched twice for the same title. Each result
is tagged with the generation that requested it; anything that completes
after a new search started is dropped instead of applied.
"""

import asyncio
from collections.abc import Awaitable, Callable
from enum import Enum

from loguru import logger

from wherewatch_mcp.aggregator import aggregate
from wherewatch_mcp.countries import (
    is_enrichable,
    normalize_code,
    region_name,
    watch_page_url,
)
from wherewatch_mcp.errors import FetchFailure, NotFound
from wherewatch_mcp.models import (
    CountryDetail,
    ExtractionResult,
    ProviderEntry,
    RawAvailability,
    Title,
)
from wherewatch_mcp.sources import extractor, fetcher, tmdb

NO_SUBSCRIPTION_MESSAGE = (
    "This title is not available on any subscription streaming service."
)


class LookupState(str, Enum):
    IDLE = "idle"
    SEARCHING = "searching"
    RESOLVED = "resolved"
    ENRICHING = "enriching"


class LookupSession:
    """Coordinates search, aggregation and enrichment for one title at a time."""

    def __init__(
        self,
        search: Callable[[str], Awaitable[list[Title]]] = tmdb.search,
        watch_providers: Callable[[Title], Awaitable[RawAvailability]] = (
            tmdb.watch_providers
        ),
        fetch_html: Callable[[str], Awaitable[str]] = fetcher.fetch_html,
        extract: Callable[[str], ExtractionResult] = extractor.extract,
    ):
        self._search = search
        self._watch_providers = watch_providers
        self._fetch_html = fetch_html
        self._extract = extract

        self.state = LookupState.IDLE
        self.title: Title | None = None
        self.raw: RawAvailability = {}
        self.providers: list[ProviderEntry] = []

        self._generation = 0
        self._details: dict[str, CountryDetail] = {}
        self._inflight: dict[str, asyncio.Task] = {}

    @property
    def generation(self) -> int:
        return self._generation

    def _reset(self) -> int:
        """Discard the current result and start a new generation."""
        self._generation += 1
        self.title = None
        self.raw = {}
        self.providers = []
        self._details = {}
        # In-flight tasks finish on their own; their results fail the
        # generation check and are dropped.
        self._inflight = {}
        return self._generation

    # -----------------------------------------------------------------
    # Resolution
    # -----------------------------------------------------------------

    async def lookup(self, query: str) -> list[ProviderEntry]:
        """Search *query* and resolve the top candidate.

        Raises:
            NotFound: the search returned no movie or series.
            UpstreamUnavailable: the metadata relay failed.
        """
        generation = self._reset()
        self.state = LookupState.SEARCHING
        try:
            candidates = await self._search(query)
        except BaseException:
            # Includes cancellation from a tool timeout.
            self._fail(generation)
            raise

        if generation != self._generation:
            logger.debug(f"Lookup for {query!r} superseded, dropping results")
            return []

        if not candidates:
            self.state = LookupState.IDLE
            raise NotFound(f'Could not find any results for "{query}".')

        return await self._resolve(candidates[0], generation)

    async def resolve(self, title: Title) -> list[ProviderEntry]:
        """Resolve an explicit candidate, e.g. a selected suggestion."""
        generation = self._reset()
        self.state = LookupState.SEARCHING
        return await self._resolve(title, generation)

    async def _resolve(self, title: Title, generation: int) -> list[ProviderEntry]:
        logger.info(f"Resolving {title.kind.value} {title.id}: {title.name}")
        try:
            raw = await self._watch_providers(title)
        except BaseException:
            self._fail(generation)
            raise

        providers = aggregate(raw)
        if generation != self._generation:
            logger.debug(f"Resolution of {title.name!r} superseded, dropping")
            return providers

        self.title = title
        self.raw = raw
        self.providers = providers
        self.state = LookupState.RESOLVED
        logger.info(
            f"{title.name}: {len(providers)} subscription providers "
            f"across {len(raw)} countries"
        )
        return providers

    def _fail(self, generation: int) -> None:
        if generation == self._generation:
            self.state = LookupState.IDLE

    # -----------------------------------------------------------------
    # Enrichment
    # -----------------------------------------------------------------

    def detail(self, country: str) -> CountryDetail | None:
        """Cached enrichment for *country*, if it has completed."""
        return self._details.get(normalize_code(country))

    def is_enriching(self, country: str) -> bool:
        return normalize_code(country) in self._inflight

    async def enrich(self, country: str) -> CountryDetail:
        """Return the CountryDetail for *country*, fetching it at most once.

        Raises:
            ValueError: no title is resolved, the country is not eligible for
                enrichment, or the title does not stream there.
        """
        code = normalize_code(country)
        if self.title is None:
            raise ValueError("No title resolved; run a lookup first")
        if not is_enrichable(code):
            raise ValueError(f"Watch links are not available for {code}")
        if code not in self.raw:
            raise ValueError(f"{self.title.name} is not streaming in {code}")

        cached = self._details.get(code)
        if cached is not None:
            logger.debug(f"Enrichment cache hit: {code}")
            return cached

        task = self._inflight.get(code)
        if task is None:
            task = asyncio.create_task(
                self._run_enrichment(code, self.title, self._generation)
            )
            self._inflight[code] = task
            self.state = LookupState.ENRICHING

        # Shielded so a caller timing out does not cancel a shared fetch.
        return await asyncio.shield(task)

    async def _run_enrichment(
        self, code: str, title: Title, generation: int
    ) -> CountryDetail:
        url = watch_page_url(title, code)
        logger.info(f"Enriching {title.name} for {code}")

        try:
            html = await self._fetch_html(url)
        except FetchFailure as e:
            logger.info(f"Enrichment unavailable for {code}: {e.reason}")
            result = ExtractionResult()
        except Exception as e:
            logger.warning(f"Enrichment fetch error for {code}: {e}")
            result = ExtractionResult()
        else:
            result = self._extract(html)
            if result.is_empty:
                logger.info(f"Nothing extracted from watch page for {code}")

        if generation != self._generation:
            logger.debug(f"Dropping stale enrichment for {code}")
            return CountryDetail.unavailable(code, url, stale=True)

        detail = CountryDetail.from_extraction(code, url, result)
        self._details[code] = detail
        self._inflight.pop(code, None)
        if not self._inflight and self.state == LookupState.ENRICHING:
            self.state = LookupState.RESOLVED
        return detail

    # -----------------------------------------------------------------
    # Presentation payload
    # -----------------------------------------------------------------

    def _country_view(self, code: str) -> dict:
        enrichable = is_enrichable(code)
        if not enrichable:
            status = None
        elif code in self._details:
            status = self._details[code].status
        elif code in self._inflight:
            status = "loading"
        else:
            status = "pending"
        return {
            "code": code,
            "name": region_name(code),
            "enrichable": enrichable,
            "enrichment": status,
        }

    def snapshot(self) -> dict:
        """Serializable view of the current result for the presentation layer."""
        data: dict = {
            "state": self.state.value,
            "title": self.title.to_dict() if self.title else None,
            "providers": [
                {
                    "provider_id": entry.provider_id,
                    "provider_name": entry.provider_name,
                    "logo_ref": entry.logo_ref,
                    "logo_url": entry.logo_url,
                    "country_count": entry.country_count,
                    "countries": [
                        self._country_view(code) for code in entry.sorted_countries
                    ],
                }
                for entry in self.providers
            ],
            "details": {
                code: detail.to_dict() for code, detail in self._details.items()
            },
        }
        if self.title is not None and not self.providers:
            data["message"] = NO_SUBSCRIPTION_MESSAGE
        return data
