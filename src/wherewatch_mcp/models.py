"""Data model for title resolution, provider aggregation and enrichment."""

from dataclasses import dataclass, field
from enum import Enum

IMAGE_BASE_URL = "https://image.tmdb.org/t/p/original"


class MediaKind(str, Enum):
    MOVIE = "movie"
    SERIES = "tv"

    @classmethod
    def parse(cls, value: str) -> "MediaKind":
        """Accept the relay's media_type values plus a few common aliases."""
        normalized = (value or "").strip().lower()
        if normalized in ("movie", "film"):
            return cls.MOVIE
        if normalized in ("tv", "series", "show"):
            return cls.SERIES
        raise ValueError(f"Unknown media kind: {value!r}")


# Canonical display order, lowest first.
QUALITY_TIERS: tuple[str, ...] = ("SD", "HD", "4K")


def sort_tiers(tiers) -> list[str]:
    """Collapse duplicates and return tiers in SD < HD < 4K order."""
    unique = set(tiers)
    return [tier for tier in QUALITY_TIERS if tier in unique]


@dataclass(frozen=True)
class Title:
    """A resolved movie or series. Identity is (id, kind)."""

    id: int
    kind: MediaKind
    name: str
    year: int | None = None
    poster_path: str | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "kind": self.kind.value,
            "name": self.name,
            "year": self.year,
            "poster_path": self.poster_path,
        }


@dataclass(frozen=True)
class Offer:
    """One subscription (flatrate) offer within a country."""

    provider_id: int
    provider_name: str
    logo_ref: str | None = None


# CountryCode -> subscription offers in that country.
RawAvailability = dict[str, list[Offer]]


@dataclass
class ProviderEntry:
    """A provider and every country where it streams the current title."""

    provider_id: int
    provider_name: str
    logo_ref: str | None = None
    countries: set[str] = field(default_factory=set)
    # Filled by the aggregator: country codes ordered by display name.
    sorted_countries: list[str] = field(default_factory=list)

    @property
    def country_count(self) -> int:
        return len(self.countries)

    @property
    def logo_url(self) -> str | None:
        if not self.logo_ref:
            return None
        return f"{IMAGE_BASE_URL}{self.logo_ref}"


@dataclass(frozen=True)
class ExtractionResult:
    """Structured data scraped from a watch-info page."""

    deep_link_url: str | None = None
    quality_by_provider: dict[str, list[str]] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return self.deep_link_url is None and not self.quality_by_provider


@dataclass(frozen=True)
class CountryDetail:
    """Enrichment for one country tag of the current title."""

    country: str
    watch_url: str
    deep_link_supported: bool = False
    justwatch_url: str | None = None
    quality_by_provider: dict[str, list[str]] = field(default_factory=dict)
    stale: bool = False

    @classmethod
    def from_extraction(
        cls, country: str, watch_url: str, result: ExtractionResult
    ) -> "CountryDetail":
        return cls(
            country=country,
            watch_url=watch_url,
            deep_link_supported=result.deep_link_url is not None,
            justwatch_url=result.deep_link_url,
            quality_by_provider={
                name: sort_tiers(tiers)
                for name, tiers in result.quality_by_provider.items()
            },
        )

    @classmethod
    def unavailable(
        cls, country: str, watch_url: str, stale: bool = False
    ) -> "CountryDetail":
        return cls(country=country, watch_url=watch_url, stale=stale)

    @property
    def status(self) -> str:
        if self.deep_link_supported or any(self.quality_by_provider.values()):
            return "loaded"
        return "unavailable"

    def to_dict(self) -> dict:
        return {
            "country": self.country,
            "status": self.status,
            "watch_url": self.watch_url,
            "deep_link_supported": self.deep_link_supported,
            "justwatch_url": self.justwatch_url,
            "quality_by_provider": self.quality_by_provider,
            "stale": self.stale,
        }
