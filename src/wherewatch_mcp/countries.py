"""Country helpers: enrichment allow-list, display names and watch-page URLs."""

from functools import lru_cache

from babel import Locale, UnknownLocaleError

from wherewatch_mcp.config import settings
from wherewatch_mcp.models import Title

# Countries with a regional JustWatch site. Only these get an enrichment
# affordance; every other code is shown without one.
ENRICHABLE_COUNTRIES: frozenset[str] = frozenset(
    {
        "AR", "AU", "AT", "BE", "BR", "CA", "CL", "CO", "CZ", "DK", "EC",
        "EE", "FI", "FR", "DE", "GR", "GT", "HK", "HU", "IS", "IN", "ID",
        "IE", "IL", "IT", "JP", "LV", "LT", "MY", "MX", "NL", "NZ", "NO",
        "PA", "PE", "PH", "PL", "PT", "RO", "RU", "SA", "SG", "SK", "ZA",
        "KR", "ES", "SE", "CH", "TW", "TH", "TR", "UA", "AE", "GB", "US",
    }
)  # fmt: skip


def normalize_code(code: str) -> str:
    return (code or "").strip().upper()


def is_enrichable(code: str) -> bool:
    return normalize_code(code) in ENRICHABLE_COUNTRIES


@lru_cache(maxsize=16)
def _territories(locale: str) -> dict[str, str]:
    try:
        return dict(Locale.parse(locale.replace("-", "_")).territories)
    except (UnknownLocaleError, ValueError, TypeError):
        return {}


def region_name(code: str, locale: str | None = None) -> str:
    """Localized display name for a region code, or the code itself."""
    code = normalize_code(code)
    name = _territories(locale or settings.display_locale).get(code)
    return name or code


def watch_page_url(title: Title, country: str) -> str:
    """URL of the title's watch-info page for one country."""
    base = settings.watch_base_url.rstrip("/")
    return (
        f"{base}/{title.kind.value}/{title.id}/watch?locale={normalize_code(country)}"
    )
