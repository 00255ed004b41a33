"""Reshape per-country availability into a per-provider view.

The relay returns availability keyed by country. Users care about which
service to subscribe to, so the view is flipped: one entry per provider,
listing the countries where it streams the title, providers with the widest
reach first.
"""

from collections.abc import Callable, Mapping

from loguru import logger

from wherewatch_mcp.countries import normalize_code, region_name
from wherewatch_mcp.models import Offer, ProviderEntry, RawAvailability


def parse_raw_availability(results: Mapping) -> RawAvailability:
    """Convert the relay's ``results`` payload into RawAvailability.

    Only the ``flatrate`` (subscription) tier is kept; rent and buy offers
    are dropped. Countries without a flatrate list are omitted, and offers
    missing a provider id are skipped.
    """
    raw: RawAvailability = {}
    if not isinstance(results, Mapping):
        return raw

    for code, tiers in results.items():
        if not isinstance(tiers, Mapping):
            continue
        flatrate = tiers.get("flatrate")
        if not isinstance(flatrate, list):
            continue

        offers: list[Offer] = []
        for item in flatrate:
            if not isinstance(item, Mapping):
                continue
            provider_id = item.get("provider_id")
            if not isinstance(provider_id, int):
                logger.debug(f"Skipping offer without provider_id in {code}")
                continue
            offers.append(
                Offer(
                    provider_id=provider_id,
                    provider_name=str(item.get("provider_name") or provider_id),
                    logo_ref=item.get("logo_path"),
                )
            )
        if offers:
            raw[normalize_code(code)] = offers

    return raw


def aggregate(
    raw: RawAvailability,
    display_name: Callable[[str], str] = region_name,
) -> list[ProviderEntry]:
    """Group subscription offers by provider.

    Providers are keyed by id; the first name and logo seen for an id win.
    The result is sorted by number of countries, descending. Ties keep the
    order in which providers were first encountered. Each entry's
    ``sorted_countries`` lists its codes ordered by display name.
    """
    by_id: dict[int, ProviderEntry] = {}

    for country, offers in raw.items():
        for offer in offers:
            entry = by_id.get(offer.provider_id)
            if entry is None:
                entry = ProviderEntry(
                    provider_id=offer.provider_id,
                    provider_name=offer.provider_name,
                    logo_ref=offer.logo_ref,
                )
                by_id[offer.provider_id] = entry
            entry.countries.add(country)

    # sorted() is stable, so equal counts stay in encounter order
    entries = sorted(by_id.values(), key=lambda e: e.country_count, reverse=True)

    for entry in entries:
        entry.sorted_countries = sorted(
            entry.countries, key=lambda code: (display_name(code).casefold(), code)
        )

    logger.debug(f"Aggregated {len(raw)} countries into {len(entries)} providers")
    return entries
