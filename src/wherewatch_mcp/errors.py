"""Error taxonomy for lookups.

Only metadata-level failures reach the caller. Enrichment problems are
absorbed by the orchestrator and show up as an ``unavailable`` CountryDetail.
"""


class WherewatchError(Exception):
    """Base class for lookup errors."""


class NotFound(WherewatchError):
    """Search returned no candidates, or the title has no subscription offers."""


class UpstreamUnavailable(WherewatchError):
    """The metadata relay could not be reached or returned an unusable response."""


class FetchFailure(WherewatchError):
    """Every fetch strategy failed for a watch-info page."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason
