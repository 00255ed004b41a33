"""Configuration settings for Wherewatch MCP Server."""

from loguru import logger
from pydantic_settings import BaseSettings

# Strategy names accepted in FETCH_ORDER
_FETCH_STRATEGIES: tuple[str, ...] = ("direct", "proxy")

_DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
)


class Settings(BaseSettings):
    """Wherewatch MCP Server configuration.

    Environment variables:
    - RELAY_URL: Metadata relay endpoint that holds the TMDB credential
        (default: http://localhost:7071/api/tmdb)
    - SEARCH_LANGUAGE: Language for metadata search (default: en-US)
    - FETCH_ORDER: Watch-page fetch strategies in order, e.g. "direct,proxy"
        or "proxy,direct" (default: direct first)
    - PROXY_URL: Indirect retrieval template; "{url}" receives the
        percent-encoded target URL
    - FETCH_TIMEOUT: Seconds per fetch stage (default: 15)
    - DISPLAY_LOCALE: Locale for country display names (default: en)
    - TOOL_TIMEOUT: Hard timeout per tool call in seconds (0 = no timeout)
    """

    # Metadata relay
    relay_url: str = "http://localhost:7071/api/tmdb"
    relay_timeout: int = 20
    search_language: str = "en-US"
    include_adult: bool = False
    autocomplete_limit: int = 8

    # Watch-info pages
    watch_base_url: str = "https://www.themoviedb.org"
    fetch_order: str = "direct,proxy"
    proxy_url: str = "https://api.allorigins.win/raw?url={url}"
    fetch_timeout: int = 15
    fetch_user_agent: str = _DEFAULT_USER_AGENT

    # Presentation
    display_locale: str = "en"

    # Tool execution timeout (seconds, 0 = no timeout)
    tool_timeout: int = 120

    # Logging
    log_level: str = "INFO"

    model_config = {"env_prefix": "", "case_sensitive": False}

    def get_fetch_order(self) -> list[str]:
        """Parse FETCH_ORDER into a list of known strategies.

        Unknown names are dropped, duplicates collapse to the first
        occurrence, and an empty result falls back to direct then proxy.
        """
        order: list[str] = []
        for name in self.fetch_order.split(","):
            name = name.strip().lower()
            if not name:
                continue
            if name not in _FETCH_STRATEGIES:
                logger.warning(f"Ignoring unknown fetch strategy: {name}")
                continue
            if name not in order:
                order.append(name)
        return order or list(_FETCH_STRATEGIES)


settings = Settings()
