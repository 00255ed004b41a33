"""Wherewatch MCP Server - Main server definition."""

import asyncio
import functools
import json
import sys
from contextlib import asynccontextmanager
from importlib.resources import files

from loguru import logger
from mcp.server.fastmcp import FastMCP
from mcp.types import ToolAnnotations

from wherewatch_mcp.config import settings
from wherewatch_mcp.errors import NotFound, UpstreamUnavailable
from wherewatch_mcp.models import MediaKind, Title
from wherewatch_mcp.orchestrator import LookupSession
from wherewatch_mcp.security import wrap_external_content
from wherewatch_mcp.sources import tmdb

# Configure logging
logger.remove()
logger.add(sys.stderr, level=settings.log_level)

# One session per server process: the client works on one title at a time.
_session: LookupSession | None = None


def _get_session() -> LookupSession:
    global _session
    if _session is None:
        _session = LookupSession()
    return _session


@asynccontextmanager
async def _lifespan(_server: FastMCP):
    """Server lifespan: create the lookup session, drop it on shutdown."""
    global _session

    logger.info("Starting Wherewatch MCP Server...")
    logger.info(
        f"Relay: {settings.relay_url} | fetch order: "
        f"{', '.join(settings.get_fetch_order())}"
    )
    _session = LookupSession()

    yield

    logger.info("Shutting down Wherewatch MCP Server...")
    _session = None


mcp = FastMCP(
    name="wherewatch",
    instructions=(
        "Find where a movie or TV show streams by subscription, per country. "
        "Use watch(action='lookup') first, then watch(action='enrich') for "
        "JustWatch links and stream quality in a specific country."
    ),
    lifespan=_lifespan,
)

# Grace period (seconds) given to a cancelled task to clean up resources
# before we abandon it entirely.
_CANCEL_GRACE_PERIOD = 5.0


def _wrap_tool(tool_name: str):
    """Decorator to wrap tool results with untrusted-content markers.

    Error responses are passed through unwrapped.
    """

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            result = await func(*args, **kwargs)
            return wrap_external_content(tool_name, result)

        return wrapper

    return decorator


async def _with_timeout(coro, action: str) -> str:
    """Wrap coroutine with hard timeout.

    Uses ``asyncio.wait`` so the deadline holds even if the inner task is
    slow to honour cancellation. After cancellation the task gets a brief
    grace period to close its connections before being abandoned.
    """
    timeout = settings.tool_timeout
    if timeout <= 0:
        return await coro

    task = asyncio.create_task(coro)
    done, _pending = await asyncio.wait({task}, timeout=timeout)

    if done:
        return task.result()

    task.cancel()
    logger.warning(f"Tool '{action}' timed out after {timeout}s, cancelling...")

    try:
        await asyncio.wait_for(asyncio.shield(task), timeout=_CANCEL_GRACE_PERIOD)
    except (asyncio.CancelledError, TimeoutError, Exception):
        pass

    logger.error(f"Tool '{action}' timed out after {timeout}s")
    return (
        f"Error: '{action}' timed out after {timeout}s. "
        "Increase TOOL_TIMEOUT or try again."
    )


def _dumps(data) -> str:
    return json.dumps(data, ensure_ascii=False, indent=2)


# ---------------------------------------------------------------------------
# Action implementations
# ---------------------------------------------------------------------------


async def _do_suggest(query: str) -> str:
    try:
        titles = await tmdb.suggest(query)
    except UpstreamUnavailable as e:
        return f"Error: {e}"
    return _dumps({"query": query, "results": [t.to_dict() for t in titles]})


async def _do_lookup(query: str) -> str:
    session = _get_session()
    try:
        await session.lookup(query)
    except NotFound as e:
        return _dumps({"query": query, "message": str(e), "providers": []})
    except UpstreamUnavailable as e:
        return f"Error: {e}"
    return _dumps(session.snapshot())


async def _do_resolve(title: Title) -> str:
    session = _get_session()
    try:
        await session.resolve(title)
    except UpstreamUnavailable as e:
        return f"Error: {e}"
    return _dumps(session.snapshot())


async def _do_enrich(country: str) -> str:
    session = _get_session()
    try:
        detail = await session.enrich(country)
    except ValueError as e:
        return f"Error: {e}"
    return _dumps(detail.to_dict())


# ---------------------------------------------------------------------------
# watch tool: suggest, lookup, resolve, enrich, status
# ---------------------------------------------------------------------------


@mcp.tool(
    annotations=ToolAnnotations(
        readOnlyHint=True,
        openWorldHint=True,
    ),
)
@_wrap_tool("watch")
async def watch(
    action: str,
    query: str | None = None,
    title_id: int | None = None,
    kind: str | None = None,
    name: str | None = None,
    country: str | None = None,
) -> str:
    """Find where a movie or TV show streams by subscription.
    - suggest: Autocomplete candidates (requires query)
    - lookup: Search and resolve the top match (requires query)
    - resolve: Resolve a specific candidate (requires title_id + kind)
    - enrich: JustWatch link + quality tiers for one country (requires country)
    - status: Current result
    Use `help` tool for full documentation.
    """
    match action:
        case "suggest":
            if not query:
                return "Error: query is required for suggest action"
            return await _with_timeout(_do_suggest(query), "suggest")

        case "lookup":
            if not query:
                return "Error: query is required for lookup action"
            return await _with_timeout(_do_lookup(query), "lookup")

        case "resolve":
            if title_id is None or not kind:
                return "Error: title_id and kind are required for resolve action"
            try:
                media_kind = MediaKind.parse(kind)
            except ValueError as e:
                return f"Error: {e}"
            title = Title(id=title_id, kind=media_kind, name=name or str(title_id))
            return await _with_timeout(_do_resolve(title), "resolve")

        case "enrich":
            if not country:
                return "Error: country is required for enrich action"
            return await _with_timeout(_do_enrich(country), "enrich")

        case "status":
            return _dumps(_get_session().snapshot())

        case _:
            return (
                f"Error: Unknown action '{action}'. "
                "Valid actions: suggest, lookup, resolve, enrich, status"
            )


@mcp.tool(
    annotations=ToolAnnotations(
        readOnlyHint=True,
        openWorldHint=False,
        idempotentHint=True,
    ),
)
async def help(tool_name: str = "watch") -> str:
    """Get full documentation for a tool.
    Valid tool names: watch, config, help.
    """
    try:
        doc_file = files("wherewatch_mcp.docs").joinpath(f"{tool_name}.md")
        return doc_file.read_text()
    except FileNotFoundError:
        return f"Error: No documentation found for tool '{tool_name}'"
    except Exception as e:
        return f"Error loading documentation: {e}"


@mcp.tool(
    description=(
        "Server config. Actions: status|set. "
        "Use help tool with tool_name='config' for full docs."
    ),
    annotations=ToolAnnotations(
        title="Config",
        readOnlyHint=False,
        destructiveHint=False,
        idempotentHint=True,
        openWorldHint=False,
    ),
)
async def config(
    action: str,
    key: str | None = None,
    value: str | None = None,
) -> str:
    """Server configuration.

    Actions:
    - status: Show current config and lookup state
    - set: Update runtime setting (key + value required)
    """
    match action:
        case "status":
            session = _get_session()
            status = {
                "relay": {
                    "url": settings.relay_url,
                    "timeout": settings.relay_timeout,
                    "language": settings.search_language,
                },
                "fetch": {
                    "order": settings.get_fetch_order(),
                    "proxy_url": settings.proxy_url,
                    "timeout": settings.fetch_timeout,
                },
                "session": {
                    "state": session.state.value,
                    "title": session.title.to_dict() if session.title else None,
                    "generation": session.generation,
                },
                "settings": {
                    "log_level": settings.log_level,
                    "tool_timeout": settings.tool_timeout,
                    "display_locale": settings.display_locale,
                },
            }
            return json.dumps(status, indent=2, default=str)

        case "set":
            if not key or value is None:
                return json.dumps({"error": "key and value are required for set"})
            valid_keys = {
                "log_level",
                "tool_timeout",
                "fetch_order",
                "fetch_timeout",
                "display_locale",
            }
            if key not in valid_keys:
                return json.dumps(
                    {
                        "error": f"Invalid key: {key}",
                        "valid_keys": sorted(valid_keys),
                    }
                )
            if key == "log_level":
                try:
                    logger.level(value.upper())
                except ValueError:
                    return json.dumps({"error": f"Unknown log level: {value}"})
                settings.log_level = value.upper()
                logger.remove()
                logger.add(sys.stderr, level=settings.log_level)
            elif key in ("tool_timeout", "fetch_timeout"):
                try:
                    setattr(settings, key, int(value))
                except ValueError:
                    return json.dumps({"error": f"{key} must be an integer"})
            else:
                setattr(settings, key, value)
            return json.dumps(
                {
                    "status": "updated",
                    "key": key,
                    "value": getattr(settings, key),
                },
                default=str,
            )

        case _:
            return json.dumps(
                {
                    "error": f"Unknown action: {action}",
                    "valid_actions": ["status", "set"],
                }
            )


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------


@mcp.prompt()
def where_to_watch(title: str) -> str:
    """Generate a prompt to find where a title streams."""
    return (
        f"Find where '{title}' can be streamed by subscription.\n\n"
        "1. Use the watch tool with action='lookup' and query set to the title.\n"
        "2. Summarize the providers with the widest country coverage first.\n"
        "3. For countries the user cares about, use action='enrich' with the "
        "country code to get the JustWatch link and stream quality."
    )


def main() -> None:
    """Entry point for the MCP server."""
    mcp.run()


if __name__ == "__main__":
    main()
