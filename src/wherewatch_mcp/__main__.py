"""Wherewatch MCP Server entry point."""

import asyncio
import json
import sys

_USAGE = "Usage: wherewatch-mcp lookup <title> [--country CC ...]"


def _split_lookup_args(args: list[str]) -> tuple[str, list[str]]:
    """Split ``lookup`` arguments into the query and ``--country`` codes."""
    words: list[str] = []
    countries: list[str] = []
    i = 0
    while i < len(args):
        arg = args[i]
        if arg in ("--country", "-c"):
            if i + 1 == len(args):
                raise ValueError(f"{arg} needs a country code")
            countries.append(args[i + 1])
            i += 2
            continue
        words.append(arg)
        i += 1
    return " ".join(words).strip(), countries


async def _lookup(query: str, countries: list[str]) -> dict:
    """Resolve *query* and enrich the requested countries concurrently."""
    from wherewatch_mcp.errors import NotFound
    from wherewatch_mcp.orchestrator import LookupSession

    session = LookupSession()
    try:
        await session.lookup(query)
    except NotFound as e:
        return {"query": query, "message": str(e), "providers": []}

    results = await asyncio.gather(
        *(session.enrich(code) for code in countries), return_exceptions=True
    )
    for code, result in zip(countries, results):
        if isinstance(result, ValueError):
            print(f"Skipping {code}: {result}", file=sys.stderr)
        elif isinstance(result, BaseException):
            raise result
    return session.snapshot()


def _lookup_cli(args: list[str]) -> int:
    try:
        query, countries = _split_lookup_args(args)
    except ValueError as e:
        print(f"Error: {e}\n{_USAGE}", file=sys.stderr)
        return 2
    if not query:
        print(_USAGE, file=sys.stderr)
        return 2

    from wherewatch_mcp.errors import UpstreamUnavailable

    try:
        data = asyncio.run(_lookup(query, countries))
    except UpstreamUnavailable as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(json.dumps(data, ensure_ascii=False, indent=2))
    return 0


def _cli() -> None:
    """CLI dispatcher: server (default) or one-shot lookup subcommand."""
    if len(sys.argv) >= 2 and sys.argv[1] == "lookup":
        sys.exit(_lookup_cli(sys.argv[2:]))
    else:
        from wherewatch_mcp.server import main

        main()


if __name__ == "__main__":
    _cli()
