"""Wherewatch MCP Server - where a title streams by subscription, per country."""

from importlib.metadata import version

from wherewatch_mcp.__main__ import _cli as main
from wherewatch_mcp.server import mcp

__version__ = version("wherewatch-mcp")
__all__ = ["mcp", "main", "__version__"]
