"""Tool documentation served by the help tool."""
