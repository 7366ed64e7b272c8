"""MCP server exposing Intervals.icu athlete settings and workout planning as tools."""

__version__ = "1.0.0"
