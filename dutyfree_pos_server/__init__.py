"""Duty-free point-of-sale MCP server."""

__version__ = "0.1.0"
