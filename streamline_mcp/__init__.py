"""
Streamline MCP - tool-calling adapter for the Streamline task and note store.

Exposes tasks, tags and recurring task series to MCP clients and keeps
recurring series moving forward when occurrences are completed, skipped
or deleted.
"""

__version__ = "1.0.0"
