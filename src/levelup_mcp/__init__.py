"""LevelUp MCP: quest-driven skill progression behind an MCP tool surface."""

__version__ = "0.1.0"

__all__ = ["__version__"]
