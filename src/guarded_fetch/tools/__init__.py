"""Agent-facing tools."""

from .fetch_url import FetchUrlTool, fetch_safe_content, fetch_safe_content_sync


__all__ = ["FetchUrlTool", "fetch_safe_content", "fetch_safe_content_sync"]
