"""Guarded outbound page fetcher for language-model tool calls."""

__version__ = "0.1.0"

from guarded_fetch.core.config import FetchConfig, Settings, get_settings  # noqa: E402
from guarded_fetch.schemas.fetch import (  # noqa: E402
    ERROR_PREFIX,
    ExtractedDocument,
    FetchFailure,
    SafetyVerdict,
)
from guarded_fetch.services import (  # noqa: E402
    ContentExtractionPipeline,
    UrlSafetyValidator,
)
from guarded_fetch.tools import (  # noqa: E402
    FetchUrlTool,
    fetch_safe_content,
    fetch_safe_content_sync,
)


__all__ = [
    "ERROR_PREFIX",
    "ContentExtractionPipeline",
    "ExtractedDocument",
    "FetchConfig",
    "FetchFailure",
    "FetchUrlTool",
    "SafetyVerdict",
    "Settings",
    "UrlSafetyValidator",
    "fetch_safe_content",
    "fetch_safe_content_sync",
    "get_settings",
]
