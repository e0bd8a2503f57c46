"""Fetch pipeline services."""

from .content_pipeline import ContentExtractionPipeline
from .html_extractor import HTMLExtractionService
from .text_converter import MarkdownConversionService, PageMarkdownConverter
from .url_safety import UrlSafetyValidator, is_safe_url


__all__ = [
    "ContentExtractionPipeline",
    "HTMLExtractionService",
    "MarkdownConversionService",
    "PageMarkdownConverter",
    "UrlSafetyValidator",
    "is_safe_url",
]
