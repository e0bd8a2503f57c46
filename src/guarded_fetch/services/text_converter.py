"""Text normalisation, truncation and Markdown conversion for fetched pages."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any

from markdownify import ATX, MarkdownConverter as BaseConverter


if TYPE_CHECKING:
    from bs4 import BeautifulSoup


_WHITESPACE_RUN = re.compile(r"\s\s+")
_BLANK_LINES = re.compile(r"\n{3,}")


def normalize_text(text: str) -> str:
    """Collapse every run of two or more whitespace characters into a newline."""
    return _WHITESPACE_RUN.sub("\n", text).strip()


def clean_markdown(markdown: str) -> str:
    """Post-process Markdown for LLM consumption."""
    result = markdown.replace("\r\n", "\n")
    lines = [line.strip() for line in result.split("\n")]
    result = "\n".join(lines)
    result = _BLANK_LINES.sub("\n\n", result)
    return result.strip()


def truncate(text: str, max_chars: int) -> str:
    """Hard cut at ``max_chars`` characters."""
    return text[:max_chars]


class PageMarkdownConverter(BaseConverter):
    """Markdown converter tuned for pages handed to a language model."""

    def __init__(self, **options: Any) -> None:
        options.setdefault("heading_style", ATX)
        options.setdefault("bullets", "-")
        options.setdefault("wrap", False)
        options.setdefault("strip", ["nav", "footer", "aside"])
        super().__init__(**options)

    def convert_img(self, el: object, text: str, parent_tags: set[str]) -> str:  # noqa: ARG002
        """Drop images; the consumer only reads text."""
        return ""


class MarkdownConversionService:
    """Converts parsed HTML into cleaned Markdown."""

    def __init__(self, converter: BaseConverter | None = None) -> None:
        self.converter = converter or PageMarkdownConverter()

    def convert(self, html: str) -> str:
        return clean_markdown(self.converter.convert(html))

    def convert_soup(self, soup: BeautifulSoup) -> str:
        return clean_markdown(self.converter.convert_soup(soup))
