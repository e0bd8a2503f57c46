"""HTML parsing and text extraction for fetched response bodies."""

import logging

from bs4 import BeautifulSoup, Comment

from guarded_fetch.core.config import OutputFormat
from guarded_fetch.core.exceptions import ConversionFailedError
from guarded_fetch.services.text_converter import MarkdownConversionService


logger = logging.getLogger(__name__)


class HTMLExtractionService:
    """Service for turning an HTML (or plain text) body into readable text."""

    # Media types the extractor knows how to read
    HTML_TYPES = {
        "text/html",
        "application/xhtml+xml",
        "application/xml",
        "text/xml",
    }
    TEXT_TYPES = {"text/plain"}

    # Tags whose content is never human-readable text
    UNWANTED_TAGS = {
        "script",
        "style",
        "noscript",
        "template",
        "iframe",
        "svg",
        "object",
        "embed",
        "head",
    }

    def __init__(self, markdown_converter: MarkdownConversionService | None = None):
        self.markdown_converter = markdown_converter or MarkdownConversionService()

    @staticmethod
    def media_type(content_type: str) -> str:
        return content_type.split(";", 1)[0].strip().lower()

    def extract(
        self,
        body: str,
        content_type: str = "text/html",
        output_format: OutputFormat = "text",
    ) -> str:
        """Extract readable text from ``body``.

        Args:
            body: Decoded response body
            content_type: Value of the Content-Type header (may be empty)
            output_format: "text" for plain text, "markdown" for Markdown

        Returns:
            Raw extracted text; whitespace is normalised by the caller

        Raises:
            ConversionFailedError: If the media type is unsupported or the
                body cannot be parsed
        """
        media_type = self.media_type(content_type)
        if media_type in self.TEXT_TYPES:
            return body
        if media_type and media_type not in self.HTML_TYPES:
            raise ConversionFailedError(f"Unsupported content type: {media_type}")

        try:
            soup = BeautifulSoup(body, "html.parser")
        except Exception as e:
            logger.warning("Failed to parse HTML: %s", e)
            raise ConversionFailedError(f"Could not parse HTML: {e}") from e

        self._remove_unwanted(soup)

        root = soup.body or soup
        if output_format == "markdown":
            try:
                return self.markdown_converter.convert_soup(root)
            except Exception as e:
                logger.warning("Markdown conversion failed: %s", e)
                raise ConversionFailedError(f"Could not convert HTML: {e}") from e
        return root.get_text()

    def _remove_unwanted(self, soup: BeautifulSoup) -> None:
        for tag_name in self.UNWANTED_TAGS:
            for tag in soup.find_all(tag_name):
                tag.decompose()

        for comment in soup.find_all(string=lambda text: isinstance(text, Comment)):
            comment.extract()
