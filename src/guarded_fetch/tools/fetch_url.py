"""The ``fetchurl`` tool: safe public web page fetch for language-model agents."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from pydantic import ValidationError
from pydantic_ai import Tool

from guarded_fetch.core.config import FetchConfig
from guarded_fetch.schemas.fetch import (
    ERROR_PREFIX,
    FailureKind,
    FetchFailure,
    FetchOutcome,
    FetchUrlInput,
    failure_from_verdict,
    to_tool_result,
)
from guarded_fetch.services.content_pipeline import ContentExtractionPipeline
from guarded_fetch.services.url_safety import UrlSafetyValidator


logger = logging.getLogger(__name__)

TOOL_NAME = "fetchurl"

TOOL_DESCRIPTION = """\
Fetches the content of a public web page from a given HTTPS URL and returns the
readable text content, truncated for length if necessary.
Input must be an object containing a { url } field with a valid, public HTTPS URL
(e.g., "https://example.com").

Do NOT provide URLs that are:
- not HTTPS
- local/internal (e.g., localhost, 127.0.0.1, private IPs)
- suspected to be unsafe or not publicly accessible

On failure the result starts with "Error: " followed by the reason.

Example input:
{ "url": "https://en.wikipedia.org/wiki/OpenAI" }
"""

UNEXPECTED_ERROR_MESSAGE = "Unexpected error while fetching URL"


def _input_error(exc: ValidationError) -> FetchFailure:
    errors = exc.errors()
    message = "Invalid input"
    if errors:
        # Custom validator messages arrive as "Value error, <message>"
        message = str(errors[0].get("msg", message)).removeprefix("Value error, ")
    return FetchFailure(kind=FailureKind.INVALID_INPUT, message=message)


class FetchUrlTool:
    """Validates input, checks the URL, runs the pipeline, returns a string.

    ``__call__`` never raises; every failure becomes ``"Error: <reason>"``.
    """

    name = TOOL_NAME
    description = TOOL_DESCRIPTION
    input_model = FetchUrlInput

    def __init__(
        self,
        config: FetchConfig | None = None,
        validator: UrlSafetyValidator | None = None,
        pipeline: ContentExtractionPipeline | None = None,
    ) -> None:
        self.config = config or FetchConfig()
        self.validator = validator or UrlSafetyValidator(self.config)
        self.pipeline = pipeline or ContentExtractionPipeline(
            self.config, validator=self.validator
        )

    async def __call__(self, payload: Mapping[str, Any] | FetchUrlInput) -> str:
        return to_tool_result(await self.run(payload))

    async def fetch(self, url: str) -> str:
        return await self({"url": url})

    async def run(self, payload: Mapping[str, Any] | FetchUrlInput) -> FetchOutcome:
        """Same as calling the tool, but keeps the typed outcome."""
        try:
            data = (
                payload
                if isinstance(payload, FetchUrlInput)
                else FetchUrlInput.model_validate(payload)
            )
        except ValidationError as e:
            logger.info("Rejected fetchurl input: %s", e.errors()[:1])
            return _input_error(e)

        try:
            verdict = await self.validator.check_resolved(data.url)
            if not verdict.allowed:
                return failure_from_verdict(verdict)
            return await self.pipeline.run(data.url)
        except TimeoutError:
            logger.warning("DNS lookup for %s timed out", data.url)
            return FetchFailure(
                kind=FailureKind.TIMEOUT,
                message=f"Request timed out after {self.config.timeout_seconds:g}s",
            )
        except Exception:
            logger.exception("Unexpected error fetching %s", data.url)
            return FetchFailure(
                kind=FailureKind.FETCH_FAILED, message=UNEXPECTED_ERROR_MESSAGE
            )

    def as_agent_tool(self) -> Tool[None]:
        """Wrap the tool for registration on a pydantic-ai ``Agent``."""

        async def fetchurl(url: str) -> str:
            """Fetch a public HTTPS web page and return its text content.

            Args:
                url: A valid HTTPS URL to fetch, e.g. "https://example.com".
            """
            return await self.fetch(url)

        return Tool(
            fetchurl,
            takes_ctx=False,
            name=self.name,
            description=self.description,
        )


async def fetch_safe_content(
    payload: Mapping[str, Any] | FetchUrlInput,
    config: FetchConfig | None = None,
) -> str:
    """Fetch ``payload["url"]`` and return its text or an ``Error: ...`` string."""
    if config is None:
        try:
            config = FetchConfig.from_settings()
        except ValidationError:
            logger.exception("Invalid fetch settings")
            return f"{ERROR_PREFIX}{UNEXPECTED_ERROR_MESSAGE}"
    return await FetchUrlTool(config)(payload)


def fetch_safe_content_sync(
    payload: Mapping[str, Any] | FetchUrlInput,
    config: FetchConfig | None = None,
) -> str:
    """Blocking wrapper around ``fetch_safe_content``.

    Called from a thread that already runs an event loop, the fetch runs on a
    worker thread with its own loop; the calling loop is blocked meanwhile.
    """

    def run() -> str:
        return asyncio.run(fetch_safe_content(payload, config))

    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return run()
    with ThreadPoolExecutor(max_workers=1) as pool:
        return pool.submit(run).result()


__all__ = [
    "ERROR_PREFIX",
    "FetchUrlTool",
    "TOOL_NAME",
    "fetch_safe_content",
    "fetch_safe_content_sync",
]
