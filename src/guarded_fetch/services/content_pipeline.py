"""Fetch, convert, normalise and truncate a page that passed URL validation."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from urllib.parse import urljoin

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from guarded_fetch.core.config import FetchConfig
from guarded_fetch.core.exceptions import (
    BlockedTargetError,
    ContentFetchError,
    FetchFailedError,
    FetchTimeoutError,
)
from guarded_fetch.schemas.fetch import (
    ExtractedDocument,
    FailureKind,
    FetchFailure,
    FetchOutcome,
)
from guarded_fetch.services.html_extractor import HTMLExtractionService
from guarded_fetch.services.text_converter import clean_markdown, normalize_text, truncate
from guarded_fetch.services.url_safety import UrlSafetyValidator


logger = logging.getLogger(__name__)

REDIRECT_STATUSES = {301, 302, 303, 307, 308}

# Connection-level failures that are safe to retry; timeouts and HTTP
# statuses are terminal.
TRANSIENT_ERRORS = (httpx.ConnectError, httpx.ReadError, httpx.RemoteProtocolError)


@dataclass(frozen=True, slots=True)
class FetchedBody:
    url: str
    status_code: int
    content_type: str
    text: str


class ContentExtractionPipeline:
    """Fetch a validated URL and return a bounded plain-text document.

    The caller validates the initial URL. Every redirect hop is validated here
    with the same ``UrlSafetyValidator`` before it is requested.
    """

    def __init__(
        self,
        config: FetchConfig | None = None,
        validator: UrlSafetyValidator | None = None,
        html_extractor: HTMLExtractionService | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config or FetchConfig()
        self.validator = validator or UrlSafetyValidator(self.config)
        self.html_extractor = html_extractor or HTMLExtractionService()
        self.transport = transport

    async def run(self, url: str) -> FetchOutcome:
        """Fetch ``url`` and convert it; failures come back as ``FetchFailure``."""
        try:
            fetched = await self._fetch(url)
            raw_text = self.html_extractor.extract(
                fetched.text, fetched.content_type, self.config.output_format
            )
        except ContentFetchError as e:
            logger.warning("Fetch of %s failed: %s", url, e)
            return FetchFailure(
                kind=FailureKind(e.error_code),
                message=e.message,
                status_code=e.status_code,
            )

        if self.config.output_format == "markdown":
            text = clean_markdown(raw_text)
        else:
            text = normalize_text(raw_text)
        bounded = truncate(text, self.config.max_content_chars)

        logger.debug(
            "Extracted %d chars from %s (returned %d)", len(text), fetched.url, len(bounded)
        )
        return ExtractedDocument(
            url=fetched.url,
            text=bounded,
            content_type=fetched.content_type,
            status_code=fetched.status_code,
            original_length=len(text),
            truncated=len(bounded) < len(text),
        )

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.config.timeout_seconds,
            follow_redirects=False,
            transport=self.transport,
            headers={
                "User-Agent": self.config.user_agent,
                "Accept": "text/html,application/xhtml+xml,text/plain;q=0.9,*/*;q=0.5",
            },
        )

    async def _fetch(self, url: str) -> FetchedBody:
        """Request ``url``, following validated redirects.

        The whole call (redirect lookups, every request and the body stream)
        shares one deadline of ``timeout_seconds``.

        Raises:
            BlockedTargetError: If a redirect points at a denied URL
            FetchFailedError: On non-2xx status, too many redirects, or
                an oversized or unreadable body
            FetchTimeoutError: If the request exceeds the configured timeout
        """
        current = url
        try:
            async with asyncio.timeout(self.config.timeout_seconds):
                async with self._client() as client:
                    for hop in range(self.config.max_redirects + 1):
                        response = await self._send(client, current)
                        try:
                            if response.status_code in REDIRECT_STATUSES:
                                if hop == self.config.max_redirects:
                                    break
                                current = await self._next_hop(current, response)
                                continue
                            if not response.is_success:
                                raise FetchFailedError(
                                    f"Could not fetch url: {response.status_code}",
                                    status_code=response.status_code,
                                )
                            return await self._read_body(current, response)
                        finally:
                            await response.aclose()
        except (httpx.TimeoutException, TimeoutError) as e:
            raise FetchTimeoutError(
                f"Request timed out after {self.config.timeout_seconds:g}s"
            ) from e
        except httpx.HTTPError as e:
            raise FetchFailedError(f"Could not fetch url: {e}") from e

        raise FetchFailedError(
            f"Too many redirects (exceeded {self.config.max_redirects})"
        )

    async def _send(self, client: httpx.AsyncClient, url: str) -> httpx.Response:
        request = client.build_request("GET", url)
        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type(TRANSIENT_ERRORS),
            stop=stop_after_attempt(self.config.transport_retries + 1),
            wait=wait_exponential(multiplier=0.2, max=2),
            reraise=True,
        ):
            with attempt:
                return await client.send(request, stream=True)
        raise AssertionError("unreachable")  # pragma: no cover

    async def _next_hop(self, current: str, response: httpx.Response) -> str:
        location = response.headers.get("location")
        if not location:
            raise FetchFailedError(
                f"Redirect without Location header: {response.status_code}",
                status_code=response.status_code,
            )
        target = urljoin(current, location)
        verdict = await self.validator.check_resolved(target)
        if not verdict.allowed:
            logger.warning("Blocked redirect from %s to %s", current, target)
            raise BlockedTargetError(f"Redirect to unsafe URL blocked: {target}")
        logger.info("Following redirect to %s", target)
        return target

    async def _read_body(self, url: str, response: httpx.Response) -> FetchedBody:
        limit = self.config.max_response_bytes
        declared = response.headers.get("content-length")
        if declared and declared.isdigit() and int(declared) > limit:
            raise FetchFailedError(f"Response too large: {declared} bytes")

        chunks: list[bytes] = []
        size = 0
        async for chunk in response.aiter_bytes():
            size += len(chunk)
            if size > limit:
                raise FetchFailedError(f"Response too large: over {limit} bytes")
            chunks.append(chunk)

        encoding = response.encoding or "utf-8"
        try:
            text = b"".join(chunks).decode(encoding, errors="replace")
        except LookupError:
            text = b"".join(chunks).decode("utf-8", errors="replace")

        return FetchedBody(
            url=url,
            status_code=response.status_code,
            content_type=response.headers.get("content-type", ""),
            text=text,
        )
