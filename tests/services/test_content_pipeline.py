"""Tests for ContentExtractionPipeline using httpx.MockTransport."""

from __future__ import annotations

import asyncio
import dataclasses
import time

import httpx
import pytest

from guarded_fetch.core.config import FetchConfig
from guarded_fetch.schemas.fetch import ExtractedDocument, FailureKind, FetchFailure
from guarded_fetch.services.content_pipeline import ContentExtractionPipeline


def html(body: str, status_code: int = 200, **headers: str) -> httpx.Response:
    return httpx.Response(
        status_code,
        headers={"content-type": "text/html; charset=utf-8", **headers},
        text=body,
    )


def redirect(location: str, status_code: int = 302) -> httpx.Response:
    return httpx.Response(status_code, headers={"location": location})


class TestSuccessfulFetch:
    @pytest.mark.asyncio
    async def test_hello_world_is_normalized(self, config, make_transport):
        transport = make_transport(lambda r: html("<body><p>Hello   World</p></body>"))
        pipeline = ContentExtractionPipeline(config, transport=transport)

        outcome = await pipeline.run("https://example.com")

        assert isinstance(outcome, ExtractedDocument)
        assert outcome.text == "Hello\nWorld"
        assert outcome.status_code == 200
        assert outcome.truncated is False
        assert len(transport.requests) == 1

    @pytest.mark.asyncio
    async def test_sends_configured_user_agent(self, config, make_transport):
        transport = make_transport(lambda r: html("<body>ok</body>"))
        pipeline = ContentExtractionPipeline(
            dataclasses.replace(config, user_agent="TestAgent/1.0"), transport=transport
        )

        await pipeline.run("https://example.com/")

        assert transport.requests[0].headers["user-agent"] == "TestAgent/1.0"

    @pytest.mark.asyncio
    async def test_output_is_truncated_to_max_chars(self, config, make_transport):
        body = "<body>" + "word " * 50 + "</body>"
        transport = make_transport(lambda r: html(body))
        pipeline = ContentExtractionPipeline(
            dataclasses.replace(config, max_content_chars=10), transport=transport
        )

        outcome = await pipeline.run("https://example.com/")

        assert isinstance(outcome, ExtractedDocument)
        assert len(outcome.text) == 10
        assert outcome.truncated is True
        assert outcome.original_length > 10

    @pytest.mark.asyncio
    async def test_charset_from_header_is_used(self, config, make_transport):
        transport = make_transport(
            lambda r: httpx.Response(
                200,
                headers={"content-type": "text/html; charset=iso-8859-1"},
                content="<body>café</body>".encode("iso-8859-1"),
            )
        )
        pipeline = ContentExtractionPipeline(config, transport=transport)

        outcome = await pipeline.run("https://example.com/")

        assert isinstance(outcome, ExtractedDocument)
        assert outcome.text == "café"

    @pytest.mark.asyncio
    async def test_markdown_output_format(self, config, make_transport):
        transport = make_transport(
            lambda r: html("<body><h1>Title</h1><p>Para one.</p></body>")
        )
        pipeline = ContentExtractionPipeline(
            dataclasses.replace(config, output_format="markdown"), transport=transport
        )

        outcome = await pipeline.run("https://example.com/")

        assert isinstance(outcome, ExtractedDocument)
        assert outcome.text.startswith("# Title")
        assert "Para one." in outcome.text


class TestFailures:
    @pytest.mark.asyncio
    async def test_server_error_reports_status_without_retry(
        self, config, make_transport
    ):
        transport = make_transport(lambda r: html("oops", status_code=500))
        pipeline = ContentExtractionPipeline(
            dataclasses.replace(config, transport_retries=3), transport=transport
        )

        outcome = await pipeline.run("https://example.com/")

        assert isinstance(outcome, FetchFailure)
        assert outcome.kind is FailureKind.FETCH_FAILED
        assert outcome.status_code == 500
        assert "500" in outcome.message
        assert len(transport.requests) == 1

    @pytest.mark.asyncio
    async def test_not_found(self, config, make_transport):
        transport = make_transport(lambda r: html("missing", status_code=404))
        pipeline = ContentExtractionPipeline(config, transport=transport)

        outcome = await pipeline.run("https://example.com/missing")

        assert isinstance(outcome, FetchFailure)
        assert outcome.message == "Could not fetch url: 404"

    @pytest.mark.asyncio
    async def test_timeout(self, config, make_transport):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        transport = make_transport(handler)
        pipeline = ContentExtractionPipeline(
            dataclasses.replace(config, timeout_seconds=2.5), transport=transport
        )

        outcome = await pipeline.run("https://slow.example.com/")

        assert isinstance(outcome, FetchFailure)
        assert outcome.kind is FailureKind.TIMEOUT
        assert "2.5s" in outcome.message

    @pytest.mark.asyncio
    async def test_slow_body_hits_total_deadline(self, config, make_transport):
        async def trickle():
            for _ in range(20):
                yield b"x"
                await asyncio.sleep(0.2)

        transport = make_transport(
            lambda r: httpx.Response(
                200, headers={"content-type": "text/html"}, content=trickle()
            )
        )
        pipeline = ContentExtractionPipeline(
            dataclasses.replace(config, timeout_seconds=0.5), transport=transport
        )

        started = time.monotonic()
        outcome = await pipeline.run("https://slow.example.com/")

        assert isinstance(outcome, FetchFailure)
        assert outcome.kind is FailureKind.TIMEOUT
        assert "0.5s" in outcome.message
        assert time.monotonic() - started < 2

    @pytest.mark.asyncio
    async def test_connect_error_without_retries(self, config, make_transport):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        transport = make_transport(handler)
        pipeline = ContentExtractionPipeline(config, transport=transport)

        outcome = await pipeline.run("https://down.example.com/")

        assert isinstance(outcome, FetchFailure)
        assert outcome.kind is FailureKind.FETCH_FAILED
        assert len(transport.requests) == 1

    @pytest.mark.asyncio
    async def test_transient_connect_error_is_retried(self, config, make_transport):
        calls = {"n": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            calls["n"] += 1
            if calls["n"] == 1:
                raise httpx.ConnectError("reset", request=request)
            return html("<body>recovered</body>")

        transport = make_transport(handler)
        pipeline = ContentExtractionPipeline(
            dataclasses.replace(config, transport_retries=1), transport=transport
        )

        outcome = await pipeline.run("https://flaky.example.com/")

        assert isinstance(outcome, ExtractedDocument)
        assert outcome.text == "recovered"
        assert len(transport.requests) == 2

    @pytest.mark.asyncio
    async def test_unsupported_content_type(self, config, make_transport):
        transport = make_transport(
            lambda r: httpx.Response(
                200, headers={"content-type": "application/pdf"}, content=b"%PDF-1.7"
            )
        )
        pipeline = ContentExtractionPipeline(config, transport=transport)

        outcome = await pipeline.run("https://example.com/file.pdf")

        assert isinstance(outcome, FetchFailure)
        assert outcome.kind is FailureKind.CONVERSION_FAILED

    @pytest.mark.asyncio
    async def test_declared_oversized_body_is_rejected(self, config, make_transport):
        transport = make_transport(lambda r: html("<body>" + "x" * 200 + "</body>"))
        pipeline = ContentExtractionPipeline(
            dataclasses.replace(config, max_response_bytes=100), transport=transport
        )

        outcome = await pipeline.run("https://example.com/big")

        assert isinstance(outcome, FetchFailure)
        assert "too large" in outcome.message

    @pytest.mark.asyncio
    async def test_streamed_oversized_body_is_rejected(self, config, make_transport):
        async def chunks():
            for _ in range(10):
                yield b"x" * 50

        transport = make_transport(
            lambda r: httpx.Response(
                200, headers={"content-type": "text/html"}, content=chunks()
            )
        )
        pipeline = ContentExtractionPipeline(
            dataclasses.replace(config, max_response_bytes=120), transport=transport
        )

        outcome = await pipeline.run("https://example.com/stream")

        assert isinstance(outcome, FetchFailure)
        assert "too large" in outcome.message


class TestRedirects:
    @pytest.mark.asyncio
    async def test_public_redirect_is_followed(self, config, make_transport):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/old":
                return redirect("https://example.org/new", 301)
            return html("<body>moved here</body>")

        transport = make_transport(handler)
        pipeline = ContentExtractionPipeline(config, transport=transport)

        outcome = await pipeline.run("https://example.com/old")

        assert isinstance(outcome, ExtractedDocument)
        assert outcome.text == "moved here"
        assert outcome.url == "https://example.org/new"
        assert len(transport.requests) == 2

    @pytest.mark.asyncio
    async def test_relative_location_is_resolved(self, config, make_transport):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/a/start":
                return redirect("../b/end")
            return html("<body>end</body>")

        transport = make_transport(handler)
        pipeline = ContentExtractionPipeline(config, transport=transport)

        outcome = await pipeline.run("https://example.com/a/start")

        assert isinstance(outcome, ExtractedDocument)
        assert outcome.url == "https://example.com/b/end"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "location",
        [
            "https://127.0.0.1/admin",
            "https://169.254.169.254/latest/meta-data/",
            "https://10.0.0.1/",
            "http://example.com/downgrade",
            "https://intranet.local/",
        ],
    )
    async def test_unsafe_redirect_is_not_followed(
        self, config, make_transport, location
    ):
        transport = make_transport(lambda r: redirect(location))
        pipeline = ContentExtractionPipeline(config, transport=transport)

        outcome = await pipeline.run("https://example.com/")

        assert isinstance(outcome, FetchFailure)
        assert outcome.kind is FailureKind.BLOCKED_TARGET
        assert "Redirect to unsafe URL blocked" in outcome.message
        assert len(transport.requests) == 1

    @pytest.mark.asyncio
    async def test_redirect_to_name_resolving_privately_is_blocked(
        self, make_transport, fake_dns
    ):
        fake_dns({"rebind.example.net": "192.168.0.7"})
        transport = make_transport(lambda r: redirect("https://rebind.example.net/"))
        pipeline = ContentExtractionPipeline(
            FetchConfig(resolve_dns=True), transport=transport
        )

        outcome = await pipeline.run("https://example.com/")

        assert isinstance(outcome, FetchFailure)
        assert outcome.kind is FailureKind.BLOCKED_TARGET
        assert len(transport.requests) == 1

    @pytest.mark.asyncio
    async def test_too_many_redirects(self, config, make_transport):
        transport = make_transport(lambda r: redirect("https://example.com/loop"))
        pipeline = ContentExtractionPipeline(
            dataclasses.replace(config, max_redirects=2), transport=transport
        )

        outcome = await pipeline.run("https://example.com/loop")

        assert isinstance(outcome, FetchFailure)
        assert outcome.kind is FailureKind.FETCH_FAILED
        assert "Too many redirects" in outcome.message
        assert len(transport.requests) == 3

    @pytest.mark.asyncio
    async def test_redirects_disabled(self, config, make_transport):
        transport = make_transport(lambda r: redirect("https://example.org/"))
        pipeline = ContentExtractionPipeline(
            dataclasses.replace(config, max_redirects=0), transport=transport
        )

        outcome = await pipeline.run("https://example.com/")

        assert isinstance(outcome, FetchFailure)
        assert len(transport.requests) == 1

    @pytest.mark.asyncio
    async def test_redirect_without_location(self, config, make_transport):
        transport = make_transport(lambda r: httpx.Response(302))
        pipeline = ContentExtractionPipeline(config, transport=transport)

        outcome = await pipeline.run("https://example.com/")

        assert isinstance(outcome, FetchFailure)
        assert outcome.status_code == 302

    @pytest.mark.asyncio
    async def test_exhausted_budget_does_not_check_next_hop(
        self, make_transport, fake_dns, caplog
    ):
        # An empty table makes any lookup fail, so a checked hop would be denied
        fake_dns({})
        transport = make_transport(lambda r: redirect("https://next.example.net/"))
        pipeline = ContentExtractionPipeline(
            FetchConfig(resolve_dns=True, max_redirects=0), transport=transport
        )

        with caplog.at_level("INFO", logger="guarded_fetch"):
            outcome = await pipeline.run("https://example.com/")

        assert isinstance(outcome, FetchFailure)
        assert outcome.kind is FailureKind.FETCH_FAILED
        assert "Too many redirects" in outcome.message
        assert "Following redirect" not in caplog.text
        assert "could not resolve" not in caplog.text.lower()
