"""Shared test fixtures for pytest.

ENVIRONMENT is forced to "test" before the package is imported so settings
never read a local .env file.
"""

import os
import socket
from collections.abc import Callable, Iterator

import httpx
import pytest


os.environ["ENVIRONMENT"] = "test"

from guarded_fetch.core.config import FetchConfig, get_settings  # noqa: E402


@pytest.fixture(autouse=True)
def _clear_settings_cache() -> Iterator[None]:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def config() -> FetchConfig:
    """Default limits with DNS checks disabled (no real lookups in tests)."""
    return FetchConfig(resolve_dns=False)


@pytest.fixture
def fake_dns(monkeypatch: pytest.MonkeyPatch) -> Callable[[dict[str, str]], None]:
    """Route socket.getaddrinfo through a host -> address table."""

    def install(table: dict[str, str]) -> None:
        def fake_getaddrinfo(host, port, *args, **kwargs):
            if host not in table:
                raise socket.gaierror(socket.EAI_NONAME, "Name or service not known")
            address = table[host]
            family = socket.AF_INET6 if ":" in address else socket.AF_INET
            return [(family, socket.SOCK_STREAM, 6, "", (address, port or 443))]

        monkeypatch.setattr(socket, "getaddrinfo", fake_getaddrinfo)

    return install


class RecordingTransport(httpx.MockTransport):
    """MockTransport that remembers every request it served."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self.requests: list[httpx.Request] = []

        def recording_handler(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(recording_handler)


@pytest.fixture
def make_transport() -> Callable[..., RecordingTransport]:
    def factory(
        handler: Callable[[httpx.Request], httpx.Response],
    ) -> RecordingTransport:
        return RecordingTransport(handler)

    return factory

