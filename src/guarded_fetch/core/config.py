"""Application settings and the immutable fetch configuration."""

from __future__ import annotations

import ipaddress
import json
import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


IPNetwork = ipaddress.IPv4Network | ipaddress.IPv6Network

OutputFormat = Literal["text", "markdown"]

# Loopback, link-local, unspecified and RFC 1918 / RFC 4193 space
DEFAULT_BLOCKED_NETWORKS: tuple[str, ...] = (
    "10.0.0.0/8",
    "172.16.0.0/12",
    "192.168.0.0/16",
    "127.0.0.0/8",
    "169.254.0.0/16",
    "0.0.0.0/8",
    "::1/128",
    "::/128",
    "fc00::/7",
    "fe80::/10",
)

DEFAULT_BLOCKED_HOSTNAMES: tuple[str, ...] = ("localhost", "127.0.0.1", "::1")

DEFAULT_BLOCKED_SUFFIXES: tuple[str, ...] = (".local",)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (compatible; GuardedFetch/0.1; +https://pypi.org/project/guarded-fetch)"
)


def parse_networks(values: tuple[str, ...] | list[str]) -> tuple[IPNetwork, ...]:
    """Parse CIDR strings into network objects, rejecting invalid entries."""
    return tuple(ipaddress.ip_network(v.strip(), strict=False) for v in values)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # App
    APP_NAME: str = "guarded-fetch"
    ENVIRONMENT: str = "development"  # development | production | test

    # Outbound fetch limits
    FETCH_TIMEOUT_SECONDS: float = 10.0
    FETCH_MAX_CONTENT_CHARS: int = 30_000
    FETCH_MAX_RESPONSE_BYTES: int = 5 * 1024 * 1024
    FETCH_MAX_REDIRECTS: int = 5
    FETCH_TRANSPORT_RETRIES: int = 0

    # Resolve hostnames and recheck the addresses before connecting
    FETCH_RESOLVE_DNS: bool = True

    FETCH_USER_AGENT: str = DEFAULT_USER_AGENT
    FETCH_OUTPUT_FORMAT: OutputFormat = "text"

    # Accept list or CSV/JSON string from env; empty means the built-in defaults
    FETCH_BLOCKED_NETWORKS: list[str] | str = []

    @field_validator("ENVIRONMENT")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        env = v.strip().lower()
        if env not in {"development", "production", "test"}:
            raise ValueError(
                "ENVIRONMENT must be 'development', 'production', or 'test'"
            )
        return env

    @field_validator("FETCH_BLOCKED_NETWORKS", mode="before")
    @classmethod
    def assemble_blocked_networks(cls, v: object) -> list[str]:
        """Allow list, CSV string, or JSON array string for blocked networks."""
        if isinstance(v, list):
            items = [str(i).strip() for i in v]
        elif isinstance(v, str):
            s = v.strip()
            if not s:
                return []
            if s.startswith("["):
                try:
                    parsed = json.loads(s)
                except json.JSONDecodeError as e:
                    raise ValueError(
                        "FETCH_BLOCKED_NETWORKS must be a CSV list or JSON array string"
                    ) from e
                if not isinstance(parsed, list):
                    raise ValueError("FETCH_BLOCKED_NETWORKS JSON must be a list")
                items = [str(i).strip() for i in parsed]
            else:
                items = [i.strip() for i in s.split(",") if i.strip()]
        else:
            raise ValueError(
                "Invalid FETCH_BLOCKED_NETWORKS type; expected str or list[str]"
            )
        # Fail at startup rather than on the first request
        try:
            parse_networks(items)
        except ValueError as e:
            raise ValueError(f"Invalid network in FETCH_BLOCKED_NETWORKS: {e}") from e
        return items

    @field_validator("FETCH_TIMEOUT_SECONDS")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("FETCH_TIMEOUT_SECONDS must be positive")
        return v

    @field_validator(
        "FETCH_MAX_CONTENT_CHARS",
        "FETCH_MAX_RESPONSE_BYTES",
        "FETCH_MAX_REDIRECTS",
        "FETCH_TRANSPORT_RETRIES",
    )
    @classmethod
    def validate_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("fetch limits must not be negative")
        return v


@lru_cache
def get_settings() -> Settings:
    env = os.getenv("ENVIRONMENT", "development").lower()
    # Tests run without an env file
    env_file = None if env == "test" else ".env"
    return Settings(_env_file=env_file)  # type: ignore[call-arg]


@dataclass(frozen=True)
class FetchConfig:
    """Immutable limits and deny-rules shared by the validator and the pipeline.

    Build one per process (``FetchConfig.from_settings``) or per test; nothing
    reads module-level constants at call time.
    """

    allowed_scheme: str = "https"
    blocked_hostnames: frozenset[str] = frozenset(DEFAULT_BLOCKED_HOSTNAMES)
    blocked_suffixes: tuple[str, ...] = DEFAULT_BLOCKED_SUFFIXES
    blocked_networks: tuple[IPNetwork, ...] = field(
        default_factory=lambda: parse_networks(DEFAULT_BLOCKED_NETWORKS)
    )
    max_content_chars: int = 30_000
    timeout_seconds: float = 10.0
    max_response_bytes: int = 5 * 1024 * 1024
    max_redirects: int = 5
    resolve_dns: bool = True
    transport_retries: int = 0
    user_agent: str = DEFAULT_USER_AGENT
    output_format: OutputFormat = "text"

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> FetchConfig:
        settings = settings or get_settings()
        networks = settings.FETCH_BLOCKED_NETWORKS or list(DEFAULT_BLOCKED_NETWORKS)
        return cls(
            blocked_networks=parse_networks(networks),
            max_content_chars=settings.FETCH_MAX_CONTENT_CHARS,
            timeout_seconds=settings.FETCH_TIMEOUT_SECONDS,
            max_response_bytes=settings.FETCH_MAX_RESPONSE_BYTES,
            max_redirects=settings.FETCH_MAX_REDIRECTS,
            resolve_dns=settings.FETCH_RESOLVE_DNS,
            transport_retries=settings.FETCH_TRANSPORT_RETRIES,
            user_agent=settings.FETCH_USER_AGENT,
            output_format=settings.FETCH_OUTPUT_FORMAT,
        )
