"""Value objects for URL verdicts, fetch outcomes and the tool input schema."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from pydantic import AnyUrl, BaseModel, Field, TypeAdapter, ValidationError, field_validator


ERROR_PREFIX = "Error: "

_any_url = TypeAdapter(AnyUrl)


class DenialReason(StrEnum):
    MALFORMED_URL = "malformed_url"
    INSECURE_SCHEME = "insecure_scheme"
    BLOCKED_TARGET = "blocked_target"


class FailureKind(StrEnum):
    INVALID_INPUT = "invalid_input"
    MALFORMED_URL = "malformed_url"
    INSECURE_SCHEME = "insecure_scheme"
    BLOCKED_TARGET = "blocked_target"
    FETCH_FAILED = "fetch_failed"
    TIMEOUT = "timeout"
    CONVERSION_FAILED = "conversion_failed"


@dataclass(frozen=True, slots=True)
class SafetyVerdict:
    """Allow/deny decision for a single candidate URL."""

    allowed: bool
    reason: DenialReason | None = None
    detail: str = ""

    @classmethod
    def allow(cls) -> SafetyVerdict:
        return cls(allowed=True)

    @classmethod
    def deny(cls, reason: DenialReason, detail: str = "") -> SafetyVerdict:
        return cls(allowed=False, reason=reason, detail=detail)

    def __bool__(self) -> bool:
        return self.allowed


@dataclass(frozen=True, slots=True)
class ExtractedDocument:
    url: str  # final URL after redirects
    text: str
    content_type: str
    status_code: int
    original_length: int
    truncated: bool


@dataclass(frozen=True, slots=True)
class FetchFailure:
    kind: FailureKind
    message: str
    status_code: int | None = None


FetchOutcome = ExtractedDocument | FetchFailure


_DENIAL_MESSAGES = {
    DenialReason.MALFORMED_URL: "Invalid URL",
    DenialReason.INSECURE_SCHEME: "Only HTTPS URLs are allowed",
    DenialReason.BLOCKED_TARGET: "Blocked internal or private target",
}


def failure_from_verdict(verdict: SafetyVerdict) -> FetchFailure:
    """Convert a denied verdict into a failure outcome."""
    if verdict.allowed or verdict.reason is None:
        raise ValueError("only denied verdicts can be converted to failures")
    message = _DENIAL_MESSAGES[verdict.reason]
    if verdict.detail:
        message = f"{message}: {verdict.detail}"
    return FetchFailure(kind=FailureKind(verdict.reason.value), message=message)


def to_tool_result(outcome: FetchOutcome) -> str:
    """Render an outcome as the string handed back to the tool caller."""
    if isinstance(outcome, ExtractedDocument):
        return outcome.text
    return f"{ERROR_PREFIX}{outcome.message}"


def is_error_result(result: str) -> bool:
    return result.startswith(ERROR_PREFIX)


class FetchUrlInput(BaseModel):
    """Input object containing the HTTPS URL for the web page to fetch."""

    url: str = Field(
        description='A valid HTTPS URL to fetch, e.g. "https://example.com".'
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        v = v.strip()
        try:
            _any_url.validate_python(v)
        except ValidationError as e:
            raise ValueError("Must be a valid URL.") from e
        if not v.startswith("https://"):
            raise ValueError("Only HTTPS URLs are allowed.")
        return v


class FetchUrlRequest(BaseModel):
    """HTTP request body; the URL itself is validated by the tool."""

    url: str


class FetchUrlResponse(BaseModel):
    """Payload returned by the HTTP fetch endpoint."""

    url: str
    result: str
    is_error: bool
