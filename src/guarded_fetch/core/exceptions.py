"""Domain exceptions for the content extraction pipeline.

These exceptions are raised between the pipeline's fetch and convert steps and
caught in ``ContentExtractionPipeline.run``, which turns them into a
``FetchFailure``. They never cross the tool boundary. Each exception carries a
stable ``error_code`` matching a ``FailureKind`` value.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class ContentFetchError(Exception):
    """Base class for fetch pipeline errors."""

    message: str
    error_code: str
    status_code: int | None = None

    def __str__(self) -> str:
        return f"{self.error_code}: {self.message}"


class BlockedTargetError(ContentFetchError):
    def __init__(self, message: str = "Blocked internal or private target") -> None:
        super().__init__(message=message, error_code="blocked_target")


class FetchFailedError(ContentFetchError):
    def __init__(
        self, message: str = "Could not fetch url", status_code: int | None = None
    ) -> None:
        super().__init__(
            message=message, error_code="fetch_failed", status_code=status_code
        )


class FetchTimeoutError(ContentFetchError):
    def __init__(self, message: str = "Request timed out") -> None:
        super().__init__(message=message, error_code="timeout")


class ConversionFailedError(ContentFetchError):
    def __init__(self, message: str = "Could not convert page content") -> None:
        super().__init__(message=message, error_code="conversion_failed")
