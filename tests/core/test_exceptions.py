from guarded_fetch.core.exceptions import (
    BlockedTargetError,
    ConversionFailedError,
    FetchFailedError,
    FetchTimeoutError,
)
from guarded_fetch.schemas.fetch import FailureKind


def test_str_includes_error_code_and_message():
    assert str(FetchFailedError("Could not fetch url: 500", status_code=500)) == (
        "fetch_failed: Could not fetch url: 500"
    )


def test_error_codes_are_failure_kinds():
    for exc in (
        BlockedTargetError(),
        FetchFailedError(),
        FetchTimeoutError(),
        ConversionFailedError(),
    ):
        assert FailureKind(exc.error_code).value == exc.error_code
