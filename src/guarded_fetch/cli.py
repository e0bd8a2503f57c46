"""Command line entry point: fetch one URL and print the tool result."""

import argparse
import dataclasses
import sys

from guarded_fetch.core.config import FetchConfig
from guarded_fetch.core.error_handler import setup_logging
from guarded_fetch.schemas.fetch import is_error_result
from guarded_fetch.tools.fetch_url import fetch_safe_content_sync


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="guarded-fetch",
        description="Fetch a public HTTPS page and print its text content.",
    )
    parser.add_argument("url", help="HTTPS URL to fetch")
    parser.add_argument(
        "--markdown",
        action="store_true",
        help="Return Markdown instead of plain text",
    )
    parser.add_argument("--timeout", type=float, help="Request timeout in seconds")
    parser.add_argument(
        "--max-chars", type=int, help="Maximum number of characters to return"
    )
    parser.add_argument(
        "--no-resolve",
        action="store_true",
        help="Skip the DNS lookup check (literal hostname rules only)",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging()

    config = FetchConfig.from_settings()
    overrides: dict[str, object] = {}
    if args.markdown:
        overrides["output_format"] = "markdown"
    if args.timeout is not None:
        if args.timeout <= 0:
            print("--timeout must be positive", file=sys.stderr)
            return 2
        overrides["timeout_seconds"] = args.timeout
    if args.max_chars is not None:
        if args.max_chars < 0:
            print("--max-chars must not be negative", file=sys.stderr)
            return 2
        overrides["max_content_chars"] = args.max_chars
    if args.no_resolve:
        overrides["resolve_dns"] = False
    if overrides:
        config = dataclasses.replace(config, **overrides)  # type: ignore[arg-type]

    result = fetch_safe_content_sync({"url": args.url}, config)
    print(result)
    return 1 if is_error_result(result) else 0


if __name__ == "__main__":
    sys.exit(main())
