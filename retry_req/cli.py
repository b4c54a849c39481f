"""CLI entry point for retry-req.

Sends one request with the retry loop and prints the response body:

    retry-req GET http://httpbin.org --path get --param a=b --header Now=1
    retry-req POST http://httpbin.org --path post --json name=x --json tags='["a","b"]'
    retry-req GET http://example.org --config req.yaml --attempts 5 -v
"""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path

from retry_req.config_loader import load_req_config
from retry_req.errors import ReqError
from retry_req.models import ALLOWED_METHODS, ReqConfig
from retry_req.req import Req
from retry_req.vals import HEADER_APP_JSON, Vals


@dataclass
class SendArgs:
    method: str
    url: str
    path: str = ""
    params: list[tuple[str, str]] = field(default_factory=list)
    headers: list[tuple[str, str]] = field(default_factory=list)
    data: list[tuple[str, str]] = field(default_factory=list)
    json_fields: list[tuple[str, str]] = field(default_factory=list)
    body: str | None = None
    cookies: list[tuple[str, str]] = field(default_factory=list)
    proxy: str | None = None
    attempts: int | None = None
    retry_delay: float | None = None
    timeout: float | None = None
    config: Path | None = None
    verbose: int = 0


def key_value(value: str) -> tuple[str, str]:
    """Parse a NAME=VALUE argument."""
    name, sep, val = value.partition("=")
    if not sep or not name:
        raise argparse.ArgumentTypeError(f"expected NAME=VALUE, got {value!r}")
    return name, val


def positive_float(value: str) -> float:
    """Argparse type for positive floats."""
    try:
        f = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"'{value}' is not a valid number")
    if f <= 0:
        raise argparse.ArgumentTypeError(f"'{value}' must be positive")
    return f


def non_negative_float(value: str) -> float:
    """Argparse type for floats >= 0."""
    try:
        f = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"'{value}' is not a valid number")
    if f < 0:
        raise argparse.ArgumentTypeError(f"'{value}' must not be negative")
    return f


def positive_int(value: str) -> int:
    """Argparse type for positive integers."""
    try:
        i = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"'{value}' is not a valid integer")
    if i <= 0:
        raise argparse.ArgumentTypeError(f"'{value}' must be positive")
    return i


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="retry-req",
        description="Send an HTTP request with retries and print the response body.",
    )
    parser.add_argument(
        "method",
        type=str.upper,
        choices=ALLOWED_METHODS,
        help="HTTP method",
    )
    parser.add_argument("url", help="Base URL, e.g. http://httpbin.org")
    parser.add_argument("--path", default="", help="Path resolved against the base URL")
    parser.add_argument(
        "--param", dest="params", type=key_value, action="append", default=[],
        metavar="NAME=VALUE", help="Query parameter (repeatable, order kept)",
    )
    parser.add_argument(
        "--header", dest="headers", type=key_value, action="append", default=[],
        metavar="NAME=VALUE", help="Header (repeatable)",
    )
    body = parser.add_mutually_exclusive_group()
    body.add_argument(
        "--data", type=key_value, action="append", default=[],
        metavar="NAME=VALUE", help="Form field, url-encoded into the body (repeatable)",
    )
    body.add_argument(
        "--json", dest="json_fields", type=key_value, action="append", default=[],
        metavar="NAME=VALUE",
        help="JSON body field (repeatable); values like {...} or [...] are embedded as JSON",
    )
    body.add_argument("--body", default=None, help="Raw request body")
    parser.add_argument(
        "--cookie", dest="cookies", type=key_value, action="append", default=[],
        metavar="NAME=VALUE", help="Cookie (repeatable)",
    )
    parser.add_argument("--proxy", default=None, help="Proxy URL")
    parser.add_argument("--attempts", type=positive_int, default=None, help="Total attempts")
    parser.add_argument(
        "--retry-delay", type=non_negative_float, default=None,
        help="Seconds between attempts",
    )
    parser.add_argument(
        "--timeout", type=positive_float, default=None, help="Per-attempt timeout in seconds"
    )
    parser.add_argument("--config", type=Path, default=None, help="YAML file with request defaults")
    parser.add_argument(
        "-v", "--verbose", action="count", default=0,
        help="Log retries (-v) or every attempt (-vv) to stderr",
    )
    return parser


def parse_args(args: list[str] | None = None) -> SendArgs:
    namespace = build_parser().parse_args(args)
    return SendArgs(
        method=namespace.method,
        url=namespace.url,
        path=namespace.path,
        params=namespace.params,
        headers=namespace.headers,
        data=namespace.data,
        json_fields=namespace.json_fields,
        body=namespace.body,
        cookies=namespace.cookies,
        proxy=namespace.proxy,
        attempts=namespace.attempts,
        retry_delay=namespace.retry_delay,
        timeout=namespace.timeout,
        config=namespace.config,
        verbose=namespace.verbose,
    )


def build_req(args: SendArgs) -> Req:
    """Build a Req from config defaults overlaid with command-line arguments."""
    config = load_req_config(args.config) if args.config else ReqConfig()
    req = Req.from_config(args.url, config)
    req.method = args.method
    req.path = args.path

    if args.params:
        req.params = Vals(args.params)
    if args.headers:
        req.headers = req.headers + args.headers
    if args.data:
        req.data = Vals(args.data)
    elif args.json_fields:
        req.body = Vals(args.json_fields).to_json()
        req.headers = Vals([HEADER_APP_JSON]) + req.headers
    elif args.body is not None:
        req.body = args.body
    for name, value in args.cookies:
        req.cookies[name] = value

    if args.proxy is not None:
        req.proxy_url = args.proxy
    if args.attempts is not None:
        req.attempts = args.attempts
    if args.retry_delay is not None:
        req.retry_delay = args.retry_delay
    if args.timeout is not None:
        req.timeout = args.timeout
    return req


def _configure_logging(verbose: int) -> None:
    if verbose >= 2:
        level = logging.DEBUG
    elif verbose == 1:
        level = logging.WARNING
    else:
        level = logging.ERROR
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s", stream=sys.stderr)


def run_send(args: SendArgs) -> int:
    """Send the request and print the response text. Returns the exit code."""
    try:
        req = build_req(args)
    except ReqError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    with req:
        try:
            resp = req.send()
        except ReqError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1

    print(resp.text)
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    try:
        args = parse_args(argv)
        _configure_logging(args.verbose)
        return run_send(args)
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
