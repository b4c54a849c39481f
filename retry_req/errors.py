"""Error taxonomy for retry-req.

Only URLParseError, RequestBuildError, ExhaustedRetriesError, DecodeError and
ConfigError ever reach the caller. TransportError, ReadError and PolicyRetry
describe a single failed attempt; Req.send absorbs them and chains the last one
as the __cause__ of ExhaustedRetriesError.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from retry_req.resp import Resp


class ReqError(Exception):
    """Base class for retry-req errors."""


class URLParseError(ReqError):
    """Raised when a base, path or proxy URL is malformed."""


class RequestBuildError(ReqError):
    """Raised when a request cannot be materialized (e.g. non-ASCII header names)."""


class TransportError(ReqError):
    """One attempt failed at the network level (refused, timeout, DNS, ...)."""


class ReadError(ReqError):
    """One attempt failed while reading the response body."""


class PolicyRetry(ReqError):
    """One attempt matched a retry status range or text marker."""

    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code


class ExhaustedRetriesError(ReqError):
    """Raised when every attempt of a send was retried.

    The envelope of the last attempt is still available as ``resp`` (its
    ``raw`` is None if no response was ever received).
    """

    def __init__(self, method: str, url: str, reason: str, resp: Resp) -> None:
        # avoid duplicated url in the message
        if url and url in reason:
            message = f"FAILED: {reason}"
        else:
            message = f"FAILED: {method} {url}: {reason}"
        super().__init__(message)
        self.method = method
        self.url = url
        self.reason = reason
        self.resp = resp


class DecodeError(ReqError, ValueError):
    """Raised when a response body cannot be decoded as JSON into the target."""


class ConfigError(ReqError):
    """Raised when configuration loading fails."""
