"""Pytest configuration and fixtures for retry-req tests.

This file provides:
- FakeTransport: Transport double that replays queued outcomes and records
  every request it was asked to send
- BrokenStream: Response stream that fails mid-read
- make_response: httpx.Response factory with sensible defaults
"""

from __future__ import annotations

from typing import Any, Generator
from unittest.mock import patch

import httpx
import pytest


def make_response(
    status_code: int = 200,
    content: bytes = b"",
    headers: dict[str, str] | None = None,
) -> httpx.Response:
    """Create an httpx.Response as a transport would return it.

    Prefer this over constructing httpx.Response directly - it documents
    which fields are typically varied in tests.
    """
    return httpx.Response(status_code, content=content, headers=headers or {})


class BrokenStream(httpx.SyncByteStream):
    """Response body that raises ReadError when read."""

    def __init__(self) -> None:
        self.closed = False

    def __iter__(self) -> Any:
        raise httpx.ReadError("connection reset while reading body")

    def close(self) -> None:
        self.closed = True


class FakeTransport:
    """Transport double for Req tests.

    Each send() pops the next outcome; the last one repeats forever. An
    outcome is either an httpx.Response (returned) or an exception (raised).

    Usage:
        transport = FakeTransport(httpx.ConnectError("refused"), make_response(200))
        resp = Req("http://example.org", transport=transport).send()
        assert len(transport.sent) == 2
    """

    def __init__(self, *outcomes: httpx.Response | Exception) -> None:
        if not outcomes:
            outcomes = (make_response(200),)
        self._outcomes = list(outcomes)
        self.sent: list[tuple[httpx.Request, str | None]] = []
        self.returned: list[httpx.Response] = []

    @property
    def requests(self) -> list[httpx.Request]:
        return [request for request, _ in self.sent]

    def send(self, request: httpx.Request, *, proxy: str | None = None) -> httpx.Response:
        self.sent.append((request, proxy))
        if len(self._outcomes) > 1:
            outcome = self._outcomes.pop(0)
        else:
            outcome = self._outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        self.returned.append(outcome)
        return outcome


@pytest.fixture
def no_sleep() -> Generator[Any, None, None]:
    """Patch out the inter-attempt delay and expose the mock for assertions."""
    with patch("retry_req.req.time.sleep") as mock_sleep:
        yield mock_sleep
