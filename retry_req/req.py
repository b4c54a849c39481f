"""Req - retrying HTTP requests for REST API clients.

Req describes a request (base URL, path, ordered params, headers, body, proxy,
cookies) together with its retry policy, and send() runs it:

    build request -> dispatch -> classify outcome -> retry or succeed

An attempt is retried on a network error, on a body read error, on a status
code inside one of ``retry_on_status_codes`` or on a body containing one of
``retry_on_text_markers`` (checked in that order, first match wins). Once the
attempts are spent, send() raises ExhaustedRetriesError; the last response is
still available on it as ``resp``.

Example 1: path, params, form data and JSON decoding

    with Req("http://httpbin.org") as r:
        r.path = "post"                               # http://httpbin.org/post
        r.params = Vals([("a", "b"), ("c", "d")])     # ...?a=b&c=d
        r.data = Vals([("n1", "v1"), ("n2", "v2")])   # body "n1=v1&n2=v2"
        resp = r.post()
        data = resp.json(HttpbinPost)

Example 2: JSON body and middleware (fresh headers on each attempt)

    r = Req("http://httpbin.org/get", transport=transport)
    r.body = Vals([("n1", "v1"), ("n2", "v2")]).to_json()

    def stamp(req: Req) -> None:
        req.headers = Vals([HEADER_APP_JSON, ("Now", int(time.time()))])

    r.middleware = [stamp]
    resp = r.get()
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Any

import httpx

from retry_req.errors import (
    ExhaustedRetriesError,
    PolicyRetry,
    ReadError,
    ReqError,
    RequestBuildError,
    TransportError,
    URLParseError,
)
from retry_req.models import (
    DEFAULT_ATTEMPTS,
    DEFAULT_METHOD,
    DEFAULT_RETRY_DELAY,
    DEFAULT_RETRY_ON_STATUS_CODES,
    DEFAULT_RETRY_ON_TEXT_MARKERS,
    DEFAULT_TIMEOUT,
    ReqConfig,
)
from retry_req.resp import Resp
from retry_req.retry_policy import should_retry_on_status, should_retry_on_text_marker
from retry_req.transport import HttpxTransport, Transport
from retry_req.urls import build_full_url, parse_proxy_url
from retry_req.vals import Vals, value_text

logger = logging.getLogger(__name__)

Middleware = Callable[["Req"], None]


@dataclass(frozen=True)
class _Prepared:
    """A materialized request: what actually goes to the transport."""

    request: httpx.Request
    url: str
    proxy: str | None


class Req:
    """A request description plus the retry loop that sends it.

    Attributes (all may be changed freely, including by middleware):
        method: "GET", "POST", "PUT", "PATCH", "DELETE" or "OPTIONS". Usually
            set by get(), post(), ... rather than directly.
        url: Base URL ("http://example.com").
        path: URL reference resolved against url ("/test/me/").
        params: Query params; replace any query in url/path when not None.
        headers: Headers; a later entry with the same name wins.
        proxy_url: Proxy URL ("http://user:pass@ip:port"), "" for none.
        data: Form params, url-encoded into the body. Takes precedence over body.
        body: Raw body, e.g. a JSON string from Vals.to_json().
        cookies: Cookies sent as a single Cookie header, in insertion order.
        middleware: Called as mw(req) in order before every attempt. While any
            are registered the request is rebuilt on every attempt.
        retry_on_text_markers: Retry if the body contains any of these.
        retry_on_status_codes: Retry if from <= status <= to for any (from, to).
        attempts: Total number of attempts.
        retry_delay: Seconds to sleep between attempts.
        timeout: Seconds allowed for each attempt.
    """

    def __init__(
        self,
        url: str,
        *,
        transport: Transport | None = None,
        method: str = DEFAULT_METHOD,
        path: str = "",
        params: Vals | None = None,
        headers: Vals | None = None,
        proxy_url: str = "",
        data: Vals | None = None,
        body: str | bytes = "",
        cookies: dict[str, str] | None = None,
        middleware: Iterable[Middleware] | None = None,
        retry_on_text_markers: Iterable[str] = DEFAULT_RETRY_ON_TEXT_MARKERS,
        retry_on_status_codes: Iterable[Sequence[int]] = DEFAULT_RETRY_ON_STATUS_CODES,
        attempts: int = DEFAULT_ATTEMPTS,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.url = url
        self.method = method
        self.path = path
        self.params = params
        self.headers = headers if headers is not None else Vals()
        self.proxy_url = proxy_url
        self.data = data
        self.body = body
        self.cookies = dict(cookies) if cookies else {}
        self.middleware: list[Middleware] = list(middleware) if middleware else []
        self.retry_on_text_markers = list(retry_on_text_markers)
        self.retry_on_status_codes = [tuple(r) for r in retry_on_status_codes]
        self.attempts = attempts
        self.retry_delay = retry_delay
        self.timeout = timeout

        self._transport = transport
        self._owned_transport: HttpxTransport | None = None
        self._prepared: _Prepared | None = None
        self.attempts_made = 0

    @classmethod
    def from_config(
        cls,
        url: str,
        config: ReqConfig,
        transport: Transport | None = None,
    ) -> "Req":
        """Create a Req from loaded configuration defaults."""
        return cls(
            url,
            transport=transport,
            method=config.method,
            headers=Vals(config.headers),
            proxy_url=config.proxy_url,
            cookies=config.cookies,
            retry_on_text_markers=config.retry.retry_on_text_markers,
            retry_on_status_codes=config.retry.retry_on_status_codes,
            attempts=config.retry.attempts,
            retry_delay=config.retry.retry_delay,
            timeout=config.timeout,
        )

    def __enter__(self) -> "Req":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        self.close()

    def close(self) -> None:
        """Close the transport this Req created for itself, if any.

        An injected transport belongs to the caller and is left open.
        """
        if self._owned_transport is not None:
            self._owned_transport.close()
            if self._transport is self._owned_transport:
                self._transport = None
            self._owned_transport = None

    @property
    def request_raw(self) -> httpx.Request | None:
        """The last materialized request (read-only; rebuilt by send())."""
        return self._prepared.request if self._prepared is not None else None

    def _get_transport(self) -> Transport:
        if self._transport is None:
            self._owned_transport = HttpxTransport()
            self._transport = self._owned_transport
        return self._transport

    def _build(self) -> _Prepared:
        """Materialize the current fields into an httpx.Request.

        Raises:
            URLParseError: If url, path or proxy_url is malformed.
            RequestBuildError: If httpx rejects the request.
        """
        proxy: str | None = None
        if self.proxy_url:
            try:
                proxy = parse_proxy_url(self.proxy_url)
            except URLParseError:
                logger.error("can't parse proxy url %s", self.proxy_url)
                raise

        full_url = build_full_url(self.url, self.path, self.params)

        # form data wins over raw body
        if self.data is not None:
            content = self.data.url_encode().encode("utf-8")
        elif isinstance(self.body, str):
            content = self.body.encode("utf-8")
        else:
            content = self.body

        try:
            request = httpx.Request(
                self.method,
                full_url,
                headers=self._header_list(),
                content=content,
                extensions={"timeout": httpx.Timeout(self.timeout).as_dict()},
            )
        except httpx.InvalidURL as e:
            raise URLParseError(f"can't use url {full_url!r}: {e}") from e
        except UnicodeEncodeError as e:
            raise RequestBuildError(
                f"encoding error: non-ASCII characters in request headers. "
                f"Character: {e.object[e.start:e.end]!r} at position {e.start}"
            ) from e

        return _Prepared(request=request, url=full_url, proxy=proxy)

    def _header_list(self) -> list[tuple[str, str]]:
        """Headers to send: a later entry replaces an earlier one with the same
        (case-insensitive) name, cookies go into a single Cookie header.
        """
        headers: dict[str, tuple[str, str]] = {}
        for name, value in self.headers:
            headers[name.lower()] = (name, _sanitize_header_value(value_text(value)))
        if self.cookies:
            cookie = "; ".join(f"{k}={v}" for k, v in self.cookies.items())
            headers["cookie"] = ("Cookie", _sanitize_header_value(cookie))
        return list(headers.values())

    def _delay(self, attempt: int) -> None:
        if attempt < self.attempts and self.retry_delay > 0:
            time.sleep(self.retry_delay)

    def _attempt(
        self,
        prepared: _Prepared,
        attempt: int,
    ) -> tuple[httpx.Response | None, bytes, ReqError | None]:
        """Dispatch one attempt and read its body.

        Returns:
            (response, content, failure). ``failure`` is a TransportError or
            ReadError when the attempt must be retried, else None. The
            response stream is closed on return.
        """
        method, url = self.method, prepared.url
        logger.debug("do request: %s %s", method, url)
        try:
            response = self._get_transport().send(prepared.request, proxy=prepared.proxy)
        except httpx.RequestError as e:
            err = str(e) or type(e).__name__
            if url in err:
                logger.warning("att #%d: resp err: %s. Retry", attempt, err)
            else:
                logger.warning("att #%d: resp err: %s: %s. Retry", attempt, url, err)
            return None, b"", TransportError(err)

        try:
            content = response.read()
        except (httpx.RequestError, httpx.StreamError) as e:
            err = str(e) or type(e).__name__
            logger.warning("att #%d: resp read err: %s: %s. Retry", attempt, url, err)
            return response, b"", ReadError(err)
        finally:
            response.close()
        return response, content, None

    def send(self) -> Resp:
        """Send the request, retrying per the retry policy.

        The request is built on the first attempt and rebuilt on every attempt
        while middleware is registered; otherwise the first build is reused.

        Returns:
            Resp of the successful attempt.

        Raises:
            URLParseError: Malformed url, path or proxy_url (nothing is sent).
            RequestBuildError: The request can't be materialized.
            ExhaustedRetriesError: No attempt succeeded. Carries the last
                attempt's Resp as ``resp``.
        """
        response: httpx.Response | None = None
        content = b""
        failure: ReqError | None = None
        success = False
        self._prepared = None
        self.attempts_made = 0

        for attempt in range(1, self.attempts + 1):
            self.attempts_made = attempt

            for mw in self.middleware:
                mw(self)

            # first time or after middleware
            if self._prepared is None or self.middleware:
                self._prepared = self._build()
            url = self._prepared.url

            response, content, failure = self._attempt(self._prepared, attempt)
            if failure is not None:
                self._delay(attempt)
                continue

            status_code = response.status_code
            if should_retry_on_status(status_code, self.retry_on_status_codes):
                logger.warning(
                    "att #%d: %s: got resp with retry status code. Code='%s', content='%s'. Retry",
                    attempt, url, status_code, _show(content),
                )
                failure = PolicyRetry(
                    f"finally got unwanted status code '{status_code}' "
                    f"and content '{_show(content)}'",
                    status_code,
                )
                self._delay(attempt)
                continue

            if should_retry_on_text_marker(content, self.retry_on_text_markers):
                logger.warning(
                    "att #%d: %s: got resp with retry text marker. Code='%s', content='%s'. Retry",
                    attempt, url, status_code, _show(content),
                )
                failure = PolicyRetry(
                    f"finally got unwanted text marker in resp with status code "
                    f"'{status_code}' and content '{_show(content)}'",
                    status_code,
                )
                self._delay(attempt)
                continue

            success = True
            break

        resp = Resp(content=content, raw=response)
        url = self._prepared.url if self._prepared is not None else self.url

        if not success:
            reason = str(failure) if failure is not None else "no attempts made"
            raise ExhaustedRetriesError(self.method, url, reason, resp) from failure

        logger.debug("SUCCESS: %s %s", self.method, url)
        return resp

    def get(self) -> Resp:
        """Shortcut for send() with the GET method."""
        self.method = "GET"
        return self.send()

    def post(self) -> Resp:
        """Shortcut for send() with the POST method."""
        self.method = "POST"
        return self.send()

    def put(self) -> Resp:
        """Shortcut for send() with the PUT method."""
        self.method = "PUT"
        return self.send()

    def delete(self) -> Resp:
        """Shortcut for send() with the DELETE method."""
        self.method = "DELETE"
        return self.send()

    def patch(self) -> Resp:
        """Shortcut for send() with the PATCH method."""
        self.method = "PATCH"
        return self.send()

    def options(self) -> Resp:
        """Shortcut for send() with the OPTIONS method."""
        self.method = "OPTIONS"
        return self.send()


def _show(content: bytes) -> str:
    return content.decode("utf-8", errors="replace")


def _sanitize_header_value(value: str) -> str:
    """Replace non-ASCII characters with '?'.

    HTTP header values must be ASCII per RFC 7230; header names are left
    alone so a bad name fails loudly in _build.
    """
    return value.encode("ascii", errors="replace").decode("ascii")
