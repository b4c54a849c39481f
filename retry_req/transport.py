"""Transport - sends materialized requests for Req.

Req builds an ``httpx.Request`` and hands it to a Transport together with the
proxy to use. Responses come back streamed: Req reads the body itself (so read
failures can be told apart from connection failures) and always closes the
response.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from threading import Lock
from typing import Any, Callable, Protocol

import httpx

logger = logging.getLogger(__name__)

DEFAULT_MAX_PROXY_CLIENTS = 8


def _new_client(**kwargs: Any) -> httpx.Client:
    """httpx.Client that follows redirects, like a browser or curl -L."""
    return httpx.Client(follow_redirects=True, **kwargs)


class Transport(Protocol):
    """Anything that can send an httpx.Request and return a streamed httpx.Response.

    Implementations raise ``httpx.RequestError`` subclasses for network-level
    failures.
    """

    def send(self, request: httpx.Request, *, proxy: str | None = None) -> httpx.Response: ...


class HttpxTransport:
    """Transport over httpx.Client.

    The shared client serves requests without a proxy and is never
    reconfigured. Proxied requests go through one dedicated client per proxy
    URL, built by ``proxy_client_factory(proxy=url)`` on first use. At most
    ``max_proxy_clients`` of them are kept; the least recently used one is
    closed to make room, so rotating proxies don't pile up connection pools.
    Clients created here follow redirects.

    Usage:
        with HttpxTransport() as transport:
            req = Req("http://example.org", transport=transport)
            resp = req.get()
    """

    def __init__(
        self,
        client: httpx.Client | None = None,
        proxy_client_factory: Callable[..., httpx.Client] | None = None,
        max_proxy_clients: int = DEFAULT_MAX_PROXY_CLIENTS,
    ) -> None:
        """Initialize the transport.

        Args:
            client: Client for direct requests. If None, one is created and
                    owned (closed by close()). A caller-supplied client is
                    left open.
            proxy_client_factory: Builds clients for proxied requests; called
                                  with ``proxy=<url>``. Defaults to a
                                  redirect-following httpx.Client.
            max_proxy_clients: How many proxy clients to keep open. Should be
                               at least the number of proxies in concurrent
                               use, since an evicted client is closed.
        """
        if max_proxy_clients < 1:
            raise ValueError(f"max_proxy_clients must be at least 1, got {max_proxy_clients}")
        self._owns_client = client is None
        self._client = client if client is not None else _new_client()
        self._proxy_client_factory = proxy_client_factory or _new_client
        self._max_proxy_clients = max_proxy_clients
        self._proxy_clients: OrderedDict[str, httpx.Client] = OrderedDict()
        self._lock = Lock()

    def __enter__(self) -> "HttpxTransport":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        self.close()

    def close(self) -> None:
        """Close the proxy clients and, if owned, the shared client.

        Uses try/finally so the shared client is closed even if a proxy
        client's close() raises.
        """
        with self._lock:
            proxy_clients = list(self._proxy_clients.values())
            self._proxy_clients.clear()
        try:
            for client in proxy_clients:
                client.close()
        finally:
            if self._owns_client:
                self._client.close()

    def _client_for(self, proxy: str | None) -> httpx.Client:
        if not proxy:
            return self._client
        evicted: list[httpx.Client] = []
        with self._lock:
            client = self._proxy_clients.get(proxy)
            if client is not None:
                self._proxy_clients.move_to_end(proxy)
            else:
                logger.debug("creating client for proxy %s", proxy)
                client = self._proxy_client_factory(proxy=proxy)
                self._proxy_clients[proxy] = client
                while len(self._proxy_clients) > self._max_proxy_clients:
                    stale, old = self._proxy_clients.popitem(last=False)
                    logger.debug("closing client for proxy %s", stale)
                    evicted.append(old)
        for old in evicted:
            old.close()
        return client

    def send(self, request: httpx.Request, *, proxy: str | None = None) -> httpx.Response:
        """Send ``request`` (through ``proxy`` if given) without reading the body."""
        return self._client_for(proxy).send(request, stream=True)
