"""Resp - the response envelope returned by Req.send."""

from __future__ import annotations

import json
from typing import Any, TypeVar, get_origin, overload

import httpx
from pydantic import PydanticSchemaGenerationError, TypeAdapter, ValidationError

from retry_req.errors import DecodeError

T = TypeVar("T")


class Resp:
    """Body and underlying response of the last attempt of a send.

    ``content`` is the raw body (b"" if no response was read); ``raw`` is the
    underlying httpx.Response, kept public for low-level access, or None when
    every attempt failed before a response arrived. The response stream is
    already closed.
    """

    def __init__(self, content: bytes = b"", raw: httpx.Response | None = None) -> None:
        self.content = content
        self.raw = raw
        self._text = ""

    def __repr__(self) -> str:
        return f"<Resp [{self.status_code}] {len(self.content)} bytes>"

    @property
    def status_code(self) -> int | None:
        return self.raw.status_code if self.raw is not None else None

    @property
    def headers(self) -> httpx.Headers:
        return self.raw.headers if self.raw is not None else httpx.Headers()

    @property
    def text(self) -> str:
        """Body decoded as text, computed on first access and cached."""
        if not self._text and self.content:
            encoding = (self.raw.charset_encoding if self.raw is not None else None) or "utf-8"
            try:
                self._text = self.content.decode(encoding, errors="replace")
            except LookupError:
                # unknown charset in Content-Type
                self._text = self.content.decode("utf-8", errors="replace")
        return self._text

    @overload
    def json(self) -> Any: ...

    @overload
    def json(self, target: type[T], *, strict: bool = True) -> T: ...

    def json(self, target: Any = None, *, strict: bool = True) -> Any:
        """Decode the body as JSON.

        Example:
            class Data(BaseModel):
                name: str

            data = resp.json(Data)        # validated model
            items = resp.json(list[int])  # any type pydantic understands
            anything = resp.json()        # plain json.loads

        Args:
            target: Type to decode into. Must be a type (class or generic
                    alias), not an instance.
            strict: Reject values of the wrong JSON type instead of coercing
                    them (e.g. "30" for an int field). Pass False for
                    pydantic's lax conversions.

        Raises:
            DecodeError: If the body isn't valid JSON, doesn't fit ``target``,
                         or ``target`` is not a type.
        """
        if target is None:
            try:
                return json.loads(self.content)
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                raise DecodeError(f"can't decode response body as JSON: {e}") from e

        if not isinstance(target, type) and get_origin(target) is None:
            raise DecodeError(
                f"json() target must be a type, got an instance of {type(target).__name__}"
            )

        try:
            adapter = TypeAdapter(target)
        except PydanticSchemaGenerationError as e:
            raise DecodeError(f"can't decode into {target!r}: {e}") from e

        try:
            return adapter.validate_json(self.content, strict=strict)
        except ValidationError as e:
            raise DecodeError(f"can't decode response body into {target!r}: {e}") from e
