"""Vals - ordered HTTP parameters.

A plain dict (or ``httpx.QueryParams``) doesn't let callers control the order
of parameters in a query string or a hand-rolled JSON body. Vals is a sequence
of (name, value) pairs that renders in exactly the order it was built, with
duplicate names allowed:

    params = Vals([("a", "b"), ("c", "d")])       # a=b&c=d
    body = Vals([("n1", "v1"), ("n2", 2)]).to_json()  # {"n1":"v1","n2":2}

String values that look like a pre-rendered JSON object or array are embedded
unquoted by to_json(), so nested Vals can be composed:

    Vals([("name", Vals([("k", "v")]).to_json())]).to_json()
    # {"name":{"k":"v"}}
"""

from __future__ import annotations

import json
import math
from collections.abc import Iterable, Iterator, Sequence
from typing import NamedTuple, Union, overload
from urllib.parse import quote_plus

Value = Union[str, int, float, bool]


class Val(NamedTuple):
    """Single name/value pair."""

    name: str
    value: Value

    def __str__(self) -> str:
        return f"{json.dumps(self.name, ensure_ascii=False)}:{_json_value(self.value)}"


# simple shortcut for header lists
HEADER_APP_JSON = Val("Content-Type", "application/json")


def _has_seq_sig(s: str) -> bool:
    """Detect a pre-rendered JSON object ({...}) or array ([...])."""
    return (s.startswith("{") and s.endswith("}")) or (s.startswith("[") and s.endswith("]"))


def value_text(value: Value) -> str:
    """Textual form of a value as it goes on the wire (query, form body, header)."""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _json_value(value: Value) -> str:
    if isinstance(value, str):
        if _has_seq_sig(value):
            return value
        return json.dumps(value, ensure_ascii=False)
    return value_text(value)


def _to_val(item: Val | tuple[str, Value]) -> Val:
    try:
        name, value = item
    except (TypeError, ValueError) as e:
        raise TypeError(f"Vals entries must be (name, value) pairs, got {item!r}") from e
    if not isinstance(name, str):
        raise TypeError(f"Vals names must be str, got {type(name).__name__}: {name!r}")
    if not isinstance(value, (str, int, float, bool)):
        raise TypeError(
            f"Vals value for {name!r} must be str, int, float or bool, "
            f"got {type(value).__name__}"
        )
    if isinstance(value, float) and not math.isfinite(value):
        # no JSON literal for these
        raise ValueError(f"Vals value for {name!r} must be finite, got {value!r}")
    return Val(name, value)


class Vals(Sequence[Val]):
    """Immutable ordered sequence of name/value pairs.

    Never mutated after construction: extend() and ``+`` return a new Vals,
    so one instance can be shared between requests.
    """

    __slots__ = ("_items",)

    def __init__(self, items: Iterable[Val | tuple[str, Value]] = ()) -> None:
        self._items: tuple[Val, ...] = tuple(_to_val(item) for item in items)

    @overload
    def __getitem__(self, index: int) -> Val: ...

    @overload
    def __getitem__(self, index: slice) -> Vals: ...

    def __getitem__(self, index: int | slice) -> Val | Vals:
        if isinstance(index, slice):
            return Vals(self._items[index])
        return self._items[index]

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Val]:
        return iter(self._items)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Vals):
            return self._items == other._items
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._items)

    def __add__(self, other: Iterable[Val | tuple[str, Value]]) -> Vals:
        return self.extend(other)

    def __repr__(self) -> str:
        return f"Vals({list(self._items)!r})"

    def __str__(self) -> str:
        """Human-readable form for diagnostics, e.g. ["name":{"k":"v"} "name2":"val2"]."""
        return "[" + " ".join(str(v) for v in self._items) + "]"

    def url_encode(self) -> str:
        """Encode as name1=value1&name2=value2, preserving order and duplicates."""
        return "&".join(
            f"{quote_plus(v.name, safe='')}={quote_plus(value_text(v.value), safe='')}"
            for v in self._items
        )

    def to_json(self) -> str:
        """Render as a JSON object string, preserving order.

        Fine for flat data and for values that are already JSON fragments
        (strings wrapped in {} or []), which are emitted verbatim and never
        validated. For anything richer use json.dumps on real Python objects.
        """
        return "{" + ",".join(str(v) for v in self._items) + "}"

    def extend(self, more: Iterable[Val | tuple[str, Value]]) -> Vals:
        """Return a new Vals with ``more`` appended after this one's entries."""
        return Vals(self._items + Vals(more)._items)
