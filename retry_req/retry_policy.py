"""Retry policy predicates used by Req.send after each attempt."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

logger = logging.getLogger(__name__)


def should_retry_on_status(status_code: int, ranges: Iterable[Sequence[int]]) -> bool:
    """True if ``status_code`` is inside any inclusive (from, to) range."""
    for code_range in ranges:
        low, high = code_range
        if low <= status_code <= high:
            logger.debug("found matched code %s in %s", status_code, list(code_range))
            return True
    return False


def should_retry_on_text_marker(content: bytes | str, markers: Iterable[str]) -> bool:
    """True if any marker occurs in ``content`` (case-sensitive substring match)."""
    if isinstance(content, str):
        return any(marker in content for marker in markers)
    return any(marker.encode("utf-8") in content for marker in markers)
