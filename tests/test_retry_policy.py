"""Tests for the retry policy predicates."""

import pytest

from retry_req.retry_policy import should_retry_on_status, should_retry_on_text_marker


@pytest.mark.parametrize(
    "code, ranges, expected",
    [
        (200, [(400, 600)], False),
        (505, [(400, 600)], True),
        (505, [(400, 500), (506, 600)], False),
        (400, [(400, 600)], True),
        (600, [(400, 600)], True),
        (429, [(500, 599), (429, 429)], True),
        (500, [], False),
    ],
)
def test_should_retry_on_status(code: int, ranges: list[tuple[int, int]], expected: bool) -> None:
    assert should_retry_on_status(code, ranges) is expected


def test_status_ranges_accept_lists() -> None:
    assert should_retry_on_status(503, [[500, 599]]) is True


@pytest.mark.parametrize(
    "text, markers, expected",
    [
        ("", ["error", "Error"], False),
        ("error", ["error", "Error"], True),
        ("Error", ["error", "Error"], True),
        ("ERROR", ["error", "Error"], False),
        ('{"status": "an error occurred"}', ["error"], True),
        ("all good", [], False),
    ],
)
def test_should_retry_on_text_marker(text: str, markers: list[str], expected: bool) -> None:
    assert should_retry_on_text_marker(text.encode(), markers) is expected
    assert should_retry_on_text_marker(text, markers) is expected


def test_text_marker_non_ascii() -> None:
    assert should_retry_on_text_marker("ошибка: boom".encode(), ["ошибка"]) is True
