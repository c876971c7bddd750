"""Tests for formatting and clock helpers."""

from datetime import datetime

import pytest

from persanna.utils.helpers import current_date, current_time, format_response


@pytest.mark.parametrize("raw, expected", [
    ("  hello  ", "hello"),
    ("a  \r\nb", "a\nb"),
    ("a\n\n\n\nb", "a\n\nb"),
    ("", ""),
])
def test_format_response(raw, expected):
    assert format_response(raw) == expected


def test_format_response_is_idempotent():
    text = "  line one \r\n\r\n\r\n line two\t\n"
    once = format_response(text)
    assert format_response(once) == once


@pytest.mark.parametrize("moment, expected", [
    (datetime(2024, 3, 9, 0, 5, 9), "12:05:09 AM"),
    (datetime(2024, 3, 9, 12, 0, 0), "12:00:00 PM"),
    (datetime(2024, 3, 9, 23, 59, 1), "11:59:01 PM"),
])
def test_current_time(moment, expected):
    assert current_time(lambda: moment) == expected


def test_current_date():
    assert current_date(lambda: datetime(2024, 3, 9)) == "03/09/2024"
