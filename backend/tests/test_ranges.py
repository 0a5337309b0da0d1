"""Tests for Range header parsing."""

import pytest

from aldrin.core.errors import MalformedRange, RangeNotSatisfiable
from aldrin.domain.models import ByteRange, FullRange
from aldrin.services.ranges import parse_range


def test_absent_header_is_full_range():
    result = parse_range(None, 1000)
    assert isinstance(result, FullRange)
    assert (result.start, result.end, result.length) == (0, 999, 1000)


def test_blank_header_is_full_range():
    assert isinstance(parse_range("  ", 1000), FullRange)


def test_closed_range():
    assert parse_range("bytes=100-199", 1000) == ByteRange(start=100, end=199, total_size=1000)


def test_closed_range_length_and_header():
    result = parse_range("bytes=100-199", 1000)
    assert result.length == 100
    assert result.content_range == "bytes 100-199/1000"


def test_open_ended_range_runs_to_last_byte():
    assert parse_range("bytes=900-", 1000) == ByteRange(start=900, end=999, total_size=1000)


def test_upper_boundary():
    assert parse_range("bytes=900-999", 1000) == ByteRange(start=900, end=999, total_size=1000)


def test_single_byte():
    assert parse_range("bytes=0-0", 1000).length == 1


def test_start_at_total_size_not_satisfiable():
    with pytest.raises(RangeNotSatisfiable) as exc_info:
        parse_range("bytes=1000-1000", 1000)
    assert exc_info.value.headers == {"Content-Range": "bytes */1000"}
    assert exc_info.value.status_code == 416


def test_end_past_file_not_clamped():
    with pytest.raises(RangeNotSatisfiable):
        parse_range("bytes=500-1000", 1000)


def test_start_after_end():
    with pytest.raises(RangeNotSatisfiable):
        parse_range("bytes=200-100", 1000)


def test_empty_file_has_no_satisfiable_range():
    with pytest.raises(RangeNotSatisfiable):
        parse_range("bytes=0-", 0)


def test_unit_case_and_whitespace_tolerated():
    assert parse_range(" Bytes = 10 - 19 ", 1000) == ByteRange(start=10, end=19, total_size=1000)


@pytest.mark.parametrize("header", [
    "bytes=-500",
    "bytes=abc-def",
    "items=0-10",
    "bytes 0-10",
    "bytes=",
    "0-10",
    "bytes=1.5-3",
])
def test_malformed(header):
    with pytest.raises(MalformedRange) as exc_info:
        parse_range(header, 1000)
    assert exc_info.value.status_code == 416


def test_malformed_is_not_satisfiable():
    assert issubclass(MalformedRange, RangeNotSatisfiable)


class TestMultiRange:
    """Only the first of several ranges is honoured."""

    def test_first_range_used(self):
        assert parse_range("bytes=0-10,20-30", 1000) == ByteRange(start=0, end=10, total_size=1000)

    def test_first_range_still_validated(self):
        with pytest.raises(RangeNotSatisfiable):
            parse_range("bytes=2000-3000,0-10", 1000)
