"""
Tests for display formatting helpers
"""
from datetime import datetime

from portal.utils import format_date, format_file_size, plural_people


def test_format_file_size():
    assert format_file_size(0) == "0 Bytes"
    assert format_file_size(512) == "512 Bytes"
    assert format_file_size(1536) == "1.5 KB"
    assert format_file_size(10 * 1024 * 1024) == "10 MB"
    assert format_file_size(3 * 1024 ** 3) == "3 GB"


def test_format_file_size_caps_at_largest_unit():
    assert format_file_size(2048 * 1024 ** 3) == "2048 GB"


def test_format_date():
    assert format_date(datetime(2025, 3, 1, 9, 5)) == "2025-03-01 09:05"
    assert format_date(None) == ""


def test_plural_people():
    assert plural_people(1) == "1 person"
    assert plural_people(3) == "3 people"
