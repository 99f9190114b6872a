"""
Utility functions
"""
from datetime import datetime
from typing import Optional


FILE_SIZE_UNITS = ["Bytes", "KB", "MB", "GB"]

# Shown when a submission carries neither a full name nor a handle
MISSING_NAME = "-"


def format_file_size(size: int) -> str:
    """
    Format a byte count for display (base 1024, at most two decimals)

    Example:
        >>> format_file_size(1536)
        '1.5 KB'
        >>> format_file_size(10 * 1024 * 1024)
        '10 MB'
    """
    if size <= 0:
        return "0 Bytes"
    value = float(size)
    unit = 0
    while value >= 1024 and unit < len(FILE_SIZE_UNITS) - 1:
        value /= 1024
        unit += 1
    return f"{round(value, 2):g} {FILE_SIZE_UNITS[unit]}"


def format_date(value: Optional[datetime]) -> str:
    """Format a timestamp as 'YYYY-MM-DD HH:MM'"""
    if value is None:
        return ""
    return value.strftime("%Y-%m-%d %H:%M")


def display_name(full_name: Optional[str], username: Optional[str]) -> str:
    """
    Derive the submitter name shown on the dashboard

    Example:
        >>> display_name("Jane", "jdoe")
        'Jane @jdoe'
        >>> display_name(None, "jdoe")
        '@jdoe'
    """
    full_name = (full_name or "").strip()
    username = (username or "").strip().lstrip("@")
    if full_name and username:
        return f"{full_name} @{username}"
    if username:
        return f"@{username}"
    if full_name:
        return full_name
    return MISSING_NAME


def plural_people(count: int) -> str:
    return f"{count} {'person' if count == 1 else 'people'}"
