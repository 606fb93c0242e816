# core/utils.py
"""
Core Utility Functions.

Formatting helpers shared by the dashboard views.
"""
import datetime
from typing import Optional

_SIZE_UNITS = ["Bytes", "KB", "MB", "GB"]

def format_file_size(size_bytes: int) -> str:
    """Human readable size in base-1024 units, e.g. 1536 -> '1.5 KB'."""
    if not size_bytes or size_bytes <= 0:
        return "0 Bytes"
    i = 0
    while i < len(_SIZE_UNITS) - 1 and size_bytes >= 1024 ** (i + 1):
        i += 1
    value = round(size_bytes / 1024 ** i, 2)
    return f"{value:g} {_SIZE_UNITS[i]}"

def format_date(value: Optional[datetime.datetime]) -> str:
    """Formats a timestamp like 'Jan 5, 2024, 03:04 PM'."""
    if value is None:
        return "Unknown"
    return f"{value:%b} {value.day}, {value:%Y, %I:%M %p}"

def display_name(path: str) -> str:
    return path.split("/")[-1]
