"""
Small helpers for request parameters and repository paths.
"""

from __future__ import annotations

from typing import Optional


def first_non_empty(value: Optional[str], fallback: str) -> str:
    """
    Return the value unless it is missing or blank, else the fallback.

    Example:
        >>> first_non_empty("", "/content/dam/iec/ddx.xml")
        "/content/dam/iec/ddx.xml"
        >>> first_non_empty(None, "x")
        "x"
    """
    if value is None or not value.strip():
        return fallback
    return value.strip()


def normalize_asset_path(path: str) -> str:
    """
    Strip surrounding slashes so a repository path can be joined to a root.

    Example:
        >>> normalize_asset_path("/content/dam/iec/ddx.xml")
        "content/dam/iec/ddx.xml"
    """
    return path.strip().strip("/")
