"""
Shared text and URL normalization helpers.
"""

from __future__ import annotations

import re
from urllib.parse import quote, urlsplit, urlunsplit

ZERO_WIDTH_REGEX = re.compile(r"[\u200B-\u200D\uFEFF]")
CONTROL_CHAR_REGEX = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")
WHITESPACE_REGEX = re.compile(r"\s+")
COMPARISON_STRIP_REGEX = re.compile(r"[^\u4e00-\u9fa5a-z0-9\s]")

PATH_SAFE_CHARS = "/%:@!$&'()*+,;=-._~"


def strip_invisible(value: str) -> str:
    """
    Remove zero-width and control characters.
    """

    return CONTROL_CHAR_REGEX.sub("", ZERO_WIDTH_REGEX.sub("", value))


def collapse_whitespace(value: str) -> str:
    return WHITESPACE_REGEX.sub(" ", value).strip()


def clean_text(value: str) -> str:
    return collapse_whitespace(strip_invisible(value))


def comparison_key(value: str, *, strip_punctuation: bool = True) -> str:
    """
    Case-folded, whitespace-collapsed form used for content equality checks.
    """

    normalized = collapse_whitespace(value.lower())
    if strip_punctuation:
        normalized = COMPARISON_STRIP_REGEX.sub("", normalized)
    return normalized


def canonical_url(value: str) -> str:
    """
    Re-serialize an absolute URL canonically; anything unparseable is returned unchanged.
    """

    candidate = value.strip()
    try:
        parts = urlsplit(candidate)
        if not parts.scheme or not parts.netloc:
            return value
        path = quote(parts.path or "/", safe=PATH_SAFE_CHARS)
        return urlunsplit(
            (parts.scheme.lower(), parts.netloc.lower(), path, parts.query, parts.fragment)
        )
    except ValueError:
        return value
