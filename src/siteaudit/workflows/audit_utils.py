"""Shared URL and classification helpers used across the audit workflow."""

from __future__ import annotations

import re
from typing import Iterable, Optional
from urllib.parse import urlparse, urlunparse

from ..core.keys import (
    K_TYPE_CALCULATOR,
    K_TYPE_CATEGORY,
    K_TYPE_GUIDE,
    K_TYPE_RESOURCE,
    K_TYPE_STATIC,
)
from .audit_config import CATEGORY_PATHS, STATIC_PATHS, origin_of

_CALCULATOR_SLUG_RE = re.compile(r"(^|/)[^/]+-calculator$")


def normalize_url(url: str) -> str:
    """Normalize a URL for comparison purposes.

    - Lower-case scheme and host
    - Remove default ports
    - Drop the fragment
    - Empty path becomes ``/``
    """
    raw = (url or "").strip()
    if not raw:
        return ""
    p = urlparse(raw)
    if not p.scheme or not p.netloc:
        return raw.split("#", 1)[0]
    netloc = origin_of(raw).split("://", 1)[1]
    return urlunparse((p.scheme.lower(), netloc, p.path or "/", p.params, p.query, ""))


def path_key(url: str) -> str:
    """Return the page identity: path only, trailing slashes collapsed."""

    path = urlparse((url or "").strip()).path or ""
    return path.rstrip("/") or "/"


def preferred_canonical_for(url: str, preferred_origin: str) -> str:
    """Rewrite ``url`` onto the preferred origin with query and fragment removed."""

    path = urlparse(url).path or "/"
    return f"{preferred_origin.rstrip('/')}{path}"


def has_noindex(robots: Optional[str]) -> bool:
    if not robots:
        return False
    return "noindex" in {token.strip() for token in robots.lower().split(",")}


def is_success(status: int) -> bool:
    return 200 <= status < 300


def is_reachable(status: int) -> bool:
    return 200 <= status < 400


def classify_page(
    url: str,
    static_paths: Iterable[str] = STATIC_PATHS,
    category_paths: Iterable[str] = CATEGORY_PATHS,
) -> str:
    """Map a URL onto the page taxonomy from its path shape.

    Category roots are checked before the calculator patterns so that an
    index page can never be mistaken for a ``/<category>/<slug>`` page.
    """
    path = path_key(url)
    if path in set(static_paths):
        return K_TYPE_STATIC
    categories = [c.rstrip("/") for c in category_paths if c.strip("/")]
    if path in categories:
        return K_TYPE_CATEGORY
    if path.startswith("/guides/"):
        return K_TYPE_GUIDE
    if path.startswith("/glossary/"):
        return K_TYPE_RESOURCE
    if _CALCULATOR_SLUG_RE.search(path):
        return K_TYPE_CALCULATOR
    for category in categories:
        rest = path[len(category) + 1:] if path.startswith(category + "/") else ""
        if rest and "/" not in rest:
            return K_TYPE_CALCULATOR
    return K_TYPE_RESOURCE


def sanity_check() -> None:
    assert normalize_url("HTTPS://Example.COM:443/a#x") == "https://example.com/a"
    assert path_key("https://example.com/guides/") == "/guides"
    assert path_key("https://example.com") == "/"
    assert classify_page("https://example.com/finance") == K_TYPE_CATEGORY
    assert classify_page("https://example.com/finance/npv") == K_TYPE_CALCULATOR


sanity_check()

__all__ = [
    "normalize_url",
    "path_key",
    "preferred_canonical_for",
    "has_noindex",
    "is_success",
    "is_reachable",
    "classify_page",
    "sanity_check",
]
