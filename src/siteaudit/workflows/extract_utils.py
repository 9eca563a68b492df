"""Utilities for SEO signal extraction from rendered HTML (BeautifulSoup + lxml)."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urljoin, urlparse, urlunparse

from bs4 import BeautifulSoup
from bs4.element import Tag

from .audit_config import (
    FINGERPRINT_SAMPLE_CHARS,
    HREFLANG_CODE_RE,
    SCHEMA_SNIPPET_CHARS,
    SUBSTANTIAL_PARAGRAPH_WORDS,
    TEXT_SAMPLE_CHARS,
    origin_of,
)

_WORD_RE = re.compile(r"[A-Za-z0-9]+")
_WS_RE = re.compile(r"\s+")
_EXCLUDED_SCHEMES = ("mailto:", "tel:", "javascript:")
_BOILERPLATE_TAGS = ["header", "nav", "footer"]
_INVISIBLE_TAGS = ["script", "style", "noscript", "template"]


@dataclass(frozen=True)
class HreflangLink:
    hreflang: str
    href: str
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"hreflang": self.hreflang, "href": self.href}
        if self.error:
            payload["error"] = self.error
        return payload


@dataclass
class ContentSignals:
    """Content-derived fields of a page record; empty for non-HTML responses."""

    title: Optional[str] = None
    description: Optional[str] = None
    robots_meta: Optional[str] = None
    canonical: Optional[str] = None
    hreflang: Tuple[HreflangLink, ...] = ()
    internal_links: Tuple[str, ...] = ()
    schema_count: int = 0
    schema_types: Tuple[str, ...] = ()
    schema_errors: Tuple[Dict[str, str], ...] = ()
    main_content_words: int = 0
    main_content_sample: str = ""
    fingerprint_sample: str = ""
    info_points: int = 0
    info_points_breakdown: Dict[str, int] = field(
        default_factory=lambda: {"h2": 0, "h3": 0, "li": 0, "tr": 0, "p": 0}
    )

    @property
    def hreflang_errors(self) -> List[HreflangLink]:
        return [link for link in self.hreflang if link.error]


def collapse_ws(text: str) -> str:
    return _WS_RE.sub(" ", text or "").strip()


def count_words(text: str) -> int:
    return len(_WORD_RE.findall(text or ""))


def _rel_tokens(tag: Tag) -> List[str]:
    rel = tag.get("rel") or []
    if isinstance(rel, str):
        rel = rel.split()
    return [token.lower() for token in rel]


def extract_title(soup: BeautifulSoup) -> Optional[str]:
    node = soup.find("title")
    if node is None:
        return None
    return collapse_ws(node.get_text(" "))


def extract_meta_content(soup: BeautifulSoup, name: str) -> Optional[str]:
    """Return the first ``<meta name=...>`` content (attribute order is irrelevant)."""

    wanted = name.lower()
    for tag in soup.find_all("meta"):
        if (tag.get("name") or "").strip().lower() != wanted:
            continue
        content = (tag.get("content") or "").strip()
        if content:
            return content
    return None


def extract_canonical(soup: BeautifulSoup, page_url: str) -> Optional[str]:
    for tag in soup.find_all("link", href=True):
        if "canonical" in _rel_tokens(tag):
            href = tag["href"].strip()
            return urljoin(page_url, href) if href else None
    return None


def validate_hreflang(code: str, href: str, preferred_origin: str) -> Optional[str]:
    if not HREFLANG_CODE_RE.match(code):
        return "invalid hreflang"
    if origin_of(href) != preferred_origin:
        return "unexpected host"
    return None


def extract_hreflangs(soup: BeautifulSoup, page_url: str, preferred_origin: str) -> Tuple[HreflangLink, ...]:
    out: List[HreflangLink] = []
    for tag in soup.find_all("link", href=True, hreflang=True):
        if "alternate" not in _rel_tokens(tag):
            continue
        code = tag["hreflang"].strip()
        href = tag["href"].strip()
        if not code or not href:
            continue
        resolved = urljoin(page_url, href)
        out.append(HreflangLink(code, resolved, validate_hreflang(code, resolved, preferred_origin)))
    return tuple(out)


def extract_internal_links(soup: BeautifulSoup, page_url: str) -> Tuple[str, ...]:
    """Same-origin anchors, fragment stripped, deduplicated in document order."""

    page_origin = origin_of(page_url)
    seen: Dict[str, None] = {}
    for tag in soup.find_all("a", href=True):
        raw = tag["href"].strip()
        if not raw or raw.startswith("#") or raw.lower().startswith(_EXCLUDED_SCHEMES):
            continue
        try:
            resolved = urlparse(urljoin(page_url, raw))
        except ValueError:
            continue
        if origin_of(resolved.geturl()) != page_origin:
            continue
        seen.setdefault(urlunparse(resolved._replace(fragment="")), None)
    return tuple(seen)


def extract_structured_data(soup: BeautifulSoup) -> Tuple[int, Tuple[str, ...], Tuple[Dict[str, str], ...]]:
    """Parse every JSON-LD block independently; failures become error entries."""

    count = 0
    types: List[str] = []
    errors: List[Dict[str, str]] = []
    for tag in soup.find_all("script"):
        if (tag.get("type") or "").strip().lower() != "application/ld+json":
            continue
        count += 1
        raw = (tag.string or tag.get_text() or "").strip()
        if not raw:
            continue
        try:
            parsed = json.loads(raw)
        except ValueError as exc:
            errors.append({"error": str(exc), "snippet": raw[:SCHEMA_SNIPPET_CHARS]})
            continue
        items = parsed if isinstance(parsed, list) else [parsed]
        for item in items:
            if not isinstance(item, dict) or not item.get("@type"):
                continue
            value = item["@type"]
            if isinstance(value, list):
                types.extend(str(v) for v in value)
            else:
                types.append(str(value))
    return count, tuple(types), tuple(errors)


def main_content_region(soup: BeautifulSoup) -> Tag:
    """Return ``<main>`` (else ``<body>``) with boilerplate and scripts removed.

    Mutates ``soup``; callers extract head/link signals first.
    """
    region = soup.find("main") or soup.body or soup
    for tag in region.find_all(_BOILERPLATE_TAGS + _INVISIBLE_TAGS):
        tag.extract()
    return region


def count_info_points(region: Tag) -> Tuple[int, Dict[str, int]]:
    h2 = len(region.find_all("h2"))
    h3 = len(region.find_all("h3"))
    li = len(region.find_all("li"))
    tr = max(0, len(region.find_all("tr")) - 1)
    paragraphs = sum(
        1 for p in region.find_all("p") if count_words(p.get_text(" ")) >= SUBSTANTIAL_PARAGRAPH_WORDS
    )
    breakdown = {"h2": h2, "h3": h3, "li": li, "tr": tr, "p": paragraphs}
    return h2 + h3 + li + tr + paragraphs, breakdown


def extract_content_signals(html: str, page_url: str, preferred_origin: str) -> ContentSignals:
    if not (html or "").strip():
        return ContentSignals()
    soup = BeautifulSoup(html, "lxml")

    title = extract_title(soup)
    description = extract_meta_content(soup, "description")
    robots_meta = extract_meta_content(soup, "robots")
    canonical = extract_canonical(soup, page_url)
    hreflang = extract_hreflangs(soup, page_url, preferred_origin)
    internal_links = extract_internal_links(soup, page_url)
    schema_count, schema_types, schema_errors = extract_structured_data(soup)

    region = main_content_region(soup)
    text = collapse_ws(region.get_text(" "))
    info_points, breakdown = count_info_points(region)
    return ContentSignals(
        title=title,
        description=description,
        robots_meta=robots_meta,
        canonical=canonical,
        hreflang=hreflang,
        internal_links=internal_links,
        schema_count=schema_count,
        schema_types=schema_types,
        schema_errors=schema_errors,
        main_content_words=count_words(text),
        main_content_sample=text[:TEXT_SAMPLE_CHARS],
        fingerprint_sample=text[:FINGERPRINT_SAMPLE_CHARS],
        info_points=info_points,
        info_points_breakdown=breakdown,
    )


__all__ = [
    "HreflangLink",
    "ContentSignals",
    "collapse_ws",
    "count_words",
    "extract_title",
    "extract_meta_content",
    "extract_canonical",
    "validate_hreflang",
    "extract_hreflangs",
    "extract_internal_links",
    "extract_structured_data",
    "main_content_region",
    "count_info_points",
    "extract_content_signals",
]
