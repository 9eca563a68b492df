"""Sitemap and seed resolution: builds the deduplicated target list for a run."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Tuple
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup

from .audit_config import AuditConfig
from .audit_utils import is_success, path_key
from .page_fetch import PageFetcher

logger = logging.getLogger(__name__)


class SitemapError(RuntimeError):
    """The sitemap could not be fetched; the run cannot continue."""


@dataclass(frozen=True)
class TargetList:
    sitemap_urls: Tuple[str, ...]
    targets: Tuple[str, ...]


def _dedupe(urls: Iterable[str]) -> List[str]:
    """Keep the first URL seen for each page identity (path, trailing slash collapsed)."""

    seen: Dict[str, str] = {}
    for url in urls:
        seen.setdefault(path_key(url), url)
    return list(seen.values())


def extract_sitemap_urls(xml: str, base_url: str) -> List[str]:
    """Parse ``<loc>`` entries and re-home them onto ``base_url``.

    Only path and query are kept so that a sitemap written for the production
    origin can be audited against a staging or local server.
    """
    soup = BeautifulSoup(xml or "", "xml")
    paths: List[str] = []
    for node in soup.find_all("loc"):
        loc = node.get_text(strip=True)
        if not loc:
            continue
        parsed = urlparse(loc)
        if not parsed.scheme or not parsed.netloc:
            continue
        paths.append((parsed.path or "/") + (f"?{parsed.query}" if parsed.query else ""))
    return _dedupe(urljoin(base_url, path) for path in paths)


def resolve_targets(sitemap_urls: Iterable[str], config: AuditConfig) -> TargetList:
    sitemap = _dedupe(sitemap_urls)
    seeds = [urljoin(config.base_url, path) for path in config.seed_paths]
    targets = _dedupe(sitemap + seeds)
    if len(targets) > config.max_pages:
        logger.warning("target list capped at %d (of %d)", config.max_pages, len(targets))
        targets = targets[: config.max_pages]
    return TargetList(sitemap_urls=tuple(sitemap), targets=tuple(targets))


async def fetch_sitemap(fetcher: PageFetcher) -> List[str]:
    config = fetcher.config
    sitemap_url = urljoin(config.base_url, config.sitemap_path)
    outcome = await fetcher.fetch(sitemap_url, "GET", read_body=True)
    if not is_success(outcome.status):
        detail = outcome.error or f"status {outcome.status}"
        logger.error("sitemap unavailable at %s (%s)", sitemap_url, detail)
        raise SitemapError(f"Failed to fetch {sitemap_url}: {detail}")
    urls = extract_sitemap_urls(outcome.text, config.base_url)
    logger.info("sitemap %s lists %d urls", sitemap_url, len(urls))
    return urls


__all__ = [
    "SitemapError",
    "TargetList",
    "extract_sitemap_urls",
    "resolve_targets",
    "fetch_sitemap",
]
