from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Tuple, TypeVar

import aiohttp

from ..core.keys import K_DESCRIPTION, K_FINAL_URL, K_STATUS, K_TITLE, K_URL
from .audit_config import AuditConfig
from .audit_utils import classify_page, has_noindex, is_reachable, is_success, preferred_canonical_for
from .extract_utils import ContentSignals, extract_content_signals
from .fingerprint import simhash64
from .page_fetch import FetchOutcome, PageFetcher, RedirectHop, build_session

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


@dataclass(frozen=True)
class PageRecord:
    """Everything observed for one target; built once by a worker, never mutated."""

    url: str
    final_url: str
    redirect_chain: Tuple[RedirectHop, ...] = ()
    status: int = 0
    content_type: str = ""
    page_type: str = ""
    canonical_expected: str = ""
    robots: Optional[str] = None
    noindex: bool = False
    signals: ContentSignals = field(default_factory=ContentSignals)
    fingerprint: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return is_success(self.status)

    @property
    def reachable(self) -> bool:
        return is_reachable(self.status)

    @property
    def title(self) -> Optional[str]:
        return self.signals.title

    @property
    def description(self) -> Optional[str]:
        return self.signals.description

    @property
    def canonical(self) -> Optional[str]:
        return self.signals.canonical

    @property
    def internal_links(self) -> Tuple[str, ...]:
        return self.signals.internal_links

    def to_dict(self) -> Dict[str, Any]:
        s = self.signals
        payload: Dict[str, Any] = {
            K_URL: self.url,
            K_FINAL_URL: self.final_url,
            "redirect_chain": [hop.to_dict() for hop in self.redirect_chain],
            K_STATUS: self.status,
            "ok": self.ok,
            "reachable": self.reachable,
            "content_type": self.content_type,
            "type": self.page_type,
            K_TITLE: s.title,
            K_DESCRIPTION: s.description,
            "canonical": s.canonical,
            "canonical_expected": self.canonical_expected,
            "robots": self.robots,
            "noindex": self.noindex,
            "hreflang": [link.to_dict() for link in s.hreflang],
            "main_content_words": s.main_content_words,
            "main_content_sample": s.main_content_sample,
            "info_points": s.info_points,
            "info_points_breakdown": dict(s.info_points_breakdown),
            "internal_links": list(s.internal_links),
            "schema": {
                "count": s.schema_count,
                "parsed_types": list(s.schema_types),
                "errors": [dict(e) for e in s.schema_errors],
            },
            "fingerprint": str(self.fingerprint),
        }
        if self.error:
            payload["error"] = self.error
        return payload


def build_page_record(outcome: FetchOutcome, config: AuditConfig) -> PageRecord:
    page_type = classify_page(outcome.final_url, config.static_paths, config.category_paths)
    if not outcome.has_response:
        return PageRecord(
            url=outcome.url,
            final_url=outcome.final_url,
            redirect_chain=outcome.chain,
            page_type=page_type,
            error=outcome.error or "fetch failed",
        )

    signals = ContentSignals()
    fingerprint = 0
    if outcome.is_html:
        signals = extract_content_signals(outcome.text, outcome.final_url, config.preferred_origin)
        fingerprint = simhash64(signals.fingerprint_sample)

    header_robots = outcome.x_robots_tag
    robots = " | ".join(r for r in (signals.robots_meta, header_robots) if r) or None
    return PageRecord(
        url=outcome.url,
        final_url=outcome.final_url,
        redirect_chain=outcome.chain,
        status=outcome.status,
        content_type=outcome.content_type,
        page_type=page_type,
        canonical_expected=preferred_canonical_for(outcome.final_url, config.preferred_origin),
        robots=robots,
        noindex=has_noindex(signals.robots_meta) or has_noindex(header_robots),
        signals=signals,
        fingerprint=fingerprint,
    )


async def crawl_page(fetcher: PageFetcher, url: str) -> PageRecord:
    """Fetch-extract-fingerprint one target; never raises."""

    try:
        outcome = await fetcher.fetch(url, "GET")
        return build_page_record(outcome, fetcher.config)
    except Exception as exc:  # a broken page must not take down its siblings
        logger.debug("worker failed for %s: %s", url, exc, exc_info=True)
        return PageRecord(url=url, final_url=url, error=f"{type(exc).__name__}: {exc}")


async def run_pool(
    items: Iterable[T],
    worker: Callable[[T], Awaitable[R]],
    concurrency: int,
) -> List[R]:
    """Drain a shared queue with ``concurrency`` pollers; returns once all items are done.

    Result order follows completion, not input order.
    """
    queue = deque(items)
    results: List[R] = []

    async def _poller() -> None:
        while queue:
            item = queue.popleft()
            results.append(await worker(item))

    pollers = max(1, min(concurrency, len(queue)))
    await asyncio.gather(*(_poller() for _ in range(pollers)))
    return results


async def crawl_targets(
    targets: List[str],
    config: AuditConfig,
    session: Optional[aiohttp.ClientSession] = None,
) -> List[PageRecord]:
    if session is None:
        async with build_session(config) as own_session:
            return await crawl_targets(targets, config, own_session)
    fetcher = PageFetcher(config, session)
    records = await run_pool(targets, lambda url: crawl_page(fetcher, url), config.concurrency)
    failed = sum(1 for record in records if record.error)
    logger.info("crawled %d targets (%d failed)", len(records), failed)
    return records


__all__ = [
    "PageRecord",
    "build_page_record",
    "crawl_page",
    "run_pool",
    "crawl_targets",
]
