"""Issue aggregation: link graph plus rule-based classification of page records.

Runs once, after every worker has finished, over the complete record set.
Each rule is independent; categories and their order come from
``core.keys.K_ISSUE_CATEGORIES``.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence

from ..core.keys import (
    K_BAD_LINKS,
    K_CANONICAL_MISMATCH,
    K_DESCRIPTION,
    K_DUPLICATE_DESCRIPTION,
    K_DUPLICATE_TITLE,
    K_FINAL_URL,
    K_HARD_FAIL_CATEGORIES,
    K_HREFLANG_ERRORS,
    K_ISSUE_CATEGORIES,
    K_NEAR_DUPLICATE,
    K_NOINDEX_IN_SITEMAP,
    K_NON200,
    K_ORPHAN,
    K_REDIRECT_CHAINS,
    K_SCHEMA_ERRORS,
    K_STATUS,
    K_TITLE,
    K_URL,
    K_URLS,
    K_VERY_SHORT,
)
from .audit_config import AuditConfig
from .audit_utils import normalize_url, path_key
from .crawl import PageRecord
from .fingerprint import near_duplicate_pairs

IssueSet = Dict[str, List[Dict[str, Any]]]
LinkGraph = Dict[str, int]


@dataclass
class Aggregation:
    issues: IssueSet
    inbound_links: LinkGraph

    @property
    def hard_fail(self) -> bool:
        return is_hard_fail(self.issues)


def empty_issue_set() -> IssueSet:
    return {category: [] for category in K_ISSUE_CATEGORIES}


def is_hard_fail(issues: IssueSet) -> bool:
    return any(issues.get(category) for category in K_HARD_FAIL_CATEGORIES)


def build_link_graph(pages: Iterable[PageRecord]) -> LinkGraph:
    """Count inbound references per normalized path across all crawled pages."""

    inbound: Counter = Counter()
    for page in pages:
        for link in page.internal_links:
            inbound[path_key(link)] += 1
    return dict(sorted(inbound.items()))


def _index_pages(pages: Sequence[PageRecord]) -> Dict[str, PageRecord]:
    by_path: Dict[str, PageRecord] = {}
    for page in pages:
        by_path.setdefault(path_key(page.final_url or page.url), page)
    for page in pages:
        by_path.setdefault(path_key(page.url), page)
    return by_path


def _page_identity(page: PageRecord) -> str:
    return path_key(page.final_url or page.url)


def _group_duplicates(pages: Sequence[PageRecord], attr: str) -> List[Dict[str, Any]]:
    """Group by exact trimmed value; a page reached through several targets counts once."""

    groups: Dict[str, Dict[str, str]] = {}
    for page in pages:
        value = getattr(page, attr)
        key = value.strip() if value else ""
        if not key:
            continue
        groups.setdefault(key, {}).setdefault(_page_identity(page), page.url)
    return [
        {attr: key, K_URLS: list(by_identity.values())}
        for key, by_identity in groups.items()
        if len(by_identity) > 1
    ]


def _very_short_entry(page: PageRecord, config: AuditConfig) -> Optional[Dict[str, Any]]:
    s = page.signals
    reasons = []
    if s.main_content_words < config.very_short_words:
        reasons.append("lowWords")
    if s.info_points < config.min_info_points:
        reasons.append("lowInfoPoints")
    if not reasons:
        return None
    return {
        K_URL: page.url,
        "reasons": reasons,
        "words": s.main_content_words,
        "info_points": s.info_points,
        "info_points_breakdown": dict(s.info_points_breakdown),
        "sample": s.main_content_sample,
    }


def aggregate_issues(
    pages: Sequence[PageRecord],
    sitemap_urls: Sequence[str],
    config: AuditConfig,
) -> Aggregation:
    issues = empty_issue_set()
    inbound = build_link_graph(pages)
    by_path = _index_pages(pages)
    sitemap_keys = {path_key(url) for url in sitemap_urls}

    for page in pages:
        in_sitemap = path_key(page.url) in sitemap_keys or path_key(page.final_url) in sitemap_keys
        chain = [hop.to_dict() for hop in page.redirect_chain]

        if in_sitemap and not page.ok:
            entry = {K_URL: page.url, K_FINAL_URL: page.final_url, K_STATUS: page.status, "redirect_chain": chain}
            if page.error:
                entry["error"] = page.error
            issues[K_NON200].append(entry)

        if len(page.redirect_chain) > 2:
            issues[K_REDIRECT_CHAINS].append({K_URL: page.url, K_FINAL_URL: page.final_url, "chain": chain})

        if page.canonical and normalize_url(page.canonical) != normalize_url(page.canonical_expected):
            issues[K_CANONICAL_MISMATCH].append(
                {
                    K_URL: page.url,
                    K_FINAL_URL: page.final_url,
                    "canonical": page.canonical,
                    "expected": page.canonical_expected,
                }
            )

        if in_sitemap and page.noindex:
            issues[K_NOINDEX_IN_SITEMAP].append({K_URL: page.url, "robots": page.robots})

        if page.signals.schema_errors:
            issues[K_SCHEMA_ERRORS].append(
                {K_URL: page.url, "errors": [dict(e) for e in page.signals.schema_errors]}
            )

        bad_hreflang = page.signals.hreflang_errors
        if bad_hreflang:
            issues[K_HREFLANG_ERRORS].append({K_URL: page.url, "bad": [h.to_dict() for h in bad_hreflang]})

        # Thin content is judged on delivered pages only; failures land in non200
        if page.ok:
            entry = _very_short_entry(page, config)
            if entry:
                issues[K_VERY_SHORT].append(entry)

        for link in page.internal_links:
            target = by_path.get(path_key(link))
            if target is None or target.reachable:
                continue
            issues[K_BAD_LINKS].append(
                {"from": page.url, "to": link, K_STATUS: target.status, K_FINAL_URL: target.final_url}
            )

    for url in sitemap_urls:
        key = path_key(url)
        if key != "/" and inbound.get(key, 0) == 0:
            issues[K_ORPHAN].append({K_URL: url})

    issues[K_DUPLICATE_TITLE] = _group_duplicates(pages, K_TITLE)
    issues[K_DUPLICATE_DESCRIPTION] = _group_duplicates(pages, K_DESCRIPTION)

    fingerprinted: Dict[str, PageRecord] = {}
    for page in pages:
        if page.fingerprint and page.signals.main_content_words > 0:
            fingerprinted.setdefault(_page_identity(page), page)
    fingerprints = [
        {K_URL: page.url, "type": page.page_type, "fingerprint": page.fingerprint}
        for page in fingerprinted.values()
    ]
    issues[K_NEAR_DUPLICATE] = near_duplicate_pairs(
        fingerprints,
        max_distance=config.near_duplicate_max_distance,
        limit=config.near_duplicate_max_pairs,
    )
    return Aggregation(issues=issues, inbound_links=inbound)


__all__ = [
    "IssueSet",
    "LinkGraph",
    "Aggregation",
    "empty_issue_set",
    "is_hard_fail",
    "build_link_graph",
    "aggregate_issues",
]
