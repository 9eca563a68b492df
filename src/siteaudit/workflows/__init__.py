"""High-level exports for the site audit workflows."""

from .audit_config import AuditConfig
from .crawl import PageRecord, crawl_targets
from .fingerprint import hamming_distance, simhash64
from .issues import Aggregation, aggregate_issues
from .page_fetch import FetchOutcome, PageFetcher, build_session
from .report import build_report, render_summary, write_report
from .sitemap import SitemapError, TargetList, fetch_sitemap, resolve_targets

__all__ = [
    "AuditConfig",
    "PageRecord",
    "crawl_targets",
    "hamming_distance",
    "simhash64",
    "Aggregation",
    "aggregate_issues",
    "FetchOutcome",
    "PageFetcher",
    "build_session",
    "build_report",
    "render_summary",
    "write_report",
    "SitemapError",
    "TargetList",
    "fetch_sitemap",
    "resolve_targets",
]
