"""Audit defaults (origins, headers, path taxonomy, thresholds) and AuditConfig.

Centralizes static defaults so the pipeline modules have no embedded magic
strings. ``AuditConfig`` is built once per run (usually from the environment)
and handed to every stage; nothing downstream reads ``os.environ``.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from typing import Mapping, Optional, Tuple
from urllib.parse import urlparse

# Endpoints / headers
DEFAULT_BASE_URL = "http://127.0.0.1:3000"
DEFAULT_SITEMAP_PATH = "/sitemap.xml"
DEFAULT_USER_AGENT = "siteaudit/1.0"
HDR_ACCEPT = "Accept"
HDR_USER_AGENT = "User-Agent"
HDR_LOCATION = "Location"
HDR_X_ROBOTS = "X-Robots-Tag"
ACCEPT_VALUE = "text/html,application/xml;q=0.9,*/*;q=0.8"

# Paths
DEFAULT_REPORTS_DIR = "reports"
SEED_PATHS = ("/", "/guides", "/glossary")
STATIC_PATHS = (
    "/",
    "/about",
    "/contact",
    "/privacy",
    "/terms",
    "/guides",
    "/glossary",
    "/search",
    "/robots.txt",
    "/sitemap.xml",
)
CATEGORY_PATHS = ("/paid-ads", "/saas-metrics", "/finance")

# Crawl limits
DEFAULT_CONCURRENCY = 15
DEFAULT_TIMEOUT_MS = 20000
DEFAULT_MAX_REDIRECTS = 10
DEFAULT_MAX_PAGES = 2000

# Thin content floors
DEFAULT_VERY_SHORT_WORDS = 80
DEFAULT_MIN_INFO_POINTS = 8
SUBSTANTIAL_PARAGRAPH_WORDS = 8

# Extraction / fingerprint limits
TEXT_SAMPLE_CHARS = 240
FINGERPRINT_SAMPLE_CHARS = 800
FINGERPRINT_MAX_TOKENS = 5000
SCHEMA_SNIPPET_CHARS = 220
HREFLANG_CODE_RE = re.compile(r"^(?:[a-z]{2}(?:-[A-Z]{2})?|x-default)$")

# Aggregation / report limits
NEAR_DUPLICATE_MAX_DISTANCE = 3
NEAR_DUPLICATE_MAX_PAIRS = 2000
SUMMARY_EXAMPLES = 50


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    try:
        raw = env.get(name, "")
        return int(raw) if raw.strip() else default
    except (TypeError, ValueError):
        return default


def _env_str(env: Mapping[str, str], name: str, default: str) -> str:
    raw = (env.get(name) or "").strip()
    return raw or default


def origin_of(url: str) -> str:
    """Return ``scheme://host[:port]`` with default ports dropped."""

    parsed = urlparse((url or "").strip())
    scheme = (parsed.scheme or "").lower()
    host = (parsed.hostname or "").lower()
    if not scheme or not host:
        return ""
    port = parsed.port
    if port and not ((scheme == "http" and port == 80) or (scheme == "https" and port == 443)):
        return f"{scheme}://{host}:{port}"
    return f"{scheme}://{host}"


@dataclass(frozen=True)
class AuditConfig:
    """Immutable run configuration shared read-only by all workers."""

    base_url: str = DEFAULT_BASE_URL
    preferred_site_url: Optional[str] = None
    concurrency: int = DEFAULT_CONCURRENCY
    timeout: float = DEFAULT_TIMEOUT_MS / 1000.0
    max_redirects: int = DEFAULT_MAX_REDIRECTS
    max_pages: int = DEFAULT_MAX_PAGES
    very_short_words: int = DEFAULT_VERY_SHORT_WORDS
    min_info_points: int = DEFAULT_MIN_INFO_POINTS
    sitemap_path: str = DEFAULT_SITEMAP_PATH
    reports_dir: str = DEFAULT_REPORTS_DIR
    user_agent: str = DEFAULT_USER_AGENT
    seed_paths: Tuple[str, ...] = SEED_PATHS
    static_paths: Tuple[str, ...] = STATIC_PATHS
    category_paths: Tuple[str, ...] = CATEGORY_PATHS
    near_duplicate_max_distance: int = NEAR_DUPLICATE_MAX_DISTANCE
    near_duplicate_max_pairs: int = NEAR_DUPLICATE_MAX_PAIRS
    summary_examples: int = SUMMARY_EXAMPLES

    def __post_init__(self) -> None:
        # Frozen: clamp through object.__setattr__
        object.__setattr__(self, "concurrency", max(1, int(self.concurrency)))
        object.__setattr__(self, "max_redirects", max(1, int(self.max_redirects)))
        object.__setattr__(self, "max_pages", max(1, int(self.max_pages)))
        object.__setattr__(self, "timeout", max(0.001, float(self.timeout)))

    @property
    def base_origin(self) -> str:
        return origin_of(self.base_url)

    @property
    def preferred_origin(self) -> str:
        return origin_of(self.preferred_site_url or self.base_url)

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "AuditConfig":
        """Build a config from ``SEO_*`` environment variables."""

        env = os.environ if env is None else env
        timeout_ms = _env_int(env, "SEO_AUDIT_TIMEOUT_MS", DEFAULT_TIMEOUT_MS)
        preferred = (env.get("SEO_PREFERRED_SITE_URL") or "").strip() or None
        return cls(
            base_url=_env_str(env, "SEO_AUDIT_BASE_URL", DEFAULT_BASE_URL),
            preferred_site_url=preferred,
            concurrency=_env_int(env, "SEO_AUDIT_CONCURRENCY", DEFAULT_CONCURRENCY),
            timeout=timeout_ms / 1000.0,
            max_redirects=_env_int(env, "SEO_AUDIT_MAX_REDIRECTS", DEFAULT_MAX_REDIRECTS),
            max_pages=_env_int(env, "SEO_AUDIT_MAX_CRAWL_PAGES", DEFAULT_MAX_PAGES),
            very_short_words=_env_int(env, "SEO_VERY_SHORT_WORDS", DEFAULT_VERY_SHORT_WORDS),
            min_info_points=_env_int(env, "SEO_MIN_INFO_POINTS", DEFAULT_MIN_INFO_POINTS),
            sitemap_path=_env_str(env, "SEO_AUDIT_SITEMAP_PATH", DEFAULT_SITEMAP_PATH),
            reports_dir=_env_str(env, "SEO_AUDIT_REPORTS_DIR", DEFAULT_REPORTS_DIR),
            user_agent=_env_str(env, "SEO_AUDIT_USER_AGENT", DEFAULT_USER_AGENT),
        )

    def thresholds(self) -> dict:
        return {
            "very_short_words": self.very_short_words,
            "min_info_points": self.min_info_points,
            "near_duplicate_max_distance": self.near_duplicate_max_distance,
            "near_duplicate_max_pairs": self.near_duplicate_max_pairs,
            "max_redirects": self.max_redirects,
            "max_pages": self.max_pages,
        }


ENV_VARS = (
    ("SEO_AUDIT_BASE_URL", "Origin to crawl."),
    ("SEO_PREFERRED_SITE_URL", "Preferred canonical origin (defaults to base)."),
    ("SEO_AUDIT_CONCURRENCY", "Concurrent fetch workers."),
    ("SEO_AUDIT_TIMEOUT_MS", "Per-request timeout in milliseconds."),
    ("SEO_AUDIT_MAX_REDIRECTS", "Redirect hop budget per target."),
    ("SEO_AUDIT_MAX_CRAWL_PAGES", "Cap on the number of targets."),
    ("SEO_VERY_SHORT_WORDS", "Thin-content word floor."),
    ("SEO_MIN_INFO_POINTS", "Thin-content information-point floor."),
    ("SEO_AUDIT_SITEMAP_PATH", "Sitemap path on the base origin."),
    ("SEO_AUDIT_REPORTS_DIR", "Directory for report artifacts."),
    ("SEO_AUDIT_USER_AGENT", "User-Agent sent with every request."),
)
