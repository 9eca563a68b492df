from __future__ import annotations

import json
import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple
from urllib.parse import urlparse

from ..core.keys import K_HARD_FAIL_CATEGORIES, K_ISSUE_CATEGORIES, K_ISSUES, K_NEAR_DUPLICATE, K_PAGES
from .audit_config import AuditConfig
from .crawl import PageRecord
from .issues import Aggregation

logger = logging.getLogger(__name__)

REPORT_PREFIX = "seo-audit"
_HOST_SLUG_RE = re.compile(r"[^a-z0-9.-]", re.IGNORECASE)


def _iso(ts: datetime) -> str:
    return ts.astimezone(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def report_stamp(now: datetime) -> str:
    return now.strftime("%Y%m%d-%H%M%S")


def host_slug(base_url: str) -> str:
    return _HOST_SLUG_RE.sub("_", urlparse(base_url).netloc or "unknown")


def build_report(
    config: AuditConfig,
    targets: Sequence[str],
    sitemap_urls: Sequence[str],
    pages: Sequence[PageRecord],
    aggregation: Aggregation,
    *,
    started_at: datetime,
    finished_at: datetime,
) -> Dict[str, Any]:
    issues = aggregation.issues
    return {
        "base_url": config.base_url,
        "preferred_site_url": config.preferred_origin,
        "collected_at": _iso(finished_at),
        "duration_ms": int((finished_at - started_at).total_seconds() * 1000),
        "targets": list(targets),
        K_PAGES: [page.to_dict() for page in pages],
        "counts": {
            "total_targets": len(targets),
            "sitemap_urls": len(sitemap_urls),
            "crawled": len(pages),
            "ok": sum(1 for page in pages if page.ok),
            "failed": sum(1 for page in pages if page.error),
            K_ISSUES: {category: len(issues.get(category, [])) for category in K_ISSUE_CATEGORIES},
        },
        K_ISSUES: {category: issues.get(category, []) for category in K_ISSUE_CATEGORIES},
        "inbound_links": dict(aggregation.inbound_links),
        "thresholds": config.thresholds(),
        "hard_fail_categories": [c for c in K_HARD_FAIL_CATEGORIES if issues.get(c)],
        "hard_fail": aggregation.hard_fail,
    }


def render_summary(report: Dict[str, Any], examples: int = 50) -> str:
    """Condensed markdown view: per-category counts plus the first ``examples`` entries."""

    counts = report.get("counts") or {}
    lines: List[str] = []
    lines.append(f"# SEO Audit ({report.get('base_url')})")
    lines.append(f"preferred_site_url: {report.get('preferred_site_url')}")
    lines.append(
        f"checked: {counts.get('sitemap_urls', 0)} sitemap URLs, {counts.get('total_targets', 0)} total targets"
    )
    lines.append(f"collected_at: {report.get('collected_at')}")
    lines.append(f"duration_ms: {report.get('duration_ms')}")
    verdict = "FAIL" if report.get("hard_fail") else "OK"
    failing = report.get("hard_fail_categories") or []
    lines.append(f"verdict: {verdict}" + (f" ({', '.join(failing)})" if failing else ""))
    lines.append("")
    issues = report.get(K_ISSUES) or {}
    for category in K_ISSUE_CATEGORIES:
        items = issues.get(category) or []
        label = category
        if category == K_NEAR_DUPLICATE:
            distance = (report.get("thresholds") or {}).get("near_duplicate_max_distance")
            label = f"{category} (pairs<={distance})"
        lines.append(f"## {label}")
        lines.append(f"count: {len(items)}")
        lines.append("")
        for item in items[:examples]:
            lines.append(f"- {json.dumps(item, ensure_ascii=False, sort_keys=True)}")
        if items:
            lines.append("")
    return "\n".join(lines).rstrip() + "\n"


def write_report(
    report: Dict[str, Any],
    reports_dir: Path,
    *,
    now: Optional[datetime] = None,
    examples: int = 50,
) -> Tuple[Path, Path]:
    """Persist the JSON report and the markdown summary; returns both paths."""

    stamp = report_stamp(now or datetime.now())
    stem = f"{REPORT_PREFIX}-{host_slug(str(report.get('base_url') or ''))}-{stamp}"
    try:
        reports_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise RuntimeError(f"Unable to create reports dir {reports_dir}: {exc}") from exc
    json_path = reports_dir / f"{stem}.json"
    md_path = reports_dir / f"{stem}.md"
    json_path.write_text(json.dumps(report, ensure_ascii=False, indent=2) + "\n", encoding="utf-8")
    md_path.write_text(render_summary(report, examples=examples), encoding="utf-8")
    logger.info("report written: %s", json_path)
    logger.info("summary written: %s", md_path)
    return json_path, md_path


__all__ = [
    "REPORT_PREFIX",
    "report_stamp",
    "host_slug",
    "build_report",
    "render_summary",
    "write_report",
]
