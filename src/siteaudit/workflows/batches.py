"""Remediation batches: pick a focused slice of audit issues and track fixes.

A batch groups the URLs affected by one issue category within one page
classification. ``plan_batch`` records the "before" state of those pages;
``snapshot_batch`` captures the same fields from a newer audit report and
writes the per-field changes.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from ..core.keys import (
    K_BAD_LINKS,
    K_CANONICAL_MISMATCH,
    K_DESCRIPTION,
    K_DUPLICATE_DESCRIPTION,
    K_DUPLICATE_TITLE,
    K_FINAL_URL,
    K_HREFLANG_ERRORS,
    K_ISSUES,
    K_NEAR_DUPLICATE,
    K_NOINDEX_IN_SITEMAP,
    K_NON200,
    K_ORPHAN,
    K_PAGES,
    K_REDIRECT_CHAINS,
    K_SCHEMA_ERRORS,
    K_STATUS,
    K_TITLE,
    K_URL,
    K_URLS,
    K_VERY_SHORT,
)
from .report import REPORT_PREFIX

BATCH_PRIORITY = (
    K_NON200,
    K_REDIRECT_CHAINS,
    K_CANONICAL_MISMATCH,
    K_HREFLANG_ERRORS,
    K_NOINDEX_IN_SITEMAP,
    K_DUPLICATE_TITLE,
    K_DUPLICATE_DESCRIPTION,
    K_VERY_SHORT,
    K_ORPHAN,
    K_BAD_LINKS,
    K_SCHEMA_ERRORS,
    K_NEAR_DUPLICATE,
)
DIFF_FIELDS = (
    K_FINAL_URL,
    K_STATUS,
    K_TITLE,
    K_DESCRIPTION,
    "canonical",
    "robots",
    "noindex",
    "main_content_words",
    "info_points",
)
MAX_BATCH_URLS = 10


def _utc_now() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def _write_json(path: Path, payload: Any) -> None:
    path.write_text(json.dumps(payload, ensure_ascii=False, indent=2) + "\n", encoding="utf-8")


def _dedupe(items: List[str]) -> List[str]:
    return list(dict.fromkeys(items))


def latest_report(reports_dir: Path) -> Optional[Path]:
    """Return the most recently modified ``seo-audit-*.json`` report, if any."""

    if not reports_dir.exists():
        return None
    candidates = sorted(
        reports_dir.glob(f"{REPORT_PREFIX}-*.json"),
        key=lambda p: p.stat().st_mtime,
        reverse=True,
    )
    return candidates[0] if candidates else None


def load_report(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"Audit report not found: {path}")
    return json.loads(path.read_text(encoding="utf-8"))


def issue_urls(category: str, item: Any) -> List[str]:
    """URLs a single issue entry points at."""

    if not item:
        return []
    if isinstance(item, str):
        return [item]
    if category in (K_DUPLICATE_TITLE, K_DUPLICATE_DESCRIPTION):
        return list(item.get(K_URLS) or [])
    if category == K_BAD_LINKS:
        return [item["from"]] if item.get("from") else []
    if category == K_NEAR_DUPLICATE:
        return _dedupe([u for u in (item.get("a"), item.get("b")) if u])
    return [item[K_URL]] if item.get(K_URL) else []


def build_batch_candidates(report: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Group issue URLs by (category, classification) in priority order.

    Within a category, larger groups come first.
    """
    pages_by_url = {page.get(K_URL): page for page in report.get(K_PAGES) or []}
    issues = report.get(K_ISSUES) or {}
    out: List[Dict[str, Any]] = []
    for category in BATCH_PRIORITY:
        groups: Dict[str, Dict[str, Any]] = {}
        for item in issues.get(category) or []:
            for url in issue_urls(category, item):
                classification = (pages_by_url.get(url) or {}).get("type") or "unknown"
                group = groups.setdefault(
                    classification,
                    {"issue_type": category, "classification": classification, "items": []},
                )
                group["items"].append({K_URL: url, "evidence": item})
        out.extend(sorted(groups.values(), key=lambda g: len(g["items"]), reverse=True))
    return out


def page_snapshot(page: Optional[Dict[str, Any]], url: str) -> Dict[str, Any]:
    if not page:
        return {K_URL: url}
    return {
        K_URL: page.get(K_URL),
        K_FINAL_URL: page.get(K_FINAL_URL),
        K_STATUS: page.get(K_STATUS),
        K_TITLE: page.get(K_TITLE),
        K_DESCRIPTION: page.get(K_DESCRIPTION),
        "canonical": page.get("canonical"),
        "robots": page.get("robots"),
        "noindex": page.get("noindex"),
        "main_content_words": page.get("main_content_words"),
        "info_points": page.get("info_points"),
        "schema_types": list((page.get("schema") or {}).get("parsed_types") or []),
        "sample": page.get("main_content_sample"),
    }


def _render_plan(plan: Dict[str, Any]) -> str:
    lines: List[str] = []
    lines.append(f"# Batch {plan.get('batch_id')}")
    lines.append("")
    lines.append(f"- issue_type: {plan.get('issue_type')}")
    lines.append(f"- classification: {plan.get('classification')}")
    lines.append(f"- urls: {len(plan.get('urls') or [])}")
    lines.append(f"- audit: {plan.get('audit_report')}")
    lines.append("")
    for url in plan.get(K_URLS) or []:
        lines.append(f"- {url}")
    return "\n".join(lines).rstrip() + "\n"


def plan_batch(
    report: Dict[str, Any],
    report_path: Path,
    out_dir: Path,
    *,
    batch_id: str = "001",
    max_urls: int = MAX_BATCH_URLS,
) -> Optional[Dict[str, Any]]:
    """Write ``plan.json``, ``before.json`` and ``plan.md``; None when nothing to batch."""

    pick = next((c for c in build_batch_candidates(report) if c["items"]), None)
    if pick is None:
        return None
    urls = _dedupe([item[K_URL] for item in pick["items"]])[:max_urls]
    pages_by_url = {page.get(K_URL): page for page in report.get(K_PAGES) or []}
    plan = {
        "batch_id": batch_id,
        "created_at": _utc_now(),
        "audit_report": str(report_path),
        "base_url": report.get("base_url"),
        "preferred_site_url": report.get("preferred_site_url"),
        "issue_type": pick["issue_type"],
        "classification": pick["classification"],
        K_URLS: urls,
    }
    out_dir.mkdir(parents=True, exist_ok=True)
    _write_json(out_dir / "plan.json", plan)
    _write_json(out_dir / "before.json", [page_snapshot(pages_by_url.get(url), url) for url in urls])
    (out_dir / "plan.md").write_text(_render_plan(plan), encoding="utf-8")
    return plan


def diff_snapshots(before: Optional[Dict[str, Any]], after: Optional[Dict[str, Any]]) -> List[Dict[str, Any]]:
    before = before or {}
    after = after or {}
    changes: List[Dict[str, Any]] = []
    for name in DIFF_FIELDS:
        if before.get(name) != after.get(name):
            changes.append({"field": name, "before": before.get(name), "after": after.get(name)})
    return changes


def snapshot_batch(
    batch_dir: Path,
    report: Dict[str, Any],
    *,
    name: str = "after",
) -> Tuple[Path, Path]:
    """Snapshot the plan URLs from ``report`` and diff them against ``before.json``."""

    plan_path = batch_dir / "plan.json"
    if not plan_path.exists():
        raise FileNotFoundError(f"Batch plan not found: {plan_path}")
    plan = json.loads(plan_path.read_text(encoding="utf-8"))
    urls = list(plan.get(K_URLS) or [])
    pages_by_url = {page.get(K_URL): page for page in report.get(K_PAGES) or []}
    snapshot = [page_snapshot(pages_by_url.get(url), url) for url in urls]

    before_path = batch_dir / "before.json"
    before: List[Dict[str, Any]] = []
    if before_path.exists():
        before = json.loads(before_path.read_text(encoding="utf-8"))
    before_by_url = {item.get(K_URL): item for item in before}
    after_by_url = {item.get(K_URL): item for item in snapshot}

    changed_at = _utc_now()
    change_log: List[Dict[str, Any]] = []
    for url in urls:
        changes = diff_snapshots(before_by_url.get(url), after_by_url.get(url))
        if changes:
            change_log.append({K_URL: url, "changed_at": changed_at, "changes": changes})

    snapshot_path = batch_dir / f"{name}.json"
    changes_path = batch_dir / "changes.json"
    _write_json(snapshot_path, snapshot)
    _write_json(changes_path, change_log)
    return snapshot_path, changes_path


__all__ = [
    "BATCH_PRIORITY",
    "DIFF_FIELDS",
    "latest_report",
    "load_report",
    "issue_urls",
    "build_batch_candidates",
    "page_snapshot",
    "plan_batch",
    "diff_snapshots",
    "snapshot_batch",
]
