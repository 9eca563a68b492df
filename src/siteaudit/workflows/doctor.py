from __future__ import annotations

import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from bs4 import BeautifulSoup, FeatureNotFound

from .audit_config import AuditConfig


def _check_parser(feature: str) -> bool:
    try:
        BeautifulSoup("<a>ok</a>", feature)
    except FeatureNotFound:
        return False
    return True


def _check_origin(url: Optional[str]) -> bool:
    parsed = urlparse((url or "").strip())
    return parsed.scheme in {"http", "https"} and bool(parsed.hostname)


def _check_writable(path: Path) -> bool:
    try:
        if path.exists():
            return os.access(path, os.W_OK)
        parent = path.parent
        while not parent.exists() and parent != parent.parent:
            parent = parent.parent
        return os.access(parent, os.W_OK)
    except OSError:
        return False


def build_doctor_report(config: AuditConfig) -> Dict[str, Any]:
    report: Dict[str, Any] = {
        "generated_at": datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z"),
        "ok": True,
        "checks": [],
        "config": {
            "base_url": config.base_url,
            "preferred_origin": config.preferred_origin,
            "concurrency": config.concurrency,
            "timeout_seconds": config.timeout,
            "max_redirects": config.max_redirects,
            "max_pages": config.max_pages,
            "very_short_words": config.very_short_words,
            "min_info_points": config.min_info_points,
            "sitemap_path": config.sitemap_path,
            "reports_dir": config.reports_dir,
            "user_agent": config.user_agent,
        },
    }

    def add_check(
        name: str,
        status: bool,
        *,
        detail: Optional[str] = None,
        remedy: Optional[str] = None,
        level: str = "warn",
    ) -> None:
        entry = {
            "name": name,
            "status": "ok" if status else "missing",
            "level": level,
            "detail": detail,
        }
        if remedy:
            entry["remedy"] = remedy
        report["checks"].append(entry)
        if not status and level == "warn":
            report["ok"] = False

    add_check(
        "lxml",
        _check_parser("lxml"),
        detail="HTML parser used for page extraction",
        remedy="pip install lxml",
    )
    add_check(
        "lxml-xml",
        _check_parser("xml"),
        detail="XML parser used for sitemap parsing",
        remedy="pip install lxml",
    )
    add_check(
        "SEO_AUDIT_BASE_URL",
        _check_origin(config.base_url),
        detail=config.base_url,
        remedy="Set SEO_AUDIT_BASE_URL to an absolute http(s) origin.",
    )
    add_check(
        "SEO_PREFERRED_SITE_URL",
        _check_origin(config.preferred_site_url or config.base_url),
        detail=config.preferred_origin or None,
        remedy="Set SEO_PREFERRED_SITE_URL to an absolute http(s) origin.",
    )
    reports_dir = Path(config.reports_dir)
    add_check(
        "SEO_AUDIT_REPORTS_DIR",
        _check_writable(reports_dir),
        detail=str(reports_dir),
        remedy="Create the reports directory or point SEO_AUDIT_REPORTS_DIR at a writable location.",
    )
    return report


def format_doctor_report(report: Dict[str, Any]) -> str:
    lines: List[str] = []
    lines.append("Site audit doctor")
    lines.append(f"Generated: {report.get('generated_at')}")
    lines.append("")
    for check in report.get("checks", []):
        name = check.get("name", "check")
        status = check.get("status", "unknown")
        level = check.get("level", "info")
        lines.append(f"- [{level}] {name}: {status}")
        detail = check.get("detail")
        if detail:
            lines.append(f"  detail: {detail}")
        remedy = check.get("remedy")
        if remedy and status != "ok":
            lines.append(f"  remedy: {remedy}")
    config = report.get("config") or {}
    if config:
        lines.append("")
        lines.append("Effective configuration:")
        for key, value in config.items():
            lines.append(f"- {key}: {value}")
    return "\n".join(lines).rstrip() + "\n"
