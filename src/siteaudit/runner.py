from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from .workflows.audit_config import AuditConfig
from .workflows.crawl import crawl_targets
from .workflows.issues import aggregate_issues
from .workflows.page_fetch import PageFetcher, build_session
from .workflows.report import build_report, write_report
from .workflows.sitemap import fetch_sitemap, resolve_targets

logger = logging.getLogger(__name__)


@dataclass
class AuditRun:
    report: Dict[str, Any]
    json_path: Path
    md_path: Path

    @property
    def hard_fail(self) -> bool:
        return bool(self.report.get("hard_fail"))

    @property
    def exit_code(self) -> int:
        return 1 if self.hard_fail else 0


async def collect_report(config: AuditConfig) -> Dict[str, Any]:
    """Resolve targets, crawl them, then aggregate once every worker is done.

    Raises ``SitemapError`` when the sitemap is unavailable.
    """
    started_at = datetime.now(timezone.utc)
    async with build_session(config) as session:
        sitemap_urls = await fetch_sitemap(PageFetcher(config, session))
        target_list = resolve_targets(sitemap_urls, config)
        logger.info(
            "resolved %d targets (%d from sitemap)",
            len(target_list.targets),
            len(target_list.sitemap_urls),
        )
        pages = await crawl_targets(list(target_list.targets), config, session)

    # Workers finish in arbitrary order; restore target order for stable output
    order = {url: idx for idx, url in enumerate(target_list.targets)}
    pages.sort(key=lambda page: order.get(page.url, len(order)))
    aggregation = aggregate_issues(pages, target_list.sitemap_urls, config)
    finished_at = datetime.now(timezone.utc)
    return build_report(
        config,
        target_list.targets,
        target_list.sitemap_urls,
        pages,
        aggregation,
        started_at=started_at,
        finished_at=finished_at,
    )


def run_audit(
    config: AuditConfig,
    *,
    reports_dir: Optional[Path] = None,
    now: Optional[datetime] = None,
) -> AuditRun:
    report = asyncio.run(collect_report(config))
    json_path, md_path = write_report(
        report,
        Path(reports_dir or config.reports_dir),
        now=now,
        examples=config.summary_examples,
    )
    return AuditRun(report=report, json_path=json_path, md_path=md_path)


__all__ = ["AuditRun", "collect_report", "run_audit"]
