import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

from siteaudit.core.keys import K_ISSUE_CATEGORIES, K_NON200, K_ORPHAN
from siteaudit.workflows.audit_config import AuditConfig
from siteaudit.workflows.crawl import PageRecord
from siteaudit.workflows.issues import Aggregation, empty_issue_set
from siteaudit.workflows.page_fetch import RedirectHop
from siteaudit.workflows.report import build_report, host_slug, render_summary, write_report

BASE = "http://127.0.0.1:3000"
STARTED = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


def _report(issues=None):
    config = AuditConfig(base_url=BASE, preferred_site_url="https://example.com")
    pages = [
        PageRecord(url=f"{BASE}/", final_url=f"{BASE}/", redirect_chain=(RedirectHop(f"{BASE}/", 200),), status=200),
        PageRecord(url=f"{BASE}/gone", final_url=f"{BASE}/gone", status=0, error="timeout"),
    ]
    aggregation = Aggregation(issues=issues or empty_issue_set(), inbound_links={"/gone": 1})
    return build_report(
        config,
        [p.url for p in pages],
        [f"{BASE}/gone"],
        pages,
        aggregation,
        started_at=STARTED,
        finished_at=STARTED + timedelta(seconds=2, milliseconds=500),
    )


def test_build_report_shape() -> None:
    issues = empty_issue_set()
    issues[K_NON200] = [{"url": f"{BASE}/gone", "status": 0}]
    report = _report(issues)

    assert report["base_url"] == BASE
    assert report["preferred_site_url"] == "https://example.com"
    assert report["collected_at"] == "2024-05-01T12:00:02Z"
    assert report["duration_ms"] == 2500
    assert list(report["issues"]) == list(K_ISSUE_CATEGORIES)
    assert report["counts"]["total_targets"] == 2
    assert report["counts"]["ok"] == 1
    assert report["counts"]["failed"] == 1
    assert report["counts"]["issues"][K_NON200] == 1
    assert report["hard_fail"] is True
    assert report["hard_fail_categories"] == [K_NON200]
    assert report["thresholds"]["very_short_words"] == 80
    assert report["inbound_links"] == {"/gone": 1}


def test_summary_is_deterministic_and_truncated() -> None:
    issues = empty_issue_set()
    issues[K_ORPHAN] = [{"url": f"{BASE}/p{i}"} for i in range(7)]
    report = _report(issues)

    first = render_summary(report, examples=3)
    second = render_summary(json.loads(json.dumps(report)), examples=3)

    assert first == second
    assert "verdict: OK" in first
    assert "## orphan\ncount: 7\n" in first
    assert f'- {{"url": "{BASE}/p2"}}' in first
    assert f"{BASE}/p3" not in first
    assert first.endswith("\n")


def test_write_report_paths(tmp_path: Path) -> None:
    report = _report()
    json_path, md_path = write_report(report, tmp_path / "reports", now=datetime(2024, 5, 1, 12, 0, 2))

    assert json_path.name == "seo-audit-127.0.0.1_3000-20240501-120002.json"
    assert md_path.name == "seo-audit-127.0.0.1_3000-20240501-120002.md"
    assert json.loads(json_path.read_text(encoding="utf-8"))["duration_ms"] == 2500
    assert md_path.read_text(encoding="utf-8").startswith(f"# SEO Audit ({BASE})")


def test_host_slug() -> None:
    assert host_slug("https://example.com") == "example.com"
    assert host_slug("") == "unknown"
