import asyncio

from siteaudit.workflows.audit_config import AuditConfig
from siteaudit.workflows.crawl import build_page_record, crawl_page, run_pool
from siteaudit.workflows.page_fetch import FetchOutcome, RedirectHop


def test_run_pool_bounds_in_flight_work() -> None:
    in_flight = 0
    peak = 0

    async def worker(item: int) -> int:
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.01)
        in_flight -= 1
        return item * 2

    results = asyncio.run(run_pool(range(20), worker, concurrency=4))

    assert sorted(results) == [i * 2 for i in range(20)]
    assert peak == 4


def test_run_pool_handles_empty_input() -> None:
    async def worker(item: int) -> int:
        return item

    assert asyncio.run(run_pool([], worker, concurrency=5)) == []


class _ExplodingFetcher:
    config = AuditConfig()

    async def fetch(self, url: str, method: str = "GET") -> FetchOutcome:
        if url.endswith("/boom"):
            raise ValueError("parser blew up")
        return FetchOutcome(
            url=url,
            final_url=url,
            chain=(RedirectHop(url, 200),),
            status=200,
            content_type="text/html",
            text="<html><head><title>Fine</title></head><body><main><p>ok</p></main></body></html>",
        )


def test_one_failing_target_does_not_affect_others() -> None:
    fetcher = _ExplodingFetcher()
    urls = ["http://127.0.0.1:3000/a", "http://127.0.0.1:3000/boom", "http://127.0.0.1:3000/b"]

    records = asyncio.run(run_pool(urls, lambda url: crawl_page(fetcher, url), concurrency=2))
    by_url = {record.url: record for record in records}

    assert by_url["http://127.0.0.1:3000/boom"].error == "ValueError: parser blew up"
    assert by_url["http://127.0.0.1:3000/a"].title == "Fine"
    assert by_url["http://127.0.0.1:3000/b"].ok


def test_build_page_record_merges_robots_sources() -> None:
    config = AuditConfig(base_url="http://127.0.0.1:3000", preferred_site_url="https://example.com")
    outcome = FetchOutcome(
        url="http://127.0.0.1:3000/finance/npv",
        final_url="http://127.0.0.1:3000/finance/npv",
        chain=(RedirectHop("http://127.0.0.1:3000/finance/npv", 200),),
        status=200,
        content_type="text/html; charset=utf-8",
        headers={"x-robots-tag": "noindex"},
        text='<html><head><meta name="robots" content="index, follow"></head><body><p>npv tool</p></body></html>',
    )

    record = build_page_record(outcome, config)

    assert record.page_type == "calculator"
    assert record.robots == "index, follow | noindex"
    assert record.noindex
    assert record.canonical_expected == "https://example.com/finance/npv"
    assert record.fingerprint != 0
    payload = record.to_dict()
    assert payload["type"] == "calculator"
    assert payload["fingerprint"] == str(record.fingerprint)
    assert "error" not in payload


def test_build_page_record_without_response() -> None:
    outcome = FetchOutcome(url="http://x/a", final_url="http://x/a", chain=(), error="timeout")
    record = build_page_record(outcome, AuditConfig())
    assert record.error == "timeout"
    assert record.status == 0
    assert not record.reachable
    assert record.to_dict()["error"] == "timeout"


def test_non_html_response_skips_extraction() -> None:
    outcome = FetchOutcome(
        url="http://x/feed",
        final_url="http://x/feed",
        chain=(RedirectHop("http://x/feed", 200),),
        status=200,
        content_type="application/xml",
        text="<rss><title>Feed</title></rss>",
    )
    record = build_page_record(outcome, AuditConfig())
    assert record.title is None
    assert record.fingerprint == 0
    assert record.signals.main_content_words == 0
