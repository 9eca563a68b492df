import asyncio
from typing import Awaitable, Callable, TypeVar

from aiohttp import test_utils, web

from siteaudit.workflows.audit_config import AuditConfig
from siteaudit.workflows.page_fetch import (
    REDIRECT_LOOP_ERROR,
    TIMEOUT_ERROR,
    PageFetcher,
    build_session,
    decode_body,
)

T = TypeVar("T")


def _redirect(location: str, status: int = 302) -> Callable[[web.Request], Awaitable[web.Response]]:
    async def handler(request: web.Request) -> web.Response:
        return web.Response(status=status, headers={"Location": location})

    return handler


async def _html(request: web.Request) -> web.Response:
    return web.Response(
        text="<html><head><title>End</title></head><body>ok</body></html>",
        content_type="text/html",
        headers={"X-Robots-Tag": "noindex"},
    )


async def _slow(request: web.Request) -> web.Response:
    await asyncio.sleep(0.5)
    return web.Response(text="late", content_type="text/html")


async def _binary(request: web.Request) -> web.Response:
    return web.Response(body=b"\x89PNG", content_type="image/png")


async def _latin1(request: web.Request) -> web.Response:
    body = "<html><head><title>Caf\u00e9</title></head></html>".encode("iso-8859-1")
    return web.Response(body=body, headers={"Content-Type": "text/html; charset=iso-8859-1"})


def _app() -> web.Application:
    app = web.Application()
    app.router.add_get("/start", _redirect("/mid", 302))
    app.router.add_get("/mid", _redirect("/end", 301))
    app.router.add_get("/end", _html)
    app.router.add_get("/loop", _redirect("/loop"))
    app.router.add_post("/form", _redirect("/landing", 303))
    app.router.add_get("/landing", _html)
    app.router.add_get("/slow", _slow)
    app.router.add_get("/binary", _binary)
    app.router.add_get("/latin1", _latin1)
    return app


def _with_fetcher(config: AuditConfig, body: Callable[[PageFetcher, test_utils.TestServer], Awaitable[T]]) -> T:
    async def _run() -> T:
        server = test_utils.TestServer(_app())
        await server.start_server()
        try:
            async with build_session(config) as session:
                return await body(PageFetcher(config, session), server)
        finally:
            await server.close()

    return asyncio.run(_run())


def test_follows_redirect_chain_manually() -> None:
    async def body(fetcher: PageFetcher, server: test_utils.TestServer):
        return await fetcher.fetch(str(server.make_url("/start")))

    outcome = _with_fetcher(AuditConfig(), body)

    assert outcome.status == 200
    assert outcome.error is None
    assert outcome.final_url.endswith("/end")
    assert [hop.status for hop in outcome.chain] == [302, 301, 200]
    assert outcome.chain[0].url.endswith("/start")
    assert outcome.is_html
    assert "<title>End</title>" in outcome.text
    assert outcome.x_robots_tag == "noindex"


def test_redirect_loop_exhausts_budget() -> None:
    async def body(fetcher: PageFetcher, server: test_utils.TestServer):
        return await fetcher.fetch(str(server.make_url("/loop")))

    outcome = _with_fetcher(AuditConfig(max_redirects=3), body)

    assert outcome.error == REDIRECT_LOOP_ERROR
    assert outcome.status == 0
    assert len(outcome.chain) == 3


def test_redirected_post_becomes_get() -> None:
    async def body(fetcher: PageFetcher, server: test_utils.TestServer):
        return await fetcher.fetch(str(server.make_url("/form")), method="POST")

    outcome = _with_fetcher(AuditConfig(), body)

    assert outcome.status == 200
    assert [hop.status for hop in outcome.chain] == [303, 200]


def test_timeout_is_captured() -> None:
    async def body(fetcher: PageFetcher, server: test_utils.TestServer):
        return await fetcher.fetch(str(server.make_url("/slow")))

    outcome = _with_fetcher(AuditConfig(timeout=0.1), body)

    assert outcome.error == TIMEOUT_ERROR
    assert outcome.status == 0
    assert not outcome.has_response


def test_connection_error_is_captured() -> None:
    async def body(fetcher: PageFetcher, server: test_utils.TestServer):
        return await fetcher.fetch(f"http://127.0.0.1:{test_utils.unused_port()}/nothing")

    outcome = _with_fetcher(AuditConfig(timeout=2), body)

    assert outcome.status == 0
    assert outcome.error
    assert outcome.error.startswith("Client")


def test_non_text_body_is_not_read() -> None:
    async def body(fetcher: PageFetcher, server: test_utils.TestServer):
        return await fetcher.fetch(str(server.make_url("/binary")))

    outcome = _with_fetcher(AuditConfig(), body)

    assert outcome.status == 200
    assert outcome.text == ""
    assert not outcome.is_html


def test_declared_charset_is_honoured() -> None:
    async def body(fetcher: PageFetcher, server: test_utils.TestServer):
        return await fetcher.fetch(str(server.make_url("/latin1")))

    outcome = _with_fetcher(AuditConfig(), body)

    assert outcome.status == 200
    assert "<title>Café</title>" in outcome.text


def test_decode_body_falls_back_when_charset_is_unknown() -> None:
    raw = "<p>naïve résumé café</p>".encode("utf-8")
    repeated = raw * 20
    assert decode_body(raw, {"content-type": "text/html; charset=utf-8"}) == "<p>naïve résumé café</p>"
    assert "café" in decode_body(repeated, {"content-type": "text/html; charset=no-such-codec"})
    assert decode_body(b"") == ""


def test_redirect_across_origins_records_every_hop() -> None:
    async def _run():
        target = test_utils.TestServer(_app())
        await target.start_server()
        source_app = web.Application()
        source_app.router.add_get("/moved", _redirect(str(target.make_url("/end")), 301))
        source = test_utils.TestServer(source_app)
        await source.start_server()
        try:
            config = AuditConfig(base_url=str(source.make_url("/")))
            async with build_session(config) as session:
                outcome = await PageFetcher(config, session).fetch(str(source.make_url("/moved")))
            return outcome, str(source.make_url("/")), str(target.make_url("/"))
        finally:
            await source.close()
            await target.close()

    outcome, source_root, target_root = asyncio.run(_run())

    assert source_root != target_root
    assert [hop.status for hop in outcome.chain] == [301, 200]
    assert outcome.chain[0].url.startswith(source_root)
    assert outcome.chain[1].url.startswith(target_root)
    assert outcome.final_url == target_root + "end"
    assert outcome.status == 200
    assert "<title>End</title>" in outcome.text
