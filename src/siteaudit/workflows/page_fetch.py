from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple
from urllib.parse import urljoin

import aiohttp
from charset_normalizer import from_bytes

from ..core.keys import K_STATUS, K_URL
from .audit_config import (
    ACCEPT_VALUE,
    HDR_ACCEPT,
    HDR_LOCATION,
    HDR_USER_AGENT,
    HDR_X_ROBOTS,
    AuditConfig,
)

logger = logging.getLogger(__name__)

_CHARSET_RE = re.compile(r"charset=([^\s;]+)", re.I)

REDIRECT_LOOP_ERROR = "redirect loop"
TIMEOUT_ERROR = "timeout"


@dataclass(frozen=True)
class RedirectHop:
    url: str
    status: int

    def to_dict(self) -> Dict[str, Any]:
        return {K_URL: self.url, K_STATUS: self.status}


@dataclass
class FetchOutcome:
    """Result of one redirect-following fetch.

    ``status`` is the terminal response status, or ``0`` when no terminal
    response was obtained (network failure, timeout, hop budget exhausted).
    """

    url: str
    final_url: str
    chain: Tuple[RedirectHop, ...]
    status: int = 0
    content_type: str = ""
    headers: Dict[str, str] = field(default_factory=dict)
    text: str = ""
    error: Optional[str] = None

    @property
    def has_response(self) -> bool:
        return self.status > 0

    @property
    def is_html(self) -> bool:
        return "text/html" in self.content_type.lower()

    @property
    def x_robots_tag(self) -> Optional[str]:
        value = self.headers.get(HDR_X_ROBOTS.lower())
        return value.strip() if value else None


def _is_textual(content_type: str) -> bool:
    lowered = content_type.lower()
    return not lowered or "html" in lowered or "xml" in lowered


def decode_body(body: bytes, headers: Optional[Mapping[str, str]] = None) -> str:
    """Decode with the declared charset, else let charset-normalizer guess."""

    if not body:
        return ""
    match = _CHARSET_RE.search((headers or {}).get("content-type", ""))
    if match:
        try:
            return body.decode(match.group(1).strip(" \"'").lower(), errors="replace")
        except LookupError:
            logger.debug("unknown declared charset %r, detecting", match.group(1))
    best = from_bytes(body).best()
    if best is None:
        return body.decode("utf-8", errors="replace")
    return str(best)


def build_session(config: AuditConfig) -> aiohttp.ClientSession:
    """Create the shared session; the connector limit mirrors worker concurrency."""

    connector = aiohttp.TCPConnector(limit=config.concurrency)
    headers = {
        HDR_USER_AGENT: config.user_agent,
        HDR_ACCEPT: ACCEPT_VALUE,
    }
    return aiohttp.ClientSession(connector=connector, headers=headers)


class PageFetcher:
    """Manual redirect follower with a per-request timeout and a hop budget."""

    def __init__(self, config: AuditConfig, session: aiohttp.ClientSession) -> None:
        self.config = config
        self.session = session
        self._timeout = aiohttp.ClientTimeout(total=config.timeout)

    async def fetch(self, url: str, method: str = "GET", *, read_body: bool = False) -> FetchOutcome:
        """Follow redirects from ``url``; ``read_body`` reads the body whatever its content type."""

        chain: List[RedirectHop] = []
        current = url
        for _ in range(self.config.max_redirects):
            try:
                async with self.session.request(
                    method,
                    current,
                    allow_redirects=False,
                    timeout=self._timeout,
                ) as resp:
                    status = resp.status
                    chain.append(RedirectHop(current, status))
                    location = resp.headers.get(HDR_LOCATION)
                    if 300 <= status < 400 and location:
                        current = urljoin(current, location.strip())
                        # Redirected requests degrade to GET, as browsers do
                        method = "GET"
                        continue
                    content_type = resp.headers.get("Content-Type", "")
                    text = ""
                    headers = {k.lower(): v for k, v in resp.headers.items()}
                    if method != "HEAD" and (read_body or _is_textual(content_type)):
                        text = decode_body(await resp.read(), headers)
                    return FetchOutcome(
                        url=url,
                        final_url=current,
                        chain=tuple(chain),
                        status=status,
                        content_type=content_type,
                        headers=headers,
                        text=text,
                    )
            except asyncio.TimeoutError:
                logger.debug("timeout fetching %s", current)
                return FetchOutcome(url=url, final_url=current, chain=tuple(chain), error=TIMEOUT_ERROR)
            except aiohttp.ClientError as exc:
                logger.debug("network error fetching %s: %s", current, exc)
                return FetchOutcome(
                    url=url,
                    final_url=current,
                    chain=tuple(chain),
                    error=f"{type(exc).__name__}: {exc}",
                )
        logger.debug("redirect budget exhausted for %s after %d hops", url, len(chain))
        return FetchOutcome(url=url, final_url=current, chain=tuple(chain), error=REDIRECT_LOOP_ERROR)


__all__ = [
    "RedirectHop",
    "FetchOutcome",
    "PageFetcher",
    "build_session",
    "decode_body",
    "REDIRECT_LOOP_ERROR",
    "TIMEOUT_ERROR",
]
