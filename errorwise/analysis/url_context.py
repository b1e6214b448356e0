"""URL context — fetch documentation pages referenced in the error text.

Only used for tiers with the url_scraping capability. Fetching is best effort:
a page that fails to load is logged and skipped, never failing the analysis.
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass

import httpx

logger = logging.getLogger(__name__)

MAX_URLS = 2
FETCH_TIMEOUT_SECONDS = 10.0
MAX_CONTENT_CHARS = 3000

_URL_PATTERN = re.compile(r"(https?://[^\s<>\"{}|\\^`\[\]]+)", re.IGNORECASE)
_SKIPPED_FRAGMENTS = ("localhost", "127.0.0.1", ".jpg", ".jpeg", ".png", ".gif", ".mp4")

_SCRIPT_BLOCK = re.compile(r"<script[^>]*>[\s\S]*?</script>", re.IGNORECASE)
_STYLE_BLOCK = re.compile(r"<style[^>]*>[\s\S]*?</style>", re.IGNORECASE)
_TAG = re.compile(r"<[^>]+>")
_TITLE = re.compile(r"<title[^>]*>([\s\S]*?)</title>", re.IGNORECASE)
_WHITESPACE = re.compile(r"\s+")

_HEADERS = {
    "User-Agent": "Mozilla/5.0 (compatible; ErrorWiseBot/1.0)",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
}


@dataclass(frozen=True)
class UrlContext:
    """Plain-text extract of one referenced page."""

    url: str
    content: str
    title: str = ""


def detect_urls(text: str | None) -> list[str]:
    """Return http(s) URLs in order of appearance, minus local hosts and media files."""
    if not text:
        return []
    urls: list[str] = []
    for url in _URL_PATTERN.findall(text):
        url = url.rstrip(".,;:)'")
        lower = url.lower()
        if any(fragment in lower for fragment in _SKIPPED_FRAGMENTS):
            continue
        if url not in urls:
            urls.append(url)
    return urls


def html_to_text(html: str, max_chars: int = MAX_CONTENT_CHARS) -> str:
    """Strip scripts, styles and tags; collapse whitespace; truncate."""
    text = _SCRIPT_BLOCK.sub("", html)
    text = _STYLE_BLOCK.sub("", text)
    text = _TAG.sub(" ", text)
    text = _WHITESPACE.sub(" ", text).strip()
    if len(text) > max_chars:
        text = text[:max_chars] + "..."
    return text


async def fetch_url(
    client: httpx.AsyncClient,
    url: str,
    max_chars: int = MAX_CONTENT_CHARS,
) -> UrlContext | None:
    try:
        resp = await client.get(url)
        resp.raise_for_status()
    except httpx.HTTPError as e:
        logger.warning("Failed to fetch %s: %s", url, e)
        return None

    html = resp.text
    title_match = _TITLE.search(html)
    title = _WHITESPACE.sub(" ", title_match.group(1)).strip() if title_match else ""
    content = html_to_text(html, max_chars)
    if not content:
        return None

    logger.info("Fetched %d chars of context from %s", len(content), url)
    return UrlContext(url=url, content=content, title=title)


async def fetch_url_context(
    text: str,
    max_urls: int = MAX_URLS,
    timeout: float = FETCH_TIMEOUT_SECONDS,
    max_chars: int = MAX_CONTENT_CHARS,
) -> list[UrlContext]:
    """Fetch up to ``max_urls`` pages referenced in ``text`` concurrently."""
    urls = detect_urls(text)[:max_urls]
    if not urls:
        return []

    logger.info("Found %d URL(s) in error text", len(urls))
    async with httpx.AsyncClient(timeout=timeout, follow_redirects=True, headers=_HEADERS) as client:
        results = await asyncio.gather(*(fetch_url(client, url, max_chars) for url in urls))

    return [ctx for ctx in results if ctx is not None]
