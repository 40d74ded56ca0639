"""Same-host link discovery for the browser driver."""

import random
import re
from html.parser import HTMLParser
from typing import List, Optional
from urllib.parse import urljoin, urlsplit, urlunsplit

import httpx


# ── HTML parsers ───────────────────────────────────────────────

class _LinkExtractor(HTMLParser):
    """Extract <a href> / <area href> links from HTML."""

    def __init__(self):
        super().__init__()
        self.links: List[str] = []

    def handle_starttag(self, tag, attrs):
        if tag in ("a", "area"):
            for name, value in attrs:
                if name == "href" and value:
                    self.links.append(value)


# ── Helper functions ───────────────────────────────────────────

# Paths that very likely aren't HTML pages.
_SKIP_PATH = re.compile(r"\.(jpg|png|gif|pdf|exe|zip|js|json)$", re.I)


def extract_links(html: str) -> List[str]:
    """Extract all link href values from HTML."""
    parser = _LinkExtractor()
    parser.feed(html)
    parser.close()
    return parser.links


def normalize_url(url: str) -> str:
    """Drop the fragment; the browser doesn't reload for it."""
    parts = urlsplit(url)
    return urlunsplit((parts.scheme, parts.netloc, parts.path or "/", parts.query, ""))


def should_skip_url(url: str) -> bool:
    """Skip non-HTTP URLs and paths that look like binaries, scripts or JSON."""
    parts = urlsplit(url)
    if parts.scheme not in ("http", "https"):
        return True
    return bool(_SKIP_PATH.search(parts.path))


def candidate_links(page_url: str, hrefs: List[str], rng: Optional[random.Random] = None) -> List[str]:
    """
    Same-host crawl candidates from *hrefs*, resolved against *page_url*,
    deduplicated and randomly ordered.
    """
    host = urlsplit(page_url).netloc
    seen = {normalize_url(page_url)}
    links = []
    for href in hrefs:
        abs_url = normalize_url(urljoin(page_url, href))
        if abs_url in seen or should_skip_url(abs_url):
            continue
        if urlsplit(abs_url).netloc != host:
            continue
        seen.add(abs_url)
        links.append(abs_url)
    (rng or random).shuffle(links)
    return links


# ── Prober ─────────────────────────────────────────────────────

class LinkProber:
    """
    Checks that a crawl candidate is an HTML page before the browser goes there.

    Usage:
        prober = LinkProber(httpx.Client(timeout=10), logger)
        if prober.is_html("https://example.com/about"): ...
    """

    def __init__(self, client: Optional[httpx.Client] = None, logger=None):
        self.client = client or httpx.Client(verify=False, follow_redirects=True, timeout=10)
        self.logger = logger

    def is_html(self, url: str) -> bool:
        try:
            resp = self.client.head(url, follow_redirects=True)
            if resp.status_code in (405, 501):
                with self.client.stream("GET", url, follow_redirects=True) as resp:
                    return self._html_ok(resp)
            return self._html_ok(resp)
        except httpx.HTTPError as exc:
            if self.logger:
                self.logger.warn(f"Probe failed: {url}: {exc}")
            return False

    @staticmethod
    def _html_ok(resp: httpx.Response) -> bool:
        ctype = resp.headers.get("content-type", "").lower()
        return resp.status_code < 400 and "text/html" in ctype

    def close(self):
        self.client.close()
