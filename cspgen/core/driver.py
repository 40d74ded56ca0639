"""Browser driver — visits pages under a report-only candidate policy."""

import json
import re
from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import Page, Route, sync_playwright

from cspgen.core.crawler import LinkProber, candidate_links, extract_links
from cspgen.core.errors import NavigationError
from cspgen.core.hashing import is_event_handler, make_record
from cspgen.core.models import HashKind, HashRecord, ViolationReport, VisitResult
from cspgen.core.policy import same_origin

REPORT_MARKER = "_csp-violation-report"

# Runs before any page script; forwards every violation to the console.
_LISTENER_JS = """
document.addEventListener('securitypolicyviolation', (e) => {
  console.log('%s' + JSON.stringify({
    blockedURI: e.blockedURI,
    columnNumber: e.columnNumber,
    disposition: e.disposition,
    documentURI: e.documentURI,
    effectiveDirective: e.effectiveDirective,
    lineNumber: e.lineNumber,
    sample: e.sample,
    type: e.type,
  }));
});
""" % REPORT_MARKER

_INLINE_CODE_JS = """
() => ({
  scripts: Array.from(document.querySelectorAll('script'))
    .filter(el => !el.src)
    .map(el => el.textContent),
  navTargets: Array.from(document.querySelectorAll(
      'a[href^="javascript:"], form[action^="javascript:"], iframe[src^="javascript:"]'))
    .map(el => {
      const attr = {a: 'href', form: 'action', iframe: 'src'}[el.localName];
      return {element: el.localName, attribute: attr, code: el[attr]};
    }),
  styles: Array.from(document.querySelectorAll('style')).map(el => el.textContent),
  styleAttributes: Array.from(document.querySelectorAll('[style]'))
    .map(el => ({element: el.localName, code: el.getAttribute('style')})),
  handlers: Array.from(document.querySelectorAll('*')).flatMap(el =>
    Array.from(el.attributes)
      .filter(a => a.localName.startsWith('on'))
      .map(a => ({element: el.localName, attribute: a.localName, code: a.value}))),
})
"""

_META_CSP = re.compile(r"<meta\b[^>]*\bhttp-equiv=['\"]?content-security-policy['\"]?[^>]*>", re.I)

_DEVICES = {"chromium": "Desktop Chrome", "firefox": "Desktop Firefox"}


class BrowserDriver(ABC):
    """Observes a site under a candidate policy."""

    @abstractmethod
    def visit(self, target_urls: List[str], prior_visited_urls: List[str],
              policy_string: str, headless: bool = True) -> VisitResult:
        """
        Visit *target_urls* (or exactly *prior_visited_urls* when given) with
        *policy_string* injected as Content-Security-Policy-Report-Only.
        """
        ...


def collect_inline_hashes(url: str, inline: Dict) -> List[HashRecord]:
    """HashRecords for the inline code units the page script returned."""
    records = [make_record(url, code, HashKind.SCRIPT) for code in inline.get("scripts", [])]
    records += [
        make_record(url, t["code"], HashKind.JS_NAV_SCRIPT, t["element"], t["attribute"])
        for t in inline.get("navTargets", [])
    ]
    records += [make_record(url, code, HashKind.STYLE) for code in inline.get("styles", [])]
    records += [
        make_record(url, s["code"], HashKind.STYLE_ATTRIBUTE, s["element"], "style")
        for s in inline.get("styleAttributes", [])
    ]
    records += [
        make_record(url, h["code"], HashKind.INLINE_EVENT, h["element"], h["attribute"])
        for h in inline.get("handlers", [])
        if is_event_handler(h["attribute"])
    ]
    return records


def filter_reports(raw_reports: Iterable[str], document_uri: str) -> List[ViolationReport]:
    """
    Decode the JSON reports captured from the console.

    Identical reports collapse into one, in first-seen order. Reports from
    iframes and other cross-origin documents are dropped; with no primary
    document nothing survives.
    """
    reports = (ViolationReport.from_event(json.loads(raw)) for raw in raw_reports)
    return [r for r in dict.fromkeys(reports) if same_origin(r.document_uri, document_uri)]


def rewrite_document(body: str, headers: Dict[str, str], policy_string: str, logger=None):
    """Strip any existing CSP from a top-level HTML response and set ours as report-only."""
    match = _META_CSP.search(body)
    if match:
        if logger:
            logger.warn(f"Existing CSP found in meta element; removing: {match.group(0)}")
        body = _META_CSP.sub("", body)

    headers = {k.lower(): v for k, v in headers.items()}
    for name in ("content-security-policy", "content-security-policy-report-only"):
        old = headers.pop(name, None)
        if old is not None and logger:
            logger.warn(f"Ignoring existing {name} header: {old}")
    headers["content-security-policy-report-only"] = policy_string
    headers.pop("content-length", None)
    return body, headers


class PlaywrightDriver(BrowserDriver):
    """
    BrowserDriver backed by Playwright.

    Usage:
        driver = PlaywrightDriver(browser="chromium", num_links=3, logger=log)
        result = driver.visit(["https://example.com/"], [], "default-src 'none'")
    """

    def __init__(self, browser: str = "chromium", num_links: int = 0, hash_inline: bool = True,
                 prober: Optional[LinkProber] = None, logger=None):
        if browser not in _DEVICES:
            raise ValueError(f"Unsupported browser: {browser}")
        self.browser = browser
        self.num_links = num_links
        self.hash_inline = hash_inline
        self.logger = logger
        self.prober = prober or LinkProber(logger=logger)

    # ── routing ────────────────────────────────────────────────

    def _route_handler(self, policy_string: str):
        def handle(route: Route):
            request = route.request
            # Only the main document of the top-level frame gets the policy.
            if not request.is_navigation_request() or request.frame.parent_frame is not None:
                route.continue_()
                return
            try:
                response = route.fetch()
                if "text/html" not in response.headers.get("content-type", ""):
                    route.fulfill(response=response)
                    return
                body, headers = rewrite_document(
                    response.text(), response.headers, policy_string, self.logger)
                route.fulfill(response=response, body=body, headers=headers)
            except PlaywrightError as exc:
                if self.logger:
                    self.logger.debug(f"Could not rewrite {request.url}: {exc}")
                route.continue_()
        return handle

    # ── navigation ─────────────────────────────────────────────

    def _goto(self, page: Page, url: str) -> None:
        if self.logger:
            self.logger.debug(f"Visiting {url}")
        response = page.goto(url)
        if response is not None and response.status >= 400:
            raise NavigationError(response.url, response.status)
        page.wait_for_load_state("load")
        page.wait_for_load_state("networkidle")

    def _hashes(self, page: Page) -> List[HashRecord]:
        if not self.hash_inline:
            return []
        return collect_inline_hashes(page.url, page.evaluate(_INLINE_CODE_JS))

    def _crawl(self, page: Page, result: VisitResult) -> None:
        links = candidate_links(page.url, extract_links(page.content()))
        if self.logger:
            self.logger.debug(f"{len(links)} candidate link(s) found on {page.url}")
        visited = 0
        for link in links:
            if visited >= self.num_links:
                break
            if not self.prober.is_html(link):
                if self.logger:
                    self.logger.debug(f"Link {link} not text/html; skipping")
                continue
            self._goto(page, link)
            result.hashes.extend(self._hashes(page))
            result.visited_urls.append(page.url)
            visited += 1

    def visit(self, target_urls: List[str], prior_visited_urls: List[str],
              policy_string: str, headless: bool = True) -> VisitResult:
        if self.logger:
            self.logger.debug(
                f"Visiting {target_urls} with Content-Security-Policy-Report-Only: {policy_string}")
        result = VisitResult()
        raw_reports: Dict[str, None] = {}

        def on_console(msg):
            text = msg.text
            if text.startswith(REPORT_MARKER):
                raw_reports[text[len(REPORT_MARKER):]] = None

        with sync_playwright() as p:
            engine = p.chromium if self.browser == "chromium" else p.firefox
            browser = engine.launch(headless=headless)
            try:
                context = browser.new_context(**p.devices[_DEVICES[self.browser]])
                page = context.new_page()
                page.add_init_script(script=_LISTENER_JS)
                page.on("console", on_console)
                page.route("**/*", self._route_handler(policy_string))

                if prior_visited_urls:
                    # Later rounds: same pages as the first round, nothing new.
                    for url in prior_visited_urls:
                        self._goto(page, url)
                        result.document_uri = result.document_uri or page.url
                    result.visited_urls = list(prior_visited_urls)
                else:
                    for url in target_urls:
                        self._goto(page, url)
                        result.document_uri = result.document_uri or page.url
                        result.visited_urls.append(page.url)
                        result.hashes.extend(self._hashes(page))
                        if self.num_links > 0:
                            self._crawl(page, result)

                if not headless:
                    # Keep collecting until the user closes the window.
                    page.wait_for_event("close", timeout=0)
                else:
                    page.unroute_all(behavior="ignoreErrors")
                context.close()
            finally:
                browser.close()

        result.hashes_were_added = bool(result.hashes)
        result.reports = filter_reports(raw_reports, result.document_uri)
        return result
