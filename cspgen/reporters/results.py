"""Results reporter — renders a GenerationResult for the terminal."""

from dataclasses import dataclass
from typing import List, Optional, Set, Tuple

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.text import Text

from cspgen.core.models import GenerationResult, HashKind, Severity, ViolationReport
from cspgen.core.policy import UNSAFE_HASHES

_RESOURCE_DIRECTIVES = {"connect-src", "font-src", "img-src", "manifest-src", "media-src", "object-src"}

_SEVERITY_STYLE = {
    Severity.HIGH: "red",
    Severity.HIGH_MAYBE: "red",
    Severity.MEDIUM: "yellow",
    Severity.MEDIUM_MAYBE: "yellow",
}

OWASP_REFACTOR = ("https://cheatsheetseries.owasp.org/cheatsheets/"
                  "Content_Security_Policy_Cheat_Sheet.html#refactoring-inline-code")


@dataclass
class InlineSummary:
    """Which kinds of inline code the pages contained."""
    script: bool = False
    event: bool = False
    js_nav: bool = False
    style: bool = False
    style_attribute: bool = False


def describe_report(report: ViolationReport) -> Tuple[str, str]:
    """(directive, human description) for one violation report."""
    directive = report.effective_directive
    where = report.document_uri
    if report.line_number > 0:
        where += f" line {report.line_number}"

    if directive == "script-src-elem":
        if report.blocked_uri == "inline":
            return directive, f"Execution of inline script on {where}"
        return directive, f"Execution of script {report.blocked_uri} on {where}"
    if directive == "script-src-attr":
        return directive, f"Execution of inline script in event handler on {where}"
    if directive == "style-src-elem":
        return directive, where
    if directive == "style-src-attr":
        return directive, f"Style in attribute on {where}"
    if directive in _RESOURCE_DIRECTIVES:
        return directive, f"Resource {report.blocked_uri} on {where}"
    return directive, f"{report.blocked_uri} on {where}"


def summarize_inline(result: GenerationResult) -> InlineSummary:
    return InlineSummary(
        script=bool(result.hashes_of(HashKind.SCRIPT)),
        event=bool(result.hashes_of(HashKind.INLINE_EVENT)),
        js_nav=bool(result.hashes_of(HashKind.JS_NAV_SCRIPT)),
        style=bool(result.hashes_of(HashKind.STYLE)),
        style_attribute=bool(result.hashes_of(HashKind.STYLE_ATTRIBUTE)),
    )


def recommendations(result: GenerationResult, inline: InlineSummary) -> List[str]:
    """Advice derived from inline code kinds and finding types."""
    types: Set[str] = {f.type.name for f in result.findings}
    recs = []

    if "SCRIPT_UNSAFE_INLINE" in types:
        recs.append(
            "The generated CSP allows inline scripts, defeating much of the purpose of CSP.\n"
            "  This is because the CSP could not be made stronger without breaking functionality.\n"
            "  See the recommendation(s) below, with details above, for how to remedy the situation.")
    if inline.script or "SCRIPT_UNSAFE_INLINE" in types:
        recs.append(f"Move inline scripts to separate files. See:\n  - {OWASP_REFACTOR}")
    if inline.event or "SCRIPT_UNSAFE_HASHES" in types:
        recs.append(f"Replace inline event handlers with addEventListener calls. See:\n  - {OWASP_REFACTOR}")
    if "SCRIPT_UNSAFE_EVAL" in types:
        recs.append(
            "Do not use eval() in JavaScript. See:\n  - https://developer.mozilla.org/en-US/docs/"
            "Web/JavaScript/Reference/Global_Objects/eval#never_use_direct_eval!")
    if inline.js_nav:
        recs.append(f"Replace javascript: navigation targets with non-inlined code. See:\n  - {OWASP_REFACTOR}")
    if inline.style or inline.style_attribute or "STYLE_UNSAFE_INLINE" in types:
        recs.append("Move inline styles to files.")
    if "SCRIPT_ALLOWLIST_BYPASS" in types:
        recs.append(
            "Consider switching to a strict CSP using 'strict-dynamic' with nonces or hashes "
            "instead of specifying\n  allowed hosts. This likely requires changes to your "
            "application code or configuration. See:\n"
            "  - https://web.dev/articles/strict-csp\n"
            "  - https://cheatsheetseries.owasp.org/cheatsheets/"
            "Content_Security_Policy_Cheat_Sheet.html#strict-csp")

    unsafe_hashes = [d for d in ("script-src", "style-src") if result.policy.has(d, UNSAFE_HASHES)]
    if unsafe_hashes:
        where = " and ".join(unsafe_hashes)
        recs.append(
            f"Note: 'unsafe-hashes' is used in {where}.\n"
            f"  If you need backwards compatibility with older browsers, add 'unsafe-inline' to {where}.\n"
            "  Modern browsers will ignore 'unsafe-inline' if a hash or nonce is present.")

    if "OBJECT_ALLOWLIST_BYPASS" in types:
        recs.append(
            "Using <object> is not recommended. Consider replacing it with an iframe or a\n"
            "  more specific element (such as <audio> or <video>), depending on the content. See:\n"
            "  - https://developer.mozilla.org/en-US/docs/Web/HTTP/Headers/Content-Security-Policy/object-src")
    return recs


class ResultsReporter:
    """Prints the sections of a generation report in order."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def _heading(self, title: str, alert: bool = False):
        prefix = "[red]!![/red] " if alert else ""
        self.console.print(f"{prefix}[bold]{escape(title)}[/bold]")
        self.console.print("-" * (len(title) + (3 if alert else 0)))

    @staticmethod
    def _table(*columns: str) -> Table:
        table = Table(show_header=True, header_style="bold", box=box.SIMPLE, pad_edge=False)
        for column in columns:
            table.add_column(column)
        return table

    def visited(self, result: GenerationResult):
        if not result.visited_urls:
            return
        self.console.print("[bold]Pages visited:[/bold]")
        for url in result.visited_urls:
            self.console.print(f"* {escape(url)}")
        self.console.print()

    def violations(self, reports, heading: str = "", footer: Optional[Text] = None):
        if heading:
            self._heading(heading)
        if reports:
            table = self._table("Effective directive", "Description")
            for directive, desc in sorted(describe_report(r) for r in reports):
                table.add_row(escape(directive), escape(desc))
            self.console.print(table)
        else:
            self.console.print("No violations were reported.")
        if footer is not None:
            self.console.print(footer)
            self.console.print()

    def inline(self, result: GenerationResult) -> InlineSummary:
        summary = summarize_inline(result)

        js_rows, js_totals = [], []
        scripts = result.hashes_of(HashKind.SCRIPT)
        events = result.hashes_of(HashKind.INLINE_EVENT)
        navs = result.hashes_of(HashKind.JS_NAV_SCRIPT)
        if scripts:
            js_totals.append(f"[bold]{len(scripts)}[/bold] inline <script>")
            js_rows += [("Inline <script>", h.sample, h.url) for h in scripts]
        if events:
            js_totals.append(f"[bold]{len(events)}[/bold] inline event handler(s)")
            js_rows += [("Inline event handler", f"{h.element_name} {h.attribute_name}: {h.sample}", h.url)
                        for h in events]
        if navs:
            js_totals.append(f"[bold]{len(navs)}[/bold] element(s) with a javascript: navigation target")
            js_rows += [("javascript: navigation target",
                         f"{h.element_name} {h.attribute_name}: {h.sample}", h.url) for h in navs]
        if js_rows:
            self._heading("Inline JavaScript detected", alert=True)
            self._print_rows(("Type", "Code sample", "URL"), js_rows)
            self.console.print(", ".join(js_totals))
            self.console.print()

        css_rows, css_totals = [], []
        styles = result.hashes_of(HashKind.STYLE)
        attrs = result.hashes_of(HashKind.STYLE_ATTRIBUTE)
        if styles:
            css_totals.append(f"{len(styles)} inline <style>")
            css_rows += [("Inline <style>", h.sample, h.url) for h in styles]
        if attrs:
            css_totals.append(f"{len(attrs)} inline style in element attribute")
            css_rows += [(f"Style in {h.element_name} element", h.sample, h.url) for h in attrs]
        if css_rows:
            self._heading("Inline styles detected", alert=True)
            self._print_rows(("Type", "Style sample", "URL"), css_rows)
            self.console.print(", ".join(css_totals))
            self.console.print()

        return summary

    def _print_rows(self, columns, rows):
        table = self._table(*columns)
        for row in sorted(rows):
            table.add_row(*(escape(cell) for cell in row))
        self.console.print(table)

    def findings(self, result: GenerationResult):
        title = "CSP evaluation of generated policy"
        if not result.findings:
            self._heading(title)
            self.console.print("The CSP evaluator found no problems in the generated CSP.")
            self.console.print()
            return
        self._heading(title, alert=True)
        table = self._table("Type", "Severity", "Directive", "Value")
        ordered = sorted(result.findings, key=lambda f: (f.severity.value, f.type.name))
        for finding in ordered:
            style = _SEVERITY_STYLE.get(finding.severity)
            severity = finding.severity.label
            if style:
                severity = f"[{style}]{severity}[/{style}]"
            table.add_row(finding.type.name, severity,
                          escape(finding.directive), escape(finding.value))
            table.add_row(f"[dim]{escape(finding.description)}[/dim]", "", "", "", end_section=True)
        self.console.print(table)

    def recommendations(self, result: GenerationResult, inline: InlineSummary):
        recs = recommendations(result, inline)
        if not recs:
            return
        self._heading("Recommendations")
        for rec in recs:
            self.console.print(f"* {escape(rec)}\n")

    def deployment(self):
        self._heading("Deployment")
        self.console.print(
            "1) In your web server, set the [bold]Content-Security-Policy-Report-Only[/bold] "
            "header to the CSP below.\n"
            "2) Next, keep it that way for some weeks. Look for CSP warnings in the browser console,\n"
            "   or configure a CSP reporting endpoint.\n"
            "3) Possibly adjust CSP based on violation reports.\n"
            "4) Finally, change the header to [bold]Content-Security-Policy[/bold] to begin enforcement.\n")

    def render(self, result: GenerationResult):
        self.visited(result)
        self.violations(
            result.initial_reports,
            "Violation reports collected with initial CSP",
            Text.assemble("CSP used: ", Text.from_ansi(result.initial_policy_string_pretty)),
        )
        if result.reports:
            self.console.print(
                "The generated CSP (see below) doesn't cause violations, but is unsafe. "
                "From the violations above,\nthe following could not be eliminated without "
                "the use of unsafe CSP:\n")
            self.violations(result.reports)
            self.console.print()
        else:
            self.console.print("The generated CSP (see below) doesn't cause violations.\n")

        inline = self.inline(result)
        self.findings(result)
        self.recommendations(result, inline)
        self.deployment()

        self._heading("Generated CSP")
        self.console.print(Text.from_ansi(result.policy_string_pretty))
        self.console.print()
        self._heading("Generated CSP (header value)")
        self.console.print(result.policy_string, markup=False, highlight=False, soft_wrap=True)
