"""Tests for the results report."""

from io import StringIO

from rich.console import Console

from cspgen.core.models import Finding, FindingType, GenerationResult, HashKind, Severity
from cspgen.core.policy import Policy, seed_policy
from cspgen.reporters.results import (
    InlineSummary, ResultsReporter, describe_report, recommendations, summarize_inline,
)

from conftest import SITE, record, report


def make_result(policy=None, findings=(), hashes=(), initial_reports=(), reports=()):
    policy = policy or seed_policy()
    return GenerationResult(
        policy=policy,
        policy_string=policy.serialize(),
        policy_string_pretty=policy.serialize(pretty=True),
        initial_policy_string=seed_policy().serialize(),
        initial_policy_string_pretty=seed_policy().serialize(pretty=True),
        initial_reports=tuple(initial_reports),
        reports=tuple(reports),
        hashes=tuple(hashes),
        findings=tuple(findings),
        visited_urls=(SITE,),
    )


def finding(kind, severity=Severity.HIGH, directive="script-src", value=""):
    return Finding(directive, value, severity, kind, f"{kind.name} description")


class TestDescribeReport:

    def test_inline_script(self):
        assert describe_report(report("script-src-elem", "inline", line=12)) == (
            "script-src-elem", f"Execution of inline script on {SITE} line 12")

    def test_external_script(self):
        _, desc = describe_report(report("script-src-elem", "https://cdn.example/a.js"))
        assert desc == f"Execution of script https://cdn.example/a.js on {SITE}"

    def test_event_handler(self):
        _, desc = describe_report(report("script-src-attr", "inline"))
        assert "event handler" in desc

    def test_resource(self):
        _, desc = describe_report(report("img-src", "data"))
        assert desc == f"Resource data on {SITE}"

    def test_other(self):
        _, desc = describe_report(report("frame-src", "https://video.example/"))
        assert desc == f"https://video.example/ on {SITE}"


class TestRecommendations:

    def test_clean_result_has_none(self):
        result = make_result()
        assert recommendations(result, summarize_inline(result)) == []

    def test_unsafe_inline(self):
        result = make_result(findings=[finding(FindingType.SCRIPT_UNSAFE_INLINE)])
        recs = recommendations(result, InlineSummary())
        assert recs[0].startswith("The generated CSP allows inline scripts")
        assert recs[1].startswith("Move inline scripts")

    def test_inline_kinds_from_hashes(self):
        hashes = [
            record("go()", HashKind.INLINE_EVENT, element_name="button", attribute_name="onclick"),
            record("color: red", HashKind.STYLE_ATTRIBUTE, element_name="p"),
        ]
        result = make_result(hashes=hashes)
        inline = summarize_inline(result)
        assert inline.event and inline.style_attribute and not inline.script
        recs = recommendations(result, inline)
        assert any(r.startswith("Replace inline event handlers") for r in recs)
        assert "Move inline styles to files." in recs

    def test_unsafe_hashes_note(self):
        policy = Policy({"script-src": ["'unsafe-hashes'", "'sha256-abc='"],
                         "style-src": ["'unsafe-hashes'", "'sha256-def='"]})
        recs = recommendations(make_result(policy=policy), InlineSummary())
        assert any("'unsafe-hashes' is used in script-src and style-src" in r for r in recs)

    def test_eval_and_allowlist(self):
        result = make_result(findings=[
            finding(FindingType.SCRIPT_UNSAFE_EVAL, Severity.MEDIUM_MAYBE),
            finding(FindingType.SCRIPT_ALLOWLIST_BYPASS, Severity.MEDIUM_MAYBE),
        ])
        recs = recommendations(result, InlineSummary())
        assert recs[0].startswith("Do not use eval()")
        assert "strict-dynamic" in recs[1]


class TestRender:

    def _render(self, result):
        out = StringIO()
        ResultsReporter(Console(file=out, width=160, color_system=None)).render(result)
        return out.getvalue()

    def test_clean_report(self):
        text = self._render(make_result())
        assert "Pages visited:" in text
        assert "No violations were reported." in text
        assert "doesn't cause violations." in text
        assert "The CSP evaluator found no problems" in text
        assert text.rstrip().endswith(seed_policy().serialize())

    def test_full_report(self):
        policy = Policy({"default-src": ["'none'"], "script-src": ["'unsafe-eval'"]})
        result = make_result(
            policy=policy,
            findings=[finding(FindingType.SCRIPT_UNSAFE_EVAL, Severity.HIGH, value="'unsafe-eval'")],
            hashes=[record("init();")],
            initial_reports=[report("script-src-elem", "https://cdn.example/a.js")],
            reports=[report("script-src", "eval")],
        )
        text = self._render(result)
        assert "Execution of script https://cdn.example/a.js" in text
        assert "could not be eliminated" in text
        assert "Inline JavaScript detected" in text
        assert "SCRIPT_UNSAFE_EVAL" in text
        assert "Recommendations" in text
        assert "Deployment" in text
        assert "script-src 'unsafe-eval'" in text
