"""Tests for the convergence loop and the diagnostic pass."""

import pytest

from cspgen.core.engine import MAX_ATTEMPTS, Generator, build_probe_policy, merge_round, should_continue
from cspgen.core.errors import ConvergenceExhausted
from cspgen.core.models import Finding, FindingType, GeneratorOptions, HashKind, Severity, VisitResult
from cspgen.core.policy import Policy, seed_policy

from conftest import SITE, ScriptedDriver, StaticEvaluator, record, report


def visit(reports=(), hashes=(), urls=(SITE,)):
    return VisitResult(
        reports=list(reports),
        hashes=list(hashes),
        hashes_were_added=bool(hashes),
        document_uri=SITE,
        visited_urls=list(urls),
    )


class TestShouldContinue:

    def test_reports_continue(self):
        assert should_continue(visit([report("img-src", "data")]), 3)

    def test_hashes_only_continue_on_first_round(self):
        hashed = visit(hashes=[record("x()")])
        assert should_continue(hashed, 0)
        assert not should_continue(hashed, 1)

    def test_clean_visit_stops(self):
        assert not should_continue(visit(), 0)


class TestMergeRound:

    def test_empty_round_is_identity(self):
        policy = seed_policy()
        before = policy.copy()
        merge_round(policy, visit())
        assert policy == before

    def test_hashes_supersede_inline_reports(self):
        policy = seed_policy()
        rec = record("init();")
        merge_round(policy, visit([report("script-src-elem", "inline")], [rec]))
        assert policy.sources("script-src") == {rec.source}


class TestConverge:

    def test_clean_site_converges_immediately(self, options):
        driver = ScriptedDriver()
        result = Generator(driver, StaticEvaluator(), options).generate(seed_policy())
        assert len(driver.calls) == 1
        assert result.policy_string == seed_policy().serialize()
        assert result.initial_policy_string == result.policy_string

    def test_reports_are_merged_then_converge(self, options):
        driver = ScriptedDriver([
            visit([report("script-src-elem", "https://cdn.example.com/a.js")]),
            visit([report("img-src", "data")]),
        ])
        result = Generator(driver, StaticEvaluator(), options).generate(seed_policy())
        assert len(driver.calls) == 3
        assert result.policy.sources("script-src") == {"cdn.example.com"}
        assert result.policy.sources("img-src") == {"data:"}
        assert len(result.initial_reports) == 1

    def test_hashes_force_second_round(self, options):
        driver = ScriptedDriver([visit(hashes=[record("go()", HashKind.INLINE_EVENT,
                                                       element_name="button", attribute_name="onclick")])])
        result = Generator(driver, StaticEvaluator(), options).generate(seed_policy())
        assert len(driver.calls) == 2
        assert "'unsafe-hashes'" in result.policy.sources("script-src")
        assert len(result.hashes) == 1

    def test_later_rounds_revisit_first_round_pages(self, options):
        pages = [SITE, "https://site.example/about", "https://site.example/contact"]
        driver = ScriptedDriver([
            visit([report("img-src", "data")], urls=pages),
            visit([report("font-src", "https://fonts.example/f.woff")], urls=pages),
        ])
        result = Generator(driver, StaticEvaluator(), options).generate(seed_policy())
        assert driver.calls[0]["prior"] == []
        for call in driver.calls[1:]:
            assert call["prior"] == pages
        assert result.visited_urls == tuple(pages)

    def test_each_round_sees_the_merged_policy(self, options):
        driver = ScriptedDriver([visit([report("img-src", "data")])])
        Generator(driver, StaticEvaluator(), options).generate(seed_policy())
        assert "img-src" not in driver.calls[0]["policy"]
        assert "img-src data:" in driver.calls[1]["policy"]

    def test_interactive_only_first_round_is_headed(self):
        opts = GeneratorOptions(urls=(SITE,), interactive=True)
        driver = ScriptedDriver([visit([report("img-src", "data")])])
        Generator(driver, StaticEvaluator(), opts).generate(seed_policy())
        assert [c["headless"] for c in driver.calls] == [False, True]

    def test_non_interactive_is_headless(self, options):
        driver = ScriptedDriver([visit([report("img-src", "data")])])
        Generator(driver, StaticEvaluator(), options).generate(seed_policy())
        assert all(c["headless"] for c in driver.calls)

    def test_input_policy_not_mutated(self, options):
        seed = seed_policy()
        driver = ScriptedDriver([visit([report("img-src", "data")])])
        Generator(driver, StaticEvaluator(), options).generate(seed)
        assert seed == seed_policy()


class TestExhaustion:

    def test_raises_after_budget(self, options):
        noisy = visit([report("img-src", "data")])
        driver = ScriptedDriver([noisy], repeat_last=True)
        with pytest.raises(ConvergenceExhausted) as exc_info:
            Generator(driver, StaticEvaluator(), options).generate(seed_policy())
        assert len(driver.calls) == MAX_ATTEMPTS + 1
        assert exc_info.value.attempts == MAX_ATTEMPTS + 1
        assert "--no-hashes" in str(exc_info.value)
        assert "img-src data:" in exc_info.value.policy_string

    def test_no_hash_hint_when_hashing_disabled(self):
        opts = GeneratorOptions(urls=(SITE,), hash_inline=False)
        driver = ScriptedDriver([visit([report("img-src", "data")])], repeat_last=True)
        with pytest.raises(ConvergenceExhausted) as exc_info:
            Generator(driver, StaticEvaluator(), opts).generate(seed_policy())
        assert "--no-hashes" not in str(exc_info.value)

    def test_converging_on_last_allowed_round(self, options):
        noisy = [visit([report("img-src", "data")]) for _ in range(MAX_ATTEMPTS)]
        driver = ScriptedDriver(noisy)
        result = Generator(driver, StaticEvaluator(), options).generate(seed_policy())
        assert len(driver.calls) == MAX_ATTEMPTS + 1
        assert result.policy.sources("img-src") == {"data:"}


class TestDiagnosticPass:

    def _high_eval(self):
        return Finding("script-src", "'unsafe-eval'", Severity.HIGH,
                       FindingType.SCRIPT_UNSAFE_EVAL, "eval is bad")

    def test_probe_drops_high_findings_only(self):
        policy = Policy({"script-src": ["'unsafe-eval'", "'self'"]})
        findings = [
            self._high_eval(),
            Finding("script-src", "'self'", Severity.MEDIUM_MAYBE,
                    FindingType.SCRIPT_ALLOWLIST_BYPASS, "self"),
        ]
        probe = build_probe_policy(policy, findings)
        assert probe.sources("script-src") == {"'self'"}
        assert policy.sources("script-src") == {"'unsafe-eval'", "'self'"}

    def test_probe_visit_keeps_final_policy(self, options):
        evidence = report("script-src", "eval")
        driver = ScriptedDriver([
            visit([report("script-src", "eval")]),
            visit(),
            visit([evidence]),
        ])
        evaluator = StaticEvaluator([self._high_eval()])
        result = Generator(driver, evaluator, options).generate(seed_policy())

        assert len(driver.calls) == 3
        assert "'unsafe-eval'" not in driver.calls[2]["policy"]
        assert driver.calls[2]["headless"]
        assert "'unsafe-eval'" in result.policy_string
        assert result.reports == (evidence,)
        assert evaluator.calls == [result.policy_string]

    def test_no_findings_no_probe(self, options):
        driver = ScriptedDriver()
        result = Generator(driver, StaticEvaluator(), options).generate(seed_policy())
        assert len(driver.calls) == 1
        assert result.reports == ()
