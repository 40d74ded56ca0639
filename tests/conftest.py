"""
Pytest configuration and shared fixtures.

The browser is replaced by ScriptedDriver, which replays one VisitResult
per call and records what it was asked to do.
"""

from typing import List, Optional

import pytest

from cspgen.core.driver import BrowserDriver
from cspgen.core.models import Finding, GeneratorOptions, HashKind, HashRecord, ViolationReport, VisitResult
from cspgen.core.hashing import make_record

SITE = "https://site.example/"


class ScriptedDriver(BrowserDriver):
    """Returns the given VisitResults in order, then clean visits."""

    def __init__(self, rounds: Optional[List[VisitResult]] = None, repeat_last: bool = False):
        self.rounds = list(rounds or [])
        self.repeat_last = repeat_last
        self.calls = []

    def visit(self, target_urls, prior_visited_urls, policy_string, headless=True):
        self.calls.append({
            "targets": list(target_urls),
            "prior": list(prior_visited_urls),
            "policy": policy_string,
            "headless": headless,
        })
        if self.rounds:
            if self.repeat_last and len(self.rounds) == 1:
                return self.rounds[0]
            return self.rounds.pop(0)
        return VisitResult(document_uri=SITE, visited_urls=list(prior_visited_urls or target_urls))


class StaticEvaluator:
    """Evaluator stand-in returning fixed findings."""

    def __init__(self, findings: Optional[List[Finding]] = None):
        self.findings = list(findings or [])
        self.calls = []

    def evaluate(self, policy_string):
        self.calls.append(policy_string)
        return list(self.findings)


def report(directive: str, blocked: str, document: str = SITE, line: int = 0) -> ViolationReport:
    return ViolationReport(document_uri=document, effective_directive=directive,
                           blocked_uri=blocked, line_number=line)


def record(code: str, kind: HashKind = HashKind.SCRIPT, url: str = SITE, **kw) -> HashRecord:
    return make_record(url, code, kind, **kw)


@pytest.fixture
def options():
    return GeneratorOptions(urls=(SITE,))
