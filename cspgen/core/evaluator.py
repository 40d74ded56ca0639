"""Static policy evaluator. Runs the checker suite over a serialized CSP."""

from typing import List, Optional, Sequence

from cspgen.checkers.base import BaseChecker, SCRIPT_SRC, STYLE_SRC, DEFAULT_SRC
from cspgen.checkers.directives import DeprecatedDirectives, MissingDirectives, ReportingDestination
from cspgen.checkers.keywords import ScriptUnsafeEval, ScriptUnsafeHashes, ScriptUnsafeInline, StyleUnsafeInline
from cspgen.checkers.sources import (
    IpSource, ObjectAllowlistBypass, PlainUrlSchemes, ScriptAllowlistBypass, SrcHttp, Wildcards,
)
from cspgen.core.models import Finding
from cspgen.core.policy import Policy, SELF, STRICT_DYNAMIC, UNSAFE_INLINE, parse_policy


def default_checkers() -> List[BaseChecker]:
    return [
        ScriptUnsafeInline(), ScriptUnsafeEval(), ScriptUnsafeHashes(), StyleUnsafeInline(),
        PlainUrlSchemes(), Wildcards(), ScriptAllowlistBypass(), ObjectAllowlistBypass(),
        SrcHttp(), IpSource(),
        MissingDirectives(), DeprecatedDirectives(), ReportingDestination(),
    ]


def _has_hash_or_nonce(sources) -> bool:
    return any(s.startswith(("'sha256-", "'sha384-", "'sha512-", "'nonce-")) for s in sources)


def effective_policy(policy: Policy) -> Policy:
    """
    What a CSP3 browser actually enforces.

    'unsafe-inline' is ignored next to a hash or nonce, and 'strict-dynamic'
    disables host and scheme allowlists (and 'self') in script-src.
    """
    effective = policy.copy()
    for directive in (SCRIPT_SRC, STYLE_SRC, DEFAULT_SRC):
        sources = effective.sources(directive)
        if _has_hash_or_nonce(sources):
            effective.remove(directive, UNSAFE_INLINE)
        if directive != STYLE_SRC and STRICT_DYNAMIC in sources:
            for source in sources:
                if source == SELF or BaseChecker.host_of(source) or BaseChecker.is_scheme(source):
                    effective.remove(directive, source)
    return effective


class Evaluator:
    """
    Heuristic CSP linter.

    Usage:
        findings = Evaluator().evaluate("default-src 'none'; script-src 'unsafe-eval'")
    """

    def __init__(self, checkers: Optional[Sequence[BaseChecker]] = None, logger=None):
        self.checkers = list(checkers) if checkers is not None else default_checkers()
        self.logger = logger

    def evaluate(self, policy_string: str) -> List[Finding]:
        policy = effective_policy(parse_policy(policy_string))
        findings: List[Finding] = []
        for checker in self.checkers:
            found = checker.check(policy)
            if self.logger:
                self.logger.debug(f"Checker: {checker.name} ({len(found)} finding(s))")
            findings.extend(found)
        return findings
