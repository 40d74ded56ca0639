"""Checks for unsafe keyword sources ('unsafe-inline', 'unsafe-eval', 'unsafe-hashes')."""

from typing import List

from cspgen.checkers.base import BaseChecker, SCRIPT_SRC, STYLE_SRC
from cspgen.core.models import Finding, FindingType, Severity
from cspgen.core.policy import Policy, UNSAFE_INLINE, UNSAFE_EVAL, UNSAFE_HASHES


class ScriptUnsafeInline(BaseChecker):

    name = "Script 'unsafe-inline'"

    def check(self, policy: Policy) -> List[Finding]:
        directive = self.effective_directive(policy, SCRIPT_SRC)
        if directive and policy.has(directive, UNSAFE_INLINE):
            return [Finding(
                directive, UNSAFE_INLINE, Severity.HIGH, FindingType.SCRIPT_UNSAFE_INLINE,
                "'unsafe-inline' allows the execution of unsafe in-page scripts "
                "and event handlers.",
            )]
        return []


class StyleUnsafeInline(BaseChecker):

    name = "Style 'unsafe-inline'"

    def check(self, policy: Policy) -> List[Finding]:
        directive = self.effective_directive(policy, STYLE_SRC)
        if directive and policy.has(directive, UNSAFE_INLINE):
            return [Finding(
                directive, UNSAFE_INLINE, Severity.MEDIUM, FindingType.STYLE_UNSAFE_INLINE,
                "'unsafe-inline' allows the injection of arbitrary in-page styles, "
                "which can be used to exfiltrate data.",
            )]
        return []


class ScriptUnsafeEval(BaseChecker):

    name = "Script 'unsafe-eval'"

    def check(self, policy: Policy) -> List[Finding]:
        directive = self.effective_directive(policy, SCRIPT_SRC)
        if directive and policy.has(directive, UNSAFE_EVAL):
            return [Finding(
                directive, UNSAFE_EVAL, Severity.MEDIUM_MAYBE, FindingType.SCRIPT_UNSAFE_EVAL,
                "'unsafe-eval' allows the execution of code injected into DOM APIs "
                "such as eval().",
            )]
        return []


class ScriptUnsafeHashes(BaseChecker):

    name = "Script 'unsafe-hashes'"

    def check(self, policy: Policy) -> List[Finding]:
        directive = self.effective_directive(policy, SCRIPT_SRC)
        if directive and policy.has(directive, UNSAFE_HASHES):
            return [Finding(
                directive, UNSAFE_HASHES, Severity.MEDIUM_MAYBE, FindingType.SCRIPT_UNSAFE_HASHES,
                "'unsafe-hashes', while safer than 'unsafe-inline', allows the execution "
                "of unsafe in-page scripts and event handlers as long as their hashes "
                "appear in the CSP. Please refactor them to no longer use inline scripts "
                "if possible.",
            )]
        return []
