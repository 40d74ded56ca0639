"""Checks for missing and deprecated directives."""

from typing import List

from cspgen.checkers.base import BaseChecker, SCRIPT_SRC, OBJECT_SRC, BASE_URI
from cspgen.core.models import Finding, FindingType, Severity
from cspgen.core.policy import Policy

_DEPRECATED = {
    "reflected-xss": "reflected-xss is deprecated since CSP2. "
                     "Please, use the X-XSS-Protection header instead.",
    "referrer": "referrer is deprecated since CSP2. "
                "Please, use the Referrer-Policy header instead.",
    "disown-opener": "disown-opener is deprecated since CSP3. "
                     "Please, use the Cross Origin Opener Policy header instead.",
    "prefetch-src": "prefetch-src is deprecated since CSP3. "
                    "Be aware that this feature may cease to work at any time.",
}


class MissingDirectives(BaseChecker):

    name = "Missing directives"

    def check(self, policy: Policy) -> List[Finding]:
        findings = []
        if not self.effective_directive(policy, SCRIPT_SRC):
            findings.append(Finding(
                SCRIPT_SRC, "", Severity.HIGH, FindingType.MISSING_DIRECTIVES,
                "script-src directive is missing.",
            ))
        if not self.effective_directive(policy, OBJECT_SRC):
            findings.append(Finding(
                OBJECT_SRC, "", Severity.HIGH, FindingType.MISSING_DIRECTIVES,
                "Missing object-src allows the injection of plugins which can execute "
                "JavaScript. Can you set it to 'none'?",
            ))
        script = self.effective_directive(policy, SCRIPT_SRC)
        uses_hashes = script and any(
            s.startswith(("'sha", "'nonce-")) for s in policy.sources(script))
        if uses_hashes and not policy.sources(BASE_URI):
            findings.append(Finding(
                BASE_URI, "", Severity.HIGH, FindingType.MISSING_DIRECTIVES,
                "Missing base-uri allows the injection of base tags. They can be used to "
                "set the base URL for all relative (script) URLs to an attacker controlled "
                "domain. Can you set it to 'none' or 'self'?",
            ))
        return findings


class DeprecatedDirectives(BaseChecker):

    name = "Deprecated directives"

    def check(self, policy: Policy) -> List[Finding]:
        findings = []
        if "report-uri" in policy and "report-to" not in policy:
            findings.append(Finding(
                "report-uri", "", Severity.INFO, FindingType.DEPRECATED_DIRECTIVE,
                "report-uri is deprecated in CSP3. Please use the report-to directive instead.",
            ))
        for directive, desc in _DEPRECATED.items():
            if directive in policy:
                findings.append(Finding(
                    directive, "", Severity.INFO, FindingType.DEPRECATED_DIRECTIVE, desc))
        return findings


class ReportingDestination(BaseChecker):

    name = "Reporting destination"

    def check(self, policy: Policy) -> List[Finding]:
        if "report-uri" in policy or "report-to" in policy:
            return []
        return [Finding(
            "", "", Severity.INFO, FindingType.REPORTING_DESTINATION_MISSING,
            "This CSP policy does not configure a reporting destination. This makes it "
            "difficult to maintain the CSP policy over time and monitor for any breakages.",
        )]
