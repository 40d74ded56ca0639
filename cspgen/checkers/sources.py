"""Checks on host, scheme and wildcard sources."""

import ipaddress
from typing import List

from cspgen.checkers.base import BaseChecker, SCRIPT_SRC, OBJECT_SRC, BASE_URI
from cspgen.core.models import Finding, FindingType, Severity
from cspgen.core.policy import Policy, SELF, STRICT_DYNAMIC

# Directives where a broad source means script execution.
_SCRIPT_LIKE = (SCRIPT_SRC, OBJECT_SRC, BASE_URI)

# Hosts serving JSONP endpoints or AngularJS builds usable to bypass a host allowlist.
JSONP_HOSTS = {
    "www.google.com", "accounts.google.com", "www.googleadservices.com",
    "cse.google.com", "translate.googleapis.com", "maps.googleapis.com",
    "www.googletagmanager.com", "api.twitter.com", "graph.facebook.com",
    "connect.facebook.net", "api.flickr.com", "vk.com", "www.youtube.com",
}
ANGULAR_HOSTS = {
    "ajax.googleapis.com", "cdnjs.cloudflare.com", "cdn.jsdelivr.net",
    "unpkg.com", "code.angularjs.org", "ajax.aspnetcdn.com",
    "storage.googleapis.com", "d.yimg.com",
}


def _matches(source_host: str, known: set) -> bool:
    if source_host.startswith("*."):
        suffix = source_host[1:]
        return any(h.endswith(suffix) for h in known)
    return source_host in known


class PlainUrlSchemes(BaseChecker):

    name = "Plain URL schemes"

    def check(self, policy: Policy) -> List[Finding]:
        findings = []
        for name in _SCRIPT_LIKE:
            directive = self.effective_directive(policy, name)
            if not directive:
                continue
            for source in sorted(policy.sources(directive)):
                if source in ("http:", "https:", "data:"):
                    findings.append(Finding(
                        directive, source, Severity.HIGH, FindingType.PLAIN_URL_SCHEMES,
                        f"{source} URI in {directive} allows the execution of unsafe scripts.",
                    ))
        return findings


class Wildcards(BaseChecker):

    name = "Wildcard sources"

    def check(self, policy: Policy) -> List[Finding]:
        findings = []
        for name in _SCRIPT_LIKE:
            directive = self.effective_directive(policy, name)
            if directive and policy.has(directive, "*"):
                findings.append(Finding(
                    directive, "*", Severity.HIGH, FindingType.PLAIN_WILDCARD,
                    f"{directive} should not allow '*' as source",
                ))
        return findings


class SrcHttp(BaseChecker):

    name = "Plain HTTP sources"

    def check(self, policy: Policy) -> List[Finding]:
        findings = []
        for directive in policy.directives:
            for source in sorted(policy.sources(directive)):
                if source.lower().startswith("http://"):
                    findings.append(Finding(
                        directive, source, Severity.MEDIUM, FindingType.SRC_HTTP,
                        "Allow only resources downloaded over HTTPS.",
                    ))
        return findings


class IpSource(BaseChecker):

    name = "IP address sources"

    def check(self, policy: Policy) -> List[Finding]:
        findings = []
        for directive in policy.directives:
            for source in sorted(policy.sources(directive)):
                host = self.host_of(source)
                try:
                    ip = ipaddress.ip_address(host or "")
                except ValueError:
                    continue
                if ip.is_loopback:
                    desc = ("Directive has a localhost as source. Please make sure to "
                            "remove this in production environments.")
                else:
                    desc = (f"Directive has an IP-Address as source: {host} "
                            f"(will be ignored by browsers!).")
                findings.append(Finding(directive, source, Severity.INFO, FindingType.IP_SOURCE, desc))
        return findings


class ScriptAllowlistBypass(BaseChecker):

    name = "Script allowlist bypass"

    def check(self, policy: Policy) -> List[Finding]:
        directive = self.effective_directive(policy, SCRIPT_SRC)
        if not directive or policy.has(directive, STRICT_DYNAMIC):
            return []
        findings = []
        for source in sorted(policy.sources(directive)):
            if source == SELF:
                findings.append(Finding(
                    directive, source, Severity.MEDIUM_MAYBE, FindingType.SCRIPT_ALLOWLIST_BYPASS,
                    "'self' can be problematic if you host JSONP, AngularJS or user "
                    "uploaded files.",
                ))
                continue
            host = self.host_of(source)
            if not host:
                continue
            if _matches(host, JSONP_HOSTS):
                findings.append(Finding(
                    directive, source, Severity.HIGH, FindingType.SCRIPT_ALLOWLIST_BYPASS,
                    f"{source} is known to host JSONP endpoints which allow to bypass this CSP.",
                ))
            elif _matches(host, ANGULAR_HOSTS):
                findings.append(Finding(
                    directive, source, Severity.HIGH, FindingType.SCRIPT_ALLOWLIST_BYPASS,
                    f"{source} is known to host Angular libraries which allow to bypass this CSP.",
                ))
            else:
                findings.append(Finding(
                    directive, source, Severity.MEDIUM_MAYBE, FindingType.SCRIPT_ALLOWLIST_BYPASS,
                    "No bypass found; make sure that this URL doesn't serve JSONP replies "
                    "or Angular libraries.",
                ))
        return findings


class ObjectAllowlistBypass(BaseChecker):

    name = "Object allowlist bypass"

    def check(self, policy: Policy) -> List[Finding]:
        directive = self.effective_directive(policy, OBJECT_SRC)
        if not directive:
            return []
        findings = []
        for source in sorted(policy.sources(directive)):
            if source == SELF or self.host_of(source):
                findings.append(Finding(
                    directive, source, Severity.MEDIUM_MAYBE, FindingType.OBJECT_ALLOWLIST_BYPASS,
                    "Can you restrict object-src to 'none' only?",
                ))
        return findings
