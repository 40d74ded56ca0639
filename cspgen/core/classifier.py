"""Turns violation reports into policy sources."""

from typing import Iterable
from urllib.parse import urlsplit

from cspgen.core.models import ViolationReport
from cspgen.core.policy import Policy, SELF, UNSAFE_INLINE, UNSAFE_EVAL, same_origin

_DEFAULT_PORTS = {"http": 80, "https": 443}

# CSP3 granular directives collapse to their CSP2 parents, which are still
# the preferred place for sources.
_DIRECTIVE_PARENTS = {
    "script-src-attr": "script-src",
    "script-src-elem": "script-src",
    "style-src-attr": "style-src",
    "style-src-elem": "style-src",
}

_KEYWORD_URIS = {
    "inline": UNSAFE_INLINE,
    "eval": UNSAFE_EVAL,
    "data": "data:",
    "blob": "blob:",
}


def normalize_directive(directive: str) -> str:
    return _DIRECTIVE_PARENTS.get(directive, directive)


def _host_source(url: str) -> str:
    """host[:port] of *url*, like URL.host: no credentials, no default port."""
    parts = urlsplit(url)
    try:
        port = parts.port
    except ValueError:
        return url
    host = parts.hostname
    if not host:
        return url
    if ":" in host:
        host = f"[{host}]"
    if port is not None and port != _DEFAULT_PORTS.get(parts.scheme.lower()):
        host = f"{host}:{port}"
    return host


def classify_blocked_uri(blocked_uri: str, document_uri: str) -> str:
    """Map a report's blockedURI to the source expression that would allow it."""
    if blocked_uri.startswith("http"):
        if same_origin(blocked_uri, document_uri):
            return SELF
        return _host_source(blocked_uri)
    return _KEYWORD_URIS.get(blocked_uri, blocked_uri)


def merge_reports(
    policy: Policy,
    reports: Iterable[ViolationReport],
    document_uri: str,
    hashes_were_added: bool = False,
) -> Policy:
    """
    Widen *policy* so none of *reports* would fire again.

    Inline reports are skipped when this round already allowlisted inline
    code by hash; the hashes replace the blanket 'unsafe-inline'.
    """
    for report in reports:
        blocked = report.blocked_uri
        if blocked == "inline" and hashes_were_added:
            continue

        directive = normalize_directive(report.effective_directive)
        source = classify_blocked_uri(blocked, document_uri or report.document_uri)

        # Same-origin frames: the document may itself be framed by 'self'.
        if directive == "frame-src" and source == SELF:
            policy.declare("frame-ancestors")
            policy.remove_none("frame-ancestors")
            policy.widen("frame-ancestors", SELF)

        policy.ensure_default_src_propagation(directive)
        policy.widen(directive, source)
    return policy
