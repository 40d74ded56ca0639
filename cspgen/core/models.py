"""Shared data models for the CSP generator."""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Dict, List, Optional, Tuple

from cspgen.core.policy import Policy


class HashKind(str, Enum):
    """Kind of inline code unit a hash was computed for."""
    SCRIPT = "script"                   # <script>...</script>
    JS_NAV_SCRIPT = "jsNavScript"       # <a href="javascript:...">
    STYLE = "style"                     # <style>...</style>
    STYLE_ATTRIBUTE = "styleAttribute"  # <p style="...">
    INLINE_EVENT = "inlineEvent"        # <button onclick="...">


@dataclass(frozen=True)
class ViolationReport:
    """One `securitypolicyviolation` event captured in the browser."""
    document_uri: str
    effective_directive: str
    blocked_uri: str
    line_number: int = 0
    column_number: int = 0
    sample: str = ""
    disposition: str = "report"
    type: str = "securitypolicyviolation"

    @classmethod
    def from_event(cls, data: dict) -> "ViolationReport":
        """Build a report from the JSON the injected listener logs."""
        return cls(
            document_uri=data.get("documentURI") or "",
            effective_directive=data.get("effectiveDirective") or "",
            blocked_uri=data.get("blockedURI") or "",
            line_number=int(data.get("lineNumber") or 0),
            column_number=int(data.get("columnNumber") or 0),
            sample=data.get("sample") or "",
            disposition=data.get("disposition") or "report",
            type=data.get("type") or "securitypolicyviolation",
        )

    def __str__(self):
        line = f" line {self.line_number}" if self.line_number > 0 else ""
        return f"{self.effective_directive}: {self.blocked_uri} on {self.document_uri}{line}"


@dataclass(frozen=True)
class HashRecord:
    """A distinct unit of inline code found on a page."""
    url: str
    hash: str              # sha256, base64
    sample: str            # cleaned, truncated preview
    kind: HashKind
    element_name: Optional[str] = None
    attribute_name: Optional[str] = None

    @property
    def source(self) -> str:
        return f"'sha256-{self.hash}'"


class Severity(Enum):
    """Finding severities, valued by their sort rank (lower is worse)."""
    HIGH = 10
    MEDIUM = 30
    HIGH_MAYBE = 40
    MEDIUM_MAYBE = 50
    INFO = 60
    NONE = 100

    @property
    def label(self) -> str:
        return self.name.replace("_MAYBE", "?")


class FindingType(Enum):
    SCRIPT_UNSAFE_INLINE = 105
    SCRIPT_UNSAFE_EVAL = 106
    PLAIN_URL_SCHEMES = 107
    PLAIN_WILDCARD = 108
    SCRIPT_ALLOWLIST_BYPASS = 109
    OBJECT_ALLOWLIST_BYPASS = 110
    IP_SOURCE = 112
    DEPRECATED_DIRECTIVE = 113
    SRC_HTTP = 114
    SCRIPT_UNSAFE_HASHES = 120
    STYLE_UNSAFE_INLINE = 121
    MISSING_DIRECTIVES = 300
    REPORTING_DESTINATION_MISSING = 400


@dataclass(frozen=True)
class Finding:
    """A static-analysis warning about one source in one directive."""
    directive: str
    value: str
    severity: Severity
    type: FindingType
    description: str

    def __str__(self):
        return (f"[{self.severity.label}] {self.type.name} "
                f"@ {self.directive} {self.value}: {self.description}")


@dataclass
class VisitResult:
    """What the browser driver observed under one candidate policy."""
    reports: List[ViolationReport] = field(default_factory=list)
    hashes: List[HashRecord] = field(default_factory=list)
    hashes_were_added: bool = False
    document_uri: str = ""
    visited_urls: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class GeneratorOptions:
    """Run configuration, filled from the command line."""
    urls: Tuple[str, ...]
    num_links: int = 0
    hash_inline: bool = True
    interactive: bool = False
    browser: str = "chromium"
    additional_csp: Optional[str] = None
    verbose: int = 1
    json_output: bool = False


@dataclass(frozen=True)
class GenerationResult:
    """Final output of a generation run."""
    policy: Policy
    policy_string: str
    policy_string_pretty: str
    initial_policy_string: str
    initial_policy_string_pretty: str
    initial_reports: Tuple[ViolationReport, ...] = ()
    reports: Tuple[ViolationReport, ...] = ()     # diagnostic pass evidence
    hashes: Tuple[HashRecord, ...] = ()
    findings: Tuple[Finding, ...] = ()
    visited_urls: Tuple[str, ...] = ()

    def hashes_of(self, *kinds: HashKind) -> List[HashRecord]:
        return [h for h in self.hashes if h.kind in kinds]

    def to_dict(self) -> Dict:
        return {
            "policy": self.policy.to_dict(),
            "policy_string": self.policy_string,
            "initial_policy_string": self.initial_policy_string,
            "initial_reports": [asdict(r) for r in self.initial_reports],
            "reports": [asdict(r) for r in self.reports],
            "hashes": [dict(asdict(h), kind=h.kind.value) for h in self.hashes],
            "findings": [
                {
                    "directive": f.directive,
                    "value": f.value,
                    "severity": f.severity.name,
                    "type": f.type.name,
                    "description": f.description,
                }
                for f in self.findings
            ],
            "visited_urls": list(self.visited_urls),
        }
