"""Abstract base for all policy checkers."""

from abc import ABC, abstractmethod
from typing import List, Optional
from urllib.parse import urlsplit

from cspgen.core.models import Finding
from cspgen.core.policy import Policy

SCRIPT_SRC = "script-src"
STYLE_SRC = "style-src"
OBJECT_SRC = "object-src"
DEFAULT_SRC = "default-src"
BASE_URI = "base-uri"


class BaseChecker(ABC):
    """Every checker must implement check()."""

    name: str = "Unnamed Checker"

    # ── public API ──────────────────────────────────────────────

    @abstractmethod
    def check(self, policy: Policy) -> List[Finding]:
        """
        Inspect the effective *policy*.
        Return one Finding per problematic source (or missing directive).
        """
        ...

    # ── shared helpers ──────────────────────────────────────────

    @staticmethod
    def effective_directive(policy: Policy, directive: str) -> Optional[str]:
        """The directive that actually governs *directive* (itself or default-src)."""
        if policy.sources(directive):
            return directive
        if policy.sources(DEFAULT_SRC):
            return DEFAULT_SRC
        return None

    @staticmethod
    def is_keyword(source: str) -> bool:
        return source.startswith("'") and source.endswith("'")

    @staticmethod
    def is_scheme(source: str) -> bool:
        return source.endswith(":") and "/" not in source

    @classmethod
    def host_of(cls, source: str) -> Optional[str]:
        """Host part of a host-source, or None for keywords and schemes."""
        if cls.is_keyword(source) or cls.is_scheme(source):
            return None
        if "://" not in source:
            source = f"//{source}"
        try:
            return urlsplit(source).hostname
        except ValueError:
            return None
