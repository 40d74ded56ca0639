"""Policy model: directive to source-expression sets, with CSP merge rules."""

from typing import Dict, Iterable, List, Mapping, Optional
from urllib.parse import urlsplit

from colorama import Style

NONE = "'none'"
SELF = "'self'"
UNSAFE_INLINE = "'unsafe-inline'"
UNSAFE_EVAL = "'unsafe-eval'"
UNSAFE_HASHES = "'unsafe-hashes'"
STRICT_DYNAMIC = "'strict-dynamic'"

KEYWORDS = {
    NONE, SELF, UNSAFE_INLINE, UNSAFE_EVAL, UNSAFE_HASHES, STRICT_DYNAMIC,
    "'report-sample'", "'wasm-unsafe-eval'", "'inline-speculation-rules'",
}

# Fetch directives that fall back to default-src when absent or empty.
FALLBACK_DIRECTIVES = {
    "child-src", "connect-src", "font-src", "frame-src", "img-src",
    "manifest-src", "media-src", "object-src", "prefetch-src", "script-src",
    "script-src-elem", "script-src-attr", "style-src", "style-src-elem",
    "style-src-attr", "worker-src",
}

# Initial, restrictive candidate. Empty sets inherit default-src.
SEED_DIRECTIVES = [
    ("default-src", [NONE]),
    ("form-action", [NONE]),
    ("frame-ancestors", [NONE]),
    ("base-uri", [NONE]),
    ("script-src", []),
    ("style-src", []),
    ("connect-src", []),
    ("frame-src", []),
    ("img-src", []),
]

_DEFAULT_PORTS = {"http": 80, "https": 443, "ws": 80, "wss": 443}


class Policy:
    """
    Ordered mapping of directive name to a set of source tokens.

    Sources keep insertion order so serialization is repeatable. Directives
    render in the order they first received a token; empty ones are skipped
    so they keep inheriting default-src.
    """

    def __init__(self, directives: Optional[Mapping[str, Iterable[str]]] = None):
        self._directives: Dict[str, Dict[str, None]] = {}
        self._populated: Dict[str, None] = {}
        for name, sources in (directives or {}).items():
            self.declare(name)
            for source in sources:
                self.widen(name, source)

    # ── read access ─────────────────────────────────────────────

    @property
    def directives(self) -> List[str]:
        return list(self._directives)

    def sources(self, directive: str) -> frozenset:
        return frozenset(self._directives.get(directive, ()))

    def has(self, directive: str, source: str) -> bool:
        return source in self._directives.get(directive, ())

    def has_self_fallback(self) -> bool:
        """True if default-src allows 'self'."""
        return self.has("default-src", SELF)

    def __contains__(self, directive: str) -> bool:
        return directive in self._directives

    def __eq__(self, other):
        if not isinstance(other, Policy):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self):
        return f"Policy({self.serialize()!r})"

    # ── mutation ────────────────────────────────────────────────

    def declare(self, directive: str) -> None:
        """Make sure *directive* exists, possibly empty."""
        self._directives.setdefault(directive, {})

    def widen(self, directive: str, source: str) -> None:
        """Add *source* to *directive*, dropping 'none' if something else arrives."""
        self.declare(directive)
        sources = self._directives[directive]
        if source == NONE:
            if sources:
                return
        else:
            self.remove_none(directive)
        sources[source] = None
        self._populated.setdefault(directive, None)

    def remove_none(self, directive: str) -> None:
        self._directives.get(directive, {}).pop(NONE, None)

    def remove(self, directive: str, source: str) -> bool:
        """Drop *source* from *directive*. Returns True if it was there."""
        sources = self._directives.get(directive)
        if sources is None or source not in sources:
            return False
        del sources[source]
        return True

    def ensure_default_src_propagation(self, directive: str) -> None:
        """
        Keep the default-src 'self' fallback alive for *directive*.

        Giving a fetch directive any explicit source stops it from inheriting
        default-src, so if default-src allows 'self' the directive must list
        'self' itself.
        """
        if directive in FALLBACK_DIRECTIVES and self.has_self_fallback():
            self.widen(directive, SELF)

    def merge(self, other: "Policy") -> None:
        """Union *other* into this policy."""
        for name in other.directives:
            self.declare(name)
            for source in other._directives[name]:
                self.widen(name, source)

    def copy(self) -> "Policy":
        clone = Policy()
        clone._directives = {k: dict(v) for k, v in self._directives.items()}
        clone._populated = dict(self._populated)
        return clone

    # ── output ──────────────────────────────────────────────────

    def serialize(self, pretty: bool = False) -> str:
        parts = []
        for name in self._populated:
            sources = self._directives[name]
            if not sources:
                continue
            label = f"{Style.BRIGHT}{name}{Style.RESET_ALL}" if pretty else name
            parts.append(f"{label} {' '.join(sources)}")
        return "; ".join(parts)

    def to_dict(self) -> Dict[str, List[str]]:
        return {name: sorted(self._directives[name])
                for name in self._populated if self._directives[name]}


def seed_policy() -> Policy:
    """The restrictive starting candidate."""
    return Policy(dict(SEED_DIRECTIVES))


def parse_policy(text: str) -> Policy:
    """
    Parse a serialized CSP string.

    Directive names are lower-cased; sources are kept verbatim apart from
    keyword case ('SELF' → 'self'). Empty segments are ignored.
    """
    policy = Policy()
    for segment in text.split(";"):
        tokens = segment.split()
        if not tokens:
            continue
        name = tokens[0].lower()
        policy.declare(name)
        for token in tokens[1:]:
            if token.lower() in KEYWORDS:
                token = token.lower()
            policy.widen(name, token)
    return policy


def _origin(url: str):
    parts = urlsplit(url)
    scheme = parts.scheme.lower()
    if not scheme or not parts.hostname:
        raise ValueError(f"Not an absolute URL: {url!r}")
    port = parts.port or _DEFAULT_PORTS.get(scheme)
    return scheme, parts.hostname, port


def same_origin(url1: str, url2: str) -> bool:
    """Check if two URLs share scheme, host and port."""
    try:
        return _origin(url1) == _origin(url2)
    except ValueError:
        return False
