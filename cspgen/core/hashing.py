"""Hash allowlister — inline code hashes and their policy sources."""

import base64
import hashlib
import unicodedata
from typing import Iterable

from cspgen.core.models import HashKind, HashRecord
from cspgen.core.policy import Policy, UNSAFE_HASHES

SAMPLE_LENGTH = 20

# https://html.spec.whatwg.org/#event-handlers-on-elements,-document-objects,-and-window-objects
INLINE_EVENT_HANDLERS = frozenset("""
    onabort onafterprint onauxclick onbeforeinput onbeforematch onbeforeprint
    onbeforetoggle onbeforeunload onblur oncancel oncanplay oncanplaythrough
    onchange onclick onclose oncontextlost oncontextmenu oncontextrestored
    oncopy oncuechange oncut ondblclick ondrag ondragend ondragenter
    ondragleave ondragover ondragstart ondrop ondurationchange onemptied
    onended onerror onfocus onformdata onhashchange oninput oninvalid
    onkeydown onkeypress onkeyup onlanguagechange onload onloadeddata
    onloadedmetadata onloadstart onmessage onmessageerror onmousedown
    onmouseenter onmouseleave onmousemove onmouseout onmouseover onmouseup
    onoffline ononline onpageswap onpagehide onpagereveal onpageshow onpaste
    onpause onplay onplaying onpopstate onprogress onratechange
    onrejectionhandled onreset onresize onscroll onscrollend
    onsecuritypolicyviolation onseeked onseeking onselect onslotchange
    onstalled onstorage onsubmit onsuspend ontimeupdate ontoggle
    onunhandledrejection onunload onvolumechange onwaiting
    onwebkitanimationend onwebkitanimationiteration onwebkitanimationstart
    onwebkittransitionend onwheel
""".split())


def truncate(text: str, n: int) -> str:
    """Shorten *text* to *n* characters, ending in '...' when cut."""
    if len(text) > n:
        return f"{text[:n - 1]}..."
    return text


def _printable(char: str) -> bool:
    # Letters, numbers, punctuation and symbols.
    return unicodedata.category(char)[0] in "LNPS"


def clean_sample(code: str) -> str:
    """Trimmed, single-line, truncated preview of a piece of inline code."""
    kept = "".join(c for c in code.strip() if c == " " or _printable(c))
    return truncate(kept, SAMPLE_LENGTH)


def content_hash(code: str) -> str:
    """sha256 of *code* (UTF-8), base64 encoded, as used in 'sha256-…' sources."""
    digest = hashlib.sha256(code.encode("utf-8")).digest()
    return base64.b64encode(digest).decode("ascii")


def is_event_handler(attribute: str) -> bool:
    return attribute.lower() in INLINE_EVENT_HANDLERS


def make_record(url: str, code: str, kind: HashKind,
                element_name: str = None, attribute_name: str = None) -> HashRecord:
    return HashRecord(
        url=url,
        hash=content_hash(code),
        sample=clean_sample(code),
        kind=kind,
        element_name=element_name,
        attribute_name=attribute_name,
    )


# Kinds that also need 'unsafe-hashes': hashes on attributes and javascript:
# URLs are only honoured with it.
_TARGETS = {
    HashKind.SCRIPT: ("script-src", False),
    HashKind.JS_NAV_SCRIPT: ("script-src", True),
    HashKind.INLINE_EVENT: ("script-src", True),
    HashKind.STYLE: ("style-src", False),
    HashKind.STYLE_ATTRIBUTE: ("style-src", True),
}


def merge_hashes(policy: Policy, records: Iterable[HashRecord]) -> bool:
    """
    Allowlist every inline code unit in *records* by hash.

    Returns True if any hash was merged. Identical code on several pages
    yields a single source.
    """
    added = False
    for record in records:
        directive, needs_unsafe_hashes = _TARGETS[record.kind]
        if needs_unsafe_hashes:
            policy.widen(directive, UNSAFE_HASHES)
        policy.widen(directive, record.source)
        added = True
    return added
