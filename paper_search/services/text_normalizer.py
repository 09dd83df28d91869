import html
import re

_NAMESPACED_TAG_RE = re.compile(r"</?[A-Za-z][\w.-]*:[\w.-]+(?:\s[^<>]*)?/?>")
_TAG_RE = re.compile(r"</?[A-Za-z][\w.-]*(?:\s[^<>]*)?/?>")
_WHITESPACE_RE = re.compile(r"\s+")
_LEADING_LABEL_RE = re.compile(r"^(?:abstract|summary)\b[\s:.\-–—]*", re.IGNORECASE)


def normalize_text(text: str | None) -> str:
    """Plain-text form of a crossref title/abstract.

    Tags become a single space so adjacent words never merge, e.g.
    ``"<jats:title>Foo &amp; Bar</jats:title>"`` -> ``"Foo & Bar"``.
    """
    if not text or not text.strip():
        return ""
    cleaned = _NAMESPACED_TAG_RE.sub(" ", text)
    cleaned = _TAG_RE.sub(" ", cleaned)
    cleaned = html.unescape(cleaned)
    cleaned = _WHITESPACE_RE.sub(" ", cleaned).strip()
    cleaned = _LEADING_LABEL_RE.sub("", cleaned, count=1)
    return cleaned.strip()
