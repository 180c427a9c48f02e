"""
Allow-list sanitizer for translated HTML fragments.

Model output is untrusted: it is parsed with lxml.html and re-emitted with
only a small set of inline tags and attributes. Anything else is unwrapped
(its text kept) or, for active content, dropped together with its children.
"""

import logging
import re
from typing import Dict, FrozenSet, List

from lxml import etree
import lxml.html

logger = logging.getLogger(__name__)

ALLOWED_TAGS: FrozenSet[str] = frozenset({
    'b', 'i', 'em', 'strong', 'a', 'span', 'code', 'sub', 'sup', 'mark',
    'small', 'abbr', 'time', 'cite', 'q', 'u', 's', 'del', 'ins', 'br',
})

ALLOWED_ATTRIBUTES: Dict[str, FrozenSet[str]] = {
    'a': frozenset({'href', 'title', 'target', 'rel'}),
    'span': frozenset({'class', 'style'}),
    'abbr': frozenset({'title'}),
    'time': frozenset({'datetime'}),
}

ALLOWED_SCHEMES: FrozenSet[str] = frozenset({'http', 'https', 'mailto'})
URL_ATTRIBUTES: FrozenSet[str] = frozenset({'href', 'src'})
STYLE_ATTRIBUTES: FrozenSet[str] = frozenset({'style'})

# Removed together with everything inside them
DROPPED_WITH_CONTENT: FrozenSet[str] = frozenset({
    'script', 'iframe', 'object', 'embed', 'style', 'template', 'noscript',
})

VOID_TAGS: FrozenSet[str] = frozenset({'br'})

_SCHEME_RE = re.compile(r'^([a-zA-Z][a-zA-Z0-9+.\-]*):')
_CONTROL_RE = re.compile(r'[\x00-\x20]+')
_CSS_COMMENT_RE = re.compile(r'/\*.*?\*/', re.DOTALL)
# Constructs that load resources or run script from an inline style
_UNSAFE_STYLE_RE = re.compile(r'url\(|expression\(|javascript:|vbscript:|@import|behavior:|-moz-binding', re.IGNORECASE)


def escape_text(text: str) -> str:
    return text.replace('&', '&amp;').replace('<', '&lt;').replace('>', '&gt;')


def escape_attribute(value: str) -> str:
    return escape_text(value).replace('"', '&quot;')


def is_safe_url(value: str) -> bool:
    """Relative URLs pass; absolute ones need an allowed scheme."""
    compact = _CONTROL_RE.sub('', value)
    match = _SCHEME_RE.match(compact)
    return match is None or match.group(1).lower() in ALLOWED_SCHEMES


def is_safe_style(value: str) -> bool:
    """Plain declarations pass; CSS escapes, url(), expression() and script schemes do not."""
    compact = _CONTROL_RE.sub('', _CSS_COMMENT_RE.sub('', value))
    return '\\' not in compact and _UNSAFE_STYLE_RE.search(compact) is None


def _emit_attributes(tag: str, element) -> str:
    allowed = ALLOWED_ATTRIBUTES.get(tag, frozenset())
    parts = []
    for name, value in element.attrib.items():
        name = name.lower()
        if name not in allowed or name.startswith('on'):
            continue
        if name in URL_ATTRIBUTES and not is_safe_url(value):
            continue
        if name in STYLE_ATTRIBUTES and not is_safe_style(value):
            logger.debug(f"Dropped unsafe style on <{tag}>: {value!r}")
            continue
        parts.append(f' {name}="{escape_attribute(value)}"')
    return ''.join(parts)


def _emit(element, out: List[str]) -> None:
    """Append the sanitized markup of ``element`` (tail excluded)."""
    tag = element.tag.lower() if isinstance(element.tag, str) else None
    if tag is None or tag in DROPPED_WITH_CONTENT:
        return

    keep = tag in ALLOWED_TAGS
    if keep:
        if tag in VOID_TAGS:
            out.append(f'<{tag} />')
            return
        out.append(f'<{tag}{_emit_attributes(tag, element)}>')
    if element.text:
        out.append(escape_text(element.text))
    for child in element:
        _emit(child, out)
        if child.tail:
            out.append(escape_text(child.tail))
    if keep:
        out.append(f'</{tag}>')


def sanitize_fragment(text: str) -> str:
    """Sanitize an HTML fragment. Never raises: on parser failure the text is escaped."""
    if not text or not text.strip():
        return escape_text(text or '')
    try:
        root = lxml.html.fragment_fromstring(text, create_parent='div')
    except (etree.ParserError, etree.XMLSyntaxError, ValueError) as e:
        logger.warning(f"Could not parse translated fragment, escaping it: {e}")
        return escape_text(text)

    out: List[str] = []
    if root.text:
        out.append(escape_text(root.text))
    for child in root:
        _emit(child, out)
        if child.tail:
            out.append(escape_text(child.tail))
    return ''.join(out)
